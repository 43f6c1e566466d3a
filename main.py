import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from typing import Any, Optional

from fastapi import FastAPI, Depends, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, EmailStr

from accounts import public_user, token_for
from auth import require_role
from config import configure_logging, load_settings
from errors import LimitExceededError, NotFoundError, RentalError
from seed import seed_demo_data
from system import BookRentalSystem, get_system

settings = load_settings()
configure_logging(settings.log_level)
logger = logging.getLogger("bookrental.api")


async def _overdue_scan(interval: int, system_factory=get_system):
    while True:
        await asyncio.sleep(interval)
        try:
            count = await asyncio.to_thread(system_factory().log_overdue)
            logger.info("Overdue scan finished | overdue=%d", count)
        except Exception:
            logger.exception("Overdue scan failed; retrying next interval")


@asynccontextmanager
async def lifespan(_app: FastAPI):
    task = None
    if settings.overdue_scan_interval_seconds > 0:
        task = asyncio.create_task(_overdue_scan(settings.overdue_scan_interval_seconds))
    yield
    if task is not None:
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task


# App setup
app = FastAPI(title="Book Rental Service", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RentalError)
async def rental_error_handler(_request: Request, exc: RentalError):
    body = {"message": exc.message, "error": exc.kind}
    if isinstance(exc, LimitExceededError):
        body["limit"] = exc.limit
    return JSONResponse(status_code=exc.status_code, content=body)


# Pydantic models
class TokenResponse(BaseModel):
    token: str
    token_type: str = "bearer"
    user: dict

class RegisterRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    password: Optional[str] = None
    role: str = "user"
    address: Optional[str] = None
    phone: Optional[str] = None

class LoginRequest(BaseModel):
    email: EmailStr
    password: str
    role: Optional[str] = None

class BookIn(BaseModel):
    title: Optional[str] = None
    author: Optional[str] = None
    stock: Any = 1
    category: Optional[str] = None

class StockIn(BaseModel):
    stock: Any = None

class LateFeeIn(BaseModel):
    lateFeePerDay: Any = None

class RentRequest(BaseModel):
    bookId: Optional[str] = None
    userId: Optional[str] = None
    renterName: Optional[str] = None
    renterAddress: Optional[str] = None
    renterPhone: Optional[str] = None
    dueDate: Optional[str] = None

class ReturnRequest(BaseModel):
    bookId: Optional[str] = None
    userId: Optional[str] = None
    returnDate: Optional[str] = None

class ReviewIn(BaseModel):
    bookId: Optional[str] = None
    userId: Optional[str] = None
    rating: Any = None
    review: Optional[str] = None


# Routes
@app.get("/")
def root():
    return {"message": "Book Rental Service API"}

@app.get("/test")
def test_database(system: BookRentalSystem = Depends(get_system)):
    try:
        collections = system.db.list_collection_names()
        return {"backend": "ok", "database": "ok", "collections": collections}
    except Exception as e:
        return {"backend": "ok", "database": f"error: {str(e)[:80]}"}

# Auth
@app.post("/api/auth/register", response_model=TokenResponse)
def register(payload: RegisterRequest, system: BookRentalSystem = Depends(get_system)):
    return system.accounts.register(
        payload.name, payload.password, email=payload.email, role=payload.role,
        address=payload.address, phone=payload.phone,
    )

@app.post("/api/auth/login", response_model=TokenResponse)
def login(payload: LoginRequest, system: BookRentalSystem = Depends(get_system)):
    user = system.accounts.authenticate(payload.email, payload.password)
    if not user:
        raise HTTPException(status_code=400, detail="Invalid email or password")
    if payload.role and user.get("role", "user") != payload.role:
        raise HTTPException(status_code=403, detail="Role mismatch")
    return TokenResponse(token=token_for(user, system.settings), user=public_user(user))

# Books
@app.get("/api/books")
def list_books(system: BookRentalSystem = Depends(get_system)):
    return system.list_books()

@app.post("/api/add-book", status_code=201)
def add_book(payload: BookIn, system: BookRentalSystem = Depends(get_system), user=Depends(require_role("admin"))):
    book = system.add_book(payload.title, payload.author, payload.stock, payload.category)
    return {"message": "Book added successfully!", "book": book}

@app.delete("/api/remove-book/{book_id}")
def remove_book(book_id: str, system: BookRentalSystem = Depends(get_system), user=Depends(require_role("admin"))):
    if not system.remove_book(book_id):
        raise NotFoundError("Book not found")
    return {"message": "Book removed successfully!"}

@app.post("/api/update-stock/{book_id}")
def update_stock(book_id: str, payload: StockIn, system: BookRentalSystem = Depends(get_system),
                 user=Depends(require_role("admin"))):
    system.update_stock(book_id, payload.stock)
    return {"message": "Stock updated"}

# Late fee setting
@app.get("/api/late-fee")
def get_late_fee(system: BookRentalSystem = Depends(get_system)):
    return {"lateFeePerDay": system.get_late_fee_rate()}

@app.post("/api/late-fee")
def set_late_fee(payload: LateFeeIn, system: BookRentalSystem = Depends(get_system),
                 user=Depends(require_role("admin"))):
    return {"lateFeePerDay": system.set_late_fee_rate(payload.lateFeePerDay)}

# Rent / return
@app.post("/api/rent-book")
def rent_book(payload: RentRequest, system: BookRentalSystem = Depends(get_system)):
    return system.rent_book(
        payload.bookId, payload.userId, payload.renterName, payload.renterAddress, payload.renterPhone,
        payload.dueDate,
    )

@app.post("/api/return-book")
def return_book(payload: ReturnRequest, system: BookRentalSystem = Depends(get_system)):
    return system.return_book(payload.bookId, payload.userId, payload.returnDate)

# History / overdue
@app.get("/api/rental-history/{user_id}")
def rental_history(user_id: str, system: BookRentalSystem = Depends(get_system)):
    return system.history(user_id)

@app.get("/api/overdue/{user_id}")
def overdue(user_id: str, system: BookRentalSystem = Depends(get_system)):
    return system.overdue(user_id)

# Reviews
@app.post("/api/review")
def add_review(payload: ReviewIn, system: BookRentalSystem = Depends(get_system)):
    return system.submit_review(payload.bookId, payload.userId, payload.rating, payload.review)

@app.get("/api/reviews/{book_id}")
def list_reviews(book_id: str, system: BookRentalSystem = Depends(get_system)):
    return system.list_reviews(book_id)

# Recommendations
@app.get("/api/recommendations/{user_id}")
def recommendations(user_id: str, system: BookRentalSystem = Depends(get_system)):
    return system.recommend(user_id)

# Admin endpoints
@app.get("/api/admin/rentals")
def admin_rentals(status: str = "open", system: BookRentalSystem = Depends(get_system),
                  user=Depends(require_role("admin"))):
    return system.list_rentals(status)

# Seed/demo endpoints
@app.get("/api/dev/seed")
@app.post("/api/dev/seed")
def seed(system: BookRentalSystem = Depends(get_system)):
    return seed_demo_data(system)

@app.post("/api/dev/return-all/{user_id}")
def return_all(user_id: str, system: BookRentalSystem = Depends(get_system)):
    return system.return_all(user_id)

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
