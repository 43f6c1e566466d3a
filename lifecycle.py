import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from catalog import CatalogStore
from config import Settings
from errors import (
    ConflictError,
    LimitExceededError,
    NotFoundError,
    OutOfStockError,
    ValidationError,
    require_fields,
)
from fees import LateFeeSettings, late_fee
from ledger import STATUS_FILTERS, RentalLedger, serialize_rental
from locks import KeyedLocks
from timeutil import parse_datetime, utcnow

logger = logging.getLogger("bookrental.lifecycle")


class RentalService:
    """
    Moves copies between the shelf and renters.

    Rent and return each run under the renter's lock and then the book's
    lock, so the stock change and the ledger write for one book are never
    interleaved with another rent or return of that book. The store's
    conditional decrement backs this up across processes.
    """

    def __init__(
        self,
        catalog: CatalogStore,
        ledger: RentalLedger,
        fees: LateFeeSettings,
        settings: Settings,
        locks: KeyedLocks,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.catalog = catalog
        self.ledger = ledger
        self.fees = fees
        self.settings = settings
        self.locks = locks
        self.clock = clock

    def rent_book(self, book_id, user_id, renter_name, renter_address, renter_phone, due_date=None) -> dict:
        require_fields(bookId=book_id, userId=user_id, renterName=renter_name,
                   renterAddress=renter_address, renterPhone=renter_phone)
        try:
            due = parse_datetime(due_date)
        except ValueError:
            raise ValidationError("dueDate is not a valid date")

        with self.locks.hold(("user", user_id)), self.locks.hold(("book", str(book_id))):
            limit = self.settings.rental_limit
            if self.ledger.count_open(user_id) >= limit:
                logger.info("Rent refused, limit reached | user=%s limit=%d", user_id, limit)
                raise LimitExceededError(limit)

            book = self.catalog.require(book_id)
            if int(book.get("stock") or 0) <= 0:
                logger.info("Rent refused, out of stock | book=%s", book_id)
                raise OutOfStockError("Out of stock")

            taken = self.catalog.take_copy(book_id)
            if taken is None:
                logger.warning("Rent lost the last copy to another writer | book=%s user=%s", book_id, user_id)
                raise ConflictError("The last copy was just rented by someone else. Try again.")

            now = self.clock()
            due = due or now + timedelta(days=self.settings.default_rental_days)
            try:
                rental = self.ledger.open_rental(
                    taken, user_id, renter_name, renter_address, renter_phone, rental_date=now, due_date=due
                )
            except Exception:
                self.catalog.put_back_copy(book_id)
                raise

        logger.info("Book rented | book=%s user=%s rental=%s due=%s stock=%d",
                    book_id, user_id, rental["_id"], due.isoformat(), taken["stock"])
        return {"message": "Book rented successfully"}

    def return_book(self, book_id, user_id, return_date) -> dict:
        require_fields(bookId=book_id, userId=user_id, returnDate=return_date)
        try:
            returned_at = parse_datetime(return_date)
        except ValueError:
            raise ValidationError("returnDate is not a valid date")

        with self.locks.hold(("user", user_id)), self.locks.hold(("book", str(book_id))):
            self.catalog.require(book_id)
            rental = self.ledger.latest_open(user_id, book_id)
            if not rental:
                raise NotFoundError("Open rental not found for this user/book")

            # rate is read inside the critical section so a change made before this return applies
            fee = late_fee(rental.get("dueDate"), returned_at, self.fees.get_rate())
            if not self.ledger.close(rental["_id"], returned_at, fee):
                raise ConflictError("Rental was closed by another request")
            self.catalog.put_back_copy(book_id)

        if fee:
            logger.info("Late fee charged | rental=%s user=%s fee=%s", rental["_id"], user_id, fee)
        logger.info("Book returned | book=%s user=%s rental=%s", book_id, user_id, rental["_id"])
        return {"message": "Book returned successfully", "lateFee": fee}

    def return_book_now(self, book_id, user_id) -> dict:
        return self.return_book(book_id, user_id, self.clock())

    def return_all(self, user_id) -> dict:
        """Close every open rental of a user at the current time without charging fees."""
        require_fields(userId=user_id)
        closed = 0
        with self.locks.hold(("user", user_id)):
            for rental in self.ledger.open_for_user(user_id):
                book_key = str(rental["bookId"])
                with self.locks.hold(("book", book_key)):
                    if self.ledger.close(rental["_id"], self.clock(), 0):
                        self.catalog.put_back_copy(book_key)
                        closed += 1
        logger.info("Closed open rentals | user=%s count=%d", user_id, closed)
        return {"message": f"Closed {closed} rentals for {user_id}"}

    def history(self, user_id) -> list:
        return self.ledger.history(user_id)

    def overdue(self, user_id) -> list:
        return [serialize_rental(r) for r in self.ledger.overdue(self.clock(), user_id=user_id)]

    def list_rentals(self, status: Optional[str] = "open") -> dict:
        status = (status or "open").lower()
        if status not in STATUS_FILTERS:
            raise ValidationError(f"status must be one of {', '.join(STATUS_FILTERS)}")

        now = self.clock()
        per_day = self.fees.get_rate()
        rentals = []
        for doc in self.ledger.by_status(status):
            row = serialize_rental(doc)
            row["lateFeeDueNow"] = 0 if row["returned"] else late_fee(row["dueDate"], now, per_day)
            rentals.append(row)
        return {"lateFeePerDay": per_day, "rentals": rentals}

    def log_overdue(self) -> int:
        overdue = self.ledger.overdue(self.clock())
        for r in overdue:
            due = serialize_rental(r)["dueDate"]
            logger.warning('Overdue: "%s" for user %s (due %s)', r.get("bookTitle"), r.get("userId"),
                           due.date().isoformat() if due else "?")
        return len(overdue)
