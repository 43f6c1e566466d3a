from datetime import datetime
from functools import lru_cache
from typing import Callable, Optional

from accounts import UserAccounts
from catalog import CatalogStore
from config import Settings, load_settings
from database import db as default_db
from fees import LateFeeSettings
from ledger import RentalLedger
from lifecycle import RentalService
from locks import KeyedLocks
from recommendations import recommend
from reviews import ReviewService
from timeutil import utcnow


class BookRentalSystem:
    """
    Wires stores and services over one database handle and offers the
    operations the HTTP layer calls.
    """

    def __init__(self, db, settings: Optional[Settings] = None, clock: Callable[[], datetime] = utcnow) -> None:
        self.db = db
        self.settings = settings or load_settings()
        self.clock = clock
        # one lock table so rent, return and review share per-book serialization
        self.locks = KeyedLocks()

        # stores
        self.catalog = CatalogStore(db)
        self.ledger = RentalLedger(db)
        self.fees = LateFeeSettings(db, self.settings.default_late_fee_per_day, self.locks)
        self.accounts = UserAccounts(db, self.settings)

        # services
        self.rentals = RentalService(self.catalog, self.ledger, self.fees, self.settings, self.locks, clock)
        self.reviews = ReviewService(db, self.catalog, self.ledger, self.locks, clock)

    # ---- catalog
    def list_books(self):
        return self.catalog.list_books()

    def add_book(self, title, author, stock=1, category=None):
        return self.catalog.add_book(title, author, stock, category)

    def remove_book(self, book_id):
        return self.catalog.remove_book(book_id)

    def update_stock(self, book_id, stock):
        with self.locks.hold(("book", str(book_id))):
            return self.catalog.set_stock(book_id, stock)

    # ---- late fee
    def get_late_fee_rate(self):
        return self.fees.get_rate()

    def set_late_fee_rate(self, value):
        return self.fees.set_rate(value)

    # ---- rent / return
    def rent_book(self, book_id, user_id, renter_name, renter_address, renter_phone, due_date=None):
        return self.rentals.rent_book(book_id, user_id, renter_name, renter_address, renter_phone, due_date)

    def return_book(self, book_id, user_id, return_date=None):
        if return_date in (None, ""):
            return self.rentals.return_book_now(book_id, user_id)
        return self.rentals.return_book(book_id, user_id, return_date)

    def return_all(self, user_id):
        return self.rentals.return_all(user_id)

    # ---- history / reporting
    def history(self, user_id):
        return self.rentals.history(user_id)

    def overdue(self, user_id):
        return self.rentals.overdue(user_id)

    def list_rentals(self, status="open"):
        return self.rentals.list_rentals(status)

    def log_overdue(self):
        return self.rentals.log_overdue()

    # ---- reviews / recommendations
    def submit_review(self, book_id, user_id, rating, review_text=None):
        return self.reviews.submit_review(book_id, user_id, rating, review_text)

    def list_reviews(self, book_id):
        return self.reviews.list_reviews(book_id)

    def recommend(self, user_id):
        return recommend(self.catalog, self.ledger, user_id, self.settings.recommendation_limit)


@lru_cache(maxsize=1)
def get_system() -> BookRentalSystem:
    return BookRentalSystem(default_db)
