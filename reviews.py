import logging
from datetime import datetime
from typing import Callable

import schemas
from catalog import CatalogStore
from database import guarded, oid
from errors import NotFoundError, ValidationError, require_fields
from ledger import RentalLedger
from locks import KeyedLocks
from timeutil import as_utc, to_store, utcnow

logger = logging.getLogger("bookrental.reviews")


def serialize_review(doc) -> dict:
    return {
        "id": str(doc["_id"]),
        "bookId": str(doc.get("bookId")),
        "userId": doc.get("userId"),
        "renterName": doc.get("renterName"),
        "rating": doc.get("rating"),
        "review": doc.get("review"),
        "rentalDate": as_utc(doc.get("rentalDate")),
        "returnDate": as_utc(doc.get("returnDate")),
        "createdAt": as_utc(doc.get("createdAt")),
    }


def _rating_value(rating) -> int:
    if rating is None or rating == "" or isinstance(rating, bool):
        raise ValidationError("Missing fields: rating")
    try:
        value = float(rating)
    except (TypeError, ValueError):
        raise ValidationError("Rating must be a number")
    if not value.is_integer() or not 1 <= value <= 5:
        raise ValidationError("Rating must be a whole number from 1 to 5")
    return int(value)


class ReviewService:
    """
    Stores reviews and keeps each book's rating aggregate in step.

    The aggregate is recomputed from every review of the book on each
    submission rather than folded in incrementally. That costs a scan of
    the book's reviews per write, but a duplicate or concurrent submission
    can never leave the average drifting from the stored reviews.
    """

    def __init__(self, db, catalog: CatalogStore, ledger: RentalLedger, locks: KeyedLocks,
                 clock: Callable[[], datetime] = utcnow):
        self.reviews = db["review"]
        self.catalog = catalog
        self.ledger = ledger
        self.locks = locks
        self.clock = clock

    def submit_review(self, book_id, user_id, rating, review_text=None) -> dict:
        require_fields(bookId=book_id, userId=user_id)
        value = _rating_value(rating)

        with self.locks.hold(("book", str(book_id))):
            book = self.catalog.require(book_id)
            last = self.ledger.latest_any(user_id, book_id)
            record = schemas.Review(
                bookId=str(book["_id"]),
                userId=user_id,
                renterName=(last or {}).get("renterName") or user_id,
                rating=value,
                review=review_text,
                rentalDate=last.get("rentalDate") if last else None,
                returnDate=last.get("returnDate") if last else None,
                createdAt=to_store(self.clock()),
            )
            self._insert(record, book["_id"])
            avg, count = self._rescan(book["_id"])
            self.catalog.set_rating_stats(book_id, avg, count)

        logger.info("Review saved | book=%s user=%s rating=%d avg=%.2f count=%d",
                    book_id, user_id, value, avg, count)
        return {"message": "Review saved", "avgRating": round(avg, 2), "ratingCount": count}

    @guarded
    def _insert(self, record: schemas.Review, book_key) -> None:
        doc = record.model_dump()
        doc["bookId"] = book_key
        self.reviews.insert_one(doc)

    @guarded
    def _rescan(self, book_key):
        stats = list(self.reviews.aggregate([
            {"$match": {"bookId": book_key}},
            {"$group": {"_id": "$bookId", "avg": {"$avg": "$rating"}, "count": {"$sum": 1}}},
        ]))
        if not stats:
            return 0.0, 0
        return float(stats[0]["avg"]), int(stats[0]["count"])

    @guarded
    def list_reviews(self, book_id) -> list:
        key = oid(book_id)
        if key is None:
            return []
        cursor = self.reviews.find({"bookId": key}).sort([("createdAt", -1), ("_id", -1)])
        return [serialize_review(r) for r in cursor]
