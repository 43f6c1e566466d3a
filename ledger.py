import logging
from datetime import datetime
from typing import List, Optional

import schemas
from database import guarded, oid
from timeutil import as_utc, to_store

logger = logging.getLogger("bookrental.ledger")

STATUS_FILTERS = ("open", "returned", "all")

# Newest first; _id breaks ties between rentals created in the same millisecond.
NEWEST_FIRST = [("rentalDate", -1), ("_id", -1)]


def serialize_rental(doc) -> dict:
    return {
        "id": str(doc["_id"]),
        "userId": doc.get("userId"),
        "bookId": str(doc.get("bookId")) if doc.get("bookId") is not None else None,
        "bookTitle": doc.get("bookTitle"),
        "renterName": doc.get("renterName"),
        "renterAddress": doc.get("renterAddress"),
        "renterPhone": doc.get("renterPhone"),
        "rentalDate": as_utc(doc.get("rentalDate")),
        "dueDate": as_utc(doc.get("dueDate")),
        "returnDate": as_utc(doc.get("returnDate")),
        "returned": bool(doc.get("returned", False)),
        "lateFeeCharged": doc.get("lateFeeCharged", 0),
    }


class RentalLedger:
    """Append-mostly log of rentals; a rental is closed once and never deleted."""

    def __init__(self, db):
        self.rentals = db["rental"]

    @guarded
    def open_rental(self, book: dict, user_id: str, renter_name: str, renter_address: str,
                    renter_phone: str, rental_date: datetime, due_date: datetime) -> dict:
        record = schemas.Rental(
            userId=user_id,
            bookId=str(book["_id"]),
            bookTitle=book.get("title") or "",
            renterName=renter_name,
            renterAddress=renter_address,
            renterPhone=renter_phone,
            rentalDate=to_store(rental_date),
            dueDate=to_store(due_date),
        )
        doc = record.model_dump()
        doc["bookId"] = book["_id"]
        res = self.rentals.insert_one(doc)
        doc["_id"] = res.inserted_id
        return doc

    @guarded
    def count_open(self, user_id: str) -> int:
        return self.rentals.count_documents({"userId": user_id, "returned": False})

    @guarded
    def latest_open(self, user_id: str, book_id: str) -> Optional[dict]:
        found = list(
            self.rentals.find({"userId": user_id, "bookId": oid(book_id), "returned": False})
            .sort(NEWEST_FIRST)
            .limit(1)
        )
        return found[0] if found else None

    @guarded
    def latest_any(self, user_id: str, book_id: str) -> Optional[dict]:
        found = list(self.rentals.find({"userId": user_id, "bookId": oid(book_id)}).sort(NEWEST_FIRST).limit(1))
        return found[0] if found else None

    @guarded
    def close(self, rental_id, return_date: datetime, late_fee) -> bool:
        res = self.rentals.update_one(
            {"_id": rental_id, "returned": False},
            {"$set": {"returned": True, "returnDate": to_store(return_date), "lateFeeCharged": late_fee}},
        )
        return res.modified_count == 1

    @guarded
    def open_for_user(self, user_id: str) -> List[dict]:
        return list(self.rentals.find({"userId": user_id, "returned": False}).sort(NEWEST_FIRST))

    @guarded
    def history(self, user_id: str) -> List[dict]:
        return [serialize_rental(r) for r in self.rentals.find({"userId": user_id}).sort(NEWEST_FIRST)]

    @guarded
    def overdue(self, now: datetime, user_id: Optional[str] = None) -> List[dict]:
        query = {"returned": False, "dueDate": {"$lt": to_store(now)}}
        if user_id is not None:
            query["userId"] = user_id
        return list(self.rentals.find(query).sort(NEWEST_FIRST))

    @guarded
    def by_status(self, status: str) -> List[dict]:
        query = {}
        if status == "open":
            query["returned"] = False
        elif status == "returned":
            query["returned"] = True
        return list(self.rentals.find(query).sort(NEWEST_FIRST))

    @guarded
    def rented_book_ids(self, user_id: str) -> list:
        return self.rentals.distinct("bookId", {"userId": user_id})
