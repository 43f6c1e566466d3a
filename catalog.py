import logging
import math
from typing import List, Optional

from pymongo import ReturnDocument

import schemas
from database import guarded, oid
from errors import NotFoundError, ValidationError

logger = logging.getLogger("bookrental.catalog")


def serialize_book(doc) -> dict:
    return {
        "id": str(doc["_id"]),
        "title": doc.get("title"),
        "author": doc.get("author"),
        "category": doc.get("category"),
        "stock": int(doc.get("stock", 0)),
        "isRented": int(doc.get("stock", 0)) <= 0,
        "avgRating": round(float(doc.get("avgRating", 0)), 2),
        "ratingCount": int(doc.get("ratingCount", 0)),
    }


def _stock_value(stock, default: int) -> int:
    if stock is None or stock == "":
        return default
    try:
        value = float(stock)
    except (TypeError, ValueError):
        raise ValidationError("Stock must be a number")
    if math.isnan(value) or math.isinf(value):
        raise ValidationError("Stock must be a finite number")
    if value != int(value) or value < 0:
        raise ValidationError("Stock must be a non-negative whole number")
    return int(value)


class CatalogStore:
    """Book records: metadata, available stock and rating aggregates."""

    def __init__(self, db):
        self.books = db["book"]

    @guarded
    def add_book(self, title, author, stock=1, category=None) -> dict:
        if not title or not author:
            raise ValidationError("Title & author required")
        count = _stock_value(stock, 1)
        doc = schemas.Book(title=title, author=author, category=category, stock=count, isRented=count <= 0).model_dump()
        res = self.books.insert_one(doc)
        doc["_id"] = res.inserted_id
        logger.info("Book added | id=%s title=%s stock=%d", res.inserted_id, title, count)
        return serialize_book(doc)

    @guarded
    def remove_book(self, book_id: str) -> bool:
        key = oid(book_id)
        if key is None:
            return False
        res = self.books.delete_one({"_id": key})
        if res.deleted_count:
            logger.info("Book removed | id=%s", book_id)
        return bool(res.deleted_count)

    @guarded
    def get(self, book_id: str) -> Optional[dict]:
        key = oid(book_id)
        if key is None:
            return None
        return self.books.find_one({"_id": key})

    def require(self, book_id: str) -> dict:
        book = self.get(book_id)
        if not book:
            raise NotFoundError("Book not found")
        return book

    @guarded
    def list_books(self) -> List[dict]:
        return [serialize_book(b) for b in self.books.find({}).sort("title", 1)]

    @guarded
    def set_stock(self, book_id: str, stock) -> dict:
        count = _stock_value(stock, 0)
        key = oid(book_id)
        doc = None
        if key is not None:
            doc = self.books.find_one_and_update(
                {"_id": key},
                {"$set": {"stock": count, "isRented": count <= 0}},
                return_document=ReturnDocument.AFTER,
            )
        if not doc:
            raise NotFoundError("Book not found")
        logger.info("Stock updated | id=%s stock=%d", book_id, count)
        return doc

    # isRented is written after the stock change as a stored copy only;
    # serialize_book derives the flag from stock, so readers never see it stale.
    @guarded
    def take_copy(self, book_id: str) -> Optional[dict]:
        """Decrement stock only if a copy is left; None when none was."""
        doc = self.books.find_one_and_update(
            {"_id": oid(book_id), "stock": {"$gt": 0}},
            {"$inc": {"stock": -1}},
            return_document=ReturnDocument.AFTER,
        )
        if doc is None:
            return None
        self.books.update_one({"_id": doc["_id"]}, {"$set": {"isRented": doc["stock"] <= 0}})
        doc["isRented"] = doc["stock"] <= 0
        return doc

    @guarded
    def put_back_copy(self, book_id: str) -> Optional[dict]:
        doc = self.books.find_one_and_update(
            {"_id": oid(book_id)},
            {"$inc": {"stock": 1}},
            return_document=ReturnDocument.AFTER,
        )
        if doc is None:
            return None
        self.books.update_one({"_id": doc["_id"]}, {"$set": {"isRented": doc["stock"] <= 0}})
        doc["isRented"] = doc["stock"] <= 0
        return doc

    @guarded
    def set_rating_stats(self, book_id: str, avg: float, count: int) -> None:
        self.books.update_one(
            {"_id": oid(book_id)},
            {"$set": {"avgRating": round(float(avg), 2), "ratingCount": int(count)}},
        )

    @guarded
    def available_excluding(self, excluded_ids, limit: int) -> List[dict]:
        cursor = (
            self.books.find({"_id": {"$nin": list(excluded_ids)}, "stock": {"$gt": 0}})
            .sort([("avgRating", -1), ("ratingCount", -1)])
            .limit(limit)
        )
        return [serialize_book(b) for b in cursor]
