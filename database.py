import functools
import logging

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import MongoClient
from pymongo.errors import PyMongoError

from config import load_settings
from errors import StoreFailure

logger = logging.getLogger("bookrental.database")

_settings = load_settings()

# MongoClient connects lazily, so importing this module never blocks on the server.
client = MongoClient(_settings.mongo_url)
db = client[_settings.database_name]


def guarded(method):
    """Report driver errors as StoreFailure; no retry is attempted here."""

    @functools.wraps(method)
    def wrapper(*args, **kwargs):
        try:
            return method(*args, **kwargs)
        except PyMongoError as e:
            logger.exception("Store call %s failed", method.__qualname__)
            raise StoreFailure(f"Record store unavailable: {str(e)[:80]}") from e

    return wrapper


def oid(value):
    """Parse a string id into an ObjectId, or None when it is not one."""
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        return None
