import logging
import math
from datetime import datetime
from typing import Optional

from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

import schemas
from database import guarded
from errors import ValidationError
from locks import KeyedLocks
from timeutil import DAY_SECONDS, as_utc

logger = logging.getLogger("bookrental.fees")

SETTING_ID = "late_fee"


def days_late(due_date: Optional[datetime], return_date: datetime) -> int:
    """Whole days past due, counting any started day as a full one."""
    if due_date is None:
        return 0
    due, returned = as_utc(due_date), as_utc(return_date)
    if returned <= due:
        return 0
    return math.ceil((returned - due).total_seconds() / DAY_SECONDS)


def late_fee(due_date: Optional[datetime], return_date: datetime, per_day):
    return days_late(due_date, return_date) * per_day


def _rate_value(value):
    if value is None or value == "" or isinstance(value, bool):
        raise ValidationError("lateFeePerDay required")
    try:
        rate = float(value)
    except (TypeError, ValueError):
        raise ValidationError("lateFeePerDay must be a number")
    if rate < 0 or math.isnan(rate) or math.isinf(rate):
        raise ValidationError("lateFeePerDay must be a non-negative number")
    return int(rate) if rate.is_integer() else rate


class LateFeeSettings:
    """The single process-wide settings row, created on first access."""

    def __init__(self, db, default_per_day=20, locks: Optional[KeyedLocks] = None):
        self.settings = db["setting"]
        self.default_per_day = default_per_day
        self.locks = locks or KeyedLocks()

    @guarded
    def _load_or_create(self) -> dict:
        defaults = schemas.Setting(lateFeePerDay=self.default_per_day).model_dump()
        try:
            return self.settings.find_one_and_update(
                {"_id": SETTING_ID},
                {"$setOnInsert": defaults},
                upsert=True,
                return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError:
            # another process inserted the row between our match and insert
            return self.settings.find_one({"_id": SETTING_ID})

    def get_rate(self):
        with self.locks.hold(("setting", SETTING_ID)):
            doc = self._load_or_create()
        return doc.get("lateFeePerDay", 0)

    @guarded
    def _write_rate(self, rate) -> None:
        self.settings.update_one({"_id": SETTING_ID}, {"$set": {"lateFeePerDay": rate}}, upsert=True)

    def set_rate(self, value):
        rate = _rate_value(value)
        with self.locks.hold(("setting", SETTING_ID)):
            self._write_rate(rate)
        logger.info("Late fee per day set | rate=%s", rate)
        return rate
