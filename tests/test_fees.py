import threading
from datetime import timedelta

import pytest

from errors import ValidationError
from fees import days_late, late_fee
from conftest import T0


def test_no_fee_without_due_date():
    assert late_fee(None, T0, 20) == 0


def test_no_fee_on_or_before_due_date():
    assert late_fee(T0, T0, 20) == 0
    assert late_fee(T0, T0 - timedelta(days=3), 20) == 0


def test_partial_day_rounds_up():
    assert days_late(T0, T0 + timedelta(seconds=1)) == 1
    assert days_late(T0, T0 + timedelta(days=1)) == 1
    assert days_late(T0, T0 + timedelta(days=1, minutes=1)) == 2


def test_thirty_six_hours_late_at_twenty_per_day():
    assert late_fee(T0, T0 + timedelta(hours=36), 20) == 40


def test_naive_and_aware_dates_compare_as_utc():
    naive_due = T0.replace(tzinfo=None)
    assert late_fee(naive_due, T0 + timedelta(hours=2), 5) == 5


def test_rate_is_created_lazily_once(system, db):
    assert db["setting"].count_documents({}) == 0
    assert system.get_late_fee_rate() == 20
    assert system.get_late_fee_rate() == 20
    assert db["setting"].count_documents({}) == 1


def test_set_rate(system, db):
    assert system.set_late_fee_rate("7.5") == 7.5
    assert system.get_late_fee_rate() == 7.5
    assert system.set_late_fee_rate(0) == 0
    assert db["setting"].count_documents({}) == 1


@pytest.mark.parametrize("value", [None, "", -1, "abc", True])
def test_set_rate_rejects_bad_values(system, value):
    with pytest.raises(ValidationError):
        system.set_late_fee_rate(value)


def test_concurrent_first_reads_create_one_setting(system, db):
    barrier = threading.Barrier(8)
    rates = []

    def read():
        barrier.wait()
        rates.append(system.get_late_fee_rate())

    threads = [threading.Thread(target=read) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert rates == [20] * 8
    assert db["setting"].count_documents({}) == 1
