from datetime import timedelta

import pytest

from errors import ValidationError


@pytest.fixture
def ledger(system, renter, clock):
    returned = system.add_book("Returned", "A")
    overdue = system.add_book("Overdue", "B")
    current = system.add_book("Current", "C")
    system.rent_book(returned["id"], due_date="2025-03-02T12:00:00Z", **renter(user_id="u1"))
    clock.advance(minutes=1)
    system.rent_book(overdue["id"], due_date="2025-03-03T12:00:00Z", **renter(user_id="u2"))
    clock.advance(minutes=1)
    system.rent_book(current["id"], **renter(user_id="u3"))
    # a day and two minutes late: charged two days
    system.rentals.return_book(returned["id"], "u1", clock() + timedelta(days=2))
    clock.advance(days=3)
    return system


def test_open_filter_shows_fee_accrued_so_far(ledger):
    view = ledger.list_rentals("open")

    assert view["lateFeePerDay"] == 20
    assert [r["bookTitle"] for r in view["rentals"]] == ["Current", "Overdue"]
    current, overdue = view["rentals"]
    assert current["lateFeeDueNow"] == 0
    # due 3 Mar 12:00, now 4 Mar 12:02
    assert overdue["lateFeeDueNow"] == 40


def test_returned_filter_exposes_charged_fee(ledger):
    rentals = ledger.list_rentals("returned")["rentals"]

    assert len(rentals) == 1
    assert rentals[0]["lateFeeCharged"] == 40
    assert rentals[0]["lateFeeDueNow"] == 0


def test_all_is_newest_first_and_default_is_open(ledger):
    assert [r["bookTitle"] for r in ledger.list_rentals("ALL")["rentals"]] == ["Current", "Overdue", "Returned"]
    assert len(ledger.list_rentals(None)["rentals"]) == 2


def test_view_makes_no_writes(ledger, db):
    before = list(db["rental"].find({}))
    ledger.list_rentals("all")
    assert list(db["rental"].find({})) == before


def test_unknown_status(system):
    with pytest.raises(ValidationError):
        system.list_rentals("lost")
