from catalog import CatalogStore
from errors import ValidationError
from ledger import RentalLedger


def recommend(catalog: CatalogStore, ledger: RentalLedger, user_id, limit: int = 6) -> list:
    """Best rated books in stock that the user has never rented."""
    if not user_id:
        raise ValidationError("userId required")
    rented = ledger.rented_book_ids(user_id)
    return catalog.available_excluding(rented, limit)
