class RentalError(Exception):
    """Base class for failures the service reports to its callers."""

    kind = "rental_error"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(RentalError):
    """Required input missing or malformed."""

    kind = "validation_error"


class NotFoundError(RentalError):
    """Referenced book or open rental does not exist."""

    kind = "not_found"
    status_code = 404


class OutOfStockError(RentalError):
    """No copies of the book are available."""

    kind = "out_of_stock"


class LimitExceededError(RentalError):
    """User already holds the maximum number of open rentals."""

    kind = "limit_exceeded"

    def __init__(self, limit: int):
        super().__init__(f"Rental limit reached ({limit}). Return a book first.")
        self.limit = limit


class ConflictError(RentalError):
    """A concurrent rental took the last copy first."""

    kind = "conflict"
    status_code = 409


class StoreFailure(RentalError):
    """The record store is unavailable or rejected the operation."""

    kind = "store_failure"
    status_code = 503


def require_fields(**fields) -> None:
    """Raise ValidationError naming every field that is missing or blank."""
    missing = [name for name, value in fields.items() if value is None or str(value).strip() == ""]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")
