# storefront/errors.py
from typing import Any, Optional


class StoreError(Exception):
    """Base error for everything the storefront reports to a caller."""

    status_code = 500

    def __init__(self, message: str, detail: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail


class ValidationError(StoreError):
    status_code = 400


class EmptyCart(ValidationError):
    pass


class ImageRejected(ValidationError):
    pass


class NotFound(StoreError):
    status_code = 404


class Conflict(StoreError):
    status_code = 409


class BackendUnavailable(StoreError):
    status_code = 503
