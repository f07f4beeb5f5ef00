"""Service layer: listing lifecycle, account lookups and the expiry sweep."""

from .accounts import AccountDirectory, AccountRecord, UserAccountDirectory
from .errors import ErrorKind, LifecycleError
from .lifecycle import RESERVATION_WINDOW, ListingLifecycleManager

__all__ = [
    "AccountDirectory",
    "AccountRecord",
    "UserAccountDirectory",
    "ErrorKind",
    "LifecycleError",
    "ListingLifecycleManager",
    "RESERVATION_WINDOW",
]
