"""Services package."""

from finboard.services.storage import (
    ConnectionError,
    ConsistencyHazardError,
    DuplicateError,
    EphemeralStore,
    GoogleSheetsClient,
    GoogleSheetsLedgerStore,
    LedgerStorePort,
    NotFoundError,
    StorageError,
)

__all__ = [
    # Storage services
    "ConnectionError",
    "ConsistencyHazardError",
    "DuplicateError",
    "EphemeralStore",
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStore",
    "LedgerStorePort",
    "NotFoundError",
    "StorageError",
]
