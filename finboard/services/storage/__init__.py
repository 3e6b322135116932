"""
Storage Services Package

Provides the abstract ledger store port and its two backends:
an in-memory store (demo mode, tests) and Google Sheets (persisted).
"""

from finboard.services.storage.interface import (
    ConnectionError,
    ConsistencyHazardError,
    DuplicateError,
    LedgerStorePort,
    NotFoundError,
    StorageError,
)
from finboard.services.storage.memory import EphemeralStore
from finboard.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsLedgerStore,
)

__all__ = [
    # Interface
    "LedgerStorePort",
    # Exceptions
    "ConnectionError",
    "ConsistencyHazardError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # Backends
    "EphemeralStore",
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStore",
]
