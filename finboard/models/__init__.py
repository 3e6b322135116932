"""
Data Models Package

This package contains all Pydantic models used in finboard.
All data flowing through the ledger and the price-sync core must
conform to these schemas.
"""

from finboard.models.ledger import (
    Account,
    AccountType,
    ActionResult,
    Category,
    Collection,
    Holding,
    PortfolioSummary,
    PriceSyncResult,
    Quote,
    Source,
    Transaction,
    TransactionType,
    new_id,
    signed_amount,
)
from finboard.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "Account",
    "AccountType",
    "ActionResult",
    "Category",
    "Collection",
    "Holding",
    "PortfolioSummary",
    "PriceSyncResult",
    "Quote",
    "Source",
    "Transaction",
    "TransactionType",
    "new_id",
    "signed_amount",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
