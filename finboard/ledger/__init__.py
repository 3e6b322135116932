"""Ledger package: accounts, transactions and the balance invariant."""

from finboard.ledger.ledger import (
    AccountInUseError,
    BalanceDiscrepancy,
    InvalidStateError,
    LedgerError,
    TransactionLedger,
    ValidationError,
)

__all__ = [
    "AccountInUseError",
    "BalanceDiscrepancy",
    "InvalidStateError",
    "LedgerError",
    "TransactionLedger",
    "ValidationError",
]
