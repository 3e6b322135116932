"""
Transaction Ledger

Keeps account balances consistent with the log of signed transactions.

INVARIANT (checked by verify_integrity):
    account.balance == account.opening_balance
                       + sum(+amount for Income, -amount for Expense)
    over every stored transaction of that account

Transaction lifecycle: Proposed -> Applied -> Reverted (terminal).
There is no update; an edit is revert + apply.

ORDERING: both apply and revert write the account balance first and
the transaction record second. The store has no multi-document
transactions, so a failure of the second write leaves the ledger
inconsistent. That case is logged with the attempted delta and raised
as ConsistencyHazardError; it is never silently repaired.
"""

import asyncio
from collections import defaultdict
from decimal import Decimal
from typing import Optional, Union

from pydantic import BaseModel

from finboard.audit import AuditLogger, create_correlation_id
from finboard.models.ledger import (
    Account,
    AccountType,
    Collection,
    Transaction,
)
from finboard.services.storage.interface import (
    ConsistencyHazardError,
    LedgerStorePort,
    StorageError,
)


class LedgerError(Exception):
    """Base exception for ledger operations."""
    pass


class ValidationError(LedgerError):
    """A transaction or account failed its preconditions. Nothing was mutated."""
    pass


class AccountInUseError(ValidationError):
    """An account cannot be closed while transactions reference it."""
    pass


class InvalidStateError(LedgerError):
    """The transaction is not in a state that allows this operation."""
    pass


class BalanceDiscrepancy(BaseModel):
    """An account whose cached balance disagrees with its transactions."""

    account_id: str
    cached_balance: Decimal
    expected_balance: Decimal

    @property
    def difference(self) -> Decimal:
        return self.cached_balance - self.expected_balance


class TransactionLedger:
    """
    Applies and reverts transactions against account balances.

    All state lives in the injected store; the ledger itself only
    remembers which transaction ids it has reverted, so a second
    revert can be reported precisely.
    """

    def __init__(
        self,
        store: LedgerStorePort,
        audit_logger: Optional[AuditLogger] = None,
        default_currency: str = "TWD",
    ):
        self._store = store
        self._audit = audit_logger or AuditLogger()
        self._default_currency = default_currency
        self._locks: dict[str, asyncio.Lock] = {}
        self._reverted: set[str] = set()

    def _lock_for(self, account_id: str) -> asyncio.Lock:
        """Per-account lock; only created for accounts that exist."""
        return self._locks.setdefault(account_id, asyncio.Lock())

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def accounts(self) -> list[Account]:
        return self._store.read(Collection.ACCOUNTS)

    def transactions(self, account_id: Optional[str] = None) -> list[Transaction]:
        """Stored transactions, newest date first."""
        transactions = self._store.read(Collection.TRANSACTIONS)
        if account_id is not None:
            transactions = [t for t in transactions if t.account_id == account_id]
        return sorted(transactions, key=lambda t: t.date, reverse=True)

    def get_account(self, account_id: str) -> Optional[Account]:
        return self._store.get(Collection.ACCOUNTS, account_id)

    def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        return self._store.get(Collection.TRANSACTIONS, transaction_id)

    def is_applied(self, transaction_id: str) -> bool:
        return self.get_transaction(transaction_id) is not None

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    def _validate(self, tx: Transaction) -> None:
        """Stage-one checks; raise before anything is written."""
        if tx.amount <= 0:
            raise ValidationError(f"Amount must be greater than zero (got {tx.amount})")
        if not tx.category.strip():
            raise ValidationError("Category is required")
        if self.get_account(tx.account_id) is None:
            raise ValidationError(f"Account not found: {tx.account_id}")

    async def apply(self, tx: Transaction) -> Transaction:
        """
        Apply a new transaction.

        Returns:
            The stored transaction

        Raises:
            ValidationError: Non-positive amount, empty category or
                unknown account
            InvalidStateError: A transaction with this id is already
                applied, or was reverted
            ConsistencyHazardError: The balance was written but the
                transaction record was not
        """
        correlation_id = create_correlation_id()
        try:
            self._validate(tx)
        except ValidationError as e:
            self._audit.log_transaction_rejected(tx.id, str(e), correlation_id)
            raise

        async with self._lock_for(tx.account_id):
            try:
                # Re-check under the lock: the account may have been closed
                self._validate(tx)
                if tx.id in self._reverted:
                    raise InvalidStateError(f"Transaction {tx.id} was reverted and cannot be re-applied")
                if self.is_applied(tx.id):
                    raise InvalidStateError(f"Transaction {tx.id} is already applied")
            except LedgerError as e:
                self._audit.log_transaction_rejected(tx.id, str(e), correlation_id)
                raise

            delta = tx.signed_amount
            account = await self._move_balance(tx.account_id, delta)

            try:
                await self._store.write(Collection.TRANSACTIONS, tx)
            except StorageError as e:
                self._raise_hazard(tx, delta, "transaction_record_write", e, correlation_id)

            self._audit.log_transaction_applied(
                transaction_id=tx.id,
                account_id=tx.account_id,
                delta=delta,
                new_balance=account.balance,
                correlation_id=correlation_id,
            )
            return tx

    async def revert(self, tx: Union[Transaction, str]) -> Transaction:
        """
        Revert an applied transaction: undo its balance effect, then
        delete its record.

        The inverse delta is taken from the stored record, not from
        the argument, so a stale copy cannot skew the balance.

        Returns:
            The transaction that was reverted

        Raises:
            InvalidStateError: Already reverted, or never applied
            ConsistencyHazardError: The balance was restored but the
                record could not be deleted
        """
        transaction_id = tx if isinstance(tx, str) else tx.id
        correlation_id = create_correlation_id()

        stored = self.get_transaction(transaction_id)
        if stored is None:
            reason = (
                f"Transaction {transaction_id} was already reverted"
                if transaction_id in self._reverted
                else f"Transaction {transaction_id} is not applied"
            )
            self._audit.log_transaction_rejected(transaction_id, reason, correlation_id)
            raise InvalidStateError(reason)

        async with self._lock_for(stored.account_id):
            # Re-check under the lock: a concurrent revert may have won
            if self.get_transaction(transaction_id) is None:
                reason = f"Transaction {transaction_id} was already reverted"
                self._audit.log_transaction_rejected(transaction_id, reason, correlation_id)
                raise InvalidStateError(reason)

            delta = -stored.signed_amount
            account = await self._move_balance(stored.account_id, delta)

            try:
                await self._store.delete(Collection.TRANSACTIONS, stored.id)
            except StorageError as e:
                self._raise_hazard(stored, delta, "transaction_record_delete", e, correlation_id)

            self._reverted.add(stored.id)
            self._audit.log_transaction_reverted(
                transaction_id=stored.id,
                account_id=stored.account_id,
                delta=delta,
                new_balance=account.balance,
                correlation_id=correlation_id,
            )
            return stored

    async def _move_balance(self, account_id: str, delta: Decimal) -> Account:
        """Re-read the account and write balance + delta."""
        account = self.get_account(account_id)
        if account is None:
            # Only reachable on revert when the account vanished underneath
            raise InvalidStateError(f"Account not found: {account_id}")
        account = account.model_copy(update={"balance": account.balance + delta})
        await self._store.write(Collection.ACCOUNTS, account)
        return account

    def _raise_hazard(self, tx: Transaction, delta: Decimal, step: str, error: Exception, correlation_id) -> None:
        self._audit.log_consistency_hazard(
            entity_type="account",
            entity_id=tx.account_id,
            step=step,
            error_message=str(error),
            details={
                "transaction_id": tx.id,
                "attempted_delta": str(delta),
            },
            correlation_id=correlation_id,
        )
        raise ConsistencyHazardError(
            f"Balance of account {tx.account_id} moved by {delta} but {step} failed "
            f"for transaction {tx.id}",
            entity_id=tx.account_id,
            step=step,
            attempted_delta=delta,
        ) from error

    # -------------------------------------------------------------------------
    # Accounts
    # -------------------------------------------------------------------------

    async def open_account(
        self,
        name: str,
        opening_balance: Decimal = Decimal("0"),
        account_type: AccountType = AccountType.BANK,
        currency: Optional[str] = None,
    ) -> Account:
        """Create an account whose balance starts at opening_balance."""
        if not name or not name.strip():
            raise ValidationError("Account name is required")
        account = Account(
            name=name,
            type=account_type,
            opening_balance=Decimal(opening_balance),
            currency=currency or self._default_currency,
        )
        await self._store.write(Collection.ACCOUNTS, account)
        self._audit.log_account_opened(account.id, account.name, account.opening_balance)
        return account

    async def close_account(self, account_id: str) -> None:
        """
        Delete an account.

        POLICY: refused while any transaction references the account.
        Revert those transactions first.

        Raises:
            ValidationError: Unknown account
            AccountInUseError: Transactions still reference it
        """
        if self.get_account(account_id) is None:
            raise ValidationError(f"Account not found: {account_id}")

        async with self._lock_for(account_id):
            if self.get_account(account_id) is None:
                raise ValidationError(f"Account not found: {account_id}")
            referencing = self.transactions(account_id)
            if referencing:
                raise AccountInUseError(
                    f"Account {account_id} still has {len(referencing)} transaction(s)"
                )
            await self._store.delete(Collection.ACCOUNTS, account_id)
        self._locks.pop(account_id, None)
        self._audit.log_account_closed(account_id)

    # -------------------------------------------------------------------------
    # Reconciliation
    # -------------------------------------------------------------------------

    def verify_integrity(self) -> list[BalanceDiscrepancy]:
        """
        Recompute every balance from the store's current state.

        Each mismatch is logged as a consistency hazard; nothing is
        corrected automatically.
        """
        movement: defaultdict[str, Decimal] = defaultdict(Decimal)
        for tx in self._store.read(Collection.TRANSACTIONS):
            movement[tx.account_id] += tx.signed_amount

        discrepancies = []
        for account in self.accounts():
            expected = account.opening_balance + movement[account.id]
            if account.balance != expected:
                discrepancies.append(BalanceDiscrepancy(
                    account_id=account.id,
                    cached_balance=account.balance,
                    expected_balance=expected,
                ))
                self._audit.log_consistency_hazard(
                    entity_type="account",
                    entity_id=account.id,
                    step="integrity_check",
                    error_message="Cached balance disagrees with transactions",
                    details={
                        "cached_balance": str(account.balance),
                        "expected_balance": str(expected),
                    },
                )
        return discrepancies
