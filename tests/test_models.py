"""
Tests for finboard models

Test strategy:
1. Unit tests for individual components (models, audit logger)
2. Integration tests for flows (with fake external services)
3. No real API calls in tests
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from pydantic import ValidationError

from finboard.audit import AuditLogger
from finboard.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from finboard.models.defaults import CATEGORIES, categories_for
from finboard.models.ledger import (
    Account,
    AccountType,
    Holding,
    PortfolioSummary,
    PriceSyncResult,
    Transaction,
    TransactionType,
    signed_amount,
)


class TestLedgerModels:
    """Tests for account and transaction models."""

    def test_account_balance_defaults_to_opening(self):
        """A new account starts at its opening balance."""
        account = Account(name="Main", opening_balance=Decimal("5000"))
        assert account.balance == Decimal("5000")
        assert account.type == AccountType.BANK
        assert account.key == account.id

    def test_account_explicit_balance_kept(self):
        account = Account(name="Main", opening_balance=Decimal("10"), balance=Decimal("15"))
        assert account.balance == Decimal("15")

    def test_account_name_strips_whitespace(self):
        assert Account(name="  Wallet  ").name == "Wallet"

    def test_account_ids_are_unique(self):
        assert Account(name="A").id != Account(name="B").id

    def test_signed_amount(self):
        """Income adds, expense subtracts."""
        assert signed_amount(TransactionType.INCOME, Decimal("10")) == Decimal("10")
        assert signed_amount(TransactionType.EXPENSE, Decimal("10")) == Decimal("-10")

    def test_transaction_is_immutable(self):
        tx = Transaction(account_id="a", amount=Decimal("1"), category="Food", date=date(2024, 1, 1))
        with pytest.raises(ValidationError):
            tx.amount = Decimal("2")

    def test_transaction_defaults_to_expense(self):
        tx = Transaction(account_id="a", amount=Decimal("3"), category="Food", date=date(2024, 1, 1))
        assert tx.type == TransactionType.EXPENSE
        assert tx.signed_amount == Decimal("-3")


class TestPortfolioModels:
    """Tests for holdings and summaries."""

    def test_holding_name_defaults_to_symbol(self):
        holding = Holding(symbol="AAPL", quantity=Decimal("2"), average_cost=Decimal("1"), current_price=Decimal("3"))
        assert holding.name == "AAPL"
        assert holding.market_value == Decimal("6")

    def test_holding_quantity_must_be_positive(self):
        with pytest.raises(ValidationError):
            Holding(symbol="AAPL", quantity=Decimal("0"), average_cost=Decimal("1"), current_price=Decimal("1"))

    def test_summary_prompt(self):
        summary = PortfolioSummary(
            total_balance=Decimal("100"),
            portfolio_value=Decimal("50"),
            top_expense_category="Food",
        )
        assert summary.net_worth == Decimal("150")
        assert summary.to_advice_prompt() == (
            "Total Net Worth: 150. Cash: 100. Stocks: 50. Top expense: Food."
        )

    def test_empty_sync_result(self):
        result = PriceSyncResult()
        assert result.update_count == 0


class TestCategories:
    """Tests for the predefined category list."""

    def test_split_by_direction(self):
        assert [c.name for c in categories_for(TransactionType.INCOME)] == ["Salary", "Investment", "Bonus"]
        assert len(categories_for(TransactionType.EXPENSE)) == 6

    def test_ids_unique(self):
        assert len({c.id for c in CATEGORIES}) == len(CATEGORIES)


class TestAuditModels:
    """Tests for audit event models."""

    def test_audit_event_creation(self):
        """Test creating an audit event."""
        event = AuditEvent(
            event_type=AuditEventType.TRANSACTION_APPLIED,
            description="Test event",
        )
        assert event.event_type == AuditEventType.TRANSACTION_APPLIED
        assert event.severity == AuditSeverity.INFO
        assert event.event_id is not None

    def test_audit_event_to_log_dict(self):
        """Test converting audit event to log dict."""
        correlation_id = uuid4()
        event = AuditEvent(
            event_type=AuditEventType.ACCOUNT_OPENED,
            entity_id="acc-1",
            correlation_id=correlation_id,
            description="Test",
        )
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "account_opened"
        assert log_dict["entity_id"] == "acc-1"
        assert log_dict["correlation_id"] == str(correlation_id)

    def test_audit_builder_transaction_applied(self):
        """Test AuditEventBuilder for applied transactions."""
        event = AuditEventBuilder.transaction_applied(
            transaction_id="t-1",
            account_id="acc-1",
            delta=Decimal("-25"),
            new_balance=Decimal("75"),
        )
        assert event.entity_id == "t-1"
        assert event.details == {"account_id": "acc-1", "delta": "-25", "new_balance": "75"}
        assert event.is_user_action is True

    def test_audit_builder_consistency_hazard(self):
        event = AuditEventBuilder.consistency_hazard(
            entity_type="account",
            entity_id="acc-1",
            step="transaction_record_write",
            error_message="boom",
            details={"attempted_delta": "-25"},
        )
        assert event.severity == AuditSeverity.ERROR
        assert event.details == {"step": "transaction_record_write", "attempted_delta": "-25"}


class TestAuditLogger:
    """Tests for the in-memory audit history."""

    def test_history_is_bounded(self):
        audit = AuditLogger(history_size=10)
        for i in range(15):
            audit.log_account_closed(f"acc-{i}")
        assert len(audit.events) == 10
        assert audit.events[0].entity_id == "acc-5"

    def test_filter_by_type(self):
        audit = AuditLogger()
        audit.log_account_closed("acc-1")
        audit.log_holding_removed("AAPL")
        assert [e.entity_id for e in audit.events_of_type(AuditEventType.HOLDING_REMOVED)] == ["AAPL"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
