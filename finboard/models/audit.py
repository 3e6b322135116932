"""
Audit Models for finboard

Every balance movement, price sync and consistency problem is logged
as a typed audit event. This provides:
1. Traceability of every ledger mutation
2. Enough detail (entity id, attempted delta) for manual reconciliation
3. Debugging information when external services misbehave

DESIGN DECISION: Audit events are append-only. We never delete or modify them.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Ledger
    ACCOUNT_OPENED = "account_opened"
    ACCOUNT_CLOSED = "account_closed"
    TRANSACTION_APPLIED = "transaction_applied"
    TRANSACTION_REVERTED = "transaction_reverted"
    TRANSACTION_REJECTED = "transaction_rejected"

    # Portfolio
    HOLDING_ADDED = "holding_added"
    HOLDING_REMOVED = "holding_removed"

    # Price sync
    PRICE_SYNC_COMPLETED = "price_sync_completed"
    PRICE_PARSE_DEGRADED = "price_parse_degraded"

    # Advice
    ADVICE_GENERATED = "advice_generated"

    # Integrity
    CONSISTENCY_HAZARD = "consistency_hazard"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'account', 'transaction', 'holding')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="Store key of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all events in one price sync)"
    )

    # Event details
    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    # User action tracking
    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transaction_applied(tx_id, account_id, delta, ...)
        event = AuditEventBuilder.consistency_hazard("account", account_id, ...)
    """

    @staticmethod
    def account_opened(
        account_id: str,
        name: str,
        opening_balance: Decimal,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_OPENED,
            entity_type="account",
            entity_id=account_id,
            description=f"Account opened: {name}",
            details={
                "name": name,
                "opening_balance": str(opening_balance),
            },
            is_user_action=True,
        )

    @staticmethod
    def account_closed(account_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_CLOSED,
            entity_type="account",
            entity_id=account_id,
            description=f"Account closed: {account_id}",
            is_user_action=True,
        )

    @staticmethod
    def transaction_applied(
        transaction_id: str,
        account_id: str,
        delta: Decimal,
        new_balance: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_APPLIED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction applied: {delta:+} on account {account_id}",
            details={
                "account_id": account_id,
                "delta": str(delta),
                "new_balance": str(new_balance),
            },
            is_user_action=True,
        )

    @staticmethod
    def transaction_reverted(
        transaction_id: str,
        account_id: str,
        delta: Decimal,
        new_balance: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_REVERTED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction reverted: {delta:+} on account {account_id}",
            details={
                "account_id": account_id,
                "delta": str(delta),
                "new_balance": str(new_balance),
            },
            is_user_action=True,
        )

    @staticmethod
    def transaction_rejected(
        transaction_id: str,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description="Transaction rejected before any mutation",
            details={"reason": reason},
            is_user_action=True,
        )

    @staticmethod
    def holding_added(symbol: str, quantity: Decimal, average_cost: Decimal) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.HOLDING_ADDED,
            entity_type="holding",
            entity_id=symbol,
            description=f"Holding added: {symbol}",
            details={
                "quantity": str(quantity),
                "average_cost": str(average_cost),
            },
            is_user_action=True,
        )

    @staticmethod
    def holding_removed(symbol: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.HOLDING_REMOVED,
            entity_type="holding",
            entity_id=symbol,
            description=f"Holding removed: {symbol}",
            is_user_action=True,
        )

    @staticmethod
    def price_sync_completed(
        requested: list[str],
        matched: list[str],
        source_count: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PRICE_SYNC_COMPLETED,
            entity_type="price_sync",
            correlation_id=correlation_id,
            description=f"Price sync updated {len(matched)} of {len(requested)} holdings",
            details={
                "requested": requested,
                "matched": matched,
                "unmatched": [s for s in requested if s not in matched],
                "source_count": source_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def price_parse_degraded(
        symbols: list[str],
        response_excerpt: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PRICE_PARSE_DEGRADED,
            severity=AuditSeverity.WARNING,
            entity_type="price_sync",
            correlation_id=correlation_id,
            description="No quotes could be extracted from the price lookup response",
            details={
                "symbols": symbols,
                "response_excerpt": response_excerpt[:200],
            },
        )

    @staticmethod
    def advice_generated(summary: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ADVICE_GENERATED,
            entity_type="advice",
            description="Financial advice generated",
            details={"summary": summary},
            is_user_action=True,
        )

    @staticmethod
    def consistency_hazard(
        entity_type: str,
        entity_id: str,
        step: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CONSISTENCY_HAZARD,
            severity=AuditSeverity.ERROR,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"Multi-step write partially completed at step '{step}'",
            details={"step": step, **(details or {})},
            error_code="consistency_hazard",
            error_message=error_message,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
            correlation_id=correlation_id,
        )
