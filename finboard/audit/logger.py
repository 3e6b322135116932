"""
Audit Logger

DESIGN DECISION: Every ledger mutation and price sync is logged.
This provides:
1. Complete traceability
2. Debugging capability
3. Reconciliation data when a multi-step write half-completes

The audit logger:
- Never raises (a logging failure must not break a ledger action)
- Keeps a bounded in-memory history the UI can display
- Supports correlation IDs to trace related events
"""

from collections import deque
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import structlog

from finboard.models.audit import AuditEvent, AuditEventBuilder, AuditEventType


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (JSON via structlog)
    2. An in-memory history (newest last) for display and inspection
    """

    def __init__(self, history_size: int = 500):
        self._logger = structlog.get_logger("finboard.audit")
        self._history: deque[AuditEvent] = deque(maxlen=history_size)

    @property
    def events(self) -> list[AuditEvent]:
        """Recorded events, oldest first."""
        return list(self._history)

    def events_of_type(self, event_type: AuditEventType) -> list[AuditEvent]:
        return [e for e in self._history if e.event_type == event_type]

    def log(self, event: AuditEvent) -> None:
        """Log an audit event at a level matching its severity."""
        self._history.append(event)
        log_dict = event.to_log_dict()

        try:
            if event.severity.value in ("error", "critical"):
                self._logger.error("audit_event", **log_dict)
            elif event.severity.value == "warning":
                self._logger.warning("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception as e:
            # A broken log handler must not abort the ledger action
            self._history.append(AuditEventBuilder.system_error(
                error_type="audit_log_failed",
                error_message=str(e),
                details={"event_id": str(event.event_id)},
            ))

    def log_account_opened(self, account_id: str, name: str, opening_balance: Decimal) -> None:
        """Log account creation."""
        self.log(AuditEventBuilder.account_opened(account_id, name, opening_balance))

    def log_account_closed(self, account_id: str) -> None:
        """Log account deletion."""
        self.log(AuditEventBuilder.account_closed(account_id))

    def log_transaction_applied(
        self,
        transaction_id: str,
        account_id: str,
        delta: Decimal,
        new_balance: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a successful apply."""
        self.log(AuditEventBuilder.transaction_applied(
            transaction_id=transaction_id,
            account_id=account_id,
            delta=delta,
            new_balance=new_balance,
            correlation_id=correlation_id,
        ))

    def log_transaction_reverted(
        self,
        transaction_id: str,
        account_id: str,
        delta: Decimal,
        new_balance: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a successful revert."""
        self.log(AuditEventBuilder.transaction_reverted(
            transaction_id=transaction_id,
            account_id=account_id,
            delta=delta,
            new_balance=new_balance,
            correlation_id=correlation_id,
        ))

    def log_transaction_rejected(
        self,
        transaction_id: str,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a transaction blocked by validation or state checks."""
        self.log(AuditEventBuilder.transaction_rejected(
            transaction_id=transaction_id,
            reason=reason,
            correlation_id=correlation_id,
        ))

    def log_holding_added(self, symbol: str, quantity: Decimal, average_cost: Decimal) -> None:
        self.log(AuditEventBuilder.holding_added(symbol, quantity, average_cost))

    def log_holding_removed(self, symbol: str) -> None:
        self.log(AuditEventBuilder.holding_removed(symbol))

    def log_price_sync_completed(
        self,
        requested: list[str],
        matched: list[str],
        source_count: int,
        correlation_id: UUID,
    ) -> None:
        """Log the outcome of a price sync."""
        self.log(AuditEventBuilder.price_sync_completed(
            requested=requested,
            matched=matched,
            source_count=source_count,
            correlation_id=correlation_id,
        ))

    def log_parse_degraded(
        self,
        symbols: list[str],
        response_text: str,
        correlation_id: UUID,
    ) -> None:
        """Log a lookup response from which no quote could be extracted."""
        self.log(AuditEventBuilder.price_parse_degraded(
            symbols=symbols,
            response_excerpt=response_text,
            correlation_id=correlation_id,
        ))

    def log_advice_generated(self, summary: str) -> None:
        self.log(AuditEventBuilder.advice_generated(summary))

    def log_consistency_hazard(
        self,
        entity_type: str,
        entity_id: str,
        step: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """
        Log a partially completed multi-step write.

        `details` should carry the attempted delta (or price) so the
        ledger can be reconciled by hand.
        """
        self.log(AuditEventBuilder.consistency_hazard(
            entity_type=entity_type,
            entity_id=entity_id,
            step=step,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))

    def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))

    def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log external service error."""
        self.log(AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., a price sync).
    Pass it through all subsequent operations.
    """
    return uuid4()
