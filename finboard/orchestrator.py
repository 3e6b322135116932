"""
Main Orchestrator for finboard

This module ties the components together behind the one object the
UI talks to, FinanceDashboard:
1. Price refresh  (lookup -> parse -> match -> write)
2. Transactions   (apply / revert against account balances)
3. Accounts and holdings lifecycle
4. Advice         (summary -> advice text)

DESIGN DECISION: The storage backend is chosen exactly once, in
create_dashboard(), and injected everywhere. Ledger math and price
matching have one implementation regardless of backend.
"""

from decimal import Decimal
from typing import Optional

import structlog

from finboard.agents import (
    AdviceService,
    ExternalLookupError,
    GeminiAdviceAgent,
    GeminiPriceLookupAgent,
    PriceLookupService,
    UnconfiguredService,
)
from finboard.audit import AuditLogger
from finboard.config import Settings, get_settings, validate_all_settings
from finboard.ledger import LedgerError, TransactionLedger
from finboard.models.defaults import CATEGORIES
from finboard.models.ledger import (
    Account,
    AccountType,
    ActionResult,
    Category,
    Collection,
    Holding,
    PortfolioSummary,
    PriceSyncResult,
    Transaction,
    TransactionType,
)
from finboard.pricing import (
    MatchStrategy,
    PriceSyncCoordinator,
    SymbolMatcher,
)
from finboard.services.storage import (
    DuplicateError,
    EphemeralStore,
    GoogleSheetsClient,
    GoogleSheetsLedgerStore,
    LedgerStorePort,
    StorageError,
)


logger = structlog.get_logger(__name__)


class FinanceDashboard:
    """
    UI boundary of finboard.

    Transaction actions report ok / blocked as ActionResult so the UI
    can show a message; price sync raises so the UI can show a single
    alert.
    """

    def __init__(
        self,
        store: LedgerStorePort,
        price_lookup: PriceLookupService,
        advice_service: Optional[AdviceService] = None,
        audit_logger: Optional[AuditLogger] = None,
        matcher: Optional[SymbolMatcher] = None,
        default_currency: str = "TWD",
    ):
        self._store = store
        self._advice = advice_service
        self._audit = audit_logger or AuditLogger()
        self.ledger = TransactionLedger(
            store,
            audit_logger=self._audit,
            default_currency=default_currency,
        )
        self.price_sync = PriceSyncCoordinator(
            lookup_service=price_lookup,
            store=store,
            matcher=matcher,
            audit_logger=self._audit,
        )

    @property
    def store(self) -> LedgerStorePort:
        return self._store

    @property
    def audit(self) -> AuditLogger:
        return self._audit

    @property
    def is_demo_mode(self) -> bool:
        """True when data lives only in memory."""
        return isinstance(self._store, EphemeralStore)

    @property
    def categories(self) -> list[Category]:
        return list(CATEGORIES)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def accounts(self) -> list[Account]:
        return self.ledger.accounts()

    def transactions(self) -> list[Transaction]:
        return self.ledger.transactions()

    def holdings(self) -> list[Holding]:
        return self._store.read(Collection.HOLDINGS)

    def summary(self) -> PortfolioSummary:
        """Cash, stock value and net worth, as shown in the dashboard header."""
        total_balance = sum((a.balance for a in self.accounts()), Decimal("0"))
        portfolio_value = sum((h.market_value for h in self.holdings()), Decimal("0"))
        top_expense = next(
            (t.category for t in self.transactions() if t.type == TransactionType.EXPENSE),
            None,
        )
        return PortfolioSummary(
            total_balance=total_balance,
            portfolio_value=portfolio_value,
            top_expense_category=top_expense,
        )

    # -------------------------------------------------------------------------
    # Prices
    # -------------------------------------------------------------------------

    async def sync_prices(self) -> PriceSyncResult:
        """
        Refresh current prices of all holdings.

        Raises:
            ExternalLookupError: Lookup failed; nothing was changed
            SyncInProgressError: A refresh is already running
            ConsistencyHazardError: Some holdings were written, then a
                write failed
        """
        return await self.price_sync.sync()

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    async def apply_transaction(self, tx: Transaction) -> ActionResult:
        try:
            stored = await self.ledger.apply(tx)
        except (LedgerError, StorageError) as e:
            return ActionResult(ok=False, message=str(e))
        return ActionResult(ok=True, message="Transaction saved", transaction=stored)

    async def revert_transaction(self, transaction_id: str) -> ActionResult:
        try:
            reverted = await self.ledger.revert(transaction_id)
        except (LedgerError, StorageError) as e:
            return ActionResult(ok=False, message=str(e))
        return ActionResult(ok=True, message="Transaction deleted, balance reverted", transaction=reverted)

    # -------------------------------------------------------------------------
    # Accounts and holdings
    # -------------------------------------------------------------------------

    async def open_account(
        self,
        name: str,
        opening_balance: Decimal = Decimal("0"),
        account_type: AccountType = AccountType.BANK,
        currency: Optional[str] = None,
    ) -> Account:
        return await self.ledger.open_account(name, opening_balance, account_type, currency)

    async def close_account(self, account_id: str) -> ActionResult:
        try:
            await self.ledger.close_account(account_id)
        except (LedgerError, StorageError) as e:
            return ActionResult(ok=False, message=str(e))
        return ActionResult(ok=True, message="Account deleted")

    async def add_holding(
        self,
        symbol: str,
        quantity: Decimal,
        average_cost: Decimal,
        name: Optional[str] = None,
    ) -> Holding:
        """
        Start tracking a position. Its price starts at the average cost
        until the next sync.

        Raises:
            DuplicateError: The symbol is already held
        """
        holding = Holding(
            symbol=symbol,
            name=name or "",
            quantity=quantity,
            average_cost=average_cost,
            current_price=average_cost,
        )
        if self._store.get(Collection.HOLDINGS, holding.symbol) is not None:
            raise DuplicateError(f"Holding already exists: {holding.symbol}")
        await self._store.write(Collection.HOLDINGS, holding)
        self._audit.log_holding_added(holding.symbol, holding.quantity, holding.average_cost)
        return holding

    async def remove_holding(self, symbol: str) -> None:
        """
        Raises:
            NotFoundError: The symbol is not held
        """
        await self._store.delete(Collection.HOLDINGS, symbol)
        self._audit.log_holding_removed(symbol)

    # -------------------------------------------------------------------------
    # Advice
    # -------------------------------------------------------------------------

    async def get_advice(self) -> str:
        """
        Ask the advice service about the current financial summary.

        Raises:
            ExternalLookupError: No advice service configured, or the
                service failed
        """
        if self._advice is None:
            raise ExternalLookupError("advice", "No advice service configured")
        summary = self.summary().to_advice_prompt()
        advice = await self._advice.advise(summary)
        self._audit.log_advice_generated(summary)
        return advice


async def create_dashboard(
    settings: Optional[Settings] = None,
    price_lookup: Optional[PriceLookupService] = None,
    advice_service: Optional[AdviceService] = None,
    store: Optional[LedgerStorePort] = None,
) -> FinanceDashboard:
    """
    Factory function to create the dashboard with its backend.

    Backend selection (APP_STORAGE_BACKEND):
    - "persisted": Google Sheets; falls back to demo mode if it
      cannot be reached
    - "ephemeral": in-memory, optionally seeded with demo data

    Without Gemini configuration the dashboard still starts; price
    sync and advice then fail with ExternalLookupError.

    Args:
        settings: Settings to use (defaults to get_settings())
        price_lookup: Price lookup service (defaults to Gemini)
        advice_service: Advice service (defaults to Gemini)
        store: Explicit backend, bypassing selection (tests)
    """
    settings = settings or get_settings()
    status = validate_all_settings(settings)
    app_settings = settings.app
    audit_logger = AuditLogger(history_size=app_settings.audit_history_size)

    if store is None:
        store = await _select_store(settings, audit_logger)

    if price_lookup is None or advice_service is None:
        if status["gemini"]:
            gemini_settings = settings.gemini
            price_lookup = price_lookup or GeminiPriceLookupAgent(gemini_settings)
            advice_service = advice_service or GeminiAdviceAgent(gemini_settings)
        else:
            logger.warning("gemini_unconfigured", error=status["gemini_error"])
            audit_logger.log_error("gemini_unconfigured", status["gemini_error"])
            unavailable = UnconfiguredService("gemini", "Gemini is not configured (GEMINI_API_KEY)")
            price_lookup = price_lookup or unavailable
            advice_service = advice_service or unavailable

    strategies = (
        (MatchStrategy.EXACT_CASE_INSENSITIVE, MatchStrategy.SUBSTRING_FALLBACK)
        if app_settings.allow_substring_match
        else (MatchStrategy.EXACT_CASE_INSENSITIVE,)
    )

    return FinanceDashboard(
        store=store,
        price_lookup=price_lookup,
        advice_service=advice_service,
        audit_logger=audit_logger,
        matcher=SymbolMatcher(strategies),
        default_currency=app_settings.default_currency,
    )


async def _select_store(settings: Settings, audit_logger: AuditLogger) -> LedgerStorePort:
    app_settings = settings.app
    if app_settings.uses_persisted_store:
        try:
            store = GoogleSheetsLedgerStore(GoogleSheetsClient(settings.google_sheets))
            await store.load()
            return store
        except Exception as e:
            # Storage not configured or unreachable - continue in demo mode
            logger.warning("persisted_store_unavailable", error=str(e))
            audit_logger.log_error("persisted_store_unavailable", str(e))
            return EphemeralStore(seed=True)
    return EphemeralStore(seed=app_settings.seed_demo_data)
