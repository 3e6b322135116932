"""
Price Sync Coordinator

Flow:
1. Collect the distinct held symbols
2. Ask the price lookup service once for all of them
3. Parse the answer into quotes, keep only complete citations
4. Match each holding against the quotes
5. Write matched holdings back, one at a time

FAILURE MODES:
- Lookup fails           -> ExternalLookupError, nothing written
- Answer unparseable     -> logged degradation, zero updates, no error
- Holding has no quote   -> left untouched
- Store write fails midway -> ConsistencyHazardError; holdings written
  before the failure keep their new price (not rolled back)
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from finboard.agents.ai_agents import ExternalLookupError, PriceLookupService
from finboard.audit import AuditLogger, create_correlation_id
from finboard.models.ledger import Collection, Holding, PriceSyncResult, Source
from finboard.pricing.matcher import SymbolMatcher
from finboard.pricing.parser import PriceResponseParser
from finboard.services.storage.interface import (
    ConsistencyHazardError,
    LedgerStorePort,
    StorageError,
)


class SyncInProgressError(Exception):
    """A price sync was requested while another one is still running."""
    pass


def extract_sources(citations: list[dict[str, Any]]) -> list[Source]:
    """Citations count only when they carry both a title and a url."""
    sources = []
    for citation in citations:
        if not isinstance(citation, dict):
            continue
        title, url = citation.get("title"), citation.get("url")
        if isinstance(title, str) and title.strip() and isinstance(url, str) and url.strip():
            sources.append(Source(title=title.strip(), url=url.strip()))
    return sources


class PriceSyncCoordinator:
    """
    Orchestrates lookup -> parse -> match -> apply for held positions.

    Only one sync runs at a time; a concurrent request is rejected
    with SyncInProgressError rather than queued.
    """

    def __init__(
        self,
        lookup_service: PriceLookupService,
        store: LedgerStorePort,
        parser: Optional[PriceResponseParser] = None,
        matcher: Optional[SymbolMatcher] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._lookup = lookup_service
        self._store = store
        self._parser = parser or PriceResponseParser()
        self._matcher = matcher or SymbolMatcher()
        self._audit = audit_logger or AuditLogger()
        self._in_flight = False

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    async def sync(self, holdings: Optional[list[Holding]] = None) -> PriceSyncResult:
        """
        Refresh current prices.

        Args:
            holdings: Holdings to refresh. Defaults to every holding
                in the store.

        Raises:
            SyncInProgressError: Another sync is running
            ExternalLookupError: The lookup service failed
            ConsistencyHazardError: A holding write failed after
                earlier holdings were already written
        """
        if self._in_flight:
            raise SyncInProgressError("A price update is already running")

        self._in_flight = True
        try:
            return await self._sync(holdings)
        finally:
            self._in_flight = False

    async def _sync(self, holdings: Optional[list[Holding]]) -> PriceSyncResult:
        if holdings is None:
            holdings = self._store.read(Collection.HOLDINGS)
        if not holdings:
            return PriceSyncResult()

        correlation_id = create_correlation_id()
        symbols = list(dict.fromkeys(h.symbol for h in holdings))

        try:
            response = await self._lookup.lookup(symbols)
        except ExternalLookupError as e:
            self._audit.log_external_service_error(e.service, str(e), correlation_id)
            raise
        except Exception as e:
            self._audit.log_external_service_error("price_lookup", str(e), correlation_id)
            raise ExternalLookupError("price_lookup", str(e)) from e

        quotes = self._parser.parse(response.text)
        sources = extract_sources(response.citations)
        if not quotes:
            self._audit.log_parse_degraded(symbols, response.text, correlation_id)

        now = datetime.now(timezone.utc)
        result = PriceSyncResult(sources=sources)
        pending: list[Holding] = []
        for holding in holdings:
            quote = self._matcher.match(quotes, holding.symbol)
            if quote is None:
                result.updated.append(holding)
                continue
            updated = holding.model_copy(update={
                "current_price": Decimal(str(quote.price)),
                "last_updated": now,
            })
            result.updated.append(updated)
            pending.append(updated)

        await self._write_updates(pending, result, correlation_id)

        self._audit.log_price_sync_completed(
            requested=symbols,
            matched=result.matched,
            source_count=len(sources),
            correlation_id=correlation_id,
        )
        return result

    async def _write_updates(
        self,
        pending: list[Holding],
        result: PriceSyncResult,
        correlation_id,
    ) -> None:
        """Write holdings one at a time; not atomic as a batch."""
        for holding in pending:
            try:
                await self._store.write(Collection.HOLDINGS, holding)
            except StorageError as e:
                remaining = [h.symbol for h in pending if h.symbol not in result.matched]
                self._audit.log_consistency_hazard(
                    entity_type="holding",
                    entity_id=holding.symbol,
                    step="holding_price_write",
                    error_message=str(e),
                    details={
                        "attempted_price": str(holding.current_price),
                        "written": list(result.matched),
                        "not_written": remaining,
                    },
                    correlation_id=correlation_id,
                )
                raise ConsistencyHazardError(
                    f"Price update stopped at {holding.symbol}; "
                    f"{len(result.matched)} of {len(pending)} holdings were written",
                    entity_id=holding.symbol,
                    step="holding_price_write",
                    completed=list(result.matched),
                ) from e
            result.matched.append(holding.symbol)
