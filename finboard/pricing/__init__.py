"""Price ingestion package: parse lookup answers, match symbols, sync holdings."""

from finboard.pricing.matcher import MatchStrategy, SymbolMatch, SymbolMatcher
from finboard.pricing.parser import PriceResponseParser, parse_price_response
from finboard.pricing.sync import (
    PriceSyncCoordinator,
    SyncInProgressError,
    extract_sources,
)

__all__ = [
    "MatchStrategy",
    "PriceResponseParser",
    "PriceSyncCoordinator",
    "SymbolMatch",
    "SymbolMatcher",
    "SyncInProgressError",
    "extract_sources",
    "parse_price_response",
]
