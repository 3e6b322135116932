"""
Symbol Matching

Lookup responses rarely echo our symbols verbatim: "2330.TW" may
come back as "2330.tw" or as a bare "2330". Matching is therefore an
explicit, ordered list of strategies:

1. EXACT_CASE_INSENSITIVE - symbols equal ignoring case
2. SUBSTRING_FALLBACK     - one symbol contains the other

The fallback takes the first quote in parser order. With quotes
["AAPLX", "AAPL"] a holding "AAPL" still matches "AAPL" because the
exact strategy runs over the whole list first; but with only
["AAPLX", "AAP"] it takes "AAPLX". That precedence is intentional
and covered by tests; do not reorder quotes to "fix" it.
"""

from enum import Enum
from typing import Optional, Sequence

from pydantic import BaseModel

from finboard.models.ledger import Quote


class MatchStrategy(str, Enum):
    """Symbol matching rules, in the order they are tried."""
    EXACT_CASE_INSENSITIVE = "exact_case_insensitive"
    SUBSTRING_FALLBACK = "substring_fallback"


DEFAULT_STRATEGIES = (
    MatchStrategy.EXACT_CASE_INSENSITIVE,
    MatchStrategy.SUBSTRING_FALLBACK,
)


class SymbolMatch(BaseModel):
    """A quote paired with the rule that selected it."""

    quote: Quote
    strategy: MatchStrategy


def _exact(quote_symbol: str, holding_symbol: str) -> bool:
    return quote_symbol == holding_symbol


def _substring(quote_symbol: str, holding_symbol: str) -> bool:
    return quote_symbol in holding_symbol or holding_symbol in quote_symbol


_RULES = {
    MatchStrategy.EXACT_CASE_INSENSITIVE: _exact,
    MatchStrategy.SUBSTRING_FALLBACK: _substring,
}


class SymbolMatcher:
    """
    Resolves the quote for a held symbol.

    Args:
        strategies: Rules to try, in order. Pass only
            EXACT_CASE_INSENSITIVE to disable fuzzy matching.
    """

    def __init__(self, strategies: Sequence[MatchStrategy] = DEFAULT_STRATEGIES):
        self._strategies = tuple(strategies)

    @property
    def strategies(self) -> tuple[MatchStrategy, ...]:
        return self._strategies

    def match(self, quotes: Sequence[Quote], holding_symbol: str) -> Optional[Quote]:
        """The quote for holding_symbol, or None if nothing qualifies."""
        found = self.match_with_strategy(quotes, holding_symbol)
        return found.quote if found else None

    def match_with_strategy(
        self,
        quotes: Sequence[Quote],
        holding_symbol: str,
    ) -> Optional[SymbolMatch]:
        wanted = (holding_symbol or "").strip().lower()
        if not wanted:
            return None

        for strategy in self._strategies:
            rule = _RULES[strategy]
            for quote in quotes:
                candidate = quote.symbol.strip().lower()
                if candidate and rule(candidate, wanted):
                    return SymbolMatch(quote=quote, strategy=strategy)
        return None
