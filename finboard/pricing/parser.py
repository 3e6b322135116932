"""
Price Response Parser

The price lookup service answers in free-form text that is *supposed*
to contain a JSON array of {"symbol", "price"} objects. In practice
the array shows up in a ```json fence, in an unlabeled fence, or
inline in prose. This parser turns that text into validated quotes.

Stages, first success wins:
1. fenced blocks labeled json
2. any other fenced block
3. the span from the first '[' to the last ']'
4. nothing parsed -> empty list

IMPORTANT: parse() never raises. A response we cannot read is a
degradation (no prices updated), not an error.
"""

import json
import math
import re
from typing import Any, Optional

import structlog

from finboard.models.ledger import Quote


FENCE_PATTERN = re.compile(r"```(.*?)```", re.DOTALL)
FENCE_LABEL_PATTERN = re.compile(r"^([A-Za-z][\w+.-]*)?[ \t]*\n?(.*)$", re.DOTALL)

logger = structlog.get_logger(__name__)


def _split_fence(body: str) -> tuple[Optional[str], str]:
    """Split a fence body into (info-string label, content)."""
    match = FENCE_LABEL_PATTERN.match(body)
    label, content = match.group(1), match.group(2)
    if label is not None and not content.strip():
        # "```AAPL```" style body: a bare word is content, not a label
        return None, body
    return (label.lower() if label else None), content


def _load_array(text: str) -> Optional[list]:
    """Parse text as a JSON array; None if it is not one."""
    try:
        data = json.loads(text.strip())
    except (ValueError, TypeError, RecursionError):
        return None
    return data if isinstance(data, list) else None


def _to_quote(item: Any) -> Optional[Quote]:
    """Validate one array element; None if it does not qualify."""
    if not isinstance(item, dict):
        return None
    symbol = item.get("symbol")
    price = item.get("price")
    if not isinstance(symbol, str) or not symbol.strip():
        return None
    # bool is an int subclass; "true" is not a price
    if isinstance(price, bool) or not isinstance(price, (int, float)):
        return None
    try:
        value = float(price)
    except OverflowError:
        return None
    if not math.isfinite(value):
        return None
    return Quote(symbol=symbol.strip(), price=value)


class PriceResponseParser:
    """
    Extracts quotes from raw price-lookup text.

    Elements of the parsed array are validated independently: a bad
    element is dropped without invalidating its neighbours. Duplicate
    symbols are kept in order (deduplication belongs to the matcher).
    """

    def parse(self, raw_text: str) -> list[Quote]:
        array = self.extract_array(raw_text)
        if array is None:
            logger.warning(
                "price_response_unparseable",
                length=len(raw_text) if isinstance(raw_text, str) else None,
            )
            return []

        quotes = [quote for quote in map(_to_quote, array) if quote is not None]
        dropped = len(array) - len(quotes)
        if dropped:
            logger.info("price_entries_dropped", dropped=dropped, kept=len(quotes))
        return quotes

    def extract_array(self, raw_text: str) -> Optional[list]:
        """
        Locate and parse the JSON array in a response.

        Returns the raw array (unvalidated elements), or None when
        every stage fails.
        """
        if not isinstance(raw_text, str) or not raw_text:
            return None

        labeled, other = [], []
        for body in FENCE_PATTERN.findall(raw_text):
            label, content = _split_fence(body)
            (labeled if label == "json" else other).append(content)

        for content in labeled + other:
            array = _load_array(content)
            if array is not None:
                return array

        start = raw_text.find("[")
        end = raw_text.rfind("]")
        if start != -1 and end > start:
            return _load_array(raw_text[start:end + 1])

        return None


def parse_price_response(raw_text: str) -> list[Quote]:
    """Module-level shortcut for PriceResponseParser().parse."""
    return PriceResponseParser().parse(raw_text)
