"""
Tests for price ingestion: response parsing and symbol matching.

The lookup service answers in free text, so these tests feed the
formats we actually see (fenced, unfenced, broken) through the parser.
"""

import pytest

from finboard.models.ledger import Quote
from finboard.pricing import (
    MatchStrategy,
    PriceResponseParser,
    SymbolMatcher,
    parse_price_response,
)


@pytest.fixture
def parser() -> PriceResponseParser:
    return PriceResponseParser()


class TestPriceResponseParser:
    """Tests for the three-stage extraction pipeline."""

    def test_labeled_json_block(self, parser):
        """A ```json fenced block is parsed."""
        text = "```json\n[{\"symbol\":\"AAPL\",\"price\":225.3}]\n```"
        assert parser.parse(text) == [Quote(symbol="AAPL", price=225.3)]

    def test_bracket_fallback_without_fences(self, parser):
        """Without fences, the first '[' to the last ']' is parsed."""
        text = 'noise [ {"symbol":"2330.TW","price":980.5} ] trailing'
        assert parser.parse(text) == [Quote(symbol="2330.TW", price=980.5)]

    def test_no_structured_data(self, parser):
        """Plain prose yields an empty list and does not raise."""
        assert parser.parse("no structured data here") == []

    def test_entry_missing_price_is_dropped(self, parser):
        """Invalid elements are dropped without losing the valid ones."""
        text = '[{"symbol":"X","price":1},{"symbol":"Y"}]'
        assert parser.parse(text) == [Quote(symbol="X", price=1.0)]

    def test_unlabeled_fence(self, parser):
        """An unlabeled fenced block is used when no json block exists."""
        text = "Here you go:\n```\n[{\"symbol\": \"NVDA\", \"price\": 130}]\n```\nCheers"
        assert parser.parse(text) == [Quote(symbol="NVDA", price=130.0)]

    def test_labeled_block_wins_over_earlier_unlabeled(self, parser):
        """A json-labeled block is preferred even if it comes second."""
        text = (
            "```\n[{\"symbol\": \"OLD\", \"price\": 1}]\n```\n"
            "```json\n[{\"symbol\": \"NEW\", \"price\": 2}]\n```"
        )
        assert parser.parse(text) == [Quote(symbol="NEW", price=2.0)]

    def test_label_is_case_insensitive(self, parser):
        text = "```JSON\n[{\"symbol\": \"AAPL\", \"price\": 1.5}]\n```"
        assert parser.parse(text) == [Quote(symbol="AAPL", price=1.5)]

    def test_broken_labeled_block_falls_through(self, parser):
        """An unparseable json block does not stop the later stages."""
        text = (
            "```json\n[{\"symbol\": \"AAPL\", \"price\": }]\n```\n"
            "```\n[{\"symbol\": \"MSFT\", \"price\": 410.2}]\n```"
        )
        assert parser.parse(text) == [Quote(symbol="MSFT", price=410.2)]

    def test_broken_fence_falls_back_to_brackets(self, parser):
        """When no fenced block parses, the bracket span is tried."""
        text = "```json\nnot json at all\n``` but later [{\"symbol\": \"TSLA\", \"price\": 250}]"
        # first '[' .. last ']' covers only the trailing array here
        assert parser.parse(text) == [Quote(symbol="TSLA", price=250.0)]

    def test_fenced_object_is_not_an_array(self, parser):
        """A fenced JSON object does not count as a parsed array."""
        text = "```json\n{\"symbol\": \"AAPL\", \"price\": 1}\n```"
        assert parser.parse(text) == []

    def test_numeric_strings_and_booleans_rejected(self, parser):
        text = (
            '[{"symbol": "A", "price": "12.5"},'
            ' {"symbol": "B", "price": true},'
            ' {"symbol": "C", "price": 3}]'
        )
        assert parser.parse(text) == [Quote(symbol="C", price=3.0)]

    def test_non_finite_prices_rejected(self, parser):
        text = '[{"symbol": "A", "price": NaN}, {"symbol": "B", "price": Infinity}, {"symbol": "C", "price": 1e400}]'
        assert parser.parse(text) == []

    def test_empty_or_blank_symbol_rejected(self, parser):
        text = '[{"symbol": "", "price": 1}, {"symbol": "   ", "price": 2}, {"symbol": 5, "price": 3}]'
        assert parser.parse(text) == []

    def test_symbol_whitespace_stripped(self, parser):
        assert parser.parse('[{"symbol": " AAPL ", "price": 1}]') == [Quote(symbol="AAPL", price=1.0)]

    def test_non_object_elements_dropped(self, parser):
        text = '[1, "AAPL", null, {"symbol": "AAPL", "price": 2}]'
        assert parser.parse(text) == [Quote(symbol="AAPL", price=2.0)]

    def test_duplicates_preserved_in_order(self, parser):
        text = '[{"symbol": "AAPL", "price": 1}, {"symbol": "AAPL", "price": 2}]'
        assert [q.price for q in parser.parse(text)] == [1.0, 2.0]

    @pytest.mark.parametrize("raw", [None, "", 42, b"[]"])
    def test_non_text_input_never_raises(self, parser, raw):
        assert parser.parse(raw) == []

    def test_module_shortcut(self):
        assert parse_price_response('[{"symbol": "X", "price": 9}]') == [Quote(symbol="X", price=9.0)]


class TestSymbolMatcher:
    """Tests for the exact / substring matching policy."""

    def test_exact_case_insensitive(self):
        """Case differences still match exactly."""
        quotes = [Quote(symbol="2330.tw", price=990)]
        found = SymbolMatcher().match_with_strategy(quotes, "2330.TW")
        assert found.quote.price == 990
        assert found.strategy == MatchStrategy.EXACT_CASE_INSENSITIVE

    def test_no_match_returns_none(self):
        assert SymbolMatcher().match([Quote(symbol="AAPL", price=1)], "NVDA") is None

    def test_bare_ticker_matches_suffixed_holding(self):
        """Holding symbol contains the quote symbol."""
        found = SymbolMatcher().match_with_strategy([Quote(symbol="2330", price=980)], "2330.TW")
        assert found.quote.symbol == "2330"
        assert found.strategy == MatchStrategy.SUBSTRING_FALLBACK

    def test_suffixed_quote_matches_bare_holding(self):
        """Quote symbol contains the holding symbol."""
        quote = SymbolMatcher().match([Quote(symbol="NASDAQ:AAPL", price=225)], "aapl")
        assert quote.symbol == "NASDAQ:AAPL"

    def test_exact_beats_earlier_substring_candidate(self):
        quotes = [Quote(symbol="AAPLX", price=1), Quote(symbol="AAPL", price=2)]
        assert SymbolMatcher().match(quotes, "AAPL").price == 2

    def test_substring_first_in_list_wins(self):
        """Among fallback candidates the first one returned wins."""
        quotes = [Quote(symbol="AAPLX", price=1), Quote(symbol="AAP", price=2)]
        assert SymbolMatcher().match(quotes, "AAPL").price == 1

    def test_exact_only_matcher_skips_fallback(self):
        matcher = SymbolMatcher((MatchStrategy.EXACT_CASE_INSENSITIVE,))
        assert matcher.match([Quote(symbol="2330", price=980)], "2330.TW") is None

    def test_empty_holding_symbol_matches_nothing(self):
        assert SymbolMatcher().match([Quote(symbol="AAPL", price=1)], "") is None

    def test_empty_quote_list(self):
        assert SymbolMatcher().match([], "AAPL") is None


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
