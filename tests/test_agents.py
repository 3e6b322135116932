"""
Tests for the Gemini agents.

The generative model is replaced with a stub; no real API calls.
"""

from types import SimpleNamespace

import pytest

from finboard.agents import (
    ADVICE_FALLBACK,
    ExternalLookupError,
    GeminiAdviceAgent,
    GeminiPriceLookupAgent,
    UnconfiguredService,
)
from finboard.agents.ai_agents import build_price_prompt
from finboard.config import GeminiSettings


class StubModel:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    async def generate_content_async(self, prompt, **kwargs):
        self.calls.append((prompt, kwargs))
        if self.error is not None:
            raise self.error
        return self.response


def grounded_response(text, chunks):
    metadata = SimpleNamespace(grounding_chunks=chunks)
    return SimpleNamespace(text=text, candidates=[SimpleNamespace(grounding_metadata=metadata)])


@pytest.fixture
def gemini_settings() -> GeminiSettings:
    return GeminiSettings(api_key="test-key")


class TestGeminiPriceLookupAgent:
    """Tests for the search-grounded price lookup."""

    async def test_returns_text_and_citations(self, gemini_settings):
        agent = GeminiPriceLookupAgent(gemini_settings)
        agent._model = StubModel(grounded_response(
            '[{"symbol": "AAPL", "price": 1}]',
            [
                SimpleNamespace(web=SimpleNamespace(title="Yahoo", uri="https://finance.yahoo.com")),
                SimpleNamespace(web=None),
            ],
        ))

        response = await agent.lookup(["AAPL"])

        assert response.text == '[{"symbol": "AAPL", "price": 1}]'
        assert response.citations == [{"title": "Yahoo", "url": "https://finance.yahoo.com"}]
        prompt, kwargs = agent._model.calls[0]
        assert "AAPL" in prompt
        assert kwargs == {"tools": "google_search_retrieval"}

    async def test_no_candidates_means_no_citations(self, gemini_settings):
        agent = GeminiPriceLookupAgent(gemini_settings)
        agent._model = StubModel(SimpleNamespace(text="nothing", candidates=[]))
        response = await agent.lookup(["AAPL"])
        assert response.citations == []

    async def test_empty_symbols_skip_call(self, gemini_settings):
        agent = GeminiPriceLookupAgent(gemini_settings)
        agent._model = StubModel()
        response = await agent.lookup([])
        assert response.text == ""
        assert agent._model.calls == []

    async def test_failure_wrapped(self, gemini_settings):
        agent = GeminiPriceLookupAgent(gemini_settings)
        agent._model = StubModel(error=RuntimeError("quota exceeded"))
        with pytest.raises(ExternalLookupError, match="quota exceeded"):
            await agent.lookup(["AAPL"])

    def test_prompt_asks_for_json_block(self):
        prompt = build_price_prompt(["2330.TW", "AAPL"])
        assert "2330.TW, AAPL" in prompt
        assert "```json" in prompt


class TestGeminiAdviceAgent:
    """Tests for advice generation."""

    async def test_returns_text_verbatim(self, gemini_settings):
        agent = GeminiAdviceAgent(gemini_settings)
        agent._model = StubModel(SimpleNamespace(text="- Spend less\n- Save more"))
        assert await agent.advise("Total Net Worth: 1.") == "- Spend less\n- Save more"
        assert "Total Net Worth: 1." in agent._model.calls[0][0]

    async def test_empty_answer_falls_back(self, gemini_settings):
        agent = GeminiAdviceAgent(gemini_settings)
        agent._model = StubModel(SimpleNamespace(text=""))
        assert await agent.advise("x") == ADVICE_FALLBACK

    async def test_failure_wrapped(self, gemini_settings):
        agent = GeminiAdviceAgent(gemini_settings)
        agent._model = StubModel(error=RuntimeError("down"))
        with pytest.raises(ExternalLookupError):
            await agent.advise("x")



class TestUnconfiguredService:
    """Tests for the stand-in used without Gemini configuration."""

    async def test_lookup_fails_as_unreachable(self):
        service = UnconfiguredService("gemini", "no key")
        with pytest.raises(ExternalLookupError) as exc_info:
            await service.lookup(["AAPL"])
        assert exc_info.value.service == "gemini"

    async def test_advise_fails_as_unreachable(self):
        with pytest.raises(ExternalLookupError):
            await UnconfiguredService("gemini", "no key").advise("x")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
