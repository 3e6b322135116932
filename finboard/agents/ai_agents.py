"""
AI Agents for finboard

Two external services sit behind small abstract contracts:

1. PRICE LOOKUP SERVICE:
   - Request: a set of ticker symbols
   - Response: free-form text that should contain a JSON array of
     {"symbol", "price"}, plus zero or more citations {title, url}
   - No schema is enforced by the service. PriceResponseParser owns
     the tolerance; this module only transports text.

2. ADVICE SERVICE:
   - Request: a short financial summary string
   - Response: free-form text, returned verbatim

The Gemini implementations use search grounding for prices.
The LLM is a LOOKUP TOOL, not a source of truth: nothing it says is
written to the ledger before it has been parsed and matched.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

import google.generativeai as genai
import structlog
from pydantic import BaseModel, Field

from finboard.config import GeminiSettings, get_settings


ADVICE_FALLBACK = "Unable to generate advice at this time."


class ExternalLookupError(Exception):
    """
    The price or advice service was unreachable or returned an error.

    Surfaced to the caller as a single alert; no state is mutated.
    """

    def __init__(self, service: str, message: str):
        self.service = service
        super().__init__(f"{service}: {message}")


class LookupResponse(BaseModel):
    """
    Raw answer of the price lookup service.

    citations are passed through untouched (each may lack a title
    or url); the sync coordinator decides which ones count.
    """

    text: str = ""
    citations: list[dict[str, Any]] = Field(default_factory=list)


class PriceLookupService(ABC):
    """Finds current prices for a set of symbols."""

    @abstractmethod
    async def lookup(self, symbols: list[str]) -> LookupResponse:
        """
        Raises:
            ExternalLookupError: If the service call fails
        """
        pass


class AdviceService(ABC):
    """Turns a financial summary into short advice text."""

    @abstractmethod
    async def advise(self, summary: str) -> str:
        """
        Raises:
            ExternalLookupError: If the service call fails
        """
        pass


class UnconfiguredService(PriceLookupService, AdviceService):
    """
    Stand-in used when the LLM is not configured (e.g. no GEMINI_API_KEY).

    Ledger actions keep working; price sync and advice fail with
    ExternalLookupError, like any other unreachable service.
    """

    def __init__(self, service: str, reason: str):
        self.service = service
        self.reason = reason

    async def lookup(self, symbols: list[str]) -> LookupResponse:
        raise ExternalLookupError(self.service, self.reason)

    async def advise(self, summary: str) -> str:
        raise ExternalLookupError(self.service, self.reason)


def build_price_prompt(symbols: list[str]) -> str:
    symbol_list = ", ".join(symbols)
    return f"""Find the current realtime stock price for the following symbols: {symbol_list}.
Please provide the latest available price in a standard numeric format.

IMPORTANT: You must return the data in a valid JSON block like this:
```json
[
  {{"symbol": "2330.TW", "price": 980.5}},
  {{"symbol": "AAPL", "price": 225.30}}
]
```"""


def build_advice_prompt(summary: str) -> str:
    return (
        "Act as a financial advisor. Here is a summary of my current finances: "
        f"{summary}\n"
        "Provide a brief, encouraging, and actionable 3-bullet point summary of advice. "
        "Keep it under 100 words."
    )


def _response_text(response: Any) -> str:
    """response.text raises when the candidate has no text parts."""
    try:
        return (response.text or "").strip()
    except (ValueError, AttributeError):
        return ""


def _grounding_citations(response: Any) -> list[dict[str, Any]]:
    """Pull {title, url} pairs out of the grounding metadata, if any."""
    citations = []
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return citations
    metadata = getattr(candidates[0], "grounding_metadata", None)
    for chunk in getattr(metadata, "grounding_chunks", None) or []:
        web = getattr(chunk, "web", None)
        if web is None:
            continue
        citations.append({
            "title": getattr(web, "title", None),
            "url": getattr(web, "uri", None),
        })
    return citations


class GeminiPriceLookupAgent(PriceLookupService):
    """
    Price lookup through Gemini with Google Search grounding.

    BOUNDARIES:
    - ONLY asks for prices and returns the raw answer
    - NEVER interprets the answer (that is the parser's job)
    """

    def __init__(self, settings: Optional[GeminiSettings] = None):
        self._settings = settings or get_settings().gemini
        self._logger = structlog.get_logger(__name__)
        self._configure_genai()

    def _configure_genai(self):
        """Configure Google Generative AI."""
        genai.configure(api_key=self._settings.api_key)
        self._model = genai.GenerativeModel(
            model_name=self._settings.price_model_name,
            generation_config={
                "temperature": self._settings.temperature,
                "max_output_tokens": self._settings.max_tokens,
            }
        )

    async def lookup(self, symbols: list[str]) -> LookupResponse:
        if not symbols:
            return LookupResponse()

        try:
            response = await self._model.generate_content_async(
                build_price_prompt(symbols),
                tools="google_search_retrieval",
            )
        except Exception as e:
            self._logger.error("price_lookup_failed", symbols=symbols, error=str(e))
            raise ExternalLookupError("gemini_price_lookup", str(e)) from e

        return LookupResponse(
            text=_response_text(response),
            citations=_grounding_citations(response),
        )


class GeminiAdviceAgent(AdviceService):
    """Financial advice through Gemini. The answer is returned verbatim."""

    def __init__(self, settings: Optional[GeminiSettings] = None):
        self._settings = settings or get_settings().gemini
        self._logger = structlog.get_logger(__name__)
        self._configure_genai()

    def _configure_genai(self):
        """Configure Google Generative AI."""
        genai.configure(api_key=self._settings.api_key)
        self._model = genai.GenerativeModel(
            model_name=self._settings.advice_model_name,
            generation_config={
                "temperature": 0.7,  # Advice may be phrased freely
                "max_output_tokens": 512,
            }
        )

    async def advise(self, summary: str) -> str:
        try:
            response = await self._model.generate_content_async(
                build_advice_prompt(summary)
            )
        except Exception as e:
            self._logger.error("advice_failed", error=str(e))
            raise ExternalLookupError("gemini_advice", str(e)) from e

        return _response_text(response) or ADVICE_FALLBACK
