"""AI Agents package."""

from finboard.agents.ai_agents import (
    ADVICE_FALLBACK,
    AdviceService,
    ExternalLookupError,
    GeminiAdviceAgent,
    GeminiPriceLookupAgent,
    LookupResponse,
    PriceLookupService,
    UnconfiguredService,
)

__all__ = [
    "ADVICE_FALLBACK",
    "AdviceService",
    "ExternalLookupError",
    "GeminiAdviceAgent",
    "GeminiPriceLookupAgent",
    "LookupResponse",
    "PriceLookupService",
    "UnconfiguredService",
]
