"""LLM provider interfaces."""

from .narrative import NarrativeContext, NarrativeGenerator, clean_response
from .provider import (
    Availability,
    GeneratorUnavailable,
    LLMProvider,
    OfflineProvider,
    OllamaProvider,
    PromptContext,
    StaticResponseProvider,
)

__all__ = [
    "Availability",
    "GeneratorUnavailable",
    "LLMProvider",
    "NarrativeContext",
    "NarrativeGenerator",
    "OfflineProvider",
    "OllamaProvider",
    "PromptContext",
    "StaticResponseProvider",
    "clean_response",
]
