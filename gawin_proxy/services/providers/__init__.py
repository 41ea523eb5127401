"""
Vendor adapters.

Each adapter performs one HTTP call to one LLM vendor and reports a
``ProviderResult``; ``ProviderRegistry`` binds them into per-route chains.
"""

from .base import ProviderAdapter, ProviderConfig, Completion, detect_task_type
from .openai_compatible import OpenAICompatibleAdapter, GroqAdapter
from .huggingface import HuggingFaceAdapter
from .gemini import GeminiAdapter
from .registry import ProviderRegistry, build_provider_adapters

__all__ = [
    "ProviderAdapter",
    "ProviderConfig",
    "Completion",
    "detect_task_type",
    "OpenAICompatibleAdapter",
    "GroqAdapter",
    "HuggingFaceAdapter",
    "GeminiAdapter",
    "ProviderRegistry",
    "build_provider_adapters",
]
