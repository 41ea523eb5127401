import logging
from typing import Dict, List, Mapping, Optional, Sequence

from ...core import config
from .base import ProviderAdapter, ProviderConfig
from .gemini import GeminiAdapter
from .huggingface import HF_TASK_PROFILES, HuggingFaceAdapter
from .openai_compatible import GROQ_TASK_PROFILES, GroqAdapter, OpenAICompatibleAdapter

logger = logging.getLogger("Gawin.Providers.Registry")


def build_provider_adapters() -> Dict[str, ProviderAdapter]:
    """Construct one adapter per vendor from the environment-backed config."""
    groq_chat_url = f"{config.GROQ_API_BASE_URL.rstrip('/')}/chat/completions"
    adapters: List[ProviderAdapter] = [
        GroqAdapter(ProviderConfig(
            name="groq",
            endpoint=groq_chat_url,
            model=GROQ_TASK_PROFILES["general"][0],
            api_key=config.GROQ_API_KEY,
            timeout=config.GROQ_TIMEOUT,
        )),
        GroqAdapter(ProviderConfig(
            name="groq-deepseek",
            endpoint=groq_chat_url,
            model=config.GROQ_DEEPSEEK_MODEL,
            api_key=config.GROQ_API_KEY,
            timeout=config.GROQ_TIMEOUT,
        ), fixed_task="deepseek"),
        HuggingFaceAdapter(ProviderConfig(
            name="huggingface",
            endpoint=config.HUGGINGFACE_API_BASE_URL,
            model=HF_TASK_PROFILES["general"][0],
            api_key=config.HUGGINGFACE_API_KEY,
            timeout=config.HUGGINGFACE_TIMEOUT,
        )),
        OpenAICompatibleAdapter(ProviderConfig(
            name="deepseek",
            endpoint=f"{config.OPENROUTER_API_BASE_URL.rstrip('/')}/chat/completions",
            model=config.OPENROUTER_DEFAULT_MODEL,
            api_key=config.OPENROUTER_API_KEY,
            timeout=config.OPENROUTER_TIMEOUT,
            extra_headers={"HTTP-Referer": config.OPENROUTER_REFERER, "X-Title": config.OPENROUTER_TITLE},
        )),
        OpenAICompatibleAdapter(ProviderConfig(
            name="perplexity",
            endpoint=f"{config.PERPLEXITY_API_BASE_URL.rstrip('/')}/chat/completions",
            model=config.PERPLEXITY_DEFAULT_MODEL,
            api_key=config.PERPLEXITY_API_KEY,
            timeout=config.PERPLEXITY_TIMEOUT,
        )),
        GeminiAdapter(ProviderConfig(
            name="gemini",
            endpoint=config.GOOGLE_API_BASE_URL,
            model=config.GEMINI_DEFAULT_MODEL,
            api_key=config.GOOGLE_AI_API_KEY,
            timeout=config.GEMINI_TIMEOUT,
            supports_vision=True,
        )),
    ]
    configured = [a.name for a in adapters if a.is_configured()]
    logger.info(f"Provider adapters built; configured: {configured or 'none'}")
    return {a.name: a for a in adapters}


class ProviderRegistry:
    """Adapters by name plus the route -> chain table."""

    def __init__(
        self,
        adapters: Mapping[str, ProviderAdapter],
        chains: Optional[Mapping[str, Sequence[str]]] = None,
    ):
        self.adapters = dict(adapters)
        self.chains = {route: list(names) for route, names in (chains or config.CHAT_ROUTE_CHAINS).items()}
        for route, names in self.chains.items():
            missing = [n for n in names if n not in self.adapters]
            if missing:
                raise ValueError(f"Chain '{route}' references unknown adapters: {missing}")

    def has_route(self, route: str) -> bool:
        return route in self.chains

    def chain_for(self, route: str) -> List[ProviderAdapter]:
        return [self.adapters[name] for name in self.chains[route]]

    def vision_chain(self) -> List[ProviderAdapter]:
        return [a for a in self.adapters.values() if a.supports_vision]

    def routes(self) -> List[str]:
        return list(self.chains)
