"""
Provider adapter contract.

An adapter wraps exactly one vendor call: it serializes the validated request
into the vendor's JSON shape, issues a single POST with its own fixed timeout,
and normalizes whatever comes back into a ``ProviderResult``. It never raises
for transport or vendor failures and it never retries; moving on to another
vendor is the fallback sequencer's job.
"""
from __future__ import annotations

import re
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import httpx
import orjson

from ...models.api_models import ChatMessage, ProviderResult, TextContentPart, ImageUrlContentPart, Usage
from ...utils.helpers import mask_api_key_for_log

logger = logging.getLogger("Gawin.Providers")

IMAGE_ONLY_PLACEHOLDER = "Please analyze the provided content."

REASON_NOT_CONFIGURED = "not_configured"
REASON_NETWORK = "network"
REASON_EMPTY = "empty_response"


@dataclass(frozen=True)
class ProviderConfig:
    name: str
    endpoint: str
    model: str
    api_key: str = ""
    timeout: float = 15.0
    supports_vision: bool = False
    extra_headers: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Completion:
    content: str
    model: str
    usage: Usage


@dataclass(frozen=True)
class ModelProfile:
    model: str
    max_tokens: int
    temperature: float


CODING_PATTERN = re.compile(r"code|program|function|class|variable|debug|algorithm|javascript|python|react|typescript|css|html")
ANALYSIS_PATTERN = re.compile(r"analyze|research|compare|evaluate|investigate|study|examine|explain.*why|what.*causes|how.*works")
WRITING_PATTERN = re.compile(r"write|essay|story|letter|email|article|blog|creative|compose|grammar|spelling|song|lyrics|poem|poetry")
STEM_PATTERN = re.compile(r"math|physics|chemistry|biology|calculus|algebra|equation|formula|scientific|theorem|hypothesis|experiment")

ACTION_TASKS = {"code": "coding", "analysis": "analysis", "writing": "writing", "deepseek": "deepseek"}


def detect_task_type(action: Optional[str], text: str, with_stem: bool = False) -> str:
    """Explicit action wins; otherwise keyword detection on the last user text."""
    if action and action in ACTION_TASKS:
        return ACTION_TASKS[action]
    lowered = (text or "").lower()
    if with_stem and STEM_PATTERN.search(lowered):
        return "stem"
    if CODING_PATTERN.search(lowered):
        return "coding"
    if ANALYSIS_PATTERN.search(lowered):
        return "analysis"
    if WRITING_PATTERN.search(lowered):
        return "writing"
    return "general"


def flatten_content(message: ChatMessage) -> str:
    if isinstance(message.content, str):
        return message.content
    text = message.text()
    return text if text else IMAGE_ONLY_PLACEHOLDER


def to_openai_messages(messages: Tuple[ChatMessage, ...], supports_vision: bool) -> List[Dict[str, Any]]:
    """
    Fresh dicts for the wire; the validated messages are left untouched.
    Text-only vendors get a flattened copy.
    """
    converted: List[Dict[str, Any]] = []
    for msg in messages:
        if isinstance(msg.content, str) or not supports_vision:
            converted.append({"role": msg.role, "content": flatten_content(msg)})
            continue
        parts: List[Dict[str, Any]] = []
        for part in msg.content:
            if isinstance(part, TextContentPart):
                parts.append({"type": "text", "text": part.text})
            elif isinstance(part, ImageUrlContentPart):
                parts.append({"type": "image_url", "image_url": {"url": part.image_url.url}})
        converted.append({"role": msg.role, "content": parts})
    return converted


class ProviderAdapter:
    """Base class; subclasses implement ``build_request`` and ``parse_response``."""

    def __init__(self, config: ProviderConfig):
        self.config = config

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def supports_vision(self) -> bool:
        return self.config.supports_vision

    def is_configured(self) -> bool:
        return bool(self.config.api_key)

    def build_request(self, validated) -> Tuple[str, Dict[str, str], Dict[str, Any]]:
        raise NotImplementedError

    def parse_response(self, data: Any, validated) -> Optional[Completion]:
        raise NotImplementedError

    def describe(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "model": self.config.model,
            "configured": self.is_configured(),
            "supports_vision": self.supports_vision,
        }

    async def invoke(self, validated, http_client: httpx.AsyncClient, request_id: str = "-") -> ProviderResult:
        log_prefix = f"RID-{request_id}"
        if not self.is_configured():
            logger.warning(f"{log_prefix}: {self.name} skipped, API key not configured.")
            return ProviderResult.failure(self.name, REASON_NOT_CONFIGURED)

        url, headers, payload = self.build_request(validated)
        logger.info(
            f"{log_prefix}: {self.name} -> POST {url} model='{payload.get('model', self.config.model)}' "
            f"key={mask_api_key_for_log(self.config.api_key)}"
        )

        try:
            response = await http_client.post(
                url,
                headers=headers,
                content=orjson.dumps(payload),
                timeout=self.config.timeout,
            )
        except httpx.TimeoutException as e:
            logger.warning(f"{log_prefix}: {self.name} timed out after {self.config.timeout}s: {type(e).__name__}")
            return ProviderResult.failure(self.name, REASON_NETWORK)
        except httpx.RequestError as e:
            logger.warning(f"{log_prefix}: {self.name} network error: {type(e).__name__} - {e}")
            return ProviderResult.failure(self.name, REASON_NETWORK)

        if not response.is_success:
            logger.warning(f"{log_prefix}: {self.name} returned HTTP {response.status_code}: {response.text[:300]}")
            return ProviderResult.failure(self.name, f"http_{response.status_code}")

        try:
            data = orjson.loads(response.content)
        except orjson.JSONDecodeError:
            logger.warning(f"{log_prefix}: {self.name} returned a non-JSON body: {response.text[:200]}")
            return ProviderResult.failure(self.name, REASON_EMPTY)

        completion = self.parse_response(data, validated)
        if completion is None or not completion.content.strip():
            logger.warning(f"{log_prefix}: {self.name} returned no completion text.")
            return ProviderResult.failure(self.name, REASON_EMPTY)

        logger.info(f"{log_prefix}: {self.name} succeeded with model '{completion.model}' ({completion.usage.total_tokens} tokens).")
        return ProviderResult(
            success=True,
            content=completion.content.strip(),
            model_used=completion.model,
            usage=completion.usage,
            provider=self.name,
        )
