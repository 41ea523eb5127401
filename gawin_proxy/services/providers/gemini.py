import re
import logging
from typing import Any, Dict, List, Optional, Tuple

from ...models.api_models import ImageUrlContentPart, TextContentPart, Usage
from .base import Completion, ProviderAdapter

logger = logging.getLogger("Gawin.Providers.Gemini")

DATA_URI_PATTERN = re.compile(r"^data:(?P<mime>[\w/+.-]+);base64,(?P<data>.+)$", re.DOTALL)


def _convert_parts(msg) -> List[Dict[str, Any]]:
    if isinstance(msg.content, str):
        return [{"text": msg.content}]
    parts: List[Dict[str, Any]] = []
    for part in msg.content:
        if isinstance(part, TextContentPart):
            parts.append({"text": part.text})
        elif isinstance(part, ImageUrlContentPart):
            match = DATA_URI_PATTERN.match(part.image_url.url)
            if match:
                parts.append({"inline_data": {"mime_type": match.group("mime"), "data": match.group("data")}})
            else:
                # generateContent only fetches Google-hosted files; pass remote URLs as text.
                parts.append({"text": f"[image: {part.image_url.url}]"})
    return parts or [{"text": ""}]


class GeminiAdapter(ProviderAdapter):
    """Gemini native ``generateContent``; vision-capable."""

    def build_request(self, validated) -> Tuple[str, Dict[str, str], Dict[str, Any]]:
        request = validated.request
        model = request.model if request.model and request.model.startswith("gemini") else self.config.model

        system_texts: List[str] = []
        contents: List[Dict[str, Any]] = []
        for msg in validated.messages:
            if msg.role == "system":
                system_texts.append(msg.text())
                continue
            role = "model" if msg.role == "assistant" else "user"
            contents.append({"role": role, "parts": _convert_parts(msg)})

        payload: Dict[str, Any] = {
            "contents": contents,
            "generationConfig": {
                "temperature": request.temperature if request.temperature is not None else 0.7,
                "maxOutputTokens": request.max_tokens or 2048,
                "topP": 0.85,
                "topK": 40,
            },
        }
        if system_texts:
            payload["systemInstruction"] = {"parts": [{"text": "\n\n".join(system_texts)}]}

        url = f"{self.config.endpoint.rstrip('/')}/v1beta/models/{model}:generateContent"
        headers = {
            "x-goog-api-key": self.config.api_key,
            "Content-Type": "application/json",
        }
        return url, headers, payload

    def parse_response(self, data: Any, validated) -> Optional[Completion]:
        if not isinstance(data, dict):
            return None
        candidates = data.get("candidates") or []
        if not candidates:
            block_reason = (data.get("promptFeedback") or {}).get("blockReason")
            if block_reason:
                logger.warning(f"Gemini blocked the prompt: {block_reason}")
            return None
        parts = ((candidates[0] or {}).get("content") or {}).get("parts") or []
        text = "".join(p.get("text", "") for p in parts if isinstance(p, dict))
        if not text:
            return None

        meta = data.get("usageMetadata") or {}
        prompt = int(meta.get("promptTokenCount") or 0)
        completion = int(meta.get("candidatesTokenCount") or 0)
        usage = Usage(prompt, completion, int(meta.get("totalTokenCount") or (prompt + completion)))
        model = data.get("modelVersion") or self.config.model
        return Completion(content=text, model=model, usage=usage)
