import logging
from typing import Any, Dict, Optional, Tuple

from ...models.api_models import Usage
from .base import (
    Completion,
    ModelProfile,
    ProviderAdapter,
    ProviderConfig,
    detect_task_type,
    to_openai_messages,
)

logger = logging.getLogger("Gawin.Providers.OpenAI")

GAWIN_SYSTEM_PROMPT = (
    "You are Gawin, a helpful learning assistant. Answer clearly and accurately, "
    "use Markdown for structure, and wrap code in fenced code blocks with a language tag."
)


class OpenAICompatibleAdapter(ProviderAdapter):
    """chat/completions vendors: Groq, OpenRouter, Perplexity."""

    accepts_request_model = True
    default_temperature = 0.7
    default_max_tokens = 2048

    def select_profile(self, validated) -> ModelProfile:
        request = validated.request
        model = request.model if (self.accepts_request_model and request.model) else self.config.model
        return ModelProfile(
            model=model,
            max_tokens=request.max_tokens or self.default_max_tokens,
            temperature=request.temperature if request.temperature is not None else self.default_temperature,
        )

    def build_messages(self, validated):
        return to_openai_messages(validated.messages, self.supports_vision)

    def build_headers(self) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        headers.update(self.config.extra_headers)
        return headers

    def build_request(self, validated) -> Tuple[str, Dict[str, str], Dict[str, Any]]:
        profile = self.select_profile(validated)
        payload: Dict[str, Any] = {
            "model": profile.model,
            "messages": self.build_messages(validated),
            "temperature": profile.temperature,
            "max_tokens": profile.max_tokens,
            "stream": False,
        }
        return self.config.endpoint, self.build_headers(), payload

    def parse_response(self, data: Any, validated) -> Optional[Completion]:
        if not isinstance(data, dict):
            return None
        choices = data.get("choices") or []
        if not choices or not isinstance(choices[0], dict):
            return None
        message = choices[0].get("message") or {}
        content = message.get("content")
        if not isinstance(content, str):
            return None
        model = data.get("model") or self.select_profile(validated).model
        return Completion(content=content, model=model, usage=Usage.from_openai(data.get("usage")))


# task -> (model, max_tokens, temperature)
GROQ_TASK_PROFILES = {
    "general": ("llama-3.3-70b-versatile", 2048, 0.7),
    "coding": ("llama-3.3-70b-versatile", 3072, 0.3),
    "analysis": ("llama-3.3-70b-versatile", 2560, 0.5),
    "writing": ("llama-3.3-70b-versatile", 2048, 0.8),
    "fast": ("llama-3.1-8b-instant", 1024, 0.7),
}


class GroqAdapter(OpenAICompatibleAdapter):
    """
    Groq with per-task model selection.

    ``fixed_task`` pins the adapter to one profile regardless of the request;
    the ``groq-deepseek`` chain member is a GroqAdapter pinned to the
    DeepSeek distill model.
    """

    accepts_request_model = False

    def __init__(self, config: ProviderConfig, fixed_task: Optional[str] = None):
        super().__init__(config)
        self.fixed_task = fixed_task

    def select_profile(self, validated) -> ModelProfile:
        request = validated.request
        if self.fixed_task:
            model, max_tokens, temperature = self.config.model, 2048, 0.6
        else:
            task = detect_task_type(request.action, validated.last_user_text)
            model, max_tokens, temperature = GROQ_TASK_PROFILES.get(task, GROQ_TASK_PROFILES["general"])
        return ModelProfile(
            model=model,
            max_tokens=request.max_tokens or max_tokens,
            temperature=request.temperature if request.temperature is not None else temperature,
        )

    def build_messages(self, validated):
        messages = super().build_messages(validated)
        if not any(m["role"] == "system" for m in messages):
            messages.insert(0, {"role": "system", "content": GAWIN_SYSTEM_PROMPT})
        return messages
