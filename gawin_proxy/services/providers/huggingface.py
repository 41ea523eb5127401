import logging
from typing import Any, Dict, Optional, Tuple

from ...models.api_models import Usage
from ...utils.helpers import estimate_tokens
from .base import Completion, ModelProfile, ProviderAdapter, detect_task_type, flatten_content

logger = logging.getLogger("Gawin.Providers.HuggingFace")

HF_TASK_PROFILES = {
    "general": ("Qwen/Qwen2.5-72B-Instruct", 2048, 0.7),
    "writing": ("Qwen/Qwen2.5-72B-Instruct", 2048, 0.8),
    "stem": ("deepseek-ai/DeepSeek-R1-Distill-Qwen-32B", 2048, 0.3),
    "analysis": ("deepseek-ai/DeepSeek-R1-Distill-Qwen-32B", 2048, 0.5),
    "coding": ("deepseek-ai/DeepSeek-Coder-V2-Lite-Instruct", 2048, 0.2),
}


def format_chatml(messages) -> str:
    """Render the conversation as a ChatML prompt ending on an open assistant turn."""
    chunks = []
    for msg in messages:
        chunks.append(f"<|im_start|>{msg.role}\n{flatten_content(msg)}<|im_end|>")
    chunks.append("<|im_start|>assistant\n")
    return "\n".join(chunks)


class HuggingFaceAdapter(ProviderAdapter):
    def select_profile(self, validated) -> ModelProfile:
        request = validated.request
        task = detect_task_type(request.action, validated.last_user_text, with_stem=True)
        model, max_tokens, temperature = HF_TASK_PROFILES.get(task, HF_TASK_PROFILES["general"])
        return ModelProfile(
            model=model,
            max_tokens=request.max_tokens or max_tokens,
            temperature=request.temperature if request.temperature is not None else temperature,
        )

    def build_request(self, validated) -> Tuple[str, Dict[str, str], Dict[str, Any]]:
        profile = self.select_profile(validated)
        payload = {
            "inputs": format_chatml(validated.messages),
            "parameters": {
                "max_new_tokens": profile.max_tokens,
                "temperature": profile.temperature,
                "top_p": 0.95,
                "do_sample": True,
                "return_full_text": False,
                "stop": ["<|im_end|>"],
            },
            "options": {"wait_for_model": False, "use_cache": False},
        }
        url = f"{self.config.endpoint.rstrip('/')}/{profile.model}"
        headers = {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
        }
        return url, headers, payload

    def parse_response(self, data: Any, validated) -> Optional[Completion]:
        if isinstance(data, list):
            data = data[0] if data else None
        if not isinstance(data, dict):
            return None
        text = data.get("generated_text")
        if not isinstance(text, str):
            return None
        text = text.replace("<|im_end|>", "").strip()

        # The inference API does not report usage.
        prompt_tokens = estimate_tokens(format_chatml(validated.messages))
        completion_tokens = estimate_tokens(text)
        usage = Usage(prompt_tokens, completion_tokens, prompt_tokens + completion_tokens)
        return Completion(content=text, model=self.select_profile(validated).model, usage=usage)
