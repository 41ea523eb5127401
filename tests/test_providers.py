import httpx
import orjson
import pytest

from gawin_proxy.models.api_models import ChatRequestModel
from gawin_proxy.services.providers import (
    GeminiAdapter,
    GroqAdapter,
    HuggingFaceAdapter,
    OpenAICompatibleAdapter,
    ProviderConfig,
    ProviderRegistry,
    build_provider_adapters,
    detect_task_type,
)
from gawin_proxy.services.validation import ValidatedRequest

from conftest import make_validated


def groq_config(**overrides):
    values = dict(name="groq", endpoint="https://api.groq.com/openai/v1/chat/completions",
                  model="llama-3.3-70b-versatile", api_key="gsk_test", timeout=15.0)
    values.update(overrides)
    return ProviderConfig(**values)


def mock_client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


async def test_missing_key_makes_no_http_call():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={})

    adapter = GroqAdapter(groq_config(api_key=""))
    async with mock_client(handler) as client:
        result = await adapter.invoke(make_validated(), client)

    assert not result.success
    assert result.error_reason == "not_configured"
    assert calls == []


@pytest.mark.parametrize("handler, reason", [
    (lambda r: httpx.Response(500, text="upstream down"), "http_500"),
    (lambda r: httpx.Response(429, json={"error": "rate limited"}), "http_429"),
    (lambda r: httpx.Response(200, text="not json"), "empty_response"),
    (lambda r: httpx.Response(200, json={"choices": []}), "empty_response"),
    (lambda r: httpx.Response(200, json={"choices": [{"message": {"content": "   "}}]}), "empty_response"),
])
async def test_failure_classification(handler, reason):
    adapter = GroqAdapter(groq_config())
    async with mock_client(handler) as client:
        result = await adapter.invoke(make_validated(), client)
    assert not result.success
    assert result.error_reason == reason
    assert result.provider == "groq"


@pytest.mark.parametrize("exc", [httpx.ConnectError, httpx.ReadTimeout])
async def test_transport_errors_are_network(exc):
    def handler(request):
        raise exc("stubbed", request=request)

    async with mock_client(handler) as client:
        result = await GroqAdapter(groq_config()).invoke(make_validated(), client)
    assert result.error_reason == "network"


async def test_groq_success_and_request_shape():
    seen = {}

    def handler(request):
        seen["headers"] = request.headers
        seen["body"] = orjson.loads(request.content)
        return httpx.Response(200, json={
            "model": "llama-3.3-70b-versatile",
            "choices": [{"message": {"role": "assistant", "content": "4"}}],
            "usage": {"prompt_tokens": 12, "completion_tokens": 1, "total_tokens": 13},
        })

    validated = make_validated("Write a python function", temperature=0.9)
    async with mock_client(handler) as client:
        result = await GroqAdapter(groq_config()).invoke(validated, client)

    assert result.success
    assert result.content == "4"
    assert result.usage.total_tokens == 13
    assert seen["headers"]["authorization"] == "Bearer gsk_test"
    body = seen["body"]
    assert body["temperature"] == 0.9
    assert body["max_tokens"] == 3072
    assert body["messages"][0]["role"] == "system"
    assert body["messages"][-1] == {"role": "user", "content": "Write a python function"}


async def test_fixed_task_groq_ignores_task_detection():
    seen = {}

    def handler(request):
        seen["body"] = orjson.loads(request.content)
        return httpx.Response(200, json={"choices": [{"message": {"content": "done"}}]})

    adapter = GroqAdapter(groq_config(name="groq-deepseek", model="deepseek-r1-distill-llama-70b"), fixed_task="deepseek")
    async with mock_client(handler) as client:
        result = await adapter.invoke(make_validated("debug my code"), client)

    assert seen["body"]["model"] == "deepseek-r1-distill-llama-70b"
    assert result.model_used == "deepseek-r1-distill-llama-70b"


async def test_text_only_adapter_flattens_multimodal_content():
    seen = {}

    def handler(request):
        seen["body"] = orjson.loads(request.content)
        return httpx.Response(200, json={"choices": [{"message": {"content": "fine"}}]})

    request_payload = [
        {"type": "image_url", "image_url": {"url": "https://example.com/cat.png"}},
    ]
    validated = make_validated("describe", history=[{"role": "user", "content": request_payload}])
    adapter = OpenAICompatibleAdapter(ProviderConfig(
        name="perplexity", endpoint="https://api.perplexity.ai/chat/completions",
        model="llama-3.1-sonar-large-128k-online", api_key="pplx",
    ))
    async with mock_client(handler) as client:
        await adapter.invoke(validated, client)

    assert seen["body"]["messages"][0] == {"role": "user", "content": "Please analyze the provided content."}
    # the validated request keeps its structured content
    assert validated.messages[0].has_images()


async def test_openrouter_headers_and_request_model():
    seen = {}

    def handler(request):
        seen["request"] = request
        return httpx.Response(200, json={"choices": [{"message": {"content": "hi"}}]})

    adapter = OpenAICompatibleAdapter(ProviderConfig(
        name="deepseek", endpoint="https://openrouter.ai/api/v1/chat/completions",
        model="deepseek/deepseek-chat", api_key="sk-or",
        extra_headers={"HTTP-Referer": "https://gawin.test", "X-Title": "Gawin AI"},
    ))
    async with mock_client(handler) as client:
        await adapter.invoke(make_validated("hi", model="deepseek/deepseek-r1"), client)

    assert seen["request"].headers["x-title"] == "Gawin AI"
    assert orjson.loads(seen["request"].content)["model"] == "deepseek/deepseek-r1"


async def test_huggingface_chatml_and_generated_text():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["body"] = orjson.loads(request.content)
        return httpx.Response(200, json=[{"generated_text": "The derivative is 2x.<|im_end|>"}])

    adapter = HuggingFaceAdapter(ProviderConfig(
        name="huggingface", endpoint="https://api-inference.huggingface.co/models",
        model="Qwen/Qwen2.5-72B-Instruct", api_key="hf", timeout=10.0,
    ))
    async with mock_client(handler) as client:
        result = await adapter.invoke(make_validated("calculus: derivative of x^2"), client)

    assert result.success
    assert result.content == "The derivative is 2x."
    assert seen["url"].endswith("/deepseek-ai/DeepSeek-R1-Distill-Qwen-32B")
    assert seen["body"]["inputs"].endswith("<|im_start|>assistant\n")
    assert result.usage.completion_tokens > 0


async def test_gemini_inline_images_and_usage():
    seen = {}

    def handler(request):
        seen["request"] = request
        return httpx.Response(200, json={
            "candidates": [{"content": {"parts": [{"text": "A cat "}, {"text": "on a mat."}]}}],
            "usageMetadata": {"promptTokenCount": 7, "candidatesTokenCount": 4, "totalTokenCount": 11},
        })

    content = [
        {"type": "text", "text": "What is this?"},
        {"type": "image_url", "image_url": {"url": "data:image/png;base64,iVBORw0KGgo="}},
    ]
    request = ChatRequestModel.model_validate({"messages": [{"role": "user", "content": content}]})
    validated = ValidatedRequest(request=request, last_user_text="What is this?")
    adapter = GeminiAdapter(ProviderConfig(
        name="gemini", endpoint="https://generativelanguage.googleapis.com",
        model="gemini-1.5-flash", api_key="AIza", timeout=30.0, supports_vision=True,
    ))
    async with mock_client(handler) as client:
        result = await adapter.invoke(validated, client)

    request = seen["request"]
    assert request.url.path == "/v1beta/models/gemini-1.5-flash:generateContent"
    assert request.headers["x-goog-api-key"] == "AIza"
    parts = orjson.loads(request.content)["contents"][0]["parts"]
    assert parts[1] == {"inline_data": {"mime_type": "image/png", "data": "iVBORw0KGgo="}}
    assert result.content == "A cat on a mat."
    assert result.usage.total_tokens == 11


async def test_gemini_blocked_prompt_is_empty_response():
    def handler(request):
        return httpx.Response(200, json={"promptFeedback": {"blockReason": "SAFETY"}})

    adapter = GeminiAdapter(ProviderConfig(
        name="gemini", endpoint="https://generativelanguage.googleapis.com",
        model="gemini-1.5-flash", api_key="AIza", supports_vision=True,
    ))
    async with mock_client(handler) as client:
        result = await adapter.invoke(make_validated(), client)
    assert result.error_reason == "empty_response"


@pytest.mark.parametrize("action, text, with_stem, expected", [
    ("code", "hello", False, "coding"),
    (None, "Please debug this function", False, "coding"),
    (None, "compare these two options", False, "analysis"),
    (None, "write me a poem", False, "writing"),
    (None, "solve this physics problem", True, "stem"),
    (None, "solve this physics problem", False, "general"),
    (None, "good morning", False, "general"),
])
def test_detect_task_type(action, text, with_stem, expected):
    assert detect_task_type(action, text, with_stem=with_stem) == expected


def test_registry_binds_configured_chains():
    registry = ProviderRegistry(build_provider_adapters())
    assert [a.name for a in registry.chain_for("groq")] == ["groq", "huggingface", "groq-deepseek"]
    assert [a.name for a in registry.chain_for("deepseek")] == ["deepseek", "groq-deepseek"]
    assert [a.name for a in registry.chain_for("gemini")] == ["gemini", "groq"]
    assert [a.name for a in registry.chain_for("perplexity")] == ["perplexity", "groq"]
    assert [a.name for a in registry.vision_chain()] == ["gemini"]
    assert not registry.has_route("openai")


def test_registry_rejects_unknown_chain_members():
    with pytest.raises(ValueError):
        ProviderRegistry(build_provider_adapters(), chains={"broken": ["groq", "nope"]})
