import os
import tempfile

# Config is read at import time, so the environment has to be in place first.
_TMP_DIR = tempfile.mkdtemp(prefix="gawin-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TMP_DIR}/gawin-test.db"
os.environ["ADMIN_TOKEN"] = "test-admin-token"
os.environ["GROQ_API_KEY"] = "gsk_test_groq_key"
os.environ["HUGGINGFACE_API_KEY"] = "hf_test_key"
os.environ["OPENROUTER_API_KEY"] = "sk-or-test-key"
os.environ["PERPLEXITY_API_KEY"] = "pplx-test-key"
os.environ["GOOGLE_AI_API_KEY"] = "AIza-test-key"
os.environ.setdefault("LOG_LEVEL", "INFO")

from typing import Any, Callable, Dict, List, Optional

import httpx
import orjson
import pytest
from fastapi.testclient import TestClient

from gawin_proxy.core.config import GROQ_DEEPSEEK_MODEL
from gawin_proxy.main import create_app
from gawin_proxy.models.api_models import ChatRequestModel, ProviderResult, Usage
from gawin_proxy.services.browser_sessions import BrowserSession
from gawin_proxy.services.validation import ValidatedRequest

ADMIN_HEADERS = {"X-Admin-Token": "test-admin-token"}

Behaviour = Callable[[httpx.Request], httpx.Response]


def openai_reply(content: str, model: str = "stub-model") -> Behaviour:
    def reply(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={
            "model": model,
            "choices": [{"message": {"role": "assistant", "content": content}, "finish_reason": "stop", "index": 0}],
            "usage": {"prompt_tokens": 5, "completion_tokens": 1, "total_tokens": 6},
        })
    return reply


def hf_reply(text: str) -> Behaviour:
    def reply(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=[{"generated_text": text}])
    return reply


def gemini_reply(text: str) -> Behaviour:
    def reply(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={
            "candidates": [{"content": {"role": "model", "parts": [{"text": text}]}}],
            "usageMetadata": {"promptTokenCount": 10, "candidatesTokenCount": 3, "totalTokenCount": 13},
        })
    return reply


def http_error(status: int) -> Behaviour:
    def reply(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, json={"error": {"message": "stubbed failure"}})
    return reply


def network_error(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("stubbed connection failure", request=request)


class VendorStub:
    """
    httpx.MockTransport handler that recognises which adapter a request came
    from and answers with the behaviour registered for it. Unregistered
    adapters get a connection error.
    """

    def __init__(self):
        self.behaviours: Dict[str, Behaviour] = {}
        self.calls: List[str] = []
        self.requests: List[httpx.Request] = []

    def on(self, adapter: str, behaviour: Behaviour) -> "VendorStub":
        self.behaviours[adapter] = behaviour
        return self

    @staticmethod
    def identify(request: httpx.Request) -> str:
        host = request.url.host
        if host == "api.groq.com":
            body = orjson.loads(request.content)
            return "groq-deepseek" if body.get("model") == GROQ_DEEPSEEK_MODEL else "groq"
        if host == "api-inference.huggingface.co":
            return "huggingface"
        if host == "openrouter.ai":
            return "deepseek"
        if host == "api.perplexity.ai":
            return "perplexity"
        if host == "generativelanguage.googleapis.com":
            return "gemini"
        return host

    def __call__(self, request: httpx.Request) -> httpx.Response:
        name = self.identify(request)
        self.calls.append(name)
        self.requests.append(request)
        return self.behaviours.get(name, network_error)(request)


class FakeMouse:
    def __init__(self, page):
        self.page = page

    async def click(self, x, y):
        self.page.actions.append(("mouse.click", x, y))


class FakePage:
    def __init__(self, goto_error: Optional[Exception] = None):
        self.url = "about:blank"
        self.goto_error = goto_error
        self.actions: List[Any] = []
        self.mouse = FakeMouse(self)
        self.scroll_y = 0

    async def goto(self, url, wait_until=None, timeout=None):
        self.actions.append(("goto", url))
        if self.goto_error is not None:
            raise self.goto_error
        self.url = url

    async def screenshot(self, type="png", full_page=False):
        return b"\x89PNG-fake"

    async def title(self):
        return f"Title of {self.url}"

    async def evaluate(self, script, arg=None):
        self.actions.append(("evaluate", arg))
        if "scrollBy" in script:
            self.scroll_y += arg
            return None
        if "window.scrollY" in script:
            return self.scroll_y
        if "document.title" in script:
            return {"title": await self.title(), "url": self.url, "headings": [], "links": [], "paragraphs": [], "forms": []}
        return None

    async def wait_for_timeout(self, ms):
        return None

    async def wait_for_load_state(self, state=None, timeout=None):
        return None

    async def click(self, selector):
        self.actions.append(("click", selector))

    async def fill(self, selector, text):
        self.actions.append(("fill", selector, text))

    async def query_selector(self, selector):
        return None


class FakeSessionFactory:
    def __init__(self):
        self.created: List[BrowserSession] = []
        self.closed: List[str] = []
        self.goto_error: Optional[Exception] = None

    async def __call__(self, session_id: str) -> BrowserSession:
        async def closer():
            self.closed.append(session_id)

        session = BrowserSession(session_id=session_id, page=FakePage(self.goto_error), last_activity=0.0, closer=closer)
        self.created.append(session)
        return session


class FakeAdapter:
    """Stands in for a provider adapter and counts how often it was invoked."""

    def __init__(self, name: str, result: Optional[ProviderResult] = None, raises: Optional[Exception] = None):
        self.name = name
        self.supports_vision = False
        self.result = result if result is not None else ProviderResult.failure(name, "network")
        self.raises = raises
        self.calls = 0

    async def invoke(self, validated, http_client, request_id: str = "-") -> ProviderResult:
        self.calls += 1
        if self.raises is not None:
            raise self.raises
        return self.result


def success_result(name: str, content: str = "ok") -> ProviderResult:
    return ProviderResult(success=True, content=content, model_used=f"{name}-model", usage=Usage(1, 1, 2), provider=name)


def make_validated(text: str = "Hello there", history: Optional[List[Dict[str, Any]]] = None, **fields) -> ValidatedRequest:
    messages = list(history or []) + [{"role": "user", "content": text}]
    request = ChatRequestModel.model_validate({"messages": messages, **fields})
    return ValidatedRequest(request=request, last_user_text=text)


@pytest.fixture
def vendor_stub() -> VendorStub:
    return VendorStub()


@pytest.fixture
def session_factory() -> FakeSessionFactory:
    return FakeSessionFactory()


@pytest.fixture
def client(vendor_stub, session_factory):
    app = create_app(
        http_transport=httpx.MockTransport(vendor_stub),
        browser_session_factory=session_factory,
        responder_seed=7,
    )
    with TestClient(app) as test_client:
        yield test_client
