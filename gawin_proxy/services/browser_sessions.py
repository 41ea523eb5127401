"""
Headless browser sessions.

``SessionPool`` keeps the live sessions keyed by id and evicts the idle ones;
the pool is created in the application lifespan and a background reaper task
sweeps it periodically. ``BrowserAutomationService`` runs the individual
actions against a session's page.
"""
import time
import uuid
import asyncio
import base64
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional

from playwright.async_api import async_playwright, Error as PlaywrightError, TimeoutError as PlaywrightTimeoutError

from ..core.config import (
    BROWSER_NAVIGATION_TIMEOUT_MS,
    BROWSER_SESSION_MAX_AGE_SECONDS,
    BROWSER_USER_AGENT,
)
from ..core.errors import BrowserActionError, SessionNotFoundError, UnknownActionError, ValidationError
from ..models.api_models import BrowserAutomationRequest

logger = logging.getLogger("Gawin.Browser")

ACTIONS = {
    "start": "Start new browser session",
    "navigate": "Navigate to URL",
    "screenshot": "Take screenshot",
    "scroll": "Scroll page",
    "click": "Click element",
    "type": "Type text",
    "search": "Perform search",
    "analyze": "Analyze page content",
    "close": "Close session",
}

SEARCH_SELECTORS = [
    'input[type="search"]',
    'input[name="q"]',
    'input[name="query"]',
    'input[name="search"]',
    'input[placeholder*="search" i]',
    ".search-input",
    "#search-input",
    "#q",
]

DEFAULT_SCROLL_AMOUNT = 500

PAGE_DATA_SCRIPT = """() => ({
  title: document.title,
  url: window.location.href,
  headings: Array.from(document.querySelectorAll('h1, h2, h3, h4, h5, h6')).map(h => ({
    tag: h.tagName.toLowerCase(),
    text: (h.textContent || '').trim()
  })),
  links: Array.from(document.querySelectorAll('a[href]')).slice(0, 20).map(a => ({
    text: (a.textContent || '').trim(),
    href: a.getAttribute('href') || ''
  })),
  paragraphs: Array.from(document.querySelectorAll('p')).slice(0, 10)
    .map(p => (p.textContent || '').trim())
    .filter(text => text.length > 50),
  forms: Array.from(document.querySelectorAll('form')).map(form => ({
    action: form.action,
    method: form.method,
    inputs: Array.from(form.querySelectorAll('input, textarea, select')).map(input => ({
      type: input.getAttribute('type') || input.tagName.toLowerCase(),
      name: input.getAttribute('name') || '',
      placeholder: input.getAttribute('placeholder') || ''
    }))
  }))
})"""


@dataclass
class BrowserSession:
    session_id: str
    page: Any
    last_activity: float
    # teardown for whatever launched the page (browser, playwright driver)
    closer: Optional[Callable[[], Awaitable[None]]] = None
    closed: bool = field(default=False, init=False)

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        if self.closer is not None:
            await self.closer()


SessionFactory = Callable[[str], Awaitable[BrowserSession]]


def find_expired_sessions(last_activity: Mapping[str, float], now: float, max_age: float) -> List[str]:
    """Ids idle for strictly longer than ``max_age`` seconds."""
    return [sid for sid, seen in last_activity.items() if now - seen > max_age]


class SessionPool:
    def __init__(self, max_age: float = BROWSER_SESSION_MAX_AGE_SECONDS, clock: Callable[[], float] = time.monotonic):
        self.max_age = max_age
        self.clock = clock
        self._sessions: Dict[str, BrowserSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def add(self, session: BrowserSession) -> None:
        session.last_activity = self.clock()
        self._sessions[session.session_id] = session

    def get(self, session_id: Optional[str]) -> Optional[BrowserSession]:
        if not session_id:
            return None
        return self._sessions.get(session_id)

    def touch(self, session_id: str) -> None:
        session = self._sessions.get(session_id)
        if session is not None:
            session.last_activity = self.clock()

    def remove(self, session_id: str) -> Optional[BrowserSession]:
        return self._sessions.pop(session_id, None)

    def snapshot(self) -> Dict[str, float]:
        return {sid: s.last_activity for sid, s in self._sessions.items()}

    def evict_expired(self, now: Optional[float] = None) -> List[BrowserSession]:
        """Drop idle sessions from the pool and hand them back for closing."""
        now = self.clock() if now is None else now
        expired = find_expired_sessions(self.snapshot(), now, self.max_age)
        return [s for s in (self._sessions.pop(sid, None) for sid in expired) if s is not None]

    async def sweep(self, now: Optional[float] = None) -> int:
        evicted = self.evict_expired(now)
        for session in evicted:
            try:
                await session.close()
            except Exception as e:
                logger.warning(f"Closing expired browser session {session.session_id} failed: {e}", exc_info=True)
        if evicted:
            logger.info(f"Evicted {len(evicted)} idle browser session(s); {len(self)} still active.")
        return len(evicted)

    async def run_reaper(self, interval: float) -> None:
        logger.info(f"Browser session reaper started (interval {interval}s, max age {self.max_age}s).")
        while True:
            await asyncio.sleep(interval)
            try:
                await self.sweep()
            except Exception as e:
                logger.error(f"Browser session sweep failed: {e}", exc_info=True)

    async def close_all(self) -> None:
        sessions = list(self._sessions.values())
        self._sessions.clear()
        for session in sessions:
            try:
                await session.close()
            except Exception as e:
                logger.warning(f"Closing browser session {session.session_id} failed: {e}", exc_info=True)
        if sessions:
            logger.info(f"Closed {len(sessions)} browser session(s) at shutdown.")


async def launch_playwright_session(session_id: str) -> BrowserSession:
    """Headless Chromium with a single page."""
    playwright = await async_playwright().start()
    try:
        browser = await playwright.chromium.launch(
            headless=True,
            args=[
                "--no-sandbox",
                "--disable-setuid-sandbox",
                "--disable-dev-shm-usage",
                "--disable-gpu",
                "--window-size=1280,720",
            ],
        )
    except PlaywrightError:
        await playwright.stop()
        raise
    try:
        context = await browser.new_context(viewport={"width": 1280, "height": 720}, user_agent=BROWSER_USER_AGENT)
        page = await context.new_page()
    except PlaywrightError:
        try:
            await browser.close()
        finally:
            await playwright.stop()
        raise

    async def closer() -> None:
        try:
            await browser.close()
        finally:
            await playwright.stop()

    return BrowserSession(session_id=session_id, page=page, last_activity=time.monotonic(), closer=closer)


def new_session_id() -> str:
    return f"session_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


class BrowserAutomationService:
    def __init__(self, pool: SessionPool, session_factory: SessionFactory = launch_playwright_session):
        self.pool = pool
        self.session_factory = session_factory

    def info(self) -> Dict[str, Any]:
        return {
            "message": "Browser Automation API",
            "activeSessions": len(self.pool),
            "actions": [f"{name} - {desc}" for name, desc in ACTIONS.items()],
        }

    async def execute(self, request: BrowserAutomationRequest, request_id: str = "-") -> Dict[str, Any]:
        action = request.action
        if action not in ACTIONS:
            raise UnknownActionError(f"Unknown action: {action}")

        log_prefix = f"RID-{request_id}"
        if action == "start":
            return await self._start(request, log_prefix)

        session = self.pool.get(request.session_id)
        if session is None:
            raise SessionNotFoundError()
        self.pool.touch(session.session_id)

        logger.info(f"{log_prefix}: browser action '{action}' on {session.session_id}")
        handler = getattr(self, f"_{action}")
        try:
            return await handler(session, request)
        except PlaywrightError as e:
            logger.warning(f"{log_prefix}: browser action '{action}' failed: {e}")
            raise BrowserActionError(details=str(e)[:500])

    async def _snapshot(self, session: BrowserSession, with_title: bool = True) -> Dict[str, Any]:
        png = await session.page.screenshot(type="png", full_page=False)
        data: Dict[str, Any] = {
            "success": True,
            "sessionId": session.session_id,
            "screenshot": base64.b64encode(png).decode("ascii"),
            "url": session.page.url,
        }
        if with_title:
            data["title"] = await session.page.title()
        return data

    async def _start(self, request: BrowserAutomationRequest, log_prefix: str) -> Dict[str, Any]:
        session_id = new_session_id()
        try:
            session = await self.session_factory(session_id)
        except PlaywrightError as e:
            logger.error(f"{log_prefix}: failed to launch browser: {e}")
            raise BrowserActionError("Failed to start browser session", details=str(e)[:500])
        self.pool.add(session)
        logger.info(f"{log_prefix}: browser session {session_id} started ({len(self.pool)} active).")
        try:
            if request.url:
                await session.page.goto(request.url, wait_until="networkidle", timeout=BROWSER_NAVIGATION_TIMEOUT_MS)
            return await self._snapshot(session)
        except PlaywrightError as e:
            logger.warning(f"{log_prefix}: browser session {session_id} failed on first load, closing it: {e}")
            self.pool.remove(session_id)
            try:
                await session.close()
            except Exception as close_error:
                logger.warning(f"{log_prefix}: closing browser session {session_id} failed: {close_error}", exc_info=True)
            raise BrowserActionError(details=str(e)[:500])

    async def _navigate(self, session: BrowserSession, request: BrowserAutomationRequest) -> Dict[str, Any]:
        if not request.url:
            raise ValidationError("url is required for navigate")
        await session.page.goto(request.url, wait_until="networkidle", timeout=BROWSER_NAVIGATION_TIMEOUT_MS)
        return await self._snapshot(session)

    async def _screenshot(self, session: BrowserSession, request: BrowserAutomationRequest) -> Dict[str, Any]:
        return await self._snapshot(session)

    async def _scroll(self, session: BrowserSession, request: BrowserAutomationRequest) -> Dict[str, Any]:
        coords = request.coordinates
        page = session.page
        if coords is None:
            await page.evaluate("(amount) => window.scrollBy(0, amount)", DEFAULT_SCROLL_AMOUNT)
        elif coords.direction in ("up", "down"):
            amount = coords.amount or DEFAULT_SCROLL_AMOUNT
            await page.evaluate("(amount) => window.scrollBy(0, amount)", amount if coords.direction == "down" else -amount)
        else:
            await page.evaluate("([x, y]) => window.scrollTo(x, y)", [coords.x or 0, coords.y or 0])
        await page.wait_for_timeout(1000)

        data = await self._snapshot(session, with_title=False)
        data["scrollY"] = await page.evaluate("() => window.scrollY")
        return data

    async def _click(self, session: BrowserSession, request: BrowserAutomationRequest) -> Dict[str, Any]:
        page = session.page
        if request.element_selector:
            await page.click(request.element_selector)
        elif request.coordinates and request.coordinates.x is not None and request.coordinates.y is not None:
            await page.mouse.click(request.coordinates.x, request.coordinates.y)
        else:
            raise ValidationError("elementSelector or coordinates are required for click")
        try:
            await page.wait_for_load_state("domcontentloaded", timeout=5000)
        except PlaywrightTimeoutError:
            logger.debug(f"Click on {session.session_id} did not trigger a load within 5s.")
        return await self._snapshot(session)

    async def _type(self, session: BrowserSession, request: BrowserAutomationRequest) -> Dict[str, Any]:
        if not request.element_selector:
            raise ValidationError("elementSelector is required for type")
        await session.page.fill(request.element_selector, request.query or "")
        return await self._snapshot(session, with_title=False)

    async def _search(self, session: BrowserSession, request: BrowserAutomationRequest) -> Dict[str, Any]:
        if not request.query:
            raise ValidationError("query is required for search")
        page = session.page
        search_input = None
        for selector in SEARCH_SELECTORS:
            search_input = await page.query_selector(selector)
            if search_input is not None:
                break

        if search_input is not None:
            await search_input.fill(request.query)
            await search_input.press("Enter")
            try:
                await page.wait_for_load_state("networkidle", timeout=10000)
            except PlaywrightTimeoutError:
                logger.debug(f"Search on {session.session_id} did not settle within 10s.")

        data = await self._snapshot(session)
        data["searchPerformed"] = search_input is not None
        return data

    async def _analyze(self, session: BrowserSession, request: BrowserAutomationRequest) -> Dict[str, Any]:
        page_data = await session.page.evaluate(PAGE_DATA_SCRIPT)
        data = await self._snapshot(session, with_title=False)
        data["pageData"] = page_data
        data["query"] = request.query
        return data

    async def _close(self, session: BrowserSession, request: BrowserAutomationRequest) -> Dict[str, Any]:
        self.pool.remove(session.session_id)
        await session.close()
        logger.info(f"Browser session {session.session_id} closed ({len(self.pool)} active).")
        return {"success": True, "sessionId": session.session_id, "closed": True}
