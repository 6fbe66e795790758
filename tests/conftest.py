"""Shared fakes: an in-memory site behind a fake browser session, and mock HTTP."""
from contextlib import asynccontextmanager
from typing import Callable, Dict, List, Optional

import httpx
import pytest

from siteaudit.config import Settings
from siteaudit.errors import FetchError


class FakeFetcher:
    """PageFetcher over FakeSession.site: url -> {"html", "hrefs", "final_url", "fail"}."""

    def __init__(self, session: "FakeSession"):
        self.session = session
        self.current: Optional[dict] = None

    async def navigate(self, url: str) -> str:
        self.session.visits.append(url)
        entry = self.session.site.get(url)
        if entry is None or entry.get("fail"):
            raise FetchError(f"cannot load {url}")
        self.current = entry
        return entry.get("final_url", url)

    async def content(self) -> str:
        return self.current.get("html", "<html><body>ok</body></html>")

    async def hrefs(self) -> List[str]:
        return list(self.current.get("hrefs", []))

    async def screenshot(self) -> bytes:
        if self.session.screenshot_fails:
            raise FetchError("no pixels")
        return b"\x89PNG fake"


class FakeSession:
    """Stands in for BrowserSession; records lifecycle events into `events`."""

    def __init__(
        self,
        site: Optional[Dict[str, dict]] = None,
        screenshot_fails: bool = False,
        fail_on_enter: bool = False,
        events: Optional[list] = None,
    ):
        self.site = site or {}
        self.screenshot_fails = screenshot_fails
        self.fail_on_enter = fail_on_enter
        self.events = events if events is not None else []
        self.visits: List[str] = []
        self.tabs_opened = 0
        self.tabs_closed = 0

    async def __aenter__(self):
        if self.fail_on_enter:
            raise RuntimeError("browser failed to launch")
        self.events.append("session_open")
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.events.append("session_close")

    @asynccontextmanager
    async def page(self):
        self.tabs_opened += 1
        try:
            yield FakeFetcher(self)
        finally:
            self.tabs_closed += 1


def mock_client(routes: Dict[str, object]) -> httpx.AsyncClient:
    """AsyncClient answering from `routes` (url -> text or status code); 404 otherwise."""

    def handler(request: httpx.Request) -> httpx.Response:
        key = f"{request.url.scheme}://{request.url.host}{request.url.path}"
        value = routes.get(key)
        if value is None:
            return httpx.Response(404, text="not found")
        if isinstance(value, int):
            return httpx.Response(value)
        if isinstance(value, Exception):
            raise value
        return httpx.Response(200, text=value)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def page(hrefs=(), html: str = "<html><body><p>hello</p></body></html>", **extra) -> dict:
    return {"html": html, "hrefs": list(hrefs), **extra}


@pytest.fixture
def config() -> Settings:
    return Settings(
        RESPECT_ROBOTS=True,
        SITEMAP_SEED_LIMIT=10,
        FRONTIER_SLACK=8,
        PSI_API_KEY=None,
        PSI_BLEND=False,
        LAB_RUNS=3,
    )


@pytest.fixture
def make_client() -> Callable[[Dict[str, object]], httpx.AsyncClient]:
    return mock_client
