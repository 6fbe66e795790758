"""
Playwright-backed PageFetcher session.

One BrowserSession owns one headless Chromium and one browser context for the
whole audit. The crawler, the homepage fallback fetch and the screenshot all go
through it one after another; nothing touches it concurrently.

Navigation walks a fixed list of wait strategies until one succeeds:
    NOT_STARTED -> ATTEMPTING(strategy_i) -> SUCCEEDED | EXHAUSTED
EXHAUSTED raises FetchError.
"""
import logging
import re
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import AsyncIterator, List, Optional, Protocol, Tuple

from siteaudit.config import Settings, settings as default_settings
from siteaudit.errors import FetchError

logger = logging.getLogger(__name__)

VIEWPORT = {"width": 1366, "height": 768}
WAIT_STRATEGIES: Tuple[str, ...] = ("domcontentloaded", "load", "commit")

LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--disable-blink-features=AutomationControlled",
    "--window-size=1366,768",
]

_BLOCKED_HOSTS_RE = re.compile(
    r"(doubleclick\.net|googletagmanager\.com|google-analytics\.com|hotjar\.com|facebook\.net"
    r"|optimizely\.com|segment\.io|newrelic\.com|nr-data\.net)",
    re.IGNORECASE,
)
_BLOCKED_RESOURCE_TYPES = {"media", "font"}

_STEALTH_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', { get: () => false });
Object.defineProperty(navigator, 'plugins', { get: () => [1, 2, 3] });
"""


class PageFetcher(Protocol):
    """One reusable tab: navigate, then read content / links / pixels of the current page."""

    async def navigate(self, url: str) -> str: ...

    async def content(self) -> str: ...

    async def hrefs(self) -> List[str]: ...

    async def screenshot(self) -> bytes: ...


# ── Navigation state machine ─────────────────────────────────────────────────

class NavigationState(Enum):
    NOT_STARTED = "not_started"
    ATTEMPTING = "attempting"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"


@dataclass
class Navigation:
    """Tracks which wait strategy is being tried for one navigation."""
    url: str
    strategies: Tuple[str, ...] = WAIT_STRATEGIES
    state: NavigationState = NavigationState.NOT_STARTED
    index: int = -1
    errors: List[str] = field(default_factory=list)

    @property
    def strategy(self) -> Optional[str]:
        if self.state is NavigationState.ATTEMPTING or self.state is NavigationState.SUCCEEDED:
            return self.strategies[self.index]
        return None

    def advance(self) -> Optional[str]:
        """Move to the next strategy; None (and EXHAUSTED) when the list is used up."""
        if self.state in (NavigationState.SUCCEEDED, NavigationState.EXHAUSTED):
            return None
        self.index += 1
        if self.index >= len(self.strategies):
            self.state = NavigationState.EXHAUSTED
            return None
        self.state = NavigationState.ATTEMPTING
        return self.strategies[self.index]

    def succeed(self) -> None:
        self.state = NavigationState.SUCCEEDED

    def fail(self, exc: Exception) -> None:
        self.errors.append(f"{self.strategies[self.index]}: {exc}")


async def navigate_with_fallback(page, url: str, timeout_ms: float, strategies=WAIT_STRATEGIES) -> Navigation:
    """Run page.goto with each wait strategy in turn until one succeeds."""
    nav = Navigation(url=url, strategies=tuple(strategies))
    while True:
        strategy = nav.advance()
        if strategy is None:
            break
        try:
            await page.goto(url, wait_until=strategy, timeout=timeout_ms)
        except Exception as exc:
            nav.fail(exc)
            logger.debug(f"[Browser] goto {url} ({strategy}) failed: {exc}")
            continue
        nav.succeed()
        break
    return nav


# ── Page wrapper ─────────────────────────────────────────────────────────────

class PlaywrightPageFetcher:
    """PageFetcher over a single Playwright page."""

    def __init__(self, page, config: Settings):
        self._page = page
        self._config = config

    async def navigate(self, url: str) -> str:
        nav = await navigate_with_fallback(self._page, url, self._config.NAV_TIMEOUT_S * 1000)
        if nav.state is not NavigationState.SUCCEEDED:
            raise FetchError(f"Navigation to {url} exhausted: {'; '.join(nav.errors)}")
        # Best-effort settling; slow pages still yield whatever rendered so far.
        try:
            await self._page.wait_for_selector("body", timeout=self._config.BODY_WAIT_S * 1000)
        except Exception:
            logger.debug(f"[Browser] no <body> within wait for {url}")
        try:
            await self._page.wait_for_load_state("networkidle", timeout=self._config.IDLE_WAIT_S * 1000)
        except Exception:
            logger.debug(f"[Browser] network not idle for {url}")
        return self._page.url

    async def content(self) -> str:
        try:
            return await self._page.content() or ""
        except Exception as exc:
            raise FetchError(f"Could not read content: {exc}") from exc

    async def hrefs(self) -> List[str]:
        try:
            values = await self._page.eval_on_selector_all(
                "a[href]", "els => els.map(a => a.getAttribute('href'))"
            )
        except Exception as exc:
            raise FetchError(f"Could not extract links: {exc}") from exc
        return [v for v in values if v]

    async def screenshot(self) -> bytes:
        try:
            return await self._page.screenshot(full_page=False)
        except Exception as exc:
            raise FetchError(f"Screenshot failed: {exc}") from exc


# ── Session ──────────────────────────────────────────────────────────────────

async def _route_filter(route) -> None:
    request = route.request
    if _BLOCKED_HOSTS_RE.search(request.url) or request.resource_type in _BLOCKED_RESOURCE_TYPES:
        await route.abort()
    else:
        await route.continue_()


class BrowserSession:
    """
    Scoped owner of one headless Chromium for crawling and screenshots.

        async with BrowserSession() as session:
            async with session.page() as fetcher:
                await fetcher.navigate(url)
    """

    def __init__(self, config: Optional[Settings] = None):
        self.config = config or default_settings
        self._pw = None
        self._browser = None
        self._context = None

    async def __aenter__(self) -> "BrowserSession":
        from playwright.async_api import async_playwright

        self._pw = await async_playwright().start()
        try:
            self._browser = await self._pw.chromium.launch(
                headless=True,
                executable_path=self.config.CHROME_PATH or None,
                args=LAUNCH_ARGS,
            )
            self._context = await self._browser.new_context(
                user_agent=self.config.AUDIT_UA,
                viewport=VIEWPORT,
                locale="en-US",
                extra_http_headers={
                    "Accept-Language": self.config.ACCEPT_LANGUAGE,
                    "Upgrade-Insecure-Requests": "1",
                },
            )
            await self._context.add_init_script(_STEALTH_SCRIPT)
            await self._context.route("**/*", _route_filter)
        except Exception:
            await self.close()
            raise
        logger.info("[Browser] Session started.")
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        for name in ("_context", "_browser"):
            handle = getattr(self, name)
            if handle is not None:
                try:
                    await handle.close()
                except Exception as exc:
                    logger.debug(f"[Browser] close {name} failed: {exc}")
                setattr(self, name, None)
        if self._pw is not None:
            try:
                await self._pw.stop()
            except Exception as exc:
                logger.debug(f"[Browser] playwright stop failed: {exc}")
            self._pw = None
            logger.info("[Browser] Session closed.")

    @asynccontextmanager
    async def page(self) -> AsyncIterator[PlaywrightPageFetcher]:
        """One tab for the duration of the block."""
        if self._context is None:
            raise FetchError("Browser session is not open")
        tab = await self._context.new_page()
        try:
            yield PlaywrightPageFetcher(tab, self.config)
        finally:
            try:
                await tab.close()
            except Exception as exc:
                logger.debug(f"[Browser] tab close failed: {exc}")
