"""
Orchestrates a full site audit:
  1. Open one browser session (closed on every exit path)
  2. Crawl up to MAX_PAGES same-site pages; fall back to the homepage alone
  3. Best-effort homepage screenshot through the same session
  4. Lab audit: LAB_RUNS Lighthouse passes in a separate browser, per-metric median
  5. Optional PageSpeed field data, blended 70/30 into lab performance (PSI_BLEND)
  6. Signal extraction from the crawled pages
  7. Rubric resolution + scoring
  8. Report assembly

Only a malformed URL (InvalidInputError) or a broken rubric setup
(ConfigurationError, raised when the pipeline is built) reach the caller.
Every other stage failure is logged and replaced by an empty/None value.
"""
import base64
import logging
from dataclasses import replace
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional

from siteaudit.browser.session import BrowserSession
from siteaudit.config import Settings, settings as default_settings
from siteaudit.crawl.crawler import Page, SiteCrawler
from siteaudit.crawl.urls import canonicalize
from siteaudit.errors import require_http_url
from siteaudit.lab.lighthouse import LighthouseAuditor, measure_median
from siteaudit.lab.metrics import LabMetrics
from siteaudit.lab.pagespeed import fetch_field_data, field_performance_proxy
from siteaudit.report import AuditReport
from siteaudit.scoring.engine import ScoredSection, evaluate
from siteaudit.scoring.rubrics import RubricRegistry, default_registry
from siteaudit.signals.producer import HtmlSignalProducer, SignalProducer

logger = logging.getLogger(__name__)

LAB_WEIGHT = 0.7  # share of lab performance when blending with field data

FieldFetcher = Callable[[str], Awaitable[Optional[Dict[str, Any]]]]


class AuditPipeline:
    """Sequential audit stages over injectable collaborators."""

    def __init__(
        self,
        config: Optional[Settings] = None,
        rubrics: Optional[RubricRegistry] = None,
        session_factory: Optional[Callable[[], Any]] = None,
        crawler: Optional[SiteCrawler] = None,
        lab_auditor_factory: Optional[Callable[[], Any]] = None,
        field_fetcher: Optional[FieldFetcher] = None,
        signal_producer: Optional[SignalProducer] = None,
        max_pages: Optional[int] = None,
        capture_screenshot: bool = True,
    ):
        self.config = config or default_settings
        # Built eagerly so a missing rubric setup fails at startup, not per request.
        self.rubrics = rubrics or default_registry(self.config.DEFAULT_CATEGORY)
        self.session_factory = session_factory or (lambda: BrowserSession(self.config))
        self.crawler = crawler or SiteCrawler(self.config)
        self.lab_auditor_factory = lab_auditor_factory or (lambda: LighthouseAuditor(self.config))
        self.field_fetcher = field_fetcher or (lambda url: fetch_field_data(url, self.config))
        self.signal_producer = signal_producer or HtmlSignalProducer(self.config)
        self.max_pages = max(10, min(50, max_pages if max_pages is not None else self.config.MAX_PAGES))
        self.capture_screenshot = capture_screenshot

    # ── Browser stages ───────────────────────────────────────────────────────

    async def _crawl(self, session, url: str) -> List[Page]:
        try:
            return await self.crawler.crawl(url, self.max_pages, session)
        except Exception as exc:
            logger.warning(f"[Pipeline] Crawl failed for {url}: {exc}")
            return []

    async def _fetch_homepage(self, session, url: str) -> List[Page]:
        try:
            async with session.page() as fetcher:
                await fetcher.navigate(url)
                html = await fetcher.content()
        except Exception as exc:
            logger.warning(f"[Pipeline] Homepage fallback failed for {url}: {exc}")
            return []
        return [Page(url=canonicalize(url) or url, html=html)]

    async def _screenshot(self, session, url: str) -> Optional[str]:
        if not self.capture_screenshot:
            return None
        try:
            async with session.page() as fetcher:
                await fetcher.navigate(url)
                data = await fetcher.screenshot()
        except Exception as exc:
            logger.warning(f"[Pipeline] Screenshot failed for {url}: {exc}")
            return None
        return base64.b64encode(data).decode("ascii")

    async def _browser_stages(self, url: str):
        pages: List[Page] = []
        screenshot: Optional[str] = None
        try:
            async with self.session_factory() as session:
                pages = await self._crawl(session, url)
                if not pages:
                    logger.info("[Pipeline] Crawl empty; fetching homepage only.")
                    pages = await self._fetch_homepage(session, url)
                screenshot = await self._screenshot(session, url)
        except Exception as exc:
            logger.warning(f"[Pipeline] Browser session failed: {exc}")
        return pages, screenshot

    # ── Measurement stages ───────────────────────────────────────────────────

    async def _lab_stage(self, url: str) -> LabMetrics:
        strategy = self.config.lab_strategy
        try:
            async with self.lab_auditor_factory() as auditor:
                return await measure_median(auditor, url, self.config.LAB_RUNS, strategy=strategy)
        except Exception as exc:
            logger.warning(f"[Pipeline] Lab audit unavailable for {url}: {exc}")
            return LabMetrics(strategy=strategy)

    async def _field_proxy(self, url: str) -> Optional[float]:
        try:
            psi = await self.field_fetcher(url)
        except Exception as exc:
            logger.warning(f"[Pipeline] Field data failed for {url}: {exc}")
            return None
        return field_performance_proxy(psi)

    async def _signals(self, pages: List[Page]) -> Dict[str, Any]:
        try:
            return dict(await self.signal_producer.produce(pages) or {})
        except Exception as exc:
            logger.warning(f"[Pipeline] Signal extraction failed: {exc}")
            return {}

    def _score(self, signals: Dict[str, Any], category: str, lab: LabMetrics) -> Dict[str, ScoredSection]:
        try:
            rubric = self.rubrics.resolve(category)
            return evaluate(signals, category, lab.for_scoring(), rubric=rubric)
        except Exception as exc:
            logger.warning(f"[Pipeline] Scoring failed: {exc}")
            return {}

    # ── Entry point ──────────────────────────────────────────────────────────

    async def run_audit(self, target_url: str, category: str = "base") -> AuditReport:
        """
        Audit target_url under the given category.
        Raises InvalidInputError for a malformed URL; otherwise always returns a report.
        """
        url = require_http_url(target_url)
        if category not in self.rubrics:
            logger.warning(f"[Pipeline] Unknown category {category!r}; using '{self.rubrics.default_category}'")
            category = self.rubrics.default_category
        started_at = datetime.now().isoformat()
        logger.info(f"[Pipeline] START — url='{url}', category='{category}', max_pages={self.max_pages}")

        pages, screenshot = await self._browser_stages(url)

        # Lab browser starts only after the crawl session is closed.
        lab = await self._lab_stage(url)
        field_proxy = await self._field_proxy(url)
        reported_lab = replace(lab, field_proxy=field_proxy)
        scoring_lab = lab.blended(field_proxy, LAB_WEIGHT) if self.config.PSI_BLEND else reported_lab

        signals = await self._signals(pages)
        scores = self._score(signals, category, scoring_lab)

        report = AuditReport(
            url=url,
            category=category,
            signals=signals,
            scores=scores,
            lab_metrics=reported_lab,
            screenshot=screenshot,
            pages_crawled=len(pages),
        )
        grades = {name: s.grade for name, s in scores.items()}
        logger.info(
            f"[Pipeline] DONE — started_at={started_at} pages={len(pages)} "
            f"lab={'yes' if not lab.empty else 'no'} signals={len(signals)} grades={grades}"
        )
        return report


async def run_audit(
    target_url: str,
    category: str = "base",
    config: Optional[Settings] = None,
    max_pages: Optional[int] = None,
) -> AuditReport:
    """Run an audit with the default Playwright / Lighthouse / PSI collaborators."""
    return await AuditPipeline(config=config, max_pages=max_pages).run_audit(target_url, category)
