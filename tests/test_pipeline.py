import base64
import json

import pytest

from siteaudit.crawl.crawler import Page
from siteaudit.errors import InvalidInputError, MeasurementError
from siteaudit.pipeline import AuditPipeline
from siteaudit.report import report_to_dict
from tests.conftest import FakeSession, page

URL = "https://example.com/"
GOOD_PSI = {"loadingExperience": {"metrics": {
    "LARGEST_CONTENTFUL_PAINT_MS": {"distributions": [{"min": 0, "proportion": 1.0}]},
}}}


class FakeCrawler:
    def __init__(self, pages=None, error=None):
        self.pages = pages or []
        self.error = error
        self.budget = None

    async def crawl(self, start_url, max_pages, session):
        self.budget = max_pages
        if self.error:
            raise self.error
        return list(self.pages)


class FakeLab:
    def __init__(self, events, result=None, fail_on_enter=False):
        self.events = events
        self.result = result or {"performance": 0.5, "accessibility": 0.9, "seo": 1.0, "best_practices": 0.8}
        self.fail_on_enter = fail_on_enter

    async def __aenter__(self):
        if self.fail_on_enter:
            raise MeasurementError("no chrome")
        self.events.append("lab_open")
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.events.append("lab_close")

    async def run(self, url):
        return dict(self.result)


class RecordingProducer:
    def __init__(self, signals=None, error=None):
        self.signals = signals if signals is not None else {"titleMatch": 1.0, "sectionCount": 6}
        self.error = error
        self.received = None

    async def produce(self, pages):
        self.received = list(pages)
        if self.error:
            raise self.error
        return dict(self.signals)


def build(config, *, events=None, site=None, crawler=None, lab=None, psi=None, producer=None, **kwargs):
    events = events if events is not None else []
    site = site if site is not None else {URL: page()}

    async def field_fetcher(url):
        if isinstance(psi, Exception):
            raise psi
        return psi

    return AuditPipeline(
        config=config,
        session_factory=lambda: FakeSession(site, events=events),
        crawler=crawler or FakeCrawler([Page(url=URL, html="<html><body>hi</body></html>")]),
        lab_auditor_factory=lab or (lambda: FakeLab(events)),
        field_fetcher=field_fetcher,
        signal_producer=producer or RecordingProducer(),
        **kwargs,
    )


async def test_full_audit(config):
    events = []
    report = await build(config, events=events).run_audit(URL, "ecommerce")
    assert report.url == URL
    assert report.category == "ecommerce"
    assert report.pages_crawled == 1
    assert set(report.scores) == {"seo", "performance", "accessibility", "content", "ux"}
    assert report.scores["performance"].weighted_score == pytest.approx(0.5)
    assert report.lab_metrics.accessibility == pytest.approx(0.9)
    assert base64.b64decode(report.screenshot) == b"\x89PNG fake"
    assert events == ["session_open", "session_close", "lab_open", "lab_close"]


async def test_invalid_url_is_rejected(config):
    with pytest.raises(InvalidInputError):
        await build(config).run_audit("example.com")


async def test_unknown_category_uses_default(config):
    report = await build(config).run_audit(URL, "bakery")
    assert report.category == "base"


async def test_every_collaborator_failing_still_yields_a_report(config):
    pipeline = AuditPipeline(
        config=config,
        session_factory=lambda: FakeSession(fail_on_enter=True),
        crawler=FakeCrawler(error=RuntimeError("crawl exploded")),
        lab_auditor_factory=lambda: FakeLab([], fail_on_enter=True),
        field_fetcher=None,
        signal_producer=RecordingProducer(error=RuntimeError("parser died")),
    )

    async def broken_field(url):
        raise RuntimeError("psi down")

    pipeline.field_fetcher = broken_field
    report = await pipeline.run_audit(URL)
    assert report.pages_crawled == 0
    assert report.screenshot is None
    assert report.signals == {}
    assert report.lab_metrics.empty
    assert report.lab_metrics.field_proxy is None
    assert set(report.scores) == {"seo", "performance", "accessibility", "content", "ux"}
    assert all(s.grade == "F" for s in report.scores.values())


async def test_crawl_failure_falls_back_to_homepage(config):
    events = []
    producer = RecordingProducer()
    pipeline = build(config, events=events, crawler=FakeCrawler(error=RuntimeError("boom")), producer=producer)
    report = await pipeline.run_audit(URL)
    assert report.pages_crawled == 1
    assert [p.url for p in producer.received] == [URL]
    assert producer.received[0].html
    assert "session_close" in events


async def test_empty_crawl_falls_back_to_homepage(config):
    producer = RecordingProducer()
    report = await build(config, crawler=FakeCrawler([]), producer=producer).run_audit(URL)
    assert report.pages_crawled == 1


async def test_unreachable_homepage_yields_empty_pages(config):
    report = await build(config, site={}, crawler=FakeCrawler([])).run_audit(URL)
    assert report.pages_crawled == 0
    assert report.screenshot is None


@pytest.mark.parametrize("requested, expected", [(3, 10), (25, 25), (100, 50)])
async def test_page_budget_is_clamped(config, requested, expected):
    crawler = FakeCrawler([Page(url=URL, html="<p>x</p>")])
    await build(config, crawler=crawler, max_pages=requested).run_audit(URL)
    assert crawler.budget == expected


async def test_screenshot_can_be_disabled(config):
    report = await build(config, capture_screenshot=False).run_audit(URL)
    assert report.screenshot is None


async def test_field_data_reported_but_not_blended_by_default(config):
    report = await build(config, psi=GOOD_PSI).run_audit(URL)
    assert report.lab_metrics.field_proxy == pytest.approx(1.0)
    assert report.scores["performance"].weighted_score == pytest.approx(0.5)


async def test_field_data_blended_when_enabled(config):
    config.PSI_BLEND = True
    report = await build(config, psi=GOOD_PSI).run_audit(URL)
    assert report.scores["performance"].weighted_score == pytest.approx(0.65)
    assert report.lab_metrics.performance == pytest.approx(0.5)
    assert report.lab_metrics.field_proxy == pytest.approx(1.0)


async def test_lab_failure_leaves_lab_sections_at_zero(config):
    report = await build(config, lab=lambda: FakeLab([], fail_on_enter=True)).run_audit(URL)
    assert report.lab_metrics.empty
    assert report.scores["performance"].weighted_score == 0.0
    assert report.scores["content"].total_weight > 0


async def test_report_serializes_to_json(config):
    report = await build(config).run_audit(URL)
    data = report_to_dict(report)
    assert json.loads(json.dumps(data))["category"] == "base"
    assert data["scores"]["performance"]["rules"][0]["key"] == "pageSpeedScore"
    assert data["lab_metrics"]["performance"] == pytest.approx(0.5)
    assert all(fix["impact"] > 0 for fix in data["top_fixes"])
    assert len(data["top_fixes"]) <= 5
