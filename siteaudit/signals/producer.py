"""
Default signal producer: deterministic DOM heuristics over the crawled pages.

The homepage (first page) drives almost every signal; a few more pages are
sampled for trust cues and broken links. Values are 0..1 scores, booleans or
raw counts (sectionCount), keyed to match the shipped rubrics.
"""
import json
import logging
import re
from collections import Counter
from typing import Any, Dict, List, Optional, Protocol, Sequence
from urllib.parse import urljoin, urlsplit

import httpx
from bs4 import BeautifulSoup

from siteaudit.config import Settings, settings as default_settings
from siteaudit.crawl.crawler import Page

logger = logging.getLogger(__name__)

SignalMap = Dict[str, Any]

STOP_WORDS = {
    "the", "and", "for", "with", "you", "your", "our", "are", "this", "that", "from", "have",
    "has", "was", "were", "will", "can", "not", "but", "all", "any", "out", "use", "how",
    "why", "what", "about", "more", "into", "over", "under",
}
CTA_PHRASES = (
    "get started", "get a quote", "get quote", "request quote", "start now", "start free",
    "free trial", "try free", "book now", "book a demo", "request demo", "schedule demo",
    "contact sales", "contact us", "sign up", "learn more", "shop now", "buy now",
    "add to cart", "subscribe", "join now", "download", "compare plans",
)
_CTA_CLASS_RE = re.compile(r"(btn(?!-group)|primary|cta|button|hero|call-to-action)", re.IGNORECASE)
_TRUST_RE = re.compile(
    r"(reviews?|testimonials?|case stud(y|ies)|client stories|what our customers say|rating|★★★★★|stars?)",
    re.IGNORECASE,
)
_DECORATIVE_RE = re.compile(r"\b(sprite|placeholder|spacer|tracking|pixel)\b")

HEAD_TIMEOUT = 6.0
BROKEN_LINK_SAMPLE = 12


class SignalProducer(Protocol):
    async def produce(self, pages: Sequence[Page]) -> SignalMap: ...


# ── Text helpers ──────────────────────────────────────────────────────────────

def tokenize(text: str) -> List[str]:
    words = re.sub(r"[^a-z0-9\s]", " ", (text or "").lower()).split()
    return [w for w in words if len(w) >= 4 and w not in STOP_WORDS]


def top_keywords(text: str, n: int = 8) -> List[str]:
    return [w for w, _ in Counter(tokenize(text)).most_common(n)]


def jaccard(a: Sequence[str], b: Sequence[str]) -> float:
    sa, sb = set(a), set(b)
    union = sa | sb
    return len(sa & sb) / len(union) if union else 0.0


def presence_score(haystack: str, needle: str) -> float:
    if not needle:
        return 0.0
    hay = (haystack or "").lower()
    if hay == needle:
        return 1.0
    if needle in hay:
        return 0.8
    return 0.5 if any(len(w) >= 4 and w in hay for w in needle.split()) else 0.0


def range_score(value: float, low: float, high: float) -> float:
    if value <= 0:
        return 0.0
    if low <= value <= high:
        return 1.0
    distance = low - value if value < low else value - high
    return max(0.0, 1.0 - distance / (high - low))


def _text(node) -> str:
    return " ".join(node.get_text(" ").split()) if node is not None else ""


# ── DOM helpers ───────────────────────────────────────────────────────────────

def strip_boilerplate(soup: BeautifulSoup) -> None:
    for tag in soup(["script", "style", "noscript", "svg", "canvas", "iframe", "template",
                     "header", "nav", "footer", "aside"]):
        tag.decompose()
    for tag in soup.select('[id*="cookie"], [class*="cookie"], [id*="consent"], [class*="consent"]'):
        tag.decompose()


def main_node(soup: BeautifulSoup):
    preferred = soup.select_one('main, [role="main"], article')
    if preferred is not None:
        return preferred
    best, best_len = None, 0
    for el in soup.find_all(["section", "div"]):
        length = len(_text(el))
        if length > best_len:
            best, best_len = el, length
    return best or soup.body or soup


def dom_depth(node) -> int:
    children = [c for c in getattr(node, "children", []) if getattr(c, "name", None)]
    if not children:
        return 1
    return 1 + max(dom_depth(c) for c in children)


def ld_json_blocks(soup: BeautifulSoup) -> List[Any]:
    blocks = []
    for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
        try:
            blocks.append(json.loads(script.string or ""))
        except ValueError:
            continue
    return blocks


def ld_contains_types(blocks: List[Any], names: Sequence[str]) -> bool:
    wanted = {n.lower() for n in names}

    def check(node) -> bool:
        if isinstance(node, list):
            return any(check(n) for n in node)
        if not isinstance(node, dict):
            return False
        kind = node.get("@type")
        kinds = kind if isinstance(kind, list) else [kind]
        if any(isinstance(k, str) and k.lower() in wanted for k in kinds):
            return True
        return any(check(v) for v in node.values() if isinstance(v, (dict, list)))

    return any(check(b) for b in blocks)


def cta_clarity(node) -> float:
    hits = strong = above_fold = 0
    markup = str(node).lower()
    for el in node.select('a, button, [role="button"]'):
        text = _text(el).lower()
        if not text or len(text) > 120 or not any(p in text for p in CTA_PHRASES):
            continue
        hits += 1
        if _CTA_CLASS_RE.search(" ".join(el.get("class") or [])):
            strong += 1
        position = markup.find(text)
        if 0 <= position < 1500:
            above_fold += 1
    if not hits:
        return 0.0
    return min(1.0, 0.6 * min(1, hits / 2) + 0.25 * min(1, strong / 2) + 0.15 * min(1, above_fold / 2))


def alt_text_coverage(node) -> float:
    informative = []
    for img in node.find_all("img"):
        classes = " ".join(img.get("class") or []).lower()
        src = (img.get("src") or "").lower()
        alt = (img.get("alt") or "").strip()
        role = (img.get("role") or "").lower()
        if (img.get("aria-hidden") or "").lower() == "true" or role in ("presentation", "none"):
            continue
        if "decorative" in classes or "icon" in classes or _DECORATIVE_RE.search(f"{classes} {src}"):
            continue
        if "logo" in classes and not alt:
            continue
        informative.append(img)
    if not informative:
        return 1.0
    described = [
        img for img in informative
        if len((img.get("alt") or "").strip()) >= 3 or img.get("aria-label") or img.get("title")
    ]
    return len(described) / len(informative)


# ── Producer ──────────────────────────────────────────────────────────────────

class HtmlSignalProducer:
    """SignalProducer built on BeautifulSoup plus a handful of HEAD probes."""

    def __init__(self, config: Optional[Settings] = None, client: Optional[httpx.AsyncClient] = None):
        self.config = config or default_settings
        self._client = client

    async def produce(self, pages: Sequence[Page]) -> SignalMap:
        if not pages or not pages[0].html:
            logger.info("[Signals] No homepage content; nothing to extract.")
            return {}
        home = pages[0]
        signals = self.page_signals(home, pages)
        if self._client is not None:
            signals.update(await self.network_signals(self._client, home, pages))
        else:
            async with httpx.AsyncClient(headers={"User-Agent": self.config.AUDIT_UA}) as client:
                signals.update(await self.network_signals(client, home, pages))
        return signals

    def page_signals(self, home: Page, pages: Sequence[Page]) -> SignalMap:
        raw = BeautifulSoup(home.html, "html.parser")
        title_tag = raw.find("title")
        title = _text(title_tag)
        meta_desc_tag = raw.find("meta", attrs={"name": "description"})
        meta_desc = (meta_desc_tag.get("content") if meta_desc_tag else "") or ""
        robots_meta = raw.find("meta", attrs={"name": "robots"})
        viewport = raw.find("meta", attrs={"name": "viewport"})
        html_tag = raw.find("html")
        blocks = ld_json_blocks(raw)
        structured = bool(blocks) or raw.find(attrs={"itemscope": True}) is not None
        anchors = [a.get("href") for a in raw.find_all("a", href=True)]
        total_nodes = len(raw.find_all(True)) or 1
        depth = dom_depth(raw.body or raw)

        soup = BeautifulSoup(home.html, "html.parser")
        strip_boilerplate(soup)
        node = main_node(soup)
        main_text = _text(node)
        word_count = max(1, len(main_text.split()))

        headings = [_text(h).lower() for h in raw.find_all(["h1", "h2", "h3"])]
        levels = [int(h.name[1]) for h in raw.find_all(["h1", "h2", "h3"])]
        has_h1 = 1 in levels
        non_decreasing = all(b >= a for a, b in zip(levels, levels[1:]))
        header_flow = 0.0 if not has_h1 else (1.0 if non_decreasing else 0.5)

        topics = list(dict.fromkeys(
            top_keywords(title, 5) + top_keywords(" ".join(headings), 10) + top_keywords(main_text[:6000], 12)
        ))[:8]
        primary = topics[0] if topics else ""
        hits = len(re.findall(re.escape(primary), main_text, re.IGNORECASE)) if primary else 0
        density = hits / word_count
        if 0.01 <= density <= 0.03:
            density_score = 1.0
        elif density < 0.01:
            density_score = min(1.0, density / 0.01)
        else:
            density_score = min(1.0, 0.03 / density)

        section_count = len(node.find_all("section"))
        if not section_count:
            section_count = max(1, round(len(node.find_all(["div", "section"])) / 6))

        host = urlsplit(home.url).netloc.lower()
        resolved = []
        for href in anchors:
            if not href:
                continue
            try:
                resolved.append(urlsplit(urljoin(home.url, href)))
            except ValueError:
                continue
        internal = sum(1 for u in resolved if u.netloc.lower() == host)
        external_hosts = {u.netloc.lower() for u in resolved if u.netloc and u.netloc.lower() != host}

        trust = bool(_TRUST_RE.search(main_text)) or ld_contains_types(blocks, ["Review", "AggregateRating"])
        if not trust:
            for page in pages[1:5]:
                other = BeautifulSoup(page.html or "", "html.parser")
                if _TRUST_RE.search(_text(other.body)) or ld_contains_types(
                    ld_json_blocks(other), ["Review", "AggregateRating"]
                ):
                    trust = True
                    break

        return {
            "titleMatch": presence_score(title, primary),
            "metaMatch": (sum(1 for k in topics if k in meta_desc.lower()) / len(topics)) if topics else 0.0,
            "headerMatch": (
                sum(1 for h in headings if any(k in h for k in topics)) / len(headings) if headings else 0.0
            ),
            "densityScore": density_score,
            "semanticScore": jaccard(topics, top_keywords(main_text[:1200], 10)),
            "wordCountNormalized": range_score(word_count, 300, 1200),
            "sectionCount": section_count,
            "domDepthRatio": 1 - min(1.0, depth / total_nodes),
            "headerFlow": header_flow,
            "headerStructure": header_flow,
            "h1Single": 1.0 if levels.count(1) == 1 else 0.0,
            "ctaClarity": cta_clarity(node),
            "mobileConsistency": 1.0 if viewport is not None and viewport.get("content") else 0.6,
            "metaTagsPresent": (float(title_tag is not None) + float(meta_desc_tag is not None)) / 2,
            "altTextCoverage": alt_text_coverage(node),
            "internalLinks": min(1.0, internal / max(1, round(word_count / 200))),
            "externalLinks": min(1.0, len(external_hosts) / 5),
            "indexable": "noindex" not in ((robots_meta.get("content") if robots_meta else "") or "").lower(),
            "structuredDataPresent": structured,
            "trustSignalsPresent": trust,
            "canonicalPresent": raw.find("link", rel="canonical") is not None,
            "httpsUsage": urlsplit(home.url).scheme == "https",
            "langAttrPresent": bool(html_tag is not None and html_tag.get("lang")),
        }

    async def _head_status(self, client: httpx.AsyncClient, url: str) -> int:
        try:
            resp = await client.head(url, timeout=HEAD_TIMEOUT, follow_redirects=True)
            return resp.status_code
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.debug(f"[Signals] HEAD {url} failed: {exc}")
            return 0

    async def network_signals(self, client: httpx.AsyncClient, home: Page, pages: Sequence[Page]) -> SignalMap:
        """robots.txt / sitemap.xml presence and a small broken-link sample."""
        origin = "{0.scheme}://{0.netloc}".format(urlsplit(home.url))
        robots = await self._head_status(client, urljoin(origin, "/robots.txt"))
        sitemap = await self._head_status(client, urljoin(origin, "/sitemap.xml"))

        sample: List[str] = []
        for page in pages[:6]:
            soup = BeautifulSoup(page.html or "", "html.parser")
            strip_boilerplate(soup)
            for a in soup.find_all("a", href=True):
                try:
                    absolute = urljoin(page.url, a["href"])
                except ValueError:
                    continue
                if absolute.startswith(("http://", "https://")) and absolute not in sample:
                    sample.append(absolute)
                if len(sample) >= 20:
                    break
            if len(sample) >= 20:
                break

        checked = broken = 0
        for url in sample[:BROKEN_LINK_SAMPLE]:
            status = await self._head_status(client, url)
            checked += 1
            if not status or status >= 400:
                broken += 1

        return {
            "robotsTxtPresent": 0 < robots < 400,
            "sitemapPresent": 0 < sitemap < 400,
            "brokenLinksRatio": broken / checked if checked else 0.0,
        }
