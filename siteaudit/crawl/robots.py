"""
robots.txt and sitemap.xml support for the crawler.

Only `Disallow` lines under a `User-agent: *` block are honoured; `*` inside a
rule matches any sequence. Sitemap locations come from `Sitemap:` lines in
robots.txt, falling back to /sitemap.xml on the origin.

Both fetches are best-effort: bounded timeout, capped response size, no retry.
Failures are logged and resolve to empty values.
"""
import logging
import re
from typing import List, Optional, Tuple
from urllib.parse import urljoin

import httpx
from bs4 import BeautifulSoup

from siteaudit.errors import ExternalServiceError
from siteaudit.fetch import fetch_text

logger = logging.getLogger(__name__)

_SITEMAP_LINE_RE = re.compile(r"^\s*sitemap:\s*(.+)$", re.IGNORECASE)


# ── Parsing ───────────────────────────────────────────────────────────────────

def parse_disallows(robots_txt: str) -> List[str]:
    """Collect Disallow paths listed under `User-agent: *` until the next User-agent line."""
    disallows: List[str] = []
    in_star = False
    for raw in (robots_txt or "").splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        lower = line.lower()
        if lower.startswith("user-agent:"):
            agent = line.split(":", 1)[1].strip().lower()
            in_star = agent in ("*", '"*"')
        elif in_star and lower.startswith("disallow:"):
            path = line.split(":", 1)[1].split("#", 1)[0].strip()
            if path:
                disallows.append(path)
    return disallows


def _rule_pattern(rule: str) -> "re.Pattern[str]":
    escaped = re.escape(rule).replace(r"\*", ".*")
    if not escaped.startswith("/"):
        escaped = "/" + escaped
    return re.compile("^" + escaped)


def path_disallowed(path: str, disallows: List[str]) -> bool:
    """True when path starts with any Disallow rule (wildcards honoured)."""
    return any(_rule_pattern(rule).match(path or "/") for rule in disallows)


def parse_sitemap_lines(robots_txt: str) -> List[str]:
    """Sitemap URLs declared in robots.txt."""
    found = []
    for line in (robots_txt or "").splitlines():
        m = _SITEMAP_LINE_RE.match(line)
        if m and m.group(1).strip():
            found.append(m.group(1).strip())
    return found


def parse_sitemap_locations(xml: str, origin: str, limit: int) -> List[str]:
    """Absolute <loc> URLs from a sitemap document, in document order, at most `limit`."""
    urls: List[str] = []
    if not xml or limit <= 0:
        return urls
    soup = BeautifulSoup(xml, "html.parser")
    for loc in soup.find_all("loc"):
        href = loc.get_text(strip=True)
        if not href or href.lower().endswith(".xml"):
            # nested sitemap index entries are not pages
            continue
        absolute = urljoin(origin, href)
        if absolute not in urls:
            urls.append(absolute)
        if len(urls) >= limit:
            break
    return urls


# ── Fetching ──────────────────────────────────────────────────────────────────

async def fetch_robots(
    client: httpx.AsyncClient,
    origin: str,
    timeout: float,
    max_bytes: int,
) -> Tuple[List[str], List[str]]:
    """Return (disallow rules, sitemap urls) for origin; empty lists if robots.txt is unavailable."""
    robots_url = urljoin(origin, "/robots.txt")
    try:
        text = await fetch_text(client, robots_url, timeout, max_bytes)
    except ExternalServiceError as exc:
        logger.info(f"[Robots] No robots.txt used for {origin}: {exc}")
        return [], []
    disallows = parse_disallows(text)
    sitemaps = parse_sitemap_lines(text)
    logger.debug(f"[Robots] {origin}: {len(disallows)} disallow rule(s), {len(sitemaps)} sitemap(s)")
    return disallows, sitemaps


async def fetch_sitemap_urls(
    client: httpx.AsyncClient,
    origin: str,
    limit: int,
    timeout: float,
    max_bytes: int,
    declared: Optional[List[str]] = None,
) -> List[str]:
    """Up to `limit` page URLs from the declared sitemaps, else from /sitemap.xml."""
    locations = list(declared or []) or [urljoin(origin, "/sitemap.xml")]
    urls: List[str] = []
    for location in locations:
        try:
            xml = await fetch_text(client, location, timeout, max_bytes)
        except ExternalServiceError as exc:
            logger.info(f"[Robots] Sitemap skipped: {exc}")
            continue
        for url in parse_sitemap_locations(xml, origin, limit - len(urls)):
            if url not in urls:
                urls.append(url)
        if len(urls) >= limit:
            break
    return urls[:limit]
