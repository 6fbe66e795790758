"""
Same-site breadth-first crawler.

One tab, one URL at a time:
  1. Canonicalize the start URL and derive the allowed host set (host, bare, www.)
  2. robots.txt Disallow rules for `User-agent: *` (when RESPECT_ROBOTS)
  3. Seed the frontier with the start URL plus a few sitemap URLs
  4. Pop, fetch, record a Page, enqueue same-site links with a diversity bias:
     links opening a new first-path-segment bucket go ahead of the rest

A page that fails to load is recorded empty; the crawl never aborts for one page.
"""
import logging
from collections import deque
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Deque, Iterable, List, Optional, Set, Tuple
from urllib.parse import urljoin, urlsplit

import httpx

from siteaudit.config import Settings, settings as default_settings
from siteaudit.crawl.robots import fetch_robots, fetch_sitemap_urls, path_disallowed
from siteaudit.crawl.urls import (
    allowed_hosts_for,
    bucket_key,
    canonicalize,
    host_of,
    is_skippable_href,
    normalize_link,
)
from siteaudit.errors import InvalidInputError, require_http_url

logger = logging.getLogger(__name__)


# ── Data model ────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class LinkCounts:
    internal: int = 0
    external: int = 0
    total: int = 0


@dataclass(frozen=True)
class Page:
    """One crawled page, keyed by canonical URL."""
    url: str
    html: str = ""
    links: LinkCounts = field(default_factory=LinkCounts)


@dataclass
class CrawlFrontier:
    """Transient BFS state for a single crawl call."""
    queue: Deque[str] = field(default_factory=deque)
    visited: Set[str] = field(default_factory=set)
    queued: Set[str] = field(default_factory=set)
    seen_buckets: Set[str] = field(default_factory=set)

    def __len__(self) -> int:
        return len(self.queue)

    def push(self, url: str) -> bool:
        if url in self.visited or url in self.queued:
            return False
        self.queue.append(url)
        self.queued.add(url)
        return True

    def pop(self) -> str:
        url = self.queue.popleft()
        self.queued.discard(url)
        return url

    def enqueue_diverse(self, links: Iterable[str], result_count: int, cap: int) -> int:
        """
        Enqueue unseen links, fresh buckets first, then the rest.
        Stops once queue + results reaches cap. Returns how many were added.
        """
        fresh: List[str] = []
        common: List[str] = []
        for link in links:
            if link in self.visited or link in self.queued:
                continue
            if bucket_key(link) in self.seen_buckets:
                common.append(link)
            else:
                fresh.append(link)

        added = 0
        for link in fresh:
            self.seen_buckets.add(bucket_key(link))
            if result_count + len(self.queue) >= cap:
                return added
            added += self.push(link)
        for link in common:
            if result_count + len(self.queue) >= cap:
                return added
            added += self.push(link)
        return added


def count_links(hrefs: Iterable[str], page_url: str) -> LinkCounts:
    """Internal/external breakdown of a page's anchors relative to the page's own host."""
    here = host_of(page_url)
    internal = external = 0
    for href in hrefs:
        if not href or is_skippable_href(href):
            continue
        try:
            target = urlsplit(urljoin(page_url, href.strip()))
        except ValueError:
            continue
        if target.netloc.lower() == here:
            internal += 1
        else:
            external += 1
    return LinkCounts(internal=internal, external=external, total=internal + external)


# ── Crawler ───────────────────────────────────────────────────────────────────

class SiteCrawler:
    """Politeness-aware, diversity-biased BFS over one site."""

    def __init__(self, config: Optional[Settings] = None, client: Optional[httpx.AsyncClient] = None):
        self.config = config or default_settings
        self._client = client

    @asynccontextmanager
    async def _http(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(headers={"User-Agent": self.config.AUDIT_UA}) as client:
            yield client

    async def _seed(self, origin: str) -> Tuple[List[str], List[str]]:
        """Return (disallow rules, sitemap seed URLs) for origin."""
        cfg = self.config
        disallows: List[str] = []
        declared: List[str] = []
        async with self._http() as client:
            if cfg.RESPECT_ROBOTS:
                disallows, declared = await fetch_robots(
                    client, origin, cfg.SECONDARY_TIMEOUT_S, cfg.SECONDARY_MAX_BYTES
                )
            seeds = await fetch_sitemap_urls(
                client,
                origin,
                cfg.SITEMAP_SEED_LIMIT,
                cfg.SECONDARY_TIMEOUT_S,
                cfg.SECONDARY_MAX_BYTES,
                declared=declared,
            )
        return disallows, seeds

    async def _visit(self, fetcher, url: str, allowed_hosts: Set[str]) -> Tuple[Page, List[str]]:
        """Fetch one URL. Returns the Page and its same-site canonical links (empty on failure)."""
        try:
            final_url = await fetcher.navigate(url) or url
            # Redirects (http -> https, apex <-> www) widen the site's host set.
            final_host = host_of(final_url)
            if final_host and final_host not in allowed_hosts:
                logger.info(f"[Crawler] Redirect {url} -> {final_url}; allowing {final_host}")
            allowed_hosts.update(allowed_hosts_for(final_host) if final_host else ())
            html = await fetcher.content()
            hrefs = await fetcher.hrefs()
        except Exception as exc:
            logger.warning(f"[Crawler] Failed to fetch {url}: {exc}")
            return Page(url=url), []

        links = []
        seen = set()
        for href in hrefs:
            link = normalize_link(href, final_url, allowed_hosts)
            if link and link not in seen:
                seen.add(link)
                links.append(link)
        return Page(url=url, html=html, links=count_links(hrefs, final_url)), links

    async def crawl(self, start_url: str, max_pages: int, session) -> List[Page]:
        """
        Crawl up to max_pages same-site pages starting at start_url through `session`.
        Raises InvalidInputError for a malformed start URL or a non-positive budget.
        """
        start = canonicalize(require_http_url(start_url))
        if not start:
            raise InvalidInputError(f"Invalid start URL: {start_url!r}")
        if not isinstance(max_pages, int) or max_pages < 1:
            raise InvalidInputError(f"max_pages must be a positive integer, got {max_pages!r}")

        parts = urlsplit(start)
        origin = f"{parts.scheme}://{parts.netloc}"
        allowed_hosts = allowed_hosts_for(parts.netloc)
        cap = max_pages + self.config.FRONTIER_SLACK
        respect_robots = self.config.RESPECT_ROBOTS

        disallows, seeds = await self._seed(origin)

        frontier = CrawlFrontier()
        frontier.seen_buckets.add(bucket_key(start))
        frontier.push(start)
        for seed in seeds:
            link = normalize_link(seed, origin, allowed_hosts)
            if link:
                frontier.push(link)

        logger.info(
            f"[Crawler] START — {start} max_pages={max_pages} "
            f"seeds={len(frontier)} disallow_rules={len(disallows)}"
        )

        results: List[Page] = []
        async with session.page() as fetcher:
            while frontier and len(results) < max_pages:
                current = frontier.pop()
                if current in frontier.visited:
                    continue
                if respect_robots and disallows and path_disallowed(urlsplit(current).path, disallows):
                    logger.debug(f"[Crawler] robots.txt disallows {current}")
                    frontier.visited.add(current)
                    continue

                page, links = await self._visit(fetcher, current, allowed_hosts)
                frontier.visited.add(current)
                results.append(page)
                frontier.enqueue_diverse(links, len(results), cap)

        logger.info(f"[Crawler] DONE — {len(results)} page(s), {len(frontier.seen_buckets)} bucket(s)")
        return results


async def crawl(
    start_url: str,
    max_pages: int,
    session,
    config: Optional[Settings] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> List[Page]:
    """Convenience wrapper around SiteCrawler(config, client).crawl(...)."""
    return await SiteCrawler(config, client).crawl(start_url, max_pages, session)
