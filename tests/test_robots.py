from siteaudit.crawl.robots import (
    fetch_robots,
    fetch_sitemap_urls,
    parse_disallows,
    parse_sitemap_lines,
    parse_sitemap_locations,
    path_disallowed,
)
from tests.conftest import mock_client

ROBOTS = """
# comment
User-agent: googlebot
Disallow: /blog

User-agent: *
Disallow: /private
Disallow: /tmp/*.html   # generated
Disallow:

Sitemap: https://example.com/pages.xml
"""

SITEMAP = """<?xml version="1.0" encoding="UTF-8"?>
<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">
  <url><loc>https://example.com/pricing</loc></url>
  <url><loc>https://example.com/docs/start</loc></url>
  <url><loc>https://example.com/nested.xml</loc></url>
  <url><loc>/relative</loc></url>
</urlset>
"""


def test_only_star_block_counts():
    assert parse_disallows(ROBOTS) == ["/private", "/tmp/*.html"]


def test_path_disallowed_prefix_and_wildcard():
    rules = parse_disallows(ROBOTS)
    assert path_disallowed("/private", rules)
    assert path_disallowed("/private/area", rules)
    assert path_disallowed("/tmp/a/b.html", rules)
    assert not path_disallowed("/tmp/a/b.txt", rules)
    assert not path_disallowed("/blog", rules)
    assert not path_disallowed("/", rules)


def test_sitemap_lines():
    assert parse_sitemap_lines(ROBOTS) == ["https://example.com/pages.xml"]


def test_sitemap_locations_skip_nested_and_resolve_relative():
    urls = parse_sitemap_locations(SITEMAP, "https://example.com", limit=10)
    assert urls == [
        "https://example.com/pricing",
        "https://example.com/docs/start",
        "https://example.com/relative",
    ]
    assert parse_sitemap_locations(SITEMAP, "https://example.com", limit=1) == ["https://example.com/pricing"]


async def test_fetch_robots_and_declared_sitemap():
    client = mock_client({
        "https://example.com/robots.txt": ROBOTS,
        "https://example.com/pages.xml": SITEMAP,
    })
    async with client:
        disallows, sitemaps = await fetch_robots(client, "https://example.com", 5, 100_000)
        urls = await fetch_sitemap_urls(client, "https://example.com", 2, 5, 100_000, declared=sitemaps)
    assert disallows == ["/private", "/tmp/*.html"]
    assert urls == ["https://example.com/pricing", "https://example.com/docs/start"]


async def test_missing_robots_and_sitemap_are_empty():
    async with mock_client({}) as client:
        assert await fetch_robots(client, "https://example.com", 5, 100_000) == ([], [])
        assert await fetch_sitemap_urls(client, "https://example.com", 5, 5, 100_000) == []


async def test_oversized_robots_is_ignored():
    async with mock_client({"https://example.com/robots.txt": "User-agent: *\nDisallow: /x\n" * 100}) as client:
        assert await fetch_robots(client, "https://example.com", 5, max_bytes=64) == ([], [])


async def test_malformed_sitemap_location_is_skipped():
    robots = "User-agent: *\nDisallow:\nSitemap: http://example.com:port/sitemap.xml\n"
    async with mock_client({"https://example.com/robots.txt": robots}) as client:
        disallows, sitemaps = await fetch_robots(client, "https://example.com", 5, 100_000)
        urls = await fetch_sitemap_urls(client, "https://example.com", 5, 5, 100_000, declared=sitemaps)
    assert disallows == []
    assert sitemaps == ["http://example.com:port/sitemap.xml"]
    assert urls == []
