import pytest

from siteaudit.crawl.crawler import CrawlFrontier, LinkCounts, SiteCrawler, count_links
from siteaudit.errors import InvalidInputError
from tests.conftest import FakeSession, mock_client, page

HOME = "https://example.com/"


def url(path: str) -> str:
    return "https://example.com" + path


async def run_crawl(config, site, routes=None, start=HOME, max_pages=10):
    session = FakeSession(site)
    async with mock_client(routes or {}) as client:
        pages = await SiteCrawler(config, client).crawl(start, max_pages, session)
    return pages, session


async def test_fresh_buckets_are_visited_before_repeats(config):
    site = {
        HOME: page(["/blog/a", "/about"]),
        url("/blog/a"): page(["/blog/b", "/contact"]),
        url("/about"): page(),
        url("/contact"): page(),
        url("/blog/b"): page(),
    }
    pages, session = await run_crawl(config, site)
    assert [p.url for p in pages] == [
        HOME, url("/blog/a"), url("/about"), url("/contact"), url("/blog/b"),
    ]
    assert session.tabs_opened == session.tabs_closed == 1


async def test_budget_is_respected(config):
    site = {HOME: page([f"/p{i}" for i in range(20)])}
    site.update({url(f"/p{i}"): page() for i in range(20)})
    pages, session = await run_crawl(config, site, max_pages=5)
    assert len(pages) == 5
    assert len(session.visits) == 5


async def test_no_duplicate_pages(config):
    site = {
        HOME: page(["/a", "/a/", "/a?x=1", "/a#frag", "https://EXAMPLE.com/a", "/"]),
        url("/a"): page(["/", "/a"]),
    }
    pages, session = await run_crawl(config, site)
    assert [p.url for p in pages] == [HOME, url("/a")]
    assert session.visits == [HOME, url("/a")]


async def test_stays_on_site(config):
    site = {HOME: page(["https://other.com/x", "/logo.png", "mailto:hi@example.com", "https://www.example.com/team"]),
            "https://www.example.com/team": page()}
    pages, _ = await run_crawl(config, site)
    assert [p.url for p in pages] == [HOME, "https://www.example.com/team"]


async def test_redirect_widens_allowed_hosts(config):
    site = {
        "https://old.example.com/": page(
            ["https://new-site.com/about", "https://elsewhere.com/x"],
            final_url="https://new-site.com/",
        ),
        "https://new-site.com/about": page(),
    }
    pages, _ = await run_crawl(config, site, start="https://old.example.com")
    assert [p.url for p in pages] == ["https://old.example.com/", "https://new-site.com/about"]


async def test_robots_disallow_is_respected(config):
    site = {
        HOME: page(["/private", "/private/x", "/public"]),
        url("/private"): page(),
        url("/private/x"): page(),
        url("/public"): page(),
    }
    routes = {"https://example.com/robots.txt": "User-agent: *\nDisallow: /private\n"}
    pages, session = await run_crawl(config, site, routes)
    assert [p.url for p in pages] == [HOME, url("/public")]
    assert not any("/private" in v for v in session.visits)


async def test_robots_ignored_when_disabled(config):
    config.RESPECT_ROBOTS = False
    site = {HOME: page(["/private"]), url("/private"): page()}
    routes = {"https://example.com/robots.txt": "User-agent: *\nDisallow: /private\n"}
    pages, _ = await run_crawl(config, site, routes)
    assert url("/private") in [p.url for p in pages]


async def test_malformed_sitemap_in_robots_does_not_abort_crawl(config):
    site = {HOME: page(["/a"]), url("/a"): page()}
    routes = {"https://example.com/robots.txt": "User-agent: *\nDisallow:\nSitemap: http://example.com:port/sitemap.xml\n"}
    pages, _ = await run_crawl(config, site, routes)
    assert [p.url for p in pages] == [HOME, url("/a")]


async def test_failed_page_is_recorded_empty(config):
    site = {HOME: page(["/broken", "/ok"]), url("/ok"): page()}
    pages, _ = await run_crawl(config, site)
    by_url = {p.url: p for p in pages}
    assert set(by_url) == {HOME, url("/broken"), url("/ok")}
    assert by_url[url("/broken")].html == ""
    assert by_url[url("/broken")].links == LinkCounts()


async def test_sitemap_seeds_unlinked_pages(config):
    sitemap = "<urlset><url><loc>https://example.com/hidden</loc></url></urlset>"
    site = {HOME: page(), url("/hidden"): page()}
    pages, _ = await run_crawl(config, site, {"https://example.com/sitemap.xml": sitemap})
    assert [p.url for p in pages] == [HOME, url("/hidden")]


async def test_link_counts_recorded_per_page(config):
    site = {HOME: page(["/a", "https://other.com/", "mailto:x@example.com", "#top"]), url("/a"): page()}
    pages, _ = await run_crawl(config, site)
    assert pages[0].links == LinkCounts(internal=1, external=1, total=2)


@pytest.mark.parametrize("start", ["", "example.com", "ftp://example.com", "https://"])
async def test_invalid_start_url(config, start):
    with pytest.raises(InvalidInputError):
        await run_crawl(config, {}, start=start)


@pytest.mark.parametrize("budget", [0, -1, 2.5])
async def test_invalid_budget(config, budget):
    with pytest.raises(InvalidInputError):
        await run_crawl(config, {}, max_pages=budget)


def test_frontier_stops_at_cap():
    frontier = CrawlFrontier()
    added = frontier.enqueue_diverse([f"https://example.com/s{i}" for i in range(10)], result_count=2, cap=5)
    assert added == 3
    assert len(frontier) == 3


def test_count_links_relative_to_final_url():
    counts = count_links(["/x", "https://www.example.com/y", "tel:123"], "https://www.example.com/")
    assert counts == LinkCounts(internal=2, external=0, total=2)
