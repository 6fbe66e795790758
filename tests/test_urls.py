import pytest

from siteaudit.crawl.urls import (
    allowed_hosts_for,
    bucket_key,
    canonicalize,
    is_asset,
    is_skippable_href,
    normalize_link,
)


@pytest.mark.parametrize("raw, expected", [
    ("https://a.com/x/?q=1#y", "https://a.com/x"),
    ("https://a.com", "https://a.com/"),
    ("https://a.com/", "https://a.com/"),
    ("HTTPS://A.COM/Path/", "https://a.com/Path"),
    ("http://a.com:80/x", "http://a.com/x"),
    ("https://a.com:8443/x", "https://a.com:8443/x"),
    ("  https://a.com/x//  ", "https://a.com/x"),
])
def test_canonicalize(raw, expected):
    assert canonicalize(raw) == expected


@pytest.mark.parametrize("raw", ["", "not a url", "ftp://a.com/x", "mailto:me@a.com", "https://"])
def test_canonicalize_rejects(raw):
    assert canonicalize(raw) is None


def test_canonicalize_is_idempotent():
    once = canonicalize("https://Example.com/a/b/?x=1")
    assert canonicalize(once) == once


def test_allowed_hosts_cover_www_and_bare():
    assert allowed_hosts_for("www.example.com") == {"www.example.com", "example.com"}
    assert allowed_hosts_for("example.com") == {"example.com", "www.example.com"}


def test_normalize_link_scopes_to_site():
    hosts = allowed_hosts_for("example.com")
    base = "https://example.com/blog/post"
    assert normalize_link("/about/", base, hosts) == "https://example.com/about"
    assert normalize_link("next", base, hosts) == "https://example.com/blog/next"
    assert normalize_link("https://www.example.com/shop", base, hosts) == "https://www.example.com/shop"
    assert normalize_link("https://other.com/", base, hosts) is None
    assert normalize_link("/brochure.PDF", base, hosts) is None
    assert normalize_link("mailto:hi@example.com", base, hosts) is None
    assert normalize_link("#top", base, hosts) is None
    assert normalize_link("", base, hosts) is None


def test_skippable_and_asset():
    assert is_skippable_href("javascript:void(0)")
    assert is_skippable_href("tel:+15555550100")
    assert not is_skippable_href("/contact")
    assert is_asset("https://example.com/img/logo.svg")
    assert not is_asset("https://example.com/pricing")


def test_bucket_key():
    assert bucket_key("https://example.com/Blog/2024/post") == "blog"
    assert bucket_key("https://example.com/") == ""
