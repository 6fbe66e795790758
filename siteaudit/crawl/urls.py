"""URL identity helpers shared by the crawler: canonical form, host scoping, asset filtering."""
import re
from typing import Iterable, Optional, Set
from urllib.parse import urljoin, urlsplit, urlunsplit

_ASSET_RE = re.compile(
    r"\.(?:jpg|jpeg|png|gif|webp|svg|ico|pdf|zip|rar|7z|mp4|webm|mp3|wav|mov|avi|docx?|xlsx?|pptx?)$",
    re.IGNORECASE,
)
_SKIP_HREF_RE = re.compile(r"^(mailto:|tel:|javascript:|#)", re.IGNORECASE)
_DEFAULT_PORTS = {"http": 80, "https": 443}


def canonicalize(raw: str) -> Optional[str]:
    """Drop fragment and query, strip trailing slashes (except root). None if unparseable."""
    try:
        parts = urlsplit((raw or "").strip())
    except ValueError:
        return None
    if parts.scheme.lower() not in ("http", "https") or not parts.hostname:
        return None
    scheme = parts.scheme.lower()
    netloc = parts.netloc.lower()
    try:
        port = parts.port
    except ValueError:
        return None
    if port is not None and _DEFAULT_PORTS.get(scheme) == port:
        netloc = netloc.rsplit(":", 1)[0]
    path = parts.path or "/"
    if path != "/":
        path = path.rstrip("/") or "/"
    return urlunsplit((scheme, netloc, path, "", ""))


def host_of(url: str) -> str:
    """Lower-cased host[:port] of url, '' when unparseable."""
    try:
        return urlsplit(url).netloc.lower()
    except ValueError:
        return ""


def allowed_hosts_for(host: str) -> Set[str]:
    """The host, its bare (non-www) form and its www. form, lower-cased."""
    host = (host or "").lower()
    bare = host[4:] if host.startswith("www.") else host
    return {host, bare, f"www.{bare}"}


def is_asset(url: str) -> bool:
    return bool(_ASSET_RE.search(urlsplit(url).path))


def is_skippable_href(href: str) -> bool:
    """True for mailto:, tel:, javascript: and fragment-only links."""
    return bool(_SKIP_HREF_RE.match((href or "").strip()))


def normalize_link(href: str, base_url: str, allowed_hosts: Iterable[str]) -> Optional[str]:
    """Resolve href against base_url and return its canonical form if it is a crawlable same-site page."""
    if not href or is_skippable_href(href):
        return None
    try:
        absolute = urljoin(base_url, href.strip())
    except ValueError:
        return None
    canon = canonicalize(absolute)
    if not canon:
        return None
    if host_of(canon) not in allowed_hosts:
        return None
    if is_asset(canon):
        return None
    return canon


def bucket_key(url: str) -> str:
    """First path segment, lower-cased: '/blog/2024/post' -> 'blog'."""
    try:
        path = urlsplit(url).path
    except ValueError:
        return ""
    segments = [s for s in path.split("/") if s]
    return segments[0].lower() if segments else ""
