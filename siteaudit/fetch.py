"""Bounded best-effort HTTP reads for secondary sources (robots, sitemap, field data)."""
import httpx

from siteaudit.errors import ExternalServiceError


async def fetch_text(
    client: httpx.AsyncClient,
    url: str,
    timeout: float,
    max_bytes: int,
    params=None,
) -> str:
    """GET url as text. Raises ExternalServiceError on error status, timeout or oversize body."""
    try:
        async with client.stream("GET", url, params=params, timeout=timeout, follow_redirects=True) as resp:
            resp.raise_for_status()
            chunks = []
            received = 0
            async for chunk in resp.aiter_bytes():
                received += len(chunk)
                if received > max_bytes:
                    raise ExternalServiceError(f"{url}: response exceeds {max_bytes} bytes")
                chunks.append(chunk)
            encoding = resp.encoding or "utf-8"
    except httpx.TimeoutException as e:
        raise ExternalServiceError(f"{url}: request timed out: {e}") from e
    except httpx.HTTPStatusError as e:
        raise ExternalServiceError(f"{url}: HTTP {e.response.status_code}") from e
    except httpx.HTTPError as e:
        raise ExternalServiceError(f"{url}: {e}") from e
    except (httpx.InvalidURL, ValueError) as e:
        raise ExternalServiceError(f"{url}: malformed URL: {e}") from e
    return b"".join(chunks).decode(encoding, errors="replace")
