"""
Field-data proxy from the PageSpeed Insights API.

fetch_field_data() is best-effort: no API key, a timeout, an error status, an
oversized or unparseable body all resolve to None. The proxy is the mean
"good" proportion of LCP, INP and CLS in the page's (else origin's) loading
experience.
"""
import json
import logging
from typing import Any, Dict, Optional

import httpx

from siteaudit.config import Settings, settings as default_settings
from siteaudit.errors import ExternalServiceError
from siteaudit.fetch import fetch_text

logger = logging.getLogger(__name__)

PSI_API_URL = "https://www.googleapis.com/pagespeedonline/v5/runPagespeed"
FIELD_METRICS = (
    "LARGEST_CONTENTFUL_PAINT_MS",
    "INTERACTION_TO_NEXT_PAINT",
    "CUMULATIVE_LAYOUT_SHIFT_SCORE",
)


def field_performance_proxy(psi: Optional[Dict[str, Any]]) -> Optional[float]:
    """Mean share of "good" experiences across the core field metrics, or None."""
    if not isinstance(psi, dict):
        return None
    experience = psi.get("loadingExperience") or psi.get("originLoadingExperience") or {}
    metrics = experience.get("metrics") if isinstance(experience, dict) else None
    if not isinstance(metrics, dict):
        return None
    ratios = []
    for key in FIELD_METRICS:
        distributions = (metrics.get(key) or {}).get("distributions") or []
        good = next((d for d in distributions if str(d.get("min", "0")) == "0"), None)
        proportion = (good or {}).get("proportion")
        if isinstance(proportion, (int, float)) and not isinstance(proportion, bool):
            ratios.append(float(proportion))
    if not ratios:
        return None
    return sum(ratios) / len(ratios)


async def fetch_field_data(
    url: str,
    config: Optional[Settings] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> Optional[Dict[str, Any]]:
    """PageSpeed Insights JSON for url, or None (never raises)."""
    cfg = config or default_settings
    if not cfg.PSI_API_KEY:
        return None
    params = [
        ("url", url),
        ("strategy", cfg.lab_strategy),
        ("category", "PERFORMANCE"),
        ("category", "ACCESSIBILITY"),
        ("category", "BEST_PRACTICES"),
        ("category", "SEO"),
        ("key", cfg.PSI_API_KEY),
    ]
    try:
        if client is not None:
            text = await fetch_text(client, PSI_API_URL, cfg.PSI_TIMEOUT_S, cfg.PSI_MAX_BYTES, params=params)
        else:
            async with httpx.AsyncClient() as own:
                text = await fetch_text(own, PSI_API_URL, cfg.PSI_TIMEOUT_S, cfg.PSI_MAX_BYTES, params=params)
        data = json.loads(text)
    except ExternalServiceError as exc:
        logger.warning(f"[PSI] Field data unavailable for {url}: {exc}")
        return None
    except ValueError as exc:
        logger.warning(f"[PSI] Unparseable response for {url}: {exc}")
        return None
    return data if isinstance(data, dict) else None
