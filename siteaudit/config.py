"""Configuration management for siteaudit"""
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings

DESKTOP_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/124.0.0.0 Safari/537.36"
)


def _clamp(value, low, high, default):
    try:
        number = type(default)(value)
    except (TypeError, ValueError):
        return default
    return max(low, min(high, number))


class Settings(BaseSettings):
    """Application settings"""

    # Crawl budget and politeness
    MAX_PAGES: int = 25
    RESPECT_ROBOTS: bool = True
    SITEMAP_SEED_LIMIT: int = 10
    FRONTIER_SLACK: int = 8

    # Browser / navigation
    NAV_TIMEOUT_S: float = 35.0
    BODY_WAIT_S: float = 5.0
    IDLE_WAIT_S: float = 3.0
    AUDIT_UA: str = DESKTOP_UA
    ACCEPT_LANGUAGE: str = "en-US,en;q=0.9"
    CHROME_PATH: Optional[str] = None

    # Secondary sources (robots.txt, sitemap.xml)
    SECONDARY_TIMEOUT_S: float = 8.0
    SECONDARY_MAX_BYTES: int = 512 * 1024

    # Lab auditing (Lighthouse, median of LAB_RUNS)
    LIGHTHOUSE_BIN: str = "lighthouse"
    LAB_RUNS: int = 3
    LAB_RUN_TIMEOUT_S: float = 90.0
    LAB_DEBUG_PORT: int = 9223
    LH_FORM_FACTOR: str = "mobile"  # "mobile" or "desktop"

    # Field data (PageSpeed Insights)
    PSI_API_KEY: Optional[str] = None
    PSI_BLEND: bool = False
    PSI_TIMEOUT_S: float = 9.0
    PSI_MAX_BYTES: int = 1024 * 1024

    # Scoring
    DEFAULT_CATEGORY: str = "base"

    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"

    @field_validator("MAX_PAGES", mode="before")
    @classmethod
    def _clamp_max_pages(cls, v):
        return _clamp(v, 10, 50, 25)

    @field_validator("SITEMAP_SEED_LIMIT", mode="before")
    @classmethod
    def _clamp_sitemap_limit(cls, v):
        return _clamp(v, 5, 20, 10)

    @field_validator("PSI_TIMEOUT_S", mode="before")
    @classmethod
    def _clamp_psi_timeout(cls, v):
        return _clamp(v, 5.0, 15.0, 9.0)

    @field_validator("LAB_RUNS", mode="before")
    @classmethod
    def _clamp_lab_runs(cls, v):
        return _clamp(v, 1, 5, 3)

    @field_validator("LH_FORM_FACTOR", mode="before")
    @classmethod
    def _normalize_form_factor(cls, v):
        return "desktop" if str(v or "").strip().lower() == "desktop" else "mobile"

    @property
    def lab_strategy(self) -> str:
        return self.LH_FORM_FACTOR


settings = Settings()
