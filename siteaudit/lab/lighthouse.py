"""
Lighthouse lab auditor.

LighthouseAuditor owns its own headless Chromium (separate from the crawl
session) exposed on a remote-debugging port. Each run() shells out to the
Lighthouse CLI against that port and reads the JSON report from stdout.
The browser is closed when the `async with` block exits, whatever happened.
"""
import asyncio
import json
import logging
from typing import Dict, List, Optional, Protocol

from siteaudit.config import Settings, settings as default_settings
from siteaudit.errors import MeasurementError
from siteaudit.lab.metrics import LabMetrics

logger = logging.getLogger(__name__)

_CATEGORY_IDS = {
    "performance": "performance",
    "accessibility": "accessibility",
    "seo": "seo",
    "best_practices": "best-practices",
}


class LabAuditor(Protocol):
    async def run(self, url: str) -> Dict[str, Optional[float]]: ...


def parse_lighthouse_report(report: dict) -> Dict[str, Optional[float]]:
    """Pull the four category scores out of a Lighthouse JSON result."""
    categories = (report or {}).get("categories") or {}
    scores: Dict[str, Optional[float]] = {}
    for key, category_id in _CATEGORY_IDS.items():
        score = (categories.get(category_id) or {}).get("score")
        scores[key] = float(score) if isinstance(score, (int, float)) else None
    return scores


class LighthouseAuditor:
    """Run Lighthouse repeatedly against a browser this object launches and kills."""

    def __init__(self, config: Optional[Settings] = None):
        self.config = config or default_settings
        self._pw = None
        self._browser = None

    @property
    def port(self) -> int:
        return self.config.LAB_DEBUG_PORT

    async def __aenter__(self) -> "LighthouseAuditor":
        from playwright.async_api import async_playwright

        self._pw = await async_playwright().start()
        try:
            self._browser = await self._pw.chromium.launch(
                headless=True,
                executable_path=self.config.CHROME_PATH or None,
                args=[
                    f"--remote-debugging-port={self.port}",
                    "--no-sandbox",
                    "--disable-gpu",
                    "--window-size=1366,768",
                ],
            )
        except Exception as exc:
            await self.close()
            raise MeasurementError(f"Could not launch lab browser: {exc}") from exc
        logger.info(f"[Lab] Browser up on debugging port {self.port}")
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        if self._browser is not None:
            try:
                await self._browser.close()
            except Exception as exc:
                logger.debug(f"[Lab] browser close failed: {exc}")
            self._browser = None
        if self._pw is not None:
            try:
                await self._pw.stop()
            except Exception as exc:
                logger.debug(f"[Lab] playwright stop failed: {exc}")
            self._pw = None
            logger.info("[Lab] Browser terminated.")

    def command(self, url: str) -> List[str]:
        cmd = [
            self.config.LIGHTHOUSE_BIN,
            url,
            f"--port={self.port}",
            "--output=json",
            "--output-path=stdout",
            "--quiet",
            "--only-categories=performance,accessibility,best-practices,seo",
        ]
        if self.config.LH_FORM_FACTOR == "desktop":
            cmd.append("--preset=desktop")
        return cmd

    async def run(self, url: str) -> Dict[str, Optional[float]]:
        """One Lighthouse pass. Raises MeasurementError on launch failure, timeout or bad output."""
        try:
            proc = await asyncio.create_subprocess_exec(
                *self.command(url),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise MeasurementError(f"Could not start {self.config.LIGHTHOUSE_BIN}: {exc}") from exc

        try:
            stdout, stderr = await asyncio.wait_for(
                proc.communicate(), timeout=self.config.LAB_RUN_TIMEOUT_S
            )
        except asyncio.TimeoutError as exc:
            proc.kill()
            await proc.wait()
            raise MeasurementError(
                f"Lighthouse timed out after {self.config.LAB_RUN_TIMEOUT_S}s for {url}"
            ) from exc

        if proc.returncode != 0:
            tail = stderr.decode("utf-8", errors="replace").strip()[-300:]
            raise MeasurementError(f"Lighthouse exited {proc.returncode}: {tail}")
        try:
            report = json.loads(stdout.decode("utf-8", errors="replace"))
        except ValueError as exc:
            raise MeasurementError(f"Lighthouse output is not JSON: {exc}") from exc
        return parse_lighthouse_report(report)


async def measure_median(auditor: LabAuditor, url: str, runs: int = 3, strategy: str = "mobile") -> LabMetrics:
    """
    Run the auditor `runs` times in sequence and take the per-category median.
    A failed run contributes nothing; MeasurementError only if every run fails.
    """
    samples = []
    for i in range(runs):
        try:
            samples.append(await auditor.run(url))
            logger.info(f"[Lab] Run {i + 1}/{runs} done: {samples[-1]}")
        except Exception as exc:
            logger.warning(f"[Lab] Run {i + 1}/{runs} failed for {url}: {exc}")
    if not samples:
        raise MeasurementError(f"All {runs} lab runs failed for {url}")
    return LabMetrics.from_runs(samples, strategy=strategy)
