#!/usr/bin/env python3
"""
Run a full site audit from the command line.

Usage:
  # Audit with the general-purpose rubric, print grades and top fixes
  python scripts/run_audit.py https://example.com

  # Storefront rubric, 40-page crawl, full JSON report to a file
  python scripts/run_audit.py https://shop.example.com --category ecommerce \\
    --max-pages 40 --output report.json

Optional .env keys: MAX_PAGES, RESPECT_ROBOTS, LIGHTHOUSE_BIN, CHROME_PATH,
LH_FORM_FACTOR, PSI_API_KEY, PSI_BLEND. Requires Playwright's Chromium
(`playwright install chromium`) and the Lighthouse CLI for lab scores.
"""
import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

_repo_root = Path(__file__).resolve().parent.parent
load_dotenv(_repo_root / ".env")

from siteaudit.config import Settings  # noqa: E402
from siteaudit.errors import InvalidInputError  # noqa: E402
from siteaudit.pipeline import AuditPipeline  # noqa: E402
from siteaudit.report import report_to_dict  # noqa: E402


async def _run(url: str, category: str, max_pages, screenshot: bool):
    config = Settings()
    pipeline = AuditPipeline(config=config, max_pages=max_pages, capture_screenshot=screenshot)
    return await pipeline.run_audit(url, category)


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Crawl a site, run lab audits and grade it against a rubric.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("url", help="Absolute http(s) URL of the site to audit")
    parser.add_argument("--category", default="base", help="Rubric category (base, b2b, ecommerce, media)")
    parser.add_argument("--max-pages", type=int, default=None, help="Crawl budget, 10-50 (default: MAX_PAGES)")
    parser.add_argument("--no-screenshot", action="store_true", help="Skip the homepage screenshot")
    parser.add_argument("--output", default="", help="Write the full JSON report to this file")
    parser.add_argument("--log-level", default=None, help="Logging level (default: LOG_LEVEL)")
    args = parser.parse_args()

    logging.basicConfig(
        level=(args.log_level or Settings().LOG_LEVEL).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        report = asyncio.run(_run(args.url, args.category, args.max_pages, not args.no_screenshot))
    except InvalidInputError as exc:
        print(f"Invalid input: {exc}")
        return 1

    print(f"\nAudit of {report.url} ({report.category}) — {report.pages_crawled} page(s) crawled")
    for name, section in report.scores.items():
        print(f"  {section.label or name:<32} {section.grade}  ({section.weighted_score:.2f})")
    fixes = report.top_fixes()
    if fixes:
        print("\nTop fixes:")
        for fix in fixes:
            print(f"  [{fix['section']}] {fix['label']} (impact {fix['impact']:.3f})")

    if args.output:
        Path(args.output).write_text(json.dumps(report_to_dict(report), indent=2, default=str), encoding="utf-8")
        print(f"\nReport written to {args.output}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
