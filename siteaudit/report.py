"""Audit report model and its JSON-friendly serialization."""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from siteaudit.lab.metrics import LabMetrics
from siteaudit.scoring.engine import ScoredSection


@dataclass
class AuditReport:
    """Structured audit report for a URL."""
    url: str
    category: str
    signals: Dict[str, Any] = field(default_factory=dict)
    scores: Dict[str, ScoredSection] = field(default_factory=dict)
    lab_metrics: LabMetrics = field(default_factory=LabMetrics)
    screenshot: Optional[str] = None  # base64 PNG
    pages_crawled: int = 0

    def top_fixes(self, n: int = 5) -> List[Dict[str, Any]]:
        """Highest-impact rules across all sections."""
        ranked = []
        for name, section in self.scores.items():
            for rule in section.rules:
                if rule.impact > 0:
                    ranked.append((rule.impact, name, rule))
        ranked.sort(key=lambda item: item[0], reverse=True)
        return [
            {"section": name, "key": rule.key, "label": rule.label, "impact": round(impact, 4)}
            for impact, name, rule in ranked[:n]
        ]


def section_to_dict(section: ScoredSection) -> dict:
    return {
        "label": section.label,
        "total_weighted": section.total_weighted,
        "total_weight": section.total_weight,
        "weighted_score": section.weighted_score,
        "grade": section.grade,
        "rules": [
            {
                "key": r.key,
                "label": r.label,
                "raw_value": r.raw_value,
                "score": r.score,
                "weight": r.weight,
                "weighted_contribution": r.weighted_contribution,
                "kind": r.kind,
                "description": r.description,
            }
            for r in section.rules
        ],
    }


def report_to_dict(report: AuditReport) -> dict:
    """Serialize AuditReport to a JSON-friendly dict."""
    return {
        "url": report.url,
        "category": report.category,
        "pages_crawled": report.pages_crawled,
        "signals": dict(report.signals),
        "scores": {name: section_to_dict(s) for name, s in report.scores.items()},
        "lab_metrics": report.lab_metrics.to_dict(),
        "screenshot": report.screenshot,
        "top_fixes": report.top_fixes(),
    }
