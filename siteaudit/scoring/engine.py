"""
Rule-based scoring engine.

evaluate() is a pure function of (signals, category, lab metrics, rubric):
for each section, every rule yields a 0..1 score and a weight; the section's
weighted score is sum(weight * score) / sum(weight), graded against the
section's thresholds scanned from the highest min_score down.
"""
import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from siteaudit.scoring.rubrics import GradeThreshold, Rubric, Rule, RuleKind, Section

logger = logging.getLogger(__name__)

SignalMap = Mapping[str, Any]

# Rule key -> lab metric substituted when the signal map has no value.
LAB_METRIC_FOR_RULE = {
    "pageSpeedScore": "performance",
    "accessibilityScore": "accessibility",
    "bestPracticesScore": "best_practices",
    "seoScore": "seo",
}

_TRUTHY_RE = re.compile(r"^(true|1|yes|y)$", re.IGNORECASE)


@dataclass
class RuleResult:
    key: str
    label: str
    raw_value: Any
    score: float
    weight: float
    weighted_contribution: float
    kind: str
    description: str = ""

    @property
    def impact(self) -> float:
        """How much fixing this rule would add: (1 - score) * weight."""
        return (1.0 - self.score) * self.weight


@dataclass
class ScoredSection:
    label: str = ""
    total_weighted: float = 0.0
    total_weight: float = 0.0
    weighted_score: float = 0.0
    grade: str = "F"
    rules: List[RuleResult] = field(default_factory=list)

    def top_fixes(self, n: int = 3) -> List[RuleResult]:
        """Highest-impact rules that are not already fully satisfied."""
        candidates = [r for r in self.rules if r.impact > 0]
        return sorted(candidates, key=lambda r: r.impact, reverse=True)[:n]


# ── Helpers ───────────────────────────────────────────────────────────────────

def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)) and math.isfinite(value):
        return float(value)
    return None


def clamp01(value: Any) -> float:
    """Clamp to [0, 1]; anything non-numeric or non-finite is 0."""
    number = _as_number(value)
    if number is None:
        return 0.0
    return max(0.0, min(1.0, number))


def score_boolean(raw: Any) -> float:
    if isinstance(raw, bool):
        return 1.0 if raw else 0.0
    if isinstance(raw, (int, float)):
        return 1.0 if math.isfinite(raw) and raw >= 0.5 else 0.0
    if isinstance(raw, str):
        return 1.0 if _TRUTHY_RE.match(raw.strip()) else 0.0
    return 0.0


def score_count_range(raw: Any, ideal_range: Optional[Tuple[float, float]]) -> float:
    """1 inside [min, max]; linear decay to 0 at one interval width outside."""
    if raw is None:
        return 0.0
    if ideal_range is None or len(ideal_range) != 2:
        return clamp01(raw)
    number = _as_number(raw)
    if number is None or isinstance(raw, bool):
        return 0.0
    low, high = ideal_range
    if low >= high:
        return 1.0 if number >= low else 0.0
    if low <= number <= high:
        return 1.0
    width = high - low
    distance = low - number if number < low else number - high
    return clamp01(1.0 - distance / width)


def score_rule(raw: Any, rule: Rule) -> float:
    """Score one raw value by the rule's kind. Missing values score 0."""
    if raw is None:
        return 0.0
    kind = rule.kind
    if kind is RuleKind.BOOLEAN:
        return score_boolean(raw)
    if kind in (RuleKind.NORMALIZED_INVERSE, RuleKind.NUMERIC_INVERSE):
        return 1.0 - clamp01(raw)
    if kind is RuleKind.COUNT_RANGE:
        return score_count_range(raw, rule.ideal_range)
    # normalized, scaled_match, enum_quality, lab_sourced and anything unrecognised
    return clamp01(raw)


def resolve_weight(rule: Rule, section: Section, category: str) -> float:
    """Explicit rule weight, else the category override for the key, else 1."""
    if rule.weight is not None:
        return float(rule.weight)
    override = section.override_for(category, rule.key)
    if override is not None:
        return float(override)
    return 1.0


def resolve_raw(rule: Rule, signals: SignalMap, lab_metrics: Optional[Mapping[str, Any]]) -> Any:
    raw = signals.get(rule.key)
    if raw is None and rule.kind is RuleKind.LAB_SOURCED and lab_metrics:
        metric = LAB_METRIC_FOR_RULE.get(rule.key)
        if metric:
            raw = lab_metrics.get(metric)
    return raw


def grade_for(score: float, thresholds: Sequence[GradeThreshold]) -> str:
    ordered = sorted(thresholds, key=lambda t: t.min_score, reverse=True)
    for threshold in ordered:
        if score >= threshold.min_score:
            return threshold.grade
    return ordered[-1].grade if ordered else "F"


# ── Engine ────────────────────────────────────────────────────────────────────

def score_section(
    section: Section,
    signals: SignalMap,
    category: str,
    lab_metrics: Optional[Mapping[str, Any]] = None,
) -> ScoredSection:
    result = ScoredSection(label=section.label)
    for rule in section.rules:
        weight = resolve_weight(rule, section, category)
        raw = resolve_raw(rule, signals, lab_metrics)
        score = score_rule(raw, rule)
        contribution = weight * score
        result.total_weighted += contribution
        result.total_weight += weight
        result.rules.append(RuleResult(
            key=rule.key,
            label=rule.display_label,
            raw_value=raw,
            score=score,
            weight=weight,
            weighted_contribution=contribution,
            kind=rule.kind.value,
            description=rule.description or rule.display_label,
        ))

    if result.total_weight > 0:
        result.weighted_score = max(0.0, min(1.0, result.total_weighted / result.total_weight))
    result.grade = grade_for(result.weighted_score, section.thresholds)
    return result


def evaluate(
    signals: Optional[SignalMap],
    category: str,
    lab_metrics: Optional[Mapping[str, Any]] = None,
    *,
    rubric: Rubric,
) -> Dict[str, ScoredSection]:
    """
    Score every section of `rubric` against `signals`.

    lab_metrics supplies performance / accessibility / best_practices / seo for
    lab-sourced rules whose key is missing from signals.
    """
    signals = signals or {}
    scores = {
        name: score_section(section, signals, category, lab_metrics)
        for name, section in rubric.items()
    }
    summary = ", ".join(f"{name}={s.grade} ({s.weighted_score:.2f})" for name, s in scores.items())
    logger.info(f"[Scoring] {category}: {summary}")
    return scores
