"""
Rubric model and registry.

A Rubric maps section name -> Section (thresholds, ordered rules, per-category
weight overrides). The registry is built once at startup from an explicit
category -> Rubric mapping and handed to whoever scores; nothing is cached
globally.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import List, Mapping, Optional, Tuple

from siteaudit.errors import ConfigurationError

logger = logging.getLogger(__name__)


class RuleKind(str, Enum):
    BOOLEAN = "boolean"
    NORMALIZED = "normalized"
    NORMALIZED_INVERSE = "normalized_inverse"
    SCALED_MATCH = "scaled_match"
    COUNT_RANGE = "count_range"
    NUMERIC_INVERSE = "numeric_inverse"
    ENUM_QUALITY = "enum_quality"
    LAB_SOURCED = "lab_sourced"


@dataclass(frozen=True)
class GradeThreshold:
    grade: str
    min_score: float


DEFAULT_THRESHOLDS: Tuple[GradeThreshold, ...] = (
    GradeThreshold("S", 0.95),
    GradeThreshold("A", 0.85),
    GradeThreshold("B", 0.75),
    GradeThreshold("C", 0.60),
    GradeThreshold("D", 0.40),
    GradeThreshold("F", 0.00),
)


@dataclass(frozen=True)
class Rule:
    key: str
    kind: RuleKind = RuleKind.NORMALIZED
    label: str = ""
    weight: Optional[float] = None  # explicit weight beats any category override
    ideal_range: Optional[Tuple[float, float]] = None  # count_range only
    description: str = ""

    @property
    def display_label(self) -> str:
        return self.label or self.key


@dataclass(frozen=True)
class Section:
    label: str
    rules: Tuple[Rule, ...]
    thresholds: Tuple[GradeThreshold, ...] = DEFAULT_THRESHOLDS
    weights_by_category: Mapping[str, Mapping[str, float]] = field(
        default_factory=lambda: MappingProxyType({})
    )

    def override_for(self, category: str, key: str) -> Optional[float]:
        return self.weights_by_category.get(category, {}).get(key)

    def with_overrides(self, category: str, weights: Mapping[str, float]) -> "Section":
        """Copy of this section with `weights` added as the overrides for `category`."""
        merged = dict(self.weights_by_category)
        merged[category] = MappingProxyType(dict(weights))
        return Section(
            label=self.label,
            rules=self.rules,
            thresholds=self.thresholds,
            weights_by_category=MappingProxyType(merged),
        )


Rubric = Mapping[str, Section]


def freeze_rubric(sections: Mapping[str, Section]) -> Rubric:
    return MappingProxyType(dict(sections))


def _validate(category: str, rubric: Rubric) -> None:
    for name, section in rubric.items():
        if not section.thresholds:
            raise ConfigurationError(f"{category}.{name}: no grade thresholds")
        if min(t.min_score for t in section.thresholds) != 0:
            raise ConfigurationError(f"{category}.{name}: lowest grade threshold must be 0.0")
        for rule in section.rules:
            if rule.kind is RuleKind.COUNT_RANGE and rule.ideal_range is None:
                logger.warning(f"[Rubric] {category}.{name}.{rule.key}: count_range without ideal_range")


class RubricRegistry:
    """Immutable category -> Rubric lookup with a designated default category."""

    def __init__(self, categories: Mapping[str, Rubric], default_category: str = "base"):
        if not categories:
            raise ConfigurationError("No rubric categories configured")
        if default_category not in categories:
            raise ConfigurationError(
                f"Default category '{default_category}' is not configured "
                f"(available: {', '.join(sorted(categories))})"
            )
        for name, rubric in categories.items():
            _validate(name, rubric)
        self._categories: Mapping[str, Rubric] = MappingProxyType(dict(categories))
        self.default_category = default_category

    def categories(self) -> List[str]:
        return list(self._categories)

    def __contains__(self, category: str) -> bool:
        return category in self._categories

    def resolve(self, category: Optional[str]) -> Rubric:
        """Rubric for category; unknown categories fall back to the default."""
        rubric = self._categories.get(category or "")
        if rubric is None:
            logger.warning(
                f"[Rubric] Unknown category {category!r}; using '{self.default_category}'"
            )
            rubric = self._categories[self.default_category]
        return rubric


def default_registry(default_category: str = "base") -> RubricRegistry:
    """Registry over the shipped categories (base, b2b, ecommerce, media)."""
    from siteaudit.scoring.categories import CATEGORIES

    return RubricRegistry(CATEGORIES, default_category=default_category)
