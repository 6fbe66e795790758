"""Rubrics and the scoring engine"""
from siteaudit.scoring.engine import RuleResult, ScoredSection, evaluate
from siteaudit.scoring.rubrics import (
    DEFAULT_THRESHOLDS,
    GradeThreshold,
    Rubric,
    RubricRegistry,
    Rule,
    RuleKind,
    Section,
    default_registry,
)

__all__ = [
    'evaluate',
    'RuleResult',
    'ScoredSection',
    'DEFAULT_THRESHOLDS',
    'GradeThreshold',
    'Rubric',
    'RubricRegistry',
    'Rule',
    'RuleKind',
    'Section',
    'default_registry',
]
