"""Lab metric container and the median-of-runs helper."""
import math
from dataclasses import asdict, dataclass, replace
from typing import Any, Dict, Iterable, List, Mapping, Optional

CATEGORY_KEYS = ("performance", "accessibility", "seo", "best_practices")


def median(values: Iterable[Any]) -> Optional[float]:
    """Median of the finite numbers in values; None when there are none."""
    sample = sorted(
        float(v) for v in values
        if isinstance(v, (int, float)) and not isinstance(v, bool) and math.isfinite(v)
    )
    if not sample:
        return None
    mid = len(sample) // 2
    if len(sample) % 2:
        return sample[mid]
    return (sample[mid - 1] + sample[mid]) / 2


@dataclass(frozen=True)
class LabMetrics:
    """Category scores in [0, 1] from a lab audit; None when unavailable."""
    performance: Optional[float] = None
    accessibility: Optional[float] = None
    seo: Optional[float] = None
    best_practices: Optional[float] = None
    field_proxy: Optional[float] = None
    strategy: str = "mobile"

    @classmethod
    def from_runs(cls, runs: List[Mapping[str, Any]], strategy: str = "mobile") -> "LabMetrics":
        """Per-category median across runs."""
        return cls(
            **{key: median(run.get(key) for run in runs) for key in CATEGORY_KEYS},
            strategy=strategy,
        )

    @property
    def empty(self) -> bool:
        return all(getattr(self, key) is None for key in CATEGORY_KEYS)

    def blended(self, field_proxy: Optional[float], lab_weight: float = 0.7) -> "LabMetrics":
        """Copy whose performance mixes lab and field data; unchanged if either is missing."""
        if field_proxy is None or self.performance is None:
            return replace(self, field_proxy=field_proxy)
        mixed = lab_weight * self.performance + (1 - lab_weight) * field_proxy
        return replace(self, performance=mixed, field_proxy=field_proxy)

    def for_scoring(self) -> Dict[str, Optional[float]]:
        return {key: getattr(self, key) for key in CATEGORY_KEYS}

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
