from __future__ import annotations

from dataclasses import dataclass, field

from ..config import DIMENSIONS, MatchingConfig
from .scorers import DimensionScore


@dataclass(frozen=True)
class DirectionalScore:
    composite: int
    excluded: bool
    breakdown: dict[str, float]
    hard_failures: list[str] = field(default_factory=list)


class CompatibilityAggregator:
    """Folds per-dimension scores into one composite in [0, 100].

    Any hard failure on a dimension the config treats as a hard filter excludes the
    direction outright; its composite is reported as 0 and must not be ranked.
    """

    def __init__(self, config: MatchingConfig):
        self.weights = {d: float(config.weights[d]) for d in DIMENSIONS}
        self.hard_filters = frozenset(config.hard_filters)

    def aggregate(self, scores: dict[str, DimensionScore]) -> DirectionalScore:
        breakdown = {d: round(scores[d].score, 6) for d in DIMENSIONS if d in scores}
        hard_failures = [d for d in DIMENSIONS if d in scores and scores[d].hard_fail and d in self.hard_filters]
        if hard_failures:
            return DirectionalScore(composite=0, excluded=True, breakdown=breakdown, hard_failures=hard_failures)

        # dimensions with no score contribute nothing
        total = sum(self.weights[d] * scores[d].score for d in DIMENSIONS if d in scores)
        composite = int(round(max(0.0, min(1.0, total)) * 100))
        return DirectionalScore(composite=composite, excluded=False, breakdown=breakdown)
