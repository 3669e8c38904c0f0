from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from ..config import MatchingConfig
from ..errors import InternalError, NotFoundError, RepositoryError, ValidationError
from .aggregator import CompatibilityAggregator, DirectionalScore
from .explanations import build_reasons, describe_hard_failures
from .preferences import NormalizationDiagnostics, normalize_preferences, wildcard_preferences
from .profiles import PreferenceSet, ProfileSnapshot
from .scorers import score_dimensions

logger = logging.getLogger(__name__)

USER_ID_RE = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


@dataclass(frozen=True)
class MatchResult:
    user_id: str
    candidate_id: str
    score_a_to_b: int
    score_b_to_a: int
    mutual_score: int
    excluded: bool
    breakdown_a_to_b: dict[str, float] = field(default_factory=dict)
    breakdown_b_to_a: dict[str, float] = field(default_factory=dict)
    reasons: list[str] = field(default_factory=list)
    hard_failures: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "scoreAtoB": self.score_a_to_b,
            "scoreBtoA": self.score_b_to_a,
            "mutualScore": self.mutual_score,
            "excluded": self.excluded,
            "breakdown": [dict(self.breakdown_a_to_b), dict(self.breakdown_b_to_a)],
            "reasons": list(self.reasons),
            "hardFailures": list(self.hard_failures),
        }


def validate_user_id(value: Any, field_name: str = "userId") -> str:
    if not isinstance(value, str):
        raise ValidationError(f"{field_name} must be a string")
    v = value.strip()
    if not USER_ID_RE.fullmatch(v):
        raise ValidationError(f"{field_name} is not a valid user id")
    return v


def _harmonic_mean(a: float, b: float) -> float:
    if a <= 0 or b <= 0:
        return 0.0
    return 2.0 * a * b / (a + b)


def score_direction(
    viewer_prefs: PreferenceSet,
    candidate: ProfileSnapshot,
    *,
    config: MatchingConfig,
    as_of: date,
    aggregator: CompatibilityAggregator | None = None,
) -> DirectionalScore:
    aggregator = aggregator or CompatibilityAggregator(config)
    return aggregator.aggregate(score_dimensions(viewer_prefs, candidate, config=config, as_of=as_of))


async def fetch_snapshot(repository, user_id: str) -> ProfileSnapshot:
    try:
        snapshot = await repository.get_snapshot(user_id)
    except RepositoryError as exc:
        err = InternalError("profile repository unavailable")
        logger.error("[MATCH] snapshot fetch failed user_id=%s trace_id=%s error=%s", user_id, err.trace_id, exc)
        raise err from exc
    if snapshot is None or not snapshot.is_active:
        raise NotFoundError(f"profile {user_id} not found")
    return snapshot


async def fetch_preferences(
    repository,
    user_id: str,
    *,
    config: MatchingConfig,
    diagnostics: NormalizationDiagnostics | None = None,
) -> tuple[PreferenceSet, bool]:
    """Return (preferences, fetched).

    A failed fetch yields wildcard preferences with ``fetched`` False; callers must not
    treat that as a complete answer. An absent document is normalised as usual.
    """
    try:
        raw = await repository.get_preferences(user_id)
    except RepositoryError as exc:
        logger.warning("[MATCH] preferences fetch failed user_id=%s: %s", user_id, exc)
        return wildcard_preferences(config), False
    return normalize_preferences(raw, config=config, diagnostics=diagnostics), True


async def load_profile(
    repository,
    user_id: str,
    *,
    config: MatchingConfig,
    diagnostics: NormalizationDiagnostics | None = None,
) -> tuple[ProfileSnapshot, PreferenceSet]:
    """Snapshot and preferences for a pair side. Either fetch failing is an InternalError."""
    snapshot, (prefs, fetched) = await asyncio.gather(
        fetch_snapshot(repository, user_id),
        fetch_preferences(repository, user_id, config=config, diagnostics=diagnostics),
    )
    if not fetched:
        raise InternalError(f"preferences for {user_id} unavailable")
    return snapshot, prefs


def _self_result(user_id: str) -> MatchResult:
    return MatchResult(
        user_id=user_id,
        candidate_id=user_id,
        score_a_to_b=0,
        score_b_to_a=0,
        mutual_score=0,
        excluded=True,
        reasons=describe_hard_failures(["self"]),
        hard_failures=["self"],
    )


async def compute_match_score(
    repository,
    user_id_1: str,
    user_id_2: str,
    *,
    config: MatchingConfig | None = None,
    as_of: date | None = None,
) -> MatchResult:
    """Score a pair in both directions.

    Raises NotFoundError when either id is not an active profile and InternalError
    when a profile or its expectations cannot be fetched. Missing or malformed
    expectations are absorbed by the normalizer.
    """
    config = config or MatchingConfig.from_env()
    as_of = as_of or date.today()
    a_id = validate_user_id(user_id_1, "userId1")
    b_id = validate_user_id(user_id_2, "userId2")

    if a_id == b_id:
        await fetch_snapshot(repository, a_id)
        return _self_result(a_id)

    (a, a_prefs), (b, b_prefs) = await asyncio.gather(
        load_profile(repository, a_id, config=config),
        load_profile(repository, b_id, config=config),
    )

    aggregator = CompatibilityAggregator(config)
    a_to_b = score_direction(a_prefs, b, config=config, as_of=as_of, aggregator=aggregator)
    b_to_a = score_direction(b_prefs, a, config=config, as_of=as_of, aggregator=aggregator)

    excluded = a_to_b.excluded or b_to_a.excluded
    mutual = 0 if excluded else int(round(_harmonic_mean(a_to_b.composite, b_to_a.composite)))
    hard_failures = sorted(set(a_to_b.hard_failures) | set(b_to_a.hard_failures))
    reasons = describe_hard_failures(hard_failures) if excluded else build_reasons(a_to_b.breakdown)

    logger.debug(
        "[MATCH] pair=%s,%s a_to_b=%s b_to_a=%s mutual=%s excluded=%s",
        a_id,
        b_id,
        a_to_b.composite,
        b_to_a.composite,
        mutual,
        excluded,
    )
    return MatchResult(
        user_id=a_id,
        candidate_id=b_id,
        score_a_to_b=a_to_b.composite,
        score_b_to_a=b_to_a.composite,
        mutual_score=mutual,
        excluded=excluded,
        breakdown_a_to_b=a_to_b.breakdown,
        breakdown_b_to_a=b_to_a.breakdown,
        reasons=reasons,
        hard_failures=hard_failures,
    )
