"""
Canonicalisation of raw partner-expectation documents.

Expectation documents come straight from the onboarding forms and are loosely
typed: a field may be a string, a list, a boolean, absent, or garbage. This
module turns them into a ``PreferenceSet`` where every set field is either the
wildcard or a non-empty set of normalised tokens, and the age range is valid.
Nothing in here raises on bad input; defects are counted instead.
"""

from __future__ import annotations

import logging
import threading
from collections import Counter
from dataclasses import dataclass, field
from typing import Any

from ..config import MatchingConfig
from .profiles import (
    ANY,
    WILDCARD,
    WILDCARD_LITERALS,
    AgeRange,
    PreferenceSet,
    SetCriterion,
    normalize_habit,
    normalize_token,
)

logger = logging.getLogger(__name__)

SET_FIELDS = {
    "marital_status": "marital_status",
    "community": "communities",
    "country": "countries",
    "state": "states",
    "diet": "diets",
    "education": "educations",
    "profession": "professions",
    "income": "incomes",
}
HABIT_FIELDS = ("alcohol", "tobacco")

_EXCLUDE_PREFIX = "not "

_stats_lock = threading.Lock()
_process_stats: Counter[str] = Counter()


@dataclass
class NormalizationDiagnostics:
    malformed: Counter[str] = field(default_factory=Counter)
    defaulted: Counter[str] = field(default_factory=Counter)

    def record_malformed(self, field_name: str) -> None:
        self.malformed[field_name] += 1
        _bump(f"malformed.{field_name}")

    def record_defaulted(self, field_name: str) -> None:
        self.defaulted[field_name] += 1
        _bump(f"defaulted.{field_name}")

    @property
    def malformed_total(self) -> int:
        return sum(self.malformed.values())


def _bump(key: str) -> None:
    with _stats_lock:
        _process_stats[key] += 1


def normalization_stats() -> dict[str, int]:
    with _stats_lock:
        return dict(sorted(_process_stats.items()))


def reset_normalization_stats() -> None:
    with _stats_lock:
        _process_stats.clear()


def wildcard_preferences(config: MatchingConfig) -> PreferenceSet:
    return PreferenceSet(age=AgeRange(config.age_bound_min, config.age_bound_max, wildcard=True))


def _as_list(value: Any) -> list[Any] | None:
    if isinstance(value, (list, tuple, set, frozenset)):
        return list(value)
    if isinstance(value, str):
        return [value]
    return None


def _normalize_set(raw: Any, field_name: str, diag: NormalizationDiagnostics) -> SetCriterion:
    if raw is None:
        diag.record_defaulted(field_name)
        return ANY
    items = _as_list(raw)
    if items is None:
        diag.record_malformed(field_name)
        return ANY

    include: set[str] = set()
    exclude: set[str] = set()
    saw_wildcard = False
    for item in items:
        if not isinstance(item, (str, int, float)) or isinstance(item, bool):
            diag.record_malformed(field_name)
            continue
        token = normalize_token(item)
        if not token:
            continue
        if token in WILDCARD_LITERALS:
            saw_wildcard = True
        elif token.startswith(_EXCLUDE_PREFIX) and len(token) > len(_EXCLUDE_PREFIX):
            exclude.add(token[len(_EXCLUDE_PREFIX):].strip())
        else:
            include.add(token)

    if not include and not exclude and not saw_wildcard:
        # blank strings are malformed, an empty list just means no constraint
        if items:
            diag.record_malformed(field_name)
        else:
            diag.record_defaulted(field_name)
        return ANY
    if saw_wildcard or not include:
        include = {WILDCARD}
    return SetCriterion(include=frozenset(include), exclude=frozenset(exclude))


def _to_age(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str) and not value.strip():
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def _normalize_age(raw: Any, config: MatchingConfig, diag: NormalizationDiagnostics) -> AgeRange:
    lo_bound, hi_bound = config.age_bound_min, config.age_bound_max
    wildcard = AgeRange(lo_bound, hi_bound, wildcard=True)
    if raw is None:
        diag.record_defaulted("age")
        return wildcard
    if isinstance(raw, str) and normalize_token(raw) in WILDCARD_LITERALS:
        return wildcard
    if not isinstance(raw, dict):
        diag.record_malformed("age")
        return wildcard

    raw_from, raw_to = raw.get("from"), raw.get("to")
    age_from, age_to = _to_age(raw_from), _to_age(raw_to)
    if raw_from is not None and age_from is None:
        diag.record_malformed("age")
    if raw_to is not None and age_to is None:
        diag.record_malformed("age")
    if age_from is None and age_to is None:
        return wildcard

    age_from = lo_bound if age_from is None else age_from
    age_to = hi_bound if age_to is None else age_to
    if age_from > age_to:
        age_from, age_to = age_to, age_from
    age_from = min(max(age_from, lo_bound), hi_bound)
    age_to = min(max(age_to, lo_bound), hi_bound)
    return AgeRange(age_from, age_to)


def _normalize_tolerance(raw: Any, field_name: str, diag: NormalizationDiagnostics) -> str:
    if raw is None:
        diag.record_defaulted(field_name)
        return WILDCARD
    if isinstance(raw, str) and normalize_token(raw) in WILDCARD_LITERALS:
        return WILDCARD
    if not isinstance(raw, (str, bool)):
        diag.record_malformed(field_name)
        return WILDCARD
    value = normalize_habit(raw)
    if value == "unknown":
        diag.record_malformed(field_name)
        return WILDCARD
    return value


def normalize_preferences(
    raw: dict[str, Any] | None,
    *,
    config: MatchingConfig,
    diagnostics: NormalizationDiagnostics | None = None,
) -> PreferenceSet:
    diag = diagnostics if diagnostics is not None else NormalizationDiagnostics()
    if raw is None:
        _bump("missing_document")
        return wildcard_preferences(config)
    if not isinstance(raw, dict):
        diag.record_malformed("document")
        return wildcard_preferences(config)

    sets = {attr: _normalize_set(raw.get(key), key, diag) for key, attr in SET_FIELDS.items()}
    prefs = PreferenceSet(
        age=_normalize_age(raw.get("age"), config, diag),
        alcohol=_normalize_tolerance(raw.get("alcohol"), "alcohol", diag),
        tobacco=_normalize_tolerance(raw.get("tobacco"), "tobacco", diag),
        **sets,
    )
    if diag.malformed_total:
        logger.debug("[NORMALIZE] malformed preference fields=%s", dict(diag.malformed))
    return prefs
