from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, NamedTuple

from ..config import MatchingConfig
from .profiles import UNKNOWN, WILDCARD, AgeRange, PreferenceSet, ProfileSnapshot, SetCriterion, normalize_habit, normalize_token

VEGETARIAN_DIETS = {"vegetarian", "pure vegetarian", "vegan", "eggetarian", "jain"}
NON_VEGETARIAN_DIETS = {"non-vegetarian", "non vegetarian", "non-veg", "nonveg", "pescatarian"}
FLEXIBLE_DIETS = {"occasionally non-vegetarian", "occasional non-veg", "flexitarian"}


@dataclass(frozen=True)
class DimensionScore:
    score: float
    hard_fail: bool = False


FULL = DimensionScore(1.0)
MISS = DimensionScore(0.0, hard_fail=True)


def _unknown(config: MatchingConfig) -> DimensionScore:
    return DimensionScore(config.unknown_value_score)


def score_age(criterion: AgeRange, age: int | None, config: MatchingConfig) -> DimensionScore:
    if criterion.wildcard:
        return FULL
    if age is None:
        return _unknown(config)
    if criterion.age_from <= age <= criterion.age_to:
        return FULL
    distance = criterion.age_from - age if age < criterion.age_from else age - criterion.age_to
    grace = config.age_grace_years
    if distance >= grace:
        return MISS
    return DimensionScore(round(1.0 - distance / grace, 6))


def score_location(
    criterion: tuple[SetCriterion, SetCriterion],
    value: tuple[str | None, str | None],
    config: MatchingConfig,
) -> DimensionScore:
    countries, states = criterion
    country, state = value
    if countries.is_wildcard and states.is_wildcard:
        return FULL
    if countries.excludes(country) or states.excludes(state):
        return MISS

    country_ok = None if countries.is_wildcard or country is None else countries.accepts(country)
    state_ok = None if states.is_wildcard or state is None else states.accepts(state)
    if country_ok is False:
        return MISS
    if state_ok is False:
        if country_ok:
            return DimensionScore(config.location_country_only_score)
        return MISS
    if country_ok and states.is_constrained and state is None:
        return DimensionScore(max(config.location_country_only_score, config.unknown_value_score))
    if (countries.is_constrained and country is None) or (states.is_constrained and state is None):
        return _unknown(config)
    return FULL


def score_membership(criterion: SetCriterion, values: tuple[str | None, ...], config: MatchingConfig) -> DimensionScore:
    """Wildcard or any candidate value in the accepted set scores 1.0, an explicit miss scores 0.0."""
    if criterion.is_wildcard:
        return FULL
    present = tuple(v for v in values if v)
    if criterion.excludes(*present):
        return MISS
    if not present:
        return _unknown(config)
    if criterion.accepts(*present):
        return FULL
    return MISS


def _diet_categories(diets: set[str] | frozenset[str]) -> set[str]:
    out: set[str] = set()
    for d in diets:
        if d in VEGETARIAN_DIETS:
            out.add("vegetarian")
        if d in NON_VEGETARIAN_DIETS:
            out.add("non_vegetarian")
        if d in FLEXIBLE_DIETS:
            out.add("flexible")
    return out


def score_diet(criterion: SetCriterion, diet: str | None, config: MatchingConfig) -> DimensionScore:
    direct = score_membership(criterion, (diet,), config)
    if direct.score > 0 or diet is None or criterion.excludes(diet):
        return direct
    wanted = _diet_categories(criterion.include)
    have = _diet_categories({diet})
    if "flexible" in wanted or "flexible" in have or (wanted & have):
        return DimensionScore(config.diet_category_score)
    return direct


def score_profession(
    criterion: tuple[SetCriterion, SetCriterion],
    value: tuple[str | None, str | None],
    config: MatchingConfig,
) -> DimensionScore:
    professions, incomes = criterion
    profession, income = value
    job = score_membership(professions, (profession,), config)
    if incomes.is_wildcard:
        return job
    pay = score_membership(incomes, (income,), config)
    return DimensionScore(round((job.score + pay.score) / 2.0, 6), job.hard_fail or pay.hard_fail)


def _habit(tolerance: str, value: str, config: MatchingConfig) -> DimensionScore:
    if tolerance in (WILDCARD, "yes"):
        return FULL
    if value == UNKNOWN:
        return _unknown(config)
    if tolerance == "no":
        if value == "no":
            return FULL
        if value == "occasional":
            return DimensionScore(config.habit_partial_score)
        return MISS
    # occasional tolerance
    if value == "yes":
        return DimensionScore(config.habit_partial_score)
    return FULL


def score_habits(criterion: tuple[str, str], value: tuple[str, str], config: MatchingConfig) -> DimensionScore:
    alcohol = _habit(criterion[0], value[0], config)
    tobacco = _habit(criterion[1], value[1], config)
    return DimensionScore(round((alcohol.score + tobacco.score) / 2.0, 6), alcohol.hard_fail or tobacco.hard_fail)


class DimensionScorer(NamedTuple):
    criterion: Callable[[PreferenceSet], Any]
    value: Callable[[ProfileSnapshot, date], Any]
    score: Callable[[Any, Any, MatchingConfig], DimensionScore]


SCORERS: dict[str, DimensionScorer] = {
    "age": DimensionScorer(
        lambda p: p.age,
        lambda c, as_of: c.age(as_of),
        score_age,
    ),
    "location": DimensionScorer(
        lambda p: (p.countries, p.states),
        lambda c, _: (normalize_token(c.country), normalize_token(c.state)),
        score_location,
    ),
    "community": DimensionScorer(
        lambda p: p.communities,
        lambda c, _: (normalize_token(c.community), normalize_token(c.religion)),
        score_membership,
    ),
    "education": DimensionScorer(
        lambda p: p.educations,
        lambda c, _: (normalize_token(c.education),),
        score_membership,
    ),
    "profession": DimensionScorer(
        lambda p: (p.professions, p.incomes),
        lambda c, _: (normalize_token(c.profession), normalize_token(c.income_bracket)),
        score_profession,
    ),
    "diet": DimensionScorer(
        lambda p: p.diets,
        lambda c, _: normalize_token(c.diet),
        score_diet,
    ),
    "habits": DimensionScorer(
        lambda p: (p.alcohol, p.tobacco),
        lambda c, _: (normalize_habit(c.alcohol), normalize_habit(c.tobacco)),
        score_habits,
    ),
    "marital_status": DimensionScorer(
        lambda p: p.marital_status,
        lambda c, _: (normalize_token(c.marital_status),),
        score_membership,
    ),
}


def score_dimensions(
    prefs: PreferenceSet,
    candidate: ProfileSnapshot,
    *,
    config: MatchingConfig,
    as_of: date,
) -> dict[str, DimensionScore]:
    """Run every scorer for one direction.

    A scorer's raw miss verdict only counts as a hard fail for dimensions listed in
    ``config.hard_filters``; on the others it degrades the score but never excludes.
    """
    out: dict[str, DimensionScore] = {}
    for dim, scorer in SCORERS.items():
        raw = scorer.score(scorer.criterion(prefs), scorer.value(candidate, as_of), config)
        score = max(0.0, min(1.0, float(raw.score)))
        out[dim] = DimensionScore(score, raw.hard_fail and dim in config.hard_filters)
    return out
