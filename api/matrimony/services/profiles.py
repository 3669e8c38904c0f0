from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

WILDCARD = "*"
WILDCARD_LITERALS = {"*", "any", "no preference", "doesn't matter", "doesnt matter", "open to all", "all"}
HABIT_VALUES = {"yes", "no", "occasional", "unknown"}
UNKNOWN = "unknown"

_HABIT_ALIASES = {
    "yes": "yes",
    "true": "yes",
    "regular": "yes",
    "regularly": "yes",
    "no": "no",
    "false": "no",
    "never": "no",
    "occasional": "occasional",
    "occasionally": "occasional",
    "socially": "occasional",
}


def normalize_token(value: Any) -> str | None:
    if value is None:
        return None
    v = " ".join(str(value).split()).lower()
    return v or None


def normalize_habit(value: Any) -> str:
    if isinstance(value, bool):
        return "yes" if value else "no"
    v = normalize_token(value)
    if not v:
        return UNKNOWN
    return _HABIT_ALIASES.get(v, UNKNOWN)


def age_on(date_of_birth: date | None, as_of: date) -> int | None:
    if date_of_birth is None:
        return None
    years = as_of.year - date_of_birth.year
    if (as_of.month, as_of.day) < (date_of_birth.month, date_of_birth.day):
        years -= 1
    return years


@dataclass(frozen=True)
class SetCriterion:
    include: frozenset[str] = frozenset({WILDCARD})
    exclude: frozenset[str] = frozenset()

    @property
    def is_wildcard(self) -> bool:
        return WILDCARD in self.include and not self.exclude

    @property
    def is_constrained(self) -> bool:
        return not self.is_wildcard

    def excludes(self, *values: str | None) -> bool:
        return any(v is not None and v in self.exclude for v in values)

    def accepts(self, *values: str | None) -> bool:
        present = [v for v in values if v is not None]
        if self.excludes(*present):
            return False
        if WILDCARD in self.include:
            return True
        return any(v in self.include for v in present)

    def to_dict(self) -> dict[str, list[str]]:
        return {"include": sorted(self.include), "exclude": sorted(self.exclude)}


ANY = SetCriterion()


@dataclass(frozen=True)
class AgeRange:
    age_from: int
    age_to: int
    wildcard: bool = False


@dataclass(frozen=True)
class PreferenceSet:
    age: AgeRange
    marital_status: SetCriterion = ANY
    countries: SetCriterion = ANY
    states: SetCriterion = ANY
    communities: SetCriterion = ANY
    diets: SetCriterion = ANY
    educations: SetCriterion = ANY
    professions: SetCriterion = ANY
    incomes: SetCriterion = ANY
    alcohol: str = WILDCARD
    tobacco: str = WILDCARD

    @property
    def is_wildcard(self) -> bool:
        sets = (
            self.marital_status,
            self.countries,
            self.states,
            self.communities,
            self.diets,
            self.educations,
            self.professions,
            self.incomes,
        )
        return (
            self.age.wildcard
            and all(s.is_wildcard for s in sets)
            and self.alcohol == WILDCARD
            and self.tobacco == WILDCARD
        )


@dataclass(frozen=True)
class ProfileSnapshot:
    user_id: str
    gender: str | None = None
    date_of_birth: date | None = None
    marital_status: str | None = None
    religion: str | None = None
    community: str | None = None
    diet: str | None = None
    alcohol: str = UNKNOWN
    tobacco: str = UNKNOWN
    education: str | None = None
    profession: str | None = None
    income_bracket: str | None = None
    country: str | None = None
    state: str | None = None
    is_active: bool = True
    is_approved: bool = True
    is_visible: bool = True
    profile_completeness: float = 0.0
    last_active_at: datetime | None = None

    def age(self, as_of: date) -> int | None:
        return age_on(self.date_of_birth, as_of)

    @property
    def is_matchable(self) -> bool:
        return self.is_active and self.is_approved and self.is_visible


@dataclass(frozen=True)
class PoolFilters:
    """Cheap predicates the repository applies before any scoring happens."""

    genders: frozenset[str] | None = None
    require_active: bool = True
    require_visible: bool = True
    require_approved: bool = True
    exclude_user_ids: frozenset[str] = field(default_factory=frozenset)


_OPPOSITE_GENDER = {"male": "female", "female": "male", "man": "woman", "woman": "man"}


def pool_filters_for(viewer: ProfileSnapshot, orientation: str) -> PoolFilters:
    if orientation == "opposite":
        gender = normalize_token(viewer.gender)
        opposite = _OPPOSITE_GENDER.get(gender or "")
        genders = frozenset({opposite}) if opposite else frozenset()
    else:
        genders = None
    return PoolFilters(genders=genders, exclude_user_ids=frozenset({viewer.user_id}))
