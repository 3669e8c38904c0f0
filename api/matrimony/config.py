import hashlib
import json
import os
from dataclasses import asdict, dataclass, field
from typing import Any

DIMENSIONS = (
    "age",
    "location",
    "community",
    "education",
    "profession",
    "diet",
    "habits",
    "marital_status",
)

DEFAULT_DIMENSION_WEIGHTS: dict[str, float] = {
    "age": float(os.getenv("AGE_W", "0.25")),
    "location": float(os.getenv("LOCATION_W", "0.15")),
    "community": float(os.getenv("COMMUNITY_W", "0.15")),
    "education": float(os.getenv("EDUCATION_W", "0.10")),
    "profession": float(os.getenv("PROFESSION_W", "0.10")),
    "diet": float(os.getenv("DIET_W", "0.10")),
    "habits": float(os.getenv("HABITS_W", "0.10")),
    "marital_status": float(os.getenv("MARITAL_STATUS_W", "0.05")),
}

if os.getenv("MATCHING_CONFIG_JSON"):
    try:
        DEFAULT_DIMENSION_WEIGHTS.update(json.loads(os.getenv("MATCHING_CONFIG_JSON", "{}")))
    except json.JSONDecodeError:
        pass

HARD_FILTER_DIMENSIONS = [
    d.strip()
    for d in os.getenv("HARD_FILTER_DIMENSIONS", "age,location,marital_status,habits").split(",")
    if d.strip()
]

AGE_GRACE_YEARS = int(os.getenv("AGE_GRACE_YEARS", "2"))
AGE_BOUND_MIN = int(os.getenv("AGE_BOUND_MIN", "18"))
AGE_BOUND_MAX = int(os.getenv("AGE_BOUND_MAX", "40"))

MATCH_CONCURRENCY_LIMIT = int(os.getenv("MATCH_CONCURRENCY_LIMIT", "32"))
MATCH_CANDIDATE_TIMEOUT_MS = int(os.getenv("MATCH_CANDIDATE_TIMEOUT_MS", "200"))
MATCH_REQUEST_DEADLINE_MS = int(os.getenv("MATCH_REQUEST_DEADLINE_MS", "5000"))
MATCH_STRICT_MODE = os.getenv("MATCH_STRICT_MODE", "false").lower() == "true"
MATCH_PAGE_CACHE_TTL_SECONDS = int(os.getenv("MATCH_PAGE_CACHE_TTL_SECONDS", "60"))
MATCH_DEFAULT_PAGE_SIZE = int(os.getenv("MATCH_DEFAULT_PAGE_SIZE", "20"))
MATCH_MAX_PAGE_SIZE = int(os.getenv("MATCH_MAX_PAGE_SIZE", "50"))
MATCH_POOL_BATCH_SIZE = int(os.getenv("MATCH_POOL_BATCH_SIZE", "200"))
MATCH_MAX_POOL_SIZE = int(os.getenv("MATCH_MAX_POOL_SIZE", "5000"))
MIN_SCORE = int(os.getenv("MIN_SCORE", "0"))
MATCH_ORIENTATION = os.getenv("MATCH_ORIENTATION", "opposite").strip().lower()


@dataclass(frozen=True)
class MatchingConfig:
    """Scoring and ranking knobs, built once and injected where scoring happens."""

    weights: dict[str, float] = field(default_factory=lambda: dict(DEFAULT_DIMENSION_WEIGHTS))
    hard_filters: frozenset[str] = field(default_factory=lambda: frozenset(HARD_FILTER_DIMENSIONS))
    age_grace_years: int = AGE_GRACE_YEARS
    age_bound_min: int = AGE_BOUND_MIN
    age_bound_max: int = AGE_BOUND_MAX
    location_country_only_score: float = 0.7
    habit_partial_score: float = 0.5
    diet_category_score: float = 0.75
    unknown_value_score: float = 0.5
    concurrency_limit: int = MATCH_CONCURRENCY_LIMIT
    candidate_timeout_seconds: float = MATCH_CANDIDATE_TIMEOUT_MS / 1000.0
    request_deadline_seconds: float = MATCH_REQUEST_DEADLINE_MS / 1000.0
    strict: bool = MATCH_STRICT_MODE
    page_cache_ttl_seconds: int = MATCH_PAGE_CACHE_TTL_SECONDS
    default_page_size: int = MATCH_DEFAULT_PAGE_SIZE
    max_page_size: int = MATCH_MAX_PAGE_SIZE
    pool_batch_size: int = MATCH_POOL_BATCH_SIZE
    max_pool_size: int = MATCH_MAX_POOL_SIZE
    min_score: int = MIN_SCORE
    orientation: str = MATCH_ORIENTATION

    def __post_init__(self) -> None:
        missing = [d for d in DIMENSIONS if d not in self.weights]
        unknown = [d for d in self.weights if d not in DIMENSIONS]
        if missing or unknown:
            raise ValueError(f"weights must cover exactly {DIMENSIONS}; missing={missing} unknown={unknown}")
        if any(float(w) < 0 for w in self.weights.values()):
            raise ValueError("weights must be non-negative")
        total = sum(float(w) for w in self.weights.values())
        if abs(total - 1.0) > 1e-6:
            raise ValueError(f"weights must sum to 1, got {total:.6f}")
        bad_filters = sorted(set(self.hard_filters) - set(DIMENSIONS))
        if bad_filters:
            raise ValueError(f"unknown hard filter dimensions: {bad_filters}")
        if self.age_bound_min > self.age_bound_max:
            raise ValueError("age_bound_min must be <= age_bound_max")
        if self.age_grace_years < 0:
            raise ValueError("age_grace_years must be >= 0")
        if self.concurrency_limit < 1:
            raise ValueError("concurrency_limit must be >= 1")
        if self.orientation not in {"opposite", "any"}:
            raise ValueError("orientation must be one of: opposite, any")

    @classmethod
    def from_env(cls, **overrides: Any) -> "MatchingConfig":
        return cls(**overrides)

    def with_overrides(self, **overrides: Any) -> "MatchingConfig":
        data = asdict(self)
        data.update(overrides)
        return MatchingConfig(**data)

    def fingerprint(self) -> str:
        payload = asdict(self)
        payload["hard_filters"] = sorted(self.hard_filters)
        raw = json.dumps(payload, sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(raw.encode("utf-8")).hexdigest()[:16]
