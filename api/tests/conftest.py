from datetime import date, datetime, timedelta, timezone

import pytest

from matrimony.config import MatchingConfig
from matrimony.repo import InMemoryProfileRepository
from matrimony.services.preferences import reset_normalization_stats
from matrimony.services.profiles import ProfileSnapshot
from matrimony.services.ranking_cache import InMemoryRankingCache

AS_OF = date(2026, 1, 1)


def dob_for_age(age: int) -> date:
    return date(AS_OF.year - age, 1, 1)


def make_profile(user_id: str, **overrides) -> ProfileSnapshot:
    age = overrides.pop("age", 30)
    base = {
        "user_id": user_id,
        "gender": "male",
        "date_of_birth": dob_for_age(age),
        "marital_status": "never married",
        "religion": "hindu",
        "community": "iyer",
        "diet": "vegetarian",
        "alcohol": "no",
        "tobacco": "no",
        "education": "masters",
        "profession": "engineer",
        "income_bracket": "10-20l",
        "country": "india",
        "state": "karnataka",
        "profile_completeness": 0.8,
        "last_active_at": datetime(2025, 12, 31, tzinfo=timezone.utc),
    }
    base.update(overrides)
    return ProfileSnapshot(**base)


def make_repository(viewer: ProfileSnapshot, candidates, viewer_prefs=None) -> InMemoryProfileRepository:
    repo = InMemoryProfileRepository()
    repo.add(viewer, viewer_prefs)
    for c in candidates:
        repo.add(c)
    return repo


def recently(days: int) -> datetime:
    return datetime(2025, 12, 31, tzinfo=timezone.utc) - timedelta(days=days)


@pytest.fixture
def config() -> MatchingConfig:
    return MatchingConfig(
        concurrency_limit=4,
        candidate_timeout_seconds=1.0,
        request_deadline_seconds=5.0,
        strict=False,
        page_cache_ttl_seconds=60,
        default_page_size=20,
        max_page_size=50,
        pool_batch_size=200,
        max_pool_size=5000,
        min_score=0,
        orientation="opposite",
    )


@pytest.fixture
def cache() -> InMemoryRankingCache:
    return InMemoryRankingCache()


@pytest.fixture(autouse=True)
def _reset_stats():
    reset_normalization_stats()
    yield
    reset_normalization_stats()
