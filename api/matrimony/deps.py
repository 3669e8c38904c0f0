from functools import lru_cache

from fastapi import Request

from .config import MatchingConfig
from .repo import ProfileRepository, SqlProfileRepository
from .services.ranking_cache import InMemoryRankingCache, ranking_cache


@lru_cache(maxsize=1)
def _default_repository() -> SqlProfileRepository:
    return SqlProfileRepository(max_workers=get_matching_config().concurrency_limit)


def close_default_repository() -> None:
    if _default_repository.cache_info().currsize:
        _default_repository().close()
        _default_repository.cache_clear()


def get_profile_repository(request: Request) -> ProfileRepository:
    repository = getattr(request.app.state, "profile_repository", None)
    return repository if repository is not None else _default_repository()


@lru_cache(maxsize=1)
def get_matching_config() -> MatchingConfig:
    return MatchingConfig.from_env()


def get_ranking_cache() -> InMemoryRankingCache:
    return ranking_cache
