from typing import Any

from fastapi import APIRouter, Depends

from ..config import MatchingConfig
from ..deps import get_matching_config, get_profile_repository, get_ranking_cache
from ..repo import ProfileRepository
from ..schemas import (
    ErrorResponse,
    FindRequest,
    FindResponse,
    HealthResponse,
    InvalidateRequest,
    InvalidateResponse,
    ScoreRequest,
    ScoreResponse,
)
from ..services.candidates import find_matching_users
from ..services.matching import compute_match_score, validate_user_id
from ..services.preferences import normalization_stats
from ..services.ranking_cache import InMemoryRankingCache

router = APIRouter()
scaffold_router = APIRouter()

ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    status: {"model": ErrorResponse} for status in (400, 404, 500)
}


@scaffold_router.get("/health", response_model=HealthResponse)
def match_scaffold_health() -> dict[str, Any]:
    return {"status": "ok", "module": "match", "normalization": normalization_stats()}


@router.post("/matches/score", response_model=ScoreResponse, responses=ERROR_RESPONSES)
async def score_pair(
    payload: ScoreRequest,
    repository: ProfileRepository = Depends(get_profile_repository),
    config: MatchingConfig = Depends(get_matching_config),
) -> dict[str, Any]:
    result = await compute_match_score(repository, payload.user_id_1, payload.user_id_2, config=config)
    return {"result": result.to_dict()}


@router.post("/matches/find", response_model=FindResponse, responses={**ERROR_RESPONSES, 504: {"model": ErrorResponse}})
async def find_matches(
    payload: FindRequest,
    repository: ProfileRepository = Depends(get_profile_repository),
    config: MatchingConfig = Depends(get_matching_config),
    cache: InMemoryRankingCache = Depends(get_ranking_cache),
) -> dict[str, Any]:
    page = await find_matching_users(
        repository,
        payload.user_id,
        page=payload.page,
        page_size=payload.page_size,
        config=config,
        cache=cache,
    )
    return {"result": page.to_dict()}


@router.post("/matches/invalidate", response_model=InvalidateResponse, responses={400: {"model": ErrorResponse}})
def invalidate_rankings(
    payload: InvalidateRequest,
    cache: InMemoryRankingCache = Depends(get_ranking_cache),
) -> dict[str, int]:
    """Called after a profile update or block so cached rankings stop showing stale data."""
    user_id = validate_user_id(payload.user_id)
    return {"invalidated": cache.invalidate_user(user_id)}
