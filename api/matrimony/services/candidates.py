from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from ..config import MatchingConfig
from ..errors import DeadlineExceededError, InternalError, PartialDataError, RepositoryError, ValidationError
from .aggregator import CompatibilityAggregator
from .explanations import build_reasons
from .matching import fetch_preferences, fetch_snapshot, score_direction, validate_user_id
from .profiles import PoolFilters, PreferenceSet, pool_filters_for
from .ranking_cache import InMemoryRankingCache, ranking_cache

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RankedCandidate:
    user_id: str
    score: int
    breakdown: dict[str, float]
    reasons: list[str] = field(default_factory=list)
    profile_completeness: float = 0.0
    last_active_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "userId": self.user_id,
            "score": self.score,
            "breakdown": dict(self.breakdown),
            "reasons": list(self.reasons),
        }


@dataclass(frozen=True)
class CandidatePage:
    viewer_id: str
    candidates: list[RankedCandidate]
    page: int
    page_size: int
    total_considered: int
    has_more: bool
    partial: bool = False
    skipped: int = 0
    cached: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "candidates": [c.to_dict() for c in self.candidates],
            "totalConsidered": self.total_considered,
            "partial": self.partial,
            "page": self.page,
            "pageSize": self.page_size,
            "hasMore": self.has_more,
        }


def rank_key(c: RankedCandidate) -> tuple[float, float, float, str]:
    last_active = c.last_active_at.timestamp() if c.last_active_at else float("-inf")
    return (-c.score, -c.profile_completeness, -last_active, c.user_id)


def validate_pagination(page: Any, page_size: Any, config: MatchingConfig) -> tuple[int, int]:
    page = 1 if page is None else page
    page_size = config.default_page_size if page_size is None else page_size
    if isinstance(page, bool) or not isinstance(page, int) or page < 1:
        raise ValidationError("page must be an integer >= 1")
    if isinstance(page_size, bool) or not isinstance(page_size, int) or not 1 <= page_size <= config.max_page_size:
        raise ValidationError(f"pageSize must be an integer between 1 and {config.max_page_size}")
    return page, page_size


async def collect_pool(
    repository,
    viewer_id: str,
    filters: PoolFilters,
    config: MatchingConfig,
) -> tuple[list[str], bool]:
    """Page through the repository's candidate pool. Returns (ids, truncated_by_failure)."""
    ids: list[str] = []
    seen: set[str] = {viewer_id}
    offset = 0
    while len(ids) < config.max_pool_size:
        limit = min(config.pool_batch_size, config.max_pool_size - len(ids))
        try:
            batch = await repository.get_candidate_pool(viewer_id, filters, offset=offset, limit=limit)
        except RepositoryError as exc:
            if not ids:
                err = InternalError("candidate pool unavailable")
                logger.error("[FINDER] pool fetch failed viewer_id=%s trace_id=%s error=%s", viewer_id, err.trace_id, exc)
                raise err from exc
            logger.warning("[FINDER] pool fetch failed at offset=%s viewer_id=%s: %s", offset, viewer_id, exc)
            return ids, True
        for cid in batch:
            cid = str(cid)
            if cid in seen:
                continue
            seen.add(cid)
            ids.append(cid)
        if len(batch) < limit:
            break
        offset += len(batch)
    return ids, False


async def _score_candidate(
    repository,
    candidate_id: str,
    prefs: PreferenceSet,
    *,
    config: MatchingConfig,
    as_of: date,
    aggregator: CompatibilityAggregator,
) -> RankedCandidate | PartialDataError | None:
    """One worker unit. Returns None when the candidate is excluded or no longer matchable."""
    try:
        snapshot = await asyncio.wait_for(repository.get_snapshot(candidate_id), timeout=config.candidate_timeout_seconds)
    except asyncio.TimeoutError:
        logger.warning("[FINDER] candidate fetch timed out candidate_id=%s", candidate_id)
        return PartialDataError("candidate fetch timed out", user_id=candidate_id)
    except RepositoryError as exc:
        logger.warning("[FINDER] candidate fetch failed candidate_id=%s: %s", candidate_id, exc)
        return PartialDataError(str(exc), user_id=candidate_id)
    except Exception:
        logger.exception("[FINDER] unexpected error fetching candidate_id=%s", candidate_id)
        return PartialDataError("unexpected candidate error", user_id=candidate_id)

    if snapshot is None or not snapshot.is_matchable:
        return None
    scored = score_direction(prefs, snapshot, config=config, as_of=as_of, aggregator=aggregator)
    if scored.excluded:
        return None
    return RankedCandidate(
        user_id=snapshot.user_id,
        score=scored.composite,
        breakdown=scored.breakdown,
        reasons=build_reasons(scored.breakdown),
        profile_completeness=float(snapshot.profile_completeness or 0.0),
        last_active_at=snapshot.last_active_at,
    )


async def score_pool(
    repository,
    candidate_ids: list[str],
    prefs: PreferenceSet,
    *,
    config: MatchingConfig,
    as_of: date,
    timeout: float,
) -> tuple[list[RankedCandidate], list[PartialDataError], bool]:
    """Score candidates with at most ``config.concurrency_limit`` units in flight.

    Returns (ranked candidates, skipped units, finished). Outcomes are handed back
    through a queue so work completed before the deadline survives cancellation.
    """
    work: asyncio.Queue[str] = asyncio.Queue()
    for cid in candidate_ids:
        work.put_nowait(cid)
    outcomes: asyncio.Queue[RankedCandidate | PartialDataError | None] = asyncio.Queue()
    aggregator = CompatibilityAggregator(config)

    async def worker() -> None:
        while True:
            try:
                cid = work.get_nowait()
            except asyncio.QueueEmpty:
                return
            outcome = await _score_candidate(repository, cid, prefs, config=config, as_of=as_of, aggregator=aggregator)
            outcomes.put_nowait(outcome)

    workers = [asyncio.create_task(worker()) for _ in range(min(config.concurrency_limit, len(candidate_ids)))]
    finished = True
    try:
        if workers:
            _, pending = await asyncio.wait(workers, timeout=max(0.0, timeout))
            finished = not pending
    finally:
        for task in workers:
            if not task.done():
                task.cancel()
        await asyncio.gather(*workers, return_exceptions=True)

    ranked: list[RankedCandidate] = []
    skipped: list[PartialDataError] = []
    while not outcomes.empty():
        outcome = outcomes.get_nowait()
        if isinstance(outcome, PartialDataError):
            skipped.append(outcome)
        elif outcome is not None:
            ranked.append(outcome)
    return ranked, skipped, finished


def _build_page(
    viewer_id: str,
    ranked: list[RankedCandidate],
    total_considered: int,
    page: int,
    page_size: int,
    *,
    partial: bool = False,
    skipped: int = 0,
    cached: bool = False,
) -> CandidatePage:
    start = (page - 1) * page_size
    return CandidatePage(
        viewer_id=viewer_id,
        candidates=ranked[start : start + page_size],
        page=page,
        page_size=page_size,
        total_considered=total_considered,
        has_more=start + page_size < len(ranked),
        partial=partial,
        skipped=skipped,
        cached=cached,
    )


async def find_matching_users(
    repository,
    viewer_id: str,
    *,
    page: Any = 1,
    page_size: Any = None,
    config: MatchingConfig | None = None,
    as_of: date | None = None,
    strict: bool | None = None,
    cache: InMemoryRankingCache | None = ranking_cache,
) -> CandidatePage:
    """Rank the viewer's candidate pool and return one page of it.

    Candidates that fail to load are skipped and flag the page ``partial``. When the
    request deadline passes, lenient mode returns what was scored so far; strict mode
    raises DeadlineExceededError. If the viewer's preferences cannot be fetched,
    lenient mode ranks against wildcard preferences and flags the page ``partial``;
    strict mode raises InternalError.
    """
    config = config or MatchingConfig.from_env()
    as_of = as_of or date.today()
    strict = config.strict if strict is None else strict
    viewer_id = validate_user_id(viewer_id)
    page, page_size = validate_pagination(page, page_size, config)

    loop = asyncio.get_running_loop()
    deadline = loop.time() + config.request_deadline_seconds

    # the viewer must still be active, even on a cache hit
    viewer = await fetch_snapshot(repository, viewer_id)

    cache_key = (viewer_id, config.fingerprint(), as_of.isoformat())
    if cache is not None:
        hit = cache.get(cache_key)
        if hit is not None:
            logger.debug("[FINDER] ranking cache hit viewer_id=%s", viewer_id)
            return _build_page(viewer_id, hit.ranked, hit.total_considered, page, page_size, cached=True)

    prefs, prefs_fetched = await fetch_preferences(repository, viewer_id, config=config)
    if not prefs_fetched:
        if strict:
            raise InternalError(f"preferences for {viewer_id} unavailable")
        logger.warning("[FINDER] ranking with wildcard preferences viewer_id=%s", viewer_id)
    filters = pool_filters_for(viewer, config.orientation)

    try:
        candidate_ids, pool_truncated = await asyncio.wait_for(
            collect_pool(repository, viewer_id, filters, config),
            timeout=max(0.0, deadline - loop.time()),
        )
    except asyncio.TimeoutError:
        if strict:
            raise DeadlineExceededError("candidate pool fetch exceeded the request deadline")
        logger.warning("[FINDER] pool fetch hit deadline viewer_id=%s", viewer_id)
        return _build_page(viewer_id, [], 0, page, page_size, partial=True)

    ranked, skipped, finished = await score_pool(
        repository,
        candidate_ids,
        prefs,
        config=config,
        as_of=as_of,
        timeout=deadline - loop.time(),
    )
    if not finished:
        if strict:
            raise DeadlineExceededError("candidate scoring exceeded the request deadline")
        logger.warning(
            "[FINDER] deadline reached viewer_id=%s scored=%s of %s",
            viewer_id,
            len(ranked) + len(skipped),
            len(candidate_ids),
        )

    ranked = [c for c in ranked if c.score >= config.min_score]
    ranked.sort(key=rank_key)
    partial = bool(skipped) or pool_truncated or not finished or not prefs_fetched

    logger.info(
        "[FINDER] viewer_id=%s pool=%s ranked=%s skipped=%s partial=%s",
        viewer_id,
        len(candidate_ids),
        len(ranked),
        len(skipped),
        partial,
    )
    if cache is not None and not partial:
        cache.set(cache_key, viewer_id, ranked, len(ranked), config.page_cache_ttl_seconds)
    return _build_page(viewer_id, ranked, len(ranked), page, page_size, partial=partial, skipped=len(skipped))
