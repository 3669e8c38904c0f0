import asyncio
import copy
import functools
import json
import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime
from typing import Any, Callable, Protocol

from sqlalchemy import bindparam, text
from sqlalchemy.exc import SQLAlchemyError

from .config import MATCH_CONCURRENCY_LIMIT
from .database import SessionLocal
from .errors import RepositoryError
from .services.profiles import PoolFilters, ProfileSnapshot, normalize_habit, normalize_token

logger = logging.getLogger(__name__)

_COMPLETENESS_FIELDS = (
    "gender",
    "date_of_birth",
    "marital_status",
    "religion",
    "community",
    "country",
    "state",
    "diet",
    "alcohol",
    "tobacco",
    "highest_education",
    "occupation",
    "income_bracket",
)


class ProfileRepository(Protocol):
    """Read-only source of profile snapshots, raw expectations and candidate pools."""

    async def get_snapshot(self, user_id: str) -> ProfileSnapshot | None: ...

    async def get_preferences(self, user_id: str) -> dict[str, Any] | None: ...

    async def get_candidate_pool(
        self,
        viewer_id: str,
        filters: PoolFilters,
        *,
        offset: int = 0,
        limit: int = 200,
    ) -> list[str]: ...


def _to_date(value: Any) -> date | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def _to_datetime(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        return None


def profile_completeness(row: dict[str, Any]) -> float:
    filled = sum(1 for f in _COMPLETENESS_FIELDS if row.get(f) not in (None, ""))
    return round(filled / len(_COMPLETENESS_FIELDS), 4)


def snapshot_from_row(row: dict[str, Any]) -> ProfileSnapshot:
    return ProfileSnapshot(
        user_id=str(row["id"]),
        gender=normalize_token(row.get("gender")),
        date_of_birth=_to_date(row.get("date_of_birth")),
        marital_status=normalize_token(row.get("marital_status")),
        religion=normalize_token(row.get("religion")),
        community=normalize_token(row.get("community")),
        diet=normalize_token(row.get("diet")),
        alcohol=normalize_habit(row.get("alcohol")),
        tobacco=normalize_habit(row.get("tobacco")),
        education=normalize_token(row.get("highest_education")),
        profession=normalize_token(row.get("occupation")),
        income_bracket=normalize_token(row.get("income_bracket")),
        country=normalize_token(row.get("country")),
        state=normalize_token(row.get("state")),
        is_active=bool(row.get("is_active")),
        is_approved=bool(row.get("is_profile_approved")),
        is_visible=bool(row.get("is_visible")),
        profile_completeness=profile_completeness(row),
        last_active_at=_to_datetime(row.get("last_active_at")),
    )


class SqlProfileRepository:
    """Profile reads over SQLAlchemy sessions.

    Blocking calls run on the repository's own thread pool, sized to the finder's
    concurrency limit rather than the event loop's default executor.
    """

    def __init__(self, session_factory: Callable[[], Any] = SessionLocal, *, max_workers: int = MATCH_CONCURRENCY_LIMIT):
        self._session_factory = session_factory
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="profile-repo")

    async def _run(self, fn: Callable[..., Any], *args: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, functools.partial(fn, *args))

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)

    async def get_snapshot(self, user_id: str) -> ProfileSnapshot | None:
        return await self._run(self._get_snapshot, user_id)

    async def get_preferences(self, user_id: str) -> dict[str, Any] | None:
        return await self._run(self._get_preferences, user_id)

    async def get_candidate_pool(
        self,
        viewer_id: str,
        filters: PoolFilters,
        *,
        offset: int = 0,
        limit: int = 200,
    ) -> list[str]:
        return await self._run(self._get_candidate_pool, viewer_id, filters, offset, limit)

    def _get_snapshot(self, user_id: str) -> ProfileSnapshot | None:
        try:
            with self._session_factory() as db:
                row = db.execute(
                    text(
                        """
                        SELECT
                          ua.id, ua.gender, ua.date_of_birth, ua.is_active, ua.is_visible,
                          ua.is_profile_approved, ua.last_active_at,
                          up.marital_status, up.religion, up.community, up.country, up.state,
                          uh.diet, uh.alcohol, uh.tobacco,
                          ue.highest_education,
                          upr.occupation, upr.income_bracket
                        FROM user_account ua
                        LEFT JOIN user_personal up ON up.user_id = ua.id
                        LEFT JOIN user_health uh ON uh.user_id = ua.id
                        LEFT JOIN user_education ue ON ue.user_id = ua.id
                        LEFT JOIN user_profession upr ON upr.user_id = ua.id
                        WHERE ua.id = :id
                          AND ua.is_deleted = :deleted
                        """
                    ),
                    {"id": user_id, "deleted": False},
                ).mappings().first()
        except SQLAlchemyError as exc:
            logger.warning("[REPO] snapshot query failed user_id=%s: %s", user_id, exc)
            raise RepositoryError(str(exc)) from exc
        return snapshot_from_row(dict(row)) if row else None

    def _get_preferences(self, user_id: str) -> dict[str, Any] | None:
        try:
            with self._session_factory() as db:
                row = db.execute(
                    text("SELECT expectations FROM user_expectations WHERE user_id = :id"),
                    {"id": user_id},
                ).mappings().first()
        except SQLAlchemyError as exc:
            logger.warning("[REPO] expectations query failed user_id=%s: %s", user_id, exc)
            raise RepositoryError(str(exc)) from exc
        if not row:
            return None
        value = row["expectations"]
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except json.JSONDecodeError:
                return None
        return value if isinstance(value, dict) else None

    def _get_candidate_pool(self, viewer_id: str, filters: PoolFilters, offset: int, limit: int) -> list[str]:
        if filters.genders is not None and not filters.genders:
            return []

        clauses = [
            "ua.id <> :viewer_id",
            "ua.is_deleted = :no",
            "NOT EXISTS (SELECT 1 FROM user_block b WHERE b.user_id = :viewer_id AND b.blocked_user_id = ua.id)",
            "NOT EXISTS (SELECT 1 FROM user_block b WHERE b.user_id = ua.id AND b.blocked_user_id = :viewer_id)",
        ]
        params: dict[str, Any] = {"viewer_id": viewer_id, "no": False, "yes": True, "limit": limit, "offset": offset}
        expanding: list[str] = []
        if filters.require_active:
            clauses.append("ua.is_active = :yes")
        if filters.require_visible:
            clauses.append("ua.is_visible = :yes")
        if filters.require_approved:
            clauses.append("ua.is_profile_approved = :yes")
        if filters.genders is not None:
            clauses.append("LOWER(ua.gender) IN :genders")
            params["genders"] = sorted(filters.genders)
            expanding.append("genders")
        if filters.exclude_user_ids:
            clauses.append("ua.id NOT IN :excluded")
            params["excluded"] = sorted(filters.exclude_user_ids)
            expanding.append("excluded")

        stmt = text(
            "SELECT ua.id FROM user_account ua WHERE "
            + " AND ".join(clauses)
            + " ORDER BY ua.id LIMIT :limit OFFSET :offset"
        )
        if expanding:
            stmt = stmt.bindparams(*[bindparam(name, expanding=True) for name in expanding])
        try:
            with self._session_factory() as db:
                rows = db.execute(stmt, params).all()
        except SQLAlchemyError as exc:
            logger.warning("[REPO] candidate pool query failed viewer_id=%s offset=%s: %s", viewer_id, offset, exc)
            raise RepositoryError(str(exc)) from exc
        return [str(r[0]) for r in rows]


class InMemoryProfileRepository:
    """Dict-backed repository for local runs and tests."""

    def __init__(
        self,
        profiles: dict[str, ProfileSnapshot] | None = None,
        preferences: dict[str, dict[str, Any] | None] | None = None,
        blocks: set[tuple[str, str]] | None = None,
    ):
        self.profiles: dict[str, ProfileSnapshot] = dict(profiles or {})
        self.preferences: dict[str, dict[str, Any] | None] = dict(preferences or {})
        self.blocks: set[tuple[str, str]] = set(blocks or set())

    def add(self, snapshot: ProfileSnapshot, preferences: dict[str, Any] | None = None) -> None:
        self.profiles[snapshot.user_id] = snapshot
        if preferences is not None:
            self.preferences[snapshot.user_id] = preferences

    def block(self, user_id: str, blocked_user_id: str) -> None:
        self.blocks.add((user_id, blocked_user_id))

    def _is_blocked(self, a: str, b: str) -> bool:
        return (a, b) in self.blocks or (b, a) in self.blocks

    async def get_snapshot(self, user_id: str) -> ProfileSnapshot | None:
        return self.profiles.get(user_id)

    async def get_preferences(self, user_id: str) -> dict[str, Any] | None:
        return copy.deepcopy(self.preferences.get(user_id))

    async def get_candidate_pool(
        self,
        viewer_id: str,
        filters: PoolFilters,
        *,
        offset: int = 0,
        limit: int = 200,
    ) -> list[str]:
        out: list[str] = []
        for uid in sorted(self.profiles):
            p = self.profiles[uid]
            if uid == viewer_id or uid in filters.exclude_user_ids or self._is_blocked(viewer_id, uid):
                continue
            if filters.genders is not None and normalize_token(p.gender) not in filters.genders:
                continue
            if filters.require_active and not p.is_active:
                continue
            if filters.require_visible and not p.is_visible:
                continue
            if filters.require_approved and not p.is_approved:
                continue
            out.append(uid)
        return out[offset : offset + limit]
