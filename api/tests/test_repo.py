import asyncio
import time
from datetime import date, datetime, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

from matrimony.config import MatchingConfig
from matrimony.database import Base
from matrimony.errors import RepositoryError
from matrimony.models import UserAccount, UserBlock, UserEducation, UserExpectations, UserHealth, UserPersonal, UserProfession
from matrimony.repo import SqlProfileRepository, profile_completeness
from matrimony.services.candidates import find_matching_users
from matrimony.services.profiles import PoolFilters


@pytest.fixture
def session_factory(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'profiles.db'}", connect_args={"check_same_thread": False}, future=True)
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autoflush=False, future=True)
    with factory() as db:
        db.add_all(
            [
                UserAccount(
                    id="asha",
                    gender="Female",
                    date_of_birth=date(1997, 3, 14),
                    is_active=True,
                    is_visible=True,
                    is_profile_approved=True,
                    last_active_at=datetime(2025, 12, 30, 8, 0, tzinfo=timezone.utc),
                ),
                UserAccount(id="ravi", gender="Male", date_of_birth=date(1994, 6, 1), is_profile_approved=True),
                UserAccount(id="kiran", gender="male", date_of_birth=date(1993, 1, 1), is_profile_approved=True),
                UserAccount(id="dev", gender="male", is_profile_approved=True, is_visible=False),
                UserAccount(id="gone", gender="male", is_profile_approved=True, is_deleted=True),
                UserAccount(id="sam", gender="male", is_profile_approved=False),
            ]
        )
        db.flush()
        db.add_all(
            [
                UserPersonal(user_id="asha", marital_status="Never Married", religion="Hindu", community="Iyer", country="India", state="Karnataka"),
                UserHealth(user_id="asha", diet="Vegetarian", alcohol="Never", tobacco="no"),
                UserEducation(user_id="asha", highest_education="Masters"),
                UserProfession(user_id="asha", occupation="Engineer", income_bracket="10-20L"),
                UserExpectations(user_id="asha", expectations={"age": {"from": 27, "to": 33}, "community": ["Iyer"]}),
                UserExpectations(user_id="ravi", expectations="not json"),
                UserBlock(user_id="kiran", blocked_user_id="asha"),
            ]
        )
        db.commit()
    yield factory
    engine.dispose()


def test_snapshot_joins_profile_sections(session_factory):
    repo = SqlProfileRepository(session_factory)
    snap = asyncio.run(repo.get_snapshot("asha"))
    assert snap.gender == "female"
    assert snap.date_of_birth == date(1997, 3, 14)
    assert snap.community == "iyer"
    assert snap.alcohol == "no"
    assert snap.education == "masters"
    assert snap.income_bracket == "10-20l"
    assert snap.is_matchable
    assert snap.profile_completeness == 1.0
    assert snap.last_active_at is not None


def test_sparse_snapshot_and_missing_rows(session_factory):
    repo = SqlProfileRepository(session_factory)
    ravi = asyncio.run(repo.get_snapshot("ravi"))
    assert ravi.community is None
    assert ravi.alcohol == "unknown"
    assert 0 < ravi.profile_completeness < 1
    assert asyncio.run(repo.get_snapshot("nobody")) is None
    assert asyncio.run(repo.get_snapshot("gone")) is None


def test_preferences_are_decoded(session_factory):
    repo = SqlProfileRepository(session_factory)
    assert asyncio.run(repo.get_preferences("asha")) == {"age": {"from": 27, "to": 33}, "community": ["Iyer"]}
    assert asyncio.run(repo.get_preferences("kiran")) is None


def test_candidate_pool_applies_filters_and_blocks(session_factory):
    repo = SqlProfileRepository(session_factory)
    filters = PoolFilters(genders=frozenset({"male"}), exclude_user_ids=frozenset({"asha"}))
    assert asyncio.run(repo.get_candidate_pool("asha", filters)) == ["ravi"]

    loose = PoolFilters(genders=None, require_visible=False, require_approved=False)
    assert asyncio.run(repo.get_candidate_pool("asha", loose)) == ["dev", "ravi", "sam"]
    assert asyncio.run(repo.get_candidate_pool("asha", loose, offset=1, limit=1)) == ["ravi"]


def test_empty_gender_set_yields_no_pool(session_factory):
    repo = SqlProfileRepository(session_factory)
    assert asyncio.run(repo.get_candidate_pool("asha", PoolFilters(genders=frozenset()))) == []


def test_driver_errors_become_repository_errors():
    class _Boom:
        def __enter__(self):
            raise OperationalError("SELECT 1", {}, Exception("server closed the connection"))

        def __exit__(self, exc_type, exc, tb):
            return False

    repo = SqlProfileRepository(lambda: _Boom())
    with pytest.raises(RepositoryError):
        asyncio.run(repo.get_snapshot("asha"))
    with pytest.raises(RepositoryError):
        asyncio.run(repo.get_candidate_pool("asha", PoolFilters()))


def test_profile_completeness_counts_filled_fields():
    assert profile_completeness({}) == 0.0
    assert profile_completeness({"gender": "male", "diet": ""}) == round(1 / 13, 4)


def test_finder_runs_against_sql_repository(session_factory):
    repo = SqlProfileRepository(session_factory)
    page = asyncio.run(
        find_matching_users(repo, "asha", config=MatchingConfig(orientation="opposite", candidate_timeout_seconds=2.0), as_of=date(2026, 1, 1), cache=None)
    )
    assert [c.user_id for c in page.candidates] == ["ravi"]
    assert page.candidates[0].breakdown["age"] == 1.0
    assert page.candidates[0].breakdown["community"] == 0.5
    assert not page.partial


class _SlowRows:
    def __init__(self, row=None, rows=()):
        self._row = row
        self._rows = list(rows)

    def mappings(self):
        return self

    def first(self):
        return self._row

    def all(self):
        return self._rows


class _SlowSession:
    """Answers every query from memory after a fixed per-snapshot delay."""

    def __init__(self, pool_size, delay):
        self.pool_size = pool_size
        self.delay = delay

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False

    def execute(self, stmt, params):
        sql = str(stmt)
        if "user_expectations" in sql:
            return _SlowRows()
        if sql.startswith("SELECT ua.id FROM"):
            ids = [(f"cand{i:03d}",) for i in range(self.pool_size)]
            return _SlowRows(rows=ids[params["offset"] : params["offset"] + params["limit"]])
        time.sleep(self.delay)
        gender = "female" if params["id"] == "viewer" else "male"
        return _SlowRows(
            row={"id": params["id"], "gender": gender, "is_active": True, "is_visible": True, "is_profile_approved": True}
        )


def test_snapshot_timeouts_do_not_count_thread_queueing():
    repo = SqlProfileRepository(lambda: _SlowSession(pool_size=40, delay=0.05), max_workers=32)
    config = MatchingConfig(concurrency_limit=32, candidate_timeout_seconds=0.2, request_deadline_seconds=5.0, orientation="opposite")
    try:
        page = asyncio.run(find_matching_users(repo, "viewer", config=config, as_of=date(2026, 1, 1), page_size=50, cache=None))
    finally:
        repo.close()
    assert not page.partial
    assert page.skipped == 0
    assert page.total_considered == 40
