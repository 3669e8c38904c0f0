import asyncio
from datetime import date

from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import sessionmaker

from matrimony.config import MatchingConfig
from matrimony.database import Base
from matrimony.models import UserAccount, UserExpectations
from matrimony.repo import SqlProfileRepository
from matrimony.services.candidates import find_matching_users
from matrimony.services.seeding import seed_profiles


def _factory(path):
    engine = create_engine(f"sqlite:///{path}", connect_args={"check_same_thread": False}, future=True)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, autoflush=False, future=True)


def _expectations(factory):
    with factory() as db:
        return {r.user_id: r.expectations for r in db.execute(select(UserExpectations)).scalars()}


def test_seed_is_deterministic_and_resettable(tmp_path):
    a, b = _factory(tmp_path / "a.db"), _factory(tmp_path / "b.db")
    with a() as db:
        summary = seed_profiles(db, n_users=40, seed=7, as_of=date(2026, 1, 1))
    with b() as db:
        seed_profiles(db, n_users=40, seed=7, as_of=date(2026, 1, 1))
    assert summary["users"] == 40
    assert summary["genders"] == {"male": 20, "female": 20}
    assert _expectations(a) == _expectations(b)

    with a() as db:
        seed_profiles(db, n_users=10, seed=7, reset=True, as_of=date(2026, 1, 1))
        assert db.execute(select(func.count()).select_from(UserAccount)).scalar_one() == 10


def test_seeded_profiles_can_be_ranked(tmp_path):
    factory = _factory(tmp_path / "seed.db")
    with factory() as db:
        seed_profiles(db, n_users=60, seed=3, as_of=date(2026, 1, 1))
    repo = SqlProfileRepository(factory)
    cfg = MatchingConfig(concurrency_limit=8, candidate_timeout_seconds=2.0, request_deadline_seconds=30.0)
    viewer = next(uid for uid in sorted(_expectations(factory)) if asyncio.run(repo.get_snapshot(uid)).is_active)

    page = asyncio.run(find_matching_users(repo, viewer, config=cfg, as_of=date(2026, 1, 1), cache=None))
    scores = [c.score for c in page.candidates]
    assert scores == sorted(scores, reverse=True)
    assert all(0 <= s <= 100 for s in scores)
    assert not page.partial
