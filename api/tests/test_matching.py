import asyncio

import pytest

from conftest import AS_OF, make_profile
from matrimony.config import MatchingConfig
from matrimony.errors import InternalError, NotFoundError, RepositoryError, ValidationError
from matrimony.repo import InMemoryProfileRepository
from matrimony.services.matching import _harmonic_mean, compute_match_score


def _score(repo, a, b, config=None):
    return asyncio.run(compute_match_score(repo, a, b, config=config or MatchingConfig(), as_of=AS_OF))


def _pair_repo(a_prefs=None, b_prefs=None, **b_overrides):
    repo = InMemoryProfileRepository()
    repo.add(make_profile("alice", gender="female", age=28), a_prefs)
    repo.add(make_profile("bob", **b_overrides), b_prefs)
    return repo


def test_wildcard_pair_scores_full_both_ways():
    result = _score(_pair_repo(), "alice", "bob")
    assert result.score_a_to_b == 100
    assert result.score_b_to_a == 100
    assert result.mutual_score == 100
    assert not result.excluded


def test_scores_are_deterministic():
    repo = _pair_repo({"age": {"from": 29, "to": 33}, "community": "nair"}, {"diet": "jain"})
    first = _score(repo, "alice", "bob")
    assert all(_score(repo, "alice", "bob") == first for _ in range(5))


def test_directions_are_independent():
    repo = _pair_repo({"community": "nair"}, None)
    result = _score(repo, "alice", "bob")
    assert result.score_a_to_b == 85
    assert result.score_b_to_a == 100
    assert result.mutual_score == round(_harmonic_mean(85, 100))
    assert result.breakdown_a_to_b["community"] == 0.0


def test_hard_failure_in_either_direction_excludes_pair():
    repo = _pair_repo(None, {"age": {"from": 30, "to": 35}})
    result = _score(repo, "alice", "bob")
    assert result.excluded
    assert result.score_b_to_a == 0
    assert result.mutual_score == 0
    assert result.hard_failures == ["age"]
    assert result.reasons == ["Outside preferred age range"]


def test_self_comparison_is_excluded():
    result = _score(_pair_repo(), "alice", "alice")
    assert result.excluded
    assert (result.score_a_to_b, result.score_b_to_a, result.mutual_score) == (0, 0, 0)
    assert result.hard_failures == ["self"]


def test_missing_or_inactive_profile_is_not_found():
    repo = _pair_repo(is_active=False)
    with pytest.raises(NotFoundError):
        _score(repo, "alice", "bob")
    with pytest.raises(NotFoundError):
        _score(repo, "alice", "nobody")
    with pytest.raises(NotFoundError):
        _score(repo, "nobody", "nobody")


def test_malformed_ids_are_rejected():
    with pytest.raises(ValidationError):
        _score(_pair_repo(), "alice", "bob; drop table")
    with pytest.raises(ValidationError):
        _score(_pair_repo(), "", "bob")


def test_repository_failure_is_internal_error():
    class _Broken(InMemoryProfileRepository):
        async def get_snapshot(self, user_id):
            raise RepositoryError("connection reset")

    repo = _Broken(profiles=_pair_repo().profiles)
    with pytest.raises(InternalError):
        _score(repo, "alice", "bob")


def test_preferences_failure_is_internal_error():
    class _NoPrefs(InMemoryProfileRepository):
        async def get_preferences(self, user_id):
            raise RepositoryError("timeout")

    base = _pair_repo({"community": "nair"})
    with pytest.raises(InternalError):
        _score(_NoPrefs(profiles=base.profiles), "alice", "bob")


def test_to_dict_shape():
    body = _score(_pair_repo(), "alice", "bob").to_dict()
    assert set(body) == {"scoreAtoB", "scoreBtoA", "mutualScore", "excluded", "breakdown", "reasons", "hardFailures"}
    assert len(body["breakdown"]) == 2
    assert "Age within preferred range" in body["reasons"]
