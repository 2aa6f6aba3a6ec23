#!/usr/bin/env python3
"""
Integration tests for the Postgres repositories (pgvector + unique pairs).

Requires Docker (testcontainers) or TEST_DATABASE_URL.
"""

import uuid
from datetime import date, datetime, timedelta, timezone

import pytest

from core.config_loader import DiscoveryConfig
from core.exceptions import MatchAlreadyExistsError
from core.matcher.dto import DiscoveryStatus, MatchDraft, MatchStatus
from core.matcher.lifecycle import MatchLifecycleService
from core.matcher.service import MatchDiscoveryPipeline
from core.scorer.models import Trait, TraitDimension
from core.scorer.service import ScoreCombiner
from database.models import User
from database.repository import MatchingRepository
from tests.mocks.stores import make_embedding

pytestmark = pytest.mark.db

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _add_user(repo, seed, latitude=35.68, longitude=139.65):
    user = User(
        id=uuid.uuid4(),
        display_name=f"user-{seed}",
        date_of_birth=date(1994, 5, 1),
        latitude=latitude,
        longitude=longitude,
        red_flags=[],
    )
    repo.db.add(user)
    repo.db.flush()

    for dimension in TraitDimension:
        repo.profiles.upsert_trait(
            user.id,
            Trait(dimension=dimension, name=f"{dimension.value}_core", value=0.7, confidence=0.8)
        )
    repo.embeddings.upsert_embedding(user.id, make_embedding(seed), model_version="test")
    repo.db.flush()
    return user.id


def _draft(user_id, matched_user_id, expires_at=None):
    return MatchDraft(
        user_id=user_id,
        matched_user_id=matched_user_id,
        rbs_score=0.61234,
        sr_score=0.7,
        cu_score=0.05,
        ig_score=0.4,
        sc_score=0.1,
        expires_at=expires_at or NOW + timedelta(days=7),
    )


@pytest.fixture
def repo(db_session):
    return MatchingRepository(db_session)


class TestPostgresRepositories:

    def test_profile_round_trip(self, repo):
        user_id = _add_user(repo, seed=1)
        repo.profiles.upsert_trait(
            user_id,
            Trait(dimension=TraitDimension.VALUES, name="values_core", value=0.2, confidence=0.95)
        )

        profile = repo.profiles.load_profile(user_id)
        safety = repo.profiles.load_safety_profile(user_id, today=date(2026, 5, 1))

        assert profile.trait_count() == 5
        assert profile.dimension(TraitDimension.VALUES)["values_core"].confidence == pytest.approx(0.95)
        assert safety.age == 32
        assert safety.red_flags == frozenset()

    def test_vector_search_orders_by_similarity(self, repo):
        user_id = _add_user(repo, seed=1)
        other_ids = [_add_user(repo, seed=s) for s in (2, 3, 4)]

        hits = repo.embeddings.search(make_embedding(1), limit=10, exclude_ids=[user_id])

        assert {h.id for h in hits} == set(other_ids)
        scores = [h.similarity_score for h in hits]
        assert scores == sorted(scores, reverse=True)
        assert repo.embeddings.get_vector(user_id).vector == pytest.approx(make_embedding(1), abs=1e-6)

    def test_duplicate_pair_raises_and_keeps_session_usable(self, repo):
        a = _add_user(repo, seed=1)
        b = _add_user(repo, seed=2)

        created = repo.matches.create_if_absent(_draft(a, b))
        assert created.status == MatchStatus.PENDING

        with pytest.raises(MatchAlreadyExistsError):
            repo.matches.create_if_absent(_draft(a, b))

        # The reverse direction is a separate row
        reverse = repo.matches.create_if_absent(_draft(b, a))
        assert reverse.id != created.id
        assert repo.matches.find_pair(a, b).id == created.id

    def test_expire_and_stats(self, repo):
        a = _add_user(repo, seed=1)
        b = _add_user(repo, seed=2)
        c = _add_user(repo, seed=3)
        repo.matches.create_if_absent(_draft(a, b, expires_at=NOW - timedelta(days=1)))
        fresh = repo.matches.create_if_absent(_draft(a, c))

        lifecycle = MatchLifecycleService(repo.matches, clock=lambda: NOW)
        assert lifecycle.expire_stale() == 1
        lifecycle.accept(fresh.id, c)

        stats = lifecycle.match_stats(a)
        assert stats.expired == 1
        assert stats.accepted == 1
        assert stats.average_rbs_score == pytest.approx(0.61234)

    def test_discovery_end_to_end(self, repo):
        user_id = _add_user(repo, seed=1)
        for seed in range(2, 8):
            _add_user(repo, seed=seed)

        with ScoreCombiner() as combiner:
            pipeline = MatchDiscoveryPipeline(
                repo.embeddings, repo.profiles, repo.matches, combiner,
                config=DiscoveryConfig(max_workers=2), clock=lambda: NOW
            )
            with pipeline:
                first = pipeline.discover(user_id, limit=10)
                second = pipeline.discover(user_id, limit=10)

        assert first.status == DiscoveryStatus.OK
        assert first.count == 6
        assert second.count == 0
        assert len(repo.matches.find_by_user_and_status(user_id)) == 6
