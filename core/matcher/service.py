#!/usr/bin/env python3
"""
Match Discovery Pipeline - k-NN retrieval, pair dedup, RBS scoring, persistence.

Per discovery request:
1. Require the user's embedding (absent -> insufficient_data, empty result)
2. Load the user's profile and safety data (absent -> no_profile, empty result)
3. Query k-NN for an over-fetch of candidates under a timeout
   (timeout or upstream failure -> TransientUpstreamError)
4. Walk candidates in k-NN order, skipping pairs that already have a row
5. Score survivors in parallel; a failing candidate is logged and skipped
6. Persist each as a pending match; a lost create race counts as already
   discovered
7. Sort by total descending, truncate to the limit

Re-running discovery never duplicates a pair: uniqueness is enforced by the
match store, so concurrent runs for the same user are safe.
"""
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, List, Optional, Tuple
import logging
import time

from core.config_loader import DiscoveryConfig
from core.exceptions import (
    MatchAlreadyExistsError, RBSError, TransientUpstreamError, ValidationError
)
from core.matcher.dto import (
    DiscoveredMatch, DiscoveryResult, DiscoveryStatus, MatchDraft, VectorHit
)
from core.matcher.interfaces import MatchStore, ProfileStore, VectorSearch
from core.scorer.models import PairInput, RBSScore, ScoringSubject
from core.scorer.service import ScoreCombiner

logger = logging.getLogger(__name__)

INSUFFICIENT_DATA_MESSAGE = "Complete more conversation to enable matching"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class _ScoredCandidate:
    hit: VectorHit
    score: RBSScore


class MatchDiscoveryPipeline:
    """
    Service for discovering, scoring and persisting new matches for a user.

    Collaborators are injected; the pipeline holds no per-user state, so one
    instance can serve concurrent requests.
    """

    def __init__(
        self,
        vector_search: VectorSearch,
        profile_store: ProfileStore,
        match_store: MatchStore,
        combiner: ScoreCombiner,
        config: Optional[DiscoveryConfig] = None,
        clock: Callable[[], datetime] = _utcnow
    ):
        self.vector_search = vector_search
        self.profile_store = profile_store
        self.match_store = match_store
        self.combiner = combiner
        self.config = config or DiscoveryConfig()
        self.clock = clock

        self._knn_pool = ThreadPoolExecutor(max_workers=2, thread_name_prefix="knn")
        self._score_pool = ThreadPoolExecutor(
            max_workers=max(1, self.config.max_workers),
            thread_name_prefix="discovery-score"
        )

    def __enter__(self) -> "MatchDiscoveryPipeline":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        self._knn_pool.shutdown(wait=False)
        self._score_pool.shutdown(wait=True)

    def resolve_limit(self, limit: Optional[int]) -> int:
        if limit is None:
            limit = self.config.result_limit
        if limit < 1:
            raise ValidationError(f"limit must be at least 1, got {limit}")
        return min(limit, self.config.max_limit)

    def discover(self, user_id: Any, limit: Optional[int] = None) -> DiscoveryResult:
        """
        Discover up to `limit` new matches for `user_id`.

        Returns:
            DiscoveryResult; matches sorted by total descending

        Raises:
            TransientUpstreamError: k-NN timed out or a collaborator failed
        """
        limit = self.resolve_limit(limit)
        start = time.perf_counter()

        record = self._call_upstream("get_vector", self.vector_search.get_vector, user_id)
        if record is None:
            logger.info(f"No embedding for user {user_id}, skipping discovery")
            return DiscoveryResult(
                user_id=user_id,
                status=DiscoveryStatus.INSUFFICIENT_DATA,
                message=INSUFFICIENT_DATA_MESSAGE
            )

        user = self._load_subject(user_id, record.vector)
        if user is None:
            logger.info(f"No profile for user {user_id}, skipping discovery")
            return DiscoveryResult(user_id=user_id, status=DiscoveryStatus.NO_PROFILE)

        over_fetch = max(self.config.over_fetch, limit + 1)
        hits = self._search(record.vector, over_fetch, user_id)
        if not hits:
            return DiscoveryResult(user_id=user_id, status=DiscoveryStatus.NO_CANDIDATES)

        result = DiscoveryResult(user_id=user_id, status=DiscoveryStatus.OK, candidates_seen=len(hits))
        remaining = [h for h in hits if h.id != user_id]

        # Score in waves so candidates lost to failures or races are backfilled
        while remaining and len(result.matches) < limit:
            wanted = limit - len(result.matches)
            wave, remaining = self._select_wave(user_id, remaining, wanted, result)
            if not wave:
                break

            for scored in self._score_wave(user, wave, result):
                match = self._persist(user_id, scored, result)
                if match is not None:
                    result.matches.append(match)

        result.matches.sort(key=lambda m: m.total, reverse=True)
        result.matches = result.matches[:limit]

        elapsed_ms = (time.perf_counter() - start) * 1000.0
        logger.info(
            f"Discovery for {user_id}: {len(result.matches)} new, "
            f"{result.skipped_existing} existing, {result.failed} failed, "
            f"{len(hits)} candidates in {elapsed_ms:.1f}ms"
        )
        return result

    def _call_upstream(self, operation: str, fn, *args):
        try:
            return fn(*args)
        except RBSError:
            raise
        except Exception as e:
            raise TransientUpstreamError(f"{operation} failed: {e}") from e

    def _search(self, vector, over_fetch: int, user_id: Any) -> List[VectorHit]:
        timeout = self.config.knn_timeout_seconds
        if self.vector_search.enforces_timeout:
            # Stores that bound the query themselves stay on the caller's thread
            return list(self._call_upstream(
                "k-NN search", self.vector_search.search, vector, over_fetch, [user_id], timeout
            ))

        future = self._knn_pool.submit(
            self._call_upstream, "k-NN search", self.vector_search.search, vector, over_fetch, [user_id]
        )
        try:
            return list(future.result(timeout=timeout))
        except FutureTimeoutError as e:
            future.cancel()
            raise TransientUpstreamError(
                f"k-NN search timed out after {timeout}s"
            ) from e

    def _load_subject(self, user_id: Any, embedding) -> Optional[ScoringSubject]:
        profile = self._call_upstream("load_profile", self.profile_store.load_profile, user_id)
        safety = self._call_upstream("load_safety_profile", self.profile_store.load_safety_profile, user_id)
        if profile is None or safety is None:
            return None
        return ScoringSubject(user_id=user_id, embedding=embedding, profile=profile, safety=safety)

    def _select_wave(
        self,
        user_id: Any,
        hits: List[VectorHit],
        wanted: int,
        result: DiscoveryResult
    ) -> Tuple[List[VectorHit], List[VectorHit]]:
        """Take up to `wanted` hits without an existing row; return (wave, rest)."""
        wave: List[VectorHit] = []
        index = 0
        while index < len(hits) and len(wave) < wanted:
            hit = hits[index]
            index += 1
            existing = self._call_upstream("find_pair", self.match_store.find_pair, user_id, hit.id)
            if existing is not None:
                result.skipped_existing += 1
                continue
            wave.append(hit)
        return wave, hits[index:]

    def _load_candidate(self, hit: VectorHit) -> ScoringSubject:
        record = self._call_upstream("get_vector", self.vector_search.get_vector, hit.id)
        if record is None:
            raise LookupError(f"no embedding for candidate {hit.id}")
        candidate = self._load_subject(hit.id, record.vector)
        if candidate is None:
            raise LookupError(f"no profile for candidate {hit.id}")
        return candidate

    def _score_wave(
        self,
        user: ScoringSubject,
        wave: List[VectorHit],
        result: DiscoveryResult
    ) -> List[_ScoredCandidate]:
        # Collaborators are touched on this thread only; the pool runs pure scoring
        futures = []
        for hit in wave:
            try:
                candidate = self._load_candidate(hit)
            except (LookupError, RBSError) as e:
                # Bad stored data for one candidate never aborts the run
                result.failed += 1
                logger.warning(f"Skipping candidate {hit.id} for {user.user_id}: {e}")
                continue
            pair = PairInput(user=user, candidate=candidate)
            futures.append((hit, self._score_pool.submit(self.combiner.calculate, pair)))

        scored: List[_ScoredCandidate] = []
        for hit, future in futures:
            try:
                score = future.result()
            except Exception as e:
                # One bad candidate never aborts the batch
                result.failed += 1
                logger.warning(f"Skipping candidate {hit.id} for {user.user_id}: {e}")
                continue
            logger.debug(f"Scored {user.user_id} -> {hit.id}: {score.total:.4f}")
            scored.append(_ScoredCandidate(hit=hit, score=score))
        return scored

    def _persist(self, user_id: Any, scored: _ScoredCandidate, result: DiscoveryResult) -> Optional[DiscoveredMatch]:
        expires_at = self.clock() + timedelta(days=self.config.match_ttl_days)
        draft = MatchDraft.from_score(user_id, scored.hit.id, scored.score, expires_at)
        try:
            record = self._call_upstream("create_if_absent", self.match_store.create_if_absent, draft)
        except MatchAlreadyExistsError:
            result.skipped_existing += 1
            logger.debug(f"Match {user_id} -> {scored.hit.id} already discovered")
            return None

        return DiscoveredMatch(
            match_id=record.id,
            user_id=user_id,
            matched_user_id=scored.hit.id,
            score=scored.score,
            similarity_score=scored.hit.similarity_score,
            payload=scored.hit.payload,
        )
