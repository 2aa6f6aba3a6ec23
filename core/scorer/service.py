#!/usr/bin/env python3
"""
Score Combiner - RBS orchestrator over the four component scorers.

    RBS = clamp(alpha*SR + beta*CU + gamma*IG - delta*SC, 0, 1)

Weights are validated once at construction (InvariantViolation on a bad
simplex) and are immutable afterwards. Per call, SR and CU run concurrently
on a small shared thread pool; IG and SC are cheap and run on the calling
thread. A call slower than the latency budget is logged, not failed.

batch_calculate() and calculate_matches() are repeated independent
calculate() calls with no shared mutable state.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import List, Optional, Sequence
import logging
import time

from core.config_loader import ScorerConfig
from core.exceptions import InvariantViolation
from core.scorer.features import COMMUNICATION_SUBSPACE, INTERESTS_SUBSPACE, extract_uplift_features
from core.scorer.information_gain import InformationGainScorer
from core.scorer.models import (
    PairInput, RBSComponents, RBSDetails, RBSScore, RBSWeights, ScoringSubject
)
from core.scorer.resonance import SubspaceResonance
from core.scorer.safety import SafetyConstraintsEvaluator
from core.scorer.uplift import CausalUpliftEstimator

logger = logging.getLogger(__name__)


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


class ScoreCombiner:
    """
    Service for Resonance-Based Scoring of a user pair.

    Component scorers can be injected; otherwise they are built from config.
    """

    def __init__(
        self,
        config: Optional[ScorerConfig] = None,
        weights: Optional[RBSWeights] = None,
        resonance: Optional[SubspaceResonance] = None,
        uplift: Optional[CausalUpliftEstimator] = None,
        information_gain: Optional[InformationGainScorer] = None,
        safety: Optional[SafetyConstraintsEvaluator] = None
    ):
        self.config = config or ScorerConfig()
        self.weights = (weights or RBSWeights.from_config(self.config.weights)).validate()

        self.resonance = resonance or SubspaceResonance.from_config(self.config.embedding)
        self.uplift = uplift or CausalUpliftEstimator()
        self.information_gain = information_gain or InformationGainScorer.from_config(self.config.information_gain)
        self.safety = safety or SafetyConstraintsEvaluator(self.config.safety)

        names = {s.name for s in self.resonance.subspaces}
        missing = {COMMUNICATION_SUBSPACE, INTERESTS_SUBSPACE} - names
        if missing:
            raise InvariantViolation(
                f"Uplift features need subspaces {sorted(missing)} in the embedding partition"
            )

        self.latency_budget_ms = self.config.performance.rbs_latency_budget_ms
        self._fan_out = ThreadPoolExecutor(
            max_workers=max(2, self.config.fan_out_workers),
            thread_name_prefix="rbs-fanout"
        )

    def __enter__(self) -> "ScoreCombiner":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        self._fan_out.shutdown(wait=True)

    def combine(self, components: RBSComponents) -> float:
        """Pure RBS formula over already-computed components."""
        w = self.weights
        return _clamp(
            w.alpha * components.sr
            + w.beta * components.cu
            + w.gamma * components.ig
            - w.delta * components.sc
        )

    def calculate_detailed(self, pair: PairInput) -> RBSDetails:
        """Score a pair and keep every component's diagnostics.

        Raises:
            ValidationError: malformed embedding or uplift features
        """
        start = time.perf_counter()
        user, candidate = pair.user, pair.candidate

        ig_user = self.information_gain.calculate_detailed(user.profile)
        ig_candidate = self.information_gain.calculate_detailed(candidate.profile)

        sr_future = self._fan_out.submit(self.resonance.calculate, user.embedding, candidate.embedding)
        cu_future = self._fan_out.submit(self._predict_uplift, pair, ig_user, ig_candidate)

        ig = (ig_user.score + ig_candidate.score) / 2.0
        safety = self.safety.calculate_detailed(user.safety, candidate.safety)

        # Join before combining; a failure in either task propagates here
        sr = sr_future.result()
        uplift = cu_future.result()

        components = RBSComponents(sr=sr, cu=uplift.treatment_effect, ig=ig, sc=safety.score)
        score = RBSScore(
            total=self.combine(components),
            sr=components.sr,
            cu=components.cu,
            ig=components.ig,
            sc=components.sc,
            timestamp=datetime.now(timezone.utc),
        )

        latency_ms = (time.perf_counter() - start) * 1000.0
        if latency_ms > self.latency_budget_ms:
            logger.warning(
                f"RBS calculation exceeded budget for {user.user_id} -> {candidate.user_id}: "
                f"{latency_ms:.2f}ms > {self.latency_budget_ms:g}ms"
            )

        return RBSDetails(
            score=score,
            user_information_gain=ig_user,
            candidate_information_gain=ig_candidate,
            safety=safety,
            uplift=uplift,
            latency_ms=latency_ms,
        )

    def _predict_uplift(self, pair: PairInput, ig_user, ig_candidate):
        features = pair.uplift_features
        if features is None:
            features = extract_uplift_features(
                pair, self.resonance, self.information_gain, ig_user, ig_candidate
            )
        return self.uplift.predict(features)

    def calculate(self, pair: PairInput) -> RBSScore:
        return self.calculate_detailed(pair).score

    def batch_calculate(self, pairs: Sequence[PairInput], max_workers: Optional[int] = None) -> List[RBSScore]:
        """Score independent pairs in parallel; results keep input order."""
        if not pairs:
            return []
        with ThreadPoolExecutor(max_workers=max_workers or min(8, len(pairs))) as pool:
            return list(pool.map(self.calculate, pairs))

    def calculate_matches(
        self,
        user: ScoringSubject,
        candidates: Sequence[ScoringSubject],
        max_workers: Optional[int] = None
    ) -> List[RBSScore]:
        """One-vs-many scoring, in candidate order."""
        pairs = [PairInput(user=user, candidate=c) for c in candidates]
        return self.batch_calculate(pairs, max_workers=max_workers)
