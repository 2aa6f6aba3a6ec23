#!/usr/bin/env python3
"""
Uplift Feature Extraction - builds the 20-feature vector for CausalUpliftEstimator.

Layout:
- [0:4]   profile completeness: coverage and avg confidence of both users
- [4:10]  demographics: age gap, both ages, both red-flag counts, user entropy
- [10:15] communication: subspace cosine, both trait counts, candidate
          entropy, mean avg confidence
- [15:20] interests: subspace cosine, both trait counts, combined count,
          mean coverage

The communication and interests subspaces are read a second time here,
independently of their contribution to SR.
"""

from typing import List, Optional

from core.scorer.information_gain import InformationGainScorer
from core.scorer.models import InformationGainResult, PairInput, TraitDimension
from core.scorer.resonance import SubspaceResonance

COMMUNICATION_SUBSPACE = "communication"
INTERESTS_SUBSPACE = "interests"

MAX_AGE_GAP = 50.0
MAX_AGE = 100.0
MAX_FLAGS = 5.0
COMMUNICATION_TRAITS_NORM = 10.0
INTEREST_TRAITS_NORM = 20.0


def extract_uplift_features(
    pair: PairInput,
    resonance: SubspaceResonance,
    information_gain: InformationGainScorer,
    ig_user: Optional[InformationGainResult] = None,
    ig_candidate: Optional[InformationGainResult] = None
) -> List[float]:
    """Derive the uplift feature vector for a pair.

    IG details may be passed in when the caller already computed them.
    """
    user, candidate = pair.user, pair.candidate
    ig1 = ig_user or information_gain.calculate_detailed(user.profile)
    ig2 = ig_candidate or information_gain.calculate_detailed(candidate.profile)

    features = [ig1.coverage, ig2.coverage, ig1.avg_confidence, ig2.avg_confidence]

    age_gap = abs(user.safety.age - candidate.safety.age)
    features += [
        age_gap / MAX_AGE_GAP,
        user.safety.age / MAX_AGE,
        candidate.safety.age / MAX_AGE,
        len(user.safety.red_flags) / MAX_FLAGS,
        len(candidate.safety.red_flags) / MAX_FLAGS,
        ig1.entropy_reduction,
    ]

    communication_similarity = resonance.subspace_similarity(
        user.embedding, candidate.embedding, COMMUNICATION_SUBSPACE
    )
    features += [
        communication_similarity,
        len(user.profile.dimension(TraitDimension.COMMUNICATION)) / COMMUNICATION_TRAITS_NORM,
        len(candidate.profile.dimension(TraitDimension.COMMUNICATION)) / COMMUNICATION_TRAITS_NORM,
        ig2.entropy_reduction,
        (ig1.avg_confidence + ig2.avg_confidence) / 2,
    ]

    interests_similarity = resonance.subspace_similarity(
        user.embedding, candidate.embedding, INTERESTS_SUBSPACE
    )
    user_interests = len(user.profile.dimension(TraitDimension.INTERESTS))
    candidate_interests = len(candidate.profile.dimension(TraitDimension.INTERESTS))
    features += [
        interests_similarity,
        user_interests / INTEREST_TRAITS_NORM,
        candidate_interests / INTEREST_TRAITS_NORM,
        (user_interests + candidate_interests) / (2 * INTEREST_TRAITS_NORM),
        (ig1.coverage + ig2.coverage) / 2,
    ]

    return features
