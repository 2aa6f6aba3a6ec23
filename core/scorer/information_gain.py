#!/usr/bin/env python3
"""
Information Gain (IG) - profile completeness and confidence.

Reported per profile:
- coverage: min(total_traits / expected_traits, 1), expected = 5 * min_traits_per_dimension
- avg_confidence: mean trait confidence (0 for an empty profile)
- entropy_reduction: normalized Shannon entropy of per-dimension coverage,
  higher when traits are spread evenly across the five dimensions

The score keeps the shape (coverage*0.6 + confidence*0.4) * (1 + spread*0.1)
but is built only from terms that cannot drop when a trait is added:
- confidence_mass = min(sum(confidence) / expected_traits, 1), which equals
  coverage * avg_confidence up to expected_traits
- spread = mean over dimensions of log2(1 + dimension_coverage)

so adding a trait never lowers a profile's score.

At saturation (every dimension at min_traits_per_dimension) this agrees with
(coverage*0.6 + avg_confidence*0.4) * (1 + entropy_reduction*0.1). Below
saturation it scores lower: 2 traits per dimension at confidence 0.8 gives
about 0.386 here against 0.616 from the avg_confidence form. The weighting
needs product sign-off, as does the non-negative clamp on causal uplift.
"""

from typing import List, Sequence
import math

from core.config_loader import InformationGainConfig
from core.scorer.models import InformationGainResult, Profile5D, Trait, TraitDimension

DIMENSION_COUNT = len(TraitDimension)
MAX_ENTROPY = math.log2(DIMENSION_COUNT)

COVERAGE_WEIGHT = 0.6
CONFIDENCE_WEIGHT = 0.4
SPREAD_BONUS = 0.1

# Assumed confidence of future traits when the profile has none yet
FALLBACK_CONFIDENCE = 0.5


class InformationGainScorer:

    def __init__(self, min_traits_per_dimension: int = 5):
        if min_traits_per_dimension <= 0:
            raise ValueError("min_traits_per_dimension must be positive")
        self.min_traits_per_dimension = min_traits_per_dimension
        self.expected_traits = DIMENSION_COUNT * min_traits_per_dimension

    @classmethod
    def from_config(cls, config: InformationGainConfig) -> "InformationGainScorer":
        return cls(min_traits_per_dimension=config.min_traits_per_dimension)

    def _dimension_coverage(self, profile: Profile5D) -> List[float]:
        return [
            min(len(profile.dimension(d)) / self.min_traits_per_dimension, 1.0)
            for d in TraitDimension
        ]

    @staticmethod
    def _entropy_reduction(dimension_coverage: Sequence[float]) -> float:
        total = sum(dimension_coverage)
        if total == 0:
            return 0.0
        entropy = 0.0
        for weight in dimension_coverage:
            if weight > 0:
                p = weight / total
                entropy -= p * math.log2(p)
        return entropy / MAX_ENTROPY

    def calculate_detailed(self, profile: Profile5D) -> InformationGainResult:
        traits = profile.all_traits()
        count = len(traits)
        confidence_sum = sum(t.confidence for t in traits)

        coverage = min(count / self.expected_traits, 1.0)
        avg_confidence = confidence_sum / count if count else 0.0

        dimension_coverage = self._dimension_coverage(profile)
        entropy_reduction = self._entropy_reduction(dimension_coverage)

        confidence_mass = min(confidence_sum / self.expected_traits, 1.0)
        spread = sum(math.log2(1.0 + c) for c in dimension_coverage) / DIMENSION_COUNT

        raw = (coverage * COVERAGE_WEIGHT + confidence_mass * CONFIDENCE_WEIGHT) * (1.0 + spread * SPREAD_BONUS)
        score = max(0.0, min(1.0, raw))

        return InformationGainResult(
            score=score,
            coverage=coverage,
            avg_confidence=avg_confidence,
            entropy_reduction=entropy_reduction,
            confidence_mass=confidence_mass,
            spread=spread,
        )

    def score(self, profile: Profile5D) -> float:
        return self.calculate_detailed(profile).score

    def calculate(self, profile_a: Profile5D, profile_b: Profile5D) -> float:
        """Pair IG: arithmetic mean of the two single-profile scores."""
        return (self.score(profile_a) + self.score(profile_b)) / 2.0

    def batch_calculate(self, profile: Profile5D, candidates: Sequence[Profile5D]) -> List[float]:
        own = self.score(profile)
        return [(own + self.score(c)) / 2.0 for c in candidates]

    def calculate_traits_needed(self, profile: Profile5D, target_score: float) -> int:
        """Estimate how many more traits are needed to reach target_score."""
        result = self.calculate_detailed(profile)
        if result.score >= target_score:
            return 0

        avg_confidence = result.avg_confidence or FALLBACK_CONFIDENCE
        target_coverage = target_score / avg_confidence
        target_traits = math.ceil(target_coverage * self.expected_traits)
        return max(0, target_traits - profile.trait_count())

    def validate_monotonicity(self, profile: Profile5D, trait: Trait) -> bool:
        """True when adding `trait` does not lower the profile's score."""
        return self.score(profile.with_trait(trait)) >= self.score(profile)

    def know_you_meter(self, profile: Profile5D) -> float:
        """Completeness on the 0-100 scale stored on the profile."""
        return round(self.score(profile) * 100.0, 2)
