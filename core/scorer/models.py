#!/usr/bin/env python3
"""
Scoring Models - Data structures shared by the RBS scorers.

Profiles, traits, safety data, weights and the structured results each
scorer returns. Inputs validate themselves at construction and raise
core.exceptions.ValidationError when malformed.
"""

import math
from datetime import datetime, timezone
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Sequence

from core.exceptions import InvariantViolation, ValidationError


class TraitDimension(str, Enum):
    VALUES = "values"
    INTERESTS = "interests"
    COMMUNICATION = "communication"
    LIFESTYLE = "lifestyle"
    GOALS = "goals"


class TraitSource(str, Enum):
    CONVERSATION = "conversation"
    EXPLICIT = "explicit"
    INFERRED = "inferred"


class RedFlag(str, Enum):
    """Known red-flag identifiers. Unknown identifiers are still accepted."""
    # Critical (immediate disqualification)
    HARASSMENT_HISTORY = "harassment_history"
    VIOLENCE_HISTORY = "violence_history"
    FAKE_PROFILE = "fake_profile"
    SCAM_ATTEMPT = "scam_attempt"
    # Major
    MULTIPLE_REPORTS = "multiple_reports"
    INAPPROPRIATE_CONTENT = "inappropriate_content"
    SPAM_BEHAVIOR = "spam_behavior"
    # Minor
    INCOMPLETE_VERIFICATION = "incomplete_verification"
    SUSPICIOUS_ACTIVITY = "suspicious_activity"


def _check_unit_interval(name: str, value: float) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be a number, got {value!r}")
    if not math.isfinite(value) or not 0.0 <= value <= 1.0:
        raise ValidationError(f"{name} must be in [0, 1], got {value}")
    return value


@dataclass(frozen=True)
class Subspace:
    name: str
    start: int
    end: int
    weight: float

    @property
    def width(self) -> int:
        return self.end - self.start


@dataclass(frozen=True)
class Trait:
    """A single categorized trait, unique per (user, dimension, name)."""
    dimension: TraitDimension
    name: str
    value: float
    confidence: float
    source: TraitSource = TraitSource.CONVERSATION

    def __post_init__(self):
        try:
            object.__setattr__(self, 'dimension', TraitDimension(self.dimension))
            object.__setattr__(self, 'source', TraitSource(self.source))
        except ValueError as e:
            raise ValidationError(str(e)) from e
        if not self.name:
            raise ValidationError("Trait name must not be empty")
        object.__setattr__(self, 'value', _check_unit_interval('value', self.value))
        object.__setattr__(self, 'confidence', _check_unit_interval('confidence', self.confidence))


@dataclass
class Profile5D:
    """
    Five-category trait profile for one user.

    traits maps every TraitDimension to a dict of trait name -> Trait.
    know_you_meter_score is the derived completeness score in [0, 100].
    """
    user_id: Any
    traits: Dict[TraitDimension, Dict[str, Trait]] = field(default_factory=dict)
    know_you_meter_score: float = 0.0

    def __post_init__(self):
        for dimension in TraitDimension:
            self.traits.setdefault(dimension, {})

    @classmethod
    def from_traits(cls, user_id: Any, traits: Iterable[Trait], know_you_meter_score: float = 0.0) -> "Profile5D":
        profile = cls(user_id=user_id, know_you_meter_score=know_you_meter_score)
        for trait in traits:
            profile.traits[trait.dimension][trait.name] = trait
        return profile

    def dimension(self, dimension: TraitDimension) -> Dict[str, Trait]:
        return self.traits[TraitDimension(dimension)]

    def all_traits(self) -> List[Trait]:
        return [t for dimension in TraitDimension for t in self.traits[dimension].values()]

    def trait_count(self) -> int:
        return sum(len(self.traits[d]) for d in TraitDimension)

    def has_trait(self, trait: Trait) -> bool:
        return trait.name in self.traits[trait.dimension]

    def with_trait(self, trait: Trait) -> "Profile5D":
        """Return a copy with `trait` added (replacing a trait of the same key)."""
        traits = {d: dict(items) for d, items in self.traits.items()}
        traits[trait.dimension][trait.name] = trait
        return Profile5D(
            user_id=self.user_id,
            traits=traits,
            know_you_meter_score=self.know_you_meter_score,
        )


@dataclass(frozen=True)
class Coordinates:
    latitude: float
    longitude: float

    def __post_init__(self):
        for name, value, bound in (('latitude', self.latitude, 90.0), ('longitude', self.longitude, 180.0)):
            try:
                value = float(value)
            except (TypeError, ValueError):
                raise ValidationError(f"{name} must be a number, got {value!r}")
            if not math.isfinite(value) or abs(value) > bound:
                raise ValidationError(f"{name} must be in [-{bound:g}, {bound:g}], got {value}")
            object.__setattr__(self, name, value)


@dataclass(frozen=True)
class SafetyPreferences:
    max_distance_km: Optional[float] = None
    min_age: Optional[int] = None
    max_age: Optional[int] = None


@dataclass(frozen=True)
class SafetyProfile:
    user_id: Any
    age: int
    location: Coordinates
    red_flags: FrozenSet[str] = frozenset()
    preferences: SafetyPreferences = field(default_factory=SafetyPreferences)

    def __post_init__(self):
        object.__setattr__(self, 'red_flags', frozenset(self.red_flags or ()))


@dataclass(frozen=True)
class RBSWeights:
    """RBS combination weights. alpha+beta+gamma must form a simplex."""
    alpha: float = 0.45
    beta: float = 0.30
    gamma: float = 0.25
    delta: float = 0.15

    SIMPLEX_TOLERANCE = 0.01
    MAX_DELTA = 0.3

    @classmethod
    def from_config(cls, config) -> "RBSWeights":
        return cls(alpha=config.alpha, beta=config.beta, gamma=config.gamma, delta=config.delta)

    def validate(self) -> "RBSWeights":
        values = {'alpha': self.alpha, 'beta': self.beta, 'gamma': self.gamma, 'delta': self.delta}
        for name, value in values.items():
            if not isinstance(value, (int, float)) or not math.isfinite(value):
                raise InvariantViolation(f"RBS weight {name} must be a finite number, got {value!r}")

        for name in ('alpha', 'beta', 'gamma'):
            if values[name] <= 0:
                raise InvariantViolation(f"RBS weight {name} must be positive, got {values[name]}")

        total = self.alpha + self.beta + self.gamma
        if abs(total - 1.0) > self.SIMPLEX_TOLERANCE:
            raise InvariantViolation(
                f"RBS weights must satisfy alpha + beta + gamma = 1.0, got {total:.4f}"
            )

        if not 0.0 <= self.delta <= self.MAX_DELTA:
            raise InvariantViolation(f"RBS weight delta must be in [0, {self.MAX_DELTA}], got {self.delta}")
        return self


@dataclass(frozen=True)
class RBSComponents:
    sr: float
    cu: float
    ig: float
    sc: float


@dataclass(frozen=True)
class RBSScore:
    """Combined score. total is derived by ScoreCombiner, never set elsewhere."""
    total: float
    sr: float
    cu: float
    ig: float
    sc: float
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def components(self) -> RBSComponents:
        return RBSComponents(sr=self.sr, cu=self.cu, ig=self.ig, sc=self.sc)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total': self.total,
            'sr': self.sr,
            'cu': self.cu,
            'ig': self.ig,
            'sc': self.sc,
            'timestamp': self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class UpliftPrediction:
    treatment_effect: float
    confidence: float
    model_version: str


@dataclass(frozen=True)
class InformationGainResult:
    score: float
    coverage: float
    avg_confidence: float
    entropy_reduction: float
    # Monotone ingredients actually blended into `score`
    confidence_mass: float = 0.0
    spread: float = 0.0


@dataclass(frozen=True)
class SafetyFlag:
    type: str
    severity: float
    description: str


@dataclass(frozen=True)
class SafetyConstraintsResult:
    score: float
    flags: List[SafetyFlag]
    distance_penalty: float
    age_penalty: float
    red_flag_penalty: float = 0.0


@dataclass(frozen=True)
class ScoringSubject:
    """Everything the combiner needs about one side of a pair."""
    user_id: Any
    embedding: Sequence[float]
    profile: Profile5D
    safety: SafetyProfile


@dataclass(frozen=True)
class PairInput:
    user: ScoringSubject
    candidate: ScoringSubject
    # Optional pre-computed uplift features; extracted from the pair when absent
    uplift_features: Optional[Sequence[float]] = None


@dataclass
class RBSDetails:
    """calculate_detailed() result: the score plus per-component diagnostics."""
    score: RBSScore
    user_information_gain: InformationGainResult
    candidate_information_gain: InformationGainResult
    safety: SafetyConstraintsResult
    uplift: UpliftPrediction
    latency_ms: float = 0.0
