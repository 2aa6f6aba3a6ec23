#!/usr/bin/env python3
"""
Safety Constraints (SC) - penalty in [0, 1] for an unsafe pairing.

Higher score = less safe. Three penalties are combined with fixed weights:
- red flags (0.6): max severity across both users; any critical flag
  short-circuits the whole evaluation to the maximum penalty
- distance (0.25): haversine distance against the stricter of the two
  users' max-distance preferences
- age gap (0.15): preference violations, then gap against a safe threshold

Every triggered condition is recorded as a SafetyFlag. Never raises for
well-formed SafetyProfiles.
"""

from typing import Dict, List, Optional, Sequence, Tuple
import logging
import math

from core.config_loader import SafetyConfig
from core.scorer.models import RedFlag, SafetyConstraintsResult, SafetyFlag, SafetyProfile

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0
CRITICAL_SEVERITY = 1.0

RED_FLAG_SEVERITY: Dict[RedFlag, float] = {
    RedFlag.HARASSMENT_HISTORY: 1.0,
    RedFlag.VIOLENCE_HISTORY: 1.0,
    RedFlag.FAKE_PROFILE: 1.0,
    RedFlag.SCAM_ATTEMPT: 1.0,
    RedFlag.MULTIPLE_REPORTS: 0.8,
    RedFlag.INAPPROPRIATE_CONTENT: 0.7,
    RedFlag.SPAM_BEHAVIOR: 0.6,
    RedFlag.INCOMPLETE_VERIFICATION: 0.4,
    RedFlag.SUSPICIOUS_ACTIVITY: 0.3,
}


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in kilometres."""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


class SafetyConstraintsEvaluator:

    def __init__(self, config: Optional[SafetyConfig] = None):
        self.config = config or SafetyConfig()

    def flag_severity(self, flag: str) -> float:
        try:
            return RED_FLAG_SEVERITY[RedFlag(flag)]
        except ValueError:
            logger.debug(f"Unknown red flag '{flag}', using default severity")
            return self.config.default_flag_severity

    def _red_flag_penalty(
        self,
        user_a: SafetyProfile,
        user_b: SafetyProfile,
        flags: List[SafetyFlag]
    ) -> Tuple[float, bool]:
        """Returns (penalty, is_critical)."""
        max_severity = 0.0
        for label, user in (("User 1", user_a), ("User 2", user_b)):
            for flag in sorted(user.red_flags):
                severity = self.flag_severity(flag)
                flags.append(SafetyFlag(
                    type='red_flag',
                    severity=severity,
                    description=f"{label} has flag: {flag}"
                ))
                if severity >= CRITICAL_SEVERITY:
                    return CRITICAL_SEVERITY, True
                max_severity = max(max_severity, severity)
        return max_severity, False

    def _distance_penalty(
        self,
        user_a: SafetyProfile,
        user_b: SafetyProfile,
        flags: List[SafetyFlag]
    ) -> float:
        distance = haversine_km(
            user_a.location.latitude, user_a.location.longitude,
            user_b.location.latitude, user_b.location.longitude
        )
        default_max = self.config.max_safe_distance_km

        # Stricter (smaller) of the two preferences wins
        max_distance = min(
            user_a.preferences.max_distance_km if user_a.preferences.max_distance_km is not None else default_max,
            user_b.preferences.max_distance_km if user_b.preferences.max_distance_km is not None else default_max,
        )

        if distance > max_distance:
            severity = min(distance / max_distance - 1, 1.0) if max_distance > 0 else 1.0
            flags.append(SafetyFlag(
                type='distance',
                severity=severity,
                description=f"Distance {distance:.1f}km exceeds max {max_distance:g}km"
            ))
            return severity

        if default_max <= 0:
            return 0.0
        return min(distance / default_max, 1.0)

    @staticmethod
    def _accepts_age(preferences, age: int) -> bool:
        if preferences.min_age is not None and age < preferences.min_age:
            return False
        if preferences.max_age is not None and age > preferences.max_age:
            return False
        return True

    def _age_penalty(
        self,
        user_a: SafetyProfile,
        user_b: SafetyProfile,
        flags: List[SafetyFlag]
    ) -> float:
        age_gap = abs(user_a.age - user_b.age)

        if not (self._accepts_age(user_a.preferences, user_b.age)
                and self._accepts_age(user_b.preferences, user_a.age)):
            penalty = self.config.age_preference_penalty
            flags.append(SafetyFlag(
                type='age_gap',
                severity=penalty,
                description=f"Age preferences not met: {user_a.age} and {user_b.age}"
            ))
            return penalty

        safe_gap = self.config.max_safe_age_gap
        if age_gap > safe_gap:
            severity = min((age_gap - safe_gap) / 10, 1.0)
            flags.append(SafetyFlag(
                type='age_gap',
                severity=severity,
                description=f"Age gap {age_gap} years exceeds safe threshold"
            ))
            return severity

        if safe_gap <= 0:
            return 0.0
        return age_gap / safe_gap

    def calculate_detailed(self, user_a: SafetyProfile, user_b: SafetyProfile) -> SafetyConstraintsResult:
        flags: List[SafetyFlag] = []

        red_flag_penalty, critical = self._red_flag_penalty(user_a, user_b, flags)
        if critical:
            return SafetyConstraintsResult(
                score=1.0,
                flags=flags,
                distance_penalty=0.0,
                age_penalty=0.0,
                red_flag_penalty=red_flag_penalty,
            )

        distance_penalty = self._distance_penalty(user_a, user_b, flags)
        age_penalty = self._age_penalty(user_a, user_b, flags)

        total = (
            self.config.red_flag_weight * red_flag_penalty
            + self.config.distance_weight * distance_penalty
            + self.config.age_gap_weight * age_penalty
        )

        return SafetyConstraintsResult(
            score=max(0.0, min(1.0, total)),
            flags=flags,
            distance_penalty=distance_penalty,
            age_penalty=age_penalty,
            red_flag_penalty=red_flag_penalty,
        )

    def calculate(self, user_a: SafetyProfile, user_b: SafetyProfile) -> float:
        return self.calculate_detailed(user_a, user_b).score

    def batch_calculate(self, user: SafetyProfile, candidates: Sequence[SafetyProfile]) -> List[float]:
        return [self.calculate(user, candidate) for candidate in candidates]
