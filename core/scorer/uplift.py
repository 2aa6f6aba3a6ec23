#!/usr/bin/env python3
"""
Causal Uplift (CU) - fixed two-model (treatment vs control) linear estimator.

treatment_effect = clamp(sigmoid(x . w_treatment) - sigmoid(x . w_control), 0, 1)

A negative effect (coaching predicted to hurt) is reported as 0, never as
harmful. confidence is a heuristic from feature sparsity and variance, not a
statistical interval.
"""

from typing import List, Optional, Sequence
import math

import numpy as np

from core.exceptions import InvariantViolation, ValidationError
from core.scorer.models import UpliftPrediction

MODEL_VERSION = "1.0.0"

TREATMENT_WEIGHTS = (
    0.15, -0.08, 0.22, 0.11, -0.05,
    0.18, 0.09, -0.12, 0.14, 0.07,
    -0.06, 0.19, 0.13, -0.10, 0.16,
    0.08, -0.04, 0.21, 0.12, -0.07,
)

CONTROL_WEIGHTS = (
    0.10, -0.05, 0.15, 0.08, -0.03,
    0.12, 0.06, -0.08, 0.10, 0.05,
    -0.04, 0.14, 0.09, -0.07, 0.11,
    0.06, -0.03, 0.16, 0.09, -0.05,
)

FEATURE_COUNT = len(TREATMENT_WEIGHTS)

# |feature| at or below this counts as absent for the sparsity term
NEAR_ZERO = 0.01
MAX_VARIANCE = 0.5


def _sigmoid(z: float) -> float:
    if z >= 0:
        return 1.0 / (1.0 + math.exp(-z))
    e = math.exp(z)
    return e / (1.0 + e)


class CausalUpliftEstimator:
    """Deterministic, stateless uplift model. Safe to share across threads."""

    def __init__(
        self,
        treatment_weights: Optional[Sequence[float]] = None,
        control_weights: Optional[Sequence[float]] = None,
        model_version: str = MODEL_VERSION
    ):
        treatment = np.asarray(TREATMENT_WEIGHTS if treatment_weights is None else treatment_weights, dtype=float)
        control = np.asarray(CONTROL_WEIGHTS if control_weights is None else control_weights, dtype=float)

        if treatment.ndim != 1 or treatment.shape != control.shape or treatment.size == 0:
            raise InvariantViolation(
                f"Treatment and control weights must be equal-length vectors, "
                f"got {treatment.shape} and {control.shape}"
            )
        if not (np.all(np.isfinite(treatment)) and np.all(np.isfinite(control))):
            raise InvariantViolation("Uplift model weights must be finite")

        self.treatment_weights = treatment
        self.control_weights = control
        self.feature_count = treatment.size
        self.model_version = model_version

    def prepare_features(self, features: Sequence[float]) -> np.ndarray:
        """Validate, then zero-pad or truncate to the model's feature count."""
        try:
            x = np.asarray(features, dtype=float).ravel()
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Uplift features are not numeric: {e}") from e

        if not np.all(np.isfinite(x)):
            bad = int(np.flatnonzero(~np.isfinite(x))[0])
            raise ValidationError(f"Invalid feature value at index {bad}: {x[bad]}")

        if x.size >= self.feature_count:
            return x[:self.feature_count]
        return np.concatenate([x, np.zeros(self.feature_count - x.size)])

    def _confidence(self, x: np.ndarray) -> float:
        sparsity = np.count_nonzero(np.abs(x) > NEAR_ZERO) / self.feature_count
        variance = float(np.var(x))
        confidence = sparsity * 0.6 + min(variance, MAX_VARIANCE) * 0.4 / MAX_VARIANCE
        return max(0.0, min(1.0, float(confidence)))

    def predict(self, features: Sequence[float]) -> UpliftPrediction:
        x = self.prepare_features(features)

        mu1 = _sigmoid(float(np.dot(x, self.treatment_weights)))
        mu0 = _sigmoid(float(np.dot(x, self.control_weights)))
        treatment_effect = max(0.0, min(1.0, mu1 - mu0))

        return UpliftPrediction(
            treatment_effect=treatment_effect,
            confidence=self._confidence(x),
            model_version=self.model_version,
        )

    def calculate(self, features: Sequence[float]) -> float:
        return self.predict(features).treatment_effect

    def batch_calculate(self, feature_sets: Sequence[Sequence[float]]) -> List[float]:
        return [self.calculate(features) for features in feature_sets]
