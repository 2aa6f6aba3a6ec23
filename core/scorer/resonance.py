#!/usr/bin/env python3
"""
Subspace Resonance (SR) - weighted cosine similarity over embedding slices.

The embedding is partitioned into named, contiguous, non-overlapping
subspaces. Each subspace contributes cosine(sliceA, sliceB) * weight and the
weighted sum is clamped to [0, 1]. Per-subspace cosines may be negative;
only the sum is clamped.
"""

from typing import Iterable, List, Optional, Sequence
import logging

import numpy as np

from core.config_loader import EmbeddingConfig
from core.exceptions import InvariantViolation, ValidationError
from core.scorer.models import Subspace

logger = logging.getLogger(__name__)

WEIGHT_SUM_TOLERANCE = 0.01


def validate_partition(subspaces: Sequence[Subspace], dimensions: int) -> None:
    """Raise InvariantViolation unless the subspace table is a valid partition."""
    if dimensions <= 0:
        raise InvariantViolation(f"Embedding width must be positive, got {dimensions}")
    if not subspaces:
        raise InvariantViolation("At least one subspace is required")

    names = set()
    for s in subspaces:
        if s.name in names:
            raise InvariantViolation(f"Duplicate subspace name: {s.name}")
        names.add(s.name)
        if not 0 <= s.start < s.end <= dimensions:
            raise InvariantViolation(
                f"Subspace {s.name} range [{s.start}, {s.end}) must satisfy 0 <= start < end <= {dimensions}"
            )
        if not np.isfinite(s.weight) or s.weight < 0:
            raise InvariantViolation(f"Subspace {s.name} weight must be non-negative, got {s.weight}")

    ordered = sorted(subspaces, key=lambda s: s.start)
    for prev, cur in zip(ordered, ordered[1:]):
        if cur.start < prev.end:
            raise InvariantViolation(f"Subspaces {prev.name} and {cur.name} overlap")

    total = sum(s.weight for s in subspaces)
    if abs(total - 1.0) > WEIGHT_SUM_TOLERANCE:
        raise InvariantViolation(f"Subspace weights must sum to 1.0, got {total:.4f}")


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    """Raw cosine in [-1, 1]; 0.0 when either vector has zero magnitude."""
    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return float(np.dot(a, b) / (norm_a * norm_b))


class SubspaceResonance:
    """
    SR scorer. The partition is injected and validated once at construction,
    then treated as immutable.
    """

    def __init__(self, subspaces: Optional[Iterable[Subspace]] = None, dimensions: int = 768):
        if subspaces is None:
            subspaces = [Subspace(s.name, s.start, s.end, s.weight) for s in EmbeddingConfig().subspaces]
        self.subspaces: List[Subspace] = list(subspaces)
        self.dimensions = dimensions
        validate_partition(self.subspaces, dimensions)
        self._by_name = {s.name: s for s in self.subspaces}
        self._weight_total = sum(s.weight for s in self.subspaces)

    @classmethod
    def from_config(cls, config: EmbeddingConfig) -> "SubspaceResonance":
        return cls(
            subspaces=[Subspace(s.name, s.start, s.end, s.weight) for s in config.subspaces],
            dimensions=config.dimensions,
        )

    def validate_embedding(self, embedding: Sequence[float], label: str = "embedding") -> np.ndarray:
        try:
            vector = np.asarray(embedding, dtype=float)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"{label} is not numeric: {e}") from e

        if vector.ndim != 1 or vector.shape[0] != self.dimensions:
            raise ValidationError(
                f"{label} must have length {self.dimensions}, got shape {vector.shape}"
            )
        if not np.all(np.isfinite(vector)):
            bad = int(np.flatnonzero(~np.isfinite(vector))[0])
            raise ValidationError(f"{label} has a non-finite value at index {bad}")
        return vector

    def _score(self, a: np.ndarray, b: np.ndarray) -> float:
        weighted = sum(
            s.weight * cosine_similarity(a[s.start:s.end], b[s.start:s.end])
            for s in self.subspaces
        )
        # Normalize by the weight total so identical embeddings score exactly 1.0
        resonance = weighted / self._weight_total
        return max(0.0, min(1.0, resonance))

    def calculate(self, embedding_a: Sequence[float], embedding_b: Sequence[float]) -> float:
        """
        Weighted subspace cosine similarity between two embeddings.

        Raises:
            ValidationError: length mismatch or any non-finite element
        """
        a = self.validate_embedding(embedding_a, "embedding_a")
        b = self.validate_embedding(embedding_b, "embedding_b")
        return self._score(a, b)

    def batch_calculate(
        self,
        embedding: Sequence[float],
        candidates: Sequence[Sequence[float]]
    ) -> List[float]:
        """Element-wise equal to calling calculate() per candidate; `embedding` is validated once."""
        a = self.validate_embedding(embedding, "embedding")
        return [
            self._score(a, self.validate_embedding(c, f"candidates[{i}]"))
            for i, c in enumerate(candidates)
        ]

    def subspace_similarity(self, embedding_a: Sequence[float], embedding_b: Sequence[float], name: str) -> float:
        """Raw cosine for one named subspace (not weighted, not clamped)."""
        subspace = self._by_name.get(name)
        if subspace is None:
            raise ValidationError(f"Unknown subspace: {name}")
        a = self.validate_embedding(embedding_a, "embedding_a")
        b = self.validate_embedding(embedding_b, "embedding_b")
        return cosine_similarity(a[subspace.start:subspace.end], b[subspace.start:subspace.end])

    def subspace_breakdown(self, embedding_a: Sequence[float], embedding_b: Sequence[float]) -> dict:
        """Per-subspace raw cosines, keyed by subspace name."""
        a = self.validate_embedding(embedding_a, "embedding_a")
        b = self.validate_embedding(embedding_b, "embedding_b")
        return {
            s.name: cosine_similarity(a[s.start:s.end], b[s.start:s.end])
            for s in self.subspaces
        }
