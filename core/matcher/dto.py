"""Data Transfer Objects for match discovery.

DTOs cross the boundary between the discovery core and its collaborators
(vector search, profile store, match store), so ORM objects never leak
out of a unit of work.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from core.scorer.models import RBSScore


class MatchStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    EXPIRED = "expired"


class DiscoveryStatus(str, Enum):
    OK = "ok"
    INSUFFICIENT_DATA = "insufficient_data"
    NO_PROFILE = "no_profile"
    NO_CANDIDATES = "no_candidates"


@dataclass
class VectorHit:
    """One k-NN result, in descending similarity order."""
    id: Any
    similarity_score: float
    payload: Dict[str, Any] = field(default_factory=dict)


@dataclass
class VectorRecord:
    id: Any
    vector: Sequence[float]
    payload: Dict[str, Any] = field(default_factory=dict)


@dataclass
class MatchDraft:
    """A match to insert. Score columns are written once and never rescored."""
    user_id: Any
    matched_user_id: Any
    rbs_score: float
    sr_score: float
    cu_score: float
    ig_score: float
    sc_score: float
    expires_at: datetime
    status: MatchStatus = MatchStatus.PENDING

    @classmethod
    def from_score(cls, user_id: Any, matched_user_id: Any, score: RBSScore, expires_at: datetime) -> "MatchDraft":
        return cls(
            user_id=user_id,
            matched_user_id=matched_user_id,
            rbs_score=score.total,
            sr_score=score.sr,
            cu_score=score.cu,
            ig_score=score.ig,
            sc_score=score.sc,
            expires_at=expires_at,
        )


@dataclass
class MatchRecord:
    """Persisted match, detached from any session."""
    id: Any
    user_id: Any
    matched_user_id: Any
    rbs_score: float
    sr_score: float
    cu_score: float
    ig_score: float
    sc_score: float
    status: MatchStatus
    created_at: datetime
    expires_at: datetime
    viewed_at: Optional[datetime] = None
    responded_at: Optional[datetime] = None


@dataclass
class DiscoveredMatch:
    """A newly created match as returned by discovery."""
    match_id: Any
    user_id: Any
    matched_user_id: Any
    score: RBSScore
    similarity_score: float = 0.0
    payload: Dict[str, Any] = field(default_factory=dict)

    @property
    def total(self) -> float:
        return self.score.total

    @property
    def compatibility(self) -> int:
        """Total as a 0-100 percentage for display."""
        return round(self.score.total * 100)


@dataclass
class DiscoveryResult:
    user_id: Any
    status: DiscoveryStatus
    matches: List[DiscoveredMatch] = field(default_factory=list)
    candidates_seen: int = 0
    skipped_existing: int = 0
    failed: int = 0
    message: Optional[str] = None

    @property
    def count(self) -> int:
        return len(self.matches)


@dataclass
class MatchStats:
    total: int = 0
    pending: int = 0
    accepted: int = 0
    rejected: int = 0
    expired: int = 0
    average_rbs_score: float = 0.0
