"""
Collaborator Interfaces - capabilities the discovery core consumes.

- VectorSearch: k-NN over user embeddings
- ProfileStore: trait profiles and safety data
- MatchStore: directional match rows with create-if-absent semantics

Postgres implementations live in database.repositories; tests use
in-memory fakes.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence

from core.matcher.dto import MatchDraft, MatchRecord, MatchStatus, VectorHit, VectorRecord
from core.scorer.models import Profile5D, SafetyProfile


class VectorSearch(ABC):

    # True when search() accepts timeout_seconds and bounds the query itself.
    # Otherwise the caller runs search() on a worker thread under a timeout.
    enforces_timeout = False

    @abstractmethod
    def search(
        self,
        query_embedding: Sequence[float],
        limit: int,
        exclude_ids: Optional[Iterable[Any]] = None
    ) -> List[VectorHit]:
        """
        Return up to `limit` nearest users, most similar first.

        Implementations with enforces_timeout set take a fourth
        `timeout_seconds` argument.

        Raises:
            TransientUpstreamError: the index is unavailable
        """
        pass

    @abstractmethod
    def get_vector(self, user_id: Any) -> Optional[VectorRecord]:
        """The user's embedding, or None when not yet generated."""
        pass


class ProfileStore(ABC):

    @abstractmethod
    def load_profile(self, user_id: Any) -> Optional[Profile5D]:
        pass

    @abstractmethod
    def load_safety_profile(self, user_id: Any) -> Optional[SafetyProfile]:
        pass


class MatchStore(ABC):
    """
    Persistence for directional match rows.

    At most one row exists per ordered (user_id, matched_user_id) pair; the
    uniqueness check lives in the store, not in the caller.
    """

    @abstractmethod
    def find_pair(self, user_id: Any, other_id: Any) -> Optional[MatchRecord]:
        pass

    @abstractmethod
    def create_if_absent(self, draft: MatchDraft) -> MatchRecord:
        """
        Insert a new match row.

        Raises:
            MatchAlreadyExistsError: a row for the pair already exists
        """
        pass

    @abstractmethod
    def update_status(
        self,
        match_id: Any,
        status: MatchStatus,
        viewed_at: Optional[datetime] = None,
        responded_at: Optional[datetime] = None
    ) -> MatchRecord:
        pass

    @abstractmethod
    def get_by_id(self, match_id: Any) -> Optional[MatchRecord]:
        pass

    @abstractmethod
    def mark_viewed(self, match_id: Any, viewed_at: datetime) -> MatchRecord:
        pass

    @abstractmethod
    def expire_pending(self, now: datetime) -> int:
        """Mark pending rows whose expires_at < now as expired; return the count."""
        pass

    @abstractmethod
    def find_by_user_and_status(
        self,
        user_id: Any,
        status: Optional[MatchStatus] = None,
        limit: Optional[int] = None
    ) -> List[MatchRecord]:
        """Rows owned by `user_id`, best rbs_score first."""
        pass

    @abstractmethod
    def average_rbs_score(self, user_id: Any) -> float:
        """Mean rbs_score over the user's rows, 0.0 when there are none."""
        pass

    @abstractmethod
    def count_by_status(self, user_id: Any) -> Dict[MatchStatus, int]:
        pass
