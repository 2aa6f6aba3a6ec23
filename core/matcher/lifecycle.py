#!/usr/bin/env python3
"""
Match Lifecycle - status transitions for directional match rows.

    pending -> accepted | rejected | expired

accepted, rejected and expired are terminal. Only the matched user answers
a match. A mutual match is two accepted rows, one in each direction.
"""
from datetime import datetime, timezone
from typing import Any, Callable, Dict, FrozenSet, List
import logging

from core.exceptions import InvalidTransitionError, NotAuthorizedError, NotFoundError
from core.matcher.dto import MatchRecord, MatchStats, MatchStatus
from core.matcher.interfaces import MatchStore

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: Dict[MatchStatus, FrozenSet[MatchStatus]] = {
    MatchStatus.PENDING: frozenset({MatchStatus.ACCEPTED, MatchStatus.REJECTED, MatchStatus.EXPIRED}),
    MatchStatus.ACCEPTED: frozenset(),
    MatchStatus.REJECTED: frozenset(),
    MatchStatus.EXPIRED: frozenset(),
}


def can_transition(current: MatchStatus, target: MatchStatus) -> bool:
    return MatchStatus(target) in ALLOWED_TRANSITIONS[MatchStatus(current)]


def ensure_transition(current: MatchStatus, target: MatchStatus) -> None:
    if not can_transition(current, target):
        raise InvalidTransitionError(
            f"Cannot move match from {MatchStatus(current).value} to {MatchStatus(target).value}"
        )


class MatchLifecycleService:

    def __init__(self, match_store: MatchStore, clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)):
        self.match_store = match_store
        self.clock = clock

    def _get(self, match_id: Any) -> MatchRecord:
        match = self.match_store.get_by_id(match_id)
        if match is None:
            raise NotFoundError(f"Match not found: {match_id}")
        return match

    def _respond(self, match_id: Any, acting_user_id: Any, target: MatchStatus) -> MatchRecord:
        match = self._get(match_id)
        if match.matched_user_id != acting_user_id:
            raise NotAuthorizedError(f"User {acting_user_id} cannot answer match {match_id}")

        now = self.clock()
        if match.status == MatchStatus.PENDING and match.expires_at <= now:
            # Past expiry but not swept yet
            raise InvalidTransitionError(f"Match {match_id} has expired")

        ensure_transition(match.status, target)
        updated = self.match_store.update_status(match_id, target, responded_at=now)
        logger.info(f"Match {match_id} {target.value} by {acting_user_id}")
        return updated

    def accept(self, match_id: Any, acting_user_id: Any) -> MatchRecord:
        return self._respond(match_id, acting_user_id, MatchStatus.ACCEPTED)

    def reject(self, match_id: Any, acting_user_id: Any) -> MatchRecord:
        return self._respond(match_id, acting_user_id, MatchStatus.REJECTED)

    def mark_viewed(self, match_id: Any) -> MatchRecord:
        """Stamp viewed_at once; the status is unchanged."""
        match = self._get(match_id)
        if match.viewed_at is not None:
            return match
        return self.match_store.mark_viewed(match_id, self.clock())

    def expire_stale(self) -> int:
        count = self.match_store.expire_pending(self.clock())
        if count > 0:
            logger.info(f"Expired {count} stale pending matches")
        return count

    def find_mutual_matches(self, user_id: Any) -> List[MatchRecord]:
        """User's accepted rows whose reverse row is accepted too."""
        mutual = []
        for match in self.match_store.find_by_user_and_status(user_id, MatchStatus.ACCEPTED):
            reverse = self.match_store.find_pair(match.matched_user_id, user_id)
            if reverse is not None and reverse.status == MatchStatus.ACCEPTED:
                mutual.append(match)
        return mutual

    def pending_matches(self, user_id: Any, limit: int = 20) -> List[MatchRecord]:
        """Unexpired pending rows, best score first."""
        now = self.clock()
        pending = self.match_store.find_by_user_and_status(user_id, MatchStatus.PENDING)
        return [m for m in pending if m.expires_at > now][:limit]

    def match_stats(self, user_id: Any) -> MatchStats:
        counts = self.match_store.count_by_status(user_id)
        stats = MatchStats(
            pending=counts.get(MatchStatus.PENDING, 0),
            accepted=counts.get(MatchStatus.ACCEPTED, 0),
            rejected=counts.get(MatchStatus.REJECTED, 0),
            expired=counts.get(MatchStatus.EXPIRED, 0),
            average_rbs_score=self.match_store.average_rbs_score(user_id),
        )
        stats.total = stats.pending + stats.accepted + stats.rejected + stats.expired
        return stats
