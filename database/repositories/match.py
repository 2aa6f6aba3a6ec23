import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update, func
from sqlalchemy.exc import IntegrityError

from core.exceptions import MatchAlreadyExistsError, NotFoundError
from core.matcher.dto import MatchDraft, MatchRecord, MatchStatus
from core.matcher.interfaces import MatchStore
from database.models import Match
from database.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


def match_record_from_orm(match: Match) -> MatchRecord:
    """Detach a Match row into a MatchRecord usable after the session closes."""
    return MatchRecord(
        id=match.id,
        user_id=match.user_id,
        matched_user_id=match.matched_user_id,
        rbs_score=float(match.rbs_score),
        sr_score=float(match.sr_score),
        cu_score=float(match.cu_score),
        ig_score=float(match.ig_score),
        sc_score=float(match.sc_score),
        status=MatchStatus(match.status),
        created_at=match.created_at,
        expires_at=match.expires_at,
        viewed_at=match.viewed_at,
        responded_at=match.responded_at,
    )


class MatchRepository(BaseRepository, MatchStore):
    def _get(self, match_id: Any) -> Match:
        match = self.db.execute(select(Match).where(Match.id == match_id)).scalar_one_or_none()
        if match is None:
            raise NotFoundError(f"Match not found: {match_id}")
        return match

    def get_by_id(self, match_id: Any) -> Optional[MatchRecord]:
        stmt = select(Match).where(Match.id == match_id)
        match = self.db.execute(stmt).scalar_one_or_none()
        return match_record_from_orm(match) if match is not None else None

    def find_pair(self, user_id: Any, other_id: Any) -> Optional[MatchRecord]:
        stmt = select(Match).where(
            Match.user_id == user_id,
            Match.matched_user_id == other_id
        )
        match = self.db.execute(stmt).scalar_one_or_none()
        return match_record_from_orm(match) if match is not None else None

    def create_if_absent(self, draft: MatchDraft) -> MatchRecord:
        match = Match(
            user_id=draft.user_id,
            matched_user_id=draft.matched_user_id,
            rbs_score=draft.rbs_score,
            sr_score=draft.sr_score,
            cu_score=draft.cu_score,
            ig_score=draft.ig_score,
            sc_score=draft.sc_score,
            status=MatchStatus(draft.status).value,
            expires_at=draft.expires_at,
        )
        try:
            # Only the SAVEPOINT is rolled back on a lost race
            with self.savepoint():
                self.db.add(match)
                self.db.flush()
        except IntegrityError as e:
            logger.debug(f"Unique violation for {draft.user_id} -> {draft.matched_user_id}")
            raise MatchAlreadyExistsError(draft.user_id, draft.matched_user_id) from e

        self.db.refresh(match)
        return match_record_from_orm(match)

    def update_status(
        self,
        match_id: Any,
        status: MatchStatus,
        viewed_at: Optional[datetime] = None,
        responded_at: Optional[datetime] = None
    ) -> MatchRecord:
        match = self._get(match_id)
        match.status = MatchStatus(status).value
        if viewed_at is not None:
            match.viewed_at = viewed_at
        if responded_at is not None:
            match.responded_at = responded_at
        self.db.flush()
        return match_record_from_orm(match)

    def mark_viewed(self, match_id: Any, viewed_at: datetime) -> MatchRecord:
        match = self._get(match_id)
        match.viewed_at = viewed_at
        self.db.flush()
        return match_record_from_orm(match)

    def expire_pending(self, now: datetime) -> int:
        stmt = (
            update(Match)
            .where(
                Match.status == MatchStatus.PENDING.value,
                Match.expires_at < now
            )
            .values(status=MatchStatus.EXPIRED.value)
            .execution_options(synchronize_session=False)
        )
        count = self.db.execute(stmt).rowcount or 0
        if count > 0:
            logger.info(f"Expired {count} pending matches older than {now.isoformat()}")
        return count

    def find_by_user_and_status(
        self,
        user_id: Any,
        status: Optional[MatchStatus] = None,
        limit: Optional[int] = None
    ) -> List[MatchRecord]:
        stmt = select(Match).where(Match.user_id == user_id)

        if status is not None:
            stmt = stmt.where(Match.status == MatchStatus(status).value)

        stmt = stmt.order_by(Match.rbs_score.desc())
        if limit is not None:
            stmt = stmt.limit(limit)
        return [match_record_from_orm(m) for m in self.db.execute(stmt).scalars().all()]

    def count_by_status(self, user_id: Any) -> Dict[MatchStatus, int]:
        stmt = (
            select(Match.status, func.count(Match.id))
            .where(Match.user_id == user_id)
            .group_by(Match.status)
        )
        counts = {status: 0 for status in MatchStatus}
        for status, count in self.db.execute(stmt).all():
            counts[MatchStatus(status)] = int(count)
        return counts

    def average_rbs_score(self, user_id: Any) -> float:
        stmt = select(func.avg(Match.rbs_score)).where(Match.user_id == user_id)
        value = self.db.execute(stmt).scalar()
        return float(value) if value is not None else 0.0
