#!/usr/bin/env python3
"""
Unit tests for MatchRepository against a mocked Session.
"""

import unittest
import uuid
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

from sqlalchemy.exc import IntegrityError

from core.exceptions import MatchAlreadyExistsError, NotFoundError
from core.matcher.dto import MatchDraft, MatchStatus
from database.models import Match
from database.repositories.match import MatchRepository

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _draft(user_id=None, matched_user_id=None):
    return MatchDraft(
        user_id=user_id or uuid.uuid4(),
        matched_user_id=matched_user_id or uuid.uuid4(),
        rbs_score=0.71,
        sr_score=0.8,
        cu_score=0.1,
        ig_score=0.6,
        sc_score=0.05,
        expires_at=NOW + timedelta(days=7),
    )


def _match_row(status="pending", **kwargs):
    values = dict(
        id=uuid.uuid4(),
        user_id=uuid.uuid4(),
        matched_user_id=uuid.uuid4(),
        rbs_score=0.5,
        sr_score=0.5,
        cu_score=0.0,
        ig_score=0.5,
        sc_score=0.0,
        status=status,
        created_at=NOW,
        expires_at=NOW + timedelta(days=7),
    )
    values.update(kwargs)
    return Match(**values)


class TestCreateIfAbsent(unittest.TestCase):

    def setUp(self):
        self.mock_db = MagicMock()
        self.repo = MatchRepository(self.mock_db)

    def test_creates_pending_row(self):
        """Should add a pending Match inside a savepoint."""
        draft = _draft()
        record = self.repo.create_if_absent(draft)

        added = self.mock_db.add.call_args[0][0]
        self.assertIsInstance(added, Match)
        self.assertEqual(added.status, "pending")
        self.assertEqual(added.expires_at, draft.expires_at)
        self.mock_db.begin_nested.assert_called_once()
        self.mock_db.flush.assert_called_once()
        self.mock_db.refresh.assert_called_once_with(added)

        self.assertEqual(record.user_id, draft.user_id)
        self.assertEqual(record.matched_user_id, draft.matched_user_id)
        self.assertEqual(record.status, MatchStatus.PENDING)
        self.assertAlmostEqual(record.rbs_score, 0.71)

    def test_unique_violation_raises_already_exists(self):
        """IntegrityError maps to MatchAlreadyExistsError."""
        draft = _draft()
        self.mock_db.flush.side_effect = IntegrityError("INSERT", {}, Exception("duplicate key"))

        with self.assertRaises(MatchAlreadyExistsError) as ctx:
            self.repo.create_if_absent(draft)

        self.assertEqual(ctx.exception.user_id, draft.user_id)
        self.assertEqual(ctx.exception.matched_user_id, draft.matched_user_id)
        self.mock_db.refresh.assert_not_called()


class TestMatchQueries(unittest.TestCase):

    def setUp(self):
        self.mock_db = MagicMock()
        self.repo = MatchRepository(self.mock_db)

    def test_find_pair_missing(self):
        """A missing pair returns None."""
        self.mock_db.execute.return_value.scalar_one_or_none.return_value = None
        self.assertIsNone(self.repo.find_pair(uuid.uuid4(), uuid.uuid4()))

    def test_get_by_id_detaches_row(self):
        """Should map the ORM row to a MatchRecord."""
        row = _match_row(status="accepted", responded_at=NOW)
        self.mock_db.execute.return_value.scalar_one_or_none.return_value = row

        record = self.repo.get_by_id(row.id)

        self.assertEqual(record.id, row.id)
        self.assertEqual(record.status, MatchStatus.ACCEPTED)
        self.assertEqual(record.responded_at, NOW)
        self.assertIsInstance(record.rbs_score, float)

    def test_update_status(self):
        """Should set status and timestamps."""
        row = _match_row()
        self.mock_db.execute.return_value.scalar_one_or_none.return_value = row

        record = self.repo.update_status(row.id, MatchStatus.REJECTED, responded_at=NOW)

        self.assertEqual(row.status, "rejected")
        self.assertEqual(row.responded_at, NOW)
        self.assertIsNone(row.viewed_at)
        self.assertEqual(record.status, MatchStatus.REJECTED)
        self.mock_db.flush.assert_called_once()

    def test_update_status_missing_row(self):
        """Updating a missing row raises NotFoundError."""
        self.mock_db.execute.return_value.scalar_one_or_none.return_value = None
        with self.assertRaises(NotFoundError):
            self.repo.update_status(uuid.uuid4(), MatchStatus.ACCEPTED)

    def test_mark_viewed(self):
        """Should set viewed_at."""
        row = _match_row()
        self.mock_db.execute.return_value.scalar_one_or_none.return_value = row
        record = self.repo.mark_viewed(row.id, NOW)
        self.assertEqual(record.viewed_at, NOW)
        self.assertEqual(record.status, MatchStatus.PENDING)

    def test_expire_pending_returns_rowcount(self):
        """The bulk update returns the affected row count."""
        self.mock_db.execute.return_value.rowcount = 3
        self.assertEqual(self.repo.expire_pending(NOW), 3)

    def test_count_by_status_fills_missing(self):
        """Statuses without rows count as zero."""
        self.mock_db.execute.return_value.all.return_value = [("pending", 2), ("accepted", 1)]
        counts = self.repo.count_by_status(uuid.uuid4())
        self.assertEqual(counts, {
            MatchStatus.PENDING: 2,
            MatchStatus.ACCEPTED: 1,
            MatchStatus.REJECTED: 0,
            MatchStatus.EXPIRED: 0,
        })

    def test_average_rbs_score(self):
        """Average is zero without rows, else the database value."""
        self.mock_db.execute.return_value.scalar.return_value = None
        self.assertEqual(self.repo.average_rbs_score(uuid.uuid4()), 0.0)

        self.mock_db.execute.return_value.scalar.return_value = 0.625
        self.assertEqual(self.repo.average_rbs_score(uuid.uuid4()), 0.625)

    def test_find_by_user_and_status(self):
        """Should map query rows to MatchRecords in order."""
        rows = [_match_row(rbs_score=0.9), _match_row(rbs_score=0.4)]
        self.mock_db.execute.return_value.scalars.return_value.all.return_value = rows
        records = self.repo.find_by_user_and_status(uuid.uuid4(), MatchStatus.PENDING, limit=5)
        self.assertEqual([r.rbs_score for r in records], [0.9, 0.4])


if __name__ == '__main__':
    unittest.main(verbosity=2)
