#!/usr/bin/env python3
"""
Unit tests for match status transitions and lifecycle queries.
"""

import unittest
from datetime import datetime, timedelta, timezone

from core.exceptions import InvalidTransitionError, NotAuthorizedError, NotFoundError
from core.matcher.dto import MatchStatus
from core.matcher.lifecycle import MatchLifecycleService, can_transition, ensure_transition
from tests.mocks.stores import InMemoryMatchStore

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
LATER = NOW + timedelta(days=30)


class TestTransitions(unittest.TestCase):

    def test_pending_moves_to_any_terminal_state(self):
        """Pending can move to accepted, rejected or expired."""
        for target in (MatchStatus.ACCEPTED, MatchStatus.REJECTED, MatchStatus.EXPIRED):
            self.assertTrue(can_transition(MatchStatus.PENDING, target))

    def test_terminal_states_are_final(self):
        """No transition leaves a terminal state."""
        for current in (MatchStatus.ACCEPTED, MatchStatus.REJECTED, MatchStatus.EXPIRED):
            for target in MatchStatus:
                self.assertFalse(can_transition(current, target))

    def test_accepts_string_values(self):
        """Status strings are coerced to MatchStatus."""
        self.assertTrue(can_transition("pending", "accepted"))
        with self.assertRaises(InvalidTransitionError):
            ensure_transition("accepted", "rejected")


class TestMatchLifecycleService(unittest.TestCase):

    def setUp(self):
        self.now = NOW
        self.store = InMemoryMatchStore(clock=lambda: self.now)
        self.service = MatchLifecycleService(self.store, clock=lambda: self.now)

    def pending(self, user_id="a", matched_user_id="b", rbs_score=0.5, expires_at=None):
        return self.store.seed(
            user_id, matched_user_id,
            rbs_score=rbs_score,
            expires_at=expires_at or NOW + timedelta(days=7),
        )

    def test_accept_by_matched_user(self):
        """The matched user can accept a pending match."""
        match = self.pending()
        updated = self.service.accept(match.id, "b")
        self.assertEqual(updated.status, MatchStatus.ACCEPTED)
        self.assertEqual(updated.responded_at, NOW)

    def test_reject_by_matched_user(self):
        """The matched user can reject a pending match."""
        match = self.pending()
        self.assertEqual(self.service.reject(match.id, "b").status, MatchStatus.REJECTED)

    def test_owner_cannot_answer_own_match(self):
        """Only the matched user may accept or reject."""
        match = self.pending()
        with self.assertRaises(NotAuthorizedError):
            self.service.accept(match.id, "a")
        with self.assertRaises(NotAuthorizedError):
            self.service.reject(match.id, "stranger")
        self.assertEqual(self.store.get_by_id(match.id).status, MatchStatus.PENDING)

    def test_terminal_status_cannot_change(self):
        """Answering an accepted match raises InvalidTransitionError."""
        match = self.pending()
        self.service.reject(match.id, "b")
        with self.assertRaises(InvalidTransitionError):
            self.service.accept(match.id, "b")
        with self.assertRaises(InvalidTransitionError):
            self.service.reject(match.id, "b")

    def test_expired_but_unswept_cannot_be_answered(self):
        """A pending match past its expiry cannot be answered."""
        match = self.pending(expires_at=NOW - timedelta(minutes=1))
        with self.assertRaises(InvalidTransitionError):
            self.service.accept(match.id, "b")
        self.assertEqual(self.store.get_by_id(match.id).status, MatchStatus.PENDING)

    def test_unknown_match(self):
        """Unknown match ids raise NotFoundError."""
        with self.assertRaises(NotFoundError):
            self.service.accept(12345, "b")
        with self.assertRaises(NotFoundError):
            self.service.mark_viewed(12345)

    def test_mark_viewed_is_idempotent(self):
        """Viewing twice keeps the first viewed_at."""
        match = self.pending()
        first = self.service.mark_viewed(match.id)
        self.assertEqual(first.viewed_at, NOW)

        self.now = NOW + timedelta(hours=1)
        second = self.service.mark_viewed(match.id)
        self.assertEqual(second.viewed_at, NOW)
        self.assertEqual(second.status, MatchStatus.PENDING)

    def test_expire_stale(self):
        """The sweep expires only pending rows past expires_at."""
        self.pending("a", "b", expires_at=NOW - timedelta(days=1))
        self.pending("a", "c", expires_at=NOW - timedelta(seconds=1))
        fresh = self.pending("a", "d", expires_at=NOW + timedelta(days=1))
        answered = self.pending("a", "e", expires_at=NOW + timedelta(hours=1))
        self.service.accept(answered.id, "e")

        self.now = NOW + timedelta(hours=2)
        self.assertEqual(self.service.expire_stale(), 2)
        self.assertEqual(self.store.get_by_id(fresh.id).status, MatchStatus.PENDING)
        self.assertEqual(self.store.get_by_id(answered.id).status, MatchStatus.ACCEPTED)
        self.assertEqual(self.service.expire_stale(), 0)

    def test_mutual_matches(self):
        """Two accepted directional rows form a mutual match."""
        forward = self.pending("a", "b")
        reverse = self.pending("b", "a")
        one_sided = self.pending("a", "c")
        back = self.pending("c", "a")

        self.service.accept(forward.id, "b")
        self.service.accept(reverse.id, "a")
        self.service.accept(one_sided.id, "c")

        mutual = self.service.find_mutual_matches("a")
        self.assertEqual([m.matched_user_id for m in mutual], ["b"])

        self.service.reject(back.id, "a")
        self.assertEqual(len(self.service.find_mutual_matches("a")), 1)

    def test_pending_matches_skip_expired_and_sort_by_score(self):
        """Pending list drops expired rows and sorts by RBS."""
        self.pending("a", "b", rbs_score=0.4)
        self.pending("a", "c", rbs_score=0.9)
        self.pending("a", "d", rbs_score=0.95, expires_at=NOW - timedelta(days=1))

        pending = self.service.pending_matches("a")
        self.assertEqual([m.matched_user_id for m in pending], ["c", "b"])
        self.assertEqual(len(self.service.pending_matches("a", limit=1)), 1)

    def test_match_stats(self):
        """Stats count each status and average the RBS score."""
        self.pending("a", "b", rbs_score=0.2)
        accepted = self.pending("a", "c", rbs_score=0.6)
        self.service.accept(accepted.id, "c")
        self.pending("x", "a", rbs_score=0.9)

        stats = self.service.match_stats("a")
        self.assertEqual(stats.total, 2)
        self.assertEqual(stats.pending, 1)
        self.assertEqual(stats.accepted, 1)
        self.assertEqual(stats.rejected, 0)
        self.assertAlmostEqual(stats.average_rbs_score, 0.4)

    def test_stats_for_new_user(self):
        """A user with no matches gets zeroed stats."""
        stats = self.service.match_stats("nobody")
        self.assertEqual(stats.total, 0)
        self.assertEqual(stats.average_rbs_score, 0.0)


if __name__ == '__main__':
    unittest.main(verbosity=2)
