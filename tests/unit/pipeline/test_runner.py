#!/usr/bin/env python3
"""
Unit tests for the discovery runner and expiry sweep.
"""

import contextlib
import threading
import unittest
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

from core.app_context import AppContext
from core.config_loader import AppConfig, DiscoveryConfig, ScheduleConfig, ScorerConfig, WeightsConfig
from core.exceptions import InvariantViolation
from core.matcher.dto import DiscoveryStatus, MatchStatus
from pipeline.runner import run_discovery, run_expiry_sweep, run_sweep_loop
from tests.mocks.stores import (
    InMemoryMatchStore, InMemoryProfileStore, InMemoryVectorSearch, make_subject
)


class FailingVectorSearch(InMemoryVectorSearch):

    def search(self, query_embedding, limit, exclude_ids=None):
        raise ConnectionError("k-NN backend unreachable")


class TestRunner(unittest.TestCase):

    def setUp(self):
        self.ctx = AppContext.build(AppConfig(schedule=ScheduleConfig(interval_seconds=60)))
        self.addCleanup(self.ctx.close)

        self.vectors = InMemoryVectorSearch()
        self.profiles = InMemoryProfileStore()
        self.matches = InMemoryMatchStore()
        self.commits = 0

        for i, user_id in enumerate(["u", "c1", "c2", "c3"]):
            subject = make_subject(user_id, seed=i)
            self.vectors.add(user_id, subject.embedding)
            self.profiles.add(subject)

    @contextlib.contextmanager
    def uow(self):
        yield SimpleNamespace(embeddings=self.vectors, profiles=self.profiles, matches=self.matches)
        self.commits += 1

    def test_run_discovery(self):
        """A successful run commits once."""
        result = run_discovery(self.ctx, "u", limit=2, uow_factory=self.uow)

        self.assertTrue(result.success)
        self.assertEqual(result.status, DiscoveryStatus.OK)
        self.assertEqual(result.matches_count, 2)
        self.assertIsNone(result.error)
        self.assertEqual(self.commits, 1)

    def test_run_discovery_reports_upstream_failure(self):
        """Upstream failures are reported and nothing is committed."""
        self.vectors = FailingVectorSearch(vectors=self.vectors.vectors)

        result = run_discovery(self.ctx, "u", uow_factory=self.uow)

        self.assertFalse(result.success)
        self.assertIn("k-NN backend unreachable", result.error)
        self.assertEqual(self.commits, 0)

    def test_run_discovery_rejects_bad_limit(self):
        """A zero limit is reported as a failure."""
        result = run_discovery(self.ctx, "u", limit=0, uow_factory=self.uow)
        self.assertFalse(result.success)
        self.assertIn("limit", result.error)

    def test_run_discovery_disabled(self):
        """Disabled discovery succeeds without matches."""
        ctx = AppContext.build(AppConfig(discovery=DiscoveryConfig(enabled=False)))
        self.addCleanup(ctx.close)

        result = run_discovery(ctx, "u", uow_factory=self.uow)

        self.assertTrue(result.success)
        self.assertEqual(result.matches_count, 0)
        self.assertEqual(self.matches.rows, {})

    def test_run_expiry_sweep(self):
        """The sweep expires stale pending matches."""
        past = datetime.now(timezone.utc) - timedelta(days=1)
        self.matches.seed("u", "c1", expires_at=past)
        self.matches.seed("u", "c2", expires_at=past + timedelta(days=30))

        self.assertEqual(run_expiry_sweep(self.ctx, uow_factory=self.uow), 1)
        self.assertEqual(self.matches.find_pair("u", "c1").status, MatchStatus.EXPIRED)

    def test_sweep_loop_stops_on_event(self):
        """The loop exits once the stop event is set."""
        stop = threading.Event()

        @contextlib.contextmanager
        def stopping_uow():
            with self.uow() as repo:
                yield repo
            stop.set()

        self.assertEqual(run_sweep_loop(self.ctx, stop_event=stop, uow_factory=stopping_uow), 1)

    def test_sweep_loop_survives_errors(self):
        """Errors are logged and the loop continues."""
        stop = threading.Event()
        calls = []

        @contextlib.contextmanager
        def broken_uow():
            calls.append(1)
            if len(calls) >= 2:
                stop.set()
            raise RuntimeError("database down")
            yield

        with self.assertLogs("pipeline.runner", level="ERROR"):
            cycles = run_sweep_loop(
                AppContext(config=AppConfig(schedule=ScheduleConfig(interval_seconds=0)), combiner=self.ctx.combiner),
                stop_event=stop,
                uow_factory=broken_uow
            )
        self.assertEqual(cycles, 2)


class TestAppContext(unittest.TestCase):

    def test_invalid_weights_refuse_to_build(self):
        """Invalid weights fail when the context is built."""
        config = AppConfig(scorer=ScorerConfig(weights=WeightsConfig(alpha=0.9, beta=0.3, gamma=0.25)))
        with self.assertRaises(InvariantViolation):
            AppContext.build(config)


if __name__ == '__main__':
    unittest.main(verbosity=2)
