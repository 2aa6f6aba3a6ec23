"""Shared discovery runner module.

Runs match discovery and the expiry sweep inside a unit of work so both
main.py and a surrounding service layer can call them.
"""

import time
import logging
import threading
from typing import Any, Callable, Optional
from dataclasses import dataclass, field
from typing import List

from core.app_context import AppContext
from core.exceptions import TransientUpstreamError, ValidationError
from core.matcher.dto import DiscoveredMatch, DiscoveryStatus
from database.uow import match_uow


logger = logging.getLogger(__name__)


@dataclass
class DiscoveryRunResult:
    """Result of running discovery for one user."""
    success: bool
    user_id: Any
    status: Optional[DiscoveryStatus] = None
    matches: List[DiscoveredMatch] = field(default_factory=list)
    skipped_existing: int = 0
    failed: int = 0
    error: Optional[str] = None
    execution_time: float = 0.0

    @property
    def matches_count(self) -> int:
        return len(self.matches)


def run_discovery(
    ctx: AppContext,
    user_id: Any,
    limit: Optional[int] = None,
    uow_factory: Callable = match_uow
) -> DiscoveryRunResult:
    """Run discovery for `user_id` and commit the new matches.

    Upstream failures are reported in the result, not raised; nothing is
    committed for a failed run.
    """
    start = time.time()
    logger.info("=" * 60)
    logger.info(f"STARTING DISCOVERY for user {user_id}")
    logger.info("=" * 60)

    if not ctx.config.discovery.enabled:
        logger.info("=== DISCOVERY: Skipped (disabled in config) ===")
        return DiscoveryRunResult(success=True, user_id=user_id, error="Discovery disabled in config")

    try:
        with uow_factory() as repo:
            with ctx.build_pipeline(repo) as pipeline:
                result = pipeline.discover(user_id, limit=limit)
    except (TransientUpstreamError, ValidationError) as e:
        logger.error(f"Discovery failed for user {user_id}: {e}")
        return DiscoveryRunResult(
            success=False,
            user_id=user_id,
            error=str(e),
            execution_time=time.time() - start
        )

    execution_time = time.time() - start
    if result.matches:
        logger.info("Top 5 Matches:")
        for i, match in enumerate(result.matches[:5], 1):
            s = match.score
            logger.info(
                f"  {i}. {match.matched_user_id}: rbs={s.total:.3f} "
                f"(sr={s.sr:.3f}, cu={s.cu:.3f}, ig={s.ig:.3f}, sc={s.sc:.3f})"
            )
    logger.info(f"DISCOVERY COMPLETED in {execution_time:.2f}s: {result.status.value}, {result.count} new matches")

    return DiscoveryRunResult(
        success=True,
        user_id=user_id,
        status=result.status,
        matches=result.matches,
        skipped_existing=result.skipped_existing,
        failed=result.failed,
        execution_time=execution_time
    )


def run_expiry_sweep(ctx: AppContext, uow_factory: Callable = match_uow) -> int:
    """Expire pending matches past expires_at; returns the number expired."""
    with uow_factory() as repo:
        count = ctx.build_lifecycle(repo).expire_stale()
    logger.info(f"Expiry sweep: {count} matches expired")
    return count


def run_sweep_loop(
    ctx: AppContext,
    stop_event: Optional[threading.Event] = None,
    uow_factory: Callable = match_uow
) -> int:
    """Run the expiry sweep every schedule interval until stop_event is set.

    Returns the number of completed cycles.
    """
    if stop_event is None:
        stop_event = threading.Event()

    interval = ctx.config.schedule.interval_seconds
    cycles = 0
    while not stop_event.is_set():
        cycles += 1
        logger.info(f"=== Starting Sweep Cycle #{cycles} ===")
        try:
            run_expiry_sweep(ctx, uow_factory=uow_factory)
        except Exception as e:
            logger.error(f"Error in sweep loop: {e}", exc_info=True)

        logger.info(f"=== Sweep Cycle #{cycles} completed. Sleeping for {interval} seconds... ===")
        stop_event.wait(interval)
    return cycles
