import sys
import logging
import signal
import argparse
import threading
import uuid

from core.app_context import AppContext
from core.config_loader import load_config
from database.database import configure_engine
from database.init_db import init_db
from pipeline.runner import run_discovery, run_expiry_sweep, run_sweep_loop

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Global flag for graceful shutdown
running = True
stop_event = threading.Event()

def signal_handler(sig, frame):
    global running
    logger.info("Shutdown signal received")
    running = False
    stop_event.set()


def run_discover_mode(ctx, user_ids, limit) -> bool:
    """Run discovery once per user. Returns False if any run failed."""
    ok = True
    for user_id in user_ids:
        if not running: break
        result = run_discovery(ctx, user_id, limit=limit)
        if not result.success:
            ok = False
            logger.warning(f"Discovery for {user_id} failed: {result.error}")
        elif result.status is not None:
            logger.info(f"User {user_id}: {result.status.value}, {result.matches_count} new matches")
    return ok


def main():
    parser = argparse.ArgumentParser(description="Resonance Match Driver")
    parser.add_argument('--mode', type=str, choices=['discover', 'expire', 'loop'], default='loop',
                      help='discover: match discovery for --user-id; expire: one expiry sweep; loop (default): periodic sweep')
    parser.add_argument('--user-id', action='append', default=[], dest='user_ids', type=uuid.UUID,
                      help='User to run discovery for (repeatable)')
    parser.add_argument('--limit', type=int, default=None,
                      help='Maximum new matches per user')
    parser.add_argument('--config', type=str, default='config.yaml',
                      help='Path to config file')
    args = parser.parse_args()

    if args.mode == 'discover' and not args.user_ids:
        parser.error("--user-id is required in discover mode")

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    config = load_config(args.config)
    configure_engine(config.database.url)

    logger.info(f"Main driver starting in {args.mode.upper()} mode...")

    # Initialize DB (with retry logic)
    init_db()

    ctx = AppContext.build(config)
    try:
        if args.mode == 'discover':
            if not run_discover_mode(ctx, args.user_ids, args.limit):
                sys.exit(1)
        elif args.mode == 'expire':
            run_expiry_sweep(ctx)
        else:
            run_sweep_loop(ctx, stop_event=stop_event)
    finally:
        ctx.close()

if __name__ == "__main__":
    main()
