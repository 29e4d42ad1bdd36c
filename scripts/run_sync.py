"""
Run one listing sync session from the command line
"""

import argparse
import asyncio
import sys
import os
import logging

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.database import async_session_maker, engine
from core.exceptions import SyncException, LockContentionError
from core.logging import setup_logging
from ingestion.extractors.bridge_client import BridgeApiClient
from ingestion.runner import ExtractionOrchestrator
from models.base import TriggerSource

setup_logging()
logger = logging.getLogger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Sync listings from the Bridge RESO API")
    parser.add_argument(
        "--resync",
        action="store_true",
        help="Pull every synced-status listing instead of changes since the cursor"
    )
    parser.add_argument(
        "--triggered-by",
        default=TriggerSource.MANUAL.value,
        choices=[source.value for source in TriggerSource],
    )
    return parser.parse_args(argv)


async def run_sync(is_resync: bool, triggered_by: str) -> int:
    """Returns a process exit code"""
    try:
        async with async_session_maker() as session, BridgeApiClient() as client:
            orchestrator = ExtractionOrchestrator.from_session(session, client)
            stats = await orchestrator.run(is_resync=is_resync, triggered_by=triggered_by)

        logger.info(
            f"Run {stats.run_id} {stats.status}: processed={stats.processed} "
            f"created={stats.created} updated={stats.updated} "
            f"archived={stats.archived} errors={stats.errors}"
        )
        if stats.resume_cursor:
            logger.info(f"Resume cursor: {stats.resume_cursor}")
        return 0

    except LockContentionError as e:
        logger.warning(e.message)
        return 2
    except SyncException as e:
        logger.error(f"Sync failed: {e}")
        return 1
    finally:
        await engine.dispose()


if __name__ == "__main__":
    args = parse_args()
    sys.exit(asyncio.run(run_sync(args.resync, args.triggered_by)))
