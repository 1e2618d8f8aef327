#!/usr/bin/env python3
"""Run one retention cleanup batch.

Intended for an external scheduler (cron, Kubernetes CronJob). Deletes up to
CLEANUP_BATCH_SIZE (at most 100) expired recordings and exits non-zero if the batch could
not be loaded.

Usage:
    python scripts/cleanup_expired.py [--limit N]
"""

import argparse
import asyncio
import logging
import sys
from typing import Optional

from recording_service.config.settings import settings
from recording_service.core.exceptions import RecordingServiceError
from recording_service.core.services import build_services
from recording_service.infrastructure.database.client import db_client
from recording_service.infrastructure.storage import get_storage_provider

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger("cleanup_expired")


async def run(limit: Optional[int] = None) -> int:
    await db_client.initialize()
    try:
        services = build_services(db_client.session_maker, get_storage_provider(), settings)
        deleted = await services.retention.cleanup_expired_recordings(limit)

        for entry in services.dead_letters.entries():
            logger.warning(f"Unreconciled {entry.kind} for recording {entry.recording_id}: {entry.error}")

        return deleted
    finally:
        await db_client.close()


def main():
    parser = argparse.ArgumentParser(description="Delete one batch of expired ride recordings")
    parser.add_argument(
        "--limit", type=int, default=None, help=f"Smaller batch size (at most {settings.cleanup_batch_size})"
    )
    args = parser.parse_args()

    try:
        deleted = asyncio.run(run(args.limit))
    except RecordingServiceError as e:
        logger.error(f"Cleanup failed: {e}")
        sys.exit(1)

    print(f"Deleted {deleted} expired recordings")


if __name__ == "__main__":
    main()
