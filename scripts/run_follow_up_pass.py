#!/usr/bin/env python3
"""CLI script to run one follow-up pass outside the Celery schedule."""

import asyncio
import json
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import structlog

from outreach_worker.tasks.follow_ups import execute_follow_up_pass
from remarketing_service.config import get_settings
from remarketing_service.log_config import configure_logging

logger = structlog.get_logger()


async def main():
    """Main pass function."""
    settings = get_settings()
    configure_logging(settings)

    logger.info("Starting follow-up pass", lookback_days=settings.follow_up_lookback_days)
    summary = await execute_follow_up_pass(settings)
    print(json.dumps(summary.to_dict(), indent=2))

    logger.info("Follow-up pass completed", **summary.to_dict())


if __name__ == "__main__":
    asyncio.run(main())
