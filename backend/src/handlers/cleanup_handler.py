"""Lambda handler for the scheduled lifecycle sweep.

Marks aged reports stale, archives expired ones and recomputes every park's
composite so freshness-based fields decay even without new reports.
"""

import logging
from typing import Any

from handlers.runtime import get_aggregator, get_park_loader
from services.lifecycle_service import LifecycleSweeper
from utils.time_utils import now_utc

# Configure logging
logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


def cleanup_handler(event: dict[str, Any], context) -> dict[str, Any]:
    """Run one sweep over every park."""
    now = now_utc()
    logger.info(f"Lifecycle sweep started at {now.isoformat()}")

    try:
        sweeper = LifecycleSweeper(get_aggregator(), sorted(get_park_loader().slugs()))
        result = sweeper.sweep(now)
    except Exception as e:
        logger.error(f"Lifecycle sweep failed: {e}", exc_info=True)
        return {
            "statusCode": 500,
            "body": {"message": f"Sweep failed: {e}", "timestamp": now.isoformat()},
        }

    return {
        "statusCode": 200 if not result.errors else 207,
        "body": {
            "message": "Sweep complete",
            "result": result.to_dict(),
            "timestamp": now.isoformat(),
        },
    }
