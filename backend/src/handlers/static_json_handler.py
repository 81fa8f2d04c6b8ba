"""Lambda handler that republishes the park data documents.

Writes the parks index, every park's conditions record and the reporter stats
export to the website bucket, where CloudFront serves them to the frontend.
"""

import json
import logging
from typing import Any

from handlers.runtime import get_conditions_store, get_ledger, get_park_loader, get_publisher
from services.static_json_generator import StaticJsonGenerator
from utils.time_utils import now_utc

# Configure logging
logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


def generate_static_json_api() -> dict[str, Any]:
    generator = StaticJsonGenerator(
        get_publisher(),
        get_conditions_store(),
        get_ledger(),
        get_park_loader().get_parks(),
    )
    return generator.generate_all(now_utc())


def static_json_handler(event: dict[str, Any], context) -> dict[str, Any]:
    """Publish park, conditions and reporter documents to the website bucket.

    Runs on a schedule after the lifecycle sweep, or on demand. Returns 207 when
    some documents failed and the rest were still published.
    """
    logger.info(f"Publishing park data, event: {json.dumps(event)}")

    try:
        result = generate_static_json_api()
    except Exception as e:
        logger.error(f"Park data publish failed: {e}", exc_info=True)
        return {
            "statusCode": 500,
            "body": json.dumps({"message": "Park data publish failed", "error": str(e)}),
        }

    if result.get("success"):
        status_code, message = 200, "Park data published"
    else:
        logger.warning(f"Park data published with {len(result.get('errors', []))} errors")
        status_code, message = 207, "Park data published with errors"

    return {
        "statusCode": status_code,
        "body": json.dumps({"message": message, "result": result}),
    }
