"""
Gateway status check example.

Polls the status endpoint of a running gateway and logs state changes.
"""

import logging
import sys
import time
from pathlib import Path

# Add the project root to the path to import wagate
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from wagate.client.client import GatewayClient


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    logger = logging.getLogger(__name__)

    client = GatewayClient()
    last_state = None
    try:
        for _ in range(50):
            status = client.status()
            if status["status"] != last_state:
                last_state = status["status"]
                logger.info(
                    "State: %s (bot %s, attempts %d/%d)",
                    last_state,
                    status["botNumber"],
                    status["connectionAttempts"],
                    status["maxAttempts"],
                )
                if status["lastError"]:
                    logger.info("  Last error: %s", status["lastError"])
            time.sleep(2)

        logger.info("Status check example completed")
    except Exception:
        logger.exception("Error")
        sys.exit(1)


if __name__ == "__main__":
    main()
