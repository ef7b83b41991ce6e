"""
Basic usage example of GatewayClient.

This example connects a running gateway, waits until the session is paired
and sends a single text message.
"""

import logging
import sys
import time
from pathlib import Path

# Add the project root to the path to import wagate
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from wagate.client.client import GatewayClient, GatewayClientError


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    logger = logging.getLogger(__name__)

    if len(sys.argv) != 3:  # noqa: PLR2004
        logger.error("Usage: basic_usage.py PHONE MESSAGE")
        sys.exit(2)
    phone, message = sys.argv[1:]

    client = GatewayClient()
    try:
        result = client.connect()
        while not result["connected"]:
            logger.info("Scan this pairing code: %s", result["qr"])
            time.sleep(5)
            result = client.connect()

        delivery = client.send_message(phone, message)
        logger.info("Sent to %s, message id %s", delivery["to"], delivery["messageId"])
    except GatewayClientError as e:
        logger.error("Gateway refused request (%s): %s", e.code, e)  # noqa: TRY400
        sys.exit(1)


if __name__ == "__main__":
    main()
