"""
Entry point for the gateway server.
"""

import logging

import uvicorn

from wagate.common.config import Config

from .core import GatewayServer


def start_server(config: Config | None = None) -> None:
    """Start the gateway server."""
    if config is None:
        config = Config()
    logging.basicConfig(level=config.LOG_LEVEL)
    server = GatewayServer(config=config)
    uvicorn.run(server.app, host=server.server_host, port=server.server_port)
