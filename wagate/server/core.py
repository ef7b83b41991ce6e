"""
Gateway server assembly using FastAPI.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from wagate.common.config import Config
from wagate.common.logging_utils import setup_logger

from .clients import load_client_factory
from .connection_manager import ConnectionManager
from .persistence import build_store
from .routes import GatewayRoutes
from .services import GatewayService

if TYPE_CHECKING:
    from wagate.common.interfaces import ClientFactory, CredentialStore


class GatewayServer:
    """Wires the credential store, connection manager and HTTP façade."""

    def __init__(
        self,
        config: Config | None = None,
        client_factory: ClientFactory | None = None,
        store: CredentialStore | None = None,
        **manager_overrides: object,
    ):
        self.config = config or Config()
        self.logger = logging.getLogger("wagate")
        setup_logger(self.logger, self.config.LOG_LEVEL, self.config.LOG_FILE)

        self.server_host = self.config.SERVER_HOST
        self.server_port = self.config.SERVER_PORT

        if client_factory is None:
            client_factory = load_client_factory(self.config.CLIENT_FACTORY)
        self.store = store if store is not None else build_store(self.config)
        self.manager = ConnectionManager(
            client_factory, self.store, config=self.config, **manager_overrides
        )
        self.service = GatewayService(self.config, self.manager)
        self.routes = GatewayRoutes(
            self.service, self.config.ROUTE_PREFIX, dashboard=self.config.DASHBOARD
        )

        self.app = FastAPI(title="wagate", lifespan=self._lifespan)
        if self.config.CORS_ENABLED:
            self.app.add_middleware(
                CORSMiddleware,
                allow_origins=["*"],
                allow_credentials=True,
                allow_methods=["GET", "POST", "OPTIONS"],
                allow_headers=["Content-Type"],
            )
        self.routes.setup_routes(self.app)

        self.logger.info(
            "Gateway configured: variant=%s prefix='%s' store=%s",
            self.config.VARIANT,
            self.config.ROUTE_PREFIX,
            self.config.STORE_BACKEND,
        )

    @asynccontextmanager
    async def _lifespan(self, app: FastAPI) -> AsyncIterator[None]:
        self.logger.info(
            "Server started on http://%s:%s", self.server_host, self.server_port
        )
        await self.manager.start()
        try:
            yield
        finally:
            self.logger.info("Shutting down, closing session")
            await self.manager.shutdown()


def create_app() -> FastAPI:
    """Application factory for ``uvicorn --factory wagate.server.core:create_app``."""
    return GatewayServer().app
