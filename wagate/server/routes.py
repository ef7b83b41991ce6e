"""
Routes for the gateway server.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.responses import HTMLResponse, JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from wagate.common.exceptions import GatewayError, ValidationError
from wagate.common.models import SendMessageRequest

if TYPE_CHECKING:
    from .services import GatewayService

logger = logging.getLogger(__name__)


def error_response(error: GatewayError) -> JSONResponse:
    return JSONResponse(
        status_code=error.status_code,
        content={"success": False, "error": error.code, "message": str(error)},
    )


class GatewayRoutes:
    """Handles FastAPI routes for the gateway server."""

    def __init__(self, service: GatewayService, prefix: str = "", *, dashboard: bool = True):
        self.service = service
        self.prefix = prefix.rstrip("/")
        self.dashboard = dashboard

    def available(self) -> list[str]:
        return [
            f"{self.prefix}/status",
            f"{self.prefix}/qr",
            f"{self.prefix}/connect",
            f"{self.prefix}/send-message",
            f"{self.prefix}/clear-auth",
            f"{self.prefix}/health",
        ]

    def setup_routes(self, app: FastAPI) -> None:
        """Setup API routes on the FastAPI app."""
        p = self.prefix
        if self.dashboard:
            app.get("/", response_class=HTMLResponse)(self.dashboard_page)
            if p:
                app.get(p, response_class=HTMLResponse)(self.dashboard_page)
        app.get(f"{p}/health")(self.health)
        app.get(f"{p}/status")(self.status)
        app.get(f"{p}/qr")(self.qr)
        app.post(f"{p}/connect")(self.connect)
        app.post(f"{p}/send-message")(self.send_message)
        app.post(f"{p}/send")(self.send_message)
        app.post(f"{p}/clear-auth")(self.clear_auth)
        app.post(f"{p}/clear")(self.clear_auth)

        app.middleware("http")(self.reap_idle_session)
        app.exception_handler(GatewayError)(self.handle_gateway_error)
        app.exception_handler(RequestValidationError)(self.handle_request_validation)
        app.exception_handler(StarletteHTTPException)(self.handle_http_error)

    async def reap_idle_session(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        """Close an idle session before serving the request."""
        await self.service.manager.reap_idle()
        return await call_next(request)

    async def handle_gateway_error(self, request: Request, exc: Exception) -> JSONResponse:
        assert isinstance(exc, GatewayError)
        if exc.status_code >= 500:  # noqa: PLR2004
            logger.warning("%s %s failed: %s", request.method, request.url.path, exc)
        return error_response(exc)

    async def handle_request_validation(
        self, request: Request, exc: Exception
    ) -> JSONResponse:
        return error_response(ValidationError("Request body must be a JSON object"))

    async def handle_http_error(self, request: Request, exc: Exception) -> Response:
        assert isinstance(exc, StarletteHTTPException)
        if exc.status_code == 404:  # noqa: PLR2004
            return JSONResponse(
                status_code=404,
                content={
                    "success": False,
                    "error": "Endpoint not found",
                    "available": self.available(),
                },
            )
        return await http_exception_handler(request, exc)

    async def dashboard_page(self) -> HTMLResponse:
        """Handle / endpoint."""
        return HTMLResponse(self.service.dashboard())

    async def health(self) -> dict[str, Any]:
        """Handle /health endpoint."""
        return self.service.health()

    async def status(self) -> dict[str, Any]:
        """Handle /status endpoint."""
        return self.service.status()

    async def qr(self) -> dict[str, Any]:
        """Handle /qr endpoint."""
        return await self.service.qr()

    async def connect(self) -> dict[str, Any]:
        """Handle /connect endpoint."""
        return await self.service.connect()

    async def send_message(self, req: SendMessageRequest) -> Any:
        """Handle /send-message endpoint."""
        try:
            return await self.service.send_message(req)
        except GatewayError:
            raise
        except Exception as e:  # noqa: BLE001
            logger.exception("Send failed")
            return JSONResponse(
                status_code=500,
                content={"success": False, "error": "SendFailed", "message": str(e)},
            )

    async def clear_auth(self) -> dict[str, Any]:
        """Handle /clear-auth endpoint."""
        return await self.service.clear_auth()
