import logging
from pathlib import Path

import pytest
from conftest import FakeFactory

from wagate.common.config import Config
from wagate.common.exceptions import (
    ConnectTimeout,
    GatewayError,
    NotConnected,
    RecipientNotFound,
    ValidationError,
)
from wagate.common.logging_utils import setup_logger
from wagate.server.connection_manager import ConnectionManager
from wagate.server.persistence import FileCredentialStore


@pytest.mark.parametrize(
    ("exc_cls", "status_code"),
    [
        (ValidationError, 400),
        (RecipientNotFound, 404),
        (NotConnected, 503),
        (ConnectTimeout, 504),
        (GatewayError, 500),
    ],
)
def test_error_codes(exc_cls: type[GatewayError], status_code: int) -> None:
    error = exc_cls("boom")

    assert error.status_code == status_code
    assert error.code == exc_cls.__name__
    assert str(error) == "boom"


def test_error_status_override() -> None:
    assert GatewayError("teapot", status_code=418).status_code == 418


def test_manager_overrides(tmp_path: Path) -> None:
    manager = ConnectionManager(
        FakeFactory(),
        FileCredentialStore(tmp_path),
        config=Config("serverless"),
        connect_timeout=5,
    )

    assert manager.connect_timeout == 5
    assert manager.idle_timeout == 300
    assert manager.auto_reconnect is False


def test_manager_rejects_unknown_override(tmp_path: Path) -> None:
    with pytest.raises(TypeError, match="bogus"):
        ConnectionManager(FakeFactory(), FileCredentialStore(tmp_path), bogus=1)


def test_setup_logger_adds_handlers_once(tmp_path: Path) -> None:
    logger = logging.getLogger("wagate.test.setup")
    log_file = tmp_path / "logs" / "wagate.log"

    setup_logger(logger, logging.DEBUG, str(log_file))
    setup_logger(logger, logging.DEBUG, str(log_file))
    logger.debug("hello")

    assert len(logger.handlers) == 2
    assert "hello" in log_file.read_text()
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)
