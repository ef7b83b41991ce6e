"""
Loading of the messaging client factory.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, cast

from uvicorn.importer import ImportFromStringError, import_from_string

if TYPE_CHECKING:
    from wagate.common.interfaces import ClientFactory

logger = logging.getLogger(__name__)


def load_client_factory(target: str | None) -> ClientFactory:
    """Resolve a ``module:callable`` string to a messaging client factory.

    Raises:
        ValueError: No target is configured, or it cannot be imported.
    """
    if not target:
        msg = (
            "No messaging client configured. "
            "Set WAGATE_CLIENT_FACTORY to 'module:callable' or pass --client."
        )
        raise ValueError(msg)
    try:
        factory = import_from_string(target)
    except ImportFromStringError as err:
        msg = f"Cannot load messaging client factory '{target}': {err}"
        raise ValueError(msg) from err
    if not callable(factory):
        msg = f"Messaging client factory '{target}' is not callable"
        raise ValueError(msg)
    logger.info("Using messaging client factory %s", target)
    return cast("ClientFactory", factory)
