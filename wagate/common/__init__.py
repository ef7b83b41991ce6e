# Common utilities
from wagate.common.logging_utils import setup_logger as setup_logger
from wagate.common.mixins import Configurable as Configurable
from wagate.common.phone import normalize_phone as normalize_phone

__all__ = ["Configurable", "normalize_phone", "setup_logger"]
