import logging
import sys

from app.config import settings

_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
_HANDLER_NAME = "letters-registry"


def configure_logging(level: str | None = None) -> None:
    """Install a single stream handler on the root logger.

    Safe to call more than once; the handler is only added the first time.
    """
    root = logging.getLogger()
    root.setLevel((level or settings.log_level).upper())
    if any(getattr(h, "name", None) == _HANDLER_NAME for h in root.handlers):
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    root.addHandler(handler)
    # httpx logs every request at INFO, which includes identity admin URLs.
    logging.getLogger("httpx").setLevel(logging.WARNING)
