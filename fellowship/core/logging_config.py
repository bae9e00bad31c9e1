import logging

from fellowship.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging() -> None:
    """Install a single stream handler on the root logger. Safe to call more than once."""
    root = logging.getLogger()
    root.setLevel(settings.log_level.upper())
    if any(getattr(h, "_fellowship", False) for h in root.handlers):
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._fellowship = True  # type: ignore[attr-defined]
    root.addHandler(handler)
