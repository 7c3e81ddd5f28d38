import logging
import sys

SYNC_LOGGER = "taskapi.sync"


def setup_logging(level: str = "INFO", sync_level: str | None = None) -> None:
    """Configure the root logger once and tune the sync engine logger.

    Format: time level logger message k=v ...
    `sync_level` lets per-op sync traces (DEBUG) be switched on without
    turning the whole app to DEBUG.
    """
    if sync_level:
        logging.getLogger(SYNC_LOGGER).setLevel(sync_level.upper())

    root = logging.getLogger()
    if root.handlers:
        # Respect existing (e.g., uvicorn, pytest) but align level
        root.setLevel(level.upper())
        return

    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
        )
    )
    root.addHandler(handler)
    root.setLevel(level.upper())
