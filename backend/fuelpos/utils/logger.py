"""
Logging setup — console plus a server log file under LOG_DIR.
"""
import logging
import os

from fuelpos.config import get_settings

_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
_configured = False


def _configure() -> None:
    global _configured
    if _configured:
        return
    settings = get_settings()

    root = logging.getLogger("fuelpos")
    root.setLevel(settings.LOG_LEVEL.upper())
    formatter = logging.Formatter(_FORMAT)

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    root.addHandler(console)

    try:
        os.makedirs(settings.LOG_DIR, exist_ok=True)
        file_handler = logging.FileHandler(os.path.join(settings.LOG_DIR, "server.log"), encoding="utf-8")
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)
    except OSError as exc:
        root.warning("File logging disabled: %s", exc)

    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Return a logger under the ``fuelpos`` namespace, e.g. ``get_logger("payments")``."""
    _configure()
    return logging.getLogger(f"fuelpos.{name}")
