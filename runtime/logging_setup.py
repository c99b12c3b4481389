"""Process-wide logging configuration for the chat runtime."""

import logging
import sys
from typing import Union


LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%H:%M:%S"

# Third-party loggers that are too chatty at DEBUG.
_NOISY_LOGGERS = ("asyncio", "httpx", "httpcore", "openai", "urllib3")


def configure_logging(level: Union[int, str] = logging.INFO) -> logging.Logger:
    """Install a single stdout handler on the root logger."""
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    root.addHandler(handler)
    root.setLevel(level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return root
