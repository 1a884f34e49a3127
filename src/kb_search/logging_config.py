"""
Logging configuration for kb_search.

Library loggers are kept quiet unless verbose output is requested.
"""

import logging
import sys

_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_NOISY_LOGGERS = ("httpx", "httpcore", "google_genai", "openai", "uvicorn.access")


def configure_logging(verbose: bool = False) -> None:
    """
    Install a stderr handler on the ``kb_search`` logger.

    Args:
        verbose: If True, log at DEBUG and let library loggers through.
            Otherwise log at INFO and silence chatty HTTP client output.
    """
    level = logging.DEBUG if verbose else logging.INFO
    package_logger = logging.getLogger("kb_search")
    package_logger.setLevel(level)

    # Add stderr handler if not already present
    if not any(
        isinstance(h, logging.StreamHandler) and h.stream == sys.stderr
        for h in package_logger.handlers
    ):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(_FORMAT, datefmt="%H:%M:%S"))
        package_logger.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if verbose else logging.WARNING)
