"""Logging configuration for mnemo.

Library modules only create ``logging.getLogger(__name__)`` loggers. Handlers
are installed here, once, by the CLI or the worker process.
"""

from __future__ import annotations

import logging
import os

from mnemo.paths import log_path

_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# Third-party loggers that are chatty at INFO.
_NOISY_LOGGERS = ("LiteLLM", "litellm", "httpx", "httpcore", "fastembed", "watchfiles")


def configure_logging(level: int | str = logging.INFO, log_file: bool = True) -> None:
    """Install the daily file handler on the ``mnemo`` logger.

    Args:
        level: Level for the ``mnemo`` logger tree.
        log_file: Write to ``~/.mnemo/logs/memory.YYYY-MM-DD.log``. Disabled
            when ``MNEMO_NO_LOG_FILE`` is set.
    """
    root = logging.getLogger("mnemo")
    root.setLevel(level)

    if log_file and not os.environ.get("MNEMO_NO_LOG_FILE"):
        target = log_path()
        already = any(
            isinstance(h, logging.FileHandler) and h.baseFilename == str(target)
            for h in root.handlers
        )
        if not already:
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                handler = logging.FileHandler(target, encoding="utf-8")
            except OSError as exc:
                root.warning("cannot open log file %s: %s", target, exc)
            else:
                handler.setFormatter(logging.Formatter(_FORMAT))
                root.addHandler(handler)

    quiet_libraries()


def quiet_libraries() -> None:
    """Raise third-party loggers to WARNING unless MNEMO_VERBOSE is set."""
    if os.environ.get("MNEMO_VERBOSE"):
        return
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
