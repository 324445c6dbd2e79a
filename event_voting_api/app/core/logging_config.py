"""
Root logger setup for the voting API.

The services log through module loggers: retries of a lost optimistic
update, finalizations, expired events closed at startup and the
placeholder used when a chosen text respondent is missing.
``setup_logging`` sends all of it to stderr and, with ``LOG_FILE``, to
a file as well.  uvicorn's access log and httpx are held at WARNING
unless the level is DEBUG.
"""

import logging
from pathlib import Path
from typing import List, Optional

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
NOISY_LOGGERS = ("uvicorn.access", "httpx")


def _handlers(logfile: Optional[str]) -> List[logging.Handler]:
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if logfile:
        handlers.append(logging.FileHandler(Path(logfile).resolve(), encoding="utf-8"))
    return handlers


def setup_logging(level: str = "INFO", logfile: Optional[str] = None) -> None:
    """Attach the handlers unless the root logger already has some.

    ``level`` is a level name in any case, INFO if unknown.  ``logfile``
    adds a UTF-8 file handler next to the console one.
    """
    root = logging.getLogger()
    if root.handlers:
        return

    numeric_level = getattr(logging, level.upper(), logging.INFO)
    root.setLevel(numeric_level)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
    for handler in _handlers(logfile):
        handler.setFormatter(formatter)
        root.addHandler(handler)

    if numeric_level > logging.DEBUG:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
