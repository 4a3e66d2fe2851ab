from __future__ import annotations

import logging
import logging.handlers
from pathlib import Path

from core.config import BACKEND_DIR


LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
LOG_FILE = BACKEND_DIR / "logs" / "app.log"

# Loggers that are too chatty at DEBUG; they stay at WARNING unless LOG_LEVEL says otherwise.
_NOISY_LOGGERS = ("sqlalchemy.engine", "sqlalchemy.pool", "multipart")


def _file_handler(path: Path) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    return logging.handlers.RotatingFileHandler(path, maxBytes=10 * 1024 * 1024, backupCount=5, encoding="utf-8")


def setup_logging(*, environment: str, level: str | None = None) -> None:
    """Console logging everywhere; a rotating ``logs/app.log`` in production.

    ``level`` overrides the environment default (DEBUG in development,
    INFO in production). Safe to call more than once.
    """

    root = logging.getLogger()
    if root.handlers:
        return

    production = (environment or "").strip().lower() == "production"
    resolved = getattr(logging, level) if level else (logging.INFO if production else logging.DEBUG)

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if production:
        handlers.append(_file_handler(LOG_FILE))

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S%z")
    for handler in handlers:
        handler.setFormatter(formatter)
    logging.basicConfig(level=resolved, handlers=handlers)

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(name).setLevel(resolved)
    if level is None:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
