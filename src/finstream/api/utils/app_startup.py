"""Process-wide logging setup: loguru sinks plus stdlib ``logging`` capture."""

import logging
import sys
from pathlib import Path

from loguru import logger

from src.finstream.runtime.config.config_data import LoggingConfig
from src.finstream.runtime.context import get_config

PLAIN_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "[<cyan>{extra[request_id]}</cyan>] | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)

# third-party loggers and the level they are capped at
_QUIET_LOGGERS = {
    "sqlalchemy.engine": logging.WARNING,
    "sqlalchemy.pool": logging.WARNING,
    "httpx": logging.WARNING,
    "uvicorn": logging.INFO,
    "uvicorn.access": logging.CRITICAL,
}


class InterceptHandler(logging.Handler):
    """Forward stdlib log records to loguru, keeping the caller's location."""

    def emit(self, record: logging.LogRecord) -> None:
        # the request middleware already logs every request
        if record.name == "uvicorn.access":
            return

        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        logger.opt(depth=2, exception=record.exc_info).bind(
            logger_name=record.name
        ).log(level, record.getMessage())


def _add_file_sink(cfg: LoggingConfig, diagnose: bool) -> None:
    path = Path(cfg.file)
    path.parent.mkdir(parents=True, exist_ok=True)
    as_json = cfg.format == "json"
    logger.add(
        str(path),
        level=cfg.level,
        format="{message}" if as_json else PLAIN_FORMAT,
        serialize=as_json,
        rotation=f"{cfg.max_size_mb} MB",
        retention=cfg.backup_count,
        compression="zip",
        enqueue=True,
        backtrace=diagnose,
        diagnose=diagnose,
    )


def _capture_stdlib_logging() -> None:
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in list(logging.root.manager.loggerDict):
        existing = logging.getLogger(name)
        existing.handlers = []
        existing.propagate = True

    for name, level in _QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level)


def configure_logging() -> None:
    """Replace every loguru sink according to the ``logging`` config section.

    Variable values are only rendered into tracebacks outside production.
    """
    config = get_config()
    cfg = config.logging
    diagnose = config.app.environment != "production"

    logger.remove()
    logger.configure(extra={"request_id": "-"})
    logger.add(
        sys.stderr,
        level=cfg.level,
        format=PLAIN_FORMAT,
        colorize=True,
        backtrace=diagnose,
        diagnose=diagnose,
    )
    if cfg.file:
        _add_file_sink(cfg, diagnose)

    _capture_stdlib_logging()

    logger.bind(
        level=cfg.level, format=cfg.format, file=cfg.file, environment=config.app.environment
    ).info("Logging configured")
