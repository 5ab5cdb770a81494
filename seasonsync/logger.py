import logging
import sys
from logging.handlers import RotatingFileHandler
from . import settings

FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# HTTP client internals log every connection at DEBUG; keep them out of --verbose runs
NOISY_LOGGERS = ("urllib3", "requests")


def setup_logger(name: str | None = None, log_level: int | None = None) -> logging.Logger:
    """
    Configures `name` (the root logger by default) once: progress messages to
    stdout, timestamped records to a rotating file under LOG_DIR.
    """
    level = log_level if log_level is not None else logging.getLevelName(settings.LOG_LEVEL)
    logger = logging.getLogger(name)
    logger.setLevel(level)

    if logger.hasHandlers():
        return logger

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    console.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(console)

    settings.LOG_DIR.mkdir(parents=True, exist_ok=True)
    log_file = RotatingFileHandler(
        settings.LOG_DIR / "seasonsync.log",
        maxBytes=settings.LOG_MAX_BYTES,
        backupCount=settings.LOG_BACKUP_COUNT,
        encoding="utf-8",
    )
    log_file.setLevel(level)
    log_file.setFormatter(logging.Formatter(FILE_FORMAT))
    logger.addHandler(log_file)

    for noisy in NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(max(level, logging.WARNING))

    return logger
