"""
Logging configuration and utilities for Grove.

Everything logs under the ``grove`` namespace; classes pick up a per-class
child logger through LoggingMixin.
"""

import logging
import logging.handlers
import sys
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Sequence

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Libraries that are chatty at INFO while models are being fitted
NOISY_LOGGERS = ("mlflow", "lightgbm", "alembic", "urllib3")


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    log_format: Optional[str] = None,
    max_bytes: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5,
    quiet_loggers: Sequence[str] = NOISY_LOGGERS
) -> logging.Logger:
    """
    Configure the ``grove`` logger.
    
    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Path to a rotating log file (optional)
        log_format: Custom log format (optional)
        max_bytes: Maximum size of log file before rotation
        backup_count: Number of rotated log files to keep
        quiet_loggers: Third-party loggers capped at WARNING
        
    Returns:
        Configured package logger
    """
    level = getattr(logging, log_level.upper())
    formatter = logging.Formatter(log_format or DEFAULT_FORMAT)
    
    logger = logging.getLogger("grove")
    logger.setLevel(level)
    logger.handlers.clear()
    
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)
    
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        
        file_handler = logging.handlers.RotatingFileHandler(
            log_path,
            maxBytes=max_bytes,
            backupCount=backup_count
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
    
    for name in quiet_loggers:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
    
    return logger


def get_logger(name: str) -> logging.Logger:
    """Return the ``grove.<name>`` logger."""
    return logging.getLogger(f"grove.{name}")


@contextmanager
def log_duration(logger: logging.Logger, label: str, level: int = logging.DEBUG) -> Iterator[None]:
    """
    Log how long the enclosed block took.
    
    Args:
        logger: Logger to write to
        label: Description of the timed block
        level: Log level for the timing message
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        logger.log(level, "%s took %.3fs", label, time.perf_counter() - start)


class LoggingMixin:
    """
    Mixin class to add logging capabilities to any class.
    """
    
    @property
    def logger(self) -> logging.Logger:
        return get_logger(self.__class__.__name__)
        
    def log_info(self, msg: str, *args, **kwargs) -> None:
        self.logger.info(msg, *args, **kwargs)
        
    def log_warning(self, msg: str, *args, **kwargs) -> None:
        self.logger.warning(msg, *args, **kwargs)
        
    def log_error(self, msg: str, *args, **kwargs) -> None:
        self.logger.error(msg, *args, **kwargs)
        
    def log_debug(self, msg: str, *args, **kwargs) -> None:
        self.logger.debug(msg, *args, **kwargs)
