"""
Logging configuration module.

Every module logs through ``logging.getLogger(__name__)``; all of them sit
under the ``job_scheduler`` logger configured here with three sinks:

- console
- ``<log_dir>/job_scheduler_YYYYMMDD_<START_HHMMSS>.log``, one file per day
- ``<log_dir>/error.log``, ERROR and above only
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

LOGGER_NAME = "job_scheduler"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(threadName)s] %(message)s"
ERROR_LOG_NAME = "error.log"

# HHMMSS of the first handler created in this process; shared by all days
_PROCESS_START_TIME: Optional[str] = None


def _today() -> str:
    return datetime.now().strftime("%Y%m%d")


class DailyRotatingFileHandler(logging.FileHandler):
    """
    File handler that switches to a new file when the calendar day changes.

    File name: ``<prefix>_YYYYMMDD_<START_HHMMSS>.log``. START_HHMMSS is
    fixed for the life of the process so a restart is visible in the name.
    """

    def __init__(self, log_dir: str = "logs", encoding: str = "utf-8", prefix: str = LOGGER_NAME):
        global _PROCESS_START_TIME

        if _PROCESS_START_TIME is None:
            _PROCESS_START_TIME = datetime.now().strftime("%H%M%S")

        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.prefix = prefix
        self._start_hhmmss = _PROCESS_START_TIME
        self._current_date = _today()

        super().__init__(self._path_for(self._current_date), mode="a", encoding=encoding)

    def _path_for(self, date_str: str) -> str:
        return str(self.log_dir / f"{self.prefix}_{date_str}_{self._start_hhmmss}.log")

    def emit(self, record: logging.LogRecord) -> None:
        today = _today()
        if today != self._current_date:
            self.close()
            self.baseFilename = self._path_for(today)
            self._current_date = today
            self.stream = self._open()

        super().emit(record)


def _attach(logger: logging.Logger, handler: logging.Handler, level: int, formatter: logging.Formatter) -> None:
    handler.setLevel(level)
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def setup_logging(log_level: str = "INFO", log_dir: str = "logs") -> logging.Logger:
    """
    Configure the ``job_scheduler`` logger and return it.

    Safe to call more than once; previous handlers are closed and replaced.

    Args:
        log_level (str): Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL);
            unknown names fall back to INFO
        log_dir (str): Directory for the daily and error log files

    Returns:
        logging.Logger: Configured logger instance
    """
    numeric_level = getattr(logging, log_level.upper(), None)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(numeric_level)

    # Prevent propagation to root logger (avoid duplicate logs)
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT)
    daily_handler = DailyRotatingFileHandler(log_dir=log_dir)

    _attach(logger, logging.StreamHandler(), numeric_level, formatter)
    _attach(logger, daily_handler, numeric_level, formatter)
    _attach(
        logger,
        logging.FileHandler(Path(log_dir) / ERROR_LOG_NAME, mode="a", encoding="utf-8"),
        logging.ERROR,
        formatter,
    )

    logger.info(
        f"Logging started - level: {logging.getLevelName(numeric_level)}, "
        f"log file: {daily_handler.baseFilename}"
    )
    return logger
