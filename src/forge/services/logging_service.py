import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from src.forge.config import LOGS_DIR


class ColorFormatter(logging.Formatter):
    """A logging formatter that adds color to console output."""

    GREY = "\x1b[38;20m"
    YELLOW = "\x1b[33;20m"
    RED = "\x1b[31;20m"
    BOLD_RED = "\x1b[31;1m"
    CYAN = "\x1b[36;20m"
    RESET = "\x1b[0m"

    _BASE_FORMAT = "%(asctime)s - %(levelname)s - %(name)s:%(funcName)s:%(lineno)d - %(message)s"

    # Define the format for each log level
    FORMATS = {
        logging.DEBUG: f"{CYAN}{_BASE_FORMAT}{RESET}",
        logging.INFO: f"{GREY}{_BASE_FORMAT}{RESET}",
        logging.WARNING: f"{YELLOW}{_BASE_FORMAT}{RESET}",
        logging.ERROR: f"{RED}{_BASE_FORMAT}{RESET}",
        logging.CRITICAL: f"{BOLD_RED}{_BASE_FORMAT}{RESET}",
    }

    def format(self, record):
        log_fmt = self.FORMATS.get(record.levelno, self._BASE_FORMAT)
        formatter = logging.Formatter(log_fmt)
        return formatter.format(record)


class LoggingService:
    """
    A service to configure centralized logging for the application.
    """
    LOG_FILE = "forge.log"

    @staticmethod
    def setup_logging(console_level: int = logging.INFO, logs_dir: Optional[Path] = None):
        """
        Configures the root logger for file and console output.
        This should be called once when the application starts.

        Args:
            console_level: Minimum level echoed to the console.
            logs_dir: Directory for the rotating log file (defaults to LOGS_DIR).
        """
        target_dir = Path(logs_dir) if logs_dir else LOGS_DIR
        target_dir.mkdir(parents=True, exist_ok=True)
        log_file_path = target_dir / LoggingService.LOG_FILE

        root_logger = logging.getLogger()
        root_logger.setLevel(logging.DEBUG)

        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(console_level)
        console_handler.setFormatter(ColorFormatter())

        file_handler = RotatingFileHandler(
            log_file_path, maxBytes=10 * 1024 * 1024, backupCount=5, encoding="utf-8"
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(ColorFormatter._BASE_FORMAT))

        root_logger.addHandler(console_handler)
        root_logger.addHandler(file_handler)

        logging.info("Logging service initialized.")
