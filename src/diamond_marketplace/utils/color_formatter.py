"""Colored logging formatter for the CLI."""

import logging
from datetime import datetime


class ColoredFormatter(logging.Formatter):
    """Colored formatter for logging."""

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord):
        """Format a log record."""
        color = self.COLORS.get(record.levelname, "")
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        level = f"{color}{record.levelname}{self.RESET}"
        name = f"\033[34m{record.name}{self.RESET}"
        when = f"\033[90m({timestamp}){self.RESET}"
        message = f"{level} [{name}] {when} {record.getMessage()}"
        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)
        return message


def setup_logging(level: int | str = logging.INFO):
    """Install the colored console handler on the root logger and quiet SDK loggers."""
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(ColoredFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(console_handler)
    root_logger.setLevel(level)

    logging.getLogger("httpx").setLevel(logging.ERROR)
    logging.getLogger("httpcore").setLevel(logging.ERROR)
    logging.getLogger("google_genai").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
