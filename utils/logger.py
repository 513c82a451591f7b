"""Console and file logging for the HIITRunner front end.

Library modules log through ``logging.getLogger(__name__)``; the console only
shows warnings and what the menus write through the ``log_*`` helpers below.
The optional log file gets everything.
"""

import logging
import sys
from typing import Optional

import colorama
from colorama import Fore, Style

# Initialize colorama for Windows compatibility
colorama.init()

APP_LOGGER_NAME = "hiitrunner"

FILE_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


# Between INFO and WARNING so success lines survive an INFO threshold.
SUCCESS = 25
logging.addLevelName(SUCCESS, "SUCCESS")


class ConsoleMessageFilter(logging.Filter):
    """Let through warnings and above, plus anything from the app logger."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.levelno >= logging.WARNING:
            return True
        return record.name == APP_LOGGER_NAME or record.name.startswith(APP_LOGGER_NAME + ".")


class ColoredConsoleFormatter(logging.Formatter):
    """Colors only the level-dependent part; plain INFO lines stay uncolored."""

    LEVEL_COLORS = {
        logging.DEBUG: Fore.CYAN,
        SUCCESS: Fore.GREEN,
        logging.WARNING: Fore.YELLOW,
        logging.ERROR: Fore.RED,
        logging.CRITICAL: Fore.RED + Style.BRIGHT,
    }

    def __init__(self, use_colors: bool = True):
        super().__init__("%(message)s")
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        color = self.LEVEL_COLORS.get(record.levelno)
        if not self.use_colors or color is None:
            return message
        return f"{color}{message}{Style.RESET_ALL}"


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    *,
    colored_output: bool = True,
    stream=None,
) -> logging.Logger:
    """Configure console output (and an optional log file); safe to call twice."""

    numeric_level = logging.getLevelName(str(level or "INFO").upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, "_hiitrunner", False):
            root.removeHandler(handler)
            handler.close()

    console = logging.StreamHandler(stream or sys.stdout)
    console.setFormatter(ColoredConsoleFormatter(use_colors=colored_output))
    console.addFilter(ConsoleMessageFilter())
    console.setLevel(numeric_level)
    console._hiitrunner = True
    root.addHandler(console)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, FILE_DATE_FORMAT))
        file_handler.setLevel(logging.DEBUG)
        file_handler._hiitrunner = True
        root.addHandler(file_handler)

    root.setLevel(logging.DEBUG if log_file else numeric_level)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    return logging.getLogger(APP_LOGGER_NAME)


def get_logger() -> logging.Logger:
    return logging.getLogger(APP_LOGGER_NAME)


def log_debug(message: str) -> None:
    get_logger().debug(message)


def log_info(message: str) -> None:
    get_logger().info(message)


def log_success(message: str) -> None:
    get_logger().log(SUCCESS, message)


def log_warning(message: str) -> None:
    get_logger().warning(message)


def log_error(message: str) -> None:
    get_logger().error(message)
