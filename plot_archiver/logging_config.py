import logging
import logging.handlers
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

from .config import Settings

FILE_LOG_FORMAT = "%(asctime)s - %(levelname)s - %(filename)s:%(lineno)d in %(funcName)s() - %(message)s"

# Loggers that are chatty at INFO and say nothing about archiving
QUIET_LOGGERS = ("asyncio",)


def build_console_handler(settings: Settings, console: Console) -> RichHandler:
    """Console output; shares `console` with the progress view so rows and log lines interleave cleanly."""
    handler = RichHandler(
        console=console,
        show_time=True,
        show_level=True,
        show_path=False,
        markup=True,
        rich_tracebacks=True,
        tracebacks_show_locals=False,
    )
    handler.setLevel(settings.log_level)
    return handler


def build_file_handler(settings: Settings) -> logging.Handler:
    """Daily rotated log file, keeping `log_retention_days` old files."""
    settings.log_directory.mkdir(parents=True, exist_ok=True)

    handler = logging.handlers.TimedRotatingFileHandler(
        filename=settings.log_file_path,
        when="midnight",
        interval=1,
        backupCount=settings.log_retention_days,
        encoding="utf-8",
    )
    handler.setLevel(settings.log_level)
    handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT))
    return handler


def setup_logging(settings: Settings, console: Optional[Console] = None) -> Console:
    """
    Route all logging to the terminal and the rotating log file.

    Returns the console in use so callers can draw on the same one.
    """
    console = console or Console(width=120)

    root_logger = logging.getLogger()
    root_logger.setLevel(settings.log_level)
    root_logger.handlers.clear()

    root_logger.addHandler(build_console_handler(settings, console))
    root_logger.addHandler(build_file_handler(settings))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.info(
        f"[bold green]Logging initialized[/] - "
        f"File: [cyan]{settings.log_file_path}[/], "
        f"Level: [yellow]{settings.log_level}[/], "
        f"Retention: [blue]{settings.log_retention_days}[/] days"
    )
    return console
