import asyncio
import logging
import signal
import sys

from . import __version__
from .dependencies import get_archiver, get_event_bus, get_plot_scanner, get_settings
from .logging_config import setup_logging
from .presentation.progress_view import ProgressView


def _handle_loop_exception(loop: asyncio.AbstractEventLoop, context: dict) -> None:
    exception = context.get("exception")
    message = context.get("message", "")
    if exception:
        logging.critical(f"Unhandled exception: {exception}\n{message}", exc_info=exception)
    else:
        logging.critical(f"Unhandled error: {message}")


async def run() -> None:
    settings = get_settings()
    console = setup_logging(settings)

    loop = asyncio.get_running_loop()
    loop.set_exception_handler(_handle_loop_exception)

    logging.info(f"Plot Archiver {__version__}")
    if not settings.destination_directories:
        logging.warning("No destination directories configured, plots will queue up until one is added")
    for destination in settings.destination_directories:
        logging.info(f"Destination directory: {destination}")

    archiver = await get_archiver()
    scanner = get_plot_scanner(archiver)

    progress_view = None
    if settings.show_progress:
        progress_view = ProgressView(get_event_bus(), console=console)
        progress_view.start()

    stop_event = asyncio.Event()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # Windows: fall back to KeyboardInterrupt
            pass

    await archiver.start()
    await scanner.start_scanning()

    try:
        await stop_event.wait()
    finally:
        logging.info("Plot Archiver shutting down...")
        await scanner.stop_scanning()
        await archiver.shutdown(abort_in_flight=True)
        if progress_view:
            progress_view.stop()
        logging.info("Alle background tasks stoppet")


def main() -> None:
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        pass
    except Exception as e:
        logging.critical(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
