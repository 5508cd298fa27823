import logging
import os

from rich.logging import RichHandler

ROOT_LOGGER_NAME = "storefront"


class CenteredFormatter(logging.Formatter):
    """Pads logger names to the widest name seen so far, so messages line up."""

    longest_name_length = 14

    def __init__(self, fmt=None, datefmt=None, style="%", initial_width=14):
        super().__init__(fmt, datefmt, style)
        CenteredFormatter.longest_name_length = initial_width

    def format(self, record):
        width = max(CenteredFormatter.longest_name_length, len(record.name))
        CenteredFormatter.longest_name_length = width
        # copy so other handlers still see the plain name
        record = logging.makeLogRecord(record.__dict__)
        record.name = record.name.center(width)
        return super().format(record)


def _log_level() -> int:
    return logging.DEBUG if os.getenv("DEBUG") else logging.INFO


def get_logger(name=None) -> logging.Logger:
    """
    Returns a logger under the `storefront` namespace.

    Output goes to a RichHandler; when STOREFRONT_LOG_FILE is set, records are
    also appended to that file, which is the only readable sink while the
    Textual app owns the terminal.
    """
    name = f"{ROOT_LOGGER_NAME}.{name}" if name else ROOT_LOGGER_NAME
    logger = logging.getLogger(name)
    level = _log_level()
    logger.setLevel(level)

    if not logger.handlers:
        formatter = CenteredFormatter("[%(name)s]  %(message)s")

        console_handler = RichHandler(
            show_time=True,
            show_level=True,
            show_path=False,
            rich_tracebacks=True,
            log_time_format="[%X]",
        )
        console_handler.setFormatter(formatter)
        console_handler.setLevel(level)
        logger.addHandler(console_handler)

        log_file = os.getenv("STOREFRONT_LOG_FILE")
        if log_file:
            file_handler = logging.FileHandler(log_file, encoding="utf-8")
            file_handler.setFormatter(
                logging.Formatter("%(asctime)s %(levelname)-8s [%(name)s] %(message)s")
            )
            file_handler.setLevel(level)
            logger.addHandler(file_handler)

        logger.propagate = False
        logger.debug(f"Logger '{name}' ready.")

    return logger
