import sys

from loguru import logger


def configure_logging(level: str = "INFO") -> None:
    """Route all loguru output to a single stderr sink.

    Worker processes reserve stdout for their result message, so nothing
    may log there.
    """
    logger.remove()
    _ = logger.add(
        sys.stderr,
        level=level.upper(),
        format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{line} | {message}",
        backtrace=False,
    )
