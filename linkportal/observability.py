import sys

from loguru import logger


def setup_logging(level: str = "INFO", json: bool = False) -> None:
    """
    Route loguru to stdout.
    With json=True every record is serialized (one JSON object per line),
    otherwise a compact human-readable line is used.
    """
    logger.remove()
    if json:
        logger.add(
            sys.stdout,
            level=level.upper(),
            format="{message}",
            serialize=True,
            backtrace=True,
            diagnose=False,
            colorize=False,
        )
    else:
        logger.add(
            sys.stdout,
            level=level.upper(),
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <7} | {name} | {message}",
            backtrace=True,
            diagnose=False,
        )
