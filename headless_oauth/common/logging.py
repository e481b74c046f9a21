"""
Logging setup

Configures loguru sinks: colored console output plus rotating log files.
Audit events carry `event_type` / `provider` in `extra`.
"""

import os
import sys

from loguru import logger


def setup_logging(level: str = "INFO", log_dir: str = "logs") -> None:
    """
    Configure loguru logging.

    Sets the log format, level and file outputs.
    """
    logger.configure(extra={"event_type": "-", "provider": "-"})

    # Remove the default handler
    logger.remove()

    # Console output (colored)
    logger.add(
        sink=sys.stderr,
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "event={extra[event_type]} provider={extra[provider]} | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
            "<level>{message}</level>"
        ),
        level=level,
        colorize=True,
    )

    try:
        os.makedirs(log_dir, exist_ok=True)
        # All logs
        logger.add(
            os.path.join(log_dir, "oauth.log"),
            rotation="100 MB",
            retention="30 days",
            compression="zip",
            format=(
                "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | event={extra[event_type]} "
                "provider={extra[provider]} | {name}:{function}:{line} | {message}"
            ),
            level=level,
        )

        # Errors only
        logger.add(
            os.path.join(log_dir, "error.log"),
            rotation="50 MB",
            retention="30 days",
            compression="zip",
            format=(
                "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | event={extra[event_type]} "
                "provider={extra[provider]} | {name}:{function}:{line} | {message}"
            ),
            level="ERROR",
        )
    except (PermissionError, OSError):
        # Read-only filesystem (e.g. container): console only
        pass

    logger.info("Logging initialized")
