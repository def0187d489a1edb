"""
Logging configuration for the chat service.

Every component logs through a child of the "passion" logger so a single
handler formats bot, API and pipeline output the same way.
"""

import logging
import sys

def setup_logging(name: str = "passion"):
    """Setup logging with proper format and handlers."""

    # Create logger
    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)

    # Remove existing handlers
    logger.handlers.clear()

    # Create console handler with formatting
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(logging.DEBUG)

    # Create formatter
    formatter = logging.Formatter(
        '[%(asctime)s] [%(name)s] [%(levelname)s] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    handler.setFormatter(formatter)

    # Add handler to logger
    logger.addHandler(handler)

    # Prevent propagation to root logger
    logger.propagate = False

    return logger

# Global logger instances
app_logger = setup_logging()
bot_logger = app_logger.getChild("telegram_bot")
