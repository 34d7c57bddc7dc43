"""Logging setup for applications embedding remotefm."""

import logging
from typing import Any, Optional

def setup_logging(level: int = logging.INFO, log_file: Optional[str] = None) -> None:
    """Setup logging configuration for the engine.

    Args:
        level: Logging level (default: INFO)
        log_file: Optional file that receives a copy of every record
    """
    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )

def summarize(obj: Any, max_length: int = 255) -> str:
    """Shorten a long value, typically a shell command, for a single log line."""
    text = str(obj)
    if len(text) > max_length:
        text = text[: max(max_length - 3, 0)] + "..."
    return text
