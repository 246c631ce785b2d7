"""
Logging utilities for the vetting service.
"""

import logging
import os
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"


def setup_logging(level: str = "INFO", log_file_path: Optional[str] = None) -> None:
    """
    Configure the root logger for the API process.

    Args:
        level: Log level name for the console handler
        log_file_path: Optional file that receives DEBUG and above
    """
    root_logger = logging.getLogger()

    # Clear any existing handlers
    root_logger.handlers.clear()
    root_logger.setLevel(logging.DEBUG)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level.upper())
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(console_handler)

    if log_file_path:
        workdir = os.path.dirname(log_file_path)
        if workdir:
            os.makedirs(workdir, exist_ok=True)

        file_handler = logging.FileHandler(log_file_path)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root_logger.addHandler(file_handler)

    # Quiet chatty client libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
