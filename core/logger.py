"""
Service logger setup

Configures the root logger once per process from LoggingConfig and hands
back a named logger for the service entrypoint. Modules keep using
``logging.getLogger(__name__)``.
"""

import logging
import sys
from typing import Optional

from core.config import LoggingConfig

_configured = False


def setup_service_logger(service_name: str, config: Optional[LoggingConfig] = None) -> logging.Logger:
    """Configure process-wide logging and return the service logger"""
    global _configured

    config = config or LoggingConfig.from_env()

    if not _configured:
        root = logging.getLogger()
        root.setLevel(getattr(logging, config.log_level.upper(), logging.INFO))
        formatter = logging.Formatter(config.log_format)

        if config.enable_console:
            console = logging.StreamHandler(sys.stdout)
            console.setFormatter(formatter)
            root.addHandler(console)

        if config.log_file:
            file_handler = logging.FileHandler(config.log_file)
            file_handler.setFormatter(formatter)
            root.addHandler(file_handler)

        # Quiet noisy client libraries
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("nats").setLevel(logging.WARNING)
        _configured = True

    return logging.getLogger(service_name)


__all__ = ["setup_service_logger"]
