"""Logging configuration"""
import logging
import sys


def setup_logging(log_level: str = "INFO"):
    """Configure application logging (idempotent across app reloads)"""

    formatter = logging.Formatter(
        fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    # create_app() may run more than once per process (tests, reload)
    if not any(getattr(h, "_resource_finder", False) for h in root_logger.handlers):
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        console_handler._resource_finder = True
        root_logger.addHandler(console_handler)

    # Quieten chatty third-party loggers
    logging.getLogger("uvicorn").setLevel(logging.INFO)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("hpack").setLevel(logging.WARNING)

    logging.info(f"Logging configured with level: {log_level}")
