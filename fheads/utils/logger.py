"""
Centralized logging configuration for the FHE ads auction.

Provides coloured console output and an optional log file, with one child
logger per subsystem (fhe, token, escrow, bids, selector, gateway, engine).
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import colorlog


class FHEAdsLogger:
    """Centralized logger for auction components"""

    _initialized = False
    _log_dir: Optional[Path] = None

    @classmethod
    def setup(
        cls,
        level: int = logging.INFO,
        log_dir: Optional[str] = None,
        log_to_file: bool = False,
    ):
        """
        Setup logging configuration.

        Args:
            level: Logging level (DEBUG, INFO, WARNING, ERROR)
            log_dir: Directory for log files. If None, uses ./logs
            log_to_file: Whether to also write logs to fheads.log
        """
        if cls._initialized:
            return

        if log_to_file:
            cls._log_dir = Path(log_dir) if log_dir else Path("logs")
            cls._log_dir.mkdir(exist_ok=True, parents=True)

        root_logger = logging.getLogger("fheads")
        root_logger.setLevel(level)
        root_logger.handlers.clear()

        console_handler = colorlog.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        console_formatter = colorlog.ColoredFormatter(
            "%(log_color)s%(asctime)s [%(name)s] %(levelname)-8s%(reset)s %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
            log_colors={
                "DEBUG": "cyan",
                "INFO": "green",
                "WARNING": "yellow",
                "ERROR": "red",
                "CRITICAL": "red,bg_white",
            },
        )
        console_handler.setFormatter(console_formatter)
        root_logger.addHandler(console_handler)

        if log_to_file and cls._log_dir:
            file_handler = logging.FileHandler(cls._log_dir / "fheads.log")
            file_handler.setLevel(level)
            file_handler.setFormatter(logging.Formatter(
                "%(asctime)s [%(name)s] %(levelname)-8s %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            ))
            root_logger.addHandler(file_handler)

        cls._initialized = True

    @classmethod
    def reset(cls) -> None:
        """Drop handlers so the next setup() call reconfigures logging."""
        logging.getLogger("fheads").handlers.clear()
        cls._initialized = False
        cls._log_dir = None

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        """
        Get a logger for a specific subsystem.

        Args:
            name: Subsystem name (e.g., 'escrow', 'selector')

        Returns:
            Logger instance
        """
        if not cls._initialized:
            cls.setup()

        return logging.getLogger(f"fheads.{name}")


def get_logger(name: str) -> logging.Logger:
    """Get a logger for a specific subsystem"""
    return FHEAdsLogger.get_logger(name)


def setup_logging(level: int = logging.INFO, log_dir: Optional[str] = None, log_to_file: bool = False):
    """Setup logging configuration"""
    FHEAdsLogger.setup(level=level, log_dir=log_dir, log_to_file=log_to_file)
