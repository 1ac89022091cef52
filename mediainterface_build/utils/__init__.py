"""
Utility modules for the build orchestrator
"""

import logging
import sys
from pathlib import Path
from typing import List, Optional


class ColoredFormatter(logging.Formatter):
    """Colored log formatter for terminal output"""

    COLORS = {
        'DEBUG': '\033[36m',    # Cyan
        'INFO': '\033[32m',     # Green
        'WARNING': '\033[33m',  # Yellow
        'ERROR': '\033[31m',    # Red
        'CRITICAL': '\033[35m', # Magenta
        'SUCCESS': '\033[92m',  # Bright Green
        'RESET': '\033[0m'
    }

    def format(self, record):
        if getattr(record, 'raw', False):
            return record.getMessage()

        if sys.stdout.isatty():
            color = self.COLORS.get(record.levelname, self.COLORS['RESET'])
            reset = self.COLORS['RESET']

            # Work on a copy so other handlers see the plain record
            record = logging.makeLogRecord(record.__dict__)
            record.levelname = f"{color}{record.levelname}{reset}"
            record.msg = f"{color}{record.msg}{reset}"

        return super().format(record)


class Logger:
    """Build orchestrator logger"""

    SUCCESS = 25  # Between INFO and WARNING

    def __init__(self, verbose: bool = False, log_file: Optional[str] = None,
                 name: str = "mediainterface_build"):
        """
        Initialize logger

        Args:
            verbose: Enable verbose output
            log_file: Optional log file path
            name: Name of the underlying logging.Logger
        """
        self.verbose = verbose

        logging.addLevelName(self.SUCCESS, "SUCCESS")

        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.DEBUG if verbose else logging.INFO)
        self.logger.propagate = False

        # Remove existing handlers
        self.logger.handlers.clear()

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)

        if verbose:
            fmt = "%(asctime)s [%(levelname)s] [%(threadName)s] %(message)s"
        else:
            fmt = "[%(levelname)s] %(message)s"

        console_handler.setFormatter(ColoredFormatter(fmt, datefmt="%H:%M:%S"))
        self.logger.addHandler(console_handler)

        if log_file:
            file_handler = logging.FileHandler(log_file)
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(logging.Formatter(
                "%(asctime)s [%(levelname)s] [%(threadName)s] %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S"
            ))
            self.logger.addHandler(file_handler)

    def debug(self, msg: str):
        """Log debug message"""
        self.logger.debug(msg)

    def info(self, msg: str):
        """Log info message"""
        self.logger.info(msg)

    def warning(self, msg: str):
        """Log warning message"""
        self.logger.warning(msg)

    def error(self, msg: str):
        """Log error message"""
        self.logger.error(msg)

    def critical(self, msg: str):
        """Log critical message"""
        self.logger.critical(msg)

    def success(self, msg: str):
        """Log success message"""
        self.logger.log(self.SUCCESS, msg)

    def raw(self, msg: str):
        """Log raw message without formatting"""
        record = self.logger.makeRecord(
            self.logger.name, logging.INFO, "", 0, msg, (), None
        )
        record.raw = True
        self.logger.handle(record)


class ResourceVerifier:
    """Checks that the resources a packaging step requires were staged.

    The stager tolerates missing toolchain output; this is where a missing
    file becomes an error.
    """

    def __init__(self, resource_root: Path, logger: Logger):
        """
        Initialize verifier

        Args:
            resource_root: Root of the staged resource tree
            logger: Logger instance
        """
        self.resource_root = Path(resource_root)
        self.logger = logger

    def get_missing_files(self, required: List[str]) -> List[str]:
        """
        Get required resources that are absent

        Args:
            required: Paths relative to the resource root; glob patterns allowed

        Returns:
            List of missing entries, in the order given
        """
        missing = []
        for entry in required:
            if any(ch in entry for ch in "*?["):
                if not list(self.resource_root.glob(entry)):
                    missing.append(entry)
            elif not (self.resource_root / entry).is_file():
                missing.append(entry)
        return missing

    def verify(self, required: List[str]) -> bool:
        """
        Verify required resources exist

        Args:
            required: Paths relative to the resource root

        Returns:
            True if every required resource is present
        """
        missing = self.get_missing_files(required)
        for entry in missing:
            self.logger.error(f"  Required resource not found: {self.resource_root / entry}")
        if missing:
            return False

        for entry in required:
            self.logger.debug(f"  Found resource: {entry}")
        return True


__all__ = ["Logger", "ColoredFormatter", "ResourceVerifier"]
