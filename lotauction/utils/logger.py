"""
Centralized logging configuration for lotauction.

Every subsystem (auction, clearing, settlement, storage, cli) logs under
the `lotauction` logger tree. Output goes to a colored console handler
and, when the config asks for it, to `<log_dir>/lotauction.log`.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import colorlog

from lotauction.core.config import AuctionConfig, config as default_config

ROOT_LOGGER = "lotauction"
LOG_FILE_NAME = "lotauction.log"

LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)-8s %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "red,bg_white",
}


class LotAuctionLogger:
    """Owns the handlers of the lotauction logger tree"""

    _initialized = False
    _log_file: Optional[Path] = None

    @classmethod
    def configure(cls, level: int = logging.INFO, log_file: Optional[Path] = None) -> None:
        """
        Replace the handlers of the lotauction logger tree.

        Args:
            level: Logging level for the tree and its handlers
            log_file: File to append plain-text records to, if any
        """
        root_logger = logging.getLogger(ROOT_LOGGER)
        root_logger.setLevel(level)
        for handler in list(root_logger.handlers):
            root_logger.removeHandler(handler)
            handler.close()

        console_handler = colorlog.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        console_handler.setFormatter(colorlog.ColoredFormatter(
            "%(log_color)s" + LOG_FORMAT.replace("%(message)s", "%(reset)s%(message)s"),
            datefmt=DATE_FORMAT,
            log_colors=LOG_COLORS,
        ))
        root_logger.addHandler(console_handler)

        if log_file is not None:
            file_handler = logging.FileHandler(log_file)
            file_handler.setLevel(level)
            file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
            root_logger.addHandler(file_handler)

        cls._log_file = log_file
        cls._initialized = True

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        if not cls._initialized:
            cls.configure()
        return logging.getLogger(f"{ROOT_LOGGER}.{name}")

    @classmethod
    def log_file(cls) -> Optional[Path]:
        return cls._log_file


def get_logger(name: str) -> logging.Logger:
    """Get a logger for a subsystem, e.g. get_logger("clearing")"""
    return LotAuctionLogger.get_logger(name)


def setup_logging(cfg: Optional[AuctionConfig] = None, debug: bool = False) -> Optional[Path]:
    """
    Configure logging from an AuctionConfig.

    Uses `cfg.log_level` (DEBUG when `debug` is set). With `cfg.log_to_file`
    the config's directories are created and records are also appended to
    `cfg.log_dir / lotauction.log`.

    Returns:
        The log file path, or None when logging to the console only
    """
    cfg = cfg or default_config
    level = logging.DEBUG if debug else getattr(logging, cfg.log_level)

    log_file = None
    if cfg.log_to_file:
        cfg.ensure_dirs()
        log_file = cfg.log_dir / LOG_FILE_NAME

    LotAuctionLogger.configure(level=level, log_file=log_file)
    return log_file
