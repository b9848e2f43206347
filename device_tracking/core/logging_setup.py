"""
Centralized logging setup for device tracking.

Provides consistent logging across all modules with clear source identification.
"""
import logging
from pathlib import Path
from typing import Optional


LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def setup_logging(
    log_file: Optional[Path] = None,
    level: int = logging.INFO,
    console: bool = True,
    name: str = 'device_tracking',
) -> logging.Logger:
    """
    Set up the package logger with consistent formatting.

    Module loggers (``logging.getLogger(__name__)``) propagate to it.

    Args:
        log_file: Optional path to log file
        level: Logging level
        console: Whether to also log to console
        name: Logger name, defaults to the package root logger

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(log_file, encoding='utf-8')
        fh.setLevel(level)
        fh.setFormatter(formatter)
        logger.addHandler(fh)

    if console:
        ch = logging.StreamHandler()
        ch.setLevel(level)
        ch.setFormatter(formatter)
        logger.addHandler(ch)

    logger.propagate = False
    return logger


class PhaseLogger:
    """
    Logger wrapper that includes the phase in every message.

    Usage:
        logger = PhaseLogger('detection.threshold_segmenter', phase='A')
        logger.info("Opened episode 4")  # Outputs: [phase_A] Opened episode 4
    """

    def __init__(self, module_name: str, phase: str):
        self.phase = phase
        self.prefix = f"[phase_{phase}]"
        self._logger = logging.getLogger(module_name)

    def _format(self, msg: str) -> str:
        return f"{self.prefix} {msg}"

    def info(self, msg: str):
        self._logger.info(self._format(msg))

    def warning(self, msg: str):
        self._logger.warning(self._format(msg))

    def error(self, msg: str):
        self._logger.error(self._format(msg))

    def debug(self, msg: str):
        self._logger.debug(self._format(msg))
