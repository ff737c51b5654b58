"""Logging configuration for kvadmin runs."""
from __future__ import annotations

import logging
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Union

from .config import ScanConfig, ScanOperation

__all__ = ["setup_logger", "setup_scan_logging"]


def setup_logger(
        log_dir: Union[str, Path],
        *,
        level: int = logging.INFO,
        filename_prefix: str = "kvadmin",
        console: bool = False,
        rotate: bool = False,
        max_bytes: int = 10 * 1024 * 1024,
        backup_count: int = 3,
        force: bool = False,
) -> Path:
    """
    Configure root logging to write a timestamped log file into ``log_dir``.

    Args:
        log_dir: Directory for the log file (created if missing)
        level: Logging level (default: INFO)
        filename_prefix: Prefix for log filename, e.g. the operation name
        console: If True, also log to console
        rotate: If True, use RotatingFileHandler instead of FileHandler
        max_bytes: Maximum log file size before rotation (if rotate=True)
        backup_count: Number of backup files to keep (if rotate=True)
        force: If True, remove existing handlers before adding new ones

    Returns:
        Path to the created log file

    Examples:
        >>> log_path = setup_logger("/var/log/kvadmin", filename_prefix="copy_data")
        >>> log_path
        PosixPath('/var/log/kvadmin/copy_data_20250929_175430.log')
    """
    log_dir = Path(log_dir).expanduser().resolve()
    log_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_path = log_dir / f"{filename_prefix}_{timestamp}.log"

    root = logging.getLogger()

    if force:
        for handler in list(root.handlers):
            root.removeHandler(handler)
            handler.close()

    root.setLevel(level)

    formatter = logging.Formatter(
        "%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    if rotate:
        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
    else:
        file_handler = logging.FileHandler(
            log_path,
            mode="w",
            encoding="utf-8",
        )

    file_handler.setLevel(level)
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)

    if console:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        root.addHandler(console_handler)

    root.info("Logging initialized: %s", log_path)
    return log_path


def setup_scan_logging(
        log_base_dir: Union[str, Path],
        config: ScanConfig,
        *,
        console: bool = False,
        rotate: bool = False,
        level: int = logging.INFO,
) -> Path:
    """
    Start a fresh log file for one scan/apply run.

    Logs go to ``<log_base_dir>/<operation>/<operation>_data_<timestamp>.log``
    and open with the run's settings, so each copy/clear/count run leaves a
    self-describing log next to the others of its kind.

    Args:
        log_base_dir: Root directory for all run logs
        config: Options of the run about to start
        console: If True, also log to console
        rotate: If True, use RotatingFileHandler instead of FileHandler
        level: Logging level (default: INFO)

    Returns:
        Path to the log file
    """
    op = config.operation.value
    log_path = setup_logger(
        Path(log_base_dir).expanduser() / op,
        level=level,
        filename_prefix=f"{op}_data",
        console=console,
        rotate=rotate,
        force=True,
    )

    root = logging.getLogger()
    root.info("=" * 80)
    root.info("Operation: %s", op)
    root.info("Budget: max_in_flight=%d, timeout_ms=%d", config.max_in_flight, config.timeout_ms)
    if config.operation is ScanOperation.COUNT:
        root.info("Size stats: %s, top rows: %d", config.stat_size, config.top_count)
    root.info("Started: %s", datetime.now().strftime("%Y-%m-%d %H:%M:%S"))
    root.info("=" * 80)
    return log_path
