"""Logging configuration for prefsync.

Provides configurable logging with:
- File-based logging with rotation
- Console output whose level follows quiet/verbose run options
- Performance timing decorators for store and service calls

Environment Variables:
    PREFSYNC_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO)
    PREFSYNC_LOG_FILE: Path to log file (default: ~/.config/prefsync/prefsync.log)
    PREFSYNC_LOG_MAX_SIZE: Max log file size in MB (default: 10)
    PREFSYNC_LOG_BACKUPS: Number of backup files to keep (default: 5)

Usage:
    from prefsync.utils.logging_config import setup_logging, timed

    setup_logging(verbose=options.verbose, quiet=options.quiet)

    @timed("restart_services")
    async def restart(self):
        ...

    # Or use context manager for sections:
    async with timed_section("apply", target="config.toml"):
        ...
"""
import asyncio
import functools
import logging
import os
import time
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Callable, Any

from .audit_log import setup_audit_logging

perf_logger = logging.getLogger("prefsync.perf")
main_logger = logging.getLogger("prefsync")

FILE_FORMAT = "%(asctime)s.%(msecs)03d | %(name)-30s | %(levelname)-7s | %(message)s"
PERF_FORMAT = "%(asctime)s.%(msecs)03d | PERF | %(message)s"
CONSOLE_FORMAT = "%(levelname)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def get_log_level() -> int:
    """Get log level from environment."""
    name = os.environ.get("PREFSYNC_LOG_LEVEL", "INFO").upper()
    return getattr(logging, name, logging.INFO)


def get_log_file() -> Path:
    """Get log file path from environment."""
    default = Path.home() / ".config" / "prefsync" / "prefsync.log"
    return Path(os.environ.get("PREFSYNC_LOG_FILE", str(default))).expanduser()


def console_level(quiet: bool = False, verbose: bool = False) -> int:
    """Console level after applying quiet/verbose.

    quiet wins over verbose; neither set keeps PREFSYNC_LOG_LEVEL.
    """
    if quiet:
        return max(get_log_level(), logging.WARNING)
    if verbose:
        return logging.DEBUG
    return get_log_level()


def _rotating(path: Path, fmt: str) -> RotatingFileHandler:
    max_mb = int(os.environ.get("PREFSYNC_LOG_MAX_SIZE", "10"))
    handler = RotatingFileHandler(
        path,
        maxBytes=max_mb * 1024 * 1024,
        backupCount=int(os.environ.get("PREFSYNC_LOG_BACKUPS", "5")),
        encoding="utf-8",
    )
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(fmt, datefmt=DATE_FORMAT))
    return handler


def setup_logging(quiet: bool = False, verbose: bool = False) -> None:
    """Configure logging for the application.

    Sets up:
    - Console handler (INFO+ by default, respects PREFSYNC_LOG_LEVEL)
    - File handler with rotation (DEBUG level - captures everything)
    - prefsync-perf.log for timing lines, kept off the console
    - Audit log next to the main log file

    Calling it again replaces the handlers installed by the previous call.
    """
    level = console_level(quiet=quiet, verbose=verbose)
    log_file = get_log_file()
    log_file.parent.mkdir(parents=True, exist_ok=True)

    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT))

    main_logger.handlers.clear()
    main_logger.setLevel(logging.DEBUG)  # Capture all, handlers filter
    main_logger.addHandler(console)
    main_logger.addHandler(_rotating(log_file, FILE_FORMAT))

    perf_logger.handlers.clear()
    perf_logger.setLevel(logging.DEBUG)
    perf_logger.addHandler(_rotating(log_file.parent / "prefsync-perf.log", PERF_FORMAT))
    perf_logger.propagate = False

    setup_audit_logging(str(log_file.parent))

    main_logger.debug(f"Logging to {log_file} (console: {logging.getLevelName(level)})")


def _report(operation: str, label: str, start: float, error: Optional[Exception] = None,
            extra: Optional[dict] = None) -> None:
    """Write one timing line to the perf logger."""
    elapsed = (time.perf_counter() - start) * 1000  # ms
    outcome = "OK" if error is None else f"FAIL: {error}"
    msg = f"{operation:20s} | {label:15s} | {elapsed:8.2f}ms | {outcome}"
    if extra:
        msg += " | " + " | ".join(f"{k}={v}" for k, v in extra.items())

    if error is None:
        perf_logger.info(msg)
    else:
        perf_logger.warning(msg)


def _target_of(args: tuple, target: Optional[str]) -> str:
    if target is not None:
        return target
    if args and hasattr(args[0], "name"):
        return str(args[0].name)
    return "N/A"


def timed(operation: str, target: Optional[str] = None):
    """Decorator to log execution time of sync/async functions.

    Args:
        operation: Name of the operation (e.g., "read", "restart_services")
        target: Optional label (inferred from self.name when omitted)
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs) -> Any:
            label = _target_of(args, target)
            start = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                _report(operation, label, start, e)
                raise
            _report(operation, label, start)
            return result

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs) -> Any:
            label = _target_of(args, target)
            start = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                _report(operation, label, start, e)
                raise
            _report(operation, label, start)
            return result

        if asyncio.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    return decorator


@asynccontextmanager
async def timed_section(operation: str, target: Optional[str] = None, **extra):
    """Async context manager for timing code sections.

    Usage:
        async with timed_section("unapply", target=str(config.path), dry_run=True):
            ...
    """
    start = time.perf_counter()
    try:
        yield
    except Exception as e:
        _report(operation, target or "N/A", start, e, extra)
        raise
    _report(operation, target or "N/A", start, extra=extra)
