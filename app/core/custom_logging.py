"""Project logging: coloured console output, rotating log file, async wrapper."""

import asyncio
import logging
import logging.handlers
import os
import re
import sys
import time
from collections.abc import Awaitable
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from functools import wraps
from pathlib import Path
from typing import Any
from typing import ClassVar
from typing import TypeVar

from colorama import Fore
from colorama import Style
from colorama import just_fix_windows_console

just_fix_windows_console()

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_DIR = os.getenv("LOG_DIR", "logs")
LOG_FILE_NAME = os.getenv("LOG_FILE", "vibe_loop.log")
LOG_FILE_SIZE_MB = int(os.getenv("LOG_FILE_SIZE_MB", "10"))
LOG_BACKUP_COUNT = int(os.getenv("LOG_BACKUP_COUNT", "5"))
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Project-level loggers, available globally through import
logger = logging.getLogger("vibe_loop")
async_logger: "AsyncLogger | None" = None

_logging_configured = False


class ColoredFormatter(logging.Formatter):
    """Adds a colour per log level to console output."""

    COLOR_CODES: ClassVar[dict[int, str]] = {
        logging.DEBUG: Fore.CYAN,
        logging.INFO: Fore.GREEN,
        logging.WARNING: Fore.YELLOW,
        logging.ERROR: Fore.RED,
        logging.CRITICAL: f"{Fore.RED}{Style.BRIGHT}",
    }
    RESET: ClassVar[str] = Style.RESET_ALL

    def format(self, record: logging.LogRecord) -> str:
        color_code = self.COLOR_CODES.get(record.levelno, self.RESET)
        message = super().format(record)
        return f"{color_code}{message}{self.RESET}"


class CleanFormatter(logging.Formatter):
    """Strips ANSI escape codes so the log file stays plain text."""

    ANSI_REGEX: ClassVar[re.Pattern[str]] = re.compile(r"\x1b\[[0-9;]*m")

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        return self.ANSI_REGEX.sub("", message)


def configure_logging(
    log_level: str = LOG_LEVEL,
    log_dir: str = LOG_DIR,
    log_file_name: str = LOG_FILE_NAME,
    log_file_size_mb: int = LOG_FILE_SIZE_MB,
    log_backup_count: int = LOG_BACKUP_COUNT,
) -> None:
    """
    Configures the project logger with a console and a rotating file handler.

    Safe to call more than once; only the first call has an effect.

    Args:
        log_level: Level name ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL").
        log_dir: Directory for the log file.
        log_file_name: Name of the log file.
        log_file_size_mb: Size in megabytes after which the file is rotated.
        log_backup_count: Number of rotated files to keep.

    Raises:
        ValueError: If ``log_level`` is not a known level name.
    """
    global async_logger
    global _logging_configured

    if _logging_configured:
        return

    log_level = log_level.upper()
    numeric_level = getattr(logging, log_level, None)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {log_level}")

    logger.setLevel(numeric_level)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(ColoredFormatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
    logger.addHandler(console_handler)

    log_file_path = Path(log_dir) / log_file_name
    try:
        log_file_path.parent.mkdir(parents=True, exist_ok=True)
        rotating_file_handler = logging.handlers.RotatingFileHandler(
            log_file_path,
            maxBytes=log_file_size_mb * 1024 * 1024,
            backupCount=log_backup_count,
            encoding="utf-8",
        )
    except OSError as e:
        # Console logging still works without the file
        logger.error(f"Log file {log_file_path} unavailable: {e}", exc_info=True)
    else:
        rotating_file_handler.setFormatter(
            CleanFormatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
        )
        logger.addHandler(rotating_file_handler)

    async_logger = AsyncLogger(logger)
    logger.info(f"Logging configured to level {log_level}, file {log_file_path}")
    _logging_configured = True


class AsyncLogger:
    """Runs calls on a wrapped logger in a worker thread so coroutines never block on IO."""

    def __init__(self, logger: logging.Logger, max_workers: int = 1):
        self._logger = logger
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="AsyncLogger"
        )

    async def log(self, level: int, msg: str, *args: Any, **kwargs: Any) -> None:
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(
                self._executor, lambda: self._logger.log(level, msg, *args, **kwargs)
            )
        except RuntimeError as e:
            sys.stderr.write(f"Error during asynchronous logging: {e}\n")

    async def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        await self.log(logging.DEBUG, msg, *args, **kwargs)

    async def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        await self.log(logging.INFO, msg, *args, **kwargs)

    async def warning(self, msg: str, *args: Any, **kwargs: Any) -> None:
        await self.log(logging.WARNING, msg, *args, **kwargs)

    async def error(self, msg: str, *args: Any, **kwargs: Any) -> None:
        await self.log(logging.ERROR, msg, *args, **kwargs)

    async def critical(self, msg: str, *args: Any, **kwargs: Any) -> None:
        await self.log(logging.CRITICAL, msg, *args, **kwargs)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)


async def alog(level: int, msg: str, *args: Any, **kwargs: Any) -> None:
    """Log through the async logger when configured, else synchronously."""
    if async_logger:
        await async_logger.log(level, msg, *args, **kwargs)
    else:
        logger.log(level, msg, *args, **kwargs)


T = TypeVar("T", bound=Awaitable[Any])


def log_execution(
    level: int = logging.INFO, track_time: bool = True, show_args: bool = False
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Decorator logging START / FINISH / ERROR lines around a coroutine.

    Args:
        level: Level used for START and FINISH lines.
        track_time: Whether the FINISH line carries the elapsed time.
        show_args: Whether positional arguments are included (repr).

    Exceptions are re-raised; those without a 4xx ``status_code`` are logged
    at ERROR with traceback.
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            func_name = func.__qualname__
            arg_string = f"({', '.join(map(repr, args))})" if show_args else ""

            await alog(level, f"START {func_name}{arg_string}")
            start_time = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                elapsed_time = time.perf_counter() - start_time
                message = f"{func_name}{arg_string} after {elapsed_time:.4f}s: {e!s}"
                # Errors carrying a 4xx status are the caller's, not ours
                if getattr(e, "status_code", 500) < 500:
                    await alog(logging.WARNING, f"REJECTED {message}")
                else:
                    await alog(logging.ERROR, f"ERROR {message}", exc_info=e)
                raise

            if track_time:
                elapsed_time = time.perf_counter() - start_time
                await alog(
                    level, f"FINISH {func_name}{arg_string} in {elapsed_time:.4f}s"
                )
            return result

        return wrapper

    return decorator
