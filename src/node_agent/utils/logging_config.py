"""Logging configuration for the node agent.

Log records go to the console and to a size-rotated log file. Phase and pass
durations go to the separate ``node_agent.perf`` logger.

Environment Variables:
    NODE_AGENT_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO)
    NODE_AGENT_LOG_FILE: Path to log file (default: /var/log/node-agent/node-agent.log)
    NODE_AGENT_LOG_MAX_SIZE: Max log file size in MB (default: 10)
    NODE_AGENT_LOG_BACKUPS: Number of backup files to keep (default: 5)

Usage:
    from node_agent.utils.logging_config import setup_logging, timed_section

    setup_logging()

    async with timed_section("apply_files", target="node-1", files=3):
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

# Phase timings, filterable apart from the main log
perf_logger = logging.getLogger("node_agent.perf")

DEFAULT_LOG_FILE = Path("/var/log/node-agent/node-agent.log")

LOG_FORMAT = logging.Formatter(
    "%(asctime)s.%(msecs)03d | %(name)-30s | %(levelname)-7s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)


def get_log_level() -> int:
    """Log level named by NODE_AGENT_LOG_LEVEL, INFO if unset or unknown."""
    name = os.environ.get("NODE_AGENT_LOG_LEVEL", "INFO").upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def get_log_file() -> Path:
    return Path(os.environ.get("NODE_AGENT_LOG_FILE", str(DEFAULT_LOG_FILE)))


def _rotating_handler(log_file: Path) -> RotatingFileHandler:
    max_size_mb = int(os.environ.get("NODE_AGENT_LOG_MAX_SIZE", "10"))
    backups = int(os.environ.get("NODE_AGENT_LOG_BACKUPS", "5"))

    log_file.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        log_file,
        maxBytes=max_size_mb * 1024 * 1024,
        backupCount=backups,
        encoding="utf-8",
    )
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(LOG_FORMAT)
    return handler


def setup_logging(log_file: Optional[Path] = None, level: Optional[int] = None) -> None:
    """Configure the ``node_agent`` logger hierarchy.

    The console shows ``level`` and above (NODE_AGENT_LOG_LEVEL by default).
    The log file receives everything; if it cannot be opened the agent keeps
    running with console logging only.
    """
    console_level = level if level is not None else get_log_level()
    log_file = log_file or get_log_file()

    agent_logger = logging.getLogger("node_agent")
    agent_logger.setLevel(logging.DEBUG)
    agent_logger.handlers.clear()

    console = logging.StreamHandler()
    console.setLevel(console_level)
    console.setFormatter(LOG_FORMAT)
    agent_logger.addHandler(console)

    try:
        agent_logger.addHandler(_rotating_handler(log_file))
    except OSError as e:
        agent_logger.warning(f"File logging disabled, cannot open {log_file}: {e}")

    agent_logger.info(
        f"Logging initialized: level={logging.getLevelName(console_level)}, file={log_file}"
    )


class _PerfTimer:
    """Measures one operation and reports it to the perf logger."""

    def __init__(self, operation: str, target: Optional[str], extra: dict[str, Any]):
        self.operation = operation
        self.target = target
        self.extra = extra
        self.start = time.perf_counter()

    def _line(self, status: str) -> str:
        elapsed_ms = (time.perf_counter() - self.start) * 1000
        line = f"{self.operation:20s} | {self.target or 'N/A':20s} | {elapsed_ms:8.2f}ms | {status}"
        if self.extra:
            line += " | " + " | ".join(f"{k}={v}" for k, v in self.extra.items())
        return line

    def ok(self) -> None:
        perf_logger.info(self._line("OK"))

    def failed(self, error: BaseException) -> None:
        perf_logger.warning(self._line(f"FAIL: {error!r}"))


def timed(operation: str, target: Optional[str] = None):
    """Decorator logging the duration of a sync or async function.

    Args:
        operation: Name of the operation (e.g., "reconcile")
        target: Target identifier, defaults to ``self.node_name`` of the bound object

    Usage:
        @timed("reconcile")
        async def reconcile(self):
            ...
    """
    def decorator(func: Callable) -> Callable:
        def start(args: tuple) -> _PerfTimer:
            name = target
            if name is None and args and hasattr(args[0], "node_name"):
                name = args[0].node_name
            return _PerfTimer(operation, name, {})

        if asyncio.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs) -> Any:
                timer = start(args)
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    timer.failed(e)
                    raise
                timer.ok()
                return result
            return async_wrapper

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs) -> Any:
            timer = start(args)
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                timer.failed(e)
                raise
            timer.ok()
            return result
        return sync_wrapper

    return decorator


@asynccontextmanager
async def timed_section(operation: str, target: Optional[str] = None, **extra):
    """Time the enclosed block.

    Args:
        operation: Name of the operation
        target: Node name, unit name or path the block works on
        **extra: Additional context to log (e.g. counts)
    """
    timer = _PerfTimer(operation, target, extra)
    try:
        yield
    except BaseException as e:
        timer.failed(e)
        raise
    timer.ok()
