"""Levelled, per-component logging to a timestamped file and standard error."""

from __future__ import annotations

import sys
import threading
from datetime import datetime
from enum import IntEnum, StrEnum
from pathlib import Path
from typing import IO, Iterable


class LogLevel(IntEnum):
    """Severity of a log message; lower values are less severe."""

    DEBUG = 0
    INFO = 1
    WARN = 2
    ERROR = 3
    FATAL = 4


class Component(StrEnum):
    """Part of the router a message comes from."""

    ROUTER = "router"
    PROXY = "proxy"
    NETWORK = "network"
    ADS = "ads"
    VPN = "vpn"
    GENERAL = "general"
    SERVICE = "service"


class LoggerError(OSError):
    """Raised when the log directory or log file cannot be prepared."""


def _render(fmt: str, args: tuple) -> str:
    if not args:
        return fmt
    try:
        return fmt.replace("%v", "%s") % args
    except (TypeError, ValueError):
        return " ".join([fmt, *map(str, args)])


class Logger:
    """Writes messages at or above a level, for enabled components only.

    Every line goes to standard error and, when a directory is given, to a
    file named ``app_<timestamp>.log`` inside it.  A fatal message that is
    actually written ends the process with exit status 1.
    """

    def __init__(
        self,
        log_dir: str | Path | None = None,
        level: LogLevel = LogLevel.INFO,
        components: Iterable[Component | str] = (),
    ) -> None:
        self._lock = threading.RLock()
        self._level = LogLevel(level)
        self._enabled: dict[str, bool] = {component: True for component in components}
        self._file: IO[str] | None = None
        self.path: Path | None = None

        if log_dir is not None:
            directory = Path(log_dir)
            try:
                directory.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise LoggerError(f"failed to create log directory: {exc}") from exc
            timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
            self.path = directory / f"app_{timestamp}.log"
            try:
                self._file = self.path.open("a", encoding="utf-8")
            except OSError as exc:
                raise LoggerError(f"failed to open log file: {exc}") from exc

    def __enter__(self) -> Logger:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def level(self) -> LogLevel:
        return self._level

    def close(self) -> None:
        """Close the log file, if there is one."""
        with self._lock:
            if self._file is not None:
                self._file.close()
                self._file = None

    def set_level(self, level: LogLevel) -> None:
        with self._lock:
            self._level = LogLevel(level)

    def enable_component(self, component: Component | str) -> None:
        with self._lock:
            self._enabled[component] = True

    def disable_component(self, component: Component | str) -> None:
        with self._lock:
            self._enabled[component] = False

    def is_component_enabled(self, component: Component | str) -> bool:
        with self._lock:
            return self._enabled.get(component, False)

    def _log(self, level: LogLevel, component: Component | str, fmt: str, args: tuple) -> None:
        with self._lock:
            if level < self._level or not self._enabled.get(component, False):
                return
            stamp = datetime.now().strftime("%Y/%m/%d %H:%M:%S.%f")
            line = f"{stamp} [{level.name}][{component}] {_render(fmt, args)}"
            if not line.endswith("\n"):
                line += "\n"
            if self._file is not None:
                self._file.write(line)
                self._file.flush()
            sys.stderr.write(line)
            sys.stderr.flush()
        if level == LogLevel.FATAL:
            raise SystemExit(1)

    def debug(self, component: Component | str, fmt: str, *args: object) -> None:
        self._log(LogLevel.DEBUG, component, fmt, args)

    def info(self, component: Component | str, fmt: str, *args: object) -> None:
        self._log(LogLevel.INFO, component, fmt, args)

    def warn(self, component: Component | str, fmt: str, *args: object) -> None:
        self._log(LogLevel.WARN, component, fmt, args)

    def error(self, component: Component | str, fmt: str, *args: object) -> None:
        self._log(LogLevel.ERROR, component, fmt, args)

    def fatal(self, component: Component | str, fmt: str, *args: object) -> None:
        self._log(LogLevel.FATAL, component, fmt, args)


_global_lock = threading.Lock()
_global_logger: Logger | None = None
_fallback_logger: Logger | None = None


def init_global_logger(
    log_dir: str | Path, level: LogLevel, components: Iterable[Component | str]
) -> Logger:
    """Create the process-wide logger once; later calls return the same one."""
    global _global_logger
    with _global_lock:
        if _global_logger is None:
            _global_logger = Logger(log_dir, level, components)
        return _global_logger


def get_logger() -> Logger:
    """Return the process-wide logger, or a stderr-only one if none was set up."""
    global _fallback_logger
    with _global_lock:
        if _global_logger is not None:
            return _global_logger
        if _fallback_logger is None:
            _fallback_logger = Logger(None, LogLevel.INFO, list(Component))
        return _fallback_logger