"""Coordinated shutdown of worker threads on SIGINT or SIGTERM."""

from __future__ import annotations

import signal
import threading

from adsrouter.logger import Component, get_logger


class GracefulShutdown:
    """Worker counter plus a cancellation flag set by SIGINT or SIGTERM."""

    def __init__(self, install_signals: bool = True) -> None:
        self._cancelled = threading.Event()
        self._cond = threading.Condition()
        self._count = 0
        if install_signals:
            for sig in (signal.SIGINT, signal.SIGTERM):
                signal.signal(sig, lambda *_: self._on_signal())

    def _on_signal(self) -> None:
        get_logger().info(Component.SERVICE, "Received shutdown signal, shutting down...")
        self.cancel()

    def add(self, delta: int = 1) -> None:
        with self._cond:
            if self._count + delta < 0:
                raise ValueError("negative worker counter")
            self._count += delta
            self._cond.notify_all()

    def done(self) -> None:
        self.add(-1)

    def wait(self, timeout: float | None = None) -> bool:
        """Block until no workers run; False if the timeout ran out."""
        with self._cond:
            return self._cond.wait_for(lambda: self._count == 0, timeout)

    def cancel(self) -> None:
        self._cancelled.set()

    def cancelled(self) -> bool:
        return self._cancelled.is_set()