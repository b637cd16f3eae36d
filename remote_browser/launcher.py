from __future__ import annotations

import contextlib
import logging
import socket
import subprocess
import threading
import time
from collections.abc import Callable
from typing import Any, ClassVar

from .config import DriverConfig
from .errors import DriverStartError

_LOGGER = logging.getLogger("remote_browser.launcher")


class DriverProcess:
    """Reference-counted handle on the automation daemon (e.g. safaridriver).

    acquire() starts the daemon unless it is already running (ours, or an
    external one already listening on the port); release() stops it once the
    last reference is gone, and only if this handle started it.
    """

    _instances: ClassVar[dict[tuple[str, int], DriverProcess]] = {}
    _instances_lock: ClassVar[threading.Lock] = threading.Lock()

    def __init__(
        self,
        config: DriverConfig | None = None,
        *,
        popen: Callable[..., Any] = subprocess.Popen,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config or DriverConfig.from_env()
        self.process: Any = None
        self.refs = 0
        self._lock = threading.Lock()
        self._popen = popen
        self._sleep = sleep

    @classmethod
    def shared(cls, config: DriverConfig) -> DriverProcess:
        """Process-wide handle per (binary, port)."""
        key = (config.driver_binary, config.driver_port)
        with cls._instances_lock:
            inst = cls._instances.get(key)
            if inst is None:
                inst = cls(config)
                cls._instances[key] = inst
            return inst

    def build_command(self) -> list[str]:
        return [self.config.driver_binary, "--port", str(self.config.driver_port)]

    def port_in_use(self, timeout: float = 0.1) -> bool:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.settimeout(timeout)
            try:
                return sock.connect_ex(("127.0.0.1", self.config.driver_port)) == 0
            except OSError:
                return False

    def wait_for_port(self, timeout: float) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if self.port_in_use():
                return True
            self._sleep(0.1)
        return False

    def _owns_live_process(self) -> bool:
        proc = self.process
        if proc is None:
            return False
        try:
            return proc.poll() is None
        except OSError:
            return False

    def acquire(self) -> None:
        with self._lock:
            if self._owns_live_process():
                self.refs += 1
                return
            if self.port_in_use():
                # Someone else runs the daemon; count the reference but never stop it.
                self.refs += 1
                _LOGGER.info("driver_external port=%d refs=%d", self.config.driver_port, self.refs)
                return

            cmd = self.build_command()
            try:
                proc = self._popen(cmd, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
            except OSError as exc:
                raise DriverStartError(
                    action="start_driver", reason=f"failed to start {cmd[0]}: {exc}", details={"command": cmd}
                ) from exc

            if not self.wait_for_port(self.config.driver_ready_timeout):
                with contextlib.suppress(OSError):
                    proc.kill()
                raise DriverStartError(
                    action="start_driver",
                    reason=f"port {self.config.driver_port} did not become available within "
                    f"{self.config.driver_ready_timeout:g}s",
                    details={"command": cmd},
                )
            self.process = proc
            self.refs = 1
            _LOGGER.info("driver_started command=%s", " ".join(cmd))

    def release(self) -> None:
        with self._lock:
            if self.refs > 0:
                self.refs -= 1
            if self.refs == 0 and self.process is not None:
                self._stop()
                self.process = None

    def _stop(self, timeout: float = 2.0) -> None:
        proc = self.process
        with contextlib.suppress(OSError):
            proc.terminate()
        try:
            proc.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            with contextlib.suppress(OSError):
                proc.kill()
            with contextlib.suppress(OSError, subprocess.TimeoutExpired):
                proc.wait(timeout=timeout)
        _LOGGER.info("driver_stopped port=%d", self.config.driver_port)
