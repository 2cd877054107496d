"""Detached process launcher for port-bound archive servers."""

from __future__ import annotations

import subprocess
import threading
import time
from typing import Sequence

from core.logging import logger as LOGGER


class ProcessLauncher:
    """Launch detached servers and stop them by handle or command-line signature.

    Handles are kept for every process this controller started. Signature
    matching through ``pgrep -f`` / ``pkill -f`` covers servers left behind
    by an earlier controller run, where no handle exists.
    """

    def __init__(self, command_timeout_s: float = 5.0) -> None:
        self._command_timeout_s = max(float(command_timeout_s), 0.5)
        self._handles: dict[str, subprocess.Popen] = {}
        self._lock = threading.Lock()

    def launch(self, name: str, argv: Sequence[str]) -> subprocess.Popen:
        """Start ``argv`` in its own session and remember the handle.

        Raises:
            OSError: If the executable cannot be started.
        """

        process = subprocess.Popen(
            list(argv),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            start_new_session=True,
            close_fds=True,
        )
        with self._lock:
            self._handles[name] = process
        LOGGER.debug("[Launcher] %s started with pid %s", name, process.pid)
        return process

    def is_running(self, name: str, signature: str) -> bool:
        """Return whether a server for ``name`` is alive, by handle or signature."""

        with self._lock:
            process = self._handles.get(name)
        if process is not None:
            if process.poll() is None:
                return True
            with self._lock:
                self._handles.pop(name, None)
        return bool(self._matching_pids(signature))

    def terminate(self, name: str, signature: str, timeout_s: float = 5.0) -> bool:
        """Stop every process for ``name``; return whether anything was stopped."""

        stopped = False
        with self._lock:
            process = self._handles.pop(name, None)
        if process is not None and process.poll() is None:
            process.terminate()
            try:
                process.wait(timeout=timeout_s)
            except subprocess.TimeoutExpired:
                LOGGER.warning("[Launcher] %s ignored SIGTERM; killing pid %s", name, process.pid)
                process.kill()
                process.wait(timeout=timeout_s)
            stopped = True

        if not self._matching_pids(signature):
            return stopped

        self._pkill("-TERM", signature)
        deadline = time.monotonic() + timeout_s
        while time.monotonic() < deadline:
            if not self._matching_pids(signature):
                return True
            time.sleep(0.2)
        LOGGER.warning("[Launcher] %s still running after %.1fs; sending SIGKILL", name, timeout_s)
        self._pkill("-KILL", signature)
        return True

    def _matching_pids(self, signature: str) -> list[int]:
        try:
            result = subprocess.run(
                ["pgrep", "-f", "--", signature],
                capture_output=True,
                text=True,
                timeout=self._command_timeout_s,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            LOGGER.debug("[Launcher] pgrep failed for %r: %s", signature, exc)
            return []
        pids: list[int] = []
        for line in result.stdout.split():
            try:
                pids.append(int(line))
            except ValueError:
                continue
        return pids

    def _pkill(self, signal_flag: str, signature: str) -> None:
        try:
            subprocess.run(
                ["pkill", signal_flag, "-f", "--", signature],
                capture_output=True,
                timeout=self._command_timeout_s,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            LOGGER.warning("[Launcher] pkill %s failed for %r: %s", signal_flag, signature, exc)
