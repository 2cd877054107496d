"""Single-instance lock backed by an flock-held PID file."""

from __future__ import annotations

import fcntl
import json
import os
from pathlib import Path
import time
from types import TracebackType

from core.errors import AlreadyRunning
from core.logging import logger as LOGGER


def is_process_alive(pid: int) -> bool:
    """Return whether ``pid`` names a live process."""

    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


def _parse_owner(raw: str) -> int | None:
    raw = raw.strip()
    if not raw:
        return None
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError:
        return None
    if isinstance(payload, int) and not isinstance(payload, bool):
        return payload
    if isinstance(payload, dict):
        try:
            return int(payload.get("pid"))
        except (TypeError, ValueError):
            return None
    return None


def read_lock_owner(lock_path: Path) -> int | None:
    """Return the PID recorded in a lock file, or None if unreadable."""

    try:
        raw = lock_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except OSError as exc:
        LOGGER.warning("[Guard] Cannot read lock %s: %s", lock_path, exc)
        return None
    return _parse_owner(raw)


class InstanceGuard:
    """Hold the controller lock for the lifetime of a ``with`` block.

    Ownership is an exclusive ``flock`` on the lock file, so the kernel
    decides the winner between concurrent starters and drops the lock when
    the holder dies. The file body records the holder's PID for operators
    and for shell-era controllers that only write a PID.
    """

    def __init__(self, lock_path: Path | str, pid: int | None = None) -> None:
        self._lock_path = Path(lock_path).expanduser()
        self._pid = pid if pid is not None else os.getpid()
        self._fd: int | None = None

    @property
    def lock_path(self) -> Path:
        return self._lock_path

    @property
    def held(self) -> bool:
        return self._fd is not None

    def acquire(self) -> None:
        """Take the lock, replacing a stale one.

        Raises:
            AlreadyRunning: If another live controller owns the lock.
        """

        if self._fd is not None:
            return
        self._lock_path.parent.mkdir(parents=True, exist_ok=True)
        while True:
            fd = os.open(self._lock_path, os.O_RDWR | os.O_CREAT, 0o644)
            try:
                fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
            except BlockingIOError:
                owner = _parse_owner(_read_fd(fd))
                os.close(fd)
                LOGGER.error("[Guard] Another instance running (PID: %s), exiting", owner)
                raise AlreadyRunning(owner if owner is not None else -1, str(self._lock_path))
            if self._is_current_file(fd):
                break
            # The previous holder unlinked this file after we opened it.
            os.close(fd)

        try:
            owner = _parse_owner(_read_fd(fd))
            if owner is not None and owner != self._pid:
                if is_process_alive(owner):
                    LOGGER.error("[Guard] Another instance running (PID: %s), exiting", owner)
                    raise AlreadyRunning(owner, str(self._lock_path))
                LOGGER.info("[Guard] Stale lock file found (PID: %s), replacing", owner)
            payload = json.dumps({"pid": self._pid, "created_at": time.time()})
            os.ftruncate(fd, 0)
            os.pwrite(fd, payload.encode("utf-8"), 0)
            os.fsync(fd)
        except BaseException:
            os.close(fd)
            raise
        self._fd = fd
        LOGGER.debug("[Guard] Lock %s acquired by pid %s", self._lock_path, self._pid)

    def release(self) -> None:
        """Drop the lock, removing the file if it still records our PID."""

        fd = self._fd
        if fd is None:
            return
        self._fd = None
        try:
            if _parse_owner(_read_fd(fd)) == self._pid and self._is_current_file(fd):
                self._lock_path.unlink(missing_ok=True)
        finally:
            os.close(fd)
        LOGGER.debug("[Guard] Lock %s released", self._lock_path)

    def __enter__(self) -> "InstanceGuard":
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.release()

    def _is_current_file(self, fd: int) -> bool:
        try:
            on_disk = os.stat(self._lock_path)
        except FileNotFoundError:
            return False
        held = os.fstat(fd)
        return (held.st_dev, held.st_ino) == (on_disk.st_dev, on_disk.st_ino)


def _read_fd(fd: int) -> str:
    size = os.fstat(fd).st_size
    return os.pread(fd, size, 0).decode("utf-8", errors="replace") if size else ""
