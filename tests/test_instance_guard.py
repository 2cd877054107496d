"""Tests for the single-instance lock."""

from __future__ import annotations

import json
import os
import threading
from pathlib import Path

import pytest

from core.errors import AlreadyRunning
from core.instance_guard import InstanceGuard, is_process_alive, read_lock_owner


def test_acquire_writes_pid_and_release_removes(tmp_path: Path) -> None:
    lock_path = tmp_path / "loa-controller.lock"
    guard = InstanceGuard(lock_path)

    with guard:
        payload = json.loads(lock_path.read_text(encoding="utf-8"))
        assert payload["pid"] == os.getpid()
        assert "created_at" in payload
        assert guard.held

    assert not lock_path.exists()


def test_second_instance_fails_while_first_is_live(tmp_path: Path) -> None:
    lock_path = tmp_path / "loa-controller.lock"
    first = InstanceGuard(lock_path)
    second = InstanceGuard(lock_path, pid=os.getpid() + 100000)

    first.acquire()
    with pytest.raises(AlreadyRunning) as excinfo:
        second.acquire()

    assert excinfo.value.pid == os.getpid()
    assert read_lock_owner(lock_path) == os.getpid()
    assert not second.held
    first.release()


def test_stale_lock_is_replaced(tmp_path: Path, monkeypatch) -> None:
    lock_path = tmp_path / "loa-controller.lock"
    lock_path.write_text(json.dumps({"pid": 424242, "created_at": 0}), encoding="utf-8")
    monkeypatch.setattr(
        "core.instance_guard.is_process_alive",
        lambda pid: pid != 424242,
    )

    guard = InstanceGuard(lock_path)
    guard.acquire()

    assert read_lock_owner(lock_path) == os.getpid()
    guard.release()


def test_legacy_plain_pid_lock_is_understood(tmp_path: Path, monkeypatch) -> None:
    lock_path = tmp_path / "loa-controller.lock"
    lock_path.write_text("31337\n", encoding="utf-8")
    monkeypatch.setattr("core.instance_guard.is_process_alive", lambda pid: pid == 31337)

    with pytest.raises(AlreadyRunning) as excinfo:
        InstanceGuard(lock_path, pid=1000).acquire()

    assert excinfo.value.pid == 31337
    assert lock_path.read_text(encoding="utf-8") == "31337\n"


def test_corrupt_lock_is_treated_as_stale(tmp_path: Path) -> None:
    lock_path = tmp_path / "loa-controller.lock"
    lock_path.write_text("not a pid", encoding="utf-8")

    with InstanceGuard(lock_path):
        assert read_lock_owner(lock_path) == os.getpid()


def test_release_leaves_foreign_lock_alone(tmp_path: Path) -> None:
    lock_path = tmp_path / "loa-controller.lock"
    guard = InstanceGuard(lock_path)
    guard.acquire()
    lock_path.write_text(json.dumps({"pid": 1}), encoding="utf-8")

    guard.release()

    assert read_lock_owner(lock_path) == 1


def test_lock_released_when_body_raises(tmp_path: Path) -> None:
    lock_path = tmp_path / "loa-controller.lock"

    with pytest.raises(RuntimeError):
        with InstanceGuard(lock_path):
            raise RuntimeError("boom")

    assert not lock_path.exists()


def test_is_process_alive() -> None:
    assert is_process_alive(os.getpid())
    assert not is_process_alive(0)
    assert not is_process_alive(-5)


def test_concurrent_starters_single_winner(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setattr("core.instance_guard.is_process_alive", lambda pid: False)
    lock_path = tmp_path / "loa-controller.lock"
    lock_path.write_text(json.dumps({"pid": 999999, "created_at": 0}), encoding="utf-8")
    guards = [InstanceGuard(lock_path, pid=os.getpid() + 200000 + i) for i in range(8)]
    barrier = threading.Barrier(len(guards))
    refused: list[int] = []

    def _start(guard: InstanceGuard) -> None:
        barrier.wait()
        try:
            guard.acquire()
        except AlreadyRunning:
            refused.append(1)

    threads = [threading.Thread(target=_start, args=(guard,)) for guard in guards]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    winners = [guard for guard in guards if guard.held]
    assert len(winners) == 1
    assert len(refused) == len(guards) - 1
    assert read_lock_owner(lock_path) == winners[0]._pid
    winners[0].release()


def test_stale_takeover_blocks_interleaved_starter(tmp_path: Path, monkeypatch) -> None:
    lock_path = tmp_path / "loa-controller.lock"
    lock_path.write_text(json.dumps({"pid": 999999, "created_at": 0}), encoding="utf-8")
    first = InstanceGuard(lock_path, pid=1001)
    second = InstanceGuard(lock_path, pid=1002)
    outcomes: list[str] = []

    def _alive_while_other_starts(pid: int) -> bool:
        if not outcomes:
            try:
                first.acquire()
                outcomes.append("first acquired")
            except AlreadyRunning:
                outcomes.append("first refused")
        return False

    monkeypatch.setattr("core.instance_guard.is_process_alive", _alive_while_other_starts)

    second.acquire()

    assert outcomes == ["first refused"]
    assert second.held and not first.held
    assert read_lock_owner(lock_path) == 1002
    second.release()
    assert not lock_path.exists()


def test_released_lock_can_be_taken_again(tmp_path: Path) -> None:
    lock_path = tmp_path / "loa-controller.lock"

    with InstanceGuard(lock_path, pid=1001):
        pass
    with InstanceGuard(lock_path, pid=1002) as guard:
        assert guard.held
        assert read_lock_owner(lock_path) == 1002
