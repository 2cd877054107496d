"""Debounced online/offline mode tracking."""

from __future__ import annotations

import time

from core.logging import logger
from core.ops_models import Mode, ModeTransition


class ModeStateMachine:
    """Turn successive reachability verdicts into an operating mode.

    A failing probe while online only moves to ``PENDING_OFFLINE``; the
    machine reaches ``OFFLINE`` once failures have persisted for the grace
    period. A success from either non-online mode returns to ``ONLINE``.
    """

    def __init__(self, grace_period_s: float = 120.0) -> None:
        self._grace_period_s = max(float(grace_period_s), 0.0)
        self._mode = Mode.ONLINE
        self._pending_since: float | None = None

    @property
    def mode(self) -> Mode:
        return self._mode

    @property
    def grace_period_s(self) -> float:
        return self._grace_period_s

    @property
    def pending_since(self) -> float | None:
        return self._pending_since

    def pending_elapsed(self, now: float | None = None) -> float:
        """Return seconds spent in ``PENDING_OFFLINE`` so far (0 otherwise)."""

        if self._pending_since is None:
            return 0.0
        if now is None:
            now = time.monotonic()
        return max(now - self._pending_since, 0.0)

    def update(self, reachable: bool, now: float | None = None) -> ModeTransition | None:
        """Apply one probe verdict and return the transition it caused, if any."""

        if now is None:
            now = time.monotonic()
        if self._mode is Mode.ONLINE:
            if not reachable:
                self._pending_since = now
                return self._transition(
                    Mode.PENDING_OFFLINE,
                    now,
                    f"connectivity lost, waiting {self._grace_period_s:.0f}s before offline activation",
                )

        elif self._mode is Mode.PENDING_OFFLINE:
            if reachable:
                self._pending_since = None
                return self._transition(
                    Mode.ONLINE, now, "connectivity restored before offline activation"
                )
            if self.pending_elapsed(now) >= self._grace_period_s:
                elapsed = self.pending_elapsed(now)
                self._pending_since = None
                return self._transition(
                    Mode.OFFLINE, now, f"connectivity lost for {elapsed:.0f}s"
                )
            logger.debug(
                "[Mode] still pending: %.0fs of %.0fs",
                self.pending_elapsed(now),
                self._grace_period_s,
            )

        elif self._mode is Mode.OFFLINE:
            if reachable:
                return self._transition(Mode.ONLINE, now, "connectivity restored")

        return None

    def _transition(self, mode: Mode, now: float, reason: str) -> ModeTransition:
        transition = ModeTransition(
            previous=self._mode,
            current=mode,
            timestamp=now,
            reason=reason,
        )
        logger.info("[Mode] %s -> %s (%s)", self._mode.value, mode.value, reason)
        self._mode = mode
        return transition
