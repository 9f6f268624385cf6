"""Counting successful and failed syncs to judge operator health."""

from __future__ import annotations

import logging
import threading

log = logging.getLogger(__name__)


class SyncRatio:
    """Thread-safe tally of sync events and failed syncs."""

    def __init__(self, success_ratio: float, syncs_before_truncate: int, sync_truncate_value: int) -> None:
        problems = []
        if success_ratio < 0 or success_ratio > 1:
            problems.append("success_ratio must be greater than or equal to 0 and less than or equal to 1. ")
        if syncs_before_truncate <= 0:
            problems.append("syncs_before_truncate must be greater than 0. ")
        if sync_truncate_value <= 0:
            problems.append("sync_truncate_value must be greater than 0.")
        if problems:
            raise ValueError("".join(problems))

        self.success_ratio = success_ratio
        self.syncs_before_truncate = syncs_before_truncate
        self.sync_truncate_value = sync_truncate_value
        self._failed_syncs = 0
        self._sync_events = 0
        self._lock = threading.RLock()

    def get_syncs(self) -> tuple[int, int]:
        """Return (failed syncs, sync events)."""
        with self._lock:
            return self._failed_syncs, self._sync_events

    def report_failed_sync(self) -> None:
        with self._lock:
            self._failed_syncs += 1

    def report_sync_event(self) -> None:
        with self._lock:
            self._sync_events += 1

    def _truncate_syncs(self) -> None:
        with self._lock:
            self._sync_events = self._sync_events % self._sync_events
            self._failed_syncs = self._failed_syncs % self.sync_truncate_value

    def _ratio(self) -> float | None:
        with self._lock:
            if self._sync_events > self.syncs_before_truncate:
                self._truncate_syncs()
            if self._sync_events <= 0:
                return None
            ratio = (self._sync_events - self._failed_syncs) / self._sync_events
        log.debug("[status] Successful syncs to total syncs ratio: %s", ratio)
        return ratio

    def is_succeeding(self) -> tuple[bool, float | None]:
        """Return whether the ratio meets the success ratio, and the ratio.

        The ratio is None while no sync events have been seen.
        """
        ratio = self._ratio()
        if ratio is None:
            return False, None
        return ratio >= self.success_ratio, ratio