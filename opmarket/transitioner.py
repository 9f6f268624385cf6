"""Moving an object's current phase into a new phase."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

from .phase import ObjectPhase, Phase


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Transitioner:
    """Applies phase transitions, stamping them with the given clock."""

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or _utc_now

    def transition_into(self, current_phase: ObjectPhase | None, next_phase: Phase | None) -> bool:
        """Move current_phase into next_phase; return True if anything changed.

        The last update time is set on every change; the last transition
        time only when the phase name itself changes.
        """
        if current_phase is None or next_phase is None:
            return False

        if current_phase.name == next_phase.name and current_phase.message == next_phase.message:
            return False

        now = self._clock()
        current_phase.last_update_time = now
        current_phase.message = next_phase.message

        if current_phase.name != next_phase.name:
            current_phase.last_transition_time = now
            current_phase.name = next_phase.name

        return True