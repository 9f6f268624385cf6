"""Reconciliation phases of marketplace objects and their default messages."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

# Phases shared by all marketplace objects.
INITIAL = ""
CONFIGURING = "Configuring"
SUCCEEDED = "Succeeded"
FAILED = "Failed"

# Phases specific to OperatorSource objects.
VALIDATING = "Validating"
DOWNLOADING = "Downloading"
PURGING = "Purging"

_MESSAGES = {
    VALIDATING: "Scheduled for validation",
    DOWNLOADING: "Scheduled for download of operator manifest(s)",
    PURGING: "Scheduled for purging",
    CONFIGURING: "Scheduled for configuration",
    SUCCEEDED: "The object has been successfully reconciled",
    FAILED: "Reconciliation has failed",
    # Set when an object has been purged and rescheduled from the start.
    INITIAL: "Out of sync, scheduled for phased reconciliation",
}


@dataclass
class Phase:
    """A phase name together with a descriptive message."""

    name: str = ""
    message: str = ""


@dataclass
class ObjectPhase:
    """The phase an object is currently in, with transition timestamps."""

    name: str = ""
    message: str = ""
    last_transition_time: datetime | None = None
    last_update_time: datetime | None = None


class WrongReconcilerError(Exception):
    """Raised when a reconciler is handed an object in a phase it does not own."""

    def __init__(self, message: str = "Wrong phase reconciler invoked for the given object") -> None:
        super().__init__(message)


def get_message(phase_name: str) -> str:
    """Return the default message for a phase, or an empty string."""
    return _MESSAGES.get(phase_name, "")


def get_next(name: str) -> Phase:
    """Return a Phase with the given name and its default message."""
    return Phase(name=name, message=get_message(name))


def get_next_with_message(name: str, message: str) -> Phase:
    """Return a Phase with the given name and message."""
    return Phase(name=name, message=message)