"""Reconcilers for the phases that need no cluster writes of their own."""

from __future__ import annotations

import logging
import string
from typing import Any

from . import phase
from .phase import Phase, WrongReconcilerError, get_next, get_next_with_message
from .resources import OperatorSource, ReconcileError, Reconciler

_SCHEME_CHARS = frozenset(string.ascii_letters + string.digits + "+-.")


def _logger(logger: Any) -> Any:
    return logger if logger is not None else logging.getLogger(__name__)


def _require_phase(source: OperatorSource, expected: str) -> None:
    if source.current_phase_name() != expected:
        raise WrongReconcilerError()


def _parse_request_uri(raw: str) -> None:
    """Check that raw is an absolute URI or an absolute path.

    Raises ValueError describing why it is not.
    """
    if raw == "":
        raise ValueError('parse "": empty url')
    if any(ord(c) < 0x20 or ord(c) == 0x7F for c in raw):
        raise ValueError(f'parse "{raw}": net/url: invalid control character in URL')

    scheme = ""
    rest = raw
    for index, char in enumerate(raw):
        if char.isascii() and char.isalpha():
            continue
        if char.isascii() and (char.isdigit() or char in "+-."):
            if index == 0:
                break
            continue
        if char == ":":
            if index == 0:
                raise ValueError(f'parse "{raw}": missing protocol scheme')
            scheme, rest = raw[:index], raw[index + 1:]
        break

    if scheme:
        if not all(c in _SCHEME_CHARS for c in scheme):
            raise ValueError(f'parse "{raw}": invalid URI for request')
        if " " in rest:
            raise ValueError(f'parse "{raw}": invalid character " " in host name')
        return

    if not rest.startswith("/"):
        raise ValueError(f'parse "{raw}": invalid URI for request')


class InitialReconciler(Reconciler):
    """Handles a newly created OperatorSource and schedules it for validation."""

    def __init__(self, logger: Any, datastore: Any) -> None:
        self.logger = _logger(logger)
        self.datastore = datastore

    def reconcile(self, source: OperatorSource) -> tuple[OperatorSource, Phase]:
        _require_phase(source, phase.INITIAL)

        out = source.deep_copy()
        out.ensure_finalizer()

        self.datastore.add_operator_source(source)

        self.logger.info("Scheduling for validation")
        return out, get_next(phase.VALIDATING)


class FailedReconciler(Reconciler):
    """Leaves an OperatorSource in the Failed phase untouched."""

    def __init__(self, logger: Any) -> None:
        self.logger = _logger(logger)

    def reconcile(self, source: OperatorSource) -> tuple[OperatorSource, None]:
        _require_phase(source, phase.FAILED)
        self.logger.info("No action taken, already in failed state")
        return source, None


class SucceededReconciler(Reconciler):
    """Leaves an already reconciled OperatorSource untouched."""

    def __init__(self, logger: Any) -> None:
        self.logger = _logger(logger)

    def reconcile(self, source: OperatorSource) -> tuple[OperatorSource, None]:
        _require_phase(source, phase.SUCCEEDED)
        self.logger.info("No action taken, the object has already been reconciled")
        return source, None


class ValidatingReconciler(Reconciler):
    """Checks the OperatorSource endpoint before scheduling a download."""

    def __init__(self, logger: Any, datastore: Any) -> None:
        self.logger = _logger(logger)
        self.datastore = datastore

    def reconcile(self, source: OperatorSource) -> tuple[OperatorSource, Phase]:
        _require_phase(source, phase.VALIDATING)

        try:
            _parse_request_uri(source.spec.endpoint)
        except ValueError as err:
            # Needs manual intervention, so the object is flagged as failed.
            next_phase = get_next_with_message(phase.FAILED, f"Invalid operator source endpoint - {err}")
            raise ReconcileError(err, source, next_phase) from err

        self.logger.info("Scheduling for download")
        return source, get_next(phase.DOWNLOADING)


class PurgingReconciler(Reconciler):
    """Drops an OperatorSource from the datastore and restarts reconciliation."""

    def __init__(self, logger: Any, datastore: Any, client: Any) -> None:
        self.logger = _logger(logger)
        self.datastore = datastore
        self.client = client

    def reconcile(self, source: OperatorSource) -> tuple[OperatorSource, Phase]:
        _require_phase(source, phase.PURGING)

        out = source.deep_copy()

        self.datastore.remove_operator_source(source.uid)
        self.logger.info("Purged datastore. No change(s) were made to corresponding CatalogSourceConfig")

        # Everything observed in the status may be stale; only the current
        # phase is kept, since setting the new one is the caller's job.
        out.packages = ""

        self.logger.info("Scheduling for reconciliation from 'Initial' phase")
        return out, get_next(phase.INITIAL)


class OutOfSyncCacheReconciler(Reconciler):
    """Schedules a purge when the spec changed or the cache lost the object."""

    def __init__(self, logger: Any, datastore: Any, client: Any) -> None:
        self.logger = _logger(logger)
        self.datastore = datastore
        self.client = client

    def reconcile(self, source: OperatorSource) -> tuple[OperatorSource, Phase | None]:
        out = source.deep_copy()

        current = source.current_phase_name()
        if current in (phase.INITIAL, phase.PURGING):
            return out, None

        known = self.datastore.get_operator_source(source.uid)
        if known is not None and known.spec == source.spec:
            return out, None

        self.logger.info("Out of sync, scheduling for reconciliation from 'Purging' phase")
        return out, get_next(phase.PURGING)