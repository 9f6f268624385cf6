"""Reporting the operator's health through a ClusterOperator resource.

The config client handed to ``StatusReporter`` is expected to offer
``get_cluster_operator(name)``, ``create_cluster_operator(operator)`` and
``update_cluster_operator_status(operator)``, raising ``ApiError``
subclasses on failure. A client of ``None`` means the cluster has no
ClusterOperator API, in which case nothing is reported.
"""

from __future__ import annotations

import copy
import logging
import queue
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from .conditions import (
    CONDITION_FALSE,
    CONDITION_TRUE,
    OPERATOR_AVAILABLE,
    OPERATOR_FAILING,
    OPERATOR_PROGRESSING,
    StatusCondition,
    condition_lists_equal,
    set_status_condition,
)
from .resources import ApiError, NotFoundError
from .syncratio import SyncRatio

log = logging.getLogger(__name__)

CLUSTER_OPERATOR_NAME = "marketplace"

# Syncs to observe before reporting that the operator is available.
MIN_SYNCS_BEFORE_REPORTING = 4

# Kept low because failed syncs mostly come from invalid custom resources.
SUCCESS_RATIO = 0.3

# Keep the sync counters from growing without bound.
SYNCS_BEFORE_TRUNCATE = 10000
SYNC_TRUNCATE_VALUE = 100

# Seconds between ClusterOperator status reports.
CO_STATUS_REPORT_INTERVAL = 20.0

SYNC_QUEUE_SIZE = 25

OPERATOR_VERSION_NAME = "operator"


@dataclass
class OperandVersion:
    name: str
    version: str


@dataclass
class ClusterOperator:
    name: str = CLUSTER_OPERATOR_NAME
    namespace: str = ""
    conditions: list[StatusCondition] = field(default_factory=list)
    versions: list[OperandVersion] = field(default_factory=list)


def _find_version(versions: list[OperandVersion], name: str) -> OperandVersion | None:
    return next((v for v in versions if v.name == name), None)


def _set_version(versions: list[OperandVersion], new: OperandVersion) -> None:
    existing = _find_version(versions, new.name)
    if existing is None:
        versions.append(OperandVersion(new.name, new.version))
    else:
        existing.version = new.version


class StatusReporter:
    """Tracks sync outcomes and reflects them in the ClusterOperator status."""

    def __init__(
        self,
        client: Any,
        namespace: str,
        version: str,
        sync_ratio: SyncRatio | None = None,
    ) -> None:
        self.client = client
        self.namespace = namespace
        self.version = version
        self.sync_ratio = sync_ratio or SyncRatio(SUCCESS_RATIO, SYNCS_BEFORE_TRUNCATE, SYNC_TRUNCATE_VALUE)
        self.cluster_operator: ClusterOperator | None = None
        self.done = threading.Event()
        self._sync_queue: queue.Queue[BaseException | None] = queue.Queue(maxsize=SYNC_QUEUE_SIZE)
        if self.api_not_present:
            log.warning("[status] ClusterOperator API not present")
            # Nothing will ever be reported, so nobody should wait on it.
            self.done.set()

    @property
    def api_not_present(self) -> bool:
        return self.client is None

    def send_sync_message(self, error: BaseException | None) -> None:
        """Record a sync outcome; dropped if the queue is full."""
        if self.api_not_present:
            return
        try:
            self._sync_queue.put_nowait(error)
        except queue.Full:
            log.debug("[status] Sync channel is busy, not reporting sync")
        else:
            log.debug("[status] Sent message to the sync channel")

    def _record(self, error: BaseException | None) -> None:
        if error is None:
            self.sync_ratio.report_sync_event()
        else:
            self.sync_ratio.report_failed_sync()
        failed, syncs = self.sync_ratio.get_syncs()
        log.debug("[status] Failed Syncs / Total Syncs : %d/%d", failed, syncs)

    def drain_sync_messages(self) -> int:
        """Apply every queued sync outcome; return how many were applied."""
        count = 0
        while True:
            try:
                error = self._sync_queue.get_nowait()
            except queue.Empty:
                return count
            self._record(error)
            count += 1

    def run_sync_receiver(self, stop_event: threading.Event) -> None:
        """Apply queued sync outcomes until stop_event is set."""
        log.info("[status] Starting sync consumer")
        while not stop_event.is_set():
            try:
                error = self._sync_queue.get(timeout=0.05)
            except queue.Empty:
                continue
            self._record(error)

    def set_failing(self, message: str) -> None:
        self._set_status(OPERATOR_FAILING, message)

    def set_available(self, message: str) -> None:
        self._set_status(OPERATOR_AVAILABLE, message)

    def set_progressing(self, message: str) -> None:
        self._set_status(OPERATOR_PROGRESSING, message)

    def _ensure_cluster_operator(self) -> ClusterOperator:
        try:
            self.cluster_operator = self.client.get_cluster_operator(CLUSTER_OPERATOR_NAME)
            log.debug("[status] Found existing ClusterOperator")
            return self.cluster_operator
        except NotFoundError:
            pass
        except ApiError as err:
            raise ApiError(f"Error {err} getting ClusterOperator") from err

        try:
            self.cluster_operator = self.client.create_cluster_operator(
                ClusterOperator(name=CLUSTER_OPERATOR_NAME, namespace=self.namespace)
            )
        except ApiError as err:
            raise ApiError(f"Error {err} creating ClusterOperator") from err
        log.info("[status] Created ClusterOperator")
        return self.cluster_operator

    def _set_status(self, condition: str, message: str) -> None:
        if self.api_not_present:
            return
        operator = self._ensure_cluster_operator()
        previous_conditions = copy.deepcopy(operator.conditions)
        previous_versions = copy.deepcopy(operator.versions)
        self._set_status_condition(operator, condition, message)
        self._update_status(operator, previous_conditions, previous_versions, condition, message)

    def _set_status_condition(self, operator: ClusterOperator, condition: str, message: str) -> None:
        statuses = {OPERATOR_PROGRESSING: CONDITION_FALSE, OPERATOR_AVAILABLE: CONDITION_FALSE, OPERATOR_FAILING: CONDITION_FALSE}
        messages = dict.fromkeys(statuses, "")
        if condition in statuses:
            statuses[condition] = CONDITION_TRUE
            messages[condition] = message
        if condition == OPERATOR_AVAILABLE:
            # The version is only reported once the operator is available.
            _set_version(operator.versions, OperandVersion(OPERATOR_VERSION_NAME, self.version))

        now = datetime.now(timezone.utc)
        for condition_type in (OPERATOR_PROGRESSING, OPERATOR_AVAILABLE, OPERATOR_FAILING):
            set_status_condition(
                operator.conditions,
                StatusCondition(
                    type=condition_type,
                    status=statuses[condition_type],
                    message=messages[condition_type],
                    last_transition_time=now,
                ),
            )

    def _update_status(
        self,
        operator: ClusterOperator,
        previous_conditions: list[StatusCondition],
        previous_versions: list[OperandVersion],
        condition: str,
        message: str,
    ) -> None:
        if condition_lists_equal(previous_conditions, operator.conditions):
            log.debug("[status] Previous and current ClusterOperator Status are the same, not updating.")
            return

        previous = _find_version(previous_versions, OPERATOR_VERSION_NAME)
        current = _find_version(operator.versions, OPERATOR_VERSION_NAME)
        if current is not None:
            if previous is None:
                log.info("[status] Attempting to set ClusterOperator to version %s", current.version)
            elif previous.version != current.version:
                log.info(
                    "[status] Attempting to upgrade ClusterOperator version from %s to %s",
                    previous.version,
                    current.version,
                )

        try:
            self.client.update_cluster_operator_status(operator)
        except ApiError as err:
            raise ApiError(f"Error {err} updating ClusterOperator") from err
        log.info("[status] Set ClusterOperator condition: %s message: %s", condition, message)

    def report_once(self) -> None:
        """Report the current state once, as a single monitoring tick would."""
        if self.cluster_operator is None:
            self.set_progressing(f"Progressing towards {self.version}")
            return

        _, sync_events = self.sync_ratio.get_syncs()
        if sync_events < MIN_SYNCS_BEFORE_REPORTING:
            log.debug("[status] Waiting to observe %d additional sync(s)", MIN_SYNCS_BEFORE_REPORTING - sync_events)
            return

        succeeding, ratio = self.sync_ratio.is_succeeding()
        if ratio is None:
            return
        if succeeding:
            self.set_available(f"{self.version} is available")
        else:
            self.set_failing(
                f"Current sync ratio ({ratio:g}) does not meet the expected "
                f"success ratio ({self.sync_ratio.success_ratio:g})"
            )

    def run_monitor(self, stop_event: threading.Event, interval: float = CO_STATUS_REPORT_INTERVAL) -> None:
        """Report status every interval seconds until stop_event is set.

        On stop the operator is marked as failing and ``done`` is set.
        """
        try:
            while True:
                if stop_event.wait(interval):
                    try:
                        self.set_failing("Operator exited")
                    except ApiError as err:
                        log.error("[status] %s", err)
                    return
                try:
                    self.report_once()
                except ApiError as err:
                    log.error("[status] %s", err)
        finally:
            self.done.set()