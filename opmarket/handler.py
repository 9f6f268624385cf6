"""Handling OperatorSource events: reconcile, then persist phase changes."""

from __future__ import annotations

import logging
from typing import Any, Callable

from .phase import Phase
from .resources import ApiError, OperatorSource, ReconcileError, Reconciler
from .simple_phases import OutOfSyncCacheReconciler
from .transitioner import Transitioner

log = logging.getLogger(__name__)

CacheReconcilerFactory = Callable[[Any, Any, Any], Reconciler]


class Handler:
    """Runs the out-of-sync check and the phase reconciler for each event.

    ``client`` offers ``update(obj)``; ``factory`` offers
    ``get_phase_reconciler(logger, source)``.
    """

    def __init__(
        self,
        client: Any,
        datastore: Any,
        factory: Any,
        transitioner: Transitioner | None = None,
        new_cache_reconciler: CacheReconcilerFactory | None = None,
    ) -> None:
        self.client = client
        self.datastore = datastore
        self.factory = factory
        self.transitioner = transitioner if transitioner is not None else Transitioner()
        self.new_cache_reconciler = (
            new_cache_reconciler if new_cache_reconciler is not None else OutOfSyncCacheReconciler
        )

    def handle(self, source: OperatorSource) -> None:
        """Reconcile source and update it on the cluster if its phase changed.

        A reconciliation failure is raised after any phase change it carries
        has been persisted.
        """
        logger = logging.LoggerAdapter(
            log,
            {"type": source.kind, "namespace": source.namespace, "name": source.name},
        )

        cache_reconciler = self.new_cache_reconciler(logger, self.datastore, self.client)
        out, next_phase = cache_reconciler.reconcile(source)

        # The out-of-sync reconciler has handled the event.
        if next_phase is not None:
            self._transition(logger, out, next_phase, None)
            return

        phase_reconciler = self.factory.get_phase_reconciler(logger, source)

        error: ReconcileError | None = None
        try:
            out, next_phase = phase_reconciler.reconcile(source)
        except ReconcileError as err:
            out, next_phase, error = err.source, err.next_phase, err

        if out is None:
            # Nothing left to modify, the object must have been deleted.
            if error is not None:
                raise error
            return

        self._transition(logger, out, next_phase, error)

    def _transition(
        self,
        logger: Any,
        source: OperatorSource,
        next_phase: Phase | None,
        error: ReconcileError | None,
    ) -> None:
        if not self.transitioner.transition_into(source.current_phase, next_phase):
            if error is not None:
                raise error
            return

        try:
            self.client.update(source)
        except ApiError as update_err:
            if error is None:
                raise
            logger.error("Failed to update object - %s", update_err)

        if error is not None:
            raise error