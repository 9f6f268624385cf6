"""Reconciler for OperatorSource objects that are marked for deletion."""

from __future__ import annotations

import logging
from typing import Any

from .phase import get_next_with_message
from .resources import (
    CATALOG_SOURCE_CONFIG_KIND,
    OPSRC_OWNER_NAME_LABEL,
    OPSRC_OWNER_NAMESPACE_LABEL,
    ApiError,
    OperatorSource,
    ReconcileError,
    Reconciler,
)


class DeletedReconciler(Reconciler):
    """Cleans up after an OperatorSource so it can be garbage collected.

    The datastore is expected to offer ``remove_operator_source(uid)``.
    """

    def __init__(self, logger: Any, datastore: Any, client: Any) -> None:
        self.logger = logger if logger is not None else logging.getLogger(__name__)
        self.datastore = datastore
        self.client = client

    def reconcile(self, source: OperatorSource) -> tuple[OperatorSource, None]:
        """Drop the source's data, delete what it owns and remove its finalizer.

        The object is updated on the cluster here, since no phase change
        will cause it to be updated otherwise. On failure ``ReconcileError``
        is raised with the current phase as the next one, so it is retried.
        """
        out = source
        retry_phase = source.current_phase_name()

        self.datastore.remove_operator_source(out.uid)

        try:
            self._delete_created_resources(source.name, source.namespace)
        except ApiError as err:
            raise ReconcileError(err, out, get_next_with_message(retry_phase, str(err))) from err

        out.remove_finalizer()

        try:
            self.client.update(out)
        except ApiError as err:
            raise ReconcileError(err, out, get_next_with_message(retry_phase, str(err))) from err

        self.logger.info("Finalizer removed, now garbage collector will clean it up.")
        return out, None

    def _delete_created_resources(self, name: str, namespace: str) -> None:
        labels = {
            OPSRC_OWNER_NAME_LABEL: name,
            OPSRC_OWNER_NAMESPACE_LABEL: namespace,
        }
        for config in self.client.list(CATALOG_SOURCE_CONFIG_KIND, labels):
            self.logger.info("Removing catalogSourceConfig %s from namespace %s", config.name, config.namespace)
            self.client.delete(config)