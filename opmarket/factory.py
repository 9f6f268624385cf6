"""Choosing the reconciler for an OperatorSource's current phase."""

from __future__ import annotations

from typing import Any

from . import phase
from .configuring import ConfiguringReconciler
from .deleted import DeletedReconciler
from .downloading import DownloadingReconciler
from .resources import OperatorSource, Reconciler
from .simple_phases import (
    FailedReconciler,
    InitialReconciler,
    PurgingReconciler,
    SucceededReconciler,
    ValidatingReconciler,
)


class PhaseReconcilerFactory:
    """Hands out the reconciler that owns an OperatorSource's current phase.

    An OperatorSource moves through the phases as follows::

        Initial --> Validating --> Downloading --> Configuring --> Succeeded
           ^
           |
        Purging

    An object marked for deletion is always given to the deleted reconciler.
    """

    def __init__(self, registry_client_factory: Any, datastore: Any, client: Any, refresher: Any) -> None:
        self.registry_client_factory = registry_client_factory
        self.datastore = datastore
        self.client = client
        self.refresher = refresher

    def get_phase_reconciler(self, logger: Any, source: OperatorSource) -> Reconciler:
        """Return the reconciler for source; raise ValueError for an unknown phase."""
        if source.deletion_timestamp is not None:
            return DeletedReconciler(logger, self.datastore, self.client)

        current = source.current_phase_name()
        builders = {
            phase.INITIAL: lambda: InitialReconciler(logger, self.datastore),
            phase.VALIDATING: lambda: ValidatingReconciler(logger, self.datastore),
            phase.DOWNLOADING: lambda: DownloadingReconciler(
                logger, self.registry_client_factory, self.datastore, self.client, self.refresher
            ),
            phase.CONFIGURING: lambda: ConfiguringReconciler(logger, self.datastore, self.client),
            phase.PURGING: lambda: PurgingReconciler(logger, self.datastore, self.client),
            phase.SUCCEEDED: lambda: SucceededReconciler(logger),
            phase.FAILED: lambda: FailedReconciler(logger),
        }
        build = builders.get(current)
        if build is None:
            raise ValueError(
                f"No phase reconciler returned, invalid phase for OperatorSource type [phase={current}]"
            )
        return build()