"""Reconciler for OperatorSource objects in the Downloading phase."""

from __future__ import annotations

import logging
from typing import Any

from . import phase
from .phase import Phase, WrongReconcilerError, get_next, get_next_with_message
from .resources import OperatorSource, ReconcileError, Reconciler, setup_app_registry_options

EMPTY_MANIFEST_MESSAGE = "The operator source endpoint returned an empty manifest list"


class DownloadingReconciler(Reconciler):
    """Downloads manifest metadata from the registry into the datastore.

    ``factory.new(options)`` gives a registry client whose
    ``list_packages(namespace)`` returns the manifests. The datastore
    offers ``get_package_ids_by_operator_source(uid)`` and
    ``write(source, manifests)``, which returns how many manifests were
    stored; when it raises, the exception's ``count`` attribute, if any,
    says how many were stored before the failure. ``refresher`` offers
    ``send_refresh()``.
    """

    def __init__(self, logger: Any, factory: Any, datastore: Any, client: Any, refresher: Any) -> None:
        self.logger = logger if logger is not None else logging.getLogger(__name__)
        self.factory = factory
        self.datastore = datastore
        self.client = client
        self.refresher = refresher

    def reconcile(self, source: OperatorSource) -> tuple[OperatorSource, Phase]:
        """Download and store manifests, then schedule configuration."""
        if source.current_phase_name() != phase.DOWNLOADING:
            raise WrongReconcilerError()

        out = source
        self.logger.info("Downloading from [%s]", source.spec.endpoint)

        try:
            options = setup_app_registry_options(self.client, source.spec, source.namespace)
            registry = self.factory.new(options)
            manifests = registry.list_packages(source.spec.registry_namespace)
        except Exception as err:
            raise ReconcileError(err, out, get_next_with_message(phase.DOWNLOADING, str(err))) from err

        if not manifests:
            # Human intervention is needed; a registry sync will pick up new
            # manifests once they are pushed.
            raise ReconcileError(
                EMPTY_MANIFEST_MESSAGE, out, get_next_with_message(phase.FAILED, EMPTY_MANIFEST_MESSAGE)
            )

        self.logger.info("Downloaded %d manifest(s) from the operator source endpoint", len(manifests))

        # An empty package list before writing means this OperatorSource is new.
        previous_packages = self.datastore.get_package_ids_by_operator_source(out.uid)

        try:
            count = self.datastore.write(source, manifests)
        except Exception as err:
            count = getattr(err, "count", 0)
            if count == 0:
                raise ReconcileError(err, out, get_next_with_message(phase.FAILED, str(err))) from err
            self.logger.info("There were some faulty operator manifest(s), errors - %s", err)

        if previous_packages == "":
            self.logger.info("New opsrc detected. Refreshing catalogsourceconfigs.")
            self.refresher.send_refresh()

        out.packages = self.datastore.get_package_ids_by_operator_source(out.uid)

        self.logger.info("Successfully stored %d operator manifest(s)", count)
        self.logger.info("Download complete, scheduling for configuration")
        return out, get_next(phase.CONFIGURING)