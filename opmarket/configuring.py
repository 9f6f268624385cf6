"""Reconciler for OperatorSource objects in the Configuring phase."""

from __future__ import annotations

import logging
from typing import Any

from . import phase
from .phase import ObjectPhase, Phase, WrongReconcilerError, get_next, get_next_with_message
from .resources import (
    CATALOG_SOURCE_CONFIG_KIND,
    AlreadyExistsError,
    ApiError,
    CatalogSourceConfigBuilder,
    OperatorSource,
    ReconcileError,
    Reconciler,
)


class ConfiguringReconciler(Reconciler):
    """Ensures a CatalogSourceConfig exists for the OperatorSource.

    The datastore is expected to offer ``get_package_ids_by_operator_source(uid)``.
    """

    def __init__(self, logger: Any, datastore: Any, client: Any) -> None:
        self.logger = logger if logger is not None else logging.getLogger(__name__)
        self.datastore = datastore
        self.client = client

    def _fail(self, action: str, err: ApiError, source: OperatorSource) -> ReconcileError:
        self.logger.error("Unexpected error while %s CatalogSourceConfig: %s", action, err)
        return ReconcileError(err, source, get_next_with_message(phase.CONFIGURING, str(err)))

    def reconcile(self, source: OperatorSource) -> tuple[OperatorSource, Phase]:
        """Create or update the CatalogSourceConfig; move to Succeeded on success.

        Raises ``ReconcileError`` with a Configuring next phase on failure.
        """
        if source.current_phase_name() != phase.CONFIGURING:
            raise WrongReconcilerError()

        manifests = self.datastore.get_package_ids_by_operator_source(source.uid)
        spec = source.spec

        to_create = (
            CatalogSourceConfigBuilder()
            .with_type_meta()
            .with_namespaced_name(source.namespace, source.name)
            .with_labels(source.labels)
            .with_spec(source.namespace, manifests, spec.display_name, spec.publisher)
            .with_owner_label(source)
            .catalog_source_config()
        )

        try:
            self.client.create(to_create)
        except AlreadyExistsError:
            pass
        except ApiError as err:
            raise self._fail("creating", err, source) from err
        else:
            self.logger.info("CatalogSourceConfig object has been created successfully")
            return source, get_next(phase.SUCCEEDED)

        # The CatalogSourceConfig already exists, so bring it up to date.
        try:
            existing = self.client.get(CATALOG_SOURCE_CONFIG_KIND, source.namespace, source.name)
        except ApiError as err:
            raise self._fail("getting", err, source) from err

        to_update = (
            CatalogSourceConfigBuilder(existing)
            .with_type_meta()
            .with_spec(source.namespace, manifests, spec.display_name, spec.publisher)
            .with_labels(source.labels)
            .with_owner_label(source)
            .catalog_source_config()
        )

        # Dropping the status forces the CatalogSourceConfig to be refreshed,
        # which covers repositories that changed without being added or removed.
        to_update.current_phase = ObjectPhase()

        try:
            self.client.update(to_update)
        except ApiError as err:
            raise self._fail("updating", err, source) from err

        self.logger.info("CatalogSourceConfig object has been updated successfully")
        return source, get_next(phase.SUCCEEDED)