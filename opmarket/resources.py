"""Marketplace resource types, cluster errors and the reconciler contract.

Cluster clients used throughout the package are expected to offer
``get(kind, namespace, name)``, ``create(obj)``, ``update(obj)``,
``delete(obj)`` and ``list(kind, labels)``, raising ``ApiError``
subclasses on failure.
"""

from __future__ import annotations

import abc
import copy
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping

from .phase import ObjectPhase, Phase

GROUP = "operators.coreos.com"
VERSION = "v1"
API_VERSION = f"{GROUP}/{VERSION}"
OPERATOR_SOURCE_KIND = "OperatorSource"
CATALOG_SOURCE_CONFIG_KIND = "CatalogSourceConfig"
SECRET_KIND = "Secret"

OPSRC_FINALIZER = "finalizer.operatorsources.operators.coreos.com"

# Marks a CatalogSourceConfig whose CatalogSource is an OperatorSource datastore.
DATASTORE_LABEL = "opsrc-datastore"
# Mark resources owned by an OperatorSource, to be removed along with it.
OPSRC_OWNER_NAME_LABEL = "opsrc-owner-name"
OPSRC_OWNER_NAMESPACE_LABEL = "opsrc-owner-namespace"


class ApiError(Exception):
    """An error reported by the cluster API."""


class NotFoundError(ApiError):
    """The requested object does not exist."""


class AlreadyExistsError(ApiError):
    """The object to be created already exists."""


class ReconcileError(Exception):
    """Reconciliation failed.

    ``error`` is the underlying exception, ``source`` the object as it
    stands after reconciliation and ``next_phase`` the phase to move into.
    """

    def __init__(self, error: BaseException | str, source: Any = None, next_phase: Phase | None = None) -> None:
        super().__init__(str(error))
        self.error = error
        self.source = source
        self.next_phase = next_phase


@dataclass
class OperatorSourceSpec:
    type: str = ""
    endpoint: str = ""
    registry_namespace: str = ""
    display_name: str = ""
    publisher: str = ""
    auth_secret_name: str = ""


@dataclass
class OperatorSource:
    name: str = ""
    namespace: str = ""
    uid: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    finalizers: list[str] = field(default_factory=list)
    deletion_timestamp: datetime | None = None
    kind: str = OPERATOR_SOURCE_KIND
    api_version: str = API_VERSION
    spec: OperatorSourceSpec = field(default_factory=OperatorSourceSpec)
    current_phase: ObjectPhase = field(default_factory=ObjectPhase)
    packages: str = ""

    def current_phase_name(self) -> str:
        return self.current_phase.name

    def ensure_finalizer(self) -> None:
        """Add the OperatorSource finalizer if it is missing."""
        if OPSRC_FINALIZER not in self.finalizers:
            self.finalizers.append(OPSRC_FINALIZER)

    def remove_finalizer(self) -> None:
        self.finalizers = [f for f in self.finalizers if f != OPSRC_FINALIZER]

    def deep_copy(self) -> OperatorSource:
        return copy.deepcopy(self)


@dataclass
class CatalogSourceConfigSpec:
    target_namespace: str = ""
    packages: str = ""
    display_name: str = ""
    publisher: str = ""


@dataclass
class CatalogSourceConfig:
    name: str = ""
    namespace: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    kind: str = ""
    api_version: str = ""
    spec: CatalogSourceConfigSpec = field(default_factory=CatalogSourceConfigSpec)
    current_phase: ObjectPhase = field(default_factory=ObjectPhase)


class Reconciler(abc.ABC):
    """Reconciles one phase of an OperatorSource.

    ``reconcile`` returns ``(source, next_phase)``; ``next_phase`` is None
    when no transition is expected. On failure it raises ``ReconcileError``
    carrying the next phase. It must not update the object on the cluster.
    """

    @abc.abstractmethod
    def reconcile(self, source: OperatorSource) -> tuple[OperatorSource | None, Phase | None]:
        """Reconcile source and return the result and the next phase."""


class CatalogSourceConfigBuilder:
    """Builds a CatalogSourceConfig, optionally starting from an existing one."""

    def __init__(self, existing: CatalogSourceConfig | None = None) -> None:
        self._object = copy.deepcopy(existing) if existing is not None else CatalogSourceConfig()

    def with_type_meta(self) -> CatalogSourceConfigBuilder:
        self._object.api_version = API_VERSION
        self._object.kind = CATALOG_SOURCE_CONFIG_KIND
        return self

    def with_namespaced_name(self, namespace: str, name: str) -> CatalogSourceConfigBuilder:
        self._object.namespace = namespace
        self._object.name = name
        return self

    def with_labels(self, opsrc_labels: Mapping[str, str] | None) -> CatalogSourceConfigBuilder:
        """Apply the datastore label, the OperatorSource labels, then existing ones."""
        labels = {DATASTORE_LABEL: "true"}
        labels.update(opsrc_labels or {})
        labels.update(self._object.labels)
        self._object.labels = labels
        return self

    def with_owner_label(self, owner: OperatorSource) -> CatalogSourceConfigBuilder:
        labels = {
            OPSRC_OWNER_NAME_LABEL: owner.name,
            OPSRC_OWNER_NAMESPACE_LABEL: owner.namespace,
        }
        labels.update(self._object.labels)
        self._object.labels = labels
        return self

    def with_spec(
        self, target_namespace: str, packages: str, display_name: str, publisher: str
    ) -> CatalogSourceConfigBuilder:
        self._object.spec = CatalogSourceConfigSpec(
            target_namespace=target_namespace,
            packages=packages,
            display_name=display_name,
            publisher=publisher,
        )
        return self

    def catalog_source_config(self) -> CatalogSourceConfig:
        return self._object


@dataclass
class RegistryOptions:
    """Where to reach an app registry and how to authenticate."""

    source: str = ""
    auth_token: str = ""


def setup_app_registry_options(client: Any, spec: OperatorSourceSpec, namespace: str) -> RegistryOptions:
    """Build registry options from the spec, reading the token from its Secret if one is named."""
    options = RegistryOptions(source=spec.endpoint)
    if spec.auth_secret_name:
        secret = client.get(SECRET_KIND, namespace, spec.auth_secret_name)
        token = (getattr(secret, "data", None) or {}).get("token", b"")
        options.auth_token = token.decode() if isinstance(token, (bytes, bytearray)) else str(token)
    return options