"""Polling remote registries for updates and scheduling OperatorSource purges.

A source key, as handed out by the datastore's ``get_all_operator_sources()``,
carries ``uid``, ``name``, ``namespace`` and ``spec`` (an
``OperatorSourceSpec``). An update result carries ``registry_has_update``,
``updated_packages`` and ``removed_packages``.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Iterable

from . import phase
from .phase import Phase
from .resources import (
    API_VERSION,
    OPERATOR_SOURCE_KIND,
    NotFoundError,
    setup_app_registry_options,
)
from .transitioner import Transitioner

log = logging.getLogger(__name__)

PURGE_MESSAGE = "Remote registry has been updated"


class PackageUpdateAggregator:
    """Collects updated and removed packages across several update results."""

    def __init__(self) -> None:
        self.updated: set[str] = set()
        self.removed: set[str] = set()

    def add(self, result: Any) -> None:
        """Merge the packages of one update result into the aggregate."""
        self.updated.update(_names(getattr(result, "updated_packages", None)))
        self.removed.update(_names(getattr(result, "removed_packages", None)))

    def is_updated_or_removed(self) -> bool:
        """True if any package has been updated or removed."""
        return bool(self.updated or self.removed)

    def __str__(self) -> str:
        return f"updated={sorted(self.updated)} removed={sorted(self.removed)}"


def _names(packages: Iterable[str] | None) -> Iterable[str]:
    return packages or ()


class PollHelper:
    """Checks remote registries for updates and triggers cache rebuilds.

    ``factory.new(options)`` gives a registry client offering
    ``list_packages(namespace)``. The datastore offers
    ``get_operator_source(uid)`` and ``operator_source_has_update(uid, metadata)``.
    The client offers ``get(kind, namespace, name)`` and ``update(obj)``.
    """

    def __init__(self, factory: Any, datastore: Any, client: Any, transitioner: Transitioner | None = None) -> None:
        self.factory = factory
        self.datastore = datastore
        self.client = client
        self.transitioner = transitioner if transitioner is not None else Transitioner()

    def has_update(self, source_key: Any) -> Any:
        """Fetch release metadata from the registry and return the update result.

        Raises LookupError if the datastore does not know the source.
        """
        source = self.datastore.get_operator_source(source_key.uid)
        if source is None:
            raise LookupError("The given OperatorSource object does not exist in datastore")

        options = setup_app_registry_options(self.client, source.spec, source.namespace)
        registry = self.factory.new(options)
        metadata = registry.list_packages(source.spec.registry_namespace)
        return self.datastore.operator_source_has_update(source.uid, metadata)

    def trigger_purge(self, source_key: Any) -> bool:
        """Move the OperatorSource into the Purging phase.

        Returns True if the object has already been deleted. Other cluster
        errors are raised.
        """
        try:
            instance = self.client.get(OPERATOR_SOURCE_KIND, source_key.namespace, source_key.name)
        except NotFoundError:
            return True

        instance.kind = OPERATOR_SOURCE_KIND
        instance.api_version = API_VERSION

        next_phase = Phase(name=phase.PURGING, message=PURGE_MESSAGE)
        if not self.transitioner.transition_into(instance.current_phase, next_phase):
            # Already purging; nothing to update.
            return False

        self.client.update(instance)
        return False


class Poller:
    """Polls every known OperatorSource and notifies about package changes.

    ``sender`` offers ``send(aggregator)``; ``refresher`` offers ``send_refresh()``.
    The datastore offers ``get_all_operator_sources()``.
    """

    def __init__(
        self,
        helper: PollHelper,
        datastore: Any,
        sender: Any,
        refresher: Any,
        update_notification_send_wait: float = 0.0,
    ) -> None:
        self.helper = helper
        self.datastore = datastore
        self.sender = sender
        self.refresher = refresher
        self.update_notification_send_wait = update_notification_send_wait

    def initialize(self) -> None:
        """Send a refresh so catalog source configs compare against the datastore."""
        log.info("[sync] sending initial package update notification on start.")
        self.refresher.send_refresh()

    def poll(self) -> None:
        """Check each source for updates, purge updated ones and notify.

        Errors for one source are logged and the next source is tried.
        """
        aggregator = PackageUpdateAggregator()

        for source in self.datastore.get_all_operator_sources():
            try:
                result = self.helper.has_update(source)
            except Exception as err:
                log.error("[sync] error checking for updates [%s] - %s", source.name, err)
                continue

            if not result.registry_has_update:
                continue

            log.info("operator source[%s] has updates: %s", source.name, result)
            aggregator.add(result)
            self._trigger(source)

        if not aggregator.is_updated_or_removed():
            return

        if self.update_notification_send_wait > 0:
            time.sleep(self.update_notification_send_wait)

        log.info("[sync] sending package update notification - %s", aggregator)
        self.sender.send(aggregator)

    def _trigger(self, source: Any) -> None:
        log.info("[sync] remote registry has update(s) - purging OperatorSource [%s]", source.name)
        try:
            deleted = self.helper.trigger_purge(source)
        except Exception as err:
            log.error("[sync] error updating object [%s] - %s", source.name, err)
            return
        if deleted:
            log.info("[sync] object deleted [%s] - no action taken", source.name)


class RegistrySyncer:
    """Runs the poller every resync interval until stopped."""

    def __init__(self, poller: Poller, initial_wait: float, resync_interval: float) -> None:
        self.poller = poller
        self.initial_wait = initial_wait
        self.resync_interval = resync_interval

    def sync(self, stop: threading.Event) -> None:
        """Wait the initial grace period, initialize, then poll until stop is set."""
        log.info("[sync] Operator source sync loop will start after %ss", self.initial_wait)

        # Give the process time to rebuild its cache from existing objects.
        if self.initial_wait > 0:
            time.sleep(self.initial_wait)

        self.poller.initialize()

        log.info("[sync] Operator source sync loop has started")
        while not stop.wait(self.resync_interval):
            log.info("[sync] Checking for operator source update(s) in remote registry")
            self.poller.poll()
        log.info("[sync] Ending operator source watch loop")