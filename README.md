# opmarket

`opmarket` reconciles *operator sources* into *catalog source configs*. An
operator source is a remote registry of operator manifests. The package also
keeps a cluster operator status up to date, based on how many syncs succeed.

The package is a library. You supply three things as plain Python objects: a
cluster client, a datastore and a registry client factory. The package calls
them. It has no dependencies outside the standard library.

## Installing

```
pip install opmarket
pip install "opmarket[test]"   # adds pytest
```

## What the package does not do

The package does not include:

- a cluster client
- a datastore
- a registry client
- a command-line program
- a process that watches the cluster for events

The docstrings of the modules that use these collaborators list the methods they
call. In summary:

- **Cluster client.** Offers `get(kind, namespace, name)`, `create(obj)`,
  `update(obj)`, `delete(obj)` and `list(kind, labels)`. It raises
  `opmarket.resources.ApiError` or one of its subclasses on failure:
  `NotFoundError` or `AlreadyExistsError`.
- **Datastore.** Offers these methods:
  - `add_operator_source`
  - `remove_operator_source`
  - `get_operator_source`
  - `get_all_operator_sources`
  - `get_package_ids_by_operator_source`
  - `write`
  - `operator_source_has_update`
- **Registry client factory.** Offers `new(options)`. The client it returns
  offers `list_packages(namespace)`.
- **Config client** for status reporting. Offers `get_cluster_operator(name)`,
  `create_cluster_operator(operator)` and
  `update_cluster_operator_status(operator)`.

## Resources

`opmarket.resources` holds the data types and the exceptions:

- Data types: `OperatorSource`, `OperatorSourceSpec`, `CatalogSourceConfig`,
  `CatalogSourceConfigSpec` and `RegistryOptions`.
- Cluster errors: `ApiError`, `NotFoundError` and `AlreadyExistsError`.
- `ReconcileError` signals a failed reconciliation.

An `OperatorSource` keeps its phase in `current_phase`, which is an
`ObjectPhase`, and its package list in `packages`. `ensure_finalizer()` and
`remove_finalizer()` manage the operator source finalizer.

`CatalogSourceConfigBuilder` builds the config that an operator source owns. It
can start from an existing config, which it copies.

```python
from opmarket.resources import CatalogSourceConfigBuilder

csc = (
    CatalogSourceConfigBuilder()
    .with_type_meta()
    .with_namespaced_name("marketplace", "foo")
    .with_labels(source.labels)
    .with_spec("marketplace", "a,b,c", "", "")
    .with_owner_label(source)
    .catalog_source_config()
)
```

How `with_labels` and `with_owner_label` merge labels:

- `with_labels` adds `opsrc-datastore: "true"`, then the given labels.
- `with_owner_label` adds `opsrc-owner-name` and `opsrc-owner-namespace`.
- In both, labels already on the object take precedence.

`setup_app_registry_options(client, spec, namespace)` returns
`RegistryOptions`. When `spec.auth_secret_name` is set, it reads the `token`
entry of that secret.

## Phases

`opmarket.phase` provides:

- the phase names `INITIAL`, `VALIDATING`, `DOWNLOADING`, `CONFIGURING`,
  `PURGING`, `SUCCEEDED` and `FAILED`
- the data classes `Phase` and `ObjectPhase`
- `get_message(phase_name)`, which returns the default message for a phase
- `get_next(name)`, which returns a `Phase` with the default message
- `get_next_with_message(name, message)`, which returns a `Phase` with the
  given message

A reconciler that is given an object in a phase it does not handle raises
`WrongReconcilerError`.

`opmarket.transitioner.Transitioner` applies a phase change. `clock` is an
optional callable that returns a `datetime`; the default is the current UTC
time.

```python
from opmarket.phase import get_next
from opmarket.transitioner import Transitioner

changed = Transitioner(clock).transition_into(source.current_phase, get_next("Validating"))
```

`transition_into` returns `False` in two cases: when either argument is `None`,
and when the name and the message are both unchanged. When something changes:

- `last_update_time` is always set.
- `last_transition_time` is set only when the phase name changes.

## How an operator source progresses

```
Initial --> Validating --> Downloading --> Configuring --> Succeeded
   ^
   |
Purging
```

Validation and download failures move the object to `Failed`.

`opmarket.factory.PhaseReconcilerFactory.get_phase_reconciler(logger, source)`
returns the reconciler for the source's current phase:

- Objects with a `deletion_timestamp` get `DeletedReconciler`.
- An unknown phase raises `ValueError`.

The reconcilers are:

- `InitialReconciler`: adds the finalizer, registers the source with the
  datastore, and moves on to Validating.
- `ValidatingReconciler`: checks that the endpoint is an absolute URI or an
  absolute path.
- `DownloadingReconciler`: lists the packages in the registry and writes them to
  the datastore. It sends a refresh when the source is new, and moves on to
  Configuring.
- `ConfiguringReconciler`: creates the catalog source config, or updates it if
  it already exists, and moves on to Succeeded.
- `PurgingReconciler`: removes the source from the datastore, clears its
  packages, and moves back to Initial.
- `SucceededReconciler` and `FailedReconciler`: take no action.
- `DeletedReconciler`: deletes the catalog source configs that the source owns,
  removes the finalizer, and updates the object.
- `OutOfSyncCacheReconciler`: schedules a purge when the datastore has lost the
  source or when the spec has changed.

`DownloadingReconciler` is in `opmarket.downloading`, `ConfiguringReconciler` is
in `opmarket.configuring` and `DeletedReconciler` is in `opmarket.deleted`. The
others are in `opmarket.simple_phases`.

`reconcile(source)` returns `(source, next_phase)`. `next_phase` is `None` when
no transition is wanted. On failure it raises `ReconcileError`, which carries
the resulting `source` and `next_phase`.

## Handling events

`opmarket.handler.Handler.handle(source)` processes one event in three steps:

1. It runs the out-of-sync reconciler. If that reconciler returns a next phase,
   the handler applies it and stops.
2. Otherwise it runs the reconciler for the current phase.
3. When the phase changed, it updates the object through the client.

A `ReconcileError` is raised again after its phase change has been applied. If
the update also fails, the update error is logged and the reconciliation error
is raised.

## Registry polling

`opmarket.polling` has four classes:

- `PollHelper`
  - `has_update(source_key)` asks the registry and the datastore whether there
    are updates. It raises `LookupError` for an unknown source.
  - `trigger_purge(source_key)` moves the object to Purging. It returns `True`
    if the object no longer exists.
- `Poller`
  - `initialize()` sends a refresh.
  - `poll()` checks every source and purges the sources that have updates. When
    any package was updated or removed, it sends one
    `PackageUpdateAggregator`.
- `RegistrySyncer.sync(stop)` waits `initial_wait` seconds, initializes the
  poller, then polls every `resync_interval` seconds until the `stop`
  `threading.Event` is set.

## Cluster operator status

`opmarket.syncratio.SyncRatio` counts sync events and failed syncs.
`is_succeeding()` returns `(succeeding, ratio)`. `ratio` is `None` until a sync
event has been seen.

`opmarket.status.StatusReporter` writes a `ClusterOperator` that has
`Progressing`, `Available` and `Failing` conditions:

- If the config client is `None`, nothing is reported.
- The operator version is recorded only when the operator becomes available.
- The reporter writes the status only when
  `opmarket.conditions.condition_lists_equal` finds a difference.

Its methods:

- `send_sync_message(error)` queues one sync outcome. It never blocks, and
  drops the outcome when the queue of 25 is full.
- `drain_sync_messages()` applies the queued outcomes.
- `report_once()` performs one reporting step. On the first report it sets
  Progressing. After that it waits for at least four sync events, then reports
  Available or Failing against a success ratio of 0.3.
- `run_sync_receiver(stop_event)` and `run_monitor(stop_event, interval)` are
  loops meant to run in threads. `run_monitor` sets Failing when it stops, then
  sets `done`.

## Running the tests

```
pytest
```