import logging
from dataclasses import dataclass, field

import pytest

from opmarket import phase
from opmarket.phase import ObjectPhase, Phase, WrongReconcilerError
from opmarket.resources import (
    OPSRC_FINALIZER,
    OperatorSource,
    OperatorSourceSpec,
    ReconcileError,
)
from opmarket.simple_phases import (
    FailedReconciler,
    InitialReconciler,
    OutOfSyncCacheReconciler,
    PurgingReconciler,
    SucceededReconciler,
    ValidatingReconciler,
)


def helper_logger():
    return logging.getLogger("test")


def helper_new_operator_source_with_phase(namespace, name, phase_name):
    return OperatorSource(
        name=name,
        namespace=namespace,
        uid="uid-" + name,
        spec=OperatorSourceSpec(type="appregistry", endpoint="http://localhost:5000/cnr"),
        current_phase=ObjectPhase(name=phase_name),
    )


@dataclass
class SourceKey:
    spec: OperatorSourceSpec


@dataclass
class FakeDatastore:
    sources: dict = field(default_factory=dict)
    added: list = field(default_factory=list)
    removed: list = field(default_factory=list)

    def add_operator_source(self, source):
        self.added.append(source)
        self.sources[source.uid] = SourceKey(spec=source.spec)

    def remove_operator_source(self, uid):
        self.removed.append(uid)
        self.sources.pop(uid, None)

    def get_operator_source(self, uid):
        return self.sources.get(uid)


def test_reconcile_with_purging():
    source_in = helper_new_operator_source_with_phase("marketplace", "foo", phase.PURGING)
    source_want = source_in.deep_copy()
    datastore = FakeDatastore()
    reconciler = PurgingReconciler(helper_logger(), datastore, object())

    got, next_phase = reconciler.reconcile(source_in)

    assert datastore.removed == [source_in.uid]
    assert got == source_want
    assert next_phase == Phase(name=phase.INITIAL, message=phase.get_message(phase.INITIAL))


def test_purging_clears_packages_but_keeps_phase():
    source_in = helper_new_operator_source_with_phase("marketplace", "foo", phase.PURGING)
    source_in.packages = "a,b"
    got, _ = PurgingReconciler(helper_logger(), FakeDatastore(), None).reconcile(source_in)
    assert got.packages == ""
    assert got.current_phase.name == phase.PURGING
    assert source_in.packages == "a,b"


def test_initial_adds_finalizer_and_schedules_validation():
    source_in = helper_new_operator_source_with_phase("marketplace", "foo", phase.INITIAL)
    datastore = FakeDatastore()
    got, next_phase = InitialReconciler(helper_logger(), datastore).reconcile(source_in)
    assert got.finalizers == [OPSRC_FINALIZER]
    assert source_in.finalizers == []
    assert datastore.added == [source_in]
    assert next_phase == Phase(name="Validating", message="Scheduled for validation")


def test_failed_returns_source_unchanged():
    source_in = helper_new_operator_source_with_phase("marketplace", "foo", phase.FAILED)
    got, next_phase = FailedReconciler(helper_logger()).reconcile(source_in)
    assert got is source_in
    assert next_phase is None


def test_succeeded_returns_source_unchanged():
    source_in = helper_new_operator_source_with_phase("marketplace", "foo", phase.SUCCEEDED)
    got, next_phase = SucceededReconciler(None).reconcile(source_in)
    assert got is source_in
    assert next_phase is None


def test_validating_valid_endpoint_schedules_download():
    source_in = helper_new_operator_source_with_phase("marketplace", "foo", phase.VALIDATING)
    got, next_phase = ValidatingReconciler(helper_logger(), FakeDatastore()).reconcile(source_in)
    assert got is source_in
    assert next_phase == Phase(name=phase.DOWNLOADING, message=phase.get_message(phase.DOWNLOADING))


@pytest.mark.parametrize("endpoint", ["", "not a url", "relative/path", ":5000/cnr"])
def test_validating_invalid_endpoint_fails(endpoint):
    source_in = helper_new_operator_source_with_phase("marketplace", "foo", phase.VALIDATING)
    source_in.spec.endpoint = endpoint
    with pytest.raises(ReconcileError) as info:
        ValidatingReconciler(helper_logger(), FakeDatastore()).reconcile(source_in)
    assert info.value.next_phase.name == phase.FAILED
    assert info.value.next_phase.message.startswith("Invalid operator source endpoint - ")
    assert info.value.source is source_in


def test_validating_accepts_absolute_path():
    source_in = helper_new_operator_source_with_phase("marketplace", "foo", phase.VALIDATING)
    source_in.spec.endpoint = "/cnr"
    _, next_phase = ValidatingReconciler(helper_logger(), FakeDatastore()).reconcile(source_in)
    assert next_phase.name == phase.DOWNLOADING


@pytest.mark.parametrize(
    "make",
    [
        lambda: InitialReconciler(helper_logger(), FakeDatastore()),
        lambda: FailedReconciler(helper_logger()),
        lambda: SucceededReconciler(helper_logger()),
        lambda: ValidatingReconciler(helper_logger(), FakeDatastore()),
        lambda: PurgingReconciler(helper_logger(), FakeDatastore(), None),
    ],
)
def test_wrong_phase_raises(make):
    source_in = helper_new_operator_source_with_phase("marketplace", "foo", phase.CONFIGURING)
    with pytest.raises(WrongReconcilerError):
        make().reconcile(source_in)


@pytest.mark.parametrize("phase_name", [phase.INITIAL, phase.PURGING])
def test_out_of_sync_ignores_initial_and_purging(phase_name):
    source_in = helper_new_operator_source_with_phase("marketplace", "foo", phase_name)
    got, next_phase = OutOfSyncCacheReconciler(helper_logger(), FakeDatastore(), None).reconcile(source_in)
    assert next_phase is None
    assert got == source_in


def test_out_of_sync_in_sync_source_not_purged():
    source_in = helper_new_operator_source_with_phase("marketplace", "foo", phase.SUCCEEDED)
    datastore = FakeDatastore()
    datastore.sources[source_in.uid] = SourceKey(spec=source_in.deep_copy().spec)
    _, next_phase = OutOfSyncCacheReconciler(helper_logger(), datastore, None).reconcile(source_in)
    assert next_phase is None


def test_out_of_sync_changed_spec_is_purged():
    source_in = helper_new_operator_source_with_phase("marketplace", "foo", phase.SUCCEEDED)
    datastore = FakeDatastore()
    datastore.sources[source_in.uid] = SourceKey(spec=OperatorSourceSpec(type="appregistry", endpoint="http://other"))
    _, next_phase = OutOfSyncCacheReconciler(helper_logger(), datastore, None).reconcile(source_in)
    assert next_phase == Phase(name=phase.PURGING, message="Scheduled for purging")


def test_out_of_sync_unknown_source_is_purged():
    source_in = helper_new_operator_source_with_phase("marketplace", "foo", phase.CONFIGURING)
    got, next_phase = OutOfSyncCacheReconciler(helper_logger(), FakeDatastore(), None).reconcile(source_in)
    assert next_phase.name == phase.PURGING
    assert got is not source_in
    assert got == source_in