import time
from threading import Event

import pytest

from configmap_cascade import (
    CascadeError,
    NotFoundError,
    ReconcileCancelled,
    ReconcileKey,
    Reconciler,
    RetryableError,
)

from fakes import FakeCluster, shoot

KEY = ReconcileKey("cfg", "A")


def test_scenario_only_stale_dependent_is_triggered(cluster):
    cluster.put_configuration("cfg", "A", "v1", {"policy": "C1"})
    cluster.add_dependent(shoot("cfg", "X", "A", "v1"))
    cluster.add_dependent(shoot("cfg", "Y", "A", "v0"))
    reconciler = Reconciler(cluster, cluster)

    # only Y lags behind v1
    result = reconciler.reconcile(KEY)
    assert cluster.patched == ["cfg/Y"]
    assert (result.triggered, result.current) == (1, 1)

    cluster.patched.clear()
    cluster.stamp("cfg/Y", "v1")
    cluster.put_configuration("cfg", "A", "v2", {"policy": "C2"})

    result = reconciler.reconcile(KEY)
    assert sorted(cluster.patched) == ["cfg/X", "cfg/Y"]

    cluster.patched.clear()
    cluster.stamp("cfg/X", "v2")
    cluster.stamp("cfg/Y", "v2")
    result = reconciler.reconcile(KEY)
    assert cluster.patched == []
    assert result.triggered == 0
    assert result.current == 2


def test_reconcile_is_idempotent_without_external_change(cluster):
    cluster.put_configuration("cfg", "A", "v2")
    cluster.add_dependent(shoot("cfg", "X", "A", "v2"))
    reconciler = Reconciler(cluster, cluster)

    reconciler.reconcile(KEY)
    reconciler.reconcile(KEY)

    assert cluster.patched == []


def test_unrelated_dependents_are_never_triggered(cluster):
    cluster.put_configuration("cfg", "A", "v2")
    cluster.add_dependent(shoot("cfg", "X", "B", "v0"))
    cluster.add_dependent(shoot("cfg", "Z", None))

    Reconciler(cluster, cluster).reconcile(KEY)

    assert cluster.patched == []


def test_deleted_configuration_completes_without_triggers(cluster):
    cluster.add_dependent(shoot("cfg", "Y", "A", "v0"))

    result = Reconciler(cluster, cluster).reconcile(KEY)

    assert result.deleted is True
    assert cluster.patched == []


def test_transient_fetch_error_is_retryable(cluster):
    cluster.get_error = ConnectionError("api down")

    with pytest.raises(RetryableError):
        Reconciler(cluster, cluster).reconcile(KEY)


def test_list_error_is_retryable(cluster):
    cluster.put_configuration("cfg", "A", "v2")
    cluster.list_error = RuntimeError("boom")

    with pytest.raises(RetryableError):
        Reconciler(cluster, cluster).reconcile(KEY)


def test_vanished_dependent_is_skipped(cluster):
    cluster.put_configuration("cfg", "A", "v2")
    cluster.add_dependent(shoot("cfg", "X", "A", "v1"))
    cluster.add_dependent(shoot("cfg", "Y", "A", "v1"))
    cluster.gone.add("cfg/X")

    result = Reconciler(cluster, cluster).reconcile(KEY)

    assert cluster.patched == ["cfg/Y"]
    assert result.triggered == 1


def test_failed_trigger_fails_whole_pass_after_trying_all(cluster):
    cluster.put_configuration("cfg", "A", "v2")
    cluster.add_dependent(shoot("cfg", "X", "A", "v1"))
    cluster.add_dependent(shoot("cfg", "Y", "A", "v1"))
    cluster.patch_errors["cfg/X"] = RuntimeError("conflict")

    with pytest.raises(CascadeError) as excinfo:
        Reconciler(cluster, cluster).reconcile(KEY)

    assert excinfo.value.failed == ["cfg/X"]
    assert cluster.patched == ["cfg/Y"]


def test_stop_event_cancels_pass(cluster):
    cluster.put_configuration("cfg", "A", "v2")
    cluster.add_dependent(shoot("cfg", "X", "A", "v1"))
    stop = Event()
    stop.set()

    with pytest.raises(ReconcileCancelled):
        Reconciler(cluster, cluster).reconcile(KEY, stop_event=stop)

    assert cluster.patched == []


def test_elapsed_deadline_cancels_before_fetch(cluster):
    cluster.put_configuration("cfg", "A", "v2")
    cluster.add_dependent(shoot("cfg", "X", "A", "v2"))

    with pytest.raises(ReconcileCancelled):
        Reconciler(cluster, cluster).reconcile(KEY, deadline=time.monotonic() - 1)

    assert cluster.timeouts == []


def test_slow_fetch_cancels_before_listing(cluster):
    class SlowCluster(FakeCluster):
        def get_configuration(self, namespace, name, timeout=None):
            resource = super().get_configuration(namespace, name, timeout)
            time.sleep(0.2)
            return resource

    slow = SlowCluster()
    slow.put_configuration("cfg", "A", "v2")
    slow.add_dependent(shoot("cfg", "X", "A", "v1"))

    with pytest.raises(ReconcileCancelled):
        Reconciler(slow, slow).reconcile(KEY, deadline=time.monotonic() + 0.05)

    # only the fetch ran, bounded by what was left of the deadline
    assert len(slow.timeouts) == 1
    assert 0 < slow.timeouts[0] <= 0.05
    assert slow.patched == []


def test_remaining_time_bounds_every_call(cluster):
    cluster.put_configuration("cfg", "A", "v2")
    cluster.add_dependent(shoot("cfg", "Y", "A", "v1"))

    Reconciler(cluster, cluster).reconcile(KEY, deadline=time.monotonic() + 30)

    # fetch, list, patch
    assert len(cluster.timeouts) == 3
    assert all(t is not None and 0 < t <= 30 for t in cluster.timeouts)


def test_no_deadline_means_unbounded_calls(cluster):
    cluster.put_configuration("cfg", "A", "v2")
    cluster.add_dependent(shoot("cfg", "Y", "A", "v1"))

    Reconciler(cluster, cluster).reconcile(KEY)

    assert cluster.timeouts == [None, None, None]


def test_missing_dependent_type_is_retryable(cluster):
    cluster.put_configuration("cfg", "A", "v2")
    cluster.add_dependent(shoot("cfg", "Y", "A", "v0"))
    cluster.list_error = NotFoundError("shoots.core.gardener.cloud")

    with pytest.raises(RetryableError) as excinfo:
        Reconciler(cluster, cluster).reconcile(KEY)

    assert not isinstance(excinfo.value, ReconcileCancelled)
    assert cluster.patched == []
