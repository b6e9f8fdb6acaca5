import pytest

from configmap_cascade import (
    ChangeFilter,
    ConfigurationResource,
    ReconcileKey,
    ResourceAdded,
    ResourceUpdated,
    content_changed,
)
from configmap_cascade.workqueue import WorkQueue


def cfg(version: str, content=None, namespace="garden-dev", name="audit-policy"):
    return ConfigurationResource(namespace, name, version, content if content is not None else {"policy": "v1"})


def test_add_always_enqueues():
    queue = WorkQueue()
    ChangeFilter(queue).handle(ResourceAdded(cfg("1")))

    assert queue.get(timeout=0.01) == (ReconcileKey("garden-dev", "audit-policy"), False)


def test_update_with_same_content_is_suppressed():
    queue = WorkQueue()
    change_filter = ChangeFilter(queue)

    change_filter.handle(ResourceUpdated(cfg("1"), cfg("2")))

    assert len(queue) == 0


def test_update_with_changed_content_enqueues():
    queue = WorkQueue()
    change_filter = ChangeFilter(queue)

    change_filter.handle(ResourceUpdated(cfg("1"), cfg("2", {"policy": "v2"})))

    assert len(queue) == 1


def test_repeated_notifications_collapse():
    queue = WorkQueue()
    change_filter = ChangeFilter(queue)

    change_filter.handle(ResourceAdded(cfg("1")))
    change_filter.handle(ResourceUpdated(cfg("1"), cfg("2", {"policy": "v2"})))
    change_filter.handle(ResourceUpdated(cfg("2", {"policy": "v2"}), cfg("3", {"policy": "v3"})))

    assert len(queue) == 1


def test_malformed_object_is_dropped(caplog):
    queue = WorkQueue()
    change_filter = ChangeFilter(queue)

    change_filter.handle(ResourceAdded(ConfigurationResource("", "audit-policy", "1")))

    assert len(queue) == 0
    assert "Couldn't get key" in caplog.text


def test_unknown_event_type_raises():
    with pytest.raises(TypeError):
        ChangeFilter(WorkQueue()).handle(object())


def test_content_changed_semantics():
    assert content_changed(None, cfg("1")) is True
    assert content_changed(cfg("1", {"a": {"b": [1, 2]}}), cfg("9", {"a": {"b": [1, 2]}})) is False
    assert content_changed(cfg("1", {"a": {"b": [1, 2]}}), cfg("1", {"a": {"b": [2, 1]}})) is True
    assert content_changed(cfg("1", {}), ConfigurationResource("garden-dev", "audit-policy", "2", None)) is False


def test_non_mapping_content_does_not_raise():
    queue = WorkQueue()
    change_filter = ChangeFilter(queue)

    change_filter.handle(ResourceUpdated(cfg("1", ["not", "a", "mapping"]), cfg("2", {"policy": "v1"})))
    change_filter.handle(ResourceUpdated(cfg("2", "garbage"), cfg("3", "garbage")))

    assert len(queue) == 1


def test_update_with_malformed_previous_is_dropped(caplog):
    queue = WorkQueue()

    ChangeFilter(queue).on_update(object(), cfg("2"))

    assert len(queue) == 0
    assert "malformed update" in caplog.text
