from configmap_cascade import (
    ConfigurationResource,
    Dependent,
    DependencyResolver,
    Reference,
    extract_reference,
    is_stale,
)
from configmap_cascade.resolver import parse_reference_path

from fakes import shoot


def test_extract_reference_reads_audit_policy_ref():
    dep = shoot("garden-dev", "x", "audit-policy", "42")

    assert extract_reference(dep) == Reference("audit-policy", "42")


def test_extract_reference_without_version():
    dep = shoot("garden-dev", "x", "audit-policy")

    assert extract_reference(dep) == Reference("audit-policy", None)


def test_extract_reference_missing_or_malformed_path():
    assert extract_reference(shoot("garden-dev", "x", None)) is None
    broken = Dependent("garden-dev", "x", {"spec": {"kubernetes": "oops"}})
    assert extract_reference(broken) is None
    nameless = Dependent(
        "garden-dev",
        "x",
        {"spec": {"kubernetes": {"kubeAPIServer": {"auditConfig": {"auditPolicy": {"configMapRef": {}}}}}}},
    )
    assert extract_reference(nameless) is None


def test_extract_reference_custom_path():
    dep = Dependent("ns", "x", {"spec": {"configRef": {"name": "cfg", "resourceVersion": 7}}})

    assert extract_reference(dep, parse_reference_path("spec.configRef")) == Reference("cfg", "7")


def test_is_stale():
    current = ConfigurationResource("ns", "A", "v2")

    assert is_stale(Reference("A", "v1"), current) is True
    assert is_stale(Reference("A", None), current) is True
    assert is_stale(Reference("A", "v2"), current) is False
    assert is_stale(Reference("B", "v1"), current) is False


def test_resolver_keeps_only_matching_references(cluster):
    cluster.add_dependent(shoot("ns", "x", "A", "v1"))
    cluster.add_dependent(shoot("ns", "y", "B", "v1"))
    cluster.add_dependent(shoot("ns", "z", None))
    cluster.add_dependent(shoot("other", "w", "A", "v1"))

    resolver = DependencyResolver(cluster)
    matches = resolver.resolve(ConfigurationResource("ns", "A", "v2"))

    assert [(dep.name, ref.configuration_name) for dep, ref in matches] == [("x", "A")]
