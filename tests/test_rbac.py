import random

import pytest
import yaml

from ctrltools.definitions import MarkerParseError, TargetType
from ctrltools.rbac import (
    API_VERSION,
    RULE_DEFINITION,
    Generator,
    Rule,
    generate_roles,
    roles_yaml,
    rules_from_markers,
)
from ctrltools.registry import Registry

CONTROLLER_MARKERS = [
    "// +kubebuilder:rbac:groups=batch.io,resources=cronjobs,verbs=get;watch;create",
    "// +kubebuilder:rbac:groups=batch.io,resources=cronjobs/status,verbs=get;update;patch",
    "// +kubebuilder:rbac:groups=art,resources=jobs,verbs=get",
    "// +kubebuilder:rbac:groups=wave,resources=jobs,verbs=get,namespace=zoo",
    "// +kubebuilder:rbac:groups=batch;batch;batch,resources=jobs/status,verbs=watch",
    "// +kubebuilder:rbac:groups=batch;cron,resources=jobs/status,verbs=create;get",
    "// +kubebuilder:rbac:groups=art,resources=jobs,verbs=get,namespace=zoo",
    "// +kubebuilder:rbac:groups=cron;batch,resources=jobs/status,verbs=get;create",
    "// +kubebuilder:rbac:groups=batch,resources=jobs/status,verbs=watch;watch",
    "// +kubebuilder:rbac:groups=art,resources=jobs,verbs=get,namespace=park",
    "// +kubebuilder:rbac:groups=batch.io,resources=cronjobs,resourceNames=foo;bar;baz,verbs=get;watch",
]

EXPECTED = [
    {
        "apiVersion": API_VERSION,
        "kind": "ClusterRole",
        "metadata": {"name": "manager-role"},
        "rules": [
            {"apiGroups": ["art"], "resources": ["jobs"], "verbs": ["get"]},
            {"apiGroups": ["batch"], "resources": ["jobs/status"], "verbs": ["watch"]},
            {"apiGroups": ["batch", "cron"], "resources": ["jobs/status"], "verbs": ["create", "get"]},
            {"apiGroups": ["batch.io"], "resources": ["cronjobs"], "verbs": ["create", "get", "watch"]},
            {
                "apiGroups": ["batch.io"],
                "resources": ["cronjobs"],
                "resourceNames": ["bar", "baz", "foo"],
                "verbs": ["get", "watch"],
            },
            {
                "apiGroups": ["batch.io"],
                "resources": ["cronjobs/status"],
                "verbs": ["get", "patch", "update"],
            },
        ],
    },
    {
        "apiVersion": API_VERSION,
        "kind": "Role",
        "metadata": {"name": "manager-role", "namespace": "park"},
        "rules": [{"apiGroups": ["art"], "resources": ["jobs"], "verbs": ["get"]}],
    },
    {
        "apiVersion": API_VERSION,
        "kind": "Role",
        "metadata": {"name": "manager-role", "namespace": "zoo"},
        "rules": [
            {"apiGroups": ["art"], "resources": ["jobs"], "verbs": ["get"]},
            {"apiGroups": ["wave"], "resources": ["jobs"], "verbs": ["get"]},
        ],
    },
]


def test_generates_expected_roles():
    rules = rules_from_markers(CONTROLLER_MARKERS)
    assert generate_roles(rules, "manager-role") == EXPECTED


@pytest.mark.parametrize("seed", range(5))
def test_role_order_is_stable(seed):
    rules = rules_from_markers(CONTROLLER_MARKERS)
    random.Random(seed).shuffle(rules)
    assert generate_roles(rules, "manager-role") == EXPECTED


def test_parsed_rule_fields():
    [rule] = rules_from_markers(
        ["+kubebuilder:rbac:groups=art,resources=jobs,verbs=get,namespace=zoo"]
    )
    assert rule == Rule(groups=["art"], resources=["jobs"], verbs=["get"], namespace="zoo")


def test_non_rbac_lines_are_skipped():
    rules = rules_from_markers(["// plain comment", "// +other:marker=1", "package foo"])
    assert rules == []


def test_missing_verbs_is_an_error():
    with pytest.raises(MarkerParseError):
        rules_from_markers(["+kubebuilder:rbac:groups=art,resources=jobs"])


def test_urls_argument():
    [rule] = rules_from_markers(["+kubebuilder:rbac:urls=/metrics,verbs=get"])
    assert rule.to_rule() == {"nonResourceURLs": ["/metrics"], "verbs": ["get"]}


def test_core_group_becomes_empty():
    rule = Rule(groups=["core", "apps"], resources=["pods"], verbs=["list"])
    assert rule.to_rule() == {"apiGroups": ["", "apps"], "resources": ["pods"], "verbs": ["list"]}


def test_generate_roles_does_not_mutate_input():
    rule = Rule(groups=["b", "a", "a"], verbs=["watch", "get"])
    generate_roles([rule], "r")
    assert rule.groups == ["b", "a", "a"]
    assert rule.verbs == ["watch", "get"]


def test_no_rules_no_roles():
    assert generate_roles([], "manager-role") == []


def test_roles_yaml_round_trip_and_header():
    text = roles_yaml(EXPECTED, "# Copyright YEAR\n", "2024")
    assert text.startswith("# Copyright 2024\n---\n")
    assert list(yaml.safe_load_all(text)) == EXPECTED


def test_register_markers_adds_definition_and_help():
    registry = Registry()
    Generator(role_name="manager-role").register_markers(registry)
    found = registry.lookup("+kubebuilder:rbac:groups=art,verbs=get", TargetType.PACKAGE)
    assert found is RULE_DEFINITION
    assert registry.help_for(RULE_DEFINITION).category == "RBAC"


def test_generator_writes_role_file(tmp_path):
    header = tmp_path / "header.txt"
    header.write_text("# Copyright YEAR\n")
    generator = Generator(role_name="manager-role", header_file=str(header), year="2024")
    rules = rules_from_markers(CONTROLLER_MARKERS)
    path = generator.generate(rules, tmp_path / "out")
    assert path == tmp_path / "out" / "role.yaml"
    content = path.read_text()
    assert content.startswith("# Copyright 2024\n")
    assert list(yaml.safe_load_all(content)) == EXPECTED


def test_generator_without_rules_writes_nothing(tmp_path):
    assert Generator(role_name="manager-role").generate([], tmp_path) is None
    assert not (tmp_path / "role.yaml").exists()