import io

import pytest

from ctrltools.typescaffold import Resource, ScaffoldOptions, pascalize, pluralize


def _render(opts):
    out = io.StringIO()
    opts.scaffold(out)
    return out.getvalue()


@pytest.mark.parametrize(
    "resource",
    [
        Resource(kind="Foo"),
        Resource(kind="Foo", resource="foos"),
        Resource(kind="Foo", resource="foos", namespaced=True),
    ],
    ids=["kind only", "kind and resource", "namespaced"],
)
def test_scaffold_valid_options(resource):
    opts = ScaffoldOptions(resource=resource)
    opts.validate()
    text = _render(opts)
    assert "// Foo is the Schema for the foos API\n" in text
    assert "type FooSpec struct {" in text
    assert "type FooStatus struct {" in text
    assert "+genclient" not in text


@pytest.mark.parametrize(
    "resource, message",
    [
        (Resource(kind="Foo_bats"), "camelcase"),
        (Resource(), "kind cannot be empty"),
    ],
    ids=["bad kind", "no kind"],
)
def test_invalid_options(resource, message):
    with pytest.raises(ValueError, match=message):
        ScaffoldOptions(resource=resource).validate()


def test_validate_fills_resource():
    resource = Resource(kind="Foo")
    resource.validate()
    assert resource.resource == "foos"


def test_validate_keeps_given_resource():
    resource = Resource(kind="Foo", resource="custom")
    resource.validate()
    assert resource.resource == "custom"


def test_exact_layout_without_help():
    opts = ScaffoldOptions(resource=Resource(kind="Foo", resource="foos"))
    text = _render(opts)
    assert text.startswith(
        "// FooSpec defines the desired state of Foo\n"
        "type FooSpec struct {\n"
        "\t// INSERT ADDITIONAL SPEC FIELDS -- desired state of cluster\n"
        "}\n\n"
    )
    assert (
        "// +k8s:deepcopy-gen:interfaces=k8s.io/apimachinery/pkg/runtime.Object\n\n"
        "// Foo is the Schema for the foos API\n"
    ) in text
    assert text.endswith(
        "type FooList struct {\n"
        '\tmetav1.TypeMeta `json:",inline"`\n'
        '\tmetav1.ListMeta `json:"metadata,omitempty"`\n'
        '\tItems           []Foo `json:"items"`\n'
        "}\n"
    )


def test_additional_help_lines():
    opts = ScaffoldOptions(
        resource=Resource(kind="Foo", resource="foos"),
        additional_help="line one\nline two",
    )
    text = _render(opts)
    assert text.count("\t// line one\n\t// line two\n}") == 2


def test_clients_for_cluster_scoped_resource():
    opts = ScaffoldOptions(resource=Resource(kind="Foo", resource="foos"), generate_clients=True)
    text = _render(opts)
    assert "runtime.Object\n// +genclient\n// +genclient:nonNamespaced\n\n// Foo is" in text
    assert text.count("// +genclient:nonNamespaced") == 2


def test_clients_for_namespaced_resource():
    opts = ScaffoldOptions(
        resource=Resource(kind="Foo", resource="foos", namespaced=True),
        generate_clients=True,
    )
    text = _render(opts)
    assert "// +genclient\n" in text
    assert "nonNamespaced" not in text


@pytest.mark.parametrize(
    "word, plural",
    [("foo", "foos"), ("policy", "policies"), ("key", "keys"), ("class", "classes"), ("person", "people")],
)
def test_pluralize(word, plural):
    assert pluralize(word) == plural


@pytest.mark.parametrize(
    "word, pascal",
    [("Foo", "Foo"), ("Foo_bats", "FooBats"), ("cron_job", "CronJob"), ("api_service", "APIService")],
)
def test_pascalize(word, pascal):
    assert pascalize(word) == pascal