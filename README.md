# ctrltools

A library for working with Kubernetes-style API definitions:

- **Marker parsing**: turn structured comments of the form
  `+path:to:marker:arg=val,other=val` into Python values.
- **RBAC roles**: turn `+kubebuilder:rbac:...` markers into `ClusterRole`
  and `Role` manifests.
- **CRD schema patching**: write new OpenAPI schemata into existing
  CustomResourceDefinition YAML files. Key order and scalar styles are kept.
- **Type scaffolding**: emit the boilerplate `Kind`, `KindSpec`,
  `KindStatus` and `KindList` type declarations for a new resource.

The package depends only on PyYAML.

## Markers

A marker is text that starts with `+`. For example:

```
+kubebuilder:rbac:groups=apps,resources=deployments,verbs=get;list;watch
+testing:multi:segment=42
+testing:empty
```

An argument can be any of these:

- an integer or a number
- a boolean (`true` or `false`)
- a string: double-quoted, raw in backticks, or bare up to the next `,`, `;`, `:` or `}`
- a slice: `a;b;c` or `{a, b, c}`
- a map: `{key: val, other: val}`

### Modules

- **`ctrltools.scanner`**
  - `Scanner` is a small tokenizer. `parser_scanner(raw, on_error)` gives one that is set up for marker arguments.
  - Errors go to the `on_error` callback. Without a callback, the scanner raises `ScannerError`, which carries the message and a `Position`.
- **`ctrltools.arguments`**
  - `Argument` and `ArgumentType` describe the type of one argument.
  - `Argument.parse(scanner, raw)` reads one value from a scanner.
  - `Argument.type_string()` gives a readable name for the type.
  - `guess_type` infers the type of an untyped (`ANY`) argument.
  - `argument_from_type` builds an `Argument` from a Python type: `str`, `int`, `float`, `bool`, `list[X]`, `dict[str, X]`, `Optional[X]`, `typing.Any`/`object` or `RawArguments`.
  - A marker whose output type is `RawArguments` receives its argument text unparsed.
- **`ctrltools.definitions`**
  - `make_definition(name, target, output)` builds a strict `Definition` from an output type. The output may be a dataclass, which gets one argument per public field, or a plain type such as `str` or `int`, which gets a single unnamed argument.
  - In a dataclass, `marker_field(name=..., optional=..., default=...)` renames an argument or marks it optional. Argument names default to the lower camelCase form of the field name, so `resource_names` is written `resourceNames`.
  - `make_any_type_definition` builds a definition whose single unnamed argument fills the `value` field.
  - `Definition.parse(raw_marker)` returns the parsed value. If anything is wrong, it raises `MarkerParseError`, whose `errors` attribute lists every problem and whose `value` attribute holds whatever could still be built.
  - `split_marker` splits a raw marker into its name, its full name and its argument text.
  - `TargetType` (`PACKAGE`, `TYPE`, `FIELD`) says what a marker describes.
- **`ctrltools.registry`**
  - `Registry` holds definitions by target and is thread-safe.
  - Add definitions with `Registry.define` (which returns the new definition), `Registry.register` or `register_all`. `Registry.register` raises `ValueError` for an unknown target.
  - `Registry.lookup(marker_text, target)` finds the definition for a raw marker. It tries the full name, such as `a:b:c`, before the struct name, such as `a:b`.
  - `Registry.all_definitions()` lists every definition: package ones first, then type, then field.
- **`ctrltools.help`**
  - `DefinitionHelp` and `DetailedHelp` hold help text. `simple_help` and `deprecated_help` build them.
  - Attach help with `Registry.add_help` and read it back with `Registry.help_for`.
  - `DefinitionHelp.fields_help(definition)` maps per-field help onto argument names.

```python
from dataclasses import dataclass
from ctrltools.definitions import TargetType, marker_field
from ctrltools.registry import Registry

@dataclass
class Example:
    name: str
    count: int = marker_field(optional=True, default=0)

reg = Registry()
reg.define("example:marker", TargetType.PACKAGE, Example)
raw = "+example:marker:name=foo,count=3"
print(reg.lookup(raw, TargetType.PACKAGE).parse(raw))  # Example(name='foo', count=3)
```

## RBAC roles

`ctrltools.rbac` generates RBAC manifests from rules.

- **`Rule`** is the value of a `+kubebuilder:rbac` marker. `RULE_DEFINITION` is its marker definition.
- **`rules_from_markers(lines)`** parses rules from marker lines.
  - A line may be a `//` comment or a bare `+...` marker.
  - Lines that are not RBAC markers are skipped.
  - A malformed RBAC marker raises `MarkerParseError`.
- **`generate_roles(rules, role_name)`** builds the role objects as plain dictionaries.
  - It removes duplicates from each rule's lists and sorts them.
  - It merges rules that cover the same groups, resources, resource names and URLs, uniting their verbs.
  - It puts the rules in a stable order.
  - It produces one `ClusterRole` for rules without a namespace and one `Role` per namespace, ordered by namespace.
  - A group written `core` becomes the empty group.
- **`roles_yaml(objects, header_text, year)`** renders the objects as a multi-document YAML stream. Every ` YEAR` in the header is replaced by the year.
- **`Generator(role_name, header_file, year)`** ties these together.
  - `generate(rules, output_dir)` writes `role.yaml` and returns its path. It returns `None` when there is nothing to write.
  - `register_markers(registry)` registers the rule marker and its help.

## CRD schema patching

`ctrltools.schemapatcher` updates the schemata of existing CRD manifests.

- **`crds_from_directory(directory)`** loads every `apiextensions.k8s.io/v1` CustomResourceDefinition from the `*.yaml` files in a directory, grouped by `GroupKind`.
  - Files that are not CRDs, or are not valid YAML, are skipped.
  - A CRD with another apiextensions version raises `ValueError`.
- **`patch_crds(manifests_path, schemata, output_dir)`** patches the manifests and writes the results to `output_dir`. It returns the paths written.
  - `schemata` maps a `GroupKind` to new schemata by version.
  - Each version already present in a manifest gets its new `openAPIV3Schema`.
  - A version without a new schema loses its schema.
  - `spec.validation` is removed.
  - A top-level `metadata` property is reduced to `{"type": "object"}`.
  - The rest of the file keeps its key order and scalar styles. YAML comments are not preserved.
- **`PartialCRD`** and **`PartialCRDSet`** expose the same steps one at a time.

The node-level YAML helpers are in `ctrltools.yamlops`:

- `load_node` and `dump_node` read and write YAML text.
- `to_yaml` converts an object to a node.
- `get_node` returns `None` for a missing path.
- `set_node` creates mappings along the way and returns the root.
- `delete_node` does nothing for a missing path.
- `value_in_mapping` and `set_style` are also available.

## Type scaffolding

`ctrltools.typescaffold.ScaffoldOptions` holds three things:

- a `Resource`: its kind, its plural resource name, and whether it is namespaced
- optional extra help text
- a flag for client-generation markers

`validate()` fills in the plural resource name when it is missing. It raises `ValueError` for a kind that is empty or not PascalCase.

`scaffold(out)` writes the type declarations to a text stream.

`pluralize` and `pascalize` can also be used on their own.

## Version

`ctrltools.version.version()` returns the installed package version, or `(unknown)` when it cannot be found.

`print_version()` writes `Version: <version>` to standard output and returns the line.

## What this package does not do

- It does not read source files to collect markers or tie them to types and fields. You pass marker text in yourself.
- It does not derive CRD schemata from type declarations. `patch_crds` takes the new schemata as input.
- It has no command-line tool. Everything is used as a library.