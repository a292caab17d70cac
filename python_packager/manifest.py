"""JSON manifests describing a Python distribution's contents.

A manifest is the hand-off point between whatever inspects a distribution and
the packaging policy. It describes resources, not their payloads::

    {
      "resources": [
        {"kind": "module-source", "name": "json", "is_package": true},
        {"kind": "resource", "leaf_package": "idlelib", "relative_name": "Icons/idle.png"}
      ],
      "extension_modules": [
        {"name": "_ssl", "variant": "default", "is_stdlib": true,
         "link_libraries": [{"name": "ssl"}, {"name": "crypto"}],
         "licenses": ["OpenSSL"]}
      ]
    }

Extension module entries sharing a ``name`` become one group of variants, in
first-seen order.
"""

from dataclasses import MISSING, fields
import json
import pathlib
from typing import Any

from python_packager.packager import PackagingPlan
from python_packager.policy import ResourcePlacementPolicy
from python_packager.resource import (
    LibraryDependency,
    PythonExtensionModule,
    PythonExtensionModuleVariants,
    PythonResource,
    ResourceError,
    ResourceKind,
    RESOURCE_TYPES,
)


class ManifestError(ValueError):
    """Raised when a manifest is malformed."""


# Field types as they appear in manifests. Payloads are carried as text.
_STR_FIELDS: frozenset[str] = frozenset(
    {"name", "source", "leaf_package", "relative_name", "package", "version"}
)
_OPTIONAL_STR_FIELDS: frozenset[str] = frozenset({"init_fn", "variant"})
_BOOL_FIELDS: frozenset[str] = frozenset(
    {"is_package", "is_test", "is_stdlib", "builtin_default", "required"}
)
_BYTES_FIELDS: frozenset[str] = frozenset({"bytecode", "data"})


def load_manifest(path: pathlib.Path) -> tuple[list[PythonResource], list[PythonExtensionModuleVariants]]:
    """Load a manifest file.

    :param path: Path to a JSON manifest.
    :returns: Resources and extension module variant groups.
    :raises ManifestError: If the file cannot be read or is malformed.
    """

    try:
        text: str = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ManifestError(f"Could not read manifest {path}: {e}") from e

    try:
        doc: Any = json.loads(text)
    except json.JSONDecodeError as e:
        raise ManifestError(f"Manifest {path} is not valid JSON: {e}") from e

    return parse_manifest(doc)


def parse_manifest(doc: Any) -> tuple[list[PythonResource], list[PythonExtensionModuleVariants]]:
    """Convert decoded manifest JSON into resources and variant groups.

    :param doc: Decoded JSON document.
    :returns: Resources and extension module variant groups.
    :raises ManifestError: If the document is malformed.
    """

    if isinstance(doc, dict) is False:
        raise ManifestError("Manifest must be a JSON object.")
    unknown: set[str] = set(doc) - {"resources", "extension_modules"}
    if unknown:
        raise ManifestError(f"Unknown manifest keys: {sorted(unknown)}")

    resources: list[PythonResource] = [
        _parse_resource(entry, index) for index, entry in enumerate(_as_list(doc, "resources"))
    ]

    groups: dict[str, PythonExtensionModuleVariants] = {}
    for index, entry in enumerate(_as_list(doc, "extension_modules")):
        em: PythonExtensionModule = _build(PythonExtensionModule, entry, f"extension_modules[{index}]")
        groups.setdefault(em.name, PythonExtensionModuleVariants()).append(em)

    return resources, list(groups.values())


def dump_plan(plan: PackagingPlan) -> dict[str, Any]:
    """Render a packaging plan as JSON-compatible data.

    :param plan: Resolved packaging plan.
    :returns: A dict suitable for :func:`json.dumps`.
    """

    placement: ResourcePlacementPolicy = plan.resource_placement_policy
    return {
        "target_triple": plan.target_triple,
        "resources_policy": str(placement),
        "resources_location": {
            "in_memory": placement.allows_in_memory,
            "filesystem_relative": placement.allows_filesystem_relative,
            "filesystem_prefix": placement.filesystem_prefix,
        },
        "resources": [{"kind": r.kind.value, "name": r.name} for r in plan.resources],
        "excluded_resource_count": plan.excluded_resource_count,
        "extension_modules": [
            {
                "name": em.name,
                "variant": em.variant,
                "link_libraries": [lib.name for lib in em.link_libraries],
                "licenses": list(em.licenses) if em.licenses is not None else None,
            }
            for em in plan.extension_modules
        ],
    }


def _as_list(doc: dict[str, Any], key: str) -> list[Any]:
    value: Any = doc.get(key, [])
    if isinstance(value, list) is False:
        raise ManifestError(f"Manifest key {key!r} must be a list.")
    return value


def _parse_resource(entry: Any, index: int) -> PythonResource:
    """Parse one entry of the ``resources`` list.

    :param entry: Decoded JSON object with a ``kind`` key.
    :param index: Position of the entry, for error messages.
    :returns: Tagged resource.
    :raises ManifestError: If the entry is malformed.
    """

    where: str = f"resources[{index}]"
    if isinstance(entry, dict) is False or "kind" not in entry:
        raise ManifestError(f"{where} must be an object with a 'kind' key.")

    body: dict[str, Any] = dict(entry)
    kind_text: Any = body.pop("kind")
    try:
        kind: ResourceKind = ResourceKind(kind_text)
    except ValueError as e:
        raise ManifestError(f"{where} has unknown kind {kind_text!r}.") from e

    value: Any = _build(RESOURCE_TYPES[kind], body, where)
    try:
        return PythonResource(kind, value)
    except ResourceError as e:
        raise ManifestError(f"{where}: {e}") from e


def _build(cls: type, entry: Any, where: str) -> Any:
    """Instantiate a resource dataclass from a JSON object.

    :param cls: Resource dataclass.
    :param entry: Decoded JSON object.
    :param where: Location of the entry, for error messages.
    :returns: Instance of ``cls``.
    :raises ManifestError: On unknown, missing or mistyped fields.
    """

    if isinstance(entry, dict) is False:
        raise ManifestError(f"{where} must be an object.")

    known: dict[str, Any] = {f.name: f for f in fields(cls)}
    unknown: set[str] = set(entry) - set(known)
    if unknown:
        raise ManifestError(f"{where} has unknown fields for {cls.__name__}: {sorted(unknown)}")
    missing: list[str] = [
        name
        for name, f in known.items()
        if f.default is MISSING and f.default_factory is MISSING and name not in entry
    ]
    if missing:
        raise ManifestError(f"{where} is missing fields for {cls.__name__}: {missing}")

    kwargs: dict[str, Any] = {}
    for key, value in entry.items():
        kwargs[key] = _convert_field(key, value, f"{where}.{key}")
    return cls(**kwargs)


def _convert_field(key: str, value: Any, where: str) -> Any:
    """Check a field's JSON type and convert it to the dataclass representation.

    :param key: Field name.
    :param value: Decoded JSON value.
    :param where: Location of the field, for error messages.
    :returns: Converted value.
    :raises ManifestError: If the value has the wrong type.
    """

    if key in _STR_FIELDS:
        if isinstance(value, str) is False:
            raise ManifestError(f"{where} must be a string.")
        return value
    if key in _OPTIONAL_STR_FIELDS:
        if value is not None and isinstance(value, str) is False:
            raise ManifestError(f"{where} must be a string or null.")
        return value
    if key in _BOOL_FIELDS:
        if isinstance(value, bool) is False:
            raise ManifestError(f"{where} must be true or false.")
        return value
    if key == "license_public_domain":
        if value is not None and isinstance(value, bool) is False:
            raise ManifestError(f"{where} must be true, false or null.")
        return value
    if key == "optimize_level":
        if isinstance(value, bool) is True or value not in (0, 1, 2):
            raise ManifestError(f"{where} must be 0, 1 or 2.")
        return value
    if key in _BYTES_FIELDS:
        if isinstance(value, str) is False:
            raise ManifestError(f"{where} must be a string.")
        return value.encode("utf-8")
    if key == "shared_library":
        if value is None:
            return None
        if isinstance(value, str) is False:
            raise ManifestError(f"{where} must be a string or null.")
        return value.encode("utf-8")
    if key == "object_file_data":
        return tuple(v.encode("utf-8") for v in _str_list(value, where))
    if key == "licenses":
        if value is None:
            return None
        return tuple(_str_list(value, where))
    if key == "link_libraries":
        if isinstance(value, list) is False:
            raise ManifestError(f"{where} must be a list.")
        return tuple(_parse_library(lib, f"{where}[{i}]") for i, lib in enumerate(value))
    raise AssertionError(f"Unhandled manifest field: {key}")


def _str_list(value: Any, where: str) -> list[str]:
    if isinstance(value, list) is False or any(isinstance(v, str) is False for v in value):
        raise ManifestError(f"{where} must be a list of strings.")
    return value


def _parse_library(lib: Any, where: str) -> LibraryDependency:
    # A bare string is shorthand for {"name": ...}.
    if isinstance(lib, str):
        return LibraryDependency(name=lib)
    if isinstance(lib, dict) is False or set(lib) - {"name", "framework", "system"}:
        raise ManifestError(f"{where} must be a name or an object with name/framework/system.")
    if "name" not in lib:
        raise ManifestError(f"{where} is missing 'name'.")
    if isinstance(lib["name"], str) is False:
        raise ManifestError(f"{where}.name must be a string.")
    for flag in ("framework", "system"):
        if isinstance(lib.get(flag, False), bool) is False:
            raise ManifestError(f"{where}.{flag} must be true or false.")
    return LibraryDependency(
        name=lib["name"],
        framework=lib.get("framework", False),
        system=lib.get("system", False),
    )
