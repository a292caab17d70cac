"""Python resource types.

These types describe the pieces of a Python distribution that can end up in
an assembled binary. They are produced by whatever discovers a distribution's
contents and are consumed (never mutated) by :mod:`python_packager.policy`.
"""

from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass
import enum


class ResourceError(ValueError):
    """Raised when resource data is malformed."""


@dataclass(frozen=True, slots=True)
class PythonModuleSource:
    """Python module source code.

    :ivar name: Fully qualified module name.
    :ivar source: Module source text.
    :ivar is_package: Whether the module is a package.
    :ivar is_test: Whether the module is part of a test suite.
    """

    name: str
    source: str = ""
    is_package: bool = False
    is_test: bool = False


@dataclass(frozen=True, slots=True)
class PythonModuleBytecodeRequest:
    """A request to compile module source into bytecode.

    :ivar name: Fully qualified module name.
    :ivar source: Module source text to compile.
    :ivar optimize_level: Optimization level passed to the compiler (0, 1 or 2).
    :ivar is_package: Whether the module is a package.
    :ivar is_test: Whether the module is part of a test suite.
    """

    name: str
    source: str = ""
    optimize_level: int = 0
    is_package: bool = False
    is_test: bool = False


@dataclass(frozen=True, slots=True)
class PythonModuleBytecode:
    """Already compiled module bytecode."""

    name: str
    bytecode: bytes = b""
    optimize_level: int = 0
    is_package: bool = False
    is_test: bool = False


@dataclass(frozen=True, slots=True)
class PythonPackageResource:
    """A non-module file living inside a Python package.

    :ivar leaf_package: Package the resource belongs to.
    :ivar relative_name: Path of the resource relative to the package.
    :ivar data: Resource content.
    :ivar is_test: Whether the resource belongs to a test package.
    """

    leaf_package: str
    relative_name: str
    data: bytes = b""
    is_test: bool = False

    @property
    def name(self) -> str:
        return f"{self.leaf_package}:{self.relative_name}"


@dataclass(frozen=True, slots=True)
class PythonPackageDistributionResource:
    """A file from a package's ``.dist-info`` or ``.egg-info`` directory."""

    package: str
    version: str
    name: str
    data: bytes = b""


@dataclass(frozen=True, slots=True)
class LibraryDependency:
    """A library an extension module links against.

    :ivar name: Library name (e.g. ``ssl``).
    :ivar static_library: Static library content, if available.
    :ivar dynamic_library: Shared library content, if available.
    :ivar framework: Whether this is an Apple framework.
    :ivar system: Whether the library is provided by the operating system.
    """

    name: str
    static_library: bytes | None = None
    dynamic_library: bytes | None = None
    framework: bool = False
    system: bool = False


@dataclass(frozen=True, slots=True)
class PythonExtensionModule:
    """A native extension module.

    Several instances may share a ``name`` and differ by ``variant``: one may
    link a system library, another may be self-contained.

    :ivar name: Module name.
    :ivar init_fn: Name of the module initialization function.
    :ivar variant: Name of this implementation among its siblings.
    :ivar is_package: Whether the module is a package.
    :ivar is_stdlib: Whether the module is part of the standard library.
    :ivar builtin_default: Whether the distribution compiles it into the interpreter by default.
    :ivar required: Whether the interpreter cannot initialize without it.
    :ivar shared_library: Shared library content when built as a loadable module.
    :ivar object_file_data: Object files when built for static linking.
    :ivar link_libraries: Libraries the module links against.
    :ivar licenses: SPDX identifiers of the linked libraries, when known.
    :ivar license_public_domain: Whether the linked libraries are public domain, when known.
    """

    name: str
    init_fn: str | None = None
    variant: str | None = None
    is_package: bool = False
    is_stdlib: bool = False
    builtin_default: bool = False
    required: bool = False
    shared_library: bytes | None = None
    object_file_data: tuple[bytes, ...] = ()
    link_libraries: tuple[LibraryDependency, ...] = ()
    licenses: tuple[str, ...] | None = None
    license_public_domain: bool | None = None

    def is_minimally_required(self) -> bool:
        """Whether a functional interpreter needs this extension module."""

        return self.is_stdlib is True and (self.builtin_default is True or self.required is True)

    def requires_libraries(self) -> bool:
        """Whether this extension module links against any external library."""

        return len(self.link_libraries) > 0


@dataclass(frozen=True, slots=True)
class PythonPathExtension:
    """A ``.pth`` file."""

    name: str
    data: bytes = b""


@dataclass(frozen=True, slots=True)
class PythonEggFile:
    """A ``.egg`` archive."""

    name: str
    data: bytes = b""


class ResourceKind(enum.Enum):
    """The kinds of resources a distribution can contain."""

    MODULE_SOURCE = "module-source"
    MODULE_BYTECODE_REQUEST = "module-bytecode-request"
    MODULE_BYTECODE = "module-bytecode"
    RESOURCE = "resource"
    DISTRIBUTION_RESOURCE = "distribution-resource"
    EXTENSION_MODULE_DYNAMIC_LIBRARY = "extension-module-dynamic-library"
    EXTENSION_MODULE_STATICALLY_LINKED = "extension-module-statically-linked"
    PATH_EXTENSION = "path-extension"
    EGG_FILE = "egg-file"


RESOURCE_TYPES: dict[ResourceKind, type] = {
    ResourceKind.MODULE_SOURCE: PythonModuleSource,
    ResourceKind.MODULE_BYTECODE_REQUEST: PythonModuleBytecodeRequest,
    ResourceKind.MODULE_BYTECODE: PythonModuleBytecode,
    ResourceKind.RESOURCE: PythonPackageResource,
    ResourceKind.DISTRIBUTION_RESOURCE: PythonPackageDistributionResource,
    ResourceKind.EXTENSION_MODULE_DYNAMIC_LIBRARY: PythonExtensionModule,
    ResourceKind.EXTENSION_MODULE_STATICALLY_LINKED: PythonExtensionModule,
    ResourceKind.PATH_EXTENSION: PythonPathExtension,
    ResourceKind.EGG_FILE: PythonEggFile,
}


@dataclass(frozen=True, slots=True)
class PythonResource:
    """A tagged resource.

    :ivar kind: Resource kind.
    :ivar value: The resource itself; its type is determined by ``kind``.
    """

    kind: ResourceKind
    value: (
        PythonModuleSource
        | PythonModuleBytecodeRequest
        | PythonModuleBytecode
        | PythonPackageResource
        | PythonPackageDistributionResource
        | PythonExtensionModule
        | PythonPathExtension
        | PythonEggFile
    )

    def __post_init__(self) -> None:
        expected: type = RESOURCE_TYPES[self.kind]
        if isinstance(self.value, expected) is False:
            raise ResourceError(
                f"{self.kind.value} resource must wrap {expected.__name__}, "
                f"got {type(self.value).__name__}"
            )

    @property
    def name(self) -> str:
        return self.value.name

    @property
    def is_test(self) -> bool:
        """The resource's test flag; ``False`` for kinds without one."""

        return getattr(self.value, "is_test", False)


class PythonExtensionModuleVariants:
    """Interchangeable implementations of a single extension module.

    Variants keep insertion order. The first variant added is the default.
    """

    __slots__ = ("_variants",)

    def __init__(self, variants: Iterable[PythonExtensionModule] = ()) -> None:
        self._variants: list[PythonExtensionModule] = []
        for em in variants:
            self.append(em)

    def append(self, em: PythonExtensionModule) -> None:
        """Add a variant.

        :param em: Extension module variant.
        :raises ResourceError: If the variant's name differs from the group's.
        """

        if self._variants and em.name != self._variants[0].name:
            raise ResourceError(
                f"cannot add extension module {em.name!r} to variants of {self._variants[0].name!r}"
            )
        self._variants.append(em)

    def __iter__(self) -> Iterator[PythonExtensionModule]:
        return iter(self._variants)

    def __len__(self) -> int:
        return len(self._variants)

    def __repr__(self) -> str:
        return f"PythonExtensionModuleVariants({self._variants!r})"

    def is_empty(self) -> bool:
        return len(self._variants) == 0

    @property
    def name(self) -> str:
        return self.default_variant().name

    def default_variant(self) -> PythonExtensionModule:
        """Obtain the default variant.

        :returns: The first variant added.
        :raises LookupError: If the group is empty.
        """

        if not self._variants:
            raise LookupError("extension module variants are empty")
        return self._variants[0]

    def filter(self, predicate: Callable[[PythonExtensionModule], bool]) -> "PythonExtensionModuleVariants":
        """Obtain a new group holding the variants matching ``predicate``."""

        return PythonExtensionModuleVariants(em for em in self._variants if predicate(em) is True)

    def choose_variant(self, preferred: Mapping[str, str]) -> PythonExtensionModule:
        """Choose a single variant.

        :param preferred: Mapping of extension module name to preferred variant name.
        :returns: The first variant whose ``variant`` matches the preference for this
            module, or the default variant if there is no preference or it is absent.
        :raises LookupError: If the group is empty.
        """

        chosen: PythonExtensionModule = self.default_variant()
        wanted: str | None = preferred.get(chosen.name)
        if wanted is not None:
            for em in self._variants:
                if em.variant == wanted:
                    return em
        return chosen
