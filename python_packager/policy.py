"""Packaging policy.

A :class:`PackagingPolicy` decides which resources of a Python distribution
are embedded into a binary and which variant of each extension module is
used. Callers configure a policy with its setters, then evaluate it:

- :meth:`PackagingPolicy.include` answers, per resource, whether it is kept.
- :meth:`PackagingPolicy.resolve_extension_modules` selects extension module
  variants for one target triple.

Extension modules are never accepted by :meth:`~PackagingPolicy.include`;
picking a variant needs the whole group of siblings, not a single item.
"""

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
import enum
import logging

from python_packager.licensing import NON_GPL_LICENSES
from python_packager.resource import (
    PythonExtensionModule,
    PythonExtensionModuleVariants,
    PythonResource,
    ResourceKind,
)


class PolicyError(ValueError):
    """Base class for invalid policy configuration values.

    :ivar value: The rejected text.
    """

    def __init__(self, message: str, value: str) -> None:
        super().__init__(message)
        self.value: str = value


class InvalidPolicyValue(PolicyError):
    """Raised when a resource placement policy string is not recognized."""

    def __init__(self, value: str) -> None:
        super().__init__(f"invalid value for Python resources policy: {value}", value)


class InvalidFilterValue(PolicyError):
    """Raised when an extension module filter string is not recognized."""

    def __init__(self, value: str) -> None:
        super().__init__(f"{value} is not a valid extension module filter", value)


class ResourcePlacementKind(enum.Enum):
    """Where resources may be loaded from at run time."""

    IN_MEMORY_ONLY = "in-memory-only"
    FILESYSTEM_RELATIVE_ONLY = "filesystem-relative-only"
    PREFER_IN_MEMORY_FALLBACK_FILESYSTEM_RELATIVE = "prefer-in-memory-fallback-filesystem-relative"


@dataclass(frozen=True, slots=True)
class ResourcePlacementPolicy:
    """Describes where Python resources are loaded from.

    :ivar kind: Placement kind.
    :ivar prefix: Path prefix, relative to the binary, to install resources into.
        ``None`` for in-memory only; a (possibly empty) string otherwise. The
        prefix is opaque and not checked for filesystem legality.
    """

    kind: ResourcePlacementKind
    prefix: str | None = None

    def __post_init__(self) -> None:
        if self.kind is ResourcePlacementKind.IN_MEMORY_ONLY:
            if self.prefix is not None:
                raise InvalidPolicyValue(f"{self.kind.value}:{self.prefix}")
        elif self.prefix is None:
            raise InvalidPolicyValue(self.kind.value)

    @classmethod
    def in_memory_only(cls) -> "ResourcePlacementPolicy":
        return cls(ResourcePlacementKind.IN_MEMORY_ONLY)

    @classmethod
    def filesystem_relative_only(cls, prefix: str) -> "ResourcePlacementPolicy":
        return cls(ResourcePlacementKind.FILESYSTEM_RELATIVE_ONLY, prefix)

    @classmethod
    def prefer_in_memory_fallback_filesystem_relative(cls, prefix: str) -> "ResourcePlacementPolicy":
        return cls(ResourcePlacementKind.PREFER_IN_MEMORY_FALLBACK_FILESYSTEM_RELATIVE, prefix)

    @classmethod
    def parse(cls, value: str) -> "ResourcePlacementPolicy":
        """Parse the textual form of a placement policy.

        :param value: ``in-memory-only``, ``filesystem-relative-only:<prefix>`` or
            ``prefer-in-memory-fallback-filesystem-relative:<prefix>``.
        :returns: The parsed policy.
        :raises InvalidPolicyValue: If ``value`` matches none of the forms.
        """

        if value == ResourcePlacementKind.IN_MEMORY_ONLY.value:
            return cls.in_memory_only()

        for kind in (
            ResourcePlacementKind.FILESYSTEM_RELATIVE_ONLY,
            ResourcePlacementKind.PREFER_IN_MEMORY_FALLBACK_FILESYSTEM_RELATIVE,
        ):
            marker: str = f"{kind.value}:"
            if value.startswith(marker) is True:
                return cls(kind, value[len(marker):])

        raise InvalidPolicyValue(value)

    def format(self) -> str:
        """Render the textual form accepted by :meth:`parse`."""

        if self.kind is ResourcePlacementKind.IN_MEMORY_ONLY:
            return self.kind.value
        if self.kind is ResourcePlacementKind.FILESYSTEM_RELATIVE_ONLY:
            return f"{self.kind.value}:{self.prefix}"
        if self.kind is ResourcePlacementKind.PREFER_IN_MEMORY_FALLBACK_FILESYSTEM_RELATIVE:
            return f"{self.kind.value}:{self.prefix}"
        raise AssertionError(f"Unhandled resource placement kind: {self.kind}")

    def __str__(self) -> str:
        return self.format()

    @property
    def allows_in_memory(self) -> bool:
        return self.kind is not ResourcePlacementKind.FILESYSTEM_RELATIVE_ONLY

    @property
    def allows_filesystem_relative(self) -> bool:
        return self.kind is not ResourcePlacementKind.IN_MEMORY_ONLY

    @property
    def filesystem_prefix(self) -> str | None:
        return self.prefix


class ExtensionSelectionStrategy(enum.Enum):
    """How aggressively extension modules are included."""

    # Only extension modules required for the interpreter to work.
    MINIMAL = "minimal"
    ALL = "all"
    # Everything except extensions linking external libraries.
    NO_LIBRARIES = "no-libraries"
    # Everything except extensions linking libraries under copyleft licenses.
    NO_GPL = "no-gpl"

    @classmethod
    def parse(cls, value: str) -> "ExtensionSelectionStrategy":
        """Parse an extension module filter name.

        :param value: One of ``minimal``, ``all``, ``no-libraries``, ``no-gpl``.
        :returns: The strategy.
        :raises InvalidFilterValue: If ``value`` is not a known filter.
        """

        for strategy in cls:
            if strategy.value == value:
                return strategy
        raise InvalidFilterValue(value)

    def __str__(self) -> str:
        return self.value


def extension_module_is_gpl_safe(
    em: PythonExtensionModule,
    non_gpl_licenses: frozenset[str] = NON_GPL_LICENSES,
) -> bool:
    """Whether an extension module is admitted when excluding copyleft code.

    Rules are evaluated in order; the first that applies decides.

    :param em: Extension module variant.
    :param non_gpl_licenses: SPDX identifiers known not to be copyleft.
    :returns: ``True`` if the module may be included.
    """

    if em.requires_libraries() is False:
        return True
    # Public domain wins over whatever licenses are listed.
    if em.license_public_domain is True:
        return True
    if em.licenses is not None:
        # Allow list, so newly seen GPL variants cannot slip through.
        return all(license_ in non_gpl_licenses for license_ in em.licenses)
    # No evidence it isn't GPL: assume it is.
    return False


class PackagingPolicy:
    """Defines how Python resources should be packaged.

    The policy owns its toggles and maps. It never modifies the resources or
    variant groups it evaluates, and keeps no state between evaluations.
    """

    def __init__(self, *, non_gpl_licenses: frozenset[str] = NON_GPL_LICENSES) -> None:
        self._extension_selection_strategy: ExtensionSelectionStrategy = ExtensionSelectionStrategy.ALL
        self._preferred_variants: dict[str, str] = {}
        self._resource_placement_policy: ResourcePlacementPolicy = ResourcePlacementPolicy.in_memory_only()
        self._include_distribution_sources: bool = True
        self._include_distribution_resources: bool = False
        self._include_test_resources: bool = False
        # Target triple -> extensions that don't work there.
        self._broken_extensions: dict[str, list[str]] = {}
        self._non_gpl_licenses: frozenset[str] = non_gpl_licenses

    def __repr__(self) -> str:
        return (
            "PackagingPolicy("
            f"extension_selection_strategy={self._extension_selection_strategy}, "
            f"resource_placement_policy={self._resource_placement_policy}, "
            f"include_distribution_sources={self._include_distribution_sources}, "
            f"include_distribution_resources={self._include_distribution_resources}, "
            f"include_test_resources={self._include_test_resources}, "
            f"preferred_variants={self._preferred_variants!r}, "
            f"broken_extensions={self._broken_extensions!r})"
        )

    def copy(self) -> "PackagingPolicy":
        """Obtain an independent copy of this policy."""

        other: PackagingPolicy = PackagingPolicy(non_gpl_licenses=self._non_gpl_licenses)
        other._extension_selection_strategy = self._extension_selection_strategy
        other._preferred_variants = dict(self._preferred_variants)
        other._resource_placement_policy = self._resource_placement_policy
        other._include_distribution_sources = self._include_distribution_sources
        other._include_distribution_resources = self._include_distribution_resources
        other._include_test_resources = self._include_test_resources
        other._broken_extensions = {k: list(v) for k, v in self._broken_extensions.items()}
        return other

    @property
    def extension_selection_strategy(self) -> ExtensionSelectionStrategy:
        return self._extension_selection_strategy

    @property
    def preferred_variants(self) -> dict[str, str]:
        """A copy of the extension name to preferred variant name mapping."""

        return dict(self._preferred_variants)

    @property
    def resource_placement_policy(self) -> ResourcePlacementPolicy:
        return self._resource_placement_policy

    @property
    def include_distribution_sources(self) -> bool:
        return self._include_distribution_sources

    @property
    def include_distribution_resources(self) -> bool:
        return self._include_distribution_resources

    @property
    def include_test_resources(self) -> bool:
        return self._include_test_resources

    @property
    def broken_extensions(self) -> dict[str, list[str]]:
        """A copy of the target triple to broken extension names mapping."""

        return {k: list(v) for k, v in self._broken_extensions.items()}

    @property
    def non_gpl_licenses(self) -> frozenset[str]:
        return self._non_gpl_licenses

    def set_extension_selection_strategy(self, strategy: ExtensionSelectionStrategy) -> None:
        self._extension_selection_strategy = strategy

    def set_preferred_variant(self, extension: str, variant: str) -> None:
        """Denote the preferred variant of an extension module.

        The named variant is chosen whenever it is among the candidates.
        Replaces any earlier preference for ``extension``.
        """

        self._preferred_variants[extension] = variant

    def set_resource_placement_policy(self, policy: ResourcePlacementPolicy) -> None:
        self._resource_placement_policy = policy

    def set_include_distribution_sources(self, include: bool) -> None:
        self._include_distribution_sources = include

    def set_include_distribution_resources(self, include: bool) -> None:
        self._include_distribution_resources = include

    def set_include_test_resources(self, include: bool) -> None:
        self._include_test_resources = include

    def register_broken_extension(self, target_triple: str, extension: str) -> None:
        """Mark an extension as broken on a target, preventing it from being selected.

        Registering the same extension twice is harmless.
        """

        self._broken_extensions.setdefault(target_triple, []).append(extension)

    def is_broken_extension(self, target_triple: str, extension: str) -> bool:
        return extension in self._broken_extensions.get(target_triple, ())

    def include(self, resource: PythonResource) -> bool:
        """Determine whether a resource meets the inclusion requirements of this policy.

        :param resource: Resource to evaluate.
        :returns: ``True`` if the resource should be included.
        """

        kind: ResourceKind = resource.kind
        test_ok: bool = self._include_test_resources is True or resource.is_test is False

        if kind is ResourceKind.MODULE_SOURCE:
            return self._include_distribution_sources is True and test_ok
        if kind is ResourceKind.MODULE_BYTECODE_REQUEST:
            return test_ok
        if kind is ResourceKind.MODULE_BYTECODE:
            return False
        if kind is ResourceKind.RESOURCE:
            return self._include_distribution_resources is True and test_ok
        if kind is ResourceKind.DISTRIBUTION_RESOURCE:
            return False
        if kind is ResourceKind.EXTENSION_MODULE_DYNAMIC_LIBRARY:
            return False
        if kind is ResourceKind.EXTENSION_MODULE_STATICALLY_LINKED:
            return False
        if kind is ResourceKind.PATH_EXTENSION:
            return False
        if kind is ResourceKind.EGG_FILE:
            return False
        raise AssertionError(f"Unhandled resource kind: {kind}")

    def filter_resources(self, resources: Iterable[PythonResource]) -> Iterator[PythonResource]:
        """Yield the resources accepted by :meth:`include`, preserving order."""

        for resource in resources:
            if self.include(resource) is True:
                yield resource

    def resolve_extension_modules(
        self,
        variant_groups: Iterable[PythonExtensionModuleVariants],
        target_triple: str,
        logger: logging.Logger | None = None,
    ) -> list[PythonExtensionModule]:
        """Resolve the extension modules compliant with this policy.

        Groups are processed in order. For each group, the minimally required
        variants always contribute one entry; the selection strategy may then
        contribute a second. Under :attr:`ExtensionSelectionStrategy.ALL` the
        second entry can be the same module as the first; both are returned and
        callers that need unique modules deduplicate themselves.

        :param variant_groups: Groups of interchangeable extension module variants.
        :param target_triple: Target triple used to look up broken extensions.
        :param logger: Optional logger for selection decisions.
        :returns: Selected extension modules, in group order.
        """

        if logger is None:
            logger = logging.getLogger("python_packager")
        debug: bool = logger.isEnabledFor(logging.DEBUG)

        strategy: ExtensionSelectionStrategy = self._extension_selection_strategy
        preferred: dict[str, str] = self._preferred_variants
        res: list[PythonExtensionModule] = []

        for variants in variant_groups:
            if variants.is_empty() is True:
                if debug is True:
                    logger.debug("python-packager: skipping empty extension module group")
                continue

            name: str = variants.name
            if self.is_broken_extension(target_triple, name) is True:
                if debug is True:
                    logger.debug(f"python-packager: {name} is broken on {target_triple}; skipping")
                continue

            # Always add minimally required extension modules; the interpreter
            # doesn't work without them.
            minimal: PythonExtensionModuleVariants = variants.filter(
                PythonExtensionModule.is_minimally_required
            )
            if minimal.is_empty() is False:
                res.append(minimal.choose_variant(preferred))

            candidates: PythonExtensionModuleVariants
            if strategy is ExtensionSelectionStrategy.MINIMAL:
                continue
            elif strategy is ExtensionSelectionStrategy.ALL:
                candidates = variants
            elif strategy is ExtensionSelectionStrategy.NO_LIBRARIES:
                candidates = variants.filter(lambda em: em.requires_libraries() is False)
            elif strategy is ExtensionSelectionStrategy.NO_GPL:
                candidates = variants.filter(
                    lambda em: extension_module_is_gpl_safe(em, self._non_gpl_licenses)
                )
            else:
                raise AssertionError(f"Unhandled extension selection strategy: {strategy}")

            if candidates.is_empty() is True:
                if debug is True:
                    logger.debug(f"python-packager: no {strategy.value} variant of {name}")
                continue

            chosen: PythonExtensionModule = candidates.choose_variant(preferred)
            if debug is True:
                logger.debug(f"python-packager: {name} -> variant {chosen.variant!r} ({strategy.value})")
            res.append(chosen)

        return res
