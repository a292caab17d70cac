"""Tests for packaging policy values, mutators and the resource predicate."""

import itertools

import pytest

from python_packager.policy import (
    ExtensionSelectionStrategy,
    InvalidFilterValue,
    InvalidPolicyValue,
    PackagingPolicy,
    PolicyError,
    ResourcePlacementKind,
    ResourcePlacementPolicy,
)
from python_packager.resource import (
    PythonEggFile,
    PythonExtensionModule,
    PythonModuleBytecode,
    PythonModuleBytecodeRequest,
    PythonModuleSource,
    PythonPackageDistributionResource,
    PythonPackageResource,
    PythonPathExtension,
    PythonResource,
    ResourceKind,
)


class TestResourcePlacementPolicy:
    def test_parse_in_memory_only(self):
        policy = ResourcePlacementPolicy.parse("in-memory-only")
        assert policy.kind is ResourcePlacementKind.IN_MEMORY_ONLY
        assert policy.prefix is None
        assert policy == ResourcePlacementPolicy.in_memory_only()

    def test_parse_filesystem_relative_only(self):
        policy = ResourcePlacementPolicy.parse("filesystem-relative-only:lib")
        assert policy == ResourcePlacementPolicy.filesystem_relative_only("lib")

    def test_parse_prefer_in_memory(self):
        policy = ResourcePlacementPolicy.parse("prefer-in-memory-fallback-filesystem-relative:lib/py")
        assert policy.kind is ResourcePlacementKind.PREFER_IN_MEMORY_FALLBACK_FILESYSTEM_RELATIVE
        assert policy.prefix == "lib/py"

    def test_prefix_keeps_everything_after_first_colon(self):
        policy = ResourcePlacementPolicy.parse("filesystem-relative-only:C:\\lib:extra")
        assert policy.prefix == "C:\\lib:extra"

    @pytest.mark.parametrize(
        "policy",
        [
            ResourcePlacementPolicy.in_memory_only(),
            ResourcePlacementPolicy.filesystem_relative_only(""),
            ResourcePlacementPolicy.filesystem_relative_only("lib"),
            ResourcePlacementPolicy.filesystem_relative_only("a:b::c"),
            ResourcePlacementPolicy.prefer_in_memory_fallback_filesystem_relative(""),
            ResourcePlacementPolicy.prefer_in_memory_fallback_filesystem_relative(":"),
            ResourcePlacementPolicy.prefer_in_memory_fallback_filesystem_relative("../shared lib"),
        ],
    )
    def test_round_trip(self, policy):
        assert ResourcePlacementPolicy.parse(policy.format()) == policy
        assert str(policy) == policy.format()

    def test_format(self):
        assert ResourcePlacementPolicy.in_memory_only().format() == "in-memory-only"
        assert (
            ResourcePlacementPolicy.filesystem_relative_only("lib").format()
            == "filesystem-relative-only:lib"
        )
        assert (
            ResourcePlacementPolicy.prefer_in_memory_fallback_filesystem_relative("x").format()
            == "prefer-in-memory-fallback-filesystem-relative:x"
        )

    @pytest.mark.parametrize(
        "value",
        ["bogus", "", "in-memory-only:", "IN-MEMORY-ONLY", "filesystem-relative-only", "prefer-in-memory"],
    )
    def test_parse_rejects(self, value):
        with pytest.raises(InvalidPolicyValue) as excinfo:
            ResourcePlacementPolicy.parse(value)
        assert excinfo.value.value == value
        assert isinstance(excinfo.value, PolicyError)
        assert isinstance(excinfo.value, ValueError)

    def test_location_properties(self):
        in_memory = ResourcePlacementPolicy.in_memory_only()
        fs = ResourcePlacementPolicy.filesystem_relative_only("lib")
        hybrid = ResourcePlacementPolicy.prefer_in_memory_fallback_filesystem_relative("lib")

        assert (in_memory.allows_in_memory, in_memory.allows_filesystem_relative) == (True, False)
        assert (fs.allows_in_memory, fs.allows_filesystem_relative) == (False, True)
        assert (hybrid.allows_in_memory, hybrid.allows_filesystem_relative) == (True, True)
        assert in_memory.filesystem_prefix is None
        assert fs.filesystem_prefix == "lib"

    def test_prefix_must_match_kind(self):
        with pytest.raises(InvalidPolicyValue) as excinfo:
            ResourcePlacementPolicy(ResourcePlacementKind.IN_MEMORY_ONLY, "lib")
        assert excinfo.value.value == "in-memory-only:lib"

        with pytest.raises(InvalidPolicyValue) as excinfo:
            ResourcePlacementPolicy(ResourcePlacementKind.FILESYSTEM_RELATIVE_ONLY)
        assert excinfo.value.value == "filesystem-relative-only"
        with pytest.raises(PolicyError):
            ResourcePlacementPolicy(ResourcePlacementKind.PREFER_IN_MEMORY_FALLBACK_FILESYSTEM_RELATIVE)


class TestExtensionSelectionStrategy:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("minimal", ExtensionSelectionStrategy.MINIMAL),
            ("all", ExtensionSelectionStrategy.ALL),
            ("no-libraries", ExtensionSelectionStrategy.NO_LIBRARIES),
            ("no-gpl", ExtensionSelectionStrategy.NO_GPL),
        ],
    )
    def test_parse(self, value, expected):
        strategy = ExtensionSelectionStrategy.parse(value)
        assert strategy is expected
        assert str(strategy) == value

    @pytest.mark.parametrize("value", ["bogus", "", "All", "no_gpl"])
    def test_parse_rejects(self, value):
        with pytest.raises(InvalidFilterValue) as excinfo:
            ExtensionSelectionStrategy.parse(value)
        assert excinfo.value.value == value
        assert "not a valid extension module filter" in str(excinfo.value)


class TestPackagingPolicyMutators:
    def test_defaults(self):
        policy = PackagingPolicy()
        assert policy.extension_selection_strategy is ExtensionSelectionStrategy.ALL
        assert policy.resource_placement_policy == ResourcePlacementPolicy.in_memory_only()
        assert policy.include_distribution_sources is True
        assert policy.include_distribution_resources is False
        assert policy.include_test_resources is False
        assert policy.preferred_variants == {}
        assert policy.broken_extensions == {}

    def test_setters(self):
        policy = PackagingPolicy()
        policy.set_extension_selection_strategy(ExtensionSelectionStrategy.NO_GPL)
        policy.set_resource_placement_policy(ResourcePlacementPolicy.filesystem_relative_only("lib"))
        policy.set_include_distribution_sources(False)
        policy.set_include_distribution_resources(True)
        policy.set_include_test_resources(True)

        assert policy.extension_selection_strategy is ExtensionSelectionStrategy.NO_GPL
        assert policy.resource_placement_policy.prefix == "lib"
        assert policy.include_distribution_sources is False
        assert policy.include_distribution_resources is True
        assert policy.include_test_resources is True

    def test_preferred_variant_overwrites(self):
        policy = PackagingPolicy()
        policy.set_preferred_variant("_sqlite3", "system")
        policy.set_preferred_variant("_sqlite3", "bundled")
        policy.set_preferred_variant("readline", "libedit")
        assert policy.preferred_variants == {"_sqlite3": "bundled", "readline": "libedit"}

    def test_register_broken_extension(self):
        policy = PackagingPolicy()
        policy.register_broken_extension("x86_64-unknown-linux-musl", "_crypt")
        policy.register_broken_extension("x86_64-unknown-linux-musl", "_crypt")
        policy.register_broken_extension("x86_64-unknown-linux-musl", "nis")

        assert policy.is_broken_extension("x86_64-unknown-linux-musl", "_crypt") is True
        assert policy.is_broken_extension("x86_64-unknown-linux-musl", "nis") is True
        assert policy.is_broken_extension("x86_64-unknown-linux-gnu", "_crypt") is False
        assert policy.broken_extensions == {"x86_64-unknown-linux-musl": ["_crypt", "_crypt", "nis"]}

    def test_getters_return_copies(self):
        policy = PackagingPolicy()
        policy.register_broken_extension("t", "x")
        policy.broken_extensions["t"].append("y")
        policy.preferred_variants["a"] = "b"
        assert policy.broken_extensions == {"t": ["x"]}
        assert policy.preferred_variants == {}

    def test_copy_is_independent(self):
        policy = PackagingPolicy()
        policy.register_broken_extension("t", "x")
        policy.set_preferred_variant("a", "b")

        frozen = policy.copy()
        policy.register_broken_extension("t", "y")
        policy.set_preferred_variant("a", "c")
        policy.set_include_test_resources(True)

        assert frozen.broken_extensions == {"t": ["x"]}
        assert frozen.preferred_variants == {"a": "b"}
        assert frozen.include_test_resources is False

    def test_failed_parse_leaves_policy_untouched(self):
        policy = PackagingPolicy()
        with pytest.raises(InvalidPolicyValue):
            policy.set_resource_placement_policy(ResourcePlacementPolicy.parse("bogus"))
        with pytest.raises(InvalidFilterValue):
            policy.set_extension_selection_strategy(ExtensionSelectionStrategy.parse("bogus"))
        assert policy.resource_placement_policy == ResourcePlacementPolicy.in_memory_only()
        assert policy.extension_selection_strategy is ExtensionSelectionStrategy.ALL


def _policy(*, sources: bool, resources: bool, tests: bool) -> PackagingPolicy:
    policy = PackagingPolicy()
    policy.set_include_distribution_sources(sources)
    policy.set_include_distribution_resources(resources)
    policy.set_include_test_resources(tests)
    return policy


_TOGGLES = list(itertools.product([False, True], repeat=4))


class TestInclude:
    @pytest.mark.parametrize("sources,resources,tests,is_test", _TOGGLES)
    def test_module_source(self, sources, resources, tests, is_test):
        policy = _policy(sources=sources, resources=resources, tests=tests)
        resource = PythonResource(ResourceKind.MODULE_SOURCE, PythonModuleSource("m", is_test=is_test))
        assert policy.include(resource) is (sources and (tests or not is_test))

    @pytest.mark.parametrize("sources,resources,tests,is_test", _TOGGLES)
    def test_module_bytecode_request(self, sources, resources, tests, is_test):
        policy = _policy(sources=sources, resources=resources, tests=tests)
        resource = PythonResource(
            ResourceKind.MODULE_BYTECODE_REQUEST, PythonModuleBytecodeRequest("m", is_test=is_test)
        )
        assert policy.include(resource) is (tests or not is_test)

    @pytest.mark.parametrize("sources,resources,tests,is_test", _TOGGLES)
    def test_package_resource(self, sources, resources, tests, is_test):
        policy = _policy(sources=sources, resources=resources, tests=tests)
        resource = PythonResource(
            ResourceKind.RESOURCE, PythonPackageResource("pkg", "data.txt", is_test=is_test)
        )
        assert policy.include(resource) is (resources and (tests or not is_test))

    @pytest.mark.parametrize(
        "resource",
        [
            PythonResource(ResourceKind.MODULE_BYTECODE, PythonModuleBytecode("m")),
            PythonResource(
                ResourceKind.DISTRIBUTION_RESOURCE, PythonPackageDistributionResource("pip", "24.0", "METADATA")
            ),
            PythonResource(ResourceKind.EXTENSION_MODULE_DYNAMIC_LIBRARY, PythonExtensionModule("_ssl")),
            PythonResource(ResourceKind.EXTENSION_MODULE_STATICALLY_LINKED, PythonExtensionModule("_ssl")),
            PythonResource(ResourceKind.PATH_EXTENSION, PythonPathExtension("x")),
            PythonResource(ResourceKind.EGG_FILE, PythonEggFile("x.egg")),
        ],
        ids=lambda r: r.kind.value,
    )
    @pytest.mark.parametrize("sources,resources,tests", list(itertools.product([False, True], repeat=3)))
    def test_never_included(self, resource, sources, resources, tests):
        policy = _policy(sources=sources, resources=resources, tests=tests)
        assert policy.include(resource) is False

    def test_spot_checks(self):
        source = PythonResource(ResourceKind.MODULE_SOURCE, PythonModuleSource("m"))
        test_source = PythonResource(ResourceKind.MODULE_SOURCE, PythonModuleSource("m.tests", is_test=True))

        assert _policy(sources=False, resources=False, tests=False).include(source) is False
        assert _policy(sources=True, resources=False, tests=False).include(source) is True
        assert _policy(sources=True, resources=False, tests=False).include(test_source) is False

    def test_filter_resources_preserves_order(self):
        policy = PackagingPolicy()
        resources = [
            PythonResource(ResourceKind.MODULE_SOURCE, PythonModuleSource("b")),
            PythonResource(ResourceKind.MODULE_BYTECODE, PythonModuleBytecode("b")),
            PythonResource(ResourceKind.MODULE_SOURCE, PythonModuleSource("a")),
            PythonResource(ResourceKind.MODULE_SOURCE, PythonModuleSource("a.tests", is_test=True)),
        ]
        assert [r.name for r in policy.filter_resources(resources)] == ["b", "a"]
