"""Shared fixtures for python-packager tests."""

import pathlib

import pytest

from python_packager.resource import (
    LibraryDependency,
    PythonExtensionModule,
    PythonExtensionModuleVariants,
)


EXAMPLES_DIR: pathlib.Path = pathlib.Path(__file__).parent.parent / "examples"


def make_extension(
    name: str,
    variant: str,
    *,
    minimal: bool = False,
    libraries: tuple[str, ...] = (),
    licenses: tuple[str, ...] | None = None,
    public_domain: bool | None = None,
) -> PythonExtensionModule:
    """Build an extension module variant with just the fields the policy looks at."""

    return PythonExtensionModule(
        name=name,
        variant=variant,
        is_stdlib=True,
        required=minimal,
        link_libraries=tuple(LibraryDependency(name=lib) for lib in libraries),
        licenses=licenses,
        license_public_domain=public_domain,
    )


@pytest.fixture
def example_manifest() -> pathlib.Path:
    return EXAMPLES_DIR / "stdlib_subset" / "manifest.json"


@pytest.fixture
def sqlite_variants() -> PythonExtensionModuleVariants:
    """A minimally required variant plus a library-linking alternative."""

    return PythonExtensionModuleVariants(
        [
            make_extension("_sqlite3", "bundled", minimal=True),
            make_extension("_sqlite3", "system", libraries=("sqlite3",), licenses=("blessing",)),
        ]
    )
