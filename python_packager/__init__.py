"""python-packager.

Decides which resources of a Python distribution are embedded into a
standalone binary for a target, and which variant of each native extension
module is used.
"""

from python_packager.policy import (
    ExtensionSelectionStrategy,
    InvalidFilterValue,
    InvalidPolicyValue,
    PackagingPolicy,
    PolicyError,
    ResourcePlacementPolicy,
)

__all__: list[str] = [
    "ExtensionSelectionStrategy",
    "InvalidFilterValue",
    "InvalidPolicyValue",
    "PackagingPolicy",
    "PolicyError",
    "ResourcePlacementPolicy",
    "__version__",
]

__version__: str = "0.1.0"
