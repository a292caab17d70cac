"""Packaging plan resolution.

This module applies a :class:`~python_packager.policy.PackagingPolicy` to
everything discovered in a Python distribution:

- Each resource is run through the policy's inclusion predicate.
- All extension module variant groups are resolved once for the target.

The result is a :class:`PackagingPlan` that an embedding step can consume.
"""

from collections.abc import Iterable
from dataclasses import dataclass
import logging
import time

from python_packager.policy import PackagingPolicy, ResourcePlacementPolicy
from python_packager.resource import (
    PythonExtensionModule,
    PythonExtensionModuleVariants,
    PythonResource,
)


@dataclass(frozen=True, slots=True)
class PackagingPlan:
    """What to embed for one target.

    :ivar target_triple: Target the plan was resolved for.
    :ivar resource_placement_policy: Where resources are loaded from at run time.
    :ivar resources: Included resources, in discovery order.
    :ivar extension_modules: Selected extension modules, in group order. May
        repeat a module; see :meth:`PackagingPolicy.resolve_extension_modules`.
    :ivar excluded_resource_count: Number of resources rejected by the policy.
    """

    target_triple: str
    resource_placement_policy: ResourcePlacementPolicy
    resources: tuple[PythonResource, ...]
    extension_modules: tuple[PythonExtensionModule, ...]
    excluded_resource_count: int


def resolve_packaging(
    *,
    policy: PackagingPolicy,
    resources: Iterable[PythonResource],
    variant_groups: Iterable[PythonExtensionModuleVariants],
    target_triple: str,
    logger: logging.Logger | None = None,
) -> PackagingPlan:
    """Resolve a packaging plan.

    :param policy: Fully configured packaging policy. It is not modified.
    :param resources: Discovered resources.
    :param variant_groups: Discovered extension module variant groups.
    :param target_triple: Target triple to resolve for.
    :param logger: Optional logger for progress output.
    :returns: The resolved plan.
    """

    if logger is None:
        logger = logging.getLogger("python_packager")

    t0: float = time.perf_counter()
    logger.info(f"python-packager: target={target_triple}")
    logger.info(
        f"python-packager: extension-module-filter={policy.extension_selection_strategy} "
        f"resources-policy={policy.resource_placement_policy}"
    )

    # Resolution runs against a snapshot of the policy.
    frozen: PackagingPolicy = policy.copy()

    candidates: list[PythonResource] = list(resources)
    included: list[PythonResource] = list(frozen.filter_resources(candidates))
    excluded: int = len(candidates) - len(included)
    logger.info(f"python-packager: {len(included)} resources included, {excluded} excluded")

    extension_modules: list[PythonExtensionModule] = frozen.resolve_extension_modules(
        variant_groups, target_triple, logger=logger
    )
    t1: float = time.perf_counter()
    logger.info(
        f"python-packager: {len(extension_modules)} extension modules selected in {t1 - t0:.2f}s"
    )

    return PackagingPlan(
        target_triple=target_triple,
        resource_placement_policy=frozen.resource_placement_policy,
        resources=tuple(included),
        extension_modules=tuple(extension_modules),
        excluded_resource_count=excluded,
    )
