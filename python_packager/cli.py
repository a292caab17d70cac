"""Command line interface for python-packager."""

import argparse
from collections.abc import Callable
import json
import logging
import pathlib
import sys

from python_packager.manifest import ManifestError, dump_plan, load_manifest
from python_packager.packager import PackagingPlan, resolve_packaging
from python_packager.policy import (
    ExtensionSelectionStrategy,
    PackagingPolicy,
    PolicyError,
    ResourcePlacementPolicy,
)
from python_packager.target import (
    TargetResolutionError,
    default_packaging_policy,
    resolve_target_triple,
)


def _configure_logging(*, verbose: int, quiet: int) -> logging.Logger:
    """Configure the python-packager logger.

    :param verbose: Verbosity count (0+).
    :param quiet: Quietness count (0+).
    :returns: Configured logger.
    """

    level: int = logging.INFO
    if quiet >= 2:
        level = logging.ERROR
    elif quiet >= 1:
        level = logging.WARNING
    elif verbose >= 1:
        level = logging.DEBUG

    logger: logging.Logger = logging.getLogger("python_packager")
    logger.setLevel(level)
    logger.propagate = False

    handler: logging.Handler = logging.StreamHandler(stream=sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(message)s"))

    logger.handlers.clear()
    logger.addHandler(handler)
    return logger


def _policy_arg(parse: Callable[[str], object]) -> Callable[[str], object]:
    """Adapt a policy parser to an argparse ``type=`` callable."""

    def convert(value: str) -> object:
        try:
            return parse(value)
        except PolicyError as e:
            raise argparse.ArgumentTypeError(str(e)) from e

    return convert


def _preferred_variant_arg(value: str) -> tuple[str, str]:
    name, sep, variant = value.partition("=")
    if sep == "" or name == "" or variant == "":
        raise argparse.ArgumentTypeError(f"expected NAME=VARIANT, got {value!r}")
    return name, variant


def main(argv: list[str] | None = None) -> int:
    """Run the python-packager CLI.

    :param argv: Optional argv list (excluding program name).
    :returns: Exit code.
    """

    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        prog="python-packager",
        description="Decide which parts of a Python distribution get embedded into a binary.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    p_resolve = subparsers.add_parser(
        "resolve",
        help="Resolve resources and extension modules for a target.",
    )
    p_resolve.add_argument(
        "manifest",
        type=pathlib.Path,
        help="Path to a JSON manifest describing the distribution's contents.",
    )
    p_resolve.add_argument(
        "--target",
        type=str,
        default="native",
        help="Target triple (e.g. x86_64-unknown-linux-gnu). Use 'native' for the current host.",
    )
    p_resolve.add_argument(
        "--extension-module-filter",
        type=_policy_arg(ExtensionSelectionStrategy.parse),
        default=None,
        metavar="{minimal,all,no-libraries,no-gpl}",
        help="Which extension modules to include (default: all).",
    )
    p_resolve.add_argument(
        "--resources-policy",
        type=_policy_arg(ResourcePlacementPolicy.parse),
        default=None,
        metavar="POLICY",
        help=(
            "Where resources are loaded from: in-memory-only, filesystem-relative-only:<prefix> "
            "or prefer-in-memory-fallback-filesystem-relative:<prefix>."
        ),
    )
    p_resolve.add_argument(
        "--no-distribution-sources",
        action="store_true",
        help="Exclude module source code from the distribution.",
    )
    p_resolve.add_argument(
        "--include-distribution-resources",
        action="store_true",
        help="Include non-module package resources from the distribution.",
    )
    p_resolve.add_argument(
        "--include-test",
        action="store_true",
        help="Include modules and resources belonging to test packages.",
    )
    p_resolve.add_argument(
        "--prefer-variant",
        type=_preferred_variant_arg,
        action="append",
        default=[],
        metavar="NAME=VARIANT",
        help="Prefer a variant of an extension module. Can be repeated.",
    )
    p_resolve.add_argument(
        "--broken-extension",
        action="append",
        default=[],
        metavar="NAME",
        help="Never select this extension module for the target. Can be repeated.",
    )
    p_resolve.add_argument(
        "--no-default-broken-extensions",
        action="store_true",
        help="Do not register the extension modules known to be broken on the target.",
    )
    p_resolve.add_argument(
        "-o",
        "--output",
        type=pathlib.Path,
        default=None,
        help="Write the JSON plan here instead of stdout.",
    )
    p_resolve.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Enable verbose logging. Pass multiple times for more detail.",
    )
    p_resolve.add_argument(
        "-q",
        "--quiet",
        action="count",
        default=0,
        help="Reduce logging. Pass multiple times to suppress more output.",
    )

    ns = parser.parse_args(argv)
    if ns.command == "resolve":
        logger: logging.Logger = _configure_logging(verbose=ns.verbose, quiet=ns.quiet)

        try:
            target_triple: str = resolve_target_triple(ns.target)
            policy: PackagingPolicy = (
                PackagingPolicy() if ns.no_default_broken_extensions is True
                else default_packaging_policy(target_triple)
            )
        except TargetResolutionError as e:
            logger.error(f"python-packager: {e}")
            return 1

        if ns.extension_module_filter is not None:
            policy.set_extension_selection_strategy(ns.extension_module_filter)
        if ns.resources_policy is not None:
            policy.set_resource_placement_policy(ns.resources_policy)
        policy.set_include_distribution_sources(ns.no_distribution_sources is False)
        policy.set_include_distribution_resources(ns.include_distribution_resources)
        policy.set_include_test_resources(ns.include_test)
        for name, variant in ns.prefer_variant:
            policy.set_preferred_variant(name, variant)
        for name in ns.broken_extension:
            policy.register_broken_extension(target_triple, name)

        try:
            resources, variant_groups = load_manifest(ns.manifest)
        except ManifestError as e:
            logger.error(f"python-packager: {e}")
            return 1

        plan: PackagingPlan = resolve_packaging(
            policy=policy,
            resources=resources,
            variant_groups=variant_groups,
            target_triple=target_triple,
            logger=logger,
        )

        text: str = json.dumps(dump_plan(plan), indent=2, sort_keys=True) + "\n"
        if ns.output is None:
            sys.stdout.write(text)
        else:
            ns.output.write_text(text, encoding="utf-8")
            logger.info(f"python-packager: wrote {ns.output}")
        return 0

    raise AssertionError(f"Unhandled command: {ns.command}")
