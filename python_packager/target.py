"""Target triple helpers.

This module is intentionally small and "pragmatic":

- It parses Rust-like target triples (e.g. ``x86_64-unknown-linux-gnu``).
- It maps the running interpreter to such a triple for ``native`` builds.
- It knows which standard library extension modules are broken on which
  platforms and builds a :class:`~python_packager.policy.PackagingPolicy`
  with those registered.
"""

from dataclasses import dataclass
import platform
import sysconfig

from python_packager.policy import PackagingPolicy, ResourcePlacementPolicy


class TargetResolutionError(ValueError):
    """Raised when a target spec cannot be resolved to a target triple."""


@dataclass(frozen=True, slots=True)
class TargetTriple:
    """A parsed target triple.

    :ivar arch: Architecture (e.g. ``x86_64``).
    :ivar vendor: Vendor (e.g. ``unknown``, ``apple``, ``pc``).
    :ivar os: Operating system (e.g. ``linux``, ``darwin``, ``windows``).
    :ivar env: Environment/ABI (e.g. ``gnu``, ``musl``, ``msvc``); empty if absent.
    """

    arch: str
    vendor: str
    os: str
    env: str = ""

    def __str__(self) -> str:
        if self.env:
            return f"{self.arch}-{self.vendor}-{self.os}-{self.env}"
        return f"{self.arch}-{self.vendor}-{self.os}"


# Extension modules known not to work when statically embedded, by OS family.
KNOWN_BROKEN_EXTENSIONS: dict[str, tuple[str, ...]] = {
    "linux": ("_crypt", "nis"),
    "darwin": ("_curses", "_curses_panel", "readline"),
    "windows": (),
}

# sysconfig platform suffixes of macOS multi-architecture builds.
_MACOS_MULTI_ARCH: frozenset[str] = frozenset({"universal2", "universal", "intel", "fat", "fat3", "fat64"})


def parse_target_triple(target: str) -> TargetTriple:
    """Parse a target triple.

    :param target: Triple with 3 or 4 dash-separated components.
    :returns: Parsed triple.
    :raises TargetResolutionError: If the triple is malformed.
    """

    parts: list[str] = target.split("-")
    if len(parts) not in (3, 4) or any(p == "" for p in parts):
        raise TargetResolutionError(
            f"Unrecognized target spec {target!r}. Expected arch-vendor-os[-env]."
        )
    return TargetTriple(
        arch=parts[0],
        vendor=parts[1],
        os=parts[2],
        env=parts[3] if len(parts) == 4 else "",
    )


def host_target_triple() -> str:
    """Resolve the target triple of the running interpreter.

    :returns: Target triple string.
    :raises TargetResolutionError: If the host platform is not recognized.
    """

    # sysconfig uses e.g. "linux-x86_64", "macosx-11.0-arm64" or "win-amd64".
    plat: str = sysconfig.get_platform()
    machine: str = platform.machine().lower()

    if plat.startswith("linux") is True:
        arch: str = _normalize_arch(plat.rsplit("-", 1)[-1])
        env: str = "musl" if _is_musl() is True else "gnu"
        return f"{arch}-unknown-linux-{env}"
    if plat.startswith("macosx") is True:
        mac_arch: str = plat.rsplit("-", 1)[-1]
        # Fat builds name the bundle, not the running architecture.
        if mac_arch in _MACOS_MULTI_ARCH:
            mac_arch = machine
        return f"{_normalize_arch(mac_arch)}-apple-darwin"
    if plat.startswith("win") is True:
        win_arch: dict[str, str] = {"win32": "i686", "win-amd64": "x86_64", "win-arm64": "aarch64"}
        arch_w: str | None = win_arch.get(plat)
        if arch_w is None:
            raise TargetResolutionError(f"Unsupported Windows platform: {plat!r}")
        return f"{arch_w}-pc-windows-msvc"

    raise TargetResolutionError(f"Unrecognized host platform {plat!r} (machine={machine!r}).")


def resolve_target_triple(target: str) -> str:
    """Resolve a user-supplied target into a canonical target triple.

    :param target: A target triple, or ``native`` for the host.
    :returns: Canonical target triple.
    :raises TargetResolutionError: If the target cannot be resolved.
    """

    if target == "native":
        return host_target_triple()
    return str(parse_target_triple(target))


def default_packaging_policy(target_triple: str) -> PackagingPolicy:
    """Build the default packaging policy for a target.

    Extension modules known to be broken on the target's platform are
    registered, and Windows targets may fall back to loading resources from
    a ``lib`` directory next to the binary.

    :param target_triple: Target triple.
    :returns: A new policy.
    :raises TargetResolutionError: If the triple is malformed.
    """

    triple: TargetTriple = parse_target_triple(target_triple)
    policy: PackagingPolicy = PackagingPolicy()

    for name in KNOWN_BROKEN_EXTENSIONS.get(triple.os, ()):
        policy.register_broken_extension(target_triple, name)

    if triple.os == "windows":
        policy.set_resource_placement_policy(
            ResourcePlacementPolicy.prefer_in_memory_fallback_filesystem_relative("lib")
        )

    return policy


def _normalize_arch(arch: str) -> str:
    """Map platform spellings of an architecture to target triple spellings.

    :param arch: Architecture as reported by ``sysconfig``.
    :returns: Target triple architecture.
    """

    arch_map: dict[str, str] = {
        "amd64": "x86_64",
        "arm64": "aarch64",
        "armv7l": "armv7",
        "i386": "i686",
    }
    return arch_map.get(arch, arch)


def _is_musl() -> bool:
    """Heuristically detect whether the host C library is musl."""

    return "musl" in (sysconfig.get_config_var("HOST_GNU_TYPE") or "")
