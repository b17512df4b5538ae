"""Platform variant detection.

Archive publishers do not always use the same architecture naming as the
local detection code, so each primary variant carries a fixed list of
synonyms that are tried after it, in order.
"""

from __future__ import annotations

import platform as _platform
from dataclasses import dataclass

# Primary variant -> synonyms, tried in this order
VARIANT_ALIASES: dict[str, tuple[str, ...]] = {
    "linux-x86_64": ("linux-amd64",),
    "linux-amd64": ("linux-x86_64",),
    "linux-arm64": ("linux-aarch64",),
    "linux-aarch64": ("linux-arm64",),
    "darwin-arm64": ("darwin-aarch64",),
    "darwin-aarch64": ("darwin-arm64",),
    "darwin-x86_64": ("darwin-amd64",),
    "darwin-amd64": ("darwin-x86_64",),
    "windows-x86_64": ("windows-amd64",),
    "windows-amd64": ("windows-x86_64",),
}

LIBRARY_SUFFIXES = {
    "darwin": ".dylib",
    "windows": ".dll",
    "linux": ".so",
}

_X86_64_MACHINES = {"x86_64", "amd64", "x64"}
_ARM64_MACHINES = {"arm64", "aarch64", "armv8", "armv8l"}


def _os_key(system: str | None = None) -> str:
    system = (system if system is not None else _platform.system()).lower()
    if system.startswith("darwin") or system == "macos":
        return "darwin"
    if system.startswith("win"):
        return "windows"
    if system.startswith("linux"):
        return "linux"
    return system


def primary_variant(system: str | None = None, machine: str | None = None) -> str:
    """Variant identifier for the running (or given) platform."""
    os_key = _os_key(system)
    machine = (machine if machine is not None else _platform.machine()).lower()

    is_x86_64 = machine in _X86_64_MACHINES
    is_arm64 = machine in _ARM64_MACHINES

    if os_key == "darwin":
        return "darwin-arm64" if is_arm64 else "darwin-x86_64"
    if os_key == "linux":
        if is_x86_64:
            return "linux-x86_64"
        if is_arm64:
            return "linux-arm64"
        return "linux-x86"
    if os_key == "windows":
        return "windows-x86_64" if is_x86_64 else "windows-x86"
    return "unknown"


def variants_to_try(variant: str | None = None) -> list[str]:
    """Primary variant followed by its known aliases."""
    variant = variant or primary_variant()
    return [variant, *VARIANT_ALIASES.get(variant, ())]


def library_suffix(system: str | None = None) -> str:
    """Dynamic library suffix for the running (or given) OS."""
    return LIBRARY_SUFFIXES.get(_os_key(system), ".so")


@dataclass(frozen=True)
class PlatformInfo:
    """Resolved platform identity used by the installer."""

    variant: str
    library_suffix: str

    @property
    def variants(self) -> list[str]:
        return variants_to_try(self.variant)

    @classmethod
    def detect(cls) -> "PlatformInfo":
        return cls(variant=primary_variant(), library_suffix=library_suffix())

    @classmethod
    def for_variant(cls, variant: str) -> "PlatformInfo":
        """Build from an explicit variant such as "linux-arm64"."""
        os_part = variant.split("-", 1)[0]
        return cls(variant=variant, library_suffix=library_suffix(os_part))
