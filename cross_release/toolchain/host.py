"""Host and target platform detection.

Maps execution host labels (``ubuntu-latest``, ``macos-14``, ...) to OS
families, detects the executing host, and classifies target triples.
"""

from __future__ import annotations

import logging
import platform
import subprocess

from cross_release.types import OSFamily

logger = logging.getLogger(__name__)

# Label prefixes understood for the host_os field of a target
HOST_LABEL_PREFIXES: dict[str, OSFamily] = {
    "ubuntu": OSFamily.LINUX,
    "linux": OSFamily.LINUX,
    "macos": OSFamily.MACOS,
    "darwin": OSFamily.MACOS,
    "windows": OSFamily.WINDOWS,
}

# platform.system() values
_SYSTEM_FAMILIES: dict[str, OSFamily] = {
    "Linux": OSFamily.LINUX,
    "Darwin": OSFamily.MACOS,
    "Windows": OSFamily.WINDOWS,
}

_MACHINE_ARCH: dict[str, str] = {
    "x86_64": "x86_64",
    "amd64": "x86_64",
    "aarch64": "aarch64",
    "arm64": "aarch64",
}


def os_family_for_label(label: str) -> OSFamily:
    """Resolve a host label to its OS family.

    Args:
        label: Host label such as ``ubuntu-latest``, ``macos-14`` or ``linux``.

    Returns:
        The OS family.

    Raises:
        ValueError: If the label is not recognised.
    """
    normalized = label.strip().lower()
    for prefix, family in HOST_LABEL_PREFIXES.items():
        if normalized == prefix or normalized.startswith(f"{prefix}-"):
            return family
    raise ValueError(
        f"Unknown host label '{label}'; expected one of "
        f"{', '.join(sorted(HOST_LABEL_PREFIXES))} (optionally with a -suffix)"
    )


def detect_host_os(override: str | None = None) -> OSFamily:
    """Detect the OS family of the executing host.

    Args:
        override: Family name forced by configuration.

    Returns:
        The host OS family.

    Raises:
        ValueError: If the platform is not supported.
    """
    if override:
        return OSFamily(override)
    system = platform.system()
    try:
        return _SYSTEM_FAMILIES[system]
    except KeyError:
        raise ValueError(f"Unsupported host platform: {system}") from None


def target_os_family(triple: str) -> OSFamily:
    """Classify the OS family a target triple produces binaries for.

    Android and other non-Apple, non-Windows triples count as Linux.
    """
    lowered = triple.lower()
    if "-apple-" in lowered:
        return OSFamily.MACOS
    if "windows" in lowered:
        return OSFamily.WINDOWS
    return OSFamily.LINUX


def executable_suffix(triple: str) -> str:
    """Return the file suffix of executables for a target triple."""
    return ".exe" if target_os_family(triple) == OSFamily.WINDOWS else ""


def _guess_host_triple() -> str | None:
    arch = _MACHINE_ARCH.get(platform.machine().lower())
    if arch is None:
        return None
    system = platform.system()
    if system == "Linux":
        return f"{arch}-unknown-linux-gnu"
    if system == "Darwin":
        return f"{arch}-apple-darwin"
    if system == "Windows":
        return f"{arch}-pc-windows-msvc"
    return None


def detect_host_triple(timeout: int = 30) -> str | None:
    """Return the native triple of the host Rust toolchain.

    Uses ``rustc -vV`` and falls back to a guess from the platform module
    when rustc is unavailable.
    """
    try:
        result = subprocess.run(
            ["rustc", "-vV"],
            capture_output=True,
            text=True,
            timeout=timeout,
            check=True,
        )
    except (OSError, subprocess.SubprocessError) as e:
        logger.debug("rustc -vV unavailable (%s); guessing host triple", e)
        return _guess_host_triple()

    for line in result.stdout.splitlines():
        if line.startswith("host:"):
            return line.split(":", 1)[1].strip()
    return _guess_host_triple()


__all__ = [
    "HOST_LABEL_PREFIXES",
    "detect_host_os",
    "detect_host_triple",
    "executable_suffix",
    "os_family_for_label",
    "target_os_family",
]
