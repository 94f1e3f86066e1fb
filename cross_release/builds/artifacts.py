"""Artifact packaging and manifest generation.

This module handles:
- Locating the binary a release build produced for a target
- Naming it with the ``<tool>-<triple>`` convention
- Computing checksums
- Writing SHA256SUMS and JSON manifests for a run

Output layout (version 1): cargo writes the binary for a target to
``<target dir>/<triple>/release/<tool>``, with an ``.exe`` suffix for
Windows triples. Packaging copies it to ``<dist dir>/<tool>-<triple>[.exe]``
and leaves the build output untouched.
"""

from __future__ import annotations

import hashlib
import json
import logging
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from cross_release.errors import MissingArtifactError
from cross_release.toolchain.host import executable_suffix
from cross_release.types import Artifact

logger = logging.getLogger(__name__)

ARTIFACT_LAYOUT_VERSION = "1"

# Default chunk size for hashing
HASH_CHUNK_SIZE = 64 * 1024  # 64KB


def artifact_name(tool_name: str, triple: str) -> str:
    """Return the deterministic artifact name for a target."""
    return f"{tool_name}-{triple}"


def artifact_filename(tool_name: str, triple: str) -> str:
    """Return the packaged file name for a target."""
    return artifact_name(tool_name, triple) + executable_suffix(triple)


def expected_binaries(output_dir: Path, tool_name: str, triple: str) -> list[Path]:
    """Return the binary paths a build for the triple should produce."""
    candidates = [output_dir / tool_name]
    suffix = executable_suffix(triple)
    if suffix:
        candidates.insert(0, output_dir / f"{tool_name}{suffix}")
    return candidates


def compute_file_hash(
    file_path: Path,
    chunk_size: int = HASH_CHUNK_SIZE,
) -> str:
    """Compute SHA-256 hash of a file.

    Args:
        file_path: Path to the file.
        chunk_size: Size of chunks for streaming hash.

    Returns:
        SHA-256 hex digest.
    """
    sha256 = hashlib.sha256()
    with file_path.open("rb") as f:
        while chunk := f.read(chunk_size):
            sha256.update(chunk)
    return sha256.hexdigest()


def find_binary(output_dir: Path, tool_name: str, triple: str) -> Path:
    """Locate the built binary for a target.

    Raises:
        MissingArtifactError: If no expected binary exists.
    """
    for candidate in expected_binaries(output_dir, tool_name, triple):
        if candidate.is_file():
            return candidate
    raise MissingArtifactError(
        f"Build for {triple} reported success but no {tool_name} binary "
        f"was found in {output_dir}"
    )


def remove_packaged(dist_dir: Path, tool_name: str, triple: str) -> None:
    """Remove a previously packaged artifact for a target, if any."""
    stale = dist_dir / artifact_filename(tool_name, triple)
    if stale.exists():
        logger.debug("Removing stale artifact %s", stale)
        stale.unlink()


def package_artifact(
    triple: str,
    output_dir: Path,
    dist_dir: Path,
    tool_name: str,
) -> Artifact:
    """Package the binary built for a target.

    Args:
        triple: Target triple.
        output_dir: Release output directory of the build.
        dist_dir: Directory receiving packaged artifacts.
        tool_name: Binary name.

    Returns:
        The packaged Artifact.

    Raises:
        MissingArtifactError: If the build produced no binary.
    """
    source = find_binary(output_dir, tool_name, triple)

    dist_dir.mkdir(parents=True, exist_ok=True)
    dest = dist_dir / artifact_filename(tool_name, triple)
    shutil.copy2(source, dest)

    artifact = Artifact(
        name=artifact_name(tool_name, triple),
        triple=triple,
        path=dest,
        source_path=source,
        size_bytes=dest.stat().st_size,
        sha256=compute_file_hash(dest),
    )
    logger.info(
        "Packaged %s (size=%d, sha256=%s)",
        artifact.name,
        artifact.size_bytes,
        artifact.sha256[:16],
    )
    return artifact


def write_checksums(artifacts: list[Artifact], output_path: Path) -> Path:
    """Write a SHA256SUMS file for packaged artifacts."""
    output_path.parent.mkdir(parents=True, exist_ok=True)
    lines = [
        f"{a.sha256}  {a.path.name}\n" for a in sorted(artifacts, key=lambda a: a.name)
    ]
    output_path.write_text("".join(lines), encoding="utf-8")
    logger.info("Wrote checksums to %s", output_path)
    return output_path


def generate_manifest(
    artifacts: list[Artifact],
    run_id: str | None = None,
    tool_name: str | None = None,
) -> dict[str, Any]:
    """Generate a release manifest.

    Returns:
        Manifest dictionary suitable for JSON serialization.
    """
    now = datetime.now(timezone.utc)

    manifest: dict[str, Any] = {
        "version": "1.0",
        "layout_version": ARTIFACT_LAYOUT_VERSION,
        "generated_at": now.isoformat(),
        "artifacts": [
            {
                "name": a.name,
                "triple": a.triple,
                "filename": a.path.name,
                "size_bytes": a.size_bytes,
                "sha256": a.sha256,
            }
            for a in artifacts
        ],
    }

    if run_id:
        manifest["run_id"] = run_id
    if tool_name:
        manifest["tool_name"] = tool_name

    manifest["summary"] = {
        "total_artifacts": len(artifacts),
        "total_size_bytes": sum(a.size_bytes for a in artifacts),
    }

    return manifest


def write_manifest(
    manifest: dict[str, Any],
    output_path: Path,
) -> Path:
    """Write manifest to a JSON file."""
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with output_path.open("w", encoding="utf-8") as f:
        json.dump(manifest, f, indent=2, sort_keys=True)

    logger.info("Wrote manifest to %s", output_path)
    return output_path


__all__ = [
    "ARTIFACT_LAYOUT_VERSION",
    "HASH_CHUNK_SIZE",
    "artifact_filename",
    "artifact_name",
    "compute_file_hash",
    "expected_binaries",
    "find_binary",
    "generate_manifest",
    "package_artifact",
    "remove_packaged",
    "write_checksums",
    "write_manifest",
]
