"""Cache key computation for dependency caching.

This module handles:
- Fingerprinting the project's dependency lock state
- Deterministic hash computation over (triple, fingerprint)

A changed lockfile yields a new key, so stale entries are never looked up
again and need no explicit eviction.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

# Schema version for cache key format; bump when cache key format changes
CACHE_KEY_SCHEMA_VERSION = "1"

LOCKFILE_NAME = "Cargo.lock"

HASH_CHUNK_SIZE = 64 * 1024  # 64KB


@dataclass(frozen=True)
class CacheInputs:
    """Canonical representation of the inputs a cache entry depends on.

    Attributes:
        schema_version: Version of cache key schema.
        triple: Target triple.
        lock_source: File name the fingerprint was computed from.
        lock_fingerprint: SHA-256 of that file's content.
    """

    schema_version: str
    triple: str
    lock_source: str
    lock_fingerprint: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _hash_file(path: Path) -> str:
    sha256 = hashlib.sha256()
    with path.open("rb") as f:
        while chunk := f.read(HASH_CHUNK_SIZE):
            sha256.update(chunk)
    return sha256.hexdigest()


def lockfile_for_manifest(manifest_path: Path) -> Path:
    """Return the file whose content fingerprints the dependency state.

    ``Cargo.lock`` beside the manifest when present, otherwise the manifest.
    """
    lockfile = manifest_path.parent / LOCKFILE_NAME
    if lockfile.is_file():
        return lockfile
    return manifest_path


def compute_lock_fingerprint(manifest_path: Path) -> tuple[str, str]:
    """Fingerprint the dependency lock state of a project.

    Args:
        manifest_path: Path to Cargo.toml.

    Returns:
        Tuple of (source file name, SHA-256 hex digest).

    Raises:
        FileNotFoundError: If neither lockfile nor manifest exists.
    """
    source = lockfile_for_manifest(manifest_path)
    return source.name, _hash_file(source)


def create_cache_inputs(triple: str, manifest_path: Path) -> CacheInputs:
    """Create canonical cache inputs for a target."""
    lock_source, fingerprint = compute_lock_fingerprint(manifest_path)
    return CacheInputs(
        schema_version=CACHE_KEY_SCHEMA_VERSION,
        triple=triple,
        lock_source=lock_source,
        lock_fingerprint=fingerprint,
    )


def compute_cache_key_from_inputs(inputs: CacheInputs) -> str:
    """Compute a cache key hash from cache inputs.

    The cache key is a SHA-256 hash of the canonical JSON representation
    of the inputs.

    Returns:
        Cache key as hex string (sha256:...).
    """
    canonical_json = json.dumps(
        inputs.to_dict(),
        sort_keys=True,
        separators=(",", ":"),
    )
    digest = hashlib.sha256(canonical_json.encode("utf-8")).hexdigest()
    return f"sha256:{digest}"


def compute_cache_key(triple: str, manifest_path: Path) -> tuple[str, CacheInputs]:
    """Compute the cache key for a target of a project.

    Returns:
        Tuple of (cache_key, CacheInputs).
    """
    inputs = create_cache_inputs(triple, manifest_path)
    return compute_cache_key_from_inputs(inputs), inputs


__all__ = [
    "CACHE_KEY_SCHEMA_VERSION",
    "LOCKFILE_NAME",
    "CacheInputs",
    "compute_cache_key",
    "compute_cache_key_from_inputs",
    "compute_lock_fingerprint",
    "create_cache_inputs",
    "lockfile_for_manifest",
]
