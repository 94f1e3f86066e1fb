"""Tests for cache/keys.py module."""

from pathlib import Path

import pytest

from cross_release.cache.keys import (
    CACHE_KEY_SCHEMA_VERSION,
    CacheInputs,
    compute_cache_key,
    compute_cache_key_from_inputs,
    compute_lock_fingerprint,
    lockfile_for_manifest,
)


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """Create a project with a manifest and lockfile; return the manifest."""
    manifest = tmp_path / "Cargo.toml"
    manifest.write_text('[package]\nname = "xortool"\n', encoding="utf-8")
    (tmp_path / "Cargo.lock").write_text("version = 3\n", encoding="utf-8")
    return manifest


class TestLockfile:
    """Tests for lockfile discovery and fingerprinting."""

    def test_prefers_lockfile(self, project: Path) -> None:
        assert lockfile_for_manifest(project) == project.parent / "Cargo.lock"

    def test_falls_back_to_manifest(self, tmp_path: Path) -> None:
        manifest = tmp_path / "Cargo.toml"
        manifest.write_text("[package]\n", encoding="utf-8")
        assert lockfile_for_manifest(manifest) == manifest
        name, digest = compute_lock_fingerprint(manifest)
        assert name == "Cargo.toml"
        assert len(digest) == 64

    def test_missing_project(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            compute_lock_fingerprint(tmp_path / "Cargo.toml")


class TestComputeCacheKey:
    """Tests for cache key computation."""

    def test_key_format(self, project: Path) -> None:
        key, inputs = compute_cache_key("x86_64-unknown-linux-musl", project)
        assert key.startswith("sha256:")
        assert len(key) == len("sha256:") + 64
        assert inputs.schema_version == CACHE_KEY_SCHEMA_VERSION
        assert inputs.lock_source == "Cargo.lock"

    def test_deterministic(self, project: Path) -> None:
        first, _ = compute_cache_key("x86_64-unknown-linux-musl", project)
        second, _ = compute_cache_key("x86_64-unknown-linux-musl", project)
        assert first == second

    def test_differs_per_triple(self, project: Path) -> None:
        a, _ = compute_cache_key("x86_64-unknown-linux-musl", project)
        b, _ = compute_cache_key("aarch64-unknown-linux-musl", project)
        assert a != b

    def test_changes_with_lockfile(self, project: Path) -> None:
        """Updating dependencies yields a new key."""
        before, _ = compute_cache_key("x86_64-unknown-linux-musl", project)
        (project.parent / "Cargo.lock").write_text("version = 4\n", encoding="utf-8")
        after, _ = compute_cache_key("x86_64-unknown-linux-musl", project)
        assert before != after

    def test_key_from_inputs(self) -> None:
        inputs = CacheInputs(
            schema_version="1",
            triple="x86_64-linux-android",
            lock_source="Cargo.lock",
            lock_fingerprint="0" * 64,
        )
        assert compute_cache_key_from_inputs(inputs) == compute_cache_key_from_inputs(
            CacheInputs(**inputs.to_dict())
        )
