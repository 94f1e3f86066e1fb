"""Tests for matrix/schema.py and matrix/defaults.py."""

import pytest
from pydantic import ValidationError

from cross_release.matrix.defaults import DEFAULT_TARGETS, default_matrix
from cross_release.matrix.schema import MatrixSchema, TargetSchema, find_duplicate_triples
from cross_release.types import OSFamily


class TestTargetSchema:
    """Tests for TargetSchema validation."""

    def test_defaults(self) -> None:
        """host_os defaults to ubuntu-latest and caching is on."""
        target = TargetSchema(triple="x86_64-unknown-linux-musl")
        assert target.host_os == "ubuntu-latest"
        assert target.use_cache is True
        assert target.os_family == OSFamily.LINUX

    def test_ci_aliases(self) -> None:
        """CI matrix keys 'target' and 'os' are accepted."""
        target = TargetSchema.model_validate(
            {"target": "aarch64-apple-darwin", "os": "macos-latest"}
        )
        assert target.triple == "aarch64-apple-darwin"
        assert target.os_family == OSFamily.MACOS

    def test_unknown_host_label_rejected(self) -> None:
        """Unrecognised host labels fail validation."""
        with pytest.raises(ValidationError):
            TargetSchema(triple="x86_64-unknown-linux-musl", host_os="solaris-11")

    def test_invalid_triple_rejected(self) -> None:
        """Triples with unsafe characters fail validation."""
        with pytest.raises(ValidationError):
            TargetSchema(triple="x86_64 linux; rm -rf /")

    def test_extra_fields_rejected(self) -> None:
        """Unknown keys are rejected."""
        with pytest.raises(ValidationError):
            TargetSchema.model_validate({"target": "x86_64-linux-android", "rust": "1.80"})

    def test_frozen(self) -> None:
        """Descriptors are immutable."""
        target = TargetSchema(triple="x86_64-linux-android")
        with pytest.raises(ValidationError):
            target.use_cache = False  # type: ignore[misc]


class TestMatrixSchema:
    """Tests for MatrixSchema validation."""

    def test_empty_matrix_rejected(self) -> None:
        """A matrix needs at least one target."""
        with pytest.raises(ValidationError):
            MatrixSchema(targets=[])

    def test_duplicate_triples_rejected(self) -> None:
        """A triple may appear only once."""
        with pytest.raises(ValidationError, match="duplicate"):
            MatrixSchema(
                targets=[
                    TargetSchema(triple="x86_64-linux-android"),
                    TargetSchema(triple="x86_64-linux-android", use_cache=False),
                ]
            )

    def test_triples_keep_order(self) -> None:
        """triples lists targets in matrix order."""
        matrix = MatrixSchema(
            targets=[
                TargetSchema(triple="b-unknown-linux-musl"),
                TargetSchema(triple="a-unknown-linux-musl"),
            ]
        )
        assert matrix.triples == ["b-unknown-linux-musl", "a-unknown-linux-musl"]


class TestFindDuplicateTriples:
    """Tests for find_duplicate_triples."""

    def test_reports_each_duplicate_once(self) -> None:
        targets = [
            TargetSchema(triple="a-linux-android"),
            TargetSchema(triple="a-linux-android"),
            TargetSchema(triple="a-linux-android"),
            TargetSchema(triple="b-linux-android"),
        ]
        assert find_duplicate_triples(targets) == ["a-linux-android"]

    def test_no_duplicates(self) -> None:
        assert find_duplicate_triples([TargetSchema(triple="a-linux-android")]) == []


class TestDefaultMatrix:
    """Tests for the built-in release matrix."""

    def test_has_seven_targets(self) -> None:
        matrix = default_matrix()
        assert len(matrix.targets) == 7
        assert matrix.triples == [triple for triple, _ in DEFAULT_TARGETS]

    def test_apple_targets_need_macos(self) -> None:
        """Apple targets run on macOS hosts, the rest on Linux."""
        for target in default_matrix().targets:
            if "-apple-" in target.triple:
                assert target.os_family == OSFamily.MACOS
            else:
                assert target.os_family == OSFamily.LINUX
