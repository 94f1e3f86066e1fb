"""Tests for matrix/io.py module."""

import json
from pathlib import Path

import pytest
import yaml

from cross_release.errors import ConfigurationError
from cross_release.matrix.io import (
    load_matrix,
    matrix_from_triples,
    matrix_to_json_string,
    matrix_to_yaml_string,
    parse_matrix_data,
)


class TestParseMatrixData:
    """Tests for parse_matrix_data."""

    def test_targets_list(self) -> None:
        matrix = parse_matrix_data(
            {"targets": [{"triple": "x86_64-unknown-linux-musl", "use_cache": False}]}
        )
        assert matrix.triples == ["x86_64-unknown-linux-musl"]
        assert matrix.targets[0].use_cache is False

    def test_ci_include_block(self) -> None:
        """A workflow strategy.matrix block is accepted."""
        matrix = parse_matrix_data(
            {
                "matrix": {
                    "include": [
                        {"target": "x86_64-apple-darwin", "os": "macos-latest"},
                        {"target": "x86_64-pc-windows-gnu", "os": "ubuntu-latest"},
                    ]
                }
            }
        )
        assert matrix.triples == ["x86_64-apple-darwin", "x86_64-pc-windows-gnu"]
        assert matrix.targets[0].host_os == "macos-latest"

    def test_missing_targets_key(self) -> None:
        with pytest.raises(ConfigurationError, match="targets"):
            parse_matrix_data({"something": []})

    def test_duplicates_are_configuration_errors(self) -> None:
        with pytest.raises(ConfigurationError):
            parse_matrix_data(
                {"targets": [{"triple": "a-linux-android"}, {"triple": "a-linux-android"}]}
            )

    def test_empty_list_is_configuration_error(self) -> None:
        with pytest.raises(ConfigurationError):
            parse_matrix_data({"targets": []})


class TestLoadMatrix:
    """Tests for load_matrix."""

    def test_load_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "matrix.yaml"
        path.write_text(
            yaml.safe_dump({"targets": [{"triple": "aarch64-linux-android"}]}),
            encoding="utf-8",
        )
        assert load_matrix(path).triples == ["aarch64-linux-android"]

    def test_load_json(self, tmp_path: Path) -> None:
        path = tmp_path / "matrix.json"
        path.write_text(
            json.dumps({"include": [{"target": "aarch64-apple-darwin", "os": "macos-14"}]}),
            encoding="utf-8",
        )
        assert load_matrix(path).triples == ["aarch64-apple-darwin"]

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="not found"):
            load_matrix(tmp_path / "nope.yaml")

    def test_unsupported_extension(self, tmp_path: Path) -> None:
        path = tmp_path / "matrix.toml"
        path.write_text("", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="Unsupported"):
            load_matrix(path)

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "matrix.yaml"
        path.write_text("targets: [unclosed", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="Parse error"):
            load_matrix(path)

    def test_non_mapping_document(self, tmp_path: Path) -> None:
        path = tmp_path / "matrix.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            load_matrix(path)


class TestMatrixFromTriples:
    """Tests for matrix_from_triples."""

    def test_shared_host_label(self) -> None:
        matrix = matrix_from_triples(
            ["x86_64-apple-darwin", "aarch64-apple-darwin"], host_os="macos-latest"
        )
        assert all(t.host_os == "macos-latest" for t in matrix.targets)

    def test_repeated_triple(self) -> None:
        with pytest.raises(ConfigurationError):
            matrix_from_triples(["a-linux-android", "a-linux-android"])


class TestRendering:
    """Tests for matrix rendering."""

    def test_yaml_rendering_reloads(self, tmp_path: Path) -> None:
        matrix = matrix_from_triples(["x86_64-linux-android"])
        path = tmp_path / "out.yaml"
        path.write_text(matrix_to_yaml_string(matrix), encoding="utf-8")
        assert load_matrix(path) == matrix

    def test_json_rendering(self) -> None:
        data = json.loads(matrix_to_json_string(matrix_from_triples(["x86_64-linux-android"])))
        assert data["targets"][0]["triple"] == "x86_64-linux-android"
