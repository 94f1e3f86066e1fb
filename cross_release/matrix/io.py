"""Target matrix loading and rendering.

Matrix files are YAML or JSON mappings with a ``targets`` list. A CI style
``include`` list (optionally nested under ``matrix``) is accepted as well,
so a workflow's ``strategy.matrix`` block can be reused as is.
"""

import json
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from cross_release.errors import ConfigurationError
from cross_release.matrix.schema import MatrixSchema, TargetSchema


def load_yaml(path: Path) -> dict[str, Any]:
    """Load a YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: If the file does not exist.
        yaml.YAMLError: If the file is not valid YAML.
        ValueError: If the document is not a mapping.
    """
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Expected a YAML mapping, got {type(data).__name__}")
    return data


def load_json(path: Path) -> dict[str, Any]:
    """Load a JSON file and return its contents as a dict.

    Raises:
        FileNotFoundError: If the file does not exist.
        json.JSONDecodeError: If the file is not valid JSON.
        ValueError: If the document is not an object.
    """
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
    return data


def _extract_targets(data: dict[str, Any]) -> Any:
    if "matrix" in data and isinstance(data["matrix"], dict):
        data = data["matrix"]
    if "targets" in data:
        return data["targets"]
    if "include" in data:
        return data["include"]
    raise ConfigurationError("Matrix must define a 'targets' (or 'include') list")


def parse_matrix_data(data: dict[str, Any]) -> MatrixSchema:
    """Parse and validate matrix data.

    Args:
        data: Mapping with a ``targets`` or ``include`` list.

    Returns:
        Validated MatrixSchema.

    Raises:
        ConfigurationError: If the data is malformed, empty, or names a
            triple twice.
    """
    targets = _extract_targets(data)
    try:
        return MatrixSchema.model_validate({"targets": targets})
    except ValidationError as e:
        raise ConfigurationError(f"Invalid target matrix: {e}") from e


def load_matrix(path: Path) -> MatrixSchema:
    """Load and validate a matrix from a YAML or JSON file.

    File format is determined by extension (.yaml, .yml for YAML,
    .json for JSON).

    Raises:
        ConfigurationError: If the file is missing, unparsable or invalid.
    """
    suffix = path.suffix.lower()
    try:
        if suffix in (".yaml", ".yml"):
            data = load_yaml(path)
        elif suffix == ".json":
            data = load_json(path)
        else:
            raise ConfigurationError(
                f"Unsupported file extension '{suffix}'. Use .yaml, .yml, or .json"
            )
    except FileNotFoundError as e:
        raise ConfigurationError(f"Matrix file not found: {path}") from e
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Parse error in {path}: {e}") from e
    except ValueError as e:
        raise ConfigurationError(f"{path}: {e}") from e
    return parse_matrix_data(data)


def matrix_from_triples(
    triples: list[str],
    host_os: str = "ubuntu-latest",
    use_cache: bool = True,
) -> MatrixSchema:
    """Build a matrix from bare triples sharing one host label.

    Raises:
        ConfigurationError: If the triples are invalid or repeated.
    """
    try:
        return MatrixSchema(
            targets=[
                TargetSchema(triple=t, host_os=host_os, use_cache=use_cache)
                for t in triples
            ]
        )
    except ValidationError as e:
        raise ConfigurationError(f"Invalid target matrix: {e}") from e


def matrix_to_yaml_string(matrix: MatrixSchema) -> str:
    """Render a matrix as YAML."""
    data = matrix.model_dump()
    result: str = yaml.dump(
        data, default_flow_style=False, allow_unicode=True, sort_keys=False
    )
    return result


def matrix_to_json_string(matrix: MatrixSchema) -> str:
    """Render a matrix as JSON."""
    return json.dumps(matrix.model_dump(), indent=2, ensure_ascii=False)


__all__ = [
    "load_json",
    "load_matrix",
    "load_yaml",
    "matrix_from_triples",
    "matrix_to_json_string",
    "matrix_to_yaml_string",
    "parse_matrix_data",
]
