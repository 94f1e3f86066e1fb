"""Target matrix module.

This module handles:
- Target descriptor and matrix validation
- Loading matrices from YAML/JSON files
- The built-in release matrix
"""

from cross_release.matrix.defaults import default_matrix
from cross_release.matrix.io import load_matrix, matrix_from_triples
from cross_release.matrix.schema import MatrixSchema, TargetSchema

__all__ = [
    "MatrixSchema",
    "TargetSchema",
    "default_matrix",
    "load_matrix",
    "matrix_from_triples",
]
