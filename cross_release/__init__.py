"""cross-release - multi-target release builds for Rust command-line tools.

This package provides orchestration around cargo and cross for building a
tool for a matrix of target triples, caching dependency state per target,
and packaging the binaries under deterministic names.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
