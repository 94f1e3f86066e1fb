"""Built-in release matrix.

These are the targets the release workflow publishes binaries for. Apple
targets need a macOS host; everything else cross-compiles from Linux.
"""

from cross_release.matrix.schema import MatrixSchema, TargetSchema

DEFAULT_TARGETS: list[tuple[str, str]] = [
    ("aarch64-linux-android", "ubuntu-latest"),
    ("x86_64-linux-android", "ubuntu-latest"),
    ("x86_64-pc-windows-gnu", "ubuntu-latest"),
    ("x86_64-apple-darwin", "macos-latest"),
    ("aarch64-apple-darwin", "macos-latest"),
    ("aarch64-unknown-linux-musl", "ubuntu-latest"),
    ("x86_64-unknown-linux-musl", "ubuntu-latest"),
]


def default_matrix() -> MatrixSchema:
    """Return the built-in release matrix."""
    return MatrixSchema(
        targets=[
            TargetSchema(triple=triple, host_os=host_os)
            for triple, host_os in DEFAULT_TARGETS
        ]
    )


__all__ = ["DEFAULT_TARGETS", "default_matrix"]
