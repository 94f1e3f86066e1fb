"""Allow running as ``python -m cross_release``."""

from cross_release.cli import app

if __name__ == "__main__":
    app()
