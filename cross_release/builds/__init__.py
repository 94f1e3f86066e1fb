"""Build orchestration module.

This module handles:
- Running cargo/cross release builds per target
- Artifact packaging, checksums and manifests
- Matrix fan-out and result aggregation
- Job history records
"""

from cross_release.builds.models import JobRecord

__all__ = ["JobRecord"]

# Lazy imports for submodules to avoid circular imports
# Access via cross_release.builds.orchestrator, etc.
