"""Toolchain management module.

This module handles:
- Host OS and target triple classification
- Idempotent, host-serialised provisioning of rustup targets and cross
"""

from cross_release.toolchain.provisioner import ToolchainProvisioner

__all__ = ["ToolchainProvisioner"]
