"""Toolchain provisioning for build targets.

This module handles:
- Checking that the executing host can build a target
- Installing the rustup target component for a triple
- Installing the pinned cross helper when a target needs it
- Serialising host-wide toolchain changes with a process lock and a file lock

Provisioning is idempotent: a triple provisioned once by a provisioner is a
no-op on every later call.
"""

from __future__ import annotations

import fcntl
import logging
import os
import shutil
import subprocess
import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING

from cross_release.config import get_settings
from cross_release.errors import HostMismatchError, ProvisionError
from cross_release.toolchain.host import (
    detect_host_os,
    detect_host_triple,
    os_family_for_label,
    target_os_family,
)
from cross_release.types import OSFamily

if TYPE_CHECKING:
    from cross_release.config import Settings

logger = logging.getLogger(__name__)

CARGO = "cargo"
CROSS = "cross"


@contextmanager
def toolchain_lock(
    lock_dir: Path,
    timeout: float | None = None,
) -> Iterator[None]:
    """Acquire the host-wide toolchain lock.

    Uses a file-based lock so separate processes provisioning on the same
    host do not interleave rustup or cargo install runs.

    Args:
        lock_dir: Directory for the lock file.
        timeout: Lock acquisition timeout in seconds (None = blocking).

    Yields:
        None when lock is acquired.

    Raises:
        TimeoutError: If lock cannot be acquired within timeout.
    """
    lock_dir.mkdir(parents=True, exist_ok=True)
    lock_file = lock_dir / "toolchain.lock"

    logger.debug("Acquiring toolchain lock %s", lock_file)

    fd = os.open(str(lock_file), os.O_RDWR | os.O_CREAT, 0o600)
    lock_acquired = False
    try:
        if timeout is not None:
            start = time.monotonic()
            while True:
                try:
                    fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
                    lock_acquired = True
                    break
                except BlockingIOError:
                    if time.monotonic() - start >= timeout:
                        raise TimeoutError(
                            f"Timeout waiting for toolchain lock {lock_file}"
                        ) from None
                    time.sleep(0.1)
        else:
            fcntl.flock(fd, fcntl.LOCK_EX)
            lock_acquired = True

        logger.debug("Toolchain lock acquired")
        yield
    finally:
        if lock_acquired:
            fcntl.flock(fd, fcntl.LOCK_UN)
            logger.debug("Toolchain lock released")
        os.close(fd)


class ToolchainProvisioner:
    """Owns the host's Rust toolchain installation state.

    One provisioner is shared by all jobs running on a host. Calls to
    ensure() are serialised; builds may run concurrently once their
    targets are provisioned.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        host_triple: str | None = None,
    ) -> None:
        self.settings = settings if settings is not None else get_settings()
        self.host_os: OSFamily = detect_host_os(self.settings.host_os)
        self._host_triple = host_triple
        # Guards _provisioned only; never held across a subprocess call
        self._state_lock = threading.Lock()
        # Serialises install work within this process
        self._install_lock = threading.Lock()
        self._provisioned: set[str] = set()
        self._toolchain_updated = False
        self._cross_ready = False

    @property
    def host_triple(self) -> str | None:
        if self._host_triple is None:
            self._host_triple = detect_host_triple()
        return self._host_triple

    @property
    def lock_dir(self) -> Path:
        return self.settings.cache_dir / ".locks"

    def is_provisioned(self, triple: str) -> bool:
        """Whether ensure() has completed for the triple."""
        with self._state_lock:
            return triple in self._provisioned

    def check_host(self, triple: str, host_os: str) -> None:
        """Validate the executing host belongs to the required host class.

        Raises:
            HostMismatchError: If the host OS family differs.
        """
        try:
            required = os_family_for_label(host_os)
        except ValueError as e:
            raise ProvisionError(str(e), code="invalid_host_label") from e
        if required != self.host_os:
            raise HostMismatchError(triple, required.value, self.host_os.value)

    def select_builder(self, triple: str) -> str:
        """Choose cargo or cross for a triple.

        cargo is used for the host's native triple and for Apple targets on
        a macOS host; every other target goes through cross.
        """
        if self.settings.builder != "auto":
            return self.settings.builder
        if triple == self.host_triple:
            return CARGO
        if target_os_family(triple) == OSFamily.MACOS and self.host_os == OSFamily.MACOS:
            return CARGO
        return CROSS

    def ensure(self, triple: str, host_os: str) -> None:
        """Ensure the toolchain for a triple is installed.

        Args:
            triple: Target triple.
            host_os: Host label the target requires.

        Raises:
            HostMismatchError: If this host cannot build the target.
            ProvisionError: If an installation step fails.
        """
        self.check_host(triple, host_os)

        with self._install_lock:
            if self.is_provisioned(triple):
                logger.debug("Toolchain for %s already provisioned", triple)
                return

            try:
                with toolchain_lock(
                    self.lock_dir, timeout=self.settings.provision_timeout
                ):
                    if self.settings.update_toolchain and not self._toolchain_updated:
                        self._run(["rustup", "update", "stable"])
                        self._toolchain_updated = True

                    if triple in self.installed_targets():
                        logger.info("Rust target %s already installed", triple)
                    else:
                        logger.info("Installing Rust target %s", triple)
                        self._run(["rustup", "target", "add", triple])

                    if self.select_builder(triple) == CROSS:
                        self._ensure_cross()
            except TimeoutError as e:
                raise ProvisionError(str(e), code="provision_lock_timeout") from e

            with self._state_lock:
                self._provisioned.add(triple)
            logger.info("Toolchain ready for %s", triple)

    def installed_targets(self) -> set[str]:
        """Return the rustup targets installed on this host."""
        output = self._run(["rustup", "target", "list", "--installed"])
        return {line.strip() for line in output.splitlines() if line.strip()}

    def _ensure_cross(self) -> None:
        if self._cross_ready:
            return
        if shutil.which(CROSS) is not None:
            logger.debug("cross found on PATH")
        else:
            logger.info(
                "Installing cross from %s at %s",
                self.settings.cross_git,
                self.settings.cross_rev,
            )
            env = dict(os.environ)
            env["RUSTFLAGS"] = ""
            self._run(
                [
                    "cargo",
                    "install",
                    "cross",
                    "--git",
                    self.settings.cross_git,
                    "--rev",
                    self.settings.cross_rev,
                ],
                env=env,
            )
        self._cross_ready = True

    def _run(self, cmd: list[str], env: dict[str, str] | None = None) -> str:
        """Run a provisioning command and return its output.

        Raises:
            ProvisionError: If the command cannot run, fails, or times out.
        """
        logger.debug("Running: %s", " ".join(cmd))
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.settings.provision_timeout,
                env=env,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            raise ProvisionError(
                f"{cmd[0]} timed out after {self.settings.provision_timeout}s",
                code="provision_timeout",
            ) from e
        except OSError as e:
            raise ProvisionError(
                f"Failed to run {cmd[0]}: {e}",
                code="provision_tool_missing",
            ) from e

        output = (result.stdout or "") + (result.stderr or "")
        if result.returncode != 0:
            raise ProvisionError(
                f"{' '.join(cmd)} failed with exit code {result.returncode}",
                output=output,
            )
        return result.stdout or ""


__all__ = [
    "CARGO",
    "CROSS",
    "ToolchainProvisioner",
    "toolchain_lock",
]
