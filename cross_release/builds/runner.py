"""Build runner for executing cargo/cross release builds.

This module handles:
- Composing `cargo build` / `cross build` commands for a target triple
- Executing builds with subprocess
- Capturing compiler output to per-target log files
- Enforcing per-job build timeouts

A build either returns a populated release output directory or raises; the
caller never packages the output of a failed build.
"""

from __future__ import annotations

import logging
import os
import shlex
import signal
import subprocess
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import IO, TYPE_CHECKING

from cross_release.config import get_settings
from cross_release.errors import (
    BuildTimeoutError,
    CompileFailureError,
    ToolchainMissingError,
)

if TYPE_CHECKING:
    from cross_release.config import Settings
    from cross_release.toolchain.provisioner import ToolchainProvisioner

logger = logging.getLogger(__name__)

LOG_HEADER_END = "# " + "=" * 70 + "\n"


@dataclass
class BuildOutput:
    """Result of a successful build.

    Attributes:
        triple: Target triple.
        output_dir: Release output directory holding the binaries.
        log_path: Path to the build log file.
        command: The command that was executed.
        exit_code: Process exit code.
        started_at: Build start time.
        finished_at: Build finish time.
    """

    triple: str
    output_dir: Path
    log_path: Path
    command: str
    exit_code: int
    started_at: datetime
    finished_at: datetime


def resolve_target_dir(manifest_path: Path, settings: Settings) -> Path:
    """Return the cargo target directory used for a manifest."""
    if settings.target_dir is not None:
        return settings.target_dir
    return manifest_path.parent / "target"


def release_output_dir(manifest_path: Path, triple: str, settings: Settings) -> Path:
    """Return the release output directory for a triple.

    Cargo places cross-target release binaries in ``<target>/<triple>/release``.
    """
    return resolve_target_dir(manifest_path, settings) / triple / "release"


def compose_build_command(builder: str, triple: str, manifest_path: Path) -> list[str]:
    """Compose the release build command.

    Args:
        builder: ``cargo`` or ``cross``.
        triple: Target triple.
        manifest_path: Path to Cargo.toml.

    Returns:
        Command as list of strings suitable for subprocess.
    """
    return [
        builder,
        "build",
        "--target",
        triple,
        "--release",
        "--manifest-path",
        str(manifest_path),
    ]


def build_environment(settings: Settings) -> dict[str, str]:
    """Return the environment for a build process."""
    env = dict(os.environ)
    env["CROSS_NO_WARNINGS"] = "0"
    if settings.target_dir is not None:
        env["CARGO_TARGET_DIR"] = str(settings.target_dir)
    return env


def read_build_output(log_path: Path) -> str:
    """Return the compiler output recorded in a build log, without headers."""
    text = log_path.read_text(encoding="utf-8", errors="replace")
    _, sep, body = text.partition(LOG_HEADER_END)
    body = body if sep else text
    footer = body.rfind("\n# Finished:")
    if footer != -1:
        body = body[:footer]
    return body.strip("\n")


def tail_lines(text: str, count: int) -> str:
    """Return the last ``count`` lines of text."""
    lines = text.splitlines()
    return "\n".join(lines[-count:])


def _run_process_group(
    cmd: list[str],
    cwd: Path,
    stdout: IO[str],
    env: dict[str, str],
    timeout: int | None,
) -> int:
    """Run a command in its own session and return its exit code.

    On timeout the whole process group is killed, so compiler processes and
    containers started by the build tool do not outlive the job.

    Raises:
        subprocess.TimeoutExpired: If the command exceeds ``timeout``.
    """
    process = subprocess.Popen(
        cmd,
        cwd=cwd,
        stdout=stdout,
        stderr=subprocess.STDOUT,
        env=env,
        start_new_session=True,
    )
    try:
        return process.wait(timeout=timeout)
    except subprocess.TimeoutExpired:
        try:
            os.killpg(process.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass
        process.wait()
        raise


def run_build(
    triple: str,
    manifest_path: Path,
    provisioner: ToolchainProvisioner,
    settings: Settings | None = None,
    builder: str | None = None,
) -> BuildOutput:
    """Execute a release build for one target.

    Args:
        triple: Target triple.
        manifest_path: Path to Cargo.toml, forwarded unchanged.
        provisioner: Provisioner that must already have provisioned the triple.
        settings: Application settings.
        builder: ``cargo`` or ``cross``; chosen by the provisioner if omitted.

    Returns:
        BuildOutput with execution details.

    Raises:
        ToolchainMissingError: If the triple is not provisioned or the build
            tool cannot be started.
        CompileFailureError: If the build tool exits non-zero.
        BuildTimeoutError: If the build exceeds the configured timeout.
    """
    if settings is None:
        settings = get_settings()

    if not provisioner.is_provisioned(triple):
        raise ToolchainMissingError(
            f"Toolchain for {triple} has not been provisioned"
        )

    if builder is None:
        builder = provisioner.select_builder(triple)

    settings.log_dir.mkdir(parents=True, exist_ok=True)
    log_path = settings.log_dir / f"{triple}.log"
    output_dir = release_output_dir(manifest_path, triple, settings)
    timeout = settings.job_timeout

    cmd = compose_build_command(builder, triple, manifest_path)
    cmd_str = shlex.join(cmd)
    logger.info("Executing build: %s", cmd_str)
    logger.debug("Output directory: %s", output_dir)

    started_at = datetime.now(timezone.utc)

    try:
        with log_path.open("w", encoding="utf-8") as log_file:
            log_file.write(f"# Command: {cmd_str}\n")
            log_file.write(f"# Started: {started_at.isoformat()}\n")
            log_file.write(f"# Target: {triple}\n")
            log_file.write(LOG_HEADER_END + "\n")
            log_file.flush()

            exit_code = _run_process_group(
                cmd,
                cwd=manifest_path.parent,
                stdout=log_file,
                env=build_environment(settings),
                timeout=timeout,
            )

    except subprocess.TimeoutExpired as e:
        message = f"Build for {triple} timed out after {timeout} seconds"
        logger.error("%s. See log: %s", message, log_path)
        with log_path.open("a", encoding="utf-8") as log_file:
            log_file.write(f"\n# TIMEOUT after {timeout} seconds\n")
        raise BuildTimeoutError(
            message,
            timeout=float(timeout or 0),
            log_path=str(log_path),
        ) from e

    except OSError as e:
        message = f"Failed to execute {builder}: {e}"
        logger.error(message)
        raise ToolchainMissingError(message) from e

    finished_at = datetime.now(timezone.utc)

    with log_path.open("a", encoding="utf-8") as log_file:
        log_file.write(f"\n# Finished: {finished_at.isoformat()}\n")
        log_file.write(f"# Exit code: {exit_code}\n")
        duration = (finished_at - started_at).total_seconds()
        log_file.write(f"# Duration: {duration:.1f}s\n")

    if exit_code != 0:
        output = read_build_output(log_path)
        message = f"{builder} build for {triple} failed with exit code {exit_code}"
        logger.error("%s. See log: %s", message, log_path)
        tail = tail_lines(output, settings.diagnostic_tail_lines)
        raise CompileFailureError(
            f"{message}\n{tail}" if tail else message,
            exit_code=exit_code,
            output=output,
            log_path=str(log_path),
        )

    return BuildOutput(
        triple=triple,
        output_dir=output_dir,
        log_path=log_path,
        command=cmd_str,
        exit_code=exit_code,
        started_at=started_at,
        finished_at=finished_at,
    )


__all__ = [
    "BuildOutput",
    "build_environment",
    "compose_build_command",
    "read_build_output",
    "release_output_dir",
    "resolve_target_dir",
    "run_build",
    "tail_lines",
]
