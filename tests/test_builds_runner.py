"""Tests for builds/runner.py module.

Tests build command composition and execution.
Uses mocked subprocess for build execution tests.
"""

import signal
import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from cross_release.builds.runner import (
    BuildOutput,
    build_environment,
    compose_build_command,
    read_build_output,
    release_output_dir,
    run_build,
    tail_lines,
)
from cross_release.config import Settings
from cross_release.errors import (
    BuildTimeoutError,
    CompileFailureError,
    ToolchainMissingError,
)

TRIPLE = "x86_64-unknown-linux-musl"
POPEN_PATH = "cross_release.builds.runner.subprocess.Popen"


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Create settings with a temporary log directory."""
    return Settings(log_dir=tmp_path / "logs", diagnostic_tail_lines=3)


@pytest.fixture
def manifest(tmp_path: Path) -> Path:
    """Create a project manifest."""
    path = tmp_path / "project" / "Cargo.toml"
    path.parent.mkdir()
    path.write_text('[package]\nname = "xortool"\n', encoding="utf-8")
    return path


@pytest.fixture
def provisioner() -> MagicMock:
    """Create a provisioner that reports every triple as provisioned."""
    mock = MagicMock()
    mock.is_provisioned.return_value = True
    mock.select_builder.return_value = "cross"
    return mock


def _writing_popen(text: str, returncode: int):
    def popen(cmd, **kwargs):
        kwargs["stdout"].write(text)
        return MagicMock(pid=4242, **{"wait.return_value": returncode})

    return popen


class TestComposeBuildCommand:
    """Tests for compose_build_command."""

    def test_release_build(self, manifest):
        cmd = compose_build_command("cross", TRIPLE, manifest)
        assert cmd == [
            "cross",
            "build",
            "--target",
            TRIPLE,
            "--release",
            "--manifest-path",
            str(manifest),
        ]

    def test_manifest_forwarded_unchanged(self):
        cmd = compose_build_command("cargo", TRIPLE, Path("sub dir/Cargo.toml"))
        assert cmd[-1] == "sub dir/Cargo.toml"


class TestPaths:
    """Tests for output directory resolution."""

    def test_default_target_dir(self, manifest):
        settings = Settings()
        assert release_output_dir(manifest, TRIPLE, settings) == (
            manifest.parent / "target" / TRIPLE / "release"
        )

    def test_configured_target_dir(self, manifest, tmp_path):
        settings = Settings(target_dir=tmp_path / "tgt")
        assert release_output_dir(manifest, TRIPLE, settings) == (
            tmp_path / "tgt" / TRIPLE / "release"
        )

    def test_environment(self, tmp_path):
        env = build_environment(Settings(target_dir=tmp_path / "tgt"))
        assert env["CROSS_NO_WARNINGS"] == "0"
        assert env["CARGO_TARGET_DIR"] == str(tmp_path / "tgt")


class TestTailLines:
    """Tests for tail_lines."""

    def test_tail(self):
        assert tail_lines("a\nb\nc\nd", 2) == "c\nd"

    def test_short_text(self):
        assert tail_lines("a", 5) == "a"


class TestRunBuild:
    """Tests for run_build with mocked subprocess."""

    def test_success(self, settings, manifest, provisioner):
        with patch(
            POPEN_PATH,
            side_effect=_writing_popen("Compiling xortool\nFinished release\n", 0),
        ) as mock_popen:
            output = run_build(TRIPLE, manifest, provisioner, settings)

        assert isinstance(output, BuildOutput)
        assert output.exit_code == 0
        assert output.output_dir == manifest.parent / "target" / TRIPLE / "release"
        assert output.log_path == settings.log_dir / f"{TRIPLE}.log"
        assert mock_popen.call_args.kwargs["cwd"] == manifest.parent
        assert mock_popen.call_args.args[0][0] == "cross"
        assert read_build_output(output.log_path) == "Compiling xortool\nFinished release"

    def test_not_provisioned(self, settings, manifest, provisioner):
        provisioner.is_provisioned.return_value = False
        with patch(POPEN_PATH) as mock_popen:
            with pytest.raises(ToolchainMissingError):
                run_build(TRIPLE, manifest, provisioner, settings)
        mock_popen.assert_not_called()

    def test_compile_failure_keeps_output(self, settings, manifest, provisioner):
        compiler_output = "\n".join(
            [
                "Compiling xortool v1.0.0",
                "error[E0425]: cannot find value `x` in this scope",
                " --> src/main.rs:3:5",
                "  |",
                "3 |     x",
                "error: could not compile `xortool`",
            ]
        )
        with patch(
            POPEN_PATH,
            side_effect=_writing_popen(compiler_output + "\n", 101),
        ):
            with pytest.raises(CompileFailureError) as exc_info:
                run_build(TRIPLE, manifest, provisioner, settings)

        error = exc_info.value
        assert error.code == "compile_failure"
        assert error.exit_code == 101
        assert error.output == compiler_output
        assert "could not compile" in str(error)
        assert "Compiling xortool" not in str(error)
        assert error.log_path == str(settings.log_dir / f"{TRIPLE}.log")

    def test_timeout_kills_process_group(self, tmp_path, manifest, provisioner):
        settings = Settings(log_dir=tmp_path / "logs", job_timeout=5)
        process = MagicMock(pid=4242)
        process.wait.side_effect = [
            subprocess.TimeoutExpired(cmd="cross", timeout=5),
            -signal.SIGKILL,
        ]
        with (
            patch(POPEN_PATH, return_value=process),
            patch("cross_release.builds.runner.os.killpg") as mock_killpg,
        ):
            with pytest.raises(BuildTimeoutError) as exc_info:
                run_build(TRIPLE, manifest, provisioner, settings)

        mock_killpg.assert_called_once_with(4242, signal.SIGKILL)
        assert process.wait.call_count == 2
        assert exc_info.value.timeout == 5
        assert exc_info.value.code == "build_timeout"
        log_text = (settings.log_dir / f"{TRIPLE}.log").read_text(encoding="utf-8")
        assert "TIMEOUT" in log_text

    def test_timeout_after_group_exited(self, tmp_path, manifest, provisioner):
        settings = Settings(log_dir=tmp_path / "logs", job_timeout=5)
        process = MagicMock(pid=4242)
        process.wait.side_effect = [
            subprocess.TimeoutExpired(cmd="cross", timeout=5),
            0,
        ]
        with (
            patch(POPEN_PATH, return_value=process),
            patch(
                "cross_release.builds.runner.os.killpg",
                side_effect=ProcessLookupError,
            ),
        ):
            with pytest.raises(BuildTimeoutError):
                run_build(TRIPLE, manifest, provisioner, settings)

    def test_timeout_passed_to_subprocess(self, tmp_path, manifest, provisioner):
        settings = Settings(log_dir=tmp_path / "logs", job_timeout=42)
        process = MagicMock(pid=4242, **{"wait.return_value": 0})
        with patch(POPEN_PATH, return_value=process) as mock_popen:
            run_build(TRIPLE, manifest, provisioner, settings)

        process.wait.assert_called_once_with(timeout=42)
        assert mock_popen.call_args.kwargs["start_new_session"] is True

    def test_builder_not_found(self, settings, manifest, provisioner):
        with patch(
            POPEN_PATH,
            side_effect=FileNotFoundError("cross"),
        ):
            with pytest.raises(ToolchainMissingError):
                run_build(TRIPLE, manifest, provisioner, settings)
