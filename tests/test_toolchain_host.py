"""Tests for toolchain/host.py module."""

import subprocess
from unittest.mock import MagicMock, patch

import pytest

from cross_release.toolchain.host import (
    detect_host_os,
    detect_host_triple,
    executable_suffix,
    os_family_for_label,
    target_os_family,
)
from cross_release.types import OSFamily


class TestOSFamilyForLabel:
    """Tests for host label resolution."""

    @pytest.mark.parametrize(
        ("label", "family"),
        [
            ("ubuntu-latest", OSFamily.LINUX),
            ("ubuntu-22.04", OSFamily.LINUX),
            ("linux", OSFamily.LINUX),
            ("macos-latest", OSFamily.MACOS),
            ("macos-14", OSFamily.MACOS),
            ("windows-2022", OSFamily.WINDOWS),
            ("  MacOS-Latest ", OSFamily.MACOS),
        ],
    )
    def test_known_labels(self, label: str, family: OSFamily) -> None:
        assert os_family_for_label(label) == family

    def test_prefix_must_be_whole_word(self) -> None:
        """'ubuntuish' is not an ubuntu label."""
        with pytest.raises(ValueError, match="Unknown host label"):
            os_family_for_label("ubuntuish")


class TestDetectHostOS:
    """Tests for detect_host_os."""

    def test_override(self) -> None:
        assert detect_host_os("macos") == OSFamily.MACOS

    def test_platform_detection(self) -> None:
        with patch("cross_release.toolchain.host.platform.system", return_value="Darwin"):
            assert detect_host_os() == OSFamily.MACOS

    def test_unsupported_platform(self) -> None:
        with patch("cross_release.toolchain.host.platform.system", return_value="Plan9"):
            with pytest.raises(ValueError, match="Unsupported"):
                detect_host_os()


class TestTargetClassification:
    """Tests for target_os_family and executable_suffix."""

    def test_families(self) -> None:
        assert target_os_family("x86_64-apple-darwin") == OSFamily.MACOS
        assert target_os_family("x86_64-pc-windows-gnu") == OSFamily.WINDOWS
        assert target_os_family("aarch64-linux-android") == OSFamily.LINUX
        assert target_os_family("x86_64-unknown-linux-musl") == OSFamily.LINUX

    def test_suffix(self) -> None:
        assert executable_suffix("x86_64-pc-windows-gnu") == ".exe"
        assert executable_suffix("x86_64-unknown-linux-musl") == ""


class TestDetectHostTriple:
    """Tests for detect_host_triple."""

    def test_parses_rustc_output(self) -> None:
        output = "rustc 1.80.0\nbinary: rustc\nhost: x86_64-unknown-linux-gnu\nrelease: 1.80.0\n"
        with patch(
            "cross_release.toolchain.host.subprocess.run",
            return_value=MagicMock(stdout=output),
        ):
            assert detect_host_triple() == "x86_64-unknown-linux-gnu"

    def test_falls_back_without_rustc(self) -> None:
        with (
            patch(
                "cross_release.toolchain.host.subprocess.run",
                side_effect=FileNotFoundError("rustc"),
            ),
            patch("cross_release.toolchain.host.platform.machine", return_value="arm64"),
            patch("cross_release.toolchain.host.platform.system", return_value="Darwin"),
        ):
            assert detect_host_triple() == "aarch64-apple-darwin"

    def test_falls_back_on_failure(self) -> None:
        with (
            patch(
                "cross_release.toolchain.host.subprocess.run",
                side_effect=subprocess.CalledProcessError(1, ["rustc"]),
            ),
            patch("cross_release.toolchain.host.platform.machine", return_value="x86_64"),
            patch("cross_release.toolchain.host.platform.system", return_value="Linux"),
        ):
            assert detect_host_triple() == "x86_64-unknown-linux-gnu"
