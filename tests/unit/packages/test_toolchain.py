"""Unit tests for toolchain resolution."""

import subprocess
from pathlib import Path
from unittest.mock import Mock, patch

import pytest

from kforge.config.options import Architecture
from kforge.packages.toolchain import (
    ToolchainPrefix,
    ToolchainResolver,
    detect_rust_sysroot,
)


def which_finding(*names):
    """Build a shutil.which replacement that finds only the given binaries."""
    return Mock(side_effect=lambda name: f"/usr/bin/{name}" if name in names else None)


class TestToolchainPrefix:
    def test_binary_names(self):
        tc = ToolchainPrefix("riscv64-unknown-elf-")
        assert tc.ld == "riscv64-unknown-elf-ld"
        assert tc.objdump == "riscv64-unknown-elf-objdump"
        assert tc.objcopy == "riscv64-unknown-elf-objcopy"
        assert tc.cc == "riscv64-unknown-elf-gcc"
        assert tc.as_ == "riscv64-unknown-elf-as"
        assert tc.addr2line == "riscv64-unknown-elf-addr2line"

    def test_host_toolchain(self):
        tc = ToolchainPrefix("")
        assert tc.objcopy == "objcopy"
        assert tc.cc == "gcc"


class TestToolchainResolver:
    """Test cases for ToolchainResolver."""

    def test_x86_64_linux_uses_host(self):
        resolver = ToolchainResolver(which=which_finding(), system=lambda: "Linux")
        assert resolver.resolve(Architecture.X86_64).prefix == ""

    def test_x86_64_darwin_uses_cross(self):
        resolver = ToolchainResolver(which=which_finding(), system=lambda: "Darwin")
        assert resolver.resolve(Architecture.X86_64).prefix == "x86_64-elf-"

    @pytest.mark.parametrize("arch", [Architecture.RISCV32, Architecture.RISCV64])
    def test_riscv(self, arch):
        which = which_finding()
        resolver = ToolchainResolver(which=which, system=lambda: "Linux")
        assert resolver.resolve(arch).prefix == "riscv64-unknown-elf-"
        which.assert_not_called()

    def test_aarch64_primary(self):
        resolver = ToolchainResolver(which=which_finding("aarch64-none-elf-ld"))
        assert resolver.resolve(Architecture.AARCH64).prefix == "aarch64-none-elf-"

    def test_aarch64_fallback(self):
        resolver = ToolchainResolver(which=which_finding("aarch64-elf-ld"))
        assert resolver.resolve(Architecture.AARCH64).prefix == "aarch64-elf-"

    def test_aarch64_neither_found_returns_primary(self, caplog):
        resolver = ToolchainResolver(which=which_finding())
        assert resolver.resolve(Architecture.AARCH64).prefix == "aarch64-none-elf-"
        assert "found on PATH" in caplog.text

    def test_aarch64_lookup_is_cached(self):
        which = which_finding("aarch64-elf-ld")
        resolver = ToolchainResolver(which=which)
        first = resolver.resolve(Architecture.AARCH64)
        second = resolver.resolve(Architecture.AARCH64)
        assert first is second
        assert which.call_count == 2  # primary miss + fallback hit, once


class TestDetectRustSysroot:
    def test_success(self):
        completed = subprocess.CompletedProcess(
            args=[], returncode=0, stdout="/home/u/.rustup/toolchains/nightly\n", stderr=""
        )
        with patch("kforge.packages.toolchain.subprocess.run", return_value=completed):
            assert detect_rust_sysroot() == Path("/home/u/.rustup/toolchains/nightly")

    def test_rustc_missing(self):
        with patch(
            "kforge.packages.toolchain.subprocess.run",
            side_effect=FileNotFoundError("rustc"),
        ):
            assert detect_rust_sysroot() is None

    def test_rustc_fails(self):
        completed = subprocess.CompletedProcess(
            args=[], returncode=1, stdout="", stderr="error: no default toolchain"
        )
        with patch("kforge.packages.toolchain.subprocess.run", return_value=completed):
            assert detect_rust_sysroot() is None
