"""
Unit tests for KernelBuildOrchestrator.

Tests the complete build orchestration from raw options through plan
execution, with external processes mocked out.
"""

from pathlib import Path
from unittest.mock import Mock

import pytest

from kforge.build.executor import ProcessOrchestrator
from kforge.build.orchestrator import BuildResult, KernelBuildOrchestrator
from kforge.build.steps import StepKind, StepResult, StepStatus
from kforge.config.layout import ProjectLayout
from kforge.config.options import Board, RawOptions
from kforge.errors import ExternalProcessFailure, InvalidCombination
from kforge.packages.toolchain import ToolchainResolver


# Test fixtures

@pytest.fixture
def layout(tmp_path):
    kernel_dir = tmp_path / "kernel"
    kernel_dir.mkdir()
    return ProjectLayout.at(kernel_dir)


@pytest.fixture
def mock_executor():
    executor = Mock(spec=ProcessOrchestrator)
    executor.execute = Mock(
        side_effect=lambda steps: [StepResult(s, StepStatus.SUCCEEDED) for s in steps]
    )
    return executor


@pytest.fixture
def orchestrator(layout, mock_executor):
    return KernelBuildOrchestrator(
        layout,
        toolchain_resolver=ToolchainResolver(which=lambda name: None, system=lambda: "Linux"),
        executor=mock_executor,
        sysroot_detector=lambda: Path("/sysroot"),
    )


def executed_kinds(mock_executor):
    steps = mock_executor.execute.call_args.args[0]
    return [step.kind for step in steps]


# Tests

class TestConfigure:
    def test_configure_resolves(self, orchestrator):
        config = orchestrator.configure(RawOptions(arch="riscv64", board="u540"))
        assert config.is_resolved
        assert "sv39" in config.features

    def test_configure_rejects_conflicts(self, orchestrator):
        with pytest.raises(InvalidCombination):
            orchestrator.configure(RawOptions(arch="x86_64", board="u540"))

    def test_default_disk_image_next_to_kernel(self, orchestrator, layout):
        config = orchestrator.configure(RawOptions())
        assert config.sfsimg == layout.user_dir / "img" / "ucore-riscv32.img"


class TestBuild:
    def test_riscv32_default_build(self, orchestrator, mock_executor, layout):
        result = orchestrator.build(RawOptions(arch="riscv32", board="none", mode="debug", smp=4))

        assert isinstance(result, BuildResult)
        assert result.success
        assert result.artifact == layout.kernel_dir / "target/riscv32/debug/kernel.bin"
        assert result.config.features == {"nographic"}
        assert executed_kinds(mock_executor) == [
            StepKind.PATCH,
            StepKind.COMPILE,
            StepKind.BOOTLOADER_CONFIGURE,
            StepKind.BOOTLOADER_BUILD,
            StepKind.COPY,
        ]
        assert len(result.step_results) == 5

    def test_aarch64_board_override(self, orchestrator, mock_executor):
        result = orchestrator.build(RawOptions(arch="aarch64", board="k210"))

        assert result.success
        assert result.config.board is Board.RASPI3
        assert result.config.graphic is True
        assert executed_kinds(mock_executor) == [StepKind.COMPILE, StepKind.STRIP]

    def test_k210_build(self, orchestrator, mock_executor):
        result = orchestrator.build(RawOptions(arch="riscv64", board="k210"))

        assert result.success
        assert result.config.m_mode is True
        kinds = executed_kinds(mock_executor)
        assert kinds[0] is StepKind.FETCH
        assert StepKind.BOOTLOADER_BUILD not in kinds

    def test_patch_ignored_without_rust_sysroot(self, layout, mock_executor):
        orchestrator = KernelBuildOrchestrator(
            layout,
            toolchain_resolver=ToolchainResolver(which=lambda name: None, system=lambda: "Linux"),
            executor=mock_executor,
            sysroot_detector=lambda: None,
        )
        result = orchestrator.build(RawOptions(arch="riscv32", board="none", mode="debug", smp=4))

        assert result.success
        assert executed_kinds(mock_executor)[0] is StepKind.PATCH
        patch = mock_executor.execute.call_args.args[0][0]
        assert patch.soft_fail is True
        assert patch.unavailable

    def test_sysroot_not_detected_for_aarch64(self, layout, mock_executor):
        detector = Mock(return_value=Path("/sysroot"))
        orchestrator = KernelBuildOrchestrator(
            layout, executor=mock_executor, sysroot_detector=detector
        )
        orchestrator.build(RawOptions(arch="aarch64"))
        detector.assert_not_called()

    def test_invalid_options_fail_before_any_process(self, orchestrator, mock_executor):
        result = orchestrator.build(RawOptions(arch="aarch64", m_mode=True))

        assert not result.success
        assert result.artifact is None
        assert "M-mode" in result.message
        mock_executor.execute.assert_not_called()

    def test_process_failure_reported(self, orchestrator, mock_executor):
        mock_executor.execute.side_effect = ExternalProcessFailure(
            "Compile kernel for riscv32", "cargo", ["xbuild"], 101
        )
        result = orchestrator.build(RawOptions())

        assert not result.success
        assert "exit status 101" in result.message
        assert "cargo xbuild" in result.message
        assert result.config is not None
