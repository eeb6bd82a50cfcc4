"""Auxiliary kernel tasks.

Disassembly, section and symbol views of the last build, documentation,
cleaning, the user disk image and backtrace address lookup. Each task is
expressed as CommandSteps for the ProcessOrchestrator.
"""

from pathlib import Path
from typing import List

from ..config.layout import ProjectLayout
from ..config.options import BuildConfig
from ..errors import MissingArtifact
from ..packages.toolchain import ToolchainPrefix
from .steps import CommandStep, StepKind


class AuxiliaryTasks:
    """Builds the step lists for the non-build commands."""

    def __init__(self, layout: ProjectLayout, config: BuildConfig, toolchain: ToolchainPrefix):
        self.layout = layout
        self.config = config
        self.toolchain = toolchain

    def _require_kernel(self) -> Path:
        elf = self.layout.kernel_elf(self.config)
        if not elf.exists():
            raise MissingArtifact(elf)
        return elf

    def _objdump(self, description: str, flag: str, pager: bool) -> List[CommandStep]:
        elf = self._require_kernel()
        return [
            CommandStep(
                kind=StepKind.TOOL,
                description=description,
                cwd=self.layout.kernel_dir,
                executable=self.toolchain.objdump,
                args=(flag, str(elf)),
                pager=pager,
            )
        ]

    def disassemble(self) -> List[CommandStep]:
        return self._objdump("Disassemble kernel", "-dS", pager=True)

    def section_headers(self) -> List[CommandStep]:
        return self._objdump("Show section headers", "-h", pager=False)

    def symbol_table(self) -> List[CommandStep]:
        return self._objdump("Show symbol table", "-t", pager=True)

    def documentation(self) -> List[CommandStep]:
        return [
            CommandStep(
                kind=StepKind.TOOL,
                description="Generate documentation",
                cwd=self.layout.kernel_dir,
                executable="cargo",
                args=("rustdoc", "--", "--document-private-items"),
                env=self.config.to_environment(),
            )
        ]

    def clean(self) -> List[CommandStep]:
        return [
            CommandStep(
                kind=StepKind.TOOL,
                description="Clean kernel build",
                cwd=self.layout.kernel_dir,
                executable="cargo",
                args=("clean",),
            ),
            CommandStep(
                kind=StepKind.TOOL,
                description="Clean user programs",
                cwd=self.layout.user_dir,
                executable="make",
                args=("clean",),
            ),
        ]

    def disk_image(self) -> List[CommandStep]:
        """Build the user-program disk image for the configured architecture."""
        env = self.config.to_environment()
        env["SFSIMG"] = str(self.layout.resolve_sfsimg(self.config))
        return [
            CommandStep(
                kind=StepKind.TOOL,
                description="Build user disk image",
                cwd=self.layout.user_dir,
                executable="make",
                args=("sfsimg",),
                env=env,
            )
        ]

    def addr2line(self) -> List[CommandStep]:
        return [
            CommandStep(
                kind=StepKind.TOOL,
                description="Resolve backtrace addresses",
                cwd=self.layout.kernel_dir,
                executable="python3",
                args=(
                    str(self.layout.addr2line_script),
                    self.toolchain.addr2line,
                    self.config.arch.value,
                ),
            )
        ]
