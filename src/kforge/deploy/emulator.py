"""QEMU invocation for kernel builds.

The argument list is built additively:

    -smp cores=N                      always first
    architecture boot/device args     x86_64, riscv32/64, aarch64
    -d <items>                        when debug info is requested
    -nographic                        when graphics are off
    variant extras                    tap networking or GPU + mouse
"""

import logging
import subprocess
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Sequence, Tuple

from ..config.layout import ProjectLayout
from ..config.options import Architecture, BuildConfig
from ..errors import MissingArtifact, ToolchainNotFound

NETWORK_ARGS = (
    "-netdev",
    "type=tap,id=net0,script=no,downscript=no",
    "-device",
    "virtio-net-device,netdev=net0",
)

GRAPHICAL_ARGS = (
    "-device",
    "virtio-gpu-device",
    "-device",
    "virtio-mouse-device",
)

# QEMU flags that open a gdb stub on :1234 and halt the CPU at startup
GDB_STUB_ARGS = ("-s", "-S")
GDB_STUB_PORT = 1234


class EmulatorVariant(Enum):
    BASE = "base"
    NETWORKED = "networked"
    GRAPHICAL = "graphical"


@dataclass(frozen=True)
class EmulatorConfig:
    """Emulator binary plus its ordered arguments."""

    binary: str
    args: Tuple[str, ...]
    # tap devices need root
    privileged: bool = False

    @property
    def command(self) -> List[str]:
        command = [self.binary, *self.args]
        if self.privileged:
            command.insert(0, "sudo")
        return command

    def with_args(self, extra: Sequence[str]) -> "EmulatorConfig":
        return EmulatorConfig(self.binary, (*self.args, *extra), self.privileged)


class EmulatorConfigGenerator:
    """Builds EmulatorConfig from a BuildConfig. Pure."""

    def __init__(self, layout: ProjectLayout):
        self.layout = layout

    def generate(
        self, config: BuildConfig, variant: EmulatorVariant = EmulatorVariant.BASE
    ) -> EmulatorConfig:
        args = ["-smp", f"cores={config.smp}"]
        args.extend(self._arch_args(config))

        if config.debug_info:
            args.extend(["-d", config.debug_info])
        if not config.graphic:
            args.append("-nographic")

        privileged = False
        if variant is EmulatorVariant.NETWORKED:
            args.extend(NETWORK_ARGS)
            privileged = True
        elif variant is EmulatorVariant.GRAPHICAL:
            args.extend(GRAPHICAL_ARGS)

        return EmulatorConfig(config.arch.qemu_binary, tuple(args), privileged)

    def _arch_args(self, config: BuildConfig) -> List[str]:
        arch = config.arch
        sfsimg = self.layout.resolve_sfsimg(config)

        if arch is Architecture.X86_64:
            return [
                "-drive",
                f"format=raw,file={self.layout.bootimage(config)}",
                "-drive",
                f"format=raw,file={sfsimg},media=disk,cache=writeback",
                "-serial",
                "mon:stdio",
                "-device",
                "isa-debug-exit",
            ]
        elif arch is Architecture.RISCV32 or arch is Architecture.RISCV64:
            args = [
                "-machine",
                "virt",
                "-kernel",
                str(self.layout.kernel_bin(config)),
                "-drive",
                f"file={sfsimg},format=raw,id=sfs",
                "-device",
                "virtio-blk-device,drive=sfs",
            ]
            if config.m_mode:
                isa = "rv32imacu" if arch is Architecture.RISCV32 else "rv64imacu"
                args.extend(["-cpu", f"{isa}-nommu"])
            return args
        elif arch is Architecture.AARCH64:
            return [
                "-machine",
                config.board.value,
                "-serial",
                "null",
                "-serial",
                "mon:stdio",
                "-kernel",
                str(self.layout.kernel_bin(config)),
            ]
        raise AssertionError(f"Unhandled architecture: {arch}")


class EmulatorLauncher:
    """Runs the emulator in the foreground against the last build."""

    def __init__(
        self,
        layout: ProjectLayout,
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
    ):
        self.layout = layout
        self.generator = EmulatorConfigGenerator(layout)
        self.runner = runner

    def require_artifact(self, config: BuildConfig) -> None:
        artifact = self.layout.boot_artifact(config)
        if not artifact.exists():
            raise MissingArtifact(artifact)

    def launch(
        self, config: BuildConfig, variant: EmulatorVariant = EmulatorVariant.BASE
    ) -> int:
        """Launch the emulator and wait for it to exit.

        Returns:
            Emulator exit status

        Raises:
            MissingArtifact: If the kernel was never built
            ToolchainNotFound: If the emulator binary is not installed
        """
        self.require_artifact(config)
        emulator = self.generator.generate(config, variant)
        logging.info(f"Launching: {' '.join(emulator.command)}")
        try:
            completed = self.runner(emulator.command, cwd=self.layout.kernel_dir)
        except FileNotFoundError as e:
            raise ToolchainNotFound(emulator.binary) from e
        return completed.returncode
