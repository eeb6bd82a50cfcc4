"""Filesystem layout of a kernel checkout.

All build artifacts live under target/<arch>/<mode>/ inside the kernel
directory; companion projects (riscv-pk, user programs, helper tools) sit
next to it.
"""

from dataclasses import dataclass
from pathlib import Path

from .options import Architecture, BuildConfig

K210_LIB_URL = (
    "https://github.com/wangrunji0408/RustOS/releases/download/v0.1/libkendryte.a"
)


@dataclass(frozen=True)
class ProjectLayout:
    """Paths derived from the kernel directory.

    Usage:
        layout = ProjectLayout(Path("kernel"))
        layout.kernel_bin(config)  # kernel/target/riscv32/debug/kernel.bin
    """

    kernel_dir: Path

    @classmethod
    def at(cls, kernel_dir: Path) -> "ProjectLayout":
        return cls(Path(kernel_dir).resolve())

    @property
    def root_dir(self) -> Path:
        return self.kernel_dir.parent

    @property
    def bbl_source_dir(self) -> Path:
        return self.root_dir / "riscv-pk"

    @property
    def user_dir(self) -> Path:
        return self.root_dir / "user"

    @property
    def tools_dir(self) -> Path:
        return self.root_dir / "tools"

    @property
    def k210_lib(self) -> Path:
        return self.tools_dir / "k210" / "libkendryte.a"

    @property
    def kflash_script(self) -> Path:
        return self.tools_dir / "k210" / "kflash.py"

    @property
    def gdbinit(self) -> Path:
        return self.tools_dir / "gdbinit"

    @property
    def addr2line_script(self) -> Path:
        return self.tools_dir / "addr2line.py"

    @property
    def atomic_patch(self) -> Path:
        return Path("src/arch/riscv32/atomic.patch")

    @property
    def linker64_script(self) -> Path:
        return Path("src/arch/riscv32/boot/linker64.ld")

    def board_linker_script(self, board_name: str) -> Path:
        return Path("src/arch/riscv32/board") / board_name / "linker.ld"

    def target_dir(self, arch: Architecture) -> Path:
        return self.kernel_dir / "target" / arch.value

    def output_dir(self, config: BuildConfig) -> Path:
        return self.target_dir(config.arch) / config.mode.value

    def kernel_elf(self, config: BuildConfig) -> Path:
        return self.output_dir(config) / "rcore"

    def kernel_bin(self, config: BuildConfig) -> Path:
        return self.output_dir(config) / "kernel.bin"

    def bootimage(self, config: BuildConfig) -> Path:
        return self.target_dir(config.arch) / "bootimage.bin"

    def bbl_build_dir(self, config: BuildConfig) -> Path:
        return self.target_dir(config.arch) / "bbl"

    def boot_artifact(self, config: BuildConfig) -> Path:
        """The file the emulator or device boots for this configuration."""
        if config.arch is Architecture.X86_64:
            return self.bootimage(config)
        return self.kernel_bin(config)

    def resolve_sfsimg(self, config: BuildConfig) -> Path:
        """Disk image path, relative paths taken from the kernel directory."""
        if config.sfsimg.is_absolute():
            return config.sfsimg
        return (self.kernel_dir / config.sfsimg).resolve()
