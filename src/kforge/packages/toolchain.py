"""Cross toolchain resolution.

Maps a target architecture to the binutils/gcc name prefix used for
linking, disassembly and image conversion.

Prefix table:
    - x86_64: host toolchain (no prefix), x86_64-elf- on macOS
    - riscv32, riscv64: riscv64-unknown-elf-
    - aarch64: aarch64-none-elf-, or aarch64-elf- when the former's
      linker is not on PATH
"""

import logging
import platform
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Optional

from ..config.options import Architecture


@dataclass(frozen=True)
class ToolchainPrefix:
    """Binary names sharing one prefix."""

    prefix: str

    @property
    def ld(self) -> str:
        return f"{self.prefix}ld"

    @property
    def objdump(self) -> str:
        return f"{self.prefix}objdump"

    @property
    def objcopy(self) -> str:
        return f"{self.prefix}objcopy"

    @property
    def cc(self) -> str:
        return f"{self.prefix}gcc"

    @property
    def as_(self) -> str:
        return f"{self.prefix}as"

    @property
    def addr2line(self) -> str:
        return f"{self.prefix}addr2line"


RISCV_PREFIX = "riscv64-unknown-elf-"
X86_64_DARWIN_PREFIX = "x86_64-elf-"
AARCH64_PRIMARY_PREFIX = "aarch64-none-elf-"
AARCH64_FALLBACK_PREFIX = "aarch64-elf-"

# Host without a native ELF toolchain
DARWIN = "Darwin"


class ToolchainResolver:
    """Resolves ToolchainPrefix per architecture.

    The aarch64 PATH lookup runs once per resolver; the result is cached.
    """

    def __init__(
        self,
        which: Callable[[str], Optional[str]] = shutil.which,
        system: Callable[[], str] = platform.system,
    ):
        """
        Args:
            which: PATH lookup function (shutil.which by default)
            system: Host OS name function (platform.system by default)
        """
        self._which = which
        self._system = system
        self._cache: Dict[Architecture, ToolchainPrefix] = {}

    def resolve(self, arch: Architecture) -> ToolchainPrefix:
        """Get the toolchain prefix for an architecture."""
        if arch not in self._cache:
            self._cache[arch] = ToolchainPrefix(self._resolve_prefix(arch))
        return self._cache[arch]

    def _resolve_prefix(self, arch: Architecture) -> str:
        if arch is Architecture.X86_64:
            return X86_64_DARWIN_PREFIX if self._system() == DARWIN else ""
        elif arch is Architecture.RISCV32 or arch is Architecture.RISCV64:
            return RISCV_PREFIX
        elif arch is Architecture.AARCH64:
            return self._find_aarch64_prefix()
        raise AssertionError(f"Unhandled architecture: {arch}")

    def _find_aarch64_prefix(self) -> str:
        if self._which(f"{AARCH64_PRIMARY_PREFIX}ld"):
            return AARCH64_PRIMARY_PREFIX
        if self._which(f"{AARCH64_FALLBACK_PREFIX}ld"):
            logging.info(
                f"{AARCH64_PRIMARY_PREFIX}ld not found, using {AARCH64_FALLBACK_PREFIX}"
            )
            return AARCH64_FALLBACK_PREFIX
        # Best effort: the failing invocation reports the real problem
        logging.warning(
            f"Neither {AARCH64_PRIMARY_PREFIX}ld nor {AARCH64_FALLBACK_PREFIX}ld "
            + "found on PATH"
        )
        return AARCH64_PRIMARY_PREFIX


def detect_rust_sysroot(rustc: str = "rustc") -> Optional[Path]:
    """Ask rustc for its sysroot.

    Returns:
        Sysroot path, or None when rustc is missing or fails
    """
    try:
        result = subprocess.run(
            [rustc, "--print", "sysroot"],
            capture_output=True,
            text=True,
            timeout=30,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        logging.warning(f"Could not run {rustc}: {e}")
        return None

    if result.returncode != 0:
        logging.warning(f"{rustc} --print sysroot failed: {result.stderr.strip()}")
        return None

    sysroot = result.stdout.strip()
    return Path(sysroot) if sysroot else None
