"""
Kernel installation to real hardware.

raspi3: the kernel image is copied to the SD card boot volume as
kernel8.img and the volume is unmounted.
k210: the image is flashed over serial with kflash.py.
"""

import getpass
import logging
import platform
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from ..config.layout import ProjectLayout
from ..config.options import Board, BuildConfig
from ..errors import InstallError, KforgeError, MissingArtifact

# kflash is unreliable above this rate
K210_MAX_BAUD = 600000

RASPI3_KERNEL_NAME = "kernel8.img"

INSTALL_BOARDS = (Board.RASPI3, Board.K210)


@dataclass
class InstallResult:
    """Result of an install operation."""

    success: bool
    message: str
    target: Optional[str] = None


def default_sd_card(system: Optional[str] = None, user: Optional[str] = None) -> Optional[Path]:
    """Usual mount point of the SD card boot volume for this host."""
    system = system or platform.system()
    if system == "Darwin":
        return Path("/Volumes/boot")
    if system == "Linux":
        return Path("/media") / (user or getpass.getuser()) / "boot"
    return None


class Installer:
    """Installs a built kernel to a board."""

    def __init__(
        self,
        layout: ProjectLayout,
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
        verbose: bool = False,
    ):
        self.layout = layout
        self.runner = runner
        self.verbose = verbose

    @staticmethod
    def check_supported(config: BuildConfig) -> None:
        """Raise InstallError unless config's board has an install target."""
        if config.board not in INSTALL_BOARDS:
            raise InstallError(
                f"Install not supported for board '{config.board.value}'. "
                + "Supported boards: "
                + ", ".join(board.value for board in INSTALL_BOARDS)
            )

    def install(
        self,
        config: BuildConfig,
        sd_card: Optional[Path] = None,
        baud: int = K210_MAX_BAUD,
    ) -> InstallResult:
        """Install the last build for config's board.

        Args:
            config: Resolved build configuration
            sd_card: Boot volume mount point (raspi3; auto-detected if None)
            baud: Flash baud rate (k210; capped at K210_MAX_BAUD)

        Returns:
            InstallResult with success status and message
        """
        try:
            self.check_supported(config)
            artifact = self.layout.kernel_bin(config)
            if not artifact.exists():
                raise MissingArtifact(artifact)

            if config.board is Board.RASPI3:
                return self._install_raspi3(artifact, sd_card)
            return self._install_k210(artifact, baud)
        except KforgeError as e:
            return InstallResult(success=False, message=str(e))

    def _install_raspi3(self, artifact: Path, sd_card: Optional[Path]) -> InstallResult:
        sd_card = sd_card or default_sd_card()
        if sd_card is None:
            raise InstallError("Cannot locate the SD card on this host. Use --sd-card.")
        if not sd_card.is_dir():
            raise InstallError(f"SD card boot volume not mounted at {sd_card}")

        destination = sd_card / RASPI3_KERNEL_NAME
        logging.info(f"Copying {artifact} -> {destination}")
        shutil.copyfile(artifact, destination)

        self._run(["sudo", "umount", str(sd_card)], "Unmount SD card")
        return InstallResult(
            success=True, message=f"Installed to {destination}", target=str(sd_card)
        )

    def _install_k210(self, artifact: Path, baud: int) -> InstallResult:
        if baud > K210_MAX_BAUD:
            logging.warning(f"Baud rate {baud} too high for kflash, using {K210_MAX_BAUD}")
            baud = K210_MAX_BAUD
        self._run(
            ["python3", str(self.layout.kflash_script), str(artifact), "-b", str(baud)],
            "Flash K210",
        )
        return InstallResult(success=True, message=f"Flashed {artifact} at {baud} baud")

    def _run(self, command, description: str) -> None:
        if self.verbose:
            print(f"$ {' '.join(command)}")
        try:
            result = self.runner(command, cwd=self.layout.kernel_dir)
        except FileNotFoundError as e:
            raise InstallError(f"{description} failed: {e}") from e
        if result.returncode != 0:
            raise InstallError(
                f"{description} failed (exit status {result.returncode})\n"
                + f"command: {' '.join(command)}"
            )
