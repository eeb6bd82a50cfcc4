"""
Kernel launch and installation for Kforge.

This module runs built kernels under QEMU, attaches gdb to them and installs
them to real boards.
"""

from .debugger import DebugLauncher, wait_for_port
from .emulator import (
    EmulatorConfig,
    EmulatorConfigGenerator,
    EmulatorLauncher,
    EmulatorVariant,
)
from .installer import InstallResult, Installer

__all__ = [
    "DebugLauncher",
    "EmulatorConfig",
    "EmulatorConfigGenerator",
    "EmulatorLauncher",
    "EmulatorVariant",
    "InstallResult",
    "Installer",
    "wait_for_port",
]
