"""Package management for Kforge.

This module resolves cross toolchains and fetches external prebuilt
dependencies.
"""

from .downloader import ChecksumError, DownloadError, PackageDownloader
from .toolchain import ToolchainPrefix, ToolchainResolver, detect_rust_sysroot

__all__ = [
    "PackageDownloader",
    "DownloadError",
    "ChecksumError",
    "ToolchainPrefix",
    "ToolchainResolver",
    "detect_rust_sysroot",
]
