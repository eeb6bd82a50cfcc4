"""
Kforge - build and launch orchestrator for a multi-architecture kernel.

Resolves a small set of user options into a complete build plan (features,
target spec, toolchain names, image conversion, emulator arguments) and
drives the external tools that carry it out.
"""

__version__ = "0.1.0"
