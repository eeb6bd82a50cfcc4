"""Exception types shared across Kforge.

Library code raises these; only the CLI turns them into exit codes.
"""

from typing import Optional, Sequence


class KforgeError(Exception):
    """Base class for all Kforge errors."""

    pass


class InvalidCombination(KforgeError, ValueError):
    """Raised when architecture, board and mode options conflict.

    Detected during option intake, before any external process runs.
    """

    pass


class ProjectConfigError(KforgeError):
    """Raised for kforge.ini configuration errors."""

    pass


class ToolchainNotFound(KforgeError):
    """Raised when a toolchain executable cannot be started."""

    def __init__(self, executable: str, message: Optional[str] = None):
        self.executable = executable
        super().__init__(
            message
            or f"Executable not found on PATH: {executable}. Is the toolchain installed?"
        )


class ExternalProcessFailure(KforgeError):
    """Raised when a pipeline step exits non-zero.

    Attributes:
        description: Human-readable step description
        executable: Program that was run
        args: Arguments passed to the program
        returncode: Exit status reported by the program
    """

    def __init__(
        self,
        description: str,
        executable: str,
        args: Sequence[str],
        returncode: int,
        detail: str = "",
    ):
        self.description = description
        self.executable = executable
        self.args_list = list(args)
        self.returncode = returncode
        self.detail = detail
        command = " ".join([executable, *self.args_list])
        message = f"{description} failed (exit status {returncode})\ncommand: {command}"
        if detail:
            message += f"\n{detail}"
        super().__init__(message)


class MissingArtifact(KforgeError):
    """Raised when a run, debug or install command targets an unbuilt artifact."""

    def __init__(self, path, hint: str = "Run 'kforge build' first."):
        self.path = path
        super().__init__(f"Artifact not found: {path}. {hint}")


class DebuggerAttachError(KforgeError):
    """Raised when the emulator never opens its debug port."""

    pass


class InstallError(KforgeError):
    """Raised when installing the kernel to a device fails."""

    pass
