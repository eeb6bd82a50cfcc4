"""Build pipeline step descriptors.

A build plan is an ordered tuple of steps. Steps only describe work; the
ProcessOrchestrator performs it.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Tuple, Union


class StepKind(Enum):
    PATCH = "patch"
    FETCH = "fetch"
    LINKER_SCRIPT = "linker-script"
    COMPILE = "compile"
    BOOTIMAGE = "bootimage"
    BOOTLOADER_CONFIGURE = "bootloader-configure"
    BOOTLOADER_BUILD = "bootloader-build"
    COPY = "copy"
    STRIP = "strip"
    TOOL = "tool"


class StepStatus(Enum):
    """Outcome of a single step.

    Soft-fail steps end in SUCCEEDED (applied), ALREADY_APPLIED or
    FAILED_IGNORED; FAILED always stops the pipeline.
    """

    SUCCEEDED = "succeeded"
    SKIPPED = "skipped"
    ALREADY_APPLIED = "already-applied"
    FAILED_IGNORED = "failed-ignored"
    FAILED = "failed"


@dataclass(frozen=True)
class CommandStep:
    """An external program invocation.

    Attributes:
        kind: What the step does in the pipeline
        description: Short label shown in progress output and errors
        cwd: Working directory the program runs in
        executable: Program name or path
        args: Ordered arguments
        soft_fail: A non-zero exit is tolerated (best-effort steps)
        env: Variables overlaid on the inherited environment, stored as
            sorted (name, value) pairs; a mapping may be passed in
        create_cwd: Create cwd before running
        pager: Pipe stdout through a pager when attached to a terminal
        unavailable: Why the step cannot run; a soft step then ends
            FAILED_IGNORED without starting the program
    """

    kind: StepKind
    description: str
    cwd: Path
    executable: str
    args: Tuple[str, ...] = ()
    soft_fail: bool = False
    env: Tuple[Tuple[str, str], ...] = ()
    create_cwd: bool = False
    pager: bool = False
    unavailable: str = ""

    def __post_init__(self):
        if isinstance(self.env, Mapping):
            object.__setattr__(self, "env", tuple(sorted(self.env.items())))

    @property
    def environment(self) -> Dict[str, str]:
        return dict(self.env)

    @property
    def command(self) -> List[str]:
        return [self.executable, *self.args]


@dataclass(frozen=True)
class FetchStep:
    """Download a file unless it is already present."""

    kind: StepKind
    description: str
    url: str
    destination: Path


@dataclass(frozen=True)
class CopyStep:
    """Copy a file within the build tree."""

    kind: StepKind
    description: str
    source: Path
    destination: Path


Step = Union[CommandStep, FetchStep, CopyStep]


@dataclass(frozen=True)
class StepResult:
    step: Step
    status: StepStatus
    returncode: Optional[int] = None
    output: str = ""


@dataclass(frozen=True)
class BuildPlan:
    """Ordered steps plus the artifact they produce."""

    steps: Tuple[Step, ...]
    artifact: Path

    @property
    def kinds(self) -> List[StepKind]:
        return [step.kind for step in self.steps]

    def __len__(self) -> int:
        return len(self.steps)
