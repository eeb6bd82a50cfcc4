"""
Build system components for Kforge.

This module provides the build pipeline:
- Step descriptors and results
- Build plan compilation per architecture and board
- Sequential process orchestration
- Auxiliary kernel tasks (disassembly, docs, clean, disk image)
"""

from .executor import ProcessOrchestrator
from .orchestrator import BuildResult, KernelBuildOrchestrator
from .plan import BuildPlanCompiler
from .steps import (
    BuildPlan,
    CommandStep,
    CopyStep,
    FetchStep,
    StepKind,
    StepResult,
    StepStatus,
)
from .tasks import AuxiliaryTasks

__all__ = [
    "AuxiliaryTasks",
    "BuildPlan",
    "BuildPlanCompiler",
    "BuildResult",
    "CommandStep",
    "CopyStep",
    "FetchStep",
    "KernelBuildOrchestrator",
    "ProcessOrchestrator",
    "StepKind",
    "StepResult",
    "StepStatus",
]
