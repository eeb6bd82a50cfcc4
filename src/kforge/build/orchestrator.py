"""
Build orchestration for Kforge.

This module coordinates the whole build, from raw options to a bootable
kernel artifact:
- Option intake and validation
- Feature and target resolution
- Toolchain resolution
- Build plan compilation
- Sequential execution of the plan
"""

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional

from ..config.features import FeatureResolver
from ..config.layout import ProjectLayout
from ..config.options import BuildConfig, ParameterIntake, RawOptions
from ..errors import KforgeError
from ..packages.toolchain import ToolchainResolver, detect_rust_sysroot
from .executor import ProcessOrchestrator
from .plan import BuildPlanCompiler
from .steps import BuildPlan, StepResult


@dataclass
class BuildResult:
    """Result of a complete build operation."""

    success: bool
    artifact: Optional[Path]
    build_time: float
    message: str
    config: Optional[BuildConfig] = None
    step_results: List[StepResult] = field(default_factory=list)


class KernelBuildOrchestrator:
    """
    Orchestrates the complete kernel build.

    Phases:
    1. Normalize raw options (ParameterIntake)
    2. Resolve features, target spec and bootloader arguments
    3. Resolve the toolchain prefix
    4. Compile the build plan
    5. Execute the plan step by step

    Example usage:
        orchestrator = KernelBuildOrchestrator(ProjectLayout.at(Path(".")))
        result = orchestrator.build(RawOptions(arch="riscv64", board="u540"))
        if result.success:
            print(f"Kernel: {result.artifact}")
    """

    def __init__(
        self,
        layout: ProjectLayout,
        toolchain_resolver: Optional[ToolchainResolver] = None,
        executor: Optional[ProcessOrchestrator] = None,
        sysroot_detector: Callable[[], Optional[Path]] = detect_rust_sysroot,
        verbose: bool = False,
    ):
        """
        Args:
            layout: Kernel checkout layout
            toolchain_resolver: Resolver for toolchain prefixes
            executor: Step executor
            sysroot_detector: Returns the rustc sysroot (or None)
            verbose: Enable verbose output
        """
        self.layout = layout
        self.toolchain_resolver = toolchain_resolver or ToolchainResolver()
        self.executor = executor or ProcessOrchestrator(verbose=verbose)
        self.sysroot_detector = sysroot_detector
        self.verbose = verbose

    def configure(self, raw: RawOptions) -> BuildConfig:
        """Normalize and resolve options without building.

        Raises:
            InvalidCombination: If the options conflict
        """
        intake = ParameterIntake(user_dir=self.layout.user_dir)
        return FeatureResolver.resolve(intake.normalize(raw))

    def plan(self, config: BuildConfig) -> BuildPlan:
        """Compile the build plan for a resolved configuration."""
        toolchain = self.toolchain_resolver.resolve(config.arch)
        sysroot = self.sysroot_detector() if config.arch.is_riscv else None
        return BuildPlanCompiler(self.layout).compile(config, toolchain, sysroot)

    def build(self, raw: RawOptions) -> BuildResult:
        """
        Execute the complete build.

        Args:
            raw: Options as supplied by the user

        Returns:
            BuildResult with build status and artifact path
        """
        start_time = time.time()
        config = None

        try:
            config = self.configure(raw)
            return self.build_config(config, start_time)
        except KforgeError as e:
            logging.error(f"Build failed: {e}")
            return BuildResult(
                success=False,
                artifact=None,
                build_time=time.time() - start_time,
                message=str(e),
                config=config,
            )

    def build_config(self, config: BuildConfig, start_time: Optional[float] = None) -> BuildResult:
        """Build an already resolved configuration.

        Raises:
            KforgeError: If any non-soft step fails
        """
        start_time = start_time if start_time is not None else time.time()

        if self.verbose:
            print(f"Architecture: {config.arch.value}")
            print(f"Board: {config.board.value}")
            print(f"Mode: {config.mode.value}")
            print(f"Features: {' '.join(sorted(config.features)) or '(none)'}")
            print()

        plan = self.plan(config)
        logging.info(f"Build plan: {[kind.value for kind in plan.kinds]}")
        results = self.executor.execute(plan.steps)

        return BuildResult(
            success=True,
            artifact=plan.artifact,
            build_time=time.time() - start_time,
            message="Build successful",
            config=config,
            step_results=results,
        )
