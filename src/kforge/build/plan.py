"""Build plan compilation.

Turns a resolved BuildConfig and toolchain into the ordered steps that
produce a bootable artifact:

    x86_64            bootimage build (combined boot image)
    riscv32/riscv64   [linker script] patch(soft) compile bbl-configure
                      bbl-build copy
    riscv64 + k210    fetch libkendryte.a, linker script, patch(soft),
                      compile, strip
    aarch64           compile strip

Only RISC-V without the k210 board is wrapped by the bootloader.
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional

from ..config.features import FeatureResolver
from ..config.layout import K210_LIB_URL, ProjectLayout
from ..config.options import Architecture, Board, BuildConfig
from ..packages.toolchain import RISCV_PREFIX, ToolchainPrefix
from .steps import BuildPlan, CommandStep, CopyStep, FetchStep, Step, StepKind

# Location of libcore's atomic.rs inside the rust-src component
ATOMIC_RS = Path("lib/rustlib/src/rust/src/libcore/sync/atomic.rs")

BBL_MAKE_JOBS = 32


class BuildPlanCompiler:
    """Compiles the ordered build steps for a configuration.

    Example:
        compiler = BuildPlanCompiler(ProjectLayout.at(Path(".")))
        plan = compiler.compile(config, toolchain, rust_sysroot)
        for step in plan.steps:
            print(step.description)
    """

    def __init__(self, layout: ProjectLayout):
        self.layout = layout

    def compile(
        self,
        config: BuildConfig,
        toolchain: ToolchainPrefix,
        rust_sysroot: Optional[Path] = None,
    ) -> BuildPlan:
        """Produce the build plan.

        Args:
            config: Normalized configuration (resolved here if needed)
            toolchain: Toolchain prefix for the target architecture
            rust_sysroot: rustc sysroot for the atomic patch step; when
                unknown the step is kept but marked unavailable

        Returns:
            BuildPlan with steps and the final artifact path
        """
        if not config.is_resolved:
            config = FeatureResolver.resolve(config)

        env = self._environment(config, toolchain)
        arch = config.arch

        if arch is Architecture.X86_64:
            steps = [self._bootimage_step(config, env)]
            return BuildPlan(tuple(steps), self.layout.bootimage(config))
        elif arch is Architecture.RISCV32 or arch is Architecture.RISCV64:
            steps = self._riscv_steps(config, toolchain, env, rust_sysroot)
        elif arch is Architecture.AARCH64:
            steps = [
                self._compile_step(config, env),
                self._strip_step(config, toolchain, env),
            ]
        else:
            raise AssertionError(f"Unhandled architecture: {arch}")

        return BuildPlan(tuple(steps), self.layout.kernel_bin(config))

    def _riscv_steps(
        self,
        config: BuildConfig,
        toolchain: ToolchainPrefix,
        env: Dict[str, str],
        rust_sysroot: Optional[Path],
    ) -> List[Step]:
        steps: List[Step] = []

        if config.board is Board.K210:
            steps.append(
                FetchStep(
                    kind=StepKind.FETCH,
                    description="Fetch K210 device library",
                    url=K210_LIB_URL,
                    destination=self.layout.k210_lib,
                )
            )
        if config.arch is Architecture.RISCV64:
            # riscv64 selects its linker script per board; u540 is the QEMU default
            variant = "k210" if config.board is Board.K210 else "u540"
            steps.append(self._linker_script_step(variant))

        steps.append(self._patch_step(rust_sysroot))
        steps.append(self._compile_step(config, env))

        if config.board is Board.K210:
            steps.append(self._strip_step(config, toolchain, env))
        else:
            steps.extend(self._bootloader_steps(config, env))
        return steps

    @staticmethod
    def _environment(config: BuildConfig, toolchain: ToolchainPrefix) -> Dict[str, str]:
        env = config.to_environment()
        env["CC"] = toolchain.cc
        return env

    def _bootimage_step(self, config: BuildConfig, env: Dict[str, str]) -> CommandStep:
        return CommandStep(
            kind=StepKind.BOOTIMAGE,
            description="Build x86_64 boot image",
            cwd=self.layout.kernel_dir,
            executable="bootimage",
            args=("build", *FeatureResolver.cargo_args(config)),
            env=env,
        )

    def _compile_step(self, config: BuildConfig, env: Dict[str, str]) -> CommandStep:
        return CommandStep(
            kind=StepKind.COMPILE,
            description=f"Compile kernel for {config.target_spec_id}",
            cwd=self.layout.kernel_dir,
            executable="cargo",
            args=("xbuild", *FeatureResolver.cargo_args(config)),
            env=env,
        )

    def _patch_step(self, rust_sysroot: Optional[Path]) -> CommandStep:
        # Without a sysroot the step stays in the plan and is recorded as ignored
        unavailable = ""
        target = ATOMIC_RS
        if rust_sysroot is None:
            logging.warning("Rust sysroot unknown, libcore atomic patch will be ignored")
            unavailable = "rust sysroot unknown"
        else:
            target = rust_sysroot / ATOMIC_RS
        return CommandStep(
            kind=StepKind.PATCH,
            description="Patch libcore atomics",
            cwd=self.layout.kernel_dir,
            executable="patch",
            args=(
                "-p0",
                "-N",
                "-b",
                str(target),
                str(self.layout.atomic_patch),
            ),
            soft_fail=True,
            unavailable=unavailable,
        )

    def _linker_script_step(self, variant: str) -> CopyStep:
        return CopyStep(
            kind=StepKind.LINKER_SCRIPT,
            description=f"Select {variant} linker script",
            source=self.layout.kernel_dir / self.layout.board_linker_script(variant),
            destination=self.layout.kernel_dir / self.layout.linker64_script,
        )

    def _strip_step(
        self, config: BuildConfig, toolchain: ToolchainPrefix, env: Dict[str, str]
    ) -> CommandStep:
        return CommandStep(
            kind=StepKind.STRIP,
            description="Convert kernel to raw binary",
            cwd=self.layout.kernel_dir,
            executable=toolchain.objcopy,
            args=(
                str(self.layout.kernel_elf(config)),
                "--strip-all",
                "-O",
                "binary",
                str(self.layout.kernel_bin(config)),
            ),
            env=env,
        )

    def _bootloader_steps(self, config: BuildConfig, env: Dict[str, str]) -> List[Step]:
        bbl_dir = self.layout.bbl_build_dir(config)
        isa = "rv32imac" if config.arch is Architecture.RISCV32 else "rv64imac"
        configure = CommandStep(
            kind=StepKind.BOOTLOADER_CONFIGURE,
            description="Configure bootloader",
            cwd=bbl_dir,
            executable=str(self.layout.bbl_source_dir / "configure"),
            args=(
                *config.bootloader_args,
                f"--with-arch={isa}",
                "--disable-fp-emulation",
                f"--host={RISCV_PREFIX.rstrip('-')}",
                f"--with-payload={self.layout.kernel_elf(config)}",
            ),
            env=env,
            create_cwd=True,
        )
        build = CommandStep(
            kind=StepKind.BOOTLOADER_BUILD,
            description="Build bootloader",
            cwd=bbl_dir,
            executable="make",
            args=(f"-j{BBL_MAKE_JOBS}",),
            env=env,
        )
        copy = CopyStep(
            kind=StepKind.COPY,
            description="Install wrapped kernel image",
            source=bbl_dir / "bbl",
            destination=self.layout.kernel_bin(config),
        )
        return [configure, build, copy]
