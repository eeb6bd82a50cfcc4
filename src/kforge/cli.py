"""
Command-line interface for Kforge.

This module provides the `kforge` CLI tool for building the kernel and
running it under QEMU or on real boards.
"""

import argparse
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from kforge import __version__
from kforge.build import AuxiliaryTasks, KernelBuildOrchestrator, ProcessOrchestrator
from kforge.cli_utils import (
    EnvironmentDetector,
    ErrorFormatter,
    PathValidator,
    setup_logging,
)
from kforge.config import BuildConfig, ProjectLayout, RawOptions
from kforge.deploy import DebugLauncher, EmulatorLauncher, EmulatorVariant, Installer
from kforge.errors import InvalidCombination, KforgeError, ProjectConfigError
from kforge.packages import ToolchainResolver

RUN_VARIANTS = {
    "run": EmulatorVariant.BASE,
    "runnet": EmulatorVariant.NETWORKED,
    "runui": EmulatorVariant.GRAPHICAL,
}

TASK_COMMANDS = {
    "asm": "disassemble",
    "header": "section_headers",
    "sym": "symbol_table",
    "doc": "documentation",
    "clean": "clean",
    "sfsimg": "disk_image",
    "addr2line": "addr2line",
}


@dataclass
class KernelArgs:
    """Arguments shared by every command."""

    command: str
    kernel_dir: Path
    options: RawOptions
    environment: Optional[str] = None
    verbose: bool = False
    no_build: bool = False
    sd_card: Optional[Path] = None
    baud: Optional[int] = None
    debug_timeout: float = 10.0


def _resolve_options(args: KernelArgs) -> RawOptions:
    preset = EnvironmentDetector.load_preset(args.kernel_dir, args.environment)
    return args.options.merged_with(preset)


def _build(orchestrator: KernelBuildOrchestrator, config: BuildConfig, verbose: bool) -> None:
    """Build config, exiting on failure."""
    if verbose:
        print(f"Building kernel in {orchestrator.layout.kernel_dir}")
    else:
        print(f"Building {config.arch.value} ({config.board.value}, {config.mode.value})...")

    try:
        result = orchestrator.build_config(config)
    except KforgeError as e:
        ErrorFormatter.print_error("Build failed!", str(e))
        sys.exit(1)

    ErrorFormatter.print_success("Build successful!")
    print()
    print(f"Kernel: {result.artifact}")
    print(f"Build time: {result.build_time:.2f}s")


def build_command(args: KernelArgs) -> None:
    """Build the kernel.

    Examples:
        kforge build                          # riscv32 debug build
        kforge build -a riscv64 -b u540       # HiFive U540
        kforge build -a aarch64 -m release    # Raspberry Pi 3 release build
        kforge build -e k210                  # preset from kforge.ini
    """
    print(f"Kforge Build System v{__version__}")
    print()

    layout = ProjectLayout.at(args.kernel_dir)
    orchestrator = KernelBuildOrchestrator(layout, verbose=args.verbose)
    config = orchestrator.configure(_resolve_options(args))

    _build(orchestrator, config, args.verbose)
    sys.exit(0)


def run_command(args: KernelArgs) -> None:
    """Build the kernel and run it under QEMU.

    Examples:
        kforge run                    # build + run riscv32
        kforge run --no-build         # run the last build
        kforge runnet -a riscv64      # with a tap network device (sudo)
        kforge runui -a riscv32       # with virtio GPU and mouse
    """
    layout = ProjectLayout.at(args.kernel_dir)
    orchestrator = KernelBuildOrchestrator(layout, verbose=args.verbose)
    config = orchestrator.configure(_resolve_options(args))

    if not args.no_build:
        _build(orchestrator, config, args.verbose)
        print()

    exit_code = EmulatorLauncher(layout).launch(config, RUN_VARIANTS[args.command])
    sys.exit(exit_code)


def debug_command(args: KernelArgs) -> None:
    """Build, start QEMU halted with a gdb stub, and attach gdb."""
    layout = ProjectLayout.at(args.kernel_dir)
    orchestrator = KernelBuildOrchestrator(layout, verbose=args.verbose)
    config = orchestrator.configure(_resolve_options(args))

    if not args.no_build:
        _build(orchestrator, config, args.verbose)
        print()

    exit_code = DebugLauncher(layout, timeout=args.debug_timeout).launch(config)
    sys.exit(exit_code)


def install_command(args: KernelArgs) -> None:
    """Build the kernel and install it to a raspi3 SD card or a k210 board."""
    layout = ProjectLayout.at(args.kernel_dir)
    orchestrator = KernelBuildOrchestrator(layout, verbose=args.verbose)
    config = orchestrator.configure(_resolve_options(args))
    Installer.check_supported(config)

    if not args.no_build:
        _build(orchestrator, config, args.verbose)

    installer = Installer(layout, verbose=args.verbose)
    kwargs = {"sd_card": args.sd_card}
    if args.baud is not None:
        kwargs["baud"] = args.baud
    result = installer.install(config, **kwargs)

    if not result.success:
        ErrorFormatter.print_error("Install failed!", result.message)
        sys.exit(1)
    ErrorFormatter.print_success(result.message)
    sys.exit(0)


def task_command(args: KernelArgs) -> None:
    """Run an auxiliary task (asm, header, sym, doc, clean, sfsimg, addr2line)."""
    layout = ProjectLayout.at(args.kernel_dir)
    orchestrator = KernelBuildOrchestrator(layout, verbose=args.verbose)
    config = orchestrator.configure(_resolve_options(args))
    toolchain = ToolchainResolver().resolve(config.arch)

    tasks = AuxiliaryTasks(layout, config, toolchain)
    steps = getattr(tasks, TASK_COMMANDS[args.command])()
    ProcessOrchestrator(verbose=args.verbose).execute(steps)
    sys.exit(0)


def dispatch(args: KernelArgs) -> None:
    """Run a command, mapping errors to exit codes."""
    try:
        if args.command == "build":
            build_command(args)
        elif args.command in RUN_VARIANTS:
            run_command(args)
        elif args.command == "debug":
            debug_command(args)
        elif args.command == "install":
            install_command(args)
        elif args.command in TASK_COMMANDS:
            task_command(args)
        else:
            raise AssertionError(f"Unhandled command: {args.command}")
    except (InvalidCombination, ProjectConfigError) as e:
        ErrorFormatter.handle_invalid_options(e)
    except KforgeError as e:
        ErrorFormatter.handle_kforge_error(e)
    except FileNotFoundError as e:
        ErrorFormatter.handle_file_not_found(e)
    except KeyboardInterrupt:
        ErrorFormatter.handle_keyboard_interrupt()
    except Exception as e:
        ErrorFormatter.handle_unexpected_error(e, args.verbose)


def _option_parser() -> argparse.ArgumentParser:
    """Options shared by every subcommand."""
    parser = argparse.ArgumentParser(add_help=False)
    parser.add_argument(
        "-C",
        "--kernel-dir",
        type=Path,
        default=Path.cwd(),
        help="Kernel directory (default: current directory)",
    )
    parser.add_argument(
        "-e",
        "--environment",
        default=None,
        help="Option preset from kforge.ini",
    )
    parser.add_argument(
        "-a", "--arch", default=None, help="x86_64 | riscv32 | riscv64 | aarch64 (default: riscv32)"
    )
    parser.add_argument(
        "-b", "--board", default=None, help="none | k210 | u540 | raspi3 (default: none)"
    )
    parser.add_argument("-m", "--mode", default=None, help="debug | release (default: debug)")
    parser.add_argument(
        "-d",
        "--debug-info",
        default=None,
        help="QEMU -d items (e.g. int, in_asm)",
    )
    parser.add_argument(
        "--log",
        dest="log_level",
        default=None,
        help="off | error | warn | info | debug | trace (default: debug)",
    )
    parser.add_argument("--sfsimg", default=None, help="User programs disk image path")
    parser.add_argument("--smp", default=None, help="Number of cores (default: 4)")
    parser.add_argument(
        "--graphic",
        choices=["on", "off"],
        default=None,
        help="QEMU graphical output (default: on for aarch64, else off)",
    )
    parser.add_argument(
        "--m-mode",
        action="store_true",
        default=None,
        help="Build for M-mode without MMU (riscv only)",
    )
    parser.add_argument(
        "--raspi3-timer",
        default=None,
        help="generic | system (raspi3 only, default: generic)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show verbose output",
    )
    return parser


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kforge",
        description="Kforge - kernel build and launch orchestrator",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"kforge {__version__}",
    )
    common = _option_parser()
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    subparsers.add_parser("build", parents=[common], help="Build the kernel")

    for name, help_text in (
        ("run", "Build and run in QEMU"),
        ("runnet", "Build and run in QEMU with tap networking"),
        ("runui", "Build and run in QEMU with GPU and mouse"),
        ("debug", "Build, run in QEMU halted and attach gdb"),
    ):
        run_parser = subparsers.add_parser(name, parents=[common], help=help_text)
        run_parser.add_argument(
            "--no-build",
            action="store_true",
            help="Use the last build instead of building first",
        )
        if name == "debug":
            run_parser.add_argument(
                "--timeout",
                dest="debug_timeout",
                type=float,
                default=10.0,
                help="Seconds to wait for the QEMU gdb stub (default: 10)",
            )

    install_parser = subparsers.add_parser(
        "install", parents=[common], help="Install to a raspi3 SD card or k210 board"
    )
    install_parser.add_argument("--no-build", action="store_true", help="Install the last build")
    install_parser.add_argument("--sd-card", type=Path, default=None, help="SD card boot volume")
    install_parser.add_argument("--baud", type=int, default=None, help="k210 flash baud rate")

    subparsers.add_parser("asm", parents=[common], help="Disassemble the last build")
    subparsers.add_parser("header", parents=[common], help="Show section headers of the last build")
    subparsers.add_parser("sym", parents=[common], help="Show the symbol table of the last build")
    subparsers.add_parser("doc", parents=[common], help="Generate kernel documentation")
    subparsers.add_parser("clean", parents=[common], help="Clean kernel and user builds")
    subparsers.add_parser("sfsimg", parents=[common], help="Build the user programs disk image")
    subparsers.add_parser(
        "addr2line", parents=[common], help="Recover line info for backtrace addresses"
    )
    return parser


def main(argv=None) -> None:
    """Kforge - kernel build and launch orchestrator."""
    parser = build_parser()
    parsed_args = parser.parse_args(argv)

    if not parsed_args.command:
        parser.print_help()
        sys.exit(0)

    PathValidator.validate_kernel_dir(parsed_args.kernel_dir)
    setup_logging(parsed_args.verbose)

    args = KernelArgs(
        command=parsed_args.command,
        kernel_dir=parsed_args.kernel_dir,
        environment=parsed_args.environment,
        verbose=parsed_args.verbose,
        no_build=getattr(parsed_args, "no_build", False),
        sd_card=getattr(parsed_args, "sd_card", None),
        baud=getattr(parsed_args, "baud", None),
        debug_timeout=getattr(parsed_args, "debug_timeout", 10.0),
        options=RawOptions(
            arch=parsed_args.arch,
            board=parsed_args.board,
            mode=parsed_args.mode,
            smp=parsed_args.smp,
            graphic=parsed_args.graphic,
            m_mode=parsed_args.m_mode,
            log_level=parsed_args.log_level,
            debug_info=parsed_args.debug_info,
            raspi3_timer=parsed_args.raspi3_timer,
            sfsimg=parsed_args.sfsimg,
        ),
    )
    dispatch(args)


if __name__ == "__main__":
    main()
