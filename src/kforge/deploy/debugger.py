"""
Emulator debug launch.

Starts the emulator in the background with its gdb stub enabled and halted,
waits until the stub accepts connections, then runs gdb against the kernel
ELF. The emulator process tree is torn down when gdb exits.

Readiness is established by polling the stub port rather than sleeping for
a fixed time; if the emulator dies first the launch fails immediately.
"""

import logging
import socket
import subprocess
import time
from typing import Callable, Optional

import psutil

from ..config.layout import ProjectLayout
from ..config.options import BuildConfig
from ..errors import DebuggerAttachError, MissingArtifact, ToolchainNotFound
from .emulator import GDB_STUB_ARGS, GDB_STUB_PORT, EmulatorConfigGenerator

DEFAULT_TIMEOUT = 10.0
POLL_INTERVAL = 0.1
GDB = "gdb"


def wait_for_port(
    host: str,
    port: int,
    timeout: float = DEFAULT_TIMEOUT,
    interval: float = POLL_INTERVAL,
    alive: Optional[Callable[[], bool]] = None,
) -> None:
    """Poll host:port until a TCP connection succeeds.

    Args:
        host: Host to connect to
        port: TCP port
        timeout: Give up after this many seconds
        interval: Delay between attempts
        alive: Checked before each attempt; False aborts the wait

    Raises:
        DebuggerAttachError: If the port never opens or alive() turns False
    """
    deadline = time.monotonic() + timeout
    while True:
        if alive is not None and not alive():
            raise DebuggerAttachError(
                f"Emulator exited before opening its debug port {host}:{port}"
            )
        try:
            with socket.create_connection((host, port), timeout=interval):
                return
        except OSError:
            pass
        if time.monotonic() >= deadline:
            raise DebuggerAttachError(
                f"Debug port {host}:{port} did not open within {timeout:.1f}s"
            )
        time.sleep(interval)


def _process_alive(pid: int) -> bool:
    try:
        proc = psutil.Process(pid)
        return proc.is_running() and proc.status() != psutil.STATUS_ZOMBIE
    except psutil.NoSuchProcess:
        return False


def terminate_tree(pid: int, timeout: float = 3.0) -> None:
    """Terminate a process and all of its children."""
    try:
        root = psutil.Process(pid)
    except psutil.NoSuchProcess:
        return

    processes = root.children(recursive=True)
    processes.append(root)
    for proc in processes:
        try:
            proc.terminate()
        except psutil.NoSuchProcess:
            pass

    _gone, alive = psutil.wait_procs(processes, timeout=timeout)
    for proc in alive:
        try:
            proc.kill()
            logging.warning(f"Force killed emulator process {proc.pid}")
        except psutil.NoSuchProcess:
            pass


class DebugLauncher:
    """Launches the emulator halted and attaches gdb."""

    def __init__(
        self,
        layout: ProjectLayout,
        timeout: float = DEFAULT_TIMEOUT,
        popen: Callable[..., subprocess.Popen] = subprocess.Popen,
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
        port_waiter: Callable[..., None] = wait_for_port,
    ):
        self.layout = layout
        self.timeout = timeout
        self.popen = popen
        self.runner = runner
        self.port_waiter = port_waiter
        self.generator = EmulatorConfigGenerator(layout)

    def launch(self, config: BuildConfig) -> int:
        """Run a debug session.

        Returns:
            gdb exit status

        Raises:
            MissingArtifact: If the kernel or its image was never built
            DebuggerAttachError: If the emulator never becomes ready
            ToolchainNotFound: If qemu or gdb is not installed
        """
        elf = self.layout.kernel_elf(config)
        for path in (elf, self.layout.boot_artifact(config)):
            if not path.exists():
                raise MissingArtifact(path)

        emulator = self.generator.generate(config).with_args(GDB_STUB_ARGS)
        logging.info(f"Starting emulator: {' '.join(emulator.command)}")
        try:
            process = self.popen(emulator.command, cwd=self.layout.kernel_dir)
        except FileNotFoundError as e:
            raise ToolchainNotFound(emulator.binary) from e

        try:
            self.port_waiter(
                "localhost",
                GDB_STUB_PORT,
                timeout=self.timeout,
                alive=lambda: _process_alive(process.pid),
            )
            gdb_command = [GDB, str(elf), "-x", str(self.layout.gdbinit)]
            logging.info(f"Attaching debugger: {' '.join(gdb_command)}")
            try:
                completed = self.runner(gdb_command, cwd=self.layout.kernel_dir)
            except FileNotFoundError as e:
                raise ToolchainNotFound(GDB) from e
            return completed.returncode
        finally:
            terminate_tree(process.pid)
