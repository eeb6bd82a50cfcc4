"""
Unit tests for the debug launcher and its gdb stub readiness check.
"""

import socket
import subprocess
from unittest.mock import Mock, patch

import pytest

from kforge.config.features import FeatureResolver
from kforge.config.layout import ProjectLayout
from kforge.config.options import ParameterIntake, RawOptions
from kforge.deploy.debugger import DebugLauncher, wait_for_port
from kforge.errors import DebuggerAttachError, MissingArtifact


@pytest.fixture
def listening_port():
    """A local TCP port that accepts connections."""
    server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    server.bind(("127.0.0.1", 0))
    server.listen(1)
    yield server.getsockname()[1]
    server.close()


@pytest.fixture
def closed_port():
    """A local TCP port with nothing listening."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return port


class TestWaitForPort:
    def test_ready(self, listening_port):
        wait_for_port("127.0.0.1", listening_port, timeout=2.0)

    def test_timeout(self, closed_port):
        with pytest.raises(DebuggerAttachError, match="did not open"):
            wait_for_port("127.0.0.1", closed_port, timeout=0.2, interval=0.05)

    def test_process_died(self, closed_port):
        with pytest.raises(DebuggerAttachError, match="exited"):
            wait_for_port("127.0.0.1", closed_port, timeout=5.0, alive=lambda: False)


@pytest.fixture
def layout(tmp_path):
    kernel_dir = tmp_path / "kernel"
    kernel_dir.mkdir()
    return ProjectLayout.at(kernel_dir)


@pytest.fixture
def config(layout):
    intake = ParameterIntake(user_dir=layout.user_dir)
    return FeatureResolver.resolve(intake.normalize(RawOptions(arch="riscv64")))


@pytest.fixture
def built(layout, config):
    out = layout.output_dir(config)
    out.mkdir(parents=True)
    layout.kernel_elf(config).write_bytes(b"\x7fELF")
    layout.kernel_bin(config).write_bytes(b"bbl")


class TestDebugLauncher:
    def test_missing_build(self, layout, config):
        popen = Mock()
        with pytest.raises(MissingArtifact):
            DebugLauncher(layout, popen=popen).launch(config)
        popen.assert_not_called()

    def test_attaches_after_port_opens(self, layout, config, built):
        process = Mock(pid=4242)
        popen = Mock(return_value=process)
        runner = Mock(return_value=subprocess.CompletedProcess(args=[], returncode=0))
        waiter = Mock()

        with patch("kforge.deploy.debugger.terminate_tree") as terminate:
            launcher = DebugLauncher(
                layout, timeout=3.0, popen=popen, runner=runner, port_waiter=waiter
            )
            assert launcher.launch(config) == 0

        qemu_command = popen.call_args.args[0]
        assert qemu_command[0] == "qemu-system-riscv64"
        assert qemu_command[-2:] == ["-s", "-S"]

        waiter.assert_called_once()
        assert waiter.call_args.args == ("localhost", 1234)
        assert waiter.call_args.kwargs["timeout"] == 3.0

        gdb_command = runner.call_args.args[0]
        assert gdb_command == [
            "gdb",
            str(layout.kernel_elf(config)),
            "-x",
            str(layout.root_dir / "tools" / "gdbinit"),
        ]
        terminate.assert_called_once_with(4242)

    def test_emulator_torn_down_when_not_ready(self, layout, config, built):
        popen = Mock(return_value=Mock(pid=4242))
        runner = Mock()
        waiter = Mock(side_effect=DebuggerAttachError("did not open"))

        with patch("kforge.deploy.debugger.terminate_tree") as terminate:
            launcher = DebugLauncher(layout, popen=popen, runner=runner, port_waiter=waiter)
            with pytest.raises(DebuggerAttachError):
                launcher.launch(config)

        runner.assert_not_called()
        terminate.assert_called_once_with(4242)
