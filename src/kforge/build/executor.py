"""Process orchestration.

Runs build plan steps strictly in order, each in its own working
directory, and stops at the first failure that is not a soft-fail step.

Design:
    - Wraps subprocess.run for external programs
    - Classifies soft-fail outcomes (applied / already applied / ignored)
    - Reports the failing tool, arguments and exit status verbatim
    - Never retries
"""

import logging
import os
import shutil
import subprocess
import sys
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from ..errors import ExternalProcessFailure, MissingArtifact, ToolchainNotFound
from ..packages.downloader import ChecksumError, DownloadError, PackageDownloader
from .steps import CommandStep, CopyStep, FetchStep, Step, StepResult, StepStatus

# patch(1) reports this when a hunk is already present
ALREADY_APPLIED_MARKERS = (
    "Reversed (or previously applied) patch detected",
    "previously applied",
)

PAGER = "less"


def classify_soft_failure(output: str) -> StepStatus:
    """Map the output of a failed soft step to its outcome."""
    if any(marker in output for marker in ALREADY_APPLIED_MARKERS):
        return StepStatus.ALREADY_APPLIED
    return StepStatus.FAILED_IGNORED


class ProcessOrchestrator:
    """Executes steps sequentially with fail-fast semantics.

    Example usage:
        orchestrator = ProcessOrchestrator(verbose=True)
        results = orchestrator.execute(plan.steps)
    """

    def __init__(
        self,
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
        downloader: Optional[PackageDownloader] = None,
        verbose: bool = False,
    ):
        """
        Args:
            runner: subprocess.run compatible callable
            downloader: Downloader for fetch steps (created on demand)
            verbose: Echo commands and show tool output
        """
        self.runner = runner
        self.downloader = downloader
        self.verbose = verbose

    def execute(self, steps: Iterable[Step]) -> List[StepResult]:
        """Run steps in order.

        Returns:
            Results of every executed step

        Raises:
            ExternalProcessFailure: A non-soft step failed
            ToolchainNotFound: A program could not be started
            MissingArtifact: A copy source does not exist
        """
        results = []
        for step in steps:
            if isinstance(step, CommandStep):
                result = self.run_command(step)
            elif isinstance(step, FetchStep):
                result = self._fetch(step)
            elif isinstance(step, CopyStep):
                result = self._copy(step)
            else:
                raise AssertionError(f"Unhandled step type: {type(step).__name__}")
            results.append(result)
        return results

    def run_command(self, step: CommandStep) -> StepResult:
        """Run a single external command step."""
        if step.unavailable:
            if not step.soft_fail:
                raise ToolchainNotFound(step.executable, step.unavailable)
            logging.warning(f"{step.description} skipped: {step.unavailable}")
            print(f"{step.description}... skipped ({step.unavailable})")
            return StepResult(step, StepStatus.FAILED_IGNORED, output=step.unavailable)

        if step.create_cwd:
            step.cwd.mkdir(parents=True, exist_ok=True)

        env = None
        if step.env:
            env = os.environ.copy()
            env.update(step.environment)

        logging.info(f"[{step.kind.value}] {' '.join(step.command)} (cwd={step.cwd})")
        if self.verbose:
            print(f"$ {' '.join(step.command)}")
        else:
            print(f"{step.description}...")

        if step.pager and sys.stdout.isatty():
            return self._run_paged(step, env)

        # Soft steps are captured so their outcome can be classified
        capture = step.soft_fail
        try:
            completed = self.runner(
                step.command,
                cwd=step.cwd,
                env=env,
                capture_output=capture,
                text=True,
            )
        except FileNotFoundError as e:
            if step.soft_fail:
                logging.warning(f"{step.description} skipped: {e}")
                return StepResult(step, StepStatus.FAILED_IGNORED, output=str(e))
            raise ToolchainNotFound(step.executable) from e

        output = ""
        if capture:
            output = (completed.stdout or "") + (completed.stderr or "")

        if completed.returncode == 0:
            return StepResult(step, StepStatus.SUCCEEDED, 0, output)

        if step.soft_fail:
            status = classify_soft_failure(output)
            logging.info(
                f"{step.description} exited {completed.returncode}: {status.value}"
            )
            if self.verbose and output:
                print(output)
            return StepResult(step, status, completed.returncode, output)

        raise ExternalProcessFailure(
            step.description, step.executable, step.args, completed.returncode
        )

    def _run_paged(self, step: CommandStep, env) -> StepResult:
        try:
            producer = subprocess.Popen(
                step.command, cwd=step.cwd, env=env, stdout=subprocess.PIPE
            )
        except FileNotFoundError as e:
            raise ToolchainNotFound(step.executable) from e

        try:
            pager = subprocess.Popen([PAGER], stdin=producer.stdout)
        except FileNotFoundError:
            # No pager available: drain output to the terminal directly
            assert producer.stdout is not None
            for line in producer.stdout:
                sys.stdout.buffer.write(line)
            sys.stdout.flush()
            pager = None
        else:
            assert producer.stdout is not None
            producer.stdout.close()

        returncode = producer.wait()
        if pager is not None:
            pager.wait()

        if returncode != 0:
            raise ExternalProcessFailure(
                step.description, step.executable, step.args, returncode
            )
        return StepResult(step, StepStatus.SUCCEEDED, 0)

    def _fetch(self, step: FetchStep) -> StepResult:
        if self.downloader is None:
            self.downloader = PackageDownloader()
        try:
            downloaded = self.downloader.ensure(step.url, step.destination)
        except (DownloadError, ChecksumError) as e:
            raise ExternalProcessFailure(
                step.description, "download", [step.url], 1, detail=str(e)
            ) from e

        if not downloaded:
            logging.info(f"{step.destination} present, not downloading")
            return StepResult(step, StepStatus.SKIPPED)
        return StepResult(step, StepStatus.SUCCEEDED)

    def _copy(self, step: CopyStep) -> StepResult:
        source = Path(step.source)
        if not source.exists():
            raise MissingArtifact(source, hint=f"Needed by: {step.description}.")
        step.destination.parent.mkdir(parents=True, exist_ok=True)
        logging.info(f"[{step.kind.value}] {source} -> {step.destination}")
        shutil.copy2(source, step.destination)
        return StepResult(step, StepStatus.SUCCEEDED)
