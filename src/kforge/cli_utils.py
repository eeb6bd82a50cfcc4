"""CLI utility functions for Kforge.

This module provides common utilities used across CLI commands including:
- Preset (environment) detection from kforge.ini
- Logging setup
- Error handling and formatting
"""

import logging
import sys
from pathlib import Path
from typing import Dict, Optional

from kforge.config import ProjectConfig
from kforge.errors import ExternalProcessFailure, KforgeError, MissingArtifact

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(verbose: bool = False) -> None:
    """Configure the root logger for CLI use.

    Args:
        verbose: Log INFO and above instead of WARNING and above
    """
    logger = logging.getLogger()
    level = logging.INFO if verbose else logging.WARNING
    logger.setLevel(level)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)


class EnvironmentDetector:
    """Handles preset detection from kforge.ini."""

    @staticmethod
    def load_preset(kernel_dir: Path, env_name: Optional[str] = None) -> Dict[str, str]:
        """Get option defaults from kforge.ini.

        Args:
            kernel_dir: Kernel directory that may contain kforge.ini
            env_name: Optional explicit environment name

        Returns:
            Option values of the selected environment; empty when there is
            no kforge.ini and no environment was requested

        Raises:
            FileNotFoundError: If env_name is given but kforge.ini doesn't exist
            ProjectConfigError: If the environment is unknown or malformed
        """
        config = ProjectConfig.find(kernel_dir)
        if config is None:
            if env_name:
                raise FileNotFoundError(f"kforge.ini not found in {kernel_dir}")
            return {}

        selected = env_name or config.get_default_environment()
        if not selected:
            return {}
        return config.get_env_config(selected)


class ErrorFormatter:
    """Formats and displays error messages with ANSI color codes."""

    RED = "\033[1;31m"
    GREEN = "\033[1;32m"
    YELLOW = "\033[1;33m"
    RESET = "\033[0m"

    @staticmethod
    def print_error(title: str, message: str) -> None:
        """Print formatted error message.

        Args:
            title: Error title (e.g., "Invalid options", "Build failed")
            message: Error message details
        """
        print()
        print(f"{ErrorFormatter.RED}✗ {title}{ErrorFormatter.RESET}")
        print()
        print(message)
        print()

    @staticmethod
    def print_success(message: str) -> None:
        print()
        print(f"{ErrorFormatter.GREEN}✓ {message}{ErrorFormatter.RESET}")

    @staticmethod
    def print_warning(message: str) -> None:
        print()
        print(f"{ErrorFormatter.YELLOW}✗ {message}{ErrorFormatter.RESET}")

    @staticmethod
    def handle_invalid_options(error: Exception) -> None:
        """Invalid or conflicting options exit with status 2."""
        ErrorFormatter.print_error("Invalid options", str(error))
        sys.exit(2)

    @staticmethod
    def handle_kforge_error(error: KforgeError) -> None:
        """Handle pipeline errors with standard formatting."""
        if isinstance(error, ExternalProcessFailure):
            title = "Command failed"
        elif isinstance(error, MissingArtifact):
            title = "Nothing to run"
        else:
            title = "Error"
        ErrorFormatter.print_error(title, str(error))
        sys.exit(1)

    @staticmethod
    def handle_file_not_found(error: FileNotFoundError) -> None:
        ErrorFormatter.print_error("Error: File not found", str(error))
        sys.exit(1)

    @staticmethod
    def handle_keyboard_interrupt() -> None:
        ErrorFormatter.print_warning("Interrupted")
        sys.exit(130)  # Standard exit code for SIGINT

    @staticmethod
    def handle_unexpected_error(error: Exception, verbose: bool = False) -> None:
        """Handle unexpected errors with standard formatting.

        Args:
            error: The exception to handle
            verbose: Whether to print traceback
        """
        message = f"{type(error).__name__}: {error}"
        ErrorFormatter.print_error("Unexpected error", message)

        if verbose:
            import traceback

            print("Traceback:")
            print(traceback.format_exc())

        sys.exit(1)


class PathValidator:
    """Validates kernel directory paths."""

    @staticmethod
    def validate_kernel_dir(kernel_dir: Path) -> None:
        """Validate that the kernel directory exists and is a directory.

        Raises:
            SystemExit: If path doesn't exist or isn't a directory
        """
        if not kernel_dir.exists():
            print(
                f"{ErrorFormatter.RED}✗ Error: Path does not exist: {kernel_dir}{ErrorFormatter.RESET}"
            )
            sys.exit(2)
        if not kernel_dir.is_dir():
            print(
                f"{ErrorFormatter.RED}✗ Error: Path is not a directory: {kernel_dir}{ErrorFormatter.RESET}"
            )
            sys.exit(2)
