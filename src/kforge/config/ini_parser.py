"""
kforge.ini configuration parser.

This module reads optional option presets from a kforge.ini file in the
kernel directory, so common configurations can be selected by name instead
of repeating options on every invocation.
"""

import configparser
from pathlib import Path
from typing import Dict, List, Optional

from ..errors import ProjectConfigError

CONFIG_FILENAME = "kforge.ini"


class ProjectConfig:
    """
    Parser for kforge.ini preset files.

    Example kforge.ini:
        [kforge]
        default_envs = qemu-rv64

        [env]
        smp = 2

        [env:qemu-rv64]
        arch = riscv64

        [env:k210]
        arch = riscv64
        board = k210
        mode = release

    Usage:
        config = ProjectConfig(Path("kforge.ini"))
        envs = config.get_environments()
        k210 = config.get_env_config("k210")
    """

    # Keys accepted in an environment section; they map onto RawOptions fields
    KNOWN_KEYS = {
        "arch",
        "board",
        "mode",
        "smp",
        "graphic",
        "m_mode",
        "log_level",
        "debug_info",
        "raspi3_timer",
        "sfsimg",
    }

    # Makefile-style spellings accepted as aliases
    KEY_ALIASES = {"log": "log_level", "d": "debug_info"}

    def __init__(self, ini_path: Path):
        """
        Initialize the parser with a kforge.ini file.

        Args:
            ini_path: Path to the kforge.ini file

        Raises:
            ProjectConfigError: If the file doesn't exist or cannot be parsed
        """
        self.ini_path = ini_path

        if not ini_path.exists():
            raise ProjectConfigError(f"Configuration file not found: {ini_path}")

        self.config = configparser.ConfigParser(
            allow_no_value=True, interpolation=configparser.ExtendedInterpolation()
        )

        try:
            self.config.read(ini_path, encoding="utf-8")
        except configparser.Error as e:
            raise ProjectConfigError(f"Failed to parse {ini_path}: {e}") from e

    @classmethod
    def find(cls, kernel_dir: Path) -> Optional["ProjectConfig"]:
        """Load kforge.ini from a kernel directory if one exists."""
        ini_path = kernel_dir / CONFIG_FILENAME
        if not ini_path.exists():
            return None
        return cls(ini_path)

    def get_environments(self) -> List[str]:
        """
        Get list of all environment names defined in the config.

        Example:
            For [env:k210], [env:u540], returns ['k210', 'u540']
        """
        envs = []
        for section in self.config.sections():
            if section.startswith("env:"):
                envs.append(section.split(":", 1)[1])
        return envs

    def get_env_config(self, env_name: str) -> Dict[str, str]:
        """
        Get option values for a specific environment.

        Values from the base [env] section are inherited; the named
        environment wins on conflicts.

        Args:
            env_name: Name of the environment (e.g., 'k210')

        Returns:
            Dictionary keyed by option name (RawOptions field names)

        Raises:
            ProjectConfigError: If the environment is missing or has unknown keys
        """
        section = f"env:{env_name}"

        if not self.has_environment(env_name):
            available = ", ".join(self.get_environments())
            raise ProjectConfigError(
                f"Environment '{env_name}' not found. "
                + f"Available environments: {available or 'none'}"
            )

        env_config = {}
        if "env" in self.config:
            env_config.update(self._read_section("env"))
        env_config.update(self._read_section(section))
        return env_config

    def _read_section(self, section: str) -> Dict[str, str]:
        values = {}
        for key in self.config[section]:
            value = self._get_value(section, key)
            name = self.KEY_ALIASES.get(key, key)
            if name not in self.KNOWN_KEYS:
                raise ProjectConfigError(
                    f"Unknown option '{key}' in [{section}] of {self.ini_path}. "
                    + f"Known options: {', '.join(sorted(self.KNOWN_KEYS))}"
                )
            # A bare key (e.g. "m_mode" with no value) switches a flag on
            values[name] = "on" if value is None else value.strip()
        return values

    def has_environment(self, env_name: str) -> bool:
        return f"env:{env_name}" in self.config

    def _get_value(self, section: str, key: str) -> Optional[str]:
        # $ starts an ${section:key} reference; a literal dollar is written $$
        try:
            return self.config[section].get(key)
        except configparser.Error as e:
            raise ProjectConfigError(
                f"Invalid value for '{key}' in [{section}] of {self.ini_path}: {e}"
            ) from e

    def get_default_environment(self) -> Optional[str]:
        """
        Get the default environment.

        Returns:
            First entry of default_envs in [kforge], else the first
            environment, else None
        """
        if "kforge" in self.config:
            default_envs = self._get_value("kforge", "default_envs") or ""
            default_envs = default_envs.strip()
            if default_envs:
                return default_envs.split(",")[0].strip()

        envs = self.get_environments()
        return envs[0] if envs else None
