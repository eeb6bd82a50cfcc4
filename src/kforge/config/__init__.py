"""Configuration modules for Kforge."""

from .features import FeatureResolver
from .ini_parser import ProjectConfig
from .layout import ProjectLayout
from .options import (
    Architecture,
    Board,
    BuildConfig,
    LogLevel,
    Mode,
    ParameterIntake,
    Raspi3Timer,
    RawOptions,
)

__all__ = [
    "Architecture",
    "Board",
    "Mode",
    "LogLevel",
    "Raspi3Timer",
    "BuildConfig",
    "RawOptions",
    "ParameterIntake",
    "FeatureResolver",
    "ProjectConfig",
    "ProjectLayout",
]
