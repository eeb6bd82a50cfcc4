"""
Build option intake and normalization.

This module turns raw user options (from the command line or a kforge.ini
preset) into a validated, immutable BuildConfig. It owns the enumerations
every other component branches on and the cross-field rules between them:

- aarch64 always runs on the raspi3 board (a conflicting board is replaced
  and a warning is logged)
- the k210 board always builds for M-mode
- u540 and k210 exist only on riscv64, raspi3 only on aarch64
- M-mode is only available on RISC-V
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, FrozenSet, Optional, Tuple, Type, TypeVar, Union

from ..errors import InvalidCombination


class Architecture(Enum):
    """Target instruction-set family."""

    X86_64 = "x86_64"
    RISCV32 = "riscv32"
    RISCV64 = "riscv64"
    AARCH64 = "aarch64"

    @property
    def is_riscv(self) -> bool:
        return self in (Architecture.RISCV32, Architecture.RISCV64)

    @property
    def supports_m_mode(self) -> bool:
        return self.is_riscv

    @property
    def qemu_binary(self) -> str:
        return f"qemu-system-{self.value}"


class Board(Enum):
    """Hardware profile layered on top of an architecture."""

    NONE = "none"
    K210 = "k210"
    U540 = "u540"
    RASPI3 = "raspi3"


class Mode(Enum):
    DEBUG = "debug"
    RELEASE = "release"


class LogLevel(Enum):
    """Kernel log level, baked in at compile time."""

    OFF = "off"
    ERROR = "error"
    WARN = "warn"
    INFO = "info"
    DEBUG = "debug"
    TRACE = "trace"


class Raspi3Timer(Enum):
    # QEMU only emulates the generic timer
    GENERIC = "generic"
    SYSTEM = "system"


# Boards each architecture may run on
VALID_BOARDS: Dict[Architecture, Tuple[Board, ...]] = {
    Architecture.X86_64: (Board.NONE,),
    Architecture.RISCV32: (Board.NONE,),
    Architecture.RISCV64: (Board.NONE, Board.K210, Board.U540),
    Architecture.AARCH64: (Board.RASPI3,),
}

DEFAULT_ARCH = Architecture.RISCV32
DEFAULT_BOARD = Board.NONE
DEFAULT_MODE = Mode.DEBUG
DEFAULT_SMP = 4
DEFAULT_LOG_LEVEL = LogLevel.DEBUG
DEFAULT_RASPI3_TIMER = Raspi3Timer.GENERIC


@dataclass(frozen=True)
class BuildConfig:
    """Normalized build configuration for a single invocation.

    Constructed by ParameterIntake; features, target_spec_id and
    bootloader_args are filled in by FeatureResolver.
    """

    arch: Architecture
    board: Board
    mode: Mode
    smp: int
    graphic: bool
    m_mode: bool
    sfsimg: Path
    log_level: LogLevel = DEFAULT_LOG_LEVEL
    debug_info: Optional[str] = None
    raspi3_timer: Raspi3Timer = DEFAULT_RASPI3_TIMER
    features: FrozenSet[str] = field(default_factory=frozenset)
    target_spec_id: str = ""
    bootloader_args: Tuple[str, ...] = ()

    @property
    def is_resolved(self) -> bool:
        return bool(self.target_spec_id)

    def to_environment(self) -> Dict[str, str]:
        """Serialize the settings that downstream tools read from the environment.

        The kernel crate and the user-program build read ARCH, BOARD, SMP,
        SFSIMG, M_MODE and LOG at compile time.
        """
        return {
            "ARCH": self.arch.value,
            "BOARD": self.board.value,
            "SMP": str(self.smp),
            "SFSIMG": str(self.sfsimg),
            "M_MODE": "1" if self.m_mode else "",
            "LOG": self.log_level.value,
        }


@dataclass
class RawOptions:
    """Unvalidated options as supplied by the user.

    None means "not supplied, use the default".
    """

    arch: Optional[str] = None
    board: Optional[str] = None
    mode: Optional[str] = None
    smp: Optional[Union[int, str]] = None
    graphic: Optional[Union[bool, str]] = None
    m_mode: Optional[Union[bool, str]] = None
    log_level: Optional[str] = None
    debug_info: Optional[str] = None
    raspi3_timer: Optional[str] = None
    sfsimg: Optional[Union[str, Path]] = None

    def merged_with(self, defaults: Dict[str, str]) -> "RawOptions":
        """Fill unset fields from a mapping of preset values.

        Args:
            defaults: Option values keyed by field name (e.g. from kforge.ini)

        Returns:
            New RawOptions where explicit values win over defaults
        """
        values = {}
        for name in self.__dataclass_fields__:
            value = getattr(self, name)
            if value is None:
                value = defaults.get(name)
            values[name] = value
        return RawOptions(**values)


E = TypeVar("E", bound=Enum)

_TRUE_STRINGS = {"1", "on", "true", "yes"}
_FALSE_STRINGS = {"", "0", "off", "false", "no"}


def parse_enum(enum_type: Type[E], value: str, option: str) -> E:
    """Parse a user string into an enum member by value.

    Raises:
        InvalidCombination: If value is not one of the enum's values
    """
    try:
        return enum_type(value.strip().lower())
    except ValueError:
        choices = ", ".join(member.value for member in enum_type)
        raise InvalidCombination(
            f"Invalid {option} '{value}'. Expected one of: {choices}"
        ) from None


def parse_flag(value: Union[bool, str], option: str) -> bool:
    """Parse on/off style flags."""
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_STRINGS:
        return True
    if text in _FALSE_STRINGS:
        return False
    raise InvalidCombination(f"Invalid {option} '{value}'. Expected on or off")


def default_sfsimg(arch: Architecture, user_dir: Path) -> Path:
    """Disk image of user programs for an architecture."""
    if arch is Architecture.X86_64:
        return user_dir / "img" / "ucore-i386.img"
    return user_dir / "img" / f"ucore-{arch.value}.img"


class ParameterIntake:
    """Validates raw options and applies the forced overrides."""

    def __init__(self, user_dir: Path = Path("../user")):
        """
        Args:
            user_dir: Directory holding user programs and their disk images
        """
        self.user_dir = user_dir

    def normalize(self, raw: RawOptions) -> BuildConfig:
        """Produce a validated BuildConfig skeleton.

        Args:
            raw: Options as supplied by the user

        Returns:
            BuildConfig without resolved features

        Raises:
            InvalidCombination: For unknown values or conflicting options
        """
        arch = parse_enum(Architecture, raw.arch, "arch") if raw.arch else DEFAULT_ARCH
        board = parse_enum(Board, raw.board, "board") if raw.board else DEFAULT_BOARD
        mode = parse_enum(Mode, raw.mode, "mode") if raw.mode else DEFAULT_MODE
        log_level = (
            parse_enum(LogLevel, raw.log_level, "log level")
            if raw.log_level
            else DEFAULT_LOG_LEVEL
        )
        raspi3_timer = (
            parse_enum(Raspi3Timer, raw.raspi3_timer, "raspi3 timer")
            if raw.raspi3_timer
            else DEFAULT_RASPI3_TIMER
        )
        smp = self._parse_smp(raw.smp)

        if arch is Architecture.AARCH64 and board is not Board.RASPI3:
            if raw.board and board is not Board.NONE:
                logging.warning(
                    f"aarch64 only runs on raspi3; ignoring board '{board.value}'"
                )
            board = Board.RASPI3

        if board not in VALID_BOARDS[arch]:
            allowed = ", ".join(b.value for b in VALID_BOARDS[arch])
            raise InvalidCombination(
                f"Board '{board.value}' is not available on {arch.value} "
                + f"(allowed: {allowed})"
            )

        m_mode_requested = (
            parse_flag(raw.m_mode, "m_mode") if raw.m_mode is not None else False
        )
        if m_mode_requested and not arch.supports_m_mode:
            raise InvalidCombination(
                f"M-mode is only available on riscv32 and riscv64, not {arch.value}"
            )
        m_mode = m_mode_requested or board is Board.K210

        if raw.graphic is None:
            graphic = arch is Architecture.AARCH64
        else:
            graphic = parse_flag(raw.graphic, "graphic")

        sfsimg = Path(raw.sfsimg) if raw.sfsimg else default_sfsimg(arch, self.user_dir)

        config = BuildConfig(
            arch=arch,
            board=board,
            mode=mode,
            smp=smp,
            graphic=graphic,
            m_mode=m_mode,
            sfsimg=sfsimg,
            log_level=log_level,
            debug_info=raw.debug_info or None,
            raspi3_timer=raspi3_timer,
        )
        logging.debug(f"Normalized options: {config}")
        return config

    @staticmethod
    def _parse_smp(value: Optional[Union[int, str]]) -> int:
        if value is None or value == "":
            return DEFAULT_SMP
        try:
            smp = int(value)
        except (TypeError, ValueError):
            raise InvalidCombination(f"Invalid core count '{value}'") from None
        if smp < 1:
            raise InvalidCombination(f"Core count must be at least 1, got {smp}")
        return smp
