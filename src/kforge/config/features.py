"""Kernel feature and target resolution.

Derives the cargo feature set, the target specification id and the
bootloader configure arguments from a normalized BuildConfig.
"""

import dataclasses
from typing import List, Set, Tuple

from .options import Board, BuildConfig, Mode, Raspi3Timer

NOGRAPHIC = "nographic"
RASPI3_GENERIC_TIMER = "raspi3_use_generic_timer"
NO_MMU = "no_mmu"
M_MODE = "m_mode"
SV39 = "sv39"

BBL_ENABLE_BOOT_MACHINE = "--enable-boot-machine"
BBL_ENABLE_SV39 = "--enable-sv39"


class FeatureResolver:
    """Pure mapping from BuildConfig to features and target spec."""

    @staticmethod
    def features_for(config: BuildConfig) -> Set[str]:
        features = set()
        if not config.graphic:
            features.add(NOGRAPHIC)
        if config.board is Board.RASPI3 and config.raspi3_timer is Raspi3Timer.GENERIC:
            features.add(RASPI3_GENERIC_TIMER)
        if config.m_mode:
            features.update((NO_MMU, M_MODE))
        if config.board is Board.U540:
            features.add(SV39)
        if config.board is not Board.NONE:
            features.add(f"board_{config.board.value}")
        return features

    @staticmethod
    def bootloader_args_for(config: BuildConfig) -> Tuple[str, ...]:
        args = []
        if config.m_mode:
            args.append(BBL_ENABLE_BOOT_MACHINE)
        if config.board is Board.U540:
            args.append(BBL_ENABLE_SV39)
        return tuple(args)

    @classmethod
    def resolve(cls, config: BuildConfig) -> BuildConfig:
        """Return a copy of config with features, target spec and BBL args set.

        The target specification is chosen by architecture alone.
        """
        return dataclasses.replace(
            config,
            features=frozenset(cls.features_for(config)),
            target_spec_id=config.arch.value,
            bootloader_args=cls.bootloader_args_for(config),
        )

    @staticmethod
    def cargo_args(config: BuildConfig) -> List[str]:
        """Arguments shared by every cargo/bootimage compile invocation.

        Example:
            ['--target', 'targets/riscv32.json', '--features', 'nographic']
        """
        if not config.is_resolved:
            config = FeatureResolver.resolve(config)
        args = [
            "--target",
            f"targets/{config.target_spec_id}.json",
            "--features",
            " ".join(sorted(config.features)),
        ]
        if config.mode is Mode.RELEASE:
            args.append("--release")
        return args
