"""
Unit tests for feature and target resolution.
"""

import itertools
from pathlib import Path

import pytest

from kforge.config.features import FeatureResolver
from kforge.config.options import ParameterIntake, RawOptions

VALID_COMBINATIONS = [
    ("x86_64", "none"),
    ("riscv32", "none"),
    ("riscv64", "none"),
    ("riscv64", "k210"),
    ("riscv64", "u540"),
    ("aarch64", "raspi3"),
]


def resolve(**options):
    config = ParameterIntake(user_dir=Path("../user")).normalize(RawOptions(**options))
    return FeatureResolver.resolve(config)


class TestFeatureResolver:
    """Feature set derivation."""

    def test_default_riscv32(self):
        config = resolve(arch="riscv32")
        assert config.features == {"nographic"}
        assert config.target_spec_id == "riscv32"
        assert config.bootloader_args == ()

    def test_graphic_on_drops_nographic(self):
        config = resolve(arch="riscv32", graphic="on")
        assert "nographic" not in config.features

    def test_raspi3_generic_timer(self):
        config = resolve(arch="aarch64")
        assert config.features == {"raspi3_use_generic_timer", "board_raspi3"}
        assert config.target_spec_id == "aarch64"

    def test_raspi3_system_timer(self):
        config = resolve(arch="aarch64", raspi3_timer="system")
        assert config.features == {"board_raspi3"}

    def test_timer_option_ignored_off_raspi3(self):
        config = resolve(arch="riscv32", raspi3_timer="generic")
        assert "raspi3_use_generic_timer" not in config.features

    def test_k210(self):
        config = resolve(arch="riscv64", board="k210")
        assert config.features == {"nographic", "no_mmu", "m_mode", "board_k210"}
        assert config.bootloader_args == ("--enable-boot-machine",)

    def test_u540_bootloader_args(self):
        config = resolve(arch="riscv64", board="u540")
        assert config.features == {"nographic", "sv39", "board_u540"}
        assert config.bootloader_args == ("--enable-sv39",)

    def test_u540_with_m_mode_has_both_bootloader_tokens(self):
        config = resolve(arch="riscv64", board="u540", m_mode=True)
        assert "--enable-boot-machine" in config.bootloader_args
        assert "--enable-sv39" in config.bootloader_args

    def test_riscv32_m_mode(self):
        config = resolve(arch="riscv32", m_mode=True)
        assert {"no_mmu", "m_mode"} <= config.features
        assert not any(f.startswith("board_") for f in config.features)

    @pytest.mark.parametrize("arch,board", VALID_COMBINATIONS)
    def test_target_spec_follows_architecture(self, arch, board):
        assert resolve(arch=arch, board=board).target_spec_id == arch

    @pytest.mark.parametrize("arch,board", VALID_COMBINATIONS)
    def test_board_token_iff_board(self, arch, board):
        config = resolve(arch=arch, board=board)
        has_board_token = f"board_{board}" in config.features
        assert has_board_token == (board != "none")

    @pytest.mark.parametrize(
        "arch,board,graphic",
        [(a, b, g) for (a, b), g in itertools.product(VALID_COMBINATIONS, ["on", "off"])],
    )
    def test_resolution_is_pure(self, arch, board, graphic):
        first = resolve(arch=arch, board=board, graphic=graphic)
        second = resolve(arch=arch, board=board, graphic=graphic)
        assert first == second
        assert first.features == FeatureResolver.features_for(second)
        assert ("nographic" in first.features) == (graphic == "off")


class TestCargoArgs:
    def test_debug(self):
        config = resolve(arch="riscv64", board="u540")
        assert FeatureResolver.cargo_args(config) == [
            "--target",
            "targets/riscv64.json",
            "--features",
            "board_u540 nographic sv39",
        ]

    def test_release(self):
        config = resolve(arch="x86_64", mode="release", graphic="on")
        assert FeatureResolver.cargo_args(config) == [
            "--target",
            "targets/x86_64.json",
            "--features",
            "",
            "--release",
        ]

    def test_resolves_unresolved_config(self):
        config = ParameterIntake().normalize(RawOptions())
        assert FeatureResolver.cargo_args(config)[1] == "targets/riscv32.json"
