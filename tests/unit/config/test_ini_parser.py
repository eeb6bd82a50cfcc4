"""
Unit tests for kforge.ini parser.
"""

import pytest

from kforge.config.ini_parser import ProjectConfig
from kforge.errors import ProjectConfigError


class TestProjectConfig:
    """Test suite for ProjectConfig parser."""

    @pytest.fixture
    def tmp_ini_path(self, tmp_path):
        return tmp_path / "kforge.ini"

    @pytest.fixture
    def multi_env_config(self, tmp_ini_path):
        content = """
[kforge]
default_envs = u540

[env]
smp = 2

[env:k210]
arch = riscv64
board = k210
mode = release

[env:u540]
arch = riscv64
board = u540
smp = 4
"""
        tmp_ini_path.write_text(content)
        return tmp_ini_path

    def test_missing_file(self, tmp_ini_path):
        with pytest.raises(ProjectConfigError, match="not found"):
            ProjectConfig(tmp_ini_path)

    def test_find_without_file(self, tmp_path):
        assert ProjectConfig.find(tmp_path) is None

    def test_find_with_file(self, tmp_path, multi_env_config):
        config = ProjectConfig.find(tmp_path)
        assert config is not None
        assert config.ini_path == multi_env_config

    def test_get_environments(self, multi_env_config):
        config = ProjectConfig(multi_env_config)
        assert config.get_environments() == ["k210", "u540"]

    def test_env_inherits_base(self, multi_env_config):
        config = ProjectConfig(multi_env_config)
        assert config.get_env_config("k210") == {
            "smp": "2",
            "arch": "riscv64",
            "board": "k210",
            "mode": "release",
        }

    def test_env_overrides_base(self, multi_env_config):
        config = ProjectConfig(multi_env_config)
        assert config.get_env_config("u540")["smp"] == "4"

    def test_unknown_environment(self, multi_env_config):
        config = ProjectConfig(multi_env_config)
        with pytest.raises(ProjectConfigError, match="Available environments: k210, u540"):
            config.get_env_config("raspi")

    def test_default_environment(self, multi_env_config):
        config = ProjectConfig(multi_env_config)
        assert config.get_default_environment() == "u540"

    def test_default_environment_falls_back_to_first(self, tmp_ini_path):
        tmp_ini_path.write_text("[env:qemu]\narch = riscv32\n\n[env:other]\narch = x86_64\n")
        config = ProjectConfig(tmp_ini_path)
        assert config.get_default_environment() == "qemu"

    def test_no_environments(self, tmp_ini_path):
        tmp_ini_path.write_text("[kforge]\n")
        config = ProjectConfig(tmp_ini_path)
        assert config.get_default_environment() is None

    def test_aliases_and_bare_flag(self, tmp_ini_path):
        tmp_ini_path.write_text("[env:mm]\narch = riscv32\nlog = trace\nd = int\nm_mode\n")
        config = ProjectConfig(tmp_ini_path)
        assert config.get_env_config("mm") == {
            "arch": "riscv32",
            "log_level": "trace",
            "debug_info": "int",
            "m_mode": "on",
        }

    def test_unknown_key(self, tmp_ini_path):
        tmp_ini_path.write_text("[env:bad]\ncpu = cortex\n")
        config = ProjectConfig(tmp_ini_path)
        with pytest.raises(ProjectConfigError, match="Unknown option 'cpu'"):
            config.get_env_config("bad")

    def test_has_environment(self, multi_env_config):
        config = ProjectConfig(multi_env_config)
        assert config.has_environment("k210")
        assert not config.has_environment("x86")

    def test_malformed_file(self, tmp_ini_path):
        tmp_ini_path.write_text("not an ini file\n[")
        with pytest.raises(ProjectConfigError, match="Failed to parse"):
            ProjectConfig(tmp_ini_path)

    def test_bare_dollar_is_config_error(self, tmp_ini_path):
        tmp_ini_path.write_text("[env:disk]\nsfsimg = /img/$disk.img\n")
        config = ProjectConfig(tmp_ini_path)
        with pytest.raises(ProjectConfigError, match="Invalid value for 'sfsimg' in \\[env:disk\\]"):
            config.get_env_config("disk")

    def test_escaped_dollar(self, tmp_ini_path):
        tmp_ini_path.write_text("[env:disk]\nsfsimg = /img/$$disk.img\n")
        assert ProjectConfig(tmp_ini_path).get_env_config("disk") == {"sfsimg": "/img/$disk.img"}

    def test_reference_to_other_section(self, tmp_ini_path):
        tmp_ini_path.write_text("[paths]\nimg = /srv/img\n\n[env:disk]\nsfsimg = ${paths:img}/rv64.img\n")
        assert ProjectConfig(tmp_ini_path).get_env_config("disk") == {"sfsimg": "/srv/img/rv64.img"}

    def test_bad_default_envs_reference(self, tmp_ini_path):
        tmp_ini_path.write_text("[kforge]\ndefault_envs = ${missing:key}\n\n[env:k210]\narch = riscv64\n")
        with pytest.raises(ProjectConfigError, match="Invalid value for 'default_envs'"):
            ProjectConfig(tmp_ini_path).get_default_environment()
