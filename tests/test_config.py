"""Tests for the config module."""

import os

import pytest

from user_rollup.config import (
    LOG_LEVELS,
    Config,
    build_cli_parser,
    load_config,
    load_yaml_config,
)
from user_rollup.errors import ConfigError

ENV_VARS = ("ROLLUP_CHECKPOINT_INTERVAL", "ROLLUP_DEDUP_SCOPE", "ROLLUP_LOG_LEVEL")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def _args(*argv):
    return build_cli_parser().parse_args(list(argv))


class TestConfigDefaults:
    def test_defaults(self):
        cfg = Config(log_file="data.log")
        assert cfg.checkpoint_interval == 100
        assert cfg.clear_checkpoint is False
        assert cfg.dedup_scope == "global"
        assert cfg.log_level == "INFO"

    def test_paths_colocated_with_log(self, tmp_path):
        cfg = Config(log_file=str(tmp_path / "data.log"))
        assert cfg.checkpoint_path == os.path.join(str(tmp_path), ".cache")
        assert cfg.report_path == os.path.join(str(tmp_path), "out.log")

    def test_frozen(self):
        cfg = Config(log_file="data.log")
        with pytest.raises(AttributeError):
            cfg.checkpoint_interval = 5

    def test_log_levels(self):
        assert LOG_LEVELS == ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class TestLoadConfig:
    def test_cli_flags(self):
        cfg = load_config(_args("-f", "data.log", "-c", "-r", "25"), {})
        assert cfg.log_file == "data.log"
        assert cfg.clear_checkpoint is True
        assert cfg.checkpoint_interval == 25

    def test_missing_log_file(self):
        with pytest.raises(ConfigError):
            load_config(_args(), {})

    def test_non_positive_interval(self):
        with pytest.raises(ConfigError):
            load_config(_args("-f", "data.log", "-r", "0"), {})

    def test_env_overrides_yaml(self, monkeypatch):
        monkeypatch.setenv("ROLLUP_CHECKPOINT_INTERVAL", "7")
        monkeypatch.setenv("ROLLUP_DEDUP_SCOPE", "USER")
        monkeypatch.setenv("ROLLUP_LOG_LEVEL", "debug")
        cfg = load_config(_args("-f", "data.log"),
                          {"checkpoint_interval": 50, "dedup_scope": "global"})
        assert cfg.checkpoint_interval == 7
        assert cfg.dedup_scope == "user"
        assert cfg.log_level == "DEBUG"

    def test_cli_overrides_env(self, monkeypatch):
        monkeypatch.setenv("ROLLUP_CHECKPOINT_INTERVAL", "7")
        cfg = load_config(_args("-f", "data.log", "-r", "3"), {})
        assert cfg.checkpoint_interval == 3

    def test_bad_env_interval(self, monkeypatch):
        monkeypatch.setenv("ROLLUP_CHECKPOINT_INTERVAL", "lots")
        with pytest.raises(ConfigError):
            load_config(_args("-f", "data.log"), {})

    def test_yaml_values(self):
        cfg = load_config(_args(), {
            "log_file": "from_yaml.log",
            "checkpoint_interval": 10,
            "checkpoint_name": "state.ckpt",
            "report_name": "report.txt",
        })
        assert cfg.log_file == "from_yaml.log"
        assert cfg.checkpoint_interval == 10
        assert cfg.checkpoint_path.endswith("state.ckpt")
        assert cfg.report_path.endswith("report.txt")

    def test_unknown_scope(self):
        with pytest.raises(ConfigError):
            load_config(_args("-f", "data.log"), {"dedup_scope": "tenant"})

    def test_unknown_log_level(self):
        with pytest.raises(ConfigError):
            load_config(_args("-f", "data.log", "--log-level", "loud"), {})


class TestLoadYamlConfig:
    def test_no_path(self):
        assert load_yaml_config(None) == {}

    def test_missing_file(self, tmp_path):
        assert load_yaml_config(str(tmp_path / "nope.yml")) == {}

    def test_valid_file(self, tmp_path):
        path = tmp_path / "rollup.yml"
        path.write_text("checkpoint_interval: 20\ndedup_scope: user\n")
        assert load_yaml_config(str(path)) == {"checkpoint_interval": 20, "dedup_scope": "user"}

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yml"
        path.write_text("checkpoint_interval: [1, 2\n")
        with pytest.raises(ConfigError):
            load_yaml_config(str(path))

    def test_non_mapping(self, tmp_path):
        path = tmp_path / "list.yml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigError):
            load_yaml_config(str(path))
