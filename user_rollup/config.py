"""Configuration loading from CLI args, env vars, and an optional YAML file.

Precedence, highest first: command line, environment, YAML file, defaults.
"""

import argparse
import logging
import os
from dataclasses import dataclass

import yaml

from user_rollup.errors import ConfigError
from user_rollup.models import DEDUP_SCOPES

logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class Config:
    log_file: str
    checkpoint_interval: int = 100
    clear_checkpoint: bool = False
    dedup_scope: str = "global"
    checkpoint_name: str = ".cache"
    report_name: str = "out.log"
    log_level: str = "INFO"

    @property
    def data_dir(self) -> str:
        return os.path.dirname(os.path.abspath(self.log_file))

    @property
    def checkpoint_path(self) -> str:
        return os.path.join(self.data_dir, self.checkpoint_name)

    @property
    def report_path(self) -> str:
        return os.path.join(self.data_dir, self.report_name)


def build_cli_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="user-rollup",
        description="Aggregate a per-user event/attribute log into a sorted report, "
                    "resuming from the last checkpoint.",
    )
    parser.add_argument(
        "-f", "--file", dest="log_file",
        help="Path to the NDJSON record log; checkpoint and report are written beside it",
    )
    parser.add_argument(
        "-c", "--clear-checkpoint", action="store_true",
        help="Delete the existing checkpoint and start from the beginning",
    )
    parser.add_argument(
        "-r", "--records", dest="checkpoint_interval", type=int, default=None,
        help="Number of records to read between checkpoints (default: 100)",
    )
    parser.add_argument(
        "--dedup-scope", choices=DEDUP_SCOPES, default=None,
        help="Whether event ids are unique across the log or per user (default: global)",
    )
    parser.add_argument(
        "--config", default=None,
        help="Optional YAML config file",
    )
    parser.add_argument(
        "--log-level", default=None,
        help="Logging level (default: INFO)",
    )
    return parser


def load_yaml_config(path: str | None) -> dict:
    """Load settings from a YAML file. Returns an empty dict if no path."""
    if not path:
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.warning("Config file %s not found, using defaults", path)
        return {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config file {path} must contain a mapping")
    logger.info("Loaded YAML config from %s", path)
    return data


def _pick(cli_value, env_name: str, yaml_data: dict, yaml_key: str, default):
    if cli_value is not None:
        return cli_value
    if env_name in os.environ:
        return os.environ[env_name]
    return yaml_data.get(yaml_key, default)


def _parse_interval(value) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"checkpoint interval must be a positive integer, got {value!r}")
    try:
        interval = int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"checkpoint interval must be a positive integer, got {value!r}") from None
    if interval <= 0:
        raise ConfigError(f"checkpoint interval must be a positive integer, got {interval}")
    return interval


def load_config(cli_args, yaml_data: dict) -> Config:
    """Build Config from parsed CLI args, env vars, and YAML data."""
    log_file = cli_args.log_file or yaml_data.get("log_file")
    if not log_file:
        raise ConfigError("a log file path is required (-f/--file)")

    interval = _parse_interval(_pick(cli_args.checkpoint_interval, "ROLLUP_CHECKPOINT_INTERVAL",
                                     yaml_data, "checkpoint_interval", Config.checkpoint_interval))

    scope = str(_pick(cli_args.dedup_scope, "ROLLUP_DEDUP_SCOPE",
                      yaml_data, "dedup_scope", Config.dedup_scope)).lower()
    if scope not in DEDUP_SCOPES:
        raise ConfigError(f"dedup scope must be one of {', '.join(DEDUP_SCOPES)}, got {scope!r}")

    level = str(_pick(cli_args.log_level, "ROLLUP_LOG_LEVEL",
                      yaml_data, "log_level", Config.log_level)).upper()
    if level not in LOG_LEVELS:
        raise ConfigError(f"log level must be one of {', '.join(LOG_LEVELS)}, got {level!r}")

    return Config(
        log_file=log_file,
        checkpoint_interval=interval,
        clear_checkpoint=bool(cli_args.clear_checkpoint),
        dedup_scope=scope,
        checkpoint_name=yaml_data.get("checkpoint_name", Config.checkpoint_name),
        report_name=yaml_data.get("report_name", Config.report_name),
        log_level=level,
    )
