#!/usr/bin/env python3
"""
Configuration for decompgit.

The configuration file lives at the root of the state directory, next
to ./repository and ./decompilationWorkArea. Re-reading it and running
again is the only way the repository changes.
"""

import os
import json
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import logging
import sys

import yaml

from .exit_codes import ConfigurationError
from .domain.version import TargetPolicy
from .infra.manifest_client import DEFAULT_MANIFEST_URL

logger = logging.getLogger("decompgit")

CONFIG_FILENAMES = ['config.toml', 'config.yaml', 'config.yml', 'config.json']

ENV_PREFIX = "DECOMPGIT_"
VERSION_KEYS = ("min_version", "max_version")

REPOSITORY_DIRNAME = "repository"
WORK_AREA_DIRNAME = "decompilationWorkArea"
CACHE_DIRNAME = ".cache"

CONFIG_TEMPLATE = """\
# decompgit configuration
# Every version released between min_version and max_version (inclusive,
# by release time) becomes one tagged commit in ./repository.

min_version = "{min_version}"
max_version = "{max_version}"
include_snapshots = {include_snapshots}
exclude_april_fools = true   # Skip joke versions released on April 1st
branch = "main"

[commit]
author_name = "decompgit"
author_email = "decompgit@localhost"

[decompiler]
gradle_version = "8.12"
# timeout_seconds = 3600     # Abort a single decompilation after this long
stop_daemon = true

[logging]
level = "INFO"
"""


def configure_logging(level: str = "INFO", fmt: str = "%(levelname)s: %(message)s") -> None:
    """Send log records to stderr, keeping stdout clean for data."""
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format=fmt,
        handlers=[
            logging.StreamHandler(sys.stderr)  # Default to stderr
        ],
        force=True,
    )


def get_state_dir(state_dir: Optional[str] = None) -> Path:
    """Get the state directory.

    Checks in order:
    1. Explicit argument (--state-dir)
    2. DECOMPGIT_STATE_DIR environment variable
    3. Current working directory
    """
    if state_dir:
        return Path(state_dir).expanduser().resolve()
    if 'DECOMPGIT_STATE_DIR' in os.environ:
        return Path(os.environ['DECOMPGIT_STATE_DIR']).expanduser().resolve()
    return Path.cwd().resolve()


def get_config_path(state_dir: Path) -> Optional[Path]:
    """Return the first existing config file in the state directory."""
    for filename in CONFIG_FILENAMES:
        path = Path(state_dir) / filename
        if path.exists():
            return path
    return None


def get_default_config() -> Dict[str, Any]:
    """Get default configuration."""
    return {
        "min_version": None,
        "max_version": None,
        "include_snapshots": False,
        "exclude_april_fools": True,
        "branch": "main",
        "commit": {
            "author_name": "decompgit",
            "author_email": "decompgit@localhost",
        },
        "catalog": {
            "manifest_url": DEFAULT_MANIFEST_URL,
            "timeout_seconds": 30,
        },
        "decompiler": {
            "gradle_version": "8.12",
            "timeout_seconds": None,
            "stop_daemon": True,
        },
        "logging": {
            "level": "INFO",
            "format": "%(levelname)s: %(message)s",
        },
    }


def read_config_file(config_path: Path) -> Dict[str, Any]:
    """
    Parse a TOML, YAML or JSON config file.

    Raises:
        ConfigurationError: If the file cannot be read or parsed
    """
    try:
        if config_path.suffix.lower() == '.toml':
            with open(config_path, 'rb') as f:
                file_config = tomllib.load(f)
        elif config_path.suffix.lower() in ['.yaml', '.yml']:
            with open(config_path, 'r') as f:
                file_config = yaml.safe_load(f)
        else:
            with open(config_path, 'r') as f:
                file_config = json.load(f)
    except (OSError, tomllib.TOMLDecodeError, yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Error loading config from {config_path}: {e}") from e

    if file_config is None:
        return {}
    if not isinstance(file_config, dict):
        raise ConfigurationError(f"Config file {config_path} must contain a mapping")
    return file_config


def merge_configs(base_config, override_config):
    """
    Recursively merge two configuration dictionaries.

    Args:
        base_config (dict): Base configuration
        override_config (dict): Configuration to merge/override with

    Returns:
        dict: Merged configuration
    """
    merged = base_config.copy()

    for key, value in override_config.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = merge_configs(merged[key], value)
        else:
            merged[key] = value

    return merged


def apply_env_overrides(config, environ=None):
    """
    Apply environment variable overrides to configuration.
    Environment variables follow the pattern: DECOMPGIT_SECTION_KEY
    For example: DECOMPGIT_DECOMPILER_TIMEOUT_SECONDS=3600
    """
    environ = os.environ if environ is None else environ

    for env_key, value in environ.items():
        if not env_key.startswith(ENV_PREFIX) or env_key == 'DECOMPGIT_STATE_DIR':
            continue

        key_parts = env_key[len(ENV_PREFIX):].lower().split('_')

        if value.lower() in ('true', 'yes', 'on'):
            typed_value = True
        elif value.lower() in ('false', 'no', 'off'):
            typed_value = False
        elif value.isdigit():
            typed_value = int(value)
        else:
            typed_value = value

        current_level = config
        i = 0
        while i < len(key_parts):
            # Longest key in current_level that prefixes the remaining parts
            best_match_len = 0
            matched_key = None

            for config_key in current_level.keys():
                config_key_parts = config_key.split('_')
                if key_parts[i:i + len(config_key_parts)] == config_key_parts:
                    if len(config_key_parts) > best_match_len:
                        best_match_len = len(config_key_parts)
                        matched_key = config_key

            if not matched_key:
                break

            if i + best_match_len == len(key_parts):
                current_level[matched_key] = value if matched_key in VERSION_KEYS else typed_value
                break

            if isinstance(current_level[matched_key], dict):
                current_level = current_level[matched_key]
                i += best_match_len
            else:
                break

    return config


def _require_str(config: Dict[str, Any], key: str) -> str:
    value = config.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ConfigurationError(f"Missing required config field: {key}")
    # YAML and TOML turn 1.10 into the float 1.1
    if not isinstance(value, str):
        raise ConfigurationError(
            f"Config field {key} must be a string; quote version numbers, e.g. {key} = \"1.10\""
        )
    return value.strip()


def _require_bool(section: Dict[str, Any], key: str, name: str) -> bool:
    value = section.get(key)
    if not isinstance(value, bool):
        raise ConfigurationError(f"Config field {name} must be true or false")
    return value


def _optional_timeout(section: Dict[str, Any], key: str, name: str) -> Optional[int]:
    value = section.get(key)
    if value in (None, 0, ""):
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ConfigurationError(f"Config field {name} must be a positive number of seconds")
    return value


@dataclass(frozen=True)
class Config:
    """Validated configuration for one run."""

    state_dir: Path
    min_version: str
    max_version: str
    include_snapshots: bool = False
    exclude_april_fools: bool = True
    branch: str = "main"
    author_name: str = "decompgit"
    author_email: str = "decompgit@localhost"
    manifest_url: str = DEFAULT_MANIFEST_URL
    catalog_timeout: int = 30
    gradle_version: str = "8.12"
    decompile_timeout: Optional[int] = None
    stop_daemon: bool = True
    log_level: str = "INFO"
    log_format: str = "%(levelname)s: %(message)s"

    @property
    def policy(self) -> TargetPolicy:
        return TargetPolicy(
            min_version=self.min_version,
            max_version=self.max_version,
            include_snapshots=self.include_snapshots,
            exclude_april_fools=self.exclude_april_fools,
        )

    @property
    def repository_path(self) -> Path:
        return self.state_dir / REPOSITORY_DIRNAME

    @property
    def work_area(self) -> Path:
        return self.state_dir / WORK_AREA_DIRNAME

    @property
    def cache_dir(self) -> Path:
        return self.state_dir / CACHE_DIRNAME

    @classmethod
    def from_dict(cls, state_dir: Path, config: Dict[str, Any]) -> 'Config':
        """
        Validate a merged configuration dictionary.

        Raises:
            ConfigurationError: On missing or mistyped fields
        """
        for section in ('commit', 'catalog', 'decompiler', 'logging'):
            if not isinstance(config.get(section), dict):
                raise ConfigurationError(f"Config section [{section}] must be a table")

        commit = config['commit']
        catalog = config['catalog']
        decompiler = config['decompiler']
        logging_section = config['logging']

        branch = str(config.get('branch') or 'main').strip()
        if not branch or ' ' in branch:
            raise ConfigurationError(f"Invalid branch name: {branch!r}")

        catalog_timeout = _optional_timeout(catalog, 'timeout_seconds', 'catalog.timeout_seconds')

        return cls(
            state_dir=Path(state_dir),
            min_version=_require_str(config, 'min_version'),
            max_version=_require_str(config, 'max_version'),
            include_snapshots=_require_bool(config, 'include_snapshots', 'include_snapshots'),
            exclude_april_fools=_require_bool(config, 'exclude_april_fools', 'exclude_april_fools'),
            branch=branch,
            author_name=str(commit.get('author_name') or 'decompgit'),
            author_email=str(commit.get('author_email') or 'decompgit@localhost'),
            manifest_url=str(catalog.get('manifest_url') or DEFAULT_MANIFEST_URL),
            catalog_timeout=catalog_timeout or 30,
            gradle_version=str(decompiler.get('gradle_version') or '8.12'),
            decompile_timeout=_optional_timeout(decompiler, 'timeout_seconds', 'decompiler.timeout_seconds'),
            stop_daemon=_require_bool(decompiler, 'stop_daemon', 'decompiler.stop_daemon'),
            log_level=str(logging_section.get('level') or 'INFO'),
            log_format=str(logging_section.get('format') or '%(levelname)s: %(message)s'),
        )


def load_config(state_dir: Optional[Path] = None, environ=None) -> Config:
    """
    Load and validate the configuration of a state directory.

    Raises:
        ConfigurationError: If no config file exists or it is invalid
    """
    state_dir = Path(state_dir) if state_dir else get_state_dir()
    config_path = get_config_path(state_dir)
    if config_path is None:
        raise ConfigurationError(
            f"No configuration file found in {state_dir} "
            f"(expected one of: {', '.join(CONFIG_FILENAMES)})"
        )

    config = merge_configs(get_default_config(), read_config_file(config_path))
    config = apply_env_overrides(config, environ)
    logger.debug(f"Loaded configuration from {config_path}")
    return Config.from_dict(state_dir, config)


def write_config_template(
    state_dir: Path,
    min_version: str,
    max_version: str,
    include_snapshots: bool = False,
    force: bool = False,
) -> Path:
    """
    Write a starter config.toml.

    Raises:
        ConfigurationError: If a config file exists and force is not set
    """
    existing = get_config_path(state_dir)
    if existing is not None and not force:
        raise ConfigurationError(f"Configuration already exists: {existing}")

    config_path = Path(state_dir) / 'config.toml'
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(CONFIG_TEMPLATE.format(
        min_version=min_version,
        max_version=max_version,
        include_snapshots='true' if include_snapshots else 'false',
    ))
    logger.info(f"Configuration saved to {config_path}")
    return config_path
