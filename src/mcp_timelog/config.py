"""Configuration loading for MCP Timelog.

Supports three tiers:
1. Simple config via .toml or .json - most users
2. Python config via .py - power users with hooks
3. Full override via subclassing - rare cases
"""

from __future__ import annotations

import importlib.util
import json
import sys
from dataclasses import dataclass, field
from datetime import timezone, tzinfo
from pathlib import Path
from typing import Any, Callable, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .dedup import GRANULARITIES, GRANULARITY_DAY
from .errors import ConfigError

# Python 3.11+ has tomllib in stdlib; fall back to tomli for older versions
try:
    import tomllib  # Python 3.11+
except ImportError:
    try:
        import tomli as tomllib  # Python <3.11
    except ImportError:  # pragma: no cover
        tomllib = None


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class TimelogConfig:
    """Configuration for a timelog."""

    # Used in backup file names
    app_name: str = "shuiTime"
    project_root: Path = field(default_factory=Path.cwd)

    # Directory structure (relative to project_root)
    data_dir: str = "data"
    backups_dir: str = "backups"
    db_name: str = "timelog.db"

    # Duplicate detection
    dedup_granularity: str = GRANULARITY_DAY
    dedup_timezone: str = "UTC"

    # Tag index
    top_tags_limit: int = 10

    # Logging
    log_level: str = "WARNING"
    ops_log: bool = False

    # Hooks (populated from Python config)
    hooks: dict[str, Callable] = field(default_factory=dict)

    def get_data_path(self) -> Path:
        return self.project_root / self.data_dir

    def get_backups_path(self) -> Path:
        return self.project_root / self.backups_dir

    def get_db_path(self) -> Path:
        return self.get_data_path() / self.db_name

    def get_timezone(self) -> tzinfo:
        """Zone used for day boundaries.

        Raises:
            ConfigError: If the zone name is unknown
        """
        if self.dedup_timezone.upper() == "UTC":
            return timezone.utc
        try:
            return ZoneInfo(self.dedup_timezone)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ConfigError(f"Unknown timezone: {self.dedup_timezone!r}") from e


def load_toml_config(path: Path) -> dict[str, Any]:
    """Load configuration from TOML file."""
    if tomllib is None:
        raise ImportError("tomli required for TOML config: pip install tomli")
    with open(path, "rb") as f:
        return tomllib.load(f)


def load_json_config(path: Path) -> dict[str, Any]:
    """Load configuration from JSON file."""
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def load_python_config(path: Path) -> tuple[dict[str, Any], dict[str, Callable]]:
    """Load configuration from Python file.

    Returns:
        Tuple of (config_dict, hooks_dict)

    Convention:
        - CONFIG dict or config dict for static configuration
        - Functions named hook_* become hooks (post_export, post_import)
    """
    spec = importlib.util.spec_from_file_location("timelog_config", path)
    if spec is None or spec.loader is None:
        raise ImportError(f"Cannot load Python config from {path}")

    module = importlib.util.module_from_spec(spec)
    sys.modules["timelog_config"] = module
    spec.loader.exec_module(module)

    config_dict = {}
    if hasattr(module, "CONFIG"):
        config_dict = module.CONFIG
    elif hasattr(module, "config"):
        config_dict = module.config

    hooks = {}
    for name in dir(module):
        if name.startswith("hook_"):
            hooks[name[5:]] = getattr(module, name)

    return config_dict, hooks


def dict_to_config(data: dict[str, Any], project_root: Path) -> TimelogConfig:
    """Convert dictionary to TimelogConfig.

    Raises:
        ConfigError: If a value is out of range
    """
    config = TimelogConfig(project_root=project_root)

    if "app" in data:
        app = data["app"]
        if "name" in app:
            config.app_name = app["name"]

    if "directories" in data:
        dirs = data["directories"]
        if "data" in dirs:
            config.data_dir = dirs["data"]
        if "backups" in dirs:
            config.backups_dir = dirs["backups"]
        if "database" in dirs:
            config.db_name = dirs["database"]

    if "dedup" in data:
        dedup = data["dedup"]
        if "granularity" in dedup:
            if dedup["granularity"] not in GRANULARITIES:
                raise ConfigError(
                    f"dedup.granularity must be one of {GRANULARITIES}, got {dedup['granularity']!r}"
                )
            config.dedup_granularity = dedup["granularity"]
        if "timezone" in dedup:
            config.dedup_timezone = dedup["timezone"]
            config.get_timezone()

    if "tags" in data:
        tags = data["tags"]
        if "top_limit" in tags:
            limit = tags["top_limit"]
            if not isinstance(limit, int) or limit < 1:
                raise ConfigError(f"tags.top_limit must be a positive integer, got {limit!r}")
            config.top_tags_limit = limit

    if "logging" in data:
        log = data["logging"]
        if "level" in log:
            level = str(log["level"]).upper()
            if level not in LOG_LEVELS:
                raise ConfigError(f"logging.level must be one of {LOG_LEVELS}, got {log['level']!r}")
            config.log_level = level
        if "ops_log" in log:
            config.ops_log = bool(log["ops_log"])

    return config


def find_config_file(project_root: Path) -> Optional[Path]:
    """Find configuration file in project root.

    Search order:
    1. timelog_config.py (most flexible)
    2. timelog_config.toml
    3. timelog_config.json
    4. .timelog.toml
    5. .timelog.json
    """
    candidates = [
        "timelog_config.py",
        "timelog_config.toml",
        "timelog_config.json",
        ".timelog.toml",
        ".timelog.json",
    ]

    for name in candidates:
        path = project_root / name
        if path.exists():
            return path

    return None


def load_config(project_root: Path, config_path: Optional[Path] = None) -> TimelogConfig:
    """Load timelog configuration.

    Args:
        project_root: Root directory holding data and backups
        config_path: Optional explicit path to config file

    Returns:
        TimelogConfig instance
    """
    if config_path is None:
        config_path = find_config_file(project_root)

    if config_path is None:
        return TimelogConfig(project_root=project_root)

    suffix = config_path.suffix.lower()

    if suffix == ".py":
        config_dict, hooks = load_python_config(config_path)
        config = dict_to_config(config_dict, project_root)
        config.hooks = hooks
        return config

    elif suffix == ".toml":
        return dict_to_config(load_toml_config(config_path), project_root)

    elif suffix == ".json":
        return dict_to_config(load_json_config(config_path), project_root)

    else:
        raise ConfigError(f"Unsupported config file type: {suffix}")
