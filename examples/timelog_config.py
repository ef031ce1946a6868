"""MCP Timelog Configuration - Python Example

Copy to your data directory as timelog_config.py.

Convention:
- CONFIG dict for static configuration (same structure as TOML)
- Functions named hook_* become lifecycle hooks
"""

import shutil
from pathlib import Path

# =============================================================================
# Static Configuration (same structure as TOML)
# =============================================================================

CONFIG = {
    "app": {
        "name": "shuiTime",
    },
    "directories": {
        "data": "data",
        "backups": "backups",
        "database": "timelog.db",
    },
    "dedup": {
        # "day" treats same text on the same local day as a duplicate;
        # "exact" requires identical timestamps
        "granularity": "day",
        "timezone": "Asia/Shanghai",
    },
    "tags": {
        "top_limit": 10,
    },
    "logging": {
        "level": "WARNING",
        "ops_log": True,
    },
}


# =============================================================================
# Hooks - Called after successful engine operations
# =============================================================================

MIRROR_DIR = Path.home() / "Sync" / "timelog-backups"


def hook_post_export(path):
    """Called with the path of every new backup file."""
    if MIRROR_DIR.is_dir():
        shutil.copy2(path, MIRROR_DIR / path.name)


def hook_post_import(result):
    """Called with the ImportResult of every finished import."""
    if result.skipped_count:
        print(f"{result.skipped_count} records in the backup could not be read")
