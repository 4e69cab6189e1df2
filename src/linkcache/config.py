"""Configuration loading for linkcache.

Config lives at ~/.linkcache/config.yaml next to the link database.
Set LINKCACHE_HOME to use a different data directory.

If config doesn't exist, creates from template with sensible defaults.
"""

import os
from pathlib import Path
from typing import Any
import yaml


def get_data_dir() -> Path:
    """Get the data directory (~/.linkcache/ unless LINKCACHE_HOME is set)."""
    override = os.environ.get('LINKCACHE_HOME')
    if override:
        return Path(override).expanduser()
    return Path.home() / '.linkcache'


def get_config_path() -> Path:
    """Get the config file path."""
    return get_data_dir() / 'config.yaml'


def get_db_path() -> Path:
    """Get the SQLite database path."""
    return get_data_dir() / 'linkcache.sqlite'


DEFAULT_CONFIG = {
    'storage': {
        'db_path': None,            # None = <data dir>/linkcache.sqlite
        'busy_timeout_ms': 5000,    # wait this long on a locked store before failing
    },
    'sources': {
        'firefox': {
            'enabled': True,
            'profile_dir': None,    # None = default profile from profiles.ini
            'history_limit': 5000,
        },
        'chrome': {
            'enabled': True,
            'profile_dir': None,    # None = platform default "Default" profile
            'history_limit': 5000,
        },
        'arc': {
            'enabled': True,
            'profile_dir': None,    # directory holding StorableSidebar.json
        },
    },
    'ingest': {
        'identity': 'guid',         # 'guid' (guid, else url) or 'url'
        'prune': True,              # drop links that vanished from their source
    },
    'search': {
        'default_limit': 50,
    },
}


def expand_paths(config: dict[str, Any]) -> dict[str, Any]:
    """Recursively expand ~ in path values."""
    result = {}
    for key, value in config.items():
        if isinstance(value, dict):
            result[key] = expand_paths(value)
        elif isinstance(value, list):
            result[key] = [
                str(Path(v).expanduser()) if isinstance(v, str) and '~' in v else v
                for v in value
            ]
        elif isinstance(value, str) and '~' in value:
            result[key] = str(Path(value).expanduser())
        else:
            result[key] = value
    return result


def load_config(config_path: Path | None = None) -> dict[str, Any]:
    """
    Load configuration from ~/.linkcache/config.yaml.

    Creates config directory and file from defaults if they don't exist.
    Expands ~ in all path values.
    """
    config_path = config_path or get_config_path()

    # Ensure directory exists
    config_path.parent.mkdir(parents=True, exist_ok=True)

    if config_path.exists():
        with open(config_path) as f:
            config = yaml.safe_load(f) or {}
    else:
        # Create from defaults
        config = DEFAULT_CONFIG.copy()
        with open(config_path, 'w') as f:
            yaml.dump(config, f, default_flow_style=False, sort_keys=False)

    # Merge with defaults (in case config is missing keys)
    merged = _deep_merge(DEFAULT_CONFIG, config)

    # Expand paths
    return expand_paths(merged)


def resolve_db_path(config: dict[str, Any]) -> Path:
    """Database path from config, falling back to the data directory."""
    configured = config.get('storage', {}).get('db_path')
    if configured:
        return Path(configured).expanduser()
    return get_db_path()


def _deep_merge(base: dict, override: dict) -> dict:
    """Deep merge override into base, preferring override values."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result
