"""Tests for config loading."""

from pathlib import Path

import yaml

from linkcache.config import (
    DEFAULT_CONFIG,
    expand_paths,
    get_config_path,
    get_db_path,
    load_config,
    resolve_db_path,
)


def test_expand_paths_home():
    """Expand ~ in paths."""
    config = {'db_path': '~/.linkcache/links.sqlite'}
    expanded = expand_paths(config)
    assert expanded['db_path'] == str(Path.home() / '.linkcache' / 'links.sqlite')


def test_expand_paths_nested():
    """Expand ~ in nested dicts."""
    config = {
        'sources': {
            'firefox': {
                'profile_dir': '~/.mozilla/firefox/abc.default'
            }
        }
    }
    expanded = expand_paths(config)
    assert '~' not in expanded['sources']['firefox']['profile_dir']


def test_expand_paths_leaves_other_values():
    """Non-path values pass through."""
    config = {'enabled': True, 'history_limit': 10, 'profile_dir': None}
    assert expand_paths(config) == config


def test_default_config_has_required_keys():
    """Default config has all required sections."""
    assert set(DEFAULT_CONFIG) == {'storage', 'sources', 'ingest', 'search'}
    assert set(DEFAULT_CONFIG['sources']) == {'firefox', 'chrome', 'arc'}
    assert DEFAULT_CONFIG['ingest']['identity'] == 'guid'
    assert DEFAULT_CONFIG['storage']['busy_timeout_ms'] == 5000


def test_load_config_creates_file(tmp_path):
    """A missing config file is created from defaults."""
    config_path = tmp_path / 'sub' / 'config.yaml'

    config = load_config(config_path)

    assert config_path.exists()
    assert config['search']['default_limit'] == 50
    with open(config_path) as f:
        assert yaml.safe_load(f)['ingest']['prune'] is True


def test_load_config_merges_defaults(tmp_path):
    """Keys missing from the file come from defaults."""
    config_path = tmp_path / 'config.yaml'
    config_path.write_text(yaml.dump({
        'sources': {'chrome': {'enabled': False}},
        'ingest': {'identity': 'url'},
    }))

    config = load_config(config_path)

    assert config['sources']['chrome']['enabled'] is False
    assert config['sources']['chrome']['history_limit'] == 5000
    assert config['sources']['firefox']['enabled'] is True
    assert config['ingest']['identity'] == 'url'
    assert config['ingest']['prune'] is True


def test_load_config_empty_file(tmp_path):
    """An empty file means all defaults."""
    config_path = tmp_path / 'config.yaml'
    config_path.write_text('')

    assert load_config(config_path)['storage']['busy_timeout_ms'] == 5000


def test_data_dir_override(tmp_path, monkeypatch):
    """LINKCACHE_HOME moves config and database."""
    monkeypatch.setenv('LINKCACHE_HOME', str(tmp_path))

    assert get_config_path() == tmp_path / 'config.yaml'
    assert get_db_path() == tmp_path / 'linkcache.sqlite'
    assert resolve_db_path({}) == tmp_path / 'linkcache.sqlite'


def test_resolve_db_path_configured(tmp_path):
    """storage.db_path wins over the data directory."""
    config = {'storage': {'db_path': str(tmp_path / 'custom.sqlite')}}
    assert resolve_db_path(config) == tmp_path / 'custom.sqlite'
