"""Tests for the linkcache CLI."""

import json

import pytest
import yaml
from click.testing import CliRunner

from linkcache.cli import main
from linkcache.database import Database
from linkcache.link import Link


@pytest.fixture
def home(tmp_path):
    """Data directory with a populated store."""
    with Database(tmp_path / 'linkcache.sqlite') as db:
        db.ingest([
            Link(guid='g1', url='https://code.visualstudio.com', title='Visual Studio Code',
                 subtitle='Work / Tools', frecency=900),
            Link(guid='g2', url='https://docs.python.org', title='Python docs', frecency=100),
        ], 'firefox:bookmark')
    return tmp_path


@pytest.fixture
def runner(home):
    return CliRunner(env={'LINKCACHE_HOME': str(home)})


class TestSearch:
    """linkcache search"""

    # When a query matches, results should be listed with their urls
    def test_search(self, runner):
        result = runner.invoke(main, ['search', 'vis', 'stud'])

        assert result.exit_code == 0
        assert '1 results' in result.output
        assert 'https://code.visualstudio.com' in result.output
        assert 'Work / Tools' in result.output

    # When --json is given, results should be machine-readable
    def test_search_json(self, runner):
        result = runner.invoke(main, ['search', 'python', '--json'])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert [d['guid'] for d in data] == ['g2']
        assert 'score' in data[0]

    # When nothing matches, the user should be told
    def test_no_results(self, runner):
        result = runner.invoke(main, ['search', 'zzqqxxwwvv'])

        assert result.exit_code == 0
        assert 'No results found.' in result.output

    # When a query contains FTS5 syntax, search should not error
    def test_search_punctuation(self, runner):
        result = runner.invoke(main, ['search', 'foo-bar', '"unbalanced', 'NOT'])

        assert result.exit_code == 0

    # When --limit is given, no more results should be shown
    def test_limit(self, runner):
        result = runner.invoke(main, ['search', 'https', '-n', '1', '--json'])

        assert len(json.loads(result.output)) == 1

    # When no query is given, click should reject the call
    def test_query_required(self, runner):
        result = runner.invoke(main, ['search'])

        assert result.exit_code != 0


class TestRecentAndStatus:
    """linkcache recent / status"""

    # When links exist, recent should list them
    def test_recent(self, runner):
        result = runner.invoke(main, ['recent', '-n', '5'])

        assert result.exit_code == 0
        assert 'Visual Studio Code' in result.output
        assert 'Python docs' in result.output

    # When the store is empty, recent should suggest a scan
    def test_recent_empty(self, tmp_path):
        runner = CliRunner(env={'LINKCACHE_HOME': str(tmp_path)})

        result = runner.invoke(main, ['recent'])

        assert result.exit_code == 0
        assert 'linkcache scan' in result.output

    # When status runs, it should show counts per source
    def test_status(self, runner):
        result = runner.invoke(main, ['status'])

        assert result.exit_code == 0
        assert 'Links: 2' in result.output
        assert 'firefox:bookmark: 2' in result.output
        assert 'Schema version: 6' in result.output

    # When --db is given, that store should be used instead
    def test_db_option(self, runner, tmp_path):
        other = tmp_path / 'other' / 'links.sqlite'

        result = runner.invoke(main, ['--db', str(other), 'status'])

        assert result.exit_code == 0
        assert 'Links: 0' in result.output
        assert other.exists()


class TestIndexCommands:
    """linkcache verify-index / rebuild-index"""

    # When the index is in sync, verify should succeed
    def test_verify_ok(self, runner):
        result = runner.invoke(main, ['verify-index'])

        assert result.exit_code == 0
        assert 'in sync' in result.output

    # When the index is damaged, verify should fail and rebuild should fix it
    def test_verify_then_rebuild(self, runner, home):
        with Database(home / 'linkcache.sqlite') as db:
            db.connect().execute("DELETE FROM links_fts WHERE guid = 'g1'")

        result = runner.invoke(main, ['verify-index'])
        assert result.exit_code == 1
        assert 'g1' in result.output

        result = runner.invoke(main, ['rebuild-index'])
        assert result.exit_code == 0
        assert 'rebuilt with 2 entries' in result.output

        assert runner.invoke(main, ['verify-index']).exit_code == 0


class TestRemove:
    """linkcache remove"""

    # When the guid exists, it should be removed and no longer searchable
    def test_remove(self, runner):
        result = runner.invoke(main, ['remove', 'g1'])

        assert result.exit_code == 0
        assert runner.invoke(main, ['search', 'visual']).output.strip() == 'No results found.'

    # When the guid is unknown, remove should fail
    def test_remove_unknown(self, runner):
        result = runner.invoke(main, ['remove', 'nope'])

        assert result.exit_code == 1
        assert 'Link not found' in result.output


class TestScan:
    """linkcache scan"""

    # When --source is listed in help, the choices should be the source tags
    def test_source_option_in_help(self, runner):
        result = runner.invoke(main, ['scan', '--help'])

        assert result.exit_code == 0
        assert 'arc:bookmark' in result.output
        assert 'firefox:history' in result.output

    # When --source is invalid, should show error with valid choices
    def test_invalid_source(self, runner):
        result = runner.invoke(main, ['scan', '--source', 'invalid'])

        assert result.exit_code != 0
        assert 'Invalid value' in result.output

    # When scanning Arc from a configured profile, its pinned tabs should be indexed
    def test_scan_arc(self, runner, home, tmp_path):
        profile = tmp_path / 'arc-profile'
        profile.mkdir()
        (profile / 'StorableSidebar.json').write_text(json.dumps({
            'sidebar': {'containers': [{'spaces': [{'id': 's1', 'title': 'Home'}], 'items': [
                {'id': 't1', 'title': 'Arc Help', 'parentID': 's1',
                 'data': {'tab': {'savedURL': 'https://arc.example/help'}}},
            ]}]},
        }))
        (home / 'config.yaml').write_text(yaml.dump({'sources': {'arc': {'profile_dir': str(profile)}}}))

        result = runner.invoke(main, ['scan', '--source', 'arc:bookmark'])

        assert result.exit_code == 0
        assert 'arc:bookmark: 1 new' in result.output
        search = runner.invoke(main, ['search', 'arc', 'help', '--json'])
        assert [d['guid'] for d in json.loads(search.output)] == ['arc-t1']

    # When --dry-run is given, nothing should be stored
    def test_scan_dry_run(self, runner, home, tmp_path):
        profile = tmp_path / 'arc-profile'
        profile.mkdir()
        (profile / 'StorableSidebar.json').write_text(json.dumps({'sidebar': {'containers': []}}))
        (home / 'config.yaml').write_text(yaml.dump({'sources': {'arc': {'profile_dir': str(profile)}}}))

        result = runner.invoke(main, ['scan', '--source', 'arc:bookmark', '--dry-run'])

        assert result.exit_code == 0
        assert '[dry-run] arc:bookmark: 0 links' in result.output

    # When a profile is missing, scan should report it and still exit cleanly
    def test_scan_missing_profile(self, runner, home, tmp_path):
        (home / 'config.yaml').write_text(yaml.dump({'sources': {'arc': {'profile_dir': str(tmp_path / 'none')}}}))

        result = runner.invoke(main, ['scan', '--source', 'arc:bookmark'])

        assert result.exit_code == 0
        assert '[failed] arc:bookmark' in result.output
