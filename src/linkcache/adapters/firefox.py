"""Firefox adapter.

Reads bookmarks and history from places.sqlite in the default profile.

- Profile: profiles.ini, the Install* section's Default= path (the profile
  the current install launches), falling back to the profile marked Default=1
- Bookmarks: moz_bookmarks type 1 joined to moz_places/moz_origins. Folder
  paths are rebuilt by walking each bookmark's parent chain up to the
  built-in roots (menu, toolbar, unfiled, mobile); root names are left out,
  so a bookmark in Toolbar > Work > Tools gets "Work / Tools".
- History: moz_places above a frecency threshold, highest frecency first.

Firefox times are microseconds since the Unix epoch.
"""

import configparser
import sqlite3
import sys
from dataclasses import dataclass
from pathlib import Path

from ..errors import ExtractionError
from ..link import Link, from_unix_seconds
from .replica import open_replica

BOOKMARK_SOURCE = 'firefox:bookmark'
HISTORY_SOURCE = 'firefox:history'

ROOT_GUIDS = {
    'root________',
    'menu________',
    'toolbar_____',
    'tags________',
    'unfiled_____',
    'mobile______',
}
TAGS_GUID = 'tags________'

BOOKMARKS_SQL = """
    SELECT b.id,
           b.guid,
           b.parent,
           b.title                              AS bookmark_title,
           p.title                              AS page_title,
           p.url,
           COALESCE(p.last_visit_date, 0)       AS last_visit,
           COALESCE(b.lastModified, 0)          AS last_modified,
           COALESCE(p.frecency, 0)              AS frecency,
           COALESCE(o.frecency, 0)              AS origin_frecency
    FROM moz_bookmarks b
             LEFT JOIN moz_places p ON b.fk = p.id
             LEFT JOIN moz_origins o ON o.id = p.origin_id
    WHERE b.type = 1
    ORDER BY b.id
"""

FOLDERS_SQL = """
    SELECT id, parent, guid, COALESCE(title, '') AS title
    FROM moz_bookmarks
    WHERE type = 2
"""

# Pages visited often enough to be worth searching, plus pages on sites
# visited often; Google result pages are noise.
HISTORY_SQL = """
    SELECT p.guid,
           p.url,
           COALESCE(p.title, '')                AS title,
           COALESCE(p.last_visit_date, 0)       AS last_visit,
           COALESCE(p.frecency, 0)              AS frecency,
           COALESCE(o.frecency, 0)              AS origin_frecency
    FROM moz_places p
             LEFT JOIN moz_origins o ON o.id = p.origin_id
    WHERE ((p.frecency >= 500)
        OR (p.frecency >= 100 AND o.frecency >= 1000))
      AND p.url NOT LIKE 'https://www.google.com/search%'
    ORDER BY p.frecency DESC
    LIMIT ?
"""


@dataclass
class Folder:
    id: int
    parent: int
    guid: str
    title: str

    @property
    def is_root(self) -> bool:
        return self.guid in ROOT_GUIDS


def default_config_dir() -> Path:
    """Directory holding profiles.ini for this platform."""
    home = Path.home()
    if sys.platform == 'darwin':
        return home / 'Library' / 'Application Support' / 'Firefox'
    if sys.platform.startswith('win'):
        return home / 'AppData' / 'Roaming' / 'Mozilla' / 'Firefox'
    return home / '.mozilla' / 'firefox'


def find_default_profile(config_dir: Path) -> Path | None:
    """Resolve the default profile directory from profiles.ini."""
    ini_path = config_dir / 'profiles.ini'
    if not ini_path.exists():
        return None

    parser = configparser.ConfigParser(interpolation=None)
    parser.read(ini_path)

    for section in parser.sections():
        if section.startswith('Install') and parser.has_option(section, 'Default'):
            return config_dir / parser.get(section, 'Default')

    for section in parser.sections():
        if not section.startswith('Profile'):
            continue
        if parser.get(section, 'Default', fallback='0') == '1':
            path = parser.get(section, 'Path')
            if parser.get(section, 'IsRelative', fallback='1') == '1':
                return config_dir / path
            return Path(path)
    return None


def profile_dir(config: dict) -> Path:
    """Configured profile, or the default one."""
    source_config = config.get('sources', {}).get('firefox', {})
    configured = source_config.get('profile_dir')
    if configured:
        return Path(configured).expanduser()
    found = find_default_profile(default_config_dir())
    if found is None:
        raise FileNotFoundError(f"no Firefox profile found in {default_config_dir()}")
    return found


def folder_path(parent_id: int, folders: dict[int, Folder]) -> str:
    """Folder titles from the top-level folder down to parent_id.

    Walks parent links upward; stops at a built-in root, an unknown id, or a
    folder already visited (corrupt trees can contain cycles).
    """
    titles = []
    seen = set()
    current = parent_id
    while current in folders and current not in seen:
        seen.add(current)
        folder = folders[current]
        if folder.is_root:
            break
        if folder.title:
            titles.append(folder.title)
        current = folder.parent
    return ' / '.join(reversed(titles))


def _under_tags(parent_id: int, folders: dict[int, Folder]) -> bool:
    seen = set()
    current = parent_id
    while current in folders and current not in seen:
        seen.add(current)
        if folders[current].guid == TAGS_GUID:
            return True
        current = folders[current].parent
    return False


def _micros_to_datetime(micros: int):
    return from_unix_seconds(micros / 1_000_000 if micros else 0)


def read_bookmarks(conn: sqlite3.Connection) -> list[Link]:
    """Bookmarks from an open places database."""
    folders = {
        row['id']: Folder(row['id'], row['parent'], row['guid'] or '', row['title'])
        for row in conn.execute(FOLDERS_SQL)
    }

    links = []
    for row in conn.execute(BOOKMARKS_SQL):
        url = (row['url'] or '').strip()
        # place: urls are saved searches/smart folders, not pages
        if not url or url.startswith('place:'):
            continue
        if _under_tags(row['parent'], folders):
            continue
        links.append(Link(
            guid=row['guid'] or '',
            url=url,
            title=row['bookmark_title'] or row['page_title'] or '',
            subtitle=folder_path(row['parent'], folders),
            source=BOOKMARK_SOURCE,
            timestamp=_micros_to_datetime(max(row['last_visit'], row['last_modified'])),
            frecency=row['frecency'],
            origin_frecency=row['origin_frecency'],
        ))
    return links


def read_history(conn: sqlite3.Connection, limit: int = 5000) -> list[Link]:
    """Frequently visited pages from an open places database."""
    links = []
    for row in conn.execute(HISTORY_SQL, (limit,)):
        url = (row['url'] or '').strip()
        if not url:
            continue
        links.append(Link(
            guid=row['guid'] or '',
            url=url,
            title=row['title'],
            source=HISTORY_SOURCE,
            timestamp=_micros_to_datetime(row['last_visit']),
            frecency=row['frecency'],
            origin_frecency=row['origin_frecency'],
        ))
    return links


def extract_bookmarks(config: dict) -> list[Link]:
    """Bookmarks from the configured Firefox profile."""
    try:
        with open_replica(profile_dir(config) / 'places.sqlite') as conn:
            return read_bookmarks(conn)
    except (OSError, sqlite3.Error, configparser.Error) as e:
        raise ExtractionError(BOOKMARK_SOURCE, str(e)) from e


def extract_history(config: dict) -> list[Link]:
    """History from the configured Firefox profile."""
    limit = config.get('sources', {}).get('firefox', {}).get('history_limit', 5000)
    try:
        with open_replica(profile_dir(config) / 'places.sqlite') as conn:
            return read_history(conn, limit)
    except (OSError, sqlite3.Error, configparser.Error) as e:
        raise ExtractionError(HISTORY_SOURCE, str(e)) from e
