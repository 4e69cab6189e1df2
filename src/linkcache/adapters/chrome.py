"""Chrome-family adapter (Chrome, Chromium, Brave, Vivaldi, Edge).

Profile layout:
- Bookmarks: JSON tree under roots.bookmark_bar / other / synced; nodes are
  type "url" or "folder". Root names are left out of the folder path.
- History: SQLite, urls table. Locked while the browser runs, so it is read
  from a replica.

Chromium timestamps are microseconds since 1601-01-01 UTC. Chrome has no
frecency score, so history links carry none.
"""

import json
import sqlite3
import sys
from datetime import datetime
from pathlib import Path
from typing import Iterator

from ..errors import ExtractionError
from ..link import Link, from_unix_seconds
from .replica import open_replica

BOOKMARK_SOURCE = 'chrome:bookmark'
HISTORY_SOURCE = 'chrome:history'

BOOKMARK_ROOTS = ('bookmark_bar', 'other', 'synced')

# Seconds between 1601-01-01 and 1970-01-01
CHROMIUM_EPOCH_OFFSET_SEC = 11_644_473_600

HISTORY_SQL = """
    SELECT url,
           COALESCE(title, '')          AS title,
           COALESCE(last_visit_time, 0) AS last_visit_time
    FROM urls
    WHERE url IS NOT NULL AND TRIM(url) != ''
      AND hidden = 0
    ORDER BY last_visit_time DESC
    LIMIT ?
"""


def chromium_time(value) -> datetime:
    """Datetime from a Chromium timestamp (int or numeric string)."""
    try:
        micros = int(value or 0)
    except (TypeError, ValueError):
        micros = 0
    if micros <= 0:
        return from_unix_seconds(0)
    return from_unix_seconds(micros / 1_000_000 - CHROMIUM_EPOCH_OFFSET_SEC)


def default_profile_dir() -> Path:
    """The "Default" Chrome profile for this platform."""
    home = Path.home()
    if sys.platform == 'darwin':
        return home / 'Library' / 'Application Support' / 'Google' / 'Chrome' / 'Default'
    if sys.platform.startswith('win'):
        return home / 'AppData' / 'Local' / 'Google' / 'Chrome' / 'User Data' / 'Default'
    return home / '.config' / 'google-chrome' / 'Default'


def profile_dir(config: dict) -> Path:
    source_config = config.get('sources', {}).get('chrome', {})
    configured = source_config.get('profile_dir')
    return Path(configured).expanduser() if configured else default_profile_dir()


def walk_bookmarks(node: dict, folders: tuple[str, ...] = ()) -> Iterator[Link]:
    """Yield url nodes below node, with their folder path as subtitle.

    Iterative, so deeply nested trees can't hit the recursion limit.
    """
    stack = [(node, folders)]
    while stack:
        current, path = stack.pop()
        if not isinstance(current, dict):
            continue
        if current.get('type') == 'url':
            url = (current.get('url') or '').strip()
            if not url:
                continue
            yield Link(
                guid=current.get('guid') or '',
                url=url,
                title=current.get('name') or '',
                subtitle=' / '.join(path),
                source=BOOKMARK_SOURCE,
                timestamp=max(
                    chromium_time(current.get('date_added')),
                    chromium_time(current.get('date_last_used')),
                ),
            )
            continue

        children = current.get('children')
        if not isinstance(children, list):
            children = []
        child_path = path
        name = current.get('name') or ''
        if current is not node and name:
            child_path = path + (name,)
        # Reversed so the stack pops children in file order
        for child in reversed(children):
            stack.append((child, child_path))


def read_bookmarks(path: Path) -> list[Link]:
    """Parse a Bookmarks JSON file."""
    with path.open(encoding='utf-8') as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a JSON object, got {type(data).__name__}")

    roots = data.get('roots') or {}
    links = []
    for key in BOOKMARK_ROOTS:
        root = roots.get(key)
        if isinstance(root, dict):
            links.extend(walk_bookmarks(root))
    return links


def read_history(conn: sqlite3.Connection, limit: int = 5000) -> list[Link]:
    """Visited pages from an open History database, newest first."""
    links = []
    for row in conn.execute(HISTORY_SQL, (limit,)):
        links.append(Link(
            url=row['url'].strip(),
            title=row['title'],
            source=HISTORY_SOURCE,
            timestamp=chromium_time(row['last_visit_time']),
        ).with_identity())
    return links


def extract_bookmarks(config: dict) -> list[Link]:
    """Bookmarks from the configured Chrome profile."""
    try:
        return read_bookmarks(profile_dir(config) / 'Bookmarks')
    except (OSError, ValueError, AttributeError, TypeError) as e:
        raise ExtractionError(BOOKMARK_SOURCE, str(e)) from e


def extract_history(config: dict) -> list[Link]:
    """History from the configured Chrome profile."""
    limit = config.get('sources', {}).get('chrome', {}).get('history_limit', 5000)
    try:
        with open_replica(profile_dir(config) / 'History') as conn:
            return read_history(conn, limit)
    except (OSError, sqlite3.Error) as e:
        raise ExtractionError(HISTORY_SOURCE, str(e)) from e
