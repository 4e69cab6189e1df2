"""Arc browser adapter.

Indexes pinned tabs ("bookmarks") from Arc's StorableSidebar.json.

The sidebar file is a list of containers; the useful one holds two flat
arrays, `spaces` and `items`, each mixing id strings with objects:
- spaces: {id, title, ...}
- items with data.tab: a bookmark (savedTitle, savedURL)
- items with data.list or data.itemContainer: a folder. Top-level folders
  have no parentID; their space is data.itemContainer.containerType.spaceItems._0

The subtitle is the chain of folder titles up to the space title,
e.g. "Work / Areas / Alfred".
"""

import json
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from ..errors import ExtractionError
from ..link import Link, from_unix_seconds

SOURCE = 'arc:bookmark'

# Arc stores Core Foundation absolute time: seconds since 2001-01-01 UTC
APPLE_EPOCH_OFFSET_SEC = 978_307_200


@dataclass
class SidebarNode:
    """A space, folder or bookmark from the sidebar."""
    node_id: str
    kind: str                     # space, folder or bookmark
    title: str
    parent_id: str | None
    url: str = ''
    created_at: float | None = None

    @property
    def guid(self) -> str:
        return f"arc-{self.node_id}"

    @property
    def timestamp(self) -> datetime:
        if not self.created_at:
            return datetime.fromtimestamp(0, tz=timezone.utc)
        return from_unix_seconds(self.created_at + APPLE_EPOCH_OFFSET_SEC)


def _folder_parent(item: dict) -> str | None:
    if item.get('parentID'):
        return item['parentID']
    container_type = (item.get('data', {}).get('itemContainer') or {}).get('containerType') or {}
    space_items = container_type.get('spaceItems') or {}
    return space_items.get('_0')


def parse_item(item: dict) -> SidebarNode | None:
    """Classify one entry of the items array. Id strings return None."""
    if not isinstance(item, dict) or 'id' not in item:
        return None
    data = item.get('data') or {}

    if 'tab' in data:
        tab = data.get('tab') or {}
        return SidebarNode(
            node_id=item['id'],
            kind='bookmark',
            # Human-set title first, then the title saved from the page
            title=item.get('title') or tab.get('savedTitle') or '',
            parent_id=item.get('parentID'),
            url=(tab.get('savedURL') or '').strip(),
            created_at=item.get('createdAt'),
        )
    if 'list' in data or 'itemContainer' in data:
        return SidebarNode(
            node_id=item['id'],
            kind='folder',
            title=item.get('title') or '',
            parent_id=_folder_parent(item),
            created_at=item.get('createdAt'),
        )
    return None


def build_item_map(state: dict) -> dict[str, SidebarNode]:
    """Index every space, folder and bookmark by id."""
    nodes = {}
    containers = (state.get('sidebar') or {}).get('containers') or []
    for container in containers:
        if not isinstance(container, dict):
            continue
        for space in container.get('spaces') or []:
            if isinstance(space, dict) and 'id' in space:
                nodes[space['id']] = SidebarNode(
                    node_id=space['id'],
                    kind='space',
                    title=space.get('title') or '',
                    parent_id=None,
                )
        for item in container.get('items') or []:
            try:
                node = parse_item(item)
            except (AttributeError, TypeError) as e:
                print(f"Warning: skipping malformed Arc item: {e}", file=sys.stderr)
                continue
            if node is not None:
                nodes[node.node_id] = node
    return nodes


def ancestor_titles(parent_id: str | None, nodes: dict[str, SidebarNode]) -> str:
    """Titles from the space down to parent_id, joined with " / ".

    Stops at a space, a missing id or an id already visited.
    """
    titles = []
    seen = set()
    current = parent_id
    while current and current in nodes and current not in seen:
        seen.add(current)
        node = nodes[current]
        if node.title:
            titles.append(node.title)
        if node.kind == 'space':
            break
        current = node.parent_id
    return ' / '.join(reversed(titles))


def sidebar_links(state: dict) -> list[Link]:
    """One Link per bookmark in a parsed sidebar."""
    nodes = build_item_map(state)
    links = []
    for node in nodes.values():
        if node.kind != 'bookmark':
            continue
        if not node.url:
            continue
        links.append(Link(
            guid=node.guid,
            url=node.url,
            title=node.title,
            subtitle=ancestor_titles(node.parent_id, nodes),
            source=SOURCE,
            timestamp=node.timestamp,
        ))
    return links


def default_profile_dir() -> Path:
    """Directory holding StorableSidebar.json for this platform."""
    home = Path.home()
    if sys.platform == 'darwin':
        return home / 'Library' / 'Application Support' / 'Arc'
    if sys.platform.startswith('win'):
        return home / 'AppData' / 'Local' / 'Arc'
    return home / '.config' / 'arc'


def profile_dir(config: dict) -> Path:
    source_config = config.get('sources', {}).get('arc', {})
    configured = source_config.get('profile_dir')
    return Path(configured).expanduser() if configured else default_profile_dir()


def read_sidebar(path: Path) -> list[Link]:
    """Parse a StorableSidebar.json file."""
    with path.open(encoding='utf-8') as f:
        state = json.load(f)
    return sidebar_links(state)


def extract_bookmarks(config: dict) -> list[Link]:
    """Pinned tabs from the configured Arc profile."""
    try:
        return read_sidebar(profile_dir(config) / 'StorableSidebar.json')
    except (OSError, ValueError, AttributeError) as e:
        raise ExtractionError(SOURCE, str(e)) from e
