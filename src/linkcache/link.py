"""The Link record shared by extractors, the store and search."""

import hashlib
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone

from .errors import InvalidLinkError

BOOKMARK = 'bookmark'
HISTORY = 'history'

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def synthesize_guid(url: str) -> str:
    """Deterministic guid for sources that don't provide one."""
    digest = hashlib.sha1(url.encode('utf-8')).hexdigest()
    return f"url:{digest[:16]}"


def from_unix_seconds(seconds: float | int | None) -> datetime:
    """UTC datetime from epoch seconds.

    Missing, zero or out-of-range values (corrupt browser rows) map to the
    epoch.
    """
    if not seconds:
        return EPOCH
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return EPOCH


def to_utc(dt: datetime) -> datetime:
    """Normalize to aware UTC. Naive datetimes are taken as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_timestamp(dt: datetime) -> str:
    """Fixed-width ISO text so that string order is time order."""
    return to_utc(dt).strftime('%Y-%m-%dT%H:%M:%S.%fZ')


def parse_timestamp(value: str | None) -> datetime:
    """Parse a stored timestamp; tolerates other ISO forms."""
    if not value:
        return EPOCH
    try:
        return to_utc(datetime.fromisoformat(value.replace('Z', '+00:00')))
    except (ValueError, TypeError):
        return EPOCH


@dataclass
class Link:
    """One bookmark or history entry, normalized.

    The same url may appear under several guids (a bookmark and the page it
    points to, for instance); the merge policy decides whether they collapse.
    """
    url: str
    title: str = ''
    guid: str = ''
    subtitle: str = ''                # folder path for bookmarks
    source: str = ''                  # e.g. "firefox:bookmark"
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    frecency: int = 0
    origin_frecency: int = 0
    score: float | None = None        # bm25 rank, search results only

    def __post_init__(self):
        self.timestamp = to_utc(self.timestamp)

    @property
    def kind(self) -> str:
        """'bookmark', 'history' or '' taken from the source tag."""
        tag = self.source.rsplit(':', 1)[-1].lower()
        return tag if tag in (BOOKMARK, HISTORY) else ''

    @property
    def is_bookmark(self) -> bool:
        return self.kind == BOOKMARK

    @property
    def best_frecency(self) -> int:
        return max(self.frecency or 0, self.origin_frecency or 0)

    def validate(self) -> None:
        """Raise InvalidLinkError when the record can't be stored."""
        if not self.url or not self.url.strip():
            raise InvalidLinkError(f"link {self.guid or '<no guid>'} has an empty url")

    def with_identity(self) -> 'Link':
        """This link, or a copy with a synthesized guid when the source gave none."""
        if self.guid:
            return self
        return replace(self, guid=synthesize_guid(self.url))

    def to_row(self) -> tuple:
        """Column values in links-table order."""
        return (
            self.guid,
            self.url,
            self.title or '',
            self.subtitle or '',
            self.source or '',
            format_timestamp(self.timestamp),
            int(self.frecency or 0),
            int(self.origin_frecency or 0),
        )

    def to_dict(self) -> dict:
        """JSON-friendly dict (used by `linkcache search --json`)."""
        data = {
            'guid': self.guid,
            'url': self.url,
            'title': self.title,
            'subtitle': self.subtitle,
            'source': self.source,
            'timestamp': format_timestamp(self.timestamp),
            'frecency': self.frecency,
            'origin_frecency': self.origin_frecency,
        }
        if self.score is not None:
            data['score'] = self.score
        return data

    @classmethod
    def from_row(cls, row) -> 'Link':
        """Build from a sqlite3.Row over the links table."""
        keys = row.keys()
        return cls(
            guid=row['guid'],
            url=row['url'],
            title=row['title'] or '',
            subtitle=row['subtitle'] or '',
            source=row['source'] or '',
            timestamp=parse_timestamp(row['timestamp']),
            frecency=row['frecency'] or 0,
            origin_frecency=row['origin_frecency'] or 0,
            score=row['match_rank'] if 'match_rank' in keys else None,
        )


LINK_COLUMNS = (
    'guid', 'url', 'title', 'subtitle', 'source',
    'timestamp', 'frecency', 'origin_frecency',
)
