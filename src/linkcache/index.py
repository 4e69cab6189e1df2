"""Write-through maintenance of the links_fts trigram mirror.

links_fts is a standalone FTS5 table, so rows are removed with a plain
DELETE (not the INSERT ... VALUES('delete', ...) form used for external
content tables). Every function takes the caller's connection and runs
inside the caller's transaction; none of them commit.
"""

import sqlite3
from dataclasses import dataclass, field


MIRROR_INSERT = """
    INSERT INTO links_fts (guid, url, title, subtitle, source)
    SELECT guid, url, title, subtitle, source
    FROM links
"""


def sync_link(conn: sqlite3.Connection, guid: str) -> None:
    """Re-derive the mirror row for guid from its canonical row.

    Clears every existing mirror row for the guid first, so an insert over a
    leftover row or an update never leaves two rows or a mix of old and new
    values.
    """
    conn.execute("DELETE FROM links_fts WHERE guid = ?", (guid,))
    conn.execute(MIRROR_INSERT + " WHERE guid = ?", (guid,))


def unsync_link(conn: sqlite3.Connection, guid: str) -> None:
    """Remove the mirror row(s) for guid. Call before deleting the link."""
    conn.execute("DELETE FROM links_fts WHERE guid = ?", (guid,))


def rebuild(conn: sqlite3.Connection) -> int:
    """Drop every mirror row and repopulate from links. Returns row count."""
    conn.execute("DELETE FROM links_fts")
    conn.execute(MIRROR_INSERT)
    return conn.execute("SELECT COUNT(*) FROM links_fts").fetchone()[0]


# Consistency checks

def duplicate_guids(conn: sqlite3.Connection) -> list[str]:
    """Guids with more than one mirror row."""
    rows = conn.execute("""
        SELECT guid, COUNT(*) AS n
        FROM links_fts
        GROUP BY guid
        HAVING COUNT(*) > 1
    """).fetchall()
    return [row[0] for row in rows]


def orphaned_guids(conn: sqlite3.Connection) -> list[str]:
    """Mirror rows whose canonical link is gone."""
    rows = conn.execute("""
        SELECT DISTINCT guid FROM links_fts
        WHERE guid NOT IN (SELECT guid FROM links)
    """).fetchall()
    return [row[0] for row in rows]


def missing_guids(conn: sqlite3.Connection) -> list[str]:
    """Canonical links with no mirror row."""
    rows = conn.execute("""
        SELECT guid FROM links
        WHERE guid NOT IN (SELECT guid FROM links_fts)
    """).fetchall()
    return [row[0] for row in rows]


def stale_guids(conn: sqlite3.Connection) -> list[str]:
    """Links whose mirror row carries different field values."""
    rows = conn.execute("""
        SELECT DISTINCT l.guid
        FROM links l
        JOIN links_fts f ON f.guid = l.guid
        WHERE f.url IS NOT l.url
           OR f.title IS NOT l.title
           OR f.subtitle IS NOT l.subtitle
           OR f.source IS NOT l.source
    """).fetchall()
    return [row[0] for row in rows]


@dataclass
class IndexReport:
    """Result of verify(): counts plus the offending guids."""
    links: int
    mirror_rows: int
    duplicates: list[str] = field(default_factory=list)
    orphaned: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)
    stale: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return (
            not (self.duplicates or self.orphaned or self.missing or self.stale)
            and self.links == self.mirror_rows
        )


def verify(conn: sqlite3.Connection) -> IndexReport:
    """Check that the mirror holds exactly one current row per link."""
    return IndexReport(
        links=conn.execute("SELECT COUNT(*) FROM links").fetchone()[0],
        mirror_rows=conn.execute("SELECT COUNT(*) FROM links_fts").fetchone()[0],
        duplicates=duplicate_guids(conn),
        orphaned=orphaned_guids(conn),
        missing=missing_guids(conn),
        stale=stale_guids(conn),
    )
