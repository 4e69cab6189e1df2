"""SQLite link store.

Schema (see migrations.py):
- links: canonical table, one row per guid
- links_fts: FTS5 trigram mirror of searchable fields
- schema_migrations: applied migration versions

Every write goes through transaction(), and the links_fts mirror is updated
in the same transaction as the canonical row it's derived from. The file
runs in WAL mode so a search can read while a scan is writing.
"""

import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Iterable, Iterator

from . import index
from .config import resolve_db_path
from .errors import StorageError
from .link import Link, LINK_COLUMNS
from .merge import merge_links, resolve
from .migrations import apply_migrations
from .search import search_links, latest_links


UPSERT_SQL = f"""
    INSERT INTO links ({', '.join(LINK_COLUMNS)})
    VALUES ({', '.join('?' for _ in LINK_COLUMNS)})
    ON CONFLICT(guid) DO UPDATE SET
        url = excluded.url,
        title = excluded.title,
        subtitle = excluded.subtitle,
        source = excluded.source,
        timestamp = excluded.timestamp,
        frecency = excluded.frecency,
        origin_frecency = excluded.origin_frecency
"""


@dataclass
class IngestResult:
    """Counts from one ingestion batch."""
    source: str
    inserted: int = 0
    updated: int = 0
    deleted: int = 0
    merged: int = 0

    @property
    def total(self) -> int:
        return self.inserted + self.updated


class Database:
    """SQLite database connection and link operations."""

    def __init__(self, db_path: Path | None = None, busy_timeout_ms: int = 5000):
        """Initialize database.

        Args:
            db_path: Path to local database file
            busy_timeout_ms: How long a writer waits on a locked file
        """
        self.db_path = Path(db_path) if db_path else resolve_db_path({})
        self.busy_timeout_ms = busy_timeout_ms
        self._conn = None
        self._tx_depth = 0

    def connect(self) -> sqlite3.Connection:
        """Get or create database connection; migrates on first open."""
        if self._conn is None:
            try:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
                # Autocommit mode: transactions are explicit (see transaction())
                conn = sqlite3.connect(
                    self.db_path,
                    isolation_level=None,
                    timeout=max(self.busy_timeout_ms, 0) / 1000,
                )
                conn.row_factory = sqlite3.Row
                conn.execute(f"PRAGMA busy_timeout = {int(self.busy_timeout_ms)}")
                conn.execute("PRAGMA journal_mode = WAL")
            except (OSError, sqlite3.Error) as e:
                raise StorageError(f"cannot open {self.db_path}: {e}") from e
            try:
                apply_migrations(conn)
            except Exception:
                conn.close()
                raise
            self._conn = conn
        return self._conn

    def close(self):
        """Close database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None
            self._tx_depth = 0

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, *args):
        self.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run a block in one write transaction.

        Commits on success, rolls back on any exception and re-raises;
        sqlite errors are re-raised as StorageError. Nested calls join the
        outermost transaction.
        """
        conn = self.connect()
        if self._tx_depth:
            self._tx_depth += 1
            try:
                yield conn
            finally:
                self._tx_depth -= 1
            return

        try:
            conn.execute("BEGIN IMMEDIATE")
        except sqlite3.Error as e:
            raise StorageError(f"cannot start transaction: {e}") from e
        self._tx_depth = 1
        try:
            yield conn
        except BaseException as e:
            self._tx_depth = 0
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            if isinstance(e, sqlite3.Error):
                raise StorageError(f"write failed: {e}") from e
            raise
        self._tx_depth = 0
        try:
            conn.execute("COMMIT")
        except sqlite3.Error as e:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise StorageError(f"commit failed: {e}") from e

    @contextmanager
    def reading(self) -> Iterator[sqlite3.Connection]:
        """Connection for a read; sqlite errors become StorageError."""
        conn = self.connect()
        try:
            yield conn
        except sqlite3.Error as e:
            raise StorageError(f"read failed: {e}") from e

    # Link operations

    def _write_link(self, conn: sqlite3.Connection, link: Link) -> bool:
        """Upsert one validated link and its mirror row. True if new."""
        link.validate()
        link = link.with_identity()
        existed = conn.execute(
            "SELECT 1 FROM links WHERE guid = ?", (link.guid,)
        ).fetchone() is not None
        conn.execute(UPSERT_SQL, link.to_row())
        index.sync_link(conn, link.guid)
        return not existed

    def _remove_link(self, conn: sqlite3.Connection, guid: str) -> bool:
        index.unsync_link(conn, guid)
        cursor = conn.execute("DELETE FROM links WHERE guid = ?", (guid,))
        return cursor.rowcount > 0

    def upsert_link(self, link: Link) -> bool:
        """Insert a link or fully replace the one with the same guid.

        Returns True if the link was new.
        """
        with self.transaction() as conn:
            return self._write_link(conn, link)

    def delete_link(self, guid: str) -> bool:
        """Delete a link and its mirror row.

        Returns True if the link was found and deleted.
        """
        with self.transaction() as conn:
            return self._remove_link(conn, guid)

    def ingest_batch(self, links: Iterable[Link], deletes: Iterable[str] = ()) -> IngestResult:
        """Apply upserts then deletes as one all-or-nothing transaction.

        A record that fails validation aborts the whole batch.
        """
        result = IngestResult(source='')
        with self.transaction() as conn:
            for link in links:
                if self._write_link(conn, link):
                    result.inserted += 1
                else:
                    result.updated += 1
            for guid in deletes:
                if self._remove_link(conn, guid):
                    result.deleted += 1
        return result

    def ingest(
        self,
        links: Iterable[Link],
        source: str,
        prune: bool = False,
        identity: str = 'guid',
    ) -> IngestResult:
        """Ingest one extractor's batch atomically.

        Records without a source tag get `source`. Duplicates within the batch
        are merged, and so is a stored row for the same guid when it came from
        a different source (a bookmark keeps its title when the same page
        shows up in history). With prune=True, stored links from this source
        that aren't in the batch are deleted.
        """
        batch = [link if link.source else replace(link, source=source) for link in links]
        # Validate before merging so a bad record can't be folded into a good one
        for link in batch:
            link.validate()

        resolved = resolve(batch, policy=identity)
        result = IngestResult(source=source, merged=len(batch) - len(resolved))

        with self.transaction() as conn:
            for link in resolved:
                stored = self._get_link(conn, link.guid)
                if stored is not None and stored.source != link.source:
                    link = merge_links(stored, link)
                    result.merged += 1
                if self._write_link(conn, link):
                    result.inserted += 1
                else:
                    result.updated += 1

            if prune:
                keep = {link.guid for link in resolved}
                rows = conn.execute(
                    "SELECT guid FROM links WHERE source = ?", (source,)
                ).fetchall()
                for row in rows:
                    if row['guid'] not in keep and self._remove_link(conn, row['guid']):
                        result.deleted += 1

        return result

    def _get_link(self, conn: sqlite3.Connection, guid: str) -> Link | None:
        row = conn.execute("SELECT * FROM links WHERE guid = ?", (guid,)).fetchone()
        return Link.from_row(row) if row else None

    def get_link(self, guid: str) -> Link | None:
        """Get link by guid."""
        with self.reading() as conn:
            return self._get_link(conn, guid)

    def get_link_by_url(self, url: str) -> Link | None:
        """Most recent link with this url."""
        with self.reading() as conn:
            row = conn.execute(
                "SELECT * FROM links WHERE url = ? ORDER BY timestamp DESC LIMIT 1",
                (url,),
            ).fetchone()
        return Link.from_row(row) if row else None

    def link_exists(self, guid: str) -> bool:
        """Check if link already exists."""
        with self.reading() as conn:
            cursor = conn.execute("SELECT 1 FROM links WHERE guid = ?", (guid,))
            return cursor.fetchone() is not None

    def list_links(self, source: str | None = None, limit: int = 100) -> list[Link]:
        """List links, newest first, with optional source filter."""
        query = "SELECT * FROM links WHERE 1=1"
        params: list[Any] = []

        if source:
            query += " AND source = ?"
            params.append(source)

        query += " ORDER BY timestamp DESC LIMIT ?"
        params.append(limit)

        with self.reading() as conn:
            rows = conn.execute(query, params).fetchall()
        return [Link.from_row(row) for row in rows]

    # Search operations

    def search(self, query: str, limit: int = 50) -> list[Link]:
        """Fuzzy search; see linkcache.search for matching and ordering."""
        with self.reading() as conn:
            return search_links(conn, query, limit)

    def latest_links(self, n: int = 50) -> list[Link]:
        """Most recently active links."""
        with self.reading() as conn:
            return latest_links(conn, n)

    # Index maintenance

    def verify_index(self) -> index.IndexReport:
        """Check links_fts against links."""
        with self.reading() as conn:
            return index.verify(conn)

    def rebuild_index(self) -> int:
        """Rebuild links_fts from links. Returns mirror row count."""
        with self.transaction() as conn:
            return index.rebuild(conn)

    # Stats

    def get_stats(self) -> dict[str, Any]:
        """Get database statistics."""
        with self.reading() as conn:
            total = conn.execute("SELECT COUNT(*) FROM links").fetchone()[0]

            by_source = conn.execute("""
                SELECT source, COUNT(*) as count
                FROM links GROUP BY source
            """).fetchall()

            indexed = conn.execute("SELECT COUNT(*) FROM links_fts").fetchone()[0]

            version = conn.execute(
                "SELECT MAX(version) FROM schema_migrations"
            ).fetchone()[0]

        return {
            'total_links': total,
            'by_source': {row['source']: row['count'] for row in by_source},
            'indexed': indexed,
            'schema_version': version or 0,
        }


def get_database(config: dict | None = None) -> Database:
    """Get a database instance for the configured store."""
    config = config or {}
    storage = config.get('storage', {})
    return Database(
        resolve_db_path(config),
        busy_timeout_ms=storage.get('busy_timeout_ms', 5000),
    )
