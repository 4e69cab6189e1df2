"""Ordered, additive schema migrations for the link store.

Each step runs once, in version order, inside its own transaction along with
the schema_migrations row that records it. Steps are written so that running
them against a store that already has the objects is a no-op. There are no
down-migrations.

Schema after all steps:
- links: canonical table, one row per guid
- links_fts: FTS5 trigram mirror of (url, title, subtitle, source), keyed by
  an unindexed guid column; maintained by linkcache.index, never by triggers
  (older mirrors without the guid column are rebuilt)
- schema_migrations: applied versions
"""

import sqlite3
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from . import index
from .errors import MigrationError


BOOKKEEPING = """
CREATE TABLE IF NOT EXISTS schema_migrations (
    version INTEGER PRIMARY KEY,
    name TEXT NOT NULL,
    applied_at TEXT NOT NULL
)
"""

# guid is stored but not tokenized; it's the join key back to links
LINKS_FTS_DDL = """
CREATE VIRTUAL TABLE IF NOT EXISTS links_fts USING fts5(
    guid UNINDEXED,
    url,
    title,
    subtitle,
    source,
    tokenize='trigram'
)
"""


@dataclass
class Migration:
    """One schema step: plain statements, or a function for conditional DDL."""
    version: int
    name: str
    statements: tuple[str, ...] = ()
    apply: Callable[[sqlite3.Connection], None] | None = None

    def run(self, conn: sqlite3.Connection) -> None:
        for statement in self.statements:
            conn.execute(statement)
        if self.apply is not None:
            self.apply(conn)


def _add_ranking_columns(conn: sqlite3.Connection) -> None:
    """Add frecency columns; ALTER TABLE has no IF NOT EXISTS form."""
    for column in ('frecency', 'origin_frecency'):
        try:
            conn.execute(f"ALTER TABLE links ADD COLUMN {column} INTEGER NOT NULL DEFAULT 0")
        except sqlite3.OperationalError as e:
            if 'duplicate column' not in str(e):
                raise


def _rebuild_legacy_mirror(conn: sqlite3.Connection) -> None:
    """Recreate a links_fts that predates the guid join column.

    Older stores built the mirror without guid, so step 2's IF NOT EXISTS
    kept it and every write-through sync would fail. The table is replaced
    and repopulated from links.
    """
    columns = {row[1] for row in conn.execute("PRAGMA table_info(links_fts)")}
    if 'guid' in columns:
        return
    conn.execute("DROP TABLE IF EXISTS links_fts")
    conn.execute(LINKS_FTS_DDL)
    conn.execute(index.MIRROR_INSERT)


MIGRATIONS = [
    Migration(1, 'create_links', (
        """
        CREATE TABLE IF NOT EXISTS links (
            guid      TEXT PRIMARY KEY,
            url       TEXT NOT NULL,
            title     TEXT NOT NULL DEFAULT '',
            subtitle  TEXT NOT NULL DEFAULT '',   -- folder path for bookmarks
            source    TEXT NOT NULL DEFAULT '',   -- browser:kind
            timestamp TEXT NOT NULL               -- UTC, fixed-width ISO
        )
        """,
    )),
    Migration(2, 'create_links_fts', (LINKS_FTS_DDL,)),
    Migration(3, 'add_ranking_hints', apply=_add_ranking_columns),
    Migration(4, 'index_links', (
        "CREATE INDEX IF NOT EXISTS idx_links_url ON links(url)",
        "CREATE INDEX IF NOT EXISTS idx_links_source ON links(source)",
        "CREATE INDEX IF NOT EXISTS idx_links_timestamp ON links(timestamp)",
    )),
    # Index maintenance is write-through from the store; older stores may
    # still carry trigger-based sync, which would double-write the mirror.
    Migration(5, 'drop_fts_triggers', (
        "DROP TRIGGER IF EXISTS links_insert",
        "DROP TRIGGER IF EXISTS links_upsert",
        "DROP TRIGGER IF EXISTS links_update",
        "DROP TRIGGER IF EXISTS links_delete",
    )),
    Migration(6, 'rebuild_legacy_links_fts', apply=_rebuild_legacy_mirror),
]


def _check_order(migrations: list[Migration]) -> None:
    previous = 0
    for migration in migrations:
        if migration.version <= previous:
            raise MigrationError(
                f"migration {migration.name} has version {migration.version}, "
                f"expected > {previous}",
                version=migration.version,
            )
        previous = migration.version


def applied_versions(conn: sqlite3.Connection) -> set[int]:
    """Versions recorded in schema_migrations."""
    conn.execute(BOOKKEEPING)
    rows = conn.execute("SELECT version FROM schema_migrations").fetchall()
    return {row[0] for row in rows}


def current_version(conn: sqlite3.Connection) -> int:
    """Highest applied version, 0 for a fresh store."""
    return max(applied_versions(conn), default=0)


def pending_migrations(
    conn: sqlite3.Connection,
    migrations: list[Migration] | None = None,
) -> list[Migration]:
    """Steps not yet applied, in version order."""
    migrations = MIGRATIONS if migrations is None else migrations
    done = applied_versions(conn)
    return [m for m in migrations if m.version not in done]


def apply_migrations(
    conn: sqlite3.Connection,
    migrations: list[Migration] | None = None,
) -> list[int]:
    """Apply every pending step. Returns the versions applied.

    The connection must be in autocommit mode (isolation_level=None) so each
    step can own its transaction. Any failure rolls back that step and raises
    MigrationError; later steps are not attempted.
    """
    migrations = MIGRATIONS if migrations is None else migrations
    _check_order(migrations)

    try:
        pending = pending_migrations(conn, migrations)
    except sqlite3.Error as e:
        raise MigrationError(f"cannot read schema version: {e}") from e

    applied = []
    for migration in pending:
        try:
            conn.execute("BEGIN IMMEDIATE")
            migration.run(conn)
            conn.execute(
                "INSERT INTO schema_migrations (version, name, applied_at) VALUES (?, ?, ?)",
                (migration.version, migration.name, datetime.now(timezone.utc).isoformat()),
            )
            conn.execute("COMMIT")
        except Exception as e:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise MigrationError(
                f"migration {migration.version} ({migration.name}) failed: {e}",
                version=migration.version,
            ) from e
        applied.append(migration.version)
    return applied
