"""Private replicas of browser databases.

Browsers keep their history databases open and locked, so extractors copy
the file (with its WAL, when there is one) to a temporary directory and
read the copy.
"""

import shutil
import sqlite3
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator


@contextmanager
def open_replica(path: Path) -> Iterator[sqlite3.Connection]:
    """Copy a SQLite file aside and yield a connection to the copy."""
    if not path.exists():
        raise FileNotFoundError(f"{path} not found")

    with tempfile.TemporaryDirectory(prefix='linkcache-') as tmpdir:
        replica = Path(tmpdir) / path.name
        shutil.copy2(path, replica)
        for suffix in ('-wal', '-shm'):
            sidecar = path.with_name(path.name + suffix)
            if sidecar.exists():
                shutil.copy2(sidecar, replica.with_name(replica.name + suffix))

        # The copy is private to us, so a plain read-write open is fine and
        # lets SQLite fold the copied WAL in
        conn = sqlite3.connect(replica)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()
