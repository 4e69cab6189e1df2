"""Run the browser extractors and ingest what they return.

One batch per source tag, each in its own transaction: a source that fails
to extract is reported and skipped, and a batch that fails to store rolls
back without touching batches already committed.
"""

import sys
from dataclasses import dataclass, field
from typing import Callable, Iterable

from .adapters import EXTRACTORS
from .database import Database, IngestResult
from .errors import ExtractionError
from .link import Link


def browser_of(source: str) -> str:
    """'firefox' for 'firefox:history'."""
    return source.split(':', 1)[0]


def source_enabled(config: dict, source: str) -> bool:
    return config.get('sources', {}).get(browser_of(source), {}).get('enabled', True)


@dataclass
class ScanReport:
    """Outcome of one scan."""
    results: list[IngestResult] = field(default_factory=list)
    failures: dict[str, str] = field(default_factory=dict)   # source -> error
    skipped: list[str] = field(default_factory=list)         # disabled sources
    extracted: dict[str, int] = field(default_factory=dict)  # source -> link count

    @property
    def ok(self) -> bool:
        return not self.failures


def run_scan(
    db: Database,
    config: dict,
    sources: Iterable[str] | None = None,
    prune: bool = True,
    dry_run: bool = False,
    extractors: dict[str, Callable[[dict], list[Link]]] | None = None,
) -> ScanReport:
    """Extract and ingest every requested, enabled source.

    Args:
        db: Open store
        config: Loaded configuration
        sources: Source tags to scan (default: all registered)
        prune: Delete stored links that vanished from their source
        dry_run: Extract and count, but store nothing
        extractors: Override the registry (tests)
    """
    extractors = EXTRACTORS if extractors is None else extractors
    identity = config.get('ingest', {}).get('identity', 'guid')
    report = ScanReport()

    for source in (sources or list(extractors)):
        if source not in extractors:
            raise ValueError(f"unknown source: {source}")
        if not source_enabled(config, source):
            report.skipped.append(source)
            continue

        try:
            links = extractors[source](config)
        except ExtractionError as e:
            print(f"Warning: {e}", file=sys.stderr)
            report.failures[source] = str(e)
            continue

        report.extracted[source] = len(links)
        if dry_run:
            continue
        report.results.append(db.ingest(links, source, prune=prune, identity=identity))

    return report
