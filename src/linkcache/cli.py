"""Command-line interface for linkcache (browser bookmark and history search)."""

import json
from pathlib import Path

import click

from .adapters import EXTRACTORS
from .config import load_config, get_data_dir
from .database import get_database
from .errors import LinkcacheError
from .link import Link
from .scan import run_scan


def _fail(ctx, error: Exception):
    """Report an error on stderr and exit non-zero."""
    click.echo(f"Error: {error}", err=True)
    ctx.exit(1)


def _echo_link(i: int, link: Link):
    click.echo(f"{i}. {link.title[:70] or link.url[:70]}")
    click.echo(f"   {link.url}")
    details = [link.source, link.timestamp.strftime('%Y-%m-%d')]
    if link.subtitle:
        details.insert(0, link.subtitle)
    click.echo(f"   {' · '.join(details)}")


@click.group()
@click.version_option(package_name="linkcache")
@click.option('--db', 'db_path', type=click.Path(dir_okay=False, path_type=Path),
              help="Use this database instead of the configured one")
@click.pass_context
def main(ctx, db_path):
    """Link cache - fuzzy search over browser bookmarks and history."""
    ctx.ensure_object(dict)
    config = load_config()
    if db_path:
        config['storage']['db_path'] = str(db_path)
    ctx.obj['config'] = config


@main.command()
@click.option('--dry-run', is_flag=True, help="Show what would be indexed without storing")
@click.option('--source', 'source_filter', type=click.Choice(sorted(EXTRACTORS)),
              help="Only scan this source")
@click.option('--no-prune', is_flag=True, help="Keep links that vanished from their source")
@click.pass_context
def scan(ctx, dry_run, source_filter, no_prune):
    """Read browser profiles and index their links."""
    config = ctx.obj['config']
    prune = config['ingest'].get('prune', True) and not no_prune
    sources = [source_filter] if source_filter else None

    click.echo("Scanning browser profiles...")
    try:
        with get_database(config) as db:
            report = run_scan(db, config, sources=sources, prune=prune, dry_run=dry_run)
    except LinkcacheError as e:
        _fail(ctx, e)

    for source in report.skipped:
        click.echo(f"  [disabled] {source}")
    for source, error in report.failures.items():
        click.echo(f"  [failed] {error}", err=True)

    if dry_run:
        for source, count in report.extracted.items():
            click.echo(f"  [dry-run] {source}: {count} links")
        return

    for result in report.results:
        click.echo(
            f"  {result.source}: {result.inserted} new, {result.updated} updated, "
            f"{result.deleted} removed, {result.merged} merged"
        )

    total = sum(r.total for r in report.results)
    click.echo(f"\nIndexed {total} links from {len(report.results)} sources.")


@main.command()
@click.argument('query', nargs=-1, required=True)
@click.option('--limit', '-n', type=int, default=None, help='Number of results')
@click.option('--json', 'as_json', is_flag=True, help='Print results as JSON')
@click.pass_context
def search(ctx, query, limit, as_json):
    """Fuzzy search across indexed links.

    Every word must appear somewhere in the url, title, folder or source;
    partial words match, and punctuation is taken literally.

    Examples:
        linkcache search vis stud
        linkcache search github.com pull
        linkcache search "c++"
    """
    config = ctx.obj['config']
    # Join multiple arguments (allows: linkcache search term1 term2)
    text = ' '.join(query)
    if limit is None:
        limit = config['search'].get('default_limit', 50)

    try:
        with get_database(config) as db:
            results = db.search(text, limit=limit)
    except LinkcacheError as e:
        _fail(ctx, e)

    if as_json:
        click.echo(json.dumps([link.to_dict() for link in results], indent=2))
        return

    if not results:
        click.echo("No results found.")
        return

    click.echo(f"\n{len(results)} results:\n")
    for i, link in enumerate(results, 1):
        _echo_link(i, link)
        click.echo()


@main.command()
@click.option('--limit', '-n', default=20, help='Number of links')
@click.pass_context
def recent(ctx, limit):
    """Show the most recently active links."""
    try:
        with get_database(ctx.obj['config']) as db:
            links = db.latest_links(limit)
    except LinkcacheError as e:
        _fail(ctx, e)

    if not links:
        click.echo("No links indexed yet. Run 'linkcache scan' first.")
        return

    for i, link in enumerate(links, 1):
        _echo_link(i, link)


@main.command()
@click.pass_context
def status(ctx):
    """Show store location and statistics."""
    config = ctx.obj['config']
    db = get_database(config)

    click.echo(f"Data dir: {get_data_dir()}")
    click.echo(f"Database: {db.db_path}")

    try:
        with db:
            stats = db.get_stats()
    except LinkcacheError as e:
        _fail(ctx, e)

    click.echo(f"Schema version: {stats['schema_version']}")
    click.echo(f"\nLinks: {stats['total_links']}")
    for source, count in sorted(stats['by_source'].items()):
        click.echo(f"  {source}: {count}")
    click.echo(f"Indexed: {stats['indexed']}")

    disabled = [name for name, opts in config['sources'].items() if not opts.get('enabled', True)]
    if disabled:
        click.echo(f"\nDisabled sources: {', '.join(sorted(disabled))}")


@main.command('verify-index')
@click.pass_context
def verify_index(ctx):
    """Verify the search index is in sync with the links table.

    Reports mirror rows with no link, links with no mirror row, guids
    indexed more than once and rows whose indexed text is out of date.
    """
    try:
        with get_database(ctx.obj['config']) as db:
            report = db.verify_index()
    except LinkcacheError as e:
        _fail(ctx, e)

    click.echo(f"Links: {report.links}")
    click.echo(f"Index entries: {report.mirror_rows}")

    problems = [
        ("Orphaned index entries (no link)", report.orphaned),
        ("Missing index entries (have link)", report.missing),
        ("Duplicated index entries", report.duplicates),
        ("Stale index entries", report.stale),
    ]
    for label, guids in problems:
        if not guids:
            continue
        click.echo(f"\n{label}: {len(guids)}")
        for guid in guids[:5]:
            click.echo(f"  - {guid}")
        if len(guids) > 5:
            click.echo(f"  ... and {len(guids) - 5} more")

    if report.ok:
        click.echo("\nIndex is in sync with links.")
    else:
        click.echo("\nIndex is out of sync. Run 'linkcache rebuild-index' to fix.", err=True)
        ctx.exit(1)


@main.command('rebuild-index')
@click.pass_context
def rebuild_index(ctx):
    """Rebuild the search index from the links table."""
    try:
        with get_database(ctx.obj['config']) as db:
            count = db.rebuild_index()
    except LinkcacheError as e:
        _fail(ctx, e)

    click.echo(f"Index rebuilt with {count} entries.")


@main.command()
@click.argument('guid')
@click.pass_context
def remove(ctx, guid):
    """Delete one link by guid."""
    try:
        with get_database(ctx.obj['config']) as db:
            deleted = db.delete_link(guid)
    except LinkcacheError as e:
        _fail(ctx, e)

    if not deleted:
        click.echo(f"Link not found: {guid}", err=True)
        ctx.exit(1)
    click.echo(f"Removed {guid}")


if __name__ == '__main__':
    main()
