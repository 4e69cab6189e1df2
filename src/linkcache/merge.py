"""Dedup and merge of links observed more than once.

A url that is both bookmarked and frequently visited reaches ingestion as two
records. They collapse to one canonical link:

- identity: guid when the source provides one, otherwise the url
  (or always the url, under the "url" policy)
- title/subtitle: the bookmark's, since history carries no folder context;
  between records of the same kind the later one wins
- timestamp: the most recent
- frecency / origin_frecency: the maximum of each, as either browser may
  undercount
"""

from dataclasses import replace
from typing import Iterable

from .link import Link, synthesize_guid

IDENTITY_POLICIES = ('guid', 'url')


def identity_key(link: Link, policy: str = 'guid') -> str:
    """The key two observations must share to be the same link."""
    if policy not in IDENTITY_POLICIES:
        raise ValueError(f"unknown identity policy: {policy!r}")
    if policy == 'guid' and link.guid:
        return f"guid:{link.guid}"
    return f"url:{link.url}"


def _first_non_empty(*values: str) -> str:
    for value in values:
        if value:
            return value
    return ''


def merge_links(earlier: Link, later: Link) -> Link:
    """Merge two observations of the same link into a new record."""
    if earlier.is_bookmark and not later.is_bookmark:
        winner, other = earlier, later
    else:
        winner, other = later, earlier

    return replace(
        winner,
        guid=winner.guid or other.guid,
        title=_first_non_empty(winner.title, other.title),
        subtitle=_first_non_empty(winner.subtitle, other.subtitle),
        timestamp=max(winner.timestamp, other.timestamp),
        frecency=max(winner.frecency or 0, other.frecency or 0),
        origin_frecency=max(winner.origin_frecency or 0, other.origin_frecency or 0),
        score=None,
    )


def resolve(links: Iterable[Link], policy: str = 'guid') -> list[Link]:
    """Collapse a batch to one record per identity, in first-seen order.

    Under the "url" policy the guid is derived from the url, so the store's
    primary key follows the url too.
    """
    resolved: dict[str, Link] = {}
    for link in links:
        key = identity_key(link, policy)
        if key in resolved:
            resolved[key] = merge_links(resolved[key], link)
        else:
            resolved[key] = replace(link)

    out = []
    for link in resolved.values():
        if policy == 'url':
            link.guid = synthesize_guid(link.url)
        out.append(link.with_identity())
    return out
