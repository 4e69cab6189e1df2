"""Ranked fuzzy search over the trigram mirror.

The trigram tokenizer matches any substring of three or more characters,
so "vis stud" finds "Visual Studio". User text is never handed to MATCH
as-is: each term is quoted, which turns FTS5 operators and punctuation
(hyphens, colons, parentheses) into literal text. Terms shorter than three
characters can't match through the trigram index and are applied as LIKE
filters instead.

Ordering: bm25 rank first (FTS5 ranks are negative, lower is better), then
the larger of frecency/origin_frecency, then the most recent timestamp.
"""

import sqlite3
from dataclasses import dataclass, field

from .link import Link

MIN_TRIGRAM_TERM = 3

ORDER_BY = """
    ORDER BY match_rank ASC,
             MAX(l.frecency, l.origin_frecency) DESC,
             l.timestamp DESC
"""


def quote_term(term: str) -> str:
    """Quote a term as an FTS5 string literal."""
    return '"' + term.replace('"', '""') + '"'


def escape_like(term: str) -> str:
    """Escape LIKE wildcards; pair with ESCAPE '\\'."""
    return term.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')


@dataclass
class SearchQuery:
    """User text split into a MATCH expression and LIKE filters."""
    text: str
    match_terms: list[str] = field(default_factory=list)
    like_terms: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.match_terms and not self.like_terms

    @property
    def match_expression(self) -> str:
        # Space-separated quoted strings are an implicit AND in FTS5
        return ' '.join(quote_term(t) for t in self.match_terms)


def parse_query(text: str | None) -> SearchQuery:
    """Split user text into trigram-matchable and short terms."""
    query = SearchQuery(text=text or '')
    for term in (text or '').split():
        if len(term) >= MIN_TRIGRAM_TERM:
            query.match_terms.append(term)
        else:
            query.like_terms.append(term)
    return query


def build_match_query(text: str | None) -> str:
    """FTS5 MATCH expression for user text ('' when nothing is matchable)."""
    return parse_query(text).match_expression


def build_sql(query: SearchQuery, limit: int) -> tuple[str, list]:
    """SQL and parameters for a parsed, non-empty query."""
    params: list = []
    if query.match_terms:
        sql = """
            SELECT l.*, bm25(links_fts) AS match_rank
            FROM links_fts
            JOIN links l ON l.guid = links_fts.guid
            WHERE links_fts MATCH ?
        """
        params.append(query.match_expression)
    else:
        sql = """
            SELECT l.*, 0.0 AS match_rank
            FROM links l
            WHERE 1=1
        """

    for term in query.like_terms:
        sql += """
            AND (l.url LIKE ? ESCAPE '\\'
                 OR l.title LIKE ? ESCAPE '\\'
                 OR l.subtitle LIKE ? ESCAPE '\\')
        """
        pattern = f"%{escape_like(term)}%"
        params.extend([pattern, pattern, pattern])

    sql += ORDER_BY + " LIMIT ?"
    params.append(limit)
    return sql, params


def search_links(conn: sqlite3.Connection, text: str | None, limit: int = 50) -> list[Link]:
    """Ranked links matching text. Empty text or limit <= 0 gives []."""
    if limit <= 0:
        return []
    query = parse_query(text)
    if query.is_empty:
        return []

    sql, params = build_sql(query, limit)
    rows = conn.execute(sql, params).fetchall()
    return [Link.from_row(row) for row in rows]


def latest_links(conn: sqlite3.Connection, n: int = 50) -> list[Link]:
    """Most recently active links, newest first."""
    rows = conn.execute("""
        SELECT * FROM links
        ORDER BY timestamp DESC
        LIMIT ?
    """, (n,)).fetchall()
    return [Link.from_row(row) for row in rows]
