"""Tests for dedup and merge of repeated link observations."""

from datetime import datetime, timezone

import pytest

from linkcache.link import Link, synthesize_guid
from linkcache.merge import identity_key, merge_links, resolve


def at(day):
    return datetime(2024, 1, day, tzinfo=timezone.utc)


class TestIdentityKey:
    """identity_key() under both policies."""

    # When a guid is present, the guid policy should key on it
    def test_guid_policy(self):
        assert identity_key(Link(guid='g1', url='https://a.example')) == 'guid:g1'

    # When a guid is missing, the guid policy should fall back to the url
    def test_guid_policy_falls_back(self):
        assert identity_key(Link(url='https://a.example')) == 'url:https://a.example'

    # When the url policy is used, the guid should be ignored
    def test_url_policy(self):
        link = Link(guid='g1', url='https://a.example')
        assert identity_key(link, 'url') == 'url:https://a.example'

    # When the policy is unknown, it should be rejected
    def test_unknown_policy(self):
        with pytest.raises(ValueError):
            identity_key(Link(url='https://a.example'), 'title')


class TestMergeLinks:
    """merge_links() precedence rules."""

    # When history meets a bookmark, the bookmark's title and folder should win
    def test_bookmark_beats_history(self):
        history = Link(url='https://a.example', title='Raw Page Title', source='history', timestamp=at(5))
        bookmark = Link(url='https://a.example', title='My Bookmark', subtitle='Work / Tools',
                        source='bookmark', timestamp=at(1))

        merged = merge_links(history, bookmark)

        assert merged.title == 'My Bookmark'
        assert merged.subtitle == 'Work / Tools'
        assert merged.source == 'bookmark'
        assert merged.timestamp == at(5)

    # When the bookmark came first, it should still win over later history
    def test_bookmark_first(self):
        bookmark = Link(url='https://a.example', title='My Bookmark', source='firefox:bookmark')
        history = Link(url='https://a.example', title='Raw', source='firefox:history')

        assert merge_links(bookmark, history).title == 'My Bookmark'

    # When both records are the same kind, the later one should win
    def test_later_wins_same_kind(self):
        first = Link(url='https://a.example', title='First', source='chrome:history')
        second = Link(url='https://a.example', title='Second', source='chrome:history')

        assert merge_links(first, second).title == 'Second'

    # When the winner has no title, the other record's title should fill in
    def test_title_fallback(self):
        bookmark = Link(url='https://a.example', title='', source='bookmark')
        history = Link(url='https://a.example', title='Page Title', source='history')

        assert merge_links(history, bookmark).title == 'Page Title'

    # When frecencies differ, each should take the maximum
    def test_frecency_max(self):
        a = Link(url='https://a.example', frecency=100, origin_frecency=5000, source='bookmark')
        b = Link(url='https://a.example', frecency=900, origin_frecency=10, source='history')

        merged = merge_links(a, b)

        assert merged.frecency == 900
        assert merged.origin_frecency == 5000

    # When merging, the inputs should be left untouched
    def test_inputs_unchanged(self):
        a = Link(url='https://a.example', title='A', source='history')
        b = Link(url='https://a.example', title='B', source='bookmark')

        merge_links(a, b)

        assert a.title == 'A'
        assert b.title == 'B'


class TestResolve:
    """resolve() over a batch."""

    # When records share a url and lack guids, they should collapse to one
    def test_collapse_by_url(self):
        batch = [
            Link(url='https://a.example', title='Raw Page Title', source='history'),
            Link(url='https://a.example', title='My Bookmark', subtitle='Work / Tools', source='bookmark'),
        ]

        resolved = resolve(batch)

        assert len(resolved) == 1
        assert resolved[0].title == 'My Bookmark'
        assert resolved[0].guid == synthesize_guid('https://a.example')

    # When records carry different guids for one url, the guid policy should keep both
    def test_guid_policy_keeps_distinct_guids(self):
        batch = [
            Link(guid='a', url='https://a.example'),
            Link(guid='b', url='https://a.example'),
        ]

        assert [l.guid for l in resolve(batch)] == ['a', 'b']

    # When the url policy is used, distinct guids for one url should collapse
    def test_url_policy_collapses(self):
        batch = [
            Link(guid='a', url='https://a.example'),
            Link(guid='b', url='https://a.example'),
        ]

        resolved = resolve(batch, policy='url')

        assert len(resolved) == 1
        assert resolved[0].guid == synthesize_guid('https://a.example')

    # When resolving, first-seen order should be kept
    def test_order_preserved(self):
        batch = [
            Link(url='https://c.example'),
            Link(url='https://a.example'),
            Link(url='https://c.example'),
            Link(url='https://b.example'),
        ]

        assert [l.url for l in resolve(batch)] == [
            'https://c.example', 'https://a.example', 'https://b.example',
        ]
