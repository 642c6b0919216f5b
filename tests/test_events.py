"""Tests for event dictionary helpers."""

import random

from collab_publish.events import new_event, newest_event, parse_extra_tags, sort_newest_first, tag_value, tag_values, upsert_single_tag
from helpers import ALICE, BOB, make_event


class TestParseExtraTags:
    def test_list_of_string_lists(self):
        assert parse_extra_tags([["t", "nostr"], ["summary", "s"]]) == [["t", "nostr"], ["summary", "s"]]

    def test_json_string(self):
        assert parse_extra_tags('[["t","nostr"]]') == [["t", "nostr"]]

    def test_not_an_array(self):
        assert parse_extra_tags("not-an-array") == []
        assert parse_extra_tags({"t": "nostr"}) == []
        assert parse_extra_tags(None) == []

    def test_malformed_entries_dropped(self):
        raw = [["t", "ok"], "bare", [], ["n", 3], [["nested"]], ["x"]]
        assert parse_extra_tags(raw) == [["t", "ok"], ["x"]]


class TestNewestEvent:
    def test_empty(self):
        assert newest_event([]) is None

    def test_max_created_at_regardless_of_order(self):
        events = [make_event(1, ALICE, ts, [], str(ts)) for ts in (100, 300, 200)]
        for _ in range(5):
            random.shuffle(events)
            assert newest_event(events)["created_at"] == 300

    def test_tie_broken_by_lowest_id(self):
        first = make_event(1, ALICE, 100, [], "a")
        second = make_event(1, BOB, 100, [], "b")
        expected = min(first, second, key=lambda event: event["id"])
        assert newest_event([first, second]) is expected
        assert newest_event([second, first]) is expected

    def test_sort_newest_first(self):
        events = [make_event(1, ALICE, ts, []) for ts in (5, 9, 7)]
        assert [event["created_at"] for event in sort_newest_first(events)] == [9, 7, 5]


def test_tag_helpers():
    event = new_event(1, "hi", [["d", "x"], ["p", ALICE], ["p", BOB], ["title", "old"]])
    assert tag_value(event, "d") == "x"
    assert tag_values(event, "p") == [ALICE, BOB]
    upsert_single_tag(event, "title", "new")
    assert tag_values(event, "title") == ["new"]
    assert tag_value(event, "missing") is None
    assert tag_value({"tags": "garbage"}, "d") is None


def test_tag_reads_leave_event_untouched():
    event = {"kind": 1, "tags": "garbage", "content": ""}
    assert tag_value(event, "title") is None
    assert tag_values(event, "p") == []
    assert event["tags"] == "garbage"


def test_tag_reads_skip_non_string_values():
    event = {"kind": 1, "tags": [["title", 5], ["title", "real"], ["p", None]], "content": ""}
    assert tag_value(event, "title") == "real"
    assert tag_values(event, "p") == []
