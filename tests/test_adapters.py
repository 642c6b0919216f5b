"""Tests for kind adapters and the adapter registry."""

import asyncio

import pytest

from collab_publish.adapters import (
    AdapterRegistry,
    ArticleAdapter,
    GenericAdapter,
    VersionedArticleAdapter,
    WikiAdapter,
    kind_label,
)
from collab_publish.events import tag_value, tag_values


class RecordingPublisher:
    def __init__(self):
        self.calls = []

    async def publish_replaceable(self, event):
        self.calls.append(("replaceable", event))
        return event

    async def publish_append(self, event):
        self.calls.append(("append", event))
        return event


class TestRegistry:
    def test_builtins(self):
        registry = AdapterRegistry.with_builtins()
        assert isinstance(registry.lookup(30023), ArticleAdapter)
        assert isinstance(registry.lookup(30818), WikiAdapter)
        assert isinstance(registry.lookup(3023), VersionedArticleAdapter)
        assert registry.kinds() == [3023, 30023, 30818]

    @pytest.mark.parametrize(
        "kind,replaceable",
        [(1, False), (1063, False), (10002, False), (29999, False), (30000, True), (30402, True), (39999, True), (40000, False)],
    )
    def test_fallback_is_generic(self, kind, replaceable):
        adapter = AdapterRegistry.with_builtins().lookup(kind)
        assert isinstance(adapter, GenericAdapter)
        assert adapter.kind == kind
        assert adapter.is_replaceable is replaceable

    def test_last_registration_wins(self):
        class CustomArticle(ArticleAdapter):
            label = "Custom"

        registry = AdapterRegistry.with_builtins()
        custom = CustomArticle()
        registry.register(custom)
        assert registry.lookup(30023) is custom

    def test_runtime_extension(self):
        registry = AdapterRegistry()
        generic = GenericAdapter(1)
        registry.register(generic)
        assert registry.lookup(1) is generic


class TestArticleAdapter:
    def test_build(self):
        event = ArticleAdapter().build("doc-1", {"title": "Hello", "content": "# Body", "tags": [["t", "nostr"]]})
        assert event["kind"] == 30023
        assert event["tags"][0] == ["d", "doc-1"]
        assert tag_value(event, "title") == "Hello"
        assert tag_values(event, "t") == ["nostr"]
        assert event["content"] == "# Body"

    def test_title_from_template_tags(self):
        event = ArticleAdapter().build("doc-1", {"content": "x", "tags": [["title", "From tags"], ["d", "hijack"]]})
        assert tag_values(event, "title") == ["From tags"]
        assert tag_values(event, "d") == ["doc-1"]

    def test_missing_fields_default_to_empty(self):
        adapter = ArticleAdapter()
        event = adapter.build("doc-1", {})
        assert event["content"] == ""
        assert tag_values(event, "title") == [""]
        assert adapter.get_title(event) == "Untitled"

    def test_malformed_tags_do_not_throw(self):
        adapter = ArticleAdapter()
        event = adapter.build("doc-1", {"content": "c", "tags": "not-an-array"})
        assert event["tags"] == [["d", "doc-1"], ["title", ""]]
        adapter.apply_update(event, {"tags": "not-an-array"})
        assert event["tags"] == [["d", "doc-1"], ["title", ""]]

    def test_apply_update(self):
        adapter = ArticleAdapter()
        event = adapter.build("doc-1", {"title": "Old", "content": "old", "tags": [["t", "a"]]})
        adapter.apply_update(event, {"title": "New", "tags": [["t", "b"]]})
        assert tag_values(event, "title") == ["New"]
        assert event["content"] == "old"
        assert tag_values(event, "t") == ["a", "b"]

    def test_publishes_replaceable(self):
        publisher = RecordingPublisher()
        adapter = ArticleAdapter()
        asyncio.run(adapter.publish(adapter.build("d", {}), publisher))
        assert publisher.calls[0][0] == "replaceable"


class TestWikiAdapter:
    def test_title_falls_back_to_identifier(self):
        adapter = WikiAdapter()
        event = adapter.build("bitcoin", {"content": "..."})
        assert tag_value(event, "title") is None
        assert adapter.get_title(event) == "bitcoin"


class TestVersionedArticleAdapter:
    def test_append_only(self):
        publisher = RecordingPublisher()
        adapter = VersionedArticleAdapter()
        event = adapter.build("doc-1", {"title": "v1", "content": "text"})
        assert event["kind"] == 3023
        assert tag_value(event, "d") == "doc-1"
        assert adapter.is_replaceable is False
        asyncio.run(adapter.publish(event, publisher))
        assert publisher.calls[0][0] == "append"


class TestGenericAdapter:
    def test_title_priority(self):
        adapter = GenericAdapter(1)
        assert adapter.get_title({"tags": [["subject", "s"], ["name", "n"], ["title", "t"]]}) == "t"
        assert adapter.get_title({"tags": [["subject", "s"], ["name", "n"]]}) == "n"
        assert adapter.get_title({"tags": [["subject", "s"]], "content": "c"}) == "s"
        assert adapter.get_title({"tags": [["title", ""]], "content": "short"}) == "short"
        assert adapter.get_title({"tags": [], "content": "x" * 61}) == "x" * 60 + "…"
        assert adapter.get_title({"kind": 1, "tags": []}) == "Kind 1 event"

    def test_projections_never_throw(self):
        adapter = GenericAdapter(7)
        assert adapter.get_title({}) == "Kind 7 event"
        assert adapter.get_content({"content": None}) == ""

    def test_tags_additive_on_update(self):
        adapter = GenericAdapter(1)
        event = adapter.build("d", {"content": "a", "tags": '[["t","one"]]'})
        adapter.apply_update(event, {"content": "b", "tags": [["t", "two"]]})
        assert event["content"] == "b"
        assert tag_values(event, "t") == ["one", "two"]

    def test_malformed_tags(self):
        event = GenericAdapter(1).build("d", {"content": "a", "tags": "not-an-array"})
        assert event["tags"] == [["d", "d"]]

    def test_publish_policy_follows_kind_range(self):
        publisher = RecordingPublisher()
        asyncio.run(GenericAdapter(30402).publish({"kind": 30402}, publisher))
        asyncio.run(GenericAdapter(1).publish({"kind": 1}, publisher))
        assert [call[0] for call in publisher.calls] == ["replaceable", "append"]


def test_kind_labels():
    assert kind_label(30023) == "Article"
    assert kind_label(31234) == "Addressable (31234)"
    assert kind_label(20001) == "Ephemeral (20001)"
    assert kind_label(10002) == "Replaceable (10002)"
    assert kind_label(9999) == "Kind 9999"
    assert GenericAdapter(30402).label == "Classified"


def test_projections_do_not_mutate_event():
    event = {"kind": 30023, "tags": None, "content": "body"}
    adapter = ArticleAdapter()
    assert adapter.get_title(event) == "Untitled"
    assert adapter.get_content(event) == "body"
    assert event["tags"] is None
    assert GenericAdapter(1).get_title({"kind": 1, "tags": [["title", 7]], "content": "c"}) == "c"
