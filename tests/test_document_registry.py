"""Tests for DocumentRegistry."""

from unittest.mock import MagicMock

import pytest

from multibuffer.core.exceptions import DocumentNotFoundError
from multibuffer.core.models import AggregateDocument, AggregateMapping, SearchOptions
from multibuffer.services.change_tracker import ChangeTracker
from multibuffer.services.document_registry import DocumentRegistry


def make_document(uri: str = "multibuffer:search-1.multibuffer", content: str = "x\n"):
    return AggregateDocument(
        content=content,
        mapping=AggregateMapping(),
        search_options=SearchOptions(query="x"),
        uri=uri,
    )


class TestRegistration:
    """Tests for add/get/remove."""

    def test_add_and_get(self):
        registry = DocumentRegistry()
        document = make_document()
        registry.add(document)

        assert document.uri in registry
        assert len(registry) == 1
        assert registry.get(document.uri) is document
        assert registry.find(document.uri) is document
        assert registry.list_uris() == [document.uri]

    def test_unknown_identity(self):
        registry = DocumentRegistry()
        with pytest.raises(DocumentNotFoundError):
            registry.get("multibuffer:missing.multibuffer")
        assert registry.find("multibuffer:missing.multibuffer") is None
        assert registry.remove("multibuffer:missing.multibuffer") is None

    def test_remove(self):
        registry = DocumentRegistry()
        document = make_document()
        registry.add(document)

        assert registry.remove(document.uri) is document
        assert document.uri not in registry
        assert len(registry) == 0

    def test_add_replaces_same_identity(self):
        registry = DocumentRegistry()
        registry.add(make_document(content="old\n"))
        registry.add(make_document(content="new\n"))

        assert len(registry) == 1
        assert registry.provide_content("multibuffer:search-1.multibuffer") == "new\n"

    def test_trackers(self):
        registry = DocumentRegistry()
        document = make_document()
        registry.add(document)
        assert registry.get_tracker(document.uri) is None

        tracker = ChangeTracker()
        registry.set_tracker(document.uri, tracker)
        assert registry.get_tracker(document.uri) is tracker

        with pytest.raises(DocumentNotFoundError):
            registry.set_tracker("multibuffer:other.multibuffer", tracker)

    def test_clear(self):
        registry = DocumentRegistry()
        registry.add(make_document("a"))
        registry.add(make_document("b"))
        registry.clear()
        assert registry.list_uris() == []


class TestContentAndNotifications:
    """Tests for content serving and change listeners."""

    def test_provide_content_for_unknown_identity_is_empty(self):
        assert DocumentRegistry().provide_content("multibuffer:nope.multibuffer") == ""

    def test_listeners_notified_on_add(self):
        registry = DocumentRegistry()
        listener = MagicMock()
        registry.on_did_change(listener)

        registry.add(make_document())

        listener.assert_called_once_with("multibuffer:search-1.multibuffer")

    def test_unsubscribe(self):
        registry = DocumentRegistry()
        listener = MagicMock()
        unsubscribe = registry.on_did_change(listener)
        unsubscribe()
        unsubscribe()

        registry.notify_changed("a")

        listener.assert_not_called()

    def test_failing_listener_does_not_block_others(self):
        registry = DocumentRegistry()
        failing = MagicMock(side_effect=RuntimeError("boom"))
        healthy = MagicMock()
        registry.on_did_change(failing)
        registry.on_did_change(healthy)

        registry.notify_changed("a")

        healthy.assert_called_once_with("a")
