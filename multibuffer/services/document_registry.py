"""Document registry for open aggregate documents.

The registry is an explicit object owned by the service that creates
documents; nothing is stored at module level. It provides:
- Registration and removal tied to document open/close
- Lookup of documents and their change trackers by identity
- Content serving for hosts that request an aggregate by identity
- Change notification for presentation layers (decoration painting)
"""

from collections.abc import Callable
from dataclasses import dataclass
from threading import RLock

from loguru import logger

from multibuffer.core.exceptions import DocumentNotFoundError
from multibuffer.core.models import AggregateDocument

from .change_tracker import ChangeTracker

ChangeListener = Callable[[str], None]


@dataclass
class RegistryEntry:
    """A registered document and the tracker following its edits.

    Attributes:
        document: Aggregate document as rendered
        tracker: Change tracker, once the document is editable
    """

    document: AggregateDocument
    tracker: ChangeTracker | None = None


class DocumentRegistry:
    """Maps aggregate-document identities to documents and trackers.

    Thread-safe: All operations protected by RLock for concurrent access.

    Usage:
        registry = DocumentRegistry()
        registry.add(document)
        registry.set_tracker(document.uri, tracker)

        text = registry.provide_content(document.uri)
        registry.remove(document.uri)
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._entries: dict[str, RegistryEntry] = {}
        self._listeners: list[ChangeListener] = []

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, uri: object) -> bool:
        with self._lock:
            return uri in self._entries

    def add(self, document: AggregateDocument, tracker: ChangeTracker | None = None) -> None:
        """Register a document, replacing any entry with the same identity."""
        with self._lock:
            if document.uri in self._entries:
                logger.debug(f"Replacing registered document {document.uri}")
            self._entries[document.uri] = RegistryEntry(document=document, tracker=tracker)
        self.notify_changed(document.uri)

    def _entry(self, uri: str) -> RegistryEntry:
        entry = self._entries.get(uri)
        if entry is None:
            raise DocumentNotFoundError(f"No aggregate document registered for {uri}")
        return entry

    def get(self, uri: str) -> AggregateDocument:
        """Look up a document.

        Raises:
            DocumentNotFoundError: If the identity is not registered
        """
        with self._lock:
            return self._entry(uri).document

    def find(self, uri: str) -> AggregateDocument | None:
        with self._lock:
            entry = self._entries.get(uri)
            return entry.document if entry else None

    def get_tracker(self, uri: str) -> ChangeTracker | None:
        with self._lock:
            return self._entry(uri).tracker

    def set_tracker(self, uri: str, tracker: ChangeTracker) -> None:
        with self._lock:
            self._entry(uri).tracker = tracker

    def list_uris(self) -> list[str]:
        with self._lock:
            return list(self._entries)

    def remove(self, uri: str) -> AggregateDocument | None:
        """Unregister a document; returns it, or None if it was not registered."""
        with self._lock:
            entry = self._entries.pop(uri, None)
        if entry is None:
            return None
        logger.debug(f"Removed aggregate document {uri}")
        return entry.document

    def provide_content(self, uri: str) -> str:
        """Serve the rendered text of a document, or "" for unknown identities."""
        with self._lock:
            entry = self._entries.get(uri)
            return entry.document.content if entry else ""

    def on_did_change(self, listener: ChangeListener) -> Callable[[], None]:
        """Subscribe to change events; returns an unsubscribe callable."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def notify_changed(self, uri: str) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(uri)
            except Exception as e:
                logger.error(f"Document change listener failed for {uri}: {e}")

    def clear(self) -> None:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        logger.debug(f"Cleared {count} aggregate documents")
