"""
Application state shared by the notebook surfaces.

A Workspace bundles the storage, the credential record and the persisted note
lists and graph. Each surface (analysis, links, qa, generation, graph) tracks
its in-flight request with a generation counter so a response that arrives
after a newer request was started is discarded instead of overwriting state.
"""
import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from . import storage as keys
from .graph import GraphData
from .mistral import MistralClient
from .settings import Credentials
from .storage import Storage

logger = logging.getLogger(__name__)

SURFACES = ("analysis", "links", "qa", "generation")


class RequestTracker:
    """Per-surface generation counter."""

    def __init__(self):
        self._generations: Dict[str, int] = {}

    def begin(self, surface: str) -> int:
        """Start a request on a surface and return its token."""
        token = self._generations.get(surface, 0) + 1
        self._generations[surface] = token
        return token

    def is_current(self, surface: str, token: int) -> bool:
        return self._generations.get(surface) == token


class Workspace:
    """Explicit application state, persisted through an injected storage."""

    def __init__(
        self,
        store: Storage,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.store = store
        self.transport = transport
        self.credentials = Credentials(store)
        self.requests = RequestTracker()
        self._results: Dict[str, Any] = {}
        self.unsubscribe = store.subscribe(self._on_storage_change)

    def _on_storage_change(self, key: str, value: Optional[str]) -> None:
        # A new key invalidates whatever was cached for the old one
        if key == keys.API_KEY and self.store.get(keys.API_KEY_VALID) is not None:
            logger.info("API key changed, cached validity cleared")
            self.store.remove(keys.API_KEY_VALID)

    def client(self) -> MistralClient:
        return MistralClient(self.credentials, transport=self.transport)

    # Results

    def commit_result(self, surface: str, token: int, result: Any) -> bool:
        """
        Store a surface's result if its request is still the latest one.

        Returns:
            True if committed, False if the result was stale and dropped
        """
        if not self.requests.is_current(surface, token):
            logger.info(f"Discarding stale {surface} result (request {token})")
            return False
        self._results[surface] = result
        return True

    def last_result(self, surface: str) -> Any:
        return self._results.get(surface)

    # Graph notes

    def get_notes(self) -> List[str]:
        notes = self.store.get_json(keys.NOTES_KEY, [])
        return [str(note) for note in notes] if isinstance(notes, list) else []

    def set_notes(self, notes: List[str]) -> None:
        self.store.set_json(keys.NOTES_KEY, list(notes))

    def add_note(self, note: str) -> List[str]:
        """Append a trimmed note; blank input leaves the list unchanged."""
        notes = self.get_notes()
        note = note.strip()
        if note:
            notes.append(note)
            self.set_notes(notes)
        return notes

    # Existing notes for link suggestions

    def get_link_notes(self) -> List[str]:
        notes = self.store.get_json(keys.LINK_NOTES_KEY, [])
        return [str(note) for note in notes] if isinstance(notes, list) else []

    def add_link_note(self, note: str) -> List[str]:
        """Append a trimmed note unless it is blank or already present."""
        notes = self.get_link_notes()
        note = note.strip()
        if note and note not in notes:
            notes.append(note)
            self.store.set_json(keys.LINK_NOTES_KEY, notes)
        return notes

    def remove_link_note(self, index: int) -> List[str]:
        notes = self.get_link_notes()
        if not 0 <= index < len(notes):
            raise ValueError(f"No existing note at index {index}")
        del notes[index]
        self.store.set_json(keys.LINK_NOTES_KEY, notes)
        return notes

    # Graph data

    def get_graph(self) -> GraphData:
        data = self.store.get_json(keys.GRAPH_DATA_KEY)
        if not isinstance(data, dict):
            return GraphData()
        try:
            return GraphData.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Stored graph data is unusable, starting empty: {e}")
            return GraphData()

    def set_graph(self, graph: GraphData) -> None:
        self.store.set_json(keys.GRAPH_DATA_KEY, graph.to_dict())
