"""
Key/value storage for notebook state.

Every persisted value is a string keyed by a string, mirroring browser local
storage. Structured values go through get_json/set_json. Subscribers are
notified after each change so other parts of the app can react to a new API
key or a revalidated credential.
"""
import json
import logging
import os
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

# Storage keys
API_KEY = "mistral-api-key"
MODEL_KEY = "mistral-model"
API_KEY_VALID = "mistral-api-key-valid"
NOTES_KEY = "miknow-notes"
LINK_NOTES_KEY = "miknow-link-notes"
GRAPH_DATA_KEY = "miknow-graph-data"
THEMES_KEY = "miknow-themes"
ACTIVE_THEME_KEY = "miknow-active-theme"
PLUGINS_KEY = "miknow-plugins"
INSTALLED_PLUGINS_KEY = "miknow-installed-plugins"

Subscriber = Callable[[str, Optional[str]], None]


class Storage:
    """Base class for storage backends."""

    def __init__(self):
        self._subscribers: List[Subscriber] = []

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    def remove(self, key: str) -> None:
        raise NotImplementedError

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """
        Register a change callback.

        Returns:
            A function that removes the subscription.
        """
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _notify(self, key: str, value: Optional[str]) -> None:
        for callback in list(self._subscribers):
            try:
                callback(key, value)
            except Exception as e:
                logger.error(f"Storage subscriber failed for key '{key}': {e}")

    def get_json(self, key: str, default: Any = None) -> Any:
        """Load a JSON-encoded value, returning default when missing or unparseable."""
        raw = self.get(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Stored value for '{key}' is not valid JSON, ignoring it")
            return default

    def set_json(self, key: str, value: Any) -> None:
        self.set(key, json.dumps(value))


class MemoryStorage(Storage):
    """In-process storage, used by tests and ephemeral sessions."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        super().__init__()
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value
        self._notify(key, value)

    def remove(self, key: str) -> None:
        if key in self._data:
            del self._data[key]
            self._notify(key, None)


class JSONFileStorage(Storage):
    """Storage persisted as a single JSON object on disk."""

    def __init__(self, path: str):
        super().__init__()
        self.path = Path(path)

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}

        try:
            data = json.loads(self.path.read_text())
        except (json.JSONDecodeError, IOError) as e:
            logger.warning(f"Could not read storage file {self.path}: {e}")
            return {}

        return data if isinstance(data, dict) else {}

    def _save(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2))

    def get(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._save(data)
        self._notify(key, value)

    def remove(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._save(data)
            self._notify(key, None)


def get_default_storage() -> Storage:
    """Open the file-backed storage under the configured data directory."""
    from .config import STORAGE_FILE
    return JSONFileStorage(os.getenv("MIKNOW_STORAGE_FILE", STORAGE_FILE))
