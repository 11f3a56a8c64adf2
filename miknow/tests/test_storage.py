"""Unit tests for the storage backends."""

import json

from miknow.storage import JSONFileStorage, MemoryStorage


class TestMemoryStorage:
    """Tests for the in-process backend and change notification."""

    def test_get_set_remove(self):
        """Test basic get, set and remove."""
        store = MemoryStorage()
        assert store.get("k") is None

        store.set("k", "v")
        assert store.get("k") == "v"

        store.remove("k")
        assert store.get("k") is None

    def test_json_helpers(self):
        """Test that structured values are stored as JSON text."""
        store = MemoryStorage()
        store.set_json("notes", ["a", "b"])

        assert store.get("notes") == '["a", "b"]'
        assert store.get_json("notes") == ["a", "b"]
        assert store.get_json("missing", []) == []

    def test_invalid_json_returns_default(self):
        """Test that an unparseable stored value reads as the default."""
        store = MemoryStorage({"notes": "not json"})
        assert store.get_json("notes", []) == []

    def test_subscribers_see_changes(self):
        """Test set and remove notifications, and unsubscribing."""
        store = MemoryStorage()
        seen = []
        unsubscribe = store.subscribe(lambda key, value: seen.append((key, value)))

        store.set("a", "1")
        store.remove("a")
        store.remove("never-set")
        unsubscribe()
        store.set("b", "2")

        assert seen == [("a", "1"), ("a", None)]

    def test_failing_subscriber_does_not_block_others(self):
        """Test that one raising subscriber does not stop the rest."""
        store = MemoryStorage()
        seen = []

        def broken(key, value):
            raise RuntimeError("boom")

        store.subscribe(broken)
        store.subscribe(lambda key, value: seen.append(key))

        store.set("a", "1")

        assert store.get("a") == "1"
        assert seen == ["a"]


class TestJSONFileStorage:
    """Tests for the file-backed storage."""

    def test_persists_across_instances(self, tmp_path):
        """Test that values are written to disk and read back by a new instance."""
        path = tmp_path / "nested" / "storage.json"

        JSONFileStorage(str(path)).set("mistral-model", "open-mistral-nemo")

        assert json.loads(path.read_text()) == {"mistral-model": "open-mistral-nemo"}
        assert JSONFileStorage(str(path)).get("mistral-model") == "open-mistral-nemo"

    def test_missing_file_is_empty(self, tmp_path):
        """Test that a missing file reads as empty storage."""
        assert JSONFileStorage(str(tmp_path / "none.json")).get("k") is None

    def test_corrupt_file_is_empty(self, tmp_path):
        """Test that a corrupt file reads as empty and is overwritten on set."""
        path = tmp_path / "storage.json"
        path.write_text("{broken")

        store = JSONFileStorage(str(path))
        assert store.get("k") is None

        store.set("k", "v")
        assert store.get("k") == "v"

    def test_remove(self, tmp_path):
        """Test remove and its notification."""
        store = JSONFileStorage(str(tmp_path / "storage.json"))
        seen = []
        store.subscribe(lambda key, value: seen.append((key, value)))

        store.set("k", "v")
        store.remove("k")

        assert store.get("k") is None
        assert seen == [("k", "v"), ("k", None)]
