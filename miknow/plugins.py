"""
Plugin records and the plugin catalog.

Plugins are stored as inert records: their code is text that is checked for
well-formed structure but never executed.
"""
import json
import logging
import re
from typing import Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from . import storage as keys
from .storage import Storage

logger = logging.getLogger(__name__)

PluginType = Literal["visualization", "analysis", "integration", "utility"]

PLUGIN_TEMPLATES: Dict[str, str] = {
    "visualization": """// MiKnow Visualization Plugin Template

class VisualizationPlugin {
  activate() {
    return {
      visualizations: [
        { id: "custom-graph", name: "Custom Graph", component: this.renderGraph.bind(this) }
      ],
      settings: [
        { id: "show-labels", label: "Show Labels", type: "boolean", default: true },
        { id: "node-size", label: "Node Size", type: "number", default: 5, min: 1, max: 10 }
      ]
    };
  }

  deactivate() {
    console.log("Visualization Plugin deactivated");
  }

  renderGraph(container, data, options) {
    container.innerHTML = `<p>Displaying ${data.nodes.length} nodes and ${data.edges.length} edges</p>`;
  }
}

export default VisualizationPlugin;
""",
    "analysis": """// MiKnow Analysis Plugin Template

class AnalysisPlugin {
  activate() {
    return {
      analyzers: [
        { id: "readability", name: "Readability Score", analyze: this.analyzeReadability.bind(this) }
      ]
    };
  }

  deactivate() {
    console.log("Analysis Plugin deactivated");
  }

  analyzeReadability(content) {
    const sentences = content.split(/[.!?]+/).filter(s => s.trim().length > 0);
    const words = content.split(/\\s+/).filter(w => w.length > 0);
    return { sentences: sentences.length, words: words.length };
  }
}

export default AnalysisPlugin;
""",
    "integration": """// MiKnow Integration Plugin Template

class IntegrationPlugin {
  activate() {
    return {
      integrations: [
        { id: "external-sync", name: "External Sync", sync: this.syncNotes.bind(this) }
      ],
      settings: [
        { id: "api-endpoint", label: "API Endpoint", type: "string", default: "" }
      ]
    };
  }

  deactivate() {
    console.log("Integration Plugin deactivated");
  }

  async syncNotes(notes, settings) {
    return { synced: notes.length, endpoint: settings["api-endpoint"] };
  }
}

export default IntegrationPlugin;
""",
    "utility": """// MiKnow Utility Plugin Template

class UtilityPlugin {
  activate() {
    return {
      commands: [
        { id: "format-note", name: "Format Note", shortcut: "Ctrl+Alt+F", callback: this.formatNote.bind(this) }
      ],
      contextMenuItems: [
        { id: "word-count", label: "Word Count", location: "note-menu", callback: this.countWords.bind(this) }
      ]
    };
  }

  deactivate() {
    console.log("Utility Plugin deactivated");
  }

  formatNote(content) {
    return content.trim();
  }

  countWords(content) {
    const words = content.trim().split(/\\s+/).filter(word => word.length > 0);
    return { words: words.length, characters: content.length };
  }
}

export default UtilityPlugin;
""",
}


class PluginData(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str
    author: str = ""
    description: str = ""
    version: str = "0.1.0"
    type: PluginType = "utility"
    code: str = ""


class CatalogPlugin(BaseModel):
    id: str
    name: str
    description: str
    author: str
    installed: bool = False


DEFAULT_PLUGIN = PluginData(
    name="New Plugin",
    author="",
    description="A custom plugin for MiKnow",
    version="0.1.0",
    type="utility",
    code=PLUGIN_TEMPLATES["utility"],
)

PLUGIN_CATALOG: List[CatalogPlugin] = [
    CatalogPlugin(
        id="graph-enhancer",
        name="Graph Enhancer",
        description="Adds advanced visualization options to the graph view",
        author="MiKnow",
    ),
    CatalogPlugin(
        id="citation-helper",
        name="Citation Helper",
        description="Automatically formats and manages citations in your notes",
        author="Community",
    ),
    CatalogPlugin(
        id="markdown-extended",
        name="Markdown Extended",
        description="Adds additional markdown formatting options",
        author="Community",
        installed=True,
    ),
    CatalogPlugin(
        id="obsidian-sync",
        name="Obsidian Sync",
        description="Synchronize your notes with Obsidian.md",
        author="MiKnow",
    ),
]

_CLOSERS = {")": "(", "]": "[", "}": "{"}


def _check_structure(code: str) -> None:
    """Raise ValueError on unbalanced brackets, strings or comments."""
    stack: List[Tuple[str, int]] = []
    line = 1
    i = 0
    n = len(code)

    while i < n:
        ch = code[i]
        top = stack[-1][0] if stack else None

        if top == "`":
            if ch == "\\":
                i += 2
                continue
            if ch == "\n":
                line += 1
            if ch == "`":
                stack.pop()
            elif code.startswith("${", i):
                stack.append(("${", line))
                i += 2
                continue
            i += 1
            continue

        if ch == "\n":
            line += 1
        elif code.startswith("//", i):
            end = code.find("\n", i)
            i = n if end == -1 else end
            continue
        elif code.startswith("/*", i):
            end = code.find("*/", i + 2)
            if end == -1:
                raise ValueError(f"Unterminated comment starting on line {line}")
            line += code.count("\n", i, end)
            i = end + 2
            continue
        elif ch in "'\"":
            j = i + 1
            while j < n and code[j] != ch:
                if code[j] == "\\":
                    j += 1
                elif code[j] == "\n":
                    break
                j += 1
            if j >= n or code[j] != ch:
                raise ValueError(f"Unterminated string on line {line}")
            i = j + 1
            continue
        elif ch == "`" or ch in "([{":
            stack.append((ch, line))
        elif ch in _CLOSERS:
            if ch == "}" and top == "${":
                stack.pop()
            elif top != _CLOSERS[ch]:
                raise ValueError(f"Unexpected '{ch}' on line {line}")
            else:
                stack.pop()
        i += 1

    if stack:
        opener, opened_on = stack[-1]
        raise ValueError(f"Unclosed '{opener}' opened on line {opened_on}")


def check_plugin_code(code: str) -> str:
    """
    Check plugin code without running it.

    Checks that brackets, strings and comments are balanced and that both
    lifecycle methods are present.

    Returns:
        A success message

    Raises:
        ValueError: Describing the first problem found
    """
    _check_structure(code)

    if not re.search(r"\bactivate\b", code) or not re.search(r"\bdeactivate\b", code):
        raise ValueError("Plugin must implement both activate() and deactivate() methods")

    return "Plugin test completed successfully! The plugin appears to be valid."


def plugin_slug(name: str) -> str:
    return re.sub(r"\s+", "-", name.lower())


class PluginLibrary:
    """User plugins stored as a JSON array keyed by name, plus catalog install state."""

    def __init__(self, store: Storage):
        self.store = store

    def _load(self) -> List[dict]:
        saved = self.store.get_json(keys.PLUGINS_KEY, [])
        return [p for p in saved if isinstance(p, dict) and p.get("name")] if isinstance(saved, list) else []

    def list_saved(self) -> List[PluginData]:
        return [PluginData.model_validate(p) for p in self._load()]

    def get(self, name: str) -> Optional[PluginData]:
        for plugin in self.list_saved():
            if plugin.name == name:
                return plugin
        return None

    def save(self, plugin: PluginData) -> PluginData:
        """Insert or overwrite the plugin with the same name."""
        saved = self._load()
        record = plugin.model_dump()
        for index, existing in enumerate(saved):
            if existing.get("name") == plugin.name:
                saved[index] = record
                break
        else:
            saved.append(record)
        self.store.set_json(keys.PLUGINS_KEY, saved)
        logger.info(f"Saved plugin '{plugin.name}'")
        return plugin

    def delete(self, name: str) -> None:
        saved = self._load()
        remaining = [p for p in saved if p.get("name") != name]
        if len(remaining) == len(saved):
            raise ValueError(f"Plugin '{name}' not found")
        self.store.set_json(keys.PLUGINS_KEY, remaining)

    def export(self, name: str) -> Tuple[str, str]:
        """Return (filename, JSON text) for a saved plugin."""
        plugin = self.get(name)
        if plugin is None:
            raise ValueError(f"Plugin '{name}' not found")
        return f"{plugin_slug(plugin.name)}.json", json.dumps(plugin.model_dump(), indent=2)

    # Catalog

    def _installed_ids(self) -> List[str]:
        installed = self.store.get_json(keys.INSTALLED_PLUGINS_KEY)
        if not isinstance(installed, list):
            return [p.id for p in PLUGIN_CATALOG if p.installed]
        return [str(plugin_id) for plugin_id in installed]

    def catalog(self) -> List[CatalogPlugin]:
        installed = set(self._installed_ids())
        return [p.model_copy(update={"installed": p.id in installed}) for p in PLUGIN_CATALOG]

    def toggle(self, plugin_id: str) -> CatalogPlugin:
        """Flip a catalog plugin between enabled and disabled."""
        if plugin_id not in {p.id for p in PLUGIN_CATALOG}:
            raise ValueError(f"Plugin '{plugin_id}' not found")

        installed = self._installed_ids()
        if plugin_id in installed:
            installed.remove(plugin_id)
        else:
            installed.append(plugin_id)
        self.store.set_json(keys.INSTALLED_PLUGINS_KEY, installed)

        return next(p for p in self.catalog() if p.id == plugin_id)
