"""File import for notes, graphs, themes and plugins."""

import json
import logging
import re
from pathlib import PurePath
from typing import Any, List, Tuple, Union

from pydantic import ValidationError

from .errors import ImportFailedError
from .graph import GraphData
from .plugins import PluginData, PluginLibrary
from .themes import ThemeData, ThemeLibrary
from .workspace import Workspace

logger = logging.getLogger(__name__)

NOTE_EXTENSIONS = {".md", ".txt"}
GRAPH_EXTENSIONS = {".json", ".txt", ".md"}


def _extension(filename: str) -> str:
    return PurePath(filename).suffix.lower()


def read_note_file(filename: str, content: str) -> str:
    """Accept a Markdown or text file as note content, unchanged."""
    if _extension(filename) not in NOTE_EXTENSIONS:
        raise ImportFailedError(f"Unsupported file type: {filename}. Use .md or .txt")
    return content


def _parse_json(content: str) -> Any:
    try:
        return json.loads(content)
    except json.JSONDecodeError:
        return None


def import_graph_file(
    workspace: Workspace,
    content: str,
    filename: str = "",
) -> Tuple[str, Union[GraphData, List[str]]]:
    """
    Import into the graph view.

    A JSON object with both 'nodes' and 'edges' replaces the graph. Anything
    else is read as newline-delimited notes, replacing the notes list.

    Returns:
        ("graph", GraphData) or ("notes", list of note strings)
    """
    if filename and _extension(filename) not in GRAPH_EXTENSIONS:
        raise ImportFailedError(f"Unsupported file type: {filename}")

    data = _parse_json(content)
    if isinstance(data, dict) and "nodes" in data and "edges" in data:
        try:
            graph = GraphData.model_validate(data)
        except ValidationError as e:
            raise ImportFailedError(f"Invalid graph data: {e.error_count()} problem(s) found")
        workspace.set_graph(graph)
        logger.info(f"Imported graph with {len(graph.nodes)} nodes and {len(graph.edges)} edges")
        return "graph", graph

    lines = [line for line in re.split(r"\r?\n", content) if line.strip()]
    if not lines:
        raise ImportFailedError("No valid content found in the file")

    workspace.set_notes(lines)
    logger.info(f"Imported {len(lines)} notes")
    return "notes", lines


def _load_named_record(content: str, kind: str) -> dict:
    data = _parse_json(content)
    if not isinstance(data, dict):
        raise ImportFailedError(f"Invalid {kind} file format")
    if not data.get("name"):
        raise ImportFailedError(f"Invalid {kind} format: missing name")
    return data


def import_theme_file(workspace: Workspace, content: str) -> ThemeData:
    """Upsert a theme from a JSON file."""
    data = _load_named_record(content, "theme")
    try:
        theme = ThemeData.model_validate(data)
    except ValidationError as e:
        raise ImportFailedError(f"Invalid theme file format: {e.error_count()} problem(s) found")
    ThemeLibrary(workspace.store).save(theme)
    logger.info(f"Imported theme '{theme.name}'")
    return theme


def import_plugin_file(workspace: Workspace, content: str) -> PluginData:
    """Upsert a plugin from a JSON file."""
    data = _load_named_record(content, "plugin")
    try:
        plugin = PluginData.model_validate(data)
    except ValidationError as e:
        raise ImportFailedError(f"Invalid plugin file format: {e.error_count()} problem(s) found")
    PluginLibrary(workspace.store).save(plugin)
    logger.info(f"Imported plugin '{plugin.name}'")
    return plugin
