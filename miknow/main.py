"""FastAPI backend for the MiKnow notebook."""

import logging
from typing import Any, Awaitable, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel

from . import config, extractors, graph, imports
from .errors import CompletionError, ImportFailedError
from .plugins import DEFAULT_PLUGIN, PLUGIN_TEMPLATES, PluginData, PluginLibrary, check_plugin_code
from .settings import MISTRAL_MODELS
from .storage import get_default_storage
from .themes import COLOR_DESCRIPTIONS, DEFAULT_THEME, ThemeData, ThemeLibrary, theme_to_css
from .workspace import SURFACES, Workspace

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    "missing_key": 400,
    "auth": 401,
    "provider": 502,
    "network": 502,
    "malformed": 502,
}

SUPERSEDED_MESSAGE = "Superseded by a newer request"

_workspace: Optional[Workspace] = None


def get_workspace() -> Workspace:
    """Return the process-wide workspace backed by the JSON storage file."""
    global _workspace
    if _workspace is None:
        _workspace = Workspace(get_default_storage())
    return _workspace


app = FastAPI(title="MiKnow API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(CompletionError)
async def completion_error_handler(request: Request, exc: CompletionError):
    return JSONResponse(
        status_code=ERROR_STATUS.get(exc.kind, 500),
        content={"detail": exc.message, "kind": exc.kind},
    )


@app.exception_handler(ImportFailedError)
async def import_error_handler(request: Request, exc: ImportFailedError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


async def run_tracked(workspace: Workspace, surface: str, operation: Awaitable[Any]) -> Any:
    """Await a surface operation, rejecting its outcome if a newer request started meanwhile."""
    token = workspace.requests.begin(surface)
    try:
        result = await operation
    except CompletionError:
        if not workspace.requests.is_current(surface, token):
            logger.info(f"Discarding stale {surface} failure (request {token})")
            raise HTTPException(status_code=409, detail=SUPERSEDED_MESSAGE)
        raise
    if not workspace.commit_result(surface, token, result):
        raise HTTPException(status_code=409, detail=SUPERSEDED_MESSAGE)
    return result


@app.get("/api/results/{surface}")
async def get_last_result(surface: str, workspace: Workspace = Depends(get_workspace)):
    """Latest committed result of a surface, or null before the first one."""
    if surface not in SURFACES:
        raise HTTPException(status_code=404, detail=f"Unknown surface: {surface}")
    return {"surface": surface, "result": workspace.last_result(surface)}


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "MiKnow API"}


# Settings

class UpdateSettingsRequest(BaseModel):
    """Request to save the API key and model."""
    api_key: str = ""
    model: Optional[str] = None


@app.get("/api/settings")
async def get_settings(workspace: Workspace = Depends(get_workspace)):
    """Get current settings status (not the actual API key value)."""
    return workspace.credentials.status()


@app.get("/api/settings/models")
async def list_models():
    return {"models": MISTRAL_MODELS, "default": config.DEFAULT_MODEL}


@app.put("/api/settings")
async def update_settings(request: UpdateSettingsRequest, workspace: Workspace = Depends(get_workspace)):
    """Validate and save the API key and model."""
    if request.model and request.model not in {m["id"] for m in MISTRAL_MODELS}:
        raise HTTPException(status_code=400, detail=f"Unknown model: {request.model}")

    await workspace.credentials.save(request.api_key, request.model, transport=workspace.transport)
    return {"success": True, **workspace.credentials.status()}


@app.delete("/api/settings/api-key")
async def clear_api_key(workspace: Workspace = Depends(get_workspace)):
    """Clear the stored key (the environment variable still applies)."""
    workspace.credentials.clear()
    return {"success": True, **workspace.credentials.status()}


@app.post("/api/settings/validate")
async def validate_settings(workspace: Workspace = Depends(get_workspace)):
    """Re-check the stored key against the provider."""
    valid = await workspace.credentials.revalidate(transport=workspace.transport)
    return {"api_key_valid": valid}


@app.get("/api/settings/check")
async def check_settings(workspace: Workspace = Depends(get_workspace)):
    """Report key usability, validating only when no positive result is cached."""
    valid = await workspace.credentials.check(transport=workspace.transport)
    return {"api_key_valid": valid}


# Extractors

class AnalyzeRequest(BaseModel):
    content: str
    fallback: bool = True


class SuggestLinksRequest(BaseModel):
    content: str
    existing_notes: Optional[List[str]] = None
    fallback: bool = True


class AskRequest(BaseModel):
    question: str
    vault_content: str = ""


class GenerateRequest(BaseModel):
    prompt: str
    related_notes: List[str] = []


def _require_text(value: str, message: str) -> str:
    if not value or not value.strip():
        raise HTTPException(status_code=400, detail=message)
    return value


@app.post("/api/analyze", response_model=extractors.NoteAnalysisResult)
async def analyze(request: AnalyzeRequest, workspace: Workspace = Depends(get_workspace)):
    """Summarize a note and list themes, links and knowledge gaps."""
    _require_text(request.content, "Please enter some note content to analyze.")
    return await run_tracked(
        workspace,
        "analysis",
        extractors.analyze_note(request.content, workspace.client(), fallback=request.fallback),
    )


@app.post("/api/links")
async def suggest_links(request: SuggestLinksRequest, workspace: Workspace = Depends(get_workspace)):
    """Suggest links from a note to existing notes, most relevant first."""
    _require_text(request.content, "Please enter some note content to analyze.")
    existing = request.existing_notes if request.existing_notes is not None else workspace.get_link_notes()
    if not existing:
        raise HTTPException(status_code=400, detail="Please add at least one existing note to compare with.")

    suggestions = await run_tracked(
        workspace,
        "links",
        extractors.suggest_links(request.content, existing, workspace.client(), fallback=request.fallback),
    )
    return {"suggestions": extractors.sort_by_relevance(suggestions)}


@app.post("/api/ask")
async def ask(request: AskRequest, workspace: Workspace = Depends(get_workspace)):
    """Answer a question from vault content."""
    _require_text(request.question, "Please enter a question.")
    answer = await run_tracked(
        workspace,
        "qa",
        extractors.answer_question(request.question, request.vault_content, workspace.client()),
    )
    return {"answer": answer}


@app.post("/api/generate")
async def generate(request: GenerateRequest, workspace: Workspace = Depends(get_workspace)):
    """Generate a Markdown note and suggest a download filename."""
    _require_text(request.prompt, "Please enter a prompt for note generation.")
    content = await run_tracked(
        workspace,
        "generation",
        extractors.generate_note(request.prompt, request.related_notes, workspace.client()),
    )
    return {"content": content, "filename": extractors.note_filename(request.prompt)}


# Notes

class AddNoteRequest(BaseModel):
    note: str


class FileContentRequest(BaseModel):
    """A file chosen by the user, already read as text."""
    filename: str
    content: str


@app.get("/api/notes")
async def list_notes(workspace: Workspace = Depends(get_workspace)):
    return {"notes": workspace.get_notes()}


@app.post("/api/notes")
async def add_note(request: AddNoteRequest, workspace: Workspace = Depends(get_workspace)):
    _require_text(request.note, "Note is empty")
    return {"notes": workspace.add_note(request.note)}


@app.get("/api/link-notes")
async def list_link_notes(workspace: Workspace = Depends(get_workspace)):
    return {"notes": workspace.get_link_notes()}


@app.post("/api/link-notes")
async def add_link_note(request: AddNoteRequest, workspace: Workspace = Depends(get_workspace)):
    return {"notes": workspace.add_link_note(request.note)}


@app.delete("/api/link-notes/{index}")
async def remove_link_note(index: int, workspace: Workspace = Depends(get_workspace)):
    try:
        return {"notes": workspace.remove_link_note(index)}
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))


@app.post("/api/files/note")
async def read_note_file(request: FileContentRequest):
    """Load a .md or .txt file as note content."""
    return {"content": imports.read_note_file(request.filename, request.content)}


# Graph

@app.get("/api/graph")
async def get_graph(workspace: Workspace = Depends(get_workspace)):
    data = workspace.get_graph()
    return {"graph": data.to_dict(), "stats": graph.graph_stats(data)}


@app.post("/api/graph/generate")
async def generate_graph(workspace: Workspace = Depends(get_workspace)):
    """Build a graph from the stored notes and persist it."""
    notes = workspace.get_notes()
    if not notes:
        raise HTTPException(
            status_code=400,
            detail="Please add some notes before generating a knowledge graph.",
        )

    data = graph.generate_knowledge_graph(notes)
    workspace.set_graph(data)
    return {"graph": data.to_dict(), "stats": graph.graph_stats(data)}


@app.post("/api/graph/import")
async def import_graph(request: FileContentRequest, workspace: Workspace = Depends(get_workspace)):
    """Import graph JSON or a newline-delimited notes file."""
    kind, result = imports.import_graph_file(workspace, request.content, request.filename)
    if kind == "graph":
        return {"kind": kind, "graph": result.to_dict(), "stats": graph.graph_stats(result)}
    return {"kind": kind, "notes": result}


@app.get("/api/graph/search")
async def search_graph(q: str = "", workspace: Workspace = Depends(get_workspace)):
    """Return the stored graph with nodes matching q highlighted."""
    return {"graph": graph.highlight_nodes(workspace.get_graph(), q).to_dict()}


# Themes

class ActiveThemeRequest(BaseModel):
    theme_id: str


@app.get("/api/themes")
async def list_themes(workspace: Workspace = Depends(get_workspace)):
    library = ThemeLibrary(workspace.store)
    return {"themes": library.list_all(), "active": library.get_active()}


@app.get("/api/themes/template")
async def get_theme_template():
    return {"theme": DEFAULT_THEME, "descriptions": COLOR_DESCRIPTIONS}


@app.post("/api/themes")
async def save_theme(theme: ThemeData, workspace: Workspace = Depends(get_workspace)):
    _require_text(theme.name, "Theme name is required")
    return ThemeLibrary(workspace.store).save(theme)


@app.post("/api/themes/import")
async def import_theme(request: FileContentRequest, workspace: Workspace = Depends(get_workspace)):
    return imports.import_theme_file(workspace, request.content)


@app.post("/api/themes/css", response_class=PlainTextResponse)
async def render_theme_css(theme: ThemeData):
    return theme_to_css(theme)


@app.put("/api/themes/active")
async def set_active_theme(request: ActiveThemeRequest, workspace: Workspace = Depends(get_workspace)):
    try:
        return {"active": ThemeLibrary(workspace.store).set_active(request.theme_id)}
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))


@app.get("/api/themes/{name}/export")
async def export_theme(name: str, workspace: Workspace = Depends(get_workspace)):
    try:
        filename, content = ThemeLibrary(workspace.store).export(name)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"filename": filename, "content": content}


@app.delete("/api/themes/{theme_id}")
async def delete_theme(theme_id: str, workspace: Workspace = Depends(get_workspace)):
    try:
        ThemeLibrary(workspace.store).delete(theme_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"success": True}


# Plugins

class PluginCodeRequest(BaseModel):
    code: str


@app.get("/api/plugins")
async def list_plugins(workspace: Workspace = Depends(get_workspace)):
    return {"plugins": PluginLibrary(workspace.store).list_saved()}


@app.get("/api/plugins/templates")
async def get_plugin_templates():
    return {"default": DEFAULT_PLUGIN, "templates": PLUGIN_TEMPLATES}


@app.get("/api/plugins/catalog")
async def get_plugin_catalog(workspace: Workspace = Depends(get_workspace)):
    return {"plugins": PluginLibrary(workspace.store).catalog()}


@app.post("/api/plugins/catalog/{plugin_id}/toggle")
async def toggle_catalog_plugin(plugin_id: str, workspace: Workspace = Depends(get_workspace)):
    try:
        return PluginLibrary(workspace.store).toggle(plugin_id)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))


@app.post("/api/plugins")
async def save_plugin(plugin: PluginData, workspace: Workspace = Depends(get_workspace)):
    _require_text(plugin.name, "Plugin name is required")
    return PluginLibrary(workspace.store).save(plugin)


@app.post("/api/plugins/import")
async def import_plugin(request: FileContentRequest, workspace: Workspace = Depends(get_workspace)):
    return imports.import_plugin_file(workspace, request.content)


@app.post("/api/plugins/test")
async def run_plugin_check(request: PluginCodeRequest) -> Dict[str, Any]:
    """Check plugin code structure without executing it."""
    try:
        return {"valid": True, "message": check_plugin_code(request.code)}
    except ValueError as e:
        return {"valid": False, "message": str(e)}


@app.get("/api/plugins/{name}/export")
async def export_plugin(name: str, workspace: Workspace = Depends(get_workspace)):
    try:
        filename, content = PluginLibrary(workspace.store).export(name)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"filename": filename, "content": content}


@app.delete("/api/plugins/{name}")
async def delete_plugin(name: str, workspace: Workspace = Depends(get_workspace)):
    try:
        PluginLibrary(workspace.store).delete(name)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"success": True}


if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run(app, host="0.0.0.0", port=8001)
