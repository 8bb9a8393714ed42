"""FastAPI entrypoint for the Plain Notes app.

The app serves one notes folder to the browser UI:
- the note tree with favorites, recent notes and tag index,
- note and folder mutations (create, rename, move, delete, daily note),
- the open note session with debounced autosave,
- full-text search, backlinks, headings and rendered previews,
- image and attachment uploads.

Paths in requests and responses are relative to the notes root.
"""
from __future__ import annotations

import logging
import mimetypes
import os
import re
from datetime import date
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional
from urllib.parse import quote

import markdown
from fastapi import FastAPI, File, HTTPException, Request, UploadFile
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, conint

from app_config import (
    APP_ROOT,
    AppConfig,
    AppSettings,
    load_settings,
    resolve_notes_root,
    save_settings,
)
from notes_errors import NotesError, NotFoundError, StorageError, ValidationError
from notes_index import TAG_PATTERN, extract_headings, heading_id, word_stats
from notes_meta import MetaTracker
from notes_mutations import ATTACHMENTS_FOLDER_NAME, IMAGES_FOLDER_NAME
from notes_storage import LocalStorage
from notes_tree import Node, note_title
from workspace import Workspace


logger = logging.getLogger("plain_notes")


@lru_cache(maxsize=1)
def get_config() -> AppConfig:
    """Return a cached AppConfig instance.

    Using a small cache keeps configuration resolution cheap and ensures
    that directory creation for the notes root happens only once.
    """

    return AppConfig()


@lru_cache(maxsize=1)
def get_workspace() -> Workspace:
    cfg = get_config()
    settings = load_settings(cfg.settings_path)

    tracker = MetaTracker(cfg.meta_path)
    tracker.load()

    return Workspace(
        LocalStorage(),
        tracker,
        resolve_notes_root(cfg, settings),
        autosave_delay=settings.autoSaveDelayMs / 1000,
    )


IMAGE_EXTENSIONS = {
    ".png",
    ".jpg",
    ".jpeg",
    ".gif",
    ".webp",
    ".bmp",
    ".svg",
}

DEFAULT_MAX_UPLOAD_BYTES = 10 * 1024 * 1024

SEARCH_MAX_QUERY_LENGTH = 200

WIKILINK_PATTERN = re.compile(r"\[\[([^\]]+)\]\]")


def _validate_relative_path(path_str: str) -> str:
    raw = path_str.strip()
    if not raw:
        raise ValidationError("Path must not be empty")

    if raw.startswith(("/", "\\")):
        raise ValidationError("Path must be relative and must not start with a path separator")

    if ":" in raw:
        raise ValidationError("Path must be relative and must not contain drive specifiers")

    path = Path(raw)

    if path.is_absolute():
        raise ValidationError("Path must be relative")

    parts: List[str] = list(path.parts)

    if any(part == ".." for part in parts):
        raise ValidationError("Path must not contain '..' segments")

    normalized = Path(*[part for part in parts if part not in (".", "")])

    if not normalized.parts:
        raise ValidationError("Path must not resolve to empty")

    return normalized.as_posix()


def _resolve_relative_path(relative_path: str) -> str:
    root = get_workspace().root
    safe_rel = _validate_relative_path(relative_path)
    target = (Path(root) / safe_rel).resolve()

    try:
        target.relative_to(Path(root).resolve())
    except ValueError as exc:  # pragma: no cover - defensive branch
        raise ValidationError("Resolved path escapes the notes root") from exc

    return f"{root}/{safe_rel}"


def _resolve_folder(relative_path: Optional[str]) -> str:
    if relative_path is None or not relative_path.strip():
        return get_workspace().root
    return _resolve_relative_path(relative_path)


def _relative_to_notes_root(path: str) -> str:
    root = get_workspace().root
    if path == root:
        return ""
    return path[len(root) + 1 :]


def _node_payload(node: Node) -> Dict[str, Any]:
    return {
        "name": node.name,
        "path": _relative_to_notes_root(node.path),
        "isDirectory": node.isDirectory,
        "isFavorite": node.isFavorite,
        "children": [_node_payload(child) for child in node.children] if node.children is not None else None,
    }


def _with_relative_path(item: BaseModel) -> Dict[str, Any]:
    data = item.model_dump()
    data["path"] = _relative_to_notes_root(data["path"])
    return data


def _preprocess_wikilinks_and_tags(text: str) -> str:
    processed = WIKILINK_PATTERN.sub(
        lambda m: f"[{m.group(1)}](wikilink:{quote(m.group(1))})",
        text,
    )
    return TAG_PATTERN.sub(lambda m: f"[#{m.group(1)}](tag:{m.group(1)})", processed)


def _heading_slug(value: str, separator: str) -> str:
    return heading_id(value)


def _render_markdown_html(markdown_text: str) -> str:
    processed = _preprocess_wikilinks_and_tags(markdown_text)
    html = markdown.markdown(
        processed,
        extensions=["extra", "toc", "pymdownx.tasklist"],
        extension_configs={
            "toc": {"slugify": _heading_slug},
        },
        output_format="html5",
    )
    return html


class CreateNoteRequest(BaseModel):
    folder: str = ""
    name: str


class CreateFolderRequest(BaseModel):
    parent: str = ""
    name: str


class RenameRequest(BaseModel):
    path: str
    newName: str


class MoveRequest(BaseModel):
    path: str
    targetFolder: str = ""


class OpenNoteRequest(BaseModel):
    path: str


class NoteContent(BaseModel):
    content: str


class DailyNoteRequest(BaseModel):
    day: Optional[date] = None


class FavoriteRequest(BaseModel):
    path: str


class NotesFolderRequest(BaseModel):
    path: str


class SettingsUpdate(BaseModel):
    theme: Optional[Literal["light", "dark", "system"]] = None
    viewMode: Optional[Literal["split", "tabs"]] = None
    autoSaveDelayMs: Optional[conint(ge=100, le=60000)] = None


class UploadResponse(BaseModel):
    path: str
    markdown: str
    size: int


app = FastAPI(title="Plain Notes", version="0.1.0")


@app.exception_handler(NotesError)
async def _notes_error_handler(request: Request, exc: NotesError) -> JSONResponse:
    logger.warning("request failed path=%s error=%s", request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.on_event("startup")
def _open_workspace() -> None:  # pragma: no cover - integration behavior
    ws = get_workspace()
    logger.info("workspace opened root=%s notes=%s", ws.root, len(ws.files))


@app.on_event("shutdown")
def _close_workspace() -> None:  # pragma: no cover - integration behavior
    get_workspace().shutdown()


STATIC_DIR = APP_ROOT / "static"

if STATIC_DIR.is_dir():
    app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")


@app.get("/", response_class=FileResponse, tags=["ui"])
def index() -> FileResponse:
    index_path = APP_ROOT / "static" / "index.html"
    return FileResponse(index_path)


@app.get("/health", tags=["system"])
def health() -> Dict[str, Any]:
    """Basic health and configuration probe."""

    cfg = get_config()

    return {
        "status": "ok",
        "version": "0.1.0",
        "notesRoot": get_workspace().root,
        "settingsPath": str(cfg.settings_path),
    }


@app.get("/api/tree", tags=["notes"])
def api_tree() -> Dict[str, Any]:
    ws = get_workspace()

    return {
        "root": ws.root,
        "nodes": [_node_payload(node) for node in ws.files],
    }


@app.post("/api/tree/refresh", tags=["notes"])
def api_tree_refresh() -> Dict[str, Any]:
    get_workspace().refresh_tree()
    return api_tree()


@app.post("/api/notes", tags=["notes"], status_code=201)
def create_note(payload: CreateNoteRequest) -> Dict[str, Any]:
    ws = get_workspace()
    path = ws.create_note(_resolve_folder(payload.folder), payload.name)
    content = ws.session.load_note(path)

    return {
        "path": _relative_to_notes_root(path),
        "name": path.rsplit("/", 1)[-1],
        "content": content,
    }


@app.post("/api/folders", tags=["notes"], status_code=201)
def create_folder(payload: CreateFolderRequest) -> Dict[str, Any]:
    path = get_workspace().create_folder(_resolve_folder(payload.parent), payload.name)

    return {
        "path": _relative_to_notes_root(path),
        "name": path.rsplit("/", 1)[-1],
    }


@app.delete("/api/items/{item_path:path}", tags=["notes"])
def delete_item(item_path: str) -> Dict[str, Any]:
    get_workspace().delete_item(_resolve_relative_path(item_path))

    return {
        "path": item_path,
        "deleted": True,
    }


@app.post("/api/items/rename", tags=["notes"])
def rename_item(payload: RenameRequest) -> Dict[str, Any]:
    new_path = get_workspace().rename_item(_resolve_relative_path(payload.path), payload.newName)

    return {
        "path": _relative_to_notes_root(new_path),
        "name": new_path.rsplit("/", 1)[-1],
    }


@app.post("/api/items/move", tags=["notes"])
def move_item(payload: MoveRequest) -> Dict[str, Any]:
    ws = get_workspace()
    new_path = ws.move_item(_resolve_relative_path(payload.path), _resolve_folder(payload.targetFolder))

    return {
        "path": _relative_to_notes_root(new_path),
        "name": new_path.rsplit("/", 1)[-1],
    }


@app.post("/api/daily", tags=["notes"])
def daily_note(payload: Optional[DailyNoteRequest] = None) -> Dict[str, Any]:
    ws = get_workspace()
    daily = ws.open_daily_note(payload.day if payload else None)
    content = ws.session.load_note(daily.path)

    return {
        "path": _relative_to_notes_root(daily.path),
        "isNew": daily.isNew,
        "content": content,
    }


async def _read_upload(file: UploadFile) -> bytes:
    raw = await file.read()
    size = len(raw)
    if size == 0:
        raise HTTPException(status_code=400, detail="Empty upload")

    if size > DEFAULT_MAX_UPLOAD_BYTES:
        raise HTTPException(
            status_code=413,
            detail=f"Upload is too large ({size} bytes); maximum allowed is {DEFAULT_MAX_UPLOAD_BYTES} bytes",
        )

    return raw


@app.post("/api/images", tags=["files"], response_model=UploadResponse)
async def upload_image(file: UploadFile = File(...)) -> UploadResponse:
    content_type = (file.content_type or "").lower()
    filename = file.filename or "pasted-image.png"
    suffix = Path(filename).suffix.lower()

    if suffix not in IMAGE_EXTENSIONS and not content_type.startswith("image/"):
        raise HTTPException(status_code=400, detail="Unsupported image type")

    if suffix not in IMAGE_EXTENSIONS:
        filename = f"{filename}{mimetypes.guess_extension(content_type) or '.png'}"

    raw = await _read_upload(file)
    rel_path = get_workspace().save_image(raw, filename)
    alt = Path(rel_path).stem

    return UploadResponse(path=rel_path, markdown=f"![{alt}]({quote(rel_path, safe='/')})", size=len(raw))


@app.post("/api/attachments", tags=["files"], response_model=UploadResponse)
async def upload_attachment(file: UploadFile = File(...)) -> UploadResponse:
    raw = await _read_upload(file)
    rel_path = get_workspace().save_attachment(raw, file.filename or "attachment")
    label = Path(rel_path).name

    return UploadResponse(path=rel_path, markdown=f"[{label}]({quote(rel_path, safe='/')})", size=len(raw))


@app.get("/files/{file_rel_path:path}", tags=["files"])
def get_file(file_rel_path: str) -> FileResponse:
    file_path = Path(_resolve_relative_path(file_rel_path))

    if not file_path.is_file():
        raise HTTPException(status_code=404, detail="File not found")

    top_folder = _validate_relative_path(file_rel_path).split("/", 1)[0]
    if top_folder not in (IMAGES_FOLDER_NAME, ATTACHMENTS_FOLDER_NAME) and file_path.suffix.lower() not in IMAGE_EXTENSIONS:
        raise HTTPException(status_code=404, detail="Unsupported file type")

    content_type, _ = mimetypes.guess_type(str(file_path))
    return FileResponse(file_path, media_type=content_type or "application/octet-stream")


def _session_payload() -> Dict[str, Any]:
    session = get_workspace().session
    path = session.current_path

    return {
        "path": _relative_to_notes_root(path) if path is not None else None,
        "content": session.content,
        "state": session.state.value,
        "isDirty": session.is_dirty,
    }


@app.get("/api/session", tags=["session"])
def get_session() -> Dict[str, Any]:
    return _session_payload()


@app.post("/api/session/open", tags=["session"])
def open_note(payload: OpenNoteRequest) -> Dict[str, Any]:
    get_workspace().session.load_note(_resolve_relative_path(payload.path))
    return _session_payload()


@app.put("/api/session/content", tags=["session"])
def put_session_content(payload: NoteContent) -> Dict[str, Any]:
    session = get_workspace().session
    if session.current_path is None:
        raise HTTPException(status_code=409, detail="No note is open")

    session.set_content(payload.content)
    return _session_payload()


@app.post("/api/session/save", tags=["session"])
def save_session() -> Dict[str, Any]:
    saved = get_workspace().session.save_note()
    return {**_session_payload(), "saved": saved}


@app.post("/api/session/close", tags=["session"])
def close_session() -> Dict[str, Any]:
    get_workspace().session.close()
    return _session_payload()


@app.get("/api/notes/{note_path:path}", tags=["notes"])
def get_note(note_path: str) -> Dict[str, Any]:
    ws = get_workspace()
    path = _resolve_relative_path(note_path)

    if ws.session.current_path == path:
        content = ws.session.content
    else:
        if not ws.storage.exists(path):
            raise NotFoundError("Note not found")
        try:
            content = ws.storage.read_text(path)
        except (OSError, UnicodeDecodeError) as exc:
            raise StorageError(f"Failed to read note: {exc}") from exc

    return {
        "path": _relative_to_notes_root(path),
        "name": note_title(path.rsplit("/", 1)[-1]),
        "content": content,
        "html": _render_markdown_html(content),
        "headings": [heading.model_dump() for heading in extract_headings(content)],
        "stats": word_stats(content).model_dump(),
    }


@app.get("/api/search", tags=["search"])
def search_notes(q: str) -> Dict[str, Any]:
    ws = get_workspace()
    if not q.strip():
        ws.clear_search()
        return {"query": q, "results": [], "generation": ws.search_results.generation, "current": True}
    if len(q) > SEARCH_MAX_QUERY_LENGTH:
        raise HTTPException(status_code=400, detail="Query too long")

    token, results, current = ws.search(q)

    return {
        "query": q,
        "results": [_with_relative_path(result) for result in results],
        "generation": token,
        "current": current,
    }


@app.get("/api/backlinks", tags=["search"])
def backlinks(name: str) -> Dict[str, Any]:
    token, found, current = get_workspace().find_backlinks(name)

    return {
        "name": name,
        "backlinks": [_with_relative_path(backlink) for backlink in found],
        "generation": token,
        "current": current,
    }


@app.get("/api/tags", tags=["search"])
def tags() -> Dict[str, Any]:
    token, found, current = get_workspace().scan_tags()

    return {
        "tags": [tag.model_dump() for tag in found],
        "generation": token,
        "current": current,
    }


@app.get("/api/wikilinks/{name}", tags=["search"])
def resolve_wikilink(name: str) -> Dict[str, Any]:
    node = get_workspace().resolve_wikilink(name)
    if node is None:
        raise NotFoundError(f'Note "{name}" not found. Create it first.')

    return {"name": name, "path": _relative_to_notes_root(node.path)}


@app.post("/api/favorites/toggle", tags=["notes"])
def toggle_favorite(payload: FavoriteRequest) -> Dict[str, Any]:
    path = _resolve_relative_path(payload.path)
    is_favorite = get_workspace().toggle_favorite(path)

    return {"path": _relative_to_notes_root(path), "isFavorite": is_favorite}


@app.get("/api/favorites", tags=["notes"])
def favorites() -> Dict[str, Any]:
    return {"nodes": [_node_payload(node) for node in get_workspace().favorite_notes()]}


@app.get("/api/recents", tags=["notes"])
def recents() -> Dict[str, Any]:
    return {"nodes": [_node_payload(node) for node in get_workspace().recent_notes()]}


@app.get("/api/settings", tags=["settings"])
def get_settings() -> Dict[str, Any]:
    settings = load_settings(get_config().settings_path)
    return {"settings": settings.model_dump()}


@app.put("/api/settings", tags=["settings"])
def update_settings(payload: SettingsUpdate) -> Dict[str, Any]:
    cfg = get_config()
    current = load_settings(cfg.settings_path)
    merged_data = {**current.model_dump(), **payload.model_dump(exclude_none=True)}
    settings = AppSettings.model_validate(merged_data)
    save_settings(cfg.settings_path, settings)

    get_workspace().session.autosave_delay = settings.autoSaveDelayMs / 1000
    return {"settings": settings.model_dump()}


@app.put("/api/settings/notes-folder", tags=["settings"])
def set_notes_folder(payload: NotesFolderRequest) -> Dict[str, Any]:
    folder = Path(payload.path.strip()).expanduser()
    if not folder.is_absolute():
        raise ValidationError("Notes folder must be an absolute path")
    if not folder.is_dir():
        raise NotFoundError("Notes folder not found")

    cfg = get_config()
    current = load_settings(cfg.settings_path)
    settings = current.model_copy(update={"notesFolder": str(folder.resolve())})
    save_settings(cfg.settings_path, settings)

    get_workspace().set_root(folder.resolve())
    logger.info("notes folder selected path=%s", settings.notesFolder)
    return {"settings": settings.model_dump(), **api_tree()}


if __name__ == "__main__":  # pragma: no cover - manual/dev entrypoint
    # This allows `python main.py` in addition to `uvicorn main:app`.
    import uvicorn

    uvicorn.run(
        "main:app",
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "8000")),
        reload=os.getenv("UVICORN_RELOAD", "true").lower() == "true",
    )
