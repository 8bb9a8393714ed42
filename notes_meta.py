from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import List

from pydantic import BaseModel, ConfigDict

from path_guard import is_within


RECENT_NOTES_LIMIT = 10

logger = logging.getLogger("plain_notes")


class NotesMeta(BaseModel):
    favorites: List[str] = []
    recentNotes: List[str] = []

    model_config = ConfigDict(extra="ignore")


def load_meta(path: Path) -> NotesMeta:
    if not path.is_file():
        return NotesMeta()

    try:
        raw = path.read_text(encoding="utf8")
    except OSError as exc:
        logger.warning("failed to read notes metadata path=%s error=%s", path, exc)
        return NotesMeta()

    try:
        data = json.loads(raw)
    except ValueError:
        logger.warning("ignoring unparsable notes metadata path=%s", path)
        return NotesMeta()

    try:
        return NotesMeta.model_validate(data)
    except Exception:  # pragma: no cover - defensive fallback
        return NotesMeta()


def save_meta(path: Path, meta: NotesMeta) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    data = meta.model_dump(mode="json")
    path.write_text(json.dumps(data, indent=2), encoding="utf8")


def _relocated(path: str, old_path: str, new_path: str) -> str:
    if is_within(path, old_path):
        return new_path + path[len(old_path) :]
    return path


class MetaTracker:
    """Favorite and recently opened note paths, persisted as one JSON document."""

    def __init__(self, meta_path: Path) -> None:
        self.meta_path = meta_path
        self._meta = NotesMeta()
        self._lock = threading.Lock()

    @property
    def favorites(self) -> List[str]:
        return list(self._meta.favorites)

    @property
    def recent_notes(self) -> List[str]:
        return list(self._meta.recentNotes)

    def load(self) -> None:
        meta = load_meta(self.meta_path)
        meta.recentNotes = meta.recentNotes[:RECENT_NOTES_LIMIT]
        with self._lock:
            self._meta = meta

    def _store(self, meta: NotesMeta) -> None:
        save_meta(self.meta_path, meta)
        self._meta = meta

    def is_favorite(self, path: str) -> bool:
        return path in self._meta.favorites

    def toggle_favorite(self, path: str) -> bool:
        """Flip ``path`` in the favorites set and return its new state."""

        with self._lock:
            favorites = list(self._meta.favorites)
            if path in favorites:
                favorites.remove(path)
                is_favorite = False
            else:
                favorites.append(path)
                is_favorite = True
            self._store(self._meta.model_copy(update={"favorites": favorites}))

        logger.info("favorite toggled path=%s favorite=%s", path, is_favorite)
        return is_favorite

    def push_recent(self, path: str) -> List[str]:
        with self._lock:
            recents = [path] + [p for p in self._meta.recentNotes if p != path]
            recents = recents[:RECENT_NOTES_LIMIT]
            self._store(self._meta.model_copy(update={"recentNotes": recents}))
        return recents

    def forget(self, path: str) -> None:
        """Drop ``path`` and anything below it from favorites and recents."""

        with self._lock:
            favorites = [p for p in self._meta.favorites if not is_within(p, path)]
            recents = [p for p in self._meta.recentNotes if not is_within(p, path)]
            if favorites != self._meta.favorites or recents != self._meta.recentNotes:
                self._store(NotesMeta(favorites=favorites, recentNotes=recents))

    def relocate(self, old_path: str, new_path: str) -> None:
        """Point entries at ``old_path`` (or below it) at ``new_path`` instead."""

        with self._lock:
            favorites = [_relocated(p, old_path, new_path) for p in self._meta.favorites]
            recents = [_relocated(p, old_path, new_path) for p in self._meta.recentNotes]
            if favorites != self._meta.favorites or recents != self._meta.recentNotes:
                self._store(NotesMeta(favorites=favorites, recentNotes=recents))
