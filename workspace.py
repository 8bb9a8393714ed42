"""The open notes folder: tree, note session, favorites and scan results.

``Workspace`` is created once by the application and receives its storage and
metadata tracker from the caller. Mutations go through it so the tree is
rebuilt after every successful change and the open note, favorites and
recents follow renames, moves and deletes.
"""
from __future__ import annotations

import logging
import threading
from datetime import date
from pathlib import Path
from typing import Generic, List, Optional, Tuple, TypeVar

from note_session import DEFAULT_AUTOSAVE_DELAY_SECONDS, NoteSession, TimerFactory
from notes_index import Backlink, SearchResult, TagInfo, find_backlinks, scan_all_tags, search_notes
from notes_meta import MetaTracker
from notes_mutations import (
    DailyNote,
    create_folder,
    create_note,
    delete_item,
    move_item,
    open_daily_note,
    rename_item,
    save_attachment,
    save_image,
)
from notes_storage import NotesStorage
from notes_tree import Node, apply_favorites, build_tree, favorite_nodes, find_note_by_name, recent_nodes
from path_guard import is_within


T = TypeVar("T")

logger = logging.getLogger("plain_notes")


class LatestResult(Generic[T]):
    """Keeps the result of the most recently started scan of one kind.

    ``begin`` hands out a generation token; ``publish`` stores a result only
    when no newer scan has started since that token was taken.
    """

    def __init__(self, initial: T) -> None:
        self.value = initial
        self._generation = 0
        self._lock = threading.Lock()

    @property
    def generation(self) -> int:
        return self._generation

    def begin(self) -> int:
        with self._lock:
            self._generation += 1
            return self._generation

    def publish(self, token: int, value: T) -> bool:
        with self._lock:
            if token != self._generation:
                return False
            self.value = value
            return True


class Workspace:
    def __init__(
        self,
        storage: NotesStorage,
        tracker: MetaTracker,
        root: Path,
        *,
        autosave_delay: float = DEFAULT_AUTOSAVE_DELAY_SECONDS,
        timer_factory: Optional[TimerFactory] = None,
    ) -> None:
        self.storage = storage
        self.tracker = tracker
        self.root = root.as_posix()

        self.session = NoteSession(
            storage,
            tracker,
            autosave_delay=autosave_delay,
            timer_factory=timer_factory or threading.Timer,
        )

        self.search_query = ""
        self.search_results: LatestResult[List[SearchResult]] = LatestResult([])
        self.backlinks: LatestResult[List[Backlink]] = LatestResult([])
        self.tags: LatestResult[List[TagInfo]] = LatestResult([])

        self._files: List[Node] = []
        self._lock = threading.Lock()
        self.refresh_tree()

    @property
    def files(self) -> List[Node]:
        return self._files

    def refresh_tree(self) -> List[Node]:
        tree = apply_favorites(build_tree(self.storage, self.root), self.tracker.favorites)
        with self._lock:
            self._files = tree
        return tree

    def set_root(self, root: Path) -> None:
        """Switch to another notes folder, closing the open note first."""

        self.session.close()
        self.root = root.as_posix()
        self.search_query = ""
        self.search_results.publish(self.search_results.begin(), [])
        self.backlinks.publish(self.backlinks.begin(), [])
        self.tags.publish(self.tags.begin(), [])
        self.refresh_tree()
        logger.info("notes root changed path=%s", self.root)

    def shutdown(self) -> None:
        self.session.close()

    # Mutations

    def create_note(self, folder: str, name: str) -> str:
        path = create_note(self.storage, folder, name)
        self.refresh_tree()
        return path

    def create_folder(self, parent: str, name: str) -> str:
        path = create_folder(self.storage, parent, name)
        self.refresh_tree()
        return path

    def delete_item(self, path: str) -> None:
        delete_item(self.storage, path)

        current = self.session.current_path
        if current is not None and is_within(current, path):
            self.session.discard()

        self.tracker.forget(path)
        self.refresh_tree()

    def rename_item(self, path: str, new_name: str) -> str:
        new_path = rename_item(self.storage, path, new_name)
        self._follow(path, new_path)
        return new_path

    def move_item(self, path: str, target_folder: str) -> str:
        new_path = move_item(self.storage, path, target_folder)
        self._follow(path, new_path)
        return new_path

    def _follow(self, old_path: str, new_path: str) -> None:
        if new_path != old_path:
            self.session.relocate(old_path, new_path)
            self.tracker.relocate(old_path, new_path)
        self.refresh_tree()

    def open_daily_note(self, day: Optional[date] = None) -> DailyNote:
        daily = open_daily_note(self.storage, self.root, day)
        if daily.isNew:
            self.refresh_tree()
        return daily

    def save_image(self, data: bytes, file_name: str) -> str:
        return save_image(self.storage, self.root, data, file_name)

    def save_attachment(self, data: bytes, file_name: str) -> str:
        return save_attachment(self.storage, self.root, data, file_name)

    # Favorites and recents

    def toggle_favorite(self, path: str) -> bool:
        is_favorite = self.tracker.toggle_favorite(path)
        with self._lock:
            self._files = apply_favorites(self._files, self.tracker.favorites)
        return is_favorite

    def favorite_notes(self) -> List[Node]:
        return favorite_nodes(self._files)

    def recent_notes(self) -> List[Node]:
        return recent_nodes(self._files, self.tracker.recent_notes)

    def resolve_wikilink(self, name: str) -> Optional[Node]:
        return find_note_by_name(self._files, name)

    # Scans

    def search(self, query: str) -> Tuple[int, List[SearchResult], bool]:
        """Run a search; returns (token, results, still_current)."""

        token = self.search_results.begin()
        self.search_query = query
        results = search_notes(self.storage, self._files, query)
        return token, results, self.search_results.publish(token, results)

    def clear_search(self) -> None:
        self.search_query = ""
        self.search_results.publish(self.search_results.begin(), [])

    def find_backlinks(self, note_name: str) -> Tuple[int, List[Backlink], bool]:
        token = self.backlinks.begin()
        backlinks = find_backlinks(self.storage, self._files, note_name)
        return token, backlinks, self.backlinks.publish(token, backlinks)

    def scan_tags(self) -> Tuple[int, List[TagInfo], bool]:
        token = self.tags.begin()
        tags = scan_all_tags(self.storage, self._files)
        return token, tags, self.tags.publish(token, tags)
