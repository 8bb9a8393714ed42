"""The currently open note and its autosave.

Every edit records a single pending-save unit ``(path, content)`` and
restarts one debounce timer. When the timer fires, the unit is written only
if its path is still the open note; a stale unit is discarded so it can never
overwrite a note opened in the meantime. Switching notes or closing flushes
unsaved content of the previous note with the values captured at the moment
of the switch.
"""
from __future__ import annotations

import enum
import functools
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Optional

from notes_errors import StorageError
from notes_meta import MetaTracker
from notes_storage import NotesStorage
from path_guard import is_within


DEFAULT_AUTOSAVE_DELAY_SECONDS = 2.0

logger = logging.getLogger("plain_notes")

TimerFactory = Callable[[float, Callable[[], None]], Any]


class SessionState(str, enum.Enum):
    EMPTY = "empty"
    LOADED = "loaded"
    DIRTY = "dirty"
    SAVING = "saving"


@dataclass(frozen=True)
class PendingSave:
    path: str
    content: str


class NoteSession:
    def __init__(
        self,
        storage: NotesStorage,
        tracker: MetaTracker,
        *,
        autosave_delay: float = DEFAULT_AUTOSAVE_DELAY_SECONDS,
        timer_factory: TimerFactory = threading.Timer,
    ) -> None:
        self.storage = storage
        self.tracker = tracker
        self.autosave_delay = autosave_delay
        self._timer_factory = timer_factory

        self.current_path: Optional[str] = None
        self.content = ""
        self._dirty = False
        self._saving = False
        self._pending: Optional[PendingSave] = None
        self._timer: Any = None
        self._lock = threading.RLock()

    @property
    def state(self) -> SessionState:
        if self.current_path is None:
            return SessionState.EMPTY
        if self._saving:
            return SessionState.SAVING
        if self._dirty:
            return SessionState.DIRTY
        return SessionState.LOADED

    @property
    def is_dirty(self) -> bool:
        return self._dirty

    def load_note(self, path: str) -> str:
        """Open ``path``, flushing unsaved edits of the previous note first."""

        self.close()

        try:
            content = self.storage.read_text(path)
        except (OSError, UnicodeDecodeError) as exc:
            raise StorageError(f"Failed to load note: {exc}") from exc

        with self._lock:
            self.current_path = path
            self.content = content
            self._dirty = False

        try:
            self.tracker.push_recent(path)
        except OSError as exc:
            logger.warning("failed to persist recent notes error=%s", exc)

        logger.info("note loaded path=%s", path)
        return content

    def set_content(self, text: str) -> None:
        with self._lock:
            self.content = text
            if self.current_path is None:
                return

            self._dirty = True
            self._pending = PendingSave(path=self.current_path, content=text)
            self._restart_timer(self._pending)

    def save_note(self) -> bool:
        """Write the open note if it has unsaved edits. Returns True if it wrote."""

        with self._lock:
            if self.current_path is None or not self._dirty:
                return False

            self._cancel_timer()
            pending = PendingSave(path=self.current_path, content=self.content)
            self._pending = None

            try:
                self.storage.write_text(pending.path, pending.content)
            except OSError as exc:
                raise StorageError(f"Failed to save note: {exc}") from exc

            self._dirty = False

        logger.info("note saved path=%s", pending.path)
        return True

    def close(self) -> None:
        """Flush unsaved edits and forget the open note."""

        with self._lock:
            unsaved = self._detach()
            self.current_path = None
            self.content = ""
            self._dirty = False

        self._flush(unsaved)

    def discard(self) -> None:
        """Forget the open note without writing, e.g. after it was deleted."""

        with self._lock:
            self._cancel_timer()
            self._pending = None
            self.current_path = None
            self.content = ""
            self._dirty = False

    def relocate(self, old_path: str, new_path: str) -> None:
        """Follow the open note when it, or a folder above it, was renamed or moved."""

        with self._lock:
            if self.current_path is None or not is_within(self.current_path, old_path):
                return

            moved = new_path + self.current_path[len(old_path) :]
            self.current_path = moved
            if self._pending is not None:
                self._pending = PendingSave(path=moved, content=self._pending.content)
                self._restart_timer(self._pending)

    def _detach(self) -> Optional[PendingSave]:
        """Stop the timer and capture unsaved content of the open note."""

        self._cancel_timer()
        self._pending = None
        if self.current_path is not None and self._dirty:
            return PendingSave(path=self.current_path, content=self.content)
        return None

    def _flush(self, unsaved: Optional[PendingSave]) -> None:
        if unsaved is None:
            return

        try:
            self.storage.write_text(unsaved.path, unsaved.content)
        except OSError:
            logger.exception("failed to save note on switch path=%s", unsaved.path)
            return

        logger.info("note flushed path=%s", unsaved.path)

    def _restart_timer(self, pending: PendingSave) -> None:
        self._cancel_timer()
        timer = self._timer_factory(self.autosave_delay, functools.partial(self._autosave, pending))
        timer.daemon = True
        timer.start()
        self._timer = timer

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _autosave(self, pending: PendingSave) -> None:
        # The write stays under the lock; writes to a note never overlap.
        with self._lock:
            # A superseded unit or one for a note that is no longer open is dropped.
            if pending is not self._pending or pending.path != self.current_path:
                logger.debug("discarding stale autosave")
                return

            self._saving = True
            try:
                self.storage.write_text(pending.path, pending.content)
            except OSError:
                logger.exception("autosave failed path=%s", pending.path)
                return
            finally:
                self._saving = False

            self._pending = None
            self._dirty = False

        logger.debug("note autosaved path=%s", pending.path)
