"""Mutating operations on the notes folder.

Each function validates its inputs before touching storage, performs one
storage operation (or a short fixed sequence) and returns the new canonical
path. Failures raise a ``NotesError``; ``OSError`` from the storage layer is
converted to ``StorageError`` here so it never leaks to callers. None of these
functions touch the in-memory tree: callers rebuild it after a success.
"""
from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from pydantic import BaseModel

from notes_errors import ConflictError, NotFoundError, SelfMoveError, StorageError, ValidationError
from notes_storage import NotesStorage, base_name, join_path, parent_path
from notes_tree import NOTE_FILE_EXTENSION, note_title
from path_guard import clean_name, is_valid_name, is_within, sanitize_file_name


DAILY_FOLDER_NAME = "Daily"
IMAGES_FOLDER_NAME = "assets"
ATTACHMENTS_FOLDER_NAME = "attachments"

DAILY_NOTE_TEMPLATE = """# {heading}

## Tasks
- [ ]

## Notes


## Journal

"""

logger = logging.getLogger("plain_notes")


class DailyNote(BaseModel):
    path: str
    isNew: bool


def create_note(storage: NotesStorage, folder: str, name: str) -> str:
    safe_name = clean_name(name)
    file_name = safe_name if safe_name.endswith(NOTE_FILE_EXTENSION) else f"{safe_name}{NOTE_FILE_EXTENSION}"
    path = join_path(folder, file_name)

    try:
        if storage.exists(path):
            raise ConflictError(f"Note already exists: {file_name}")
        storage.write_text(path, f"# {note_title(file_name)}\n\n")
    except OSError as exc:
        raise StorageError(f"Failed to create note {file_name}: {exc}") from exc

    logger.info("note created path=%s", path)
    return path


def create_folder(storage: NotesStorage, parent: str, name: str) -> str:
    safe_name = clean_name(name)
    path = join_path(parent, safe_name)

    try:
        if storage.exists(path):
            raise ConflictError(f"Folder already exists: {safe_name}")
        storage.make_dir(path)
    except OSError as exc:
        raise StorageError(f"Failed to create folder {safe_name}: {exc}") from exc

    logger.info("folder created path=%s", path)
    return path


def delete_item(storage: NotesStorage, path: str) -> None:
    """Remove a note or a folder with everything inside it."""

    try:
        if not storage.exists(path):
            raise NotFoundError(f"Item not found: {base_name(path)}")
        storage.remove(path, recursive=True)
    except OSError as exc:
        raise StorageError(f"Failed to delete {base_name(path)}: {exc}") from exc

    logger.info("item deleted path=%s", path)


def rename_item(storage: NotesStorage, old_path: str, new_name: str) -> str:
    safe_name = clean_name(new_name)
    new_path = join_path(parent_path(old_path), safe_name)

    if new_path == old_path:
        return old_path

    try:
        if not storage.exists(old_path):
            raise NotFoundError(f"Item not found: {base_name(old_path)}")
        if storage.exists(new_path):
            raise ConflictError(f"An item named {safe_name} already exists")
        storage.rename(old_path, new_path)
    except OSError as exc:
        raise StorageError(f"Failed to rename {base_name(old_path)}: {exc}") from exc

    logger.info("item renamed old=%s new=%s", old_path, new_path)
    return new_path


def move_item(storage: NotesStorage, source_path: str, target_folder: str) -> str:
    item_name = base_name(source_path)
    if not is_valid_name(item_name):
        raise ValidationError(f"Invalid item name: {item_name!r}")

    if is_within(target_folder, source_path):
        raise SelfMoveError("Cannot move an item into itself or its subfolder")

    new_path = join_path(target_folder, item_name)
    if new_path == source_path:
        raise ConflictError("Item is already in this folder")

    try:
        if not storage.exists(source_path):
            raise NotFoundError(f"Item not found: {item_name}")
        if storage.exists(new_path):
            raise ConflictError(f"An item named {item_name} already exists in the target folder")
        storage.rename(source_path, new_path)
    except OSError as exc:
        raise StorageError(f"Failed to move {item_name}: {exc}") from exc

    logger.info("item moved old=%s new=%s", source_path, new_path)
    return new_path


def _daily_heading(day: date) -> str:
    return f"{day:%A}, {day:%B} {day.day}, {day.year}"


def open_daily_note(storage: NotesStorage, root: str, day: Optional[date] = None) -> DailyNote:
    """Return the daily note for ``day`` (default today), creating it if needed."""

    day = day or date.today()
    folder = join_path(root, DAILY_FOLDER_NAME)
    path = join_path(folder, f"{day.isoformat()}{NOTE_FILE_EXTENSION}")

    try:
        if not storage.exists(folder):
            storage.make_dir(folder)

        if storage.exists(path):
            return DailyNote(path=path, isNew=False)

        storage.write_text(path, DAILY_NOTE_TEMPLATE.format(heading=_daily_heading(day)))
    except OSError as exc:
        raise StorageError(f"Failed to open daily note for {day.isoformat()}: {exc}") from exc

    logger.info("daily note created path=%s", path)
    return DailyNote(path=path, isNew=True)


def _split_extension(file_name: str) -> tuple[str, str]:
    dot = file_name.rfind(".")
    if dot > 0:
        return file_name[:dot], file_name[dot:]
    return file_name, ""


def _save_binary(storage: NotesStorage, root: str, folder_name: str, data: bytes, file_name: str) -> str:
    safe_name = sanitize_file_name(file_name)
    if not safe_name:
        raise ValidationError(f"Invalid file name: {file_name!r}")

    folder = join_path(root, folder_name)
    stem, extension = _split_extension(safe_name)

    try:
        if not storage.exists(folder):
            storage.make_dir(folder)

        final_name = safe_name
        counter = 1
        while storage.exists(join_path(folder, final_name)):
            final_name = f"{stem}-{counter}{extension}"
            counter += 1

        storage.write_binary(join_path(folder, final_name), data)
    except OSError as exc:
        raise StorageError(f"Failed to save {safe_name}: {exc}") from exc

    relative = f"{folder_name}/{final_name}"
    logger.info("file saved path=%s size=%s", relative, len(data))
    return relative


def save_image(storage: NotesStorage, root: str, data: bytes, file_name: str) -> str:
    """Store image bytes under ``assets/`` and return the root-relative path."""

    return _save_binary(storage, root, IMAGES_FOLDER_NAME, data, file_name)


def save_attachment(storage: NotesStorage, root: str, data: bytes, file_name: str) -> str:
    """Store arbitrary bytes under ``attachments/`` and return the root-relative path."""

    return _save_binary(storage, root, ATTACHMENTS_FOLDER_NAME, data, file_name)
