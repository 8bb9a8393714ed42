"""Storage contract used by the notes repository.

The repository never touches the filesystem directly; it goes through an
object implementing ``NotesStorage``. ``LocalStorage`` is the implementation
used by the application, backed by the local filesystem. All paths are
absolute strings using ``/`` separators.
"""
from __future__ import annotations

import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import List, Protocol, runtime_checkable


@dataclass(frozen=True)
class DirEntry:
    name: str
    is_directory: bool


@runtime_checkable
class NotesStorage(Protocol):
    """Primitive file operations. Failures raise ``OSError``."""

    def list_entries(self, path: str) -> List[DirEntry]:
        ...

    def read_text(self, path: str) -> str:
        ...

    def write_text(self, path: str, content: str) -> None:
        ...

    def read_binary(self, path: str) -> bytes:
        ...

    def write_binary(self, path: str, data: bytes) -> None:
        ...

    def make_dir(self, path: str) -> None:
        ...

    def remove(self, path: str, recursive: bool = False) -> None:
        ...

    def rename(self, old_path: str, new_path: str) -> None:
        ...

    def exists(self, path: str) -> bool:
        ...


class LocalStorage:
    """``NotesStorage`` backed by the local filesystem."""

    def list_entries(self, path: str) -> List[DirEntry]:
        return [DirEntry(name=child.name, is_directory=child.is_dir()) for child in Path(path).iterdir()]

    def read_text(self, path: str) -> str:
        return Path(path).read_text(encoding="utf8")

    def write_text(self, path: str, content: str) -> None:
        Path(path).write_text(content, encoding="utf8")

    def read_binary(self, path: str) -> bytes:
        return Path(path).read_bytes()

    def write_binary(self, path: str, data: bytes) -> None:
        Path(path).write_bytes(data)

    def make_dir(self, path: str) -> None:
        Path(path).mkdir()

    def remove(self, path: str, recursive: bool = False) -> None:
        target = Path(path)
        if target.is_dir() and not target.is_symlink():
            if recursive:
                shutil.rmtree(target)
            else:
                target.rmdir()
        else:
            target.unlink()

    def rename(self, old_path: str, new_path: str) -> None:
        Path(old_path).rename(new_path)

    def exists(self, path: str) -> bool:
        return Path(path).exists()


def join_path(parent: str, name: str) -> str:
    return f"{parent.rstrip('/')}/{name}"


def parent_path(path: str) -> str:
    return path[: path.rfind("/")]


def base_name(path: str) -> str:
    return path[path.rfind("/") + 1 :]
