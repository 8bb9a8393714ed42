from __future__ import annotations

import logging
from typing import Iterable, Iterator, List, Optional

from pydantic import BaseModel

from notes_storage import NotesStorage, join_path


NOTE_FILE_EXTENSION = ".md"
RECENT_NODES_LIMIT = 5

logger = logging.getLogger("plain_notes")


class Node(BaseModel):
    name: str
    path: str
    isDirectory: bool
    children: Optional[List["Node"]] = None
    isFavorite: bool = False


def is_note_name(name: str) -> bool:
    return name.endswith(NOTE_FILE_EXTENSION)


def note_title(name: str) -> str:
    """Return a note's display name, without the note extension."""

    if is_note_name(name):
        return name[: -len(NOTE_FILE_EXTENSION)]
    return name


def build_tree(storage: NotesStorage, root_path: str) -> List[Node]:
    """List ``root_path`` recursively into an ordered node tree.

    Hidden entries and files without the note extension are dropped.
    Directories come first, then files, each group ordered by lowercase
    name. A directory that cannot be listed contributes no children.
    """

    try:
        entries = storage.list_entries(root_path)
    except OSError as exc:
        logger.warning("failed to read directory path=%s error=%s", root_path, exc)
        return []

    nodes: List[Node] = []

    for entry in sorted(entries, key=lambda e: (not e.is_directory, e.name.lower())):
        if entry.name.startswith("."):
            continue

        path = join_path(root_path, entry.name)

        if entry.is_directory:
            nodes.append(
                Node(
                    name=entry.name,
                    path=path,
                    isDirectory=True,
                    children=build_tree(storage, path),
                )
            )
        elif is_note_name(entry.name):
            nodes.append(Node(name=entry.name, path=path, isDirectory=False))

    return nodes


def apply_favorites(nodes: List[Node], favorites: Iterable[str]) -> List[Node]:
    """Return a copy of ``nodes`` with ``isFavorite`` derived from ``favorites``."""

    favorite_set = set(favorites)

    def mark(items: List[Node]) -> List[Node]:
        return [
            node.model_copy(
                update={
                    "isFavorite": node.path in favorite_set,
                    "children": mark(node.children) if node.children is not None else None,
                }
            )
            for node in items
        ]

    return mark(nodes)


def iter_nodes(nodes: List[Node]) -> Iterator[Node]:
    for node in nodes:
        yield node
        if node.children:
            yield from iter_nodes(node.children)


def iter_notes(nodes: List[Node]) -> Iterator[Node]:
    for node in iter_nodes(nodes):
        if not node.isDirectory and is_note_name(node.path):
            yield node


def find_node(nodes: List[Node], path: str) -> Optional[Node]:
    return next((node for node in iter_nodes(nodes) if node.path == path), None)


def find_note_by_name(nodes: List[Node], name: str) -> Optional[Node]:
    """Resolve a ``[[wiki link]]`` target to the first note with that title."""

    wanted = name.lower()
    return next((node for node in iter_notes(nodes) if note_title(node.name).lower() == wanted), None)


def favorite_nodes(nodes: List[Node]) -> List[Node]:
    return [node for node in iter_nodes(nodes) if node.isFavorite]


def recent_nodes(nodes: List[Node], recent_paths: Iterable[str], limit: int = RECENT_NODES_LIMIT) -> List[Node]:
    """Nodes for the recently opened paths that still exist in the tree."""

    found: List[Node] = []
    for path in recent_paths:
        node = find_node(nodes, path)
        if node is not None:
            found.append(node)
        if len(found) >= limit:
            break
    return found
