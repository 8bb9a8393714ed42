"""Derived views over note content: search, backlinks, tags and headings.

The scanners walk the note tree in traversal order and re-read each note
through the storage contract on every call. Notes that cannot be read are
skipped, so a scan returns partial results rather than failing.
"""
from __future__ import annotations

import logging
import math
import re
from collections import Counter
from typing import Iterator, List, Tuple

from pydantic import BaseModel

from notes_storage import NotesStorage
from notes_tree import Node, iter_notes, note_title


SEARCH_MAX_MATCHES_PER_NOTE = 3
BACKLINK_CONTEXT_MAX_LENGTH = 100
WORDS_PER_MINUTE = 200

TAG_PATTERN = re.compile(r"(?<!\S)#([A-Za-z][A-Za-z0-9_-]*)")
HEADING_PATTERN = re.compile(r"^(#{1,6})\s+(.+)$")
_HEADING_ID_STRIP = re.compile(r"[^0-9A-Za-z_\s-]")
_WHITESPACE_RUN = re.compile(r"\s+")

logger = logging.getLogger("plain_notes")


class SearchMatch(BaseModel):
    line: int
    text: str


class SearchResult(BaseModel):
    path: str
    name: str
    matches: List[SearchMatch]


class Backlink(BaseModel):
    path: str
    name: str
    context: str


class TagInfo(BaseModel):
    tag: str
    count: int


class Heading(BaseModel):
    id: str
    text: str
    level: int
    line: int


class WordStats(BaseModel):
    words: int
    characters: int
    readingTime: str


def _read_notes(storage: NotesStorage, nodes: List[Node]) -> Iterator[Tuple[Node, str]]:
    for node in iter_notes(nodes):
        try:
            content = storage.read_text(node.path)
        except (OSError, UnicodeDecodeError) as exc:
            logger.debug("skipping unreadable note path=%s error=%s", node.path, exc)
            continue
        yield node, content


def search_notes(storage: NotesStorage, nodes: List[Node], query: str) -> List[SearchResult]:
    if not query.strip():
        return []

    needle = query.lower()
    results: List[SearchResult] = []

    for node, content in _read_notes(storage, nodes):
        matches = [
            SearchMatch(line=index, text=line.strip())
            for index, line in enumerate(content.split("\n"), start=1)
            if needle in line.lower()
        ]

        if matches or needle in node.name.lower():
            results.append(
                SearchResult(
                    path=node.path,
                    name=node.name,
                    matches=matches[:SEARCH_MAX_MATCHES_PER_NOTE],
                )
            )

    return results


def find_backlinks(storage: NotesStorage, nodes: List[Node], note_name: str) -> List[Backlink]:
    """Notes containing a ``[[note_name]]`` wiki link, one entry per note."""

    pattern = re.compile(r"\[\[" + re.escape(note_name) + r"\]\]", re.IGNORECASE)
    backlinks: List[Backlink] = []

    for node, content in _read_notes(storage, nodes):
        for line in content.split("\n"):
            if pattern.search(line):
                backlinks.append(
                    Backlink(
                        path=node.path,
                        name=note_title(node.name),
                        context=line.strip()[:BACKLINK_CONTEXT_MAX_LENGTH],
                    )
                )
                break

    return backlinks


def scan_all_tags(storage: NotesStorage, nodes: List[Node]) -> List[TagInfo]:
    # Counter keeps first-seen order, and sorted() is stable, so equal
    # counts stay in discovery order.
    counts: Counter[str] = Counter()

    for _, content in _read_notes(storage, nodes):
        counts.update(match.group(1).lower() for match in TAG_PATTERN.finditer(content))

    ordered = sorted(counts.items(), key=lambda item: -item[1])
    return [TagInfo(tag=tag, count=count) for tag, count in ordered]


def heading_id(text: str) -> str:
    """Anchor slug for a heading; the preview renderer uses the same function."""

    slug = _HEADING_ID_STRIP.sub("", text.lower())
    return _WHITESPACE_RUN.sub("-", slug)


def extract_headings(content: str) -> List[Heading]:
    headings: List[Heading] = []

    for index, line in enumerate(content.split("\n"), start=1):
        match = HEADING_PATTERN.match(line)
        if not match:
            continue

        text = match.group(2).strip()
        headings.append(
            Heading(
                id=heading_id(text),
                text=text,
                level=len(match.group(1)),
                line=index,
            )
        )

    return headings


def word_stats(content: str) -> WordStats:
    text = content.strip()
    if not text:
        return WordStats(words=0, characters=0, readingTime="0 min")

    words = len(text.split())
    minutes = math.ceil(words / WORDS_PER_MINUTE)
    return WordStats(words=words, characters=len(text), readingTime=f"{minutes} min")
