from __future__ import annotations

import re

from notes_errors import ValidationError


_RESERVED_CHARACTERS = re.compile(r'[<>:"|?*\x00-\x1f]')
_SEPARATORS = re.compile(r"[/\\]")


def is_valid_name(name: str) -> bool:
    """Return True if ``name`` is safe to use as a single file or folder name."""

    if not name or not name.strip():
        return False

    if ".." in name or "/" in name or "\\" in name:
        return False

    if name.startswith("."):
        return False

    if _RESERVED_CHARACTERS.search(name):
        return False

    return True


def sanitize_file_name(name: str) -> str:
    cleaned = name or ""

    # Removing a separator can join two dots into a new "..", so repeat
    # until nothing changes.
    while True:
        previous = cleaned
        cleaned = cleaned.replace("..", "")
        cleaned = _SEPARATORS.sub("", cleaned)
        cleaned = _RESERVED_CHARACTERS.sub("", cleaned)
        if cleaned == previous:
            break

    return cleaned.strip()


def clean_name(name: str) -> str:
    """Sanitize ``name`` and re-validate the result.

    Raises ``ValidationError`` when nothing usable is left, so callers can
    abort before touching storage.
    """

    sanitized = sanitize_file_name(name)
    if not sanitized:
        raise ValidationError("Name must not be empty")

    if not is_valid_name(sanitized):
        raise ValidationError(f"Invalid name: {name!r}")

    return sanitized


def is_within(path: str, root: str) -> bool:
    """Path-prefix containment: ``path`` is ``root`` or lies below it."""

    root = root.rstrip("/")
    return path == root or path.startswith(root + "/")
