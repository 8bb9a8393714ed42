"""Test doubles for the storage contract and the autosave timer."""
from __future__ import annotations

from typing import Any, Callable, List, Optional, Set, Tuple

from notes_storage import DirEntry, LocalStorage


class RecordingStorage(LocalStorage):
    """LocalStorage that records every call and can fail selected paths."""

    def __init__(self) -> None:
        self.calls: List[Tuple[str, str]] = []
        self.fail_reads: Set[str] = set()
        self.fail_lists: Set[str] = set()
        self.on_read: Optional[Callable[[str], None]] = None

    def writes(self) -> List[Tuple[str, str]]:
        return [call for call in self.calls if call[0] in {"write_text", "write_binary", "make_dir", "remove", "rename"}]

    def list_entries(self, path: str) -> List[DirEntry]:
        self.calls.append(("list_entries", path))
        if path in self.fail_lists:
            raise PermissionError(f"cannot list {path}")
        return super().list_entries(path)

    def read_text(self, path: str) -> str:
        self.calls.append(("read_text", path))
        if self.on_read is not None:
            self.on_read(path)
        if path in self.fail_reads:
            raise PermissionError(f"cannot read {path}")
        return super().read_text(path)

    def write_text(self, path: str, content: str) -> None:
        self.calls.append(("write_text", path))
        super().write_text(path, content)

    def write_binary(self, path: str, data: bytes) -> None:
        self.calls.append(("write_binary", path))
        super().write_binary(path, data)

    def make_dir(self, path: str) -> None:
        self.calls.append(("make_dir", path))
        super().make_dir(path)

    def remove(self, path: str, recursive: bool = False) -> None:
        self.calls.append(("remove", path))
        super().remove(path, recursive=recursive)

    def rename(self, old_path: str, new_path: str) -> None:
        self.calls.append(("rename", old_path))
        super().rename(old_path, new_path)

    def exists(self, path: str) -> bool:
        self.calls.append(("exists", path))
        return super().exists(path)


class ManualTimer:
    def __init__(self, interval: float, function: Callable[[], None]) -> None:
        self.interval = interval
        self.function = function
        self.started = False
        self.cancelled = False
        self.daemon: Any = None

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self, force: bool = False) -> None:
        """Run the callback; ``force`` simulates a timer that elapsed before it was cancelled."""

        if force or not self.cancelled:
            self.function()


class ManualTimers:
    """Timer factory collecting the timers it creates."""

    def __init__(self) -> None:
        self.created: List[ManualTimer] = []

    def __call__(self, interval: float, function: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(interval, function)
        self.created.append(timer)
        return timer

    @property
    def last(self) -> ManualTimer:
        return self.created[-1]
