"""Configuration for the notes app.

``AppConfig`` covers paths resolved from the environment once at startup:

- NOTES_ROOT: default notes folder. Relative values resolve against the
  application directory; the default is ``<app>/notes``.
- NOTES_APP_DATA_DIR: where ``settings.json`` and ``notes-meta.json`` live;
  the default is ``<app>/data``.

``AppSettings`` is the user-editable part, persisted as JSON. When it names a
``notesFolder`` that folder replaces NOTES_ROOT.
"""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, conint


APP_ROOT = Path(__file__).resolve().parent

logger = logging.getLogger("plain_notes")


def _resolve_dir(env_name: str, default_name: str) -> Path:
    env_value = os.getenv(env_name)

    if env_value:
        candidate = Path(env_value)
        if not candidate.is_absolute():
            candidate = (APP_ROOT / candidate).resolve()
    else:
        candidate = (APP_ROOT / default_name).resolve()

    candidate.mkdir(parents=True, exist_ok=True)
    return candidate


class AppConfig:
    def __init__(self) -> None:
        self.default_notes_root = _resolve_dir("NOTES_ROOT", "notes")
        self.data_dir = _resolve_dir("NOTES_APP_DATA_DIR", "data")
        self.settings_path = self.data_dir / "settings.json"
        self.meta_path = self.data_dir / "notes-meta.json"


class AppSettings(BaseModel):
    theme: Literal["light", "dark", "system"] = "system"
    viewMode: Literal["split", "tabs"] = "split"
    notesFolder: Optional[str] = None
    autoSaveDelayMs: conint(ge=100, le=60000) = 2000

    model_config = ConfigDict(extra="ignore")


DEFAULT_SETTINGS = AppSettings()


def load_settings(path: Path) -> AppSettings:
    if not path.is_file():
        return DEFAULT_SETTINGS

    try:
        raw = path.read_text(encoding="utf8")
    except OSError:  # pragma: no cover - defensive fallback
        return DEFAULT_SETTINGS

    try:
        data = json.loads(raw)
    except ValueError:
        logger.warning("ignoring unparsable settings file path=%s", path)
        return DEFAULT_SETTINGS

    try:
        return AppSettings.model_validate(data)
    except Exception:  # pragma: no cover - defensive fallback
        return DEFAULT_SETTINGS


def save_settings(path: Path, settings: AppSettings) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    data = settings.model_dump(mode="json")
    path.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf8")


def resolve_notes_root(config: AppConfig, settings: AppSettings) -> Path:
    if settings.notesFolder:
        folder = Path(settings.notesFolder)
        if folder.is_dir():
            return folder.resolve()
        logger.warning("configured notes folder is missing path=%s", folder)
    return config.default_notes_root
