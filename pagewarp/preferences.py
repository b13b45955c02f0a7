"""Durable preference record for the UI context."""

from __future__ import annotations

import json
import logging
import pathlib
from typing import Any, Dict

from .structures import SessionState

logger = logging.getLogger(__name__)

DEFAULT_STATE_PATH = pathlib.Path.home() / ".pagewarp" / "state.json"


class PreferenceStore:
    """Reads and writes ``{targetLang, translationInProgress, translationStatus}``."""

    def __init__(self, path: pathlib.Path = DEFAULT_STATE_PATH) -> None:
        self.path = path

    def _read(self) -> Dict[str, Any]:
        if not self.path.is_file():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable preferences at %s: %s", self.path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def load(self) -> SessionState:
        return SessionState.from_record(self._read())

    def update(self, **fields: Any) -> SessionState:
        """Merge record keys (``targetLang=...``) into the stored record."""

        record = self._read()
        record.update(fields)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(
            json.dumps(record, ensure_ascii=False, indent=2), encoding="utf-8"
        )
        return SessionState.from_record(record)
