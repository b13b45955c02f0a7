"""Extraction sessions: the id-to-node arena shared by extractor and applier."""

from __future__ import annotations

import logging
import uuid
import weakref
from typing import Any, Dict, Optional

from .structures import TextUnit

logger = logging.getLogger(__name__)


class ExtractionSession:
    """Owns the ``id -> node`` mapping of one scrape/apply cycle.

    Ids are ``id-<n>``, allocated in registration order starting at zero, and
    are meaningless outside the session that issued them. Nodes are held
    weakly: the document owns them, and a node it drops stops resolving.
    """

    def __init__(self, session_id: Optional[str] = None) -> None:
        self.session_id = session_id or uuid.uuid4().hex
        self._nodes: Dict[str, "weakref.ref[Any]"] = {}
        self._next_id = 0
        self.closed = False

    def register(self, node: Any, text: str) -> TextUnit:
        unit_id = f"id-{self._next_id}"
        self._next_id += 1
        ref = weakref.ref(node)
        self._nodes[unit_id] = ref
        return TextUnit(unit_id=unit_id, text=text, node_ref=ref)

    def resolve(self, unit_id: str) -> Optional[Any]:
        ref = self._nodes.get(unit_id)
        return ref() if ref is not None else None

    def close(self) -> None:
        self._nodes.clear()
        self.closed = True

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, unit_id: object) -> bool:
        return unit_id in self._nodes


class SessionStore:
    """Holds the single live extraction session of a page context."""

    def __init__(self) -> None:
        self._current: Optional[ExtractionSession] = None

    @property
    def current(self) -> Optional[ExtractionSession]:
        return self._current

    def begin(self) -> ExtractionSession:
        """Start a new session; ids of the previous one stop resolving."""

        if self._current is not None:
            logger.debug(
                "Discarding extraction session %s with %d units.",
                self._current.session_id,
                len(self._current),
            )
            self._current.close()
        self._current = ExtractionSession()
        return self._current

    def lookup(self, session_id: Optional[str]) -> Optional[ExtractionSession]:
        """Return the live session if ``session_id`` names it.

        ``None`` matches whichever session is live.
        """

        session = self._current
        if session is None:
            return None
        if session_id is not None and session_id != session.session_id:
            return None
        return session

    def clear(self) -> None:
        if self._current is not None:
            self._current.close()
        self._current = None
