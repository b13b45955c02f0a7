"""Reapplication of translated text onto the live document."""

from __future__ import annotations

import logging
import re
from typing import Mapping, Optional, Tuple

from .document import HtmlDocument
from .session import SessionStore
from .structures import ApplyReport

logger = logging.getLogger(__name__)

_LEADING_WS = re.compile(r"^\s*")
_TRAILING_WS = re.compile(r"\s*$")


def split_whitespace(text: str) -> Tuple[str, str]:
    """Return the longest whitespace prefix and suffix of ``text``."""

    leading = _LEADING_WS.match(text).group(0)  # type: ignore[union-attr]
    if len(leading) == len(text):
        # All-whitespace content is its own prefix; do not count it twice.
        return leading, ""
    trailing = _TRAILING_WS.search(text).group(0)  # type: ignore[union-attr]
    return leading, trailing


def reattach(prefix: str, translated_core: str, suffix: str) -> str:
    return f"{prefix}{translated_core}{suffix}"


class TextApplier:
    """Writes a translation result back into the nodes of one session."""

    def __init__(self, document: HtmlDocument, store: SessionStore) -> None:
        self.document = document
        self.store = store

    def apply(
        self,
        result: Mapping[str, str],
        session_id: Optional[str] = None,
    ) -> ApplyReport:
        """Apply ``result`` and consume the matching session.

        Unknown ids, detached nodes and empty translations are skipped and
        counted, never raised. A ``session_id`` other than the live one leaves
        the live session untouched.
        """

        report = ApplyReport()
        session = self.store.lookup(session_id)
        if session is None:
            logger.info(
                "No live extraction session matches %s; %d results are stale.",
                session_id,
                len(result),
            )

        for unit_id, translated in result.items():
            if not translated:
                report.empty += 1
                continue
            node = session.resolve(unit_id) if session is not None else None
            if node is None:
                report.stale += 1
                continue
            if not self.document.contains(node):
                logger.debug("Node for %s is detached; not applied.", unit_id)
                report.detached += 1
                continue

            prefix, suffix = split_whitespace(str(node))
            self.document.replace_text(node, reattach(prefix, translated, suffix))
            report.applied += 1

        logger.info(
            "Replaced text in %d nodes (%d detached, %d stale, %d empty).",
            report.applied,
            report.detached,
            report.stale,
            report.empty,
        )
        if session is not None:
            self.store.clear()
        return report
