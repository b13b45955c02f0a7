"""High-level wiring of the three contexts for one document."""

from __future__ import annotations

import logging
import pathlib
import time
from dataclasses import dataclass, field
from typing import List, Optional

from .background import BackgroundService
from .batching import DEFAULT_BATCH_SIZE
from .bus import DEFAULT_REQUEST_TIMEOUT, MessageBus
from .controller import SessionController, SessionPhase, SessionView
from .document import HtmlDocument
from .errors import OverwriteRefusedError, PagewarpError
from .page import PageAgent
from .preferences import PreferenceStore
from .providers import Translator
from .translator import TranslationOrchestrator

logger = logging.getLogger(__name__)

DEFAULT_TAB_ID = 1


@dataclass
class TranslationSummary:
    """Report returned after processing a document."""

    target_language: str
    source_language: Optional[str]
    total_units: int
    total_batches: int
    applied_units: int
    skipped_units: int
    status: str
    succeeded: bool
    elapsed_seconds: float
    input_path: Optional[pathlib.Path] = None
    output_path: Optional[pathlib.Path] = None
    banner_messages: List[str] = field(default_factory=list)


async def translate_document(
    document: HtmlDocument,
    *,
    target_language: str,
    translator: Translator,
    preferences: PreferenceStore,
    source_language: Optional[str] = None,
    batch_size: int = DEFAULT_BATCH_SIZE,
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
    view: Optional[SessionView] = None,
    tab_id: int = DEFAULT_TAB_ID,
) -> TranslationSummary:
    """Run one scrape, translate and apply session against ``document``."""

    start_time = time.time()
    bus = MessageBus(request_timeout=request_timeout)
    background = BackgroundService(
        bus, TranslationOrchestrator(translator, source_language=source_language)
    )
    page = PageAgent(bus, tab_id, document, batch_size=batch_size)
    controller = SessionController(bus, preferences, view)

    background.attach()
    page.attach()
    controller.attach()
    try:
        if await controller.start(tab_id, target_language):
            await controller.wait()
        await background.wait_idle()
        await bus.drain()
    finally:
        await bus.close()

    total_units, total_batches = page.last_scrape
    report = page.last_report or {}
    applied = int(report.get("applied", 0))
    return TranslationSummary(
        target_language=target_language,
        source_language=source_language,
        total_units=total_units,
        total_batches=total_batches,
        applied_units=applied,
        skipped_units=total_units - applied,
        status=controller.status,
        succeeded=controller.phase is SessionPhase.COMPLETED,
        elapsed_seconds=time.time() - start_time,
        input_path=document.source_path,
        banner_messages=[message.text for message in page.banner.history],
    )


def validate_paths(
    input_path: pathlib.Path,
    output_path: pathlib.Path,
    force_overwrite: bool,
) -> None:
    """Validate input/output path combinations and overwrite policy."""

    if not input_path.exists():
        raise FileNotFoundError(
            "Input file not found. Please provide a readable .html file."
        )
    if not input_path.is_file():
        raise PagewarpError("Input path must be a file.")

    if input_path.resolve() == output_path.resolve():
        raise OverwriteRefusedError(
            "The output path matches the input document. Refusing to overwrite the source file."
        )

    if output_path.exists() and not force_overwrite:
        raise OverwriteRefusedError(
            "The output file already exists; rename it or use the overwrite flag."
        )
