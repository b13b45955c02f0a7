"""Sequential multi-batch translation with aggregated progress."""

from __future__ import annotations

import logging
import math
from typing import Callable, Optional

from .errors import TranslationServiceFailure
from .providers import Translator
from .structures import (
    Batch,
    BatchedContent,
    ProgressEvent,
    ProgressPhase,
    TranslationResult,
)

logger = logging.getLogger(__name__)

ProgressListener = Callable[[ProgressEvent], None]


def progress_message(percent: int) -> str:
    return f"Translating... {percent}% complete"


def overall_percent(batch_index: int, batch_percent: float, total_batches: int) -> int:
    """Weight a batch-local percentage by batch position.

    ``floor(((i + 1) * p) / N)``: batches are assumed to cost about the same.
    """

    if total_batches <= 0:
        return 0
    clamped = min(100.0, max(0.0, float(batch_percent)))
    return int(math.floor(((batch_index + 1) * clamped) / total_batches))


class ProgressAggregator:
    """Turns per-batch callbacks into a non-decreasing overall percentage."""

    def __init__(self, total_batches: int) -> None:
        self.total_batches = total_batches
        self.high_water = 0

    def update(self, batch_index: int, batch_percent: float) -> ProgressEvent:
        percent = overall_percent(batch_index, batch_percent, self.total_batches)
        self.high_water = max(self.high_water, percent)
        return ProgressEvent(
            percent=self.high_water,
            phase=ProgressPhase.TRANSLATING,
            message=progress_message(self.high_water),
        )


class TranslationOrchestrator:
    """Drives batches one at a time through a :class:`Translator`.

    The run is all-or-nothing: results are buffered and returned only once
    every batch has succeeded; the first failing batch aborts the run and
    discards what earlier batches produced.
    """

    def __init__(
        self,
        translator: Translator,
        *,
        source_language: Optional[str] = None,
    ) -> None:
        self.translator = translator
        self.source_language = source_language

    async def run(
        self,
        content: BatchedContent,
        target_language: str,
        on_progress: Optional[ProgressListener] = None,
    ) -> TranslationResult:
        if content.is_empty:
            logger.info("Nothing to translate.")
            return {}

        total = len(content.batches)
        aggregator = ProgressAggregator(total)
        result: TranslationResult = {}

        for index, batch in enumerate(content.batches):

            def _report(batch_percent: float, _index: int = index) -> None:
                event = aggregator.update(_index, batch_percent)
                if on_progress is not None:
                    on_progress(event)

            mapping = await self._translate(batch, target_language, _report)
            result.update(mapping)
            logger.info(
                "Processed batch %d of %d (%d units, %d chars).",
                index + 1,
                total,
                len(batch.items),
                batch.char_count,
            )

        return result

    async def _translate(
        self,
        batch: Batch,
        target_language: str,
        report: Callable[[float], None],
    ) -> TranslationResult:
        try:
            raw = await self.translator.translate_batch(
                batch.as_mapping(),
                self.source_language,
                target_language,
                report,
            )
        except TranslationServiceFailure:
            logger.error("Batch %d failed; aborting the whole run.", batch.batch_id)
            raise
        except Exception as exc:
            logger.error("Batch %d failed; aborting the whole run.", batch.batch_id)
            raise TranslationServiceFailure(
                f"Translation of batch {batch.batch_id} failed: {exc}"
            ) from exc

        mapping: TranslationResult = {}
        for unit_id in batch.unit_ids:
            translated = raw.get(unit_id) if raw else None
            if translated is None:
                logger.warning(
                    "Translation missing for %s; leaving it untouched.", unit_id
                )
                translated = ""
            elif not isinstance(translated, str):
                raise TranslationServiceFailure(
                    f"Translation for {unit_id} is not text."
                )
            mapping[unit_id] = translated

        unexpected = set(raw or {}) - set(mapping)
        if unexpected:
            logger.debug(
                "Ignoring %d ids not present in batch %d.", len(unexpected), batch.batch_id
            )
        return mapping
