"""Greedy batching of text units under a character budget."""

from __future__ import annotations

from typing import Iterable, List

from .structures import Batch, BatchedContent, BatchItem, TextUnit

DEFAULT_BATCH_SIZE = 5000


class BatchBuilder:
    """Aggregates units into contiguous batches within a character budget.

    A unit is never split: one whose text alone exceeds the budget gets a
    batch of its own.
    """

    def __init__(self, budget: int = DEFAULT_BATCH_SIZE) -> None:
        self.budget = max(1, budget)

    def build(self, units: Iterable[TextUnit]) -> BatchedContent:
        batches: List[Batch] = []
        batch_items: List[BatchItem] = []
        running_total = 0
        total_units = 0

        for unit in units:
            total_units += 1
            size = len(unit.text)
            item = BatchItem(unit_id=unit.unit_id, text=unit.text)

            if running_total + size <= self.budget:
                batch_items.append(item)
                running_total += size
                continue

            if batch_items:
                batches.append(Batch(batch_id=len(batches) + 1, items=batch_items))
            batch_items = [item]
            running_total = size

        if batch_items:
            batches.append(Batch(batch_id=len(batches) + 1, items=batch_items))

        return BatchedContent(batches=batches, total_units=total_units)


def build_batches(
    units: Iterable[TextUnit], max_chars: int = DEFAULT_BATCH_SIZE
) -> BatchedContent:
    """Convenience wrapper around :class:`BatchBuilder`."""

    return BatchBuilder(max_chars).build(units)
