"""Core data structures for the Pagewarp translator."""

from __future__ import annotations

import weakref
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

TranslationResult = Dict[str, str]


@dataclass
class TextUnit:
    """Represents a single visible text node ready for translation."""

    unit_id: str
    text: str
    node_ref: Optional["weakref.ref[Any]"] = field(default=None, repr=False, compare=False)

    @property
    def node(self) -> Any:
        """The text node, or None once the document has let go of it."""

        return self.node_ref() if self.node_ref is not None else None


@dataclass
class BatchItem:
    """One ``{id, text}`` pair as it travels to the translator."""

    unit_id: str
    text: str

    def to_payload(self) -> Dict[str, str]:
        return {"id": self.unit_id, "text": self.text}

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "BatchItem":
        return cls(unit_id=str(data["id"]), text=str(data["text"]))


@dataclass
class Batch:
    """A batch of units constrained by a character budget."""

    batch_id: int
    items: List[BatchItem]

    @property
    def char_count(self) -> int:
        return sum(len(item.text) for item in self.items)

    @property
    def unit_ids(self) -> List[str]:
        return [item.unit_id for item in self.items]

    def as_mapping(self) -> Dict[str, str]:
        return {item.unit_id: item.text for item in self.items}


@dataclass
class BatchedContent:
    """Batches produced from one extraction, plus the unit count."""

    batches: List[Batch] = field(default_factory=list)
    total_units: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.batches

    def unit_ids(self) -> List[str]:
        return [unit_id for batch in self.batches for unit_id in batch.unit_ids]

    def to_payload(self) -> Dict[str, Any]:
        return {
            "batches": [
                [item.to_payload() for item in batch.items] for batch in self.batches
            ],
            "totalUnits": self.total_units,
        }

    @classmethod
    def from_payload(cls, data: Optional[Dict[str, Any]]) -> "BatchedContent":
        data = data or {}
        batches = [
            Batch(
                batch_id=index + 1,
                items=[BatchItem.from_payload(item) for item in raw_batch],
            )
            for index, raw_batch in enumerate(data.get("batches") or [])
        ]
        total = data.get("totalUnits")
        if total is None:
            total = sum(len(batch.items) for batch in batches)
        return cls(batches=batches, total_units=int(total))


class ProgressPhase(str, Enum):
    """Stage of a session as reported to page and UI."""

    TRANSLATING = "translating"
    COMPLETE = "complete"
    FAILED = "failed"


@dataclass(frozen=True)
class ProgressEvent:
    """Structured progress; ``message`` is derived for display only."""

    percent: int
    phase: ProgressPhase = ProgressPhase.TRANSLATING
    message: str = ""

    def to_payload(self) -> Dict[str, Any]:
        return {
            "status": self.message,
            "percent": self.percent,
            "phase": self.phase.value,
        }


@dataclass
class SessionState:
    """UI-durable, advisory state of the last requested session."""

    target_lang: Optional[str] = None
    in_progress: bool = False
    status_text: str = ""

    def to_record(self) -> Dict[str, Any]:
        return {
            "targetLang": self.target_lang,
            "translationInProgress": self.in_progress,
            "translationStatus": self.status_text,
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "SessionState":
        target = record.get("targetLang")
        return cls(
            target_lang=str(target) if target else None,
            in_progress=bool(record.get("translationInProgress", False)),
            status_text=str(record.get("translationStatus") or ""),
        )


@dataclass
class ApplyReport:
    """Outcome of reapplying one translation result to a document."""

    applied: int = 0
    detached: int = 0
    stale: int = 0
    empty: int = 0

    @property
    def skipped(self) -> int:
        return self.detached + self.stale + self.empty

    def to_payload(self) -> Dict[str, int]:
        return {
            "applied": self.applied,
            "detached": self.detached,
            "stale": self.stale,
            "empty": self.empty,
        }

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "ApplyReport":
        return cls(
            applied=int(data.get("applied", 0)),
            detached=int(data.get("detached", 0)),
            stale=int(data.get("stale", 0)),
            empty=int(data.get("empty", 0)),
        )
