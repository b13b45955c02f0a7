"""Shared fakes for the Pagewarp test-suite."""

import asyncio
from typing import Callable, Dict, List, Mapping, Optional, Sequence

import pytest

from pagewarp.providers import Translator


class ScriptedTranslator(Translator):
    """Translator fake that records calls and replays a progress script."""

    def __init__(
        self,
        *,
        transform: Callable[[str], str] = str.upper,
        progress: Sequence[float] = (0, 50, 100),
        fail_on_call: Optional[int] = None,
        gate: Optional[asyncio.Event] = None,
    ) -> None:
        self.transform = transform
        self.progress = progress
        self.fail_on_call = fail_on_call
        self.gate = gate
        self.calls: List[Dict[str, str]] = []
        self.locales: List[tuple] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def translate_batch(
        self,
        id_to_text: Mapping[str, str],
        source_locale: Optional[str],
        target_locale: str,
        on_progress,
    ) -> Dict[str, str]:
        self.calls.append(dict(id_to_text))
        self.locales.append((source_locale, target_locale))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.gate is not None:
                await self.gate.wait()
            for percent in self.progress:
                on_progress(percent)
                await asyncio.sleep(0)
            if self.fail_on_call == len(self.calls):
                raise RuntimeError("translation service down")
            return {key: self.transform(value) for key, value in id_to_text.items()}
        finally:
            self.in_flight -= 1


class RecordingView:
    """SessionView fake that keeps every rendering call."""

    def __init__(self) -> None:
        self.busy: List[bool] = []
        self.statuses: List[str] = []
        self.progress: List[Optional[int]] = []

    def set_busy(self, busy: bool) -> None:
        self.busy.append(busy)

    def show_status(self, text: str) -> None:
        self.statuses.append(text)

    def show_progress(self, percent: Optional[int]) -> None:
        self.progress.append(percent)


@pytest.fixture
def make_translator():
    return ScriptedTranslator


@pytest.fixture
def view():
    return RecordingView()


@pytest.fixture
def sample_html():
    return (
        "<html><head><title>Title stays</title></head><body>\n"
        "  <h1>  Welcome  </h1>\n"
        "  <p>First paragraph with <b>bold</b> text.</p>\n"
        "  <script>var untouched = 1;</script>\n"
        "  <ul>\n    <li>\n      One\n    </li>\n    <li>Two</li>\n  </ul>\n"
        "</body></html>"
    )
