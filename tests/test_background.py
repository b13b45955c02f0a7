"""Tests for the orchestrator context."""

import asyncio

import pytest

from pagewarp.background import (
    ERROR_STATUS,
    NO_TEXT_STATUS,
    PROCESSING_STATUS,
    SUCCESS_STATUS,
    BackgroundService,
)
from pagewarp.bus import UI, Command, MessageBus
from pagewarp.document import HtmlDocument
from pagewarp.page import PageAgent
from pagewarp.translator import TranslationOrchestrator


class UiRecorder:

    def __init__(self):
        self.updates = []

    async def handle(self, message):
        self.updates.append(message.payload)


def _wire(translator, markup, *, batch_size=5000):
    bus = MessageBus()
    background = BackgroundService(bus, TranslationOrchestrator(translator))
    page = PageAgent(bus, 1, HtmlDocument.from_string(markup), batch_size=batch_size)
    ui = UiRecorder()
    background.attach()
    page.attach()
    bus.register(UI, ui.handle)
    return bus, background, page, ui


async def _settle(bus, background):
    await background.wait_idle()
    await bus.drain()


class TestBackgroundService:

    @pytest.mark.asyncio
    async def test_happy_path_applies_translation(self, make_translator):
        translator = make_translator()
        bus, background, page, ui = _wire(
            translator, "<body><p>hello</p><p>world</p></body>"
        )
        try:
            reply = await bus.request(
                "orchestrator", Command.TRANSLATE_PAGE, {"tabId": 1, "targetLang": "fr"}
            )
            await _settle(bus, background)
        finally:
            await bus.close()

        assert reply.ok and reply.payload == {"success": True}
        assert page.document.render() == "<body><p>HELLO</p><p>WORLD</p></body>"
        assert page.last_report["applied"] == 2
        final = ui.updates[-1]
        assert final["completed"] and final["ok"]
        assert final["status"] == SUCCESS_STATUS
        assert page.banner.history[-1].text == SUCCESS_STATUS
        assert not background.is_active(1)

    @pytest.mark.asyncio
    async def test_empty_page_finishes_without_calling_translator(self, make_translator):
        translator = make_translator()
        bus, background, page, ui = _wire(translator, "<body><script>x()</script></body>")
        try:
            reply = await bus.request(
                "orchestrator", Command.TRANSLATE_PAGE, {"tabId": 1, "targetLang": "fr"}
            )
            await _settle(bus, background)
        finally:
            await bus.close()

        assert reply.ok
        assert translator.calls == []
        assert ui.updates[-1]["status"] == NO_TEXT_STATUS
        assert ui.updates[-1]["ok"] is True
        assert page.last_report is None

    @pytest.mark.asyncio
    async def test_failing_batch_leaves_page_untouched(self, make_translator):
        translator = make_translator(fail_on_call=2)
        markup = "<body><p>first</p><p>second</p></body>"
        bus, background, page, ui = _wire(translator, markup, batch_size=6)
        try:
            await bus.request(
                "orchestrator", Command.TRANSLATE_PAGE, {"tabId": 1, "targetLang": "fr"}
            )
            await _settle(bus, background)
        finally:
            await bus.close()

        assert len(translator.calls) == 2
        assert page.last_report is None
        assert page.document.render() == markup
        final = ui.updates[-1]
        assert final["completed"] and final["ok"] is False
        assert final["status"] == ERROR_STATUS
        assert final["phase"] == "failed"

    @pytest.mark.asyncio
    async def test_missing_page_is_rejected(self, make_translator):
        bus = MessageBus()
        background = BackgroundService(bus, TranslationOrchestrator(make_translator()))
        background.attach()
        try:
            reply = await bus.request(
                "orchestrator", Command.TRANSLATE_PAGE, {"tabId": 5, "targetLang": "fr"}
            )
        finally:
            await bus.close()

        assert not reply.ok
        assert "SCRAPE_TEXT" in reply.error
        assert not background.is_active(5)

    @pytest.mark.asyncio
    async def test_second_request_for_busy_tab_is_refused(self, make_translator):
        gate = asyncio.Event()
        translator = make_translator(gate=gate)
        bus, background, page, ui = _wire(translator, "<body><p>hello</p></body>")
        try:
            first = await bus.request(
                "orchestrator", Command.TRANSLATE_PAGE, {"tabId": 1, "targetLang": "fr"}
            )
            assert background.is_active(1)
            second = await bus.request(
                "orchestrator", Command.TRANSLATE_PAGE, {"tabId": 1, "targetLang": "de"}
            )
            gate.set()
            await _settle(bus, background)
        finally:
            await bus.close()

        assert first.ok
        assert not second.ok
        assert "already running" in second.error
        assert len(translator.calls) == 1

    @pytest.mark.asyncio
    async def test_multi_batch_progress_is_announced_and_monotonic(self, make_translator):
        translator = make_translator(progress=(0, 100))
        bus, background, page, ui = _wire(
            translator, "<body><p>aaa</p><p>bbb</p><p>ccc</p></body>", batch_size=3
        )
        try:
            await bus.request(
                "orchestrator", Command.TRANSLATE_PAGE, {"tabId": 1, "targetLang": "it"}
            )
            await _settle(bus, background)
        finally:
            await bus.close()

        assert ui.updates[0]["status"] == PROCESSING_STATUS
        assert page.banner.history[1].text == "Processing 3 batches..."
        percents = [update["percent"] for update in ui.updates if not update["completed"]]
        assert percents == sorted(percents)
        assert 100 in percents
        assert page.document.render() == "<body><p>AAA</p><p>BBB</p><p>CCC</p></body>"
