"""Tests for the sequential translation orchestrator."""

import pytest

from pagewarp.batching import build_batches
from pagewarp.errors import TranslationServiceFailure
from pagewarp.providers import EchoTranslator
from pagewarp.structures import BatchedContent, TextUnit
from pagewarp.translator import (
    ProgressAggregator,
    TranslationOrchestrator,
    overall_percent,
    progress_message,
)


def _content(*texts, budget=5000):
    units = [TextUnit(unit_id=f"id-{i}", text=text) for i, text in enumerate(texts)]
    return build_batches(units, budget)


class TestOverallPercent:

    def test_formula(self):
        assert overall_percent(0, 100, 1) == 100
        assert overall_percent(0, 50, 2) == 25
        assert overall_percent(1, 33, 3) == 22

    def test_clamps_batch_percent(self):
        assert overall_percent(0, 150, 1) == 100
        assert overall_percent(0, -5, 1) == 0

    def test_aggregator_never_goes_backwards(self):
        aggregator = ProgressAggregator(2)

        percents = [
            aggregator.update(0, 100).percent,
            aggregator.update(1, 0).percent,
            aggregator.update(1, 100).percent,
        ]

        assert percents == [50, 50, 100]

    def test_progress_message(self):
        assert progress_message(42) == "Translating... 42% complete"


class TestTranslationOrchestrator:

    @pytest.mark.asyncio
    async def test_empty_content_makes_no_call(self, make_translator):
        translator = make_translator()

        result = await TranslationOrchestrator(translator).run(BatchedContent(), "fr")

        assert result == {}
        assert translator.calls == []

    @pytest.mark.asyncio
    async def test_single_batch(self, make_translator):
        translator = make_translator()
        events = []

        result = await TranslationOrchestrator(translator, source_language="en").run(
            _content("Hello", "World"), "fr", on_progress=events.append
        )

        assert result == {"id-0": "HELLO", "id-1": "WORLD"}
        assert translator.calls == [{"id-0": "Hello", "id-1": "World"}]
        assert translator.locales == [("en", "fr")]
        assert [event.percent for event in events] == [0, 50, 100]

    @pytest.mark.asyncio
    async def test_batches_run_in_order_one_at_a_time(self, make_translator):
        translator = make_translator()
        events = []

        result = await TranslationOrchestrator(translator).run(
            _content("aaa", "bbb", "ccc", budget=3), "de", on_progress=events.append
        )

        assert translator.calls == [{"id-0": "aaa"}, {"id-1": "bbb"}, {"id-2": "ccc"}]
        assert translator.max_in_flight == 1
        assert set(result) == {"id-0", "id-1", "id-2"}
        percents = [event.percent for event in events]
        assert percents == sorted(percents)
        assert percents[-1] == 100

    @pytest.mark.asyncio
    async def test_failure_aborts_whole_run(self, make_translator):
        translator = make_translator(fail_on_call=2)

        with pytest.raises(TranslationServiceFailure):
            await TranslationOrchestrator(translator).run(
                _content("first", "second", budget=5), "fr"
            )

        assert len(translator.calls) == 2

    @pytest.mark.asyncio
    async def test_missing_ids_become_empty_and_extras_are_dropped(self):
        class Sloppy(EchoTranslator):
            async def translate_batch(self, id_to_text, source, target, on_progress):
                return {"id-0": "uno", "id-99": "extra"}

        result = await TranslationOrchestrator(Sloppy()).run(_content("one", "two"), "es")

        assert result == {"id-0": "uno", "id-1": ""}

    @pytest.mark.asyncio
    async def test_non_text_translation_fails(self):
        class Broken(EchoTranslator):
            async def translate_batch(self, id_to_text, source, target, on_progress):
                return {"id-0": 7}

        with pytest.raises(TranslationServiceFailure):
            await TranslationOrchestrator(Broken()).run(_content("one"), "es")

    @pytest.mark.asyncio
    async def test_identity_result_covers_every_unit(self):
        content = _content(*[f"text {n}" for n in range(20)], budget=20)

        result = await TranslationOrchestrator(EchoTranslator()).run(content, "fr")

        assert list(result) == content.unit_ids()
        assert result["id-7"] == "text 7"
