"""Tests for the cross-context message bus."""

import asyncio

import pytest

from pagewarp.bus import (
    Command,
    MessageBus,
    page_target,
    tab_id_from_target,
)
from pagewarp.errors import PagewarpError


class TestTargets:

    def test_page_target_round_trip(self):
        assert page_target(7) == "page:7"
        assert tab_id_from_target("page:7") == 7

    def test_non_page_targets(self):
        assert tab_id_from_target("ui") is None
        assert tab_id_from_target(None) is None
        assert tab_id_from_target("page:abc") is None


class TestMessageBus:

    @pytest.mark.asyncio
    async def test_request_reply(self):
        bus = MessageBus()

        async def handler(message):
            return {"echo": message.payload["value"], "from": message.sender}

        bus.register("page:1", handler)
        try:
            reply = await bus.request(
                "page:1", Command.SCRAPE_TEXT, {"value": 3}, sender="orchestrator"
            )
        finally:
            await bus.close()

        assert reply.ok
        assert reply.payload == {"echo": 3, "from": "orchestrator"}

    @pytest.mark.asyncio
    async def test_payloads_are_copied_across_contexts(self):
        bus = MessageBus()
        received = []

        async def handler(message):
            message.payload["items"].append("mutated")
            received.append(message.payload)
            return None

        bus.register("page:1", handler)
        original = {"items": ["a"]}
        try:
            reply = await bus.request("page:1", Command.UPDATE_TEXT, original)
        finally:
            await bus.close()

        assert reply.ok and reply.payload == {}
        assert original == {"items": ["a"]}
        assert received[0] is not original

    @pytest.mark.asyncio
    async def test_unknown_target_is_an_explicit_failure(self):
        bus = MessageBus()

        reply = await bus.request("page:9", Command.SCRAPE_TEXT, {})

        assert not reply.ok
        assert "page:9" in reply.error

    @pytest.mark.asyncio
    async def test_notify_without_listener_returns_false(self):
        bus = MessageBus()

        assert bus.notify("ui", Command.TRANSLATION_STATE_UPDATE, {}) is False

    @pytest.mark.asyncio
    async def test_notify_delivers(self):
        bus = MessageBus()
        seen = []

        async def handler(message):
            seen.append(message.command)

        bus.register("ui", handler)
        try:
            assert bus.notify("ui", Command.TRANSLATION_STATE_UPDATE, {"status": "x"})
            await bus.drain()
        finally:
            await bus.close()

        assert seen == [Command.TRANSLATION_STATE_UPDATE]

    @pytest.mark.asyncio
    async def test_handler_errors_become_failure_replies(self):
        bus = MessageBus()

        async def rejecting(message):
            raise PagewarpError("busy")

        async def crashing(message):
            raise RuntimeError("boom")

        bus.register("a", rejecting)
        bus.register("b", crashing)
        try:
            rejected = await bus.request("a", Command.TRANSLATE_PAGE, {})
            crashed = await bus.request("b", Command.TRANSLATE_PAGE, {})
        finally:
            await bus.close()

        assert (rejected.ok, rejected.error) == (False, "busy")
        assert not crashed.ok
        assert "boom" in crashed.error

    @pytest.mark.asyncio
    async def test_request_times_out(self):
        bus = MessageBus(request_timeout=0.01)

        async def slow(message):
            await asyncio.sleep(5)

        bus.register("page:1", slow)
        try:
            reply = await bus.request("page:1", Command.SCRAPE_TEXT, {})
        finally:
            await bus.close()

        assert not reply.ok
        assert "timed out" in reply.error

    @pytest.mark.asyncio
    async def test_slow_handler_does_not_block_the_endpoint(self):
        bus = MessageBus()
        release = asyncio.Event()

        async def handler(message):
            if message.payload.get("slow"):
                await release.wait()
                return {"done": "slow"}
            return {"done": "fast"}

        bus.register("orchestrator", handler)
        try:
            slow = asyncio.ensure_future(
                bus.request("orchestrator", Command.TEXT_SCRAPED, {"slow": True})
            )
            fast = await bus.request("orchestrator", Command.TEXT_SCRAPED, {})
            assert fast.payload == {"done": "fast"}
            assert not slow.done()
            release.set()
            assert (await slow).payload == {"done": "slow"}
        finally:
            await bus.close()

    @pytest.mark.asyncio
    async def test_duplicate_registration_is_refused(self):
        bus = MessageBus()

        async def handler(message):
            return None

        bus.register("ui", handler)
        try:
            with pytest.raises(PagewarpError):
                bus.register("ui", handler)
        finally:
            await bus.close()

        assert not bus.is_registered("ui")

    @pytest.mark.asyncio
    async def test_close_fails_pending_requests(self):
        bus = MessageBus()

        async def never(message):
            await asyncio.Event().wait()

        bus.register("page:1", never)
        pending = asyncio.ensure_future(bus.request("page:1", Command.SCRAPE_TEXT, {}))
        await asyncio.sleep(0.01)

        await bus.close()
        reply = await pending

        assert not reply.ok
        assert "closed" in reply.error

    @pytest.mark.asyncio
    async def test_drain_waits_for_blocked_handlers_and_their_follow_ups(self):
        bus = MessageBus()
        release = asyncio.Event()
        seen = []

        async def page(message):
            await release.wait()
            bus.notify("ui", Command.TRANSLATION_STATE_UPDATE, {"status": "done"})

        async def ui(message):
            seen.append(message.payload["status"])

        bus.register("page:1", page)
        bus.register("ui", ui)
        try:
            bus.notify("page:1", Command.TRANSLATION_PROGRESS, {})
            drain = asyncio.ensure_future(bus.drain())
            await asyncio.sleep(0.01)
            assert not drain.done()

            release.set()
            await asyncio.wait_for(drain, 1)
        finally:
            await bus.close()

        assert seen == ["done"]
