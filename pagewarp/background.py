"""Orchestrator context: turns scraped pages into applied translations."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional, Set

from .bus import (
    ORCHESTRATOR,
    UI,
    Command,
    Message,
    MessageBus,
    page_target,
    tab_id_from_target,
)
from .errors import (
    NoTranslatableContent,
    PagewarpError,
    SessionBusy,
    TargetUnresolved,
)
from .structures import BatchedContent, ProgressEvent, ProgressPhase
from .translator import TranslationOrchestrator

logger = logging.getLogger(__name__)

NO_TEXT_STATUS = "No text found."
SUCCESS_STATUS = "Page successfully translated!"
ERROR_STATUS = "Error during translation. Check console."
PROCESSING_STATUS = "Processing Translation"


class BackgroundService:
    """Message endpoint that coordinates one session per page."""

    def __init__(self, bus: MessageBus, orchestrator: TranslationOrchestrator) -> None:
        self.bus = bus
        self.orchestrator = orchestrator
        self._active_tabs: Set[int] = set()
        self._runs: Set["asyncio.Task[None]"] = set()

    def attach(self) -> None:
        self.bus.register(ORCHESTRATOR, self.handle)

    async def detach(self) -> None:
        await self.bus.unregister(ORCHESTRATOR)

    def is_active(self, tab_id: int) -> bool:
        return tab_id in self._active_tabs

    async def wait_idle(self) -> None:
        """Wait for every pipeline started so far to finish."""

        while self._runs:
            await asyncio.gather(*list(self._runs), return_exceptions=True)

    async def handle(self, message: Message) -> Optional[Dict[str, Any]]:
        if message.command is Command.TRANSLATE_PAGE:
            return await self._start(message.payload)
        if message.command is Command.TEXT_SCRAPED:
            return self._accept_scrape(message)
        logger.debug("Orchestrator ignores %s.", message.command.value)
        return None

    async def _start(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        tab_id = int(payload["tabId"])
        target_lang = payload["targetLang"]
        if self.is_active(tab_id):
            raise SessionBusy(f"A translation is already running for tab {tab_id}.")

        self._active_tabs.add(tab_id)
        reply = await self.bus.request(
            page_target(tab_id),
            Command.SCRAPE_TEXT,
            {"targetLang": target_lang},
            sender=ORCHESTRATOR,
        )
        if not reply.ok:
            self._active_tabs.discard(tab_id)
            raise TargetUnresolved(f"Error sending SCRAPE_TEXT command: {reply.error}")
        logger.info("SCRAPE_TEXT command sent successfully to tab %d.", tab_id)
        return {"success": True}

    def _accept_scrape(self, message: Message) -> Dict[str, Any]:
        tab_id = tab_id_from_target(message.sender)
        if tab_id is None:
            raise TargetUnresolved("No tab ID available.")

        self._active_tabs.add(tab_id)
        task = asyncio.get_running_loop().create_task(
            self._translate_page(
                tab_id,
                message.payload.get("targetLang"),
                message.payload.get("batchedContent"),
                message.payload.get("sessionId"),
            )
        )
        self._runs.add(task)
        task.add_done_callback(self._runs.discard)
        return {"success": True}

    async def _translate_page(
        self,
        tab_id: int,
        target_lang: Optional[str],
        raw_content: Optional[Dict[str, Any]],
        session_id: Optional[str],
    ) -> None:
        try:
            if not target_lang:
                raise PagewarpError("No target language given.")
            content = BatchedContent.from_payload(raw_content)
            if content.is_empty:
                raise NoTranslatableContent(NO_TEXT_STATUS)

            if len(content.batches) > 1:
                self.bus.notify(
                    page_target(tab_id),
                    Command.TRANSLATION_PROGRESS,
                    ProgressEvent(
                        percent=0,
                        message=f"Processing {len(content.batches)} batches...",
                    ).to_payload(),
                    sender=ORCHESTRATOR,
                )
                self._update_ui(
                    ProgressEvent(percent=0, message=PROCESSING_STATUS),
                    completed=False,
                )

            result = await self.orchestrator.run(
                content,
                target_lang,
                on_progress=lambda event: self._report_progress(tab_id, event),
            )

            reply = await self.bus.request(
                page_target(tab_id),
                Command.UPDATE_TEXT,
                {"translatedContentMap": result, "sessionId": session_id},
                sender=ORCHESTRATOR,
            )
            if not reply.ok:
                raise TargetUnresolved(f"Error sending UPDATE_TEXT: {reply.error}")

            self._finish(tab_id, SUCCESS_STATUS, ok=True)
        except NoTranslatableContent:
            logger.warning("No text found to translate on tab %d.", tab_id)
            self._finish(tab_id, NO_TEXT_STATUS, ok=True)
        except PagewarpError as exc:
            logger.error("Full translation process failed: %s", exc)
            self._finish(tab_id, ERROR_STATUS, ok=False)
        except Exception:
            logger.exception("Full translation process failed.")
            self._finish(tab_id, ERROR_STATUS, ok=False)
        finally:
            self._active_tabs.discard(tab_id)

    def _report_progress(self, tab_id: int, event: ProgressEvent) -> None:
        self.bus.notify(
            page_target(tab_id),
            Command.TRANSLATION_PROGRESS,
            event.to_payload(),
            sender=ORCHESTRATOR,
        )
        self._update_ui(event, completed=False)

    def _update_ui(self, event: ProgressEvent, *, completed: bool, ok: bool = True) -> None:
        payload = event.to_payload()
        payload.update({"completed": completed, "ok": ok})
        self.bus.notify(UI, Command.TRANSLATION_STATE_UPDATE, payload, sender=ORCHESTRATOR)

    def _finish(self, tab_id: int, status: str, *, ok: bool) -> None:
        delivered = self.bus.notify(
            page_target(tab_id),
            Command.TRANSLATION_COMPLETE,
            {"status": status, "ok": ok},
            sender=ORCHESTRATOR,
        )
        if not delivered:
            logger.warning("Tab %d is gone; completion not shown on the page.", tab_id)
        phase = ProgressPhase.COMPLETE if ok else ProgressPhase.FAILED
        self._update_ui(
            ProgressEvent(percent=100 if ok else 0, phase=phase, message=status),
            completed=True,
            ok=ok,
        )
