"""UI context: session state machine, durable state, and status rendering."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Dict, Optional, Protocol

from .bus import ORCHESTRATOR, UI, Command, Message, MessageBus
from .errors import SessionBusy
from .languages import language_name
from .preferences import PreferenceStore
from .structures import SessionState

logger = logging.getLogger(__name__)

START_FAILED_STATUS = "Error: Could not start translation."
IN_PROGRESS_STATUS = "Translation in progress..."
COMPLETED_STATUS = "Translation completed!"


class SessionPhase(Enum):
    IDLE = "idle"
    REQUESTING = "requesting"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_PHASES = frozenset({SessionPhase.COMPLETED, SessionPhase.FAILED})
BUSY_PHASES = frozenset({SessionPhase.REQUESTING, SessionPhase.IN_PROGRESS})


class SessionView(Protocol):
    """What the controller needs from a rendering surface."""

    def set_busy(self, busy: bool) -> None: ...

    def show_status(self, text: str) -> None: ...

    def show_progress(self, percent: Optional[int]) -> None: ...


class NullView:
    """A view that renders nothing."""

    def set_busy(self, busy: bool) -> None:
        pass

    def show_status(self, text: str) -> None:
        pass

    def show_progress(self, percent: Optional[int]) -> None:
        pass


class SessionController:
    """Drives ``Idle -> Requesting -> InProgress -> Completed | Failed``.

    The durable record is advisory: it lets a reopened UI show that something
    is running, but the pipeline itself cannot be re-attached.
    """

    def __init__(
        self,
        bus: MessageBus,
        preferences: PreferenceStore,
        view: Optional[SessionView] = None,
    ) -> None:
        self.bus = bus
        self.preferences = preferences
        self.view: SessionView = view or NullView()
        self.phase = SessionPhase.IDLE
        self.status = ""
        self.percent: Optional[int] = None
        self._finished = asyncio.Event()

    def attach(self) -> None:
        self.bus.register(UI, self.handle)

    async def detach(self) -> None:
        await self.bus.unregister(UI)

    def restore(self) -> SessionState:
        """Rebuild the view from the last persisted state."""

        state = self.preferences.load()
        if state.in_progress:
            self.phase = SessionPhase.IN_PROGRESS
            self.status = state.status_text or IN_PROGRESS_STATUS
            self.view.set_busy(True)
            self.view.show_status(self.status)
        elif state.status_text:
            self.status = state.status_text
            self.view.show_status(self.status)
        return state

    def reset(self) -> None:
        """Return a finished session to ``Idle``."""

        if self.phase in TERMINAL_PHASES:
            self.phase = SessionPhase.IDLE

    async def start(self, tab_id: int, target_lang: str) -> bool:
        """Request a session for ``tab_id``; True once it is acknowledged."""

        if self.phase in BUSY_PHASES:
            raise SessionBusy("A translation is already in progress.")
        self.reset()

        self._finished.clear()
        self.percent = None
        status = f"Translating to {language_name(target_lang)}..."
        self._enter(SessionPhase.REQUESTING, status)
        self.view.set_busy(True)
        self.view.show_progress(0)
        self.preferences.update(
            targetLang=target_lang,
            translationInProgress=True,
            translationStatus=status,
        )

        reply = await self.bus.request(
            ORCHESTRATOR,
            Command.TRANSLATE_PAGE,
            {"tabId": tab_id, "targetLang": target_lang},
            sender=UI,
        )
        if not reply.ok:
            logger.error("Could not start translation: %s", reply.error)
            self._conclude(SessionPhase.FAILED, START_FAILED_STATUS)
            return False

        # A fast pipeline may already have reported its terminal state.
        if self.phase is SessionPhase.REQUESTING:
            self._enter(
                SessionPhase.IN_PROGRESS,
                f"Translation requested: to {language_name(target_lang)}",
            )
        return True

    async def handle(self, message: Message) -> Optional[Dict[str, Any]]:
        if message.command is not Command.TRANSLATION_STATE_UPDATE:
            return None
        payload = message.payload
        status = payload.get("status")
        if payload.get("completed"):
            phase = (
                SessionPhase.COMPLETED if payload.get("ok", True) else SessionPhase.FAILED
            )
            self._conclude(phase, status or COMPLETED_STATUS)
        else:
            self._progress(status or IN_PROGRESS_STATUS, payload.get("percent"))
        return None

    async def wait(self, timeout: Optional[float] = None) -> SessionPhase:
        """Wait for the current session to reach a terminal phase."""

        await asyncio.wait_for(self._finished.wait(), timeout)
        return self.phase

    def _enter(self, phase: SessionPhase, status: str) -> None:
        logger.debug("UI session %s -> %s", self.phase.value, phase.value)
        self.phase = phase
        self.status = status
        self.view.show_status(status)

    def _progress(self, status: str, percent: Any) -> None:
        if self.phase in TERMINAL_PHASES:
            logger.debug("Ignoring late progress after %s.", self.phase.value)
            return
        if self.phase is SessionPhase.IDLE:
            # A reopened UI picks the stream back up from here.
            self.view.set_busy(True)
        self._enter(SessionPhase.IN_PROGRESS, status)
        if isinstance(percent, int):
            self.percent = percent
            self.view.show_progress(percent)
        self.preferences.update(translationStatus=status)

    def _conclude(self, phase: SessionPhase, status: str) -> None:
        self._enter(phase, status)
        self.percent = None
        self.view.set_busy(False)
        self.view.show_progress(None)
        self.preferences.update(translationInProgress=False, translationStatus=status)
        self._finished.set()
