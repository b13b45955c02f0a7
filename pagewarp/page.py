"""Page context: scraping, reapplying, and the on-page status banner."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from .applier import TextApplier
from .batching import DEFAULT_BATCH_SIZE, BatchBuilder
from .bus import ORCHESTRATOR, Command, Message, MessageBus, page_target
from .document import DEFAULT_OPAQUE_TAGS, HtmlDocument, TextUnitExtractor
from .errors import TargetUnresolved
from .session import SessionStore

logger = logging.getLogger(__name__)

SCRAPING_STATUS = "Scraping page content..."
APPLIED_STATUS = "Translation complete!"


class BannerKind(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"


@dataclass
class BannerMessage:
    text: str
    kind: BannerKind
    shown_at: float


@dataclass
class StatusBanner:
    """Transient status line shown over the page."""

    duration: float = 5.0
    clock: Callable[[], float] = time.monotonic
    renderer: Optional[Callable[[BannerMessage], None]] = None
    history: List[BannerMessage] = field(default_factory=list)

    def show(self, text: str, kind: BannerKind = BannerKind.INFO) -> BannerMessage:
        message = BannerMessage(text=text, kind=kind, shown_at=self.clock())
        self.history.append(message)
        level = logging.ERROR if kind is BannerKind.ERROR else logging.INFO
        logger.log(level, "[page] %s", text)
        if self.renderer is not None:
            self.renderer(message)
        return message

    @property
    def current(self) -> Optional[BannerMessage]:
        """The latest message, or None once it has faded out."""

        if not self.history:
            return None
        latest = self.history[-1]
        if self.clock() - latest.shown_at >= self.duration:
            return None
        return latest


class PageAgent:
    """Message endpoint bound to one loaded document."""

    def __init__(
        self,
        bus: MessageBus,
        tab_id: int,
        document: HtmlDocument,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        opaque_tags=DEFAULT_OPAQUE_TAGS,
        banner: Optional[StatusBanner] = None,
    ) -> None:
        self.bus = bus
        self.tab_id = tab_id
        self.document = document
        self.store = SessionStore()
        self.extractor = TextUnitExtractor(opaque_tags)
        self.batch_builder = BatchBuilder(batch_size)
        self.applier = TextApplier(document, self.store)
        self.banner = banner or StatusBanner()
        self.last_report: Optional[Dict[str, int]] = None
        self.last_scrape: Tuple[int, int] = (0, 0)

    @property
    def name(self) -> str:
        return page_target(self.tab_id)

    def attach(self) -> None:
        self.bus.register(self.name, self.handle)

    async def detach(self) -> None:
        await self.bus.unregister(self.name)

    async def handle(self, message: Message) -> Optional[Dict[str, Any]]:
        payload = message.payload
        if message.command is Command.SCRAPE_TEXT:
            return await self._scrape(payload.get("targetLang"))
        if message.command is Command.UPDATE_TEXT:
            report = self.applier.apply(
                payload.get("translatedContentMap") or {},
                payload.get("sessionId"),
            )
            self.last_report = report.to_payload()
            self.banner.show(APPLIED_STATUS, BannerKind.SUCCESS)
            return self.last_report
        if message.command is Command.TRANSLATION_PROGRESS:
            self.banner.show(str(payload.get("status", "")), BannerKind.INFO)
            return None
        if message.command is Command.TRANSLATION_COMPLETE:
            kind = BannerKind.SUCCESS if payload.get("ok", True) else BannerKind.ERROR
            self.banner.show(str(payload.get("status", "")), kind)
            return None
        logger.debug("Page %s ignores %s.", self.tab_id, message.command.value)
        return None

    async def _scrape(self, target_lang: Optional[str]) -> Dict[str, Any]:
        self.banner.show(SCRAPING_STATUS, BannerKind.INFO)
        session = self.store.begin()
        content = self.batch_builder.build(
            self.extractor.extract(self.document, session)
        )
        logger.info(
            "Created %d batches from %d text nodes.",
            len(content.batches),
            content.total_units,
        )
        self.last_scrape = (content.total_units, len(content.batches))

        reply = await self.bus.request(
            ORCHESTRATOR,
            Command.TEXT_SCRAPED,
            {
                "targetLang": target_lang,
                "batchedContent": content.to_payload(),
                "sessionId": session.session_id,
            },
            sender=self.name,
        )
        if not reply.ok:
            raise TargetUnresolved(f"Error sending TEXT_SCRAPED: {reply.error}")
        return {"success": True, "totalUnits": content.total_units}
