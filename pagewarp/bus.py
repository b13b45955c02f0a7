"""Asynchronous message passing between the page, orchestrator and UI contexts."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Set, Tuple

from .errors import PagewarpError, TargetUnresolved

logger = logging.getLogger(__name__)

ORCHESTRATOR = "orchestrator"
UI = "ui"
DEFAULT_REQUEST_TIMEOUT = 10.0


class Command(str, Enum):
    """Commands exchanged between contexts."""

    TRANSLATE_PAGE = "TRANSLATE_PAGE"
    SCRAPE_TEXT = "SCRAPE_TEXT"
    TEXT_SCRAPED = "TEXT_SCRAPED"
    TRANSLATION_PROGRESS = "TRANSLATION_PROGRESS"
    TRANSLATION_STATE_UPDATE = "TRANSLATION_STATE_UPDATE"
    UPDATE_TEXT = "UPDATE_TEXT"
    TRANSLATION_COMPLETE = "TRANSLATION_COMPLETE"


def page_target(tab_id: int) -> str:
    return f"page:{tab_id}"


def tab_id_from_target(name: Optional[str]) -> Optional[int]:
    """Inverse of :func:`page_target`; ``None`` for non-page endpoints."""

    if not name or not name.startswith("page:"):
        return None
    try:
        return int(name.split(":", 1)[1])
    except ValueError:
        return None


@dataclass
class Message:
    """A command with a JSON-compatible payload."""

    command: Command
    payload: Dict[str, Any] = field(default_factory=dict)
    sender: Optional[str] = None


@dataclass
class Reply:
    """Explicit acknowledgment for a request; ``ok=False`` carries ``error``."""

    ok: bool
    payload: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None


Handler = Callable[[Message], Awaitable[Optional[Dict[str, Any]]]]
_Envelope = Tuple[Message, Optional["asyncio.Future[Reply]"]]


def _isolate(payload: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Copy a payload through JSON so contexts never share objects."""

    return json.loads(json.dumps(payload or {}, ensure_ascii=False))


class _Endpoint:
    """Inbox plus serving task for one registered context."""

    def __init__(self, name: str, handler: Handler) -> None:
        self.name = name
        self.handler = handler
        self.inbox: "asyncio.Queue[_Envelope]" = asyncio.Queue()
        self.tasks: Set["asyncio.Task[None]"] = set()
        self.server = asyncio.get_running_loop().create_task(
            self._serve(), name=f"bus:{name}"
        )

    async def _serve(self) -> None:
        while True:
            message, future = await self.inbox.get()
            task = asyncio.get_running_loop().create_task(
                self._dispatch(message, future)
            )
            self.tasks.add(task)
            task.add_done_callback(self._settled)

    def _settled(self, task: "asyncio.Task[None]") -> None:
        self.tasks.discard(task)
        self.inbox.task_done()

    @property
    def busy(self) -> bool:
        return not self.inbox.empty() or bool(self.tasks)

    async def _dispatch(
        self,
        message: Message,
        future: Optional["asyncio.Future[Reply]"],
    ) -> None:
        try:
            result = await self.handler(message)
            reply = Reply(ok=True, payload=_isolate(result))
        except PagewarpError as exc:
            logger.warning(
                "%s rejected %s: %s", self.name, message.command.value, exc
            )
            reply = Reply(ok=False, error=str(exc))
        except asyncio.CancelledError:
            _fail(future, f"{self.name} closed before replying.")
            raise
        except Exception as exc:
            logger.exception(
                "%s failed while handling %s", self.name, message.command.value
            )
            reply = Reply(ok=False, error=f"Unexpected error: {exc}")
        if future is not None and not future.done():
            future.set_result(reply)

    async def close(self) -> None:
        pending = [self.server, *self.tasks]
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        while not self.inbox.empty():
            _, future = self.inbox.get_nowait()
            self.inbox.task_done()
            _fail(future, f"{self.name} closed before replying.")


def _fail(future: Optional["asyncio.Future[Reply]"], error: str) -> None:
    if future is not None and not future.done():
        future.set_result(Reply(ok=False, error=error))


class MessageBus:
    """Routes messages to named endpoints on the running event loop."""

    def __init__(self, *, request_timeout: float = DEFAULT_REQUEST_TIMEOUT) -> None:
        self.request_timeout = request_timeout
        self._endpoints: Dict[str, _Endpoint] = {}

    def register(self, name: str, handler: Handler) -> None:
        if name in self._endpoints:
            raise PagewarpError(f"An endpoint named '{name}' is already registered.")
        self._endpoints[name] = _Endpoint(name, handler)

    async def unregister(self, name: str) -> None:
        endpoint = self._endpoints.pop(name, None)
        if endpoint is not None:
            await endpoint.close()

    def is_registered(self, name: str) -> bool:
        return name in self._endpoints

    def _envelope(
        self,
        command: Command,
        payload: Optional[Dict[str, Any]],
        sender: Optional[str],
    ) -> Message:
        return Message(command=command, payload=_isolate(payload), sender=sender)

    def notify(
        self,
        target: str,
        command: Command,
        payload: Optional[Dict[str, Any]] = None,
        *,
        sender: Optional[str] = None,
    ) -> bool:
        """Fire-and-forget delivery; returns False when nobody is listening."""

        endpoint = self._endpoints.get(target)
        if endpoint is None:
            logger.debug("No listener for %s at %s.", command.value, target)
            return False
        endpoint.inbox.put_nowait((self._envelope(command, payload, sender), None))
        return True

    async def request(
        self,
        target: str,
        command: Command,
        payload: Optional[Dict[str, Any]] = None,
        *,
        sender: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> Reply:
        """Deliver ``command`` and await its acknowledgment.

        Never raises for delivery problems: an unknown target, a timeout or a
        failing handler all come back as ``Reply(ok=False)``.
        """

        endpoint = self._endpoints.get(target)
        if endpoint is None:
            error = TargetUnresolved(f"Could not reach {target} for {command.value}.")
            logger.warning("%s", error)
            return Reply(ok=False, error=str(error))

        future: "asyncio.Future[Reply]" = asyncio.get_running_loop().create_future()
        endpoint.inbox.put_nowait((self._envelope(command, payload, sender), future))
        limit = self.request_timeout if timeout is None else timeout
        try:
            return await asyncio.wait_for(asyncio.shield(future), limit)
        except asyncio.TimeoutError:
            logger.warning(
                "%s to %s timed out after %.1f seconds.", command.value, target, limit
            )
            return Reply(
                ok=False,
                error=f"{command.value} to {target} timed out after {limit:.1f} seconds.",
            )

    async def drain(self) -> None:
        """Wait until every queued message has been handled."""

        while any(endpoint.busy for endpoint in self._endpoints.values()):
            await asyncio.gather(
                *(endpoint.inbox.join() for endpoint in list(self._endpoints.values()))
            )

    async def close(self) -> None:
        for name in list(self._endpoints):
            await self.unregister(name)
