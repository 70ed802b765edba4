"""Module contract, command maps and the worker loop.

A module is a unit of bot behaviour with five optional capabilities:

    command(request)            answer a resolved command invocation
    passive(message)            look at every chat message
    event(message)              handle non-chat protocol messages
    tick(timestamp)             periodic housekeeping
    inspect(message, response)  observe replies this module produced

Every capability defaults to doing nothing and returning None. Modules
are either called directly by the Bot, or run their own ``handle`` loop
fed by an event Channel (see WorkerPool).

Key classes:
    CommandMap: Per-module name -> handler table with longest-match dispatch.
    Module: Base class for all modules.
    Channel: Bounded async queue that can be closed.
    MessageEvent, TickEvent, InspectEvent: Worker loop inputs.
"""

import asyncio
from dataclasses import dataclass
from types import MappingProxyType
from typing import (
    Any, Callable, Generic, Iterable, List, Mapping, Optional, Tuple, TypeVar, Union,
)

import structlog

from .exceptions import ChannelClosed
from .irc import Message
from .registry import Command, Registry
from .request import COMMAND_MESSAGES, Request, Response

logger = structlog.get_logger("shaken.modules")

T = TypeVar("T")

# Handler signature: (module, request) -> Optional[Response]
Handler = Callable[[Any, Request], Optional[Response]]


class CommandMap(Generic[T]):
    """Immutable mapping of bare command name -> handler for one module."""

    def __init__(self, namespace: str, handlers: Mapping[str, Handler]):
        self.namespace = namespace
        self._handlers = MappingProxyType(dict(handlers))

    @classmethod
    def create(
        cls,
        registry: Registry,
        namespace: str,
        commands: Iterable[Tuple[str, Handler]],
    ) -> "CommandMap[T]":
        """Register ``commands`` under ``namespace`` and build the map.

        Registration is atomic: if any name collides, nothing from this
        batch is registered.

        Raises:
            CommandAlreadyExists: A name is already owned, or repeated.
        """
        commands = list(commands)
        registry.register_all(Command(name, namespace) for name, _ in commands)
        logger.info(
            "command_map_created",
            namespace=namespace,
            commands=[name for name, _ in commands],
        )
        return cls(namespace, dict(commands))

    def dispatch(self, this: T, req: Request) -> Optional[Response]:
        """Invoke the handler whose name is the longest match for ``req``.

        Equal-length matches keep the first one found. Returns None,
        without calling anything, when no name matches.
        """
        best: Optional[Tuple[str, Handler, Request]] = None
        for name, func in self._handlers.items():
            found = req.search(name)
            if found is None:
                continue
            if best is None or len(name) > len(best[0]):
                best = (name, func, found)

        if best is None:
            return None
        name, func, found = best
        logger.debug("command_dispatch", namespace=self.namespace, command=name)
        return func(this, found)

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(self._handlers)

    def __contains__(self, name: str) -> bool:
        return name in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)


# ---------------------------------------------------------------------------
# Worker loop events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MessageEvent:
    message: Message
    request: Optional[Request] = None


@dataclass(frozen=True)
class TickEvent:
    timestamp: float


@dataclass(frozen=True)
class InspectEvent:
    message: Message
    response: Response


Event = Union[MessageEvent, TickEvent, InspectEvent]

# What a worker emits: the originating message (None for ticks) and a reply.
Output = Tuple[Optional[Message], Response]

_CLOSED = object()


class Channel(Generic[T]):
    """A bounded asyncio queue with an explicit closed state.

    After ``close`` no more sends are accepted; receivers drain what is
    already queued and then get ChannelClosed.
    """

    def __init__(self, maxsize: int = 0):
        self._queue: asyncio.Queue = asyncio.Queue(maxsize)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, item: T) -> None:
        if self._closed:
            raise ChannelClosed()
        await self._queue.put(item)

    def send_nowait(self, item: T) -> None:
        if self._closed:
            raise ChannelClosed()
        self._queue.put_nowait(item)

    async def recv(self) -> T:
        if self._closed and self._queue.empty():
            raise ChannelClosed()
        item = await self._queue.get()
        if item is _CLOSED:
            raise ChannelClosed()
        return item

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        # only an empty queue can have a blocked receiver to wake
        if not self._queue.full():
            self._queue.put_nowait(_CLOSED)

    def qsize(self) -> int:
        return self._queue.qsize()


# ---------------------------------------------------------------------------
# Module
# ---------------------------------------------------------------------------

class Module:
    """Base class for bot modules. Override only what you need.

    Handlers must not block: the synchronous bot runs every module on
    one thread, and ``tick`` would otherwise be starved.
    """

    name: str = ""

    @property
    def namespace(self) -> str:
        return self.name or type(self).__name__

    def command(self, req: Request) -> Optional[Response]:
        return None

    def passive(self, msg: Message) -> Optional[Response]:
        return None

    def event(self, msg: Message) -> Optional[Response]:
        return None

    def tick(self, timestamp: float) -> Optional[Response]:
        return None

    def inspect(self, msg: Message, resp: Response) -> None:
        """Observe a reply this module produced. Must not block."""

    async def handle(self, inbox: "Channel[Event]", outbox: "Channel[Output]") -> None:
        """Worker loop: consume events in order until ``inbox`` closes."""
        logger.debug("module_worker_started", module=self.namespace)
        while True:
            try:
                ev = await inbox.recv()
            except ChannelClosed:
                break

            if isinstance(ev, TickEvent):
                resp = invoke(self, "tick", ev.timestamp)
                if resp is not None:
                    await outbox.send((None, resp))
                continue

            if isinstance(ev, InspectEvent):
                invoke(self, "inspect", ev.message, ev.response)
                continue

            for resp in dispatch_message(self, ev.message, ev.request):
                await outbox.send((ev.message, resp))

        logger.debug("module_worker_stopped", module=self.namespace)


def invoke(module: Module, capability: str, *args: Any) -> Optional[Response]:
    """Call one capability, logging and absorbing anything it raises."""
    try:
        return getattr(module, capability)(*args)
    except Exception as e:
        logger.error(
            "module_capability_failed",
            module=module.namespace,
            capability=capability,
            error=str(e),
            error_type=type(e).__name__,
            exc_info=True,
        )
        return None


def dispatch_message(
    module: Module, msg: Message, req: Optional[Request]
) -> List[Response]:
    """Route one message through a module and collect its replies.

    Command-class messages go to ``command`` (only with a request) and
    then ``passive``; every other message goes to ``event``.
    """
    if msg.command in COMMAND_MESSAGES:
        results = []
        if req is not None:
            results.append(invoke(module, "command", req))
        results.append(invoke(module, "passive", msg))
    else:
        results = [invoke(module, "event", msg)]
    return [r for r in results if r is not None]
