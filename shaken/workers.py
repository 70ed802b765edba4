"""Worker-per-module dispatch for shaken.

Each module runs its own ``Module.handle`` loop as an asyncio task fed
by a bounded inbox. Inbound messages and periodic ticks are fanned out
to every inbox. Each module writes its replies to its own outbox; a
forwarder per module moves them into one shared queue, drained by a
single collector that renders and sends them and hands each reply back
to the module that produced it as an InspectEvent.

Ordering: events are handled in arrival order within one module, and
one module's replies are sent in the order it produced them. Across
modules no order is guaranteed.

Key classes:
    WorkerPool: Owns the module tasks, the ticker and the collector.
"""

import asyncio
import time
from typing import List, Optional, Tuple

import structlog

from .bot import InspectHook, call_inspect, try_make_request
from .exceptions import ChannelClosed
from .irc import Message
from .module import (
    Channel,
    Event,
    InspectEvent,
    MessageEvent,
    Module,
    Output,
    TickEvent,
)
from .request import Response

logger = structlog.get_logger("shaken.bot")

DEFAULT_QUEUE_SIZE = 64
DEFAULT_TICK_INTERVAL = 1.0


def log_task_exception(task: asyncio.Task):
    """Log exceptions from worker tasks instead of silently swallowing them."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc:
        logger.error("worker_task_failed", error=str(exc), exc_type=type(exc).__name__)


class _Worker:
    __slots__ = ("module", "inbox", "outbox", "task", "forwarder")

    def __init__(self, module: Module, queue_size: int):
        self.module = module
        self.inbox: Channel[Event] = Channel(queue_size)
        self.outbox: Channel[Output] = Channel(queue_size)
        self.task: Optional[asyncio.Task] = None
        self.forwarder: Optional[asyncio.Task] = None


class WorkerPool:
    """Runs modules concurrently, one task per module.

    Args:
        conn: Transport with ``read() -> Optional[str]`` and ``write(str)``.
        modules: Modules to run. Each gets its own inbox and task.
        tick_interval: Seconds between TickEvents in ``run``; 0 disables.
        queue_size: Capacity of each module inbox and outbox.
        inspect: Hook called with every (message, response) pair before
            the response is sent.
    """

    def __init__(
        self,
        conn,
        modules: List[Module],
        tick_interval: float = DEFAULT_TICK_INTERVAL,
        queue_size: int = DEFAULT_QUEUE_SIZE,
        inspect: Optional[InspectHook] = None,
    ):
        self.conn = conn
        self.modules = list(modules)
        self.tick_interval = tick_interval
        self.queue_size = queue_size
        self._inspect = inspect
        self._workers: List[_Worker] = []
        self._collected: Optional[Channel[Tuple[_Worker, Optional[Message], Response]]] = None
        self._collector: Optional[asyncio.Task] = None
        self.running = False

    def start(self) -> None:
        """Create the channels and start every worker, forwarder and the collector."""
        if self.running:
            return
        self._collected = Channel(self.queue_size)
        for module in self.modules:
            worker = _Worker(module, self.queue_size)
            worker.task = asyncio.create_task(
                module.handle(worker.inbox, worker.outbox),
                name=f"module:{module.namespace}",
            )
            worker.task.add_done_callback(log_task_exception)
            worker.forwarder = asyncio.create_task(
                self._forward(worker), name=f"forward:{module.namespace}"
            )
            worker.forwarder.add_done_callback(log_task_exception)
            self._workers.append(worker)
        self._collector = asyncio.create_task(self._collect(), name="collector")
        self._collector.add_done_callback(log_task_exception)
        self.running = True
        logger.info("worker_pool_started", modules=len(self._workers))

    async def dispatch(self, msg: Message) -> None:
        """Fan one message out to every module, in module order."""
        # user upsert hits sqlite
        req = await asyncio.to_thread(try_make_request, msg)
        await self._broadcast(MessageEvent(msg, req))

    async def dispatch_line(self, line: str) -> None:
        await self.dispatch(Message.parse(line))

    async def tick(self, timestamp: Optional[float] = None) -> None:
        await self._broadcast(TickEvent(time.time() if timestamp is None else timestamp))

    async def _broadcast(self, event: Event) -> None:
        for worker in self._workers:
            try:
                await worker.inbox.send(event)
            except ChannelClosed:
                logger.debug("worker_inbox_closed", module=worker.module.namespace)

    async def _forward(self, worker: _Worker) -> None:
        while True:
            try:
                origin, resp = await worker.outbox.recv()
            except ChannelClosed:
                break
            await self._collected.send((worker, origin, resp))

    async def _collect(self) -> None:
        while True:
            try:
                worker, origin, resp = await self._collected.recv()
            except ChannelClosed:
                break
            self._deliver(worker, origin, resp)

    def _deliver(self, worker: _Worker, origin: Optional[Message], resp: Response) -> None:
        if origin is not None and self._inspect is not None:
            call_inspect(self._inspect, origin, resp)
        for rendered in resp.build(origin):
            logger.debug("writing_response", line=rendered, module=worker.module.namespace)
            self.conn.write(rendered)
        if origin is None:
            return
        try:
            worker.inbox.send_nowait(InspectEvent(origin, resp))
        except ChannelClosed:
            logger.debug("inspect_skipped_inbox_closed", module=worker.module.namespace)
        except asyncio.QueueFull:
            logger.warning("inspect_dropped_inbox_full", module=worker.module.namespace)

    async def _ticker(self) -> None:
        while True:
            await asyncio.sleep(self.tick_interval)
            await self.tick()

    async def run(self) -> None:
        """Read from the transport until it closes, then shut down."""
        self.start()
        ticker = None
        if self.tick_interval > 0:
            ticker = asyncio.create_task(self._ticker(), name="ticker")
            ticker.add_done_callback(log_task_exception)
        try:
            while True:
                line = await asyncio.to_thread(self.conn.read)
                if line is None:
                    break
                await self.dispatch_line(line)
        finally:
            if ticker is not None:
                ticker.cancel()
                try:
                    await ticker
                except asyncio.CancelledError:
                    pass
            await self.close()

    async def close(self) -> None:
        """Close every inbox and wait for all queued work to be sent."""
        if not self.running:
            return
        self.running = False
        for worker in self._workers:
            worker.inbox.close()
        for worker in self._workers:
            await asyncio.gather(worker.task, return_exceptions=True)
            worker.outbox.close()
            await asyncio.gather(worker.forwarder, return_exceptions=True)
        self._collected.close()
        await asyncio.gather(self._collector, return_exceptions=True)
        logger.info("worker_pool_stopped", modules=len(self._workers))
        self._workers.clear()
