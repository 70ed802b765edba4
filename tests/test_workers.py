"""Tests for the worker-per-module WorkerPool."""

import asyncio

import pytest

from shaken import database
from shaken.irc import TestConn
from shaken.module import CommandMap, Module
from shaken.registry import Registry
from shaken.request import Response
from shaken.user import UserStore
from shaken.workers import WorkerPool

CHAT = (
    "@user-id=1000;display-name=test;color=#FFFFFF "
    ":test!user@irc.test PRIVMSG #test :{}"
)


class Counter(Module):
    name = "Counter"

    def __init__(self, registry):
        self.count = 0
        self.inspected = []
        self.ticks = []
        self.commands = CommandMap.create(registry, self.namespace, [("count", Counter.count_command)])

    def command(self, req):
        return self.commands.dispatch(self, req)

    def count_command(self, req):
        self.count += 1
        return Response.say(f"count {self.count} {req.args}".strip())

    def tick(self, timestamp):
        self.ticks.append(timestamp)
        return Response.say(f"tick {timestamp}", target="#test")

    def inspect(self, msg, resp):
        self.inspected.append(resp)


class Quiet(Module):
    def __init__(self):
        self.seen = []

    def passive(self, msg):
        self.seen.append(msg.data)
        return None


def _drain(conn):
    out = []
    while (line := conn.pop()) is not None:
        out.append(line)
    return out


@pytest.mark.asyncio
async def test_pool_routes_commands_and_preserves_order():
    conn = TestConn()
    counter = Counter(Registry())
    pool = WorkerPool(conn, [counter])
    pool.start()
    for name in ("a", "b", "c"):
        await pool.dispatch_line(CHAT.format(f"!count {name}"))
    await pool.close()

    assert _drain(conn) == [
        "PRIVMSG #test :count 1 a",
        "PRIVMSG #test :count 2 b",
        "PRIVMSG #test :count 3 c",
    ]


@pytest.mark.asyncio
async def test_every_module_sees_every_message():
    conn = TestConn()
    quiet_a, quiet_b = Quiet(), Quiet()
    pool = WorkerPool(conn, [quiet_a, quiet_b])
    pool.start()
    await pool.dispatch_line(CHAT.format("hello"))
    await pool.dispatch_line(CHAT.format("world"))
    await pool.close()

    assert quiet_a.seen == ["hello", "world"]
    assert quiet_b.seen == ["hello", "world"]
    assert _drain(conn) == []


@pytest.mark.asyncio
async def test_tick_emits_without_origin():
    conn = TestConn()
    counter = Counter(Registry())
    pool = WorkerPool(conn, [counter])
    pool.start()
    await pool.tick(12.0)
    await pool.close()

    assert counter.ticks == [12.0]
    assert _drain(conn) == ["PRIVMSG #test :tick 12.0"]
    # origin-less output is not inspected
    assert counter.inspected == []


@pytest.mark.asyncio
async def test_inspect_hook_and_module_inspect():
    conn = TestConn()
    counter = Counter(Registry())
    hooked = []
    pool = WorkerPool(conn, [counter], inspect=lambda msg, resp: hooked.append((msg.data, resp)))
    pool.start()
    await pool.dispatch_line(CHAT.format("!count"))
    await pool.close()

    assert hooked == [("!count", Response.say("count 1"))]
    assert _drain(conn) == ["PRIVMSG #test :count 1"]


@pytest.mark.asyncio
async def test_run_reads_until_transport_closes():
    conn = TestConn()
    counter = Counter(Registry())
    conn.push(CHAT.format("!count"))
    conn.push(CHAT.format("!count"))
    pool = WorkerPool(conn, [counter], tick_interval=0)
    await pool.run()

    assert counter.count == 2
    assert pool.running is False
    assert _drain(conn) == ["PRIVMSG #test :count 1", "PRIVMSG #test :count 2"]


@pytest.mark.asyncio
async def test_close_is_idempotent():
    pool = WorkerPool(TestConn(), [Quiet()])
    pool.start()
    await pool.close()
    await pool.close()
    assert pool.running is False


@pytest.mark.asyncio
async def test_failing_inspect_hook_does_not_stall_pool():
    conn = TestConn()
    counter = Counter(Registry())

    def hook(msg, resp):
        if "boom" in msg.data:
            raise RuntimeError("hook failed")

    pool = WorkerPool(conn, [counter], queue_size=2, inspect=hook)
    pool.start()
    await pool.dispatch_line(CHAT.format("!count boom"))
    for i in range(8):
        await pool.dispatch_line(CHAT.format(f"!count {i}"))
    await asyncio.wait_for(pool.close(), timeout=2)

    sent = _drain(conn)
    assert sent[0] == "PRIVMSG #test :count 1 boom"
    assert sent[1:] == [f"PRIVMSG #test :count {i + 2} {i}" for i in range(8)]


@pytest.mark.asyncio
async def test_dispatch_records_sender_off_loop():
    counter = Counter(Registry())
    pool = WorkerPool(TestConn(), [counter])
    pool.start()
    await pool.dispatch_line(
        "@user-id=3000;display-name=Viewer;color=#00FF00 "
        ":viewer!viewer@irc.test PRIVMSG #test :!count"
    )
    await pool.close()

    user = UserStore.get_user_by_id(database.get_connection(), 3000)
    assert user is not None
    assert user.display == "Viewer"
    assert counter.count == 1
