"""Tests for CommandMap creation and longest-match dispatch."""

import pytest

from shaken.exceptions import CommandAlreadyExists
from shaken.module import CommandMap
from shaken.registry import Registry
from shaken.request import Request, Response


class Recorder:
    """Stands in for a module: records which handler ran."""

    def __init__(self):
        self.calls = []

    def foo(self, req):
        self.calls.append(("foo", req.args))
        return Response.say("foo")

    def foobar(self, req):
        self.calls.append(("foobar", req.args))
        return Response.say("foobar")

    def foo_bar(self, req):
        self.calls.append(("foo bar", req.args))
        return Response.say("foo bar")

    def nothing(self, req):
        self.calls.append(("nothing", req.args))
        return None


def _req(text):
    return Request(sender=1000, text=text)


def test_create_registers_every_name():
    registry = Registry()
    cmap = CommandMap.create(registry, "Rec", [("foo", Recorder.foo), ("foobar", Recorder.foobar)])
    assert registry.namespace_of("foo") == "Rec"
    assert registry.namespace_of("foobar") == "Rec"
    assert set(cmap.names) == {"foo", "foobar"}
    assert "foo" in cmap
    assert len(cmap) == 2


def test_create_fails_on_collision_with_other_module():
    registry = Registry()
    CommandMap.create(registry, "First", [("foo", Recorder.foo)])
    with pytest.raises(CommandAlreadyExists):
        CommandMap.create(registry, "Second", [("bar", Recorder.foobar), ("foo", Recorder.foo)])
    # nothing from the failed batch is left behind
    assert registry.exists("bar") is False
    assert registry.namespace_of("foo") == "First"


def test_foobar_wins_over_foo():
    registry = Registry()
    cmap = CommandMap.create(registry, "Rec", [("foo", Recorder.foo), ("foobar", Recorder.foobar)])
    rec = Recorder()
    resp = cmap.dispatch(rec, _req("foobar args"))
    assert resp == Response.say("foobar")
    assert rec.calls == [("foobar", "args")]


def test_longest_multi_word_name_wins_regardless_of_order():
    registry = Registry()
    cmap = CommandMap.create(registry, "Rec", [("foo bar", Recorder.foo_bar), ("foo", Recorder.foo)])
    rec = Recorder()
    cmap.dispatch(rec, _req("foo bar baz"))
    assert rec.calls == [("foo bar", "baz")]

    rec = Recorder()
    cmap.dispatch(rec, _req("foo baz"))
    assert rec.calls == [("foo", "baz")]


def test_shorter_name_is_a_token_match_only():
    registry = Registry()
    cmap = CommandMap.create(registry, "Rec", [("foo", Recorder.foo)])
    rec = Recorder()
    assert cmap.dispatch(rec, _req("foobar")) is None
    assert rec.calls == []


def test_no_match_invokes_nothing():
    registry = Registry()
    cmap = CommandMap.create(registry, "Rec", [("foo", Recorder.foo), ("foobar", Recorder.foobar)])
    rec = Recorder()
    assert cmap.dispatch(rec, _req("baz qux")) is None
    assert rec.calls == []


def test_exactly_one_handler_per_dispatch():
    registry = Registry()
    cmap = CommandMap.create(
        registry, "Rec",
        [("foo", Recorder.foo), ("foo bar", Recorder.foo_bar), ("foobar", Recorder.foobar)],
    )
    rec = Recorder()
    cmap.dispatch(rec, _req("foo bar"))
    assert len(rec.calls) == 1


def test_handler_returning_none_is_passed_through():
    registry = Registry()
    cmap = CommandMap.create(registry, "Rec", [("nothing", Recorder.nothing)])
    rec = Recorder()
    assert cmap.dispatch(rec, _req("nothing")) is None
    assert rec.calls == [("nothing", "")]


def test_map_is_read_only():
    registry = Registry()
    cmap = CommandMap.create(registry, "Rec", [("foo", Recorder.foo)])
    with pytest.raises(TypeError):
        cmap._handlers["bar"] = Recorder.foobar
