"""Tests for IRC line parsing and the transports."""

import socket

import pytest

from shaken.color import RGB
from shaken.exceptions import MalformedTagsError
from shaken.irc import Conn, Message, Prefix, TestConn


class TestMessageParse:

    def test_privmsg_with_tags(self):
        msg = Message.parse(
            "@badges=;color=#FF0000;display-name=Museun;user-id=23196011 "
            ":museun!museun@museun.tmi.twitch.tv PRIVMSG #museun :hello world\r\n"
        )
        assert msg.command == "PRIVMSG"
        assert msg.args == ["#museun"]
        assert msg.data == "hello world"
        assert msg.channel == "#museun"
        assert msg.tags["display-name"] == "Museun"
        assert msg.tags["badges"] == ""
        assert msg.prefix == Prefix(nick="museun", user="museun", host="museun.tmi.twitch.tv")
        assert msg.nick == "museun"

    def test_server_prefix(self):
        msg = Message.parse(":tmi.twitch.tv 001 shaken_bot :Welcome, GLHF!")
        assert msg.command == "001"
        assert msg.args == ["shaken_bot"]
        assert msg.data == "Welcome, GLHF!"
        assert msg.prefix.is_user is False
        assert msg.prefix.host == "tmi.twitch.tv"

    def test_no_prefix_no_trailing(self):
        msg = Message.parse("JOIN #test")
        assert msg.prefix is None
        assert msg.command == "JOIN"
        assert msg.args == ["#test"]
        assert msg.data == ""

    def test_trailing_keeps_colons(self):
        msg = Message.parse(":a!a@a PRIVMSG #c :look: a :colon")
        assert msg.data == "look: a :colon"

    def test_tag_value_unescaping(self):
        msg = Message.parse(r"@msg=hello\sthere\:\\ok :tmi.twitch.tv NOTICE #c :x")
        assert msg.tags["msg"] == "hello there;\\ok"

    def test_command_is_uppercased(self):
        assert Message.parse("privmsg #c :x").command == "PRIVMSG"

    def test_channel_absent(self):
        assert Message.parse(":tmi.twitch.tv GLOBALUSERSTATE").channel is None


class TestIdentityTags:

    def test_all_tags_present(self):
        msg = Message.parse(
            "@color=#0000FF;display-name=Test;user-id=1004 :test!test@test PRIVMSG #c :x"
        )
        assert msg.get_display() == "Test"
        assert msg.get_color() == RGB(r=0, g=0, b=255)
        assert msg.get_userid() == 1004

    def test_empty_color_gets_default(self):
        msg = Message.parse("@color=;display-name=Test;user-id=1 :t!t@t PRIVMSG #c :x")
        assert msg.get_color() == RGB()

    def test_missing_userid(self):
        msg = Message.parse("@color=#ffffff;display-name=Test :t!t@t PRIVMSG #c :x")
        with pytest.raises(MalformedTagsError) as exc_info:
            msg.get_userid()
        assert exc_info.value.tag == "user-id"

    def test_invalid_userid(self):
        msg = Message.parse("@user-id=abc :t!t@t PRIVMSG #c :x")
        with pytest.raises(MalformedTagsError):
            msg.get_userid()

    def test_invalid_color(self):
        msg = Message.parse("@color=#zzzzzz :t!t@t PRIVMSG #c :x")
        with pytest.raises(MalformedTagsError) as exc_info:
            msg.get_color()
        assert exc_info.value.tag == "color"

    def test_missing_color(self):
        with pytest.raises(MalformedTagsError):
            Message.parse(":t!t@t PRIVMSG #c :x").get_color()

    def test_display_falls_back_to_nick(self):
        assert Message.parse(":nick!nick@host PRIVMSG #c :x").get_display() == "nick"

    def test_missing_display_without_prefix(self):
        with pytest.raises(MalformedTagsError):
            Message.parse("PRIVMSG #c :x").get_display()


class TestTestConn:

    def test_read_in_push_order(self):
        conn = TestConn()
        conn.push("a")
        conn.push("b")
        assert conn.read() == "a"
        assert conn.read() == "b"
        assert conn.read() is None

    def test_write_then_pop(self):
        conn = TestConn()
        conn.write("x")
        conn.write("y")
        assert conn.pop() == "x"
        assert conn.pop() == "y"
        assert conn.pop() is None

    def test_close_drops_pending_input(self):
        conn = TestConn()
        conn.push("a")
        conn.close()
        assert conn.read() is None


class TestTcpConn:

    @pytest.fixture
    def server(self):
        srv = socket.create_server(("127.0.0.1", 0))
        yield srv
        srv.close()

    def test_ping_answered_and_lines_returned(self, server):
        conn = Conn("127.0.0.1", server.getsockname()[1])
        peer, _ = server.accept()
        try:
            peer.sendall(b"PING :tmi.twitch.tv\r\n:tmi.twitch.tv 001 bot :Welcome\r\n")
            assert conn.read() == ":tmi.twitch.tv 001 bot :Welcome"
            assert peer.recv(64) == b"PONG :tmi.twitch.tv\r\n"
        finally:
            conn.close()
            peer.close()

    def test_close_releases_reader(self, server):
        conn = Conn("127.0.0.1", server.getsockname()[1])
        peer, _ = server.accept()
        conn.close()
        conn.close()
        peer.close()
        assert conn._reader.closed
        assert conn.read() is None
