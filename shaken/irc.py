"""IRC message parsing and line-oriented transports.

Parses a single IRCv3 line (tags, prefix, command, params, trailing)
into a Message, and provides two transports with the same read/write
surface: Conn over a TCP socket and TestConn over in-memory queues.

Key classes:
    Prefix: Message source, either a user (nick!user@host) or a server.
    Message: A parsed IRC line.
    Conn: Blocking TCP transport; answers PING on its own.
    TestConn: In-memory transport used by the testing environment.
"""

import socket
import threading
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, List, Optional

import structlog

from .color import RGB
from .exceptions import MalformedTagsError

logger = structlog.get_logger("shaken.irc")

TWITCH_HOST = "irc.chat.twitch.tv"
TWITCH_PORT = 6667

_TAG_ESCAPES = {":": ";", "s": " ", "\\": "\\", "r": "\r", "n": "\n"}


def _unescape_tag(value: str) -> str:
    out = []
    chars = iter(value)
    for ch in chars:
        if ch != "\\":
            out.append(ch)
            continue
        nxt = next(chars, None)
        if nxt is None:
            break
        out.append(_TAG_ESCAPES.get(nxt, nxt))
    return "".join(out)


@dataclass(frozen=True)
class Prefix:
    """Source of a message.

    A user prefix carries ``nick`` (and usually ``user``/``host``); a
    server prefix carries only ``host``.
    """

    nick: Optional[str] = None
    user: Optional[str] = None
    host: Optional[str] = None

    @property
    def is_user(self) -> bool:
        return self.nick is not None

    @classmethod
    def parse(cls, raw: str) -> "Prefix":
        if "!" not in raw and "@" not in raw:
            # bare server name, e.g. tmi.twitch.tv
            if "." in raw:
                return cls(host=raw)
            return cls(nick=raw)
        nick, _, rest = raw.partition("!")
        user, _, host = rest.partition("@")
        if not rest and "@" in nick:
            nick, _, host = nick.partition("@")
        return cls(nick=nick, user=user or None, host=host or None)


@dataclass
class Message:
    """A parsed IRC line.

    Attributes:
        tags: IRCv3 message tags with values unescaped.
        prefix: Source of the message, if any.
        command: Command or numeric (e.g. "PRIVMSG", "001").
        args: Middle parameters.
        data: Trailing parameter (text after " :"), or "".
    """

    command: str
    tags: Dict[str, str] = field(default_factory=dict)
    prefix: Optional[Prefix] = None
    args: List[str] = field(default_factory=list)
    data: str = ""

    @classmethod
    def parse(cls, line: str) -> "Message":
        line = line.rstrip("\r\n")
        tags: Dict[str, str] = {}
        if line.startswith("@"):
            raw_tags, _, line = line[1:].partition(" ")
            for part in raw_tags.split(";"):
                if not part:
                    continue
                key, _, value = part.partition("=")
                tags[key] = _unescape_tag(value)

        prefix = None
        line = line.lstrip(" ")
        if line.startswith(":"):
            raw_prefix, _, line = line[1:].partition(" ")
            prefix = Prefix.parse(raw_prefix)

        head, _, data = line.partition(" :")
        parts = head.split()
        command = parts[0].upper() if parts else ""
        return cls(
            command=command,
            tags=tags,
            prefix=prefix,
            args=parts[1:],
            data=data,
        )

    @property
    def channel(self) -> Optional[str]:
        """First parameter that names a channel (``#...``)."""
        for arg in self.args:
            if arg.startswith("#"):
                return arg
        return None

    @property
    def nick(self) -> Optional[str]:
        return self.prefix.nick if self.prefix else None

    # --- Twitch identity tags ---

    def get_display(self) -> str:
        display = self.tags.get("display-name")
        if not display:
            display = self.nick
        if not display:
            raise MalformedTagsError("missing display-name tag", tag="display-name")
        return display

    def get_color(self) -> RGB:
        if "color" not in self.tags:
            raise MalformedTagsError("missing color tag", tag="color")
        value = self.tags["color"]
        # users who never picked a color send an empty tag
        if not value:
            return RGB()
        try:
            return RGB.from_hex(value)
        except ValueError as e:
            raise MalformedTagsError(str(e), tag="color") from e

    def get_userid(self) -> int:
        value = self.tags.get("user-id")
        if value is None:
            raise MalformedTagsError("missing user-id tag", tag="user-id")
        try:
            return int(value)
        except ValueError as e:
            raise MalformedTagsError(
                f"invalid user-id: {value!r}", tag="user-id"
            ) from e


class Conn:
    """Blocking, line-oriented TCP transport.

    ``read`` returns one line without the trailing CRLF, or None once the
    peer has closed the connection. PING is answered here so that the
    dispatch loop never sees it.
    """

    def __init__(self, host: str = TWITCH_HOST, port: int = TWITCH_PORT):
        self.host = host
        self.port = port
        self._sock = socket.create_connection((host, port))
        self._reader = self._sock.makefile("r", encoding="utf-8", errors="replace", newline="\r\n")
        self._write_lock = threading.Lock()
        self._closed = False
        logger.info("irc_connected", host=host, port=port)

    def read(self) -> Optional[str]:
        while not self._closed:
            try:
                line = self._reader.readline()
            except (OSError, ValueError) as e:
                logger.warning("irc_read_failed", error=str(e))
                return None
            if not line:
                logger.info("irc_disconnected", host=self.host)
                return None
            line = line.rstrip("\r\n")
            if line.startswith("PING"):
                self.write("PONG" + line[4:])
                continue
            logger.debug("irc_read", line=line)
            return line
        return None

    def write(self, data: str) -> None:
        logger.debug("irc_write", line=data)
        with self._write_lock:
            try:
                self._sock.sendall(data.encode("utf-8") + b"\r\n")
            except OSError as e:
                logger.error("irc_write_failed", error=str(e))

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        self._reader.close()
        self._sock.close()


class TestConn:
    """In-memory transport.

    ``push`` queues an inbound line for ``read``; everything passed to
    ``write`` can be taken back with ``pop``. ``read`` returns None when
    nothing is queued, which ends a bot's run loop.
    """

    __test__ = False  # not a pytest test class

    def __init__(self):
        self._inbound: Deque[str] = deque()
        self._outbound: Deque[str] = deque()
        self._lock = threading.Lock()

    def push(self, line: str) -> None:
        with self._lock:
            self._inbound.append(line)

    def pop(self) -> Optional[str]:
        with self._lock:
            return self._outbound.popleft() if self._outbound else None

    def read(self) -> Optional[str]:
        with self._lock:
            return self._inbound.popleft() if self._inbound else None

    def write(self, data: str) -> None:
        with self._lock:
            self._outbound.append(data)

    def close(self) -> None:
        with self._lock:
            self._inbound.clear()
