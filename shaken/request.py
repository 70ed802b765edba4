"""Command requests and module responses.

A Request is derived from a chat message that starts with the command
sigil. Modules answer with a Response, which the bot renders into
transport lines bound to the message it answers.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import List, Optional, Tuple

import structlog

from .exceptions import MalformedTagsError
from .irc import Message

logger = structlog.get_logger("shaken.bot")

COMMAND_SIGIL = "!"

# Command-class messages: routed to command/passive instead of event.
COMMAND_MESSAGES = frozenset({"PRIVMSG", "WHISPER"})

WHISPER_CHANNEL = "#jtv"


@dataclass(frozen=True)
class Request:
    """A command invocation.

    Attributes:
        sender: User id of the author.
        text: Message text with the sigil stripped.
        name: Command name once resolved by ``search``, else None.
        args: Text after the command name, once resolved.
    """

    sender: int
    text: str
    name: Optional[str] = None
    args: str = ""

    @classmethod
    def try_parse(cls, sender: int, data: str) -> Optional["Request"]:
        """Build a request from message text, or None if it isn't one."""
        if not data.startswith(COMMAND_SIGIL):
            return None
        text = data[len(COMMAND_SIGIL):].strip()
        if not text:
            return None
        return cls(sender=sender, text=text)

    def search(self, name: str) -> Optional["Request"]:
        """Match ``name`` as a leading whitespace-delimited token.

        Returns a copy with ``name`` set and ``args`` holding the rest of
        the text, or None if the text doesn't start with ``name``.
        """
        if not name or not self.text.startswith(name):
            return None
        rest = self.text[len(name):]
        if rest and not rest[0].isspace():
            return None
        return replace(self, name=name, args=rest.strip())

    @property
    def args_list(self) -> List[str]:
        return self.args.split()


class ResponseKind(str, Enum):
    SAY = "say"
    REPLY = "reply"
    ACTION = "action"


@dataclass(frozen=True)
class Response:
    """One or more lines to send back to chat.

    Attributes:
        lines: Text lines, each sent as its own message.
        kind: How the lines are addressed.
        target: Explicit channel. Needed when there is no originating
            message (e.g. tick output); overrides the message's channel.
    """

    lines: Tuple[str, ...]
    kind: ResponseKind = ResponseKind.SAY
    target: Optional[str] = None

    @classmethod
    def say(cls, *lines: str, target: Optional[str] = None) -> "Response":
        return cls(tuple(lines), ResponseKind.SAY, target)

    @classmethod
    def reply(cls, *lines: str) -> "Response":
        return cls(tuple(lines), ResponseKind.REPLY)

    @classmethod
    def action(cls, *lines: str, target: Optional[str] = None) -> "Response":
        return cls(tuple(lines), ResponseKind.ACTION, target)

    def _format(self, line: str, msg: Optional[Message]) -> str:
        if self.kind is ResponseKind.REPLY and msg is not None:
            try:
                who = msg.get_display()
            except MalformedTagsError:
                who = msg.nick
            if who:
                return f"@{who}: {line}"
        if self.kind is ResponseKind.ACTION:
            return f"\x01ACTION {line}\x01"
        return line

    def build(self, msg: Optional[Message]) -> List[str]:
        """Render transport lines for this response.

        Responses to a whisper go back as a whisper to its author.
        Otherwise the explicit target wins, then the message's channel.
        With neither, nothing can be sent and the result is empty.
        """
        if msg is not None and msg.command == "WHISPER" and self.target is None:
            nick = msg.nick
            if nick:
                return [
                    f"PRIVMSG {WHISPER_CHANNEL} :/w {nick} {line}"
                    for line in self.lines
                ]

        target = self.target or (msg.channel if msg is not None else None)
        if target is None:
            logger.warning(
                "response_without_target",
                kind=self.kind.value,
                command=msg.command if msg is not None else None,
            )
            return []
        return [f"PRIVMSG {target} :{self._format(line, msg)}" for line in self.lines]
