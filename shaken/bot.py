"""Twitch chat bot implementation for shaken.

Owns the transport connection and an ordered list of modules, and runs
the synchronous read-dispatch-send cycle: one line is read, parsed,
fanned out to every module in order, and the collected replies are
rendered and written back before the next line is read.

Key classes:
    Bot: The synchronous dispatcher.

Key functions:
    add_user_from_msg: Upsert the author of a message into the user
        directory and return their id.
    try_make_request: Derive a command Request from a message.
"""

from typing import Callable, List, Optional

import structlog

from . import database
from .color import RGB
from .exceptions import MalformedTagsError
from .irc import Message
from .module import Module, dispatch_message
from .registry import Registry
from .request import COMMAND_MESSAGES, Request, Response
from .user import User, UserStore

logger = structlog.get_logger("shaken.bot")

BOT_COLOR = RGB.from_hex("#fc0fc0")

CAPABILITIES = (
    "twitch.tv/tags",
    "twitch.tv/membership",
    "twitch.tv/commands",
)

InspectHook = Callable[[Message, Response], None]


def _no_inspect(msg: Message, resp: Response) -> None:
    pass


def call_inspect(hook: InspectHook, msg: Message, resp: Response) -> None:
    """Run an inspect hook; a failing hook never stops the response."""
    try:
        hook(msg, resp)
    except Exception as e:
        logger.error(
            "inspect_hook_failed",
            command=msg.command,
            error=str(e),
            error_type=type(e).__name__,
            exc_info=True,
        )


def user_from_msg(msg: Message) -> Optional[User]:
    """Build the User a message identifies, or None for other kinds.

    Raises:
        MalformedTagsError: Identity tags are missing or invalid.
    """
    if msg.command in COMMAND_MESSAGES:
        return User(
            userid=msg.get_userid(),
            display=msg.get_display(),
            color=msg.get_color(),
        )
    if msg.command == "GLOBALUSERSTATE":
        # this is our own user
        return User(
            userid=msg.get_userid(),
            display=msg.get_display(),
            color=BOT_COLOR,
        )
    return None


def add_user_from_msg(msg: Message) -> Optional[int]:
    """Record the author of ``msg`` and return their user id.

    Returns None when the message carries no identity. Store failures
    are logged by the store and do not affect the returned id.

    Raises:
        MalformedTagsError: Identity tags are missing or invalid.
    """
    user = user_from_msg(msg)
    if user is None:
        return None
    UserStore.create_user(database.get_connection(), user)
    return user.userid


def try_make_request(msg: Message) -> Optional[Request]:
    """Derive a Request from a chat message sent by a user.

    Malformed identity tags only skip request derivation for this
    message; the message itself still reaches passive/event handlers.
    """
    try:
        userid = add_user_from_msg(msg)
    except MalformedTagsError as e:
        logger.warning(
            "malformed_identity_tags",
            command=msg.command,
            tag=e.tag,
            error=e.message,
        )
        return None

    if msg.command not in COMMAND_MESSAGES or userid is None:
        return None
    if msg.prefix is None or not msg.prefix.is_user:
        return None
    return Request.try_parse(userid, msg.data)


class Bot:
    """Synchronous dispatcher over one connection and a list of modules.

    Args:
        conn: Transport with ``read() -> Optional[str]`` and ``write(str)``.
        registry: Command registry shared with every module built for
            this bot. A fresh one is created when omitted.
        inspect: Hook called with every (message, response) pair before
            the response is sent.
    """

    def __init__(
        self,
        conn,
        registry: Optional[Registry] = None,
        inspect: Optional[InspectHook] = None,
    ):
        self.conn = conn
        self.registry = registry if registry is not None else Registry()
        self.modules: List[Module] = []
        self._inspect: InspectHook = inspect or _no_inspect

    def add(self, module: Module) -> None:
        self.modules.append(module)
        logger.info("module_added", module=module.namespace)

    def set_inspect(self, hook: InspectHook) -> None:
        self._inspect = hook

    def register(self, nick: str, password: str) -> None:
        """Request Twitch capabilities and log in."""
        logger.debug("registering", nick=nick)
        for cap in CAPABILITIES:
            self.send(f"CAP REQ :{cap}")
        self.send(f"PASS {password}")
        self.send(f"NICK {nick}")
        logger.info("registered", nick=nick)

    def join(self, channel: str) -> None:
        if not channel.startswith("#"):
            channel = f"#{channel}"
        self.send(f"JOIN {channel}")
        logger.info("channel_join", channel=channel)

    def send(self, data: str) -> None:
        self.conn.write(data)

    def run(self) -> None:
        logger.info("run_loop_starting", modules=len(self.modules))
        while self.step() is not None:
            pass
        logger.info("run_loop_ended")

    def step(self) -> Optional[bool]:
        """Process one inbound line.

        Returns True after a completed iteration, or None once the
        transport is closed.
        """
        line = self.conn.read()
        if line is None:
            return None

        msg = Message.parse(line)
        req = try_make_request(msg)

        out: List[Response] = []
        for module in self.modules:
            out.extend(dispatch_message(module, msg, req))

        for resp in out:
            call_inspect(self._inspect, msg, resp)
            for rendered in resp.build(msg):
                logger.debug("writing_response", line=rendered)
                self.send(rendered)

        return True
