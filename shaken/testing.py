"""In-memory test environment for modules.

Environment wires a Bot to a TestConn and seeds the user directory with
a test user (id 1000) and the bot itself (id 42). Push chat text in,
step the bot, and pop the rendered replies back out.
"""

from typing import Optional

from . import database
from .bot import Bot
from .color import RGB
from .irc import Message, TestConn
from .module import Module
from .registry import Registry
from .user import User, UserStore

USER_ID = 1000
USER_NAME = "test"
BOT_ID = 42
BOT_NAME = "shaken_bot"
CHANNEL = "#test"


def make_test_user(conn, name: str, userid: int) -> User:
    """Create a user in the directory. Don't use 42 (bot) or 1000 (you)."""
    user = User(userid=userid, display=name, color=RGB.from_hex("#ffffff"))
    UserStore.create_user(conn, user)
    return user


class Environment:
    """A bot on an in-memory connection, for driving modules in tests."""

    __test__ = False  # not a pytest test class

    def __init__(self, registry: Optional[Registry] = None):
        self.conn = TestConn()
        self.bot = Bot(self.conn, registry=registry)
        self.db = database.get_connection()
        UserStore.create_user(
            self.db,
            User(userid=USER_ID, display=USER_NAME, color=RGB.from_hex("#f0f0f0")),
        )
        UserStore.create_user(
            self.db,
            User(userid=BOT_ID, display=BOT_NAME, color=RGB.from_hex("#f0f0f0")),
        )

    @property
    def registry(self) -> Registry:
        return self.bot.registry

    def add(self, module: Module) -> None:
        self.bot.add(module)

    def step(self) -> None:
        self.bot.step()

    def push(self, data: str) -> None:
        """Queue a chat message from the test user in the test channel."""
        self.conn.push(
            f"@user-id={USER_ID};display-name={USER_NAME};color=#FFFFFF "
            f":{USER_NAME}!user@irc.test PRIVMSG {CHANNEL} :{data}"
        )

    def push_raw(self, line: str) -> None:
        self.conn.push(line)

    def pop_raw(self) -> Optional[str]:
        return self.conn.pop()

    def pop(self) -> Optional[str]:
        """Next reply's text, parsed back as if a user had sent it."""
        line = self.conn.pop()
        if line is None:
            return None
        return Message.parse(f":{USER_NAME}!user@irc.test {line}").data

    def drain(self) -> None:
        while self.conn.pop() is not None:
            pass

    def get_user_id(self) -> int:
        return USER_ID

    def get_user_name(self) -> str:
        return USER_NAME
