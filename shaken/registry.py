"""Command registry for shaken.

The registry owns every bare command name in the bot. A name belongs to
exactly one namespace (usually a module's name) for the lifetime of the
registry, and nothing is ever removed. One Registry is created at bot
start-up and handed to every module that builds a CommandMap.

Key classes:
    Command: Immutable (name, namespace) pair.
    Registry: Append-only mapping of bare name -> owning namespace.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

import structlog

from .exceptions import CommandAlreadyExists

logger = structlog.get_logger("shaken.modules")


@dataclass(frozen=True)
class Command:
    """A command name qualified by the namespace that declares it."""

    name: str
    namespace: str

    @property
    def qualified_name(self) -> str:
        return f"{self.namespace}.{self.name}"


class Registry:
    """Maps bare command names to the namespace that owns them.

    Uniqueness is enforced on the bare name only: two namespaces can
    never both register "help".
    """

    def __init__(self):
        self._commands: Dict[str, Command] = {}

    def register(self, command: Command) -> None:
        """Register a single command.

        Raises:
            CommandAlreadyExists: The bare name is already registered.
        """
        existing = self._commands.get(command.name)
        if existing is not None:
            logger.warning(
                "command_already_exists",
                command=command.name,
                namespace=command.namespace,
                owner=existing.namespace,
            )
            raise CommandAlreadyExists(
                command.name,
                namespace=command.namespace,
                owner=existing.namespace,
            )
        self._commands[command.name] = command
        logger.debug(
            "command_registered",
            command=command.name,
            namespace=command.namespace,
        )

    def register_all(self, commands: Iterable[Command]) -> None:
        """Register a batch of commands, all or nothing.

        Every name is checked against the registry and against the rest
        of the batch before anything is committed, so a collision leaves
        the registry exactly as it was.

        Raises:
            CommandAlreadyExists: On the first colliding name.
        """
        batch: Dict[str, Command] = {}
        for command in commands:
            owner = self._commands.get(command.name) or batch.get(command.name)
            if owner is not None:
                logger.warning(
                    "command_already_exists",
                    command=command.name,
                    namespace=command.namespace,
                    owner=owner.namespace,
                )
                raise CommandAlreadyExists(
                    command.name,
                    namespace=command.namespace,
                    owner=owner.namespace,
                )
            batch[command.name] = command

        for command in batch.values():
            self.register(command)

    def exists(self, name: str) -> bool:
        return name in self._commands

    def namespace_of(self, name: str) -> Optional[str]:
        """Return the namespace owning a bare name, or None."""
        command = self._commands.get(name)
        return command.namespace if command else None

    def get(self, name: str) -> Optional[Command]:
        return self._commands.get(name)

    def commands_in(self, namespace: str) -> List[Command]:
        """All commands registered by one namespace, in registration order."""
        return [c for c in self._commands.values() if c.namespace == namespace]

    @property
    def commands(self) -> List[Command]:
        """All registered commands, in registration order."""
        return list(self._commands.values())

    def __contains__(self, name: str) -> bool:
        return self.exists(name)

    def __len__(self) -> int:
        return len(self._commands)
