"""Custom exception hierarchy for shaken.

Every error raised by the bot derives from ShakenError, so callers can
catch broadly at the top level while subsystems handle their own kinds.
None of these are retried: an error is either logged and dropped for
the current message, or fatal for the operation that raised it.
"""

from typing import Any, Optional


class ShakenError(Exception):
    """Base exception for all shaken errors.

    Attributes:
        message: Human-readable error description.
        module: Originating subsystem name (e.g. "registry").
        context: Arbitrary key-value pairs for structured logging.
    """

    def __init__(
        self,
        message: str = "",
        *,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.message = message
        self.module = module
        self.context = context
        super().__init__(message)

    def __str__(self) -> str:
        parts = [self.message or self.__class__.__name__]
        if self.module:
            parts.append(f"[module={self.module}]")
        if self.context:
            ctx = ", ".join(f"{k}={v}" for k, v in self.context.items())
            parts.append(f"({ctx})")
        return " ".join(parts)

    def __repr__(self) -> str:
        cls = self.__class__.__name__
        return f"{cls}({self.message!r}, module={self.module!r})"


# ---------------------------------------------------------------------------
# Command registry
# ---------------------------------------------------------------------------

class CommandAlreadyExists(ShakenError):
    """A bare command name is already owned by some namespace.

    Attributes:
        command: The bare name that collided.
        namespace: Namespace that attempted the registration.
        owner: Namespace that already owns the name (if known).
    """

    def __init__(
        self,
        command: str,
        *,
        namespace: Optional[str] = None,
        owner: Optional[str] = None,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.command = command
        self.namespace = namespace
        self.owner = owner
        super().__init__(
            f"command {command!r} already exists",
            module=module or "registry",
            namespace=namespace,
            owner=owner,
            **context,
        )


# ---------------------------------------------------------------------------
# Modules
# ---------------------------------------------------------------------------

class ModuleLoadError(ShakenError):
    """A configured module could not be imported or constructed."""

    def __init__(
        self,
        message: str = "",
        *,
        target: Optional[str] = None,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.target = target
        super().__init__(
            message, module=module or "module_loader", target=target, **context
        )


class ChannelClosed(ShakenError):
    """Receive or send on an event channel that has been closed."""

    def __init__(self, message: str = "channel closed", **context: Any) -> None:
        super().__init__(message, module="module", **context)


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------

class MalformedTagsError(ShakenError):
    """A message is missing, or carries unparsable, identity tags.

    Attributes:
        tag: The tag that was missing or invalid.
    """

    def __init__(
        self,
        message: str = "",
        *,
        tag: Optional[str] = None,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.tag = tag
        super().__init__(message, module=module or "irc", tag=tag, **context)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

class ConfigurationError(ShakenError):
    """Invalid or missing configuration."""

    def __init__(
        self,
        message: str = "",
        *,
        setting_name: Optional[str] = None,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.setting_name = setting_name
        super().__init__(message, module=module or "config", **context)


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

class DatabaseError(ShakenError):
    """Error during user directory operations.

    Attributes:
        operation: The DB operation that failed (e.g. "insert", "query").
        table: The table involved (if known).
    """

    def __init__(
        self,
        message: str = "",
        *,
        operation: Optional[str] = None,
        table: Optional[str] = None,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.operation = operation
        self.table = table
        super().__init__(message, module=module or "database", **context)
