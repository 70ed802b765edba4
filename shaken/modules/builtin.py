"""Builtin module: commands every shaken bot answers.

Handles: version, commands.
"""

import subprocess
from pathlib import Path
from typing import Optional

import structlog

from .. import __version__
from ..module import CommandMap, Module
from ..request import Request, Response

logger = structlog.get_logger("shaken.modules")

REPO_DIR = Path(__file__).resolve().parent.parent.parent


def git_revision(repo_dir: Path = REPO_DIR) -> Optional[str]:
    """Short revision and branch of the checkout, like ``abc123 (main)``."""

    def _run_git(*args: str) -> Optional[str]:
        try:
            result = subprocess.run(
                ["git", "-C", str(repo_dir), *args],
                capture_output=True, text=True, timeout=10,
            )
        except (OSError, subprocess.SubprocessError) as e:
            logger.debug("git_unavailable", error=str(e))
            return None
        out = result.stdout.strip()
        return out if result.returncode == 0 and out else None

    rev = _run_git("rev-parse", "--short=12", "HEAD")
    if rev is None:
        return None
    branch = _run_git("rev-parse", "--abbrev-ref", "HEAD")
    return f"{rev} ({branch})" if branch else rev


class Builtin(Module):
    """Answers ``!version`` and ``!commands``."""

    name = "Builtin"

    def __init__(self, ctx):
        self.ctx = ctx
        self.registry = ctx.registry
        # resolved once; handlers must not block
        self.revision = git_revision() if ctx.get_config("show_revision", True) else None
        if self.revision is None:
            ctx.logger.debug("revision_unavailable")
        self.commands = CommandMap.create(
            ctx.registry,
            self.namespace,
            [
                ("version", Builtin.version_command),
                ("commands", Builtin.commands_command),
            ],
        )

    def command(self, req: Request) -> Optional[Response]:
        return self.commands.dispatch(self, req)

    def version_command(self, req: Request) -> Optional[Response]:
        if self.revision:
            return Response.reply(f"shaken {__version__} @ {self.revision}")
        return Response.reply(f"shaken {__version__}")

    def commands_command(self, req: Request) -> Optional[Response]:
        """List registered commands, optionally for one namespace."""
        if req.args:
            names = [c.name for c in self.registry.commands_in(req.args)]
            if not names:
                return Response.reply(f"no commands in {req.args}")
        else:
            names = [c.name for c in self.registry.commands]
        return Response.reply(", ".join(f"!{n}" for n in sorted(names)))
