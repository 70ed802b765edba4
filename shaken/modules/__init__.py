"""Modules shipped with shaken."""

from .builtin import Builtin

__all__ = ["Builtin"]
