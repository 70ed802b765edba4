"""Module discovery, construction and validation.

Modules are named in settings.yaml as ``package.module:ClassName``.
Each class is imported, checked to be a Module subclass and
constructed with a ModuleContext that exposes the shared command
registry and the module's own settings section.
"""

import importlib
from typing import Any, Dict, List

import structlog

from .exceptions import CommandAlreadyExists, ModuleLoadError
from .module import Module
from .registry import Registry

logger = structlog.get_logger("shaken.modules")


class ModuleContext:
    """What a module gets at construction time.

    Args:
        registry: Command registry shared by every module of the bot.
        namespace: Name the module registers its commands under.
        settings: Full ``module_settings`` mapping; only the module's
            own section is kept.
    """

    def __init__(self, registry: Registry, namespace: str, settings: Dict[str, Any]):
        self.registry = registry
        self.namespace = namespace
        self._settings = settings.get(namespace, {}) or {}
        self.logger = structlog.get_logger("shaken.modules", module=namespace)

    def get_config(self, key: str, default: Any = None) -> Any:
        """Read ``module_settings.<namespace>.<key>``."""
        return self._settings.get(key, default)


def _import_target(target: str) -> type:
    module_path, sep, class_name = target.partition(":")
    if not sep or not module_path or not class_name:
        raise ModuleLoadError(
            f"invalid module target {target!r}, expected 'package.module:ClassName'",
            target=target,
        )
    try:
        py_module = importlib.import_module(module_path)
    except ImportError as e:
        raise ModuleLoadError(f"cannot import {module_path}: {e}", target=target) from e

    cls = getattr(py_module, class_name, None)
    if not (isinstance(cls, type) and issubclass(cls, Module)) or cls is Module:
        raise ModuleLoadError(f"{target} is not a Module subclass", target=target)
    return cls


def _namespace(cls: type) -> str:
    return cls.name or cls.__name__


class ModuleLoader:
    """Builds the configured modules in order against one registry."""

    def __init__(self, registry: Registry, settings: Dict[str, Any]):
        self.registry = registry
        self._settings = settings
        self.modules: List[Module] = []

    def load(self, target: str) -> Module:
        """Import and construct one module.

        Raises:
            ModuleLoadError: The target cannot be imported, isn't a
                Module, or its commands collide with registered ones.
        """
        return self._build(_import_target(target), target)

    def _build(self, cls: type, target: str) -> Module:
        namespace = _namespace(cls)
        ctx = ModuleContext(self.registry, namespace, self._settings)
        try:
            module = cls(ctx)
        except CommandAlreadyExists as e:
            raise ModuleLoadError(
                f"cannot start {namespace}: {e.message}",
                target=target,
                command=e.command,
                owner=e.owner,
            ) from e
        self.modules.append(module)
        logger.info("module_loaded", module=namespace, target=target)
        return module

    def load_all(self, targets: List[str]) -> List[Module]:
        """Load every target, logging and skipping the ones that fail."""
        for target in targets:
            try:
                cls = _import_target(target)
                namespace = _namespace(cls)
                if (self._settings.get(namespace) or {}).get("enabled") is False:
                    logger.info("module_skipped_disabled", module=namespace)
                    continue
                self._build(cls, target)
            except ModuleLoadError as e:
                logger.error(
                    "module_load_failed",
                    target=target,
                    error=e.message,
                    error_type=type(e).__name__,
                )
        logger.info(
            "module_loader_complete",
            modules_loaded=len(self.modules),
            commands=len(self.registry),
        )
        return list(self.modules)
