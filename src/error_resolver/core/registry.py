"""Fixer registry mapping root causes to fixers.

Concrete fixers live outside this package. They are registered either
programmatically or from ``"package.module:attribute"`` references in the
``fixers`` config section.
"""

from __future__ import annotations

import importlib
import inspect
from collections.abc import Awaitable, Callable, Mapping, Sequence
from pathlib import Path
from typing import Any

import structlog

from error_resolver.interfaces.fixer import Fixer
from error_resolver.models.diagnostic import AnalyzedError, RootCause
from error_resolver.models.execution import FixOutcome
from error_resolver.utils.async_helpers import CancellationToken, ConfigError, FixerNotFoundError

log = structlog.get_logger()

FixFunction = Callable[
    [frozenset[Path], Sequence[AnalyzedError], CancellationToken],
    Awaitable[FixOutcome | int],
]


class FunctionFixer:
    """Adapts a plain coroutine function to the Fixer protocol."""

    def __init__(self, func: FixFunction) -> None:
        self._func = func
        self.__name__ = getattr(func, "__name__", type(func).__name__)

    async def fix(
        self,
        files: frozenset[Path],
        errors: Sequence[AnalyzedError],
        token: CancellationToken,
    ) -> FixOutcome | int:
        return await self._func(files, errors, token)


def _as_fixer(obj: Any, ref: str) -> Fixer:
    """Turn an imported object into a Fixer instance."""
    if inspect.isclass(obj):
        obj = obj()
    if inspect.iscoroutinefunction(getattr(obj, "fix", None)):
        return obj
    if inspect.iscoroutinefunction(obj):
        return FunctionFixer(obj)
    raise ConfigError(f"{ref} is not a fixer: expected an async 'fix' method or coroutine function")


def load_fixer(ref: str) -> Fixer:
    """Import a fixer from a ``"package.module:attribute"`` reference.

    A class is instantiated with no arguments; an instance or a coroutine
    function is used as is.

    Raises:
        ConfigError: If the module or attribute can't be imported, or the
            object isn't a fixer
    """
    module_name, sep, attr_path = ref.partition(":")
    if not sep or not module_name or not attr_path:
        raise ConfigError(f"Invalid fixer reference: {ref}. Expected: module:attr")

    try:
        obj: Any = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigError(f"Cannot import fixer module {module_name}: {e}") from e

    for attr in attr_path.split("."):
        try:
            obj = getattr(obj, attr)
        except AttributeError as e:
            raise ConfigError(f"Fixer {ref} not found: {e}") from e

    try:
        return _as_fixer(obj, ref)
    except TypeError as e:
        raise ConfigError(f"Cannot instantiate fixer {ref}: {e}") from e


class FixerRegistry:
    """Registry that maps root causes to fixers.

    Example:
        >>> registry = FixerRegistry()
        >>> registry.register(RootCause.SYNTAX, SyntaxFixer())
        >>> fixer = registry.get(RootCause.SYNTAX)
    """

    def __init__(self) -> None:
        self._fixers: dict[RootCause, Fixer] = {}

    def register(self, root_cause: RootCause | str, fixer: Fixer | FixFunction) -> None:
        """Register a fixer for a root cause.

        Args:
            root_cause: Root cause (or its value) the fixer handles.
            fixer: An object with an async ``fix`` method, or a coroutine
                function with the same signature.

        Raises:
            ValueError: If the root cause is unknown, already has a fixer,
                or ``fixer`` isn't a fixer.
        """
        key = RootCause(root_cause)
        if key in self._fixers:
            raise ValueError(f"Fixer for root cause '{key}' already registered")
        if not hasattr(fixer, "fix") and inspect.iscoroutinefunction(fixer):
            fixer = FunctionFixer(fixer)
        if not callable(getattr(fixer, "fix", None)):
            raise ValueError(f"Object registered for '{key}' has no fix method")
        self._fixers[key] = fixer  # type: ignore[assignment]
        log.debug("fixer_registered", root_cause=key.value, fixer=type(fixer).__name__)

    def get(self, root_cause: RootCause | str) -> Fixer:
        """Get the fixer for a root cause.

        Raises:
            FixerNotFoundError: If no fixer is registered.
        """
        try:
            key = RootCause(root_cause)
        except ValueError as e:
            raise FixerNotFoundError(f"Unknown root cause: {root_cause}") from e
        fixer = self._fixers.get(key)
        if fixer is None:
            raise FixerNotFoundError(f"No fixer registered for root cause: {key}")
        return fixer

    def has(self, root_cause: RootCause | str) -> bool:
        """Check if a fixer is registered for the given root cause."""
        try:
            return RootCause(root_cause) in self._fixers
        except ValueError:
            return False

    def root_causes(self) -> list[RootCause]:
        """Root causes with a registered fixer, in priority order."""
        return [rc for rc in RootCause if rc in self._fixers]

    def __len__(self) -> int:
        return len(self._fixers)

    @classmethod
    def from_config(cls, mapping: Mapping[str, str]) -> FixerRegistry:
        """Build a registry from ``{root_cause: "module:attr"}`` references.

        Raises:
            ConfigError: If a reference can't be loaded or a root cause is unknown.
        """
        registry = cls()
        for root_cause, ref in mapping.items():
            try:
                registry.register(root_cause, load_fixer(ref))
            except ValueError as e:
                raise ConfigError(str(e)) from e
        log.info("fixers_loaded", root_causes=[rc.value for rc in registry.root_causes()])
        return registry
