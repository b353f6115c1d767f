"""Registry of build step implementations.

Built-in steps register with the ``@step_registry.register`` decorator at
import time.  Third-party packages contribute steps by declaring
entry-points in the ``metro_pipeline.build_steps`` group of their own
``pyproject.toml``::

    [project.entry-points."metro_pipeline.build_steps"]
    gradle = "my_package.steps:GradleBuildStep"

and are picked up with::

    step_registry.load_entrypoints()
"""
from __future__ import annotations

import importlib.metadata
import logging
from collections.abc import Callable
from typing import Any

from metro_pipeline.steps.base import BuildStep

logger = logging.getLogger(__name__)

ENTRYPOINT_GROUP = "metro_pipeline.build_steps"


class StepNotFoundError(KeyError):
    """Raised when a requested step name is not registered."""

    def __init__(self, name: str, available: list[str]) -> None:
        self.step_name = name
        self.available = available
        super().__init__(
            f"Build step {name!r} is not registered. "
            f"Available steps: {', '.join(available) or 'none'}. "
            "Check that the package is installed and its entry-points are declared."
        )


class StepAlreadyRegisteredError(ValueError):
    """Raised when attempting to register a name that already exists."""

    def __init__(self, name: str) -> None:
        self.step_name = name
        super().__init__(
            f"Build step {name!r} is already registered. "
            "Use a unique name or deregister the existing entry first."
        )


class StepRegistry:
    """Name → ``BuildStep`` subclass mapping."""

    def __init__(self) -> None:
        self._steps: dict[str, type[BuildStep]] = {}

    def register(self, name: str) -> Callable[[type[BuildStep]], type[BuildStep]]:
        """Return a class decorator that registers the decorated step.

        Raises
        ------
        StepAlreadyRegisteredError
            If ``name`` is already in use.
        TypeError
            If the decorated class does not subclass ``BuildStep``.
        """

        def decorator(cls: type[BuildStep]) -> type[BuildStep]:
            self.register_class(name, cls)
            return cls

        return decorator

    def register_class(self, name: str, cls: type[BuildStep]) -> None:
        """Register *cls* under *name* without the decorator syntax."""
        if name in self._steps:
            raise StepAlreadyRegisteredError(name)
        if not (isinstance(cls, type) and issubclass(cls, BuildStep)):
            raise TypeError(
                f"Cannot register {cls!r} under {name!r}: "
                "it must be a subclass of BuildStep."
            )
        self._steps[name] = cls
        logger.debug("Registered build step %r -> %s", name, cls.__qualname__)

    def deregister(self, name: str) -> None:
        if name not in self._steps:
            raise StepNotFoundError(name, self.list_steps())
        del self._steps[name]
        logger.debug("Deregistered build step %r", name)

    def get(self, name: str) -> type[BuildStep]:
        """Return the class registered under *name*.

        Raises
        ------
        StepNotFoundError
            If no step is registered under ``name``.
        """
        try:
            return self._steps[name]
        except KeyError:
            raise StepNotFoundError(name, self.list_steps()) from None

    def create(self, name: str, **kwargs: Any) -> BuildStep:
        """Instantiate the step registered under *name* with *kwargs*."""
        return self.get(name)(**kwargs)

    def list_steps(self) -> list[str]:
        """Return registered step names in alphabetical order."""
        return sorted(self._steps)

    def __contains__(self, name: object) -> bool:
        return name in self._steps

    def __len__(self) -> int:
        return len(self._steps)

    def __repr__(self) -> str:
        return f"StepRegistry(steps={self.list_steps()})"

    def load_entrypoints(self, group: str = ENTRYPOINT_GROUP) -> int:
        """Register steps declared as entry-points of installed packages.

        Names that are already registered are skipped, so repeated calls
        are idempotent.  Entry-points that fail to import or do not name
        a ``BuildStep`` subclass are logged and skipped.

        Returns
        -------
        int
            The number of steps newly registered.
        """
        loaded = 0
        for ep in importlib.metadata.entry_points(group=group):
            if ep.name in self._steps:
                logger.debug("Build step %r already registered; skipping.", ep.name)
                continue
            try:
                cls = ep.load()
            except Exception:
                logger.exception(
                    "Failed to load build step entry-point %r from group %r; skipping.",
                    ep.name,
                    group,
                )
                continue
            try:
                self.register_class(ep.name, cls)
            except TypeError:
                logger.warning(
                    "Entry-point %r does not name a BuildStep subclass; skipping.",
                    ep.name,
                )
                continue
            loaded += 1
        return loaded


step_registry = StepRegistry()
