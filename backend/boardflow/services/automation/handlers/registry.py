"""Handler registries.

Trigger matchers, condition evaluators and action handlers are looked up by
the ``type`` string stored on a node. Each kind has its own registry with
the built-ins registered on construction; extra action handlers can be
loaded from dotted paths listed in ``AUTOMATION_ACTION_HANDLERS``.
"""

from __future__ import annotations

import importlib
from typing import TYPE_CHECKING, Any, ClassVar, Generic, TypeVar

from boardflow.core.config import settings
from boardflow.core.logging import get_logger
from boardflow.services.automation.exceptions import HandlerNotFoundError
from boardflow.services.automation.handlers.base import (
    ActionHandler,
    ActionResult,
    ConditionEvaluator,
    ConfigurableHandler,
    TriggerMatcher,
)

if TYPE_CHECKING:
    from boardflow.services.automation.context import NodeContext

logger = get_logger(__name__)

HandlerT = TypeVar("HandlerT", bound=ConfigurableHandler)


class HandlerRegistry(Generic[HandlerT]):
    """Type-string to handler-instance map.

    Subclasses set ``kind`` (used in error messages) and
    ``_register_defaults``.
    """

    kind: ClassVar[str] = "handler"

    def __init__(self, register_defaults: bool = True) -> None:
        self._handlers: dict[str, HandlerT] = {}
        if register_defaults:
            self._register_defaults()

    def _register_defaults(self) -> None:
        """Register built-in handlers."""

    def register(self, handler: HandlerT, type_name: str | None = None) -> None:
        """Register a handler instance.

        An existing registration for the same type is overwritten.

        Args:
            handler: Handler instance.
            type_name: Registry key; defaults to ``handler.type_name``.
        """
        self._handlers[type_name or handler.type_name] = handler

    def unregister(self, type_name: str) -> None:
        self._handlers.pop(type_name, None)

    def get(self, type_name: str | None) -> HandlerT:
        """Look up a handler.

        Raises:
            HandlerNotFoundError: If nothing is registered for ``type_name``.
        """
        if type_name is None or type_name not in self._handlers:
            raise HandlerNotFoundError(self.kind, str(type_name), self.list_registered())
        return self._handlers[type_name]

    def list_registered(self) -> list[str]:
        """Registered type names."""
        return list(self._handlers.keys())

    def __contains__(self, type_name: object) -> bool:
        return type_name in self._handlers


class TriggerMatcherRegistry(HandlerRegistry[TriggerMatcher]):
    kind = "trigger matcher"

    def _register_defaults(self) -> None:
        # Import here to avoid circular dependencies
        from boardflow.services.automation.handlers.triggers import DEFAULT_TRIGGER_MATCHERS

        for matcher in DEFAULT_TRIGGER_MATCHERS:
            self.register(matcher)


class ConditionRegistry(HandlerRegistry[ConditionEvaluator]):
    kind = "condition evaluator"

    def _register_defaults(self) -> None:
        from boardflow.services.automation.handlers.conditions import (
            FieldCompareEvaluator,
        )

        self.register(FieldCompareEvaluator())


class ActionHandlerRegistry(HandlerRegistry[ActionHandler]):
    """Registry of action handlers.

    Example:
        registry = get_action_registry()
        registry.register(AssignUserHandler())
        result = await registry.execute("assign_user", config, context, simulate=False)
    """

    kind = "action handler"

    def _register_defaults(self) -> None:
        from boardflow.services.automation.handlers.actions import (
            EmitEventActionHandler,
            NoopActionHandler,
        )

        self.register(NoopActionHandler())
        self.register(EmitEventActionHandler())

    async def execute(
        self,
        action_type: str | None,
        config: dict[str, Any],
        context: NodeContext,
        simulate: bool,
    ) -> ActionResult:
        """Resolve ``action_type`` and run its handler.

        Raises:
            HandlerNotFoundError: If no handler is registered.
        """
        handler = self.get(action_type)
        return await handler.execute(config, context, simulate)

    def register_from_paths(self, paths: list[str]) -> None:
        """Import and register handler classes from dotted paths.

        Accepts ``package.module:ClassName`` or ``package.module.ClassName``.
        Classes are instantiated without arguments.
        """
        for path in paths:
            module_name, _, class_name = (
                path.partition(":") if ":" in path else path.rpartition(".")
            )
            handler_class = getattr(importlib.import_module(module_name), class_name)
            handler = handler_class()
            if not isinstance(handler, ActionHandler):
                raise TypeError(f"{path} is not an ActionHandler")
            self.register(handler)
            logger.info(
                f"Registered action handler '{handler.type_name}'",
                extra={"context": {"action": "register_handler", "path": path}},
            )


# Module-level singletons
_trigger_registry: TriggerMatcherRegistry | None = None
_condition_registry: ConditionRegistry | None = None
_action_registry: ActionHandlerRegistry | None = None


def get_trigger_registry() -> TriggerMatcherRegistry:
    """Global trigger matcher registry (created on first call)."""
    global _trigger_registry
    if _trigger_registry is None:
        _trigger_registry = TriggerMatcherRegistry()
    return _trigger_registry


def get_condition_registry() -> ConditionRegistry:
    """Global condition evaluator registry (created on first call)."""
    global _condition_registry
    if _condition_registry is None:
        _condition_registry = ConditionRegistry()
    return _condition_registry


def get_action_registry() -> ActionHandlerRegistry:
    """Global action handler registry.

    Created on first call, with handlers from ``AUTOMATION_ACTION_HANDLERS``
    registered on top of the built-ins.
    """
    global _action_registry
    if _action_registry is None:
        _action_registry = ActionHandlerRegistry()
        _action_registry.register_from_paths(settings.AUTOMATION_ACTION_HANDLERS)
    return _action_registry


__all__ = [
    "ActionHandlerRegistry",
    "ConditionRegistry",
    "HandlerRegistry",
    "TriggerMatcherRegistry",
    "get_action_registry",
    "get_condition_registry",
    "get_trigger_registry",
]
