"""Base classes for trigger matchers, condition evaluators and action handlers.

Each node kind resolves its ``type`` string to one of these through a
registry. Implementations declare an optional pydantic ``config_schema``;
``parse_config`` validates a node's raw config against it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, ClassVar

from pydantic import BaseModel, ValidationError

from boardflow.services.automation.exceptions import HandlerConfigurationError

if TYPE_CHECKING:
    from boardflow.schemas.execution import AutomationEvent
    from boardflow.services.automation.context import NodeContext


@dataclass
class ActionResult:
    """What an action handler reports back.

    Attributes:
        output: Data exposed to descendant nodes under this node's id
        success: False marks the step failed and blocks its descendants
        error: Failure description when ``success`` is False
    """

    output: dict[str, Any] = field(default_factory=dict)
    success: bool = True
    error: str | None = None


@dataclass
class TriggerMatch:
    """Outcome of matching an event against a trigger node."""

    matched: bool
    reason: str | None = None
    output: dict[str, Any] = field(default_factory=dict)


class ConfigurableHandler:
    """Shared config validation for every handler kind."""

    type_name: ClassVar[str]
    config_schema: ClassVar[type[BaseModel] | None] = None

    def parse_config(self, config: dict[str, Any]) -> Any:
        """Validate ``config`` against ``config_schema``.

        Returns the parsed model, or the raw dict when no schema is declared.

        Raises:
            HandlerConfigurationError: If validation fails.
        """
        if self.config_schema is None:
            return config
        try:
            return self.config_schema.model_validate(config)
        except ValidationError as e:
            error_dicts = [
                {"loc": list(err["loc"]), "msg": err["msg"], "type": err["type"]}
                for err in e.errors()
            ]
            raise HandlerConfigurationError(self.type_name, error_dicts) from e


class TriggerMatcher(ConfigurableHandler, ABC):
    """Decides whether an event starts an automation."""

    @abstractmethod
    def matches(self, event: AutomationEvent, config: dict[str, Any]) -> TriggerMatch:
        """Match ``event`` against the trigger node's ``config``."""

    @abstractmethod
    def sample_event(self, config: dict[str, Any]) -> AutomationEvent:
        """Build an event this trigger would accept, for dry runs."""


class ConditionEvaluator(ConfigurableHandler, ABC):
    """Boolean gate evaluated against a node's branch context."""

    @abstractmethod
    def evaluate(self, config: dict[str, Any], branch_context: dict[str, Any]) -> bool:
        """Return True to let the branch continue.

        Raises:
            ConditionEvaluationError: If the predicate cannot be evaluated.
        """


class ActionHandler(ConfigurableHandler, ABC):
    """Performs the side effect of an action node.

    Handlers must honour ``simulate``: when it is True they return the
    result they *would* produce without touching anything external.

    Example:
        class AssignUserHandler(ActionHandler):
            type_name = "assign_user"

            async def execute(self, config, context, simulate):
                if simulate:
                    return ActionResult(output={"would_assign": config["user_id"]})
                await tasks_api.assign(context.item["id"], config["user_id"])
                return ActionResult(output={"assigned": config["user_id"]})
    """

    @abstractmethod
    async def execute(
        self,
        config: dict[str, Any],
        context: NodeContext,
        simulate: bool,
    ) -> ActionResult:
        """Run the action.

        Raising is treated as a failed step (``HANDLER_ERROR``); returning
        ``ActionResult(success=False)`` is recorded as ``ACTION_FAILED``.
        """


__all__ = [
    "ActionHandler",
    "ActionResult",
    "ConditionEvaluator",
    "ConfigurableHandler",
    "TriggerMatch",
    "TriggerMatcher",
]
