"""Trigger matchers, condition evaluators and action handlers."""

from boardflow.services.automation.handlers.base import (
    ActionHandler,
    ActionResult,
    ConditionEvaluator,
    TriggerMatch,
    TriggerMatcher,
)
from boardflow.services.automation.handlers.registry import (
    ActionHandlerRegistry,
    ConditionRegistry,
    TriggerMatcherRegistry,
    get_action_registry,
    get_condition_registry,
    get_trigger_registry,
)

__all__ = [
    "ActionHandler",
    "ActionHandlerRegistry",
    "ActionResult",
    "ConditionEvaluator",
    "ConditionRegistry",
    "TriggerMatch",
    "TriggerMatcher",
    "TriggerMatcherRegistry",
    "get_action_registry",
    "get_condition_registry",
    "get_trigger_registry",
]
