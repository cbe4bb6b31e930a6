"""Built-in trigger matchers.

Two families:
- field change triggers fire when an event carries a change to a given item
  field, optionally constrained by its ``from`` / ``to`` values
- event type triggers fire on a given ``event_type``, optionally filtered by
  item field values
"""

from __future__ import annotations

import math
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field

from boardflow.schemas.execution import AutomationEvent, FieldChange
from boardflow.services.automation.handlers.base import TriggerMatch, TriggerMatcher

SAMPLE_VALUE = "sample"

# =============================================================================
# Field change triggers
# =============================================================================


class FieldChangeConfig(BaseModel):
    """Config of field change triggers. Unset ``from``/``to`` match anything."""

    model_config = ConfigDict(populate_by_name=True)

    field: str | None = None
    from_value: Any = Field(default=None, alias="from")
    to: Any = None


class FieldUpdateTrigger(TriggerMatcher):
    """Fires when ``config.field`` changed.

    Config:
        field: Item field name (fixed by subclasses)
        from: Required previous value (optional)
        to: Required new value (optional)
    """

    type_name = "field_update"
    config_schema = FieldChangeConfig
    fixed_field: ClassVar[str | None] = None

    def _field(self, config: FieldChangeConfig) -> str | None:
        return self.fixed_field or config.field

    def matches(self, event: AutomationEvent, config: dict[str, Any]) -> TriggerMatch:
        parsed: FieldChangeConfig = self.parse_config(config)
        field_name = self._field(parsed)
        if not field_name:
            return TriggerMatch(matched=False, reason="Trigger has no field configured")

        change = event.changes.get(field_name)
        if change is None:
            return TriggerMatch(matched=False, reason=f"Field '{field_name}' did not change")

        if "from_value" in parsed.model_fields_set and change.from_value != parsed.from_value:
            return TriggerMatch(
                matched=False,
                reason=f"'{field_name}' changed from {change.from_value!r}, "
                f"expected {parsed.from_value!r}",
            )
        if "to" in parsed.model_fields_set and change.to != parsed.to:
            return TriggerMatch(
                matched=False,
                reason=f"'{field_name}' changed to {change.to!r}, expected {parsed.to!r}",
            )

        return TriggerMatch(
            matched=True,
            output={"field": field_name, "from": change.from_value, "to": change.to},
        )

    def sample_event(self, config: dict[str, Any]) -> AutomationEvent:
        parsed: FieldChangeConfig = self.parse_config(config)
        field_name = self._field(parsed) or "field"
        to = parsed.to if "to" in parsed.model_fields_set else SAMPLE_VALUE
        return AutomationEvent(
            event_type="field_update",
            item={"id": "sample-item", field_name: to},
            changes={field_name: FieldChange(from_value=parsed.from_value, to=to)},
        )


class StatusChangeTrigger(FieldUpdateTrigger):
    type_name = "status_change"
    fixed_field = "status"


class AssignmentChangeTrigger(FieldUpdateTrigger):
    type_name = "assignment_change"
    fixed_field = "assignee_id"


# =============================================================================
# Event type triggers
# =============================================================================


class EventFilterConfig(BaseModel):
    """Config of event type triggers."""

    filters: dict[str, Any] = Field(
        default_factory=dict,
        description="Item fields that must equal the given values",
    )


class EventTypeTrigger(TriggerMatcher):
    """Fires on events whose ``event_type`` equals ``type_name``."""

    type_name = "manual"
    config_schema = EventFilterConfig

    def matches(self, event: AutomationEvent, config: dict[str, Any]) -> TriggerMatch:
        parsed: EventFilterConfig = self.parse_config(config)
        if event.event_type != self.type_name:
            return TriggerMatch(
                matched=False,
                reason=f"Event type '{event.event_type}' is not '{self.type_name}'",
            )
        for field_name, expected in parsed.filters.items():
            if event.item.get(field_name) != expected:
                return TriggerMatch(
                    matched=False,
                    reason=f"Item field '{field_name}' is not {expected!r}",
                )
        return TriggerMatch(matched=True, output={"event_type": event.event_type})

    def sample_event(self, config: dict[str, Any]) -> AutomationEvent:
        parsed: EventFilterConfig = self.parse_config(config)
        return AutomationEvent(
            event_type=self.type_name,
            item={"id": "sample-item", **parsed.filters},
        )


class ManualTrigger(EventTypeTrigger):
    type_name = "manual"


class TaskCreatedTrigger(EventTypeTrigger):
    type_name = "task_created"


class CommentAddedTrigger(EventTypeTrigger):
    type_name = "comment_added"


class TimeLoggedTrigger(EventTypeTrigger):
    type_name = "time_logged"


class DueDateConfig(EventFilterConfig):
    within_hours: float | None = Field(
        default=None,
        gt=0,
        description="Only fire when the due date is at most this many hours away",
    )


def _as_hours(value: Any) -> float | None:
    """Numeric ``hours_until_due``; None when absent or not a number."""
    if value is None or isinstance(value, bool):
        return None
    try:
        hours = float(value)
    except (TypeError, ValueError):
        return None
    return hours if math.isfinite(hours) else None


class DueDateApproachingTrigger(EventTypeTrigger):
    """Fires on ``due_date_approaching`` events.

    The scheduler that emits these events puts ``hours_until_due`` in the
    event payload.
    """

    type_name = "due_date_approaching"
    config_schema = DueDateConfig

    def matches(self, event: AutomationEvent, config: dict[str, Any]) -> TriggerMatch:
        result = super().matches(event, config)
        if not result.matched:
            return result
        parsed: DueDateConfig = self.parse_config(config)
        hours = _as_hours(event.payload.get("hours_until_due"))
        if parsed.within_hours is not None and (
            hours is None or hours > parsed.within_hours
        ):
            return TriggerMatch(
                matched=False,
                reason=f"Due in {hours} hours, outside {parsed.within_hours}h window",
            )
        return TriggerMatch(
            matched=True,
            output={"event_type": event.event_type, "hours_until_due": hours},
        )

    def sample_event(self, config: dict[str, Any]) -> AutomationEvent:
        event = super().sample_event(config)
        parsed: DueDateConfig = self.parse_config(config)
        event.payload["hours_until_due"] = parsed.within_hours or 24
        return event


DEFAULT_TRIGGER_MATCHERS: list[TriggerMatcher] = [
    FieldUpdateTrigger(),
    StatusChangeTrigger(),
    AssignmentChangeTrigger(),
    ManualTrigger(),
    TaskCreatedTrigger(),
    CommentAddedTrigger(),
    TimeLoggedTrigger(),
    DueDateApproachingTrigger(),
]

__all__ = [
    "DEFAULT_TRIGGER_MATCHERS",
    "AssignmentChangeTrigger",
    "CommentAddedTrigger",
    "DueDateApproachingTrigger",
    "EventTypeTrigger",
    "FieldUpdateTrigger",
    "ManualTrigger",
    "StatusChangeTrigger",
    "TaskCreatedTrigger",
    "TimeLoggedTrigger",
]
