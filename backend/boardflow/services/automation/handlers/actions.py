"""Built-in action handlers.

Business actions (assign user, post to chat, ...) live outside this package
and are registered by type string. The built-ins here are engine plumbing:

- ``noop``: echoes its config; useful as a placeholder and in tests
- ``emit_event``: emits a follow-up event into the same project, carrying
  the causation chain so chained automations stay loop-guarded
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

from boardflow.schemas.execution import AutomationEvent, FieldChange
from boardflow.services.automation.handlers.base import ActionHandler, ActionResult

if TYPE_CHECKING:
    from boardflow.services.automation.context import NodeContext


class NoopActionHandler(ActionHandler):
    type_name = "noop"

    async def execute(
        self,
        config: dict[str, Any],
        context: NodeContext,  # noqa: ARG002
        simulate: bool,
    ) -> ActionResult:
        return ActionResult(output={"config": config, "simulated": simulate})


class EmitEventConfig(BaseModel):
    event_type: str = Field(default="field_update", min_length=1)
    set_fields: dict[str, Any] = Field(
        default_factory=dict,
        description="Item fields to change; recorded as changes on the new event",
    )
    payload: dict[str, Any] = Field(default_factory=dict)


class EmitEventActionHandler(ActionHandler):
    """Emit a follow-up event built from the triggering item.

    Config:
        event_type: Event type of the emitted event (default ``field_update``)
        set_fields: Item fields the action changes, e.g. ``{"status": "done"}``
        payload: Extra event payload
    """

    type_name = "emit_event"
    config_schema = EmitEventConfig

    async def execute(
        self,
        config: dict[str, Any],
        context: NodeContext,
        simulate: bool,
    ) -> ActionResult:
        parsed: EmitEventConfig = self.parse_config(config)
        item = {**context.item, **parsed.set_fields}
        event = AutomationEvent(
            event_type=parsed.event_type,
            item=item,
            changes={
                name: FieldChange(from_value=context.item.get(name), to=value)
                for name, value in parsed.set_fields.items()
            },
            actor_id=f"automation:{context.automation_id}",
            payload=parsed.payload,
        )
        if not simulate:
            context.emit(event)
        return ActionResult(
            output={
                "emitted": not simulate,
                "event": event.to_payload(),
            }
        )


__all__ = [
    "EmitEventActionHandler",
    "NoopActionHandler",
]
