"""Per-execution state shared between concurrently running nodes.

Each execution owns exactly one ``ExecutionContext``. Nodes running in the
same topological level write their outputs through it under an
``asyncio.Lock``; handlers only ever see a ``NodeContext`` snapshot holding
the event and the outputs of their own ancestors.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterable
    from uuid import UUID

    from boardflow.schemas.execution import AutomationEvent


@dataclass(frozen=True)
class CausationChain:
    """Automation ids that transitively caused an event, oldest first.

    Passed along with every event an action emits so that A -> B -> A loops
    are cut off by the executor's loop guard.
    """

    automation_ids: tuple[UUID, ...] = ()
    causation_id: UUID | None = None

    def __contains__(self, automation_id: object) -> bool:
        return automation_id in self.automation_ids

    def __len__(self) -> int:
        return len(self.automation_ids)

    def extend(
        self, automation_id: UUID, execution_id: UUID | None = None
    ) -> CausationChain:
        """Chain for events emitted by ``automation_id``'s execution."""
        return CausationChain(
            automation_ids=(*self.automation_ids, automation_id),
            causation_id=execution_id,
        )

    def as_list(self) -> list[str]:
        return [str(automation_id) for automation_id in self.automation_ids]

    @classmethod
    def from_ids(cls, automation_ids: Iterable[UUID] | None) -> CausationChain:
        return cls(automation_ids=tuple(automation_ids or ()))


@dataclass
class NodeContext:
    """Read-only view handed to a trigger, condition or action.

    Attributes:
        automation_id: Running automation
        execution_id: Id the execution record will be stored under
        node_id: Node being executed
        event: Event that started the execution
        outputs: Outputs of the node's ancestors keyed by node id
        chain: Causation chain to attach to events this node emits
        simulate: True during dry runs; handlers must not cause side effects
    """

    automation_id: UUID
    execution_id: UUID
    node_id: str
    event: AutomationEvent
    outputs: dict[str, Any]
    chain: CausationChain
    simulate: bool
    _emitted: list[AutomationEvent] = field(default_factory=list, repr=False)

    @property
    def item(self) -> dict[str, Any]:
        """Task snapshot carried by the event."""
        return self.event.item

    def as_branch_context(self) -> dict[str, Any]:
        """Plain dict used by condition evaluators and stored as node input."""
        event = self.event.to_payload()
        return {
            "node_id": self.node_id,
            "event": event,
            "item": event["item"],
            "changes": event["changes"],
            "outputs": self.outputs,
        }

    def emit(self, event: AutomationEvent) -> None:
        """Queue an event for dispatch once this execution is recorded.

        Ignored during simulation.
        """
        if not self.simulate:
            self._emitted.append(event)


class ExecutionContext:
    """Mutable state of one execution.

    Attributes:
        automation_id: Running automation.
        execution_id: Pre-allocated execution record id.
        event: Triggering event.
        chain: Causation chain for events emitted by this execution's actions.
        simulate: Dry-run flag.
    """

    def __init__(
        self,
        automation_id: UUID,
        execution_id: UUID,
        event: AutomationEvent,
        chain: CausationChain,
        simulate: bool = False,
    ) -> None:
        self.automation_id = automation_id
        self.execution_id = execution_id
        self.event = event
        self.chain = chain
        self.simulate = simulate
        self._node_outputs: dict[str, dict[str, Any]] = {}
        self._emitted: list[AutomationEvent] = []
        self._lock = asyncio.Lock()

    def node_context(self, node_id: str, ancestors: Iterable[str]) -> NodeContext:
        """Build the view for ``node_id`` from its ancestors' outputs.

        Called between levels, after every ancestor has finished, so no lock
        is needed to read.
        """
        outputs = {
            ancestor: self._node_outputs[ancestor]
            for ancestor in ancestors
            if ancestor in self._node_outputs
        }
        return NodeContext(
            automation_id=self.automation_id,
            execution_id=self.execution_id,
            node_id=node_id,
            event=self.event,
            outputs=outputs,
            chain=self.chain,
            simulate=self.simulate,
            _emitted=self._emitted,
        )

    async def set_output(self, node_id: str, data: dict[str, Any]) -> None:
        """Store a node's output for its descendants."""
        async with self._lock:
            self._node_outputs[node_id] = data

    def get_output(self, node_id: str) -> dict[str, Any] | None:
        return self._node_outputs.get(node_id)

    @property
    def emitted_events(self) -> list[AutomationEvent]:
        """Events queued by actions, in emission order."""
        return list(self._emitted)


__all__ = [
    "CausationChain",
    "ExecutionContext",
    "NodeContext",
]
