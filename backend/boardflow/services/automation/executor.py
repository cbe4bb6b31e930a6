"""AutomationExecutor: runs one automation against one event.

The pinned version's graph is walked level by level from the trigger. Nodes
in a level run concurrently inside an ``asyncio.TaskGroup`` bounded by a
semaphore. Node tasks never touch the database session: every outcome is kept
in memory and the execution is written once, at the end, through
``RunHistoryStore``.

Branch semantics:

- a condition that evaluates to False prunes its descendants (no run logs)
- a failed condition or action blocks only its own descendants
- the execution succeeds when every required terminal action completed;
  terminals pruned by a False condition do not count
"""

from __future__ import annotations

import asyncio
import itertools
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from pydantic import ValidationError

from boardflow.core.config import settings
from boardflow.core.logging import LogContext, get_logger
from boardflow.models.automation import AutomationVersion
from boardflow.models.enums import (
    ExecutionStatus,
    NodeKind,
    RunErrorCode,
    RunStepStatus,
)
from boardflow.models.execution import AutomationExecution, RunLog
from boardflow.schemas.graph import AutomationGraph, GraphNode
from boardflow.services.automation.algorithms import GraphAlgorithms
from boardflow.services.automation.context import (
    CausationChain,
    ExecutionContext,
    NodeContext,
)
from boardflow.services.automation.exceptions import (
    ExecutionError,
    GraphValidationError,
    NodeTimeoutError,
)
from boardflow.services.automation.handlers.registry import (
    ActionHandlerRegistry,
    ConditionRegistry,
    TriggerMatcherRegistry,
    get_action_registry,
    get_condition_registry,
    get_trigger_registry,
)
from boardflow.services.automation.history import RunHistoryStore
from boardflow.services.automation.validator import (
    GraphValidator,
    index_graph,
    node_type_of,
)
from boardflow.utils.redaction import redact_secrets

if TYPE_CHECKING:
    from collections.abc import Iterator

    from sqlalchemy.ext.asyncio import AsyncSession

    from boardflow.models.automation import Automation
    from boardflow.schemas.execution import AutomationEvent
    from boardflow.services.automation.graph import Graph

logger = get_logger(__name__)


@dataclass
class NodeOutcome:
    """In-memory result of one condition/action node, turned into a RunLog."""

    node: GraphNode
    node_type: str | None
    status: RunStepStatus
    passed: bool
    input: dict[str, Any]
    output: dict[str, Any] | None = None
    duration_ms: int = 0
    error_code: RunErrorCode | None = None
    error_message: str | None = None
    order: int = 0

    @property
    def success(self) -> bool:
        return self.status == RunStepStatus.COMPLETED


@dataclass
class ExecutionResult:
    """Recorded execution plus what it asks the dispatcher to do next.

    Attributes:
        execution: Persisted execution, logs loaded.
        emitted_events: Events queued by actions, to dispatch in order.
        chain: Causation chain to deliver ``emitted_events`` with.
    """

    execution: AutomationExecution
    emitted_events: list[AutomationEvent] = field(default_factory=list)
    chain: CausationChain = field(default_factory=CausationChain)

    @property
    def success(self) -> bool:
        return self.execution.success


@dataclass
class _Traversal:
    """Bookkeeping shared by the levels of one traversal."""

    graph: Graph[str]
    deadline: float
    sequence: Iterator[int] = field(default_factory=lambda: itertools.count(1))
    outcomes: list[NodeOutcome] = field(default_factory=list)
    blocked: set[str] = field(default_factory=set)
    pruned: set[str] = field(default_factory=set)
    failed_below: set[str] = field(default_factory=set)


class AutomationExecutor:
    """Execute automation graphs.

    Args:
        db: Async database session, used only to load the version and to
            persist the finished execution.
        trigger_registry / condition_registry / action_registry: Handler
            registries; the global ones by default.
        max_chain_depth: Loop guard depth limit.
        node_timeout_seconds: Default per-node timeout.
        budget_seconds: Default overall execution budget.
        max_parallel_nodes: Concurrency limit inside a level.

    Example:
        >>> executor = AutomationExecutor(db)
        >>> result = await executor.execute(automation, event)
        >>> if result is not None:
        ...     print(result.execution.success, len(result.execution.logs))
    """

    def __init__(
        self,
        db: AsyncSession,
        *,
        trigger_registry: TriggerMatcherRegistry | None = None,
        condition_registry: ConditionRegistry | None = None,
        action_registry: ActionHandlerRegistry | None = None,
        validator: GraphValidator | None = None,
        max_chain_depth: int | None = None,
        node_timeout_seconds: float | None = None,
        budget_seconds: float | None = None,
        max_parallel_nodes: int | None = None,
    ) -> None:
        self.db = db
        self.triggers = trigger_registry or get_trigger_registry()
        self.conditions = condition_registry or get_condition_registry()
        self.actions = action_registry or get_action_registry()
        self.validator = validator or GraphValidator()
        self.history = RunHistoryStore(db)
        self.max_chain_depth = max_chain_depth or settings.AUTOMATION_MAX_CHAIN_DEPTH
        self.node_timeout_seconds = (
            node_timeout_seconds or settings.AUTOMATION_NODE_TIMEOUT_SECONDS
        )
        self.budget_seconds = budget_seconds or settings.AUTOMATION_EXECUTION_BUDGET_SECONDS
        self.max_parallel_nodes = max_parallel_nodes or settings.AUTOMATION_MAX_PARALLEL_NODES

    async def execute(
        self,
        automation: Automation,
        event: AutomationEvent,
        chain: CausationChain | None = None,
        *,
        simulate: bool = False,
        requested_by: str | None = None,
        version: AutomationVersion | None = None,
        budget_seconds: float | None = None,
    ) -> ExecutionResult | None:
        """Run ``automation`` against ``event``.

        Args:
            automation: Automation to run.
            event: Triggering event.
            chain: Causation chain the event arrived with (empty for user
                events).
            simulate: Dry run; handlers must not cause side effects.
            requested_by: Recorded on the execution.
            version: Explicit version to run (dry runs). When omitted the
                current version is used, and inactive automations or
                disabled versions are skipped.
            budget_seconds: Overall budget for this call.

        Returns:
            The recorded execution, or None when nothing ran (automation
            inactive, no enabled current version, or trigger mismatch).
        """
        if chain is None:
            chain = CausationChain()
        execution_id = uuid4()
        started_at = datetime.now(UTC)
        started = time.monotonic()
        base = {
            "execution_id": execution_id,
            "automation": automation,
            "event": event,
            "chain": chain,
            "simulate": simulate,
            "requested_by": requested_by,
            "started_at": started_at,
            "started": started,
        }

        with LogContext(
            logger,
            automation_id=str(automation.id),
            execution_id=str(execution_id),
            simulate=simulate,
        ):
            if version is None:
                if not automation.is_active or automation.current_version_id is None:
                    return None
                version = await self.db.get(AutomationVersion, automation.current_version_id)
                if version is None:
                    return await self._record_failure(
                        **base,
                        version_id=None,
                        error_code=RunErrorCode.ENGINE_FAILURE,
                        error_message=(
                            f"Current version {automation.current_version_id} could not be loaded"
                        ),
                    )
                if not version.is_enabled:
                    return None
            version_id = version.id

            try:
                graph = AutomationGraph.from_definition(version.definition)
                self.validator.validate_or_raise(graph)
            except (ValidationError, GraphValidationError) as e:
                logger.error(f"Version {version_id} is not executable: {e}")
                return await self._record_failure(
                    **base,
                    version_id=version_id,
                    error_code=RunErrorCode.ENGINE_FAILURE,
                    error_message=f"Version {version_id} is not executable: {e}",
                )

            trigger = graph.trigger_nodes()[0]
            try:
                matcher = self.triggers.get(node_type_of(trigger.kind, trigger.type))
                match = matcher.matches(event, trigger.config)
            except ExecutionError as e:
                return await self._record_failure(
                    **base,
                    version_id=version_id,
                    error_code=RunErrorCode(e.error_code),
                    error_message=e.message,
                )
            if not match.matched:
                logger.debug(f"Trigger did not match: {match.reason}")
                return None

            if automation.id in chain or len(chain) >= self.max_chain_depth:
                logger.warning(
                    "Loop guard tripped",
                    extra={"context": {"causation_chain": chain.as_list()}},
                )
                return await self._record_failure(
                    **base,
                    version_id=version_id,
                    error_code=RunErrorCode.CYCLE_GUARD_TRIGGERED,
                    error_message=(
                        f"Automation {automation.id} already in causation chain "
                        f"of depth {len(chain)} (limit {self.max_chain_depth})"
                    ),
                )

            context = ExecutionContext(
                automation_id=automation.id,
                execution_id=execution_id,
                event=event,
                chain=chain.extend(automation.id, execution_id),
                simulate=simulate,
            )
            await context.set_output(trigger.id, match.output)

            budget = budget_seconds or self.budget_seconds
            traversal = await self._traverse(graph, trigger.id, context, budget)
            success = self._is_success(graph, traversal)

            failed = [o for o in traversal.outcomes if not o.success]
            execution = self._build_execution(
                **base,
                version_id=version_id,
                success=success,
                error_message=(
                    f"{len(failed)} node(s) did not complete: "
                    + ", ".join(o.node.id for o in failed)
                    if failed
                    else None
                ),
            )
            logs = [
                self._build_log(index, outcome)
                for index, outcome in enumerate(
                    sorted(traversal.outcomes, key=lambda o: o.order), start=1
                )
            ]
            execution = await self.history.append(execution, logs)

            logger.info(
                f"Automation {'simulated' if simulate else 'executed'} "
                f"({'success' if success else 'failure'}, {len(logs)} steps)",
                extra={"context": {"duration_ms": execution.duration_ms}},
            )
            return ExecutionResult(
                execution=execution,
                emitted_events=context.emitted_events,
                chain=context.chain,
            )

    # ==========================================================================
    # Traversal
    # ==========================================================================

    async def _traverse(
        self,
        graph: AutomationGraph,
        trigger_id: str,
        context: ExecutionContext,
        budget_seconds: float,
    ) -> _Traversal:
        full = index_graph(graph)
        reachable = GraphAlgorithms.find_reachable_from(full, [trigger_id])
        index = full.subgraph(reachable)
        levels = GraphAlgorithms.topological_sort_levels(index) or []
        nodes = graph.node_index()

        loop = asyncio.get_running_loop()
        state = _Traversal(graph=index, deadline=loop.time() + budget_seconds)
        semaphore = asyncio.Semaphore(self.max_parallel_nodes)

        for level in levels:
            runnable = [
                node_id
                for node_id in level
                if node_id != trigger_id and node_id not in state.blocked
            ]
            if not runnable:
                continue

            async with asyncio.TaskGroup() as tg:
                tasks = [
                    tg.create_task(
                        self._run_node(nodes[node_id], index, context, semaphore, state)
                    )
                    for node_id in runnable
                ]

            for task in tasks:
                outcome = task.result()
                state.outcomes.append(outcome)
                if outcome.passed:
                    continue
                if outcome.error_code == RunErrorCode.SKIPPED_BUDGET_EXCEEDED:
                    # Descendants stay runnable and hit the deadline check themselves
                    continue
                descendants = GraphAlgorithms.find_descendants(index, outcome.node.id)
                state.blocked |= descendants
                if outcome.success:
                    # Condition evaluated to False
                    state.pruned |= descendants
                else:
                    state.failed_below |= descendants

        return state

    async def _run_node(
        self,
        node: GraphNode,
        index: Graph[str],
        context: ExecutionContext,
        semaphore: asyncio.Semaphore,
        state: _Traversal,
    ) -> NodeOutcome:
        node_type = node_type_of(node.kind, node.type)
        async with semaphore:
            node_context = context.node_context(
                node.id, GraphAlgorithms.find_ancestors(index, node.id)
            )
            node_input = {
                "config": node.config,
                "context": node_context.as_branch_context(),
            }
            if asyncio.get_running_loop().time() >= state.deadline:
                outcome = NodeOutcome(
                    node=node,
                    node_type=node_type,
                    status=RunStepStatus.SKIPPED,
                    passed=False,
                    input=node_input,
                    error_code=RunErrorCode.SKIPPED_BUDGET_EXCEEDED,
                    error_message="Execution budget exceeded before the node started",
                )
            elif node.kind == NodeKind.CONDITION:
                outcome = self._run_condition(node, node_type, node_input)
            else:
                outcome = await self._run_action(node, node_type, node_input, node_context)

            if outcome.success and outcome.output is not None:
                await context.set_output(node.id, outcome.output)
            outcome.order = next(state.sequence)
            return outcome

    def _run_condition(
        self,
        node: GraphNode,
        node_type: str | None,
        node_input: dict[str, Any],
    ) -> NodeOutcome:
        started = time.monotonic()
        try:
            evaluator = self.conditions.get(node_type)
            result = evaluator.evaluate(node.config, node_input["context"])
        except ExecutionError as e:
            return NodeOutcome(
                node=node,
                node_type=node_type,
                status=RunStepStatus.FAILED,
                passed=False,
                input=node_input,
                duration_ms=_elapsed_ms(started),
                error_code=RunErrorCode(e.error_code),
                error_message=e.message,
            )
        return NodeOutcome(
            node=node,
            node_type=node_type,
            status=RunStepStatus.COMPLETED,
            passed=result,
            input=node_input,
            output={"result": result},
            duration_ms=_elapsed_ms(started),
        )

    async def _run_action(
        self,
        node: GraphNode,
        node_type: str | None,
        node_input: dict[str, Any],
        node_context: NodeContext,
    ) -> NodeOutcome:
        started = time.monotonic()

        def failed(code: RunErrorCode, message: str) -> NodeOutcome:
            return NodeOutcome(
                node=node,
                node_type=node_type,
                status=RunStepStatus.FAILED,
                passed=False,
                input=node_input,
                duration_ms=_elapsed_ms(started),
                error_code=code,
                error_message=message,
            )

        raw_timeout = node.config.get("timeout_seconds") or self.node_timeout_seconds
        try:
            timeout_seconds = float(raw_timeout)
        except (TypeError, ValueError):
            return failed(
                RunErrorCode.HANDLER_ERROR,
                f"Invalid timeout_seconds {raw_timeout!r} on node {node.id}",
            )

        try:
            async with asyncio.timeout(timeout_seconds):
                result = await self.actions.execute(
                    node_type, node.config, node_context, node_context.simulate
                )
        except TimeoutError:
            return failed(
                RunErrorCode.TIMEOUT,
                NodeTimeoutError(node.id, timeout_seconds).message,
            )
        except ExecutionError as e:
            return failed(RunErrorCode(e.error_code), e.message)
        except Exception as e:
            logger.exception(f"Action handler '{node_type}' raised on node {node.id}")
            return failed(RunErrorCode.HANDLER_ERROR, f"{type(e).__name__}: {e}")

        if not result.success:
            outcome = failed(
                RunErrorCode.ACTION_FAILED,
                result.error or f"Action '{node_type}' reported failure",
            )
            outcome.output = result.output
            return outcome

        return NodeOutcome(
            node=node,
            node_type=node_type,
            status=RunStepStatus.COMPLETED,
            passed=True,
            input=node_input,
            output=result.output,
            duration_ms=_elapsed_ms(started),
        )

    @staticmethod
    def _is_success(graph: AutomationGraph, state: _Traversal) -> bool:
        """Every required terminal action completed or was pruned by a condition."""
        completed = {o.node.id for o in state.outcomes if o.success}
        nodes = graph.node_index()
        for node_id in GraphAlgorithms.find_sinks(state.graph):
            node = nodes[node_id]
            if node.kind != NodeKind.ACTION or node.optional:
                continue
            if node_id in completed:
                continue
            if node_id in state.pruned and node_id not in state.failed_below:
                continue
            return False
        return True

    # ==========================================================================
    # Records
    # ==========================================================================

    async def _record_failure(
        self,
        *,
        version_id: UUID | None,
        error_code: RunErrorCode,
        error_message: str,
        **base: Any,
    ) -> ExecutionResult:
        """Persist a failed execution without run logs."""
        execution = self._build_execution(
            **base,
            version_id=version_id,
            success=False,
            error_code=error_code,
            error_message=error_message,
        )
        execution = await self.history.append(execution)
        logger.warning(
            f"Automation execution failed: {error_message}",
            extra={"context": {"error_code": error_code.value}},
        )
        return ExecutionResult(execution=execution)

    @staticmethod
    def _build_execution(
        *,
        execution_id: UUID,
        automation: Automation,
        event: AutomationEvent,
        chain: CausationChain,
        simulate: bool,
        requested_by: str | None,
        started_at: datetime,
        started: float,
        version_id: UUID | None,
        success: bool,
        error_code: RunErrorCode | None = None,
        error_message: str | None = None,
    ) -> AutomationExecution:
        return AutomationExecution(
            id=execution_id,
            automation_id=automation.id,
            version_id=version_id,
            status=ExecutionStatus.COMPLETED if success else ExecutionStatus.FAILED,
            success=success,
            started_at=started_at,
            ended_at=datetime.now(UTC),
            duration_ms=_elapsed_ms(started),
            trigger_payload=redact_secrets(event.to_payload()),
            is_simulation=simulate,
            requested_by=requested_by,
            error_code=error_code.value if error_code else None,
            error_message=error_message,
            causation_id=chain.causation_id,
            causation_chain=chain.as_list(),
        )

    @staticmethod
    def _build_log(sequence: int, outcome: NodeOutcome) -> RunLog:
        return RunLog(
            node_id=outcome.node.id,
            node_kind=NodeKind(outcome.node.kind),
            node_type=outcome.node_type,
            sequence=sequence,
            status=outcome.status,
            input=redact_secrets(outcome.input),
            output=redact_secrets(outcome.output),
            duration_ms=outcome.duration_ms,
            success=outcome.success,
            error_code=outcome.error_code.value if outcome.error_code else None,
            error_message=outcome.error_message,
        )


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


__all__ = [
    "AutomationExecutor",
    "ExecutionResult",
    "NodeOutcome",
]
