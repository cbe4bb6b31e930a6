"""pytest configuration and fixtures.

This module provides async database sessions on SQLite in-memory with
rollback after each test, an HTTP client bound to the FastAPI app, graph
builders and fake action handlers used across the automation tests.
"""

import asyncio
from collections.abc import AsyncGenerator, Callable
from typing import Any, cast
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from starlette.types import ASGIApp

from boardflow.main import app
from boardflow.models import Automation, Base
from boardflow.models.enums import NodeKind
from boardflow.schemas.execution import AutomationEvent, FieldChange
from boardflow.schemas.graph import AutomationGraph, GraphEdge, GraphNode
from boardflow.services.automation.context import NodeContext
from boardflow.services.automation.executor import AutomationExecutor
from boardflow.services.automation.handlers.base import ActionHandler, ActionResult
from boardflow.services.automation.handlers.registry import ActionHandlerRegistry
from boardflow.services.automation.versioning import VersionStore
from boardflow.services.automation_service import AutomationService

# =============================================================================
# PYTEST CONFIGURATION
# =============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers",
        "slow: marks tests as slow (deselect with '-m \"not slow\"')",
    )
    config.addinivalue_line(
        "markers",
        "integration: marks tests as integration tests",
    )


# =============================================================================
# ASYNC ENGINE FIXTURES (SQLite In-Memory for Tests)
# =============================================================================


@pytest_asyncio.fixture(scope="function")
async def async_engine() -> AsyncGenerator[AsyncEngine]:
    """Create an async SQLite in-memory engine for testing.

    All tables are created on setup and dropped on teardown.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    try:
        yield engine
    finally:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def async_session_maker(
    async_engine: AsyncEngine,
) -> async_sessionmaker[AsyncSession]:
    """Async session factory bound to the test engine."""
    return async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


# =============================================================================
# DATABASE SESSION FIXTURES WITH TRANSACTION ROLLBACK
# =============================================================================


@pytest_asyncio.fixture(scope="function")
async def db_session(
    async_session_maker: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession]:
    """Provide a database session with automatic rollback after each test.

    Services only flush, so everything a test writes is rolled back at the
    end. Savepoints opened by the services nest inside this transaction.

    Example:
        async def test_create_automation(db_session):
            db_session.add(Automation(project_id=uuid4(), name="Test"))
            await db_session.flush()
    """
    async with async_session_maker() as session:
        try:
            yield session
        finally:
            await session.rollback()
            await session.close()


# =============================================================================
# HTTP CLIENT FIXTURES
# =============================================================================


@pytest_asyncio.fixture(scope="function")
async def async_client(
    db_session: AsyncSession,
    action_registry: ActionHandlerRegistry,
) -> AsyncGenerator[AsyncClient]:
    """Async HTTP client for testing API endpoints.

    Overrides the database dependency to use the SQLite test session
    instead of PostgreSQL, and the automation service to use the test
    action handlers.

    Example:
        async def test_load_editor(async_client):
            response = await async_client.get(f"/api/v1/projects/{uuid4()}/automations/editor")
            assert response.status_code == 200
    """
    from boardflow.api.deps import get_automation_service
    from boardflow.db.session import get_db

    async def override_get_db() -> AsyncGenerator[AsyncSession]:
        yield db_session

    def override_get_automation_service() -> AutomationService:
        return AutomationService(db_session, action_registry=action_registry)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_automation_service] = override_get_automation_service

    try:
        transport = ASGITransport(app=cast("ASGIApp", app))
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            yield client
    finally:
        app.dependency_overrides.clear()


# =============================================================================
# FAKE ACTION HANDLERS
# =============================================================================


class RecordingActionHandler(ActionHandler):
    """Succeeds and remembers every call."""

    type_name = "record"

    def __init__(self) -> None:
        self.calls: list[dict[str, Any]] = []

    async def execute(
        self,
        config: dict[str, Any],
        context: NodeContext,
        simulate: bool,
    ) -> ActionResult:
        self.calls.append(
            {
                "node_id": context.node_id,
                "config": config,
                "simulate": simulate,
                "outputs": dict(context.outputs),
            }
        )
        return ActionResult(output={"recorded": context.node_id})


class AssignUserHandler(ActionHandler):
    """Assigns the item to ``config.user_id`` (or pretends to when simulating)."""

    type_name = "assign_user"

    def __init__(self) -> None:
        self.assignments: list[tuple[Any, str]] = []

    async def execute(
        self,
        config: dict[str, Any],
        context: NodeContext,
        simulate: bool,
    ) -> ActionResult:
        if simulate:
            return ActionResult(output={"would_assign": config["user_id"]})
        self.assignments.append((context.item.get("id"), config["user_id"]))
        return ActionResult(output={"assigned_to": config["user_id"]})


class FailingActionHandler(ActionHandler):
    """Reports failure without raising."""

    type_name = "fail"

    async def execute(
        self,
        config: dict[str, Any],
        context: NodeContext,
        simulate: bool,
    ) -> ActionResult:
        return ActionResult(success=False, error="Remote service rejected the request")


class RaisingActionHandler(ActionHandler):
    """Raises from inside the handler."""

    type_name = "explode"

    async def execute(
        self,
        config: dict[str, Any],
        context: NodeContext,
        simulate: bool,
    ) -> ActionResult:
        raise RuntimeError("boom")


class SlowActionHandler(ActionHandler):
    """Sleeps for ``config.sleep_seconds`` before succeeding."""

    type_name = "slow"

    async def execute(
        self,
        config: dict[str, Any],
        context: NodeContext,
        simulate: bool,
    ) -> ActionResult:
        await asyncio.sleep(config.get("sleep_seconds", 0.01))
        return ActionResult(output={"slept": config.get("sleep_seconds", 0.01)})


@pytest.fixture
def recording_handler() -> RecordingActionHandler:
    return RecordingActionHandler()


@pytest.fixture
def assign_handler() -> AssignUserHandler:
    return AssignUserHandler()


@pytest.fixture
def action_registry(
    recording_handler: RecordingActionHandler,
    assign_handler: AssignUserHandler,
) -> ActionHandlerRegistry:
    """Built-in action handlers plus the fakes above."""
    registry = ActionHandlerRegistry()
    registry.register(recording_handler)
    registry.register(assign_handler)
    registry.register(FailingActionHandler())
    registry.register(RaisingActionHandler())
    registry.register(SlowActionHandler())
    return registry


# =============================================================================
# SERVICE FIXTURES
# =============================================================================


@pytest.fixture
def executor(
    db_session: AsyncSession,
    action_registry: ActionHandlerRegistry,
) -> AutomationExecutor:
    return AutomationExecutor(db_session, action_registry=action_registry)


@pytest.fixture
def automation_service(
    db_session: AsyncSession,
    action_registry: ActionHandlerRegistry,
) -> AutomationService:
    return AutomationService(db_session, action_registry=action_registry)


@pytest.fixture
def version_store(db_session: AsyncSession) -> VersionStore:
    return VersionStore(db_session)


# =============================================================================
# GRAPH FACTORY FIXTURES
# =============================================================================


@pytest.fixture
def project_id() -> UUID:
    return uuid4()


@pytest.fixture
def make_trigger() -> Callable[..., GraphNode]:
    """Factory for trigger nodes; keyword arguments become the node config.

    ``field_update`` triggers watch ``priority`` unless a field is given.

    Example:
        node = make_trigger(field="priority", to="urgent")
    """

    def _create(
        node_id: str = "trigger",
        type_name: str = "field_update",
        label: str = "Priority changed",
        **config: Any,
    ) -> GraphNode:
        if type_name == "field_update":
            config.setdefault("field", "priority")
        return GraphNode(
            id=node_id,
            kind=NodeKind.TRIGGER,
            type=type_name,
            label=label,
            config=config,
        )

    return _create


@pytest.fixture
def make_condition() -> Callable[..., GraphNode]:
    """Factory for ``field_compare`` condition nodes."""

    def _create(node_id: str, **config: Any) -> GraphNode:
        return GraphNode(
            id=node_id,
            kind=NodeKind.CONDITION,
            type="field_compare",
            label=node_id,
            config=config,
        )

    return _create


@pytest.fixture
def make_action() -> Callable[..., GraphNode]:
    """Factory for action nodes (``record`` handler by default)."""

    def _create(
        node_id: str,
        type_name: str | None = "record",
        optional: bool = False,
        **config: Any,
    ) -> GraphNode:
        return GraphNode(
            id=node_id,
            kind=NodeKind.ACTION,
            type=type_name,
            label=node_id,
            config=config,
            optional=optional,
        )

    return _create


@pytest.fixture
def make_graph() -> Callable[..., AutomationGraph]:
    """Factory building a graph from nodes and ``(source, target)`` pairs.

    Example:
        graph = make_graph([trigger, notify], ("trigger", "notify"))
    """

    def _create(nodes: list[GraphNode], *edges: tuple[str, str]) -> AutomationGraph:
        return AutomationGraph(
            nodes=nodes,
            edges=[GraphEdge(source=source, target=target) for source, target in edges],
        )

    return _create


@pytest.fixture
def urgent_graph(make_trigger, make_condition, make_action, make_graph) -> AutomationGraph:
    """Auto-assign on urgent.

    trigger (priority -> urgent) -> condition (status != done)
        -> assign (assign_user, required)
        -> notify (record, optional)
    """
    return make_graph(
        [
            make_trigger(field="priority", to="urgent"),
            make_condition("not-done", field="status", operator="not_equals", value="done"),
            make_action("assign", "assign_user", user_id="lead-1"),
            make_action("notify", "record", optional=True, channel="#triage"),
        ],
        ("trigger", "not-done"),
        ("not-done", "assign"),
        ("not-done", "notify"),
    )


@pytest.fixture
def make_event() -> Callable[..., AutomationEvent]:
    """Factory for ``field_update`` events changing one field.

    Example:
        event = make_event("status", "todo", "done")
    """

    def _create(
        field: str = "priority",
        from_value: Any = "high",
        to: Any = "urgent",
        **item: Any,
    ) -> AutomationEvent:
        return AutomationEvent(
            event_type="field_update",
            item={"id": "task-1", "priority": "high", "status": "todo", **item, field: to},
            changes={field: FieldChange(from_value=from_value, to=to)},
            actor_id="user-42",
        )

    return _create


@pytest.fixture
def urgent_event(make_event) -> AutomationEvent:
    return make_event()


# =============================================================================
# MODEL FACTORY FIXTURES
# =============================================================================


@pytest.fixture
def automation_factory(
    db_session: AsyncSession,
    version_store: VersionStore,
    project_id: UUID,
):
    """Create an automation and save ``graph`` as its current version.

    Example:
        automation = await automation_factory(graph, name="Escalate")
    """

    async def _create(
        graph: AutomationGraph | None = None,
        *,
        name: str = "Test Automation",
        project: UUID | None = None,
        is_active: bool = True,
        promote: bool = True,
    ) -> Automation:
        automation = Automation(
            project_id=project or project_id,
            name=name,
            is_active=is_active,
        )
        db_session.add(automation)
        await db_session.flush()
        if graph is not None:
            await version_store.create_version(automation.id, graph, promote=promote)
            await db_session.refresh(automation)
        return automation

    return _create
