"""Tests for trigger conflict detection between sibling automations."""

from uuid import uuid4

import pytest

from boardflow.models.enums import ConflictSeverity, NodeKind
from boardflow.schemas.graph import GraphNode
from boardflow.services.automation.conflicts import (
    ConflictDetector,
    TriggerSnapshot,
    config_overlaps,
)


def snapshot(name: str, label: str = "Priority changed", **config) -> TriggerSnapshot:
    return TriggerSnapshot(
        automation_id=uuid4(),
        automation_name=name,
        trigger=GraphNode(id="trigger", kind=NodeKind.TRIGGER, label=label, config=config),
    )


class TestConfigOverlaps:
    """Any shared key with an equal value overlaps."""

    def test_shared_key_equal_value(self) -> None:
        assert config_overlaps({"field": "priority", "to": "urgent"}, {"field": "priority"})

    def test_shared_key_different_value(self) -> None:
        assert not config_overlaps({"field": "priority"}, {"field": "status"})

    def test_empty_configs(self) -> None:
        assert not config_overlaps({}, {"field": "priority"})
        assert not config_overlaps(None, None)


class TestDetect:
    """Pure pairwise comparison."""

    def test_same_label_is_warning(self) -> None:
        """Test a shared trigger label yields a warning naming the sibling."""
        target = snapshot("Escalate", field="priority")
        sibling = snapshot("Notify lead", field="status")

        [conflict] = ConflictDetector.detect(target, [sibling])

        assert conflict.severity == ConflictSeverity.WARNING
        assert conflict.automation_id == target.automation_id
        assert conflict.conflicting_automation_id == sibling.automation_id
        assert conflict.reason == 'Shares trigger "Priority changed" with Notify lead.'

    def test_config_overlap_is_error(self) -> None:
        """Test an equal config value under a shared key yields an error."""
        target = snapshot("Escalate", label="A", field="priority", to="urgent")
        sibling = snapshot("Page on-call", label="B", field="priority", to="blocker")

        [conflict] = ConflictDetector.detect(target, [sibling])

        assert conflict.severity == ConflictSeverity.ERROR
        assert conflict.reason == (
            "Potential overlap on trigger configuration with Page on-call."
        )

    def test_both_rules_can_fire(self) -> None:
        """Test one sibling can produce a warning and an error."""
        target = snapshot("Escalate", field="priority")
        sibling = snapshot("Duplicate", field="priority")

        conflicts = ConflictDetector.detect(target, [sibling])

        assert [c.severity for c in conflicts] == [
            ConflictSeverity.WARNING,
            ConflictSeverity.ERROR,
        ]

    def test_no_conflict(self) -> None:
        """Test distinct labels and configs do not conflict."""
        target = snapshot("Escalate", label="A", field="priority")
        sibling = snapshot("Close", label="B", field="status")
        assert ConflictDetector.detect(target, [sibling]) == []

    def test_self_is_skipped(self) -> None:
        """Test the target never conflicts with itself."""
        target = snapshot("Escalate", field="priority")
        assert ConflictDetector.detect(target, [target]) == []


class TestDetectFor:
    """Loading siblings from the database."""

    @pytest.mark.asyncio
    async def test_detects_against_project_siblings(
        self,
        db_session,
        automation_factory,
        make_trigger,
        make_graph,
    ) -> None:
        """Test siblings in the same project are compared, others ignored."""
        graph = make_graph([make_trigger(field="priority", to="urgent")])
        sibling = await automation_factory(graph, name="Escalate")
        await automation_factory(graph, name="Other project", project=uuid4())
        target = await automation_factory(graph, name="Notify")

        conflicts = await ConflictDetector(db_session).detect_for(target, graph)

        assert {c.conflicting_automation_id for c in conflicts} == {sibling.id}
        assert sorted(c.severity for c in conflicts) == ["error", "warning"]

    @pytest.mark.asyncio
    async def test_deleted_siblings_are_ignored(
        self,
        db_session,
        automation_factory,
        make_trigger,
        make_graph,
    ) -> None:
        """Test soft-deleted automations no longer conflict."""
        graph = make_graph([make_trigger(field="priority")])
        sibling = await automation_factory(graph, name="Old rule")
        sibling.soft_delete()
        await db_session.flush()
        target = await automation_factory(graph, name="New rule")

        assert await ConflictDetector(db_session).detect_for(target, graph) == []

    @pytest.mark.asyncio
    async def test_uses_latest_version_when_none_current(
        self,
        db_session,
        automation_factory,
        version_store,
        make_trigger,
        make_graph,
    ) -> None:
        """Test a sibling without a current version is compared on its latest graph."""
        sibling = await automation_factory(
            make_graph([make_trigger(label="Old", field="status")]),
            name="Draft",
            promote=False,
        )
        await version_store.create_version(
            sibling.id, make_graph([make_trigger(label="New", field="assignee_id")])
        )
        target = await automation_factory(name="Target")

        conflicts = await ConflictDetector(db_session).detect_for(
            target, make_graph([make_trigger(label="New", field="priority")])
        )

        assert [c.severity for c in conflicts] == [ConflictSeverity.WARNING]

    @pytest.mark.asyncio
    async def test_siblings_without_versions_are_skipped(
        self,
        db_session,
        automation_factory,
        make_trigger,
        make_graph,
    ) -> None:
        """Test an automation with no saved graph has no trigger to compare."""
        await automation_factory(name="Empty")
        target = await automation_factory(name="Target")

        conflicts = await ConflictDetector(db_session).detect_for(
            target, make_graph([make_trigger()])
        )

        assert conflicts == []
