"""Tests for GraphValidator.

Blocking rules run in order and stop at the first failure; advisory rules
only produce warnings. Each test builds a small graph through the factory
fixtures in conftest.
"""

import pytest

from boardflow.models.enums import GraphErrorCode, NodeKind
from boardflow.schemas.graph import AutomationGraph, GraphEdge, GraphNode
from boardflow.services.automation.exceptions import (
    CycleDetectedError,
    GraphValidationError,
)
from boardflow.services.automation.validator import GraphValidator, node_type_of


@pytest.fixture
def validator() -> GraphValidator:
    return GraphValidator()


class TestTriggerRule:
    """Exactly one trigger node is required."""

    def test_no_trigger(self, validator, make_action, make_graph) -> None:
        """Test a graph without a trigger is rejected."""
        result = validator.validate(make_graph([make_action("a")]))

        assert result.is_valid is False
        assert result.errors[0].code == GraphErrorCode.MISSING_OR_MULTIPLE_TRIGGER
        assert result.errors[0].node_id is None

    def test_empty_graph(self, validator) -> None:
        """Test an empty graph is rejected as missing a trigger."""
        result = validator.validate(AutomationGraph())
        assert result.first_error.code == GraphErrorCode.MISSING_OR_MULTIPLE_TRIGGER

    def test_two_triggers_points_at_second(self, validator, make_trigger, make_graph) -> None:
        """Test the second trigger is reported as the offending node."""
        result = validator.validate(
            make_graph([make_trigger("t1"), make_trigger("t2", "manual")])
        )

        assert result.is_valid is False
        assert result.errors[0].code == GraphErrorCode.MISSING_OR_MULTIPLE_TRIGGER
        assert result.errors[0].node_id == "t2"
        assert result.errors[0].details["trigger_ids"] == ["t1", "t2"]

    def test_default_graph_is_valid(self, validator) -> None:
        """Test the starting graph of a new automation validates."""
        result = validator.validate(AutomationGraph.default())
        assert result.is_valid is True
        assert result.execution_order == [["trigger-0"]]


class TestStructuralRules:
    """Duplicate ids and dangling edges."""

    def test_duplicate_node_id(self, validator, make_trigger, make_action, make_graph) -> None:
        """Test the duplicated id is reported."""
        result = validator.validate(
            make_graph([make_trigger(), make_action("a"), make_action("a")])
        )
        assert result.first_error.code == GraphErrorCode.DUPLICATE_NODE_ID
        assert result.first_error.node_id == "a"

    def test_dangling_edge_target(self, validator, make_trigger, make_graph) -> None:
        """Test an edge to a missing node is reported with that node id."""
        result = validator.validate(make_graph([make_trigger()], ("trigger", "ghost")))

        assert result.first_error.code == GraphErrorCode.DANGLING_EDGE
        assert result.first_error.node_id == "ghost"
        assert result.first_error.details["source"] == "trigger"

    def test_dangling_edge_source(self, validator, make_trigger, make_graph) -> None:
        """Test an edge from a missing node is reported too."""
        result = validator.validate(make_graph([make_trigger()], ("ghost", "trigger")))
        assert result.first_error.code == GraphErrorCode.DANGLING_EDGE
        assert result.first_error.node_id == "ghost"

    def test_rules_stop_at_first_failure(self, validator, make_action, make_graph) -> None:
        """Test only the first failing rule is reported."""
        graph = make_graph([make_action("a"), make_action("a")], ("a", "ghost"))
        result = validator.validate(graph)

        assert len(result.errors) == 1
        assert result.errors[0].code == GraphErrorCode.MISSING_OR_MULTIPLE_TRIGGER


class TestCycleRule:
    """Cycles reachable from the trigger are blocking."""

    def test_cycle_through_trigger(self, validator, make_trigger, make_action, make_graph) -> None:
        """Test a loop back into the trigger is a cycle."""
        graph = make_graph(
            [make_trigger(), make_action("a")],
            ("trigger", "a"),
            ("a", "trigger"),
        )
        result = validator.validate(graph)

        assert result.is_valid is False
        assert result.first_error.code == GraphErrorCode.CYCLE_DETECTED
        assert result.first_error.node_id == "trigger"
        assert result.first_error.details["cycle_path"] == ["trigger", "a", "trigger"]

    def test_cycle_between_actions(self, validator, make_trigger, make_action, make_graph) -> None:
        """Test the re-entered node is the offending node."""
        graph = make_graph(
            [make_trigger(), make_action("a"), make_action("b")],
            ("trigger", "a"),
            ("a", "b"),
            ("b", "a"),
        )
        result = validator.validate(graph)
        assert result.first_error.node_id == "a"

    def test_unreachable_cycle_blocks(
        self, validator, make_trigger, make_action, make_graph
    ) -> None:
        """Test a cycle the trigger cannot reach is still rejected."""
        graph = make_graph(
            [make_trigger(), make_action("a"), make_action("p"), make_action("q")],
            ("trigger", "a"),
            ("p", "q"),
            ("q", "p"),
        )
        result = validator.validate(graph)

        assert result.is_valid is False
        assert result.first_error.code == GraphErrorCode.CYCLE_DETECTED
        assert result.first_error.node_id == "p"
        assert result.first_error.details["cycle_path"] == ["p", "q", "p"]

    def test_detached_cycle_without_trigger_edges(
        self, validator, make_trigger, make_action, make_graph
    ) -> None:
        """Test a lone trigger next to a two-node loop is rejected."""
        graph = make_graph(
            [make_trigger(), make_action("a"), make_action("b")],
            ("a", "b"),
            ("b", "a"),
        )

        with pytest.raises(CycleDetectedError) as exc_info:
            validator.validate_or_raise(graph)

        assert exc_info.value.cycle_path == ["a", "b", "a"]


class TestWarnings:
    """Advisory rules."""

    def test_unreachable_node(self, validator, make_trigger, make_action, make_graph) -> None:
        """Test an orphan node is reported but does not block."""
        result = validator.validate(make_graph([make_trigger(), make_action("orphan")]))

        assert result.is_valid is True
        assert [w.code for w in result.warnings] == [GraphErrorCode.UNREACHABLE_NODE]
        assert result.warnings[0].node_id == "orphan"

    def test_edge_into_trigger_from_unreachable_node(
        self, validator, make_trigger, make_action, make_graph
    ) -> None:
        """Test an edge into the trigger from outside is a warning."""
        graph = make_graph([make_trigger(), make_action("upstream")], ("upstream", "trigger"))
        result = validator.validate(graph)

        assert result.is_valid is True
        codes = [(w.code, w.node_id) for w in result.warnings]
        assert (GraphErrorCode.TRIGGER_HAS_INCOMING_EDGE, "upstream") in codes

    def test_unknown_types_with_known_types(self, make_trigger, make_action, make_graph) -> None:
        """Test unregistered node types are reported when types are known."""
        validator = GraphValidator(
            known_types={
                NodeKind.TRIGGER: ["field_update"],
                NodeKind.CONDITION: ["field_compare"],
                NodeKind.ACTION: ["record"],
            }
        )
        graph = make_graph(
            [make_trigger(), make_action("a"), make_action("b", "send_fax")],
            ("trigger", "a"),
            ("trigger", "b"),
        )
        result = validator.validate(graph)

        assert result.is_valid is True
        assert [(w.code, w.node_id) for w in result.warnings] == [
            (GraphErrorCode.UNKNOWN_NODE_TYPE, "b")
        ]
        assert result.warnings[0].details == {"type": "send_fax"}

    def test_unknown_types_ignored_without_known_types(
        self, validator, make_trigger, make_action, make_graph
    ) -> None:
        """Test no type warnings are produced by a bare validator."""
        graph = make_graph([make_trigger(), make_action("b", "send_fax")], ("trigger", "b"))
        assert validator.validate(graph).warnings == []


class TestExecutionOrder:
    """Execution order is the topological levels of the reachable graph."""

    def test_urgent_graph_levels(self, validator, urgent_graph) -> None:
        """Test sibling actions share a level after their condition."""
        result = validator.validate(urgent_graph)
        assert result.execution_order == [["trigger"], ["not-done"], ["assign", "notify"]]

    def test_unreachable_nodes_excluded(self, validator, make_trigger, make_action, make_graph) -> None:
        """Test unreachable nodes are not scheduled."""
        graph = make_graph([make_trigger(), make_action("a"), make_action("orphan")], ("trigger", "a"))
        assert validator.validate(graph).execution_order == [["trigger"], ["a"]]


class TestValidateOrRaise:
    """Raising variant used before saving and executing."""

    def test_returns_result_when_valid(self, validator, urgent_graph) -> None:
        """Test a valid graph returns its result."""
        assert validator.validate_or_raise(urgent_graph).is_valid is True

    def test_raises_cycle_error(self, validator, make_trigger, make_action, make_graph) -> None:
        """Test cycles raise CycleDetectedError with the path."""
        graph = make_graph(
            [make_trigger(), make_action("a")],
            ("trigger", "a"),
            ("a", "trigger"),
        )
        with pytest.raises(CycleDetectedError) as exc_info:
            validator.validate_or_raise(graph)

        assert exc_info.value.cycle_path == ["trigger", "a", "trigger"]
        assert exc_info.value.node_id == "trigger"
        assert exc_info.value.error_code == "CYCLE_DETECTED"

    def test_raises_validation_error_with_node(self, validator, make_trigger, make_graph) -> None:
        """Test other rules raise GraphValidationError with code and node id."""
        with pytest.raises(GraphValidationError) as exc_info:
            validator.validate_or_raise(make_graph([make_trigger()], ("trigger", "ghost")))

        assert exc_info.value.code == GraphErrorCode.DANGLING_EDGE
        assert exc_info.value.node_id == "ghost"
        assert exc_info.value.to_dict()["code"] == "DANGLING_EDGE"


class TestNodeTypeDefaults:
    """Empty node types resolve to a per-kind default."""

    def test_defaults(self) -> None:
        """Test trigger and condition defaults, actions have none."""
        assert node_type_of(NodeKind.TRIGGER, None) == "manual"
        assert node_type_of("condition", None) == "field_compare"
        assert node_type_of(NodeKind.ACTION, None) is None
        assert node_type_of(NodeKind.ACTION, "record") == "record"

    def test_graph_roundtrip_through_definition(self) -> None:
        """Test a stored definition loads back into the same graph."""
        graph = AutomationGraph(
            nodes=[GraphNode(id="t", kind=NodeKind.TRIGGER, config={"to": "urgent"})],
            edges=[GraphEdge(source="t", target="t", label="loop")],
        )
        assert AutomationGraph.from_definition(graph.to_definition()) == graph
