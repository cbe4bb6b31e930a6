"""Built-in condition evaluator.

``field_compare`` compares a value from the branch context with a literal.
Field paths are dotted; a path whose first segment is not one of the branch
context keys (``event``, ``item``, ``changes``, ``outputs``) is read from
the item, so ``priority`` and ``item.priority`` are equivalent.

Single clause::

    {"field": "priority", "operator": "equals", "value": "urgent"}

Several clauses::

    {"match": "any", "clauses": [{...}, {...}]}
"""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator

from boardflow.services.automation.exceptions import (
    ConditionEvaluationError,
    HandlerConfigurationError,
)
from boardflow.services.automation.handlers.base import ConditionEvaluator

BRANCH_CONTEXT_ROOTS = frozenset({"event", "item", "changes", "outputs"})

_MISSING = object()


class CompareOperator(str, Enum):
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    IN = "in"
    IS_EMPTY = "is_empty"
    IS_NOT_EMPTY = "is_not_empty"


def _is_empty(actual: Any) -> bool:
    return actual is None or actual is _MISSING or actual == "" or actual in ([], {})


def _contains(actual: Any, expected: Any) -> bool:
    if actual is None or actual is _MISSING:
        return False
    if isinstance(actual, str):
        return str(expected).lower() in actual.lower()
    return expected in actual


_OPERATORS: dict[CompareOperator, Callable[[Any, Any], bool]] = {
    CompareOperator.EQUALS: lambda actual, expected: actual == expected,
    CompareOperator.NOT_EQUALS: lambda actual, expected: actual != expected,
    CompareOperator.CONTAINS: _contains,
    CompareOperator.NOT_CONTAINS: lambda actual, expected: not _contains(actual, expected),
    CompareOperator.GREATER_THAN: lambda actual, expected: actual > expected,
    CompareOperator.LESS_THAN: lambda actual, expected: actual < expected,
    CompareOperator.IN: lambda actual, expected: actual in expected,
    CompareOperator.IS_EMPTY: lambda actual, _: _is_empty(actual),
    CompareOperator.IS_NOT_EMPTY: lambda actual, _: not _is_empty(actual),
}


class CompareClause(BaseModel):
    field: str = Field(..., min_length=1)
    operator: CompareOperator = CompareOperator.EQUALS
    value: Any = None


class FieldCompareConfig(BaseModel):
    """Either a single clause (``field``/``operator``/``value``) or ``clauses``."""

    field: str | None = None
    operator: CompareOperator = CompareOperator.EQUALS
    value: Any = None
    clauses: list[CompareClause] = Field(default_factory=list)
    match: Literal["all", "any"] = "all"

    @model_validator(mode="after")
    def require_clause(self) -> FieldCompareConfig:
        if self.field is None and not self.clauses:
            raise ValueError("either 'field' or 'clauses' is required")
        return self

    def all_clauses(self) -> list[CompareClause]:
        if self.field is not None:
            return [
                CompareClause(field=self.field, operator=self.operator, value=self.value),
                *self.clauses,
            ]
        return self.clauses


def resolve_path(branch_context: dict[str, Any], path: str) -> Any:
    """Read a dotted path from the branch context; ``_MISSING`` if absent."""
    segments = path.split(".")
    current: Any = branch_context
    if segments[0] not in BRANCH_CONTEXT_ROOTS:
        current = branch_context.get("item", {})
    for segment in segments:
        if isinstance(current, dict) and segment in current:
            current = current[segment]
        elif isinstance(current, list) and segment.isdigit() and int(segment) < len(current):
            current = current[int(segment)]
        else:
            return _MISSING
    return current


class FieldCompareEvaluator(ConditionEvaluator):
    """Compare branch-context values with literals."""

    type_name = "field_compare"
    config_schema = FieldCompareConfig

    def evaluate(self, config: dict[str, Any], branch_context: dict[str, Any]) -> bool:
        node_id = str(branch_context.get("node_id", "?"))
        try:
            parsed: FieldCompareConfig = self.parse_config(config)
        except HandlerConfigurationError as e:
            raise ConditionEvaluationError(node_id, e.message) from e

        results = (
            self._evaluate_clause(clause, branch_context, node_id)
            for clause in parsed.all_clauses()
        )
        return all(results) if parsed.match == "all" else any(results)

    def _evaluate_clause(
        self,
        clause: CompareClause,
        branch_context: dict[str, Any],
        node_id: str,
    ) -> bool:
        actual = resolve_path(branch_context, clause.field)
        operator = CompareOperator(clause.operator)
        if actual is _MISSING and operator not in (
            CompareOperator.IS_EMPTY,
            CompareOperator.IS_NOT_EMPTY,
            CompareOperator.NOT_EQUALS,
            CompareOperator.NOT_CONTAINS,
        ):
            return False
        if actual is _MISSING:
            actual = None
        try:
            return bool(_OPERATORS[operator](actual, clause.value))
        except TypeError as e:
            raise ConditionEvaluationError(
                node_id,
                f"cannot apply '{operator.value}' to {actual!r} and {clause.value!r}",
            ) from e


__all__ = [
    "CompareOperator",
    "FieldCompareConfig",
    "FieldCompareEvaluator",
    "resolve_path",
]
