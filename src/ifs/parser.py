"""Problem parser: convert a table CSP instance into a model.

Instance format (a dict, or the same thing as a JSON string)::

    {
      "id": "p1",
      "variables": [
        {"name": "A", "values": ["red", {"name": "blue", "weight": 2}], "initial": "red"},
        ...
      ],
      "constraints": [
        {"type": "not_equal", "variables": ["A", "B"]},
        {"type": "incompatible", "variables": ["A", "C"], "pairs": [["red", "blue"]], "hard": false},
        {"type": "resource", "variables": ["A", "B", "C"], "limit": 2},
        {"type": "all_different"}
      ]
    }
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Tuple, Union

from .constraint import (
    AllDifferentConstraint,
    Constraint,
    IncompatiblePairsConstraint,
    NotEqualConstraint,
    ResourceLimitConstraint,
)
from .model import Model, Value, Variable

CONSTRAINT_TYPES = ("not_equal", "incompatible", "resource", "all_different")


def _parse_value(raw: Any, variable_name: str) -> Value:
    if isinstance(raw, dict):
        if "name" not in raw:
            raise ValueError(f"Value of variable {variable_name} has no name: {raw!r}")
        weight = raw.get("weight", 0.0)
        if isinstance(weight, bool) or not isinstance(weight, (int, float)):
            raise ValueError(f"Weight of {variable_name}={raw['name']} must be a number, got {weight!r}")
        return Value(value=weight, name=str(raw["name"]))
    if isinstance(raw, (str, int, float)) and not isinstance(raw, bool):
        return Value(name=str(raw))
    raise ValueError(f"Unsupported value for variable {variable_name}: {raw!r}")


def _parse_variable(raw: Dict[str, Any], index: int) -> Variable:
    if not isinstance(raw, dict):
        raise ValueError(f"Variable #{index} must be an object, got {raw!r}")
    name = str(raw.get("name", f"v{index}"))
    values = raw.get("values")
    if not isinstance(values, list) or not values:
        raise ValueError(f"Variable {name} needs a non-empty list of values")

    variable = Variable(name)
    seen = set()
    for raw_value in values:
        value = _parse_value(raw_value, name)
        if value.name in seen:
            raise ValueError(f"Variable {name} lists value {value.name} twice")
        seen.add(value.name)
        variable.add_value(value)

    initial = raw.get("initial")
    if initial is not None:
        matches = [value for value in variable.values() if value.name == str(initial)]
        if not matches:
            raise ValueError(f"Initial value {initial!r} of {name} is not in its domain")
        variable.set_initial_assignment(matches[0])
    return variable


def _lookup(variables: Dict[str, Variable], names: Any, kind: str) -> List[Variable]:
    if not isinstance(names, list) or not names:
        raise ValueError(f"Constraint {kind} needs a non-empty list of variables")
    result = []
    for name in names:
        if str(name) not in variables:
            raise ValueError(f"Constraint {kind} refers to unknown variable {name!r}")
        result.append(variables[str(name)])
    return result


def _parse_constraint(
    raw: Dict[str, Any], variables: Dict[str, Variable], index: int
) -> Tuple[Constraint, List[Variable]]:
    if not isinstance(raw, dict):
        raise ValueError(f"Constraint #{index} must be an object, got {raw!r}")
    kind = raw.get("type")
    name = raw.get("name", f"c{index}")
    if kind not in CONSTRAINT_TYPES:
        raise ValueError(f"Unknown constraint type {kind!r}; expected one of {CONSTRAINT_TYPES}")
    if kind == "all_different":
        return AllDifferentConstraint(name), []

    scope = _lookup(variables, raw.get("variables"), kind)
    if kind in ("not_equal", "incompatible") and len(scope) != 2:
        raise ValueError(f"Constraint {kind} takes exactly two variables, got {len(scope)}")

    if kind == "not_equal":
        constraint: Constraint = NotEqualConstraint(name)
    elif kind == "incompatible":
        pairs = raw.get("pairs", [])
        if not isinstance(pairs, list) or any(not isinstance(p, (list, tuple)) or len(p) != 2 for p in pairs):
            raise ValueError(f"Constraint {name}: pairs must be a list of [first, second] value names")
        constraint = IncompatiblePairsConstraint(pairs, hard=bool(raw.get("hard", True)), name=name)
    else:
        limit = raw.get("limit", 1)
        if isinstance(limit, bool) or not isinstance(limit, int):
            raise ValueError(f"Constraint {name}: limit must be an integer, got {limit!r}")
        constraint = ResourceLimitConstraint(limit, name=name)

    return constraint, scope


def parse_problem(problem: Union[Dict[str, Any], str]) -> Model:
    """Build a model from a problem instance; raises ValueError on malformed input."""
    if isinstance(problem, str):
        try:
            problem = json.loads(problem)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Problem is not valid JSON: {exc}") from exc
    if not isinstance(problem, dict):
        raise ValueError(f"Problem must be an object, got {type(problem).__name__}")

    raw_variables = problem.get("variables")
    if not isinstance(raw_variables, list) or not raw_variables:
        raise ValueError("Problem needs a non-empty list of variables")

    model = Model()
    by_name: Dict[str, Variable] = {}
    for index, raw in enumerate(raw_variables):
        variable = _parse_variable(raw, index)
        if variable.name in by_name:
            raise ValueError(f"Duplicate variable name {variable.name}")
        by_name[variable.name] = variable
        model.add_variable(variable)

    for index, raw in enumerate(problem.get("constraints") or []):
        constraint, scope = _parse_constraint(raw, by_name, index)
        if isinstance(constraint, AllDifferentConstraint):
            model.add_global_constraint(constraint)
            continue
        model.add_constraint(constraint)
        for variable in scope:
            constraint.add_variable(variable)
    return model
