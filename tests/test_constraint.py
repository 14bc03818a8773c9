"""Unit tests for the constraint kinds and their cascading unassignment."""

import pytest

from src.ifs.constraint import (
    AllDifferentConstraint,
    BinaryConstraint,
    IncompatiblePairsConstraint,
    NotEqualConstraint,
    ResourceLimitConstraint,
)
from src.ifs.model import Model, ModelError, Value, Variable


def _make_model(names, domain=("x", "y", "z")):
    model = Model()
    variables = []
    for name in names:
        variable = Variable(name, [Value(name=n) for n in domain])
        model.add_variable(variable)
        variables.append(variable)
    return model, variables


def _attach(model, constraint, variables):
    model.add_constraint(constraint)
    for variable in variables:
        constraint.add_variable(variable)
    return constraint


def _value(variable, name):
    return next(value for value in variable.values() if value.name == name)


def test_binary_constraint_rejects_third_variable():
    model, (a, b, c) = _make_model("ABC")
    constraint = _attach(model, NotEqualConstraint(), [a, b])
    assert isinstance(constraint, BinaryConstraint)
    with pytest.raises(ModelError):
        constraint.add_variable(c)
    assert constraint.another(a) is b
    assert constraint.another(c) is None


def test_global_constraint_membership_is_implicit():
    model, (a, b) = _make_model("AB")
    constraint = AllDifferentConstraint()
    model.add_global_constraint(constraint)
    assert constraint.variables() == [a, b]
    with pytest.raises(ModelError):
        constraint.add_variable(a)
    with pytest.raises(ModelError):
        constraint.remove_variable(a)


def test_all_different_unassigns_clash():
    model, (a, b, c) = _make_model("ABC")
    model.add_global_constraint(AllDifferentConstraint())
    a.assign(1, _value(a, "x"))
    b.assign(2, _value(b, "y"))
    assert model.conflict_values(_value(c, "x")) == {_value(a, "x")}

    c.assign(3, _value(c, "x"))
    assert a.assignment is None
    assert b.assignment is _value(b, "y")
    assert model.unassigned_variables() == [a]


def test_resource_limit_keeps_limit_holders():
    model, (a, b, c) = _make_model("ABC")
    constraint = _attach(model, ResourceLimitConstraint(2, name="room"), [a, b, c])
    a.assign(1, _value(a, "x"))
    b.assign(2, _value(b, "x"))
    assert constraint.count_assigned_variables() == 2

    c.assign(3, _value(c, "x"))
    assert a.assignment is None
    assert b.assignment is not None and c.assignment is not None
    assert constraint.count_assigned_variables() == 2


def test_resource_limit_must_be_positive():
    with pytest.raises(ValueError):
        ResourceLimitConstraint(0)


def test_incompatible_pairs_are_oriented():
    model, (a, b) = _make_model("AB")
    _attach(model, IncompatiblePairsConstraint([("x", "y")]), [a, b])
    a.assign(1, _value(a, "y"))
    b.assign(2, _value(b, "y"))
    assert a.assignment is not None
    assert _value(a, "y").is_consistent(_value(b, "x"))

    a.assign(3, _value(a, "x"))
    assert b.assignment is None
    assert model.conflict_values(_value(b, "y")) == {_value(a, "x")}
    assert model.conflict_values(_value(b, "x")) == set()


def test_soft_constraint_never_unassigns():
    model, (a, b) = _make_model("AB")
    constraint = _attach(model, IncompatiblePairsConstraint([("x", "x")], hard=False), [a, b])
    assert not constraint.is_hard()
    assert a.soft_constraints() == [constraint]

    a.assign(1, _value(a, "x"))
    b.assign(2, _value(b, "x"))
    assert a.assignment is not None and b.assignment is not None
    assert constraint.violations() == 1
    assert model.conflict_values(_value(b, "x")) == set()
    assert _value(b, "x").conflicts() == {_value(a, "x")}


def test_adding_variable_checks_held_value():
    model, (a, b) = _make_model("AB")
    a.assign(1, _value(a, "x"))
    b.assign(2, _value(b, "x"))
    constraint = NotEqualConstraint()
    model.add_constraint(constraint)
    constraint.add_variable(a)
    constraint.add_variable(b)
    assert a.assignment is None
    assert b.assignment is _value(b, "x")


def test_constraint_variables_cache_is_refreshed():
    model, (a, b, c) = _make_model("ABC")
    first = _attach(model, NotEqualConstraint(), [a, b])
    assert list(a.constraint_variables()) == [b]
    second = _attach(model, NotEqualConstraint(), [a, c])
    assert a.constraint_variables() == {b: [first], c: [second]}

    second.remove_variable(c)
    assert list(a.constraint_variables()) == [b]
    assert c.constraints() == []


def test_is_consistent_checks_pairs():
    model, (a, b) = _make_model("AB")
    _attach(model, NotEqualConstraint(), [a, b])
    assert not _value(a, "x").is_consistent(_value(b, "x"))
    assert _value(a, "x").is_consistent(_value(b, "y"))


def test_default_constraint_name_uses_id():
    model, (a, b) = _make_model("AB")
    constraint = _attach(model, NotEqualConstraint(), [a, b])
    assert constraint.name == f"NotEqualConstraint{constraint.id}"
