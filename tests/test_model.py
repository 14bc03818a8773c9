"""Unit tests for the assignment model: partition, conflicts, perturbations, best solution."""

import logging
import random

import pytest

from src.ifs.constraint import NotEqualConstraint
from src.ifs.model import (
    Model,
    ModelError,
    ReentrantAssignmentError,
    SideTable,
    Value,
    Variable,
    VariableListener,
)


def _make_variable(name, names=("0", "1")):
    return Variable(name, [Value(name=n) for n in names])


def _make_pair_model():
    """A and B over {0, 1} with A != B."""
    model = Model()
    a = _make_variable("A")
    b = _make_variable("B")
    model.add_variable(a)
    model.add_variable(b)
    constraint = NotEqualConstraint("A!=B")
    model.add_constraint(constraint)
    constraint.add_variable(a)
    constraint.add_variable(b)
    return model, a, b, constraint


def _assert_partition(model):
    assigned = set(model.assigned_variables())
    unassigned = set(model.unassigned_variables())
    assert not assigned & unassigned
    assert assigned | unassigned == set(model.variables())
    for variable in model.variables():
        assert (variable in assigned) == (variable.assignment is not None)


def test_add_variable_hands_out_ids():
    model, a, b, constraint = _make_pair_model()
    ids = [a.id, b.id, constraint.id] + [value.id for value in a.values() + b.values()]
    assert None not in ids
    assert len(set(ids)) == len(ids)
    assert model.variable_by_id(a.id) is a
    assert model.constraint_by_id(constraint.id) is constraint


def test_conflict_values_and_cascade():
    model, a, b, _ = _make_pair_model()
    a0, a1 = a.values()
    b0, b1 = b.values()

    a.assign(1, a0)
    assert model.conflict_values(b0) == {a0}
    assert model.conflict_values(b1) == set()

    b.assign(2, b1)
    assert model.nr_unassigned_variables() == 0
    _assert_partition(model)

    a.assign(3, a1)
    assert a.assignment is a1
    assert b.assignment is None
    assert model.unassigned_variables() == [b]
    _assert_partition(model)


def test_three_variables_one_binary_constraint():
    model = Model()
    a, b, c = (_make_variable(name) for name in "ABC")
    for variable in (a, b, c):
        model.add_variable(variable)
    constraint = NotEqualConstraint()
    model.add_constraint(constraint)
    constraint.add_variable(a)
    constraint.add_variable(b)

    a.assign(1, a.values()[0])
    assert model.conflict_values(b.values()[0]) == {a.values()[0]}
    assert model.conflict_values(c.values()[0]) == set()
    b.assign(2, b.values()[1])
    assert a.assignment is a.values()[0]
    assert b.assignment is b.values()[1]
    assert model.unassigned_variables() == [c]
    _assert_partition(model)


def test_perturbation_cleared_by_unassign_then_initial():
    model = Model()
    a = _make_variable("A")
    a.initial_assignment = a.values()[0]
    model.add_variable(a)
    a.assign(1, a.values()[1])
    assert a in model.perturb_variables()
    a.unassign(2)
    a.assign(3, a.values()[0])
    assert a not in model.perturb_variables()


def test_save_then_restore_keeps_count_and_value():
    model = Model()
    a = Variable("A", [Value(value=1.5, name="x"), Value(value=4.0, name="y")])
    b = Variable("B", [Value(value=2.0, name="x")])
    c = Variable("C", [Value(value=3.0, name="z")])
    for variable in (a, b, c):
        model.add_variable(variable)
    a.assign(1, a.values()[1])
    b.assign(2, b.values()[0])
    count, value = model.nr_assigned_variables(), model.total_value()

    model.save_best()
    model.restore_best()
    assert model.nr_assigned_variables() == count
    assert model.total_value() == value == 6.0
    assert model.unassigned_variables() == [c]


def test_reassigning_unassigns_previous_value_first():
    model, a, _, _ = _make_pair_model()
    a0, a1 = a.values()
    a.assign(1, a0)
    a.assign(2, a1)
    assert a.assignment is a1
    assert a0.last_unassignment_iteration() == 2
    assert a.count_assignments() == 2
    _assert_partition(model)


def test_assign_none_unassigns():
    model, a, _, _ = _make_pair_model()
    a.assign(1, a.values()[0])
    a.assign(2, None)
    assert a.assignment is None
    assert model.nr_assigned_variables() == 0
    _assert_partition(model)


def test_value_held_before_add_variable_is_propagated():
    model = Model()
    a = _make_variable("A")
    a.assign(0, a.values()[1])
    model.add_variable(a)
    assert model.assigned_variables() == [a]
    assert a.values()[1].count_assignments() == 2


def test_perturbations_follow_assignment():
    model = Model()
    a = _make_variable("A")
    b = _make_variable("B")
    a.initial_assignment = a.values()[0]
    model.add_variable(a)
    model.add_variable(b)
    constraint = NotEqualConstraint()
    model.add_constraint(constraint)
    constraint.add_variable(a)
    constraint.add_variable(b)
    a0, a1 = a.values()
    b0, b1 = b.values()

    assert model.variables_with_initial_value() == [a]
    assert model.perturb_variables() == []

    a.assign(1, a1)
    assert model.perturb_variables() == [a]

    a.assign(2, a0)
    assert model.perturb_variables() == []

    # initial value is blocked by B = 0
    b.assign(3, b0)
    assert a.assignment is None
    assert model.perturb_variables() == [a]

    b.assign(4, b1)
    assert model.perturb_variables() == []


def test_save_and_restore_best_is_idempotent():
    model, a, b, _ = _make_pair_model()
    a0 = a.values()[0]
    b0, b1 = b.values()
    a.assign(1, a0)
    b.assign(2, b1)

    model.save_best()
    assert model.best_unassigned_variables() == 0
    assert model.restore_best(random.Random(0))
    assert a.assignment is a0 and b.assignment is b1

    b.assign(3, b0)
    assert a.assignment is None
    assert model.restore_best(random.Random(0))
    assert a.assignment is a0 and b.assignment is b1
    assert model.restore_best(random.Random(0))
    assert a.assignment is a0 and b.assignment is b1


def test_clear_best():
    model, a, _, _ = _make_pair_model()
    a.assign(1, a.values()[0])
    model.save_best()
    model.clear_best()
    assert model.best_unassigned_variables() == -1
    assert all(variable.best_assignment is None for variable in model.variables())


def test_restore_best_reports_and_repairs(caplog):
    model = Model()
    a = _make_variable("A")
    b = _make_variable("B")
    model.add_variable(a)
    model.add_variable(b)
    a.assign(1, a.values()[0])
    b.assign(2, b.values()[0])
    model.save_best()

    # A constraint added afterwards makes the saved best infeasible.
    constraint = NotEqualConstraint("late")
    model.add_constraint(constraint)
    constraint.add_variable(a)
    constraint.add_variable(b)
    assert a.assignment is None

    with caplog.at_level(logging.ERROR, logger="ifs"):
        restored = model.restore_best(random.Random(1))

    assert restored is False
    assert "restore best problem: assignment A = 0" in caplog.text
    assert "causes the following conflicts" in caplog.text
    assert "restore best failed" in caplog.text
    _assert_partition(model)


def test_listener_cannot_change_assignment():
    model, a, b, _ = _make_pair_model()

    class Meddler(VariableListener):
        def variable_assigned(self, iteration, value):
            b.assign(iteration, b.values()[1])

    a.add_variable_listener(Meddler())
    with pytest.raises(ReentrantAssignmentError):
        a.assign(1, a.values()[0])


def test_remove_value_ignores_one_later_assignment():
    model, a, _, _ = _make_pair_model()
    a0 = a.values()[0]
    a.assign(1, a0)
    a.remove_value(2, a0)
    assert a.assignment is None
    assert a0 not in a.values()

    a.assign(3, a0)
    assert a.assignment is None
    a.assign(4, a0)
    assert a.assignment is a0


def test_value_from_other_variable_is_rejected():
    a = _make_variable("A")
    b = _make_variable("B")
    with pytest.raises(ModelError):
        b.add_value(a.values()[0])


def test_side_table_needs_ids():
    table = SideTable()
    with pytest.raises(ModelError):
        table.set(Value(name="loose"), 1)

    model, a, _, _ = _make_pair_model()
    table.set(a, "payload")
    assert table.get(a) == "payload"
    assert a in table
    assert table.pop(a) == "payload"
    assert len(table) == 0


def test_get_info_reports_assignment():
    model, a, _, _ = _make_pair_model()
    a.assign(1, a.values()[0])
    info = model.get_info()
    assert info["Assigned variables"] == "50.00% (1/2)"
    assert info["Overall solution value"] == "0.00"
    assert "Perturbation variables" not in info


def test_attaching_constraint_refreshes_perturbations():
    model = Model()
    a = _make_variable("A")
    b = _make_variable("B")
    a.initial_assignment = a.values()[0]
    model.add_variable(a)
    model.add_variable(b)
    b.assign(1, b.values()[0])
    assert model.perturb_variables() == []

    constraint = NotEqualConstraint()
    model.add_constraint(constraint)
    constraint.add_variable(a)
    constraint.add_variable(b)
    assert a.assignment is None
    assert model.perturb_variables() == [a]

    constraint.remove_variable(b)
    assert model.perturb_variables() == []


def test_remove_initial_value():
    model = Model()
    a = _make_variable("A")
    a0 = a.values()[0]
    a.initial_assignment = a0
    model.add_variable(a)
    a.assign(1, a0)

    a.remove_initial_value()
    assert a.assignment is None
    assert a.initial_assignment is None
    assert a0 not in a.values()
    assert model.variables_with_initial_value() == []


def test_conflict_constraints_by_constraint():
    model, a, b, constraint = _make_pair_model()
    a0 = a.values()[0]
    b0, b1 = b.values()
    a.assign(1, a0)
    assert model.conflict_constraints(b0) == {constraint: {a0}}
    assert model.conflict_constraints(b1) == {}


def test_unassigned_hard_constraints():
    model, a, b, constraint = _make_pair_model()
    assert model.unassigned_hard_constraints() == [constraint]
    a.assign(1, a.values()[0])
    assert model.unassigned_hard_constraints() == [constraint]
    b.assign(2, b.values()[1])
    assert model.unassigned_hard_constraints() == []
