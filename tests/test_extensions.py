"""Unit tests for conflict statistics, forward checking and violated initials."""

import pytest

from src.ifs.config import SolverConfig
from src.ifs.constraint import NotEqualConstraint
from src.ifs.extensions import ConflictStatistics, ForwardCheckingPropagation, ViolatedInitials
from src.ifs.heuristics.variable_selection import GeneralVariableSelection
from src.ifs.model import Model, Value, Variable
from src.ifs.solver_core import Solver


def _make_pair_model(b_names=("0", "1"), initial=None):
    model = Model()
    a = Variable("A", [Value(name=n) for n in ("0", "1")])
    b = Variable("B", [Value(name=n) for n in b_names])
    if initial is not None:
        a.initial_assignment = a.values()[initial]
    model.add_variable(a)
    model.add_variable(b)
    constraint = NotEqualConstraint()
    model.add_constraint(constraint)
    constraint.add_variable(a)
    constraint.add_variable(b)
    return model, a, b


def test_statistics_record_unassignments():
    model, a, b = _make_pair_model()
    statistics = ConflictStatistics(config=SolverConfig())
    statistics.register(model)
    a0 = a.values()[0]
    b0 = b.values()[0]

    a.assign(1, a0)
    b.assign(2, b0)
    assert a.assignment is None

    assert statistics.count_removals(3, [a0], b0) == 1.0
    assert statistics.count_value_removals(3, a0, a.values()[1]) == 0.0
    records = statistics.no_goods(a0)
    assert len(records) == 1 and records[0].value is b0

    # b0 still assigned, so it is no potential conflict yet
    assert statistics.count_potential_conflicts(3, a0, -1) == 0.0
    b.unassign(4)
    assert statistics.count_potential_conflicts(5, a0, -1) == 1.0

    a.assign(6, a0)
    b.assign(7, b0)
    assert statistics.count_removals(8, [a0], b0) == 2.0


def test_statistics_ignore_iteration_zero():
    model, a, b = _make_pair_model()
    statistics = ConflictStatistics(config=SolverConfig())
    statistics.register(model)
    a.assign(0, a.values()[0])
    b.assign(0, b.values()[0])
    assert a.assignment is None
    assert statistics.no_goods(a.values()[0]) == []


def test_statistics_counters_age():
    model, a, b = _make_pair_model()
    statistics = ConflictStatistics(config=SolverConfig(statistics_ageing=0.5))
    statistics.register(model)
    a0 = a.values()[0]
    b0 = b.values()[0]
    a.assign(1, a0)
    b.assign(2, b0)
    assert statistics.count_removals(2, [a0], b0) == pytest.approx(1.0)
    assert statistics.count_removals(4, [a0], b0) == pytest.approx(0.25)


def test_statistics_half_age_sets_ageing():
    config = SolverConfig(statistics_half_age=4)
    statistics = ConflictStatistics(config=config)
    assert statistics.ageing == pytest.approx(0.5 ** 0.25)


def test_propagation_explains_pruned_values():
    model, a, b = _make_pair_model()
    propagation = ForwardCheckingPropagation()
    propagation.register(model)
    a0 = a.values()[0]
    b0, b1 = b.values()

    a.assign(1, a0)
    assert propagation.no_good(b0) == {a0}
    assert propagation.last_explanation(b0) == {a0}
    assert propagation.is_good(b1)
    assert propagation.good_values(b) == [b1]
    assert propagation.pruned_variables() == []

    a.unassign(2)
    assert propagation.is_good(b0)
    assert propagation.last_explanation(b0) is None


def test_propagation_lists_pruned_variables():
    model, a, b = _make_pair_model(b_names=("0",))
    propagation = ForwardCheckingPropagation()
    propagation.register(model)
    a.assign(1, a.values()[0])
    assert propagation.pruned_variables() == [b]


def test_violated_initials():
    model, a, b = _make_pair_model(initial=0)
    extension = ViolatedInitials()
    extension.register(model)
    assert extension.violated_initials(b.values()[0]) == {a.values()[0]}
    assert extension.violated_initials(b.values()[1]) == set()


def test_no_good_mode_requires_propagation():
    config = SolverConfig(unassign_when_no_good=True)
    solver = Solver(config)
    selection = GeneralVariableSelection(config)
    with pytest.raises(ValueError, match="ForwardCheckingPropagation"):
        selection.init(solver)


def test_auto_configure_adds_extensions():
    model, _, _ = _make_pair_model()
    solver = Solver(SolverConfig(unassign_when_no_good=True, mpp=True))
    solver.set_initial_solution(model)
    solver.auto_configure()
    assert solver.get_extension(ConflictStatistics) is not None
    assert solver.get_extension(ForwardCheckingPropagation) is not None
    assert solver.get_extension(ViolatedInitials) is not None
