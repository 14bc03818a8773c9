"""Integration-style tests for the iterative forward search solver."""

import threading
import time

import pytest

from solver import assignment_of, solve_model, solve_problem
from src.ifs.config import SolverConfig
from src.ifs.model import Model, Value, Variable
from src.ifs.parser import parse_problem
from src.ifs.solution import Solution
from src.ifs.solver_core import GeneralSolutionComparator, MPPSolutionComparator, Solver, SolverListener
from src.utils.trace import get_tracer, reset_tracer


def _build_colouring_problem():
    """Four-cycle with two colours plus a pinned corner."""
    return {
        "id": "cycle",
        "variables": [{"name": name, "values": ["red", "blue"]} for name in ("N", "E", "S", "W")],
        "constraints": [
            {"type": "not_equal", "variables": ["N", "E"]},
            {"type": "not_equal", "variables": ["E", "S"]},
            {"type": "not_equal", "variables": ["S", "W"]},
            {"type": "not_equal", "variables": ["W", "N"]},
            {"type": "incompatible", "variables": ["N", "E"], "pairs": [["blue", "red"]]},
        ],
    }


def _build_all_different_problem():
    return {
        "id": "distinct",
        "variables": [{"name": name, "values": ["1", "2", "3"]} for name in ("X", "Y", "Z")],
        "constraints": [{"type": "all_different"}],
    }


def _make_config(**options):
    defaults = {"seed": 11, "termination_max_iterations": 500, "stop_when_complete": True}
    defaults.update(options)
    return SolverConfig(**defaults)


def test_solver_colours_cycle():
    solution = solve_problem(_build_colouring_problem(), _make_config())
    assert set(solution) == {"N", "E", "S", "W"}
    assert solution["N"] == "red" and solution["S"] == "red"
    assert solution["E"] == "blue" and solution["W"] == "blue"


def test_solver_all_different():
    solution = solve_problem(_build_all_different_problem(), _make_config())
    assert sorted(solution.values()) == ["1", "2", "3"]


@pytest.mark.parametrize("neighbour", ["standard", "backtrack", "round-robin"])
def test_neighbour_strategies_complete(neighbour):
    model = parse_problem(_build_colouring_problem())
    result = solve_model(model, _make_config(neighbour=neighbour, depth=4))
    assert result.is_best_complete
    assert model.nr_unassigned_variables() == 0
    assert None not in assignment_of(model).values()


def test_solver_with_statistics_and_propagation():
    config = _make_config(
        unassign_when_no_good=True,
        good_selection_prob=0.5,
        weight_potential_conflicts=1.0,
        tabu_size=2,
    )
    solution = solve_problem(_build_all_different_problem(), config)
    assert sorted(solution.values()) == ["1", "2", "3"]


def test_minimal_perturbation_keeps_initials():
    problem = _build_all_different_problem()
    problem["variables"][0]["initial"] = "1"
    problem["variables"][1]["initial"] = "2"
    config = _make_config(mpp=True, weight_delta_initial=1.0, initial_value_prob=1.0)
    solution = solve_problem(problem, config)
    assert solution == {"X": "1", "Y": "2", "Z": "3"}


def test_solver_is_deterministic_for_a_seed():
    problem = _build_all_different_problem()
    first = solve_problem(problem, _make_config(stop_when_complete=False, termination_max_iterations=50))
    second = solve_problem(problem, _make_config(stop_when_complete=False, termination_max_iterations=50))
    assert first == second


def test_solver_stops_after_empty_selections():
    reset_tracer()
    model = Model()
    model.add_variable(Variable("X"))
    solver = Solver(SolverConfig(max_empty_selections=3, termination_timeout=5.0))
    solver.set_initial_solution(model)
    solution = solver.solve()
    assert solution.iteration == 2
    assert get_tracer().summary()["action_counts"]["no_move"] == 3
    assert not solver.is_running()


def test_solver_listener_can_veto():
    class Veto(SolverListener):
        def neighbour_selected(self, iteration, neighbour):
            return False

    model = parse_problem(_build_all_different_problem())
    solver = Solver(_make_config(max_empty_selections=5))
    solver.add_solver_listener(Veto())
    solver.set_initial_solution(model)
    solver.solve()
    assert model.nr_assigned_variables() == 0


def test_stop_ends_the_loop():
    model = parse_problem(_build_all_different_problem())
    solver = Solver(SolverConfig(seed=1, termination_timeout=30.0, max_idle=-1))
    solver.set_initial_solution(model)

    class StopOnFirstMove(SolverListener):
        def neighbour_selected(self, iteration, neighbour):
            solver.stop()
            return True

    solver.add_solver_listener(StopOnFirstMove())
    solution = solver.solve()
    assert solution.iteration == 1
    assert model.nr_assigned_variables() == 1


def test_stop_from_another_thread():
    model = parse_problem(_build_all_different_problem())
    solver = Solver(SolverConfig(seed=1, termination_timeout=30.0, max_idle=-1))
    solver.set_initial_solution(model)
    worker = threading.Thread(target=solver.solve)
    worker.start()
    deadline = time.monotonic() + 10.0
    while not solver.is_running() and worker.is_alive() and time.monotonic() < deadline:
        time.sleep(0.001)
    solver.stop()
    worker.join(timeout=10.0)
    assert not worker.is_alive()
    assert not solver.is_running()


def test_best_solution_is_restored():
    model = parse_problem(_build_colouring_problem())
    solution = solve_model(model, _make_config(stop_when_complete=False, termination_max_iterations=60))
    assert solution.best_info is not None
    assert model.nr_unassigned_variables() == model.best_unassigned_variables()
    assert model.total_value() == solution.best_value


def test_comparators():
    model = Model()
    a = Variable("A", [Value(value=2.0, name="x"), Value(value=1.0, name="y")])
    a.initial_assignment = a.values()[0]
    model.add_variable(a)
    solution = Solution(model)

    assert GeneralSolutionComparator().is_better_than_best_solution(solution)
    a.assign(1, a.values()[0])
    solution.save_best()
    a.assign(2, a.values()[1])
    assert GeneralSolutionComparator().is_better_than_best_solution(solution)
    assert not MPPSolutionComparator().is_better_than_best_solution(solution)


def test_solve_problem_rejects_unknown_input():
    with pytest.raises(TypeError):
        solve_problem(42)
