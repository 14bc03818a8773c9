"""Bounded-depth backtracking rooted at one variable."""

import random
import time
from typing import Dict, List, Optional

from ..config import SolverConfig
from ..model import Model, Value, Variable
from ..neighbour import Neighbour
from ..solution import Solution
from .neighbour_selection import StandardNeighbourSelection
from .value_selection import ValueSelection
from .variable_selection import VariableSelection
from src.utils.logging_utils import get_logger
from src.utils.trace import get_tracer

logger = get_logger("heuristics.backtrack")


class BacktrackNeighbour(Neighbour):
    """The assignment of every variable touched on the best branch found."""

    def __init__(self, context: "BacktrackContext", variables: List[Variable]):
        self.total_value = context.model.total_value()
        self.value_delta = self.total_value - context.start_value
        self.nr_assigned = context.model.nr_assigned_variables()
        self._assignments: Dict[Variable, Optional[Value]] = {
            variable: variable.assignment for variable in variables
        }

    def value(self) -> float:
        return self.value_delta

    def assignments(self) -> Dict[Variable, Optional[Value]]:
        return dict(self._assignments)

    def assign(self, iteration: int) -> None:
        changed = [
            (variable, value) for variable, value in self._assignments.items() if variable.assignment is not value
        ]
        for variable, _ in changed:
            variable.unassign(iteration)
        for variable, value in changed:
            if value is not None:
                variable.assign(iteration, value)

    def __repr__(self) -> str:
        moves = ", ".join(f"{variable.name}={value}" for variable, value in self._assignments.items())
        return f"BacktrackNeighbour(value={self.value_delta:.2f}, assigned={self.nr_assigned}: {moves})"


class BacktrackContext:
    """State of one bounded search.

    ``timeout_reached`` and ``max_iters_reached`` tell a budget abort from an
    exhausted search.
    """

    def __init__(self, solution: Solution, timeout_ms: int, max_iterations: int):
        self.solution = solution
        self.model: Model = solution.model
        self.start_value = self.model.total_value()
        self.start_assigned = self.model.nr_assigned_variables()
        self.start_time = time.monotonic()
        self.timeout = timeout_ms / 1000.0
        self.max_iterations = max_iterations
        self.iteration = 0
        self.timeout_reached = False
        self.max_iters_reached = False
        self.best_neighbour: Optional[BacktrackNeighbour] = None

    def inc_iteration(self) -> None:
        self.iteration += 1

    def elapsed(self) -> float:
        return time.monotonic() - self.start_time

    def can_continue(self) -> bool:
        if self.max_iterations > 0 and self.iteration >= self.max_iterations:
            self.max_iters_reached = True
            return False
        if self.timeout > 0 and self.elapsed() > self.timeout:
            self.timeout_reached = True
            return False
        return True

    def _better_than(self, assigned: int, value: float, other_assigned: int, other_value: float) -> bool:
        return assigned > other_assigned or (assigned == other_assigned and value < other_value)

    def save_best(self, variables: List[Variable]) -> None:
        assigned = self.model.nr_assigned_variables()
        value = self.model.total_value()
        if not self._better_than(assigned, value, self.start_assigned, self.start_value):
            return
        best = self.best_neighbour
        if best is None or self._better_than(assigned, value, best.nr_assigned, best.total_value):
            self.best_neighbour = BacktrackNeighbour(self, variables)
            logger.debug("Backtrack best: %s", self.best_neighbour)


class BacktrackNeighbourSelection(StandardNeighbourSelection):
    """Tree search of bounded depth starting from the selected variable.

    Each level assigns the next variable waiting to be resolved; the
    conflicts it causes join the waiting list. A candidate value is pruned
    when its conflicts would need more levels than the depth left, when it
    would unassign a variable already resolved on this branch, or when it
    conflicts with a constant variable. Every change made while exploring is
    undone in reverse order before the next candidate is tried.
    """

    def __init__(
        self,
        config: Optional[SolverConfig] = None,
        variable_selection: Optional[VariableSelection] = None,
        value_selection: Optional[ValueSelection] = None,
        rng: Optional[random.Random] = None,
    ):
        super().__init__(config, variable_selection, value_selection, rng)
        self.timeout_ms = self.config.timeout_ms
        self.depth = self.config.depth
        self.max_iterations = self.config.max_iterations
        self.last_context: Optional[BacktrackContext] = None

    def new_context(self, solution: Solution) -> BacktrackContext:
        return BacktrackContext(solution, self.timeout_ms, self.max_iterations)

    def values(self, context: BacktrackContext, variable: Variable) -> List[Value]:
        return list(variable.values())

    def check_bound(self, variables: List[Variable], idx: int, depth: int, conflicts: List[Value]) -> bool:
        waiting = len(variables) - idx
        if waiting + len(conflicts) > depth:
            return False
        for conflict in conflicts:
            if conflict.variable.is_constant():
                return False
            if any(variable is conflict.variable for variable in variables[:idx + 1]):
                return False
        return True

    def select_neighbour(self, solution: Solution, variable: Optional[Variable] = None) -> Optional[Neighbour]:
        if self.depth <= 0:
            return None
        if variable is None:
            variable = self.select_variable(solution)
        if variable is None or variable.is_constant():
            return None
        with solution.lock:
            context = self.new_context(solution)
            self.last_context = context
            self.backtrack(context, [variable], 0, self.depth)
        reason = "timeout" if context.timeout_reached else "max iterations" if context.max_iters_reached else "done"
        get_tracer().log_search_finished(variable.name, context.iteration, reason)
        logger.debug(
            "Backtrack from %s finished after %d nodes (%s): %s",
            variable.name, context.iteration, reason, context.best_neighbour,
        )
        return context.best_neighbour

    def backtrack(self, context: BacktrackContext, variables: List[Variable], idx: int, depth: int) -> None:
        if not context.can_continue():
            return
        context.inc_iteration()
        if idx == len(variables):
            context.save_best(variables)
            return
        if depth <= 0:
            return
        model = context.model
        variable = variables[idx]
        explored = False
        for value in self.values(context, variable):
            current = variable.assignment
            if current is value:
                continue
            conflicts = list(model.conflict_values(value))
            if value in conflicts:
                continue
            if not self.check_bound(variables, idx, depth, conflicts):
                continue
            explored = True

            extended = list(variables)
            for conflict in conflicts:
                conflict.variable.unassign(0)
                if conflict.variable not in extended:
                    extended.append(conflict.variable)
            if current is not None:
                variable.unassign(0)
            variable.assign(0, value)

            self.backtrack(context, extended, idx + 1, depth - 1)

            if current is None:
                variable.unassign(0)
            else:
                variable.assign(0, current)
            for conflict in reversed(conflicts):
                conflict.variable.assign(0, conflict)

            if context.timeout_reached or context.max_iters_reached:
                return
        if not explored:
            get_tracer().log_backtrack(variable.name, "no value fits in the remaining depth")
