"""Neighbour selections: standard, round robin and max idle."""

import random
from typing import Any, Iterable, List, Optional

from ..config import SolverConfig
from ..model import Value, Variable
from ..neighbour import Neighbour, SimpleNeighbour
from ..solution import Solution, SolutionListener
from .value_selection import GeneralValueSelection, ValueSelection
from .variable_selection import GeneralVariableSelection, VariableSelection
from src.utils.logging_utils import get_logger
from src.utils.toolbox import make_rng
from src.utils.trace import get_tracer

logger = get_logger("heuristics.neighbour")


class NeighbourSelection:
    """Proposes the move of one solver iteration; ``None`` means no move."""

    def init(self, solver: Any) -> None:
        pass

    def select_neighbour(self, solution: Solution) -> Optional[Neighbour]:
        raise NotImplementedError


class StandardNeighbourSelection(NeighbourSelection):
    """A variable selection followed by a value selection."""

    def __init__(
        self,
        config: Optional[SolverConfig] = None,
        variable_selection: Optional[VariableSelection] = None,
        value_selection: Optional[ValueSelection] = None,
        rng: Optional[random.Random] = None,
    ):
        self.config = config or SolverConfig()
        self.rng = rng or make_rng(self.config.seed)
        self.variable_selection = variable_selection or GeneralVariableSelection(self.config, self.rng)
        self.value_selection = value_selection or GeneralValueSelection(self.config, self.rng)
        self.solver = None

    def init(self, solver: Any) -> None:
        self.solver = solver
        self.variable_selection.init(solver)
        self.value_selection.init(solver)

    def _solver_listeners(self) -> List[Any]:
        if self.solver is None:
            return []
        return self.solver.solver_listeners()

    def select_variable(self, solution: Solution) -> Optional[Variable]:
        variable = self.variable_selection.select_variable(solution)
        if variable is None:
            return None
        for listener in self._solver_listeners():
            if not listener.variable_selected(solution.iteration, variable):
                return None
        return variable

    def select_value(self, solution: Solution, variable: Variable) -> Optional[Value]:
        value = self.value_selection.select_value(solution, variable)
        if value is None:
            return None
        for listener in self._solver_listeners():
            if not listener.value_selected(solution.iteration, variable, value):
                return None
        return value

    def select_neighbour(self, solution: Solution) -> Optional[Neighbour]:
        with solution.lock:
            variable = self.select_variable(solution)
            if variable is None or not variable.has_values():
                return None
            value = self.select_value(solution, variable)
            if value is None:
                return None
            return SimpleNeighbour(variable, value, solution.model.conflict_values(value))


class RoundRobinNeighbourSelection(NeighbourSelection):
    """Runs the registered selections as phases, one after another.

    The current phase is asked for a move; when it has none the next phase
    is initialised and asked instead, wrapping around. The best solution is
    saved on every phase change if it improved. A whole round without any
    move yields ``None``.
    """

    def __init__(self, config: Optional[SolverConfig] = None, selections: Iterable[NeighbourSelection] = ()):
        self.config = config or SolverConfig()
        self._selections: List[NeighbourSelection] = list(selections)
        self._phase = 0
        self.solver = None

    def register(self, selection: NeighbourSelection) -> None:
        self._selections.append(selection)

    def selections(self) -> List[NeighbourSelection]:
        return self._selections

    @property
    def phase(self) -> int:
        return self._phase

    def init(self, solver: Any) -> None:
        self.solver = solver
        self._phase = 0
        for selection in self._selections:
            selection.init(solver)

    def _change_phase(self, solution: Solution) -> None:
        previous = self._phase
        self._phase = (self._phase + 1) % len(self._selections)
        logger.info(
            "Phase changed %d -> %d (%s)", previous, self._phase, type(self._selections[self._phase]).__name__
        )
        get_tracer().log_phase_changed(self._phase, f"phase {previous} had no move")
        if self.solver is not None:
            self.solver.save_best_if_better(solution)
            self._selections[self._phase].init(self.solver)

    def select_neighbour(self, solution: Solution) -> Optional[Neighbour]:
        for _ in range(len(self._selections)):
            neighbour = self._selections[self._phase].select_neighbour(solution)
            if neighbour is not None:
                return neighbour
            self._change_phase(solution)
        return None


class MaxIdleNeighbourSelection(NeighbourSelection, SolutionListener):
    """Gives up once ``max_idle`` iterations passed without a new best solution."""

    def __init__(self, config: Optional[SolverConfig] = None, selection: Optional[NeighbourSelection] = None,
                 max_idle: Optional[int] = None):
        self.config = config or SolverConfig()
        if selection is None:
            selection = StandardNeighbourSelection(self.config)
        self.selection = selection
        self.max_idle = self.config.max_idle if max_idle is None else max_idle
        self._last_improvement = 0
        self._solution: Optional[Solution] = None

    def init(self, solver: Any) -> None:
        self.selection.init(solver)
        solution = solver.current_solution
        if solution is None:
            return
        if self._solution is not solution:
            if self._solution is not None:
                self._solution.remove_solution_listener(self)
            solution.add_solution_listener(self)
            self._solution = solution
        self._last_improvement = solution.iteration

    def best_saved(self, solution: Solution) -> None:
        self._last_improvement = solution.iteration

    def idle_iterations(self, solution: Solution) -> int:
        return solution.iteration - self._last_improvement

    def select_neighbour(self, solution: Solution) -> Optional[Neighbour]:
        if self.max_idle >= 0 and self.idle_iterations(solution) >= self.max_idle:
            logger.debug("No improvement in %d iterations", self.idle_iterations(solution))
            return None
        return self.selection.select_neighbour(solution)
