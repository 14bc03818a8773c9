"""Iterative forward search main loop."""

import threading
import time
from typing import List, Optional, Type, TypeVar, Union

from .config import SolverConfig
from .extensions import ConflictStatistics, Extension, ForwardCheckingPropagation, ViolatedInitials
from .heuristics.backtrack import BacktrackNeighbourSelection
from .heuristics.neighbour_selection import (
    MaxIdleNeighbourSelection,
    NeighbourSelection,
    RoundRobinNeighbourSelection,
    StandardNeighbourSelection,
)
from .model import Model, ModelListener, Value, Variable
from .neighbour import Neighbour
from .solution import Solution
from src.utils.logging_utils import get_logger
from src.utils.toolbox import dict_to_string, make_rng
from src.utils.trace import get_tracer

logger = get_logger("solver")

E = TypeVar("E", bound=Extension)


class TraceListener(ModelListener):
    """Records the unassignments made by applied moves; exploration at iteration 0 is skipped."""

    def after_unassigned(self, iteration: int, value: Value) -> None:
        if iteration > 0:
            get_tracer().log_unassign(iteration, value.variable.name, value)


class GeneralTerminationCondition:
    """Stop on the iteration cap, the timeout, or a complete best solution."""

    def __init__(self, config: SolverConfig):
        self.max_iterations = config.termination_max_iterations
        self.timeout = config.termination_timeout
        self.stop_when_complete = config.stop_when_complete

    def can_continue(self, solution: Solution) -> bool:
        if self.max_iterations >= 0 and solution.iteration >= self.max_iterations:
            logger.info("Maximum number of iterations reached (%d)", solution.iteration)
            return False
        if self.timeout >= 0 and solution.time > self.timeout:
            logger.info("Timeout reached (%.2f sec)", solution.time)
            return False
        if self.stop_when_complete and solution.is_best_complete:
            logger.info("Complete solution found")
            return False
        return True


class GeneralSolutionComparator:
    """Fewer unassigned variables first, then the lower overall value."""

    def is_better_than_best_solution(self, solution: Solution) -> bool:
        model = solution.model
        best_unassigned = model.best_unassigned_variables()
        if best_unassigned < 0:
            return True
        unassigned = model.nr_unassigned_variables()
        if best_unassigned != unassigned:
            return unassigned < best_unassigned
        return model.total_value() < solution.best_value


class MPPSolutionComparator(GeneralSolutionComparator):
    """Fewer unassigned variables, then fewer perturbations, then the lower value."""

    def is_better_than_best_solution(self, solution: Solution) -> bool:
        model = solution.model
        best_unassigned = model.best_unassigned_variables()
        if best_unassigned < 0:
            return True
        unassigned = model.nr_unassigned_variables()
        if best_unassigned != unassigned:
            return unassigned < best_unassigned
        perturbations = len(model.perturb_variables())
        if perturbations != model.best_perturbations():
            return perturbations < model.best_perturbations()
        return model.total_value() < solution.best_value


class SolverListener:
    """Veto hooks of the selection heuristics; returning False rejects the choice."""

    def variable_selected(self, iteration: int, variable: Variable) -> bool:
        return True

    def value_selected(self, iteration: int, variable: Variable, value: Value) -> bool:
        return True

    def neighbour_selected(self, iteration: int, neighbour: Neighbour) -> bool:
        return True


class Solver:
    """Runs the search on one model.

    Each iteration asks the neighbour selection for a move and applies it under
    the solution lock. ``stop()`` may be called from any thread; the loop
    checks it at the top of every iteration.
    """

    def __init__(self, config: Optional[SolverConfig] = None):
        self.config = config or SolverConfig()
        self.rng = make_rng(self.config.seed)
        self._solution: Optional[Solution] = None
        self._extensions: List[Extension] = []
        self._listeners: List[SolverListener] = []
        self._neighbour_selection: Optional[NeighbourSelection] = None
        self._termination: Optional[GeneralTerminationCondition] = None
        self._comparator: Optional[GeneralSolutionComparator] = None
        self._stop = threading.Event()
        self._running = False

    # -- set up ------------------------------------------------------------

    def set_initial_solution(self, initial: Union[Model, Solution]) -> None:
        self._solution = initial if isinstance(initial, Solution) else Solution(initial)

    @property
    def current_solution(self) -> Optional[Solution]:
        return self._solution

    def add_extension(self, extension: Extension) -> None:
        if extension.solver is None:
            extension.solver = self
        self._extensions.append(extension)

    def extensions(self) -> List[Extension]:
        return self._extensions

    def get_extension(self, kind: Type[E]) -> Optional[E]:
        for extension in self._extensions:
            if isinstance(extension, kind):
                return extension
        return None

    def set_neighbour_selection(self, selection: NeighbourSelection) -> None:
        self._neighbour_selection = selection

    @property
    def neighbour_selection(self) -> Optional[NeighbourSelection]:
        return self._neighbour_selection

    def set_termination_condition(self, condition: GeneralTerminationCondition) -> None:
        self._termination = condition

    def set_solution_comparator(self, comparator: GeneralSolutionComparator) -> None:
        self._comparator = comparator

    def add_solver_listener(self, listener: SolverListener) -> None:
        self._listeners.append(listener)

    def remove_solver_listener(self, listener: SolverListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def solver_listeners(self) -> List[SolverListener]:
        return self._listeners

    def auto_configure(self) -> None:
        """Create the extensions, neighbour selection, termination and comparator the config asks for."""
        config = self.config
        if self.get_extension(ConflictStatistics) is None:
            self.add_extension(ConflictStatistics(self, config))
        if config.mpp and self.get_extension(ViolatedInitials) is None:
            self.add_extension(ViolatedInitials(self, config))
        needs_propagation = config.unassign_when_no_good or config.good_selection_prob > 0.0
        if needs_propagation and self.get_extension(ForwardCheckingPropagation) is None:
            self.add_extension(ForwardCheckingPropagation(self, config))

        if self._neighbour_selection is None:
            self._neighbour_selection = self._build_neighbour_selection()
        if self._termination is None:
            self._termination = GeneralTerminationCondition(config)
        if self._comparator is None:
            self._comparator = MPPSolutionComparator() if config.mpp else GeneralSolutionComparator()

    def _build_neighbour_selection(self) -> NeighbourSelection:
        config = self.config
        max_idle = config.max_idle

        def idle_limited(selection: NeighbourSelection) -> NeighbourSelection:
            if max_idle < 0:
                return selection
            return MaxIdleNeighbourSelection(config, selection, max_idle)

        if config.neighbour == "backtrack":
            return idle_limited(BacktrackNeighbourSelection(config, rng=self.rng))
        if config.neighbour == "round-robin":
            return RoundRobinNeighbourSelection(config, [
                idle_limited(StandardNeighbourSelection(config, rng=self.rng)),
                BacktrackNeighbourSelection(config, rng=self.rng),
            ])
        return idle_limited(StandardNeighbourSelection(config, rng=self.rng))

    # -- run ---------------------------------------------------------------

    def stop(self) -> None:
        self._stop.set()

    def is_running(self) -> bool:
        return self._running

    def save_best_if_better(self, solution: Solution) -> None:
        limit = self.config.save_best_unassigned
        if limit >= 0 and solution.model.nr_unassigned_variables() > limit:
            return
        if self._comparator.is_better_than_best_solution(solution):
            solution.save_best()

    def solve(self) -> Solution:
        """Run until the termination condition, ``stop()`` or too many empty selections.

        The best solution found is restored into the model before returning.
        """
        if self._solution is None:
            raise ValueError("No initial solution set; call set_initial_solution() first")
        self.auto_configure()
        solution = self._solution
        model = solution.model
        tracer = get_tracer()
        tracer.clear()

        for extension in self._extensions:
            if not extension.is_registered():
                extension.register(model)
        if not solution.init(self):
            logger.error("Model initialization failed")
            return solution
        self._neighbour_selection.init(self)

        self._stop.clear()
        self._running = True
        start = time.monotonic()
        empty_selections = 0
        logger.info(
            "Solver started: %d variables, %d constraints, %d unassigned",
            model.count_variables(), model.count_constraints(), model.nr_unassigned_variables(),
        )
        self.save_best_if_better(solution)
        trace_listener = TraceListener()
        model.add_model_listener(trace_listener)
        try:
            while not self._stop.is_set() and self._termination.can_continue(solution):
                neighbour = self._neighbour_selection.select_neighbour(solution)
                if neighbour is not None:
                    for listener in self._listeners:
                        if not listener.neighbour_selected(solution.iteration, neighbour):
                            neighbour = None
                            break
                if neighbour is None:
                    empty_selections += 1
                    tracer.log_no_move(solution.iteration)
                    if empty_selections >= self.config.max_empty_selections:
                        logger.info("No move found in %d consecutive iterations, stopping", empty_selections)
                        break
                    solution.update(time.monotonic() - start)
                    continue
                empty_selections = 0
                with solution.lock:
                    neighbour.assign(solution.iteration)
                    for variable, value in neighbour.assignments().items():
                        tracer.log_assign(
                            solution.iteration, variable.name, value,
                            model.nr_assigned_variables(), model.nr_unassigned_variables(),
                        )
                    solution.update(time.monotonic() - start)
                    self.save_best_if_better(solution)
        finally:
            self._running = False
            model.remove_model_listener(trace_listener)

        self.save_best_if_better(solution)
        if solution.best_info is not None:
            solution.restore_best()
        logger.info("Solver finished at iteration %d:%s", solution.iteration, dict_to_string(solution.get_info()))
        return solution

