"""Value selection heuristics."""

import random
from typing import Any, List, Optional

from ..config import SolverConfig
from ..extensions import ConflictStatistics, ForwardCheckingPropagation, ViolatedInitials
from ..model import Value, Variable
from ..solution import Solution
from src.utils.logging_utils import get_logger
from src.utils.toolbox import make_rng, random_choice

logger = get_logger("heuristics.value")

# Limit passed to ConflictStatistics.count_potential_conflicts.
POTENTIAL_CONFLICTS_LIMIT = 3


class ValueSelection:
    def init(self, solver: Any) -> None:
        pass

    def select_value(self, solution: Solution, variable: Variable) -> Optional[Value]:
        raise NotImplementedError


class GeneralValueSelection(ValueSelection):
    """Weighted-sum value selection.

    Each candidate is scored as::

        weight_delta_initial * perturbation delta
        + weight_potential_conflicts * potential conflicts
        + weight_weighted_conflicts * statistics-weighted conflicts
        + weight_conflicts * number of hard conflicts
        + weight_value * value weight

    and the choice is uniform among the lowest scores. Values on the tabu
    list, the current value and values conflicting with themselves are
    skipped; in MPP mode values that would push the perturbation count over
    the ceiling are rejected too. ``None`` means every candidate was
    rejected.
    """

    def __init__(self, config: Optional[SolverConfig] = None, rng: Optional[random.Random] = None):
        config = config or SolverConfig()
        self.config = config
        self.rng = rng or make_rng(config.seed)
        self.mpp = config.mpp
        self.mpp_limit = config.mpp_limit if config.mpp else -1
        self.initial_value_prob = config.initial_value_prob if config.mpp else 0.0
        self.weight_delta_initial = config.weight_delta_initial if config.mpp else 0.0
        self.good_selection_prob = config.good_selection_prob
        self.random_walk_prob = config.random_walk_prob
        self.weight_conflicts = config.weight_conflicts
        self.weight_weighted_conflicts = config.weight_weighted_conflicts
        self.weight_potential_conflicts = config.weight_potential_conflicts
        self.weight_value = config.weight_value

        self.tabu_size = config.tabu_size
        self._tabu: List[Value] = []
        self._tabu_pos = 0

        self.statistics: Optional[ConflictStatistics] = None
        self.propagation: Optional[ForwardCheckingPropagation] = None
        self.violated_initials: Optional[ViolatedInitials] = None

    def init(self, solver: Any) -> None:
        for extension in solver.extensions():
            if isinstance(extension, ConflictStatistics):
                self.statistics = extension
            if isinstance(extension, ForwardCheckingPropagation):
                self.propagation = extension
            if isinstance(extension, ViolatedInitials):
                self.violated_initials = extension

    def _remember(self, value: Value) -> None:
        if self.tabu_size <= 0:
            return
        if len(self._tabu) == self._tabu_pos:
            self._tabu.append(value)
        else:
            self._tabu[self._tabu_pos] = value
        self._tabu_pos = (self._tabu_pos + 1) % self.tabu_size

    def _is_tabu(self, value: Value) -> bool:
        return any(tabu is value for tabu in self._tabu)

    def _mpp_shortcut(self, solution: Solution, variable: Variable) -> Optional[Value]:
        initial = variable.initial_assignment
        if initial is None:
            return None
        model = solution.model
        perturbations = len(model.perturb_variables())
        if model.nr_unassigned_variables() == 0 and perturbations <= self.mpp_limit:
            self.mpp_limit = perturbations - 1
            logger.debug("Perturbation limit tightened to %d", self.mpp_limit)
        if 0 <= self.mpp_limit < perturbations:
            return initial
        if self.rng.random() < self.initial_value_prob:
            return initial
        return None

    def _delta_initial(self, solution: Solution, variable: Variable, value: Value, conflicts) -> int:
        delta = 0
        if self.violated_initials is not None:
            for initial in self.violated_initials.violated_initials(value):
                current = initial.variable.assignment
                if current is None or current is initial:
                    delta += 2
        for conflict in conflicts:
            if conflict.variable.initial_assignment is not None:
                delta -= 1
        if variable.initial_assignment is not None and variable.initial_assignment is not value:
            delta += 1
        return delta

    def select_value(self, solution: Solution, variable: Variable) -> Optional[Value]:
        if self.mpp:
            shortcut = self._mpp_shortcut(solution, variable)
            if shortcut is not None:
                return shortcut

        model = solution.model
        old_value = variable.assignment
        values = variable.values()
        if self.rng.random() < self.random_walk_prob:
            return random_choice(self.rng, values)
        if self.propagation is not None and old_value is None and self.rng.random() < self.good_selection_prob:
            good = self.propagation.good_values(variable)
            if good:
                values = good
        if len(values) == 1:
            return values[0]

        best_values: Optional[List[Value]] = None
        best_score = 0.0
        iteration = solution.iteration
        for value in values:
            if self._is_tabu(value):
                continue
            if old_value is not None and old_value is value:
                continue
            conflicts = model.conflict_values(value)
            if value in conflicts:
                continue

            weighted_conflicts = 0.0
            if self.statistics is not None and self.weight_weighted_conflicts != 0.0:
                weighted_conflicts = self.statistics.count_removals(iteration, conflicts, value)
            potential_conflicts = 0.0
            if self.statistics is not None and self.weight_potential_conflicts != 0.0:
                potential_conflicts = self.statistics.count_potential_conflicts(
                    iteration, value, POTENTIAL_CONFLICTS_LIMIT
                )

            delta_initial = 0
            if self.mpp and self.weight_delta_initial != 0.0:
                delta_initial = self._delta_initial(solution, variable, value, conflicts)
                if self.mpp_limit >= 0 and len(model.perturb_variables()) + delta_initial > self.mpp_limit:
                    continue

            score = (
                self.weight_delta_initial * delta_initial
                + self.weight_potential_conflicts * potential_conflicts
                + self.weight_weighted_conflicts * weighted_conflicts
                + self.weight_conflicts * len(conflicts)
                + self.weight_value * value.to_double()
            )
            if best_values is None or score < best_score:
                best_score = score
                best_values = [value]
            elif score == best_score:
                best_values.append(value)

        selected = random_choice(self.rng, best_values) if best_values else None
        if selected is None:
            selected = random_choice(self.rng, values)
        if selected is not None:
            self._remember(selected)
        return selected if best_values else None
