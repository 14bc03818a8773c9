"""Variable selection heuristics."""

import random
from typing import Any, List, Optional

from ..config import SolverConfig
from ..extensions import ForwardCheckingPropagation
from ..model import Variable
from ..solution import Solution
from src.utils.logging_utils import get_logger
from src.utils.toolbox import make_rng, random_choice, roulette

logger = get_logger("heuristics.variable")

# Attempts to find a culprit through the explanation of a pruned value.
NO_GOOD_ATTEMPTS = 10


class VariableSelection:
    def init(self, solver: Any) -> None:
        pass

    def select_variable(self, solution: Solution) -> Optional[Variable]:
        raise NotImplementedError


class GeneralVariableSelection(VariableSelection):
    """Pick the variable to (re)assign next.

    When everything is assigned the search keeps improving: a perturbed
    variable is picked if there is one, any assigned variable otherwise.
    With unassigned variables left the pick is uniform, or a roulette wheel
    weighing variables with an initial value by ``3 * (1 + conflicts)``.
    """

    def __init__(self, config: Optional[SolverConfig] = None, rng: Optional[random.Random] = None):
        self.config = config or SolverConfig()
        self.rng = rng or make_rng(self.config.seed)
        self.random_selection = self.config.random_selection
        self.unassign_when_no_good = self.config.unassign_when_no_good
        self.no_good_random_walk = self.config.no_good_random_walk
        self.propagation: Optional[ForwardCheckingPropagation] = None

    def init(self, solver: Any) -> None:
        self.propagation = None
        for extension in solver.extensions():
            if isinstance(extension, ForwardCheckingPropagation):
                self.propagation = extension
        if self.unassign_when_no_good and self.propagation is None:
            raise ValueError("unassign_when_no_good requires the ForwardCheckingPropagation extension")

    def _no_good_culprit(self, solution: Solution) -> Optional[Variable]:
        model = solution.model
        no_good_variables = [
            variable for variable in model.unassigned_variables()
            if not self.propagation.good_values(variable)
        ]
        if not no_good_variables:
            return None
        if self.rng.random() < self.no_good_random_walk:
            return random_choice(self.rng, model.assigned_variables())
        for _ in range(NO_GOOD_ATTEMPTS):
            variable = random_choice(self.rng, no_good_variables)
            value = random_choice(self.rng, variable.values())
            if value is None:
                continue
            explanation = self.propagation.no_good(value)
            if explanation:
                culprit = random_choice(self.rng, list(explanation))
                logger.debug("No-good rescue: %s blocks %s", culprit.variable.name, variable.name)
                return culprit.variable
        return None

    def select_variable(self, solution: Solution) -> Optional[Variable]:
        model = solution.model
        if model.nr_unassigned_variables() == 0:
            perturbed = model.perturb_variables()
            if perturbed:
                return random_choice(self.rng, perturbed)
            return random_choice(self.rng, model.assigned_variables())

        if self.propagation is not None and self.unassign_when_no_good:
            culprit = self._no_good_culprit(solution)
            if culprit is not None:
                return culprit

        unassigned: List[Variable] = model.unassigned_variables()
        if self.random_selection:
            return random_choice(self.rng, unassigned)
        weights = [
            3 * (1 + len(model.conflict_values(variable.initial_assignment)))
            if variable.initial_assignment is not None else 1
            for variable in unassigned
        ]
        return roulette(self.rng, unassigned, weights)
