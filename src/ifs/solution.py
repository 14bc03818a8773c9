"""Current solution of a model plus the bookkeeping of the best one seen."""

import threading
from typing import Any, Dict, List, Optional

from .model import Model
from src.utils.logging_utils import get_logger
from src.utils.trace import get_tracer

logger = get_logger("solution")


class SolutionListener:
    def solution_updated(self, solution: "Solution") -> None:
        pass

    def get_info(self, solution: "Solution", info: Dict[str, str]) -> None:
        pass

    def best_cleared(self, solution: "Solution") -> None:
        pass

    def best_saved(self, solution: "Solution") -> None:
        pass

    def best_restored(self, solution: "Solution") -> None:
        pass


class Solution:
    """Wraps a :class:`Model` during a solve.

    ``lock`` is re-entrant and must be held by anything that changes the
    assignment of the model while other threads may look at it.
    """

    def __init__(self, model: Model, iteration: int = 0, elapsed: float = 0.0):
        self.model = model
        self.iteration = iteration
        self.time = elapsed
        self.lock = threading.RLock()
        self._listeners: List[SolutionListener] = []
        self._rng = None

        self.best_info: Optional[Dict[str, str]] = None
        self.best_iteration = -1
        self.best_time = -1.0
        self.best_value = 0.0
        self.is_best_complete = False
        self.best_perturbations_penalty = 0.0

    def init(self, solver: Any) -> bool:
        self._rng = getattr(solver, "rng", None)
        self.iteration = 0
        self.time = 0.0
        return self.model.init(solver)

    def update(self, elapsed: float) -> None:
        """Advance to the next iteration."""
        self.time = elapsed
        self.iteration += 1
        for listener in list(self._listeners):
            listener.solution_updated(self)

    def is_complete(self) -> bool:
        return self.model.nr_unassigned_variables() == 0

    def get_info(self) -> Dict[str, str]:
        info = self.model.get_info()
        info["Time"] = f"{self.time:.2f} sec"
        info["Iteration"] = str(self.iteration)
        if self.time > 0:
            info["Speed"] = f"{self.iteration / self.time:.2f} it/s"
        for listener in list(self._listeners):
            listener.get_info(self, info)
        return info

    def save_best(self) -> None:
        with self.lock:
            self.model.save_best()
            self.best_info = self.get_info()
            self.best_time = self.time
            self.best_iteration = self.iteration
            self.best_value = self.model.total_value()
            self.is_best_complete = self.is_complete()
            self.best_perturbations_penalty = float(self.model.best_perturbations())
            get_tracer().log_best_saved(
                self.iteration,
                self.model.nr_assigned_variables(),
                self.model.nr_unassigned_variables(),
                self.best_value,
            )
        logger.debug("Best saved at iteration %d: %s", self.iteration, self.best_info)
        for listener in list(self._listeners):
            listener.best_saved(self)

    def restore_best(self) -> bool:
        with self.lock:
            restored = self.model.restore_best(self._rng)
            get_tracer().log_best_restored(
                self.iteration,
                self.model.nr_assigned_variables(),
                self.model.nr_unassigned_variables(),
                self.model.total_value(),
            )
        for listener in list(self._listeners):
            listener.best_restored(self)
        return restored

    def clear_best(self) -> None:
        with self.lock:
            self.model.clear_best()
            self.best_info = None
            self.best_time = -1.0
            self.best_iteration = -1
            self.best_value = 0.0
            self.is_best_complete = False
            self.best_perturbations_penalty = 0.0
        for listener in list(self._listeners):
            listener.best_cleared(self)

    def add_solution_listener(self, listener: SolutionListener) -> None:
        self._listeners.append(listener)

    def remove_solution_listener(self, listener: SolutionListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def solution_listeners(self) -> List[SolutionListener]:
        return self._listeners

    def __repr__(self) -> str:
        return f"Solution(iteration={self.iteration}, time={self.time:.2f}, model={self.model})"
