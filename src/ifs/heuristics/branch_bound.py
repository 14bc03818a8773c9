"""Branch and bound over the requests of one entity.

Requests are decided in order: each legal value is tried, and leaving the
request unassigned is tried last. A value is illegal when the model reports
a conflict with something outside the entity, or when it is inconsistent
with a value already committed for an earlier request. Alternative requests
only open up when a primary request before them stays unassigned.

Two objectives are supported. ``lexicographic`` maximises the number of
assigned requests, then minimises the total penalty. ``value`` minimises the
total value directly (negative values are gains).
"""

import time
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..config import SolverConfig
from ..entity import Entity, Request
from ..model import Value, Variable
from ..neighbour import Neighbour
from ..solution import Solution
from .neighbour_selection import NeighbourSelection
from src.utils.logging_utils import get_logger
from src.utils.trace import get_tracer

logger = get_logger("heuristics.branch_bound")


class BranchBoundNeighbour(Neighbour):
    """Replaces the whole assignment of one entity."""

    def __init__(self, entity: Entity, value: float, assignment: Sequence[Optional[Value]]):
        self.entity = entity
        self.objective_value = value
        self._assignment: List[Optional[Value]] = list(assignment)
        new_total = sum(v.to_double() for v in self._assignment if v is not None)
        old_total = sum(r.assignment.to_double() for r in entity.requests() if r.assignment is not None)
        self._delta = new_total - old_total

    def value(self) -> float:
        return self._delta

    def assignment(self) -> List[Optional[Value]]:
        return list(self._assignment)

    def assignments(self) -> Dict[Variable, Optional[Value]]:
        return dict(zip(self.entity.requests(), self._assignment))

    def assign(self, iteration: int) -> None:
        for request in self.entity.requests():
            request.unassign(iteration)
        for value in self._assignment:
            if value is not None:
                value.variable.assign(iteration, value)

    def __repr__(self) -> str:
        lines = [f"B&B{{ {self.entity.name} ({self.objective_value:.2f})"]
        for request, value in zip(self.entity.requests(), self._assignment):
            lines.append(f"  {request.name} -- {'not assigned' if value is None else value}")
        lines.append("}")
        return "\n".join(lines)


class BranchBoundSearch:
    """Exhaustive pruned search for one entity; ``select()`` runs it."""

    def __init__(self, entity: Entity, config: Optional[SolverConfig] = None):
        config = config or SolverConfig()
        self.entity = entity
        self.requests: List[Request] = list(entity.requests())
        self.timeout = config.bb_timeout_ms / 1000.0
        self.max_iterations = config.bb_max_iterations
        self.minimize_penalty = config.bb_objective == "lexicographic"

        self.timeout_reached = False
        self.max_iters_reached = False
        self.nodes = 0
        self.elapsed = 0.0
        self._t0 = 0.0
        self._assignment: List[Optional[Value]] = [None] * len(self.requests)
        self._best: Optional[List[Optional[Value]]] = None
        self._best_value = 0.0
        self._best_nr_assigned = 0

    # -- results -----------------------------------------------------------

    @property
    def best_assignment(self) -> Optional[List[Optional[Value]]]:
        return None if self._best is None else list(self._best)

    @property
    def best_value(self) -> float:
        return self._best_value

    @property
    def best_nr_assigned(self) -> int:
        return self._best_nr_assigned

    def select(self) -> Optional[BranchBoundNeighbour]:
        """Best assignment of the entity, or ``None`` if it would change nothing."""
        self._t0 = time.monotonic()
        self.timeout_reached = False
        self.max_iters_reached = False
        self.nodes = 0
        self._best = None
        current = [request.assignment for request in self.requests]
        if any(value is not None for value in current):
            self._assignment = list(current)
            self.save_best()
        self._assignment = [None] * len(self.requests)

        self.backtrack(0)
        self.elapsed = time.monotonic() - self._t0

        reason = "timeout" if self.timeout_reached else "done"
        get_tracer().log_search_finished(self.entity.name, self.nodes, reason)
        logger.debug(
            "B&B %s: %d nodes in %.3f sec%s, best %s/%.2f",
            self.entity.name, self.nodes, self.elapsed, " (timeout)" if self.timeout_reached else "",
            self._best_nr_assigned, self._best_value,
        )
        if self._best is None:
            return None
        if all(best is now for best, now in zip(self._best, current)):
            return None
        return BranchBoundNeighbour(self.entity, self._best_value, self._best)

    # -- bounds ------------------------------------------------------------

    def _walk(
        self,
        idx: int,
        committed: Callable[[Value], float],
        remaining: Callable[[Request], float],
        floor: Optional[float] = None,
    ) -> float:
        """Committed part for requests before ``idx``, optimistic part for the rest.

        An undecided primary request may end up unassigned and open an
        alternative instead, so it counts as the better of its own bound and
        the best undecided alternative. ``floor`` is what leaving a request
        unassigned contributes, when that is allowed to win.
        """
        bound = 0.0
        alt = 0
        for i, request in enumerate(self.requests[:idx]):
            value = self._assignment[i]
            if value is not None:
                bound += committed(value)
            if request.alternative:
                if value is not None or request.waitlist:
                    alt -= 1
            elif not request.waitlist and value is None:
                alt += 1
        rest = self.requests[idx:]
        alternatives = [remaining(request) for request in rest if request.alternative]
        best_alt = min(alternatives) if alternatives else None
        if best_alt is not None and floor is not None:
            best_alt = min(best_alt, floor)
        for request in rest:
            if request.alternative:
                continue
            optimistic = remaining(request)
            if best_alt is not None:
                optimistic = min(optimistic, best_alt)
            if floor is not None:
                optimistic = min(optimistic, floor)
            bound += optimistic
        if best_alt is not None and alt > 0:
            bound += best_alt * min(alt, len(alternatives))
        return bound

    def nr_assigned_bound(self, idx: int) -> int:
        return int(self._walk(idx, lambda value: 1, lambda request: 1))

    def value_bound(self, idx: int) -> float:
        return self._walk(idx, lambda value: value.to_double(), lambda request: request.bound(), floor=0.0)

    def penalty_bound(self, idx: int) -> float:
        return self._walk(idx, lambda value: value.penalty(), lambda request: request.min_penalty())

    def nr_assigned(self) -> int:
        return sum(1 for value in self._assignment if value is not None)

    def total_value(self) -> float:
        return sum(value.to_double() for value in self._assignment if value is not None)

    def penalty(self) -> float:
        return sum(value.penalty() for value in self._assignment if value is not None)

    def save_best(self) -> None:
        self._best = list(self._assignment)
        self._best_nr_assigned = self.nr_assigned()
        self._best_value = self.penalty() if self.minimize_penalty else self.total_value()

    # -- search ------------------------------------------------------------

    def can_assign(self, request: Request, idx: int) -> bool:
        if not request.alternative or self._assignment[idx] is not None:
            return True
        alt = 0
        for i, other in enumerate(self.requests):
            if other is request:
                continue
            if other.alternative:
                if self._assignment[i] is not None or other.waitlist:
                    alt -= 1
            elif not other.waitlist and self._assignment[i] is None:
                alt += 1
        return alt > 0

    def can_leave_unassigned(self, request: Request) -> bool:
        return True

    def first_conflict(self, idx: int, value: Value) -> Optional[Value]:
        model = value.variable.model
        conflicts = model.conflict_values(value) if model is not None else set()
        if value in conflicts:
            return value
        for conflict in conflicts:
            if getattr(conflict.variable, "entity", None) is not self.entity:
                return conflict
        for committed in self._assignment:
            if committed is not None and not committed.is_consistent(value):
                return committed
        return None

    def values(self, request: Request) -> List[Value]:
        """Domain ordered by value, the current assignment first."""
        values = sorted(request.values(), key=lambda value: value.to_double())
        current = request.assignment
        if current is not None and current in values:
            values.remove(current)
            values.insert(0, current)
        return values

    def can_continue(self) -> bool:
        if self.timeout > 0 and time.monotonic() - self._t0 > self.timeout:
            self.timeout_reached = True
            return False
        if self.max_iterations > 0 and self.nodes >= self.max_iterations:
            self.timeout_reached = True
            self.max_iters_reached = True
            return False
        return True

    def _is_pruned(self, idx: int) -> bool:
        if self._best is None:
            return False
        if self.minimize_penalty:
            bound = self.nr_assigned_bound(idx)
            if bound != self._best_nr_assigned:
                return bound < self._best_nr_assigned
            return self.penalty_bound(idx) >= self._best_value
        return self.value_bound(idx) >= self._best_value

    def _is_better(self) -> bool:
        if self._best is None:
            return True
        if self.minimize_penalty:
            assigned = self.nr_assigned()
            if assigned != self._best_nr_assigned:
                return assigned > self._best_nr_assigned
            return self.penalty() < self._best_value
        return self.total_value() < self._best_value

    def backtrack(self, idx: int) -> None:
        if self.timeout_reached or not self.can_continue():
            return
        self.nodes += 1
        if self._is_pruned(idx):
            return
        if idx == len(self.requests):
            if self._is_better():
                self.save_best()
            return

        request = self.requests[idx]
        if not self.can_assign(request, idx):
            self.backtrack(idx + 1)
            return
        for value in self.values(request):
            if self.first_conflict(idx, value) is not None:
                continue
            self._assignment[idx] = value
            self.backtrack(idx + 1)
            self._assignment[idx] = None
            if self.timeout_reached:
                return
        if self.can_leave_unassigned(request):
            self.backtrack(idx + 1)


class BranchBoundSelection(NeighbourSelection):
    """Visits the entities once, in order, returning the first improving move."""

    def __init__(self, config: Optional[SolverConfig] = None, entities: Optional[Sequence[Entity]] = None):
        self.config = config or SolverConfig()
        self._given_entities = list(entities) if entities is not None else None
        self._entities: List[Entity] = list(self._given_entities or [])
        self._position = 0
        self.last_search: Optional[BranchBoundSearch] = None

    def init(self, solver: Any) -> None:
        entities = self._given_entities
        if entities is None:
            solution = solver.current_solution
            provider = getattr(solution.model, "entities", None) if solution is not None else None
            if provider is None:
                raise ValueError("BranchBoundSelection needs entities: pass them explicitly or use an EntityModel")
            entities = provider()
        self._entities = list(entities)
        self._position = 0

    def get_selection(self, entity: Entity) -> BranchBoundSearch:
        return BranchBoundSearch(entity, self.config)

    def select_neighbour(self, solution: Solution) -> Optional[Neighbour]:
        while self._position < len(self._entities):
            entity = self._entities[self._position]
            self._position += 1
            with solution.lock:
                search = self.get_selection(entity)
                self.last_search = search
                neighbour = search.select()
            if neighbour is not None:
                return neighbour
        return None
