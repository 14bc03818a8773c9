"""Solver extensions: conflict statistics, forward checking and violated initials."""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Set

from .config import SolverConfig
from .constraint import Constraint, ConstraintListener
from .model import Model, ModelListener, SideTable, Value, Variable
from src.utils.logging_utils import get_logger

logger = get_logger("extensions")


class Extension(ModelListener):
    """Hooks into a model on behalf of a solver.

    Extensions are registered with the model when the solve starts; the
    selection heuristics look them up on the solver by type.
    """

    def __init__(self, solver: Any = None, config: Optional[SolverConfig] = None):
        self.solver = solver
        self.config = config or SolverConfig()
        self.model: Optional[Model] = None

    def register(self, model: Model) -> None:
        self.model = model
        model.add_model_listener(self)

    def unregister(self, model: Model) -> None:
        model.remove_model_listener(self)
        self.model = None

    def is_registered(self) -> bool:
        return self.model is not None


@dataclass
class ConflictRecord:
    """How often ``value`` was involved in an unassignment, aged over iterations."""

    value: Value
    counter: float
    last_revision: int
    ageing: float = 1.0
    constraint: Optional[Constraint] = None

    def get_counter(self, iteration: int) -> float:
        if iteration == 0 or self.ageing == 1.0:
            return self.counter
        return self.counter * self.ageing ** (iteration - self.last_revision)

    def inc_counter(self, iteration: int) -> None:
        self.counter = self.get_counter(iteration) + 1.0
        self.last_revision = iteration


class ConflictStatistics(Extension, ConstraintListener):
    """Remembers which assignments unassigned which values.

    Two tables are kept: per variable, the values whose assignment kicked it
    out; per unassigned value, the values that kicked it out. Counters age by
    ``ageing ** (iteration - last revision)``.
    """

    def __init__(self, solver: Any = None, config: Optional[SolverConfig] = None):
        super().__init__(solver, config)
        self.ageing = self.config.ageing
        self._unassigned_variables: SideTable[List[ConflictRecord]] = SideTable()
        self._no_goods: SideTable[List[ConflictRecord]] = SideTable()

    def register(self, model: Model) -> None:
        super().register(model)
        for constraint in model.global_constraints():
            constraint.add_constraint_listener(self)

    def unregister(self, model: Model) -> None:
        for constraint in model.global_constraints():
            constraint.remove_constraint_listener(self)
        super().unregister(model)

    def constraint_added(self, constraint: Constraint) -> None:
        if self not in constraint.constraint_listeners():
            constraint.add_constraint_listener(self)

    def constraint_removed(self, constraint: Constraint) -> None:
        constraint.remove_constraint_listener(self)

    def reset(self) -> None:
        self._unassigned_variables.clear()
        self._no_goods.clear()

    def _record(self, table: SideTable, key: Any, iteration: int, value: Value,
                constraint: Optional[Constraint]) -> None:
        records = table.get(key)
        if records is None:
            records = []
            table.set(key, records)
        for record in records:
            if record.value is value:
                record.inc_counter(iteration)
                return
        records.append(ConflictRecord(value, 1.0, iteration, self.ageing, constraint))

    def variable_unassigned(self, iteration: int, unassigned_value: Value, assigned_value: Value,
                            constraint: Optional[Constraint] = None) -> None:
        if iteration <= 0:
            return
        self._record(self._no_goods, unassigned_value, iteration, assigned_value, constraint)
        self._record(self._unassigned_variables, unassigned_value.variable, iteration, assigned_value, constraint)

    def constraint_after_assigned(self, iteration: int, constraint: Constraint, value: Value,
                                  conflicts: Optional[Set[Value]]) -> None:
        if iteration <= 0 or not conflicts:
            return
        for unassigned in conflicts:
            self.variable_unassigned(iteration, unassigned, value, constraint)

    def count_removals(self, iteration: int, conflicts: Iterable[Value], value: Value) -> float:
        """Aged number of times assigning ``value`` unassigned the variables of ``conflicts``."""
        return sum(self.count_value_removals(iteration, conflict, value) for conflict in conflicts)

    def count_value_removals(self, iteration: int, conflict: Value, value: Value) -> float:
        records = self._unassigned_variables.get(conflict.variable)
        if not records:
            return 0.0
        for record in records:
            if record.value is value:
                return record.get_counter(iteration)
        return 0.0

    def count_potential_conflicts(self, iteration: int, value: Value, limit: int) -> float:
        """Aged count of values that once unassigned ``value`` and are now unassigned themselves.

        With ``limit >= 0`` each record is weighted by how few conflicts its
        value would currently cause.
        """
        records = self._no_goods.get(value)
        if not records:
            return 0.0
        count = 0.0
        model = value.variable.model
        for record in records:
            if record.value.variable.assignment is not None:
                continue
            if limit >= 0:
                size = len(model.conflict_values(record.value)) if model is not None else 0
                count += record.get_counter(iteration) * max(0, 1 + limit - size)
            else:
                count += record.get_counter(iteration)
        return count

    def no_goods(self, value: Value) -> List[ConflictRecord]:
        return list(self._no_goods.get(value) or [])

    def get_info(self, info: Dict[str, str], variables: Optional[List[Variable]] = None) -> None:
        if variables is None:
            info["Statistics: unassigned variables"] = str(len(self._unassigned_variables))


class ForwardCheckingPropagation(Extension):
    """Forward checking against the current assignment.

    A value is *good* when it has no hard conflict with what is assigned now;
    otherwise its explanation (no-good) is the set of assigned values pruning
    it. The latest explanation of each value is kept in a side table.
    """

    def __init__(self, solver: Any = None, config: Optional[SolverConfig] = None):
        super().__init__(solver, config)
        self._explanations: SideTable[Set[Value]] = SideTable()

    def no_good(self, value: Value) -> Set[Value]:
        model = value.variable.model
        explanation = set(model.conflict_values(value)) if model is not None else set()
        if explanation:
            self._explanations.set(value, explanation)
        else:
            self._explanations.pop(value)
        return explanation

    def last_explanation(self, value: Value) -> Optional[Set[Value]]:
        return self._explanations.get(value)

    def is_good(self, value: Value) -> bool:
        return not self.no_good(value)

    def good_values(self, variable: Variable) -> List[Value]:
        return [value for value in variable.values() if self.is_good(value)]

    def pruned_variables(self) -> List[Variable]:
        """Unassigned variables with no good value left."""
        if self.model is None:
            return []
        return [variable for variable in self.model.unassigned_variables() if not self.good_values(variable)]


class ViolatedInitials(Extension):
    """For each value, the initial values of neighbouring variables it is inconsistent with."""

    def __init__(self, solver: Any = None, config: Optional[SolverConfig] = None):
        super().__init__(solver, config)
        self._violated: SideTable[Set[Value]] = SideTable()

    def register(self, model: Model) -> None:
        super().register(model)
        self._violated.clear()
        for variable in model.variables():
            initial = variable.initial_assignment
            if initial is None:
                continue
            for constraint in variable.hard_constraints():
                for other in constraint.variables():
                    if other is variable:
                        continue
                    for value in other.values():
                        if not constraint.is_consistent(initial, value):
                            violated = self._violated.get(value)
                            if violated is None:
                                violated = set()
                                self._violated.set(value, violated)
                            violated.add(initial)
        logger.debug("Violated initials computed for %d value(s)", len(self._violated))

    def violated_initials(self, value: Value) -> Set[Value]:
        return self._violated.get(value) or set()
