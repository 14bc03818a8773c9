"""Assignment model: values, variables, and the model that owns them.

A :class:`Model` is built once per solve. Variables are added first (which
re-propagates any value they already hold), then constraints, which receive
their participants one at a time. After that the model is only mutated
through :meth:`Variable.assign` and :meth:`Variable.unassign`; every such
change keeps the assigned/unassigned partition and the perturbation cache in
step with the live assignment.
"""

import itertools
import random
from contextlib import contextmanager, nullcontext
from typing import (
    TYPE_CHECKING,
    Any,
    Dict,
    Generic,
    Iterable,
    Iterator,
    List,
    Optional,
    Set,
    TypeVar,
)

from src.utils.logging_utils import get_logger
from src.utils.toolbox import random_choice

if TYPE_CHECKING:
    from .constraint import Constraint, GlobalConstraint

logger = get_logger("model")

# Repair rounds attempted by Model.restore_best before giving up.
RESTORE_BEST_ATTEMPTS = 100

T = TypeVar("T")


class ModelError(Exception):
    """Raised when the structure of a model is used inconsistently."""


class ReentrantAssignmentError(ModelError):
    """Raised when a listener callback tries to change the assignment."""


class SideTable(Generic[T]):
    """Typed per-entity payload keyed by the entity id.

    Extensions keep their own bookkeeping for values or variables here
    instead of hanging untyped attributes off the entities themselves.
    """

    def __init__(self) -> None:
        self._payload: Dict[int, T] = {}

    @staticmethod
    def _key(entity: Any) -> int:
        if entity.id is None:
            raise ModelError(f"{entity!r} has no id; add it to a model first")
        return entity.id

    def get(self, entity: Any, default: Optional[T] = None) -> Optional[T]:
        return self._payload.get(self._key(entity), default)

    def set(self, entity: Any, payload: T) -> None:
        self._payload[self._key(entity)] = payload

    def pop(self, entity: Any, default: Optional[T] = None) -> Optional[T]:
        return self._payload.pop(self._key(entity), default)

    def clear(self) -> None:
        self._payload.clear()

    def __contains__(self, entity: Any) -> bool:
        return entity.id is not None and entity.id in self._payload

    def __len__(self) -> int:
        return len(self._payload)


class VariableListener:
    """Observer of a single variable. Callbacks must not change the assignment."""

    def variable_assigned(self, iteration: int, value: "Value") -> None:
        pass

    def variable_unassigned(self, iteration: int, value: "Value") -> None:
        pass

    def value_removed(self, iteration: int, value: "Value") -> None:
        pass


class ModelListener:
    """Observer of a whole model. Callbacks must not change the assignment."""

    def variable_added(self, variable: "Variable") -> None:
        pass

    def variable_removed(self, variable: "Variable") -> None:
        pass

    def constraint_added(self, constraint: "Constraint") -> None:
        pass

    def constraint_removed(self, constraint: "Constraint") -> None:
        pass

    def before_assigned(self, iteration: int, value: "Value") -> None:
        pass

    def after_assigned(self, iteration: int, value: "Value") -> None:
        pass

    def before_unassigned(self, iteration: int, value: "Value") -> None:
        pass

    def after_unassigned(self, iteration: int, value: "Value") -> None:
        pass

    def get_info(self, info: Dict[str, str], variables: Optional[List["Variable"]] = None) -> None:
        pass

    def init(self, solver: Any) -> bool:
        return True


class Value:
    """A domain option of exactly one variable.

    Values compare and hash by identity; ``id`` is handed out by the model
    when the owning variable is added to it. ``to_double()`` is the value's
    contribution to the overall solution value (lower is better).
    """

    def __init__(self, variable: Optional["Variable"] = None, value: float = 0.0, name: Optional[str] = None):
        self.id: Optional[int] = None
        self._variable = variable
        self._value = float(value)
        self._name = name
        self._assignment_counter = 0
        self._last_assignment_iteration = -1
        self._last_unassignment_iteration = -1

    @property
    def variable(self) -> Optional["Variable"]:
        return self._variable

    def set_variable(self, variable: "Variable") -> None:
        self._variable = variable

    @property
    def name(self) -> str:
        if self._name is not None:
            return self._name
        return str(self.id)

    def description(self) -> Optional[str]:
        return None

    def to_double(self) -> float:
        return self._value

    def penalty(self) -> float:
        """Penalty used by lexicographic objectives; the value weight by default."""
        return self.to_double()

    def assigned(self, iteration: int) -> None:
        self._assignment_counter += 1
        self._last_assignment_iteration = iteration

    def unassigned(self, iteration: int) -> None:
        self._last_unassignment_iteration = iteration

    def count_assignments(self) -> int:
        return self._assignment_counter

    def last_assignment_iteration(self) -> int:
        return self._last_assignment_iteration

    def last_unassignment_iteration(self) -> int:
        return self._last_unassignment_iteration

    def value_equals(self, other: Optional["Value"]) -> bool:
        return other is not None and self.to_double() == other.to_double()

    def is_consistent(self, other: "Value") -> bool:
        """True when no constraint of this value's variable forbids ``other`` alongside it."""
        variable = self._variable
        if variable is None:
            return True
        for constraint in variable.constraints():
            if not constraint.is_consistent(self, other):
                return False
        if variable.model is not None:
            for constraint in variable.model.global_constraints():
                if not constraint.is_consistent(self, other):
                    return False
        return True

    def conflicts(self) -> Set["Value"]:
        """Assigned values of other variables conflicting with this one (hard and soft)."""
        conflicts: Set[Value] = set()
        variable = self._variable
        if variable is None:
            return conflicts
        for constraint in variable.constraints():
            constraint.compute_conflicts(self, conflicts)
        if variable.model is not None:
            for constraint in variable.model.global_constraints():
                constraint.compute_conflicts(self, conflicts)
        return conflicts

    def sort_key(self):
        return (self.to_double(), -1 if self.id is None else self.id)

    def __lt__(self, other: "Value") -> bool:
        return self.sort_key() < other.sort_key()

    def __repr__(self) -> str:
        return self.name


class Variable:
    """A decision point with an ordered domain and at most one assigned value."""

    def __init__(
        self,
        name: Optional[str] = None,
        values: Optional[Iterable[Value]] = None,
        initial_value: Optional[Value] = None,
    ):
        self.id: Optional[int] = None
        self.model: Optional["Model"] = None
        self._name = name
        self._values: List[Value] = []
        self._initial_value: Optional[Value] = None
        self._value: Optional[Value] = None
        self._best_value: Optional[Value] = None
        self._best_assignment_iteration = 0
        self._recently_removed: Optional[Value] = None

        self._assignment_counter = 0
        self._last_assignment_iteration = -1
        self._last_unassignment_iteration = -1

        self._constraints: List["Constraint"] = []
        self._hard_constraints: List["Constraint"] = []
        self._soft_constraints: List["Constraint"] = []
        self._listeners: List[VariableListener] = []
        self._constraint_variables: Optional[Dict["Variable", List["Constraint"]]] = None

        if values is not None:
            self.set_values(values)
        if initial_value is not None:
            self.initial_assignment = initial_value

    # -- identity ----------------------------------------------------------

    @property
    def name(self) -> str:
        if self._name is not None:
            return self._name
        return str(self.id)

    def description(self) -> Optional[str]:
        return None

    def is_constant(self) -> bool:
        """Constant variables keep their assignment; tree searches never reassign them."""
        return False

    # -- domain ------------------------------------------------------------

    def values(self) -> List[Value]:
        return self._values

    def set_values(self, values: Iterable[Value]) -> None:
        self._values = []
        for value in values:
            self.add_value(value)

    def add_value(self, value: Value) -> None:
        if value.variable is None:
            value.set_variable(self)
        elif value.variable is not self:
            raise ModelError(f"value {value!r} already belongs to variable {value.variable!r}")
        if self.model is not None and value.id is None:
            value.id = self.model.new_id()
        self._values.append(value)

    def has_values(self) -> bool:
        return bool(self._values)

    def remove_value(self, iteration: int, value: Value) -> None:
        """Permanently drop ``value`` from the domain.

        The removed value is remembered so that one later assignment of that
        same value is ignored (see DESIGN.md, legacy guard).
        """
        if self._value is value:
            self.unassign(iteration)
        if value in self._values:
            self._values.remove(value)
        if self._initial_value is value:
            self._initial_value = None
            if self.model is not None:
                self.model.invalidate_variables_with_initial_value_cache()
        with self._listener_guard():
            for listener in list(self._listeners):
                listener.value_removed(iteration, value)
        self._recently_removed = value

    def remove_initial_value(self) -> None:
        initial = self._initial_value
        if initial is None:
            return
        if self._value is initial:
            self.unassign(0)
        if initial in self._values:
            self._values.remove(initial)
        self._initial_value = None
        if self.model is not None:
            self.model.invalidate_variables_with_initial_value_cache()

    # -- assignment state --------------------------------------------------

    @property
    def assignment(self) -> Optional[Value]:
        return self._value

    def has_assignment(self) -> bool:
        return self._value is not None

    @property
    def initial_assignment(self) -> Optional[Value]:
        return self._initial_value

    @initial_assignment.setter
    def initial_assignment(self, value: Optional[Value]) -> None:
        self._initial_value = value
        if value is not None and value.variable is None:
            value.set_variable(self)
        if self.model is not None:
            if value is not None and value.id is None:
                value.id = self.model.new_id()
            self.model.invalidate_variables_with_initial_value_cache()

    def set_initial_assignment(self, value: Optional[Value]) -> None:
        self.initial_assignment = value

    def has_initial_assignment(self) -> bool:
        return self._initial_value is not None

    @property
    def best_assignment(self) -> Optional[Value]:
        return self._best_value

    def set_best_assignment(self, value: Optional[Value]) -> None:
        self._best_value = value
        self._best_assignment_iteration = 0 if value is None else value.last_assignment_iteration()

    def best_assignment_iteration(self) -> int:
        return self._best_assignment_iteration

    def count_assignments(self) -> int:
        return self._assignment_counter

    def last_assignment_iteration(self) -> int:
        return self._last_assignment_iteration

    def last_unassignment_iteration(self) -> int:
        return self._last_unassignment_iteration

    def _listener_guard(self):
        if self.model is None:
            return nullcontext()
        return self.model.notifying()

    def assign(self, iteration: int, value: Optional[Value]) -> None:
        """Assign ``value``, cascading unassignment of conflicting values.

        Constraints react in registration order and each hard constraint
        unassigns what conflicts with ``value`` before the next one looks, so
        the set of unassigned variables depends on that order.
        """
        if value is None:
            self.unassign(iteration)
            return
        model = self.model
        if model is not None:
            model.check_not_notifying("assign", self)
            model.before_assigned(iteration, value)
        self._last_assignment_iteration = iteration
        if self._value is not None:
            self.unassign(iteration)
        if self._recently_removed is not None and self._recently_removed is value:
            self._recently_removed = None
            logger.debug("Ignoring assignment of removed value %s to %s", value, self)
            return
        self._value = value
        for constraint in list(self._constraints):
            constraint.assigned(iteration, value)
        if model is not None:
            for constraint in list(model.global_constraints()):
                constraint.assigned(iteration, value)
        self._assignment_counter += 1
        value.assigned(iteration)
        with self._listener_guard():
            for listener in list(self._listeners):
                listener.variable_assigned(iteration, value)
        if model is not None:
            model.after_assigned(iteration, value)

    def unassign(self, iteration: int) -> None:
        if self._value is None:
            return
        model = self.model
        if model is not None:
            model.check_not_notifying("unassign", self)
            model.before_unassigned(iteration, self._value)
        self._last_unassignment_iteration = iteration
        old_value = self._value
        self._value = None
        for constraint in list(self._constraints):
            constraint.unassigned(iteration, old_value)
        if model is not None:
            for constraint in list(model.global_constraints()):
                constraint.unassigned(iteration, old_value)
        old_value.unassigned(iteration)
        with self._listener_guard():
            for listener in list(self._listeners):
                listener.variable_unassigned(iteration, old_value)
        if model is not None:
            model.after_unassigned(iteration, old_value)

    # -- constraint membership ---------------------------------------------

    def add_constraint(self, constraint: "Constraint") -> None:
        self._constraints.append(constraint)
        if constraint.is_hard():
            self._hard_constraints.append(constraint)
        else:
            self._soft_constraints.append(constraint)
        self._constraint_variables = None

    def remove_constraint(self, constraint: "Constraint") -> None:
        if constraint in self._constraints:
            self._constraints.remove(constraint)
        if constraint in self._hard_constraints:
            self._hard_constraints.remove(constraint)
        elif constraint in self._soft_constraints:
            self._soft_constraints.remove(constraint)
        self._constraint_variables = None

    def constraints(self) -> List["Constraint"]:
        return self._constraints

    def hard_constraints(self) -> List["Constraint"]:
        return self._hard_constraints

    def soft_constraints(self) -> List["Constraint"]:
        return self._soft_constraints

    def invalidate_constraint_variables(self) -> None:
        self._constraint_variables = None

    def constraint_variables(self) -> Dict["Variable", List["Constraint"]]:
        """Map each neighbouring variable to the constraints shared with it."""
        if self._constraint_variables is None:
            neighbours: Dict[Variable, List["Constraint"]] = {}
            for constraint in self._constraints:
                for variable in constraint.variables():
                    if variable is not self:
                        neighbours.setdefault(variable, []).append(constraint)
            self._constraint_variables = neighbours
        return self._constraint_variables

    # -- listeners ---------------------------------------------------------

    def add_variable_listener(self, listener: VariableListener) -> None:
        self._listeners.append(listener)

    def remove_variable_listener(self, listener: VariableListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def variable_listeners(self) -> List[VariableListener]:
        return self._listeners

    def sort_key(self):
        return (self.name, -1 if self.id is None else self.id)

    def __lt__(self, other: "Variable") -> bool:
        return self.sort_key() < other.sort_key()

    def __repr__(self) -> str:
        return (
            f"Variable(name={self.name}, initial={self._initial_value}, current={self._value}, "
            f"values={len(self._values)}, constraints={len(self._constraints)})"
        )


class Model:
    """Owns the variables and constraints of one solve."""

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self._variables: List[Variable] = []
        self._constraints: List["Constraint"] = []
        self._global_constraints: List["GlobalConstraint"] = []
        # Insertion-ordered sets.
        self._assigned: Dict[Variable, None] = {}
        self._unassigned: Dict[Variable, None] = {}
        self._variables_by_id: Dict[int, Variable] = {}
        self._constraints_by_id: Dict[int, "Constraint"] = {}

        self._perturb_variables: Optional[List[Variable]] = None
        self._variables_with_initial_value: Optional[List[Variable]] = None
        self._best_unassigned = -1
        self._best_perturbations = 0

        self._listeners: List[ModelListener] = []
        self._notifying = 0

    def new_id(self) -> int:
        """Next id of this model's id space (shared by variables, values and constraints)."""
        return next(self._ids)

    # -- re-entrancy guard -------------------------------------------------

    @contextmanager
    def notifying(self) -> Iterator[None]:
        self._notifying += 1
        try:
            yield
        finally:
            self._notifying -= 1

    def check_not_notifying(self, action: str, variable: Variable) -> None:
        if __debug__ and self._notifying:
            raise ReentrantAssignmentError(
                f"cannot {action} {variable.name} from within a listener callback"
            )

    # -- variables ---------------------------------------------------------

    def variables(self) -> List[Variable]:
        return self._variables

    def count_variables(self) -> int:
        return len(self._variables)

    def variable_by_id(self, variable_id: int) -> Optional[Variable]:
        return self._variables_by_id.get(variable_id)

    def add_variable(self, variable: Variable) -> None:
        variable.model = self
        if variable.id is None:
            variable.id = self.new_id()
        for value in variable.values():
            if value.id is None:
                value.id = self.new_id()
        initial = variable.initial_assignment
        if initial is not None and initial.id is None:
            initial.id = self.new_id()
        self._variables.append(variable)
        self._variables_by_id[variable.id] = variable
        current = variable.assignment
        if current is None:
            self._unassigned[variable] = None
        else:
            self._assigned[variable] = None
            variable.assign(0, current)
        with self.notifying():
            for listener in list(self._listeners):
                listener.variable_added(variable)
        self.invalidate_variables_with_initial_value_cache()

    def remove_variable(self, variable: Variable) -> None:
        variable.model = None
        if variable in self._variables:
            self._variables.remove(variable)
        self._variables_by_id.pop(variable.id, None)
        self._unassigned.pop(variable, None)
        self._assigned.pop(variable, None)
        with self.notifying():
            for listener in list(self._listeners):
                listener.variable_removed(variable)
        self.invalidate_variables_with_initial_value_cache()

    def assigned_variables(self) -> List[Variable]:
        return list(self._assigned)

    def unassigned_variables(self) -> List[Variable]:
        return list(self._unassigned)

    def nr_assigned_variables(self) -> int:
        return len(self._assigned)

    def nr_unassigned_variables(self) -> int:
        return len(self._unassigned)

    def is_assigned(self, variable: Variable) -> bool:
        return variable in self._assigned

    # -- constraints -------------------------------------------------------

    def constraints(self) -> List["Constraint"]:
        return self._constraints

    def count_constraints(self) -> int:
        return len(self._constraints)

    def constraint_by_id(self, constraint_id: int) -> Optional["Constraint"]:
        return self._constraints_by_id.get(constraint_id)

    def add_constraint(self, constraint: "Constraint") -> None:
        constraint.model = self
        if constraint.id is None:
            constraint.id = self.new_id()
        self._constraints.append(constraint)
        self._constraints_by_id[constraint.id] = constraint
        self.invalidate_variables_with_initial_value_cache()
        with self.notifying():
            for listener in list(self._listeners):
                listener.constraint_added(constraint)

    def remove_constraint(self, constraint: "Constraint") -> None:
        constraint.model = None
        if constraint in self._constraints:
            self._constraints.remove(constraint)
        self._constraints_by_id.pop(constraint.id, None)
        self.invalidate_variables_with_initial_value_cache()
        with self.notifying():
            for listener in list(self._listeners):
                listener.constraint_removed(constraint)

    def global_constraints(self) -> List["GlobalConstraint"]:
        return self._global_constraints

    def count_global_constraints(self) -> int:
        return len(self._global_constraints)

    def add_global_constraint(self, constraint: "GlobalConstraint") -> None:
        constraint.model = self
        if constraint.id is None:
            constraint.id = self.new_id()
        self._global_constraints.append(constraint)
        self._constraints_by_id[constraint.id] = constraint
        self.invalidate_variables_with_initial_value_cache()
        with self.notifying():
            for listener in list(self._listeners):
                listener.constraint_added(constraint)

    def remove_global_constraint(self, constraint: "GlobalConstraint") -> None:
        constraint.model = None
        if constraint in self._global_constraints:
            self._global_constraints.remove(constraint)
        self._constraints_by_id.pop(constraint.id, None)
        self.invalidate_variables_with_initial_value_cache()
        with self.notifying():
            for listener in list(self._listeners):
                listener.constraint_removed(constraint)

    def unassigned_hard_constraints(self) -> List["Constraint"]:
        """Hard constraints with at least one unassigned participant."""
        result: List["Constraint"] = []
        for constraint in self._constraints:
            if not constraint.is_hard():
                continue
            if any(variable.assignment is None for variable in constraint.variables()):
                result.append(constraint)
        if self._unassigned:
            result.extend(self._global_constraints)
        return result

    # -- conflicts ---------------------------------------------------------

    def conflict_values(self, value: Value) -> Set[Value]:
        """Every assigned value that would have to go if ``value`` were assigned."""
        conflicts: Set[Value] = set()
        for constraint in value.variable.hard_constraints():
            constraint.compute_conflicts(value, conflicts)
        for constraint in self._global_constraints:
            constraint.compute_conflicts(value, conflicts)
        return conflicts

    def conflict_constraints(self, value: Value) -> Dict["Constraint", Set[Value]]:
        result: Dict["Constraint", Set[Value]] = {}
        constraints = list(value.variable.hard_constraints()) + list(self._global_constraints)
        for constraint in constraints:
            conflicts: Set[Value] = set()
            constraint.compute_conflicts(value, conflicts)
            if conflicts:
                result[constraint] = conflicts
        return result

    # -- perturbations -----------------------------------------------------

    def variables_with_initial_value(self) -> List[Variable]:
        if self._variables_with_initial_value is None:
            self._variables_with_initial_value = [
                variable for variable in self._variables if variable.initial_assignment is not None
            ]
        return self._variables_with_initial_value

    def invalidate_variables_with_initial_value_cache(self) -> None:
        self._variables_with_initial_value = None
        self._perturb_variables = None

    def _is_perturbed(self, variable: Variable) -> bool:
        initial = variable.initial_assignment
        current = variable.assignment
        if current is not None:
            return current is not initial
        for constraint in variable.hard_constraints():
            if constraint.in_conflict(initial):
                return True
        for constraint in self._global_constraints:
            if constraint.in_conflict(initial):
                return True
        return False

    def perturb_variables(self, variables: Optional[Iterable[Variable]] = None) -> List[Variable]:
        """Variables whose assignment differs from, or cannot take, their initial value."""
        if variables is not None:
            return [
                variable
                for variable in variables
                if variable.initial_assignment is not None and self._is_perturbed(variable)
            ]
        if self._perturb_variables is None:
            self._perturb_variables = [
                variable for variable in self.variables_with_initial_value() if self._is_perturbed(variable)
            ]
        return list(self._perturb_variables)

    # -- assignment hooks --------------------------------------------------

    def before_assigned(self, iteration: int, value: Value) -> None:
        with self.notifying():
            for listener in list(self._listeners):
                listener.before_assigned(iteration, value)

    def after_assigned(self, iteration: int, value: Value) -> None:
        variable = value.variable
        self._unassigned.pop(variable, None)
        self._assigned[variable] = None
        self._perturb_variables = None
        with self.notifying():
            for listener in list(self._listeners):
                listener.after_assigned(iteration, value)

    def before_unassigned(self, iteration: int, value: Value) -> None:
        with self.notifying():
            for listener in list(self._listeners):
                listener.before_unassigned(iteration, value)

    def after_unassigned(self, iteration: int, value: Value) -> None:
        variable = value.variable
        self._assigned.pop(variable, None)
        self._unassigned[variable] = None
        self._perturb_variables = None
        with self.notifying():
            for listener in list(self._listeners):
                listener.after_unassigned(iteration, value)

    # -- solution value ----------------------------------------------------

    def total_value(self, variables: Optional[Iterable[Variable]] = None) -> float:
        if variables is None:
            variables = self._assigned
        total = 0.0
        for variable in variables:
            if variable.assignment is not None:
                total += variable.assignment.to_double()
        return total

    # -- best solution -----------------------------------------------------

    def best_unassigned_variables(self) -> int:
        """Unassigned count of the saved best solution, -1 when nothing was saved."""
        return self._best_unassigned

    def best_perturbations(self) -> int:
        return self._best_perturbations

    def save_best(self) -> None:
        self._best_unassigned = self.nr_unassigned_variables()
        self._best_perturbations = len(self.perturb_variables())
        for variable in self._variables:
            variable.set_best_assignment(variable.assignment)

    def clear_best(self) -> None:
        self._best_unassigned = -1
        self._best_perturbations = 0
        for variable in self._variables:
            variable.set_best_assignment(None)

    def _report_restore_problem(self, value: Value, attempt: int) -> None:
        variable = value.variable
        if attempt == 0:
            logger.error("restore best problem: assignment %s = %s", variable.name, value.name)
        else:
            logger.error(
                "restore best problem (again, att=%d): assignment %s = %s", attempt, variable.name, value.name
            )
        for constraint, conflicts in self.conflict_constraints(value).items():
            kind = "global constraint" if constraint in self._global_constraints else "constraint"
            logger.error(
                "  %s %s %s causes the following conflicts %s",
                kind, type(constraint).__name__, constraint.name, sorted(conflicts, key=repr),
            )

    def restore_best(self, rng: Optional[random.Random] = None) -> bool:
        """Bring the saved best assignment back.

        Values are reassigned in the order in which they became best. Any
        value that conflicts with the live constraint state is reported and
        then repaired by up to ``RESTORE_BEST_ATTEMPTS`` rounds of
        pick-at-random, unassign its conflicts, reassign. Returns False when
        problems remain after the last round.
        """
        rng = rng or random.Random()
        for variable in self._variables:
            current = variable.assignment
            if current is not None and current is not variable.best_assignment:
                variable.unassign(0)

        problems: Dict[Value, None] = {}
        for variable in sorted(self._variables, key=lambda v: v.best_assignment_iteration()):
            best = variable.best_assignment
            if best is None or variable.assignment is not None:
                continue
            if self.conflict_values(best):
                self._report_restore_problem(best, 0)
                problems[best] = None
            else:
                variable.assign(0, best)

        attempt = 0
        while problems and attempt < RESTORE_BEST_ATTEMPTS:
            attempt += 1
            value = random_choice(rng, list(problems))
            del problems[value]
            conflicts = self.conflict_values(value)
            if conflicts:
                self._report_restore_problem(value, attempt)
                for conflict in conflicts:
                    conflict.variable.unassign(0)
                for conflict in conflicts:
                    problems[conflict] = None
            value.variable.assign(0, value)

        if problems:
            logger.error(
                "restore best failed after %d attempts, %d value(s) left unassigned: %s",
                attempt, len(problems), sorted(problems, key=repr),
            )
            return False
        return True

    # -- listeners ---------------------------------------------------------

    def add_model_listener(self, listener: ModelListener) -> None:
        self._listeners.append(listener)
        with self.notifying():
            for constraint in self._constraints:
                listener.constraint_added(constraint)
            for variable in self._variables:
                listener.variable_added(variable)

    def remove_model_listener(self, listener: ModelListener) -> None:
        with self.notifying():
            for variable in self._variables:
                listener.variable_removed(variable)
            for constraint in self._constraints:
                listener.constraint_removed(constraint)
        if listener in self._listeners:
            self._listeners.remove(listener)

    def model_listeners(self) -> List[ModelListener]:
        return self._listeners

    def init(self, solver: Any) -> bool:
        for listener in self._listeners:
            if not listener.init(solver):
                return False
        return True

    # -- reporting ---------------------------------------------------------

    @staticmethod
    def _percent(value: float, total: float) -> str:
        if total == 0:
            return "0.00"
        return f"{100.0 * value / total:.2f}"

    def get_info(self, variables: Optional[List[Variable]] = None) -> Dict[str, str]:
        if variables is None:
            variables = self._variables
            assigned = self.nr_assigned_variables()
            with_initial = len(self.variables_with_initial_value())
            perturbed = len(self.perturb_variables()) if with_initial else 0
        else:
            assigned = sum(1 for variable in variables if variable.assignment is not None)
            with_initial = sum(1 for variable in variables if variable.initial_assignment is not None)
            perturbed = len(self.perturb_variables(variables))
        total = len(variables)
        info = {
            "Assigned variables": f"{self._percent(assigned, total)}% ({assigned}/{total})",
            "Overall solution value": f"{self.total_value(variables):.2f}",
        }
        if with_initial > 0:
            info["Perturbation variables"] = (
                f"{self._percent(perturbed, with_initial)}% ({perturbed} + {total - with_initial})"
            )
        for listener in self._listeners:
            listener.get_info(info, variables if variables is not self._variables else None)
        return info

    def __repr__(self) -> str:
        return (
            f"Model(variables={len(self._variables)}, constraints={len(self._constraints)}, "
            f"unassigned={len(self._unassigned)}, value={self.total_value():.2f})"
        )
