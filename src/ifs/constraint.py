"""Constraints: conflict detection and cascading unassignment."""

from abc import ABC, abstractmethod
from contextlib import nullcontext
from typing import Dict, Iterable, List, Optional, Set, Tuple

from .model import ModelError, Value, Variable


class ConstraintListener:
    """Observer of a constraint's assigned hook. Must not change the assignment."""

    def constraint_before_assigned(self, iteration: int, constraint: "Constraint", value: Value,
                                   conflicts: Optional[Set[Value]]) -> None:
        pass

    def constraint_after_assigned(self, iteration: int, constraint: "Constraint", value: Value,
                                  conflicts: Optional[Set[Value]]) -> None:
        pass


class Constraint(ABC):
    """Base class of all constraints.

    Subclasses implement :meth:`compute_conflicts`, which adds to ``conflicts``
    every value currently assigned to another participant that cannot coexist
    with ``value``. It must not change any state besides that set.
    """

    def __init__(self, name: Optional[str] = None):
        self.id: Optional[int] = None
        self.model = None
        self._name = name
        self._variables: List[Variable] = []
        self._assigned: Dict[Variable, None] = {}
        self._listeners: List[ConstraintListener] = []

    @property
    def name(self) -> str:
        if self._name is not None:
            return self._name
        return f"{type(self).__name__}{self.id}"

    def description(self) -> Optional[str]:
        return None

    def is_hard(self) -> bool:
        return True

    # -- participants ------------------------------------------------------

    def variables(self) -> List[Variable]:
        return self._variables

    def assigned_variables(self) -> List[Variable]:
        return list(self._assigned)

    def count_variables(self) -> int:
        return len(self.variables())

    def count_assigned_variables(self) -> int:
        return len(self.assigned_variables())

    def add_variable(self, variable: Variable) -> None:
        """Attach a participant; a value it already holds is checked right away."""
        self._variables.append(variable)
        variable.add_constraint(self)
        for participant in self._variables:
            participant.invalidate_constraint_variables()
        if variable.assignment is not None:
            self.assigned(0, variable.assignment)
        if self.model is not None:
            self.model.invalidate_variables_with_initial_value_cache()

    def remove_variable(self, variable: Variable) -> None:
        if variable.assignment is not None:
            self.unassigned(0, variable.assignment)
        variable.remove_constraint(self)
        if variable in self._variables:
            self._variables.remove(variable)
        self._assigned.pop(variable, None)
        for participant in self._variables:
            participant.invalidate_constraint_variables()
        variable.invalidate_constraint_variables()
        if self.model is not None:
            self.model.invalidate_variables_with_initial_value_cache()

    # -- conflicts ---------------------------------------------------------

    @abstractmethod
    def compute_conflicts(self, value: Value, conflicts: Set[Value]) -> None:
        """Add the assigned values of other participants that conflict with ``value``."""

    def is_consistent(self, value1: Value, value2: Value) -> bool:
        return True

    def in_conflict(self, value: Value) -> bool:
        conflicts: Set[Value] = set()
        self.compute_conflicts(value, conflicts)
        return bool(conflicts)

    # -- assignment hooks --------------------------------------------------

    def _listener_guard(self):
        if self.model is None:
            return nullcontext()
        return self.model.notifying()

    def assigned(self, iteration: int, value: Value) -> None:
        """React to ``value`` being assigned to one of the participants.

        A hard constraint unassigns every conflicting value it finds, so
        constraints reacting later see only what is left over.
        """
        conflicts: Optional[Set[Value]] = None
        if self.is_hard():
            conflicts = set()
            self.compute_conflicts(value, conflicts)
        if self._listeners:
            with self._listener_guard():
                for listener in list(self._listeners):
                    listener.constraint_before_assigned(iteration, self, value, conflicts)
        if conflicts:
            for conflict in conflicts:
                variable = conflict.variable
                if variable is value.variable or variable.assignment is not conflict:
                    continue
                variable.unassign(iteration)
        self._assigned[value.variable] = None
        if self._listeners:
            with self._listener_guard():
                for listener in list(self._listeners):
                    listener.constraint_after_assigned(iteration, self, value, conflicts)

    def unassigned(self, iteration: int, value: Value) -> None:
        self._assigned.pop(value.variable, None)

    # -- listeners ---------------------------------------------------------

    def add_constraint_listener(self, listener: ConstraintListener) -> None:
        self._listeners.append(listener)

    def remove_constraint_listener(self, listener: ConstraintListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def constraint_listeners(self) -> List[ConstraintListener]:
        return self._listeners

    def __lt__(self, other: "Constraint") -> bool:
        return (self.id or -1) < (other.id or -1)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name}, variables={[v.name for v in self.variables()]})"


class BinaryConstraint(Constraint):
    """Constraint between exactly two variables."""

    def add_variable(self, variable: Variable) -> None:
        if len(self._variables) >= 2:
            raise ModelError(f"binary constraint {self.name} already has two variables")
        super().add_variable(variable)

    def first(self) -> Optional[Variable]:
        return self._variables[0] if self._variables else None

    def second(self) -> Optional[Variable]:
        return self._variables[1] if len(self._variables) > 1 else None

    def is_first(self, variable: Variable) -> bool:
        return variable is self.first()

    def another(self, variable: Variable) -> Optional[Variable]:
        if variable is self.first():
            return self.second()
        if variable is self.second():
            return self.first()
        return None


class GlobalConstraint(Constraint):
    """Constraint over every variable of its model.

    Participation is implicit: it is registered with
    :meth:`Model.add_global_constraint` and never through ``add_variable``.
    """

    def variables(self) -> List[Variable]:
        if self.model is None:
            return []
        return self.model.variables()

    def assigned_variables(self) -> List[Variable]:
        if self.model is None:
            return []
        return self.model.assigned_variables()

    def add_variable(self, variable: Variable) -> None:
        raise ModelError(f"global constraint {self.name} spans all model variables, cannot add {variable.name}")

    def remove_variable(self, variable: Variable) -> None:
        raise ModelError(f"global constraint {self.name} spans all model variables, cannot remove {variable.name}")


class NotEqualConstraint(BinaryConstraint):
    """The two variables may not take values with the same name."""

    def compute_conflicts(self, value: Value, conflicts: Set[Value]) -> None:
        other = self.another(value.variable)
        if other is None:
            return
        current = other.assignment
        if current is not None and current.name == value.name:
            conflicts.add(current)

    def is_consistent(self, value1: Value, value2: Value) -> bool:
        if self.another(value1.variable) is not value2.variable:
            return True
        return value1.name != value2.name


class IncompatiblePairsConstraint(BinaryConstraint):
    """Explicit table of forbidden ``(first value, second value)`` name pairs.

    A soft instance never unassigns anything; its violations only show up
    through :meth:`violations`.
    """

    def __init__(self, pairs: Iterable[Tuple[str, str]] = (), hard: bool = True, name: Optional[str] = None):
        super().__init__(name)
        self._pairs: Set[Tuple[str, str]] = {(str(a), str(b)) for a, b in pairs}
        self._hard = hard

    def is_hard(self) -> bool:
        return self._hard

    def pairs(self) -> Set[Tuple[str, str]]:
        return self._pairs

    def is_consistent(self, value1: Value, value2: Value) -> bool:
        if self.another(value1.variable) is not value2.variable:
            return True
        if self.is_first(value1.variable):
            pair = (value1.name, value2.name)
        else:
            pair = (value2.name, value1.name)
        return pair not in self._pairs

    def compute_conflicts(self, value: Value, conflicts: Set[Value]) -> None:
        other = self.another(value.variable)
        if other is None:
            return
        current = other.assignment
        if current is not None and not self.is_consistent(value, current):
            conflicts.add(current)

    def violations(self) -> int:
        first, second = self.first(), self.second()
        if first is None or second is None:
            return 0
        if first.assignment is None or second.assignment is None:
            return 0
        return 0 if self.is_consistent(first.assignment, second.assignment) else 1


class ResourceLimitConstraint(Constraint):
    """At most ``limit`` participants may hold values with the same name."""

    def __init__(self, limit: int = 1, name: Optional[str] = None):
        super().__init__(name)
        if limit < 1:
            raise ValueError(f"resource limit must be at least 1, got {limit}")
        self.limit = limit

    def compute_conflicts(self, value: Value, conflicts: Set[Value]) -> None:
        same = [
            variable.assignment
            for variable in self._variables
            if variable is not value.variable
            and variable.assignment is not None
            and variable.assignment.name == value.name
        ]
        excess = len(same) - self.limit + 1
        if excess > 0:
            conflicts.update(same[:excess])

    def is_consistent(self, value1: Value, value2: Value) -> bool:
        if self.limit > 1:
            return True
        if value1.variable not in self._variables or value2.variable not in self._variables:
            return True
        return value1.name != value2.name


class AllDifferentConstraint(GlobalConstraint):
    """No two variables of the model may hold values with the same name."""

    def compute_conflicts(self, value: Value, conflicts: Set[Value]) -> None:
        for variable in self.assigned_variables():
            if variable is value.variable:
                continue
            current = variable.assignment
            if current is not None and current.name == value.name:
                conflicts.add(current)

    def is_consistent(self, value1: Value, value2: Value) -> bool:
        return value1.variable is value2.variable or value1.name != value2.name
