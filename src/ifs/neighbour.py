"""Neighbours: atomic proposed changes of the current assignment."""

from abc import ABC, abstractmethod
from typing import Dict, Optional, Set

from .model import Value, Variable


class Neighbour(ABC):
    """A move the solver may apply in one iteration."""

    @abstractmethod
    def value(self) -> float:
        """Change of the overall solution value if this neighbour is applied."""

    @abstractmethod
    def assign(self, iteration: int) -> None:
        """Apply the move to the model."""

    def assignments(self) -> Dict[Variable, Optional[Value]]:
        return {}


class SimpleNeighbour(Neighbour):
    """Assign one value to one variable."""

    def __init__(self, variable: Variable, value: Value, conflicts: Optional[Set[Value]] = None):
        self.variable = variable
        self.new_value = value
        self.conflicts = conflicts

    def value(self) -> float:
        old = self.variable.assignment
        delta = self.new_value.to_double() - (old.to_double() if old is not None else 0.0)
        if self.conflicts:
            for conflict in self.conflicts:
                if conflict.variable is not self.variable:
                    delta -= conflict.to_double()
        return delta

    def assign(self, iteration: int) -> None:
        self.variable.assign(iteration, self.new_value)

    def assignments(self) -> Dict[Variable, Optional[Value]]:
        return {self.variable: self.new_value}

    def __repr__(self) -> str:
        old = self.variable.assignment
        text = f"{self.variable.name} {old} -> {self.new_value}"
        if self.conflicts:
            text += f", conflicts: {sorted(self.conflicts, key=repr)}"
        return text
