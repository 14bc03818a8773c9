"""Selection heuristics: variable, value and neighbour selections."""

from .variable_selection import VariableSelection, GeneralVariableSelection
from .value_selection import ValueSelection, GeneralValueSelection
from .neighbour_selection import (
    NeighbourSelection,
    StandardNeighbourSelection,
    RoundRobinNeighbourSelection,
    MaxIdleNeighbourSelection,
)
from .backtrack import BacktrackContext, BacktrackNeighbour, BacktrackNeighbourSelection
from .branch_bound import BranchBoundNeighbour, BranchBoundSearch, BranchBoundSelection

__all__ = [
    "VariableSelection",
    "GeneralVariableSelection",
    "ValueSelection",
    "GeneralValueSelection",
    "NeighbourSelection",
    "StandardNeighbourSelection",
    "RoundRobinNeighbourSelection",
    "MaxIdleNeighbourSelection",
    "BacktrackContext",
    "BacktrackNeighbour",
    "BacktrackNeighbourSelection",
    "BranchBoundNeighbour",
    "BranchBoundSearch",
    "BranchBoundSelection",
]
