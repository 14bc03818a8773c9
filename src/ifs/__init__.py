"""Iterative forward search: assignment model, constraints, heuristics and solver loop."""

from .model import Model, ModelError, ReentrantAssignmentError, Value, Variable
from .constraint import (
    BinaryConstraint,
    Constraint,
    GlobalConstraint,
    IncompatiblePairsConstraint,
    NotEqualConstraint,
    ResourceLimitConstraint,
    AllDifferentConstraint,
)
from .config import SolverConfig
from .entity import Entity, EntityModel, Request
from .neighbour import Neighbour, SimpleNeighbour
from .solution import Solution
from .solver_core import Solver
from .parser import parse_problem

__all__ = [
    "Model",
    "ModelError",
    "ReentrantAssignmentError",
    "Value",
    "Variable",
    "Constraint",
    "BinaryConstraint",
    "GlobalConstraint",
    "NotEqualConstraint",
    "IncompatiblePairsConstraint",
    "ResourceLimitConstraint",
    "AllDifferentConstraint",
    "SolverConfig",
    "Entity",
    "EntityModel",
    "Request",
    "Neighbour",
    "SimpleNeighbour",
    "Solution",
    "Solver",
    "parse_problem",
]
