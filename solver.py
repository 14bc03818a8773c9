"""Top-level solve interface.

Expose `solve_problem(problem, config)` that accepts either a pre-built Model or a
raw problem dictionary compatible with `src.ifs.parser.parse_problem`.
"""

from typing import Any, Dict, Optional

from src.ifs.config import SolverConfig
from src.ifs.model import Model
from src.ifs.parser import parse_problem
from src.ifs.solution import Solution
from src.ifs.solver_core import Solver


def assignment_of(model: Model) -> Dict[str, Optional[str]]:
    """Variable name -> assigned value name (None when unassigned), in model order."""
    return {
        variable.name: (variable.assignment.name if variable.assignment is not None else None)
        for variable in model.variables()
    }


def solve_model(model: Model, config: Optional[SolverConfig] = None) -> Solution:
    """Run the iterative forward search on `model`; the best solution found is left assigned."""
    solver = Solver(config or SolverConfig())
    solver.set_initial_solution(model)
    return solver.solve()


def solve_problem(problem: Any, config: Optional[SolverConfig] = None) -> Dict[str, Optional[str]]:
    """
    Solve a problem and return a mapping from variable name to assigned value name.
    Accepts:
      - Model instances (used directly)
      - Raw problem dictionaries or JSON strings (parsed via `parse_problem`)
    """
    if isinstance(problem, Model):
        model = problem
    elif isinstance(problem, (dict, str)):
        model = parse_problem(problem)
    else:
        raise TypeError("solve_problem expects a Model instance or problem dictionary")

    solve_model(model, config)
    return assignment_of(model)


__all__ = ["assignment_of", "solve_model", "solve_problem"]
