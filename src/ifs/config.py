"""Solver configuration."""

from dataclasses import dataclass, fields
from typing import Any, Dict, Mapping, Optional

NEIGHBOUR_STRATEGIES = ("standard", "backtrack", "round-robin")
BB_OBJECTIVES = ("lexicographic", "value")

_PROBABILITIES = (
    "random_walk_prob",
    "initial_value_prob",
    "good_selection_prob",
    "no_good_random_walk",
)
_NON_NEGATIVE = ("depth", "tabu_size", "statistics_half_age")


@dataclass
class SolverConfig:
    """Named options of the search engine.

    Time budgets of the bounded searches are in milliseconds, the solver
    timeout is in seconds. ``-1`` means "no limit" for the caps.
    """

    # bounded backtracking
    timeout_ms: int = 5000
    depth: int = 4
    max_iterations: int = -1

    # value selection
    tabu_size: int = 0
    random_walk_prob: float = 0.0
    initial_value_prob: float = 0.75
    mpp_limit: int = -1
    weight_conflicts: float = 1.0
    weight_weighted_conflicts: float = 1.0
    weight_potential_conflicts: float = 0.0
    weight_value: float = 0.0
    weight_delta_initial: float = 0.0
    mpp: bool = False
    good_selection_prob: float = 0.0

    # variable selection
    random_selection: bool = True
    unassign_when_no_good: bool = False
    no_good_random_walk: float = 0.02

    # neighbour selection
    neighbour: str = "standard"
    max_idle: int = 1000

    # branch and bound
    bb_timeout_ms: int = 10000
    bb_max_iterations: int = -1
    bb_objective: str = "lexicographic"

    # conflict statistics
    statistics_ageing: float = 1.0
    statistics_half_age: int = 0

    # solver loop
    termination_max_iterations: int = -1
    termination_timeout: float = 1800.0
    stop_when_complete: bool = False
    max_empty_selections: int = 100
    save_best_unassigned: int = -1
    seed: Optional[int] = None

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name == "seed":
                if value is not None and (isinstance(value, bool) or not isinstance(value, int)):
                    raise ValueError(f"seed must be an integer or None, got {value!r}")
                continue
            expected = type(f.default)
            if expected is bool:
                if not isinstance(value, bool):
                    raise ValueError(f"{f.name} must be a boolean, got {value!r}")
            elif expected is int:
                if isinstance(value, bool) or not isinstance(value, int):
                    raise ValueError(f"{f.name} must be an integer, got {value!r}")
            elif expected is float:
                if isinstance(value, bool) or not isinstance(value, (int, float)):
                    raise ValueError(f"{f.name} must be a number, got {value!r}")
            elif expected is str:
                if not isinstance(value, str):
                    raise ValueError(f"{f.name} must be a string, got {value!r}")

        for name in _PROBABILITIES:
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must lie in [0, 1], got {value}")
        for name in _NON_NEGATIVE:
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0, got {getattr(self, name)}")
        if not 0.0 < self.statistics_ageing <= 1.0:
            raise ValueError(f"statistics_ageing must lie in (0, 1], got {self.statistics_ageing}")
        if self.neighbour not in NEIGHBOUR_STRATEGIES:
            raise ValueError(f"neighbour must be one of {NEIGHBOUR_STRATEGIES}, got {self.neighbour!r}")
        if self.bb_objective not in BB_OBJECTIVES:
            raise ValueError(f"bb_objective must be one of {BB_OBJECTIVES}, got {self.bb_objective!r}")
        if self.max_empty_selections < 1:
            raise ValueError(f"max_empty_selections must be >= 1, got {self.max_empty_selections}")

    @property
    def ageing(self) -> float:
        """Conflict statistics ageing factor, derived from the half age when one is set."""
        if self.statistics_half_age > 0:
            return 0.5 ** (1.0 / self.statistics_half_age)
        return self.statistics_ageing

    @classmethod
    def from_dict(cls, options: Optional[Mapping[str, Any]] = None) -> "SolverConfig":
        """Build a config from a mapping; unknown keys are rejected."""
        options = dict(options or {})
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(options) - known)
        if unknown:
            raise ValueError(f"Unknown solver option(s): {', '.join(unknown)}")
        return cls(**options)

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def replace(self, **changes: Any) -> "SolverConfig":
        options = self.to_dict()
        options.update(changes)
        return SolverConfig.from_dict(options)
