"""Tracing module: records search steps and writes them to CSV or a DataFrame."""

import csv
from collections import Counter, deque
from dataclasses import dataclass, asdict
from datetime import datetime
from pathlib import Path
from typing import Any, Deque, Dict, Optional

import pandas as pd

from src.utils.logging_utils import get_logger

logger = get_logger("trace")

FIELDNAMES = [
    'timestamp', 'step_number', 'action_type', 'iteration', 'variable', 'value',
    'assigned', 'unassigned', 'total_value', 'reason'
]

# Oldest steps are dropped beyond this many; the action counts stay exact.
DEFAULT_MAX_STEPS = 100_000


@dataclass
class TraceStep:
    """A single step in the search."""

    timestamp: float
    step_number: int
    action_type: str  # 'assign', 'unassign', 'backtrack', 'best_saved', 'no_move', ...
    iteration: Optional[int] = None
    variable: Optional[str] = None
    value: Optional[Any] = None
    assigned: Optional[int] = None  # Number of assigned variables after the step
    unassigned: Optional[int] = None
    total_value: Optional[float] = None
    reason: Optional[str] = None


class Tracer:
    """Records solver steps for logging and analysis."""

    def __init__(self, enabled: bool = True, max_steps: Optional[int] = DEFAULT_MAX_STEPS):
        self.enabled = enabled
        self.max_steps = max_steps
        self.steps: Deque[TraceStep] = deque(maxlen=max_steps)
        self.action_counts: Counter = Counter()
        self.start_time = datetime.now().timestamp()
        self.step_counter = 0

    def clear(self) -> None:
        """Drop the recorded steps and restart the clock, keeping the settings."""
        self.steps.clear()
        self.action_counts.clear()
        self.start_time = datetime.now().timestamp()
        self.step_counter = 0

    def _get_timestamp(self) -> float:
        """Get elapsed time in seconds since tracer creation."""
        return datetime.now().timestamp() - self.start_time

    def _record(self, action_type: str, **fields) -> None:
        if not self.enabled:
            return
        self.step_counter += 1
        self.action_counts[action_type] += 1
        self.steps.append(TraceStep(
            timestamp=self._get_timestamp(),
            step_number=self.step_counter,
            action_type=action_type,
            **fields,
        ))

    def log_assign(self, iteration: int, variable: str, value: Any, assigned: int, unassigned: int):
        """Log an applied neighbour (a variable assignment)."""
        self._record('assign', iteration=iteration, variable=variable, value=str(value),
                     assigned=assigned, unassigned=unassigned)

    def log_unassign(self, iteration: int, variable: str, value: Any):
        """Log a variable unassignment."""
        self._record('unassign', iteration=iteration, variable=variable, value=str(value))

    def log_backtrack(self, variable: str, reason: str = "No valid values"):
        """Log a dead end in a bounded tree search."""
        self._record('backtrack', variable=variable, reason=reason)

    def log_no_move(self, iteration: int, reason: str = "No neighbour selected"):
        """Log an iteration where the neighbour selection gave nothing."""
        self._record('no_move', iteration=iteration, reason=reason)

    def log_best_saved(self, iteration: int, assigned: int, unassigned: int, total_value: float):
        """Log a new best solution."""
        self._record('best_saved', iteration=iteration, assigned=assigned,
                     unassigned=unassigned, total_value=total_value)

    def log_best_restored(self, iteration: int, assigned: int, unassigned: int, total_value: float):
        """Log a restore of the best solution."""
        self._record('best_restored', iteration=iteration, assigned=assigned,
                     unassigned=unassigned, total_value=total_value)

    def log_phase_changed(self, phase: int, reason: str = ""):
        """Log a round-robin phase change."""
        self._record('phase_changed', value=str(phase), reason=reason)

    def log_search_finished(self, variable: Optional[str], nodes: int, reason: str = ""):
        """Log the end of a bounded search (backtracking or branch and bound)."""
        self._record('search_finished', variable=variable, value=str(nodes), reason=reason)

    def to_dataframe(self) -> pd.DataFrame:
        """Return the trace as a DataFrame, one row per step."""
        return pd.DataFrame([asdict(step) for step in self.steps], columns=FIELDNAMES)

    def to_csv(self, filepath: Path) -> None:
        """Write trace to CSV file."""
        if not self.steps:
            logger.info("No trace steps to write")
            return

        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)

        with open(filepath, 'w', newline='', encoding='utf-8') as f:
            writer = csv.DictWriter(f, fieldnames=FIELDNAMES)
            writer.writeheader()
            for step in self.steps:
                writer.writerow(asdict(step))

        logger.info("Trace written to %s (%d steps)", filepath, len(self.steps))

    def summary(self) -> Dict[str, Any]:
        """Get a summary of the trace."""
        action_counts = dict(self.action_counts)

        return {
            'total_steps': self.step_counter,
            'elapsed_time_seconds': self._get_timestamp(),
            'action_counts': action_counts,
            'num_assignments': action_counts.get('assign', 0),
            'num_backtracks': action_counts.get('backtrack', 0),
            'num_best_saved': action_counts.get('best_saved', 0),
        }


# Global tracer instance
_global_tracer: Optional[Tracer] = None


def get_tracer() -> Tracer:
    """Get or create the global tracer."""
    global _global_tracer
    if _global_tracer is None:
        _global_tracer = Tracer(enabled=True)
    return _global_tracer


def reset_tracer() -> None:
    """Reset the global tracer."""
    global _global_tracer
    _global_tracer = None


def enable_tracing(enabled: bool = True) -> None:
    """Enable or disable tracing."""
    get_tracer().enabled = enabled
