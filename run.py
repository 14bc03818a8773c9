"""CLI entrypoint: load problem(s), run the solver, and report results."""

import argparse
import csv
import json
from pathlib import Path
from typing import Any

from solver import assignment_of, solve_model
from src.ifs.config import SolverConfig
from src.ifs.loader import load_problems
from src.ifs.parser import parse_problem
from src.utils.trace import get_tracer, reset_tracer


def parse_args(argv: list[str] | None = None):
    parser = argparse.ArgumentParser(description="Run the iterative forward search solver on CSP instances")
    parser.add_argument("input", type=Path, help="Path to a problem file or a directory of problem files")
    parser.add_argument("--output", type=Path, default=None, help="Optional path to write results as CSV")
    parser.add_argument("--trace", type=Path, default=None, help="Optional path to write the search trace as CSV")
    parser.add_argument("--config", type=Path, default=None, help="JSON file with solver options")
    parser.add_argument(
        "--set",
        dest="overrides",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Override one solver option (repeatable), e.g. --set depth=3 --set neighbour=backtrack",
    )
    return parser.parse_args(argv)


def _parse_override(text: str) -> tuple[str, Any]:
    if "=" not in text:
        raise ValueError(f"Expected KEY=VALUE, got {text!r}")
    key, raw = text.split("=", 1)
    key = key.strip()
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        value = raw
    return key, value


def build_config(config_path: Path | None = None, overrides: list[str] | None = None) -> SolverConfig:
    options: dict[str, Any] = {}
    if config_path is not None:
        with open(config_path, "r", encoding="utf-8") as f:
            payload = json.load(f)
        if not isinstance(payload, dict):
            raise ValueError(f"{config_path}: solver options must be a JSON object")
        options.update(payload)
    for text in overrides or []:
        key, value = _parse_override(text)
        options[key] = value
    return SolverConfig.from_dict(options)


def format_assignment(assignment: dict) -> str:
    return json.dumps(assignment, ensure_ascii=False, separators=(",", ":"))


def write_results_csv(results, output_path: Path):
    with open(output_path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(["id", "assignment", "steps", "unassigned", "value"])

        for r in results:
            writer.writerow([
                r["id"],
                format_assignment(r["assignment"]),
                r["steps"],
                r["unassigned"],
                r["value"],
            ])


def solve_one(problem: dict, config: SolverConfig) -> dict:
    reset_tracer()
    tracer = get_tracer()
    model = parse_problem(problem)
    solve_model(model, config)
    summary = tracer.summary()
    return {
        "id": problem.get("id", "unknown"),
        "assignment": assignment_of(model),
        "steps": summary.get("num_assignments", summary["total_steps"]),
        "unassigned": model.nr_unassigned_variables(),
        "value": round(model.total_value(), 6),
    }


def main(argv: list[str] | None = None):
    args = parse_args(argv)
    config = build_config(args.config, args.overrides)
    results = []

    if not args.input.exists():
        raise ValueError(f"Input path {args.input} is neither file nor directory")
    problems = load_problems(str(args.input))

    for problem in problems:
        problem_id = problem.get("id", "unknown")
        try:
            results.append(solve_one(problem, config))
            if args.trace:
                trace_path = args.trace
                if len(problems) > 1:
                    trace_path = args.trace.with_name(f"{args.trace.stem}_{problem_id}{args.trace.suffix}")
                get_tracer().to_csv(trace_path)
        except ValueError as e:
            print(f"ERROR: Failed to solve problem {problem_id}: {e}")
            results.append({
                "id": problem_id,
                "assignment": {},
                "steps": -1,
                "unassigned": -1,
                "value": "",
            })

    if args.output:
        write_results_csv(results, args.output)
    else:
        for r in results:
            print(f"{r['id']}: unassigned={r['unassigned']} value={r['value']} {format_assignment(r['assignment'])}")
    return results


if __name__ == "__main__":
    main()
