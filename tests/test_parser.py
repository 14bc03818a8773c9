"""Tests for the problem parser and the file loader."""

import csv
import json

import pytest

from src.ifs.constraint import (
    AllDifferentConstraint,
    IncompatiblePairsConstraint,
    NotEqualConstraint,
    ResourceLimitConstraint,
)
from src.ifs.loader import load_problems
from src.ifs.parser import parse_problem


def _make_problem(problem_id="p1"):
    return {
        "id": problem_id,
        "variables": [
            {"name": "A", "values": ["red", {"name": "blue", "weight": 2}], "initial": "red"},
            {"name": "B", "values": ["red", "blue"]},
            {"name": "C", "values": ["red", "blue", "green"]},
        ],
        "constraints": [
            {"type": "not_equal", "variables": ["A", "B"]},
            {"type": "incompatible", "variables": ["B", "C"], "pairs": [["red", "green"]], "hard": False},
            {"type": "resource", "variables": ["A", "B", "C"], "limit": 2},
            {"type": "all_different", "name": "distinct"},
        ],
    }


def test_parse_problem_builds_model():
    model = parse_problem(_make_problem())
    names = [variable.name for variable in model.variables()]
    assert names == ["A", "B", "C"]

    a = model.variables()[0]
    assert [value.name for value in a.values()] == ["red", "blue"]
    assert a.values()[1].to_double() == 2.0
    assert a.initial_assignment is a.values()[0]
    assert a.assignment is None

    kinds = [type(constraint) for constraint in model.constraints()]
    assert kinds == [NotEqualConstraint, IncompatiblePairsConstraint, ResourceLimitConstraint]
    assert not model.constraints()[1].is_hard()
    assert model.constraints()[2].limit == 2
    assert len(model.global_constraints()) == 1
    assert isinstance(model.global_constraints()[0], AllDifferentConstraint)
    assert model.global_constraints()[0].name == "distinct"


def test_parse_problem_accepts_json_text():
    model = parse_problem(json.dumps(_make_problem()))
    assert model.count_variables() == 3


@pytest.mark.parametrize(
    "mutate",
    [
        lambda p: p.update(variables=[]),
        lambda p: p["variables"][0].update(values=[]),
        lambda p: p["variables"][0].update(initial="purple"),
        lambda p: p["variables"].append({"name": "A", "values": ["red"]}),
        lambda p: p["variables"][1].update(values=["red", "red"]),
        lambda p: p["constraints"].append({"type": "magic", "variables": ["A"]}),
        lambda p: p["constraints"].append({"type": "not_equal", "variables": ["A", "Z"]}),
        lambda p: p["constraints"].append({"type": "not_equal", "variables": ["A", "B", "C"]}),
        lambda p: p["constraints"].append({"type": "resource", "variables": ["A"], "limit": "2"}),
        lambda p: p["constraints"].append({"type": "incompatible", "variables": ["A", "B"], "pairs": [["red"]]}),
    ],
)
def test_parse_problem_rejects_malformed_input(mutate):
    problem = _make_problem()
    mutate(problem)
    with pytest.raises(ValueError):
        parse_problem(problem)


def test_parse_problem_rejects_bad_json():
    with pytest.raises(ValueError):
        parse_problem("{not json")


def test_load_json_array(tmp_path):
    path = tmp_path / "problems.json"
    path.write_text(json.dumps([_make_problem("a"), _make_problem("b")]))
    problems = load_problems(str(path))
    assert [p["id"] for p in problems] == ["a", "b"]
    assert parse_problem(problems[1]).count_variables() == 3


def test_load_jsonl_skips_bad_lines(tmp_path):
    path = tmp_path / "problems.jsonl"
    lines = [json.dumps(_make_problem("a")), "not json", "", json.dumps(_make_problem("b"))]
    path.write_text("\n".join(lines))
    problems = load_problems(str(path))
    assert [p["id"] for p in problems] == ["a", "b"]


def test_load_csv_problem_column(tmp_path):
    path = tmp_path / "problems.csv"
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(["id", "problem"])
        writer.writerow(["7", json.dumps(_make_problem("ignored"))])
        writer.writerow(["", json.dumps(_make_problem("ignored"))])
    problems = load_problems(str(path))
    assert [p["id"] for p in problems] == ["7", "1"]
    assert problems[0]["variables"][0]["name"] == "A"
    assert parse_problem(problems[0]).count_constraints() == 3


def test_load_directory(tmp_path):
    (tmp_path / "one.json").write_text(json.dumps(_make_problem("one")))
    (tmp_path / "two.json").write_text(json.dumps(_make_problem("two")))
    (tmp_path / "notes.txt").write_text("ignored")
    problems = load_problems(str(tmp_path))
    assert [p["id"] for p in problems] == ["one", "two"]


def test_load_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_problems(str(tmp_path / "missing.json"))
