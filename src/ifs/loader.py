import json
import os
from typing import Any, Dict, List

import pandas as pd

from src.utils.logging_utils import get_logger

logger = get_logger("loader")

SUPPORTED_SUFFIXES = (".json", ".jsonl", ".csv", ".parquet")


def _to_builtin(value: Any) -> Any:
    """Turn the numpy containers pandas hands back into plain lists and dicts."""
    if hasattr(value, "tolist") and not isinstance(value, (str, bytes)):
        value = value.tolist()
    if isinstance(value, dict):
        return {key: _to_builtin(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_builtin(item) for item in value]
    return value


def _normalize_record(record: Dict[str, Any], index: int) -> Dict[str, Any]:
    """Unpack a ``problem`` JSON column into the record and make sure it has an id."""
    record = _to_builtin(record)
    embedded = record.pop("problem", None)
    if isinstance(embedded, str) and embedded.strip():
        try:
            payload = json.loads(embedded)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Record {index}: problem column is not valid JSON: {exc}") from exc
        if not isinstance(payload, dict):
            raise ValueError(f"Record {index}: problem column must hold a JSON object")
        for key, value in payload.items():
            record.setdefault(key, value)
    elif isinstance(embedded, dict):
        for key, value in embedded.items():
            record.setdefault(key, value)
    raw_id = record.get("id")
    if raw_id is None or raw_id == "" or (isinstance(raw_id, float) and pd.isna(raw_id)):
        record["id"] = str(index)
    else:
        record["id"] = str(raw_id)
    return record


def _read_jsonl(file_path: str) -> List[Dict[str, Any]]:
    data = []
    with open(file_path, "r", encoding="utf-8") as f:
        for line_no, line in enumerate(f, 1):
            if not line.strip():
                continue
            try:
                obj = json.loads(line)
            except json.JSONDecodeError:
                logger.warning("%s:%d: skipping line that is not valid JSON", file_path, line_no)
                continue
            if isinstance(obj, dict):
                data.append(obj)
    return data


def load_problems(file_path: str) -> List[Dict[str, Any]]:
    """
    Reads problem instances from a file or from every supported file in a directory.
    Handles .json (object or array), .jsonl, .csv and .parquet; tabular formats
    carry the instance as a JSON string in a ``problem`` column.
    Returns a list of raw problem dictionaries, each with a string ``id``.
    """
    if not os.path.exists(file_path):
        raise FileNotFoundError(f"File not found: {file_path}")

    if os.path.isdir(file_path):
        problems: List[Dict[str, Any]] = []
        for name in sorted(os.listdir(file_path)):
            if name.endswith(SUPPORTED_SUFFIXES):
                problems.extend(load_problems(os.path.join(file_path, name)))
        return problems

    if file_path.endswith(".parquet"):
        records = pd.read_parquet(file_path).to_dict(orient="records")
    elif file_path.endswith(".csv"):
        records = pd.read_csv(file_path, dtype=str, keep_default_na=False).to_dict(orient="records")
    elif file_path.endswith(".json"):
        with open(file_path, "r", encoding="utf-8") as f:
            try:
                payload = json.load(f)
            except json.JSONDecodeError:
                # Some sources use ".json" for line-delimited files.
                payload = None
        if payload is None:
            records = _read_jsonl(file_path)
        elif isinstance(payload, list):
            records = [p for p in payload if isinstance(p, dict)]
        elif isinstance(payload, dict):
            records = [payload]
        else:
            raise ValueError(f"{file_path}: expected a JSON object or array")
    else:
        records = _read_jsonl(file_path)

    problems = [_normalize_record(record, index) for index, record in enumerate(records)]
    logger.info("Loaded %d problem(s) from %s", len(problems), file_path)
    return problems
