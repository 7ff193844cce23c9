from __future__ import annotations

import json
import math
from pathlib import Path
from typing import Any

import pandas as pd


def ensure_dir(p: str | Path) -> Path:
    path = Path(p)
    path.mkdir(parents=True, exist_ok=True)
    return path


def _jsonable(obj: Any) -> Any:
    if isinstance(obj, float) and math.isnan(obj):
        return None
    if isinstance(obj, Path):
        return obj.as_posix()
    if isinstance(obj, (set, frozenset)):
        return sorted(obj)
    if isinstance(obj, dict):
        return {str(k): _jsonable(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_jsonable(v) for v in obj]
    return obj


def write_json(obj: Any, path: str | Path) -> None:
    """Write run metadata; NaN becomes null, paths and sets are made serialisable."""
    path = Path(path)
    ensure_dir(path.parent)
    path.write_text(json.dumps(_jsonable(obj), indent=2, sort_keys=True))


def write_table(df: pd.DataFrame, path: str | Path) -> Path:
    path = Path(path)
    ensure_dir(path.parent)
    df.to_csv(path, sep="\t", index=False, na_rep="nan")
    return path
