"""
I/O functions for observation tables and tidy results.

Supports:
- CSV (.csv)
- Tab-separated text (.tsv, .txt)
- JSON (.json), in pandas' "split" orientation when writing

Observation tables are read with the first column as the row (site) index,
which keeps ``spec`` and ``env`` tables aligned by position.
"""

from __future__ import annotations

import json
from pathlib import Path

import pandas as pd


def read_table(
    filepath: str | Path,
    index_col: int | str | None = 0,
) -> pd.DataFrame:
    """Read an observation table from a file.

    Automatically detects the file format based on extension.

    Args:
        filepath: Path to a .csv, .tsv, .txt or .json file
        index_col: Column to use as row index for delimited files
            (first column by default; None for no index)

    Returns:
        Table with one row per site

    Raises:
        ValueError: If file format is not supported
        FileNotFoundError: If file does not exist
    """
    filepath = Path(filepath)

    if not filepath.exists():
        raise FileNotFoundError(f"File not found: {filepath}")

    suffix = filepath.suffix.lower()

    if suffix == ".csv":
        return pd.read_csv(filepath, index_col=index_col)
    elif suffix in (".tsv", ".txt"):
        return pd.read_csv(filepath, sep="\t", index_col=index_col)
    elif suffix == ".json":
        return _read_json(filepath)
    else:
        raise ValueError(
            f"Unsupported file format: {suffix}. "
            "Supported formats: .csv, .tsv, .txt, .json"
        )


def write_table(
    df: pd.DataFrame,
    filepath: str | Path,
    index: bool = False,
) -> None:
    """Write a table (typically a tidy procrustes result) to a file.

    Args:
        df: Table to write
        filepath: Output file path (.csv, .tsv, .txt or .json)
        index: Also write the row index

    Raises:
        ValueError: If file format is not supported
    """
    filepath = Path(filepath)
    suffix = filepath.suffix.lower()

    if suffix == ".csv":
        df.to_csv(filepath, index=index)
    elif suffix in (".tsv", ".txt"):
        df.to_csv(filepath, sep="\t", index=index)
    elif suffix == ".json":
        df.to_json(filepath, orient="split", index=index, indent=2)
    else:
        raise ValueError(
            f"Unsupported file format: {suffix}. "
            "Supported formats: .csv, .tsv, .txt, .json"
        )


def load_tables(
    spec_path: str | Path,
    env_path: str | Path,
    index_col: int | str | None = 0,
) -> tuple[pd.DataFrame, pd.DataFrame]:
    """Load a matching pair of spec and env tables.

    Raises:
        ValueError: If the two tables have different numbers of rows
    """
    spec = read_table(spec_path, index_col=index_col)
    env = read_table(env_path, index_col=index_col)
    if spec.shape[0] != env.shape[0]:
        raise ValueError(
            f"Inconsistent row counts: {spec_path} has {spec.shape[0]}, "
            f"{env_path} has {env.shape[0]}"
        )
    return spec, env


def _read_json(filepath: Path) -> pd.DataFrame:
    """Read a JSON table written by :func:`write_table` or a plain records list."""
    with open(filepath) as f:
        content = json.load(f)

    if isinstance(content, dict) and "columns" in content and "data" in content:
        return pd.DataFrame(
            content["data"],
            columns=content["columns"],
            index=content.get("index"),
        )
    try:
        return pd.DataFrame(content)
    except ValueError as e:
        raise ValueError(f"Invalid table JSON format in {filepath}") from e
