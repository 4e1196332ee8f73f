"""
Tidy procrustes tests over column blocks.

:func:`procrustes_test` cuts two matching tables into named column blocks,
pre-transforms every block, tests each spec block against each env block and
returns one row per pair. :func:`fortify_procrustes` repeats that within row
groups and stacks the results.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Callable

import numpy as np
import pandas as pd

from procrustes_tidy.config import (
    DEFAULT_METHOD,
    DEFAULT_PRE_FUN,
    GROUP_COLUMN,
    RESULT_COLUMNS,
)
from procrustes_tidy.procrustes import extract_procrustes, match_method, run_procrustes
from procrustes_tidy.transform import apply_transform, as_frame
from procrustes_tidy.validators import assert_procrustes_table

if TYPE_CHECKING:
    from numpy.typing import ArrayLike

logger = logging.getLogger(__name__)

Selection = Any


def procrustes_test(
    spec: ArrayLike,
    env: ArrayLike,
    method: str = DEFAULT_METHOD,
    spec_select: Mapping[str, Selection] | list[Selection] | None = None,
    env_select: Mapping[str, Selection] | list[Selection] | None = None,
    spec_pre_fun: str | Callable[..., Any] = DEFAULT_PRE_FUN,
    spec_pre_params: dict[str, Any] | None = None,
    env_pre_fun: str | Callable[..., Any] | None = None,
    env_pre_params: dict[str, Any] | None = None,
    **kwargs: Any,
) -> pd.DataFrame:
    """Run a procrustes test on every spec-block x env-block pair.

    Args:
        spec: Species (or any response) table, shape (n_sites, p)
        env: Environmental table, shape (n_sites, q)
        method: Test variant: "protest" (default), "procuste.randtest" or
            "procuste.rtest"; unique prefixes are accepted
        spec_select: Column blocks of ``spec``. Either a mapping of block
            name to column selection, or a list of selections (named
            spec1, spec2, ...). A selection is a column label, a 0-based
            position, a slice, a boolean mask or a list of labels/positions.
            None (default) uses all columns as one block named "spec".
        env_select: Column blocks of ``env``, same forms (unnamed blocks are
            named env1, env2, ...). None (default) makes one block per
            column, named after the column.
        spec_pre_fun: Pre-transform applied to each spec block, by name
            (see ``procrustes_tidy.transform.PRE_TRANSFORMS``) or callable
        spec_pre_params: Extra keyword arguments for ``spec_pre_fun``
        env_pre_fun: Pre-transform for env blocks. Defaults to ``spec_pre_fun``.
        env_pre_params: Extra keyword arguments for ``env_pre_fun``.
            Defaults to ``spec_pre_params``.
        **kwargs: Passed to the test variant (n_permutations, alternative,
            seed). A seed starts one random stream that every pair draws
            from in turn.

    Returns:
        DataFrame with columns spec, env, r, p_value, one row per pair in
        spec-major order. ``attrs["grouped"]`` is False.

    Raises:
        ValueError: If the tables have different row counts, a selection
            argument has the wrong type, or the method is unknown
    """
    method = match_method(method)
    spec = as_frame(spec)
    env = as_frame(env)
    _check_rows(spec, env)

    if spec_select is None:
        spec_items = [("spec", slice(None))]
    else:
        spec_items = make_select_names(spec_select, "spec", "spec_select")
    if env_select is None:
        env_items = [(str(col), [i]) for i, col in enumerate(env.columns)]
    else:
        env_items = make_select_names(env_select, "env", "env_select")

    if env_pre_fun is None:
        env_pre_fun = spec_pre_fun
    if env_pre_params is None:
        env_pre_params = spec_pre_params

    spec_blocks = [
        (name, apply_transform(select_columns(spec, sel, name), spec_pre_fun, spec_pre_params))
        for name, sel in spec_items
    ]
    env_blocks = [
        (name, apply_transform(select_columns(env, sel, name), env_pre_fun, env_pre_params))
        for name, sel in env_items
    ]

    logger.info(
        "Running %s on %d spec x %d env blocks (%d rows)",
        method,
        len(spec_blocks),
        len(env_blocks),
        spec.shape[0],
    )

    if kwargs.get("seed") is not None:
        # one random stream shared by every pair
        kwargs["seed"] = np.random.default_rng(kwargs["seed"])

    spec_names, env_names, results = [], [], []
    for spec_name, spec_block in spec_blocks:
        for env_name, env_block in env_blocks:
            logger.debug("Testing %s ~ %s", spec_name, env_name)
            results.append(run_procrustes(method, spec_block, env_block, **kwargs))
            spec_names.append(spec_name)
            env_names.append(env_name)

    extracted = extract_procrustes(results)
    df = pd.DataFrame(
        {
            "spec": pd.Series(spec_names, dtype=object),
            "env": pd.Series(env_names, dtype=object),
            "r": extracted["r"],
            "p_value": extracted["p_value"],
        },
        columns=RESULT_COLUMNS,
    )
    df = assert_procrustes_table(df)
    df.attrs["grouped"] = False
    return df


def fortify_procrustes(
    spec: ArrayLike,
    env: ArrayLike,
    group: ArrayLike | None = None,
    **kwargs: Any,
) -> pd.DataFrame:
    """Run :func:`procrustes_test`, optionally within groups of rows.

    Args:
        spec: Species table, shape (n_sites, p)
        env: Environmental table, shape (n_sites, q)
        group: Optional group label per row. Rows are split by sorted
            level (missing labels are dropped) and each split is tested
            independently.
        **kwargs: Passed to :func:`procrustes_test`

    Returns:
        Tidy DataFrame. When grouped, a ``group`` column holds each row's
        level and results are stacked in level order.
        ``attrs["grouped"]`` tells whether grouping was applied.

    Raises:
        ValueError: If the tables have different row counts or ``group``
            has the wrong length
    """
    spec = as_frame(spec)
    env = as_frame(env)
    _check_rows(spec, env)

    if group is None:
        df = procrustes_test(spec, env, **kwargs)
        df.attrs["grouped"] = False
        return df

    if len(group) != spec.shape[0]:
        raise ValueError("Length of 'group' and rows of 'spec' must be same.")

    labels = group.reset_index(drop=True) if isinstance(group, pd.Series) else pd.Series(group)
    # missing labels get code -1
    codes, levels = pd.factorize(labels, sort=True)

    frames = []
    for code, level in enumerate(levels):
        positions = np.flatnonzero(codes == code)
        logger.info("Group %r: %d rows", level, len(positions))
        df = procrustes_test(spec.iloc[positions], env.iloc[positions], **kwargs)
        df[GROUP_COLUMN] = level
        frames.append(df)

    if frames:
        df = pd.concat(frames, ignore_index=True)
    else:
        df = pd.DataFrame(columns=RESULT_COLUMNS + [GROUP_COLUMN])
        df = df.astype({"r": float, "p_value": float})
    df = assert_procrustes_table(df)
    df.attrs["grouped"] = True
    return df


def make_select_names(
    select: Mapping[str, Selection] | list[Selection] | tuple[Selection, ...],
    prefix: str,
    arg_name: str,
) -> list[tuple[str, Selection]]:
    """Turn a block selection argument into (name, selection) pairs.

    Mapping keys become block names; list entries are named
    ``{prefix}1``, ``{prefix}2``, ...

    Raises:
        ValueError: If ``select`` is neither a mapping nor a list/tuple
    """
    if isinstance(select, Mapping):
        return [
            (str(name) if name not in (None, "") else f"{prefix}{i}", sel)
            for i, (name, sel) in enumerate(select.items(), start=1)
        ]
    if isinstance(select, (list, tuple)):
        return [(f"{prefix}{i}", sel) for i, sel in enumerate(select, start=1)]
    raise ValueError(f"'{arg_name}' needs a mapping, a list or None.")


def select_columns(
    frame: pd.DataFrame,
    selection: Selection,
    block: str = "block",
) -> pd.DataFrame:
    """Select the columns of one block.

    Strings are column labels, integers are 0-based positions. A slice of
    labels selects by label and includes its stop label.

    Raises:
        KeyError: If a label is not a column
        IndexError: If a position is out of range
        ValueError: If the selection is empty or a label is ambiguous
    """
    if isinstance(selection, slice):
        if _is_label_slice(selection):
            for bound in (selection.start, selection.stop):
                if bound is not None:
                    _column_position(frame, bound, block)
            subset = frame.loc[:, selection]
        else:
            subset = frame.iloc[:, selection]
    else:
        if isinstance(selection, str) or np.isscalar(selection):
            selection = [selection]
        items = list(selection)
        if items and all(isinstance(item, (bool, np.bool_)) for item in items):
            if len(items) != frame.shape[1]:
                raise ValueError(
                    f"Boolean selection for block '{block}' has {len(items)} "
                    f"entries, expected {frame.shape[1]}"
                )
            subset = frame.loc[:, np.asarray(items, dtype=bool)]
        else:
            subset = frame.iloc[:, [_column_position(frame, item, block) for item in items]]

    if subset.shape[1] == 0:
        raise ValueError(f"Block '{block}' selects no columns")
    return subset


def _column_position(frame: pd.DataFrame, item: Any, block: str) -> int:
    n_cols = frame.shape[1]
    if isinstance(item, (int, np.integer)) and not isinstance(item, (bool, np.bool_)):
        if not -n_cols <= item < n_cols:
            raise IndexError(
                f"Column position {item} in block '{block}' is out of range "
                f"for a table with {n_cols} columns"
            )
        return int(item) % n_cols

    if item not in frame.columns:
        raise KeyError(f"Column {item!r} in block '{block}' not found")
    position = frame.columns.get_loc(item)
    if not isinstance(position, (int, np.integer)):
        raise ValueError(f"Column label {item!r} in block '{block}' is not unique")
    return int(position)


def _is_label_slice(selection: slice) -> bool:
    return any(
        bound is not None and not isinstance(bound, (int, np.integer))
        for bound in (selection.start, selection.stop)
    )


def _check_rows(spec: pd.DataFrame, env: pd.DataFrame) -> None:
    if spec.shape[0] != env.shape[0]:
        raise ValueError("'spec' must have the same rows as 'env'.")
