"""
Procrustes test variants.

This module exposes three flavours of the same question (how well does one
configuration superimpose onto another, and is the fit better than chance)
behind a common result type:

- ``protest``: symmetric procrustes correlation from
  :func:`scipy.spatial.procrustes`.
- ``procuste_randtest`` / ``procuste_rtest``: sum of the singular values of
  the cross-product of the column-centred, unit-inertia tables, i.e. the
  ``scale`` returned by :func:`scipy.linalg.orthogonal_procrustes`.

Significance is always obtained with :func:`scipy.stats.permutation_test`
by permuting the rows of the second table.

Based on Jackson (1995) "PROTEST: a PROcrustean randomization TEST of
community environment concordance" and Peres-Neto and Jackson (2001).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Sequence

import numpy as np
import scipy.linalg as sp
from scipy import stats
from scipy.spatial import procrustes as scipy_procrustes

from procrustes_tidy.config import (
    ALTERNATIVES,
    DEFAULT_ALTERNATIVE,
    DEFAULT_PERMUTATIONS,
    METHODS,
)

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray

logger = logging.getLogger(__name__)


@dataclass
class ProcrustesTestResult:
    """Result of a procrustes permutation test.

    Attributes:
        method: Name of the test variant that produced the result
        statistic: Observed procrustes correlation
        pvalue: Permutation p-value
        n_permutations: Number of row orders in the null distribution
        alternative: Side of the test ("greater", "less" or "two-sided")
        null_distribution: Statistic under each row permutation
    """

    method: str
    statistic: float
    pvalue: float
    n_permutations: int
    alternative: str
    null_distribution: NDArray[np.floating]

    @property
    def ss(self) -> float:
        """Symmetric procrustes sum of squares, ``1 - r**2``."""
        return 1.0 - self.statistic**2


def pad_columns(
    x: NDArray[np.floating],
    y: NDArray[np.floating],
) -> tuple[NDArray[np.floating], NDArray[np.floating]]:
    """Zero-pad the narrower of two tables so both have the same width.

    Extra zero columns change neither the centred inertia nor the singular
    values of the cross-product, so the statistic is unaffected.

    Args:
        x: First table, shape (n_rows, p)
        y: Second table, shape (n_rows, q)

    Returns:
        Both tables with max(p, q) columns
    """
    n_cols = max(x.shape[1], y.shape[1])
    return _pad(x, n_cols), _pad(y, n_cols)


def normalise(matrix: NDArray[np.floating]) -> NDArray[np.floating]:
    """Column-centre a table and scale it to unit total inertia.

    Args:
        matrix: Table, shape (n_rows, n_cols)

    Returns:
        Centred table with unit Frobenius norm

    Raises:
        ValueError: If every row is identical
    """
    centered = matrix - matrix.mean(axis=0)
    norm = np.linalg.norm(centered)
    if norm == 0:
        raise ValueError("Input table has zero total inertia (all rows identical)")
    return centered / norm


def protest(
    x: ArrayLike,
    y: ArrayLike,
    n_permutations: int = DEFAULT_PERMUTATIONS["protest"],
    alternative: str = DEFAULT_ALTERNATIVE,
    seed: int | np.random.Generator | None = None,
) -> ProcrustesTestResult:
    """Procrustean randomization test on the symmetric procrustes correlation.

    Both tables are standardized by :func:`scipy.spatial.procrustes`; the
    correlation is ``sqrt(1 - disparity)``.

    Args:
        x: First configuration, shape (n_rows, p)
        y: Second configuration, shape (n_rows, q)
        n_permutations: Number of random row permutations
        alternative: Side of the test
        seed: Seed or generator for the permutations

    Returns:
        ProcrustesTestResult with method "protest"
    """
    x, y = _prepare(x, y)

    def statistic(index):
        _, _, disparity = scipy_procrustes(x, y[index])
        return np.sqrt(max(1.0 - disparity, 0.0))

    res = _permutation_test(statistic, x.shape[0], n_permutations, alternative, seed)
    return _to_result("protest", res, alternative)


def procuste_randtest(
    x: ArrayLike,
    y: ArrayLike,
    n_permutations: int = DEFAULT_PERMUTATIONS["procuste_randtest"],
    alternative: str = DEFAULT_ALTERNATIVE,
    seed: int | np.random.Generator | None = None,
) -> ProcrustesTestResult:
    """Randomization test on the sum of singular values of ``x'y``.

    Args:
        x: First table, shape (n_rows, p)
        y: Second table, shape (n_rows, q)
        n_permutations: Number of random row permutations
        alternative: Side of the test
        seed: Seed or generator for the permutations

    Returns:
        ProcrustesTestResult with method "procuste_randtest"
    """
    statistic, n_rows = _trace_statistic(x, y)
    res = _permutation_test(statistic, n_rows, n_permutations, alternative, seed)
    return _to_result("procuste_randtest", res, alternative)


def procuste_rtest(
    x: ArrayLike,
    y: ArrayLike,
    n_permutations: int = DEFAULT_PERMUTATIONS["procuste_rtest"],
    seed: int | np.random.Generator | None = None,
) -> ProcrustesTestResult:
    """Monte-Carlo test on the sum of singular values of ``x'y``.

    Same statistic as :func:`procuste_randtest`, always one-sided
    ("greater") and with a smaller default number of repetitions.
    """
    statistic, n_rows = _trace_statistic(x, y)
    res = _permutation_test(statistic, n_rows, n_permutations, "greater", seed)
    return _to_result("procuste_rtest", res, "greater")


PROCRUSTES_METHODS: dict[str, Callable[..., ProcrustesTestResult]] = {
    "protest": protest,
    "procuste_randtest": procuste_randtest,
    "procuste_rtest": procuste_rtest,
}


def match_method(name: str) -> str:
    """Resolve a test variant name.

    Dotted names ("procuste.randtest") and unique prefixes ("procuste.ra")
    are accepted.

    Args:
        name: Requested variant

    Returns:
        Canonical variant name, one of ``METHODS``

    Raises:
        ValueError: If the name is unknown or ambiguous
    """
    if not isinstance(name, str):
        raise ValueError(f"Procrustes method must be a string, got {type(name).__name__}")

    key = name.strip().replace(".", "_")
    if key in METHODS:
        return key

    candidates = [m for m in METHODS if key and m.startswith(key)]
    if len(candidates) == 1:
        return candidates[0]

    raise ValueError(
        f"Unknown procrustes method '{name}'. "
        f"Choose one of: {', '.join(m.replace('_', '.') for m in METHODS)}"
    )


def run_procrustes(
    method: str,
    x: ArrayLike,
    y: ArrayLike,
    **kwargs: Any,
) -> ProcrustesTestResult:
    """Run the named test variant on two tables.

    Args:
        method: Variant name, see :func:`match_method`
        x: First table
        y: Second table
        **kwargs: Passed to the variant (n_permutations, alternative, seed)

    Returns:
        ProcrustesTestResult
    """
    method = match_method(method)
    result = PROCRUSTES_METHODS[method](x, y, **kwargs)
    logger.debug(
        "%s: r=%.4f p=%.4g (%d permutations)",
        method,
        result.statistic,
        result.pvalue,
        result.n_permutations,
    )
    return result


def extract_procrustes(
    results: Sequence[ProcrustesTestResult],
) -> dict[str, NDArray[np.floating]]:
    """Collect statistics and p-values from several test results.

    Args:
        results: Test results in output order

    Returns:
        Dict with "r" and "p_value" arrays, one entry per result
    """
    r = np.array([res.statistic for res in results], dtype=float)
    p_value = np.array([res.pvalue for res in results], dtype=float)
    return {"r": r, "p_value": p_value}


def _as_matrix(data: ArrayLike, name: str) -> NDArray[np.floating]:
    """Coerce table-like input to a 2D float array."""
    matrix = np.asarray(data, dtype=float)
    if matrix.ndim == 1:
        matrix = matrix.reshape(-1, 1)
    if matrix.ndim != 2:
        raise ValueError(f"'{name}' must be two-dimensional, got {matrix.ndim} dimensions")
    if matrix.size == 0:
        raise ValueError(f"'{name}' is empty")
    return matrix


def _prepare(
    x: ArrayLike,
    y: ArrayLike,
) -> tuple[NDArray[np.floating], NDArray[np.floating]]:
    """Validate a pair of tables and pad them to a common width."""
    x = _as_matrix(x, "x")
    y = _as_matrix(y, "y")
    if x.shape[0] != y.shape[0]:
        raise ValueError(
            f"'x' and 'y' must have the same number of rows, "
            f"got {x.shape[0]} and {y.shape[0]}"
        )
    return pad_columns(x, y)


def _trace_statistic(
    x: ArrayLike,
    y: ArrayLike,
) -> tuple[Callable[[NDArray[np.integer]], float], int]:
    """Build the singular-value-sum statistic over row orders of ``y``."""
    x, y = _prepare(x, y)
    # centring and scaling do not depend on row order
    x = normalise(x)
    y = normalise(y)

    def statistic(index):
        _, scale = sp.orthogonal_procrustes(x, y[index])
        return float(scale)

    return statistic, x.shape[0]


def _permutation_test(
    statistic: Callable[[NDArray[np.integer]], float],
    n_rows: int,
    n_permutations: int,
    alternative: str,
    seed: int | np.random.Generator | None,
) -> Any:
    """Permute row indices and evaluate ``statistic`` on each order."""
    if alternative not in ALTERNATIVES:
        raise ValueError(
            f"alternative must be one of {', '.join(ALTERNATIVES)}, got '{alternative}'"
        )

    def permuted(index):
        return statistic(np.asarray(index, dtype=int))

    return stats.permutation_test(
        (np.arange(n_rows),),
        permuted,
        permutation_type="pairings",
        vectorized=False,
        n_resamples=n_permutations,
        alternative=alternative,
        rng=seed,
    )


def _to_result(method: str, res: Any, alternative: str) -> ProcrustesTestResult:
    null_distribution = np.asarray(res.null_distribution, dtype=float)
    return ProcrustesTestResult(
        method=method,
        statistic=float(res.statistic),
        pvalue=float(res.pvalue),
        n_permutations=int(null_distribution.size),
        alternative=alternative,
        null_distribution=null_distribution,
    )


def _pad(matrix: NDArray[np.floating], n_cols: int) -> NDArray[np.floating]:
    missing = n_cols - matrix.shape[1]
    if missing == 0:
        return matrix
    return np.hstack([matrix, np.zeros((matrix.shape[0], missing))])
