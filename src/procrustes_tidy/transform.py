"""
Pre-transforms for column blocks.

Each transform takes a table (sites x variables) and returns a
:class:`pandas.DataFrame` that keeps the input row index, so blocks stay
aligned row by row when they reach a procrustes test. Ordinations are
delegated to scikit-learn and distances to SciPy.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable

import numpy as np
import pandas as pd
from scipy.spatial.distance import pdist, squareform
from sklearn.decomposition import PCA
from sklearn.manifold import MDS
from sklearn.preprocessing import StandardScaler

from procrustes_tidy.config import DEFAULT_DISTANCE, DEFAULT_MDS_COMPONENTS

if TYPE_CHECKING:
    from numpy.typing import ArrayLike

logger = logging.getLogger(__name__)

# community-ecology names for scipy.spatial.distance metrics
DISTANCE_ALIASES = {
    "bray": "braycurtis",
    "manhattan": "cityblock",
}


def identity(x: ArrayLike) -> pd.DataFrame:
    """Return the block unchanged, as a DataFrame."""
    return as_frame(x)


def mono_mds(
    x: ArrayLike,
    method: str = DEFAULT_DISTANCE,
    n_components: int = DEFAULT_MDS_COMPONENTS,
    seed: int | None = None,
    **kwargs: Any,
) -> pd.DataFrame:
    """Non-metric multidimensional scaling of a block.

    Pairwise dissimilarities are computed with
    :func:`scipy.spatial.distance.pdist` and embedded with
    :class:`sklearn.manifold.MDS` (``metric_mds=False``, random initialisation).

    Args:
        x: Block, shape (n_sites, n_variables)
        method: Dissimilarity, e.g. "bray" (default), "euclidean", "manhattan",
            or any metric name pdist accepts
        n_components: Number of ordination axes
        seed: Random state for the MDS initialisation
        **kwargs: Extra keyword arguments for MDS (e.g. max_iter, n_init)

    Returns:
        Site scores with columns MDS1..MDSk

    Raises:
        ValueError: If the dissimilarities are undefined (e.g. Bray-Curtis
            between two empty sites)
    """
    frame = as_frame(x)
    metric = DISTANCE_ALIASES.get(method, method)
    dist = pdist(frame.to_numpy(dtype=float), metric=metric)
    if np.isnan(dist).any():
        raise ValueError(
            f"'{method}' dissimilarities contain NaN; check for empty rows"
        )

    kwargs.setdefault("n_init", 4)
    kwargs.setdefault("init", "random")
    mds = MDS(
        n_components=n_components,
        metric_mds=False,
        metric="precomputed",
        random_state=seed,
        **kwargs,
    )
    points = mds.fit_transform(squareform(dist))
    logger.debug("monoMDS on %d sites: stress=%.4f", frame.shape[0], mds.stress_)

    columns = [f"MDS{i + 1}" for i in range(points.shape[1])]
    return pd.DataFrame(points, index=frame.index, columns=columns)


def dudi_pca(
    x: ArrayLike,
    center: bool = True,
    scale: bool = True,
) -> pd.DataFrame:
    """Return the table a correlation PCA is computed on.

    Columns are centred and divided by their population standard deviation.
    Constant columns end up as zeros.

    Args:
        x: Block, shape (n_sites, n_variables)
        center: Subtract column means
        scale: Divide by column standard deviations

    Returns:
        Standardized block with the input labels
    """
    frame = as_frame(x)
    scaler = StandardScaler(with_mean=center, with_std=scale)
    values = scaler.fit_transform(frame.to_numpy(dtype=float))
    return pd.DataFrame(values, index=frame.index, columns=frame.columns)


def pca(
    x: ArrayLike,
    n_components: int | None = None,
) -> pd.DataFrame:
    """Principal component scores of a block.

    Args:
        x: Block, shape (n_sites, n_variables)
        n_components: Number of components to retain. If None, retains
            min(n_sites, n_variables) components.

    Returns:
        PC scores with columns PC1..PCk
    """
    frame = as_frame(x)
    model = PCA(n_components=n_components)
    scores = model.fit_transform(frame.to_numpy(dtype=float))
    logger.debug(
        "PCA on %d sites: variance explained %s",
        frame.shape[0],
        np.round(model.explained_variance_ratio_, 3).tolist(),
    )

    columns = [f"PC{i + 1}" for i in range(scores.shape[1])]
    return pd.DataFrame(scores, index=frame.index, columns=columns)


def hellinger(x: ArrayLike) -> pd.DataFrame:
    """Hellinger transform of count or composition data.

    Each value is divided by its row total and square-rooted. Empty rows
    stay at zero.

    Args:
        x: Nonnegative block, shape (n_sites, n_variables)

    Returns:
        Transformed block with the input labels, values in [0, 1]

    Raises:
        ValueError: If any value is negative
    """
    frame = as_frame(x)
    values = frame.to_numpy(dtype=float, copy=True)
    if np.any(values < 0):
        raise ValueError("hellinger requires nonnegative inputs.")
    row_sums = values.sum(axis=1, keepdims=True)
    row_sums[row_sums == 0] = 1.0
    return pd.DataFrame(
        np.sqrt(values / row_sums), index=frame.index, columns=frame.columns
    )


def log1p_standardize(x: ArrayLike) -> pd.DataFrame:
    """Log1p followed by a column z-score, for right-skewed variables.

    Uses the sample standard deviation. Constant columns, and every column
    of a single-row block, are only centred.

    Args:
        x: Block, shape (n_sites, n_variables), values above -1

    Returns:
        Standardized block with the input labels
    """
    frame = as_frame(x)
    values = np.log1p(frame.to_numpy(dtype=float, copy=True))
    mean = values.mean(axis=0, keepdims=True)
    if values.shape[0] > 1:
        std = values.std(axis=0, ddof=1, keepdims=True)
    else:
        std = np.ones((1, values.shape[1]))
    std[std == 0] = 1.0
    return pd.DataFrame(
        (values - mean) / std, index=frame.index, columns=frame.columns
    )


PRE_TRANSFORMS: dict[str, Callable[..., pd.DataFrame]] = {
    "identity": identity,
    "mono_mds": mono_mds,
    "dudi_pca": dudi_pca,
    "pca": pca,
    "hellinger": hellinger,
    "log1p_standardize": log1p_standardize,
}


def resolve_transform(
    fun: str | Callable[..., Any],
) -> Callable[..., Any]:
    """Look up a pre-transform by name; callables are returned as-is.

    Raises:
        ValueError: If the name is not registered
    """
    if callable(fun):
        return fun
    try:
        return PRE_TRANSFORMS[fun]
    except (KeyError, TypeError):
        raise ValueError(
            f"Unknown pre-transform {fun!r}. "
            f"Choose one of: {', '.join(PRE_TRANSFORMS)}, or pass a callable"
        ) from None


def apply_transform(
    block: pd.DataFrame,
    fun: str | Callable[..., Any],
    params: dict[str, Any] | None = None,
) -> pd.DataFrame:
    """Apply a pre-transform to one block.

    Whatever the transform returns is coerced back to a 2D DataFrame
    indexed like ``block``.

    Raises:
        ValueError: If the transform changes the number of rows
    """
    result = resolve_transform(fun)(block, **(params or {}))
    if len(result) != block.shape[0]:
        raise ValueError(
            f"Pre-transform returned {len(result)} rows, expected {block.shape[0]}"
        )
    if isinstance(result, pd.DataFrame):
        return result

    values = np.asarray(result)
    if values.ndim == 1:
        values = values.reshape(-1, 1)
    return pd.DataFrame(values, index=block.index)


def as_frame(x: ArrayLike) -> pd.DataFrame:
    if isinstance(x, pd.DataFrame):
        return x
    return pd.DataFrame(x)
