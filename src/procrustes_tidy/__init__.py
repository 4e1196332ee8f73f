"""
procrustes-tidy - tidy procrustes tests between blocks of two tables.

A small convenience layer that runs procrustes permutation tests (PROTEST
and its singular-value-sum variants) between column blocks of a species
table and an environmental table, and collects the correlation and
p-value of every pair into one tidy pandas DataFrame.

Example usage:
    >>> import procrustes_tidy as pt
    >>>
    >>> # Load matching tables (one row per site)
    >>> spec, env = pt.load_tables("varespec.csv", "varechem.csv")
    >>>
    >>> # One row per env column, whole spec table as a single block
    >>> df = pt.procrustes_test(spec, env, seed=1)
    >>>
    >>> # Named blocks, non-metric MDS before testing
    >>> df = pt.procrustes_test(
    ...     spec, env,
    ...     method="procuste.randtest",
    ...     spec_select={"spec01": range(0, 6), "spec02": range(6, 12)},
    ...     env_select={"env01": range(0, 4), "env02": range(4, 14)},
    ...     spec_pre_fun="mono_mds",
    ... )
    >>>
    >>> # Independent analyses per group of sites
    >>> df = pt.fortify_procrustes(spec, env, group=site_groups)
"""

import logging

from procrustes_tidy.io import (
    load_tables,
    read_table,
    write_table,
)
from procrustes_tidy.procrustes import (
    PROCRUSTES_METHODS,
    ProcrustesTestResult,
    extract_procrustes,
    match_method,
    procuste_randtest,
    procuste_rtest,
    protest,
    run_procrustes,
)
from procrustes_tidy.tidy import (
    fortify_procrustes,
    procrustes_test,
)
from procrustes_tidy.transform import (
    PRE_TRANSFORMS,
    dudi_pca,
    hellinger,
    identity,
    log1p_standardize,
    mono_mds,
    pca,
)
from procrustes_tidy.validators import assert_procrustes_table

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"

__all__ = [
    # Version
    "__version__",
    # Tidy tests
    "procrustes_test",
    "fortify_procrustes",
    "assert_procrustes_table",
    # Test variants
    "ProcrustesTestResult",
    "PROCRUSTES_METHODS",
    "protest",
    "procuste_randtest",
    "procuste_rtest",
    "match_method",
    "run_procrustes",
    "extract_procrustes",
    # Pre-transforms
    "PRE_TRANSFORMS",
    "identity",
    "mono_mds",
    "dudi_pca",
    "pca",
    "hellinger",
    "log1p_standardize",
    # I/O functions
    "read_table",
    "write_table",
    "load_tables",
]
