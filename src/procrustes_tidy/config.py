"""Package-wide defaults."""

from __future__ import annotations

# procrustes test variants, in matching order
METHODS = ("protest", "procuste_randtest", "procuste_rtest")
DEFAULT_METHOD = "protest"

# repetitions used when the caller does not pass n_permutations
DEFAULT_PERMUTATIONS = {
    "protest": 999,
    "procuste_randtest": 999,
    "procuste_rtest": 99,
}
DEFAULT_ALTERNATIVE = "greater"
ALTERNATIVES = ("greater", "less", "two-sided")

# pre-transforms
DEFAULT_PRE_FUN = "identity"
DEFAULT_DISTANCE = "bray"
DEFAULT_MDS_COMPONENTS = 2

# tidy table layout
RESULT_COLUMNS = ["spec", "env", "r", "p_value"]
GROUP_COLUMN = "group"
