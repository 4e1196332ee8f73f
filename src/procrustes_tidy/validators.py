from __future__ import annotations

import pandas as pd
from pandera.pandas import Check, Column, DataFrameSchema

from procrustes_tidy.config import GROUP_COLUMN

is_label = Check(lambda v: isinstance(v, str), element_wise=True, name="is_label")

procrustes_table_schema = DataFrameSchema(
    {
        "spec": Column(checks=is_label, nullable=False),
        "env": Column(checks=is_label, nullable=False),
        "r": Column(float, nullable=True),
        "p_value": Column(float, Check.in_range(0.0, 1.0), nullable=True),
        GROUP_COLUMN: Column(nullable=False, required=False),
    },
    strict=True,
    ordered=True,
)


def assert_procrustes_table(df: pd.DataFrame) -> pd.DataFrame:
    """Validate a tidy procrustes table, raising ``SchemaErrors`` with every failure."""
    return procrustes_table_schema.validate(df, lazy=True)
