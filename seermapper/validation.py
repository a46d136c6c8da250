"""
Shared validation utilities for boundary datasets.

Every partition and attribute table read from a boundary store passes
through here so the assembler can rely on zero-padded string codes and a
fixed set of columns, whatever wrote the files.
"""
from __future__ import annotations

from typing import Optional, Set

import pandas as pd

BOUNDARY_COLUMNS = {"region_id", "state_fips", "registry", "geometry"}
ATTRIBUTE_COLUMNS = {"region_id", "state_fips"}


def validate_boundary_schema(
    df: pd.DataFrame,
    required_columns: Set[str],
    source: Optional[str] = None
) -> None:
    """
    Validate that a DataFrame has all required columns.

    Args:
        df: DataFrame to validate
        required_columns: Set of column names that must be present
        source: Optional dataset name (for error messages)

    Raises:
        ValueError: if any required columns are missing
    """
    missing = required_columns - set(df.columns)
    if missing:
        origin = f" in {source}" if source else ""
        raise ValueError(
            f"Missing required columns{origin}: {sorted(missing)}. "
            f"Found columns: {sorted(map(str, df.columns))}"
        )


def validate_region_ids(
    df: pd.DataFrame,
    width: Optional[int] = None,
    id_column: str = "region_id",
    source: Optional[str] = None
) -> None:
    """
    Check region ids are present, unique and (optionally) fixed width.

    Raises:
        ValueError: if validation fails
    """
    origin = f" in {source}" if source else ""
    null_count = df[id_column].isna().sum()
    if null_count > 0:
        raise ValueError(f"Found {null_count} null values in '{id_column}'{origin}")

    dup_count = df.duplicated(subset=[id_column]).sum()
    if dup_count > 0:
        raise ValueError(f"Found {dup_count} duplicate '{id_column}' values{origin}")

    if width is not None and len(df):
        bad = df.loc[df[id_column].str.len() != width, id_column]
        if len(bad):
            raise ValueError(
                f"Column '{id_column}'{origin} must hold {width}-character codes, "
                f"got {bad.iloc[0]!r}"
            )


def enforce_code_types(df: pd.DataFrame, width: Optional[int] = None) -> pd.DataFrame:
    """
    Enforce string code columns.

    Numeric region ids (a store written by a tool that parsed codes as
    numbers) are zero-padded back to ``width``; state codes to two digits.
    Returns a copy when anything changes.
    """
    result = df
    copied = False

    def _copy():
        nonlocal result, copied
        if not copied:
            result = df.copy()
            copied = True

    if "region_id" in df.columns and not pd.api.types.is_string_dtype(df["region_id"]):
        _copy()
        ids = result["region_id"]
        if pd.api.types.is_numeric_dtype(ids) and width is not None:
            result["region_id"] = ids.astype("int64").astype(str).str.zfill(width)
        else:
            result["region_id"] = ids.astype(str)

    if "state_fips" in df.columns and not pd.api.types.is_string_dtype(df["state_fips"]):
        _copy()
        result["state_fips"] = result["state_fips"].astype("int64").astype(str).str.zfill(2)

    if "registry" not in df.columns:
        _copy()
        result["registry"] = None

    return result
