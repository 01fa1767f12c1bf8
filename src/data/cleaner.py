"""
Row-level cleaning: missing values and exact duplicates.
"""

import logging
from dataclasses import dataclass, asdict
from typing import Dict, Tuple

import numpy as np
import pandas as pd

from src.data.errors import EmptyDatasetError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CleaningReport:
    """Counts recorded while cleaning a raw table."""

    rows_before: int
    rows_after: int
    missing_values_removed: int
    duplicates_removed: int

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


def has_missing_values(df: pd.DataFrame) -> bool:
    """True if any cell is NaN or a numeric cell is +/-inf."""
    has_missing = df.isnull().any().any()
    has_inf = np.isinf(df.select_dtypes(include=[np.number])).any().any()
    return bool(has_missing or has_inf)


def has_duplicates(df: pd.DataFrame) -> bool:
    return bool(df.duplicated().any())


def clean_dataframe(df: pd.DataFrame) -> Tuple[pd.DataFrame, CleaningReport]:
    """
    Drop rows with any missing value, then drop exact duplicate rows.

    Infinite numeric values count as missing. The first occurrence of a
    duplicated row is kept and row order is preserved.

    Raises:
        EmptyDatasetError: if no row survives
    """
    rows_before = len(df)

    cleaned = df.replace([np.inf, -np.inf], np.nan).dropna()
    missing_removed = rows_before - len(cleaned)
    logger.info(f"Removed {missing_removed} rows with missing values")

    rows_after_missing = len(cleaned)
    cleaned = cleaned.drop_duplicates(keep="first")
    duplicates_removed = rows_after_missing - len(cleaned)
    logger.info(f"Removed {duplicates_removed} duplicate rows")

    if cleaned.empty:
        raise EmptyDatasetError(
            f"No rows left after cleaning {rows_before} rows "
            f"({missing_removed} with missing values, {duplicates_removed} duplicates)"
        )

    cleaned = cleaned.reset_index(drop=True)
    report = CleaningReport(
        rows_before=rows_before,
        rows_after=len(cleaned),
        missing_values_removed=missing_removed,
        duplicates_removed=duplicates_removed,
    )
    return cleaned, report
