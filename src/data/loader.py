"""
Raw data loading for the worker productivity dataset.

Reads a delimited text file with a header row into a DataFrame and checks
the schema the rest of the pipeline relies on.
"""

import csv
import logging
from pathlib import Path
from typing import Optional, Sequence

import pandas as pd

from src.data.errors import ConfigError, DataIOError, FormatError

logger = logging.getLogger(__name__)


def _check_layout(path: Path, sep: str) -> None:
    """Reject repeated header names and rows whose width differs from the header."""
    try:
        with open(path, newline="", encoding="utf-8") as f:
            reader = csv.reader(f, delimiter=sep)
            header = next(reader, [])

            # pandas silently renames repeated headers to "col.1", "col.2", ...
            duplicated = sorted({name for name in header if header.count(name) > 1})
            if duplicated:
                raise FormatError(f"Duplicated column names in header: {duplicated}")

            # pandas pads short rows with NaN instead of failing
            for row in reader:
                if row and len(row) != len(header):
                    raise FormatError(
                        f"Line {reader.line_num} of {path} has {len(row)} fields, "
                        f"expected {len(header)}"
                    )
    except csv.Error as e:
        raise FormatError(f"Could not parse {path}: {e}") from e
    except OSError as e:
        raise DataIOError(f"Could not read {path}: {e}") from e


def load_raw_data(
    path,
    sep: str = ",",
    label_column: Optional[str] = None,
    drop_columns: Sequence[str] = (),
) -> pd.DataFrame:
    """
    Load the raw table from a delimited file.

    Args:
        path: Path to the CSV/TSV file
        sep: Field delimiter
        label_column: If given, the column must be present
        drop_columns: Columns removed right after loading (e.g. row ids)

    Raises:
        DataIOError: file missing or unreadable
        FormatError: unparsable content or unexpected schema
        ConfigError: separator is not a single character
    """
    if len(sep) != 1:
        raise ConfigError(f"Separator must be a single character, got {sep!r}")

    path = Path(path)
    if not path.is_file():
        raise DataIOError(f"Raw data not found at {path}")

    try:
        df = pd.read_csv(path, sep=sep)
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
        raise FormatError(f"Could not parse {path}: {e}") from e
    except OSError as e:
        raise DataIOError(f"Could not read {path}: {e}") from e

    if df.shape[1] == 0:
        raise FormatError(f"No columns found in {path}")

    _check_layout(path, sep)

    if label_column is not None and label_column not in df.columns:
        raise FormatError(
            f"Label column '{label_column}' not found. "
            f"Available columns: {list(df.columns)}"
        )

    missing_drop = [c for c in drop_columns if c not in df.columns]
    if missing_drop:
        raise FormatError(f"Columns to drop not found in data: {missing_drop}")
    if drop_columns:
        df = df.drop(columns=list(drop_columns))
        logger.info(f"Dropped columns: {list(drop_columns)}")

    logger.info(f"Loaded {len(df):,} rows x {df.shape[1]} columns from {path}")
    return df
