"""
Seeded train/validation/test partitioning of row indices.
"""

import logging
import math
from dataclasses import dataclass
from typing import Dict, Mapping, Optional

import numpy as np
from sklearn.model_selection import train_test_split

from src.data.errors import InvalidSplitError

logger = logging.getLogger(__name__)

PERCENT_TOLERANCE = 1e-6
PARTITIONS = ("train", "validation", "test")


@dataclass(frozen=True)
class Split:
    """Positional row indices of each partition."""

    train: np.ndarray
    validation: np.ndarray
    test: np.ndarray

    @property
    def sizes(self) -> Dict[str, int]:
        return {
            "train": len(self.train),
            "validation": len(self.validation),
            "test": len(self.test),
        }

    @property
    def total(self) -> int:
        return len(self.train) + len(self.validation) + len(self.test)

    def percentages(self) -> Dict[str, float]:
        """Realized share of each partition, in percent."""
        total = self.total
        return {name: 100.0 * size / total for name, size in self.sizes.items()}


def validate_percentages(percentages: Mapping[str, float]) -> Dict[str, float]:
    """Check that train/validation/test are present, non-negative and sum to 100."""
    missing = [name for name in PARTITIONS if name not in percentages]
    if missing:
        raise InvalidSplitError(f"Split percentages missing: {missing}")

    values = {name: float(percentages[name]) for name in PARTITIONS}
    negative = {name: v for name, v in values.items() if v < 0 or math.isnan(v)}
    if negative:
        raise InvalidSplitError(f"Split percentages must be non-negative: {negative}")

    total = sum(values.values())
    if abs(total - 100.0) > PERCENT_TOLERANCE:
        raise InvalidSplitError(
            f"Split percentages must sum to 100, got {total} ({values})"
        )
    return values


def partition_sizes(n_rows: int, percentages: Mapping[str, float]) -> Dict[str, int]:
    """
    Row counts per partition.

    Validation and test sizes are rounded half up; the remainder goes to
    train, so every partition is within one row of its exact share.
    """
    values = validate_percentages(percentages)
    n_val = int(math.floor(n_rows * values["validation"] / 100.0 + 0.5))
    n_test = int(math.floor(n_rows * values["test"] / 100.0 + 0.5))
    sizes = {"train": n_rows - n_val - n_test, "validation": n_val, "test": n_test}

    empty = [name for name, size in sizes.items() if size <= 0]
    if empty:
        raise InvalidSplitError(
            f"Partitions {empty} would be empty with {n_rows} rows and "
            f"percentages {values}"
        )
    return sizes


def split_indices(
    n_rows: int,
    percentages: Mapping[str, float],
    random_seed: int = 42,
    stratify_labels: Optional[np.ndarray] = None,
) -> Split:
    """
    Partition ``range(n_rows)`` into train/validation/test.

    The seed fully determines the assignment for a given row count.

    Args:
        n_rows: Number of rows in the encoded table
        percentages: {"train", "validation", "test"} summing to 100
        random_seed: Seed passed to train_test_split
        stratify_labels: Optional label codes to preserve class ratios
    """
    sizes = partition_sizes(n_rows, percentages)
    indices = np.arange(n_rows)

    try:
        # First split: train+val vs test
        train_val, test = train_test_split(
            indices,
            test_size=sizes["test"],
            random_state=random_seed,
            stratify=stratify_labels,
        )
        # Second split: train vs val
        train, val = train_test_split(
            train_val,
            test_size=sizes["validation"],
            random_state=random_seed,
            stratify=None if stratify_labels is None else stratify_labels[train_val],
        )
    except ValueError as e:
        raise InvalidSplitError(f"Could not split {n_rows} rows: {e}") from e

    split = Split(train=train, validation=val, test=test)
    logger.info(
        f"Train: {len(train):,} | Val: {len(val):,} | Test: {len(test):,}"
    )
    return split
