"""Shared fixtures: synthetic remote worker productivity data."""

import numpy as np
import pandas as pd
import pytest

LABELS = ["High", "Low", "Medium", "Very High"]
LOCATIONS = ["Hybrid", "Office", "Remote"]
SECTORS = ["Education", "Finance", "Healthcare", "IT"]


def make_worker_frame(n_rows: int, seed: int = 0) -> pd.DataFrame:
    """Unique, complete rows shaped like the raw productivity dataset."""
    rng = np.random.default_rng(seed)
    df = pd.DataFrame({
        "location_type": rng.choice(LOCATIONS, size=n_rows),
        "industry_sector": rng.choice(SECTORS, size=n_rows),
        "age": rng.integers(22, 60, size=n_rows),
        "experience_years": rng.integers(0, 35, size=n_rows),
        "average_daily_work_hours": np.round(rng.uniform(4, 11, size=n_rows), 2),
        "break_frequency_per_day": rng.integers(0, 8, size=n_rows),
        "task_completion_rate": np.round(rng.uniform(0.3, 1.0, size=n_rows), 3),
        "late_task_ratio": np.round(rng.uniform(0.0, 0.5, size=n_rows), 3),
        # strictly increasing, so no two generated rows are identical
        "focus_time_minutes": np.arange(n_rows) + 30,
        "productivity_label": rng.choice(LABELS, size=n_rows),
    })
    return df


def make_dirty_frame(
    n_unique: int = 995, n_missing: int = 3, n_duplicates: int = 2, seed: int = 0
) -> pd.DataFrame:
    """Unique rows plus rows with a missing cell and exact duplicates."""
    clean = make_worker_frame(n_unique + n_missing, seed=seed)
    dirty = clean.copy()
    dirty["age"] = dirty["age"].astype(float)
    missing_cols = ["age", "industry_sector", "task_completion_rate"]
    for i in range(n_missing):
        dirty.loc[n_unique + i, missing_cols[i % len(missing_cols)]] = np.nan
    duplicates = dirty.iloc[:n_duplicates]
    return pd.concat([dirty, duplicates], ignore_index=True)


@pytest.fixture
def worker_df():
    return make_worker_frame(200, seed=1)


@pytest.fixture
def raw_csv(tmp_path):
    """1,000-row CSV: 995 valid unique rows, 3 with missing values, 2 duplicates."""
    path = tmp_path / "remote_worker_productivity_raw.csv"
    make_dirty_frame().to_csv(path, index=False)
    return path


@pytest.fixture
def output_dir(tmp_path):
    return tmp_path / "processed_data"
