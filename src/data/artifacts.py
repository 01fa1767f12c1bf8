"""
Artifact emission and reuse.

Writes the processed splits, fitted encoders, fitted scaler and the run
summary as one unit: all files go into a temporary sibling directory that
is renamed into place only once everything has been written. A previous
artifact set is replaced as a whole or left untouched.

Also loads a persisted artifact set back to encode new inference data.
"""

import logging
import os
import shutil
import tempfile
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Tuple

import numpy as np
import pandas as pd
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from src.data.encoders import CategoricalFeatureEncoder, LabelEncoder
from src.data.errors import ConfigError, DataIOError, FormatError
from src.data.scaler import FeatureScaler
from src.data.serialization import read_artifact, write_artifact

logger = logging.getLogger(__name__)

SPLIT_FILES = {
    "train": "data_train.csv",
    "validation": "data_validation.csv",
    "test": "data_test.csv",
}
LABEL_ENCODER_FILE = "label_encoder.json"
FEATURE_ENCODER_FILE = "feature_encoder.json"
FEATURE_SCALER_FILE = "feature_scaler.json"
SUMMARY_FILE = "preprocessing_summary.json"
SUMMARY_ARTIFACT = "preprocessing_summary"


# =========================================================================
# Run Summary
# =========================================================================

class SplitInfo(BaseModel):
    """Realized partition shares (percent of clean rows) and sizes."""

    model_config = ConfigDict(frozen=True)

    train_percentage: float
    val_percentage: float
    test_percentage: float
    train_size: int
    val_size: int
    test_size: int
    configured: Dict[str, float] = Field(default_factory=dict)


class RunSummary(BaseModel):
    """Statistics of one preprocessing run. Read-only once built."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    original_shape: List[int]
    final_shape_after_validation: List[int]
    missing_values_removed: int
    duplicates_removed: int
    num_features: int
    num_classes: int
    split_info: SplitInfo
    label_column: str
    feature_names: List[str]
    class_names: List[str]
    drop_columns: List[str] = Field(default_factory=list)
    random_seed: int
    scaling_policy: str
    categorical_policy: str

    def save(self, path) -> None:
        write_artifact(path, SUMMARY_ARTIFACT, self.model_dump())

    @classmethod
    def load(cls, path) -> "RunSummary":
        document = read_artifact(path, SUMMARY_ARTIFACT)
        try:
            return cls.model_validate(document)
        except ValidationError as e:
            raise FormatError(f"Invalid run summary in {path}:\n{e}") from e


# =========================================================================
# Saving
# =========================================================================

def _split_frame(X: pd.DataFrame, y: np.ndarray, label_column: str) -> pd.DataFrame:
    """Features followed by the encoded label column."""
    frame = pd.DataFrame(np.asarray(X), columns=list(X.columns))
    frame[label_column] = np.asarray(y, dtype=np.int64)
    return frame


def _write_artifact_set(
    target: Path,
    partitions: Mapping[str, Tuple[pd.DataFrame, np.ndarray]],
    label_encoder: LabelEncoder,
    feature_encoder: CategoricalFeatureEncoder,
    feature_scaler: FeatureScaler,
    summary: RunSummary,
) -> None:
    for name, filename in SPLIT_FILES.items():
        X, y = partitions[name]
        frame = _split_frame(X, y, summary.label_column)
        frame.to_csv(target / filename, index=False)
        logger.info(f"  {name}: {len(frame):,} rows -> {filename}")

    label_encoder.save(target / LABEL_ENCODER_FILE)
    feature_encoder.save(target / FEATURE_ENCODER_FILE)
    feature_scaler.save(target / FEATURE_SCALER_FILE)
    summary.save(target / SUMMARY_FILE)


def resolve_output_dir(output_dir) -> Path:
    """Absolute output path. Refuses paths that cannot be replaced by a rename."""
    output_path = Path(output_dir).resolve()
    if not output_path.name:
        raise ConfigError(f"Output directory '{output_dir}' has no name to replace")
    cwd = Path.cwd().resolve()
    if output_path == cwd or output_path in cwd.parents:
        raise ConfigError(
            f"Output directory '{output_dir}' contains the working directory"
        )
    return output_path


def _promote(staging: Path, output_path: Path) -> None:
    """Replace ``output_path`` with ``staging`` using directory renames."""
    backup = None
    if output_path.exists():
        backup = output_path.with_name(f".{output_path.name}.old-{uuid.uuid4().hex[:8]}")
        os.rename(output_path, backup)
    try:
        os.rename(staging, output_path)
    except OSError:
        if backup is not None:
            os.rename(backup, output_path)
        raise
    if backup is not None:
        shutil.rmtree(backup, ignore_errors=True)


def save_processed_data(
    partitions: Mapping[str, Tuple[pd.DataFrame, np.ndarray]],
    label_encoder: LabelEncoder,
    feature_encoder: CategoricalFeatureEncoder,
    feature_scaler: FeatureScaler,
    summary: RunSummary,
    output_dir: str = "preprocessing/processed_data",
) -> Path:
    """
    Save all processed data and artifacts to ``output_dir`` atomically.

    Args:
        partitions: {"train", "validation", "test"} -> (X, y)

    Returns:
        Path of the written directory
    """
    missing = [name for name in SPLIT_FILES if name not in partitions]
    if missing:
        raise FormatError(f"Partitions missing from output: {missing}")

    output_path = resolve_output_dir(output_dir)
    logger.info(f"Saving processed data to {output_path}...")

    staging = None
    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        staging = Path(tempfile.mkdtemp(
            prefix=f".{output_path.name}.tmp-", dir=output_path.parent
        ))
        _write_artifact_set(
            staging, partitions, label_encoder, feature_encoder, feature_scaler, summary
        )
        os.chmod(staging, 0o755)
        _promote(staging, output_path)
    except OSError as e:
        if staging is not None:
            shutil.rmtree(staging, ignore_errors=True)
        raise DataIOError(f"Could not write artifacts to {output_path}: {e}") from e
    except Exception:
        if staging is not None:
            shutil.rmtree(staging, ignore_errors=True)
        raise

    logger.info(f"All processed data saved to {output_path}")
    return output_path


# =========================================================================
# Loading for inference
# =========================================================================

@dataclass
class PreprocessingArtifacts:
    """Fitted transformers of a finished run, reusable on new data."""

    label_encoder: LabelEncoder
    feature_encoder: CategoricalFeatureEncoder
    feature_scaler: FeatureScaler
    summary: RunSummary

    @property
    def feature_names(self) -> List[str]:
        return list(self.summary.feature_names)

    def transform(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        Encode and scale raw rows the same way the training data was.

        The label column and configured drop columns are ignored if present.
        Any other column the run did not see is a FormatError.
        """
        ignored = [self.summary.label_column] + list(self.summary.drop_columns)
        features = df.drop(columns=[c for c in ignored if c in df.columns])

        encoded = self.feature_encoder.transform(features)
        unexpected = [c for c in encoded.columns if c not in self.feature_names]
        missing = [c for c in self.feature_names if c not in encoded.columns]
        if unexpected or missing:
            raise FormatError(
                f"Columns do not match the fitted features "
                f"(missing: {missing}, unexpected: {unexpected})"
            )

        encoded = encoded[self.feature_names].astype(np.float64)
        return self.feature_scaler.transform(encoded)

    def encode_labels(self, values: Iterable) -> np.ndarray:
        return self.label_encoder.transform(values)

    def decode_labels(self, codes: Iterable) -> List[str]:
        return self.label_encoder.inverse_transform(codes)


def load_artifacts(output_dir: str) -> PreprocessingArtifacts:
    """Load the fitted encoders, scaler and summary written by a run."""
    path = Path(output_dir)
    if not path.is_dir():
        raise DataIOError(f"Artifact directory not found at {path}")

    artifacts = PreprocessingArtifacts(
        label_encoder=LabelEncoder.load(path / LABEL_ENCODER_FILE),
        feature_encoder=CategoricalFeatureEncoder.load(path / FEATURE_ENCODER_FILE),
        feature_scaler=FeatureScaler.load(path / FEATURE_SCALER_FILE),
        summary=RunSummary.load(path / SUMMARY_FILE),
    )
    if artifacts.feature_scaler.n_features != len(artifacts.feature_names):
        raise FormatError(
            f"Scaler has {artifacts.feature_scaler.n_features} features but the "
            f"summary lists {len(artifacts.feature_names)}"
        )
    return artifacts


def load_split(output_dir: str, split: str) -> Tuple[pd.DataFrame, np.ndarray]:
    """Load a saved split. Returns (features, label codes)."""
    if split not in SPLIT_FILES:
        raise ValueError(f"Unknown split '{split}', expected one of {list(SPLIT_FILES)}")
    path = Path(output_dir)
    summary = RunSummary.load(path / SUMMARY_FILE)
    try:
        frame = pd.read_csv(path / SPLIT_FILES[split])
    except OSError as e:
        raise DataIOError(f"Could not read {path / SPLIT_FILES[split]}: {e}") from e
    labels = frame.pop(summary.label_column).to_numpy(dtype=np.int64)
    return frame, labels
