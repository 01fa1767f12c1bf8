"""Data loading, cleaning, encoding, splitting and scaling pipeline."""

from src.data.artifacts import (
    PreprocessingArtifacts,
    RunSummary,
    load_artifacts,
    load_split,
    save_processed_data,
)
from src.data.cleaner import CleaningReport, clean_dataframe
from src.data.config import PreprocessingConfig, SplitPercentages, load_config
from src.data.encoders import CategoricalFeatureEncoder, LabelEncoder, encode_dataset
from src.data.errors import (
    ConfigError,
    DataIOError,
    EmptyDatasetError,
    FormatError,
    InvalidSplitError,
    NotFittedError,
    PreprocessingError,
    UnseenLabelError,
)
from src.data.loader import load_raw_data
from src.data.preprocess import (
    PipelineState,
    PreprocessingResult,
    WorkerDataPreprocessor,
    run_preprocessing_pipeline,
)
from src.data.scaler import FeatureScaler
from src.data.splitter import Split, split_indices

__all__ = [
    "PreprocessingArtifacts",
    "RunSummary",
    "load_artifacts",
    "load_split",
    "save_processed_data",
    "CleaningReport",
    "clean_dataframe",
    "PreprocessingConfig",
    "SplitPercentages",
    "load_config",
    "CategoricalFeatureEncoder",
    "LabelEncoder",
    "encode_dataset",
    "ConfigError",
    "DataIOError",
    "EmptyDatasetError",
    "FormatError",
    "InvalidSplitError",
    "NotFittedError",
    "PreprocessingError",
    "UnseenLabelError",
    "load_raw_data",
    "PipelineState",
    "PreprocessingResult",
    "WorkerDataPreprocessor",
    "run_preprocessing_pipeline",
    "FeatureScaler",
    "Split",
    "split_indices",
]
