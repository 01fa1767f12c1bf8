"""
Data preprocessing pipeline for the remote worker productivity dataset.

Handles:
- Loading the raw CSV
- Removing rows with missing values and exact duplicates
- Label encoding of the productivity class
- Encoding of categorical feature columns (one-hot or ordinal)
- Seeded train/val/test splitting
- Feature scaling fitted on the training split only
- Saving processed splits and fitted artifacts
"""

import argparse
import logging
import sys
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Optional

import numpy as np
import pandas as pd
import yaml

from src.data.artifacts import RunSummary, SplitInfo, resolve_output_dir, save_processed_data
from src.data.cleaner import clean_dataframe
from src.data.config import DEFAULT_CONFIG_PATH, PreprocessingConfig, load_config
from src.data.encoders import CategoricalFeatureEncoder, LabelEncoder, encode_dataset
from src.data.errors import ConfigError, PreprocessingError
from src.data.loader import load_raw_data
from src.data.scaler import FeatureScaler
from src.data.splitter import Split, split_indices

logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    IDLE = "idle"
    LOADED = "loaded"
    CLEANED = "cleaned"
    ENCODED = "encoded"
    SPLIT = "split"
    SCALED = "scaled"
    EMITTED = "emitted"
    FAILED = "failed"


_STAGE_ORDER = [
    PipelineState.IDLE,
    PipelineState.LOADED,
    PipelineState.CLEANED,
    PipelineState.ENCODED,
    PipelineState.SPLIT,
    PipelineState.SCALED,
    PipelineState.EMITTED,
]


@dataclass(frozen=True)
class PreprocessingResult:
    """Matrices, label vectors and fitted artifacts of a finished run."""

    X_train: pd.DataFrame
    X_val: pd.DataFrame
    X_test: pd.DataFrame
    y_train: np.ndarray
    y_val: np.ndarray
    y_test: np.ndarray
    label_encoder: LabelEncoder
    feature_encoder: CategoricalFeatureEncoder
    feature_scaler: FeatureScaler
    summary: RunSummary
    output_dir: Path
    split: Split

    def __getitem__(self, key: str) -> Any:
        try:
            return getattr(self, key)
        except AttributeError:
            raise KeyError(key) from None

    def __contains__(self, key: str) -> bool:
        return key in self.__dataclass_fields__

    @property
    def num_features(self) -> int:
        return self.X_train.shape[1]


class WorkerDataPreprocessor:
    """
    Runs the preprocessing stages once, strictly in order.

    ``state`` follows idle -> loaded -> cleaned -> encoded -> split ->
    scaled -> emitted. Any error moves it to ``failed`` and is re-raised
    unchanged; nothing is written unless every stage succeeded.

    Usage:
        preprocessor = WorkerDataPreprocessor(load_config())
        result = preprocessor.run("remote_worker_productivity_raw.csv")
    """

    def __init__(self, config: Optional[PreprocessingConfig] = None):
        self.config = config or PreprocessingConfig()
        self.state = PipelineState.IDLE

    def _advance(self, target: PipelineState) -> None:
        current = _STAGE_ORDER.index(self.state)
        if _STAGE_ORDER.index(target) != current + 1:
            raise RuntimeError(f"Invalid pipeline transition {self.state.value} -> {target.value}")
        self.state = target

    def run(self, input_path) -> PreprocessingResult:
        if self.state != PipelineState.IDLE:
            raise RuntimeError(
                f"Preprocessor already ran (state: {self.state.value}); create a new one"
            )
        try:
            return self._run(input_path)
        except Exception:
            logger.error(f"Preprocessing failed after stage '{self.state.value}'")
            self.state = PipelineState.FAILED
            raise

    def _run(self, input_path) -> PreprocessingResult:
        cfg = self.config
        resolve_output_dir(cfg.output_dir)

        # Load
        raw = load_raw_data(
            input_path,
            sep=cfg.separator,
            label_column=cfg.label_column,
            drop_columns=cfg.drop_columns,
        )
        original_shape = list(raw.shape)
        self._advance(PipelineState.LOADED)

        # Clean
        clean, report = clean_dataframe(raw)
        del raw
        self._advance(PipelineState.CLEANED)

        # Encode
        encoded = encode_dataset(
            clean,
            label_column=cfg.label_column,
            categorical_columns=cfg.categorical_columns,
            policy=cfg.categorical_policy,
        )
        self._advance(PipelineState.ENCODED)

        # Split
        percentages = cfg.split_percentages.model_dump()
        split = split_indices(
            len(encoded.features),
            percentages,
            random_seed=cfg.random_seed,
            stratify_labels=encoded.labels if cfg.stratify else None,
        )
        self._advance(PipelineState.SPLIT)

        # Scale: fit on train only, apply to all
        features = encoded.features
        scaler = FeatureScaler(policy=cfg.scaling_policy)
        scaler.fit(features.iloc[split.train])
        X_train = scaler.transform(features.iloc[split.train]).reset_index(drop=True)
        X_val = scaler.transform(features.iloc[split.validation]).reset_index(drop=True)
        X_test = scaler.transform(features.iloc[split.test]).reset_index(drop=True)
        y_train = encoded.labels[split.train]
        y_val = encoded.labels[split.validation]
        y_test = encoded.labels[split.test]
        self._advance(PipelineState.SCALED)

        realized = split.percentages()
        summary = RunSummary(
            original_shape=original_shape,
            final_shape_after_validation=[report.rows_after, features.shape[1] + 1],
            missing_values_removed=report.missing_values_removed,
            duplicates_removed=report.duplicates_removed,
            num_features=features.shape[1],
            num_classes=encoded.label_encoder.num_classes,
            split_info=SplitInfo(
                train_percentage=realized["train"],
                val_percentage=realized["validation"],
                test_percentage=realized["test"],
                train_size=len(split.train),
                val_size=len(split.validation),
                test_size=len(split.test),
                configured=percentages,
            ),
            label_column=cfg.label_column,
            feature_names=list(features.columns),
            class_names=encoded.label_encoder.classes_,
            drop_columns=cfg.drop_columns,
            random_seed=cfg.random_seed,
            scaling_policy=cfg.scaling_policy,
            categorical_policy=cfg.categorical_policy,
        )

        # Save
        output_dir = save_processed_data(
            {
                "train": (X_train, y_train),
                "validation": (X_val, y_val),
                "test": (X_test, y_test),
            },
            encoded.label_encoder,
            encoded.feature_encoder,
            scaler,
            summary,
            output_dir=cfg.output_dir,
        )
        self._advance(PipelineState.EMITTED)

        return PreprocessingResult(
            X_train=X_train,
            X_val=X_val,
            X_test=X_test,
            y_train=y_train,
            y_val=y_val,
            y_test=y_test,
            label_encoder=encoded.label_encoder,
            feature_encoder=encoded.feature_encoder,
            feature_scaler=scaler,
            summary=summary,
            output_dir=output_dir,
            split=split,
        )


def run_preprocessing_pipeline(
    input_path,
    config: Optional[PreprocessingConfig] = None,
    **overrides: Any,
) -> PreprocessingResult:
    """
    Run the full preprocessing pipeline end-to-end.

    Args:
        input_path: Raw CSV file
        config: Base configuration (defaults if None)
        **overrides: Config fields to override, e.g. random_seed=7

    Returns:
        PreprocessingResult with the scaled splits and fitted artifacts
    """
    config = config or PreprocessingConfig()
    if overrides:
        config = config.with_overrides(**overrides)
    return WorkerDataPreprocessor(config).run(input_path)


# ---------------------------------------------------------------------------
# CLI Entry Point
# ---------------------------------------------------------------------------

def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Preprocess the remote worker productivity dataset"
    )
    parser.add_argument("--input", type=str, default=None,
                        help="Raw CSV file (default: paths.raw_data from config)")
    parser.add_argument("--config", type=str, default=None,
                        help="Path to config file (default: config/config.yaml)")
    parser.add_argument("--output-dir", type=str, default=None,
                        help="Override output directory")
    parser.add_argument("--seed", type=int, default=None,
                        help="Override random seed")
    parser.add_argument("--scaling", choices=FeatureScaler.POLICIES, default=None,
                        help="Override scaling policy")
    parser.add_argument("--label-column", type=str, default=None,
                        help="Override label column")
    parser.add_argument("--verbose", action="store_true",
                        help="Debug logging")
    return parser


def _default_input(config_path: Optional[str]) -> Optional[str]:
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
    if not path.exists():
        return None
    with open(path) as f:
        cfg = yaml.safe_load(f) or {}
    return (cfg.get("paths") or {}).get("raw_data")


def main(argv=None) -> int:
    """CLI entry point. Returns the process exit code."""
    args = build_arg_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    print("=" * 60)
    print("Remote Worker Productivity: Data Preprocessing Pipeline")
    print("=" * 60)

    try:
        config = load_config(args.config)
        input_path = args.input or _default_input(args.config)
        if input_path is None:
            print("[ERROR] No input file given (use --input or paths.raw_data)", file=sys.stderr)
            return ConfigError.exit_code
        result = run_preprocessing_pipeline(
            input_path,
            config,
            output_dir=args.output_dir,
            random_seed=args.seed,
            scaling_policy=args.scaling,
            label_column=args.label_column,
        )
    except PreprocessingError as e:
        print(f"[ERROR] {e.kind}: {e}", file=sys.stderr)
        return e.exit_code

    print("[SUCCESS] Preprocessing completed!")
    print(f"  Training samples: {len(result.X_train):,}")
    print(f"  Validation samples: {len(result.X_val):,}")
    print(f"  Test samples: {len(result.X_test):,}")
    print(f"  Number of features: {result.X_train.shape[1]}")
    print(f"  Number of classes: {result.summary.num_classes}")
    print(f"  Artifacts: {result.output_dir}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
