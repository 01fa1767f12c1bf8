"""
End-to-end tests for the preprocessing pipeline.

Tests:
- 1,000-row scenario (missing rows, duplicates, 4 classes, 70/15/15)
- Failure scenarios leave no artifacts behind
- Reproducibility across runs
- Atomic replacement of a previous artifact set
- Reusing persisted artifacts on new data
- Configuration loading and the CLI entry point
"""

import json

import numpy as np
import pandas as pd
import pytest

from src.data.artifacts import SPLIT_FILES, load_artifacts, load_split
from src.data.cleaner import clean_dataframe
from src.data.config import PreprocessingConfig, build_config, load_config
from src.data.errors import (
    ConfigError,
    DataIOError,
    EmptyDatasetError,
    InvalidSplitError,
    UnseenLabelError,
)
from src.data.preprocess import (
    PipelineState,
    WorkerDataPreprocessor,
    main,
    run_preprocessing_pipeline,
)
from src.data.scaler import FeatureScaler

from tests.conftest import make_worker_frame

EXPECTED_FILES = {
    "data_train.csv",
    "data_validation.csv",
    "data_test.csv",
    "label_encoder.json",
    "feature_encoder.json",
    "feature_scaler.json",
    "preprocessing_summary.json",
}


def _config(output_dir, **kwargs) -> PreprocessingConfig:
    return build_config({"output_dir": str(output_dir), "random_seed": 42, **kwargs})


# =========================================================================
# End-to-end scenario
# =========================================================================

class TestEndToEnd:
    """The 1,000-row scenario: 3 missing rows, 2 duplicates, 4 classes."""

    @pytest.fixture
    def result(self, raw_csv, output_dir):
        return run_preprocessing_pipeline(raw_csv, _config(output_dir))

    def test_all_artifacts_written(self, result, output_dir):
        assert {p.name for p in output_dir.iterdir()} == EXPECTED_FILES

    def test_row_counts(self, result):
        total = len(result.X_train) + len(result.X_val) + len(result.X_test)
        assert total == 995
        assert len(result.X_train) == 697
        assert len(result.y_train) == 697
        assert len(result.X_val) == len(result.y_val) == 149
        assert len(result.X_test) == len(result.y_test) == 149

    def test_train_csv_rows(self, result, output_dir):
        train = pd.read_csv(output_dir / "data_train.csv")
        assert len(train) == 697

    def test_summary(self, result, output_dir):
        with open(output_dir / "preprocessing_summary.json") as f:
            summary = json.load(f)
        assert summary["original_shape"] == [1000, 10]
        assert summary["missing_values_removed"] == 3
        assert summary["duplicates_removed"] == 2
        assert summary["num_classes"] == 4
        assert summary["num_features"] == result.X_train.shape[1]
        assert summary["final_shape_after_validation"] == [995, result.X_train.shape[1] + 1]
        split_info = summary["split_info"]
        assert split_info["train_percentage"] == pytest.approx(70.05, abs=0.01)
        assert split_info["val_percentage"] == pytest.approx(14.97, abs=0.01)
        assert split_info["test_percentage"] == pytest.approx(14.97, abs=0.01)

    def test_feature_count(self, result):
        # 7 numeric + 3 location types + 4 sectors
        assert result.X_train.shape[1] == 14
        assert result.summary.num_features == 14

    def test_result_mapping_access(self, result):
        assert "X_train" in result
        assert result["X_train"] is result.X_train
        assert result["X_train"].shape[1] == result.num_features
        with pytest.raises(KeyError):
            result["X_missing"]

    def test_partitions_disjoint(self, result):
        split = result.split
        assert not set(split.train) & set(split.validation)
        assert not set(split.train) & set(split.test)
        assert not set(split.validation) & set(split.test)

    def test_train_is_standardized(self, result):
        np.testing.assert_allclose(result.X_train.mean().values, 0.0, atol=1e-9)
        np.testing.assert_allclose(result.X_train.std(ddof=0).values, 1.0, atol=1e-9)

    def test_labels_are_class_codes(self, result):
        all_labels = np.concatenate([result.y_train, result.y_val, result.y_test])
        assert set(all_labels) == {0, 1, 2, 3}
        assert result.label_encoder.classes_ == ["High", "Low", "Medium", "Very High"]

    def test_state_emitted(self, raw_csv, output_dir):
        preprocessor = WorkerDataPreprocessor(_config(output_dir))
        assert preprocessor.state == PipelineState.IDLE
        preprocessor.run(raw_csv)
        assert preprocessor.state == PipelineState.EMITTED

    def test_preprocessor_runs_once(self, raw_csv, output_dir):
        preprocessor = WorkerDataPreprocessor(_config(output_dir))
        preprocessor.run(raw_csv)
        with pytest.raises(RuntimeError):
            preprocessor.run(raw_csv)

    def test_saved_splits_match_result(self, result, output_dir):
        X, y = load_split(output_dir, "train")
        np.testing.assert_allclose(X.values, result.X_train.values)
        np.testing.assert_array_equal(y, result.y_train)
        assert list(X.columns) == list(result.X_train.columns)


# =========================================================================
# Failure scenarios
# =========================================================================

class TestFailures:
    """Failed runs surface the error kind and write nothing."""

    def test_missing_input_file(self, tmp_path, output_dir):
        with pytest.raises(DataIOError):
            run_preprocessing_pipeline(tmp_path / "missing.csv", _config(output_dir))
        assert not output_dir.exists()

    def test_missing_input_is_ioerror(self, tmp_path, output_dir):
        with pytest.raises(IOError):
            run_preprocessing_pipeline(tmp_path / "missing.csv", _config(output_dir))

    def test_every_row_has_missing_value(self, tmp_path, output_dir):
        df = make_worker_frame(50).astype({"age": float})
        df.loc[::2, "age"] = np.nan
        df.loc[1::2, "late_task_ratio"] = np.nan
        path = tmp_path / "raw.csv"
        df.to_csv(path, index=False)

        with pytest.raises(EmptyDatasetError):
            run_preprocessing_pipeline(path, _config(output_dir))
        assert not output_dir.exists()

    def test_invalid_split_percentages(self, raw_csv, output_dir):
        config = _config(
            output_dir, split_percentages={"train": 80, "validation": 15, "test": 15}
        )
        with pytest.raises(InvalidSplitError):
            run_preprocessing_pipeline(raw_csv, config)
        assert not output_dir.exists()

    def test_state_failed(self, tmp_path, output_dir):
        preprocessor = WorkerDataPreprocessor(_config(output_dir))
        with pytest.raises(DataIOError):
            preprocessor.run(tmp_path / "missing.csv")
        assert preprocessor.state == PipelineState.FAILED

    def test_state_failed_midway(self, raw_csv, output_dir):
        config = _config(
            output_dir, split_percentages={"train": 50, "validation": 30, "test": 30}
        )
        preprocessor = WorkerDataPreprocessor(config)
        with pytest.raises(InvalidSplitError):
            preprocessor.run(raw_csv)
        assert preprocessor.state == PipelineState.FAILED


# =========================================================================
# Reproducibility and atomic replacement
# =========================================================================

class TestReproducibility:
    """Identical input and seed give identical outputs."""

    def test_identical_runs(self, raw_csv, tmp_path):
        a = run_preprocessing_pipeline(raw_csv, _config(tmp_path / "a"))
        b = run_preprocessing_pipeline(raw_csv, _config(tmp_path / "b"))

        np.testing.assert_array_equal(a.split.train, b.split.train)
        np.testing.assert_array_equal(a.split.test, b.split.test)
        assert a.label_encoder.mapping == b.label_encoder.mapping
        for filename in EXPECTED_FILES:
            assert (tmp_path / "a" / filename).read_bytes() == (tmp_path / "b" / filename).read_bytes()

    def test_seed_changes_split(self, raw_csv, tmp_path):
        a = run_preprocessing_pipeline(raw_csv, _config(tmp_path / "a"))
        b = run_preprocessing_pipeline(raw_csv, _config(tmp_path / "b", random_seed=7))
        assert set(a.split.test) != set(b.split.test)
        assert a.label_encoder.mapping == b.label_encoder.mapping


class TestAtomicOutput:
    """The artifact set is replaced as a whole or not at all."""

    def test_rerun_replaces_previous_set(self, raw_csv, output_dir):
        run_preprocessing_pipeline(raw_csv, _config(output_dir))
        (output_dir / "stale.txt").write_text("from an older run")

        run_preprocessing_pipeline(raw_csv, _config(output_dir, random_seed=7))
        assert {p.name for p in output_dir.iterdir()} == EXPECTED_FILES
        with open(output_dir / "preprocessing_summary.json") as f:
            assert json.load(f)["random_seed"] == 7

    def test_failed_write_keeps_previous_set(self, raw_csv, output_dir, monkeypatch):
        run_preprocessing_pipeline(raw_csv, _config(output_dir))
        before = {p.name: p.read_bytes() for p in output_dir.iterdir()}

        def broken_save(self, path):
            raise OSError("disk full")

        monkeypatch.setattr(FeatureScaler, "save", broken_save)
        with pytest.raises(DataIOError):
            run_preprocessing_pipeline(raw_csv, _config(output_dir, random_seed=7))

        after = {p.name: p.read_bytes() for p in output_dir.iterdir()}
        assert after == before
        assert [p.name for p in output_dir.parent.iterdir() if p.name.startswith(".")] == []

    @pytest.mark.parametrize("bad_dir", [".", "", "/"])
    def test_output_dir_without_name(self, raw_csv, tmp_path, monkeypatch, bad_dir):
        monkeypatch.chdir(tmp_path)
        preprocessor = WorkerDataPreprocessor(_config(bad_dir))
        with pytest.raises(ConfigError):
            preprocessor.run(raw_csv)
        assert preprocessor.state == PipelineState.FAILED
        assert raw_csv.exists()

    def test_output_dir_above_working_directory(self, raw_csv, tmp_path, monkeypatch):
        work = tmp_path / "work"
        work.mkdir()
        monkeypatch.chdir(work)
        with pytest.raises(ConfigError):
            run_preprocessing_pipeline(raw_csv, _config(".."))
        assert work.exists()

    def test_relative_output_dir(self, raw_csv, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        result = run_preprocessing_pipeline(raw_csv, _config("out"))
        assert result.output_dir == (tmp_path / "out").resolve()
        assert {p.name for p in result.output_dir.iterdir()} == EXPECTED_FILES

    def test_failed_first_write_leaves_nothing(self, raw_csv, output_dir, monkeypatch):
        def broken_save(self, path):
            raise OSError("disk full")

        monkeypatch.setattr(FeatureScaler, "save", broken_save)
        with pytest.raises(DataIOError):
            run_preprocessing_pipeline(raw_csv, _config(output_dir))
        assert not output_dir.exists()
        assert [p.name for p in output_dir.parent.iterdir() if p.name.startswith(".")] == []


# =========================================================================
# Reusing artifacts on new data
# =========================================================================

class TestLoadArtifacts:
    """Persisted artifacts reproduce the training encoding."""

    def test_transform_matches_training_matrix(self, raw_csv, output_dir):
        result = run_preprocessing_pipeline(raw_csv, _config(output_dir))
        artifacts = load_artifacts(output_dir)

        clean, _ = clean_dataframe(pd.read_csv(raw_csv))
        train_rows = clean.iloc[result.split.train]
        X = artifacts.transform(train_rows)

        assert list(X.columns) == list(result.X_train.columns)
        np.testing.assert_allclose(X.values, result.X_train.values, atol=1e-12)
        np.testing.assert_array_equal(
            artifacts.encode_labels(train_rows["productivity_label"]), result.y_train
        )

    def test_decode_labels(self, raw_csv, output_dir):
        result = run_preprocessing_pipeline(raw_csv, _config(output_dir))
        artifacts = load_artifacts(output_dir)
        assert artifacts.decode_labels([0, 3]) == ["High", "Very High"]
        assert artifacts.summary.num_classes == result.summary.num_classes

    def test_unseen_label_on_new_data(self, raw_csv, output_dir):
        run_preprocessing_pipeline(raw_csv, _config(output_dir))
        artifacts = load_artifacts(output_dir)
        with pytest.raises(UnseenLabelError):
            artifacts.encode_labels(["High", "Exceptional"])

    def test_unseen_category_on_new_data(self, raw_csv, output_dir):
        run_preprocessing_pipeline(raw_csv, _config(output_dir))
        artifacts = load_artifacts(output_dir)
        new = make_worker_frame(5).assign(location_type="Moon Base")
        with pytest.raises(UnseenLabelError):
            artifacts.transform(new)

    def test_missing_artifact_dir(self, tmp_path):
        with pytest.raises(DataIOError):
            load_artifacts(tmp_path / "nothing_here")

    def test_drop_columns_ignored_on_new_data(self, tmp_path, output_dir):
        df = make_worker_frame(300).assign(worker_id=lambda d: [f"W{i:04d}" for i in range(len(d))])
        path = tmp_path / "raw.csv"
        df.to_csv(path, index=False)
        run_preprocessing_pipeline(path, _config(output_dir, drop_columns=["worker_id"]))

        artifacts = load_artifacts(output_dir)
        assert not any(name.startswith("worker_id") for name in artifacts.feature_names)
        X = artifacts.transform(df.head(10))
        assert X.shape == (10, len(artifacts.feature_names))


# =========================================================================
# Configuration and CLI
# =========================================================================

class TestConfig:
    """Tests for configuration loading."""

    def test_defaults(self):
        config = PreprocessingConfig()
        assert config.random_seed == 42
        assert config.split_percentages.model_dump() == {
            "train": 70.0, "validation": 15.0, "test": 15.0,
        }
        assert config.scaling_policy == "standard"

    def test_load_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "preprocessing:\n"
            "  random_seed: 7\n"
            "  scaling_policy: minmax\n"
            "  split_percentages: {train: 80, validation: 10, test: 10}\n"
        )
        config = load_config(path)
        assert config.random_seed == 7
        assert config.scaling_policy == "minmax"
        assert config.split_percentages.train == 80

    def test_unknown_option(self):
        with pytest.raises(ConfigError):
            build_config({"random_sead": 1})

    def test_invalid_policy(self):
        with pytest.raises(ConfigError):
            build_config({"scaling_policy": "robust"})

    def test_overrides_skip_none(self):
        config = PreprocessingConfig().with_overrides(random_seed=None, output_dir="out")
        assert config.random_seed == 42
        assert config.output_dir == "out"

    def test_missing_config_file(self, tmp_path):
        with pytest.raises(DataIOError):
            load_config(tmp_path / "missing.yaml")

    def test_shipped_config_is_valid(self):
        config = load_config()
        assert config.label_column == "productivity_label"


class TestCLI:
    """Tests for the command line entry point."""

    def test_success(self, raw_csv, output_dir, capsys):
        code = main(["--input", str(raw_csv), "--output-dir", str(output_dir)])
        assert code == 0
        assert {p.name for p in output_dir.iterdir()} == EXPECTED_FILES
        assert "Training samples: 697" in capsys.readouterr().out

    def test_missing_input_exit_code(self, tmp_path, output_dir, capsys):
        code = main(["--input", str(tmp_path / "missing.csv"), "--output-dir", str(output_dir)])
        assert code == DataIOError.exit_code
        assert code != 0
        assert "DataIOError" in capsys.readouterr().err
        assert not output_dir.exists()

    def test_empty_dataset_exit_code(self, tmp_path, output_dir):
        path = tmp_path / "raw.csv"
        path.write_text("age,productivity_label\n,High\n31,\n")
        code = main(["--input", str(path), "--output-dir", str(output_dir)])
        assert code == EmptyDatasetError.exit_code
        assert not output_dir.exists()

    def test_overrides(self, raw_csv, output_dir):
        code = main([
            "--input", str(raw_csv), "--output-dir", str(output_dir),
            "--seed", "3", "--scaling", "minmax",
        ])
        assert code == 0
        with open(output_dir / "preprocessing_summary.json") as f:
            summary = json.load(f)
        assert summary["random_seed"] == 3
        assert summary["scaling_policy"] == "minmax"

    def test_split_file_names(self):
        assert set(SPLIT_FILES.values()) == {
            "data_train.csv", "data_validation.csv", "data_test.csv",
        }
