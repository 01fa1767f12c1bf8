"""
Feature scaling fitted on the training partition only.

Policies:
- standard: (x - mean) / std, population std (ddof=0)
- minmax:   (x - min) / (max - min)
- none:     identity

The fitting is done by scikit-learn's StandardScaler and MinMaxScaler. A
feature that is constant in the training data gets scale 1.0 from their
zero handling, so it is shifted by its location but never divided by zero.
"""

import logging
from typing import List, Optional

import numpy as np
import pandas as pd
from sklearn.preprocessing import MinMaxScaler, StandardScaler

from src.data.errors import ConfigError, FormatError, NotFittedError
from src.data.serialization import read_artifact, write_artifact

logger = logging.getLogger(__name__)


class FeatureScaler:
    """Per-feature affine scaling: (x - location) / scale."""

    ARTIFACT = "feature_scaler"
    POLICIES = ("standard", "minmax", "none")

    def __init__(self, policy: str = "standard"):
        if policy not in self.POLICIES:
            raise ConfigError(
                f"Unknown scaling policy '{policy}', expected one of {self.POLICIES}"
            )
        self.policy = policy
        self.feature_names: Optional[List[str]] = None
        self.location_: Optional[np.ndarray] = None
        self.scale_: Optional[np.ndarray] = None
        self._estimator = None

    @property
    def is_fitted(self) -> bool:
        return self.location_ is not None

    @property
    def n_features(self) -> int:
        self._check_fitted()
        return len(self.location_)

    def _check_fitted(self) -> None:
        if not self.is_fitted:
            raise NotFittedError("FeatureScaler must be fitted before it is applied.")

    @staticmethod
    def _as_matrix(X) -> np.ndarray:
        matrix = np.asarray(X, dtype=np.float64)
        if matrix.ndim != 2:
            raise FormatError(f"Expected a 2-D feature matrix, got shape {matrix.shape}")
        return matrix

    def _check_width(self, matrix: np.ndarray) -> None:
        if matrix.shape[1] != len(self.location_):
            raise FormatError(
                f"Expected {len(self.location_)} features, got {matrix.shape[1]}"
            )

    def fit(self, X) -> "FeatureScaler":
        """Compute scaling parameters from training rows."""
        matrix = self._as_matrix(X)
        if matrix.shape[0] == 0:
            raise FormatError("Cannot fit FeatureScaler on zero rows.")

        if isinstance(X, pd.DataFrame):
            self.feature_names = [str(c) for c in X.columns]

        if self.policy == "standard":
            estimator = StandardScaler().fit(matrix)
            location, scale = estimator.mean_, estimator.scale_
        elif self.policy == "minmax":
            estimator = MinMaxScaler().fit(matrix)
            # MinMaxScaler.scale_ is 1 / range with zero ranges already replaced by 1
            location, scale = estimator.data_min_, 1.0 / estimator.scale_
        else:
            estimator = None
            location = np.zeros(matrix.shape[1])
            scale = np.ones(matrix.shape[1])

        constant = np.ptp(matrix, axis=0) == 0
        if constant.any():
            logger.warning(
                f"{int(constant.sum())} features are constant in the training data; "
                f"leaving them unscaled"
            )

        self._estimator = estimator
        self.location_ = np.asarray(location, dtype=np.float64)
        self.scale_ = np.asarray(scale, dtype=np.float64)
        logger.info(f"Scaler fitted ({self.policy}) on {matrix.shape[0]} training rows")
        return self

    def _restore_estimator(self) -> None:
        """Rebuild the fitted sklearn scaler from saved location/scale."""
        n_features = len(self.location_)
        if self.policy == "standard":
            estimator = StandardScaler()
            estimator.mean_ = self.location_
            estimator.scale_ = self.scale_
            estimator.var_ = self.scale_ ** 2
        elif self.policy == "minmax":
            estimator = MinMaxScaler()
            estimator.data_min_ = self.location_
            estimator.data_max_ = self.location_ + self.scale_
            estimator.data_range_ = self.scale_
            estimator.scale_ = 1.0 / self.scale_
            estimator.min_ = -self.location_ * estimator.scale_
        else:
            self._estimator = None
            return
        estimator.n_features_in_ = n_features
        estimator.n_samples_seen_ = 0
        self._estimator = estimator

    def transform(self, X):
        """Scale with the fitted parameters. DataFrames stay DataFrames."""
        self._check_fitted()
        matrix = self._as_matrix(X)
        self._check_width(matrix)
        scaled = matrix.copy() if self._estimator is None else self._estimator.transform(matrix)
        if isinstance(X, pd.DataFrame):
            return pd.DataFrame(scaled, columns=X.columns, index=X.index)
        return scaled

    def fit_transform(self, X):
        return self.fit(X).transform(X)

    def inverse_transform(self, X):
        self._check_fitted()
        matrix = self._as_matrix(X)
        self._check_width(matrix)
        if self._estimator is None:
            restored = matrix.copy()
        else:
            restored = self._estimator.inverse_transform(matrix)
        if isinstance(X, pd.DataFrame):
            return pd.DataFrame(restored, columns=X.columns, index=X.index)
        return restored

    def save(self, path) -> None:
        """Save parameters to a versioned JSON document."""
        self._check_fitted()
        write_artifact(path, self.ARTIFACT, {
            "policy": self.policy,
            "feature_names": self.feature_names,
            "location": self.location_.tolist(),
            "scale": self.scale_.tolist(),
        })

    @classmethod
    def load(cls, path) -> "FeatureScaler":
        """Load parameters from JSON."""
        document = read_artifact(path, cls.ARTIFACT)
        location = document.get("location")
        scale = document.get("scale")
        if not isinstance(location, list) or not isinstance(scale, list):
            raise FormatError(f"Scaler in {path} is missing location/scale")
        if len(location) != len(scale):
            raise FormatError(f"Scaler in {path} has mismatched location/scale lengths")

        scaler = cls(policy=document.get("policy", "standard"))
        scaler.feature_names = document.get("feature_names")
        scaler.location_ = np.asarray(location, dtype=np.float64)
        scaler.scale_ = np.asarray(scale, dtype=np.float64)
        if (scaler.scale_ <= 0).any():
            raise FormatError(f"Scaler in {path} has non-positive scale entries")
        scaler._restore_estimator()
        return scaler
