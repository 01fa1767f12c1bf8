"""
Encoders for the label column and categorical feature columns.

Both encoders assign codes from the *sorted* set of values seen at fit
time, so fitting twice on the same data yields identical codes. Values
outside the fitted set are rejected with UnseenLabelError instead of
being mapped to a default code.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

import numpy as np
import pandas as pd

from src.data.errors import ConfigError, FormatError, NotFittedError, UnseenLabelError
from src.data.serialization import read_artifact, write_artifact

logger = logging.getLogger(__name__)


def _sorted_categories(values: Iterable) -> List[str]:
    unique = pd.unique(pd.Series(list(values)).dropna())
    try:
        ordered = sorted(unique)
    except TypeError:
        # mixed types, fall back to string order
        ordered = sorted(unique, key=str)
    categories: List[str] = []
    for value in ordered:
        key = str(value)
        if key not in categories:
            categories.append(key)
    return categories


# ---------------------------------------------------------------------------
# Label Encoder (target column)
# ---------------------------------------------------------------------------

class LabelEncoder:
    """Maps each distinct label to a dense integer code in [0, num_classes)."""

    ARTIFACT = "label_encoder"

    def __init__(self, column: Optional[str] = None):
        self.column = column
        self.classes_: Optional[List[str]] = None
        self._index: Dict[str, int] = {}

    @property
    def is_fitted(self) -> bool:
        return self.classes_ is not None

    @property
    def num_classes(self) -> int:
        self._check_fitted()
        return len(self.classes_)

    @property
    def mapping(self) -> Dict[str, int]:
        self._check_fitted()
        return dict(self._index)

    def _check_fitted(self) -> None:
        if not self.is_fitted:
            raise NotFittedError("LabelEncoder has not been fitted.")

    def fit(self, values: Iterable) -> "LabelEncoder":
        """Build the label mapping from the sorted distinct values."""
        classes = _sorted_categories(values)
        if not classes:
            raise FormatError("Cannot fit LabelEncoder on an empty label set.")
        self._set_classes(classes)
        logger.info(f"Label encoder fitted with {len(classes)} classes: {classes}")
        return self

    def _set_classes(self, classes: Sequence[str]) -> None:
        self.classes_ = list(classes)
        self._index = {label: code for code, label in enumerate(self.classes_)}

    def transform(self, values: Iterable) -> np.ndarray:
        """Convert labels to integer codes."""
        self._check_fitted()
        keys = [str(v) for v in values]
        unseen = sorted({k for k in keys if k not in self._index})
        if unseen:
            raise UnseenLabelError(
                f"Labels not seen at fit time: {unseen}. Known labels: {self.classes_}"
            )
        return np.array([self._index[k] for k in keys], dtype=np.int64)

    def fit_transform(self, values: Iterable) -> np.ndarray:
        values = list(values)
        return self.fit(values).transform(values)

    def inverse_transform(self, codes: Iterable) -> List[str]:
        """Convert integer codes back to label strings."""
        self._check_fitted()
        labels = []
        for code in codes:
            code = int(code)
            if not 0 <= code < len(self.classes_):
                raise UnseenLabelError(
                    f"Code {code} is outside [0, {len(self.classes_)})"
                )
            labels.append(self.classes_[code])
        return labels

    def save(self, path) -> None:
        """Save encoder to a versioned JSON document."""
        self._check_fitted()
        write_artifact(path, self.ARTIFACT, {
            "column": self.column,
            "classes": self.classes_,
        })

    @classmethod
    def load(cls, path) -> "LabelEncoder":
        """Load encoder from JSON."""
        document = read_artifact(path, cls.ARTIFACT)
        classes = document.get("classes")
        if not isinstance(classes, list) or not classes:
            raise FormatError(f"Label encoder in {path} has no classes")
        if len(set(classes)) != len(classes):
            raise FormatError(f"Label encoder in {path} has repeated classes")
        encoder = cls(column=document.get("column"))
        encoder._set_classes([str(c) for c in classes])
        return encoder


# ---------------------------------------------------------------------------
# Categorical Feature Encoder
# ---------------------------------------------------------------------------

class CategoricalFeatureEncoder:
    """
    Encodes categorical feature columns as one-hot indicators or ordinal codes.

    One-hot columns are named ``<column>_<category>`` and take the place of
    the source column, keeping the column order of the input frame.
    """

    ARTIFACT = "feature_encoder"
    POLICIES = ("onehot", "ordinal")

    def __init__(self, policy: str = "onehot"):
        if policy not in self.POLICIES:
            raise ConfigError(
                f"Unknown categorical policy '{policy}', expected one of {self.POLICIES}"
            )
        self.policy = policy
        self.categories: Dict[str, List[str]] = {}
        self._fitted = False

    @property
    def columns(self) -> List[str]:
        return list(self.categories.keys())

    def fit(self, df: pd.DataFrame, columns: Sequence[str]) -> "CategoricalFeatureEncoder":
        """Record the sorted categories of each column."""
        self.categories = {}
        for col in columns:
            if col not in df.columns:
                raise FormatError(f"Categorical column '{col}' not found in data.")
            self.categories[col] = _sorted_categories(df[col])
            logger.debug(f"  {col}: {len(self.categories[col])} categories")
        self._fitted = True
        return self

    def transform(self, df: pd.DataFrame) -> pd.DataFrame:
        """Apply the fitted encoding; other columns pass through unchanged."""
        if not self._fitted:
            raise NotFittedError("CategoricalFeatureEncoder has not been fitted.")

        missing = [col for col in self.categories if col not in df.columns]
        if missing:
            raise FormatError(f"Categorical columns missing from data: {missing}")

        pieces = []
        for col in df.columns:
            if col not in self.categories:
                pieces.append(df[[col]])
                continue

            categories = self.categories[col]
            values = df[col].astype(str)
            unseen = sorted(set(values) - set(categories))
            if unseen:
                raise UnseenLabelError(
                    f"Column '{col}' has categories not seen at fit time: {unseen}"
                )

            if self.policy == "ordinal":
                index = {cat: i for i, cat in enumerate(categories)}
                pieces.append(values.map(index).astype(np.int64).to_frame(col))
            else:
                onehot = pd.DataFrame(
                    {f"{col}_{cat}": (values == cat).astype(np.int64) for cat in categories},
                    index=df.index,
                )
                pieces.append(onehot)

        if not pieces:
            return df.copy()
        return pd.concat(pieces, axis=1)

    def fit_transform(self, df: pd.DataFrame, columns: Sequence[str]) -> pd.DataFrame:
        return self.fit(df, columns).transform(df)

    def feature_names_out(self, columns: Sequence[str]) -> List[str]:
        """Column names produced by ``transform`` for input ``columns``."""
        names = []
        for col in columns:
            if col in self.categories and self.policy == "onehot":
                names.extend(f"{col}_{cat}" for cat in self.categories[col])
            else:
                names.append(col)
        return names

    def save(self, path) -> None:
        """Save encoder to a versioned JSON document."""
        write_artifact(path, self.ARTIFACT, {
            "policy": self.policy,
            "categories": self.categories,
        })

    @classmethod
    def load(cls, path) -> "CategoricalFeatureEncoder":
        """Load encoder from JSON."""
        document = read_artifact(path, cls.ARTIFACT)
        categories = document.get("categories")
        if not isinstance(categories, dict):
            raise FormatError(f"Feature encoder in {path} has no categories mapping")
        encoder = cls(policy=document.get("policy", "onehot"))
        encoder.categories = {
            col: [str(c) for c in cats] for col, cats in categories.items()
        }
        encoder._fitted = True
        return encoder


# ---------------------------------------------------------------------------
# Dataset encoding
# ---------------------------------------------------------------------------

@dataclass
class EncodedDataset:
    features: pd.DataFrame
    labels: np.ndarray
    label_encoder: LabelEncoder
    feature_encoder: CategoricalFeatureEncoder


def detect_categorical_columns(df: pd.DataFrame) -> List[str]:
    """Columns whose dtype is not numeric (bools count as numeric)."""
    return [
        col for col in df.columns
        if not pd.api.types.is_numeric_dtype(df[col])
    ]


def encode_dataset(
    df: pd.DataFrame,
    label_column: str,
    categorical_columns: Optional[Sequence[str]] = None,
    policy: str = "onehot",
) -> EncodedDataset:
    """
    Fit the label and feature encoders on a clean table and apply them.

    Args:
        df: Clean table (no missing values)
        label_column: Name of the target column
        categorical_columns: Feature columns to encode; auto-detected when None
        policy: "onehot" or "ordinal" for categorical features

    Returns:
        EncodedDataset with a numeric feature frame and integer label codes
    """
    if label_column not in df.columns:
        raise FormatError(f"Label column '{label_column}' not found in data.")

    features = df.drop(columns=[label_column])
    if features.shape[1] == 0:
        raise FormatError("Dataset has no feature columns besides the label.")

    if categorical_columns is None:
        categorical_columns = detect_categorical_columns(features)
    elif label_column in categorical_columns:
        raise ConfigError(
            f"Label column '{label_column}' cannot also be a categorical feature."
        )

    label_encoder = LabelEncoder(column=label_column)
    labels = label_encoder.fit_transform(df[label_column])

    feature_encoder = CategoricalFeatureEncoder(policy=policy)
    encoded = feature_encoder.fit_transform(features, categorical_columns)
    logger.info(
        f"Encoded {len(categorical_columns)} categorical columns ({policy}): "
        f"{list(categorical_columns)}"
    )

    non_numeric = [
        col for col in encoded.columns
        if not pd.api.types.is_numeric_dtype(encoded[col])
    ]
    if non_numeric:
        raise FormatError(f"Feature columns are not numeric after encoding: {non_numeric}")

    encoded = encoded.astype(np.float64)
    return EncodedDataset(
        features=encoded,
        labels=labels,
        label_encoder=label_encoder,
        feature_encoder=feature_encoder,
    )
