"""
Configuration for the preprocessing pipeline.

Values come from ``config/config.yaml`` (``preprocessing`` section) and can
be overridden by keyword arguments or CLI flags.
"""

from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from src.data.errors import ConfigError, DataIOError

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent.parent / "config" / "config.yaml"


class SplitPercentages(BaseModel):
    """Share of rows per partition. Checked for sum == 100 by the splitter."""

    model_config = ConfigDict(extra="forbid")

    train: float = 70.0
    validation: float = 15.0
    test: float = 15.0


class PreprocessingConfig(BaseModel):
    """Options recognized by the preprocessing pipeline."""

    model_config = ConfigDict(extra="forbid")

    random_seed: int = Field(default=42, description="Seed for the split assignment")
    output_dir: str = Field(
        default="preprocessing/processed_data",
        description="Directory that receives the artifact set",
    )
    split_percentages: SplitPercentages = Field(default_factory=SplitPercentages)
    scaling_policy: Literal["standard", "minmax", "none"] = "standard"
    label_column: str = "productivity_label"
    categorical_policy: Literal["onehot", "ordinal"] = "onehot"
    categorical_columns: Optional[List[str]] = Field(
        default=None,
        description="Categorical feature columns; auto-detected when null",
    )
    drop_columns: List[str] = Field(
        default_factory=list,
        description="Columns removed at load time, e.g. row identifiers",
    )
    separator: str = ","
    stratify: bool = False

    def with_overrides(self, **overrides: Any) -> "PreprocessingConfig":
        """Return a validated copy with non-None overrides applied."""
        data = self.model_dump()
        data.update({k: v for k, v in overrides.items() if v is not None})
        return build_config(data)


def build_config(data: Optional[Dict[str, Any]] = None) -> PreprocessingConfig:
    """Validate a plain dict into a PreprocessingConfig."""
    try:
        return PreprocessingConfig.model_validate(data or {})
    except ValidationError as e:
        raise ConfigError(f"Invalid preprocessing configuration:\n{e}") from e


def load_config(path=None) -> PreprocessingConfig:
    """
    Load the ``preprocessing`` section of a YAML config file.

    Falls back to defaults when no path is given and the default config
    file does not exist.
    """
    if path is None:
        if not DEFAULT_CONFIG_PATH.exists():
            return PreprocessingConfig()
        path = DEFAULT_CONFIG_PATH

    path = Path(path)
    try:
        with open(path) as f:
            cfg = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Could not parse config {path}: {e}") from e
    except OSError as e:
        raise DataIOError(f"Could not read config {path}: {e}") from e

    if not isinstance(cfg, dict):
        raise ConfigError(f"Config {path} must be a mapping")
    return build_config(cfg.get("preprocessing", {}))
