"""
Error taxonomy for the preprocessing pipeline.

Every stage fails fast by raising one of these. Each error carries an
``exit_code`` so the CLI can report the failing kind to the caller.
"""


class PreprocessingError(Exception):
    """Base class for all pipeline errors."""

    exit_code = 1

    @property
    def kind(self) -> str:
        return type(self).__name__


class DataIOError(PreprocessingError, OSError):
    """A file is missing or cannot be read or written."""

    exit_code = 2


class FormatError(PreprocessingError, ValueError):
    """Content is malformed or does not match the expected schema."""

    exit_code = 3


class EmptyDatasetError(PreprocessingError, ValueError):
    """No rows survived cleaning."""

    exit_code = 4


class UnseenLabelError(PreprocessingError, ValueError):
    """A value was not part of the set seen when the encoder was fitted."""

    exit_code = 5


class InvalidSplitError(PreprocessingError, ValueError):
    """Split percentages are invalid or would produce an empty partition."""

    exit_code = 6


class NotFittedError(PreprocessingError, RuntimeError):
    """A transformer was used before ``fit``."""

    exit_code = 7


class ConfigError(PreprocessingError, ValueError):
    """Configuration is invalid."""

    exit_code = 8
