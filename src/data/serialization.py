"""
Versioned JSON documents for fitted artifacts.

Every artifact is a JSON object with ``schema_version`` and ``artifact``
keys next to its payload, so readers can reject files they do not
understand instead of misinterpreting them.
"""

import json
from pathlib import Path
from typing import Any, Dict

from src.data.errors import DataIOError, FormatError

ARTIFACT_SCHEMA_VERSION = 1


def write_artifact(path, artifact: str, payload: Dict[str, Any]) -> None:
    """Write ``payload`` tagged with its artifact name and schema version."""
    document = {"schema_version": ARTIFACT_SCHEMA_VERSION, "artifact": artifact}
    document.update(payload)
    with open(path, "w") as f:
        json.dump(document, f, indent=2)


def read_artifact(path, artifact: str) -> Dict[str, Any]:
    """
    Read an artifact document and check its tag and version.

    Raises:
        DataIOError: file missing or unreadable
        FormatError: not valid JSON, wrong artifact, or unsupported version
    """
    path = Path(path)
    try:
        with open(path, "r") as f:
            document = json.load(f)
    except json.JSONDecodeError as e:
        raise FormatError(f"Artifact {path} is not valid JSON: {e}") from e
    except OSError as e:
        raise DataIOError(f"Could not read artifact {path}: {e}") from e

    if not isinstance(document, dict):
        raise FormatError(f"Artifact {path} must be a JSON object")
    if document.get("artifact") != artifact:
        raise FormatError(
            f"Expected a '{artifact}' artifact in {path}, "
            f"found '{document.get('artifact')}'"
        )
    if document.get("schema_version") != ARTIFACT_SCHEMA_VERSION:
        raise FormatError(
            f"Unsupported schema version {document.get('schema_version')} in {path} "
            f"(expected {ARTIFACT_SCHEMA_VERSION})"
        )
    return document
