"""Strict readers for a workflow's definition.json and manifest.json."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Tuple

from irongate.workflows.exception import MissingFileError

DEFINITION_FILE = "definition.json"
MANIFEST_FILE = "manifest.json"


def _reject_constant(name: str):
    # NaN/Infinity are not JSON; JSON.parse on the host rejects them.
    raise ValueError(f"non-standard constant {name}")


def read_json_document(path: Path, *, workflow_id: str) -> dict:
    """Parse a JSON object from ``path``.

    Any failure, including a top-level value that is not an object, raises
    MissingFileError. Nothing is defaulted.
    """
    try:
        with path.open("r", encoding="utf-8") as f:
            doc = json.load(f, parse_constant=_reject_constant)
    except OSError as e:
        raise MissingFileError(str(path), workflow_id=workflow_id, reason=e.strerror or type(e).__name__) from e
    except ValueError as e:
        # JSONDecodeError and UnicodeDecodeError are both ValueErrors.
        raise MissingFileError(str(path), workflow_id=workflow_id, reason=f"invalid JSON: {e}") from e
    if not isinstance(doc, dict):
        raise MissingFileError(str(path), workflow_id=workflow_id, reason="top-level value must be an object")
    return doc


def load_definition(src_dir: Path, workflow_id: str) -> dict:
    return read_json_document(Path(src_dir) / workflow_id / DEFINITION_FILE, workflow_id=workflow_id)


def load_manifest(src_dir: Path, workflow_id: str) -> dict:
    return read_json_document(Path(src_dir) / workflow_id / MANIFEST_FILE, workflow_id=workflow_id)


def load_documents(src_dir: Path, workflow_id: str) -> Tuple[dict, dict]:
    """Return ``(definition, manifest)`` for one workflow directory."""
    return load_definition(src_dir, workflow_id), load_manifest(src_dir, workflow_id)
