"""Read side of a packaged output tree.

The catalog lists packaged workflows for a host integration. It has two
modes:

- ``strict`` (default): any unreadable workflow raises, the same way the
  packager does.
- ``lenient``: an unparsable definition counts as ``{}`` and missing
  manifest fields fall back to definition values or the directory name; a
  workflow whose files cannot be read at all is logged and skipped.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

from irongate.workflows.exception import MissingFileError, WorkflowNotFoundError, WorkflowPackagingError
from irongate.workflows.loader import DEFINITION_FILE, MANIFEST_FILE, read_json_document
from irongate.workflows.validation import validate_manifest

log = logging.getLogger("irongate.workflows.catalog")

CatalogMode = Literal["strict", "lenient"]


@dataclass(frozen=True)
class WorkflowSummary:
    id: str
    name: str
    description: str
    version: str
    kind: str
    url: str
    author: Dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "version": self.version,
            "kind": self.kind,
            "author": dict(self.author),
            "url": self.url,
        }


def _str(obj: dict, key: str) -> Optional[str]:
    v = obj.get(key)
    return v if isinstance(v, str) else None


def _parse_definition_lenient(path: Path) -> dict:
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError):
        log.warning("unparsable definition %s; using empty definition", path)
        return {}
    return raw if isinstance(raw, dict) else {}


class WorkflowCatalog:
    def __init__(self, assets_dir: str | Path, *, mode: CatalogMode = "strict"):
        if mode not in ("strict", "lenient"):
            raise ValueError(f"Unknown catalog mode: {mode!r}")
        self.assets_dir = Path(assets_dir)
        self.mode = mode
        self._workflows: List[WorkflowSummary] = []

    @property
    def strict(self) -> bool:
        return self.mode == "strict"

    def _summarize(self, workflow_id: str) -> Optional[WorkflowSummary]:
        wdir = self.assets_dir / workflow_id
        definition_path = wdir / DEFINITION_FILE
        manifest_path = wdir / MANIFEST_FILE

        if self.strict:
            definition = read_json_document(definition_path, workflow_id=workflow_id)
            manifest = read_json_document(manifest_path, workflow_id=workflow_id)
            validate_manifest(workflow_id, definition, manifest)
        else:
            if not (definition_path.is_file() and manifest_path.is_file()):
                log.info("skipping %s: no packaged workflow files", wdir)
                return None
            definition = _parse_definition_lenient(definition_path)
            manifest = read_json_document(manifest_path, workflow_id=workflow_id)

        author = manifest.get("author")
        return WorkflowSummary(
            id=_str(manifest, "id") or workflow_id,
            name=_str(manifest, "name") or _str(definition, "name") or workflow_id,
            description=_str(manifest, "description") or _str(definition, "description") or "",
            version=_str(manifest, "version") or _str(definition, "version") or "1.0.0",
            kind=_str(definition, "kind") or "unknown",
            url=_str(manifest, "url") or "",
            author=dict(author) if isinstance(author, dict) else {},
        )

    def load(self) -> List[WorkflowSummary]:
        """(Re)scan the assets directory."""
        if not self.assets_dir.is_dir():
            if self.strict:
                raise MissingFileError(str(self.assets_dir), reason="assets directory not found")
            log.error("assets directory not found: %s", self.assets_dir)
            self._workflows = []
            return []

        out: List[WorkflowSummary] = []
        for p in sorted(self.assets_dir.iterdir(), key=lambda x: x.name):
            if not p.is_dir() or p.name.startswith("."):
                continue
            try:
                summary = self._summarize(p.name)
            except WorkflowPackagingError:
                if self.strict:
                    raise
                log.warning("error reading workflow files from %s", p.name, exc_info=True)
                continue
            if summary is not None:
                out.append(summary)
        log.info("loaded %d workflows from %s", len(out), self.assets_dir)
        self._workflows = out
        return list(out)

    def workflows(self) -> List[WorkflowSummary]:
        return list(self._workflows)

    def exists(self, workflow_id: str) -> bool:
        return any(w.id == workflow_id for w in self._workflows)

    def search(self, query: str) -> List[WorkflowSummary]:
        q = (query or "").lower()
        return [w for w in self._workflows if q in w.name.lower() or q in w.id.lower()]

    def get_definition(self, workflow_id: str) -> dict:
        if not self.exists(workflow_id):
            raise WorkflowNotFoundError(workflow_id)
        # Summaries are keyed by manifest id, which equals the directory name
        # for anything the packager produced.
        return read_json_document(self.assets_dir / workflow_id / DEFINITION_FILE, workflow_id=workflow_id)
