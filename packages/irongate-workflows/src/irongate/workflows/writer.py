from __future__ import annotations

import json
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Iterable, List

from irongate.workflows.loader import DEFINITION_FILE, MANIFEST_FILE

log = logging.getLogger("irongate.workflows.writer")


def dump_document(doc: dict) -> str:
    """Pretty-printed JSON, stable for identical input (key order kept, no trailing newline)."""
    return json.dumps(doc, indent=2, ensure_ascii=False, allow_nan=False)


def _atomic_replace_dir(src: Path, dst: Path) -> None:
    # dst must be on same filesystem to be truly atomic.
    dst.parent.mkdir(parents=True, exist_ok=True)
    os.replace(str(src), str(dst))


def _rm_rf(p: Path) -> None:
    if not p.exists():
        return
    if p.is_symlink() or p.is_file():
        p.unlink()
        return
    shutil.rmtree(p)


def write_workflow(out_dir: Path, workflow_id: str, definition: dict, manifest: dict) -> Path:
    """Write definition.json and manifest.json into ``<out_dir>/<workflow_id>/``.

    Files are staged in a sibling directory and swapped in at once, so the
    target directory holds either the previous build or the complete new one,
    and nothing else.
    """
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    target = out_dir / workflow_id

    staging = Path(tempfile.mkdtemp(prefix=f".{workflow_id}.tmp-", dir=out_dir))
    try:
        (staging / DEFINITION_FILE).write_text(dump_document(definition), encoding="utf-8")
        (staging / MANIFEST_FILE).write_text(dump_document(manifest), encoding="utf-8")
        os.chmod(staging, 0o755)

        if target.exists():
            old = out_dir / f".{workflow_id}.old"
            _rm_rf(old)
            os.replace(str(target), str(old))
            _atomic_replace_dir(staging, target)
            _rm_rf(old)
        else:
            _atomic_replace_dir(staging, target)
    finally:
        if staging.exists():
            shutil.rmtree(staging, ignore_errors=True)

    log.debug("wrote %s", target)
    return target


def prune_stale(out_dir: Path, keep: Iterable[str]) -> List[str]:
    """Remove packaged workflows whose source is gone, plus interrupted staging dirs.

    Only directories holding a packaged document (or our own hidden staging
    leftovers) are touched. Returns the removed names.
    """
    out_dir = Path(out_dir)
    if not out_dir.is_dir():
        return []
    keep_set = set(keep)
    removed: List[str] = []
    for p in sorted(out_dir.iterdir(), key=lambda x: x.name):
        if not p.is_dir() or p.is_symlink():
            continue
        if p.name.startswith("."):
            stale = ".tmp-" in p.name or p.name.endswith(".old")
        else:
            packaged = (p / DEFINITION_FILE).exists() or (p / MANIFEST_FILE).exists()
            stale = packaged and p.name not in keep_set
        if stale:
            _rm_rf(p)
            removed.append(p.name)
            log.info("removed stale output %s", p)
    return removed
