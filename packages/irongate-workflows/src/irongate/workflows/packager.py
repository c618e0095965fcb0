from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional

from irongate.workflows.compiler import ScriptCompiler
from irongate.workflows.exception import MissingFileError, WorkflowPackagingError
from irongate.workflows.graph import rewrite_code_node, scan_code_nodes
from irongate.workflows.loader import load_documents
from irongate.workflows.observability import dur_ms, log_event
from irongate.workflows.runtime.settings import Settings, load_settings
from irongate.workflows.validation import DefinitionValidator, validate_manifest
from irongate.workflows.writer import prune_stale, write_workflow

log = logging.getLogger("irongate.workflows.packager")


@dataclass
class NodeOutcome:
    alias: str
    definition_id: str
    # "compiled": code input replaced; "inline": existing code kept;
    # "script": script found (validate-only runs do not compile).
    action: str
    script: Optional[str] = None


@dataclass
class WorkflowResult:
    workflow_id: str
    nodes: List[NodeOutcome] = field(default_factory=list)
    output_dir: Optional[Path] = None
    error: Optional[WorkflowPackagingError] = None
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None

    def as_dict(self) -> dict:
        return {
            "workflow_id": self.workflow_id,
            "ok": self.ok,
            "output_dir": str(self.output_dir) if self.output_dir else None,
            "duration_ms": self.duration_ms,
            "error": str(self.error) if self.error else None,
            "error_type": type(self.error).__name__ if self.error else None,
            "nodes": [
                {"alias": n.alias, "definition_id": n.definition_id, "action": n.action, "script": n.script}
                for n in self.nodes
            ],
        }


@dataclass
class PackageReport:
    src_dir: Path
    out_dir: Optional[Path]
    discovered: int
    results: List[WorkflowResult] = field(default_factory=list)
    pruned: List[str] = field(default_factory=list)

    @property
    def failure(self) -> Optional[WorkflowResult]:
        return next((r for r in self.results if not r.ok), None)

    @property
    def ok(self) -> bool:
        return self.failure is None

    @property
    def processed(self) -> int:
        return sum(1 for r in self.results if r.ok)

    def raise_for_failure(self) -> None:
        failed = self.failure
        if failed is not None and failed.error is not None:
            raise failed.error

    def as_dict(self) -> dict:
        return {
            "ok": self.ok,
            "src_dir": str(self.src_dir),
            "out_dir": str(self.out_dir) if self.out_dir else None,
            "discovered": self.discovered,
            "processed": self.processed,
            "pruned": list(self.pruned),
            "workflows": [r.as_dict() for r in self.results],
        }


def discover_workflows(src_dir: Path, only: Iterable[str] | None = None) -> List[str]:
    """Workflow ids under ``src_dir``: visible directories, sorted by name."""
    src = Path(src_dir)
    if not src.is_dir():
        raise MissingFileError(str(src), reason="workflow source directory not found")
    found = sorted(p.name for p in src.iterdir() if p.is_dir() and not p.name.startswith("."))
    if only is None:
        return found
    wanted = list(dict.fromkeys(only))
    for wid in wanted:
        if wid not in found:
            raise MissingFileError(str(src / wid), workflow_id=wid, reason="workflow directory not found")
    return [wid for wid in found if wid in wanted]


class WorkflowPackager:
    """Drives the packaging pipeline over a source tree, one workflow at a time."""

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        compiler: ScriptCompiler | None = None,
        validator: DefinitionValidator | None = None,
    ):
        self.settings = settings or load_settings()
        self._compiler = compiler
        # Built once per run, shared read-only by every workflow.
        self.validator = validator or DefinitionValidator()

    @property
    def compiler(self) -> ScriptCompiler:
        if self._compiler is None:
            self._compiler = ScriptCompiler.from_settings(self.settings)
        return self._compiler

    def _prepare(self, src_dir: Path, workflow_id: str):
        definition, manifest = load_documents(src_dir, workflow_id)
        self.validator.check(workflow_id, definition)
        validate_manifest(workflow_id, definition, manifest)
        code_nodes = scan_code_nodes(
            definition,
            code_node_ids=self.settings.code_node_ids,
            workflow_dir=src_dir / workflow_id,
            extensions=self.settings.script_extensions,
            workflow_id=workflow_id,
        )
        return definition, manifest, code_nodes

    def _run_one(self, src_dir: Path, out_dir: Optional[Path], workflow_id: str) -> WorkflowResult:
        t0 = time.perf_counter()
        result = WorkflowResult(workflow_id=workflow_id)
        s = self.settings
        log_event(log, settings=s, level=logging.INFO, event="workflow_start", workflow_id=workflow_id)
        try:
            definition, manifest, code_nodes = self._prepare(src_dir, workflow_id)
            for cn in code_nodes:
                script = str(cn.script_path) if cn.script_path else None
                if out_dir is None:
                    # validate-only: inline code must still be usable
                    action = "script" if cn.script_path else rewrite_code_node(cn, None, workflow_id=workflow_id)
                elif cn.script_path is not None:
                    log_event(log, settings=s, level=logging.INFO, event="node_compile", workflow_id=workflow_id, alias=cn.alias, script=script)
                    compiled = self.compiler.compile(cn.script_path, workflow_id=workflow_id, alias=cn.alias)
                    action = rewrite_code_node(cn, compiled, workflow_id=workflow_id)
                else:
                    log_event(log, settings=s, level=logging.WARNING, event="node_no_script", workflow_id=workflow_id, alias=cn.alias)
                    action = rewrite_code_node(cn, None, workflow_id=workflow_id)
                result.nodes.append(NodeOutcome(alias=cn.alias, definition_id=cn.definition_id, action=action, script=script))
            if out_dir is not None:
                result.output_dir = write_workflow(out_dir, workflow_id, definition, manifest)
                log_event(log, settings=s, level=logging.INFO, event="workflow_written", workflow_id=workflow_id, output_dir=result.output_dir)
        except WorkflowPackagingError as e:
            result.error = e.with_workflow(workflow_id)
            log_event(log, settings=s, level=logging.ERROR, event="workflow_failed", workflow_id=workflow_id, error=str(e))
        result.duration_ms = dur_ms(t0, time.perf_counter())
        return result

    def _run(self, src_dir: Path, out_dir: Optional[Path], only: Iterable[str] | None) -> PackageReport:
        ids = discover_workflows(src_dir, only)
        report = PackageReport(src_dir=src_dir, out_dir=out_dir, discovered=len(ids))
        log_event(log, settings=self.settings, level=logging.INFO, event="run_start", workflows=len(ids), src_dir=src_dir)
        for wid in ids:
            if out_dir is None:
                res = self._run_one(src_dir, None, wid)
            else:
                res = self.package_workflow(wid, src_dir=src_dir, out_dir=out_dir)
            report.results.append(res)
            if not res.ok:
                # fail-fast: earlier workflows stay written, later ones never start
                break
        if out_dir is not None and only is None and report.ok:
            # a full successful build owns out_dir: drop output of removed workflows
            report.pruned = prune_stale(out_dir, ids)
        log_event(log, settings=self.settings, level=logging.INFO, event="run_summary", ok=report.ok, discovered=report.discovered, processed=report.processed)
        return report

    def package_workflow(self, workflow_id: str, *, src_dir: Path | None = None, out_dir: Path | None = None) -> WorkflowResult:
        src = Path(src_dir or self.settings.src_dir)
        return self._run_one(src, Path(out_dir or self.settings.out_dir), workflow_id)

    def package_all(self, *, src_dir: Path | None = None, out_dir: Path | None = None, only: Iterable[str] | None = None) -> PackageReport:
        src = Path(src_dir or self.settings.src_dir)
        return self._run(src, Path(out_dir or self.settings.out_dir), only)

    def validate_all(self, *, src_dir: Path | None = None, only: Iterable[str] | None = None) -> PackageReport:
        """Load and validate every workflow without compiling or writing."""
        src = Path(src_dir or self.settings.src_dir)
        return self._run(src, None, only)


def package_workflows(
    src_dir: str | Path | None = None,
    out_dir: str | Path | None = None,
    *,
    settings: Settings | None = None,
    compiler: ScriptCompiler | None = None,
    only: Iterable[str] | None = None,
) -> PackageReport:
    packager = WorkflowPackager(settings, compiler=compiler)
    return packager.package_all(
        src_dir=Path(src_dir) if src_dir else None,
        out_dir=Path(out_dir) if out_dir else None,
        only=only,
    )


def validate_workflows(
    src_dir: str | Path | None = None,
    *,
    settings: Settings | None = None,
    only: Iterable[str] | None = None,
) -> PackageReport:
    return WorkflowPackager(settings).validate_all(src_dir=Path(src_dir) if src_dir else None, only=only)
