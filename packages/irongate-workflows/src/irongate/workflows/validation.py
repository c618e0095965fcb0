from __future__ import annotations

import logging
from typing import Any, List

from pydantic import TypeAdapter, ValidationError

from irongate.workflows.exception import ManifestViolation, SchemaViolation, ValidationIssue
from irongate.workflows.spec import ManifestSpec, WorkflowDefinitionSpec

log = logging.getLogger("irongate.workflows.validation")


def _fmt_loc(loc: Any) -> str:
    """Format a pydantic 'loc' tuple into a readable JSON-ish path."""
    if not loc:
        return "<root>"
    parts: List[str] = []
    for x in loc:
        if isinstance(x, int):
            # list index
            if not parts:
                parts.append(f"[{x}]")
            else:
                parts[-1] = f"{parts[-1]}[{x}]"
        else:
            parts.append(str(x))
    return ".".join(parts)


def _collect_pydantic_issues(err: ValidationError) -> List[ValidationIssue]:
    out: List[ValidationIssue] = []
    for e in err.errors():
        loc = _fmt_loc(e.get("loc"))
        msg = e.get("msg") or "Invalid value"
        etype = e.get("type") or "schema_error"
        out.append(ValidationIssue(code=f"schema:{etype}", loc=loc, msg=msg))
    return out


class DefinitionValidator:
    """Compiled definition.json validator.

    Build one per run and share it; it holds no per-workflow state.
    """

    def __init__(self) -> None:
        self._adapter = TypeAdapter(WorkflowDefinitionSpec)

    def json_schema(self) -> dict:
        return self._adapter.json_schema()

    def validate(self, document: Any) -> List[ValidationIssue]:
        """Return every violation found in ``document`` (empty list means valid)."""
        try:
            spec = self._adapter.validate_python(document)
        except ValidationError as e:
            return _collect_pydantic_issues(e)

        issues: List[ValidationIssue] = []
        for n_i, node in enumerate(spec.graph.nodes):
            aliases = [i.alias for i in node.inputs]
            for dup in sorted({a for a in aliases if aliases.count(a) > 1}):
                issues.append(
                    ValidationIssue(
                        code="semantic:duplicate_input_alias",
                        loc=f"graph.nodes[{n_i}].inputs",
                        msg=f"Duplicate input alias in node '{node.alias}': {dup}",
                    )
                )
        return issues

    def check(self, workflow_id: str, document: Any) -> None:
        issues = self.validate(document)
        if issues:
            raise SchemaViolation(issues, workflow_id=workflow_id)


def manifest_issues(workflow_id: str, definition: dict, manifest: dict) -> List[ValidationIssue]:
    """Field checks plus cross-document identity checks for one manifest."""
    issues: List[ValidationIssue] = []
    try:
        ManifestSpec.model_validate(manifest)
    except ValidationError as e:
        issues.extend(_collect_pydantic_issues(e))

    manifest_id = manifest.get("id")
    if manifest_id is not None and manifest_id != workflow_id:
        issues.append(
            ValidationIssue(
                code="consistency:id_mismatch",
                loc="id",
                msg=f"Workflow ID mismatch: workflow directory ({workflow_id}) != manifest.id ({manifest_id})",
            )
        )

    manifest_name = manifest.get("name")
    definition_name = definition.get("name")
    if manifest_name is not None and manifest_name != definition_name:
        issues.append(
            ValidationIssue(
                code="consistency:name_mismatch",
                loc="name",
                msg=f"Workflow name mismatch: manifest.name ({manifest_name}) != definition.name ({definition_name})",
            )
        )
    return issues


def validate_manifest(workflow_id: str, definition: dict, manifest: dict) -> None:
    issues = manifest_issues(workflow_id, definition, manifest)
    if issues:
        log.debug("manifest for %s has %d issue(s)", workflow_id, len(issues))
        raise ManifestViolation(issues, workflow_id=workflow_id)
