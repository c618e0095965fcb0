"""Centralized exceptions for irongate-workflows.

Every packaging failure is a ``WorkflowPackagingError`` tagged with the id of
the workflow it happened in. Internal code should prefer explicit imports:

    from irongate.workflows.exception import ManifestViolation
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional

__all__ = [
    "ValidationIssue",
    "WorkflowPackagingError",
    "SchemaViolation",
    "ManifestViolation",
    "MissingFileError",
    "CompileError",
    "PolicyViolation",
    "ToolError",
    "WorkflowNotFoundError",
]


@dataclass(frozen=True)
class ValidationIssue:
    code: str
    loc: str
    msg: str

    def as_dict(self) -> dict:
        return {"code": self.code, "loc": self.loc, "msg": self.msg}

    def __str__(self) -> str:
        return f"{self.loc}: {self.msg}"


class WorkflowPackagingError(Exception):
    """Base error for a workflow that cannot be packaged."""

    def __init__(self, message: str, *, workflow_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.workflow_id = workflow_id

    def with_workflow(self, workflow_id: str) -> "WorkflowPackagingError":
        if self.workflow_id is None:
            self.workflow_id = workflow_id
        return self

    def __str__(self) -> str:
        if self.workflow_id:
            return f"[{self.workflow_id}] {self.message}"
        return self.message


class _IssuesError(WorkflowPackagingError):
    kind = "invalid document"

    def __init__(self, issues: Iterable[ValidationIssue], *, workflow_id: Optional[str] = None):
        self.issues: List[ValidationIssue] = list(issues)
        details = ", ".join(str(i) for i in self.issues) or "no details"
        super().__init__(f"{self.kind}: {details}", workflow_id=workflow_id)


class SchemaViolation(_IssuesError):
    """Raised when definition.json does not match the definition schema."""

    kind = "Invalid definition"


class ManifestViolation(_IssuesError):
    """Raised when manifest.json is incomplete or inconsistent with its workflow."""

    kind = "Invalid manifest"


class MissingFileError(WorkflowPackagingError):
    """Raised when a workflow document cannot be read or parsed."""

    def __init__(self, path: str, *, workflow_id: Optional[str] = None, reason: str = ""):
        self.path = str(path)
        msg = f"Failed to read {self.path}"
        if reason:
            msg = f"{msg} ({reason})"
        super().__init__(msg, workflow_id=workflow_id)


class CompileError(WorkflowPackagingError):
    """Raised when bundling or minifying a node script fails."""

    def __init__(self, message: str, *, alias: str, workflow_id: Optional[str] = None):
        self.alias = alias
        super().__init__(f'node "{alias}": {message}', workflow_id=workflow_id)


class PolicyViolation(WorkflowPackagingError):
    """Raised when a code node cannot yield an executable payload."""

    def __init__(self, message: str, *, alias: Optional[str] = None, workflow_id: Optional[str] = None):
        self.alias = alias
        if alias is not None:
            message = f'node "{alias}": {message}'
        super().__init__(message, workflow_id=workflow_id)


class ToolError(RuntimeError):
    """Raised by a bundler or minifier; the compiler re-raises it as CompileError."""

    def __init__(self, tool: str, message: str):
        super().__init__(f"{tool}: {message}")
        self.tool = tool


class WorkflowNotFoundError(KeyError):
    """Raised by the catalog for an unknown workflow id."""

    def __init__(self, workflow_id: str):
        super().__init__(workflow_id)
        self.workflow_id = workflow_id

    def __str__(self) -> str:
        return f"Workflow not found: {self.workflow_id}"
