"""Irongate workflow packaging.

Public entrypoints:
- irongate.workflows.package_workflows: build a source tree into deployable bundles
- irongate.workflows.validate_workflows: validation-only pass (no compile, no writes)
- irongate.workflows.catalog.WorkflowCatalog: read packaged output

Internal modules may change without notice.
"""

from __future__ import annotations

from irongate.workflows.packager import PackageReport, WorkflowPackager, package_workflows, validate_workflows

__all__ = ["PackageReport", "WorkflowPackager", "package_workflows", "validate_workflows"]
