from __future__ import annotations

from typing import Any, List, Optional

from pydantic import BaseModel, Field, StrictStr
from pydantic.config import ConfigDict

# ---------------------------------------------------------------------------
# Workflow definition (definition.json)
# ---------------------------------------------------------------------------
#
# These models validate shape only. The packager never dumps them back to
# JSON: rewriting and writing operate on the raw parsed document so keys the
# models do not know about survive untouched.


class InputValueSpec(BaseModel):
    model_config = ConfigDict(extra="allow")

    kind: StrictStr
    data: Any = None


class InputSpec(BaseModel):
    model_config = ConfigDict(extra="allow")

    alias: StrictStr
    value: InputValueSpec


class NodeSpec(BaseModel):
    model_config = ConfigDict(extra="allow")

    definition_id: StrictStr
    alias: StrictStr
    inputs: List[InputSpec]


class GraphSpec(BaseModel):
    model_config = ConfigDict(extra="allow")

    nodes: List[NodeSpec]


class WorkflowDefinitionSpec(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: StrictStr
    graph: GraphSpec


# ---------------------------------------------------------------------------
# Manifest (manifest.json)
# ---------------------------------------------------------------------------


class AuthorSpec(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: StrictStr = Field(min_length=1)
    # May be absent; an explicit null is rejected (defaults are not validated).
    email: StrictStr = None  # type: ignore[assignment]


class ManifestSpec(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: StrictStr = Field(min_length=1)
    name: StrictStr = Field(min_length=1)
    description: StrictStr = Field(min_length=1)
    url: StrictStr = Field(min_length=1)
    version: StrictStr = Field(min_length=1)
    author: AuthorSpec


# ---------------------------------------------------------------------------
# Build config file (YAML)
# ---------------------------------------------------------------------------


class BuildConfigSpec(BaseModel):
    """Schema of the optional YAML build config.

    Every key is optional; unknown keys are rejected so typos surface early.
    """

    model_config = ConfigDict(extra="forbid")

    src_dir: Optional[str] = None
    out_dir: Optional[str] = None
    code_node_ids: Optional[List[str]] = None
    script_extensions: Optional[List[str]] = None
    bundler_command: Optional[List[str]] = None
    minifier_command: Optional[List[str]] = None
    compile_timeout_seconds: Optional[float] = None
    log_level: Optional[str] = None
    log_format: Optional[str] = None


__all__ = [
    "InputValueSpec",
    "InputSpec",
    "NodeSpec",
    "GraphSpec",
    "WorkflowDefinitionSpec",
    "AuthorSpec",
    "ManifestSpec",
    "BuildConfigSpec",
]
