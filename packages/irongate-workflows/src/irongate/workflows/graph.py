"""Code-node discovery and in-place rewriting of a definition's node graph.

All functions here operate on the raw parsed definition (plain dicts and
lists) so fields this package does not model are left exactly as loaded.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional

from irongate.workflows.exception import PolicyViolation

CODE_INPUT_ALIAS = "code"


@dataclass(frozen=True)
class NodeInput:
    alias: str
    value: Any


class InputTable:
    """Alias-indexed view over a node's raw ``inputs`` list.

    Lookups never reorder the list; replacing a value swaps only the
    ``value`` entry of the matching input mapping.
    """

    def __init__(self, raw_inputs: List[dict]):
        self._raw = raw_inputs
        self._index: Dict[str, int] = {}
        for pos, item in enumerate(raw_inputs):
            self._index.setdefault(item["alias"], pos)

    def __contains__(self, alias: str) -> bool:
        return alias in self._index

    def __iter__(self) -> Iterator[NodeInput]:
        for item in self._raw:
            yield NodeInput(alias=item["alias"], value=item.get("value"))

    def __len__(self) -> int:
        return len(self._raw)

    def get(self, alias: str) -> Optional[NodeInput]:
        pos = self._index.get(alias)
        if pos is None:
            return None
        item = self._raw[pos]
        return NodeInput(alias=item["alias"], value=item.get("value"))

    def replace_value(self, alias: str, value: Any) -> None:
        pos = self._index.get(alias)
        if pos is None:
            raise KeyError(alias)
        self._raw[pos]["value"] = value


@dataclass
class CodeNode:
    index: int
    alias: str
    definition_id: str
    node: dict
    script_path: Optional[Path]

    @property
    def inputs(self) -> InputTable:
        return InputTable(self.node["inputs"])

    def inline_code(self) -> Any:
        code = self.inputs.get(CODE_INPUT_ALIAS)
        if code is None or not isinstance(code.value, dict):
            return None
        return code.value.get("data")


def _check_alias(alias: str, *, workflow_id: str) -> None:
    if not alias or alias in {".", ".."} or "/" in alias or "\\" in alias:
        raise PolicyViolation(
            "alias cannot be used as a script file name",
            alias=alias,
            workflow_id=workflow_id,
        )


def find_script(workflow_dir: Path, alias: str, extensions: Iterable[str]) -> Optional[Path]:
    for ext in extensions:
        candidate = workflow_dir / f"{alias}{ext}"
        if candidate.is_file():
            return candidate
    return None


def scan_code_nodes(
    definition: dict,
    *,
    code_node_ids: Iterable[str],
    workflow_dir: Path,
    extensions: Iterable[str],
    workflow_id: str,
) -> List[CodeNode]:
    """Return the code nodes of a validated definition in node-array order."""
    kinds = set(code_node_ids)
    exts = list(extensions)
    found: List[CodeNode] = []
    seen: Dict[str, int] = {}
    for idx, node in enumerate(definition["graph"]["nodes"]):
        if node["definition_id"] not in kinds:
            continue
        alias = node["alias"]
        _check_alias(alias, workflow_id=workflow_id)
        if alias in seen:
            raise PolicyViolation(
                f"alias is shared with code node #{seen[alias]}; each code node needs its own script",
                alias=alias,
                workflow_id=workflow_id,
            )
        seen[alias] = idx
        found.append(
            CodeNode(
                index=idx,
                alias=alias,
                definition_id=node["definition_id"],
                node=node,
                script_path=find_script(Path(workflow_dir), alias, exts),
            )
        )
    return found


def code_value(compiled: str) -> dict:
    return {"kind": "string", "data": compiled}


def rewrite_code_node(code_node: CodeNode, compiled: Optional[str], *, workflow_id: str) -> str:
    """Apply compiled output to a code node, or verify its inline code.

    Returns "compiled" when the code input was replaced and "inline" when the
    existing code was kept.
    """
    table = code_node.inputs
    if compiled is not None:
        if CODE_INPUT_ALIAS not in table:
            raise PolicyViolation(
                f'no "{CODE_INPUT_ALIAS}" input to receive the compiled script',
                alias=code_node.alias,
                workflow_id=workflow_id,
            )
        table.replace_value(CODE_INPUT_ALIAS, code_value(compiled))
        return "compiled"

    data = code_node.inline_code()
    if not isinstance(data, str) or not data.strip():
        raise PolicyViolation(
            "no code provided. The alias of a code node must match the name of its script file "
            '(usually alias "javascript" with a javascript.ts file next to definition.json)',
            alias=code_node.alias,
            workflow_id=workflow_id,
        )
    return "inline"
