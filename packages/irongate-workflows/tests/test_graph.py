from __future__ import annotations

import copy
from pathlib import Path

import pytest

from conftest import code_node, definition_doc
from irongate.workflows.exception import PolicyViolation
from irongate.workflows.graph import InputTable, rewrite_code_node, scan_code_nodes

CODE_IDS = ["irongate/code-js", "irongate/http-code-js"]


def _scan(definition, wdir: Path, exts=(".ts", ".js")):
    return scan_code_nodes(definition, code_node_ids=CODE_IDS, workflow_dir=wdir, extensions=exts, workflow_id="wf")


def test_scan_filters_by_definition_id_and_keeps_order(tmp_path):
    nodes = [
        code_node("second", definition_id="irongate/http-code-js"),
        {"definition_id": "irongate/on-intercept-request", "alias": "trigger", "inputs": []},
        code_node("first"),
    ]
    found = _scan(definition_doc(nodes=nodes), tmp_path)
    assert [(c.index, c.alias) for c in found] == [(0, "second"), (2, "first")]
    assert all(c.script_path is None for c in found)


def test_scan_resolves_script_by_alias_and_extension_order(tmp_path):
    (tmp_path / "javascript.js").write_text("x", encoding="utf-8")
    (tmp_path / "javascript.ts").write_text("y", encoding="utf-8")
    found = _scan(definition_doc(), tmp_path)
    assert found[0].script_path == tmp_path / "javascript.ts"

    found_js_first = _scan(definition_doc(), tmp_path, exts=(".js", ".ts"))
    assert found_js_first[0].script_path == tmp_path / "javascript.js"


@pytest.mark.parametrize("alias", ["../escape", "a/b", "..", ""])
def test_scan_rejects_aliases_that_are_not_file_names(tmp_path, alias):
    with pytest.raises(PolicyViolation):
        _scan(definition_doc(nodes=[code_node(alias)]), tmp_path)


def test_scan_rejects_shared_code_node_alias(tmp_path):
    with pytest.raises(PolicyViolation) as ei:
        _scan(definition_doc(nodes=[code_node("js"), code_node("js")]), tmp_path)
    assert ei.value.alias == "js"


def test_input_table_lookup_and_replace_preserves_order():
    raw = [
        {"alias": "timeout", "value": {"kind": "integer", "data": 5}},
        {"alias": "code", "value": {"kind": "string", "data": ""}, "extra": True},
        {"alias": "mode", "value": {"kind": "enum", "data": "fast"}},
    ]
    table = InputTable(raw)
    assert "code" in table and "missing" not in table
    assert table.get("mode").value == {"kind": "enum", "data": "fast"}
    table.replace_value("code", {"kind": "string", "data": "x"})
    assert [i.alias for i in table] == ["timeout", "code", "mode"]
    assert raw[1] == {"alias": "code", "value": {"kind": "string", "data": "x"}, "extra": True}
    with pytest.raises(KeyError):
        table.replace_value("missing", {})


def test_rewrite_replaces_only_code_value(tmp_path):
    node = code_node(color="#fff")
    node["inputs"].insert(0, {"alias": "other", "value": {"kind": "string", "data": "keep"}})
    definition = definition_doc(nodes=[node])
    before = copy.deepcopy(node)
    cn = _scan(definition, tmp_path)[0]

    assert rewrite_code_node(cn, "compiled();", workflow_id="wf") == "compiled"
    assert node["inputs"][1]["value"] == {"kind": "string", "data": "compiled();"}
    assert node["inputs"][0] == before["inputs"][0]
    assert {k: v for k, v in node.items() if k != "inputs"} == {k: v for k, v in before.items() if k != "inputs"}


def test_rewrite_passes_through_inline_code(tmp_path):
    node = code_node(code="export function run() { return 1; }")
    before = copy.deepcopy(node)
    cn = _scan(definition_doc(nodes=[node]), tmp_path)[0]
    assert rewrite_code_node(cn, None, workflow_id="wf") == "inline"
    assert node == before


@pytest.mark.parametrize("data", ["", "   \n", None])
def test_rewrite_rejects_empty_inline_code(tmp_path, data):
    node = code_node()
    node["inputs"][0]["value"]["data"] = data
    cn = _scan(definition_doc(nodes=[node]), tmp_path)[0]
    with pytest.raises(PolicyViolation) as ei:
        rewrite_code_node(cn, None, workflow_id="wf")
    assert ei.value.workflow_id == "wf"
    assert "javascript" in str(ei.value)


def test_rewrite_requires_code_input_for_compiled_script(tmp_path):
    node = {"definition_id": "irongate/code-js", "alias": "javascript", "inputs": []}
    cn = _scan(definition_doc(nodes=[node]), tmp_path)[0]
    with pytest.raises(PolicyViolation):
        rewrite_code_node(cn, "x", workflow_id="wf")
