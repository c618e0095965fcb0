from __future__ import annotations

import json
from pathlib import Path

import pytest

from conftest import definition_doc, manifest_doc
from irongate.workflows.catalog import WorkflowCatalog
from irongate.workflows.exception import ManifestViolation, MissingFileError, WorkflowNotFoundError
from irongate.workflows.writer import write_workflow


def _assets(tmp_path: Path) -> Path:
    assets = tmp_path / "assets"
    write_workflow(assets, "redirect-test", definition_doc(kind="passive"), manifest_doc())
    write_workflow(assets, "json-escape", definition_doc(name="JSON Escape"), manifest_doc("json-escape", name="JSON Escape"))
    return assets


def test_load_lists_packaged_workflows(tmp_path):
    catalog = WorkflowCatalog(_assets(tmp_path))
    items = catalog.load()
    assert [w.id for w in items] == ["json-escape", "redirect-test"]
    redirect = items[1]
    assert redirect.kind == "passive"
    assert items[0].kind == "unknown"
    assert redirect.as_dict()["author"] == {"name": "a"}
    assert catalog.exists("redirect-test")


def test_search_matches_name_or_id_case_insensitive(tmp_path):
    catalog = WorkflowCatalog(_assets(tmp_path))
    catalog.load()
    assert [w.id for w in catalog.search("JSON")] == ["json-escape"]
    assert [w.id for w in catalog.search("redirect-")] == ["redirect-test"]
    assert len(catalog.search("")) == 2


def test_get_definition(tmp_path):
    catalog = WorkflowCatalog(_assets(tmp_path))
    catalog.load()
    assert catalog.get_definition("json-escape")["name"] == "JSON Escape"
    with pytest.raises(WorkflowNotFoundError) as ei:
        catalog.get_definition("nope")
    assert str(ei.value) == "Workflow not found: nope"


def test_strict_mode_raises_on_bad_workflow(tmp_path):
    assets = _assets(tmp_path)
    (assets / "redirect-test" / "definition.json").write_text("{broken", encoding="utf-8")
    with pytest.raises(MissingFileError):
        WorkflowCatalog(assets).load()


def test_strict_mode_checks_manifest(tmp_path):
    assets = _assets(tmp_path)
    (assets / "json-escape" / "manifest.json").write_text(json.dumps(manifest_doc("other", name="JSON Escape")), encoding="utf-8")
    with pytest.raises(ManifestViolation):
        WorkflowCatalog(assets).load()


def test_lenient_mode_defaults_and_skips(tmp_path):
    assets = _assets(tmp_path)
    (assets / "redirect-test" / "definition.json").write_text("{broken", encoding="utf-8")
    (assets / "json-escape" / "manifest.json").write_text("nope", encoding="utf-8")
    partial = assets / "partial"
    partial.mkdir()
    (partial / "definition.json").write_text(json.dumps({"name": "Partial", "version": "2.0.0"}), encoding="utf-8")
    (partial / "manifest.json").write_text("{}", encoding="utf-8")
    (assets / "empty").mkdir()

    catalog = WorkflowCatalog(assets, mode="lenient")
    items = {w.id: w for w in catalog.load()}
    assert sorted(items) == ["partial", "redirect-test"]
    assert items["redirect-test"].name == "Redirect Test"
    assert items["redirect-test"].kind == "unknown"
    assert items["partial"].name == "Partial"
    assert items["partial"].version == "2.0.0"
    assert items["partial"].description == ""


def test_lenient_mode_missing_assets_dir(tmp_path):
    assert WorkflowCatalog(tmp_path / "missing", mode="lenient").load() == []
    with pytest.raises(MissingFileError):
        WorkflowCatalog(tmp_path / "missing").load()


def test_unknown_mode_rejected(tmp_path):
    with pytest.raises(ValueError):
        WorkflowCatalog(tmp_path, mode="sloppy")
