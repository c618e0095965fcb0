import json
import shutil
import sys
import tempfile
import textwrap
from pathlib import Path

# Allow running tests without installing the package.
sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

import pytest
from irongate.workflows.runtime.settings import Settings

# Stand-ins for esbuild/terser, run through the current interpreter.
FAKE_BUNDLER = textwrap.dedent(
    """
    import sys
    from pathlib import Path

    args = sys.argv[1:]
    entry = next(a for a in args if not a.startswith("--"))
    outfile = next(a.split("=", 1)[1] for a in args if a.startswith("--outfile="))
    src = Path(entry).read_text(encoding="utf-8")
    if "BUNDLE_ERROR" in src:
        sys.stderr.write("X [ERROR] Could not resolve module\\n")
        sys.exit(1)
    externals = ",".join(a.split(":", 1)[1] for a in args if a.startswith("--external:"))
    header = "// bundled " + Path(entry).name + " external=" + externals + " " + " ".join(a for a in args if a.startswith("--format"))
    Path(outfile).write_text(header + "\\n" + src, encoding="utf-8")
    """
)

FAKE_MINIFIER = textwrap.dedent(
    """
    import sys

    args = sys.argv[1:]
    if "--compress" not in args or "--mangle-props" not in args:
        sys.stderr.write("unexpected arguments\\n")
        sys.exit(3)
    src = sys.stdin.read()
    if "MINIFY_ERROR" in src:
        sys.stderr.write("Parse error at 0:1\\n")
        sys.exit(1)
    sys.stdout.write("\\n".join(line.strip() for line in src.splitlines() if line.strip()))
    """
)

SCRIPT_BODY = """/**
 * @param {HttpInput} input
 * @param {SDK} sdk
 */
export async function run({ request, response }, sdk) {
    if (request && response) {
        const location = response.getHeader("Location");
        if (location) {
            sdk.console.log(`has location header`);
        }
    }
}
"""


@pytest.fixture()
def temp_dir():
    d = Path(tempfile.mkdtemp(prefix="irongate_test_"))
    try:
        yield d
    finally:
        shutil.rmtree(d, ignore_errors=True)


@pytest.fixture()
def fake_tools(temp_dir):
    tools = temp_dir / "tools"
    tools.mkdir()
    bundler = tools / "fake_esbuild.py"
    minifier = tools / "fake_terser.py"
    bundler.write_text(FAKE_BUNDLER, encoding="utf-8")
    minifier.write_text(FAKE_MINIFIER, encoding="utf-8")
    return {
        "bundler_command": [sys.executable, str(bundler)],
        "minifier_command": [sys.executable, str(minifier)],
    }


@pytest.fixture()
def settings(temp_dir, fake_tools):
    return Settings(
        src_dir=str(temp_dir / "src"),
        out_dir=str(temp_dir / "dist"),
        bundler_command=fake_tools["bundler_command"],
        minifier_command=fake_tools["minifier_command"],
        compile_timeout_seconds=60,
        log_level="INFO",
    )


def manifest_doc(workflow_id="redirect-test", name="Redirect Test", **extra):
    doc = {
        "id": workflow_id,
        "name": name,
        "description": "Detects redirects to a parameter value",
        "url": "https://x",
        "version": "1.0.0",
        "author": {"name": "a"},
    }
    doc.update(extra)
    return doc


def code_node(alias="javascript", code="", definition_id="irongate/code-js", **extra):
    node = {
        "definition_id": definition_id,
        "alias": alias,
        "inputs": [{"alias": "code", "value": {"kind": "string", "data": code}}],
    }
    node.update(extra)
    return node


def definition_doc(name="Redirect Test", nodes=None, **extra):
    doc = {"name": name, "graph": {"nodes": list(nodes if nodes is not None else [code_node()])}}
    doc.update(extra)
    return doc


@pytest.fixture()
def make_workflow(settings):
    """Write a workflow directory under settings.src_dir and return its path."""

    def _make(workflow_id="redirect-test", *, definition=None, manifest=None, scripts=None):
        wdir = Path(settings.src_dir) / workflow_id
        wdir.mkdir(parents=True, exist_ok=True)
        definition = definition_doc() if definition is None else definition
        manifest = manifest_doc(workflow_id) if manifest is None else manifest
        for fname, doc in (("definition.json", definition), ("manifest.json", manifest)):
            text = doc if isinstance(doc, str) else json.dumps(doc, indent=2)
            (wdir / fname).write_text(text, encoding="utf-8")
        for fname, body in (scripts if scripts is not None else {"javascript.ts": SCRIPT_BODY}).items():
            (wdir / fname).write_text(body, encoding="utf-8")
        return wdir

    return _make
