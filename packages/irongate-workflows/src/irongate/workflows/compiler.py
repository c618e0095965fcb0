"""Out-of-band compilation of node scripts.

Bundling and minification are delegated to external Node tools (esbuild and
terser by default). Both sit behind small protocols so the packager can be
driven by any implementation with the same contract.
"""

from __future__ import annotations

import logging
import subprocess
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Protocol, Sequence

from irongate.workflows.exception import CompileError, ToolError
from irongate.workflows.runtime.settings import Settings

log = logging.getLogger("irongate.workflows.compiler")

OutputHook = Callable[[str], str]

# Property names matching this are internal to a script and safe to shorten.
INTERNAL_PROPS_REGEX = r"^\$.+\$$|^[A-Z][a-zA-Z]+$"


class Bundler(Protocol):
    """Bundles one entry file into a single ES module."""

    def bundle(self, entry: Path, out_dir: Path, *, hooks: Sequence[OutputHook] = ()) -> Path:
        ...


class Minifier(Protocol):
    def minify(self, source: str) -> str:
        ...


def run_tool(argv: List[str], *, tool: str, timeout: float, input_text: Optional[str] = None) -> subprocess.CompletedProcess:
    log.debug("running %s: %s", tool, argv)
    try:
        proc = subprocess.run(
            argv,
            input=input_text,
            capture_output=True,
            text=True,
            encoding="utf-8",
            timeout=timeout,
        )
    except FileNotFoundError as e:
        raise ToolError(tool, f"executable not found: {argv[0]}") from e
    except subprocess.TimeoutExpired as e:
        raise ToolError(tool, f"timed out after {timeout}s") from e
    except UnicodeDecodeError as e:
        raise ToolError(tool, f"output is not valid UTF-8: {e}") from e
    if proc.returncode != 0:
        detail = (proc.stderr or proc.stdout or "").strip()
        raise ToolError(tool, f"exited with code {proc.returncode}: {detail}")
    return proc


def _js_literal(v: object) -> str:
    if isinstance(v, bool):
        return "true" if v else "false"
    return str(v)


@dataclass(frozen=True)
class MinifyOptions:
    """Terser configuration: no default compressions, readable top level,
    comments kept, and only internal property names mangled."""

    compress: Dict[str, object] = field(
        default_factory=lambda: {
            "defaults": False,
            "module": True,
            "hoist_props": True,
            "unused": True,
            "booleans_as_integers": True,
        }
    )
    mangle_toplevel: bool = False
    mangle_props_regex: Optional[str] = INTERNAL_PROPS_REGEX
    comments: str = "all"

    def to_args(self) -> List[str]:
        args = ["--compress", ",".join(f"{k}={_js_literal(v)}" for k, v in self.compress.items())]
        args += ["--mangle", f"toplevel={_js_literal(self.mangle_toplevel)}"]
        if self.mangle_props_regex:
            args += ["--mangle-props", f"regex=/{self.mangle_props_regex}/"]
        args += ["--comments", self.comments]
        return args


class TerserMinifier:
    def __init__(self, command: Sequence[str] = ("terser",), *, options: MinifyOptions | None = None, timeout: float = 120.0):
        self.command = list(command)
        self.options = options or MinifyOptions()
        self.timeout = timeout

    def argv(self) -> List[str]:
        return [*self.command, *self.options.to_args()]

    def minify(self, source: str) -> str:
        proc = run_tool(self.argv(), tool="minifier", timeout=self.timeout, input_text=source)
        return proc.stdout


class EsbuildBundler:
    def __init__(
        self,
        command: Sequence[str] = ("esbuild",),
        *,
        externals: Sequence[str] = ("irongate:*",),
        timeout: float = 120.0,
    ):
        self.command = list(command)
        self.externals = list(externals)
        self.timeout = timeout

    def argv(self, entry: Path, outfile: Path) -> List[str]:
        # platform=node keeps Node built-ins external.
        return [
            *self.command,
            str(entry),
            "--bundle",
            "--format=esm",
            "--platform=node",
            f"--outfile={outfile}",
            "--log-level=error",
            *[f"--external:{e}" for e in self.externals],
        ]

    def bundle(self, entry: Path, out_dir: Path, *, hooks: Sequence[OutputHook] = ()) -> Path:
        outfile = Path(out_dir) / f"{Path(entry).name.split('.')[0]}.js"
        run_tool(self.argv(Path(entry), outfile), tool="bundler", timeout=self.timeout)
        if not outfile.is_file():
            raise ToolError("bundler", f"no output written to {outfile}")
        if hooks:
            text = outfile.read_text(encoding="utf-8")
            for hook in hooks:
                text = hook(text)
            outfile.write_text(text, encoding="utf-8")
        return outfile


class ScriptCompiler:
    """Bundle + minify one script and return the compiled text."""

    def __init__(self, bundler: Bundler, minifier: Minifier):
        self.bundler = bundler
        self.minifier = minifier

    @classmethod
    def from_settings(cls, settings: Settings) -> "ScriptCompiler":
        timeout = settings.compile_timeout_seconds
        return cls(
            EsbuildBundler(settings.bundler_command, timeout=timeout),
            TerserMinifier(settings.minifier_command, timeout=timeout),
        )

    def compile(self, script_path: Path, *, workflow_id: str, alias: str) -> str:
        with tempfile.TemporaryDirectory(prefix="irongate_compile_") as tmp:
            try:
                out = self.bundler.bundle(Path(script_path), Path(tmp), hooks=[self.minifier.minify])
                try:
                    text = out.read_text(encoding="utf-8")
                finally:
                    out.unlink(missing_ok=True)
            except ToolError as e:
                raise CompileError(str(e), alias=alias, workflow_id=workflow_id) from e
            except (OSError, UnicodeDecodeError) as e:
                raise CompileError(f"cannot read compiled output: {e}", alias=alias, workflow_id=workflow_id) from e
        if not text.strip():
            raise CompileError("compiled output is empty", alias=alias, workflow_id=workflow_id)
        return text
