from __future__ import annotations

import os
import shlex
from pathlib import Path
from typing import List

import yaml
from pydantic import BaseModel, Field, ValidationError

from irongate.workflows.spec import BuildConfigSpec

DEFAULT_CODE_NODE_IDS = ["irongate/code-js", "irongate/http-code-js"]


class Settings(BaseModel):
    # Defaults are static. Use load_settings(env=...) to read from an env snapshot.
    src_dir: str = "src"
    out_dir: str = "dist-workflows"

    # Node kinds whose "code" input carries an embeddable script.
    code_node_ids: List[str] = Field(default_factory=lambda: list(DEFAULT_CODE_NODE_IDS))
    # Script lookup order for <alias><ext> next to definition.json.
    script_extensions: List[str] = Field(default_factory=lambda: [".ts", ".js"])

    # External tooling (Node ecosystem). Commands are argv prefixes.
    bundler_command: List[str] = Field(default_factory=lambda: ["esbuild"])
    minifier_command: List[str] = Field(default_factory=lambda: ["terser"])
    compile_timeout_seconds: float = 120.0

    log_level: str = "INFO"
    # - log_format: "text" (default) or "json". When json, every event is a single
    #   JSON object per line.
    log_format: str = "text"

    @classmethod
    def from_env(cls, env: dict[str, str], overrides: dict | None = None) -> "Settings":
        """Build Settings from an explicit env snapshot (does not read os.environ)."""
        def g(key: str, default: str | None = None) -> str | None:
            return env.get(key, default)  # type: ignore[return-value]

        def csv(key: str, default: List[str]) -> List[str]:
            raw = g(key)
            if raw is None:
                return list(default)
            return [p.strip() for p in raw.split(",") if p.strip()]

        def argv(key: str, default: List[str]) -> List[str]:
            raw = g(key)
            return shlex.split(raw) if raw else list(default)

        data = {
            "src_dir": g("IRONGATE_WORKFLOWS_SRC", "src"),
            "out_dir": g("IRONGATE_WORKFLOWS_OUT", "dist-workflows"),
            "code_node_ids": csv("IRONGATE_CODE_NODE_IDS", DEFAULT_CODE_NODE_IDS),
            "script_extensions": csv("IRONGATE_SCRIPT_EXTENSIONS", [".ts", ".js"]),
            "bundler_command": argv("IRONGATE_BUNDLER", ["esbuild"]),
            "minifier_command": argv("IRONGATE_MINIFIER", ["terser"]),
            "compile_timeout_seconds": float(g("IRONGATE_COMPILE_TIMEOUT", "120") or "120"),
            "log_level": g("IRONGATE_LOG_LEVEL", "INFO"),
            "log_format": g("IRONGATE_LOG_FORMAT", "text"),
        }
        if overrides:
            data.update(overrides)
        return cls(**data)


def load_config_file(path: str | Path) -> dict:
    """Read a YAML build config and return only the keys it sets."""
    p = Path(path)
    with p.open("r", encoding="utf-8") as f:
        try:
            raw = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid build config {p}: {e}") from e
    if not isinstance(raw, dict):
        raise ValueError(f"Build config must be a YAML mapping: {p}")
    try:
        spec = BuildConfigSpec.model_validate(raw)
    except ValidationError as e:
        raise ValueError(f"Invalid build config {p}: {e}") from e
    return spec.model_dump(exclude_none=True)


def load_settings(
    overrides: dict | None = None,
    *,
    env: dict[str, str] | None = None,
    config_path: str | None = None,
) -> Settings:
    """Load settings from (1) env snapshot, (2) optional YAML config file, (3) explicit overrides.

    The config file is ``config_path`` or, if not given, IRONGATE_WORKFLOWS_CONFIG.
    """
    env2 = {k: str(v) for k, v in os.environ.items()} if env is None else env
    s = Settings.from_env(env2)
    cfg = config_path or env2.get("IRONGATE_WORKFLOWS_CONFIG")
    if cfg:
        s = s.model_copy(update=load_config_file(cfg))
    if overrides:
        s = s.model_copy(update=overrides)
    return s
