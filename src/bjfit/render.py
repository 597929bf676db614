from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

from jinja2 import Environment, FileSystemLoader, StrictUndefined

TEMPLATE_ROOT = Path(__file__).resolve().parent / "templates"


def get_template_env() -> Environment:
    """
    Canonical Jinja environment over the packaged templates.
    No autoescape; undefined variables are errors.
    """
    if not TEMPLATE_ROOT.is_dir():
        raise RuntimeError(f"Could not locate templates directory: {TEMPLATE_ROOT}")
    return Environment(
        loader=FileSystemLoader(str(TEMPLATE_ROOT)),
        undefined=StrictUndefined,
        autoescape=False,
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
    )


def render_template(name: str, params: Dict[str, Any], env: Environment | None = None) -> str:
    env = env or get_template_env()
    return env.get_template(name).render(**params)
