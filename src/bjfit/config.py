# bjfit/config.py

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from bjfit.combos import (
    DEFAULT_COMBINATIONS,
    DEFAULT_DIR_TEMPLATE,
    Combination,
    combinations_from_config,
    load_combinations,
)
from bjfit.errors import ConfigurationError

_PATH_KEYS = {"base_dir", "din", "struct_dir", "fit_dir", "csv_out", "combos_file"}


def _as_path(v: Any) -> Optional[Path]:
    if v is None or v == "":
        return None
    return Path(str(v)).expanduser()


# ---------------------------------------------------------------------------
# PipelineConfig
# ---------------------------------------------------------------------------

@dataclass
class PipelineConfig:
    """
    Shared settings for generate / run-batch / fit.

    Every field may come from a YAML file; explicit CLI options win.
    """

    base_dir: Optional[Path] = None
    din: Optional[Path] = None
    struct_dir: Optional[Path] = None
    dir_template: str = DEFAULT_DIR_TEMPLATE

    # generate
    memory: str = "2 GB"
    threads: int = 6

    # run-batch
    psi4: str = "psi4"

    # fit
    fit_dir: Optional[Path] = None
    reader: str = "reader_psi4.m"
    octave: str = "octave-cli"
    csv_out: Optional[Path] = None

    combos_file: Optional[Path] = None
    combinations: List[Combination] = field(default_factory=lambda: list(DEFAULT_COMBINATIONS))

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------
    @classmethod
    def from_config(cls, cfg: Dict[str, Any] | None) -> "PipelineConfig":
        """
        Build from a mapping, e.g.

        base_dir: runs/kb49
        din: data/kb49.din
        struct_dir: data/kb49
        dir_template: "{base}/{method}/{basis}"
        threads: 8
        combinations:
          - "b3lyp|aug-cc-pvtz|0.6356|1.5119"
          - {method: pbe, basis: aug-cc-pvtz, a1: 0.4492, a2: 2.5517}
        """
        if cfg is None:
            return cls()
        if not isinstance(cfg, dict):
            raise ConfigurationError("config must be a mapping at top level")

        cfg = dict(cfg)
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(cfg) - known)
        if unknown:
            raise ConfigurationError(f"unknown config keys: {', '.join(unknown)}")

        combos_raw = cfg.pop("combinations", None)
        kwargs: Dict[str, Any] = {}
        for key, value in cfg.items():
            kwargs[key] = _as_path(value) if key in _PATH_KEYS else value

        if "threads" in kwargs:
            try:
                kwargs["threads"] = int(kwargs["threads"])
            except (TypeError, ValueError) as e:
                raise ConfigurationError(f"threads must be an integer: {kwargs['threads']!r}") from e

        out = cls(**kwargs)
        if combos_raw is not None:
            if not isinstance(combos_raw, list):
                raise ConfigurationError("combinations must be a list")
            out.combinations = combinations_from_config(combos_raw)
        elif out.combos_file is not None:
            out.combinations = load_combinations(out.combos_file)
        return out

    @staticmethod
    def from_yaml(path: Path) -> "PipelineConfig":
        path = Path(path).expanduser()
        if not path.is_file():
            raise ConfigurationError(f"config file does not exist: {path}")
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8"))
        except yaml.YAMLError as e:
            raise ConfigurationError(f"invalid YAML in {path}: {e}") from e
        return PipelineConfig.from_config(data)

    @staticmethod
    def load(path: Optional[Path]) -> "PipelineConfig":
        return PipelineConfig.from_yaml(path) if path else PipelineConfig()

    # ------------------------------------------------------------------
    def with_overrides(self, **overrides: Any) -> "PipelineConfig":
        """Return a copy with every non-None override applied."""
        updates = {k: v for k, v in overrides.items() if v is not None}
        combos_file = updates.get("combos_file")
        out = replace(self, **updates)
        if combos_file is not None:
            out.combinations = load_combinations(combos_file)
        return out

    def require(self, *names: str) -> None:
        missing = [n for n in names if getattr(self, n) in (None, "")]
        if missing:
            opts = ", ".join("--" + n.replace("_", "-") for n in missing)
            raise ConfigurationError(f"missing required setting(s): {opts}")
