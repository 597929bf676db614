# bjfit/combos.py

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import yaml

from bjfit.errors import ConfigurationError

DEFAULT_DIR_TEMPLATE = "{base}/{method}/{basis}"


@dataclass(frozen=True)
class Combination:
    """
    One (method, basis) pair with its literature a1/a2 starting point.

    The same ordered table drives input generation and fitting, so both
    stages address identical result directories.
    """

    method: str
    basis: str
    a1: float
    a2: float

    @property
    def combo(self) -> str:
        return f"{self.method}/{self.basis}"


def resolve_result_dir(template: str, base: Path | str, method: str, basis: str) -> Path:
    """Substitute {base}, {method}, {basis} verbatim, in that order."""
    out = template.replace("{base}", str(base))
    out = out.replace("{method}", method)
    out = out.replace("{basis}", basis)
    return Path(out)


def parse_combination_line(line: str) -> Combination:
    parts = [p.strip() for p in line.split("|")]
    if len(parts) != 4 or not parts[0] or not parts[1]:
        raise ValueError(f"expected method|basis|a1|a2, got: {line!r}")
    return Combination(parts[0], parts[1], float(parts[2]), float(parts[3]))


def _from_mapping(d: Dict[str, Any]) -> Combination:
    return Combination(
        method=str(d["method"]),
        basis=str(d["basis"]),
        a1=float(d["a1"]),
        a2=float(d["a2"]),
    )


def combinations_from_config(items: Iterable[Any]) -> List[Combination]:
    """Build combinations from config entries (``"m|b|a1|a2"`` strings or mappings)."""
    out: List[Combination] = []
    for i, item in enumerate(items):
        try:
            if isinstance(item, str):
                out.append(parse_combination_line(item))
            elif isinstance(item, dict):
                out.append(_from_mapping(item))
            else:
                raise ValueError(f"unsupported entry type {type(item).__name__}")
        except (KeyError, TypeError, ValueError) as e:
            raise ConfigurationError(f"combinations[{i}]: {e}") from e
    return out


def load_combinations(path: Path) -> List[Combination]:
    """
    Load a combination table.

    ``*.yaml``/``*.yml`` files hold a list (or a ``combinations:`` key);
    anything else is read as ``method|basis|a1|a2`` lines, ignoring blanks
    and ``#`` comments.
    """
    path = Path(path).expanduser()
    if not path.is_file():
        raise ConfigurationError(f"combination file does not exist: {path}")

    if path.suffix.lower() in (".yaml", ".yml"):
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
        if isinstance(data, dict):
            data = data.get("combinations")
        if not isinstance(data, list):
            raise ConfigurationError(f"{path}: expected a list of combinations")
        combos = combinations_from_config(data)
    else:
        combos = []
        with path.open("r", encoding="utf-8") as f:
            for lineno, line in enumerate(f, start=1):
                line = line.strip()
                if not line or line.startswith("#"):
                    continue
                try:
                    combos.append(parse_combination_line(line))
                except ValueError as e:
                    raise ConfigurationError(f"{path}:{lineno}: {e}") from e

    if not combos:
        raise ConfigurationError(f"no combinations in {path}")
    return combos


def select_combinations(
    combos: List[Combination],
    methods: Optional[List[str]] = None,
) -> List[Combination]:
    """Keep only the listed methods, preserving table order."""
    if not methods:
        return list(combos)
    wanted = {m.lower() for m in methods}
    return [c for c in combos if c.method.lower() in wanted]


# ---------------------------------------------------------------------------
# Literature starting points (method, basis, a1, a2)
# ---------------------------------------------------------------------------
_DEFAULT_TABLE = """
b3lyp|6-31+g*|0.4515|2.1357
b3lyp|6-31+g**|0.4306|2.2076
b3lyp|6-311+g(2d,2p)|0.4376|2.1607
b3lyp|aug-cc-pvdz|0.6224|1.7068
b3lyp|aug-cc-pvtz|0.6356|1.5119
pw86pbe|6-31+g*|0.6336|1.9148
pw86pbe|6-31+g**|0.6935|1.7519
pw86pbe|aug-cc-pvdz|0.6736|1.9327
pw86pbe|aug-cc-pvtz|0.7564|1.4545
pbe|6-31+g*|0.2445|3.2596
pbe|6-31+g**|0.2746|3.1857
pbe|aug-cc-pvdz|0.2061|3.5486
pbe|aug-cc-pvtz|0.4492|2.5517
pbe0|6-31+g*|0.0845|3.7940
pbe0|6-31+g**|0.1163|3.7191
pbe0|aug-cc-pvdz|0.1389|3.8310
pbe0|aug-cc-pvtz|0.4186|2.6791
blyp|6-31+g*|0.5942|1.4555
blyp|6-31+g**|0.5653|1.5460
blyp|aug-cc-pvdz|0.9742|0.3427
blyp|aug-cc-pvtz|0.7647|0.8457
bhahlyp|6-31+g*|0.1483|3.3435
bhahlyp|6-31+g**|0.1432|3.3705
bhandh|aug-cc-pvtz|0.5610|1.9894
bhandhlyp|aug-cc-pvtz|0.5610|1.9894
bhalfandhalf|aug-cc-pvtz|0.5610|1.9894
bhalfandhalf|aug-cc-pvdz|0.1247|3.5725
cam-b3lyp|6-31+g*|0.2315|3.2123
cam-b3lyp|6-31+g**|0.2365|3.2081
cam-b3lyp|aug-cc-pvdz|0.1849|3.5140
cam-b3lyp|aug-cc-pvtz|0.3248|2.8607
camb3lyp|aug-cc-pvtz|0.3248|2.8607
camb3lyp|aug-cc-pvdz|0.1849|3.5140
lc-wpbe|aug-cc-pvtz|1.0149|0.6755
lcwpbe|aug-cc-pvtz|1.0149|0.6755
lc-wpbe|6-31+g*|0.8134|1.3736
lcwpbe|6-31+g*|0.8134|1.3736
lc-wpbe|6-31+g**|0.8934|1.1466
lcwpbe|6-31+g**|0.8934|1.1466
lcwpbe|aug-cc-pvdz|1.1800|0.4179
b971|aug-cc-pvtz|0.1998|3.5367
b97-1|aug-cc-pvtz|0.1998|3.5367
b97-1|6-31+g*|0.0118|4.1784
b97-1|6-31+g**|0.0429|4.1090
hf|aug-cc-pvdz|0.3698|2.1961
hf|aug-cc-pvtz|0.3698|2.1961
b86bpbe|aug-cc-pvtz|0.7839|1.2544
tpss|aug-cc-pvtz|0.6612|1.5111
hse06|aug-cc-pvtz|0.3691|2.8793
"""

DEFAULT_COMBINATIONS: List[Combination] = [
    parse_combination_line(ln) for ln in _DEFAULT_TABLE.split() if ln.strip()
]
