# bjfit/psi4/generate.py

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional

from jinja2 import Environment

from bjfit.combos import Combination, resolve_result_dir
from bjfit.dataset.din import load_names
from bjfit.dataset.structure import Structure, read_structure
from bjfit.errors import ConfigurationError, DatasetFormatError
from bjfit.invoke import OK
from bjfit.log import get_logger
from bjfit.render import get_template_env, render_template

logger = get_logger(__name__)

PSI4_ENERGY_TEMPLATE = "psi4/energy.dat.j2"
INPUT_SUFFIX = ".dat"
STRUCTURE_SUFFIX = ".xyz"


@dataclass
class GenerateOptions:
    memory: str = "2 GB"
    threads: int = 6
    overwrite: bool = False


@dataclass(frozen=True)
class ComboResult:
    combo: str
    generated: int
    directory: Path

    def line(self) -> str:
        return f"{OK}\t{self.combo}\t{self.generated}\t{self.directory}"


def render_input(
    structure: Structure,
    *,
    name: str,
    method: str,
    basis: str,
    opts: GenerateOptions,
    env: Optional[Environment] = None,
) -> str:
    return render_template(
        PSI4_ENERGY_TEMPLATE,
        {
            "memory": opts.memory,
            "threads": opts.threads,
            "name": name,
            "charge": structure.charge,
            "mult": structure.multiplicity,
            "geom_lines": structure.geom_lines,
            "basis": basis,
            "method": method,
        },
        env=env,
    )


def _structure_paths(struct_dir: Path, names: List[str]) -> Dict[str, Path]:
    paths = {n: struct_dir / f"{n}{STRUCTURE_SUFFIX}" for n in names}
    for p in paths.values():
        if not p.is_file():
            raise DatasetFormatError(f"missing XYZ file: {p}")
    return paths


def generate_inputs(
    base_dir: Path,
    din: Path,
    struct_dir: Path,
    combos: List[Combination],
    *,
    dir_template: str,
    opts: GenerateOptions,
    emit: Optional[Callable[[str], None]] = None,
) -> List[ComboResult]:
    """
    Write one psi4 input per (combination, molecule).

    Every structure file is checked before anything is written, so a dataset
    mismatch aborts the run without partial output.
    """
    din = Path(din)
    struct_dir = Path(struct_dir)
    if not din.is_file():
        raise ConfigurationError(f"DIN file not found: {din}")
    if not struct_dir.is_dir():
        raise ConfigurationError(f"structure directory not found: {struct_dir}")

    names = load_names(din)
    xyz_paths = _structure_paths(struct_dir, names)

    env = get_template_env()
    emit = emit or (lambda s: None)
    base_dir = Path(base_dir)
    base_dir.mkdir(parents=True, exist_ok=True)

    structures: Dict[str, Structure] = {}
    results: List[ComboResult] = []

    emit("status\tcombo\tmolecules\tdirectory")
    for combo in combos:
        combo_dir = resolve_result_dir(dir_template, base_dir, combo.method, combo.basis)
        combo_dir.mkdir(parents=True, exist_ok=True)

        count = 0
        for name in names:
            out_file = combo_dir / f"{name}{INPUT_SUFFIX}"
            if out_file.exists() and not opts.overwrite:
                continue

            if name not in structures:
                structures[name] = read_structure(xyz_paths[name])

            text = render_input(
                structures[name],
                name=name,
                method=combo.method,
                basis=combo.basis,
                opts=opts,
                env=env,
            )
            out_file.write_text(text, encoding="utf-8")
            count += 1

        res = ComboResult(combo.combo, count, combo_dir)
        emit(res.line())
        results.append(res)

    return results
