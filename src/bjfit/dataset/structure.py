from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from bjfit.log import get_logger

logger = get_logger(__name__)

_INT_RE = re.compile(r"^[-+]?\d+$")


@dataclass(frozen=True)
class Structure:
    path: Path
    declared_atoms: Optional[int]
    charge: int
    multiplicity: int
    geom_lines: List[str]

    @property
    def atom_count(self) -> int:
        """Number of geometry lines that look like atoms (>= 4 fields)."""
        return sum(1 for ln in self.geom_lines if len(ln.split()) >= 4)


def _charge_mult(line: str):
    parts = line.split()
    if len(parts) >= 2 and _INT_RE.match(parts[0]) and _INT_RE.match(parts[1]):
        return int(parts[0]), int(parts[1])
    return 0, 1


def read_structure(path: Path) -> Structure:
    """
    Read an XYZ-like structure file.

    Line 1 is the atom count, line 2 is ``charge multiplicity`` (free text
    falls back to 0 1), every following line is kept verbatim.
    """
    path = Path(path)
    lines = path.read_text(errors="ignore").splitlines()

    first = lines[0].split() if lines else []
    declared = int(first[0]) if first and first[0].isdigit() else None
    charge, mult = _charge_mult(lines[1]) if len(lines) > 1 else (0, 1)

    st = Structure(
        path=path,
        declared_atoms=declared,
        charge=charge,
        multiplicity=mult,
        geom_lines=lines[2:],
    )

    if declared is not None and st.atom_count != declared:
        logger.warning(
            "atom count mismatch for %s (declared %d, found %d)",
            path, declared, st.atom_count,
        )

    return st
