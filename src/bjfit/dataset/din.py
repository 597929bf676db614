# bjfit/dataset/din.py

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Tuple

from bjfit.errors import ConfigurationError, DatasetFormatError


class ParseState(enum.Enum):
    COEFFICIENT = "coefficient"
    NAME = "name"
    REFERENCE = "reference"


@dataclass
class DatasetRecord:
    """
    One record of a DIN file.

    A record is a run of (coefficient, name) components closed by a
    ``0`` line and the signed reference value:

        1
        h2o_dimer
        -2
        h2o
        0
        -4.97

    ``name`` is the first component's name; that is the key the reference
    value is stored under.
    """

    components: List[Tuple[str, str]] = field(default_factory=list)
    reference: float | None = None
    # raw reference line and its line number, kept even when it is not a number
    reference_text: str | None = None
    reference_lineno: int | None = None

    @property
    def name(self) -> str | None:
        return self.components[0][1] if self.components else None


def next_state(state: ParseState, line: str) -> ParseState:
    """Transition for one stripped, non-comment line."""
    if state is ParseState.COEFFICIENT:
        return ParseState.REFERENCE if line == "0" else ParseState.NAME
    return ParseState.COEFFICIENT


def _data_lines(path: Path):
    with path.open("r", encoding="utf-8", errors="ignore") as f:
        for lineno, raw in enumerate(f, start=1):
            line = raw.strip()
            if not line or line.startswith("#"):
                continue
            yield lineno, line


def parse_din(path: Path) -> List[DatasetRecord]:
    """
    Parse a DIN file into records.

    The state machine cycles COEFFICIENT -> NAME -> COEFFICIENT for every
    component. A coefficient line that is exactly ``0`` takes the shortcut
    COEFFICIENT -> REFERENCE, and the reference line closes the record.
    Reference content is not validated here; a line that is not a number
    leaves ``reference`` as None (see ``load_reference_values``).
    """
    path = Path(path).expanduser()
    if not path.is_file():
        raise ConfigurationError(f"DIN file does not exist: {path}")

    records: List[DatasetRecord] = []
    current = DatasetRecord()
    coefficient = ""
    state = ParseState.COEFFICIENT

    for lineno, line in _data_lines(path):
        if state is ParseState.COEFFICIENT:
            coefficient = line

        elif state is ParseState.NAME:
            current.components.append((coefficient, line))

        elif state is ParseState.REFERENCE:
            current.reference_text = line
            current.reference_lineno = lineno
            try:
                current.reference = float(line)
            except ValueError:
                current.reference = None
            records.append(current)
            current = DatasetRecord()

        state = next_state(state, line)

    # trailing components without a closing reference still name molecules
    if current.components:
        records.append(current)

    return records


def _unique_names(records: List[DatasetRecord]) -> List[str]:
    seen = set()
    out: List[str] = []
    for rec in records:
        for _, name in rec.components:
            if name not in seen:
                seen.add(name)
                out.append(name)
    return out


def load_names(path: Path) -> List[str]:
    """Ordered, de-duplicated molecule names defined by a DIN file."""
    names = _unique_names(parse_din(path))
    if not names:
        raise DatasetFormatError(f"no molecule names parsed from DIN: {path}")
    return names


def load_reference_values(path: Path) -> Dict[str, float]:
    """
    Map record name -> signed reference value (first occurrence wins).

    Used by the fit pre-flight; a named record whose reference line is not
    a number is reported with file:line.
    """
    path = Path(path).expanduser()
    records = parse_din(path)
    if not _unique_names(records):
        raise DatasetFormatError(f"no molecule names parsed from DIN: {path}")

    refs: Dict[str, float] = {}
    for rec in records:
        if rec.name is None:
            continue
        if rec.reference is None:
            if rec.reference_text is not None:
                raise DatasetFormatError(
                    f"{path}:{rec.reference_lineno}: reference value is not a number: "
                    f"{rec.reference_text!r}"
                )
            continue
        refs.setdefault(rec.name, rec.reference)
    return refs
