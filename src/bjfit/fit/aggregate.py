# bjfit/fit/aggregate.py

from __future__ import annotations

import csv
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional

from pydantic import ValidationError

from bjfit.combos import DEFAULT_DIR_TEMPLATE, Combination, resolve_result_dir
from bjfit.dataset.din import load_names, load_reference_values
from bjfit.errors import ConfigurationError
from bjfit.fit.models import COLUMNS, FitResult
from bjfit.fit.octave import FitRequest, OctaveFitRoutine, write_driver
from bjfit.invoke import FAIL, MISS, OK, SKIP, Invocation, LineGrammar, classify, require_executable
from bjfit.log import get_logger

logger = get_logger(__name__)

RESULT_GRAMMAR = LineGrammar(statuses=(OK, SKIP), nonzero_ok=(SKIP,))

FitRoutine = Callable[[FitRequest], Invocation]


@dataclass
class FitOptions:
    fit_dir: Path
    reader: str = "reader_psi4.m"
    octave: str = "octave-cli"
    dir_template: str = DEFAULT_DIR_TEMPLATE
    csv_out: Optional[Path] = None


@dataclass
class FitReport:
    rows: List[FitResult] = field(default_factory=list)

    def add(self, row: FitResult) -> None:
        self.rows.append(row)

    def count(self, status: str) -> int:
        return sum(1 for r in self.rows if r.status == status)

    @property
    def failed(self) -> int:
        return self.count(FAIL)

    @property
    def exit_code(self) -> int:
        return 1 if self.failed > 0 else 0


# ---------------------------------------------------------------------------
# CSV report
# ---------------------------------------------------------------------------

class CsvReport:
    """Header written once, then one fully quoted row appended per combination."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        with self.path.open("w", encoding="utf-8", newline="") as f:
            f.write(",".join(COLUMNS) + "\n")

    def append(self, row: FitResult) -> None:
        with self.path.open("a", encoding="utf-8", newline="") as f:
            writer = csv.writer(f, quoting=csv.QUOTE_ALL, lineterminator="\n")
            writer.writerow(row.to_fields())


# ---------------------------------------------------------------------------
# Pre-flight
# ---------------------------------------------------------------------------

def _preflight(din: Path, struct_dir: Path, opts: FitOptions, need_octave: bool) -> None:
    if not din.is_file():
        raise ConfigurationError(f"DIN file does not exist: {din}")
    if not struct_dir.is_dir():
        raise ConfigurationError(f"structure directory does not exist: {struct_dir}")
    reader = Path(opts.fit_dir) / opts.reader
    if not reader.is_file():
        raise ConfigurationError(f"reader script not found: {reader}")
    if opts.csv_out is not None and not Path(opts.csv_out).parent.is_dir():
        raise ConfigurationError(
            f"parent directory for --csv-out does not exist: {Path(opts.csv_out).parent}"
        )
    if need_octave:
        require_executable(opts.octave)

    # an empty dataset cannot be fitted; reference lines must parse
    load_names(din)
    if not load_reference_values(din):
        logger.warning("no reference values in %s", din)


# ---------------------------------------------------------------------------
# One combination
# ---------------------------------------------------------------------------

def fit_combination(
    combo: Combination,
    *,
    base_dir: Path,
    din: Path,
    struct_dir: Path,
    opts: FitOptions,
    routine: FitRoutine,
    diag: Optional[Callable[[str], None]] = None,
) -> FitResult:
    result_dir = resolve_result_dir(opts.dir_template, base_dir, combo.method, combo.basis)

    if not result_dir.is_dir():
        return FitResult.placeholder(MISS, combo.combo, str(result_dir))

    req = FitRequest(
        fit_dir=Path(opts.fit_dir),
        din=din,
        struct_dir=struct_dir,
        reader=opts.reader,
        result_dir=result_dir,
        method=combo.method,
        basis=combo.basis,
        a1_init=combo.a1,
        a2_init=combo.a2,
    )
    inv = routine(req)
    outcome = classify(inv, RESULT_GRAMMAR)

    row = None
    if outcome.status == OK and len(outcome.fields) < len(COLUMNS):
        logger.error("truncated OK line for %s: %r", combo.combo, "\t".join(outcome.fields))
    elif outcome.status in (OK, SKIP):
        try:
            row = FitResult.from_fields(outcome.fields, fallback_dir=str(result_dir))
        except ValidationError as e:
            logger.error("unparseable result line for %s: %s", combo.combo, e)

    if row is None:
        logger.error("fit failed for %s: %s", combo.combo, outcome.note)
        if inv.output and diag is not None:
            diag(inv.output.rstrip("\n"))
        return FitResult.placeholder(FAIL, combo.combo, str(result_dir))

    return row


# ---------------------------------------------------------------------------
# Whole table
# ---------------------------------------------------------------------------

def run_fits(
    base_dir: Path,
    din: Path,
    struct_dir: Path,
    combos: List[Combination],
    opts: FitOptions,
    *,
    routine: Optional[FitRoutine] = None,
    emit: Optional[Callable[[str], None]] = None,
    diag: Optional[Callable[[str], None]] = None,
) -> FitReport:
    """
    Fit a1/a2 for every combination whose result directory exists.

    Missing directories become MISS rows without invoking the routine;
    routine failures become FAIL rows and the loop continues.
    """
    base_dir = Path(base_dir)
    din = Path(din)
    struct_dir = Path(struct_dir)

    _preflight(din, struct_dir, opts, need_octave=routine is None)
    base_dir.mkdir(parents=True, exist_ok=True)

    emit = emit or (lambda s: None)
    csv_report = CsvReport(opts.csv_out) if opts.csv_out else None
    report = FitReport()

    with tempfile.TemporaryDirectory(prefix="bjfit-") as tmp:
        if routine is None:
            driver = write_driver(Path(tmp) / "fit_a1a2.m")
            routine = OctaveFitRoutine(opts.octave, driver)

        emit("\t".join(COLUMNS))
        for combo in combos:
            row = fit_combination(
                combo,
                base_dir=base_dir,
                din=din,
                struct_dir=struct_dir,
                opts=opts,
                routine=routine,
                diag=diag,
            )
            emit(row.line())
            if csv_report is not None:
                csv_report.append(row)
            report.add(row)

    logger.info(
        "fit: %d ok, %d skip, %d missing, %d failed",
        report.count(OK), report.count(SKIP), report.count(MISS), report.failed,
    )
    return report
