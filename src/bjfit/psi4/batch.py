# bjfit/psi4/batch.py

from __future__ import annotations

import os
import re
import shutil
import tempfile
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Callable, Iterator, List, Optional

from bjfit.errors import ConfigurationError
from bjfit.invoke import FAIL, OK, RUN, SKIP, Invocation, classify, require_executable, run_external
from bjfit.log import get_logger

logger = get_logger(__name__)

COMPLETION_RE = re.compile(r"^\s*Total Energy\s*=.*", re.MULTILINE)

WORK_GLOB = "*.dat"
BACKUP_SUFFIX = ".input"
TMP_INFIX = ".tmpin."


# ---------------------------------------------------------------------------
# Work items
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class WorkItem:
    path: Path

    @property
    def backup_path(self) -> Path:
        return self.path.with_name(self.path.name + BACKUP_SUFFIX)

    @property
    def is_complete(self) -> bool:
        try:
            text = self.path.read_text(errors="ignore")
        except OSError:
            return False
        return COMPLETION_RE.search(text) is not None

    def make_backup(self) -> bool:
        """Write ``<name>.input`` once; never clobber an existing backup."""
        if self.backup_path.exists():
            return False
        shutil.copyfile(self.path, self.backup_path)
        return True

    def make_exec_copy(self) -> Path:
        """Disposable copy next to the original so psi4 can write back in place."""
        fd, tmp = tempfile.mkstemp(prefix=self.path.name + TMP_INFIX, dir=self.path.parent)
        os.close(fd)
        shutil.copyfile(self.path, tmp)
        return Path(tmp)


def discover_work_items(base_dir: Path, recursive: bool = False) -> List[WorkItem]:
    base_dir = Path(base_dir)
    it = base_dir.rglob(WORK_GLOB) if recursive else base_dir.glob(WORK_GLOB)
    files = [p for p in it if p.is_file()]
    return [WorkItem(p) for p in sorted(files, key=str)]


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ItemResult:
    status: str
    path: Path
    note: str

    def line(self) -> str:
        return f"{self.status}\t{self.path}\t{self.note}"


@dataclass(frozen=True)
class RunSummary:
    total: int = 0
    ran: int = 0
    skipped: int = 0
    failed: int = 0

    def tally(self, status: str) -> "RunSummary":
        out = replace(self, total=self.total + 1)
        if status in (OK, RUN):
            return replace(out, ran=out.ran + 1)
        if status == SKIP:
            return replace(out, skipped=out.skipped + 1)
        if status == FAIL:
            return replace(out, failed=out.failed + 1)
        return out

    @property
    def exit_code(self) -> int:
        return 1 if self.failed > 0 else 0

    def line(self, base_dir: Path) -> str:
        return (
            f"SUMMARY\t{base_dir}\ttotal={self.total} ran={self.ran} "
            f"skipped={self.skipped} failed={self.failed}"
        )


@dataclass
class BatchOptions:
    solver: str = "psi4"
    overwrite: bool = False
    keep_input_copy: bool = True
    dry_run: bool = False


Runner = Callable[[List[str]], Invocation]


def _default_runner(argv: List[str]) -> Invocation:
    return run_external(argv)


# ---------------------------------------------------------------------------
# One iteration
# ---------------------------------------------------------------------------

def process_item(
    item: WorkItem,
    opts: BatchOptions,
    runner: Optional[Runner] = None,
) -> ItemResult:
    """
    Process one .dat file: skip if complete, back up once, run psi4 on a
    disposable copy writing into the original path. The copy is removed on
    every exit path.
    """
    runner = runner or _default_runner

    if not opts.overwrite and item.is_complete:
        return ItemResult(SKIP, item.path, "already contains Total Energy")

    try:
        if opts.keep_input_copy:
            item.make_backup()
        tmp_in = item.make_exec_copy()
    except OSError as exc:
        logger.error("could not prepare %s: %s", item.path, exc)
        return ItemResult(FAIL, item.path, str(exc))

    try:
        if opts.dry_run:
            return ItemResult(RUN, item.path, f'{opts.solver} "{tmp_in}" "{item.path}"')

        inv = runner([opts.solver, str(tmp_in), str(item.path)])
        outcome = classify(inv)
        if outcome.status == OK:
            return ItemResult(OK, item.path, "completed")
        if inv.error is not None:
            return ItemResult(FAIL, item.path, outcome.note)
        return ItemResult(FAIL, item.path, f"{Path(opts.solver).name} exit code {inv.returncode}")
    finally:
        tmp_in.unlink(missing_ok=True)


# ---------------------------------------------------------------------------
# Whole batch
# ---------------------------------------------------------------------------

def iter_batch(
    items: List[WorkItem],
    opts: BatchOptions,
    runner: Optional[Runner] = None,
) -> Iterator[ItemResult]:
    for item in items:
        yield process_item(item, opts, runner=runner)


def run_batch(
    base_dir: Path,
    opts: BatchOptions,
    *,
    recursive: bool = False,
    runner: Optional[Runner] = None,
    emit: Optional[Callable[[str], None]] = None,
) -> RunSummary:
    """
    Run psi4 over every .dat file under ``base_dir`` (sorted, sequential).

    ``emit`` receives the header, one status line per file and the summary.
    """
    base_dir = Path(base_dir)
    if not base_dir.is_dir():
        raise ConfigurationError(f"base directory does not exist: {base_dir}")
    if not opts.dry_run and runner is None:
        require_executable(opts.solver)

    emit = emit or (lambda s: None)
    items = discover_work_items(base_dir, recursive=recursive)
    logger.debug("discovered %d work file(s) under %s", len(items), base_dir)

    emit("status\tfile\tnote")
    summary = RunSummary()
    for res in iter_batch(items, opts, runner=runner):
        emit(res.line())
        summary = summary.tally(res.status)

    emit(summary.line(base_dir))
    return summary
