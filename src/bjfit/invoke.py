# bjfit/invoke.py

from __future__ import annotations

import os
import shutil
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from bjfit.errors import ConfigurationError

# Outcome labels shared by run-batch and fit
OK = "OK"
SKIP = "SKIP"
FAIL = "FAIL"
RUN = "RUN"
MISS = "MISS"


@dataclass(frozen=True)
class Invocation:
    argv: Tuple[str, ...]
    returncode: int
    output: Optional[str] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class Outcome:
    status: str
    fields: Tuple[str, ...] = ()
    note: str = ""


@dataclass(frozen=True)
class LineGrammar:
    """
    Tab-delimited result line grammar.

    A line matches when it starts with one of ``statuses`` followed by the
    delimiter. When several lines match, the last one wins: diagnostic noise
    before the final record is tolerated.
    """

    statuses: Tuple[str, ...]
    delimiter: str = "\t"
    # statuses accepted even when the process exits nonzero
    nonzero_ok: Tuple[str, ...] = field(default_factory=tuple)

    def matches(self, line: str) -> bool:
        return any(line.startswith(s + self.delimiter) for s in self.statuses)

    def last_match(self, text: str) -> Optional[List[str]]:
        found = None
        for line in text.splitlines():
            if self.matches(line):
                found = line
        if found is None:
            return None
        return found.split(self.delimiter)


def require_executable(name: str) -> str:
    """Resolve an executable on PATH (or an explicit path)."""
    exe = shutil.which(name)
    if exe is None:
        raise ConfigurationError(f"executable not found: {name}")
    return exe


def run_external(
    argv: Sequence[str],
    *,
    env: Optional[Dict[str, str]] = None,
    capture: bool = False,
    cwd: Optional[Path] = None,
) -> Invocation:
    """
    Run an external program to completion.

    With ``capture`` the merged stdout/stderr is returned; otherwise both are
    discarded and only the exit status is kept. A program that cannot be
    started is reported as returncode 127 with the OS error attached.
    """
    argv = tuple(str(a) for a in argv)
    full_env = {**os.environ, **env} if env else None

    try:
        if capture:
            proc = subprocess.run(
                argv,
                cwd=cwd,
                env=full_env,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                errors="replace",
            )
            return Invocation(argv, proc.returncode, output=proc.stdout)

        proc = subprocess.run(
            argv,
            cwd=cwd,
            env=full_env,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
        return Invocation(argv, proc.returncode)

    except OSError as exc:
        return Invocation(argv, 127, error=str(exc))


def classify(inv: Invocation, grammar: Optional[LineGrammar] = None) -> Outcome:
    """
    Turn an invocation into OK / SKIP / FAIL.

    Without a grammar only the exit status counts. With a grammar the last
    matching output line decides, subject to the exit status unless the
    matched status is listed in ``grammar.nonzero_ok``.
    """
    if inv.error is not None:
        return Outcome(FAIL, note=f"could not start {inv.argv[0]}: {inv.error}")

    if grammar is None:
        if inv.returncode == 0:
            return Outcome(OK, note="completed")
        return Outcome(FAIL, note=f"exit code {inv.returncode}")

    fields_ = grammar.last_match(inv.output or "")
    if fields_ is None:
        return Outcome(FAIL, note=f"no result line (exit code {inv.returncode})")

    status = fields_[0]
    if inv.returncode != 0 and status not in grammar.nonzero_ok:
        return Outcome(FAIL, tuple(fields_), note=f"{status} with exit code {inv.returncode}")

    return Outcome(status, tuple(fields_))
