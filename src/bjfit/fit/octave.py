# bjfit/fit/octave.py

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict

from bjfit.invoke import Invocation, run_external
from bjfit.render import render_template

DRIVER_TEMPLATE = "octave/fit_a1a2.m.j2"
HY2KCAL = 627.51
SKIP_EXIT_CODE = 3


@dataclass(frozen=True)
class FitRequest:
    fit_dir: Path
    din: Path
    struct_dir: Path
    reader: str
    result_dir: Path
    method: str
    basis: str
    a1_init: float
    a2_init: float

    def to_env(self) -> Dict[str, str]:
        return {
            "FIT_DIR": str(self.fit_dir),
            "DIN_FILE": str(self.din),
            "STRUCT_DIR": str(self.struct_dir),
            "READER_SCRIPT": self.reader,
            "RESULT_DIR": str(self.result_dir),
            "METHOD_NAME": self.method,
            "BASIS_NAME": self.basis,
            "A1_INIT": repr(self.a1_init),
            "A2_INIT": repr(self.a2_init),
        }


def write_driver(path: Path) -> Path:
    """Render the Octave driver that loads the dataset and runs the fit."""
    text = render_template(
        DRIVER_TEMPLATE,
        {
            "hy2kcal": HY2KCAL,
            "skip_exit_code": SKIP_EXIT_CODE,
        },
    )
    path = Path(path)
    path.write_text(text, encoding="utf-8")
    return path


class OctaveFitRoutine:
    """
    Calls ``<octave> -q <driver.m>`` with the request in the environment.

    The driver prints one ``OK``/``SKIP`` line; all output (stdout and
    stderr merged) is returned for classification.
    """

    def __init__(self, octave: str, driver: Path) -> None:
        self.octave = octave
        self.driver = Path(driver)

    def __call__(self, req: FitRequest) -> Invocation:
        return run_external(
            [self.octave, "-q", str(self.driver)],
            env=req.to_env(),
            capture=True,
        )
