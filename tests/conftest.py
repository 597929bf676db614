import os
import sys
import textwrap
from pathlib import Path

import pytest


def _make_exe(bin_dir: Path, name: str, body: str) -> Path:
    """Write a Python script plus a /bin/sh launcher that runs it."""
    bin_dir.mkdir(parents=True, exist_ok=True)
    script = bin_dir / f"{name}.py"
    script.write_text(textwrap.dedent(body), encoding="utf-8")
    exe = bin_dir / name
    exe.write_text(f'#!/bin/sh\nexec "{sys.executable}" "{script}" "$@"\n', encoding="utf-8")
    exe.chmod(0o755)
    return exe


FAKE_PSI4 = """
    import os
    import sys
    from pathlib import Path

    src, dst = Path(sys.argv[1]), Path(sys.argv[2])
    log = os.environ.get("FAKE_PSI4_LOG")
    if log:
        with open(log, "a") as f:
            f.write(f"{src}\\t{dst}\\t{src.exists()}\\n")

    text = src.read_text()
    if "FAILME" in text:
        sys.exit(3)
    dst.write_text(text + "\\n    Total Energy =   -76.026632\\n")
"""


FAKE_OCTAVE = """
    import os
    import sys
    from pathlib import Path

    env = os.environ
    result_dir = Path(env["RESULT_DIR"])
    combo = env["METHOD_NAME"] + "/" + env["BASIS_NAME"]

    log = env.get("FAKE_OCTAVE_LOG")
    if log:
        with open(log, "a") as f:
            f.write("\\t".join([combo, env["A1_INIT"], env["A2_INIT"], env["READER_SCRIPT"]]) + "\\n")

    mode_file = result_dir / "mode"
    mode = mode_file.read_text().strip() if mode_file.exists() else "ok"
    n = len(list(result_dir.glob("*.dat")))

    print("warning: loading optim package")
    if mode == "skip":
        print(f"SKIP\\t{combo}\\t-\\t-\\t-\\t-\\t0\\t{result_dir}")
        sys.exit(3)
    if mode == "fail":
        print("error: fit_quiet: singular jacobian", file=sys.stderr)
        sys.exit(1)
    print(f"OK\\t{combo}\\t0.512300\\t2.104500\\t0.210000\\t4.500000\\t{n}\\t{result_dir}")
"""


@pytest.fixture
def fake_psi4(tmp_path, monkeypatch):
    log = tmp_path / "psi4_calls.log"
    monkeypatch.setenv("FAKE_PSI4_LOG", str(log))
    return _make_exe(tmp_path / "bin", "psi4", FAKE_PSI4), log


@pytest.fixture
def fake_octave(tmp_path, monkeypatch):
    log = tmp_path / "octave_calls.log"
    monkeypatch.setenv("FAKE_OCTAVE_LOG", str(log))
    return _make_exe(tmp_path / "bin", "octave-cli", FAKE_OCTAVE), log


WATER_XYZ = """3
0 1
O    0.000000    0.000000    0.117300
H    0.000000    0.757200   -0.469200
H    0.000000   -0.757200   -0.469200
"""


@pytest.fixture
def water_dataset(tmp_path):
    """One-record DIN naming 'water' and its structure file."""
    din = tmp_path / "water.din"
    din.write_text("# single molecule\n1\nwater\n0\n-1.0\n", encoding="utf-8")
    struct_dir = tmp_path / "xyz"
    struct_dir.mkdir()
    (struct_dir / "water.xyz").write_text(WATER_XYZ, encoding="utf-8")
    return din, struct_dir
