from pathlib import Path

import pytest
from typer.testing import CliRunner

from bjfit.cli import app


runner = CliRunner()


def _rows(result, status):
    """Tab-delimited status lines from stdout, split into fields."""
    return [ln.split("\t") for ln in result.stdout.splitlines() if ln.startswith(status + "\t")]


@pytest.fixture
def project(tmp_path, water_dataset):
    din, struct_dir = water_dataset
    combos = tmp_path / "combos.txt"
    combos.write_text("# smoke\nhf|sto-3g|0.1|0.2\n")
    fit_dir = tmp_path / "fit"
    fit_dir.mkdir()
    (fit_dir / "reader_psi4.m").write_text("% reader\n")
    return {
        "base": tmp_path / "runs",
        "din": din,
        "struct_dir": struct_dir,
        "combos": combos,
        "fit_dir": fit_dir,
    }


def _generate(p, *extra):
    return runner.invoke(app, [
        "generate",
        "--base-dir", str(p["base"]),
        "--din", str(p["din"]),
        "--struct-dir", str(p["struct_dir"]),
        "--combos", str(p["combos"]),
        *extra,
    ])


def _fit(p, octave, *extra):
    return runner.invoke(app, [
        "fit",
        "--base-dir", str(p["base"]),
        "--din", str(p["din"]),
        "--struct-dir", str(p["struct_dir"]),
        "--fit-dir", str(p["fit_dir"]),
        "--octave", str(octave),
        "--combos", str(p["combos"]),
        *extra,
    ])


# ==========================================================
# FULL PIPELINE
# ==========================================================

def test_pipeline_generate_run_fit_summarize(tmp_path, project, fake_psi4, fake_octave):
    psi4, psi4_log = fake_psi4
    octave, octave_log = fake_octave
    combo_dir = project["base"] / "hf" / "sto-3g"

    # stage 1
    result = _generate(project)
    assert result.exit_code == 0, result.output
    assert _rows(result, "OK") == [["OK", "hf/sto-3g", "1", str(combo_dir)]]
    assert (combo_dir / "water.dat").is_file()

    # stage 2
    result = runner.invoke(app, ["run-batch", "--base-dir", str(combo_dir), "--psi4", str(psi4)])
    assert result.exit_code == 0, result.output
    assert _rows(result, "OK") == [["OK", str(combo_dir / "water.dat"), "completed"]]
    assert _rows(result, "SUMMARY")[0][2] == "total=1 ran=1 skipped=0 failed=0"
    assert (combo_dir / "water.dat.input").is_file()

    # stage 2 again: nothing to do
    result = runner.invoke(app, ["run-batch", "--base-dir", str(combo_dir), "--psi4", str(psi4)])
    assert result.exit_code == 0, result.output
    assert len(_rows(result, "SKIP")) == 1
    assert len(psi4_log.read_text().splitlines()) == 1

    # stage 3
    csv_out = tmp_path / "fits.csv"
    result = _fit(project, octave, "--csv-out", str(csv_out))
    assert result.exit_code == 0, result.output
    ok = _rows(result, "OK")
    assert ok == [["OK", "hf/sto-3g", "0.512300", "2.104500", "0.210000", "4.500000", "1", str(combo_dir)]]
    assert octave_log.read_text().splitlines() == ["hf/sto-3g\t0.1\t0.2\treader_psi4.m"]
    assert csv_out.read_text().splitlines()[0] == "status,combo,a1_fit,a2_fit,MAD,MAPD,n,result_dir"

    # report
    result = runner.invoke(app, ["summarize", str(csv_out)])
    assert result.exit_code == 0, result.output
    assert "hf/sto-3g" in result.stdout
    assert "0.5123" in result.stdout


# ==========================================================
# EXIT CODES
# ==========================================================

def test_run_batch_exits_1_on_failure(tmp_path, fake_psi4):
    psi4, _ = fake_psi4
    work = tmp_path / "work"
    work.mkdir()
    (work / "a.dat").write_text("energy('hf')\n")
    (work / "b.dat").write_text("# FAILME\n")

    result = runner.invoke(app, ["run-batch", "--base-dir", str(work), "--psi4", str(psi4)])

    assert result.exit_code == 1
    assert [r[0] for r in _rows(result, "OK") + _rows(result, "FAIL")] == ["OK", "FAIL"]
    assert _rows(result, "FAIL")[0][2] == "psi4 exit code 3"
    assert _rows(result, "SUMMARY")[0][2] == "total=2 ran=1 skipped=0 failed=1"


def test_run_batch_missing_dir_exits_2(tmp_path):
    result = runner.invoke(app, ["run-batch", "--base-dir", str(tmp_path / "nope")])
    assert result.exit_code == 2
    assert "base directory does not exist" in result.output


def test_run_batch_dry_run(tmp_path):
    work = tmp_path / "work"
    work.mkdir()
    (work / "a.dat").write_text("energy('hf')\n")

    result = runner.invoke(app, ["run-batch", "-b", str(work), "--psi4", "not-installed", "--dry-run"])

    assert result.exit_code == 0, result.output
    run = _rows(result, "RUN")
    assert len(run) == 1
    assert run[0][2].startswith('not-installed "')
    assert list(work.glob("*.tmpin.*")) == []


def test_generate_requires_settings():
    result = runner.invoke(app, ["generate"])
    assert result.exit_code == 2
    assert "missing required setting(s): --base-dir, --din, --struct-dir" in result.output


def test_fit_failure_exits_1(project, fake_octave):
    octave, _ = fake_octave
    assert _generate(project).exit_code == 0
    (project["base"] / "hf" / "sto-3g" / "mode").write_text("fail\n")

    result = _fit(project, octave)

    assert result.exit_code == 1
    assert _rows(result, "FAIL")[0][1] == "hf/sto-3g"
    assert "singular jacobian" in result.output


def test_fit_skip_and_miss_exit_0(project, fake_octave):
    octave, _ = fake_octave
    project["combos"].write_text("hf|sto-3g|0.1|0.2\npbe|sto-3g|0.4|4.4\n")
    (project["base"] / "hf" / "sto-3g").mkdir(parents=True)
    (project["base"] / "hf" / "sto-3g" / "mode").write_text("skip\n")

    result = _fit(project, octave)

    assert result.exit_code == 0, result.output
    assert _rows(result, "SKIP")[0][1] == "hf/sto-3g"
    assert _rows(result, "MISS")[0][1] == "pbe/sto-3g"


def test_summarize_missing_csv(tmp_path):
    result = runner.invoke(app, ["summarize", str(tmp_path / "none.csv")])
    assert result.exit_code == 2


def test_summarize_ranks_by_mad(tmp_path):
    csv_path = tmp_path / "fits.csv"
    csv_path.write_text(
        "status,combo,a1_fit,a2_fit,MAD,MAPD,n,result_dir\n"
        '"OK","pbe/tz","0.4","4.4","0.900000","9.0","3","/r/pbe"\n'
        '"MISS","tpss/tz","-","-","-","-","-","/r/tpss"\n'
        '"OK","b3lyp/tz","0.6","1.5","0.100000","1.0","3","/r/b3lyp"\n'
    )

    result = runner.invoke(app, ["summarize", str(csv_path), "--top", "1"])

    assert result.exit_code == 0, result.output
    assert "b3lyp/tz" in result.stdout
    assert "pbe/tz" not in result.stdout
    assert "tpss/tz" not in result.stdout


# ==========================================================
# CONFIG FILE
# ==========================================================

def test_generate_from_config(tmp_path, project):
    cfg = tmp_path / "bjfit.yaml"
    cfg.write_text(
        f"base_dir: {project['base']}\n"
        f"din: {project['din']}\n"
        f"struct_dir: {project['struct_dir']}\n"
        "threads: 2\n"
        "combinations:\n"
        "  - 'b3lyp|def2-svp|0.3981|4.4211'\n"
    )

    result = runner.invoke(app, ["generate", "--config", str(cfg)])

    assert result.exit_code == 0, result.output
    out = project["base"] / "b3lyp" / "def2-svp" / "water.dat"
    assert "set_num_threads(2)" in out.read_text()


def test_cli_option_overrides_config(tmp_path, project):
    cfg = tmp_path / "bjfit.yaml"
    cfg.write_text(f"base_dir: {tmp_path / 'elsewhere'}\nmemory: 8 GB\n")

    result = _generate(project, "--config", str(cfg))

    assert result.exit_code == 0, result.output
    text = (project["base"] / "hf" / "sto-3g" / "water.dat").read_text()
    assert text.startswith("memory 8 GB\n")
    assert not (tmp_path / "elsewhere").exists()


def test_bad_config_exits_2(tmp_path):
    cfg = tmp_path / "bjfit.yaml"
    cfg.write_text("base_dir: x\npsi5: typo\n")
    result = runner.invoke(app, ["run-batch", "--config", str(cfg)])
    assert result.exit_code == 2
    assert "unknown config keys: psi5" in result.output
