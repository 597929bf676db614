from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import pandas as _pd
import typer

from bjfit.config import PipelineConfig
from bjfit.errors import BjfitError
from bjfit.fit.aggregate import FitOptions, run_fits
from bjfit.psi4.batch import BatchOptions, run_batch
from bjfit.psi4.generate import GenerateOptions, generate_inputs
from bjfit.combos import select_combinations

app = typer.Typer(help="bj-fit-tools CLI: psi4 inputs, batch runs and a1/a2 fits")

EXIT_PRECONDITION = 2


def _emit(line: str) -> None:
    typer.echo(line)


def _diag(text: str) -> None:
    typer.echo(text, err=True)


def _abort(exc: Exception) -> None:
    typer.secho(f"Error: {exc}", err=True, fg=typer.colors.RED)
    raise typer.Exit(code=EXIT_PRECONDITION)


# -----------------------------
# Shared options
# -----------------------------

ConfigOpt = typer.Option(None, "--config", "-c", help="YAML config file (CLI options win)")
TemplateOpt = typer.Option(
    None, "--dir-template", help="Per-combination directory; tokens {base}, {method}, {basis}"
)
CombosOpt = typer.Option(None, "--combos", help="Combination table (method|basis|a1|a2 lines or YAML)")
MethodOpt = typer.Option(None, "--method", "-m", help="Only these methods (repeatable)")


# -----------------------------
# Stage 1: generate
# -----------------------------

@app.command()
def generate(
    base_dir: Optional[Path] = typer.Option(None, "--base-dir", "-b", help="Root directory for generated inputs"),
    din: Optional[Path] = typer.Option(None, "--din", help="DIN dataset file"),
    struct_dir: Optional[Path] = typer.Option(None, "--struct-dir", help="XYZ structure directory"),
    dir_template: Optional[str] = TemplateOpt,
    memory: Optional[str] = typer.Option(None, "--memory", help='psi4 memory line value (default "2 GB")'),
    threads: Optional[int] = typer.Option(None, "--threads", help="set_num_threads value (default 6)"),
    overwrite: bool = typer.Option(False, "--overwrite", help="Replace existing .dat input files"),
    combos_file: Optional[Path] = CombosOpt,
    methods: Optional[List[str]] = MethodOpt,
    config: Optional[Path] = ConfigOpt,
):
    """Write one psi4 <name>.dat per molecule into each method/basis directory."""
    try:
        cfg = PipelineConfig.load(config).with_overrides(
            base_dir=base_dir,
            din=din,
            struct_dir=struct_dir,
            dir_template=dir_template,
            memory=memory,
            threads=threads,
            combos_file=combos_file,
        )
        cfg.require("base_dir", "din", "struct_dir")
        generate_inputs(
            cfg.base_dir,
            cfg.din,
            cfg.struct_dir,
            select_combinations(cfg.combinations, methods),
            dir_template=cfg.dir_template,
            opts=GenerateOptions(memory=cfg.memory, threads=cfg.threads, overwrite=overwrite),
            emit=_emit,
        )
    except BjfitError as exc:
        _abort(exc)


# -----------------------------
# Stage 2: run-batch
# -----------------------------

@app.command("run-batch")
def run_batch_cmd(
    base_dir: Optional[Path] = typer.Option(None, "--base-dir", "-b", help="Directory containing .dat psi4 inputs"),
    psi4: Optional[str] = typer.Option(None, "--psi4", help="psi4 executable (default: psi4)"),
    recursive: bool = typer.Option(False, "--recursive", help="Include .dat files in subdirectories"),
    overwrite: bool = typer.Option(False, "--overwrite", help="Re-run even if output already looks complete"),
    keep_input_copy: bool = typer.Option(
        True, "--keep-input-copy/--no-keep-input-copy", help="Keep a <name>.dat.input backup (written once)"
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Print commands without running psi4"),
    config: Optional[Path] = ConfigOpt,
):
    """Run psi4 over .dat files, writing results back into each <name>.dat."""
    try:
        cfg = PipelineConfig.load(config).with_overrides(base_dir=base_dir, psi4=psi4)
        cfg.require("base_dir")
        opts = BatchOptions(
            solver=cfg.psi4,
            overwrite=overwrite,
            keep_input_copy=keep_input_copy,
            dry_run=dry_run,
        )
        summary = run_batch(cfg.base_dir, opts, recursive=recursive, emit=_emit)
    except BjfitError as exc:
        _abort(exc)

    if summary.exit_code:
        raise typer.Exit(code=summary.exit_code)


# -----------------------------
# Stage 3: fit
# -----------------------------

@app.command()
def fit(
    base_dir: Optional[Path] = typer.Option(None, "--base-dir", "-b", help="Base directory with psi4 result folders"),
    din: Optional[Path] = typer.Option(None, "--din", help="DIN dataset file"),
    struct_dir: Optional[Path] = typer.Option(None, "--struct-dir", help="Structure directory"),
    dir_template: Optional[str] = TemplateOpt,
    fit_dir: Optional[Path] = typer.Option(None, "--fit-dir", help="Directory holding the Octave fit scripts"),
    reader: Optional[str] = typer.Option(None, "--reader", help="Reader script in --fit-dir (default reader_psi4.m)"),
    octave: Optional[str] = typer.Option(None, "--octave", help="Octave executable (default octave-cli)"),
    csv_out: Optional[Path] = typer.Option(None, "--csv-out", help="Optional CSV output file"),
    combos_file: Optional[Path] = CombosOpt,
    methods: Optional[List[str]] = MethodOpt,
    config: Optional[Path] = ConfigOpt,
):
    """Fit a1/a2 per method/basis, starting from the listed literature values."""
    try:
        cfg = PipelineConfig.load(config).with_overrides(
            base_dir=base_dir,
            din=din,
            struct_dir=struct_dir,
            dir_template=dir_template,
            fit_dir=fit_dir,
            reader=reader,
            octave=octave,
            csv_out=csv_out,
            combos_file=combos_file,
        )
        cfg.require("base_dir", "din", "struct_dir", "fit_dir")
        opts = FitOptions(
            fit_dir=cfg.fit_dir,
            reader=cfg.reader,
            octave=cfg.octave,
            dir_template=cfg.dir_template,
            csv_out=cfg.csv_out,
        )
        report = run_fits(
            cfg.base_dir,
            cfg.din,
            cfg.struct_dir,
            select_combinations(cfg.combinations, methods),
            opts,
            emit=_emit,
            diag=_diag,
        )
    except BjfitError as exc:
        _abort(exc)

    if report.exit_code:
        raise typer.Exit(code=report.exit_code)


# -----------------------------
# Report helpers
# -----------------------------

@app.command()
def summarize(
    csv_path: Path = typer.Argument(..., help="CSV written by `fit --csv-out`"),
    top: int = typer.Option(0, "--top", "-n", help="Show only the best N rows (0 = all)"),
):
    """Rank successful fits by MAD."""
    if not csv_path.is_file():
        typer.secho(f"Error: CSV not found: {csv_path}", err=True, fg=typer.colors.RED)
        raise typer.Exit(code=EXIT_PRECONDITION)

    df = _pd.read_csv(csv_path, dtype=str, keep_default_na=False)
    df = df[df["status"] == "OK"].copy()
    for col in ("a1_fit", "a2_fit", "MAD", "MAPD"):
        df[col] = _pd.to_numeric(df[col], errors="coerce")
    df = df.sort_values("MAD", kind="stable")
    if top:
        df = df.head(top)

    if df.empty:
        typer.echo("no OK rows")
        return
    typer.echo(df[["combo", "a1_fit", "a2_fit", "MAD", "MAPD", "n"]].to_string(index=False))


if __name__ == "__main__":
    app()
