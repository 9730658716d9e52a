from __future__ import annotations

import json
import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from .collect.linux import DEBUGFS_DRI_DIR, SYSFS_DRM_DIR
from .labeler import Labeler
from .labels import format_labels
from .model import Config, LabelerError, LabelMap


app = typer.Typer(add_completion=False, no_args_is_help=True, help="Intel GPU labels for node-feature-discovery")

err_console = Console(stderr=True)

SysfsOption = typer.Option(SYSFS_DRM_DIR, "--sysfs-drm-dir", help="sysfs DRM class directory")
DebugfsOption = typer.Option(DEBUGFS_DRI_DIR, "--debugfs-dri-dir", help="debugfs DRI directory")
VerboseOption = typer.Option(0, "--verbose", "-v", count=True, help="Increase log verbosity (-v info, -vv debug)")


def _setup_logging(verbose: int) -> None:
    level = logging.WARNING
    if verbose == 1:
        level = logging.INFO
    elif verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def _run(sysfs_drm_dir: Path, debugfs_dri_dir: Path) -> Labeler:
    labeler = Labeler(str(sysfs_drm_dir), str(debugfs_dri_dir), config=Config.from_env())
    try:
        labeler.create_labels()
    except LabelerError as ex:
        err_console.print(f"[red]Error while creating labels:[/red] {escape(str(ex))}")
        raise typer.Exit(code=1)
    return labeler


def print_labels(labels: LabelMap) -> None:
    for line in format_labels(labels):
        typer.echo(line)


def _ensure_parent_dir(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


@app.command()
def labels(
    sysfs_drm_dir: Path = SysfsOption,
    debugfs_dri_dir: Path = DebugfsOption,
    verbose: int = VerboseOption,
) -> None:
    """Print the GPU labels, one key=value per line."""
    _setup_logging(verbose)
    labeler = _run(sysfs_drm_dir, debugfs_dri_dir)
    print_labels(labeler.labels)


@app.command()
def scan(
    out: Path = typer.Option(Path("gpu-labels.json"), help="Output path for the devices and labels JSON"),
    sysfs_drm_dir: Path = SysfsOption,
    debugfs_dri_dir: Path = DebugfsOption,
    verbose: int = VerboseOption,
) -> None:
    """Scan the GPUs and write their attributes and labels as JSON."""
    _setup_logging(verbose)
    labeler = _run(sysfs_drm_dir, debugfs_dri_dir)

    _ensure_parent_dir(out)
    with out.open("w", encoding="utf-8") as f:
        json.dump(labeler.result(), f, indent=2)
    err_console.print(f"[green]Wrote {len(labeler.devices)} device(s) to[/green] {out}")


if __name__ == "__main__":
    app()
