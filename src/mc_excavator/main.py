"""CLI entrypoint for MC Excavator offline tooling."""

from __future__ import annotations

from pathlib import Path

import typer
from rich import print
from rich.console import Console
from rich.table import Table

from mc_excavator.config import settings
from mc_excavator.mining import JsonProgressStore, iter_traversal, target_at
from mc_excavator.models import Region, Vec3
from mc_excavator.network import AdaptiveTimings, StaticTelemetry
from mc_excavator.telemetry.logging import configure_logging

app = typer.Typer(help="MC Excavator planning and progress tools")
console = Console()


@app.callback()
def _main(log_level: str = typer.Option(settings.log_level, help="Logging level")) -> None:
    configure_logging(log_level)


def _region(x1: int, y1: int, z1: int, x2: int, y2: int, z2: int) -> Region:
    return Region(Vec3(x1, y1, z1), Vec3(x2, y2, z2))


def _store(state_file: Path | None) -> JsonProgressStore:
    return JsonProgressStore(state_file or settings.state_file)


@app.command()
def plan(
    x1: int,
    y1: int,
    z1: int,
    x2: int,
    y2: int,
    z2: int,
    limit: int = typer.Option(20, min=0, help="Maximum number of targets to print (0 for all)"),
    start_index: int = typer.Option(0, "--start", min=0, help="First traversal index to show"),
) -> None:
    """Preview the serpentine traversal order for a region."""
    region = _region(x1, y1, z1, x2, y2, z2).normalized()
    shown = 0
    for index, target in enumerate(iter_traversal(region, start_index), start=start_index):
        if limit and shown >= limit:
            break
        print(f"{index:>6}  {target.x} {target.y} {target.z}")
        shown += 1
    print({"volume": region.volume, "shown": shown})


@app.command()
def target(x1: int, y1: int, z1: int, x2: int, y2: int, z2: int, index: int) -> None:
    """Print the block visited at a traversal index."""
    region = _region(x1, y1, z1, x2, y2, z2).normalized()
    try:
        point = target_at(region, index)
    except IndexError as exc:
        print({"error": str(exc)})
        raise typer.Exit(code=1)
    print({"index": index, "target": point.as_dict()})


@app.command()
def timings(
    ping: int = typer.Option(0, min=0, help="Round-trip latency in milliseconds"),
    tps: float = typer.Option(20.0, min=0.0, max=20.0, help="Server ticks per second"),
) -> None:
    """Show the adaptive timeouts and thresholds for given network conditions."""
    derived = AdaptiveTimings(StaticTelemetry(current_ping=ping, tps=tps)).as_dict()

    table = Table(title=f"Adaptive timings (ping={ping}ms, tps={tps:g})")
    table.add_column("Setting")
    table.add_column("Value", justify="right")
    for key, value in derived.items():
        table.add_row(key, str(value))
    console.print(table)


@app.command()
def progress(state_file: Path = typer.Option(None, help="Progress file (defaults to configured state_file)")) -> None:
    """Show persisted excavation progress and the next target to revisit."""
    store = _store(state_file)
    saved = store.load()
    if saved is None:
        print({"progress": None, "path": str(store.path)})
        return

    region = saved.to_region()
    payload: dict[str, object] = {
        "path": str(store.path),
        "mined_blocks": saved.mined_blocks,
        "total_blocks": region.volume,
        "region": {"min": region.min.as_dict(), "max": region.max.as_dict()},
    }
    if saved.mined_blocks < region.volume:
        payload["next_target"] = target_at(region, saved.mined_blocks).as_dict()
    print(payload)


@app.command("clear-progress")
def clear_progress(state_file: Path = typer.Option(None, help="Progress file (defaults to configured state_file)")) -> None:
    """Delete persisted progress so the next boot does not resume."""
    store = _store(state_file)
    existed = store.has_state()
    store.clear()
    print({"cleared": existed, "path": str(store.path)})


@app.command("config")
def show_config() -> None:
    """Print the effective settings."""
    print(settings.model_dump(mode="json"))


if __name__ == "__main__":
    app()
