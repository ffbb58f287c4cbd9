"""
PRICEPULSE - CLI Prediction Command
Runs one prediction cycle over a bootstrap snapshot file and renders the
ranked tables.
"""

import asyncio
import json
import logging
import sys
from typing import List, Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from pricepulse import get_version
from pricepulse.core.config import get_settings
from pricepulse.core.exceptions import PricePulseError, SnapshotUnavailableError
from pricepulse.services.pricing import PredictionRecord, PredictionSummary, create_prediction_engine
from pricepulse.services.snapshot import JsonFileSnapshotProvider

console = Console()
logger = logging.getLogger(__name__)

EXIT_ENGINE_ERROR = 1
EXIT_SNAPSHOT_UNAVAILABLE = 2


def _records_table(title: str, records: List[PredictionRecord], style: str) -> Table:
    tbl = Table(title=title)
    tbl.add_column("ID", style="cyan")
    tbl.add_column("Name")
    tbl.add_column("Team")
    tbl.add_column("Pos")
    tbl.add_column("Price", justify="right")
    tbl.add_column("Own %", justify="right")
    tbl.add_column("Progress", justify="right", style=style)
    tbl.add_column("Hourly", justify="right")
    tbl.add_column("Timing")
    tbl.add_column("Confidence", justify="right", style="green")
    tbl.add_column("Priority", style="yellow")

    for r in records:
        tbl.add_row(
            str(r.asset_id),
            r.name,
            r.team_name,
            r.position,
            f"{r.current_price:.1f}",
            f"{r.ownership_pct:.1f}",
            f"{r.progress:.2f}",
            f"{r.hourly_change:+.2f}",
            r.change_timing,
            f"{r.confidence.overall:.0%} ({r.confidence.tier.value})",
            r.monitoring_priority.value,
        )
    return tbl


def render_summary(summary: PredictionSummary, top: int) -> None:
    """Print the ranked buckets and metadata as rich tables."""
    meta = summary.metadata
    counts = summary.summary
    console.print(Panel.fit(
        f"[bold green]{meta['algorithm_version']}[/bold green]\n"
        f"Predictions: {meta['total_predictions']}  "
        f"Rises: {counts['predicted_rises']}  Falls: {counts['predicted_falls']}  "
        f"High confidence: {counts['high_confidence_predictions']}\n"
        f"Average confidence: {meta['confidence_average']:.1%}  "
        f"Accuracy last week: {meta['accuracy_last_week']}%\n"
        f"Next update: {meta['next_update']}",
        title="Price Predictions",
    ))

    console.print(_records_table("Risers", summary.risers[:top], "green"))
    console.print(_records_table("Fallers", summary.fallers[:top], "red"))
    console.print(_records_table("Stable", summary.stable[:top], "white"))

    if summary.skipped:
        console.print(f"[yellow]Skipped {len(summary.skipped)} invalid assets: {summary.skipped}[/yellow]")


@click.command()
@click.version_option(version=get_version(), prog_name="pricepulse-predict")
@click.argument("snapshot", type=click.Path(dir_okay=False))
@click.option("--previous", type=click.Path(dir_okay=False), default=None,
              help="Previous snapshot used to detect flag changes")
@click.option("--include-all", is_flag=True, help="Evaluate every asset above 0.1% ownership")
@click.option("--top", type=click.IntRange(min=1), default=10, show_default=True,
              help="Rows shown per table")
@click.option("--json", "as_json", is_flag=True, help="Print the raw summary as JSON")
def predict(snapshot: str, previous: Optional[str], include_all: bool, top: int, as_json: bool):
    """Predict price changes for the assets in SNAPSHOT."""
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    async def run_cycle() -> PredictionSummary:
        provider = JsonFileSnapshotProvider(snapshot, previous)
        engine = create_prediction_engine(settings)
        return await engine.run_cycle(await provider.get_snapshot(), include_all=include_all)

    try:
        summary = asyncio.run(run_cycle())
    except SnapshotUnavailableError as e:
        console.print(f"[red]Snapshot unavailable: {e.message}[/red]")
        sys.exit(EXIT_SNAPSHOT_UNAVAILABLE)
    except PricePulseError as e:
        logger.error(f"Prediction cycle failed: {e.message}", exc_info=e)
        console.print(f"[red]Prediction cycle failed: {e.message}[/red]")
        sys.exit(EXIT_ENGINE_ERROR)

    if as_json:
        click.echo(json.dumps(summary.to_dict(), indent=2))
    else:
        render_summary(summary, top)


if __name__ == "__main__":
    predict()
