from __future__ import annotations

import asyncio
import signal
from datetime import date

import typer

from later_ladder.cli.common import make_sink
from later_ladder.core.config import settings
from later_ladder.db.sink import SinkError
from later_ladder.ingestion.engine import build_engine
from later_ladder.ingestion.providers.base.errors import FetchError
from later_ladder.ingestion.providers.squiggle.client import make_squiggle_client
from later_ladder.ingestion.providers.squiggle.ingest.season import BulkSynchronizer

app = typer.Typer(help="Pull Squiggle fixtures into the local DB.")


def _synchronizer() -> BulkSynchronizer:
    return BulkSynchronizer(client=make_squiggle_client(), sink=make_sink())


@app.command("year")
def ingest_year_cmd(
    year: int = typer.Option(..., "--year", help="Season year (e.g. 2024)."),
) -> None:
    """Fetch every fixture of a season and upsert it."""

    sync = _synchronizer()
    try:
        result = sync.sync_year(year)
    except (FetchError, SinkError) as e:
        typer.echo(f"Failed to sync {year}: {e}", err=True)
        raise typer.Exit(code=1) from e
    finally:
        sync.client.close()

    typer.echo(f"Ingested {result.year}: games_seen={result.games_seen}")
    if result.payload_unparsed:
        typer.echo("Provider payload could not be parsed; nothing stored.", err=True)
        raise typer.Exit(code=1)


@app.command("round")
def ingest_round_cmd(
    year: int = typer.Option(..., "--year", help="Season year (e.g. 2024)."),
    round_: int = typer.Option(..., "--round", help="Round number (0 = opening round)."),
) -> None:
    """Fetch one round of a season and upsert it."""

    sync = _synchronizer()
    try:
        result = sync.sync_round(year, round_)
    except (FetchError, SinkError) as e:
        typer.echo(f"Failed to sync {year} round {round_}: {e}", err=True)
        raise typer.Exit(code=1) from e
    finally:
        sync.client.close()

    typer.echo(f"Ingested {result.year} round {result.round}: games_seen={result.games_seen}")
    if result.payload_unparsed:
        typer.echo("Provider payload could not be parsed; nothing stored.", err=True)
        raise typer.Exit(code=1)


@app.command("latest")
def ingest_latest_cmd(
    year: int | None = typer.Option(
        None, "--year", help="Season year; defaults to the current year."
    ),
) -> None:
    """Upsert every round up to the most recent completed one, falling back to earlier seasons."""

    sync = _synchronizer()
    try:
        result = sync.sync_up_to_latest_completed_round(year or date.today().year)
    finally:
        sync.client.close()

    typer.echo(
        " ".join(
            [
                f"Synced requested={result.requested_year}",
                f"synced={result.synced_year}",
                f"fallback_years={result.fallback_years}",
                f"highest_completed_round={result.highest_completed_round}",
                f"rounds_ok={len(result.rounds_succeeded)}",
                f"rounds_failed={len(result.rounds_failed)}",
                f"records={result.records_upserted}",
            ]
        )
    )
    if not result.complete:
        raise typer.Exit(code=1)


@app.command("stream")
def ingest_stream_cmd(
    refresh: bool = typer.Option(
        True,
        "--refresh/--no-refresh",
        help="Run a bulk sync of the current season once the stream is up.",
    ),
) -> None:
    """Follow the live game event stream until interrupted (Ctrl-C / SIGTERM)."""

    asyncio.run(_run_stream(refresh=refresh))


async def _run_stream(*, refresh: bool) -> None:
    engine = build_engine(make_sink(), cfg=settings)
    stop = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:  # pragma: no cover - windows
            pass

    await engine.initialize()
    try:
        if refresh:
            result = await engine.refresh()
            typer.echo(
                f"Refreshed {result.synced_year}: rounds_ok={len(result.rounds_succeeded)} "
                f"rounds_failed={len(result.rounds_failed)}"
            )

        stopped = asyncio.create_task(engine.subscriber.wait())
        interrupted = asyncio.create_task(stop.wait())
        await asyncio.wait({stopped, interrupted}, return_when=asyncio.FIRST_COMPLETED)
        interrupted.cancel()
        stopped.cancel()
    finally:
        await engine.shutdown()

    if not stop.is_set():
        # The subscription ended on its own: retries exhausted or a fatal error.
        typer.echo(f"Stream stopped: {engine.subscriber.last_error}", err=True)
        raise typer.Exit(code=1)
