from __future__ import annotations

import typer

from later_ladder.cli.db import app as db_app
from later_ladder.cli.ingest import app as ingest_app
from later_ladder.core.config import settings
from later_ladder.core.logging import configure_logging

app = typer.Typer(no_args_is_help=True)
app.add_typer(ingest_app, name="ingest")
app.add_typer(db_app, name="db")


@app.callback()
def main(
    log_level: str = typer.Option(settings.log_level, "--log-level", help="Logging level."),
) -> None:
    configure_logging(log_level)
