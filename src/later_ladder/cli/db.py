from __future__ import annotations

import typer

import later_ladder.db.models  # noqa: F401
from later_ladder.cli.common import make_engine, session_scope
from later_ladder.db.base import Base
from later_ladder.db.repos.core.game_repo import GameRepository

app = typer.Typer(help="Local store helpers.")


@app.command("init")
def init_db_cmd() -> None:
    """Create tables directly (use alembic for managed databases)."""

    Base.metadata.create_all(make_engine())
    typer.echo("Tables created.")


@app.command("games")
def list_games_cmd(
    year: int = typer.Option(..., "--year", help="Season year."),
    round_: int = typer.Option(..., "--round", help="Round number."),
    include_removed: bool = typer.Option(
        False, "--include-removed", help="Also list games the provider has removed."
    ),
) -> None:
    """Print stored fixtures for one round."""

    with session_scope() as session:
        games = GameRepository(session).list_for_round(
            year, round_, include_removed=include_removed
        )
        for g in sorted(games, key=lambda g: g.id):
            score = (
                f"{g.home_score}-{g.away_score}" if g.home_score is not None else "-"
            )
            flags = " [removed]" if g.removed_at is not None else ""
            winner = g.winner if g.is_complete and g.winner else ""
            teams = f"{g.home_team or 'TBA'} v {g.away_team or 'TBA'}"
            typer.echo(f"{g.id}\t{teams}\t{score}\t{g.completion}%\t{winner}{flags}")
