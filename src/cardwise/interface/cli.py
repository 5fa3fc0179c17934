"""cardwise CLI: study commands, card editing, settings and server."""

import asyncio
import json
import logging
import sys
import time
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Annotated, Any, Literal

import typer

from cardwise.application.config import AppConfig, resolve_config
from cardwise.domain.errors import SchedulerDisabledError
from cardwise.domain.models import Rating

# ---------------------------------------------------------------------------
# Root app
# ---------------------------------------------------------------------------

app = typer.Typer(
    help="cardwise: spaced-repetition flashcards in your terminal.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.WARNING,
    format="%(levelname)s:%(name)s:%(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)

card_app = typer.Typer(help="Add, edit and delete cards.", no_args_is_help=True)
app.add_typer(card_app, name="card")

settings_app = typer.Typer(help="Show and change study settings.", no_args_is_help=True)
app.add_typer(settings_app, name="settings")

config_app = typer.Typer(help="Manage cardwise configuration.")
app.add_typer(config_app, name="config")

StudyModeOption = Annotated[
    Literal["new", "review", "mixed"],
    typer.Option("--mode", help="Which cards to study: new, review or mixed."),
]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _config(ctx: typer.Context) -> AppConfig:
    from cardwise.infrastructure.logging_config import setup_logging

    obj = ctx.obj or {}
    bonus = obj.get("verbose_bonus") or 0
    # -v flags raise the default verbosity of 1; without them env and TOML decide
    config = resolve_config(
        {"data_dir": obj.get("data_dir"), "verbose": 1 + bonus if bonus else None}
    )
    setup_logging(config)
    return config


def _run(coro) -> Any:
    """Run a service coroutine, turning domain errors into a clean exit."""
    try:
        return asyncio.run(coro)
    except SchedulerDisabledError as e:
        typer.secho(f"{e}. Run 'cardwise settings set --enable'.", fg="yellow")
        raise typer.Exit(1) from None
    except (LookupError, ValueError) as e:
        typer.secho(f"Error: {e}", fg="red")
        raise typer.Exit(1) from None


# ---------------------------------------------------------------------------
# Global callback
# ---------------------------------------------------------------------------


@app.callback()
def main_callback(
    ctx: typer.Context,
    data_dir: Annotated[
        Path | None, typer.Option("--data-dir", help="Directory holding the card sets.")
    ] = None,
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose", "-v", count=True, help="Increase verbosity. Repeat for more detail."
        ),
    ] = 0,
):
    """Global settings for cardwise."""
    ctx.ensure_object(dict)
    ctx.obj["data_dir"] = data_dir
    ctx.obj["verbose_bonus"] = verbose


# ---------------------------------------------------------------------------
# Sets
# ---------------------------------------------------------------------------


@app.command("sets")
def list_sets(ctx: typer.Context):
    """List the card sets in the manifest."""
    from cardwise.application.factory import get_study_service

    service = get_study_service(_config(ctx))
    sets = _run(service.list_sets())
    if not sets:
        typer.secho("No card sets found.", fg="yellow")
        return
    for card_set in sets:
        typer.echo(f"{card_set.file_name}  {card_set.name}  ({len(card_set.cards)} cards)")


@app.command("create-set")
def create_set(
    ctx: typer.Context,
    file_name: Annotated[str, typer.Argument(help="Storage name of the new set.")],
    name: Annotated[str | None, typer.Option(help="Display name.")] = None,
    description: Annotated[str | None, typer.Option(help="Short description.")] = None,
):
    """Create an empty card set."""
    from cardwise.application.factory import get_study_service

    service = get_study_service(_config(ctx))
    card_set = _run(service.create_set(file_name, name=name, description=description))
    typer.secho(f"Created set '{card_set.file_name}'.", fg="green")


@app.command("cards")
def list_cards(
    ctx: typer.Context,
    set_name: Annotated[str, typer.Argument(help="Card set to list.")],
):
    """List the cards of a set with their next review date."""
    from cardwise.application.factory import get_study_service

    service = get_study_service(_config(ctx))
    for card, state in _run(service.get_scheduled_cards(set_name)):
        due = "new" if state is None or state.is_new else state.next_review.date().isoformat()
        typer.echo(f"{card.id}  [{due}]  {card.front}")


# ---------------------------------------------------------------------------
# Studying
# ---------------------------------------------------------------------------


@app.command("queue")
def queue(
    ctx: typer.Context,
    set_name: Annotated[str, typer.Argument(help="Card set to study.")],
    mode: StudyModeOption = "mixed",
):
    """Show what is due now, honoring the daily limits."""
    from cardwise.application.factory import get_study_service
    from cardwise.application.queue_builder import session_cards

    service = get_study_service(_config(ctx))
    result = _run(service.get_queue(set_name, _now()))

    typer.echo(f"New cards: {len(result.new_cards)}")
    typer.echo(f"Review cards: {len(result.review_cards)}")
    typer.echo(f"Total due: {result.total_due}")
    for card, _ in session_cards(result, mode):
        typer.echo(f"  {card.id}  {card.front}")


@app.command("review")
def review(
    ctx: typer.Context,
    set_name: Annotated[str, typer.Argument(help="Card set.")],
    card_id: Annotated[str, typer.Argument(help="Card to review.")],
    rating: Annotated[Rating, typer.Argument(help="again, hard or good.")],
):
    """Record a single review."""
    from cardwise.application.factory import get_study_service
    from cardwise.application.scheduler import days_between, format_interval

    service = get_study_service(_config(ctx))
    now = _now()
    state = _run(service.review_card(set_name, card_id, rating, now))
    interval = days_between(now, state.next_review)
    typer.secho(
        f"Next review in {format_interval(interval)} ({state.next_review.date().isoformat()})",
        fg="green",
    )


@app.command("study")
def study(
    ctx: typer.Context,
    set_name: Annotated[str, typer.Argument(help="Card set to study.")],
    mode: StudyModeOption = "mixed",
):
    """Interactive study session. Stops when the queue is empty or the timebox ends."""
    from cardwise.application.factory import get_study_service
    from cardwise.application.queue_builder import session_cards
    from cardwise.application.scheduler import format_interval, preview_intervals

    service = get_study_service(_config(ctx))
    settings = _run(service.load_settings())
    cards = session_cards(_run(service.get_queue(set_name, _now(), settings)), mode)

    if not cards:
        typer.secho("Nothing to study right now.", fg="green")
        return

    started = time.monotonic()
    deadline = started + settings.timebox_minutes * 60
    studied = 0

    for card, state in cards:
        if time.monotonic() >= deadline:
            typer.secho(f"Timebox of {settings.timebox_minutes} minutes reached.", fg="yellow")
            break

        typer.secho(f"\n{card.front}", bold=True)
        typer.prompt("Press Enter to show the answer", default="", show_default=False)
        typer.echo(card.back)

        if not settings.scheduler_enabled:
            studied += 1
            continue

        previews = preview_intervals(state, _now(), settings, card_id=card.id)
        choices = "  ".join(f"{r.value} ({format_interval(d)})" for r, d in previews.items())
        answer = typer.prompt(f"Rate: {choices}  or quit", default=Rating.GOOD.value)
        if answer == "quit":
            break
        try:
            rating = Rating(answer)
        except ValueError:
            typer.secho(f"Unknown rating '{answer}', skipping card.", fg="yellow")
            continue

        _run(service.review_card(set_name, card.id, rating, _now(), settings))
        studied += 1

    typer.secho(f"\nSession finished: {studied} card(s) studied.", fg="green")


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------


@app.command("stats")
def stats(
    ctx: typer.Context,
    set_name: Annotated[str, typer.Argument(help="Card set.")],
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """Show study statistics for a set."""
    from cardwise.application.factory import get_stats_service, get_study_service

    config = _config(ctx)
    settings = _run(get_study_service(config).load_settings())
    result = _run(get_stats_service(config).get_stats(set_name, _now(), settings))

    if json_output:
        typer.echo(json.dumps(asdict(result), indent=2))
        return

    typer.echo(f"Studied today: {result.cards_studied_today}")
    typer.echo(f"  New: {result.new_cards_today}  Reviews: {result.reviews_today}")
    typer.echo(f"Retention: {result.average_retention:.0%}")
    typer.echo(f"Streak: {result.streak_days} day(s)")
    typer.echo(
        f"Learned: {result.total_cards_learned}  "
        f"Mature: {result.mature_cards}  Young: {result.young_cards}"
    )


@app.command("insights")
def insights(
    ctx: typer.Context,
    set_name: Annotated[str, typer.Argument(help="Card set.")],
    limit: Annotated[int, typer.Option(help="Show at most this many cards.")] = 10,
):
    """List the weakest reviewed cards by current recall probability."""
    from cardwise.application.factory import get_stats_service, get_study_service

    config = _config(ctx)
    settings = _run(get_study_service(config).load_settings())
    rows = _run(get_stats_service(config).get_insights(set_name, _now(), settings))

    reviewed = [r for r in rows if r.current_retrievability is not None]
    if not reviewed:
        typer.secho("No reviewed cards yet.", fg="yellow")
        return
    for row in reviewed[:limit]:
        typer.echo(
            f"{row.current_retrievability:6.1%}  S={row.stability:.1f}d  "
            f"D={row.difficulty:.1f}  lapses={row.lapse_rate:.0%}  {row.front}"
        )


# ---------------------------------------------------------------------------
# Card subgroup
# ---------------------------------------------------------------------------


@card_app.command("add")
def card_add(
    ctx: typer.Context,
    set_name: Annotated[str, typer.Argument(help="Card set.")],
    front: Annotated[str, typer.Option(help="Question side.")],
    back: Annotated[str, typer.Option(help="Answer side.")],
):
    """Add a card to a set."""
    from cardwise.application.factory import get_study_service

    service = get_study_service(_config(ctx))
    card = _run(service.add_card(set_name, front, back))
    typer.secho(f"Added {card.id}", fg="green")


@card_app.command("edit")
def card_edit(
    ctx: typer.Context,
    set_name: Annotated[str, typer.Argument(help="Card set.")],
    card_id: Annotated[str, typer.Argument(help="Card to edit.")],
    front: Annotated[str | None, typer.Option(help="New question side.")] = None,
    back: Annotated[str | None, typer.Option(help="New answer side.")] = None,
):
    """Edit a card's text. Its review history is kept."""
    from cardwise.application.factory import get_study_service

    service = get_study_service(_config(ctx))
    _run(service.update_card(set_name, card_id, front=front, back=back))
    typer.secho(f"Updated {card_id}", fg="green")


@card_app.command("delete")
def card_delete(
    ctx: typer.Context,
    set_name: Annotated[str, typer.Argument(help="Card set.")],
    card_id: Annotated[str, typer.Argument(help="Card to delete.")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation.")] = False,
):
    """Delete a card and its review history."""
    from cardwise.application.factory import get_study_service

    if not yes:
        typer.confirm(f"Delete {card_id} and its review history?", abort=True)

    service = get_study_service(_config(ctx))
    _run(service.delete_card(set_name, card_id))
    typer.secho(f"Deleted {card_id}", fg="green")


# ---------------------------------------------------------------------------
# Settings subgroup
# ---------------------------------------------------------------------------


@settings_app.command("show")
def settings_show(ctx: typer.Context):
    """Display the active study settings."""
    from cardwise.application.factory import get_study_service

    settings = _run(get_study_service(_config(ctx)).load_settings())
    typer.echo(json.dumps(settings.to_record(), indent=2))


@settings_app.command("set")
def settings_set(
    ctx: typer.Context,
    enable: Annotated[
        bool | None,
        typer.Option("--enable/--disable", help="Turn the scheduler on or off."),
    ] = None,
    retention: Annotated[
        float | None, typer.Option(help="Desired retention, 0.70 to 0.97.")
    ] = None,
    new_per_day: Annotated[int | None, typer.Option(help="New cards per day.")] = None,
    max_reviews: Annotated[int | None, typer.Option(help="Maximum reviews per day.")] = None,
    timebox: Annotated[int | None, typer.Option(help="Session length in minutes.")] = None,
):
    """Change study settings. Only the given options are updated."""
    from cardwise.application.factory import get_study_service

    changes = {
        "scheduler_enabled": enable,
        "desired_retention": retention,
        "new_cards_per_day": new_per_day,
        "max_reviews_per_day": max_reviews,
        "timebox_minutes": timebox,
    }
    changes = {k: v for k, v in changes.items() if v is not None}
    if not changes:
        typer.secho("Nothing to change.", fg="yellow")
        raise typer.Exit(2)

    settings = _run(get_study_service(_config(ctx)).update_settings(changes))
    typer.echo(json.dumps(settings.to_record(), indent=2))


# ---------------------------------------------------------------------------
# Config subgroup
# ---------------------------------------------------------------------------


@config_app.command("show")
def config_show(ctx: typer.Context):
    """Display final resolved configuration."""
    config = _config(ctx)
    d = config.model_dump(mode="json")
    typer.echo(json.dumps(d, indent=2))


@config_app.command("logs")
def config_logs(
    ctx: typer.Context,
    open_dir: Annotated[bool, typer.Option("--open", help="Open the log directory.")] = False,
):
    """Show (or open) the log directory."""
    config = _config(ctx)
    typer.echo(str(config.log_dir))
    if open_dir:
        typer.launch(str(config.log_dir))


# ---------------------------------------------------------------------------
# Server
# ---------------------------------------------------------------------------


@app.command("serve")
def serve(
    ctx: typer.Context,
    port: Annotated[int | None, typer.Option(help="Port to bind the server to.")] = None,
    host: Annotated[str | None, typer.Option(help="Host to bind the server to.")] = None,
    reload: Annotated[bool, typer.Option(help="Enable auto-reload.")] = False,
):
    """Run the HTTP API."""
    import os

    import uvicorn

    config = _config(ctx)
    # The server resolves its own config; hand the data directory over
    os.environ["CARDWISE_DATA_DIR"] = str(config.data_dir)
    uvicorn.run(
        "cardwise.server:app",
        host=host or config.host,
        port=port or config.port,
        reload=reload,
    )
