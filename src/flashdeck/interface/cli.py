"""Flashdeck CLI: root commands and subgroup registration."""

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Annotated, Any

import typer

from flashdeck.application.config import AppConfig, resolve_config
from flashdeck.application.session import SessionCursor
from flashdeck.application.stats import format_history
from flashdeck.application.study_service import SessionPlan, StudyService
from flashdeck.domain.constants import ALL_DECKS_ID
from flashdeck.domain.exceptions import FlashdeckError
from flashdeck.domain.history import progress_key
from flashdeck.domain.models import Direction
from flashdeck.infrastructure.json_repository import JsonFileRepository
from flashdeck.infrastructure.logging_config import setup_logging

# ---------------------------------------------------------------------------
# Root app
# ---------------------------------------------------------------------------

app = typer.Typer(
    help="flashdeck: bidirectional spaced-repetition flashcards.",
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

# ---------------------------------------------------------------------------
# Subgroups
# ---------------------------------------------------------------------------

decks_app = typer.Typer(help="Create, list and delete decks.", no_args_is_help=True)
cards_app = typer.Typer(help="Manage the cards of a deck.", no_args_is_help=True)
users_app = typer.Typer(help="Manage learners.", no_args_is_help=True)
progress_app = typer.Typer(help="Inspect and reset study progress.", no_args_is_help=True)
ids_app = typer.Typer(help="Card identity maintenance.", no_args_is_help=True)
config_app = typer.Typer(help="Manage flashdeck configuration.", no_args_is_help=True)

app.add_typer(decks_app, name="decks")
app.add_typer(cards_app, name="cards")
app.add_typer(users_app, name="users")
app.add_typer(progress_app, name="progress")
app.add_typer(ids_app, name="ids")
app.add_typer(config_app, name="config")

UserOption = Annotated[str, typer.Option("--user", "-u", help="Learner username.")]


# ---------------------------------------------------------------------------
# Global callback
# ---------------------------------------------------------------------------


@app.callback()
def main_callback(
    ctx: typer.Context,
    data_dir: Annotated[
        Path | None, typer.Option("--data-dir", help="Directory holding decks and progress.")
    ] = None,
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose", "-v", count=True, help="Increase verbosity. Repeat for more detail."
        ),
    ] = 0,
):
    """Global settings for flashdeck."""
    ctx.ensure_object(dict)
    ctx.obj["data_dir"] = data_dir
    config = resolve_config({"data_dir": data_dir})
    ctx.obj["verbose"] = max(verbose, config.verbose)
    setup_logging(config.log_dir, ctx.obj["verbose"])


def _resolve_with_overrides(ctx: typer.Context, **overrides: Any) -> AppConfig:
    obj = ctx.obj or {}
    return resolve_config({"data_dir": obj.get("data_dir"), **overrides})


def _repository(config: AppConfig) -> JsonFileRepository:
    return JsonFileRepository(config.data_dir)


def _service(config: AppConfig) -> StudyService:
    return StudyService(
        _repository(config),
        threshold=config.mastery_threshold,
        save_retries=config.save_retries,
    )


def _run(coro):
    """Run a coroutine, turning domain errors into a clean exit."""
    try:
        return asyncio.run(coro)
    except FlashdeckError as e:
        typer.secho(f"Error: {e}", fg="red", err=True)
        raise typer.Exit(1) from e


# ---------------------------------------------------------------------------
# Decks
# ---------------------------------------------------------------------------


@decks_app.command("list")
def decks_list(ctx: typer.Context):
    """List decks with their card counts."""
    repo = _repository(_resolve_with_overrides(ctx))

    async def run():
        decks = await repo.list_decks()
        if not decks:
            typer.secho("No decks yet. Create one with 'flashdeck decks create NAME'.", fg="yellow")
            return
        for deck in decks:
            if deck.virtual:
                continue
            cards = await repo.load_cards(deck.id)
            typer.echo(f"{deck.id}\t{deck.name}\t{len(cards)} cards")

    _run(run())


@decks_app.command("create")
def decks_create(ctx: typer.Context, name: Annotated[str, typer.Argument(help="Deck name.")]):
    """Create an empty deck."""
    repo = _repository(_resolve_with_overrides(ctx))
    deck = _run(repo.create_deck(name))
    typer.secho(f"Created deck '{deck.name}' ({deck.id}).", fg="green")


@decks_app.command("delete")
def decks_delete(
    ctx: typer.Context,
    deck_id: Annotated[str, typer.Argument(help="Deck id.")],
    force: Annotated[bool, typer.Option("--force", "-f", help="Skip confirmation.")] = False,
):
    """Delete a deck and its cards."""
    if not force:
        typer.confirm(f"Delete deck '{deck_id}' and all its cards?", abort=True)
    repo = _repository(_resolve_with_overrides(ctx))
    _run(repo.delete_deck(deck_id))
    typer.secho(f"Deleted deck '{deck_id}'.", fg="green")


# ---------------------------------------------------------------------------
# Cards
# ---------------------------------------------------------------------------


@cards_app.command("list")
def cards_list(
    ctx: typer.Context,
    deck_id: Annotated[str, typer.Argument(help="Deck id.")],
    user: Annotated[
        str | None, typer.Option("--user", "-u", help="Show this learner's history.")
    ] = None,
):
    """List the cards of a deck, optionally with per-direction history."""
    repo = _repository(_resolve_with_overrides(ctx))

    async def run():
        cards = await repo.load_cards(deck_id)
        record = await repo.load_progress(user, deck_id) if user else {}
        return cards, record

    cards, record = _run(run())
    if not cards:
        typer.secho("This deck has no flashcards.", fg="yellow")
        return
    for index, card in enumerate(cards):
        typer.echo(f"[{index}] {card.question} -> {card.answer}  ({card.id})")
        if user:
            for direction in Direction:
                history = record.get(progress_key(card.id, direction), [])
                typer.echo(f"      {direction.value}: {format_history(history)}")


@cards_app.command("add")
def cards_add(
    ctx: typer.Context,
    deck_id: Annotated[str, typer.Argument(help="Deck id.")],
    question: Annotated[str, typer.Argument(help="Front text.")],
    answer: Annotated[str, typer.Argument(help="Back text.")],
    example: Annotated[str | None, typer.Option(help="Example sentence.")] = None,
    translation: Annotated[
        str | None, typer.Option(help="Translation of the example sentence.")
    ] = None,
):
    """Add a card to a deck."""
    repo = _repository(_resolve_with_overrides(ctx))
    card = _run(repo.add_card(deck_id, question, answer, example, translation))
    typer.secho(f"Added card {card.id}.", fg="green")


@cards_app.command("delete")
def cards_delete(
    ctx: typer.Context,
    deck_id: Annotated[str, typer.Argument(help="Deck id.")],
    index: Annotated[int, typer.Argument(help="Card position as shown by 'cards list'.")],
):
    """Delete one card by position."""
    repo = _repository(_resolve_with_overrides(ctx))
    card = _run(repo.delete_card(deck_id, index))
    typer.secho(f"Deleted card '{card.question}'.", fg="green")


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


@users_app.command("list")
def users_list(ctx: typer.Context):
    """List known learners."""
    repo = _repository(_resolve_with_overrides(ctx))
    for user in _run(repo.list_users()):
        typer.echo(f"{user.username}\t{user.display_name}\t{user.created_at}")


@users_app.command("add")
def users_add(ctx: typer.Context, username: Annotated[str, typer.Argument(help="Username.")]):
    """Create a learner (or report the existing one)."""
    repo = _repository(_resolve_with_overrides(ctx))
    user, created = _run(repo.get_or_create_user(username))
    if created:
        typer.secho(f"Created user '{user.username}'.", fg="green")
    else:
        typer.echo(f"User '{user.username}' already exists.")


# ---------------------------------------------------------------------------
# Progress
# ---------------------------------------------------------------------------


@progress_app.command("stats")
def progress_stats(
    ctx: typer.Context,
    user: UserOption,
    deck_id: Annotated[str, typer.Argument(help=f"Deck id, or '{ALL_DECKS_ID}'.")] = ALL_DECKS_ID,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """Show success rate and progress towards mastery."""
    service = _service(_resolve_with_overrides(ctx))
    stats = _run(service.deck_stats(user, deck_id))
    if json_output:
        typer.echo(json.dumps(stats.to_dict(), indent=2))
        return
    typer.echo(f"Success rate: {stats.success_rate}%")
    typer.echo(f"Progress: {stats.mastered_units_equivalent}/{stats.total_possible_outcomes}")
    typer.echo(f"Mastered units: {stats.mastered_units}  Remaining: {stats.remaining_units}")


@progress_app.command("reset")
def progress_reset(
    ctx: typer.Context,
    user: UserOption,
    deck_id: Annotated[str | None, typer.Argument(help="Deck id to reset.")] = None,
    all_decks: Annotated[bool, typer.Option("--all", help="Reset every deck.")] = False,
    force: Annotated[bool, typer.Option("--force", "-f", help="Skip confirmation.")] = False,
):
    """Delete learning history for one deck or all decks."""
    if not all_decks and not deck_id:
        typer.secho("Pass a deck id or --all.", fg="red", err=True)
        raise typer.Exit(2)

    service = _service(_resolve_with_overrides(ctx))
    if all_decks:
        if not force:
            typer.confirm("Reset ALL progress for all decks? This cannot be undone.", abort=True)
        count = _run(service.reset_all(user))
        typer.secho(f"Reset progress for {count} decks.", fg="green")
        return

    if not force:
        typer.confirm(f"Reset all progress for '{deck_id}'? This cannot be undone.", abort=True)
    if _run(service.reset_deck(user, deck_id)):
        typer.secho("Progress reset successfully.", fg="green")
    else:
        typer.echo("Progress already empty.")


# ---------------------------------------------------------------------------
# Study
# ---------------------------------------------------------------------------


@app.command()
def study(
    ctx: typer.Context,
    user: UserOption,
    deck_id: Annotated[str, typer.Argument(help=f"Deck id, or '{ALL_DECKS_ID}'.")],
):
    """[bold green]Study[/bold green] a deck in the terminal."""
    config = _resolve_with_overrides(ctx)
    service = _service(config)

    async def run():
        plan = await service.open_session(user, deck_id)
        if not plan.cursor.start():
            _echo_empty(plan, config.mastery_threshold)
            return
        await _study_loop(plan, config.mastery_threshold)

    _run(run())


def _echo_empty(plan: SessionPlan, threshold: int) -> None:
    if plan.card_count > 0:
        typer.secho(
            "Congratulations! All cards in this deck are mastered "
            f"({threshold} correct answers in a row for each direction).",
            fg="green",
        )
    else:
        typer.secho("This deck has no flashcards. Add some cards first!", fg="yellow")


async def _study_loop(plan: SessionPlan, threshold: int) -> None:
    cursor = plan.cursor
    while True:
        unit = cursor.current()
        typer.echo("")
        typer.echo(f"[{cursor.position + 1}/{len(cursor)}] {unit.prompt}")
        typer.echo(f"  {format_history(cursor.history())}")

        action = typer.prompt(
            "Enter to reveal, p = previous, q = quit", default="", show_default=False
        ).strip().lower()
        if action == "q":
            break
        if action == "p":
            cursor.retreat()
            continue

        cursor.reveal()
        typer.secho(f"  {unit.response}", bold=True)
        example = cursor.example()
        if example:
            typer.echo(f"  Example: {example.text}")
            typer.echo(f"           {example.translation}")

        grade = _prompt_grade()
        if grade == "q":
            break
        if grade == "p":
            cursor.retreat()
            continue

        result = await cursor.record_outcome(grade == "y")
        if not result.saved:
            typer.secho(f"Warning: progress not saved ({result.error}).", fg="yellow")
        if result.completed:
            _echo_complete(plan, threshold)
            break

    await _flush(cursor)


def _prompt_grade() -> str:
    while True:
        grade = typer.prompt("Knew it? [y/n, p = previous, q = quit]").strip().lower()
        if grade in ("y", "n", "p", "q"):
            return grade


def _echo_complete(plan: SessionPlan, threshold: int) -> None:
    typer.secho(
        f"Deck complete! You've reviewed all {plan.active_units} active units.", fg="green"
    )
    if plan.mastered_units > 0:
        typer.secho(
            f"{plan.mastered_units} units mastered ({threshold} correct in a row)!", fg="green"
        )


async def _flush(cursor: SessionCursor) -> None:
    if not cursor.pending_saves:
        return
    if not await cursor.flush():
        decks = ", ".join(sorted(cursor.pending_saves))
        typer.secho(f"Progress for {decks} could not be saved.", fg="red", err=True)


# ---------------------------------------------------------------------------
# Maintenance
# ---------------------------------------------------------------------------


@ids_app.command("assign")
def ids_assign(
    ctx: typer.Context,
    dry_run: Annotated[bool, typer.Option("--dry-run", help="Report without writing.")] = False,
):
    """Write content-derived IDs into cards that lack one."""
    from flashdeck.application.id_service import assign_card_ids

    config = _resolve_with_overrides(ctx)
    try:
        count = assign_card_ids(config.data_dir, dry_run=dry_run)
    except FlashdeckError as e:
        typer.secho(f"Error: {e}", fg="red", err=True)
        raise typer.Exit(1) from e
    prefix = "[DRY RUN] Would assign" if dry_run else "Assigned"
    typer.echo(f"{prefix} {count} IDs.")


@config_app.command("show")
def config_show(ctx: typer.Context):
    """Display final resolved configuration."""
    config = _resolve_with_overrides(ctx)
    d = {k: str(v) if isinstance(v, Path) else v for k, v in config.model_dump().items()}
    typer.echo(json.dumps(d, indent=2))


@app.command()
def serve(
    ctx: typer.Context,
    host: Annotated[str | None, typer.Option(help="Bind address.")] = None,
    port: Annotated[int | None, typer.Option(help="Port.")] = None,
):
    """Run the HTTP server."""
    import uvicorn

    from flashdeck.server import app as server_app
    from flashdeck.server import get_config

    config = _resolve_with_overrides(ctx, host=host, port=port)
    server_app.dependency_overrides[get_config] = lambda: config
    uvicorn.run(server_app, host=config.host, port=config.port)
