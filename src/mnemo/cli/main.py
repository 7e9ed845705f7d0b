"""Main CLI entry point for Mnemo."""

from pathlib import Path

import typer
from dotenv import load_dotenv
from rich import print as rprint
from rich.panel import Panel
from rich.table import Table

from mnemo.cli.helpers import console, find_card, find_deck, get_engine, get_storage, render_markup
from mnemo.config import get_settings
from mnemo.core.bulk import BulkOperations, BulkResult
from mnemo.core.errors import MnemoError, StructuralError
from mnemo.core.models import Card, Deck, ImportResult, Rating, new_id, utcnow
from mnemo.core.session import ReviewService
from mnemo.core.stats import calculate_statistics, progress_summary
from mnemo.core.storage import Storage
from mnemo.io.anki import AnkiImporter
from mnemo.io.container import ContainerReader, get_backend
from mnemo.io.phase6 import import_from_csv, import_from_xml
from mnemo.io.transfer import (
    export_to_delimited_text,
    export_to_json,
    import_from_delimited_text,
    import_from_json,
)
from mnemo.log import configure_logging

load_dotenv()

app = typer.Typer(
    name="mnemo",
    help="Spaced-repetition flashcards with Anki, Phase6, CSV and JSON import.",
    no_args_is_help=True,
)

# Import subcommand group
import_app = typer.Typer(help="Import cards from other apps and files.")
app.add_typer(import_app, name="import")


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at INFO level"),
) -> None:
    """Configure logging before any command runs."""
    configure_logging("INFO" if verbose else get_settings().log_level)


# ============================================================================
# IMPORT commands
# ============================================================================


def _report_import(result: ImportResult, storage: Storage, dry_run: bool) -> None:
    """Print an import result and persist it unless it failed or this is a dry run."""
    for warning in result.warnings:
        rprint(f"[yellow]Warning:[/yellow] {warning}")
    for error in result.errors:
        rprint(f"[red]Error:[/red] {error}")

    if not result.success:
        rprint("[red]Import failed.[/red]")
        raise typer.Exit(1)

    if dry_run:
        rprint(
            f"[dim]Dry run: {len(result.cards)} card(s) in {len(result.decks)} deck(s) "
            "would be imported.[/dim]"
        )
        return

    saved = storage.save_import(result)
    rprint(f"\n[green]Imported {saved} card(s) into {len(result.decks)} deck(s).[/green]")
    for deck in result.decks:
        rprint(f"  {deck.id[:8]}: {deck.name}")


def _read_bytes(path: Path) -> bytes:
    if not path.exists():
        rprint(f"[red]File not found: {path}[/red]")
        raise typer.Exit(1)
    return path.read_bytes()


def _read_text(path: Path) -> str:
    try:
        return _read_bytes(path).decode("utf-8-sig")
    except UnicodeDecodeError as e:
        rprint(f"[red]Not UTF-8 text ({e.reason} at byte {e.start}): {path}[/red]")
        raise typer.Exit(1)


@import_app.command("apkg")
def import_apkg(
    path: Path = typer.Argument(..., help="Anki package (.apkg)"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Parse without saving"),
) -> None:
    """Import decks and cards from an Anki package."""
    storage = get_storage()
    reader = ContainerReader(get_backend(get_settings().sqlite_backend))
    result = AnkiImporter(reader=reader).import_from_apkg(_read_bytes(path))
    _report_import(result, storage, dry_run)


@import_app.command("phase6")
def import_phase6(
    path: Path = typer.Argument(..., help="Phase6 export (.xml or .csv)"),
    deck_name: str = typer.Option(
        "Phase6 Import", "--deck-name", "-d", help="Name of the new deck"
    ),
    fmt: str | None = typer.Option(
        None,
        "--format",
        "-f",
        help="xml or csv (default: from the file extension)",
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Parse without saving"),
) -> None:
    """Import a Phase6 vocabulary export into a new deck."""
    storage = get_storage()
    fmt = (fmt or path.suffix.lstrip(".")).lower()
    if fmt not in ("xml", "csv"):
        rprint(f"[red]Unknown Phase6 format: {fmt or '(none)'}[/red]")
        rprint("Use --format xml or --format csv")
        raise typer.Exit(1)

    text = _read_text(path)
    result = import_from_xml(text, deck_name) if fmt == "xml" else import_from_csv(text, deck_name)
    _report_import(result, storage, dry_run)


def _target_deck(storage: Storage, key: str) -> Deck:
    """Existing deck by ID or name, or a new deck named ``key``."""
    deck = find_deck(storage, key)
    if deck is None:
        deck = Deck(name=key)
        storage.decks.save_deck(deck)
        rprint(f"[dim]Created deck {deck.name} ({deck.id[:8]})[/dim]")
    return deck


@import_app.command("csv")
def import_csv(
    path: Path = typer.Argument(..., help="CSV file with front,back[,tags] rows"),
    deck: str = typer.Option(..., "--deck", "-d", help="Target deck ID or name"),
) -> None:
    """Import CSV rows as new cards."""
    text = _read_text(path)
    storage = get_storage()
    target = _target_deck(storage, deck)
    cards = import_from_delimited_text(text, target.id)
    saved = storage.save_cards(cards)
    rprint(f"[green]Imported {saved} card(s) into {target.name}.[/green]")


@import_app.command("json")
def import_json(
    path: Path = typer.Argument(..., help="JSON file written by 'mnemo export --format json'"),
    deck: str = typer.Option(..., "--deck", "-d", help="Target deck ID or name"),
) -> None:
    """Restore cards, with their schedules, from a JSON export."""
    storage = get_storage()
    existing = find_deck(storage, deck)
    deck_id = existing.id if existing else new_id()
    try:
        cards = import_from_json(_read_text(path), deck_id)
    except StructuralError as e:
        rprint(f"[red]{e}[/red]")
        raise typer.Exit(1)

    # Only create the deck once the file has parsed
    target = existing or Deck(id=deck_id, name=deck)
    if existing is None:
        storage.decks.save_deck(target)
    saved = storage.save_cards(cards)
    rprint(f"[green]Imported {saved} card(s) into {target.name}.[/green]")


# ============================================================================
# EXPORT command
# ============================================================================


@app.command()
def export(
    deck: str = typer.Argument(..., help="Deck ID or name"),
    fmt: str = typer.Option("json", "--format", "-f", help="json or csv"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Write to a file"),
) -> None:
    """Export a deck as JSON (full schedule) or CSV (content only)."""
    storage = get_storage()
    target = _require_deck(storage, deck)
    cards = storage.cards.get_cards_by_deck(target.id)

    if fmt == "json":
        text = export_to_json(cards, target)
    elif fmt == "csv":
        text = export_to_delimited_text(cards, target)
    else:
        rprint(f"[red]Unknown format: {fmt}[/red]")
        raise typer.Exit(1)

    if output is None:
        typer.echo(text)
        return
    output.write_text(text, encoding="utf-8")
    rprint(f"[green]Exported {len(cards)} card(s) to {output}[/green]")


# ============================================================================
# ADD / DECKS commands
# ============================================================================


@app.command()
def add(
    deck: str = typer.Argument(..., help="Deck ID or name (created if missing)"),
    front: str = typer.Option(..., "--front", prompt=True),
    back: str = typer.Option(..., "--back", prompt=True),
) -> None:
    """Add a single card."""
    storage = get_storage()
    target = _target_deck(storage, deck)
    card = Card.new(target.id, front, back)
    storage.cards.save_card(card)
    rprint("\n[green]Card saved![/green]")
    rprint(f"  ID: {card.id}")


@app.command()
def decks() -> None:
    """List decks with card counts."""
    storage = get_storage()
    all_decks = storage.decks.get_all_decks()
    if not all_decks:
        rprint("[dim]No decks yet. Import some cards to get started.[/dim]")
        return

    now = utcnow()
    table = Table(title=f"Decks ({len(all_decks)})")
    table.add_column("ID", style="dim", max_width=8)
    table.add_column("Name", style="cyan")
    table.add_column("Cards", justify="right")
    table.add_column("Due", justify="right", style="green")

    for d in all_decks:
        due = len(storage.cards.get_due_cards(now, d.id))
        table.add_row(d.id[:8], d.name, str(storage.cards.get_card_count(d.id)), str(due))

    console.print(table)


def _require_deck(storage: Storage, key: str) -> Deck:
    deck = find_deck(storage, key)
    if deck is None:
        rprint(f"[red]Deck not found: {key}[/red]")
        raise typer.Exit(1)
    return deck


def _require_card(storage: Storage, card_id: str) -> Card:
    card = find_card(storage, card_id)
    if card is None:
        rprint(f"[red]Card not found: {card_id}[/red]")
        raise typer.Exit(1)
    return card


# ============================================================================
# STATS command
# ============================================================================


@app.command()
def stats(
    deck: str | None = typer.Option(None, "--deck", "-d", help="Limit to one deck"),
) -> None:
    """Show study statistics."""
    storage = get_storage()
    if deck:
        cards = storage.cards.get_cards_by_deck(_require_deck(storage, deck).id)
    else:
        cards = storage.cards.get_all_cards()
    card_ids = {c.id for c in cards}
    logs = [log for log in storage.logs.get_all_logs() if log.card_id in card_ids]
    full = calculate_statistics(cards, logs=logs)

    table = Table(title="Mnemo Statistics")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")

    table.add_row("Total Cards", str(full.total_cards))
    table.add_row("New", str(full.new_cards))
    table.add_row("Learning", str(full.learning_cards))
    table.add_row("Review", str(full.review_cards))
    table.add_row("Due Now", str(full.due_today))
    table.add_row("Reviewed Today", str(full.cards_reviewed_today))
    table.add_row("Reviewed This Week", str(full.cards_reviewed_this_week))
    table.add_row("Total Reviews", str(full.total_reviews))
    table.add_row("Retention", f"{full.average_retention:.0f}%")
    table.add_row("Current Streak", f"{full.current_streak} day(s)")
    table.add_row("Longest Streak", f"{full.longest_streak} day(s)")

    if full.daily_stats:
        table.add_row("", "")
        table.add_row("[bold]Last 7 Days[/bold]", "")
        for day in full.daily_stats:
            table.add_row(f"  {day.date.isoformat()}", f"{day.reviewed} ({day.new_cards} new)")

    console.print(table)
    rprint(f"\n{progress_summary(full)}")


# ============================================================================
# REVIEW / PREVIEW commands
# ============================================================================


@app.command()
def review(
    deck: str | None = typer.Option(None, "--deck", "-d", help="Only review this deck"),
    limit: int = typer.Option(20, "--limit", "-l", help="Maximum cards to review"),
) -> None:
    """Start an interactive review session."""
    storage = get_storage()
    engine = get_engine()
    service = ReviewService(engine, storage.cards, storage.logs)

    deck_id = _require_deck(storage, deck).id if deck else None
    queue = service.due_cards(deck_id=deck_id, limit=limit)

    if not queue:
        rprint("[green]No cards due for review![/green]")
        return

    rprint(f"\n[bold]Review Session[/bold]: {len(queue)} card(s)\n")

    reviewed = 0
    for i, card in enumerate(queue, 1):
        title = f"Card {i}/{len(queue)}"
        console.print(Panel(render_markup(card.front), title=title, border_style="blue"))

        # Wait for reveal
        typer.prompt("\n[Press Enter to reveal answer]", default="", show_default=False)

        console.print(Panel(render_markup(card.back), title="Answer", border_style="green"))

        rating = _prompt_rating(engine.preview(card))
        if rating is None:
            rprint("\n[yellow]Session ended early.[/yellow]")
            break

        outcome = service.review_card(card, rating)
        if not outcome.persisted:
            rprint("[red]Could not save this review; continuing.[/red]")
        rprint(f"[dim]Next review: {outcome.card.due.strftime('%Y-%m-%d %H:%M')}[/dim]\n")
        reviewed += 1

    # Session summary
    rprint("\n[bold green]Session complete![/bold green]")
    rprint(f"Reviewed {reviewed} card(s).")


def _prompt_rating(options) -> Rating | None:
    """Prompt user for rating, showing the interval each choice would give."""
    rprint("\n[bold]Rate this card:[/bold]")
    rprint(
        f"  [red]1[/red] Again ({options[Rating.AGAIN].interval})  "
        f"[yellow]2[/yellow] Hard ({options[Rating.HARD].interval})  "
        f"[green]3[/green] Good ({options[Rating.GOOD].interval})  "
        f"[cyan]4[/cyan] Easy ({options[Rating.EASY].interval})  "
        "[dim]q[/dim] Quit"
    )

    while True:
        choice = typer.prompt("Rating", default="3")
        if choice.lower() == "q":
            return None
        try:
            rating_value = int(choice)
            if 1 <= rating_value <= 4:
                return Rating(rating_value)
        except ValueError:
            pass
        rprint("[red]Invalid choice. Enter 1-4 or q to quit.[/red]")


@app.command()
def preview(card_id: str = typer.Argument(..., help="Card ID (or partial ID)")) -> None:
    """Show when a card would next be due for each rating, without reviewing it."""
    storage = get_storage()
    card = _require_card(storage, card_id)
    options = get_engine().preview(card)

    table = Table(title=f"Preview for {card.id[:8]} ({card.state.name.title()})")
    table.add_column("Rating", style="cyan")
    table.add_column("Interval", justify="right")
    table.add_column("Due")
    table.add_column("Stability", justify="right")
    table.add_column("Difficulty", justify="right")

    for rating, option in options.items():
        table.add_row(
            rating.name.title(),
            option.interval,
            option.card.due.strftime("%Y-%m-%d %H:%M"),
            f"{option.card.stability:.2f}",
            f"{option.card.difficulty:.2f}",
        )

    console.print(table)


# ============================================================================
# BULK commands (reset, move, duplicate, delete)
# ============================================================================


def _resolve_ids(storage: Storage, card_ids: list[str]) -> list[str]:
    """Expand partial IDs; unknown IDs are passed through so they are reported as skipped."""
    resolved = []
    for card_id in card_ids:
        card = find_card(storage, card_id)
        resolved.append(card.id if card else card_id)
    return resolved


def _report_bulk(action: str, result: BulkResult) -> None:
    rprint(f"[green]{action} {len(result.processed)} card(s).[/green]")
    if result.skipped:
        rprint(f"[yellow]Not found: {', '.join(result.skipped)}[/yellow]")
    for card_id, error in result.failed.items():
        rprint(f"[red]Failed {card_id}: {error}[/red]")


@app.command()
def reset(card_ids: list[str] = typer.Argument(..., help="Card IDs (or partial IDs)")) -> None:
    """Reset cards to New so they are learned from scratch."""
    storage = get_storage()
    result = BulkOperations(storage.cards).reset_cards(_resolve_ids(storage, card_ids))
    _report_bulk("Reset", result)


@app.command()
def move(
    card_ids: list[str] = typer.Argument(..., help="Card IDs (or partial IDs)"),
    to: str = typer.Option(..., "--to", "-t", help="Target deck ID or name"),
) -> None:
    """Move cards to another deck."""
    storage = get_storage()
    target = _require_deck(storage, to)
    ids = _resolve_ids(storage, card_ids)
    result = BulkOperations(storage.cards).move_cards_to_deck(ids, target.id)
    _report_bulk(f"Moved to {target.name}:", result)


@app.command()
def duplicate(card_ids: list[str] = typer.Argument(..., help="Card IDs (or partial IDs)")) -> None:
    """Copy cards as new, unreviewed cards."""
    storage = get_storage()
    result = BulkOperations(storage.cards).duplicate_cards(_resolve_ids(storage, card_ids))
    _report_bulk("Duplicated", result)
    for card in result.created:
        rprint(f"  [dim]{card.id[:8]}: {card.front[:50]}[/dim]")


@app.command()
def delete(
    card_ids: list[str] = typer.Argument(..., help="Card IDs (or partial IDs)"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Delete cards."""
    storage = get_storage()
    ids = _resolve_ids(storage, card_ids)
    if not yes and not typer.confirm(f"Delete {len(ids)} card(s)?"):
        raise typer.Exit(0)
    result = BulkOperations(storage.cards).delete_cards(ids)
    _report_bulk("Deleted", result)


# ============================================================================
# SERVE command
# ============================================================================


@app.command()
def serve(
    port: int = typer.Option(
        8000,
        "--port",
        "-p",
        help="Port to run the server on",
    ),
    host: str = typer.Option(
        "127.0.0.1",
        "--host",
        "-h",
        help="Host to bind to",
    ),
    reload: bool = typer.Option(
        False,
        "--reload",
        "-r",
        help="Enable auto-reload for development",
    ),
) -> None:
    """Start the JSON API server."""
    try:
        import uvicorn
    except ImportError:
        rprint("[red]Web dependencies not installed.[/red]")
        rprint("Install with: pip install mnemo[web]")
        raise typer.Exit(1)

    rprint("\n[bold]Starting Mnemo API server[/bold]")
    rprint(f"  URL: http://{host}:{port}")
    rprint(f"  Docs: http://{host}:{port}/docs")
    rprint("\n[dim]Press Ctrl+C to stop[/dim]\n")

    uvicorn.run(
        "mnemo.web.app:app",
        host=host,
        port=port,
        reload=reload,
    )


# ============================================================================
# Main entry point
# ============================================================================


def main() -> None:
    """Main entry point."""
    try:
        app()
    except MnemoError as e:
        rprint(f"[red]{e}[/red]")
        raise SystemExit(1)


if __name__ == "__main__":
    main()
