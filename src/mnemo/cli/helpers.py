"""Shared CLI helpers: storage, engine and ID/deck lookup."""

from rich import print as rprint
from rich.console import Console
from rich.text import Text

from mnemo.config import get_settings
from mnemo.core.markup import parse_markup
from mnemo.core.models import Card, Deck
from mnemo.core.scheduler import SchedulingEngine
from mnemo.core.storage import Storage

console = Console()

# Global storage instance (initialized lazily)
_storage: Storage | None = None


def get_storage() -> Storage:
    """Get or create the storage instance."""
    global _storage
    if _storage is None:
        settings = get_settings()
        settings.data_dir.mkdir(parents=True, exist_ok=True)
        _storage = Storage(settings.db_path)
    return _storage


def reset_storage() -> None:
    """Forget the cached storage (and settings) so the next call re-reads the environment."""
    global _storage
    _storage = None
    get_settings.cache_clear()


def get_engine() -> SchedulingEngine:
    return SchedulingEngine.from_settings(get_settings())


def find_card(storage: Storage, card_id: str) -> Card | None:
    """Find a card by full or partial ID."""
    # Try exact match first
    card = storage.cards.get_card(card_id)
    if card:
        return card

    # Try partial match
    matches = [c for c in storage.cards.get_all_cards() if c.id.startswith(card_id)]

    if len(matches) == 1:
        return matches[0]
    elif len(matches) > 1:
        rprint(f"[yellow]Multiple cards match '{card_id}':[/yellow]")
        for c in matches:
            rprint(f"  {c.id[:8]}: {c.front[:40]}...")
        return None

    return None


def find_deck(storage: Storage, key: str) -> Deck | None:
    """Find a deck by ID, ID prefix or exact name."""
    deck = storage.decks.get_deck(key)
    if deck:
        return deck

    decks = storage.decks.get_all_decks()
    by_name = [d for d in decks if d.name == key]
    if len(by_name) == 1:
        return by_name[0]

    by_prefix = [d for d in decks if d.id.startswith(key)]
    if len(by_prefix) == 1:
        return by_prefix[0]
    return None


def render_markup(text: str) -> Text:
    """Convert inline ``**bold**``/``*italic*``/`` `code` `` spans to rich Text."""
    rendered = Text()
    for token in parse_markup(text):
        styles = []
        if token.bold:
            styles.append("bold")
        if token.italic:
            styles.append("italic")
        if token.code:
            styles.append("cyan on grey11")
        rendered.append(token.text, style=" ".join(styles) or None)
    return rendered
