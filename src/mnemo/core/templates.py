"""Card creation from templates with ``{{field}}`` placeholders."""

import re
from datetime import datetime

from mnemo.core.errors import TemplateValidationError
from mnemo.core.models import Card, CardTemplate, ensure_utc, utcnow

_PLACEHOLDER = re.compile(r"\{\{(\w+)\}\}")


def extract_fields(template: str) -> list[str]:
    """Field names used in a template string, in order of first use.

    Example: "The word is {{word}}" -> ["word"]
    """
    seen: dict[str, None] = {}
    for match in _PLACEHOLDER.finditer(template):
        seen.setdefault(match.group(1), None)
    return list(seen)


def render_template(template: str, values: dict[str, str]) -> str:
    """Replace ``{{field}}`` placeholders with values; unknown placeholders stay."""
    result = template
    for name, value in values.items():
        result = result.replace("{{" + name + "}}", value)
    return result


def validate_field_values(template: CardTemplate, values: dict[str, str]) -> list[str]:
    """Return the declared fields that are missing or blank in ``values``."""
    return [name for name in template.field_names if not (values.get(name) or "").strip()]


def create_cards_from_template(
    template: CardTemplate,
    field_values: list[dict[str, str]],
    deck_id: str,
    now: datetime | None = None,
) -> list[Card]:
    """Create one New card per field-value mapping.

    Every mapping is validated before any card is built; if any is missing
    a declared field, nothing is created.

    Raises:
        TemplateValidationError: listing the missing fields per row
    """
    missing = {}
    for index, values in enumerate(field_values):
        absent = validate_field_values(template, values)
        if absent:
            missing[index] = absent
    if missing:
        raise TemplateValidationError(missing)

    now = ensure_utc(now) or utcnow()
    return [
        Card.new(
            deck_id=deck_id,
            front=render_template(template.front_template, values),
            back=render_template(template.back_template, values),
            now=now,
            template_id=template.id,
        )
        for values in field_values
    ]
