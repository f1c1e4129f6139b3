"""Store and zone label normalization."""

import re

from app.features.parsers.cells import strip_accents

# Portal store labels -> stable store ids used across every table
STORE_ALIASES: dict[str, str] = {
    "Lupita Pizza - Cais do Sodre (1)": "cais_do_sodre",
    "Lupita Pizza - Cais do Sodré (1)": "cais_do_sodre",
    "Lupita Pizza - Alvalade (2)": "alvalade",
}

ZONE_ALIASES: dict[str, str] = {
    "sala": "Sala",
    "delivery": "Delivery",
    "takeaway": "Takeaway",
    "take away": "Takeaway",
    "espera": "Espera",
    "eventos": "Eventos",
}
DEFAULT_ZONE = "Outros"

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")


def slugify(text: str) -> str:
    """Lowercase ASCII slug: "Lupita Pizza - Testing (9)" -> "lupita_pizza_testing_9"."""
    ascii_text = strip_accents(text).lower()
    return _NON_ALNUM_RE.sub("_", ascii_text).strip("_")


def resolve_store_id(raw_name: str) -> str:
    """Map a portal store label to its store id.

    Unknown labels fall back to their slug, so every store ever seen gets
    the same deterministic id on every import.
    """
    name = raw_name.strip()
    return STORE_ALIASES.get(name) or slugify(name)


def normalize_zone(raw_zone: str | None) -> str:
    """Canonical zone label; blank, "-" and unknown labels become "Outros"."""
    key = (raw_zone or "").strip().lower()
    return ZONE_ALIASES.get(key, DEFAULT_ZONE)
