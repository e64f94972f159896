"""Resolve the agent's entity references against the project.

The agent sometimes passes a name, or a placeholder such as
``ava-ID-placeholder``, where an id is expected. Resolution order:

1. exact id
2. normalized name (placeholder suffix dropped, ``-``/``_`` read as spaces,
   case-insensitive)
3. characters only: the most recently created character

Fuzzy and fallback matches are logged at WARNING so a wrong guess is visible.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from studio.models.project import Character, Location, Project

logger = logging.getLogger(__name__)

_PLACEHOLDER_SUFFIX = re.compile(r"-ID-placeholder$", re.IGNORECASE)


def normalize_reference(ref: str) -> str:
    """``"Ava-Stone-ID-placeholder"`` → ``"ava stone"``."""
    name = _PLACEHOLDER_SUFFIX.sub("", ref.strip())
    name = re.sub(r"[-_]+", " ", name)
    return " ".join(name.split()).lower()


def resolve_character(project: Project, ref: Optional[str]) -> Optional[Character]:
    """Find the character ``ref`` most plausibly means; None only when there are no characters."""
    if ref:
        exact = project.get_character(ref)
        if exact is not None:
            return exact

        wanted = ref.strip().lower()
        normalized = normalize_reference(ref)
        for character in project.characters:
            name = character.name.lower()
            if name == wanted or normalize_reference(character.name) == normalized:
                logger.warning(f"⚠️ Resolved character ref {ref!r} by name → {character.id[:8]} ({character.name})")
                return character

    if not project.characters:
        return None

    latest = max(reversed(project.characters), key=lambda c: c.created_at)
    logger.warning(
        f"⚠️ Character ref {ref!r} did not match; falling back to most recent "
        f"character {latest.id[:8]} ({latest.name})"
    )
    return latest


def resolve_location(project: Project, ref: Optional[str]) -> Optional[Location]:
    """Find a location by id, then by name. No fallback."""
    if not ref:
        return None
    exact = project.get_location(ref)
    if exact is not None:
        return exact

    wanted = ref.strip().lower()
    normalized = normalize_reference(ref)
    for location in project.locations:
        if location.name.lower() == wanted or normalize_reference(location.name) == normalized:
            logger.warning(f"⚠️ Resolved location ref {ref!r} by name → {location.id[:8]} ({location.name})")
            return location
    return None


def available_locations(project: Project) -> str:
    return ", ".join(f'"{loc.name}" (id: {loc.id})' for loc in project.locations)


def available_attires(project: Project) -> str:
    return ", ".join(f'"{a.name}" (id: {a.id})' for a in project.character_attires)
