"""Lock/exclude constraint parsing for optimization requests.

Clients send constraints in several shapes: a single name, a comma-separated
string, an array, or an object. All of them collapse to one canonical list of
trimmed names, deduplicated case-insensitively with the first spelling kept.
"""

import re
from dataclasses import dataclass, field
from typing import Any

_WHITESPACE = re.compile(r"\s+")

# Body keys accepted for each constraint, in priority order
LOCK_KEYS = ("locked_player", "locked_players", "lock", "lock_player")
EXCLUDE_KEYS = ("excluded_players", "exclude", "exclude_players")

# Object shapes that wrap the actual names
_WRAPPER_KEYS = ("name", "names", "players")


def normalize_name(value: Any) -> str:
    """Collapse internal whitespace and trim. Non-strings give an empty string."""
    if not isinstance(value, str):
        return ""
    return _WHITESPACE.sub(" ", value).strip()


def _flatten(value: Any) -> list[str]:
    if value is None or isinstance(value, bool):
        return []
    if isinstance(value, str):
        return value.split(",")
    if isinstance(value, (int, float)):
        return [str(value)]
    if isinstance(value, dict):
        for key in _WRAPPER_KEYS:
            if key in value:
                return _flatten(value[key])
        # {"LeBron James": true, "Steph Curry": false}
        return [str(name) for name, enabled in value.items() if enabled]
    if isinstance(value, (list, tuple, set)):
        names: list[str] = []
        for item in value:
            names.extend(_flatten(item))
        return names
    return [str(value)]


def normalize_names(value: Any) -> list[str]:
    """Normalise any accepted constraint shape into a canonical name list.

    Examples:
        >>> normalize_names("Steph Curry, LeBron James")
        ['Steph Curry', 'LeBron James']
        >>> normalize_names(["Steph Curry", "steph  curry", "LeBron James"])
        ['Steph Curry', 'LeBron James']
    """
    seen: set[str] = set()
    names: list[str] = []
    for raw in _flatten(value):
        name = normalize_name(raw)
        key = name.casefold()
        if not name or key in seen:
            continue
        seen.add(key)
        names.append(name)
    return names


def _first_present(body: dict[str, Any], keys: tuple[str, ...]) -> list[str]:
    for key in keys:
        names = normalize_names(body.get(key))
        if names:
            return names
    return []


@dataclass
class PlayerConstraints:
    """Canonical lock/exclude lists for one optimization request."""

    locked: list[str] = field(default_factory=list)
    excluded: list[str] = field(default_factory=list)

    @property
    def locked_player(self) -> str | None:
        return self.locked[0] if self.locked else None


def extract_constraints(body: dict[str, Any]) -> PlayerConstraints:
    """Read lock and exclude lists from a request body.

    A player that is both locked and excluded is kept as locked only.
    """
    locked = _first_present(body, LOCK_KEYS)
    locked_keys = {name.casefold() for name in locked}
    excluded = [
        name for name in _first_present(body, EXCLUDE_KEYS) if name.casefold() not in locked_keys
    ]
    return PlayerConstraints(locked=locked, excluded=excluded)
