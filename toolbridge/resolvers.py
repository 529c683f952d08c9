"""
Ordered field resolution over loosely-typed provider JSON.

Provider payloads put the same fact under different keys depending on the
instrument, the endpoint version, or which optional blocks were returned. A
Resolver names one canonical field and lists the paths it may live under, in
priority order:

    PRICE = Resolver("price", "extracted_price", "price", "market.extracted_price")
    PRICE.resolve(record)   # first usable value, or None

Paths are dotted keys; integer segments index into lists
("best_flights.0.price"). A value is usable unless it is None, an empty
string, or an empty container. Resolvers never raise on missing or
wrongly-typed intermediate nodes.
"""

from dataclasses import dataclass
from typing import Any, Callable

Path = tuple[str | int, ...]


def parse_path(dotted: str) -> Path:
    return tuple(int(part) if part.isdigit() else part for part in dotted.split("."))


def dig(data: Any, path: Path) -> Any:
    """Walk `path` into nested dicts/lists, returning None on any miss."""
    node = data
    for key in path:
        if isinstance(key, int):
            if not isinstance(node, list) or not -len(node) <= key < len(node):
                return None
            node = node[key]
        else:
            if not isinstance(node, dict):
                return None
            node = node.get(key)
        if node is None:
            return None
    return node


def is_usable(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, dict, tuple)):
        return bool(value)
    return True


@dataclass(frozen=True)
class Resolver:
    """
    A named, ordered list of extraction rules for one canonical field.

    Attributes:
        name: Canonical field name (used in tests and debug logging)
        paths: Candidate paths, highest priority first
        accept: Predicate deciding whether a found value is usable
    """

    name: str
    paths: tuple[Path, ...]
    accept: Callable[[Any], bool] = is_usable

    def __init__(self, name: str, *paths: str, accept: Callable[[Any], bool] = is_usable):
        object.__setattr__(self, "name", name)
        object.__setattr__(self, "paths", tuple(parse_path(p) for p in paths))
        object.__setattr__(self, "accept", accept)

    def match(self, record: Any) -> tuple[Path | None, Any]:
        """Return (path that matched, value), or (None, None)."""
        for path in self.paths:
            value = dig(record, path)
            if self.accept(value):
                return path, value
        return None, None

    def resolve(self, record: Any, default: Any = None) -> Any:
        _, value = self.match(record)
        return default if value is None else value


def first_record(*candidates: Any) -> dict | None:
    """
    Pick the primary record among candidates in priority order.

    A candidate is either a dict or a list whose first element is a dict
    (a same-purpose array standing in for the primary record).
    """
    for candidate in candidates:
        if isinstance(candidate, list):
            candidate = candidate[0] if candidate else None
        if isinstance(candidate, dict) and candidate:
            return candidate
    return None


def as_list(value: Any) -> list:
    """
    Coerce a list-ish provider field into a list of records.

    Accepts a list, a dict carrying a "results" list, or a single record.
    """
    if isinstance(value, list):
        return value
    if isinstance(value, dict):
        results = value.get("results")
        if isinstance(results, list):
            return results
        return [value] if value else []
    return []


def text(value: Any) -> str | None:
    """Stringify scalars; None and blank strings become None."""
    if value is None or isinstance(value, (dict, list)):
        return None
    value = str(value).strip()
    return value or None
