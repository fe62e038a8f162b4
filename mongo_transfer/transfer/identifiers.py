"""
Identifier set
"""
from typing import Any, Dict, Iterable, Iterator, Mapping


def identifier_key(value: Any):
    """
    Hashable key for a decoded BSON identifier.

    Embedded documents compare field-order sensitively, as the server does.
    Booleans get their own tag so True never collides with 1.
    """
    if isinstance(value, bool):
        return ("bool", value)
    if isinstance(value, Mapping):
        return ("document", tuple((k, identifier_key(v)) for k, v in value.items()))
    if isinstance(value, (list, tuple)):
        return ("array", tuple(identifier_key(v) for v in value))
    try:
        hash(value)
    except TypeError:
        return ("unhashable", type(value).__name__, repr(value))
    return value


class IdentifierSet:
    """Mutable set of identifier values keyed by identifier_key()"""

    def __init__(self, identifiers: Iterable[Any] = ()):
        self._values: Dict[Any, Any] = {}
        for identifier in identifiers:
            self.add(identifier)

    def add(self, identifier: Any):
        self._values.setdefault(identifier_key(identifier), identifier)

    def discard(self, identifier: Any) -> bool:
        """Remove an identifier; returns False when it was not present"""
        return self._values.pop(identifier_key(identifier), _MISSING) is not _MISSING

    def __contains__(self, identifier: Any) -> bool:
        return identifier_key(identifier) in self._values

    def __len__(self) -> int:
        return len(self._values)

    def __bool__(self) -> bool:
        return bool(self._values)

    def __iter__(self) -> Iterator[Any]:
        return iter(list(self._values.values()))

    def __repr__(self):
        return f"IdentifierSet({list(self._values.values())!r})"


_MISSING = object()
