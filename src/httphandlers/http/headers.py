"""
=============================================================================
RESPONSE HEADERS
=============================================================================

A mutable, case-insensitive, multi-valued header map used by every
response sink in the package.

=============================================================================
WHY NOT A PLAIN DICT?
=============================================================================

Header names are case-insensitive (RFC 7230 §3.2), and some headers
legitimately repeat (Set-Cookie, Vary, Link). Middleware layers written by
different people will spell the same header differently:

    layer A:  headers["content-type"] = ...
    layer B:  headers.set("Content-Type", ...)

Both must land on the same entry. Internally every entry is keyed by the
lowercased name and remembers the canonical spelling used on the wire:

    _entries = {
        "content-type": ("Content-Type", ["application/json"]),
        "vary":         ("Vary",         ["Accept-Encoding", "Origin"]),
    }

=============================================================================
"""

from collections.abc import Iterator, MutableMapping
from typing import Dict, List, Tuple


def canonical_name(name: str) -> str:
    """
    Canonical wire spelling of a header name.

        "x-request-id"      -> "X-Request-Id"
        "CONTENT-ENCODING"  -> "Content-Encoding"
    """
    return "-".join(part.capitalize() for part in name.split("-"))


_LINE_BREAKS = str.maketrans({"\r": " ", "\n": " "})


def field_value(value) -> str:
    """
    Header value safe to put on the wire.

    CR and LF become spaces, so a value can never end its own line and
    start another header (response splitting).
    """
    return str(value).translate(_LINE_BREAKS)


class Headers(MutableMapping):
    """
    Case-insensitive header map.

    ``headers[name]`` returns the first value; ``get_list`` returns all.
    Assignment replaces every existing value, ``add`` appends one.
    """

    __slots__ = ("_entries",)

    def __init__(self, initial=None):
        self._entries: Dict[str, Tuple[str, List[str]]] = {}
        if initial:
            items = initial.items() if hasattr(initial, "items") else initial
            for name, value in items:
                self.add(name, value)

    def __getitem__(self, name: str) -> str:
        return self._entries[name.lower()][1][0]

    def __setitem__(self, name: str, value: str) -> None:
        self.set(name, value)

    def __delitem__(self, name: str) -> None:
        del self._entries[name.lower()]

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._entries

    def __iter__(self) -> Iterator[str]:
        for display, _ in self._entries.values():
            yield display

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"Headers({self.items_all()!r})"

    def set(self, name: str, value: str) -> None:
        """Replace all values of ``name`` with ``value``."""
        self._entries[name.lower()] = (canonical_name(name), [field_value(value)])

    def add(self, name: str, value: str) -> None:
        """Append ``value`` to ``name``, keeping existing values."""
        key = name.lower()
        if key in self._entries:
            self._entries[key][1].append(field_value(value))
        else:
            self._entries[key] = (canonical_name(name), [field_value(value)])

    def delete(self, name: str) -> None:
        """Remove ``name`` if present."""
        self._entries.pop(name.lower(), None)

    def get_list(self, name: str) -> List[str]:
        """All values of ``name`` in insertion order (empty if absent)."""
        entry = self._entries.get(name.lower())
        return list(entry[1]) if entry else []

    def items_all(self) -> List[Tuple[str, str]]:
        """Every (name, value) pair, one per value, in insertion order."""
        return [
            (display, value)
            for display, values in self._entries.values()
            for value in values
        ]

    def copy(self) -> "Headers":
        return Headers(self.items_all())

    def to_bytes(self) -> bytes:
        """Serialize as ``Name: value\\r\\n`` lines (no trailing blank line)."""
        return "".join(
            f"{name}: {value}\r\n" for name, value in self.items_all()
        ).encode("utf-8")
