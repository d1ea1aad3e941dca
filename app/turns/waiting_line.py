"""
Ordered, duplicate-free waiting line.

Positions are zero-based internally; callers that report positions to users add
one.  The head of the line is the identity whose turn is running (or about to
run): it stays in the line for the whole of its turn and is only popped when the
turn ends.
"""

from typing import Iterator

from app.turns.errors import NotInLine


class WaitingLine:
    def __init__(self) -> None:
        self._entries: list[str] = []

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, identity: object) -> bool:
        return identity in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._entries))

    @property
    def head(self) -> str | None:
        return self._entries[0] if self._entries else None

    def index(self, identity: str) -> int | None:
        """Return the zero-based index of *identity*, or None if absent."""
        try:
            return self._entries.index(identity)
        except ValueError:
            return None

    def append(self, identity: str) -> int:
        """
        Append *identity* at the tail and return its 1-based position.

        An identity that is already waiting is moved to the tail (it loses its
        place), so the line never holds duplicates.
        """
        if identity in self._entries:
            self._entries.remove(identity)
        self._entries.append(identity)
        return len(self._entries)

    def remove(self, identity: str) -> None:
        """Remove *identity* without reordering the rest of the line."""
        try:
            self._entries.remove(identity)
        except ValueError:
            raise NotInLine() from None

    def pop_head(self) -> str | None:
        if not self._entries:
            return None
        return self._entries.pop(0)

    def preview(self, limit: int) -> list[str]:
        return self._entries[: max(limit, 0)]

    def clear(self) -> list[str]:
        """Empty the line and return what it held."""
        previous, self._entries = self._entries, []
        return previous
