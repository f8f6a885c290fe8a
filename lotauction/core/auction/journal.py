"""
Undo Journal - Rollback of one mutating auction call.

A call records the previous value of everything it is about to change
(an attribute, a mapping entry, the length of an append-only list). If the
call fails, `rollback` replays those records newest first.

The cost of a journal is proportional to what the call touches, never to
the number of bidders.
"""

from typing import Any, Callable, List, MutableMapping

_MISSING = object()


class UndoJournal:
    """Undo log of one call."""

    def __init__(self):
        self._undo: List[Callable[[], None]] = []

    def remember_attrs(self, obj: Any, *names: str) -> None:
        """Record the current values of `obj`'s attributes."""
        saved = [(name, getattr(obj, name)) for name in names]

        def undo():
            for name, value in saved:
                setattr(obj, name, value)

        self._undo.append(undo)

    def remember_key(self, mapping: MutableMapping, key: Any) -> None:
        """Record a mapping entry, or that it did not exist."""
        old = mapping.get(key, _MISSING)

        def undo():
            if old is _MISSING:
                mapping.pop(key, None)
            else:
                mapping[key] = old

        self._undo.append(undo)

    def remember_length(self, items: list) -> None:
        """Record the length of a list that is only appended to."""
        length = len(items)

        def undo():
            del items[length:]

        self._undo.append(undo)

    def on_rollback(self, undo: Callable[[], None]) -> None:
        self._undo.append(undo)

    def rollback(self) -> None:
        while self._undo:
            self._undo.pop()()

    def __len__(self) -> int:
        return len(self._undo)
