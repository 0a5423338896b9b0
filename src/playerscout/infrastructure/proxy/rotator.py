"""Cyclic outbound proxy selection."""

from __future__ import annotations

from collections.abc import Sequence


class ProxyRotator:
    """Round-robin cursor over a fixed proxy list.

    An empty list is valid and means "connect directly".

    Not guarded against concurrent ``advance()`` calls; interleaving only
    affects load distribution, never correctness.
    """

    def __init__(self, proxies: Sequence[str] = ()) -> None:
        self._proxies: tuple[str, ...] = tuple(p for p in proxies if p)
        self._cursor = 0

    @property
    def proxies(self) -> tuple[str, ...]:
        return self._proxies

    def __len__(self) -> int:
        return len(self._proxies)

    def current(self) -> str | None:
        """Return the active proxy, or ``None`` for a direct connection."""
        if not self._proxies:
            return None
        return self._proxies[self._cursor % len(self._proxies)]

    def advance(self) -> None:
        """Move to the next proxy after a failed attempt."""
        if self._proxies:
            self._cursor = (self._cursor + 1) % len(self._proxies)
