"""Explicit registry of tracked documents, owned by the host wiring."""

from __future__ import annotations

from typing import Callable, Iterator

from .document_state import DocumentState
from .interfaces import DocumentIdentity

__all__ = ["DocumentRegistry"]


class DocumentRegistry:
    """Maps document URIs to their :class:`DocumentState`."""

    def __init__(self) -> None:
        self._states: dict[str, DocumentState] = {}

    def get(self, document_id: str) -> DocumentState | None:
        return self._states.get(document_id)

    def get_or_create(
        self,
        identity: DocumentIdentity,
        factory: Callable[[DocumentIdentity], DocumentState],
    ) -> DocumentState:
        state = self._states.get(identity.uri)
        if state is None:
            state = factory(identity)
            self._states[identity.uri] = state
        return state

    def remove(self, document_id: str) -> DocumentState | None:
        """Detach and dispose the state for ``document_id``, if tracked."""

        state = self._states.pop(document_id, None)
        if state is not None:
            state.dispose()
        return state

    def clear(self) -> list[DocumentState]:
        states = list(self._states.values())
        self._states.clear()
        for state in states:
            state.dispose()
        return states

    def __iter__(self) -> Iterator[DocumentState]:
        return iter(list(self._states.values()))

    def __len__(self) -> int:
        return len(self._states)

    def __contains__(self, document_id: object) -> bool:
        return document_id in self._states
