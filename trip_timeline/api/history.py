# trip_timeline/api/history.py
"""Undo/redo history of reversible timeline edits."""

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Tuple

logger = logging.getLogger(__name__)

Effect = Callable[[], Awaitable[None]]


@dataclass(frozen=True)
class UndoAction:
    """A reversible edit, built by whoever performed it.

    ``redo`` re-applies the edit and ``undo`` reverses it. Both are
    coroutine functions and must be safe to replay in stack order.
    """

    description: str
    undo: Effect
    redo: Effect


class UndoRedoStack:
    """Two lists of actions: ``past`` (applied) and ``future`` (undone).

    The stack itself knows nothing about entries. Moving an action between
    the lists happens before the effect is awaited, so back-to-back calls
    always see a consistent stack even while earlier effects are in flight.
    """

    def __init__(self, on_after_action: Optional[Effect] = None):
        self._past: List[UndoAction] = []
        self._future: List[UndoAction] = []
        self.on_after_action = on_after_action

    @property
    def past(self) -> Tuple[UndoAction, ...]:
        return tuple(self._past)

    @property
    def future(self) -> Tuple[UndoAction, ...]:
        return tuple(self._future)

    @property
    def can_undo(self) -> bool:
        return bool(self._past)

    @property
    def can_redo(self) -> bool:
        return bool(self._future)

    def push(self, action: UndoAction) -> None:
        """Record a freshly applied action; any undone future is discarded."""
        self._past.append(action)
        self._future.clear()
        logger.debug(f"Recorded action: {action.description}")

    def clear(self) -> None:
        self._past.clear()
        self._future.clear()

    async def undo(self) -> Optional[UndoAction]:
        if not self._past:
            return None
        action = self._past.pop()
        self._future.append(action)
        await action.undo()
        await self._after(action)
        logger.info(f"Undone: {action.description}")
        return action

    async def redo(self) -> Optional[UndoAction]:
        if not self._future:
            return None
        action = self._future.pop()
        self._past.append(action)
        await action.redo()
        await self._after(action)
        logger.info(f"Redone: {action.description}")
        return action

    async def _after(self, action: UndoAction) -> None:
        if self.on_after_action is None:
            return
        try:
            await self.on_after_action()
        except Exception as e:
            logger.error(f"Re-sync after '{action.description}' failed: {e}")


__all__ = ["UndoAction", "UndoRedoStack"]
