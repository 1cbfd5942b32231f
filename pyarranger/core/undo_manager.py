from collections import deque
from typing import Generic, Optional, TypeVar

from pyarranger.utils.logger import logger

S = TypeVar('S')


class UndoAction(Generic[S]):
    __slots__ = ('description', 'snapshot')

    def __init__(self, description: str, snapshot: S):
        self.description = description
        self.snapshot = snapshot


class UndoManager(Generic[S]):
    """
    Bounded history of full state snapshots.
    Snapshots must be immutable values; the oldest is evicted past max_depth.
    """
    def __init__(self, max_depth: int = 20):
        self.max_depth = max_depth
        self.undo_stack: deque[UndoAction[S]] = deque(maxlen=max_depth)
        self.redo_stack: list[UndoAction[S]] = []

    def push(self, description: str, snapshot: S) -> None:
        """Record the state as it was before an edit."""
        self.undo_stack.append(UndoAction(description, snapshot))
        self.redo_stack.clear()
        logger.debug(f"Undo snapshot pushed: {description}")

    def undo(self, current: S) -> Optional[S]:
        """Return the snapshot to restore, remembering `current` for redo."""
        if not self.undo_stack:
            logger.debug("Nothing to undo")
            return None

        action = self.undo_stack.pop()
        self.redo_stack.append(UndoAction(action.description, current))
        logger.info(f"Undo: {action.description}")
        return action.snapshot

    def redo(self, current: S) -> Optional[S]:
        if not self.redo_stack:
            logger.debug("Nothing to redo")
            return None

        action = self.redo_stack.pop()
        self.undo_stack.append(UndoAction(action.description, current))
        logger.info(f"Redo: {action.description}")
        return action.snapshot

    @property
    def can_undo(self) -> bool:
        return bool(self.undo_stack)

    @property
    def can_redo(self) -> bool:
        return bool(self.redo_stack)

    @property
    def undo_description(self) -> Optional[str]:
        return self.undo_stack[-1].description if self.undo_stack else None

    @property
    def redo_description(self) -> Optional[str]:
        return self.redo_stack[-1].description if self.redo_stack else None

    def __len__(self) -> int:
        return len(self.undo_stack)

    def clear(self):
        self.undo_stack.clear()
        self.redo_stack.clear()
        logger.debug("Undo/Redo stacks cleared")
