"""Snapshot-based undo/redo history for a layer's drawings."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from PyQt6.QtCore import QObject, pyqtSignal

from .models import Drawing

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Snapshot:
    """The full drawings collection as it was before one edit."""

    drawings: Tuple[Drawing, ...]
    description: str = ""


class DrawingHistory(QObject):
    """
    Undo/redo stacks of drawings snapshots for one layer.

    Drawings are frozen, so a snapshot is just a tuple of them and restoring
    one gives back a collection equal by value to the captured state.
    Emits ``state_changed`` whenever undo/redo availability may change.
    """

    state_changed = pyqtSignal()

    def __init__(self, max_history: int = 100) -> None:
        """
        Initialize the history.

        Args:
            max_history: Maximum number of snapshots kept on the undo stack
        """
        super().__init__()
        self._undo_stack: List[Snapshot] = []
        self._redo_stack: List[Snapshot] = []
        self._max_history = max_history

    def push(self, drawings: Sequence[Drawing], description: str = "") -> None:
        """
        Record the drawings as they were before an edit.

        Clears the redo stack and trims the oldest entries past the limit.

        Args:
            drawings: Pre-edit drawings collection
            description: Human-readable name of the edit
        """
        self._undo_stack.append(Snapshot(tuple(drawings), description))
        self._redo_stack.clear()

        while len(self._undo_stack) > self._max_history:
            self._undo_stack.pop(0)

        logger.debug(f"Pushed history: {description or 'edit'} ({len(self._undo_stack)} entries)")
        self.state_changed.emit()

    def undo(self, current: Sequence[Drawing]) -> Optional[List[Drawing]]:
        """
        Step back one edit.

        Args:
            current: Drawings as they are now, kept for redo

        Returns:
            The restored drawings, or None if there is nothing to undo
        """
        if not self._undo_stack:
            return None

        snapshot = self._undo_stack.pop()
        self._redo_stack.append(Snapshot(tuple(current), snapshot.description))

        logger.debug(f"Undone: {snapshot.description or 'edit'}")
        self.state_changed.emit()
        return list(snapshot.drawings)

    def redo(self, current: Sequence[Drawing]) -> Optional[List[Drawing]]:
        """
        Re-apply the last undone edit.

        Args:
            current: Drawings as they are now, kept for undo

        Returns:
            The restored drawings, or None if there is nothing to redo
        """
        if not self._redo_stack:
            return None

        snapshot = self._redo_stack.pop()
        self._undo_stack.append(Snapshot(tuple(current), snapshot.description))

        logger.debug(f"Redone: {snapshot.description or 'edit'}")
        self.state_changed.emit()
        return list(snapshot.drawings)

    def can_undo(self) -> bool:
        """Check if undo is available."""
        return len(self._undo_stack) > 0

    def can_redo(self) -> bool:
        """Check if redo is available."""
        return len(self._redo_stack) > 0

    def undo_description(self) -> str:
        """Get description of the edit that would be undone."""
        if self._undo_stack:
            return self._undo_stack[-1].description
        return ""

    def redo_description(self) -> str:
        """Get description of the edit that would be redone."""
        if self._redo_stack:
            return self._redo_stack[-1].description
        return ""

    def clear(self) -> None:
        """Drop all undo/redo history."""
        self._undo_stack.clear()
        self._redo_stack.clear()
        self.state_changed.emit()

    @property
    def undo_count(self) -> int:
        """Get the number of edits that can be undone."""
        return len(self._undo_stack)

    @property
    def redo_count(self) -> int:
        """Get the number of edits that can be redone."""
        return len(self._redo_stack)

    def set_max_history(self, max_history: int) -> None:
        """
        Set the maximum history size.

        Args:
            max_history: New maximum number of snapshots
        """
        self._max_history = max_history
        while len(self._undo_stack) > self._max_history:
            self._undo_stack.pop(0)
        self.state_changed.emit()
