"""
Undo/redo history over graph snapshots.

The history works via snapshots:
- Each accepted mutation pushes the pre-mutation state onto `past`
- Undo moves the current state to `future` and restores the popped entry
- Redo is the mirror operation
- A gesture (e.g. a node drag spanning many pointer-move frames) is
  bracketed by begin/end calls and produces exactly one entry
"""

import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Optional

from .models import GraphSnapshot

logger = logging.getLogger(__name__)

DEFAULT_MAX_HISTORY = 50


@dataclass
class HistoryEntry:
    """A pre-mutation graph state plus what produced it."""
    snapshot: GraphSnapshot
    label: str = ""
    timestamp: float = field(default_factory=time.time)


class HistoryManager:
    """Bounded past/future stacks of graph snapshots with gesture coalescing."""

    def __init__(self, max_history: int = DEFAULT_MAX_HISTORY):
        if max_history < 1:
            raise ValueError("max_history must be at least 1")
        self._max_history = max_history
        # deque(maxlen) evicts the oldest entry on overflow
        self._past: deque[HistoryEntry] = deque(maxlen=max_history)
        self._future: deque[HistoryEntry] = deque(maxlen=max_history)
        self._gesture: Optional[HistoryEntry] = None

    @property
    def max_history(self) -> int:
        return self._max_history

    @property
    def can_undo(self) -> bool:
        return len(self._past) > 0

    @property
    def can_redo(self) -> bool:
        return len(self._future) > 0

    @property
    def in_gesture(self) -> bool:
        return self._gesture is not None

    @property
    def gesture_label(self) -> Optional[str]:
        return self._gesture.label if self._gesture else None

    def entries(self) -> list[HistoryEntry]:
        """Past entries, oldest first."""
        return list(self._past)

    def record(self, before: GraphSnapshot, label: str = "") -> None:
        """Save the pre-mutation state. A new action invalidates the redo stack."""
        self._future.clear()
        self._past.append(HistoryEntry(snapshot=before.clone(), label=label))

    def undo(self, current: GraphSnapshot) -> Optional[GraphSnapshot]:
        """Return the state to restore, or None at the bottom of the stack."""
        if not self._past:
            return None
        entry = self._past.pop()
        self._future.append(HistoryEntry(snapshot=current.clone(), label=entry.label))
        return entry.snapshot.clone()

    def redo(self, current: GraphSnapshot) -> Optional[GraphSnapshot]:
        """Return the state to restore, or None at the top of the stack."""
        if not self._future:
            return None
        entry = self._future.pop()
        self._past.append(HistoryEntry(snapshot=current.clone(), label=entry.label))
        return entry.snapshot.clone()

    # --- Gestures ---

    def begin_gesture(self, before: GraphSnapshot, label: str = "gesture") -> bool:
        """
        Open a gesture. Returns False (and keeps the outer gesture) if one is
        already open.
        """
        if self._gesture is not None:
            logger.debug("Gesture '%s' already open, ignoring '%s'", self._gesture.label, label)
            return False
        self._gesture = HistoryEntry(snapshot=before.clone(), label=label)
        return True

    def end_gesture(self, after: GraphSnapshot) -> bool:
        """
        Close the open gesture, recording one entry if the graph changed.

        Returns True when an entry was recorded.
        """
        entry = self._gesture
        self._gesture = None
        if entry is None:
            return False
        if entry.snapshot.same_graph(after):
            return False
        self._future.clear()
        self._past.append(entry)
        return True

    def cancel_gesture(self) -> Optional[GraphSnapshot]:
        """Abort the open gesture without recording. Returns the pre-gesture state."""
        entry = self._gesture
        self._gesture = None
        if entry is None:
            return None
        return entry.snapshot.clone()

    def clear(self) -> None:
        self._past.clear()
        self._future.clear()
        self._gesture = None
