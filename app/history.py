"""Undo/redo over full annotation-store snapshots."""
from typing import List, Optional

from annotation_store import Snapshot

import data_store


class HistoryManager:
    """A list of snapshots plus a cursor.

    The initial state is a single empty snapshot at cursor 0, so ``undo()`` is
    a no-op at the start of a session.  Committing after an undo discards the
    redo branch.
    """

    def __init__(self, initial: Snapshot = ()):
        self._entries: List[Snapshot] = [tuple(initial)]
        self._cursor = 0

    def reset(self, initial: Snapshot = ()) -> None:
        self._entries = [tuple(initial)]
        self._cursor = 0

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def current(self) -> Snapshot:
        return self._entries[self._cursor]

    @property
    def can_undo(self) -> bool:
        return self._cursor > 0

    @property
    def can_redo(self) -> bool:
        return self._cursor < len(self._entries) - 1

    def __len__(self) -> int:
        return len(self._entries)

    def commit(self, snapshot: Snapshot) -> None:
        del self._entries[self._cursor + 1:]
        self._entries.append(tuple(snapshot))
        self._cursor = len(self._entries) - 1
        data_store.dbg(f"History commit: {len(snapshot)} annotation(s), "
                       f"entry {self._cursor + 1}/{len(self._entries)}")

    def undo(self) -> Optional[Snapshot]:
        """Step back; return the snapshot to publish, or *None* at the start."""
        if not self.can_undo:
            return None
        self._cursor -= 1
        return self._entries[self._cursor]

    def redo(self) -> Optional[Snapshot]:
        """Step forward; return the snapshot to publish, or *None* at the tail."""
        if not self.can_redo:
            return None
        self._cursor += 1
        return self._entries[self._cursor]
