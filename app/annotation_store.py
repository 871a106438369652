"""The document-wide annotation sequence.

The store holds an immutable tuple of :class:`Annotation` objects.  Creation
order is paint order and hit-test priority (topmost last).  Every mutation
replaces the tuple, so :meth:`snapshot` is just the current tuple and can be
handed to the history manager as is.
"""
import dataclasses
from typing import Iterable, List, Optional, Tuple

from models import ANN_DRAW, SIZED_TYPES, Annotation

Snapshot = Tuple[Annotation, ...]


def _validate(ann: Annotation) -> None:
    if ann.type in SIZED_TYPES:
        if not ann.width or not ann.height or ann.width <= 0 or ann.height <= 0:
            raise ValueError(
                f"{ann.type} annotation {ann.id!r} needs a positive width and height"
            )
    elif ann.type == ANN_DRAW:
        if not ann.points or len(ann.points) < 2:
            raise ValueError(f"stroke {ann.id!r} needs at least two points")


class AnnotationStore:
    def __init__(self, annotations: Iterable[Annotation] = ()):
        self._items: Snapshot = tuple(annotations)
        self._version = 0

    # ── Queries ───────────────────────────────────────────────────────────────

    @property
    def version(self) -> int:
        """Monotonic counter bumped by every mutation."""
        return self._version

    def all(self) -> Snapshot:
        return self._items

    def list(self, page: int) -> List[Annotation]:
        """Annotations on *page*, in creation order."""
        return [a for a in self._items if a.page == page]

    def get(self, ann_id: str) -> Optional[Annotation]:
        for ann in self._items:
            if ann.id == ann_id:
                return ann
        return None

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, ann_id: str) -> bool:
        return self.get(ann_id) is not None

    # ── Mutations ─────────────────────────────────────────────────────────────

    def add(self, ann: Annotation) -> Annotation:
        if ann.id in self:
            raise ValueError(f"duplicate annotation id {ann.id!r}")
        _validate(ann)
        self._set(self._items + (ann,))
        return ann

    def update(self, ann_id: str, **fields) -> Annotation:
        """Replace fields of annotation *ann_id*; its position in the sequence is kept."""
        items = list(self._items)
        for i, ann in enumerate(items):
            if ann.id == ann_id:
                new = dataclasses.replace(ann, **fields)
                _validate(new)
                items[i] = new
                self._set(tuple(items))
                return new
        raise KeyError(ann_id)

    def remove(self, ann_id: str) -> Annotation:
        ann = self.get(ann_id)
        if ann is None:
            raise KeyError(ann_id)
        self._set(tuple(a for a in self._items if a.id != ann_id))
        return ann

    def clear(self, page: Optional[int] = None) -> int:
        """Remove every annotation (or only those on *page*); return how many went."""
        if page is None:
            kept: Snapshot = ()
        else:
            kept = tuple(a for a in self._items if a.page != page)
        removed = len(self._items) - len(kept)
        if removed:
            self._set(kept)
        return removed

    # ── Snapshots ─────────────────────────────────────────────────────────────

    def snapshot(self) -> Snapshot:
        return self._items

    def restore(self, snapshot: Snapshot) -> None:
        self._set(tuple(snapshot))

    def _set(self, items: Snapshot) -> None:
        self._items = items
        self._version += 1
