"""Tool state machine: turns pointer gestures into annotation-store edits.

The controller is Qt-free.  The viewer feeds it pointer positions in
render-surface pixels (``pointer_down`` / ``pointer_move`` / ``pointer_up`` /
``cancel_gesture``) and repaints whenever a listener callback fires.  Every
undoable edit commits one snapshot to the history manager; drag and resize
gestures commit once, on release.
"""
import uuid
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

import hit_test
import viewport
from annotation_store import AnnotationStore
from history import HistoryManager
from models import (
    ANN_DRAW, ANN_IMAGE, ANN_SIGNATURE, ANN_TEXT, DEFAULT_FONT_FAMILY,
    RASTER_TYPES, Annotation, EditorSettings, fit_within,
)

import data_store

TOOL_SELECT    = "select"
TOOL_TEXT      = "text"
TOOL_DRAW      = "draw"
TOOL_RECTANGLE = "rectangle"
TOOL_CIRCLE    = "circle"
TOOL_HIGHLIGHT = "highlight"
TOOL_IMAGE     = "image"
TOOL_SIGNATURE = "signature"
TOOL_ERASER    = "eraser"

TOOLS = (
    TOOL_SELECT, TOOL_TEXT, TOOL_DRAW, TOOL_RECTANGLE, TOOL_CIRCLE,
    TOOL_HIGHLIGHT, TOOL_IMAGE, TOOL_SIGNATURE, TOOL_ERASER,
)
SHAPE_TOOLS = frozenset({TOOL_RECTANGLE, TOOL_CIRCLE, TOOL_HIGHLIGHT})

# Types the select tool can grab; other shapes let clicks through to the page text
_SELECTABLE = frozenset({ANN_IMAGE, ANN_SIGNATURE, ANN_TEXT})

MIN_RESIZE_PX = 8              # smallest image/signature side while resizing
INSERT_POS_PX = (60.0, 60.0)   # where inserted images/signatures land
IMAGE_MAX_PX = (240.0, 160.0)
SIGNATURE_MAX_PX = (240.0, 80.0)

PointPx = Tuple[float, float]


@dataclass
class _Gesture:
    kind: str                     # 'shape' | 'stroke' | 'drag' | 'resize'
    start: PointPx
    current: PointPx
    points: List[PointPx] = field(default_factory=list)
    ann_id: Optional[str] = None
    handle: Optional[str] = None  # 'nw' | 'ne' | 'sw' | 'se' for resize
    offset: PointPx = (0.0, 0.0)  # pointer offset inside the dragged box
    orig: Optional[Annotation] = None


@dataclass(frozen=True)
class Preview:
    """In-progress gesture to paint on top of the committed annotations."""
    tool: str
    points: Tuple[PointPx, ...]   # pixels; (start, current) for shape tools
    color: str


@dataclass(frozen=True)
class FrameKey:
    """Everything a repaint depends on.  A new key means a new frame."""
    page: int
    scale: float
    store_version: int
    selected_id: Optional[str]
    editing_id: Optional[str]
    preview: Optional[Preview]


@dataclass
class _TextEdit:
    ann_id: str
    created: bool   # placeholder created for this edit, not yet in history


def _new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


class ToolController:
    def __init__(self, metrics, text_index=None,
                 settings: Optional[EditorSettings] = None):
        self.store = AnnotationStore()
        self.history = HistoryManager()
        self._metrics = metrics
        self._text_index = text_index
        self._settings = settings or EditorSettings()
        self._tool = TOOL_SELECT
        self._page = 0
        self._page_count = 0
        self._scale = viewport.clamp_scale(self._settings.default_scale)
        self._selected_id: Optional[str] = None
        self._edit: Optional[_TextEdit] = None
        self._gesture: Optional[_Gesture] = None
        self._listeners: List[Callable[[], None]] = []
        # Insertion flows opened by the image / signature tools
        self.on_request_image: Optional[Callable[[], None]] = None
        self.on_request_signature: Optional[Callable[[], None]] = None

    # ── Observers ─────────────────────────────────────────────────────────────

    def add_listener(self, callback: Callable[[], None]) -> None:
        self._listeners.append(callback)

    def _notify(self) -> None:
        for cb in list(self._listeners):
            cb()

    # ── State accessors ───────────────────────────────────────────────────────

    @property
    def tool(self) -> str:
        return self._tool

    @property
    def page(self) -> int:
        return self._page

    @property
    def page_count(self) -> int:
        return self._page_count

    @property
    def scale(self) -> float:
        return self._scale

    @property
    def selected_id(self) -> Optional[str]:
        return self._selected_id

    @property
    def editing_id(self) -> Optional[str]:
        return self._edit.ann_id if self._edit else None

    @property
    def gesture_active(self) -> bool:
        return self._gesture is not None

    @property
    def can_undo(self) -> bool:
        return self.history.can_undo

    @property
    def can_redo(self) -> bool:
        return self.history.can_redo

    def selected(self) -> Optional[Annotation]:
        return self.store.get(self._selected_id) if self._selected_id else None

    def editing_annotation(self) -> Optional[Annotation]:
        return self.store.get(self._edit.ann_id) if self._edit else None

    def preview(self) -> Optional[Preview]:
        g = self._gesture
        if g is None:
            return None
        if g.kind == "shape":
            return Preview(self._tool, (g.start, g.current), self._settings.draw_color)
        if g.kind == "stroke":
            return Preview(TOOL_DRAW, tuple(g.points), self._settings.draw_color)
        return None

    def frame_key(self) -> FrameKey:
        return FrameKey(
            page=self._page,
            scale=self._scale,
            store_version=self.store.version,
            selected_id=self._selected_id,
            editing_id=self.editing_id,
            preview=self.preview(),
        )

    # ── Session / navigation ──────────────────────────────────────────────────

    def apply_settings(self, settings: EditorSettings) -> None:
        self._settings = settings

    def load_document(self, page_count: int) -> None:
        """Start a fresh edit session for a document with *page_count* pages."""
        self._gesture = None
        self._edit = None
        self._selected_id = None
        self.store.restore(())
        self.history.reset()
        self._page_count = page_count
        self._page = 0
        self._tool = TOOL_SELECT
        self._notify()

    def set_tool(self, tool: str) -> None:
        if tool not in TOOLS:
            raise ValueError(f"unknown tool {tool!r}")
        self._reset_interaction()
        if tool != self._tool:
            data_store.dbg(f"Tool changed: {self._tool!r} → {tool!r}")
        self._tool = tool
        self._notify()

    def set_page(self, page: int) -> None:
        if self._page_count:
            page = max(0, min(self._page_count - 1, page))
        if page == self._page:
            return
        self._reset_interaction()
        self._page = page
        data_store.dbg(f"Navigating to page {page + 1}")
        self._notify()

    def next_page(self) -> None:
        self.set_page(self._page + 1)

    def prev_page(self) -> None:
        self.set_page(self._page - 1)

    def set_scale(self, scale: float) -> None:
        if scale <= 0:
            raise ValueError("scale must be positive")
        if scale == self._scale:
            return
        self._reset_interaction()
        self._scale = scale
        self._notify()

    def zoom_in(self) -> None:
        self.set_scale(viewport.zoom_in(self._scale))

    def zoom_out(self) -> None:
        self.set_scale(viewport.zoom_out(self._scale))

    def _reset_interaction(self) -> None:
        """Drop selection, pending text edit and any gesture in progress."""
        self._abort_gesture()
        self._settle_edit()
        self._selected_id = None

    # ── Pointer gestures ──────────────────────────────────────────────────────

    def pointer_down(self, point: PointPx) -> None:
        self._abort_gesture()
        self._settle_edit()
        if self._tool == TOOL_SELECT:
            self._select_press(point)
            self._notify()
            return

        self._selected_id = None
        if self._tool == TOOL_ERASER:
            hit = hit_test.pick(self.store.all(), point, self._page,
                                self._scale, self._metrics)
            if hit is not None:
                self.store.remove(hit.id)
                self._commit()
                data_store.dbg(f"Erased {hit.type} {hit.id}")
        elif self._tool == TOOL_IMAGE:
            if self.on_request_image:
                self.on_request_image()
        elif self._tool == TOOL_SIGNATURE:
            if self.on_request_signature:
                self.on_request_signature()
        elif self._tool == TOOL_DRAW:
            self._gesture = _Gesture("stroke", point, point, points=[point])
        elif self._tool == TOOL_TEXT:
            ux, uy = viewport.point_to_page(point, self._scale)
            ann = self.store.add(Annotation(
                id=_new_id("txt"), page=self._page, type=ANN_TEXT,
                x=ux, y=uy, text="", color=self._settings.text_color,
                font_size=self._settings.default_font_size,
                font_family=DEFAULT_FONT_FAMILY,
            ))
            self._selected_id = ann.id
            self._edit = _TextEdit(ann.id, created=True)
        elif self._tool in SHAPE_TOOLS:
            self._gesture = _Gesture("shape", point, point)
        self._notify()

    def _select_press(self, point: PointPx) -> None:
        sel = self.selected()
        if sel is not None and sel.page == self._page and sel.type in RASTER_TYPES:
            handle = hit_test.resize_handle_at(sel, point, self._scale)
            if handle:
                self._gesture = _Gesture("resize", point, point, ann_id=sel.id,
                                         handle=handle, orig=sel)
                return
            if hit_test.hits(sel, point, self._scale, self._metrics):
                self._start_drag(sel, point)
                return

        hit = hit_test.pick(self.store.all(), point, self._page, self._scale,
                            self._metrics, kinds=_SELECTABLE)
        if hit is not None and hit.type in RASTER_TYPES:
            self._selected_id = hit.id
            self._start_drag(hit, point)
            return
        if hit is not None:
            self._selected_id = hit.id
            self._edit = _TextEdit(hit.id, created=False)
            return

        if self._text_index is not None:
            item = hit_test.find_extracted_text_at(
                self._text_index.items(self._page, self._scale), point, self._scale
            )
            if item is not None:
                ann = self.store.add(Annotation(
                    id=_new_id("ex"), page=self._page, type=ANN_TEXT,
                    x=item.x, y=item.y, text=item.text, color="#000000",
                    font_size=item.font_size, font_family=DEFAULT_FONT_FAMILY,
                    is_replacement=True,
                    original_width=item.width, original_height=item.height,
                ))
                self._selected_id = ann.id
                self._edit = _TextEdit(ann.id, created=True)
                data_store.dbg(f"Replacing native text {item.text!r}")
                return
        self._selected_id = None

    def _start_drag(self, ann: Annotation, point: PointPx) -> None:
        ax, ay = viewport.point_to_pixels((ann.x, ann.y), self._scale)
        offset = (point[0] - ax, point[1] - ay)
        self._gesture = _Gesture("drag", point, point, ann_id=ann.id,
                                 offset=offset, orig=ann)

    def pointer_move(self, point: PointPx) -> None:
        g = self._gesture
        if g is None:
            return
        g.current = point
        if g.kind == "drag":
            nx, ny = viewport.point_to_page(
                (point[0] - g.offset[0], point[1] - g.offset[1]), self._scale)
            self.store.update(g.ann_id, x=nx, y=ny)
        elif g.kind == "resize":
            self._apply_resize(g, point)
        elif g.kind == "stroke":
            g.points.append(point)
        self._notify()

    def _apply_resize(self, g: _Gesture, point: PointPx) -> None:
        ann = self.store.get(g.ann_id)
        if ann is None or not ann.width or not ann.height:
            return
        ux, uy = viewport.point_to_page(point, self._scale)
        nx, ny, nw, nh = ann.x, ann.y, ann.width, ann.height
        if g.handle == "se":
            nw, nh = ux - ann.x, uy - ann.y
        elif g.handle == "sw":
            nx, nw, nh = ux, ann.x + ann.width - ux, uy - ann.y
        elif g.handle == "ne":
            ny, nw, nh = uy, ux - ann.x, ann.y + ann.height - uy
        elif g.handle == "nw":
            nx, ny = ux, uy
            nw, nh = ann.x + ann.width - ux, ann.y + ann.height - uy
        limit = viewport.to_page(MIN_RESIZE_PX, self._scale)
        if nw > limit and nh > limit:
            self.store.update(g.ann_id, x=nx, y=ny, width=nw, height=nh)

    def pointer_up(self, point: PointPx) -> None:
        g = self._gesture
        self._gesture = None
        if g is None:
            return
        if g.kind in ("drag", "resize"):
            ann = self.store.get(g.ann_id)
            if ann is not None and g.orig is not None and ann.geometry() != g.orig.geometry():
                self._commit()
        elif g.kind == "stroke":
            pts = tuple(viewport.point_to_page(p, self._scale) for p in g.points + [point])
            self.store.add(Annotation(
                id=_new_id("draw"), page=self._page, type=ANN_DRAW,
                x=pts[0][0], y=pts[0][1], points=pts,
                color=self._settings.draw_color,
            ))
            self._commit()
        elif g.kind == "shape":
            x, y, w, h = viewport.normalized_rect(g.start[0], g.start[1], point[0], point[1])
            if w > 0 and h > 0:
                x, y, w, h = viewport.rect_to_page(x, y, w, h, self._scale)
                self.store.add(Annotation(
                    id=_new_id(self._tool), page=self._page, type=self._tool,
                    x=x, y=y, width=w, height=h,
                    color=self._settings.draw_color,
                ))
                self._commit()
        self._notify()

    def cancel_gesture(self) -> None:
        """Abandon the gesture in progress without committing anything."""
        if self._gesture is None:
            return
        self._abort_gesture()
        self._notify()

    def _abort_gesture(self) -> None:
        g = self._gesture
        self._gesture = None
        if g is None or g.kind not in ("drag", "resize") or g.orig is None:
            return
        ann = self.store.get(g.ann_id)
        if ann is not None and ann.geometry() != g.orig.geometry():
            self.store.update(g.ann_id, x=g.orig.x, y=g.orig.y,
                              width=g.orig.width, height=g.orig.height)

    # ── Inline text editing ───────────────────────────────────────────────────

    def begin_text_edit(self, ann_id: str) -> None:
        ann = self.store.get(ann_id)
        if ann is None or ann.type != ANN_TEXT:
            raise ValueError(f"{ann_id!r} is not a text annotation")
        self._settle_edit()
        self._selected_id = ann_id
        self._edit = _TextEdit(ann_id, created=False)
        self._notify()

    def finish_text_edit(self, text: str) -> None:
        """Store *text* in the annotation being edited.  Blank text deletes it."""
        edit = self._edit
        self._edit = None
        if edit is None:
            return
        ann = self.store.get(edit.ann_id)
        if ann is not None:
            if not text.strip():
                self.store.remove(ann.id)
                if self._selected_id == ann.id:
                    self._selected_id = None
                if not edit.created:
                    self._commit()
            elif edit.created or text != ann.text:
                self.store.update(ann.id, text=text)
                self._commit()
        self._notify()

    def cancel_text_edit(self) -> None:
        edit = self._edit
        self._edit = None
        if edit is None:
            return
        if edit.created and edit.ann_id in self.store:
            self.store.remove(edit.ann_id)
            if self._selected_id == edit.ann_id:
                self._selected_id = None
        self._notify()

    def _settle_edit(self) -> None:
        """Close a pending edit, keeping whatever text the annotation holds."""
        edit = self._edit
        if edit is None:
            return
        ann = self.store.get(edit.ann_id)
        self._edit = None
        if ann is None:
            return
        if not (ann.text or "").strip():
            self.store.remove(ann.id)
            if not edit.created:
                self._commit()
        elif edit.created:
            self._commit()

    # ── Insertion flows ───────────────────────────────────────────────────────

    def insert_raster(self, kind: str, data: bytes, mime: str,
                      pixel_w: float, pixel_h: float) -> Annotation:
        """Place a decoded image or signature of *pixel_w* × *pixel_h* pixels."""
        if kind not in RASTER_TYPES:
            raise ValueError(f"{kind!r} is not an image annotation type")
        if pixel_w <= 0 or pixel_h <= 0:
            raise ValueError("image has no pixels")
        max_w, max_h = SIGNATURE_MAX_PX if kind == ANN_SIGNATURE else IMAGE_MAX_PX
        w, h = fit_within(pixel_w, pixel_h, max_w, max_h)
        x, y, w, h = viewport.rect_to_page(INSERT_POS_PX[0], INSERT_POS_PX[1], w, h,
                                           self._scale)
        self._reset_interaction()
        ann = self.store.add(Annotation(
            id=_new_id("sig" if kind == ANN_SIGNATURE else "img"),
            page=self._page, type=kind,
            x=x, y=y, width=w, height=h,
            image_data=data, image_mime=mime,
        ))
        self._commit()
        self._tool = TOOL_SELECT
        self._selected_id = ann.id
        self._notify()
        return ann

    # ── Store-wide edits ──────────────────────────────────────────────────────

    def delete_selected(self) -> bool:
        ann = self.selected()
        if ann is None:
            return False
        self._abort_gesture()
        self._edit = None
        self._selected_id = None
        self.store.remove(ann.id)
        self._commit()
        self._notify()
        return True

    def clear_page(self) -> int:
        return self._clear(self._page)

    def clear_all(self) -> int:
        return self._clear(None)

    def _clear(self, page: Optional[int]) -> int:
        self._reset_interaction()
        removed = self.store.clear(page)
        if removed:
            self._commit()
        self._notify()
        return removed

    def undo(self) -> bool:
        return self._step(self.history.undo)

    def redo(self) -> bool:
        return self._step(self.history.redo)

    def _step(self, move: Callable) -> bool:
        self._abort_gesture()
        self._settle_edit()
        snapshot = move()
        if snapshot is None:
            self._notify()
            return False
        self.store.restore(snapshot)
        if self._selected_id and self._selected_id not in self.store:
            self._selected_id = None
        self._notify()
        return True

    def _commit(self) -> None:
        self.history.commit(self.store.snapshot())
