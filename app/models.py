"""Data models for the PDF markup editor."""
from dataclasses import dataclass, field
from typing import Optional, Tuple

# Annotation type tags.  The tag doubles as the id of the tool that creates it.
ANN_TEXT      = "text"
ANN_RECTANGLE = "rectangle"
ANN_CIRCLE    = "circle"
ANN_HIGHLIGHT = "highlight"
ANN_DRAW      = "draw"       # freehand stroke
ANN_IMAGE     = "image"
ANN_SIGNATURE = "signature"

ANNOTATION_TYPES = (
    ANN_TEXT, ANN_RECTANGLE, ANN_CIRCLE, ANN_HIGHLIGHT,
    ANN_DRAW, ANN_IMAGE, ANN_SIGNATURE,
)

# Variants whose geometry is a width/height box anchored at (x, y)
SIZED_TYPES = frozenset({ANN_RECTANGLE, ANN_CIRCLE, ANN_HIGHLIGHT, ANN_IMAGE, ANN_SIGNATURE})
SHAPE_TYPES = frozenset({ANN_RECTANGLE, ANN_CIRCLE, ANN_HIGHLIGHT})
RASTER_TYPES = frozenset({ANN_IMAGE, ANN_SIGNATURE})

DEFAULT_FONT_SIZE = 12.0
DEFAULT_FONT_FAMILY = "Arial"

Point = Tuple[float, float]


@dataclass(frozen=True)
class Annotation:
    id: str
    page: int        # 0-based page index
    type: str        # one of ANNOTATION_TYPES
    x: float         # page-space units
    y: float         # page-space units; baseline for "text"
    width: Optional[float] = None
    height: Optional[float] = None
    color: Optional[str] = None
    # text
    text: Optional[str] = None
    font_size: Optional[float] = None     # page-space points
    font_family: Optional[str] = None
    is_replacement: bool = False
    original_width: Optional[float] = None   # replaced run, page-space
    original_height: Optional[float] = None
    # freehand stroke
    points: Optional[Tuple[Point, ...]] = None
    # image / signature
    image_data: Optional[bytes] = field(default=None, repr=False)
    image_mime: Optional[str] = None

    def effective_font_size(self) -> float:
        return self.font_size or DEFAULT_FONT_SIZE

    def effective_font_family(self) -> str:
        return self.font_family or DEFAULT_FONT_FAMILY

    def geometry(self) -> tuple:
        """Return the fields a drag or resize can change."""
        return (self.x, self.y, self.width, self.height)


@dataclass(frozen=True)
class ExtractedTextItem:
    """A native text run of the source page, mapped to page-space."""
    text: str
    x: float          # baseline x
    y: float          # baseline y
    width: float
    height: float
    font_size: float


@dataclass(frozen=True)
class NativeTextRun:
    """A text run as reported by the document, in native PDF coordinates.

    *transform* is the usual ``(a, b, c, d, e, f)`` text matrix with the
    origin at the bottom-left of the page.
    """
    text: str
    transform: Tuple[float, ...]
    width: float = 0.0


@dataclass
class EditorSettings:
    export_url: str = "http://localhost:8080/api/pdfbox/apply-annotations"
    export_timeout: float = 120.0   # seconds
    default_scale: float = 1.5
    text_color: str = "#000000"
    draw_color: str = "#000000"
    default_font_size: float = DEFAULT_FONT_SIZE
    hi_dpr: bool = True             # use high DPI rendering (Retina); disable for speed
    debug_mode: bool = False        # emit debug traces through data_store.dbg
    last_directory: str = ""


def fit_within(width: float, height: float, max_w: float, max_h: float) -> Tuple[float, float]:
    """Shrink *(width, height)* proportionally so it fits in *max_w* × *max_h*.

    Sizes that already fit are returned unchanged (never enlarged).
    """
    if width > max_w:
        height = height * max_w / width
        width = max_w
    if height > max_h:
        width = width * max_h / height
        height = max_h
    return width, height
