"""Export: send the original PDF and the annotation set to the export service.

The service applies the annotations and answers with the edited PDF.  The
wire format is a multipart form with three fields:

* ``file``        - the original PDF bytes
* ``annotations`` - JSON list of annotation objects (camelCase keys,
  1-based ``page``, image payloads as ``data:`` URLs, absent fields omitted)
* ``pages``       - the document's page count
"""
import base64
import json
import logging
import os
from typing import Iterable, List

import requests

from models import Annotation

import data_store

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 120.0


class ExportError(Exception):
    """The export request failed (network error or non-2xx response)."""

    def __init__(self, message: str, status: int = 0):
        super().__init__(message)
        self.status = status


# ── Serialization ─────────────────────────────────────────────────────────────

def annotation_to_dict(ann: Annotation) -> dict:
    """Serialize one annotation to the export service's JSON shape."""
    d = {
        "id": ann.id,
        "type": ann.type,
        "page": ann.page + 1,
        "x": ann.x,
        "y": ann.y,
    }
    optional = [
        ("width", ann.width),
        ("height", ann.height),
        ("text", ann.text),
        ("color", ann.color),
        ("fontSize", ann.font_size),
        ("fontFamily", ann.font_family),
        ("originalWidth", ann.original_width),
        ("originalHeight", ann.original_height),
    ]
    for key, value in optional:
        if value is not None:
            d[key] = value
    if ann.is_replacement:
        d["isReplacement"] = True
    if ann.points:
        d["points"] = [{"x": x, "y": y} for x, y in ann.points]
    if ann.image_data:
        mime = ann.image_mime or "image/png"
        encoded = base64.b64encode(ann.image_data).decode("ascii")
        d["imageData"] = f"data:{mime};base64,{encoded}"
    return d


def serialize_annotations(annotations: Iterable[Annotation]) -> str:
    return json.dumps([annotation_to_dict(a) for a in annotations])


def edited_filename(name: str) -> str:
    """Name the service's result after the original file."""
    return f"edited_{os.path.basename(name) or 'document.pdf'}"


# ── HTTP client ───────────────────────────────────────────────────────────────

class ExportClient:
    def __init__(self, url: str, timeout: float = DEFAULT_TIMEOUT):
        self.url = url
        self.timeout = timeout

    def export(self, pdf_bytes: bytes, filename: str,
               annotations: List[Annotation], page_count: int) -> bytes:
        """POST the document and its annotations; return the edited PDF bytes.

        Raises :class:`ExportError` on network failures and error statuses.
        The annotation set is never modified, so a failed export can simply
        be retried.
        """
        files = {"file": (filename, pdf_bytes, "application/pdf")}
        data = {
            "annotations": serialize_annotations(annotations),
            "pages": str(page_count),
        }
        data_store.dbg(f"Exporting {len(annotations)} annotation(s) to {self.url}")
        try:
            response = requests.post(self.url, files=files, data=data,
                                     timeout=self.timeout)
        except requests.RequestException as exc:
            logger.error("Export request failed: %s", exc)
            raise ExportError(f"Network error: {exc}") from exc
        if not response.ok:
            logger.error("Export service answered %s: %s",
                         response.status_code, response.text[:500])
            raise ExportError(f"Server error: {response.status_code}",
                              status=response.status_code)
        return response.content
