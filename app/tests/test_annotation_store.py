import pytest

from annotation_store import AnnotationStore
from models import Annotation


def _rect(ann_id, page=0, x=0.0, y=0.0, w=10.0, h=10.0):
    return Annotation(id=ann_id, page=page, type="rectangle", x=x, y=y, width=w, height=h)


def test_list_is_per_page_in_creation_order():
    store = AnnotationStore()
    store.add(_rect("a"))
    store.add(_rect("b", page=1))
    store.add(_rect("c"))
    assert [a.id for a in store.list(0)] == ["a", "c"]
    assert [a.id for a in store.list(1)] == ["b"]
    assert len(store) == 3


def test_add_rejects_duplicate_id():
    store = AnnotationStore()
    store.add(_rect("a"))
    with pytest.raises(ValueError):
        store.add(_rect("a"))


@pytest.mark.parametrize("w,h", [(0.0, 10.0), (10.0, 0.0), (-5.0, 10.0), (None, 10.0)])
def test_add_rejects_non_positive_size(w, h):
    with pytest.raises(ValueError):
        AnnotationStore().add(_rect("a", w=w, h=h))


def test_stroke_needs_two_points():
    store = AnnotationStore()
    with pytest.raises(ValueError):
        store.add(Annotation(id="s", page=0, type="draw", x=0, y=0, points=((0, 0),)))
    store.add(Annotation(id="s", page=0, type="draw", x=0, y=0, points=((0, 0), (1, 1))))
    assert "s" in store


def test_text_needs_no_size():
    store = AnnotationStore()
    store.add(Annotation(id="t", page=0, type="text", x=5, y=5, text="hi"))
    assert store.get("t").text == "hi"


def test_update_keeps_position_in_sequence():
    store = AnnotationStore([_rect("a"), _rect("b"), _rect("c")])
    store.update("b", x=42.0)
    assert [a.id for a in store.all()] == ["a", "b", "c"]
    assert store.get("b").x == 42.0


def test_update_rejects_invalid_geometry():
    store = AnnotationStore([_rect("a")])
    with pytest.raises(ValueError):
        store.update("a", width=0.0)
    assert store.get("a").width == 10.0


def test_unknown_ids_raise_key_error():
    store = AnnotationStore()
    with pytest.raises(KeyError):
        store.update("ghost", x=1.0)
    with pytest.raises(KeyError):
        store.remove("ghost")
    assert store.get("ghost") is None


def test_remove():
    store = AnnotationStore([_rect("a"), _rect("b")])
    removed = store.remove("a")
    assert removed.id == "a"
    assert [a.id for a in store.all()] == ["b"]


def test_clear_page_and_all():
    store = AnnotationStore([_rect("a"), _rect("b", page=1), _rect("c")])
    assert store.clear(0) == 2
    assert [a.id for a in store.all()] == ["b"]
    assert store.clear(5) == 0
    assert store.clear() == 1
    assert len(store) == 0


def test_version_bumps_on_every_mutation():
    store = AnnotationStore()
    v0 = store.version
    store.add(_rect("a"))
    store.update("a", x=1.0)
    store.remove("a")
    assert store.version == v0 + 3
    store.clear()   # nothing removed
    assert store.version == v0 + 3


def test_snapshot_is_unaffected_by_later_edits():
    store = AnnotationStore([_rect("a")])
    snap = store.snapshot()
    store.update("a", x=99.0)
    store.add(_rect("b"))
    assert snap[0].x == 0.0
    assert len(snap) == 1
    store.restore(snap)
    assert [a.id for a in store.all()] == ["a"]
    assert store.get("a").x == 0.0
