# clip-combiner-backend/tests/test_stores.py

import pytest
from pydantic import ValidationError

from database import create_session_factory
from exceptions import StatusTransitionError
from stores import CombinationStore, SegmentStore


@pytest.fixture
def session_factory():
    return create_session_factory("sqlite://")


def test_segments_keep_upload_order_per_pool(session_factory):
    store = SegmentStore(session_factory)
    h1 = store.add("hook", "/u/h1.mp4", "/uploads/h1.mp4")
    s1 = store.add("story", "/u/s1.mp4", "/uploads/s1.mp4")
    h2 = store.add("hook", "/u/h2.mp4", "/uploads/h2.mp4", thumbnail_url="/thumbnails/h2.jpg")

    pools = store.by_pool()

    assert [s.id for s in pools["hook"]] == [h1.id, h2.id]
    assert [s.id for s in pools["story"]] == [s1.id]
    assert pools["cta"] == []
    assert store.get(h2.id).thumbnail_url == "/thumbnails/h2.jpg"
    assert [s.id for s in store.list()] == [h1.id, s1.id, h2.id]
    assert [s.id for s in store.list("story")] == [s1.id]


def test_segment_type_must_be_a_pool(session_factory):
    store = SegmentStore(session_factory)
    with pytest.raises(ValueError):
        store.add("intro", "/u/x.mp4", "/uploads/x.mp4")
    assert store.list() == []


def test_returned_records_are_read_only(session_factory):
    store = CombinationStore(session_factory)
    combination, = store.add_many([{"id": "c1", "hook": "h", "story": "s", "cta": "x"}])

    with pytest.raises(ValidationError):
        combination.status = "ready"
    assert store.get("c1").status == "processing"


def test_combinations_list_in_creation_order(session_factory):
    store = CombinationStore(session_factory)
    store.add_many([{"id": f"c{i}", "hook": "h", "story": "s", "cta": "x"} for i in range(3)])
    store.add_many([{"id": "c3", "hook": "h", "story": "s", "cta": "x"}])

    assert [c.id for c in store.list()] == ["c0", "c1", "c2", "c3"]
    assert store.count() == 4
    assert all(c.status == "processing" and c.download_url is None for c in store.list())


def test_status_changes_only_once(session_factory):
    store = CombinationStore(session_factory)
    store.add_many([
        {"id": "ok", "hook": "h", "story": "s", "cta": "x"},
        {"id": "bad", "hook": "h", "story": "s", "cta": "x"},
    ])

    ready = store.mark_ready("ok", "/combinations/ok.mp4")
    failed = store.mark_error("bad", "FFmpeg process failed with code 1")

    assert ready.status == "ready" and ready.download_url == "/combinations/ok.mp4"
    assert failed.status == "error" and failed.error == "FFmpeg process failed with code 1"

    with pytest.raises(StatusTransitionError):
        store.mark_error("ok", "late failure")
    with pytest.raises(StatusTransitionError):
        store.mark_ready("bad", "/combinations/bad.mp4")
    assert store.get("ok").status == "ready"
    assert store.get("bad").download_url is None


def test_unknown_combination(session_factory):
    store = CombinationStore(session_factory)
    assert store.get("missing") is None
    with pytest.raises(KeyError):
        store.mark_ready("missing", "/combinations/missing.mp4")
