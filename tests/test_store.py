from __future__ import annotations

import pytest


def _slides(count: int):
    return [
        {"slide_number": number, "content": f"Slide {number} text", "image_url": f"img-{number}"}
        for number in range(1, count + 1)
    ]


def test_create_and_find(store):
    lecture = store.create("owner-1", "  Graph Theory ", "english", tags=[" maths ", "", "graphs"])

    found = store.find_by_id(lecture.id)
    assert found.name == "Graph Theory"
    assert found.status == "uploading"
    assert found.processing_progress == 0
    assert found.tags == ["maths", "graphs"]
    assert found.slides == []
    assert store.find_by_id(9999) is None


def test_update_by_id_partial_and_missing(store):
    lecture = store.create("owner-1", "Lecture", "english")
    before = store.find_by_id(lecture.id).updated_at

    assert store.update_by_id(lecture.id, status="processing", processing_progress=10)
    updated = store.find_by_id(lecture.id)
    assert (updated.status, updated.processing_progress, updated.name) == ("processing", 10, "Lecture")
    assert updated.updated_at >= before

    assert store.update_by_id(9999, status="ready") is False
    with pytest.raises(ValueError):
        store.update_by_id(lecture.id, not_a_column=1)


def test_replace_slides_orders_by_number_and_overwrites(store):
    lecture = store.create("owner-1", "Lecture", "english")

    assert store.replace_slides(lecture.id, list(reversed(_slides(3))))
    assert [s.slide_number for s in store.find_by_id(lecture.id).slides] == [1, 2, 3]

    assert store.replace_slides(lecture.id, _slides(1))
    assert [s.content for s in store.find_by_id(lecture.id).slides] == ["Slide 1 text"]
    assert store.replace_slides(9999, _slides(1)) is False


def test_update_slide(store):
    lecture = store.create("owner-1", "Lecture", "english")
    store.replace_slides(lecture.id, _slides(2))

    assert store.update_slide(lecture.id, 2, ai_script="Narration", audio_url=None, error_message="TTS down")
    slide = store.find_by_id(lecture.id).slides[1]
    assert (slide.ai_script, slide.audio_url, slide.error_message) == ("Narration", None, "TTS down")

    assert store.update_slide(lecture.id, 5, ai_script="x") is False
    with pytest.raises(ValueError):
        store.update_slide(lecture.id, 1, slide_number=3)


def test_delete_cascades_slides(store, session_factory):
    from app.db.models import Slide

    lecture = store.create("owner-1", "Lecture", "english")
    store.replace_slides(lecture.id, _slides(2))

    assert store.delete(lecture.id)
    assert store.find_by_id(lecture.id) is None
    assert store.delete(lecture.id) is False
    with session_factory() as db:
        assert db.query(Slide).count() == 0


def test_list_by_owner_paginates_newest_first_with_filters(store):
    ids = [store.create("owner-1", f"Lecture {i}", "english").id for i in range(5)]
    store.create("owner-2", "Someone else", "english")
    french = store.create("owner-1", "En français", "french")
    store.update_by_id(ids[0], status="ready")

    first = store.list_by_owner("owner-1", page=1, limit=4)
    assert first.total == 6
    assert first.pages == 2
    assert first.has_next and not first.has_prev
    assert [item.id for item in first.items] == [french.id, ids[4], ids[3], ids[2]]

    second = store.list_by_owner("owner-1", page=2, limit=4)
    assert [item.id for item in second.items] == [ids[1], ids[0]]
    assert second.has_prev and not second.has_next

    assert [item.id for item in store.list_by_owner("owner-1", status="ready").items] == [ids[0]]
    assert [item.id for item in store.list_by_owner("owner-1", language="french").items] == [french.id]


def test_list_public_only_returns_ready_public_lectures(store):
    ready_public = store.create("owner-1", "Shared", "english", is_public=True)
    store.update_by_id(ready_public.id, status="ready")
    store.create("owner-1", "Still processing", "english", is_public=True)
    private = store.create("owner-2", "Private", "english")
    store.update_by_id(private.id, status="ready")

    page = store.list_public()
    assert [item.id for item in page.items] == [ready_public.id]
    assert store.list_public(language="german").total == 0
