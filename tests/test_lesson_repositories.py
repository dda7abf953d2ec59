import pytest

from app.core.exceptions import BackendUnavailable, NotFound, ValidationFailed
from app.crud.lesson_crud import LessonRepository
from app.crud.student_crud import StudentRepository
from app.db.row_store import RowStore
from app.schemas.course.lesson_schema import (
    LessonCreate,
    LessonOut,
    LessonResourceCreate,
    LessonResourceUpdate,
    LessonUpdate,
)
from app.schemas.user.profile_schema import ProfileUpdate, display_name_for
from tests.utils import create_course, create_course_graph, create_lesson, create_module, create_profile


def _lesson(**kwargs) -> LessonOut:
    return LessonOut(id=1, module_id=1, title="L", **kwargs)


def test_lesson_type_follows_video_url():
    assert _lesson(video_url="https://youtu.be/x").type == "video"
    assert _lesson(video_url="").type == "text"
    assert _lesson().type == "text"


def test_duration_minutes_rounds_up_with_a_minimum_of_one():
    assert _lesson().duration_minutes is None
    assert _lesson(duration_seconds=0).duration_minutes == 1
    assert _lesson(duration_seconds=59).duration_minutes == 1
    assert _lesson(duration_seconds=61).duration_minutes == 2
    assert _lesson(duration_seconds=600).duration_minutes == 10


def test_derived_fields_are_serialised():
    payload = _lesson(video_url="https://example.com/v.mp4", duration_seconds=90).model_dump()
    assert payload["type"] == "video"
    assert payload["duration_minutes"] == 2


@pytest.mark.asyncio
async def test_fetch_lessons_of_a_module(store):
    graph = await create_course_graph(store, title="C", layout=(2, 1))
    repo = LessonRepository(store)

    lessons = await repo.fetch_all(graph["modules"][0]["id"])

    assert [lesson.title for lesson in lessons] == ["C-M1-L1", "C-M1-L2"]
    assert len(await repo.fetch_all()) == 3


@pytest.mark.asyncio
async def test_fetch_by_ids_keeps_requested_order(store):
    graph = await create_course_graph(store, title="C", layout=(3,))
    first, second, third = graph["lessons"]
    repo = LessonRepository(store)

    lessons = await repo.fetch_by_ids([str(third["id"]), first["id"], 999, third["id"]])

    assert [lesson.id for lesson in lessons] == [third["id"], first["id"]]
    assert await repo.fetch_by_ids([]) == []
    assert second["id"] not in repo.collection


@pytest.mark.asyncio
async def test_create_lesson_appends_and_cleans_fields(store):
    course = await create_course(store)
    module = await create_module(store, course["id"])
    await create_lesson(store, module["id"], ordinal=1)
    repo = LessonRepository(store)

    lesson = await repo.create(
        LessonCreate(module_id=module["id"], title=" Vidéo ", video_url="  ", duration_seconds=125)
    )

    assert lesson.title == "Vidéo"
    assert lesson.ordinal == 2
    assert lesson.video_url is None
    assert lesson.type == "text"
    assert lesson.duration_minutes == 3

    with pytest.raises(ValidationFailed):
        await repo.create(LessonCreate(module_id=module["id"], title=""))


@pytest.mark.asyncio
async def test_update_lesson(store):
    course = await create_course(store)
    module = await create_module(store, course["id"])
    lesson = await create_lesson(store, module["id"])
    repo = LessonRepository(store)

    updated = await repo.update(lesson["id"], LessonUpdate(video_url="https://youtu.be/abc"))
    assert updated.type == "video"

    unchanged = await repo.update(lesson["id"], LessonUpdate())
    assert unchanged.id == lesson["id"]

    with pytest.raises(NotFound):
        await repo.update(999, LessonUpdate(title="Ghost"))
    with pytest.raises(NotFound):
        await repo.update(999, LessonUpdate())


@pytest.mark.asyncio
async def test_lesson_resources(store):
    course = await create_course(store)
    module = await create_module(store, course["id"])
    lesson = await create_lesson(store, module["id"])
    repo = LessonRepository(store)

    created = await repo.create_resource(lesson["id"], LessonResourceCreate(title="Docs", url=" https://docs.example "))
    assert created.resource_type == "website"
    assert created.url == "https://docs.example"

    resources = await repo.fetch_resources(lesson["id"])
    assert [item.id for item in resources] == [created.id]

    updated = await repo.update_resource(created.id, LessonResourceUpdate(resource_type="youtube"))
    assert updated.resource_type == "youtube"
    assert [item.resource_type for item in repo.cached_resources(lesson["id"])] == ["youtube"]


@pytest.mark.asyncio
async def test_lesson_resources_are_served_from_the_cache(store):
    course = await create_course(store)
    module = await create_module(store, course["id"])
    lesson = await create_lesson(store, module["id"])
    repo = LessonRepository(store)
    assert repo.cached_resources(lesson["id"]) is None

    first = await repo.create_resource(lesson["id"], LessonResourceCreate(title="Docs"))
    await repo.fetch_resources(lesson["id"])
    await store.insert("lesson_resources", {"lesson_id": lesson["id"], "title": "Added elsewhere"})

    cached = await repo.fetch_resources(str(lesson["id"]))
    assert [item.id for item in cached] == [first.id]

    second = await repo.create_resource(lesson["id"], LessonResourceCreate(title="Slides"))
    cached = await repo.fetch_resources(lesson["id"])
    assert [item.title for item in cached] == ["Docs", "Slides"]

    refreshed = await repo.fetch_resources(lesson["id"], refresh=True)
    assert [item.title for item in refreshed] == ["Docs", "Added elsewhere", "Slides"]
    assert second.id in repo.resources


@pytest.mark.asyncio
async def test_failed_resource_reload_keeps_the_cache(store):
    course = await create_course(store)
    module = await create_module(store, course["id"])
    lesson = await create_lesson(store, module["id"])
    repo = LessonRepository(store)
    await repo.create_resource(lesson["id"], LessonResourceCreate(title="Docs"))
    await repo.fetch_resources(lesson["id"])

    repo.store = RowStore(None)
    with pytest.raises(BackendUnavailable):
        await repo.fetch_resources(lesson["id"], refresh=True)

    assert repo.resources.status == "failed"
    assert repo.resources.error == "Backend not configured"
    assert [item.title for item in await repo.fetch_resources(lesson["id"])] == ["Docs"]


@pytest.mark.asyncio
async def test_lesson_resource_validation(store):
    course = await create_course(store)
    module = await create_module(store, course["id"])
    lesson = await create_lesson(store, module["id"])
    repo = LessonRepository(store)

    with pytest.raises(ValidationFailed) as exc:
        await repo.create_resource(lesson["id"], LessonResourceCreate(title=" "))
    assert exc.value.message == "Resource title is required."

    with pytest.raises(ValidationFailed):
        await repo.update_resource(1, LessonResourceUpdate())

    with pytest.raises(NotFound):
        await repo.update_resource(999, LessonResourceUpdate(title="Ghost"))


def test_display_name_fallbacks():
    assert display_name_for(" Ada ", "Ada", "Lovelace") == "Ada"
    assert display_name_for(None, "Ada", "Lovelace") == "Ada Lovelace"
    assert display_name_for("", None, "Lovelace") == "Lovelace"
    assert display_name_for(None, None, None) == "(No name)"


@pytest.mark.asyncio
async def test_students_are_profiles(store):
    named = await create_profile(store, display_name="Grace")
    await create_profile(store, first_name="Alan", last_name="Turing")
    repo = StudentRepository(store)

    students = await repo.fetch_all()
    assert {student.name for student in students} == {"Grace", "Alan Turing"}

    student = await repo.fetch_by_id(named["id"])
    assert student.email == "student@example.com"
    assert await repo.fetch_by_id("missing") is None


@pytest.mark.asyncio
async def test_update_student_profile(store):
    profile = await create_profile(store, display_name="Old")
    repo = StudentRepository(store)

    updated = await repo.update(profile["id"], ProfileUpdate(display_name="  ", first_name="Ada"))

    assert updated.display_name is None
    assert updated.name == "Ada"

    with pytest.raises(NotFound):
        await repo.update("missing", ProfileUpdate(first_name="X"))
