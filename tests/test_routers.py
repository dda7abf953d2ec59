import httpx
import pytest
from fastapi import HTTPException

from app.api.v2 import dependencies
from app.api.v2.endpoints import (
    analytics_router,
    course_router,
    lesson_router,
    module_router,
    student_router,
    user_router,
)
from app.crud.course_crud import CourseRepository
from app.crud.lesson_crud import LessonRepository
from app.crud.module_crud import ModuleRepository
from app.crud.progress_crud import ProgressRepository
from app.crud.student_crud import StudentRepository
from app.db.row_store import RowStore
from app.schemas.course.course_schema import CourseCreate
from app.schemas.course.lesson_schema import LessonResourceUpdate
from app.schemas.course.module_schema import ModuleCreate
from app.schemas.progress.progress_schema import CourseCompletionIn, LessonProgressIn
from app.schemas.user.profile_schema import ProfileUpdate
from app.services.analytics_service import AnalyticsService
from app.services.progress_service import ProgressService
from tests.utils import create_course_graph, create_profile, make_user


@pytest.fixture()
def admin():
    return make_user(email="admin@example.com")


@pytest.mark.asyncio
async def test_create_and_read_course(store, admin):
    created = await course_router.create_course(
        CourseCreate(title="Python"), courses=CourseRepository(store), _admin=admin
    )
    await module_router.create_module(
        ModuleCreate(course_id=created.id, title="Bases"), modules=ModuleRepository(store), _admin=admin
    )

    detail = await course_router.read_course(created.id, courses=CourseRepository(store))

    assert detail.slug == "python"
    assert [module.title for module in detail.modules] == ["Bases"]


@pytest.mark.asyncio
async def test_validation_errors_become_422(store, admin):
    with pytest.raises(HTTPException) as exc:
        await course_router.create_course(CourseCreate(title=""), courses=CourseRepository(store), _admin=admin)
    assert exc.value.status_code == 422
    assert exc.value.detail == "Title and slug are required."


@pytest.mark.asyncio
async def test_unknown_course_is_404(store):
    with pytest.raises(HTTPException) as exc:
        await course_router.read_course(404, courses=CourseRepository(store))
    assert exc.value.status_code == 404


@pytest.mark.asyncio
async def test_offline_backend_is_503(offline_store):
    with pytest.raises(HTTPException) as exc:
        await course_router.list_courses(courses=CourseRepository(offline_store))
    assert exc.value.status_code == 503
    assert exc.value.detail == "Backend not configured"


@pytest.mark.asyncio
async def test_course_progress_flow(store):
    graph = await create_course_graph(store, layout=(1,))
    course_id = graph["course"]["id"]
    lesson_id = graph["lessons"][0]["id"]
    user = make_user()
    progress = ProgressRepository(store)

    started = await course_router.start_course(course_id, progress=progress, current_user=user)
    assert started.courses == {str(course_id): "in-progress"}

    mine = await course_router.list_my_courses(courses=CourseRepository(store), current_user=user)
    assert [course.id for course in mine] == [course_id]

    marked = await lesson_router.mark_lesson_progress(
        lesson_id, LessonProgressIn(completed=True), progress=progress, current_user=user
    )
    assert marked["completed"] is True

    completed = await course_router.complete_course(
        course_id, CourseCompletionIn(completed=True), progress=progress, current_user=user
    )
    assert completed.courses == {str(course_id): "completed"}

    current = await course_router.read_my_course_progress(ids=None, progress=progress, current_user=user)
    assert current.courses == {str(course_id): "completed"}


@pytest.mark.asyncio
async def test_list_lessons_by_ids(store):
    graph = await create_course_graph(store, layout=(3,))
    first, second, third = (lesson["id"] for lesson in graph["lessons"])

    lessons = await lesson_router.list_lessons(
        ids=[f"{third},{first}", str(second)], module_id=None, lessons=LessonRepository(store)
    )

    assert [lesson.id for lesson in lessons] == [third, first, second]


@pytest.mark.asyncio
async def test_empty_resource_update_is_rejected(store, admin):
    with pytest.raises(HTTPException) as exc:
        await lesson_router.update_lesson_resource(
            1, LessonResourceUpdate(), lessons=LessonRepository(store), _admin=admin
        )
    assert exc.value.status_code == 422


@pytest.mark.asyncio
async def test_student_progress_report(store, admin):
    graph = await create_course_graph(store, layout=(2,))
    profile = await create_profile(store, display_name="Ada")
    student = make_user(profile["id"])
    progress = ProgressRepository(store)
    await progress.start_course(student, graph["course"]["id"])
    await progress.mark_lesson_progress(student, graph["lessons"][0]["id"], True)
    service = ProgressService(CourseRepository(store), ModuleRepository(store), progress)

    report = await student_router.read_student_progress(profile["id"], service=service, _admin=admin)

    assert report.status == "succeeded"
    assert report.courses[0].percent == 50

    with pytest.raises(HTTPException) as exc:
        await student_router.read_student("missing", students=StudentRepository(store), _admin=admin)
    assert exc.value.status_code == 404


@pytest.mark.asyncio
async def test_profile_me(store):
    profile = await create_profile(store)
    user = make_user(profile["id"])

    updated = await user_router.update_my_profile(
        ProfileUpdate(first_name="Ada", last_name="Lovelace"), students=StudentRepository(store), current_user=user
    )
    assert updated.name == "Ada Lovelace"

    with pytest.raises(HTTPException) as exc:
        await user_router.read_my_profile(students=StudentRepository(store), current_user=make_user())
    assert exc.value.status_code == 404


@pytest.mark.asyncio
async def test_dashboard_route(store, admin):
    await create_course_graph(store, layout=(1,))

    analytics = await analytics_router.read_dashboard(service=AnalyticsService(store), _admin=admin)

    assert analytics.courses == 1
    assert len(analytics.daily_completions) == 7


@pytest.mark.asyncio
async def test_http_routes_resolve_fixed_paths_first(store, monkeypatch):
    from app.main import app

    user = make_user()
    monkeypatch.setattr(dependencies.settings, "ADMIN_EMAILS", [])
    app.dependency_overrides[dependencies.get_row_store] = lambda: store
    app.dependency_overrides[dependencies.get_current_user] = lambda: user
    graph = await create_course_graph(store, layout=(1,))
    await ProgressRepository(store).start_course(user, graph["course"]["id"])

    try:
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            mine = await client.get("/api/v2/courses/mine")
            progress = await client.get("/api/v2/courses/progress")
            detail = await client.get(f"/api/v2/courses/{graph['course']['id']}")
            lesson = await client.get(f"/api/v2/lessons/{graph['lessons'][0]['id']}")
    finally:
        app.dependency_overrides.clear()
        dependencies.repositories.clear()

    assert mine.status_code == 200
    assert [course["id"] for course in mine.json()] == [graph["course"]["id"]]
    assert progress.json() == {"courses": {str(graph["course"]["id"]): "in-progress"}}
    assert [module["title"] for module in detail.json()["modules"]] == ["C1-M1"]
    assert lesson.json()["type"] == "text"
    assert lesson.json()["duration_minutes"] is None


def test_cors_settings_collect_origins(monkeypatch):
    from app.main import cors_settings, read_root

    monkeypatch.setenv("VERCEL_URL", "aura-preview.vercel.app")
    monkeypatch.setenv("ADDITIONAL_CORS_ORIGINS", "https://admin.example.com/, ")
    monkeypatch.setenv("ADDITIONAL_CORS_ORIGIN_REGEXES", "[invalid")

    options = cors_settings()

    assert "https://aura-preview.vercel.app" in options["allow_origins"]
    assert "https://admin.example.com" in options["allow_origins"]
    assert options["allow_origin_regex"] == r"^https://.*\.vercel\.app$"
    assert read_root()["backend_configured"] is False


def test_repositories_are_shared_until_the_engine_changes(store, offline_store):
    dependencies.repositories.clear()

    lessons = dependencies.get_lesson_repository(store)
    assert dependencies.get_lesson_repository(RowStore(store.engine)) is lessons
    assert dependencies.get_course_repository(store) is not lessons

    assert dependencies.get_lesson_repository(offline_store) is not lessons
    dependencies.repositories.clear()


@pytest.mark.asyncio
async def test_resource_listing_uses_the_cache_across_requests(store, admin):
    from app.main import app

    graph = await create_course_graph(store, layout=(1,))
    lesson_id = graph["lessons"][0]["id"]
    app.dependency_overrides[dependencies.get_row_store] = lambda: store
    app.dependency_overrides[dependencies.require_admin] = lambda: admin

    try:
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            created = await client.post(f"/api/v2/lessons/{lesson_id}/resources", json={"title": "Docs"})
            first = await client.get(f"/api/v2/lessons/{lesson_id}/resources")
            await store.insert("lesson_resources", {"lesson_id": lesson_id, "title": "Outside"})
            cached = await client.get(f"/api/v2/lessons/{lesson_id}/resources")
            refreshed = await client.get(f"/api/v2/lessons/{lesson_id}/resources", params={"refresh": "true"})
    finally:
        app.dependency_overrides.clear()
        dependencies.repositories.clear()

    assert created.status_code == 201
    assert [item["title"] for item in first.json()] == ["Docs"]
    assert [item["title"] for item in cached.json()] == ["Docs"]
    assert [item["title"] for item in refreshed.json()] == ["Docs", "Outside"]
