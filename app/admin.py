"""Centralised configuration for the SQLAdmin back-office."""

from __future__ import annotations

import logging
from pathlib import Path

from markupsafe import Markup
from starlette.requests import Request
from starlette.responses import Response
from sqladmin import Admin, BaseView, ModelView, expose
from sqladmin.authentication import AuthenticationBackend, login_required

from app.api.v2.dependencies import is_admin
from app.core.exceptions import BackendError
from app.db import session as db_session
from app.db.row_store import RowStore
from app.models.course.course_model import Course
from app.models.course.lesson_model import Lesson, LessonResource
from app.models.course.module_model import Module, ModuleTest
from app.models.progress.user_course_progress_model import UserCourseProgress
from app.models.progress.user_lesson_progress_model import UserLessonProgress
from app.models.user.profile_model import Profile
from app.schemas.user.profile_schema import display_name_for
from app.services.analytics_service import AnalyticsService
from app.services.auth_service import AuthService, auth_service

logger = logging.getLogger(__name__)

TEMPLATES_DIR = str(Path(__file__).resolve().parent / "templates")


def _shorten_html(value: str | None, width: int = 120) -> Markup:
    """Aperçu texte du contenu HTML d'une leçon (balises non interprétées)."""
    if not value:
        return Markup("<span style='color:#9ca3af;'>—</span>")
    text = value if len(value) <= width else value[:width] + "…"
    return Markup("<code>{}</code>").format(text)


def _duration(seconds: int | None) -> str:
    if seconds is None:
        return "—"
    minutes, rest = divmod(max(int(seconds), 0), 60)
    return f"{minutes} min {rest:02d} s"


async def _render_dashboard(request: Request, templates) -> Response:
    context: dict = {"request": request, "title": "Tableau de bord", "subtitle": "Suivi des étudiants"}
    try:
        context["analytics"] = await AnalyticsService(RowStore(db_session.async_engine)).dashboard()
    except BackendError as exc:
        logger.warning("Tableau de bord indisponible: %s", exc.message)
        context["error"] = exc.message
    return await templates.TemplateResponse(request, "sqladmin/dashboard.html", context)


class DashboardView(BaseView):
    name = "Tableau de bord"
    icon = "fa-solid fa-gauge-high"

    @expose("/dashboard", methods=["GET"], identity="dashboard")
    async def dashboard(self, request: Request) -> Response:
        return await _render_dashboard(request, self.templates)


class BackOfficeAdmin(Admin):
    @login_required
    async def index(self, request: Request) -> Response:
        return await _render_dashboard(request, self.templates)


class AdminAuth(AuthenticationBackend):
    """Connexion au back-office via le service d'authentification + ADMIN_EMAILS."""

    def __init__(self, secret_key: str, auth: AuthService | None = None):
        super().__init__(secret_key=secret_key)
        self.auth = auth or auth_service

    async def login(self, request: Request) -> bool:
        form = await request.form()
        email = str(form.get("username") or "")
        password = str(form.get("password") or "")

        try:
            session = await self.auth.sign_in_with_password(email, password)
        except BackendError as exc:
            logger.warning("Connexion admin refusée pour %s: %s", email, exc.message)
            return False

        if not is_admin(session.user):
            logger.warning("Connexion admin refusée pour %s: email non autorisé", email)
            return False

        request.session.update({"token": session.access_token, "user": session.user.email or session.user.id})
        return True

    async def logout(self, request: Request) -> bool:
        request.session.clear()
        return True

    async def authenticate(self, request: Request) -> bool:
        return "token" in request.session


class CourseAdmin(ModelView, model=Course):
    name = "Cours"
    name_plural = "Cours"
    icon = "fa-solid fa-book"
    category = "Contenus"
    column_list = [Course.id, Course.title, Course.slug, Course.created_at, Course.updated_at]
    column_searchable_list = [Course.title, Course.slug]
    column_sortable_list = [Course.created_at, Course.updated_at]
    column_default_sort = [(Course.created_at, True)]
    form_excluded_columns = ["modules", "created_at", "updated_at"]
    can_delete = False
    can_export = True


class ModuleAdmin(ModelView, model=Module):
    name = "Module"
    name_plural = "Modules"
    icon = "fa-solid fa-layer-group"
    category = "Contenus"
    column_list = [Module.id, Module.course, Module.title, Module.ordinal, Module.created_at]
    column_searchable_list = [Module.title]
    column_default_sort = [(Module.course_id, False), (Module.ordinal, False)]
    form_ajax_refs = {"course": {"fields": ("title", "slug")}}
    form_excluded_columns = ["lessons", "tests", "created_at"]
    can_delete = False
    can_export = True


class ModuleTestAdmin(ModelView, model=ModuleTest):
    name = "Test de module"
    name_plural = "Tests de module"
    icon = "fa-solid fa-list-check"
    category = "Contenus"
    column_list = [ModuleTest.id, ModuleTest.module, ModuleTest.title]
    form_ajax_refs = {"module": {"fields": ("title",)}}
    can_delete = False


class LessonAdmin(ModelView, model=Lesson):
    name = "Leçon"
    name_plural = "Leçons"
    icon = "fa-solid fa-chalkboard"
    category = "Contenus"
    column_list = [Lesson.id, Lesson.module, Lesson.title, Lesson.ordinal, Lesson.video_url, Lesson.duration_seconds]
    column_searchable_list = [Lesson.title, Lesson.slug]
    column_labels = {Lesson.duration_seconds: "Durée"}
    column_formatters = {
        Lesson.duration_seconds: lambda m, _: _duration(m.duration_seconds),
    }
    column_formatters_detail = {
        Lesson.content: lambda m, _: _shorten_html(m.content, width=2000),
    }
    form_ajax_refs = {"module": {"fields": ("title",)}}
    form_excluded_columns = ["resources", "created_at"]
    can_delete = False
    can_export = True


class LessonResourceAdmin(ModelView, model=LessonResource):
    name = "Ressource"
    name_plural = "Ressources"
    icon = "fa-solid fa-link"
    category = "Contenus"
    column_list = [LessonResource.id, LessonResource.lesson, LessonResource.title, LessonResource.resource_type, LessonResource.url]
    form_ajax_refs = {"lesson": {"fields": ("title",)}}
    form_excluded_columns = ["created_at"]
    can_delete = False


class ProfileAdmin(ModelView, model=Profile):
    name = "Étudiant"
    name_plural = "Étudiants"
    icon = "fa-solid fa-user"
    category = "Étudiants"
    column_list = [Profile.id, Profile.display_name, Profile.email, Profile.created_at]
    column_searchable_list = [Profile.display_name, Profile.first_name, Profile.last_name, Profile.email]
    column_default_sort = [(Profile.created_at, True)]  # newest first
    column_formatters = {
        Profile.display_name: lambda m, _: display_name_for(m.display_name, m.first_name, m.last_name),
    }
    column_labels = {Profile.display_name: "Nom"}
    form_excluded_columns = ["created_at"]
    can_create = False
    can_delete = False
    can_export = True
    page_size = 50


class UserCourseProgressAdmin(ModelView, model=UserCourseProgress):
    name = "Progression cours"
    name_plural = "Progressions cours"
    icon = "fa-solid fa-chart-line"
    category = "Étudiants"
    column_list = [
        UserCourseProgress.user_id,
        UserCourseProgress.course_id,
        UserCourseProgress.completed,
        UserCourseProgress.started_at,
    ]
    column_default_sort = [(UserCourseProgress.started_at, True)]
    can_create = False
    can_edit = False
    can_delete = False
    can_export = True


class UserLessonProgressAdmin(ModelView, model=UserLessonProgress):
    name = "Progression leçon"
    name_plural = "Progressions leçons"
    icon = "fa-solid fa-check-double"
    category = "Étudiants"
    column_list = [
        UserLessonProgress.user_id,
        UserLessonProgress.lesson_id,
        UserLessonProgress.completed,
        UserLessonProgress.completed_at,
    ]
    column_default_sort = [(UserLessonProgress.completed_at, True)]
    can_create = False
    can_edit = False
    can_delete = False
    can_export = True


ADMIN_VIEWS = (
    DashboardView,
    CourseAdmin,
    ModuleAdmin,
    ModuleTestAdmin,
    LessonAdmin,
    LessonResourceAdmin,
    ProfileAdmin,
    UserCourseProgressAdmin,
    UserLessonProgressAdmin,
)
