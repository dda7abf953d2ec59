import logging
import re
from urllib.parse import unquote

from typing import Any, Dict, Optional, Type, TypeVar

from fastapi import Depends, HTTPException, Request, status
from jose import JWTError, ExpiredSignatureError

from app.core import security
from app.core.config import settings
from app.core.exceptions import BackendError
from app.crud.course_crud import CourseRepository
from app.crud.lesson_crud import LessonRepository
from app.crud.module_crud import ModuleRepository
from app.crud.progress_crud import ProgressRepository
from app.crud.student_crud import StudentRepository
from app.db import session as db_session
from app.db.row_store import RowStore
from app.schemas.user.auth_schema import AuthUser
from app.services.analytics_service import AnalyticsService
from app.services.auth_service import AuthService, auth_service
from app.services.progress_service import ProgressService

log = logging.getLogger(__name__)

R = TypeVar("R")


def http_error(exc: BackendError) -> HTTPException:
    """Traduit une erreur de backend en réponse HTTP (message conservé tel quel)."""
    return HTTPException(status_code=exc.status_code, detail=exc.message)


# ----------------------------------------------------------------------
# Accès aux données
# ----------------------------------------------------------------------
def get_row_store() -> RowStore:
    # Lu à chaque requête : ``configure_database`` peut remplacer le moteur.
    return RowStore(db_session.async_engine)


class RepositoryRegistry:
    """Un dépôt par type, partagé entre les requêtes.

    Les collections en mémoire survivent ainsi d'une requête à l'autre. Le
    registre repart de zéro dès que la requête arrive avec un autre moteur.
    """

    def __init__(self) -> None:
        self._engine = None
        self._repositories: Dict[type, Any] = {}

    def get(self, factory: Type[R], store: RowStore) -> R:
        if store.engine is not self._engine:
            if self._repositories:
                log.info("Nouveau moteur : cache des dépôts réinitialisé.")
            self._engine = store.engine
            self._repositories = {}
        repository = self._repositories.get(factory)
        if repository is None:
            repository = self._repositories[factory] = factory(store)
        return repository

    def clear(self) -> None:
        self._engine = None
        self._repositories = {}


repositories = RepositoryRegistry()


def get_course_repository(store: RowStore = Depends(get_row_store)) -> CourseRepository:
    return repositories.get(CourseRepository, store)


def get_module_repository(store: RowStore = Depends(get_row_store)) -> ModuleRepository:
    return repositories.get(ModuleRepository, store)


def get_lesson_repository(store: RowStore = Depends(get_row_store)) -> LessonRepository:
    return repositories.get(LessonRepository, store)


def get_student_repository(store: RowStore = Depends(get_row_store)) -> StudentRepository:
    return repositories.get(StudentRepository, store)


def get_progress_repository(store: RowStore = Depends(get_row_store)) -> ProgressRepository:
    return repositories.get(ProgressRepository, store)


def get_progress_service(
    courses: CourseRepository = Depends(get_course_repository),
    modules: ModuleRepository = Depends(get_module_repository),
    progress: ProgressRepository = Depends(get_progress_repository),
) -> ProgressService:
    return ProgressService(courses=courses, modules=modules, progress=progress)


def get_analytics_service(store: RowStore = Depends(get_row_store)) -> AnalyticsService:
    return AnalyticsService(store)


def get_auth_service() -> AuthService:
    return auth_service


# ----------------------------------------------------------------------
# Authentification
# ----------------------------------------------------------------------
def _normalize_token_value(raw_token: str | None) -> str | None:
    """Return a clean JWT string extracted from various transport formats.

    Tokens may reach the API through cookies, headers, or query parameters.
    Browsers can percent-encode cookie values (``Bearer%20…``) and some
    frontends send quoted strings. We normalise those cases and also accept
    case-insensitive ``Bearer`` prefixes.
    """

    if raw_token is None:
        return None

    token = raw_token.strip().strip('"').strip("'")
    if not token:
        return None

    token = unquote(token)

    match = re.match(r"^(bearer|token)[\s,:]+(.+)$", token, flags=re.IGNORECASE)
    if match:
        token = match.group(2)
    else:
        parts = token.split()
        if len(parts) >= 2 and parts[0].lower().rstrip(",") in {"bearer", "token"}:
            token = parts[1]

    token = token.strip()
    return token or None


def extract_token(request: Request) -> Optional[str]:
    token_sources = (
        request.headers.get("Authorization"),
        request.cookies.get("access_token"),
        request.query_params.get("access_token"),
    )
    for candidate in token_sources:
        token = _normalize_token_value(candidate)
        if token:
            return token
    return None


async def resolve_user(token: Optional[str], auth: AuthService) -> Optional[AuthUser]:
    """Utilisateur porté par ``token`` ; ``None`` si le jeton est absent ou invalide."""
    if not token:
        return None

    if security.local_verification_enabled():
        try:
            return security.user_from_claims(security.decode_access_token(token))
        except ExpiredSignatureError:
            log.warning("Validation échouée: Le token a expiré.")
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="token_expired")
        except (JWTError, ValueError):
            log.warning("Validation échouée: Le token est invalide ou mal formé.")
            return None

    try:
        return await auth.get_current_user(token)
    except BackendError as exc:
        raise http_error(exc) from exc


async def get_optional_user(
    request: Request,
    auth: AuthService = Depends(get_auth_service),
) -> Optional[AuthUser]:
    token = extract_token(request)
    if token and not security.local_verification_enabled() and not auth.configured:
        # Mode démo : aucun service pour valider le jeton.
        return None
    return await resolve_user(token, auth)


async def get_current_user(
    request: Request,
    auth: AuthService = Depends(get_auth_service),
) -> AuthUser:
    token = extract_token(request)
    if not token:
        log.warning("Validation échouée: Pas de token fourni.")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Could not validate credentials")

    user = await resolve_user(token, auth)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Could not validate credentials")

    log.info("Utilisateur %s validé avec succès via token.", user.id)
    return user


def is_admin(user: Optional[AuthUser]) -> bool:
    if user is None:
        return False
    if not settings.ADMIN_EMAILS:
        return True
    return (user.email or "").strip().lower() in settings.ADMIN_EMAILS


def require_admin(current_user: AuthUser = Depends(get_current_user)) -> AuthUser:
    if not is_admin(current_user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="admin_required")
    return current_user
