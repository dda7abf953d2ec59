# Fichier: aura/backend/app/core/config.py
from pydantic_settings import BaseSettings
from typing import Optional, List
from pydantic import AnyHttpUrl, ValidationError, field_validator
import sys


class Settings(BaseSettings):
    # Sans DATABASE_URL l'API démarre en mode "démo" (lecture/écriture désactivées).
    DATABASE_URL: Optional[str] = None

    # --- Supabase (auth + base Postgres hébergée) ---
    SUPABASE_URL: AnyHttpUrl | None = None
    SUPABASE_ANON_KEY: str | None = None
    SUPABASE_JWT_SECRET: str | None = None
    AUTH_HTTP_TIMEOUT_SECONDS: float = 10.0

    BACKEND_CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]
    FRONTEND_BASE_URL: AnyHttpUrl = "http://localhost:3000"

    # Emails autorisés sur /admin et sur les endpoints d'administration.
    # Liste vide = tout utilisateur connecté est administrateur.
    ADMIN_EMAILS: List[str] = []

    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # La clé secrète pour signer les cookies de session du back-office.
    SECRET_KEY: str

    # Performance instrumentation
    SQLALCHEMY_SLOW_QUERY_THRESHOLD_MS: int = 300

    # Tableau de bord & progression
    DASHBOARD_TOP_COURSES: int = 5
    DASHBOARD_WINDOW_DAYS: int = 7
    PROGRESS_DEFAULT_STATUS: str = "in-progress"
    # Locale utilisée pour trier les titres ("" = locale du système)
    COLLATION_LOCALE: str = ""

    class Config:
        env_file = ".env"

    @field_validator("DATABASE_URL", mode="before")
    @classmethod
    def _normalize_database_url(cls, value: str | None) -> str | None:
        """Ensure Postgres URLs always use the asyncpg driver.

        Supabase exposes connection strings using the ``postgres://`` or
        ``postgresql://`` schemes. SQLAlchemy no longer ships the ``postgres``
        alias and the row store needs an async driver, so those URLs (and the
        psycopg variants) are upgraded to ``postgresql+asyncpg://``. SQLite and
        other backends are left untouched; an empty value means "no backend".
        """

        if value is None:
            return None

        if not isinstance(value, str):
            return value

        value = value.strip()
        if not value:
            return None

        if "+asyncpg" in value:
            return value

        replacements = {
            "postgres://": "postgresql+asyncpg://",
            "postgresql://": "postgresql+asyncpg://",
            "postgresql+psycopg2://": "postgresql+asyncpg://",
            "postgresql+psycopg://": "postgresql+asyncpg://",
        }

        for prefix, target in replacements.items():
            if value.startswith(prefix):
                return target + value[len(prefix) :]

        return value

    @field_validator("PROGRESS_DEFAULT_STATUS")
    @classmethod
    def _check_default_status(cls, value: str) -> str:
        if value not in {"in-progress", "completed"}:
            raise ValueError("must be 'in-progress' or 'completed'")
        return value

    @field_validator("ADMIN_EMAILS")
    @classmethod
    def _lower_admin_emails(cls, value: List[str]) -> List[str]:
        return [email.strip().lower() for email in value if email and email.strip()]


def _log_settings_validation_error(exc: ValidationError) -> None:
    """Pretty-print missing or invalid environment variables.

    When the Settings model fails to instantiate (for example on Vercel when a
    variable is missing), Pydantic raises a ValidationError.  Because the
    exception bubbles up during module import it can be tricky to spot which
    variable is responsible, so the structured payload is printed before the
    exception is re-raised.
    """

    header = "Configuration error while loading environment variables:"
    print(header, file=sys.stderr)

    try:
        details = exc.errors()
    except Exception:  # pragma: no cover - extremely defensive
        details = None

    if details:
        for error in details:
            location = ".".join(str(part) for part in error.get("loc", ()))
            message = error.get("msg", "Unknown validation error")
            type_name = error.get("type")
            hint_parts = [message]
            if type_name:
                hint_parts.append(f"(type={type_name})")
            hint = " ".join(hint_parts)
            print(f"  - {location}: {hint}", file=sys.stderr)
    else:
        print(exc, file=sys.stderr)


try:
    settings = Settings()
except ValidationError as exc:  # pragma: no cover - exercised at runtime
    _log_settings_validation_error(exc)
    raise
