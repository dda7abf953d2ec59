import locale
import logging
import os
import re

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.sessions import SessionMiddleware

# Imports de l'application
from app.core.config import settings
from app.db.base import Base
from app.api.v2.api import api_router
from app.db import session as db_session

# Imports pour SQLAdmin
from app.admin import ADMIN_VIEWS, TEMPLATES_DIR, AdminAuth, BackOfficeAdmin

# --- Configuration du logging ---
logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
logger = logging.getLogger(__name__)

# --- Initialisation de l'application FastAPI ---
app = FastAPI(
    title="Aura Learning API V2",
    openapi_url="/api/v2/openapi.json"
)


def _sanitize_origin(origin: str | None) -> str | None:
    value = (origin or "").strip()
    if not value:
        return None
    if not value.startswith("http"):
        value = f"https://{value}"
    return value.rstrip("/")


def _env_list(name: str) -> list[str]:
    return [item.strip() for item in (os.getenv(name) or "").split(",") if item.strip()]


def _origin_regex(patterns: list[str]) -> str | None:
    """Combine les regex valides en une seule ; les invalides sont ignorées."""
    valid: list[str] = []
    for pattern in sorted(set(patterns)):
        try:
            re.compile(pattern)
        except re.error as exc:
            logger.warning("Regex CORS ignorée (invalide): %s (%s)", pattern, exc)
            continue
        valid.append(pattern)
    if not valid:
        return None
    if len(valid) == 1:
        return valid[0]
    return "|".join(f"(?:{pattern})" for pattern in valid)


def cors_settings() -> dict[str, object]:
    candidates = [
        *settings.BACKEND_CORS_ORIGINS,
        str(settings.FRONTEND_BASE_URL),
        os.getenv("VERCEL_URL"),
        *_env_list("ADDITIONAL_CORS_ORIGINS"),
    ]
    origins = sorted({origin for origin in map(_sanitize_origin, candidates) if origin})

    patterns = _env_list("ADDITIONAL_CORS_ORIGIN_REGEXES")
    if any("vercel.app" in origin for origin in origins):
        patterns.append(r"^https://.*\.vercel\.app$")

    options: dict[str, object] = {
        "allow_origins": origins,
        "allow_credentials": True,
        "allow_methods": ["*"],
        "allow_headers": ["Authorization", "Content-Type"],
    }
    regex = _origin_regex(patterns)
    if regex is not None:
        options["allow_origin_regex"] = regex

    logger.info("CORS origins configurés: %s", origins)
    return options


# --- Configuration des Middlewares ---
app.add_middleware(SessionMiddleware, secret_key=settings.SECRET_KEY)
app.add_middleware(CORSMiddleware, **cors_settings())


# --- Initialisation de l'Admin ---
if db_session.async_engine is not None:
    admin = BackOfficeAdmin(
        app,
        db_session.async_engine,
        authentication_backend=AdminAuth(secret_key=settings.SECRET_KEY),
        base_url="/admin",
        templates_dir=TEMPLATES_DIR,
    )
    for view in ADMIN_VIEWS:
        admin.add_view(view)
else:
    logger.warning("Back-office désactivé : aucune base de données configurée.")

app.include_router(api_router, prefix="/api/v2")


def configure_collation(name: str | None = None) -> str | None:
    """Active la collation utilisée par le tri des titres de cours."""
    wanted = settings.COLLATION_LOCALE if name is None else name
    try:
        return locale.setlocale(locale.LC_COLLATE, wanted)
    except locale.Error as exc:
        logger.warning("Locale de collation '%s' indisponible (%s) : tri par point de code.", wanted, exc)
        return None


# --- Événement de Démarrage ---
@app.on_event("startup")
async def startup():
    configure_collation()
    engine = db_session.async_engine
    if engine is None:
        logger.info("Mode démo : aucune table à préparer.")
        return

    if settings.ENVIRONMENT.lower() not in {"development", "local"}:
        logger.info("Environnement %s : schéma géré par le backend hébergé.", settings.ENVIRONMENT)
        return

    logger.info("Vérification et création des tables de la base de données...")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("✅ Les tables de la base de données sont prêtes.")


# --- Route Racine ---
@app.get("/")
def read_root():
    return {
        "message": "Welcome to Aura Learning API V2!",
        "backend_configured": db_session.async_engine is not None,
    }
