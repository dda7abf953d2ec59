"""Database engine utilities.

This module builds the asynchronous SQLAlchemy engine used by the row store.
When no ``DATABASE_URL`` is configured the engine stays ``None`` and every
query fails with :class:`~app.core.exceptions.BackendUnavailable`, which keeps
the API bootable in "demo" mode.
"""

from __future__ import annotations

import logging
import ssl
from time import perf_counter
from typing import Any, Optional

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.exc import ArgumentError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from app.core.config import settings

logger = logging.getLogger(__name__)


_TLS_MODES = {"allow", "prefer", "require", "verify-ca", "verify-full"}
_LIBPQ_SSL_PARAMS = ("sslmode", "sslrootcert", "sslcert", "sslkey")


def _ssl_context_for(mode: str, params: dict[str, str]) -> ssl.SSLContext:
    """``SSLContext`` équivalent au ``sslmode`` libpq.

    Seuls ``verify-ca`` et ``verify-full`` valident le certificat serveur ;
    les autres modes se contentent de chiffrer la connexion.
    """

    context = ssl.create_default_context(ssl.Purpose.SERVER_AUTH)
    if params.get("sslrootcert"):
        context.load_verify_locations(cafile=params["sslrootcert"])
    if params.get("sslcert"):
        context.load_cert_chain(certfile=params["sslcert"], keyfile=params.get("sslkey"))

    if mode in {"verify-ca", "verify-full"}:
        context.check_hostname = mode == "verify-full"
    else:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    return context


def _prepare_asyncpg_connection(url: str) -> tuple[str, dict[str, object]]:
    """Translate libpq ``ssl*`` query parameters into asyncpg connect args.

    Supabase connection strings carry ``sslmode=require``; asyncpg rejects the
    parameter, so it is removed from the URL and turned into an ``ssl``
    argument. Non-asyncpg URLs are returned unchanged.
    """

    try:
        parsed_url = make_url(url)
    except ArgumentError:
        return url, {}

    if not parsed_url.drivername.startswith("postgresql+asyncpg"):
        return url, {}

    query = dict(parsed_url.query)
    ssl_params = {name: str(query.pop(name)) for name in _LIBPQ_SSL_PARAMS if name in query}
    mode = ssl_params.get("sslmode", "").lower()

    connect_args: dict[str, object] = {}
    if mode == "disable":
        connect_args["ssl"] = False
    elif mode in _TLS_MODES:
        connect_args["ssl"] = _ssl_context_for(mode, ssl_params)
    elif not mode and (ssl_params.get("sslrootcert") or ssl_params.get("sslcert")):
        # Des certificats sans sslmode : libpq active TLS implicitement.
        connect_args["ssl"] = _ssl_context_for("require", ssl_params)

    sanitized_url = parsed_url.set(query=query).render_as_string(hide_password=False)
    return sanitized_url, connect_args


def _preview(value: Any, limit: int = 200) -> str:
    text = " ".join(value.split()) if isinstance(value, str) else repr(value)
    return text if len(text) <= limit else text[: limit - 3] + "..."


def _install_slow_query_logger(engine: Engine) -> None:
    """Log a warning for every statement slower than ``SQLALCHEMY_SLOW_QUERY_THRESHOLD_MS``."""

    threshold_ms = max(settings.SQLALCHEMY_SLOW_QUERY_THRESHOLD_MS or 0, 0)
    if threshold_ms == 0:
        return

    @event.listens_for(engine, "before_cursor_execute")
    def _start_timer(conn, cursor, statement, parameters, context, executemany):
        context._aura_query_start = perf_counter()

    @event.listens_for(engine, "after_cursor_execute")
    def _report_slow_query(conn, cursor, statement, parameters, context, executemany):
        start = getattr(context, "_aura_query_start", None)
        if start is None:
            return
        elapsed_ms = (perf_counter() - start) * 1000.0
        if elapsed_ms >= threshold_ms:
            logger.warning(
                "SQL lente (%.1f ms) - %s | params=%s",
                elapsed_ms,
                _preview(statement),
                _preview(parameters),
            )


def build_engine(database_url: str) -> AsyncEngine:
    async_url, connect_args = _prepare_asyncpg_connection(database_url)
    engine_kwargs: dict[str, Any] = {"echo": False, "connect_args": connect_args}
    if async_url.startswith("postgresql"):
        engine_kwargs["pool_pre_ping"] = True

    engine = create_async_engine(async_url, **engine_kwargs)
    _install_slow_query_logger(engine.sync_engine)
    return engine


# Populated by ``configure_database``; ``None`` means demo mode.
async_engine: Optional[AsyncEngine] = None


def configure_database(database_url: str | None = None) -> Optional[AsyncEngine]:
    """Initialise the module-level engine.

    ``database_url`` defaults to the environment configuration. Returns the
    engine, or ``None`` when no URL is configured.
    """

    global async_engine

    target_url = database_url if database_url is not None else settings.DATABASE_URL
    if not target_url:
        logger.warning("DATABASE_URL absent : l'API démarre en mode démo (backend désactivé).")
        async_engine = None
        return None

    engine = build_engine(str(target_url))
    logger.info("Configuration de la base de données: %s", engine.url.render_as_string(hide_password=True))
    async_engine = engine
    return engine


# Initialise the engine at import time so the rest of the application can use
# it immediately.
configure_database()
