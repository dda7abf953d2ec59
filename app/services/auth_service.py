"""Client du service d'authentification hébergé (Supabase GoTrue, API REST).

``requests`` est bloquant : chaque appel est exécuté dans un thread via
``anyio.to_thread.run_sync`` pour ne pas bloquer la boucle d'événements.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

import anyio
import requests

from app.core.config import settings
from app.core.exceptions import BackendUnavailable, NotAuthenticated, QueryFailed, ValidationFailed
from app.schemas.user.auth_schema import AuthSession, AuthUser

logger = logging.getLogger(__name__)

SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"

AuthListener = Callable[[str, Optional[AuthSession]], None]


def _error_message(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        for key in ("error_description", "msg", "message", "error"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    return f"HTTP {response.status_code}"


class AuthService:
    def __init__(
        self,
        base_url: Optional[str] = None,
        anon_key: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        url = base_url if base_url is not None else settings.SUPABASE_URL
        self.base_url = str(url).rstrip("/") if url else None
        self.anon_key = anon_key if anon_key is not None else settings.SUPABASE_ANON_KEY
        self.timeout = timeout if timeout is not None else settings.AUTH_HTTP_TIMEOUT_SECONDS
        self._listeners: List[AuthListener] = []

    @property
    def configured(self) -> bool:
        return bool(self.base_url and self.anon_key)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    async def get_current_user(self, token: Optional[str]) -> Optional[AuthUser]:
        """Utilisateur associé au jeton, ou ``None`` si le jeton est refusé."""
        if not token:
            return None
        response = await self._send("GET", "/auth/v1/user", token=token)
        if response.status_code in (401, 403, 404):
            logger.warning("Jeton refusé par le service d'authentification (%s)", response.status_code)
            return None
        body = self._json_or_raise(response)
        if not body.get("id"):
            return None
        return AuthUser(id=str(body["id"]), email=body.get("email"))

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        email = (email or "").strip()
        if not email:
            raise ValidationFailed("Email is required")
        if not password:
            raise ValidationFailed("Password is required")

        response = await self._send(
            "POST",
            "/auth/v1/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        if response.status_code in (400, 401):
            message = _error_message(response)
            logger.warning("Connexion refusée pour %s: %s", email, message)
            raise NotAuthenticated(message)
        body = self._json_or_raise(response)
        user = body.get("user") or {}
        session = AuthSession(
            access_token=body.get("access_token", ""),
            refresh_token=body.get("refresh_token"),
            token_type=body.get("token_type") or "bearer",
            expires_in=body.get("expires_in"),
            user=AuthUser(id=str(user.get("id", "")), email=user.get("email", email)),
        )
        logger.info("Connexion réussie pour %s", email)
        self._emit(SIGNED_IN, session)
        return session

    async def sign_in_with_email_link(self, email: str, redirect_to: Optional[str] = None) -> None:
        email = (email or "").strip()
        if not email:
            raise ValidationFailed("Email is required")

        params: Dict[str, str] = {}
        target = redirect_to or settings.FRONTEND_BASE_URL
        if target:
            params["redirect_to"] = str(target)
        response = await self._send(
            "POST",
            "/auth/v1/otp",
            params=params,
            json={"email": email, "create_user": True},
        )
        self._json_or_raise(response)
        logger.info("Lien de connexion envoyé à %s", email)

    async def sign_out(self, token: Optional[str]) -> None:
        if token:
            response = await self._send("POST", "/auth/v1/logout", token=token)
            if response.status_code not in (401, 403, 404):
                self._json_or_raise(response)
        self._emit(SIGNED_OUT, None)

    def on_auth_state_change(self, callback: AuthListener) -> Callable[[], None]:
        """Enregistre ``callback`` ; renvoie la fonction de désinscription."""
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _emit(self, event: str, session: Optional[AuthSession]) -> None:
        for listener in list(self._listeners):
            listener(event, session)

    def _headers(self, token: Optional[str] = None) -> Dict[str, str]:
        headers = {"apikey": self.anon_key or "", "Content-Type": "application/json"}
        headers["Authorization"] = f"Bearer {token or self.anon_key}"
        return headers

    async def _send(
        self,
        method: str,
        path: str,
        *,
        token: Optional[str] = None,
        params: Optional[Dict[str, str]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> requests.Response:
        if not self.configured:
            raise BackendUnavailable()

        url = f"{self.base_url}{path}"
        headers = self._headers(token)

        def _call() -> requests.Response:
            return requests.request(
                method,
                url,
                headers=headers,
                params=params,
                json=json,
                timeout=self.timeout,
            )

        try:
            return await anyio.to_thread.run_sync(_call)
        except requests.RequestException as exc:
            logger.warning("Service d'authentification injoignable: %s", exc)
            raise QueryFailed(str(exc)) from exc

    @staticmethod
    def _json_or_raise(response: requests.Response) -> Dict[str, Any]:
        if response.status_code >= 400:
            message = _error_message(response)
            logger.warning("Erreur du service d'authentification (%s): %s", response.status_code, message)
            raise QueryFailed(message)
        if not response.content:
            return {}
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}


auth_service = AuthService()
