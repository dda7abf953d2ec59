# Fichier: backend/app/core/security.py

import logging
from typing import Any, Dict

from jose import jwt

from app.core.config import settings
from app.schemas.user.auth_schema import AuthUser

# --- Jetons émis par Supabase Auth ---
ALGORITHM = "HS256"
AUDIENCE = "authenticated"

logger = logging.getLogger(__name__)


def local_verification_enabled() -> bool:
    """Vrai quand le secret JWT du projet est connu : pas d'appel réseau nécessaire."""
    return bool(settings.SUPABASE_JWT_SECRET)


def decode_access_token(token: str) -> Dict[str, Any]:
    """Décode et vérifie un jeton d'accès Supabase.

    Lève ``jose.ExpiredSignatureError`` / ``jose.JWTError`` si le jeton est
    expiré, mal signé ou destiné à une autre audience.
    """
    return jwt.decode(
        token,
        settings.SUPABASE_JWT_SECRET,
        algorithms=[ALGORITHM],
        audience=AUDIENCE,
    )


def user_from_claims(claims: Dict[str, Any]) -> AuthUser:
    subject = claims.get("sub")
    if not subject:
        raise ValueError("token without subject")
    return AuthUser(id=str(subject), email=claims.get("email"))
