"""Vérifie la configuration avant un déploiement.

Usage::

    python -m scripts.check_env

Charge :mod:`app.core.config` ; en cas d'erreur de validation le détail est
déjà affiché par le module de configuration et le script sort avec le code 1.
Sinon il affiche les valeurs (secrets masqués) et les intégrations actives.
"""

from __future__ import annotations

import sys
from typing import Any, Dict, List

from pydantic import ValidationError

HIDDEN_MARKERS = ("key", "secret", "password")


def _is_hidden(name: str) -> bool:
    lowered = name.lower()
    return any(marker in lowered for marker in HIDDEN_MARKERS)


def describe_settings(values: Dict[str, Any]) -> List[str]:
    lines = []
    for name, value in values.items():
        shown = "<hidden>" if _is_hidden(name) and value else value
        lines.append(f"- {name}: {shown}")

    lines.append("")
    lines.append(f"Base de données : {'configurée' if values.get('DATABASE_URL') else 'absente (mode démo)'}")
    auth_ready = values.get("SUPABASE_URL") and values.get("SUPABASE_ANON_KEY")
    lines.append(f"Service d'authentification : {'configuré' if auth_ready else 'absent'}")
    local_jwt = "oui" if values.get("SUPABASE_JWT_SECRET") else "non"
    lines.append(f"Vérification locale des jetons : {local_jwt}")
    admins = values.get("ADMIN_EMAILS") or []
    lines.append(f"Administrateurs : {', '.join(admins) if admins else 'tout utilisateur connecté'}")
    return lines


def main() -> int:
    try:
        from app.core.config import settings
    except ValidationError:
        print("Environment validation failed, see details above.", file=sys.stderr)
        return 1

    print("Environment variables OK.")
    for line in describe_settings(settings.model_dump()):
        print(line)
    return 0


if __name__ == "__main__":
    sys.exit(main())
