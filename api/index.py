"""Point d'entrée serverless : expose l'application FastAPI sous le nom ``app``."""

from __future__ import annotations

import sys
from pathlib import Path

# Le paquet ``app`` se trouve à la racine du dépôt, un niveau au-dessus.
PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from app.main import app  # noqa: E402

__all__ = ["app"]
