"""
Script de lancement du serveur HTTP.

Démarre l'application FastAPI avec uvicorn sur APP_HOST:APP_PORT (défaut 0.0.0.0:3000).
"""

from __future__ import annotations

import sys
from pathlib import Path

import uvicorn

# Permet l'exécution du script en direct (python scripts/run_server.py)
SYS_ROOT = Path(__file__).resolve().parents[1]
if str(SYS_ROOT) not in sys.path:
    sys.path.append(str(SYS_ROOT))

from scholarqa.app.main import app  # noqa: E402
from scholarqa.core.container import get_container  # noqa: E402


def main() -> None:
    """Point d'entrée: sert l'application sur l'hôte et le port configurés."""
    settings = get_container().settings
    uvicorn.run(app, host=settings.APP_HOST, port=settings.APP_PORT, reload=False)


if __name__ == "__main__":
    main()
