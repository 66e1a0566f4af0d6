"""
Script d'ingestion manuelle des conférences et journaux.

Télécharge les sources configurées (API_RESEARCH, API_JOURNAL), déduplique, embedde et upserte
les enregistrements non encore indexés dans le store configuré (CONTENT_BACKEND).

Code de sortie non nul si au moins un type d'entité a échoué.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

# Permet l'exécution du script en direct (python scripts/run_ingestion.py)
SYS_ROOT = Path(__file__).resolve().parents[1]
if str(SYS_ROOT) not in sys.path:
    sys.path.append(str(SYS_ROOT))

from scholarqa.core.container import get_container  # noqa: E402
from scholarqa.core.logging import setup_logging  # noqa: E402
from scholarqa.domain.records import EntityType  # noqa: E402
from scholarqa.services.ingestion import STATUS_FAILED  # noqa: E402


def main(argv: list[str] | None = None) -> int:
    """Point d'entrée: lance l'ingestion et affiche les rapports JSON."""
    parser = argparse.ArgumentParser(description="Ingestion des conférences et journaux")
    parser.add_argument(
        "--entity",
        choices=[t.value for t in EntityType],
        default=None,
        help="Type d'entité à ingérer (défaut: tous)",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Ré-embedde aussi les enregistrements déjà indexés",
    )
    args = parser.parse_args(argv)

    setup_logging(debug=False)
    pipeline = get_container().pipeline
    if args.entity:
        reports = [pipeline.run(EntityType(args.entity), force=args.force)]
    else:
        reports = pipeline.run_all(force=args.force)
    print(json.dumps([r.model_dump(mode="json") for r in reports], indent=2))
    return 1 if any(r.status == STATUS_FAILED for r in reports) else 0


if __name__ == "__main__":
    sys.exit(main())
