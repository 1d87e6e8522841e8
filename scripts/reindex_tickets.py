import argparse
import json
import sys
from pathlib import Path
from uuid import uuid4

PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from helpdesk_ai.db.session import ensure_schema
from helpdesk_ai.observability import set_correlation_id, setup_logging
from helpdesk_ai.services.container import get_services, shutdown_services
from helpdesk_ai.services.reindex import reindex_tickets


def main() -> None:
    parser = argparse.ArgumentParser(description="Rebuild the ticket embedding index.")
    parser.add_argument("--dry-run", action="store_true", help="Count tickets without calling the embedding API.")
    parser.add_argument(
        "--create-schema",
        action="store_true",
        help="Create the vector extension, tables and similarity index before indexing.",
    )
    args = parser.parse_args()

    setup_logging()
    set_correlation_id(f"reindex-{uuid4().hex[:12]}")
    services = get_services()
    try:
        if args.create_schema:
            ensure_schema(services.engine)
        result = reindex_tickets(services.ticket_service, services.ticket_ai, dry_run=args.dry_run)
    finally:
        shutdown_services()

    print(
        json.dumps(
            {
                "dry_run": result.dry_run,
                "tickets": result.total,
                "indexed": result.indexed,
                "failed_ids": result.failed_ids,
            },
            indent=2,
        )
    )
    if result.failed_ids:
        sys.exit(1)


if __name__ == "__main__":
    main()
