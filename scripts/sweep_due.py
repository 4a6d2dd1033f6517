"""Run one recurring-expense sweep against the configured database.

Meant for a single external cron trigger, e.g.

    0 2 * * * python scripts/sweep_due.py
"""

import argparse
import sys
from datetime import date
from pathlib import Path

# Ensure project root is on sys.path
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from sqlmodel import Session

from app.config import settings
from app.core import clock
from app.core.log import configure_logging
from app.database import engine, init_db
from app.services import scheduler


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--today", type=date.fromisoformat, default=None, help="Sweep as of YYYY-MM-DD")
    args = parser.parse_args(argv)

    configure_logging()
    today = args.today or clock.today()
    now = clock.utcnow()

    print(f"Database URL: {settings.database_url}")
    init_db()
    with Session(engine) as session:
        try:
            result = scheduler.sweep_due(session, today, now)
        except Exception as e:
            print(f"Sweep failed for {today.isoformat()}: {e}", file=sys.stderr)
            return 1
        scheduler.reconcile_touched(session, result, now)

    print(
        f"{today.isoformat()}: generated={result.generated} "
        f"deactivated={result.deactivated} skipped={result.skipped}"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
