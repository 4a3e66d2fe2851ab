from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Allow running this script from any working directory.
BACKEND_DIR = Path(__file__).resolve().parents[0]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from core.database import SessionLocal
from services.enrollment_capacity import find_count_drift, recompute_current_students


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Report classes whose stored current_students differs from the active enrollment count, and fix them."
    )
    parser.add_argument("--yes", action="store_true", help="Actually apply changes")
    args = parser.parse_args()

    with SessionLocal() as db:
        drift = find_count_drift(db)
        if not drift:
            print("All class counts match active enrollments.")
            return

        for d in drift:
            print(f"class_id={d.class_id} name={d.class_name!r} stored={d.stored} actual={d.actual}")

        if not args.yes:
            print(f"Dry run. {len(drift)} class(es) would be recounted. Re-run with --yes to apply.")
            return

        recompute_current_students(db, [d.class_id for d in drift])
        db.commit()
        print(f"Recounted {len(drift)} class(es).")


if __name__ == "__main__":
    main()
