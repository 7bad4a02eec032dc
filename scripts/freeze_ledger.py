from __future__ import annotations

import importlib
import logging
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from dotenv import load_dotenv

from config import get_settings_module

from src.ojt_tracker.ojt_tracker.container import build_container


def main(argv: list[str]) -> None:
    """Freeze past validated sessions. Usage: freeze_ledger.py [student_id ...]"""

    load_dotenv(override=False)
    settings = importlib.import_module(get_settings_module())
    logging.basicConfig(level=str(getattr(settings, "LOG_LEVEL", "INFO")).upper())

    container = build_container(
        db_config=dict(settings.DB_CONFIG),
        tz_offset_hours=float(getattr(settings, "TZ_OFFSET_HOURS", 8)),
        grace_minutes=int(getattr(settings, "GRACE_MINUTES", 30)),
        default_target_hours=float(getattr(settings, "DEFAULT_TARGET_HOURS", 486)),
    )

    student_ids = [int(a) for a in argv] or list(container.students_repo.list_ids())
    total = 0
    for student_id in student_ids:
        total += container.hours_report_service.freeze_ledger(student_id)
    print(f"OK: froze {total} session(s) for {len(student_ids)} student(s)")


if __name__ == "__main__":
    main(sys.argv[1:])
