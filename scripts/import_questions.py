#!/usr/bin/env python3
"""
Bulk-load the clue catalog from a CSV file.

Usage:
    python scripts/import_questions.py questions.csv [--database URL]
"""

import argparse

from jeopardy_trainer.core.exceptions import ValidationError
from jeopardy_trainer.core.services.database import DatabaseService
from jeopardy_trainer.core.services.question_import_service import (
    QuestionImportService,
)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Import Jeopardy! clues from CSV")
    parser.add_argument("csv_path")
    parser.add_argument("--database", help="SQLAlchemy URL or SQLite path")
    parser.add_argument("--batch-size", type=int, default=1000)
    args = parser.parse_args(argv)

    db_service = DatabaseService(args.database)
    try:
        with open(args.csv_path, newline="", encoding="utf-8") as stream:
            result = QuestionImportService(db_service, args.batch_size).import_csv(stream)
    except (OSError, ValidationError) as e:
        print(f"[FAIL] {e}")
        return 1
    finally:
        db_service.close()

    print(f"[OK] Imported {result.imported} questions, skipped {result.skipped}.")
    for error in result.errors[:20]:
        print(f"  {error}")
    if len(result.errors) > 20:
        print(f"  ... and {len(result.errors) - 20} more")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
