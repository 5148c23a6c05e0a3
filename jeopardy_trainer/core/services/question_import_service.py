"""
Question import service - bulk loads the clue catalog from CSV.

Expected header (extra columns are ignored):
    clue, answer, category, classifier_category, clue_value, round, air_date, game_type

``clue_value`` may carry a dollar sign and thousands separators; ``air_date``
is ISO ``YYYY-MM-DD``. Rows that fail to parse are skipped and reported.
"""

import csv
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, TextIO

from ..exceptions import ValidationError
from ..models import Question
from .database import DatabaseService
from .logging import get_logging_service
from .question_service import GAME_TYPES

REQUIRED_COLUMNS = ("clue", "answer", "category")


@dataclass
class ImportResult:
    imported: int = 0
    skipped: int = 0
    errors: List[str] = field(default_factory=list)


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def parse_clue_value(raw: Optional[str]) -> Optional[int]:
    value = _blank_to_none(raw)
    if value is None:
        return None
    return int(value.replace("$", "").replace(",", ""))


def parse_question_row(row: Dict[str, Any]) -> Dict[str, Any]:
    """Convert one CSV row into Question column values"""
    clue = _blank_to_none(row.get("clue"))
    answer = _blank_to_none(row.get("answer"))
    if clue is None or answer is None:
        raise ValidationError("clue and answer are required")

    round_raw = _blank_to_none(row.get("round"))
    round_number = int(round_raw) if round_raw else None
    if round_number is not None and round_number not in (1, 2, 3):
        raise ValidationError(f"round must be 1, 2 or 3, got {round_number}")

    air_date_raw = _blank_to_none(row.get("air_date"))
    game_type = _blank_to_none(row.get("game_type"))
    if game_type is not None:
        game_type = game_type.lower()
        if game_type not in GAME_TYPES:
            raise ValidationError(f"unknown game_type {game_type!r}")

    return {
        "clue": clue,
        "answer": answer,
        "category": _blank_to_none(row.get("category")),
        "classifier_category": _blank_to_none(row.get("classifier_category")),
        "clue_value": parse_clue_value(row.get("clue_value")),
        "round": round_number,
        "air_date": date.fromisoformat(air_date_raw) if air_date_raw else None,
        "game_type": game_type,
        "archived": False,
    }


class QuestionImportService:
    """Service for bulk loading questions."""

    def __init__(self, db_service: DatabaseService, batch_size: int = 1000):
        self.db = db_service
        self.batch_size = batch_size
        self.logging_service = get_logging_service()
        self.logger = self.logging_service.get_logger("question_import")

    def import_rows(self, rows: Iterable[Dict[str, Any]]) -> ImportResult:
        result = ImportResult()
        batch: List[Dict[str, Any]] = []

        with self.db.get_session() as session:
            # Header is line 1
            for line_number, row in enumerate(rows, start=2):
                try:
                    batch.append(parse_question_row(row))
                except (ValidationError, ValueError) as e:
                    result.skipped += 1
                    result.errors.append(f"line {line_number}: {e}")
                    continue

                if len(batch) >= self.batch_size:
                    session.bulk_insert_mappings(Question, batch)
                    session.commit()
                    result.imported += len(batch)
                    batch = []

            if batch:
                session.bulk_insert_mappings(Question, batch)
                session.commit()
                result.imported += len(batch)

        self.logger.info(
            "questions.imported", imported=result.imported, skipped=result.skipped
        )
        return result

    def import_csv(self, stream: TextIO) -> ImportResult:
        reader = csv.DictReader(stream)
        missing = [c for c in REQUIRED_COLUMNS if c not in (reader.fieldnames or [])]
        if missing:
            raise ValidationError(f"CSV is missing columns: {', '.join(missing)}")
        return self.import_rows(reader)
