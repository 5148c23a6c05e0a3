"""
Coryat board model and rules

A Coryat game is two 6 x 5 grids (Jeopardy and Double Jeopardy) plus one
Final Jeopardy clue. Each cell moves once from unanswered to a terminal
response; ``answer_cell`` is the only transition. The Coryat score of a round
is the signed sum of its answered cell values: correct adds the value,
incorrect subtracts it, a pass adds nothing. Final Jeopardy never scores.

Everything here is pure: the service layer loads the board, applies a
transition and writes the new board back.
"""

import random
from datetime import date
from enum import Enum
from typing import Dict, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from .exceptions import ConflictError, NotFoundError, ValidationError

CATEGORIES_PER_ROUND = 6
JEOPARDY_VALUES = (200, 400, 600, 800, 1000)
DOUBLE_JEOPARDY_VALUES = (400, 800, 1200, 1600, 2000)
DAILY_DOUBLES = {1: 1, 2: 2}
FINAL_JEOPARDY_CATEGORY = "FINAL JEOPARDY"

# Clue values were doubled on this air date; older values are normalized.
DOUBLE_VALUE_DATE = date(2001, 11, 26)


class CellResponse(str, Enum):
    CORRECT = "correct"
    INCORRECT = "incorrect"
    PASS = "pass"


class RoundName(str, Enum):
    JEOPARDY = "jeopardy"
    DOUBLE_JEOPARDY = "double_jeopardy"
    FINAL_JEOPARDY = "final_jeopardy"


ROUND_NUMBERS = {
    RoundName.JEOPARDY: 1,
    RoundName.DOUBLE_JEOPARDY: 2,
    RoundName.FINAL_JEOPARDY: 3,
}


class BoardCell(BaseModel):
    """One grid cell; ``question_id`` is None when no clue could be found"""

    model_config = ConfigDict(frozen=True)

    col: int = Field(ge=0, lt=CATEGORIES_PER_ROUND)
    row: int = Field(ge=0, lt=len(JEOPARDY_VALUES))
    question_id: Optional[int] = None
    value: int
    answered: Optional[CellResponse] = None
    daily_double: bool = False

    @property
    def available(self) -> bool:
        return self.question_id is not None

    @property
    def terminal(self) -> bool:
        return self.answered is not None


class RoundBoard(BaseModel):
    model_config = ConfigDict(frozen=True)

    categories: List[str]
    cells: List[BoardCell]

    def cell(self, col: int, row: int) -> BoardCell:
        for cell in self.cells:
            if cell.col == col and cell.row == row:
                return cell
        raise NotFoundError("Question not found on board")

    def replace_cell(self, updated: BoardCell) -> "RoundBoard":
        cells = [
            updated if (c.col, c.row) == (updated.col, updated.row) else c
            for c in self.cells
        ]
        return self.model_copy(update={"cells": cells})

    @property
    def score(self) -> int:
        return sum(score_delta(cell) for cell in self.cells if cell.available)

    @property
    def remaining(self) -> int:
        return sum(1 for c in self.cells if c.available and not c.terminal)

    @property
    def answered(self) -> int:
        return sum(1 for c in self.cells if c.available and c.terminal)

    @property
    def complete(self) -> bool:
        return self.remaining == 0


class FinalJeopardy(BaseModel):
    model_config = ConfigDict(frozen=True)

    category: str = FINAL_JEOPARDY_CATEGORY
    question_id: Optional[int] = None
    answered: Optional[CellResponse] = None


class GameBoard(BaseModel):
    """Validated shape of ``CoryatGame.game_board``"""

    model_config = ConfigDict(frozen=True)

    jeopardy: RoundBoard
    double_jeopardy: RoundBoard
    final_jeopardy: FinalJeopardy

    def scored_round(self, name: RoundName) -> RoundBoard:
        if name == RoundName.JEOPARDY:
            return self.jeopardy
        if name == RoundName.DOUBLE_JEOPARDY:
            return self.double_jeopardy
        raise ValueError(f"{name.value} is not a scored round")

    def with_round(self, name: RoundName, board: RoundBoard) -> "GameBoard":
        return self.model_copy(update={name.value: board})

    @property
    def total_score(self) -> int:
        return self.jeopardy.score + self.double_jeopardy.score

    @property
    def questions_answered(self) -> int:
        return self.jeopardy.answered + self.double_jeopardy.answered

    @property
    def questions_remaining(self) -> int:
        return self.jeopardy.remaining + self.double_jeopardy.remaining

    @property
    def current_round(self) -> int:
        if not self.jeopardy.complete:
            return 1
        if not self.double_jeopardy.complete:
            return 2
        return 3


def parse_round(value: str) -> RoundName:
    try:
        return RoundName(value)
    except ValueError:
        raise ValidationError(
            "Invalid round. Must be jeopardy, double_jeopardy, or final_jeopardy"
        ) from None


def parse_response(value: str) -> CellResponse:
    try:
        return CellResponse(value)
    except ValueError:
        raise ValidationError(
            "Invalid response. Must be correct, incorrect, or pass"
        ) from None


def normalize_clue_value(value: Optional[int], air_date: Optional[date]) -> Optional[int]:
    """Express a clue value on the post-2001 scale"""
    if value is None:
        return None
    if air_date is not None and air_date < DOUBLE_VALUE_DATE and value < 1000:
        return value * 2
    return value


def round_values(round_number: int) -> Sequence[int]:
    return JEOPARDY_VALUES if round_number == 1 else DOUBLE_JEOPARDY_VALUES


def score_delta(cell: BoardCell) -> int:
    if cell.answered == CellResponse.CORRECT:
        return cell.value
    if cell.answered == CellResponse.INCORRECT:
        return -cell.value
    return 0


def answer_cell(cell: BoardCell, response: CellResponse) -> BoardCell:
    """unanswered -> correct | incorrect | pass; every other move is rejected"""
    if not cell.available:
        raise ValidationError("Question not available")
    if cell.terminal:
        raise ConflictError("Question already answered")
    return cell.model_copy(update={"answered": response})


def answer_final(final: FinalJeopardy, response: CellResponse) -> FinalJeopardy:
    if final.question_id is None:
        raise ValidationError("Question not available")
    if final.answered is not None:
        raise ConflictError("Final Jeopardy already answered")
    return final.model_copy(update={"answered": response})


def assign_daily_doubles(
    cells: List[BoardCell], count: int, rng: random.Random
) -> List[BoardCell]:
    """Flag ``count`` available cells, chosen uniformly, as Daily Doubles"""
    available = [i for i, cell in enumerate(cells) if cell.available]
    chosen = set(rng.sample(available, min(count, len(available))))
    return [
        cell.model_copy(update={"daily_double": True}) if i in chosen else cell
        for i, cell in enumerate(cells)
    ]


def summarize(board: GameBoard) -> Dict[str, int]:
    """Answer counts and value totals across both scored rounds"""
    summary = {
        "questions_answered": 0,
        "correct": 0,
        "incorrect": 0,
        "passed": 0,
        "correct_value": 0,
        "incorrect_value": 0,
    }
    for round_board in (board.jeopardy, board.double_jeopardy):
        for cell in round_board.cells:
            if not cell.available or not cell.terminal:
                continue
            summary["questions_answered"] += 1
            if cell.answered == CellResponse.CORRECT:
                summary["correct"] += 1
                summary["correct_value"] += cell.value
            elif cell.answered == CellResponse.INCORRECT:
                summary["incorrect"] += 1
                summary["incorrect_value"] += cell.value
            else:
                summary["passed"] += 1
    return summary


def score_trend(scores_newest_first: List[int]) -> Optional[str]:
    """Compare the three newest games with the three oldest (10% band)"""
    if len(scores_newest_first) < 3:
        return None
    recent = sum(scores_newest_first[:3]) / 3
    oldest = sum(scores_newest_first[-3:]) / 3
    band = abs(oldest) * 0.1
    if recent > oldest + band:
        return "improving"
    if recent < oldest - band:
        return "declining"
    return "stable"
