"""
Coryat game service

Builds boards from the clue catalog and persists games. Every write to a
game goes through SQLAlchemy's ``version_id_col`` check, so two concurrent
answers for the same game cannot both apply; the loser gets a ConflictError.
"""

import random
from typing import Any, Dict, List, Optional, Set

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import func, nulls_last, select
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ..coryat import (
    CATEGORIES_PER_ROUND,
    DAILY_DOUBLES,
    FINAL_JEOPARDY_CATEGORY,
    BoardCell,
    FinalJeopardy,
    GameBoard,
    RoundBoard,
    RoundName,
    answer_cell,
    answer_final,
    assign_daily_doubles,
    normalize_clue_value,
    parse_response,
    parse_round,
    round_values,
    score_delta,
    score_trend,
    summarize,
)
from ..exceptions import ConflictError, DatabaseError, NotFoundError
from ..models import CoryatGame, Question, utcnow
from .database import DatabaseService, get_db_service
from .logging import get_logging_service
from .settings_config_service import get_settings_service
from .stats_service import round_half_up


def _isoformat(value) -> Optional[str]:
    return value.isoformat() if value else None


class BoardBuilder:
    """Fills a fresh GameBoard from the catalog"""

    def __init__(self, session: Session, rng: random.Random, category_pool_size: int = 100):
        self.session = session
        self.rng = rng
        self.category_pool_size = category_pool_size
        self.used_question_ids: Set[int] = set()

    def _playable(self):
        conditions = [
            Question.archived.is_(False),
            Question.clue.isnot(None),
            Question.answer.isnot(None),
        ]
        if self.used_question_ids:
            conditions.append(Question.id.notin_(self.used_question_ids))
        return conditions

    def select_categories(self, exclude: List[str]) -> List[str]:
        """Shuffle the most-populated show categories and take six"""
        count = func.count(Question.id)
        stmt = (
            select(Question.category)
            .where(
                Question.category.isnot(None),
                Question.archived.is_(False),
                Question.air_date.isnot(None),
                Question.classifier_category.isnot(None),
            )
            .group_by(Question.category)
            .order_by(count.desc(), Question.category)
            .limit(self.category_pool_size)
        )
        if exclude:
            stmt = stmt.where(Question.category.notin_(exclude))

        pool = list(self.session.execute(stmt).scalars())
        if len(pool) < CATEGORIES_PER_ROUND:
            raise NotFoundError("Not enough categories available to build a board")
        self.rng.shuffle(pool)
        return pool[:CATEGORIES_PER_ROUND]

    def find_question_for_value(
        self, category: str, target: int, round_number: int
    ) -> Optional[int]:
        """Exact value, then a value-less clue of the round, then a normalized match"""
        base = [Question.category == category, *self._playable()]
        newest = (nulls_last(Question.air_date.desc()), Question.id.desc())

        exact = self.session.execute(
            select(Question.id)
            .where(
                *base,
                Question.clue_value == target,
                (Question.round == round_number) | Question.round.is_(None),
            )
            .order_by(*newest)
            .limit(1)
        ).scalar_one_or_none()
        if exact is not None:
            return exact

        valueless = self.session.execute(
            select(Question.id)
            .where(*base, Question.round == round_number, Question.clue_value.is_(None))
            .order_by(*newest)
            .limit(1)
        ).scalar_one_or_none()
        if valueless is not None:
            return valueless

        candidates = {target}
        if target % 2 == 0:
            candidates.add(target // 2)
        rows = self.session.execute(
            select(Question.id, Question.clue_value, Question.air_date)
            .where(
                *base,
                Question.air_date.isnot(None),
                Question.clue_value.in_(candidates),
            )
            .order_by(*newest)
            .limit(50)
        ).all()
        for question_id, clue_value, air_date in rows:
            if normalize_clue_value(clue_value, air_date) == target:
                return question_id
        return None

    def build_round(self, round_number: int, exclude: List[str]) -> RoundBoard:
        categories = self.select_categories(exclude)
        cells = []
        for col, category in enumerate(categories):
            for row, value in enumerate(round_values(round_number)):
                question_id = self.find_question_for_value(category, value, round_number)
                if question_id is not None:
                    self.used_question_ids.add(question_id)
                cells.append(
                    BoardCell(col=col, row=row, question_id=question_id, value=value)
                )
        cells = assign_daily_doubles(cells, DAILY_DOUBLES[round_number], self.rng)
        return RoundBoard(categories=categories, cells=cells)

    def build_final_jeopardy(self) -> FinalJeopardy:
        newest = (nulls_last(Question.air_date.desc()), Question.id.desc())
        row = self.session.execute(
            select(Question.id, Question.category)
            .where(*self._playable(), Question.round == 3)
            .order_by(*newest)
            .limit(1)
        ).first()
        if row is None:
            row = self.session.execute(
                select(Question.id, Question.category)
                .where(*self._playable())
                .order_by(*newest)
                .limit(1)
            ).first()
        if row is None:
            return FinalJeopardy()
        return FinalJeopardy(
            category=row.category or FINAL_JEOPARDY_CATEGORY, question_id=row.id
        )

    def build(self) -> GameBoard:
        jeopardy = self.build_round(1, exclude=[])
        double_jeopardy = self.build_round(2, exclude=jeopardy.categories)
        return GameBoard(
            jeopardy=jeopardy,
            double_jeopardy=double_jeopardy,
            final_jeopardy=self.build_final_jeopardy(),
        )


class CoryatService:
    """Create, play, complete and review Coryat games"""

    def __init__(
        self,
        db_service: Optional[DatabaseService] = None,
        rng: Optional[random.Random] = None,
    ):
        self._db_service = db_service
        self.rng = rng or random.Random()
        self.category_pool_size = get_settings_service().getint(
            "coryat", "category_pool_size", 100
        )
        self.logging_service = get_logging_service()
        self.logger = self.logging_service.get_logger("coryat_service")

    @property
    def db(self) -> DatabaseService:
        return self._db_service or get_db_service()

    @staticmethod
    def load_board(game: CoryatGame) -> GameBoard:
        try:
            return GameBoard.model_validate(game.game_board)
        except PydanticValidationError as e:
            raise DatabaseError(f"Stored board for game {game.id} is invalid: {e}") from e

    @staticmethod
    def _store_board(game: CoryatGame, board: GameBoard) -> None:
        game.game_board = board.model_dump(mode="json")
        game.jeopardy_score = board.jeopardy.score
        game.double_j_score = board.double_jeopardy.score
        game.questions_answered = board.questions_answered
        game.current_round = board.current_round

    def _get_owned_game(self, session: Session, user_id: int, game_id: int) -> CoryatGame:
        game = session.execute(
            select(CoryatGame).where(
                CoryatGame.id == game_id, CoryatGame.user_id == user_id
            )
        ).scalar_one_or_none()
        if game is None:
            raise NotFoundError("Game not found")
        return game

    def _commit(self, session: Session, game_id: int) -> None:
        try:
            session.commit()
        except StaleDataError:
            session.rollback()
            self.logger.warning("coryat.concurrent_update", game_id=game_id)
            raise ConflictError("Game was updated by another request; reload and retry")

    def serialize_game(self, game: CoryatGame) -> Dict[str, Any]:
        board = self.load_board(game)
        return {
            "id": game.id,
            "started_at": _isoformat(game.started_at),
            "completed_at": _isoformat(game.completed_at),
            "game_board": board.model_dump(mode="json"),
            "jeopardy_score": game.jeopardy_score,
            "double_j_score": game.double_j_score,
            "total_score": board.total_score,
            "final_score": game.final_score,
            "current_round": game.current_round,
            "questions_answered": game.questions_answered,
            "questions_remaining": board.questions_remaining,
        }

    def create_game(self, user_id: int) -> Dict[str, Any]:
        """Generate a board and start a new game"""
        with self.db.get_session() as session:
            board = BoardBuilder(session, self.rng, self.category_pool_size).build()
            game = CoryatGame(user_id=user_id, started_at=utcnow())
            self._store_board(game, board)
            session.add(game)
            session.commit()
            session.refresh(game)

            self.logging_service.log_crud_operation(
                "create",
                "coryat_game",
                game.id,
                user_id=user_id,
                available=board.questions_remaining,
            )
            return {
                "success": True,
                "game_id": game.id,
                "game_board": board.model_dump(mode="json"),
            }

    def get_game(self, user_id: int, game_id: int) -> Dict[str, Any]:
        with self.db.get_session() as session:
            return self.serialize_game(self._get_owned_game(session, user_id, game_id))

    def answer(
        self,
        user_id: int,
        game_id: int,
        round_name: str,
        col: Optional[int],
        row: Optional[int],
        response: str,
    ) -> Dict[str, Any]:
        """Apply one response to one cell"""
        round_enum = parse_round(round_name)
        response_enum = parse_response(response)

        with self.db.get_session() as session:
            game = self._get_owned_game(session, user_id, game_id)
            if game.completed_at is not None:
                raise ConflictError("Game already completed")

            board = self.load_board(game)

            if round_enum == RoundName.FINAL_JEOPARDY:
                board = board.model_copy(
                    update={"final_jeopardy": answer_final(board.final_jeopardy, response_enum)}
                )
                self._store_board(game, board)
                self._commit(session, game_id)
                return {
                    "success": True,
                    "score_change": 0,
                    "current_round_score": 0,
                    "total_score": board.total_score,
                    "questions_remaining": board.questions_remaining,
                    "round_complete": True,
                    "questions_answered": board.questions_answered,
                    "daily_double": False,
                }

            if col is None or row is None:
                raise NotFoundError("Question not found on board")
            round_board = board.scored_round(round_enum)
            cell = answer_cell(round_board.cell(col, row), response_enum)
            round_board = round_board.replace_cell(cell)
            board = board.with_round(round_enum, round_board)

            self._store_board(game, board)
            self._commit(session, game_id)

            return {
                "success": True,
                "score_change": score_delta(cell),
                "current_round_score": round_board.score,
                "total_score": board.total_score,
                "questions_remaining": round_board.remaining,
                "round_complete": round_board.complete,
                "questions_answered": board.questions_answered,
                "daily_double": cell.daily_double,
            }

    def complete_game(self, user_id: int, game_id: int) -> Dict[str, Any]:
        """Freeze the final score"""
        with self.db.get_session() as session:
            game = self._get_owned_game(session, user_id, game_id)
            if game.completed_at is not None:
                raise ConflictError("Game already completed")

            board = self.load_board(game)
            game.final_score = board.total_score
            game.completed_at = utcnow()
            self._store_board(game, board)
            self._commit(session, game_id)

            self.logging_service.log_crud_operation(
                "complete",
                "coryat_game",
                game_id,
                user_id=user_id,
                final_score=game.final_score,
            )
            return {
                "success": True,
                "summary": {
                    "final_score": game.final_score,
                    "jeopardy_score": game.jeopardy_score,
                    "double_j_score": game.double_j_score,
                    **summarize(board),
                    "completed_at": _isoformat(game.completed_at),
                },
            }

    def get_history(self, user_id: int) -> Dict[str, Any]:
        """Completed games newest first, aggregate stats and the open game"""
        with self.db.get_session() as session:
            games = (
                session.execute(
                    select(CoryatGame)
                    .where(
                        CoryatGame.user_id == user_id,
                        CoryatGame.completed_at.isnot(None),
                    )
                    .order_by(CoryatGame.completed_at.desc(), CoryatGame.id.desc())
                )
                .scalars()
                .all()
            )
            scores = [g.final_score or 0 for g in games]

            incomplete = session.execute(
                select(CoryatGame)
                .where(CoryatGame.user_id == user_id, CoryatGame.completed_at.is_(None))
                .order_by(CoryatGame.started_at.desc(), CoryatGame.id.desc())
                .limit(1)
            ).scalar_one_or_none()

            return {
                "games": [
                    {
                        "id": g.id,
                        "started_at": _isoformat(g.started_at),
                        "completed_at": _isoformat(g.completed_at),
                        "final_score": g.final_score,
                        "jeopardy_score": g.jeopardy_score,
                        "double_j_score": g.double_j_score,
                        "questions_answered": g.questions_answered,
                    }
                    for g in games
                ],
                "statistics": {
                    "total_games": len(games),
                    "average_score": (
                        round_half_up(sum(scores) / len(scores)) if scores else 0
                    ),
                    "best_score": max(scores) if scores else None,
                    "worst_score": min(scores) if scores else None,
                    "trend": score_trend(scores),
                },
                "incomplete_game": (
                    {
                        "id": incomplete.id,
                        "started_at": _isoformat(incomplete.started_at),
                        "current_round": incomplete.current_round,
                        "questions_answered": incomplete.questions_answered,
                        "total_score": incomplete.jeopardy_score
                        + incomplete.double_j_score,
                    }
                    if incomplete
                    else None
                ),
            }


_coryat_service: Optional[CoryatService] = None


def get_coryat_service() -> CoryatService:
    """Get or create singleton Coryat service instance"""
    global _coryat_service
    if _coryat_service is None:
        _coryat_service = CoryatService()
    return _coryat_service


def reset_coryat_service() -> None:
    global _coryat_service
    _coryat_service = None
