"""
Tests for Coryat board generation and game play
"""

import random
from datetime import date

import pytest

from jeopardy_trainer.core.exceptions import (
    ConflictError,
    DatabaseError,
    NotFoundError,
    ValidationError,
)
from jeopardy_trainer.core.models import CoryatGame, Question
from jeopardy_trainer.core.services.coryat_service import BoardBuilder, CoryatService
from jeopardy_trainer.core.services.stats_service import round_half_up


@pytest.fixture
def coryat_service():
    return CoryatService(rng=random.Random(11))


def available_cells(game_board, round_name):
    return [c for c in game_board[round_name]["cells"] if c["question_id"] is not None]


def play_round(service, user_id, game_id, game_board, round_name, response="correct"):
    result = None
    for cell in available_cells(game_board, round_name):
        result = service.answer(
            user_id, game_id, round_name, cell["col"], cell["row"], response
        )
    return result


class TestBoardBuilder:
    def test_full_board_from_stocked_catalog(self, board_catalog, db_service):
        with db_service.get_session() as session:
            board = BoardBuilder(session, random.Random(1)).build()

        assert len(board.jeopardy.categories) == 6
        assert len(board.double_jeopardy.categories) == 6
        assert not set(board.jeopardy.categories) & set(board.double_jeopardy.categories)
        assert board.questions_remaining == 60
        assert board.final_jeopardy.category == "U.S. STATES"
        assert board.final_jeopardy.question_id is not None

        ids = [
            c.question_id
            for r in (board.jeopardy, board.double_jeopardy)
            for c in r.cells
        ] + [board.final_jeopardy.question_id]
        assert len(ids) == len(set(ids))

    def test_daily_double_counts(self, board_catalog, db_service):
        with db_service.get_session() as session:
            board = BoardBuilder(session, random.Random(2)).build()

        assert sum(c.daily_double for c in board.jeopardy.cells) == 1
        assert sum(c.daily_double for c in board.double_jeopardy.cells) == 2

    def test_cell_values_follow_round(self, board_catalog, db_service):
        with db_service.get_session() as session:
            board = BoardBuilder(session, random.Random(3)).build()
            for round_board, round_number in (
                (board.jeopardy, 1),
                (board.double_jeopardy, 2),
            ):
                for cell in round_board.cells:
                    question = session.get(Question, cell.question_id)
                    assert question.clue_value == cell.value
                    assert question.round == round_number

    def test_not_enough_categories(self, make_question, db_service):
        for i in range(5):
            make_question(category=f"ONLY {i}")

        with db_service.get_session() as session:
            with pytest.raises(NotFoundError, match="Not enough categories"):
                BoardBuilder(session, random.Random(0)).build()

    def test_missing_values_leave_empty_cells(self, make_question, db_service):
        for i in range(12):
            make_question(category=f"SPARSE {i}", clue_value=200, round=1)

        with db_service.get_session() as session:
            board = BoardBuilder(session, random.Random(0)).build()

        filled = [c for c in board.jeopardy.cells if c.available]
        assert len(filled) == 6
        assert all(c.value == 200 for c in filled)
        # Daily Doubles only land on playable cells
        assert all(c.available for c in board.jeopardy.cells if c.daily_double)

    def test_pre_2001_values_are_normalized(self, make_question, db_service):
        for i in range(6):
            make_question(
                category=f"VINTAGE {i}",
                clue_value=100,
                round=None,
                air_date=date(1990, 9, 10),
            )

        with db_service.get_session() as session:
            builder = BoardBuilder(session, random.Random(0))
            question_id = builder.find_question_for_value("VINTAGE 0", 200, 1)

        assert question_id is not None

    def test_valueless_round_clue_fills_cell(self, make_question, db_service):
        question = make_question(category="DAILY DOUBLE ERA", clue_value=None, round=1)

        with db_service.get_session() as session:
            builder = BoardBuilder(session, random.Random(0))
            assert builder.find_question_for_value("DAILY DOUBLE ERA", 800, 1) == question.id

    def test_archived_clues_skipped(self, make_question, db_service):
        make_question(category="ARCHIVED ONLY", archived=True)

        with db_service.get_session() as session:
            builder = BoardBuilder(session, random.Random(0))
            assert builder.find_question_for_value("ARCHIVED ONLY", 200, 1) is None


class TestCoryatService:
    def test_create_game(self, coryat_service, board_catalog, test_user, db_service):
        created = coryat_service.create_game(test_user.id)

        assert created["success"] is True
        assert set(created["game_board"]) == {
            "jeopardy",
            "double_jeopardy",
            "final_jeopardy",
        }
        with db_service.get_session() as session:
            game = session.get(CoryatGame, created["game_id"])
            assert game.current_round == 1
            assert game.final_score is None
            assert game.questions_answered == 0

    def test_score_is_sum_of_answered_cells(
        self, coryat_service, board_catalog, test_user
    ):
        created = coryat_service.create_game(test_user.id)
        game_id = created["game_id"]
        rng = random.Random(99)

        expected = 0
        for cell in available_cells(created["game_board"], "jeopardy")[:12]:
            response = rng.choice(["correct", "incorrect", "pass"])
            result = coryat_service.answer(
                test_user.id, game_id, "jeopardy", cell["col"], cell["row"], response
            )
            expected += {"correct": cell["value"], "incorrect": -cell["value"], "pass": 0}[
                response
            ]
            assert result["current_round_score"] == expected
            assert result["total_score"] == expected

        game = coryat_service.get_game(test_user.id, game_id)
        assert game["jeopardy_score"] == expected
        assert game["questions_answered"] == 12

    def test_answer_result_fields(self, coryat_service, board_catalog, test_user):
        created = coryat_service.create_game(test_user.id)
        cell = available_cells(created["game_board"], "double_jeopardy")[0]

        result = coryat_service.answer(
            test_user.id,
            created["game_id"],
            "double_jeopardy",
            cell["col"],
            cell["row"],
            "incorrect",
        )

        assert result["score_change"] == -cell["value"]
        assert result["questions_remaining"] == 29
        assert result["round_complete"] is False
        assert result["daily_double"] == cell["daily_double"]

    def test_round_completion_independent_of_final(
        self, coryat_service, board_catalog, test_user
    ):
        created = coryat_service.create_game(test_user.id)
        game_id = created["game_id"]

        result = play_round(
            coryat_service, test_user.id, game_id, created["game_board"], "jeopardy"
        )
        assert result["questions_remaining"] == 0
        assert result["round_complete"] is True
        assert coryat_service.get_game(test_user.id, game_id)["current_round"] == 2

        result = play_round(
            coryat_service,
            test_user.id,
            game_id,
            created["game_board"],
            "double_jeopardy",
            response="pass",
        )
        assert result["round_complete"] is True

        game = coryat_service.get_game(test_user.id, game_id)
        assert game["questions_remaining"] == 0
        assert game["current_round"] == 3
        assert game["game_board"]["final_jeopardy"]["answered"] is None

    def test_final_jeopardy_never_scores(self, coryat_service, board_catalog, test_user):
        created = coryat_service.create_game(test_user.id)
        game_id = created["game_id"]

        result = coryat_service.answer(
            test_user.id, game_id, "final_jeopardy", None, None, "correct"
        )
        assert result["score_change"] == 0
        assert result["total_score"] == 0
        assert result["questions_remaining"] == 60

        with pytest.raises(ConflictError):
            coryat_service.answer(
                test_user.id, game_id, "final_jeopardy", None, None, "incorrect"
            )

    def test_same_cell_twice_rejected(self, coryat_service, board_catalog, test_user):
        created = coryat_service.create_game(test_user.id)
        cell = available_cells(created["game_board"], "jeopardy")[0]
        args = (test_user.id, created["game_id"], "jeopardy", cell["col"], cell["row"])

        coryat_service.answer(*args, "correct")
        with pytest.raises(ConflictError, match="already answered"):
            coryat_service.answer(*args, "incorrect")

        game = coryat_service.get_game(test_user.id, created["game_id"])
        assert game["jeopardy_score"] == cell["value"]

    def test_invalid_inputs(self, coryat_service, board_catalog, test_user):
        game_id = coryat_service.create_game(test_user.id)["game_id"]

        with pytest.raises(ValidationError, match="Invalid round"):
            coryat_service.answer(test_user.id, game_id, "bonus", 0, 0, "correct")
        with pytest.raises(ValidationError, match="Invalid response"):
            coryat_service.answer(test_user.id, game_id, "jeopardy", 0, 0, "skip")
        with pytest.raises(NotFoundError, match="not found on board"):
            coryat_service.answer(test_user.id, game_id, "jeopardy", 7, 0, "correct")
        with pytest.raises(NotFoundError, match="not found on board"):
            coryat_service.answer(test_user.id, game_id, "jeopardy", None, 0, "correct")

    def test_games_are_private(self, coryat_service, board_catalog, test_user, make_user):
        game_id = coryat_service.create_game(test_user.id)["game_id"]
        intruder = make_user("intruder")

        with pytest.raises(NotFoundError, match="Game not found"):
            coryat_service.get_game(intruder.id, game_id)
        with pytest.raises(NotFoundError):
            coryat_service.answer(intruder.id, game_id, "jeopardy", 0, 0, "correct")

    def test_complete_twice_rejected(self, coryat_service, board_catalog, test_user):
        created = coryat_service.create_game(test_user.id)
        game_id = created["game_id"]
        cell = available_cells(created["game_board"], "jeopardy")[0]
        coryat_service.answer(
            test_user.id, game_id, "jeopardy", cell["col"], cell["row"], "correct"
        )

        summary = coryat_service.complete_game(test_user.id, game_id)["summary"]
        assert summary["final_score"] == cell["value"]
        assert summary["correct"] == 1
        assert summary["questions_answered"] == 1

        with pytest.raises(ConflictError, match="already completed"):
            coryat_service.complete_game(test_user.id, game_id)
        with pytest.raises(ConflictError, match="already completed"):
            coryat_service.answer(test_user.id, game_id, "jeopardy", 0, 1, "correct")

        assert coryat_service.get_game(test_user.id, game_id)["final_score"] == cell["value"]

    def test_history_statistics(self, coryat_service, board_catalog, test_user):
        scores = []
        for responses in (["correct"] * 3, ["incorrect"], ["correct", "pass"]):
            created = coryat_service.create_game(test_user.id)
            cells = available_cells(created["game_board"], "jeopardy")
            for cell, response in zip(cells, responses):
                coryat_service.answer(
                    test_user.id,
                    created["game_id"],
                    "jeopardy",
                    cell["col"],
                    cell["row"],
                    response,
                )
            scores.append(
                coryat_service.complete_game(test_user.id, created["game_id"])[
                    "summary"
                ]["final_score"]
            )
        open_game = coryat_service.create_game(test_user.id)

        history = coryat_service.get_history(test_user.id)
        stats = history["statistics"]
        assert stats["total_games"] == 3
        assert stats["best_score"] == max(scores)
        assert stats["worst_score"] == min(scores)
        assert stats["average_score"] == round_half_up(sum(scores) / 3)
        assert stats["trend"] in ("improving", "declining", "stable")
        assert {g["final_score"] for g in history["games"]} == set(scores)
        assert history["incomplete_game"]["id"] == open_game["game_id"]

    def test_empty_history(self, coryat_service, test_user):
        history = coryat_service.get_history(test_user.id)
        assert history["games"] == []
        assert history["statistics"] == {
            "total_games": 0,
            "average_score": 0,
            "best_score": None,
            "worst_score": None,
            "trend": None,
        }
        assert history["incomplete_game"] is None

    def test_corrupt_board_reported(self, coryat_service, test_user, db_service):
        with db_service.get_session() as session:
            game = CoryatGame(user_id=test_user.id, game_board={"jeopardy": "nope"})
            session.add(game)
            session.commit()
            game_id = game.id

        with pytest.raises(DatabaseError):
            coryat_service.get_game(test_user.id, game_id)

    def test_concurrent_answer_conflict(
        self, coryat_service, board_catalog, test_user, db_service
    ):
        created = coryat_service.create_game(test_user.id)
        game_id = created["game_id"]
        cell = available_cells(created["game_board"], "jeopardy")[0]

        # A second writer read the game before the first answer landed
        with db_service.get_session() as session:
            stale_game = session.get(CoryatGame, game_id)

        coryat_service.answer(
            test_user.id, game_id, "jeopardy", cell["col"], cell["row"], "correct"
        )

        with db_service.get_session() as session:
            session.add(stale_game)
            stale_game.questions_answered = 99
            with pytest.raises(ConflictError):
                coryat_service._commit(session, game_id)

        assert coryat_service.get_game(test_user.id, game_id)["questions_answered"] == 1
