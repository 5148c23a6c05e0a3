"""
Tests for recency-biased question selection and archiving
"""

import math
import random
from datetime import date

import pytest

from jeopardy_trainer.core.exceptions import NotFoundError, ValidationError
from jeopardy_trainer.core.services.count_cache import TTLCache
from jeopardy_trainer.core.services.question_service import (
    QuestionService,
    exponential_offset,
    normalize_game_types,
)


class FixedRandom(random.Random):
    """random() always returns the same draw"""

    def __init__(self, value):
        super().__init__(0)
        self.value = value

    def random(self):
        return self.value


@pytest.fixture
def question_service():
    return QuestionService(rng=random.Random(7))


class TestExponentialOffset:
    def test_zero_draw_is_newest_row(self):
        assert exponential_offset(0.0, 100) == 0

    def test_offset_stays_in_range(self):
        for u in (0.1, 0.5, 0.9, 0.999, 0.9999999):
            assert 0 <= exponential_offset(u, 50) < 50

    def test_offset_matches_inverse_cdf(self):
        u = 0.5
        expected = math.floor(-math.log(1 - u) / 3.5 * 1000)
        assert exponential_offset(u, 1000) == expected

    def test_tail_clamped_to_last_row(self):
        # -ln(1 - u) / lambda > 1 for u this close to 1
        assert exponential_offset(0.99999, 10) == 9

    def test_single_row(self):
        assert exponential_offset(0.7, 1) == 0

    def test_empty_set_rejected(self):
        with pytest.raises(ValueError):
            exponential_offset(0.5, 0)

    def test_recent_rows_favored(self):
        rng = random.Random(1234)
        offsets = [exponential_offset(rng.random(), 100) for _ in range(2000)]
        newest_quarter = sum(1 for o in offsets if o < 25)
        oldest_quarter = sum(1 for o in offsets if o >= 75)
        assert newest_quarter > 4 * oldest_quarter


class TestNormalizeGameTypes:
    def test_comma_string(self):
        assert normalize_game_types("teen, KIDS,") == ["kids", "teen"]

    def test_none_and_empty(self):
        assert normalize_game_types(None) == []
        assert normalize_game_types("") == []

    def test_unknown_tag(self):
        with pytest.raises(ValidationError, match="Invalid filters"):
            normalize_game_types(["kids", "retirees"])


class TestQuestionService:
    def test_no_questions_found(self, question_service):
        with pytest.raises(NotFoundError, match="No questions found"):
            question_service.get_random_question()

    def test_zero_draw_returns_newest(self, make_question):
        make_question(air_date=date(1999, 5, 1), answer="What is old?")
        newest = make_question(air_date=date(2023, 5, 1), answer="What is new?")
        make_question(air_date=date(2010, 5, 1), answer="What is middle?")

        service = QuestionService(rng=FixedRandom(0.0))
        assert service.get_random_question()["id"] == newest.id

    def test_tail_draw_returns_oldest(self, make_question):
        oldest = make_question(air_date=date(1999, 5, 1))
        make_question(air_date=date(2023, 5, 1))

        service = QuestionService(rng=FixedRandom(0.99999))
        assert service.get_random_question()["id"] == oldest.id

    def test_unplayable_rows_never_served(self, question_service, make_question):
        make_question(clue=None)
        make_question(answer=None)
        make_question(classifier_category=None)
        make_question(air_date=None)
        make_question(archived=True)

        with pytest.raises(NotFoundError):
            question_service.get_random_question()

    def test_category_filter(self, question_service, make_question):
        make_question(classifier_category="History")
        science = make_question(classifier_category="Science")

        for _ in range(5):
            picked = question_service.get_random_question(category="Science")
            assert picked["id"] == science.id

        # "all" means no category filter
        assert question_service.get_random_question(category="all")

    def test_game_type_filter(self, question_service, make_question):
        make_question(game_type=None)
        teen = make_question(game_type="teen")

        picked = question_service.get_random_question(game_types="teen")
        assert picked["id"] == teen.id
        assert picked["game_type"] == "teen"

        with pytest.raises(NotFoundError):
            question_service.get_random_question(game_types="college")

    def test_invalid_game_type_rejected(self, question_service, make_question):
        make_question()
        with pytest.raises(ValidationError):
            question_service.get_random_question(game_types="grownups")

    def test_count_cached_per_filter(self, make_question):
        make_question()
        cache = TTLCache(ttl_seconds=300)
        service = QuestionService(count_cache=cache, rng=random.Random(3))

        assert service.count_questions() == 1
        make_question()
        # Still the cached figure until the TTL passes
        assert service.count_questions() == 1
        assert service.count_questions(category="Food & Drink") == 2

    def test_stale_count_recovers(self, make_question):
        make_question()
        make_question()
        cache = TTLCache(ttl_seconds=300)
        cache.set(QuestionService.count_key(None, []), 50)
        service = QuestionService(count_cache=cache, rng=FixedRandom(0.99999))

        # Offset 49 overshoots the two real rows; the service recounts once
        assert service.get_random_question()["id"]
        assert cache.get(QuestionService.count_key(None, [])) == 2

    def test_archive_hides_and_unarchive_restores(self, question_service, make_question):
        question = make_question()

        archived = question_service.archive_question(question.id, user_id=None)
        assert archived["archived"] is True
        assert archived["archived_reason"] == "Missing media or unanswerable"
        assert archived["archived_at"]
        with pytest.raises(NotFoundError):
            question_service.get_random_question()

        listed = question_service.list_archived()
        assert [q["id"] for q in listed] == [question.id]

        restored = question_service.unarchive_question(question.id)
        assert restored["archived"] is False
        assert restored["archived_reason"] is None
        assert restored["archived_at"] is None
        assert question_service.get_random_question()["id"] == question.id
        assert question_service.list_archived() == []

    def test_archive_custom_reason(self, question_service, make_question):
        question = make_question()
        archived = question_service.archive_question(question.id, "Audio clue")
        assert archived["archived_reason"] == "Audio clue"

    def test_archive_unknown_question(self, question_service):
        with pytest.raises(NotFoundError):
            question_service.archive_question(999)
        with pytest.raises(NotFoundError):
            question_service.unarchive_question(999)

    def test_list_categories(self, question_service, make_question):
        make_question(classifier_category="Science")
        make_question(classifier_category="History")
        make_question(classifier_category="History")
        make_question(classifier_category=None)

        assert question_service.list_categories() == [
            {"name": "History", "count": 2},
            {"name": "Science", "count": 1},
        ]

    def test_get_question(self, question_service, make_question):
        question = make_question()
        fetched = question_service.get_question(question.id)
        assert fetched["answer"] == "What is tequila?"
        assert fetched["air_date"] == "2020-01-06"

        with pytest.raises(NotFoundError, match="Question not found"):
            question_service.get_question(question.id + 100)
