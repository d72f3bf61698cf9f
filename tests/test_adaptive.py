"""Tests for adaptive question selection and answer recording."""
import random
import pytest
from app.db.models import LearningEvent, Mastery
from app.services.adaptive import build_options, record_answer, select_next_question
from app.services.errors import NotFoundError, ValidationError
from app.services.mastery import SmoothedMasteryPolicy
from app.services.storage import DatabaseStorage


def set_mastery(db, context, topic_id, score):
    db.add(Mastery(user_id=context.student_id, topic_id=topic_id, score=score))
    db.commit()


class TestSelectNextQuestion:
    """Tests for picking the next question."""

    def test_new_student_gets_difficulty_one(self, test_db, student_context, topic_factory):
        topic = topic_factory([1, 2, 3, 4, 5])
        storage = DatabaseStorage(test_db)

        for _ in range(20):
            question = select_next_question(storage, storage, student_context, topic.id)
            assert question.difficulty == 1

    def test_full_mastery_gets_difficulty_five(self, test_db, student_context, topic_factory):
        topic = topic_factory([1, 2, 3, 4, 5, 5])
        set_mastery(test_db, student_context, topic.id, 1.0)
        storage = DatabaseStorage(test_db)

        for _ in range(20):
            question = select_next_question(storage, storage, student_context, topic.id)
            assert question.difficulty == 5

    def test_middle_mastery_targets_middle_band(self, test_db, student_context, topic_factory):
        topic = topic_factory([1, 3, 3, 5])
        set_mastery(test_db, student_context, topic.id, 0.5)
        storage = DatabaseStorage(test_db)

        question = select_next_question(storage, storage, student_context, topic.id)
        assert question.difficulty == 3

    def test_falls_back_to_whole_topic(self, test_db, student_context, topic_factory):
        """No question at the target difficulty should fall back to any question in the topic."""
        topic = topic_factory([2, 4])
        storage = DatabaseStorage(test_db)

        seen = set()
        for seed in range(50):
            question = select_next_question(
                storage, storage, student_context, topic.id, rng=random.Random(seed)
            )
            assert question.topic_id == topic.id
            seen.add(question.difficulty)

        assert seen == {2, 4}

    def test_only_returns_questions_from_requested_topic(self, test_db, student_context, topic_factory):
        topic_a = topic_factory([1, 1], slug="alpha")
        topic_b = topic_factory([1, 1], slug="beta")
        storage = DatabaseStorage(test_db)

        for _ in range(20):
            assert select_next_question(storage, storage, student_context, topic_a.id).topic_id == topic_a.id
            assert select_next_question(storage, storage, student_context, topic_b.id).topic_id == topic_b.id

    def test_choice_is_uniform_among_candidates(self, test_db, student_context, topic_factory):
        topic = topic_factory([1, 1, 1, 4])
        storage = DatabaseStorage(test_db)

        rng = random.Random(1234)
        picks = [
            select_next_question(storage, storage, student_context, topic.id, rng=rng).id
            for _ in range(300)
        ]

        assert len(set(picks)) == 3

    def test_empty_topic_raises_not_found(self, test_db, student_context, topic_factory):
        topic = topic_factory([])
        storage = DatabaseStorage(test_db)

        with pytest.raises(NotFoundError):
            select_next_question(storage, storage, student_context, topic.id)

    def test_unknown_topic_raises_not_found(self, test_db, student_context):
        storage = DatabaseStorage(test_db)

        with pytest.raises(NotFoundError):
            select_next_question(storage, storage, student_context, 999)


class TestRecordAnswer:
    """Tests for grading answers and updating mastery."""

    def _record(self, db, context, question_id, answer, time_taken=4, policy=None):
        storage = DatabaseStorage(db)
        outcome = record_answer(storage, storage, storage, context, question_id, answer, time_taken, policy=policy)
        db.commit()
        return outcome

    def test_correct_answer(self, test_db, student_context, topic_factory):
        topic = topic_factory([1])
        question = topic.questions[0]

        outcome = self._record(test_db, student_context, question.id, question.correct_answer)

        assert outcome.correct is True
        assert outcome.correct_answer == question.correct_answer
        assert outcome.coins_earned == 10
        assert outcome.new_mastery == 1.0
        assert outcome.feedback == "Great job!"

        mastery = DatabaseStorage(test_db).get_mastery(student_context.student_id, topic.id)
        assert mastery.score == 1.0

    def test_incorrect_answer_uses_explanation(self, test_db, student_context, topic_factory):
        topic = topic_factory([1])
        question = topic.questions[0]
        set_mastery(test_db, student_context, topic.id, 1.0)

        outcome = self._record(test_db, student_context, question.id, question.distractors[0])

        assert outcome.correct is False
        assert outcome.coins_earned == 0
        assert outcome.new_mastery == 0.0
        assert outcome.feedback == question.explanation

        mastery = DatabaseStorage(test_db).get_mastery(student_context.student_id, topic.id)
        assert mastery.score == 0.0

    def test_incorrect_answer_without_explanation(self, test_db, student_context, topic_factory):
        topic = topic_factory([1, 1])
        question = topic.questions[1]
        assert question.explanation is None

        outcome = self._record(test_db, student_context, question.id, "nope")

        assert outcome.feedback == "Keep trying!"

    def test_comparison_is_case_sensitive(self, test_db, student_context, topic_factory):
        """Answers are compared exactly, without trimming or case folding."""
        topic = topic_factory([1])
        question = topic.questions[0]

        assert self._record(test_db, student_context, question.id, question.correct_answer.upper()).correct is False
        assert self._record(test_db, student_context, question.id, f" {question.correct_answer}").correct is False

    def test_each_call_appends_one_event(self, test_db, student_context, topic_factory):
        topic = topic_factory([1])
        question = topic.questions[0]

        self._record(test_db, student_context, question.id, question.correct_answer, time_taken=3)
        self._record(test_db, student_context, question.id, question.correct_answer, time_taken=7)

        events = test_db.query(LearningEvent).order_by(LearningEvent.id).all()
        assert len(events) == 2
        assert [e.time_taken for e in events] == [3, 7]
        assert all(e.is_correct for e in events)
        assert all(e.user_id == student_context.student_id for e in events)

    def test_mastery_row_is_reused(self, test_db, student_context, topic_factory):
        topic = topic_factory([1])
        question = topic.questions[0]

        self._record(test_db, student_context, question.id, question.correct_answer)
        self._record(test_db, student_context, question.id, "wrong")

        rows = test_db.query(Mastery).filter(Mastery.user_id == student_context.student_id).all()
        assert len(rows) == 1
        assert rows[0].score == 0.0

    def test_smoothed_policy(self, test_db, student_context, topic_factory):
        topic = topic_factory([1])
        question = topic.questions[0]
        policy = SmoothedMasteryPolicy(alpha=0.5)

        first = self._record(test_db, student_context, question.id, question.correct_answer, policy=policy)
        second = self._record(test_db, student_context, question.id, question.correct_answer, policy=policy)

        assert first.new_mastery == pytest.approx(0.5)
        assert second.new_mastery == pytest.approx(0.75)

    def test_unknown_question(self, test_db, student_context):
        with pytest.raises(NotFoundError):
            self._record(test_db, student_context, 12345, "x")

        assert test_db.query(LearningEvent).count() == 0

    def test_negative_time_rejected(self, test_db, student_context, topic_factory):
        topic = topic_factory([1])

        with pytest.raises(ValidationError):
            self._record(test_db, student_context, topic.questions[0].id, "x", time_taken=-1)


class TestScenarios:

    def test_new_student_answers_easiest_question(self, test_db, student_context, topic_factory):
        topic = topic_factory([3, 1, 2])
        storage = DatabaseStorage(test_db)

        question = select_next_question(storage, storage, student_context, topic.id)
        assert question.difficulty == 1

        outcome = record_answer(storage, storage, storage, student_context, question.id, question.correct_answer, 5)
        test_db.commit()

        assert outcome.new_mastery == 1.0
        assert outcome.coins_earned == 10

        # Next pick jumps to the hardest band, falling back since none exists
        next_question = select_next_question(storage, storage, student_context, topic.id)
        assert next_question.topic_id == topic.id


class TestBuildOptions:

    def test_options_are_answer_plus_distractors(self):
        for seed in range(20):
            options = build_options("8", ["7", "9", "6"], random.Random(seed))
            assert sorted(options) == ["6", "7", "8", "9"]

    def test_order_varies(self):
        orders = {tuple(build_options("a", ["b", "c", "d"], random.Random(seed))) for seed in range(30)}
        assert len(orders) > 1

    def test_does_not_mutate_distractors(self):
        distractors = ["b", "c"]
        build_options("a", distractors, random.Random(0))
        assert distractors == ["b", "c"]


class TestConcurrentSessions:
    """Mastery writes from separate sessions are last write wins."""

    def test_interleaved_answers(self, session_factory, student_context, topic_factory):
        topic = topic_factory([1])
        question_id = topic.questions[0].id
        first_tab = session_factory()
        second_tab = session_factory()
        try:
            a = DatabaseStorage(first_tab)
            b = DatabaseStorage(second_tab)

            record_answer(a, a, a, student_context, question_id, "right-0", 2)
            first_tab.commit()
            record_answer(b, b, b, student_context, question_id, "wrong", 3)
            second_tab.commit()

            check = session_factory()
            mastery = DatabaseStorage(check).get_mastery(student_context.student_id, topic.id)
            assert mastery.score == 0.0
            assert check.query(LearningEvent).count() == 2
            check.close()
        finally:
            first_tab.close()
            second_tab.close()
