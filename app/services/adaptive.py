"""Adaptive question selection and answer recording."""
import logging
import random
from dataclasses import dataclass
from typing import List, Optional
from app.db.models import Question
from app.services.errors import NotFoundError, ValidationError
from app.services.mastery import BinaryMasteryPolicy, MasteryPolicy, target_difficulty
from app.services.storage import EventLog, MasteryStore, QuestionStore
from app.constants import (
    COINS_PER_CORRECT,
    CORRECT_FEEDBACK,
    FALLBACK_FEEDBACK,
    DEFAULT_MASTERY,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StudentContext:
    """The authenticated student a learning call acts for."""
    student_id: int
    role: str


@dataclass(frozen=True)
class AnswerOutcome:
    """Result of grading one answer."""
    correct: bool
    correct_answer: str
    coins_earned: int
    new_mastery: float
    feedback: str


def current_mastery(store: MasteryStore, context: StudentContext, topic_id: int) -> float:
    """Mastery score for the student and topic, 0.0 when no record exists."""
    record = store.get_mastery(context.student_id, topic_id)
    return record.score if record is not None else DEFAULT_MASTERY


def select_next_question(
    questions: QuestionStore,
    masteries: MasteryStore,
    context: StudentContext,
    topic_id: int,
    rng: Optional[random.Random] = None
) -> Question:
    """
    Pick the next question for a student in a topic.

    Strategy:
    - Map current mastery to a target difficulty
    - Choose uniformly among questions at that difficulty
    - If none match, choose uniformly among all questions in the topic

    Repeats are possible; nothing remembers what was asked last.

    Args:
        questions: Question store
        masteries: Mastery store
        context: Student the question is for
        topic_id: Topic to draw from
        rng: Random source (defaults to the module-level generator)

    Returns:
        Selected Question

    Raises:
        NotFoundError: If the topic has no questions
    """
    rng = rng or random
    score = current_mastery(masteries, context, topic_id)
    difficulty = target_difficulty(score)

    all_questions = questions.list_questions_by_topic(topic_id)
    if not all_questions:
        raise NotFoundError(f"No questions found for topic {topic_id}")

    candidates = [q for q in all_questions if q.difficulty == difficulty]
    if not candidates:
        logger.debug(
            f"No difficulty {difficulty} questions in topic {topic_id}, "
            f"falling back to all {len(all_questions)}",
            extra={"student_id": context.student_id, "topic_id": topic_id}
        )
        candidates = all_questions

    return rng.choice(candidates)


def record_answer(
    questions: QuestionStore,
    masteries: MasteryStore,
    events: EventLog,
    context: StudentContext,
    question_id: int,
    answer: str,
    time_taken: int,
    policy: Optional[MasteryPolicy] = None
) -> AnswerOutcome:
    """
    Grade an answer, log it and move the student's topic mastery.

    Correctness is exact, case-sensitive string equality with the stored
    correct answer. Each call appends exactly one learning event and writes
    one mastery value; there is no deduplication.

    Args:
        questions: Question store
        masteries: Mastery store
        events: Learning event log
        context: Student who answered
        question_id: Question being answered
        answer: Submitted option text
        time_taken: Whole seconds spent on the question
        policy: Mastery update policy (defaults to binary snap)

    Returns:
        AnswerOutcome

    Raises:
        NotFoundError: If the question does not exist
        ValidationError: If time_taken is negative
    """
    if time_taken < 0:
        raise ValidationError(f"time_taken must be >= 0, got {time_taken}")

    question = questions.get_question(question_id)
    if question is None:
        raise NotFoundError(f"Question {question_id} not found")

    policy = policy or BinaryMasteryPolicy()
    is_correct = answer == question.correct_answer

    events.append(context.student_id, question.id, is_correct, time_taken)

    previous = masteries.get_mastery(context.student_id, question.topic_id)
    new_score = policy.update(previous.score if previous is not None else None, is_correct)
    masteries.upsert_mastery(context.student_id, question.topic_id, new_score)

    logger.info(
        f"Answer recorded: correct={is_correct}, mastery={new_score:.2f}",
        extra={
            "student_id": context.student_id,
            "topic_id": question.topic_id,
            "question_id": question.id,
        }
    )

    if is_correct:
        feedback = CORRECT_FEEDBACK
    else:
        feedback = question.explanation or FALLBACK_FEEDBACK

    return AnswerOutcome(
        correct=is_correct,
        correct_answer=question.correct_answer,
        coins_earned=COINS_PER_CORRECT if is_correct else 0,
        new_mastery=new_score,
        feedback=feedback
    )


def build_options(correct_answer: str, distractors: List[str], rng: Optional[random.Random] = None) -> List[str]:
    """
    Answer options for one presentation of a question.

    Returns the correct answer plus every distractor in random order.
    """
    rng = rng or random
    options = [correct_answer] + list(distractors)
    rng.shuffle(options)
    return options
