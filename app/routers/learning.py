"""Topic listing, next-question and answer submission endpoints."""
import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import Field
from sqlalchemy.orm import Session
from app.config import settings
from app.db.database import get_db
from app.db.models import Subject
from app.rate_limit import limiter
from app.routers.auth import CamelModel, get_student_context
from app.services.adaptive import StudentContext, current_mastery, record_answer, select_next_question
from app.services.errors import NotFoundError, ValidationError
from app.services.mastery import MasteryPolicy, get_mastery_policy
from app.services.storage import DatabaseStorage
from app.constants import ANSWER_SUBMISSION_RATE_LIMIT, SESSION_USER_KEY, SESSION_ROLE_KEY, STUDENT_ROLE

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["learning"])


class TopicResponse(CamelModel):
    id: int
    subject_id: int
    name: str
    slug: str
    stage: str
    description: Optional[str] = None
    # Only set for a signed-in student; left out of the response otherwise
    mastery: Optional[float] = None


class QuestionResponse(CamelModel):
    """Question as sent to the play screen.

    Includes the correct answer, so a client can read it before answering.
    """
    id: int
    topic_id: int
    content: str
    correct_answer: str
    distractors: List[str]
    difficulty: int
    type: str
    explanation: Optional[str] = None


class AnswerSubmission(CamelModel):
    """Request body for answer submission."""
    question_id: int = Field(..., gt=0, description="Question ID must be a positive integer")
    answer: str = Field(..., min_length=1, max_length=500, description="Selected option text, compared exactly")
    time_taken: int = Field(..., ge=0, description="Whole seconds spent on the question")


class AnswerOutcomeResponse(CamelModel):
    correct: bool
    correct_answer: str
    coins_earned: int
    new_mastery: float
    feedback: str


def get_policy() -> MasteryPolicy:
    """Mastery update policy chosen by configuration."""
    return get_mastery_policy(settings.MASTERY_POLICY, settings.MASTERY_SMOOTHING)


@router.get("/subjects")
async def list_subjects(db: Session = Depends(get_db)):
    """List subjects that group topics."""
    subjects = db.query(Subject).order_by(Subject.id).all()
    return [{"id": s.id, "name": s.name} for s in subjects]


@router.get("/topics", response_model=List[TopicResponse], response_model_exclude_unset=True)
async def list_topics(
    request: Request,
    stage: Optional[str] = None,
    subject_id: Optional[int] = Query(None, alias="subjectId"),
    db: Session = Depends(get_db)
):
    """
    List topics, optionally filtered by stage and subject.

    For a signed-in student each topic carries the student's mastery score
    (0 when the topic has never been answered).
    """
    storage = DatabaseStorage(db)
    topics = storage.list_topics(stage)
    if subject_id is not None:
        topics = [t for t in topics if t.subject_id == subject_id]

    results = [TopicResponse.model_validate(t) for t in topics]

    user_id = request.session.get(SESSION_USER_KEY)
    if user_id and request.session.get(SESSION_ROLE_KEY) == STUDENT_ROLE:
        context = StudentContext(student_id=user_id, role=STUDENT_ROLE)
        for topic in results:
            topic.mastery = current_mastery(storage, context, topic.id)

    return results


@router.get("/learning/next-question", response_model=QuestionResponse)
async def next_question(
    topic_id: int = Query(..., alias="topicId"),
    context: StudentContext = Depends(get_student_context),
    db: Session = Depends(get_db)
):
    """
    Pick the next question for the signed-in student.

    Difficulty follows the student's mastery of the topic.

    Returns:
        404 if the topic has no questions
    """
    storage = DatabaseStorage(db)
    try:
        question = select_next_question(storage, storage, context, topic_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    logger.debug(
        f"Serving question {question.id} (difficulty {question.difficulty})",
        extra={"student_id": context.student_id, "topic_id": topic_id}
    )
    return question


@router.post("/learning/answer", response_model=AnswerOutcomeResponse)
@limiter.limit(ANSWER_SUBMISSION_RATE_LIMIT)
async def submit_answer(
    submission: AnswerSubmission,
    request: Request,
    context: StudentContext = Depends(get_student_context),
    policy: MasteryPolicy = Depends(get_policy),
    db: Session = Depends(get_db)
):
    """
    Grade an answer and update the student's mastery.

    Updates:
    - LearningEvent log (one new row per call)
    - Mastery for the question's topic

    Returns:
    - correct flag, correct answer, coins earned, new mastery, feedback
    """
    storage = DatabaseStorage(db)
    try:
        outcome = record_answer(
            storage, storage, storage, context,
            submission.question_id,
            submission.answer,
            submission.time_taken,
            policy=policy
        )
        db.commit()
    except NotFoundError as e:
        db.rollback()
        raise HTTPException(status_code=404, detail=str(e))
    except ValidationError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        db.rollback()
        logger.error(f"Error submitting answer: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error submitting answer: {str(e)}")

    return outcome
