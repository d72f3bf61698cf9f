"""Storage interfaces used by the learning policy and their SQLAlchemy implementation.

The mastery and question-selection logic only talks to the four small
protocols below, so it can run against the database or an in-memory fake.
"""
from typing import List, Optional, Protocol
from sqlalchemy.orm import Session
from app.db.models import LearningEvent, Mastery, Question, Topic, User


class TopicStore(Protocol):
    def list_topics(self, stage: Optional[str] = None) -> List[Topic]: ...


class QuestionStore(Protocol):
    def list_questions_by_topic(self, topic_id: int) -> List[Question]: ...

    def get_question(self, question_id: int) -> Optional[Question]: ...


class MasteryStore(Protocol):
    def get_mastery(self, student_id: int, topic_id: int) -> Optional[Mastery]: ...

    def upsert_mastery(self, student_id: int, topic_id: int, score: float) -> Mastery: ...


class EventLog(Protocol):
    def append(self, student_id: int, question_id: int, correct: bool, time_taken: int) -> LearningEvent: ...


class DatabaseStorage:
    """All learning stores backed by one SQLAlchemy session.

    Writes are flushed, not committed; the caller owns the transaction.
    """

    def __init__(self, db: Session):
        self.db = db

    # Topics

    def list_topics(self, stage: Optional[str] = None) -> List[Topic]:
        query = self.db.query(Topic)
        if stage:
            query = query.filter(Topic.stage == stage)
        return query.order_by(Topic.id).all()

    # Questions

    def list_questions_by_topic(self, topic_id: int) -> List[Question]:
        return self.db.query(Question).filter(
            Question.topic_id == topic_id
        ).order_by(Question.id).all()

    def get_question(self, question_id: int) -> Optional[Question]:
        return self.db.query(Question).filter(Question.id == question_id).first()

    # Mastery

    def get_mastery(self, student_id: int, topic_id: int) -> Optional[Mastery]:
        return self.db.query(Mastery).filter(
            Mastery.user_id == student_id,
            Mastery.topic_id == topic_id
        ).first()

    def upsert_mastery(self, student_id: int, topic_id: int, score: float) -> Mastery:
        # Read-then-write without locking: concurrent answers for the same
        # (student, topic) resolve as last write wins.
        mastery = self.get_mastery(student_id, topic_id)
        if mastery is None:
            mastery = Mastery(user_id=student_id, topic_id=topic_id, score=score)
            self.db.add(mastery)
        else:
            mastery.score = score
        self.db.flush()
        return mastery

    # Event log

    def append(self, student_id: int, question_id: int, correct: bool, time_taken: int) -> LearningEvent:
        event = LearningEvent(
            user_id=student_id,
            question_id=question_id,
            is_correct=correct,
            time_taken=time_taken
        )
        self.db.add(event)
        self.db.flush()
        return event

    # Users

    def get_user(self, user_id: int) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id).first()

    def get_user_by_username(self, username: str) -> Optional[User]:
        return self.db.query(User).filter(User.username == username).first()
