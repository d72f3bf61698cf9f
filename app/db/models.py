"""SQLAlchemy models for the EduKid learning service."""
from datetime import datetime, timezone
from sqlalchemy import (
    JSON, Boolean, CheckConstraint, Column, DateTime, Float, ForeignKey, Index,
    Integer, Text,
)
from sqlalchemy.orm import relationship
from app.db.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class User(Base):
    """Student, teacher or parent account."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(Text, unique=True, nullable=False)
    password_hash = Column(Text, nullable=True)
    role = Column(Text, CheckConstraint("role IN ('student', 'teacher', 'parent')"), nullable=False)
    first_name = Column(Text, nullable=False)
    year_group = Column(Integer, nullable=True)
    picture_password = Column(JSON, nullable=True)  # ordered picture names, e.g. ["cat", "dog", "apple"]
    avatar_config = Column(JSON, nullable=False, default=dict)
    class_id = Column(Integer, nullable=True)
    parent_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    # Relationships
    masteries = relationship("Mastery", back_populates="user", cascade="all, delete-orphan")
    learning_events = relationship("LearningEvent", back_populates="user", cascade="all, delete-orphan")


class Subject(Base):
    """Subject grouping for topics, e.g. Science or Maths."""
    __tablename__ = "subjects"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(Text, unique=True, nullable=False)

    topics = relationship("Topic", back_populates="subject")


class Topic(Base):
    """Learning topic within a subject and key stage. Immutable once seeded."""
    __tablename__ = "topics"

    id = Column(Integer, primary_key=True, autoincrement=True)
    subject_id = Column(Integer, ForeignKey("subjects.id"), nullable=False)
    name = Column(Text, nullable=False)
    slug = Column(Text, unique=True, nullable=False)
    stage = Column(Text, nullable=False)  # e.g. "KS2"
    description = Column(Text, nullable=True)

    __table_args__ = (
        Index('idx_topic_stage', 'stage'),
    )

    # Relationships
    subject = relationship("Subject", back_populates="topics")
    questions = relationship("Question", back_populates="topic", order_by="Question.id")


class Question(Base):
    """Multiple-choice question with one correct answer and its distractors."""
    __tablename__ = "questions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    topic_id = Column(Integer, ForeignKey("topics.id"), nullable=False)
    content = Column(Text, nullable=False)
    correct_answer = Column(Text, nullable=False)
    distractors = Column(JSON, nullable=False)  # list of wrong options, at least one
    difficulty = Column(Integer, CheckConstraint("difficulty >= 1 AND difficulty <= 5"), nullable=False)
    type = Column(Text, nullable=False, default="multiple_choice")
    explanation = Column(Text, nullable=True)

    __table_args__ = (
        Index('idx_question_topic_difficulty', 'topic_id', 'difficulty'),
    )

    topic = relationship("Topic", back_populates="questions")


class Mastery(Base):
    """Per-student per-topic mastery score in [0.0, 1.0].

    Created on the first answer for a topic and overwritten in place after
    every later answer.
    """
    __tablename__ = "mastery"

    user_id = Column(Integer, ForeignKey("users.id"), primary_key=True)
    topic_id = Column(Integer, ForeignKey("topics.id"), primary_key=True)
    score = Column(Float, CheckConstraint("score >= 0.0 AND score <= 1.0"), nullable=False, default=0.0)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    user = relationship("User", back_populates="masteries")
    topic = relationship("Topic")


class LearningEvent(Base):
    """Append-only record of one answered question."""
    __tablename__ = "learning_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    question_id = Column(Integer, ForeignKey("questions.id"), nullable=False)
    is_correct = Column(Boolean, nullable=False)
    time_taken = Column(Integer, nullable=False)  # seconds
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index('idx_event_user_created', 'user_id', 'created_at'),
    )

    user = relationship("User", back_populates="learning_events")
    question = relationship("Question")
