"""Pytest fixtures for testing."""
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from app.main import app
from app.db.database import Base, get_db
from app.db.models import Question, Subject, Topic, User
from app.db.init_db import seed_content
from app.rate_limit import limiter
from app.services.adaptive import StudentContext
from app.services.auth import hash_password


@pytest.fixture(scope="function")
def session_factory():
    """In-memory database shared by every session of one test."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(engine)
    yield sessionmaker(bind=engine, autoflush=False, autocommit=False)
    engine.dispose()


@pytest.fixture(scope="function")
def test_db(session_factory):
    """Database session with an empty schema."""
    db = session_factory()
    yield db
    db.close()


@pytest.fixture
def seeded_db(test_db):
    """Database seeded with the demo subjects, topics and questions."""
    seed_content(test_db)
    return test_db


@pytest.fixture
def test_student(test_db):
    """Create a student with password 'secret'."""
    user = User(
        username="pupil",
        password_hash=hash_password("secret"),
        role="student",
        first_name="Pat",
        year_group=4,
        picture_password=["cat", "dog", "apple"],
        avatar_config={}
    )
    test_db.add(user)
    test_db.commit()
    return user


@pytest.fixture
def student_context(test_student):
    return StudentContext(student_id=test_student.id, role="student")


@pytest.fixture
def topic_factory(test_db):
    """Create a topic whose questions have the given difficulties."""
    subject = Subject(name="Maths")
    test_db.add(subject)
    test_db.flush()

    def make(difficulties, slug="topic"):
        topic = Topic(subject_id=subject.id, name=slug.title(), slug=slug, stage="KS2")
        test_db.add(topic)
        test_db.flush()
        for i, difficulty in enumerate(difficulties):
            test_db.add(Question(
                topic_id=topic.id,
                content=f"{slug} question {i}",
                correct_answer=f"right-{i}",
                distractors=[f"wrong-{i}-a", f"wrong-{i}-b", f"wrong-{i}-c"],
                difficulty=difficulty,
                explanation=f"Explanation {i}" if i % 2 == 0 else None
            ))
        test_db.commit()
        return topic

    return make


@pytest.fixture
def client(session_factory, seeded_db, test_student):
    """Test client against the seeded in-memory database."""
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    limiter.enabled = False

    yield TestClient(app)

    limiter.enabled = True
    app.dependency_overrides.clear()


@pytest.fixture
def logged_in_client(client):
    """Test client with the test student signed in."""
    response = client.post(
        "/api/auth/login",
        json={"username": "pupil", "password": "secret", "role": "student"}
    )
    assert response.status_code == 200
    return client
