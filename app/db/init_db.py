"""Database initialization and demo content seeding."""
import logging
from typing import Dict, List
from sqlalchemy.orm import Session
from app.db.database import engine, SessionLocal, Base
from app.db.models import Question, Subject, Topic, User
from app.services.auth import hash_password
from app.config import settings

logger = logging.getLogger(__name__)

SUBJECTS = ["Science", "Maths"]

# Key Stage 2 topics, keyed by subject name
TOPICS: Dict[str, List[dict]] = {
    "Science": [
        {"name": "Electricity", "slug": "electricity", "stage": "KS2", "description": "Circuits and conductors"},
        {"name": "Plants", "slug": "plants", "stage": "KS2", "description": "Photosynthesis and growth"},
        {"name": "Space", "slug": "space", "stage": "KS2", "description": "Planets and the solar system"},
    ],
    "Maths": [
        {"name": "Addition", "slug": "addition", "stage": "KS2", "description": "Adding numbers together"},
        {"name": "Subtraction", "slug": "subtraction", "stage": "KS2", "description": "Taking numbers away"},
        {"name": "Multiplication", "slug": "multiplication", "stage": "KS2", "description": "Times tables and products"},
        {"name": "Division", "slug": "division", "stage": "KS2", "description": "Sharing and grouping"},
        {"name": "Fractions", "slug": "fractions", "stage": "KS2", "description": "Parts of a whole"},
    ],
}


def _q(content: str, answer: str, distractors: List[str], difficulty: int, explanation: str) -> dict:
    return {
        "content": content,
        "correct_answer": answer,
        "distractors": distractors,
        "difficulty": difficulty,
        "explanation": explanation,
    }


# Questions keyed by topic slug
QUESTIONS: Dict[str, List[dict]] = {
    "electricity": [
        _q("Which of these is a good conductor of electricity?", "Copper", ["Wood", "Plastic", "Rubber"], 2,
           "Metals like copper allow electricity to flow freely."),
        _q("What component breaks a circuit to stop the flow?", "Switch", ["Battery", "Bulb", "Wire"], 3,
           "A switch opens the circuit gap."),
    ],
    "space": [
        _q("Which planet is closest to the Sun?", "Mercury", ["Venus", "Earth", "Mars"], 2,
           "Mercury is the first planet."),
        _q("How many planets are in our solar system?", "8", ["7", "9", "10"], 1,
           "There are 8 planets in our solar system."),
    ],
    "plants": [
        _q("What do plants need to make food?", "Sunlight", ["Darkness", "Music", "Salt"], 1,
           "Plants use sunlight for photosynthesis."),
    ],
    "addition": [
        _q("What is 5 + 3?", "8", ["7", "9", "6"], 1, "5 + 3 = 8"),
        _q("What is 12 + 7?", "19", ["18", "20", "17"], 2, "12 + 7 = 19"),
        _q("What is 25 + 16?", "41", ["40", "42", "39"], 3, "25 + 16 = 41"),
        _q("What is 48 + 27?", "75", ["74", "76", "65"], 4, "48 + 27 = 75"),
        _q("What is 156 + 89?", "245", ["235", "255", "244"], 5, "156 + 89 = 245"),
    ],
    "subtraction": [
        _q("What is 9 - 4?", "5", ["4", "6", "3"], 1, "9 - 4 = 5"),
        _q("What is 15 - 8?", "7", ["6", "8", "9"], 2, "15 - 8 = 7"),
        _q("What is 42 - 19?", "23", ["22", "24", "21"], 3, "42 - 19 = 23"),
        _q("What is 100 - 37?", "63", ["64", "62", "73"], 4, "100 - 37 = 63"),
    ],
    "multiplication": [
        _q("What is 3 × 4?", "12", ["11", "14", "10"], 1, "3 × 4 = 12"),
        _q("What is 6 × 7?", "42", ["36", "48", "49"], 2, "6 × 7 = 42"),
        _q("What is 8 × 9?", "72", ["63", "81", "64"], 3, "8 × 9 = 72"),
        _q("What is 12 × 11?", "132", ["121", "144", "122"], 4, "12 × 11 = 132"),
    ],
    "division": [
        _q("What is 10 ÷ 2?", "5", ["4", "6", "8"], 1, "10 ÷ 2 = 5"),
        _q("What is 24 ÷ 6?", "4", ["3", "5", "6"], 2, "24 ÷ 6 = 4"),
        _q("What is 56 ÷ 8?", "7", ["6", "8", "9"], 3, "56 ÷ 8 = 7"),
        _q("What is 144 ÷ 12?", "12", ["11", "13", "14"], 4, "144 ÷ 12 = 12"),
    ],
    "fractions": [
        _q("What is half of 10?", "5", ["4", "6", "2"], 1, "Half of 10 is 5"),
        _q("What is 1/4 of 20?", "5", ["4", "10", "15"], 2, "1/4 of 20 is 5"),
        _q("What is 3/4 of 100?", "75", ["50", "25", "80"], 3, "3/4 of 100 is 75"),
    ],
}

DEMO_USERS = [
    {"username": "admin", "password": "admin", "role": "teacher", "first_name": "Admin"},
    {"username": "student1", "password": "admin", "role": "student", "first_name": "Alex",
     "year_group": 5, "avatar_config": {"color": "blue"}},
]


def seed_content(db: Session) -> None:
    """Seed subjects, topics and questions. Skipped if any topic exists."""
    existing_count = db.query(Topic).count()
    if existing_count > 0:
        logger.info(f"Topics table already contains {existing_count} entries. Skipping seed.")
        return

    logger.info("Seeding subjects, topics and questions...")
    question_count = 0
    for subject_name in SUBJECTS:
        subject = Subject(name=subject_name)
        db.add(subject)
        db.flush()

        for topic_data in TOPICS[subject_name]:
            topic = Topic(subject_id=subject.id, **topic_data)
            db.add(topic)
            db.flush()

            for question_data in QUESTIONS.get(topic.slug, []):
                db.add(Question(topic_id=topic.id, type="multiple_choice", **question_data))
                question_count += 1

    db.commit()
    logger.info(f"Seeded {len(SUBJECTS)} subjects and {question_count} questions.")


def seed_users(db: Session) -> None:
    """Create demo accounts that do not exist yet."""
    created = 0
    for user_data in DEMO_USERS:
        data = dict(user_data)
        if db.query(User).filter(User.username == data["username"]).first():
            continue
        password = data.pop("password")
        db.add(User(password_hash=hash_password(password), **data))
        created += 1

    if created:
        db.commit()
        logger.info(f"Created {created} demo users.")


def init_db() -> None:
    """
    Initialize database: create tables and seed demo data.

    Safe to call multiple times - all operations are idempotent.
    """
    logger.info("Initializing database...")

    Base.metadata.create_all(bind=engine)
    logger.info("Tables created/verified successfully.")

    if not settings.SEED_DEMO_DATA:
        logger.info("Demo data seeding disabled.")
        return

    db = SessionLocal()
    try:
        seed_content(db)
        seed_users(db)
        logger.info("Database initialization complete.")
    except Exception as e:
        db.rollback()
        logger.error(f"Error during database initialization: {e}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    # Set up basic logging for standalone execution
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    init_db()
