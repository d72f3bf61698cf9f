"""Application-wide constants and configuration values.

This module centralizes the magic numbers used by the learning policy and the
quiz session engine.
"""

# Question difficulty
MIN_DIFFICULTY = 1
"""Easiest question difficulty."""

MAX_DIFFICULTY = 5
"""Hardest question difficulty."""

# Mastery
MASTERY_FLOOR = 0.0
MASTERY_CEILING = 1.0

DEFAULT_MASTERY = 0.0
"""Mastery assumed when a student has never answered a topic."""

# Rewards and feedback
COINS_PER_CORRECT = 10
"""Coins awarded for a correct answer."""

CORRECT_FEEDBACK = "Great job!"
"""Feedback shown after a correct answer."""

FALLBACK_FEEDBACK = "Keep trying!"
"""Feedback shown after an incorrect answer when the question has no explanation."""

# Quiz session (client) scoring
STREAK_BONUS_PER_CORRECT = 2
"""Extra session points per answer already in the current streak."""

# Game interstitial
GAME_EVERY_N_QUESTIONS = 3
"""A mini-game plays after every Nth answered question."""

GAME_DURATION_SECONDS = 5.0
"""Total length of the mini-game interstitial."""

GAME_TICKS = 50
"""Number of progress ticks over the interstitial."""

GAME_PROGRESS_MAX = 100

# Roles
STUDENT_ROLE = "student"

# Session keys
SESSION_USER_KEY = "user_id"
SESSION_ROLE_KEY = "role"

# Rate Limiting
DEFAULT_RATE_LIMIT = "100/minute"

LOGIN_RATE_LIMIT = "10/minute"
"""Maximum number of login attempts allowed per minute per client."""

ANSWER_SUBMISSION_RATE_LIMIT = "60/minute"
"""Maximum number of answer submissions allowed per minute per client."""

# Password hashing
BCRYPT_ROUNDS = 12
"""Work factor for bcrypt password hashes."""
