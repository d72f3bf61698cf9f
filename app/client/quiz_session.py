"""Quiz session engine: the phase machine a student's play screen runs on.

A session cycles question -> result -> (mini-game every third answer) ->
next question until it is closed. Score and streak live here only and are
cosmetic; the server's mastery score decides question difficulty.

Phases:
- LOADING: waiting for the next question from the backend
- QUESTION: a question is shown and accepts exactly one answer
- RESULT: the graded answer is shown until the student continues
- GAME: timed interstitial that cannot be skipped or extended
"""
import asyncio
import logging
import math
import random
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol
from app.services.adaptive import build_options
from app.constants import (
    COINS_PER_CORRECT,
    STREAK_BONUS_PER_CORRECT,
    GAME_EVERY_N_QUESTIONS,
    GAME_DURATION_SECONDS,
    GAME_TICKS,
    GAME_PROGRESS_MAX,
)

logger = logging.getLogger(__name__)


class Phase(str, Enum):
    """Phases of a quiz session."""
    QUESTION = "question"
    RESULT = "result"
    GAME = "game"
    LOADING = "loading"


class LearningBackend(Protocol):
    """What a quiz session needs from the learning API."""

    async def fetch_next_question(self, topic_id: int) -> Dict[str, Any]: ...

    async def submit_answer(self, question_id: int, answer: str, time_taken: int) -> Dict[str, Any]: ...


@dataclass(frozen=True)
class AnswerResult:
    """Graded answer as shown on the result screen."""
    correct: bool
    message: str
    coins_earned: int
    correct_answer: str
    feedback: str


def round_half_up(value: float) -> int:
    """Round to the nearest whole number with halves rounding up."""
    return int(math.floor(value + 0.5))


class QuizSession:
    """One student's play-through of a topic.

    Args:
        backend: Learning API used to fetch questions and submit answers
        topic_id: Topic being played
        clock: Monotonic clock in seconds, used for answer timing
        rng: Random source for option ordering
        game_duration: Length of the mini-game interstitial in seconds
        game_ticks: Number of progress ticks over the interstitial
        sleep: Coroutine used to wait between game ticks
    """

    def __init__(
        self,
        backend: LearningBackend,
        topic_id: int,
        clock: Callable[[], float] = time.monotonic,
        rng: Optional[random.Random] = None,
        game_duration: float = GAME_DURATION_SECONDS,
        game_ticks: int = GAME_TICKS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        if game_ticks < 1:
            raise ValueError("game_ticks must be at least 1")
        self.backend = backend
        self.topic_id = topic_id
        self._clock = clock
        self._rng = rng or random.Random()
        self._sleep = sleep
        self.game_duration = game_duration
        self.game_ticks = game_ticks

        self._game_task: Optional[asyncio.Task] = None
        self._load_task: Optional[asyncio.Future] = None
        # Bumped on start/close; loads started under an older value are discarded
        self._generation = 0
        self._reset_state()

    def _reset_state(self) -> None:
        self.phase = Phase.LOADING
        self.question: Optional[Dict[str, Any]] = None
        self.options: List[str] = []
        self.selected_answer: Optional[str] = None
        self.result: Optional[AnswerResult] = None
        self.score = 0
        self.streak = 0
        self.questions_answered = 0
        self.game_progress = 0
        self._question_started_at = self._clock()
        self._submitting = False

    @property
    def game_task(self) -> Optional[asyncio.Task]:
        """The running mini-game timer, if any."""
        return self._game_task

    async def start(self) -> None:
        """Fetch the first question."""
        await self._stop_pending_work()
        self.phase = Phase.LOADING
        if await self._fetch_next():
            self.phase = Phase.QUESTION

    async def _load_question(self) -> bool:
        """Fetch and present the next question.

        Returns False when the session was started again or closed while the
        fetch was pending; the fetched question is then dropped.
        """
        generation = self._generation
        self.question = None
        self.options = []
        task = asyncio.ensure_future(self.backend.fetch_next_question(self.topic_id))
        self._load_task = task
        try:
            question = await task
        except asyncio.CancelledError:
            if generation != self._generation:
                return False
            raise
        finally:
            if self._load_task is task:
                self._load_task = None
        if generation != self._generation:
            return False
        self.question = question
        # Fresh ordering every time a question is presented
        self.options = build_options(
            question["correctAnswer"], question.get("distractors") or [], self._rng
        )
        self.selected_answer = None
        self.result = None
        self._question_started_at = self._clock()
        return True

    async def submit_answer(self, answer: str) -> Optional[AnswerResult]:
        """
        Submit an answer for the current question.

        Only the first submission for a question counts; anything sent while
        an answer is in flight or a result is showing is ignored.

        Returns:
            The graded result, or None if the submission was ignored
        """
        if (
            self.phase != Phase.QUESTION
            or self.result is not None
            or self._submitting
            or self.question is None
        ):
            return None

        self._submitting = True
        self.selected_answer = answer
        time_taken = round_half_up(self._clock() - self._question_started_at)
        try:
            data = await self.backend.submit_answer(self.question["id"], answer, time_taken)
        finally:
            self._submitting = False

        correct = bool(data["correct"])
        self.result = AnswerResult(
            correct=correct,
            message="Correct!" if correct else "Not quite...",
            coins_earned=data.get("coinsEarned", 0),
            correct_answer=data.get("correctAnswer", ""),
            feedback=data.get("feedback", "")
        )

        if correct:
            self.score += COINS_PER_CORRECT + self.streak * STREAK_BONUS_PER_CORRECT
            self.streak += 1
        else:
            self.streak = 0

        self.questions_answered += 1
        self.phase = Phase.RESULT
        return self.result

    @property
    def game_due(self) -> bool:
        """True when the next continue should play the mini-game."""
        return self.questions_answered > 0 and self.questions_answered % GAME_EVERY_N_QUESTIONS == 0

    async def continue_(self) -> Phase:
        """
        Leave the result screen.

        Every third answered question starts the mini-game; otherwise the next
        question is fetched. A failed fetch leaves the session in LOADING and
        re-raises; there is no automatic retry.

        Returns:
            The phase after the transition
        """
        if self.phase != Phase.RESULT:
            return self.phase

        self.result = None
        if self.game_due:
            self.phase = Phase.GAME
            self.game_progress = 0
            self._game_task = asyncio.create_task(self._run_game())
            self._game_task.add_done_callback(self._collect_game_result)
            return self.phase

        self.phase = Phase.LOADING
        if await self._fetch_next():
            self.phase = Phase.QUESTION
        return self.phase

    async def _fetch_next(self) -> bool:
        try:
            return await self._load_question()
        except Exception:
            logger.error(f"Failed to load next question for topic {self.topic_id}", exc_info=True)
            raise

    async def _run_game(self) -> None:
        interval = self.game_duration / self.game_ticks
        tick = 0
        while self.game_progress < GAME_PROGRESS_MAX:
            await self._sleep(interval)
            tick += 1
            self.game_progress = min(GAME_PROGRESS_MAX, tick * GAME_PROGRESS_MAX // self.game_ticks)

        self.game_progress = 0
        self.phase = Phase.LOADING
        if await self._fetch_next():
            self.phase = Phase.QUESTION

    @staticmethod
    def _collect_game_result(task: asyncio.Task) -> None:
        # Already logged by _fetch_next; mark retrieved so the loop stays quiet
        if not task.cancelled():
            task.exception()

    async def wait_for_game(self) -> None:
        """Wait for a running mini-game (and the fetch it triggers) to finish."""
        if self._game_task is not None:
            await self._game_task

    async def _stop_pending_work(self) -> None:
        """Cancel the game timer and any pending fetch, and orphan their results."""
        self._generation += 1
        load_task, self._load_task = self._load_task, None
        game_task, self._game_task = self._game_task, None
        if load_task is not None and not load_task.done():
            load_task.cancel()
        if game_task is not None and not game_task.done():
            game_task.cancel()
            try:
                await game_task
            except asyncio.CancelledError:
                pass

    async def close(self) -> None:
        """Tear the session down: stop the game timer and any pending fetch, then reset all state."""
        await self._stop_pending_work()
        self._reset_state()
