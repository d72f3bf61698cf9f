"""Tests for the httpx learning API client and its use by a quiz session."""
import asyncio
import json
import httpx
import pytest
from app.client.api_client import LearningApiClient, SessionApiError
from app.client.quiz_session import Phase, QuizSession


QUESTION = {
    "id": 3,
    "topicId": 2,
    "content": "What is 5 + 3?",
    "correctAnswer": "8",
    "distractors": ["7", "9", "6"],
    "difficulty": 1,
    "type": "multiple_choice",
    "explanation": "5 + 3 = 8",
}


def make_client(handler):
    transport = httpx.MockTransport(handler)
    return LearningApiClient(client=httpx.AsyncClient(transport=transport, base_url="http://test"))


def run(coro):
    return asyncio.run(coro)


class TestRequests:

    def test_fetch_next_question(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=QUESTION)

        async def scenario():
            async with make_client(handler) as api:
                return await api.fetch_next_question(2)

        assert run(scenario()) == QUESTION
        assert seen[0].method == "GET"
        assert seen[0].url.path == "/api/learning/next-question"
        assert seen[0].url.params["topicId"] == "2"

    def test_submit_answer_sends_camel_case(self):
        seen = []

        def handler(request):
            seen.append(json.loads(request.content))
            return httpx.Response(200, json={"correct": True})

        async def scenario():
            async with make_client(handler) as api:
                return await api.submit_answer(3, "8", 4)

        run(scenario())
        assert seen == [{"questionId": 3, "answer": "8", "timeTaken": 4}]

    def test_login_with_picture_password(self):
        seen = []

        def handler(request):
            seen.append(json.loads(request.content))
            return httpx.Response(200, json={"id": 1})

        async def scenario():
            async with make_client(handler) as api:
                await api.login("pupil", picture_password=["cat", "dog"])

        run(scenario())
        assert seen == [{"username": "pupil", "role": "student", "picturePassword": ["cat", "dog"]}]

    def test_error_status_raises(self):
        def handler(request):
            return httpx.Response(404, json={"detail": "No questions found for topic 2"})

        async def scenario():
            async with make_client(handler) as api:
                await api.fetch_next_question(2)

        with pytest.raises(SessionApiError) as excinfo:
            run(scenario())
        assert excinfo.value.status_code == 404
        assert "No questions found" in str(excinfo.value)

    def test_transport_error_raises(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        async def scenario():
            async with make_client(handler) as api:
                await api.fetch_next_question(2)

        with pytest.raises(SessionApiError) as excinfo:
            run(scenario())
        assert excinfo.value.status_code is None


class TestQuizSessionOverHttp:

    def test_question_answer_cycle(self):
        def handler(request):
            if request.url.path == "/api/learning/next-question":
                return httpx.Response(200, json=QUESTION)
            body = json.loads(request.content)
            correct = body["answer"] == "8"
            return httpx.Response(200, json={
                "correct": correct,
                "correctAnswer": "8",
                "coinsEarned": 10 if correct else 0,
                "newMastery": 1.0 if correct else 0.0,
                "feedback": "Great job!" if correct else "5 + 3 = 8",
            })

        async def scenario():
            async with make_client(handler) as api:
                session = QuizSession(api, topic_id=2)
                await session.start()
                assert sorted(session.options) == ["6", "7", "8", "9"]
                result = await session.submit_answer("8")
                await session.close()
                return result

        result = run(scenario())
        assert result.correct is True
        assert result.coins_earned == 10
        assert result.feedback == "Great job!"

    def test_failed_fetch_keeps_session_loading(self):
        calls = []

        def handler(request):
            calls.append(request.url.path)
            if len(calls) == 1:
                return httpx.Response(200, json=QUESTION)
            if request.url.path == "/api/learning/answer":
                return httpx.Response(200, json={"correct": False, "correctAnswer": "8"})
            return httpx.Response(500, json={"detail": "boom"})

        async def scenario():
            async with make_client(handler) as api:
                session = QuizSession(api, topic_id=2)
                await session.start()
                await session.submit_answer("7")
                with pytest.raises(SessionApiError):
                    await session.continue_()
                return session.phase

        assert run(scenario()) == Phase.LOADING
