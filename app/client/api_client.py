"""HTTP client for the learning API, used as the backend of a QuizSession."""
import logging
from typing import Any, Dict, List, Optional
import httpx

logger = logging.getLogger(__name__)


class SessionApiError(Exception):
    """The learning API could not be reached or answered with an error."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class LearningApiClient:
    """Async JSON client for the auth and learning endpoints.

    The session cookie set by login is kept by the underlying httpx client
    and sent on every later request.

    Example:
        >>> async with LearningApiClient("http://localhost:8000") as api:
        ...     await api.login("student1", "secret", role="student")
        ...     session = QuizSession(api, topic_id=1)
        ...     await session.start()
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None
    ):
        # No timeout by default: a hung request keeps the session loading
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def __aenter__(self) -> "LearningApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, url: str, **kwargs) -> Any:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.warning(f"{method} {url} failed: {e}")
            raise SessionApiError(f"{method} {url} failed: {e}") from e

        if response.status_code >= 400:
            try:
                detail = response.json().get("detail", response.text)
            except ValueError:
                detail = response.text
            raise SessionApiError(f"{method} {url} returned {response.status_code}: {detail}",
                                  status_code=response.status_code)

        return response.json()

    async def login(
        self,
        username: str,
        password: Optional[str] = None,
        role: str = "student",
        picture_password: Optional[List[str]] = None
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {"username": username, "role": role}
        if password is not None:
            body["password"] = password
        if picture_password is not None:
            body["picturePassword"] = picture_password
        return await self._request("POST", "/api/auth/login", json=body)

    async def logout(self) -> Dict[str, Any]:
        return await self._request("POST", "/api/auth/logout")

    async def list_topics(self, stage: Optional[str] = None, subject_id: Optional[int] = None) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {}
        if stage:
            params["stage"] = stage
        if subject_id is not None:
            params["subjectId"] = subject_id
        return await self._request("GET", "/api/topics", params=params)

    async def fetch_next_question(self, topic_id: int) -> Dict[str, Any]:
        return await self._request("GET", "/api/learning/next-question", params={"topicId": topic_id})

    async def submit_answer(self, question_id: int, answer: str, time_taken: int) -> Dict[str, Any]:
        return await self._request(
            "POST",
            "/api/learning/answer",
            json={"questionId": question_id, "answer": answer, "timeTaken": time_taken}
        )
