"""Login, logout and session identity endpoints."""
import logging
from typing import Any, Dict, List, Literal, Optional
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from sqlalchemy.orm import Session
from app.db.database import get_db
from app.rate_limit import limiter
from app.services.adaptive import StudentContext
from app.services.auth import authenticate
from app.services.errors import AuthenticationError
from app.services.storage import DatabaseStorage
from app.constants import LOGIN_RATE_LIMIT, SESSION_USER_KEY, SESSION_ROLE_KEY

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


class CamelModel(BaseModel):
    """Base model that speaks camelCase JSON."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class LoginRequest(CamelModel):
    """Request body for login. Students may send picturePassword instead of password."""
    username: str = Field(..., min_length=1, max_length=100)
    password: Optional[str] = Field(None, max_length=200)
    role: Literal["student", "teacher", "parent"]
    picture_password: Optional[List[str]] = None


class UserResponse(CamelModel):
    """Public view of a user. Never includes credentials."""
    id: int
    username: str
    role: str
    first_name: str
    year_group: Optional[int] = None
    avatar_config: Dict[str, Any] = Field(default_factory=dict)
    class_id: Optional[int] = None
    parent_id: Optional[int] = None


def get_student_context(request: Request, db: Session = Depends(get_db)) -> StudentContext:
    """
    Resolve the signed-in user from the session cookie.

    Raises:
        HTTPException 401: No session, or the session's user no longer exists
    """
    user_id = request.session.get(SESSION_USER_KEY)
    if not user_id:
        raise HTTPException(status_code=401, detail="Not authenticated")

    user = DatabaseStorage(db).get_user(user_id)
    if user is None:
        request.session.clear()
        raise HTTPException(status_code=401, detail="Not authenticated")

    return StudentContext(student_id=user.id, role=request.session.get(SESSION_ROLE_KEY, user.role))


@router.post("/login", response_model=UserResponse)
@limiter.limit(LOGIN_RATE_LIMIT)
async def login(
    credentials: LoginRequest,
    request: Request,
    db: Session = Depends(get_db)
):
    """
    Sign in and start a session.

    Returns:
        The signed-in user
    """
    try:
        user = authenticate(
            DatabaseStorage(db),
            credentials.username,
            credentials.role,
            password=credentials.password,
            picture_password=credentials.picture_password
        )
    except AuthenticationError as e:
        logger.info(f"Login failed for {credentials.username!r}: {e}")
        raise HTTPException(status_code=401, detail=str(e))

    request.session[SESSION_USER_KEY] = user.id
    request.session[SESSION_ROLE_KEY] = user.role
    logger.info("User logged in", extra={"student_id": user.id})
    return user


@router.post("/logout")
async def logout(request: Request):
    """End the current session."""
    request.session.clear()
    return {"message": "Logged out"}


@router.get("/me", response_model=UserResponse)
async def me(
    context: StudentContext = Depends(get_student_context),
    db: Session = Depends(get_db)
):
    """Return the signed-in user."""
    return DatabaseStorage(db).get_user(context.student_id)
