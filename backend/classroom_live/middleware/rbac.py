"""Role-Based Access Control dependencies for FastAPI."""

from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from classroom_live.database import get_db
from classroom_live.models.course import Course
from classroom_live.models.user import User, UserRole
from classroom_live.services.auth_service import user_id_from_token
from classroom_live.services.course_service import get_course_by_id, is_course_member, is_course_teacher
from classroom_live.services.user_service import get_user_by_id

# Bearer token extractor
security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Extract and validate the JWT token from the Authorization header.
    Returns the authenticated User object.
    """
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        user_id = user_id_from_token(credentials.credentials)
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = await get_user_by_id(db, user_id)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )
    return user


def require_role(*roles: str):
    """
    Dependency factory that creates a role-checking dependency.
    Usage: Depends(require_role("TEACHER"))
    """
    async def role_checker(
        current_user: User = Depends(get_current_user),
    ) -> User:
        if current_user.role.value not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required role(s): {', '.join(roles)}",
            )
        return current_user
    return role_checker


async def get_course_or_404(db: AsyncSession, course_id: int) -> Course:
    course = await get_course_by_id(db, course_id)
    if not course:
        raise HTTPException(status_code=404, detail="Course not found")
    return course


def assert_course_teacher(course: Course, current_user: User) -> None:
    if not is_course_teacher(course, current_user):
        raise HTTPException(status_code=403, detail="Access denied")


async def assert_course_member(db: AsyncSession, course: Course, current_user: User) -> None:
    if not await is_course_member(db, course, current_user):
        raise HTTPException(status_code=403, detail="Access denied")


# Convenience dependencies
require_teacher = require_role(UserRole.TEACHER.value)
require_student = require_role(UserRole.STUDENT.value)
