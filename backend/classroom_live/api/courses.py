"""
Course API routes for in-class interaction helpers.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from classroom_live.database import get_db
from classroom_live.middleware.rbac import require_teacher, get_course_or_404, assert_course_teacher
from classroom_live.models.user import User
from classroom_live.schemas.course import RandomStudentResponse, StudentBrief
from classroom_live.services.course_service import pick_random_student

router = APIRouter(prefix="/api/v1/courses", tags=["Courses"])


@router.get("/{course_id}/random-student", response_model=RandomStudentResponse)
async def random_student(
    course_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_teacher),
):
    course = await get_course_or_404(db, course_id)
    assert_course_teacher(course, current_user)
    student = await pick_random_student(db, course_id)
    return RandomStudentResponse(
        course_id=course_id,
        student=StudentBrief.model_validate(student) if student else None,
    )
