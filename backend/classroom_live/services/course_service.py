"""Course lookups: existence, ownership, enrollment and random student pick."""

import random
from typing import Optional, List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from classroom_live.models.course import Course, CourseStudent
from classroom_live.models.user import User, UserRole


async def get_course_by_id(db: AsyncSession, course_id: int) -> Optional[Course]:
    return await db.get(Course, course_id)


async def is_student_enrolled(db: AsyncSession, course_id: int, student_id: int) -> bool:
    result = await db.execute(
        select(CourseStudent.id).where(
            CourseStudent.course_id == course_id,
            CourseStudent.student_id == student_id,
        )
    )
    return result.first() is not None


def is_course_teacher(course: Course, user: User) -> bool:
    return user.role == UserRole.TEACHER and course.teacher_id == user.id


async def is_course_member(db: AsyncSession, course: Course, user: User) -> bool:
    """Owning teacher or enrolled student."""
    if is_course_teacher(course, user):
        return True
    if user.role == UserRole.STUDENT:
        return await is_student_enrolled(db, course.id, user.id)
    return False


async def list_course_students(db: AsyncSession, course_id: int) -> List[User]:
    result = await db.execute(
        select(User)
        .join(CourseStudent, CourseStudent.student_id == User.id)
        .where(CourseStudent.course_id == course_id)
        .order_by(User.username)
    )
    return list(result.scalars().all())


async def pick_random_student(db: AsyncSession, course_id: int) -> Optional[User]:
    students = await list_course_students(db, course_id)
    if not students:
        return None
    return random.choice(students)
