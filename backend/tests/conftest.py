import os
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./classroom_live_test.db")

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import classroom_live.models  # noqa: F401
from classroom_live.config import settings
from classroom_live.database import Base, get_db
from classroom_live.main import app
from classroom_live.models.course import Course, CourseStudent
from classroom_live.models.user import User, UserRole


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'classroom_live.db'}",
        connect_args={"timeout": 15},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


async def seed_course(session_factory) -> SimpleNamespace:
    """A teacher owning one course with three enrolled students, plus an outsider."""
    async with session_factory() as session:
        teacher = User(username="t001", name="Teacher Lin", role=UserRole.TEACHER)
        other_teacher = User(username="t002", name="Teacher Wu", role=UserRole.TEACHER)
        students = [
            User(username=f"s00{i}", name=f"Student {i}", role=UserRole.STUDENT, group="default")
            for i in range(1, 4)
        ]
        outsider = User(username="s999", name="Visitor", role=UserRole.STUDENT)
        session.add_all([teacher, other_teacher, outsider, *students])
        await session.flush()

        course = Course(teacher_id=teacher.id, name="Physics 101")
        session.add(course)
        await session.flush()
        session.add_all([CourseStudent(course_id=course.id, student_id=s.id) for s in students])
        await session.commit()

    return SimpleNamespace(
        teacher=teacher,
        other_teacher=other_teacher,
        students=students,
        outsider=outsider,
        course=course,
    )


@pytest.fixture
async def seed(session_factory):
    return await seed_course(session_factory)


def make_token(user_id: int, role: str, expires_delta: timedelta = timedelta(minutes=60)) -> str:
    """Mint an access token the way the identity provider does."""
    now = datetime.now(timezone.utc)
    payload = {"sub": str(user_id), "role": role, "exp": now + expires_delta, "iat": now, "type": "access"}
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {make_token(user.id, user.role.value)}"}


def request_session(session_factory):
    """``get_db`` replacement bound to the test database."""

    async def _get_test_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    return _get_test_db


@pytest.fixture
async def client(session_factory):
    app.dependency_overrides[get_db] = request_session(session_factory)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
