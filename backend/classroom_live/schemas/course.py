"""Pydantic schemas for course lookups."""

from typing import Optional

from pydantic import BaseModel, ConfigDict


class StudentBrief(BaseModel):
    id: int
    username: str
    name: str
    avatar_url: Optional[str] = None
    group: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class RandomStudentResponse(BaseModel):
    course_id: int
    student: Optional[StudentBrief] = None
