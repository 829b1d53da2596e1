"""Pydantic schemas for buzzer rounds."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from classroom_live.models.buzzer import BuzzResult


class BuzzerRoundResponse(BaseModel):
    id: int
    course_id: int
    start_time: datetime
    end_time: Optional[datetime] = None
    winner_student_id: Optional[int] = None
    is_open: bool

    model_config = ConfigDict(from_attributes=True)


class BuzzerStopResponse(BaseModel):
    id: int
    stopped: bool
    end_time: Optional[datetime] = None


class BuzzResponse(BaseModel):
    result: BuzzResult
    round: BuzzerRoundResponse
