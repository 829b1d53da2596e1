from classroom_live.models.user import User
from classroom_live.models.course import Course, CourseStudent
from classroom_live.models.rollcall import Rollcall, RollcallRecord
from classroom_live.models.buzzer import BuzzerRound
