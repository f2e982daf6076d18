from edupro.core.models.tenant import Tenant
from edupro.core.models.attendance import AttendanceRecord, attendance_record_id
from edupro.core.models.poll import Poll, PollOption, PollVote
from edupro.core.models.homework import Homework, Submission

__all__ = [
    "Tenant",
    "AttendanceRecord",
    "attendance_record_id",
    "Poll",
    "PollOption",
    "PollVote",
    "Homework",
    "Submission",
]
