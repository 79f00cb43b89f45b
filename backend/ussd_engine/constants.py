"""
Domain Enumerations — values shared by the menu engine and its collaborators.
"""
from enum import Enum


class Language(str, Enum):
    EN = "en"
    RW = "rw"


class UserRole(str, Enum):
    ADMIN = "admin"
    DONOR = "donor"
    BENEFICIARY = "beneficiary"


class AttendanceStatus(str, Enum):
    PRESENT = "present"
    ABSENT = "absent"
    LATE = "late"


class GoalType(str, Enum):
    FINANCIAL = "financial"
    BUSINESS = "business"
    EDUCATION = "education"
    PERSONAL = "personal"
    SKILLS = "skills"


class GoalStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    ACHIEVED = "achieved"
    ABANDONED = "abandoned"


USSD_SOURCE_NOTE = "Submitted via USSD"
USSD_TRACKING_NOTE = "Weekly tracking via USSD"
