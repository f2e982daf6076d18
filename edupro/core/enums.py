from enum import Enum


class UserRole(str, Enum):
    ADMIN = "ADMIN"
    STUDENT = "STUDENT"
    PARENT = "PARENT"


class UserStatus(str, Enum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    REJECTED = "REJECTED"
    BLOCKED = "BLOCKED"


class AccountSource(str, Enum):
    SELF = "SELF"
    ADMIN = "ADMIN"


class DeviceBindingState(str, Enum):
    UNBOUND = "UNBOUND"
    BOUND = "BOUND"
    RESET_PENDING = "RESET_PENDING"


class AttendanceStatus(str, Enum):
    PRESENT = "PRESENT"
    ABSENT = "ABSENT"
    LATE = "LATE"


class SubmissionStatus(str, Enum):
    SUBMITTED = "SUBMITTED"
    CHECKED = "CHECKED"
    INCOMPLETE = "INCOMPLETE"


class ClientRoute(str, Enum):
    """Where a client lands after login, derived from role and status."""

    ADMIN_CONSOLE = "ADMIN_CONSOLE"
    APPROVAL_PENDING = "APPROVAL_PENDING"
    LEARNING_HOME = "LEARNING_HOME"
    PARENT_DASHBOARD = "PARENT_DASHBOARD"
