from __future__ import annotations

from enum import Enum, IntEnum


class Role(str, Enum):
    """Role carried in the session by the identity layer."""

    ADMIN = "admin"
    STAFF = "staff"


class DayOfWeek(IntEnum):
    """Day index used by clinic hours and work schedules (0=Sunday)."""

    SUNDAY = 0
    MONDAY = 1
    TUESDAY = 2
    WEDNESDAY = 3
    THURSDAY = 4
    FRIDAY = 5
    SATURDAY = 6

    @property
    def key(self) -> str:
        return self.name.lower()


class AttendanceStatus(str, Enum):
    """Daily attendance state stored on the record."""

    NOT_CHECKED_IN = "not_checked_in"
    CHECKED_IN = "checked_in"
    CHECKED_OUT = "checked_out"
    ABSENT = "absent"
    ON_LEAVE = "on_leave"

    def can_transition_to(self, target: "AttendanceStatus") -> bool:
        return target in ENGINE_TRANSITIONS.get(self, frozenset())


# Transitions the scan flow may perform on its own. Everything else
# (absent, on_leave, reverting a checkout) goes through the manual-edit path.
ENGINE_TRANSITIONS: dict[AttendanceStatus, frozenset[AttendanceStatus]] = {
    AttendanceStatus.NOT_CHECKED_IN: frozenset({AttendanceStatus.CHECKED_IN}),
    AttendanceStatus.CHECKED_IN: frozenset({AttendanceStatus.CHECKED_OUT}),
}


class RefreshPeriod(str, Enum):
    """How often a clinic QR token's validity window resets."""

    DAILY = "daily"
    WEEKLY = "weekly"
    CUSTOM = "custom"


class GeoDecision(str, Enum):
    PASS = "pass"
    FAIL = "fail"
    SKIP = "skip"


class ScanAction(str, Enum):
    CHECK_IN = "check_in"
    CHECK_OUT = "check_out"
