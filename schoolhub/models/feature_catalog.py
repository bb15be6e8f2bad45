"""
Closed catalog of tenant features

Every FeatureKey must have a description and a default; the module refuses to
import otherwise, so a new feature is visible everywhere defaults are decided.
"""

from enum import Enum
from typing import Dict, List, Tuple, Union

from schoolhub.core.errors import UnknownFeatureError


class FeatureKey(str, Enum):
    """Capabilities a school may enable"""
    ATTENDANCE_MANAGEMENT = "attendanceManagement"
    FEE_MANAGEMENT = "feeManagement"
    STUDENT_PORTAL = "studentPortal"
    TEACHER_PORTAL = "teacherPortal"
    ONLINE_EXAMS = "onlineExams"
    PARENT_PORTAL = "parentPortal"
    MESSAGING_SYSTEM = "messagingSystem"
    EVENT_MANAGEMENT = "eventManagement"
    REPORT_CARDS = "reportCards"
    LIBRARY_MANAGEMENT = "libraryManagement"
    TRANSPORT_MANAGEMENT = "transportManagement"
    HOSTEL_MANAGEMENT = "hostelManagement"
    DISCIPLINE_TRACKING = "disciplineTracking"
    HEALTH_RECORDS = "healthRecords"


FEATURE_DESCRIPTIONS: Dict[FeatureKey, str] = {
    FeatureKey.ATTENDANCE_MANAGEMENT: "Track student attendance with automated marking and reporting",
    FeatureKey.ONLINE_EXAMS: "Conduct online examinations with automated grading",
    FeatureKey.LIBRARY_MANAGEMENT: "Manage library resources, book lending, and inventory",
    FeatureKey.TRANSPORT_MANAGEMENT: "Track school bus routes, schedules, and student transportation",
    FeatureKey.HOSTEL_MANAGEMENT: "Manage dormitory facilities and student accommodation",
    FeatureKey.FEE_MANAGEMENT: "Handle fee collection, payment tracking, and financial reporting",
    FeatureKey.PARENT_PORTAL: "Provide parents access to student information and school updates",
    FeatureKey.STUDENT_PORTAL: "Give students access to their academic information and resources",
    FeatureKey.TEACHER_PORTAL: "Enable teachers to manage classes, grades, and student interactions",
    FeatureKey.MESSAGING_SYSTEM: "Internal messaging system for school community communication",
    FeatureKey.EVENT_MANAGEMENT: "Organize and manage school events, activities, and announcements",
    FeatureKey.REPORT_CARDS: "Generate and distribute digital report cards and academic reports",
    FeatureKey.DISCIPLINE_TRACKING: "Track student behavior and disciplinary actions",
    FeatureKey.HEALTH_RECORDS: "Maintain student health records and medical information",
}

# Default-deny: a feature without a row is off
FEATURE_DEFAULTS: Dict[FeatureKey, bool] = {key: False for key in FeatureKey}

# Features offered by the onboarding wizard; one row is written per entry
ONBOARDING_FEATURES: Tuple[FeatureKey, ...] = (
    FeatureKey.ATTENDANCE_MANAGEMENT,
    FeatureKey.ONLINE_EXAMS,
    FeatureKey.FEE_MANAGEMENT,
    FeatureKey.PARENT_PORTAL,
    FeatureKey.STUDENT_PORTAL,
    FeatureKey.TEACHER_PORTAL,
    FeatureKey.MESSAGING_SYSTEM,
    FeatureKey.EVENT_MANAGEMENT,
    FeatureKey.REPORT_CARDS,
    FeatureKey.LIBRARY_MANAGEMENT,
)

FEATURE_PRESETS: Dict[str, Tuple[FeatureKey, ...]] = {
    "core": (
        FeatureKey.ATTENDANCE_MANAGEMENT,
        FeatureKey.FEE_MANAGEMENT,
        FeatureKey.STUDENT_PORTAL,
        FeatureKey.TEACHER_PORTAL,
    ),
    "full": ONBOARDING_FEATURES,
    "none": (),
}


def _check_catalog() -> None:
    for table_name, table in (
        ("FEATURE_DESCRIPTIONS", FEATURE_DESCRIPTIONS),
        ("FEATURE_DEFAULTS", FEATURE_DEFAULTS),
    ):
        missing = set(FeatureKey) - set(table)
        if missing:
            names = ", ".join(sorted(key.value for key in missing))
            raise RuntimeError(f"{table_name} is missing entries for: {names}")


_check_catalog()


def to_feature_key(key: Union[FeatureKey, str]) -> FeatureKey:
    """Coerce a raw string into a catalog key"""
    if isinstance(key, FeatureKey):
        return key
    try:
        return FeatureKey(key)
    except ValueError:
        raise UnknownFeatureError(str(key)) from None


def describe_feature(key: Union[FeatureKey, str]) -> str:
    return FEATURE_DESCRIPTIONS[to_feature_key(key)]


def feature_label(key: Union[FeatureKey, str]) -> str:
    """'attendanceManagement' -> 'Attendance Management'"""
    value = to_feature_key(key).value
    words: List[str] = []
    current = ""
    for char in value:
        if char.isupper() and current:
            words.append(current)
            current = char
        else:
            current += char
    words.append(current)
    return " ".join(word.capitalize() for word in words)
