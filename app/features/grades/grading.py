"""
Grade computation: letter grades and sheet statistics.
"""
from typing import Any, Iterable, Mapping, Optional


LETTERS = ("A", "B", "C", "D", "F")
FAILING_LETTER = "F"

DEFAULT_GRADING_SCALE: dict[str, dict[str, float]] = {
    "A": {"min": 90, "max": 100},
    "B": {"min": 80, "max": 89},
    "C": {"min": 70, "max": 79},
    "D": {"min": 60, "max": 69},
    "F": {"min": 0, "max": 59},
}


def letter_grade(percentage: float, scale: Optional[Mapping[str, Mapping[str, float]]] = None) -> str:
    """
    Letter for `percentage`, checking the lower bound of A, B, C and D in turn.

    Anything below the D band is an F, so gaps between bands (e.g. 89.5 with
    integer bands) fall into the next lower letter.
    """
    scale = scale or DEFAULT_GRADING_SCALE
    for letter in LETTERS[:-1]:
        if percentage >= scale[letter]["min"]:
            return letter
    return FAILING_LETTER


def percentage_of(marks_obtained: float, total_marks: float) -> float:
    return round(marks_obtained / total_marks * 100, 2)


def grade_entry(
    student_id: str,
    marks_obtained: float,
    total_marks: float,
    scale: Optional[Mapping[str, Mapping[str, float]]] = None,
    remarks: Optional[str] = None,
    is_absent: bool = False,
) -> dict[str, Any]:
    """Stored entry for one student; absent students get zero marks and an F."""
    if is_absent:
        return {
            "student_id": student_id,
            "marks_obtained": 0,
            "percentage": 0,
            "grade": FAILING_LETTER,
            "remarks": remarks or "Absent",
            "is_absent": True,
        }

    percentage = percentage_of(marks_obtained, total_marks)
    return {
        "student_id": student_id,
        "marks_obtained": marks_obtained,
        "percentage": percentage,
        "grade": letter_grade(percentage, scale),
        "remarks": remarks,
        "is_absent": False,
    }


def summarize(entries: Iterable[Mapping[str, Any]]) -> dict[str, Any]:
    """
    Sheet statistics.

    Absent entries only count towards total_students and absent_count.
    """
    entries = list(entries)
    present = [e for e in entries if not e.get("is_absent")]

    stats: dict[str, Any] = {
        "total_students": len(entries),
        "absent_count": len(entries) - len(present),
        "average_marks": 0,
        "average_percentage": 0,
        "pass_count": 0,
        "fail_count": 0,
        "highest_marks": 0,
        "lowest_marks": 0,
    }
    if not present:
        return stats

    marks = [e["marks_obtained"] for e in present]
    stats["average_marks"] = round(sum(marks) / len(present), 2)
    stats["average_percentage"] = round(sum(e["percentage"] for e in present) / len(present), 2)
    stats["highest_marks"] = max(marks)
    stats["lowest_marks"] = min(marks)
    stats["fail_count"] = sum(1 for e in present if e["grade"] == FAILING_LETTER)
    stats["pass_count"] = len(present) - stats["fail_count"]
    return stats
