"""Grade bands shared by daily assessments and exam results."""
from __future__ import annotations

GRADE_BANDS: list[tuple[float, str]] = [
    (90, "A"),
    (80, "B"),
    (70, "C"),
    (60, "D"),
]


def calculate_grade(score: float) -> str:
    for threshold, grade in GRADE_BANDS:
        if score >= threshold:
            return grade
    return "E"


def assessment_total(tajwid: float, fashohah: float, fluency: float) -> float:
    return (tajwid + fashohah + fluency) / 3


def mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def final_score(daily: float, mid: float | None = None, end: float | None = None) -> float:
    """Semester score: daily assessments weighted against the exams that were held."""
    if mid is not None and end is not None:
        return daily * 0.3 + mid * 0.3 + end * 0.4
    if mid is not None:
        return daily * 0.5 + mid * 0.5
    if end is not None:
        return daily * 0.4 + end * 0.6
    return daily
