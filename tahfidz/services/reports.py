"""Report card generation from attendance, memorization logs and exam results."""
from __future__ import annotations

import logging

from tahfidz.repository import Record, Repositories
from tahfidz.services.grading import calculate_grade, final_score, mean
from tahfidz.services.progress import (
    TOTAL_QURAN_AYAHS,
    assessments_for_logs,
    attendance_summary,
    memorized_ayahs,
)

logger = logging.getLogger(__name__)

# academic_year "2025/2026": semester 1 runs July-December of the first year,
# semester 2 January-June of the second.
SEMESTER_MONTHS = {"1": ("07-01", "12-31"), "2": ("01-01", "06-30")}


def semester_date_range(academic_year: str, semester: str) -> tuple[str, str]:
    first, second = academic_year.split("/")
    year = first if semester == "1" else second
    start, end = SEMESTER_MONTHS[semester]
    return f"{year}-{start}", f"{year}-{end}"


def _in_range(value: str, start: str, end: str) -> bool:
    return start <= value[:10] <= end


async def _exam_scores(repos: Repositories, student_id: str, academic_year: str, semester: str) -> dict:
    results = await repos.exam_results.find_many({"student_id": student_id})
    scores: dict[str, float | None] = {"mid_semester_score": None, "end_semester_score": None}
    for result in results:
        exam = await repos.exams.find_first({"id": result["exam_id"]})
        if not exam or exam["academic_year"] != academic_year or exam["semester"] != semester:
            continue
        if exam["exam_type"] == "mid_semester":
            scores["mid_semester_score"] = result["total_score"]
        elif exam["exam_type"] == "end_semester":
            scores["end_semester_score"] = result["total_score"]
    return scores


async def build_report_data(
    repos: Repositories,
    student_id: str,
    academic_year: str,
    semester: str,
    target_ayahs: int | None = None,
) -> dict:
    """Summary fields of a report for one student and semester."""
    start, end = semester_date_range(academic_year, semester)

    attendance = [
        r for r in await repos.attendance.find_many({"student_id": student_id}) if _in_range(r["date"], start, end)
    ]
    summary = attendance_summary(attendance)

    all_logs = await repos.memorization_logs.find_many({"student_id": student_id})
    semester_logs = [log for log in all_logs if _in_range(log["session_date"], start, end)]
    total_memorized = len(memorized_ayahs(all_logs))
    new_ayahs = len(memorized_ayahs(semester_logs))
    ziyadah = sorted(
        (log for log in all_logs if log["type"] == "ziyadah"),
        key=lambda log: log["session_date"],
    )
    current = ziyadah[-1] if ziyadah else None

    assessments = await assessments_for_logs(repos, semester_logs)
    avg_total = mean([a["total_score"] for a in assessments])
    exams = await _exam_scores(repos, student_id, academic_year, semester)

    score = round(final_score(avg_total, exams["mid_semester_score"], exams["end_semester_score"]), 2)
    target = target_ayahs or 0

    return {
        "total_sessions": summary["total_sessions"],
        "present_count": summary["present_count"],
        "absent_count": summary["absent_count"],
        "sick_count": summary["sick_count"],
        "leave_count": summary["leave_count"],
        "attendance_percentage": summary["attendance_percentage"],
        "total_ayahs_memorized": total_memorized,
        "total_new_ayahs": new_ayahs,
        "total_murojaah_sessions": sum(1 for log in semester_logs if log["type"] == "murojaah"),
        "current_surah": current["surah_id"] if current else None,
        "current_ayah": current["end_ayah"] if current else None,
        "progress_percentage": round(
            new_ayahs / target * 100 if target else total_memorized / TOTAL_QURAN_AYAHS * 100, 2
        ),
        "avg_tajwid_score": round(mean([a["tajwid_score"] for a in assessments]), 2),
        "avg_fashohah_score": round(mean([a["fashohah_score"] for a in assessments]), 2),
        "avg_fluency_score": round(mean([a["fluency_score"] for a in assessments]), 2),
        "avg_total_score": round(avg_total, 2),
        **exams,
        "final_score": score,
        "final_grade": calculate_grade(score),
    }


async def generate_report(
    repos: Repositories,
    student: Record,
    academic_year: str,
    semester: str,
    class_id: str | None = None,
) -> tuple[Record, bool]:
    """Create or refresh the draft report of ``student``. Returns (report, created)."""
    existing = await repos.reports.find_first(
        {"student_id": student["id"], "academic_year": academic_year, "semester": semester}
    )
    target = existing.get("target_ayahs") if existing else None
    data = await build_report_data(repos, student["id"], academic_year, semester, target)
    if existing:
        if existing["status"] != "draft":
            logger.info("Report %s is %s, not regenerating", existing["id"], existing["status"])
            return existing, False
        updated = await repos.reports.update(existing["id"], {**data, "class_id": class_id or existing.get("class_id")})
        return updated, False
    created = await repos.reports.create(
        {
            "student_id": student["id"],
            "class_id": class_id,
            "academic_year": academic_year,
            "semester": semester,
            **data,
        }
    )
    return created, True


async def rank_class_reports(repos: Repositories, class_id: str, academic_year: str, semester: str) -> int:
    """Set ``class_rank`` and ``total_students`` on every report of a class and semester."""
    reports = await repos.reports.find_many(
        {"class_id": class_id, "academic_year": academic_year, "semester": semester}
    )
    reports.sort(key=lambda r: r["final_score"], reverse=True)
    for position, report in enumerate(reports, start=1):
        await repos.reports.update(report["id"], {"class_rank": position, "total_students": len(reports)})
    return len(reports)
