"""Memorization progress and attendance aggregation for one student."""
from __future__ import annotations

from collections import Counter

from tahfidz.repository import Record, Repositories
from tahfidz.services.grading import mean

TOTAL_QURAN_AYAHS = 6236
ATTENDANCE_STATUSES = ("present", "absent", "sick", "leave", "late")


def memorized_ayahs(logs: list[Record]) -> set[tuple[int, int]]:
    """Distinct (surah, ayah) pairs covered by ziyadah logs."""
    ayahs: set[tuple[int, int]] = set()
    for log in logs:
        if log["type"] != "ziyadah":
            continue
        for ayah in range(int(log["start_ayah"]), int(log["end_ayah"]) + 1):
            ayahs.add((int(log["surah_id"]), ayah))
    return ayahs


def surah_progress(logs: list[Record]) -> list[dict]:
    progress: dict[int, dict] = {}
    for log in logs:
        if log["type"] != "ziyadah":
            continue
        surah_id = int(log["surah_id"])
        entry = progress.setdefault(surah_id, {"surah_id": surah_id, "total_ayahs": 0, "sessions": 0})
        entry["total_ayahs"] += int(log["end_ayah"]) - int(log["start_ayah"]) + 1
        entry["sessions"] += 1
    return sorted(progress.values(), key=lambda e: e["surah_id"])


def average_scores(assessments: list[Record]) -> dict:
    return {
        "average_tajwid": round(mean([a["tajwid_score"] for a in assessments]), 2),
        "average_fashohah": round(mean([a["fashohah_score"] for a in assessments]), 2),
        "average_fluency": round(mean([a["fluency_score"] for a in assessments]), 2),
        "average_total": round(mean([a["total_score"] for a in assessments]), 2),
        "total_assessments": len(assessments),
    }


def attendance_summary(records: list[Record]) -> dict:
    counts = Counter(r["status"] for r in records)
    total = len(records)
    attended = counts["present"] + counts["late"]
    return {
        "total_sessions": total,
        **{f"{status}_count": counts[status] for status in ATTENDANCE_STATUSES},
        "attendance_percentage": round(attended / total * 100, 2) if total else 0.0,
    }


async def assessments_for_logs(repos: Repositories, logs: list[Record]) -> list[Record]:
    log_ids = [log["id"] for log in logs]
    if not log_ids:
        return []
    return await repos.assessments.find_many({"log_id": log_ids})


async def student_progress(repos: Repositories, student: Record) -> dict:
    logs = await repos.memorization_logs.find_many({"student_id": student["id"]})
    assessments = await assessments_for_logs(repos, logs)
    total_memorized = len(memorized_ayahs(logs))
    recent = sorted(logs, key=lambda log: (log["session_date"], log.get("created_at") or ""), reverse=True)[:10]
    return {
        "student": {"id": student["id"], "name": student["name"]},
        "overall": {
            "total_ayahs_memorized": total_memorized,
            "total_quran_ayahs": TOTAL_QURAN_AYAHS,
            "progress_percentage": round(total_memorized / TOTAL_QURAN_AYAHS * 100, 2),
        },
        "scores": average_scores(assessments),
        "surah_progress": surah_progress(logs),
        "recent_activity": recent,
    }
