"""
Derived views over the raw collections.

Nothing here touches storage or the notifier: the same medications, logs and
filters always give the same answer, which is what the schedule, history and
medication list screens render from.
"""
import math
from collections import OrderedDict
from datetime import date, timedelta
from typing import Iterable, List, Optional, Sequence

from .schemas import CamelModel, IntakeLog, Medication

BAR_MAX_HEIGHT = 40

SUGGESTED_TIMES = {
    1: ["09:00 AM"],
    2: ["08:00 AM", "08:00 PM"],
    3: ["08:00 AM", "02:00 PM", "08:00 PM"],
    4: ["08:00 AM", "12:00 PM", "04:00 PM", "08:00 PM"],
    5: ["07:00 AM", "11:00 AM", "03:00 PM", "07:00 PM", "11:00 PM"],
    6: ["06:00 AM", "10:00 AM", "02:00 PM", "06:00 PM", "10:00 PM", "02:00 AM"],
}


def round_half_up(value: float) -> int:
    # built-in round() is banker's rounding; percentages round .5 upwards
    return int(math.floor(value + 0.5))


def suggested_times(frequency: int) -> List[str]:
    return list(SUGGESTED_TIMES.get(frequency, ["09:00 AM"]))


def interval_label(frequency: int) -> str:
    """Display-only label. ``24 // frequency`` is imprecise for 5, 7, ... and stays so."""
    if frequency and frequency > 1:
        return f"Every {24 // frequency}h"
    return "Once Daily"


# ----------------------------
# Per-day status
# ----------------------------
class DoseStatus(CamelModel):
    medication: Medication
    logs_for_day: List[IntakeLog]
    dose_index: int
    calculated_next_dose: Optional[str]
    is_fully_taken: bool
    doses_remaining: int


class DayProgress(CamelModel):
    remaining_count: int
    total_scheduled: int
    taken_count: int
    progress_percent: int


def medication_status(medication: Medication, logs: Iterable[IntakeLog], day: str) -> DoseStatus:
    logs_for_day = [l for l in logs if l.medication_id == medication.id and l.date == day]
    dose_index = len(logs_for_day)
    times = medication.scheduled_times or []
    if dose_index < len(times):
        next_dose = times[dose_index]
    elif times:
        next_dose = times[0]
    else:
        next_dose = medication.next_dose
    return DoseStatus(
        medication=medication,
        logs_for_day=logs_for_day,
        dose_index=dose_index,
        calculated_next_dose=next_dose,
        is_fully_taken=dose_index >= medication.frequency,
        doses_remaining=max(0, medication.frequency - dose_index),
    )


def day_statuses(medications: Sequence[Medication], logs: Sequence[IntakeLog], day: str) -> List[DoseStatus]:
    return [medication_status(m, logs, day) for m in medications]


def day_progress(statuses: Sequence[DoseStatus]) -> DayProgress:
    remaining = sum(s.doses_remaining for s in statuses)
    total = sum(s.medication.frequency for s in statuses)
    taken = total - remaining
    percent = round_half_up(100 * taken / total) if total > 0 else 0
    return DayProgress(
        remaining_count=remaining,
        total_scheduled=total,
        taken_count=taken,
        progress_percent=percent,
    )


# ----------------------------
# Weekly adherence
# ----------------------------
class AdherenceDay(CamelModel):
    date: str
    label: str
    expected_doses: int
    taken_doses: int
    percentage: float
    bar_height: float
    is_today: bool


class WeeklyAdherence(CamelModel):
    days: List[AdherenceDay]
    total_expected: int
    total_taken: int
    overall_week_success: int


def weekly_adherence(medications: Sequence[Medication], logs: Sequence[IntakeLog], today: date) -> WeeklyAdherence:
    """Trailing seven days ending ``today``, oldest first.

    Expected doses use today's medication list for every day of the window, so
    a medication added mid-week counts as expected on earlier days too.
    """
    expected = sum(m.frequency for m in medications)
    days = []
    for offset in range(6, -1, -1):
        day = today - timedelta(days=offset)
        iso = day.isoformat()
        taken = sum(1 for l in logs if l.date == iso)
        percentage = taken / expected if expected > 0 else 0.0
        days.append(
            AdherenceDay(
                date=iso,
                label=day.strftime("%a")[0],
                expected_doses=expected,
                taken_doses=taken,
                percentage=percentage,
                bar_height=min(percentage * BAR_MAX_HEIGHT, BAR_MAX_HEIGHT),
                is_today=offset == 0,
            )
        )
    total_expected = sum(d.expected_doses for d in days)
    total_taken = sum(d.taken_doses for d in days)
    overall = round_half_up(100 * total_taken / total_expected) if total_expected > 0 else 0
    return WeeklyAdherence(
        days=days,
        total_expected=total_expected,
        total_taken=total_taken,
        overall_week_success=overall,
    )


# ----------------------------
# History
# ----------------------------
class HistoryGroup(CamelModel):
    date: str
    logs: List[IntakeLog]


def filter_history(logs: Iterable[IntakeLog], search: str = "", date_filter: Optional[str] = None) -> List[IntakeLog]:
    term = (search or "").lower()
    return [
        l for l in logs
        if term in l.medication_name.lower() and (not date_filter or l.date == date_filter)
    ]


def group_history(logs: Iterable[IntakeLog], search: str = "", date_filter: Optional[str] = None) -> List[HistoryGroup]:
    groups: "OrderedDict[str, List[IntakeLog]]" = OrderedDict()
    for log in filter_history(logs, search, date_filter):
        groups.setdefault(log.date, []).append(log)
    return [HistoryGroup(date=d, logs=groups[d]) for d in sorted(groups, reverse=True)]
