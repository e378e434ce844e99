from datetime import date

import pytest

from medlog import derived
from medlog.schemas import IntakeLog, Medication

DAY = "2024-05-01"


def med(med_id="m1", frequency=1, times=None, next_dose="09:00 AM", **kw):
    return Medication(
        id=med_id,
        name=kw.pop("name", f"Med {med_id}"),
        frequency=frequency,
        scheduled_times=times if times is not None else derived.suggested_times(frequency),
        next_dose=next_dose,
        **kw,
    )


def logs_for(med_id, day, count, start=0):
    return [
        IntakeLog(id=f"{med_id}-{day}-{i}", medication_id=med_id, medication_name=f"Med {med_id}",
                  time="08:00 AM", date=day)
        for i in range(start, start + count)
    ]


@pytest.mark.parametrize("frequency,taken", [(1, 0), (1, 1), (2, 1), (3, 2), (4, 4)])
def test_remaining_doses_count_down(frequency, taken):
    m = med(frequency=frequency)
    status = derived.medication_status(m, logs_for("m1", DAY, taken), DAY)
    assert status.doses_remaining == frequency - taken
    assert status.is_fully_taken == (taken == frequency)
    assert status.dose_index == taken


def test_extra_doses_floor_at_zero():
    m = med(frequency=2)
    status = derived.medication_status(m, logs_for("m1", DAY, 5), DAY)
    assert status.doses_remaining == 0
    assert status.is_fully_taken
    assert status.calculated_next_dose == "08:00 AM"


def test_next_dose_follows_schedule():
    m = med(frequency=3)
    status = derived.medication_status(m, logs_for("m1", DAY, 1), DAY)
    assert status.calculated_next_dose == "02:00 PM"


def test_short_schedule_falls_back_to_first_time():
    m = med(frequency=3, times=["08:00 AM"])
    status = derived.medication_status(m, logs_for("m1", DAY, 1), DAY)
    assert status.calculated_next_dose == "08:00 AM"
    assert status.doses_remaining == 2


def test_empty_schedule_falls_back_to_static_next_dose():
    m = med(frequency=2, times=[], next_dose="06:00 PM")
    status = derived.medication_status(m, [], DAY)
    assert status.calculated_next_dose == "06:00 PM"


def test_status_only_counts_logs_for_that_medication_and_day():
    m = med("m1", frequency=2)
    logs = logs_for("m1", DAY, 1) + logs_for("m1", "2024-04-30", 2) + logs_for("m2", DAY, 2)
    status = derived.medication_status(m, logs, DAY)
    assert len(status.logs_for_day) == 1
    assert status.doses_remaining == 1


def test_progress_with_no_medications_is_zero():
    progress = derived.day_progress([])
    assert progress.progress_percent == 0
    assert progress.total_scheduled == 0
    assert progress.remaining_count == 0


def test_progress_rounds_half_up():
    meds = [med("m1", frequency=4), med("m2", frequency=4)]
    statuses = derived.day_statuses(meds, logs_for("m1", DAY, 1), DAY)
    progress = derived.day_progress(statuses)
    # 1 of 8 is 12.5%
    assert progress.progress_percent == 13
    assert progress.remaining_count == 7
    assert progress.taken_count == 1


def test_progress_stays_within_bounds_with_excess_doses():
    meds = [med("m1", frequency=1), med("m2", frequency=2)]
    logs = logs_for("m1", DAY, 4) + logs_for("m2", DAY, 1)
    progress = derived.day_progress(derived.day_statuses(meds, logs, DAY))
    assert 0 <= progress.progress_percent <= 100
    assert progress.progress_percent == 67


def test_weekly_adherence_without_medications():
    week = derived.weekly_adherence([], logs_for("m1", "2024-05-01", 3), date(2024, 5, 1))
    assert week.overall_week_success == 0
    assert all(d.percentage == 0 for d in week.days)
    assert all(d.bar_height == 0 for d in week.days)


def test_weekly_adherence_window_is_chronological_and_ends_today():
    week = derived.weekly_adherence([med(frequency=2)], [], date(2024, 5, 1))
    assert [d.date for d in week.days] == [
        "2024-04-25", "2024-04-26", "2024-04-27", "2024-04-28", "2024-04-29", "2024-04-30", "2024-05-01",
    ]
    assert [d.is_today for d in week.days] == [False] * 6 + [True]
    # 2024-05-01 is a Wednesday
    assert week.days[-1].label == "W"


def test_weekly_adherence_counts():
    meds = [med("m1", frequency=2), med("m2", frequency=1)]
    logs = logs_for("m1", "2024-05-01", 2) + logs_for("m2", "2024-05-01", 1) + logs_for("m1", "2024-04-29", 1)
    week = derived.weekly_adherence(meds, logs, date(2024, 5, 1))
    assert week.total_expected == 21
    assert week.total_taken == 4
    assert week.overall_week_success == 19
    today = week.days[-1]
    assert today.expected_doses == 3
    assert today.taken_doses == 3
    assert today.percentage == 1.0
    assert today.bar_height == 40


def test_weekly_percentage_is_unclamped_but_bar_is_capped():
    week = derived.weekly_adherence([med(frequency=1)], logs_for("m1", "2024-05-01", 3), date(2024, 5, 1))
    assert week.days[-1].percentage == 3.0
    assert week.days[-1].bar_height == 40


def test_history_groups_newest_date_first_preserving_order():
    logs = [
        IntakeLog(id="a", medication_id="m1", medication_name="Lisinopril", time="08:30 PM", date="2024-05-01"),
        IntakeLog(id="b", medication_id="m2", medication_name="Metformin", time="12:15 PM", date="2024-04-30"),
        IntakeLog(id="c", medication_id="m1", medication_name="Lisinopril", time="08:30 AM", date="2024-05-01"),
        IntakeLog(id="d", medication_id="m1", medication_name="Lisinopril", time="08:28 AM", date="2024-04-29"),
    ]
    groups = derived.group_history(logs)
    assert [g.date for g in groups] == ["2024-05-01", "2024-04-30", "2024-04-29"]
    assert [l.id for l in groups[0].logs] == ["a", "c"]

    searched = derived.group_history(logs, search="metf")
    assert [g.date for g in searched] == ["2024-04-30"]

    one_day = derived.group_history(logs, date_filter="2024-05-01")
    assert len(one_day) == 1 and len(one_day[0].logs) == 2

    assert derived.group_history(logs, search="aspirin") == []


@pytest.mark.parametrize("frequency,label", [(1, "Once Daily"), (2, "Every 12h"), (3, "Every 8h"), (5, "Every 4h")])
def test_interval_label(frequency, label):
    assert derived.interval_label(frequency) == label


def test_suggested_times():
    assert derived.suggested_times(2) == ["08:00 AM", "08:00 PM"]
    assert len(derived.suggested_times(6)) == 6
    assert derived.suggested_times(9) == ["09:00 AM"]


def test_round_half_up():
    assert derived.round_half_up(12.5) == 13
    assert derived.round_half_up(0.5) == 1
    assert derived.round_half_up(66.4) == 66
