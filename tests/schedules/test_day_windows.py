from datetime import date, timedelta

from src.ojt_tracker.ojt_tracker.common.datetime_utils import hhmm_to_minutes, local_tz, ms_at
from src.ojt_tracker.ojt_tracker.core.enums import ShiftLabel
from src.ojt_tracker.ojt_tracker.schedules.model import EffectiveSchedule, OvertimeAuthorization
from src.ojt_tracker.ojt_tracker.schedules.overtime import merge_overtime
from src.ojt_tracker.ojt_tracker.schedules.windows import build_day_windows, grace_ms

TZ = local_tz(8)
DAY = date(2024, 5, 1)


def at(hhmm: str, day: date = DAY) -> int:
    return ms_at(day, hhmm_to_minutes(hhmm), TZ)


def test_regular_windows_are_absolute_on_the_day():
    schedule = EffectiveSchedule.from_values(am_in="08:00", am_out="12:00", pm_in="13:00", pm_out="17:00")

    windows = build_day_windows(DAY, schedule, TZ)

    assert (windows.am.start_ms, windows.am.end_ms) == (at("08:00"), at("12:00"))
    assert (windows.pm.start_ms, windows.pm.end_ms) == (at("13:00"), at("17:00"))
    assert windows.ot is None


def test_afternoon_hours_without_meridiem_mean_pm():
    schedule = EffectiveSchedule.from_values(am_in="8:00", am_out="12:00", pm_in="1:00", pm_out="5:00")

    windows = build_day_windows(DAY, schedule, TZ)

    assert windows.pm.start_ms == at("13:00")
    assert windows.pm.end_ms == at("17:00")


def test_window_crossing_midnight_ends_next_day():
    schedule = EffectiveSchedule.from_values(ot_in="22:00", ot_out="01:00")

    windows = build_day_windows(DAY, schedule, TZ)

    assert windows.ot.start_ms == at("22:00")
    assert windows.ot.end_ms == at("01:00", DAY + timedelta(days=1))


def test_configured_overtime_never_starts_before_pm_end():
    schedule = EffectiveSchedule.from_values(pm_in="13:00", pm_out="17:00", ot_in="16:00", ot_out="19:00")

    windows = build_day_windows(DAY, schedule, TZ)

    assert windows.ot.start_ms == at("17:00")
    assert windows.ot.end_ms == at("19:00")


def test_authorization_gives_exact_overtime_window():
    schedule = EffectiveSchedule.from_values(am_in="08:00", am_out="12:00", ot_in="17:00", ot_out="18:00")
    auth = OvertimeAuthorization(student_id=1, work_date=DAY, start_ms=at("18:00"), end_ms=at("19:30"))

    windows = build_day_windows(DAY, merge_overtime(schedule, auth, TZ), TZ, authorization=auth)

    assert (windows.ot.start_ms, windows.ot.end_ms) == (at("18:00"), at("19:30"))
    assert windows.am.start_ms == at("08:00")


def test_merge_overtime_replaces_only_the_overtime_fields():
    schedule = EffectiveSchedule.from_values(am_in="08:00", am_out="12:00", ot_in="17:00", ot_out="18:00")
    auth = OvertimeAuthorization(student_id=1, work_date=DAY, start_ms=at("18:00"), end_ms=at("19:00"))

    merged = merge_overtime(schedule, auth, TZ)

    assert (merged.ot_in, merged.ot_out) == ("18:00", "19:00")
    assert merged.overtime_authorized
    assert merged.am_in == "08:00"
    assert merge_overtime(schedule, None, TZ) is schedule


def test_authorization_alone_creates_a_schedule():
    auth = OvertimeAuthorization(student_id=1, work_date=DAY, start_ms=at("18:00"), end_ms=at("19:00"))

    merged = merge_overtime(None, auth, TZ)

    assert merged is not None
    assert merged.am_in is None
    assert merged.ot_in == "18:00"


def test_classify_uses_grace_and_prefers_am():
    schedule = EffectiveSchedule.from_values(am_in="08:00", am_out="12:00", pm_in="12:00", pm_out="17:00")
    windows = build_day_windows(DAY, schedule, TZ)
    g = grace_ms(30)

    assert windows.classify(at("07:30"), grace_ms=g) is ShiftLabel.AM
    assert windows.classify(at("07:29"), grace_ms=g) is None
    assert windows.classify(at("11:45"), grace_ms=g) is ShiftLabel.AM
    assert windows.classify(at("12:00"), grace_ms=g) is ShiftLabel.PM
    assert windows.classify(at("17:00"), grace_ms=g) is None


def test_no_schedule_means_no_windows():
    assert build_day_windows(DAY, None, TZ).is_empty


def test_shift_at_splits_on_shift_ends():
    schedule = EffectiveSchedule.from_values(am_in="08:00", am_out="12:00", pm_in="13:00", pm_out="17:00")
    windows = build_day_windows(DAY, schedule, TZ)

    assert windows.shift_at(at("06:00")) is ShiftLabel.AM
    assert windows.shift_at(at("11:59")) is ShiftLabel.AM
    assert windows.shift_at(at("12:00")) is ShiftLabel.PM
    assert windows.shift_at(at("12:30")) is ShiftLabel.PM
    assert windows.shift_at(at("17:00")) is None
    assert build_day_windows(DAY, None, TZ).shift_at(at("09:00")) is None
