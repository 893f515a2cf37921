# riyaaz/tests/test_services.py
import datetime as dt
import random
import threading
from datetime import timedelta

import pytest
import pytz
from django.db import connection

from riyaaz import services
from riyaaz.exceptions import (
    AlreadyEnrolled,
    AlreadySubmitted,
    ClassroomNotFound,
    DateAlreadyLogged,
    InsufficientPoints,
    InvalidMendDate,
    InvalidPracticeDate,
    JoinCodeUnavailable,
    NotClassroomOwner,
    NotEnrolled,
    OwnerCannotJoin,
    StudentNotEnrolled,
)
from riyaaz.models import Classroom, Enrollment, HomeworkAssignment, HomeworkSubmission, PracticeEntry

TODAY = dt.date(2025, 10, 20)


def days_ago(n):
    return TODAY - timedelta(days=n)


# === Streak calculator ===

def test_streaks_empty_input_is_zero():
    assert services.calculate_streaks([], TODAY) == (0, 0)


def test_streaks_today_and_yesterday():
    s = services.calculate_streaks([TODAY, days_ago(1)], TODAY)
    assert s.current_streak == 2
    assert s.longest_streak == 2


def test_streaks_gap_of_two_days_resets_current():
    s = services.calculate_streaks([days_ago(2)], TODAY)
    assert s.current_streak == 0
    assert s.longest_streak == 1


def test_streaks_single_day_yesterday_keeps_current_alive():
    assert services.calculate_streaks([days_ago(1)], TODAY) == (1, 1)


def test_streaks_two_runs_longest_and_current():
    dates = [TODAY, days_ago(1), days_ago(2), days_ago(5), days_ago(6)]
    s = services.calculate_streaks(dates, TODAY)
    assert s.current_streak == 3
    assert s.longest_streak == 3


def test_streaks_longest_run_in_the_past():
    # Current run of 1 (yesterday), older run of 4.
    dates = [days_ago(1)] + [days_ago(n) for n in range(10, 14)]
    s = services.calculate_streaks(dates, TODAY)
    assert s.current_streak == 1
    assert s.longest_streak == 4


def test_streaks_are_order_independent_and_dedupe_same_day():
    dates = [days_ago(1), TODAY, TODAY, days_ago(1), TODAY]
    shuffled = list(dates)
    random.Random(7).shuffle(shuffled)
    assert services.calculate_streaks(dates, TODAY) == (2, 2)
    assert services.calculate_streaks(shuffled, TODAY) == (2, 2)


def test_streaks_accept_datetimes_and_drop_time_of_day():
    dates = [
        dt.datetime(2025, 10, 20, 6, 30),
        dt.datetime(2025, 10, 20, 22, 15),
        dt.datetime(2025, 10, 19, 12, 0),
    ]
    assert services.calculate_streaks(dates, TODAY) == (2, 2)


def test_streaks_are_idempotent():
    dates = [TODAY, days_ago(1), days_ago(3)]
    first = services.calculate_streaks(dates, TODAY)
    second = services.calculate_streaks(dates, TODAY)
    assert first == second == (2, 2)
    assert dates == [TODAY, days_ago(1), days_ago(3)]


# === Points calculator ===

def test_points_entries_and_submissions():
    assert services.calculate_points(4, 2) == 80


def test_points_three_entries_same_day():
    assert services.calculate_points(3, 0) == 30
    assert services.calculate_streaks([TODAY] * 3, TODAY).longest_streak == 1


def test_points_zero():
    assert services.calculate_points(0, 0) == 0


def test_available_points_subtracts_mends():
    assert services.available_points(120, 2) == 20


# === Dates ===

def test_to_local_date_plain_day_is_kept():
    tz = pytz.timezone("Asia/Kolkata")
    assert services.to_local_date("2025-10-27", tz) == dt.date(2025, 10, 27)


def test_to_local_date_converts_utc_datetime_to_local_day():
    tz = pytz.timezone("Asia/Kolkata")
    assert services.to_local_date("2025-10-27T20:00:00Z", tz) == dt.date(2025, 10, 28)
    assert services.to_local_date("2025-10-27T20:00:00", pytz.utc) == dt.date(2025, 10, 27)


def test_to_local_date_rejects_garbage():
    with pytest.raises(ValueError):
        services.to_local_date("yesterday-ish", pytz.utc)


def test_resolve_tz_default_and_unknown(settings):
    settings.RIYAAZ_TIME_ZONE = "Asia/Tokyo"
    assert services.resolve_tz(None).zone == "Asia/Tokyo"
    with pytest.raises(pytz.UnknownTimeZoneError):
        services.resolve_tz("Mars/Olympus")


def test_generate_join_code_format():
    code = services.generate_join_code(random.Random(1))
    assert code.startswith("RZ-")
    assert len(code) == 7
    assert all(c in services.JOIN_CODE_ALPHABET for c in code[3:])


# === Database-backed helpers ===

def _classroom(teacher_id="t-1"):
    return services.create_classroom(teacher_id, "Hindustani Vocal", "Evening batch")


def _enroll(classroom, student_id, name=""):
    return services.join_classroom(student_id, classroom.join_code, name)


def _practice(classroom, student_id, day, minutes=30, tag="Yaman"):
    return services.insert_practice_entry(
        classroom.id, student_id, day, duration_minutes=minutes, tag=tag, notes="alaap",
    )


def _homework(classroom, student_id, title="Bhairav bandish"):
    assignment = HomeworkAssignment.objects.create(classroom=classroom, title=title)
    return HomeworkSubmission.objects.create(
        assignment=assignment, student_id=student_id, recording_url="https://example.com/a.mp3",
    )


def _eighty_points(classroom, student_id):
    for n in range(1, 5):
        _practice(classroom, student_id, days_ago(n))
    _homework(classroom, student_id, "hw-1")
    _homework(classroom, student_id, "hw-2")


# === Mend transaction ===

@pytest.mark.django_db
def test_mend_succeeds_then_second_mend_lacks_points():
    c = _classroom()
    _enroll(c, "s-1")
    _eighty_points(c, "s-1")
    assert services.total_points_for(c.id, "s-1") == 80

    result = services.mend_streak(c.id, "s-1", days_ago(10), today=TODAY)
    assert result.points_spent == 50
    assert result.remaining_points == 30
    assert result.streak_mends_used == 1
    assert result.mended_date == days_ago(10)

    # The mend entry itself earns 10 points: 90 - 1 * 50 = 40 < 50.
    assert services.total_points_for(c.id, "s-1") == 90
    with pytest.raises(InsufficientPoints) as exc:
        services.mend_streak(c.id, "s-1", days_ago(11), today=TODAY)
    assert exc.value.required == 50
    assert exc.value.available == 40
    assert Enrollment.objects.get(classroom=c, student_id="s-1").streak_mends_used == 1


@pytest.mark.django_db
def test_mend_creates_zero_minute_marker_entry():
    c = _classroom()
    _enroll(c, "s-1")
    _eighty_points(c, "s-1")
    services.mend_streak(c.id, "s-1", days_ago(6), today=TODAY)

    entry = PracticeEntry.objects.get(classroom=c, student_id="s-1", date=days_ago(6))
    assert entry.duration_minutes == 0
    assert entry.tag == "Streak Mend"
    assert entry.notes == services.MEND_NOTES
    assert entry.is_mend


@pytest.mark.django_db
def test_mend_fills_gap_and_restores_current_streak():
    c = _classroom()
    e = _enroll(c, "s-1")
    for n in (0, 2, 3):
        _practice(c, "s-1", days_ago(n))
    _homework(c, "s-1", "hw-1")
    _homework(c, "s-1", "hw-2")   # 3*10 + 2*20 = 70
    assert services.student_stats(e, TODAY)["current_streak"] == 1

    services.mend_streak(c.id, "s-1", days_ago(1), today=TODAY)
    e.refresh_from_db()
    stats = services.student_stats(e, TODAY)
    assert stats["current_streak"] == 4
    assert stats["total_points"] == 80
    assert stats["available_points"] == 30
    assert stats["streak_mends_used"] == 1


@pytest.mark.django_db
def test_mend_rejected_when_day_already_logged():
    c = _classroom()
    _enroll(c, "s-1")
    _eighty_points(c, "s-1")
    with pytest.raises(DateAlreadyLogged):
        services.mend_streak(c.id, "s-1", days_ago(2), today=TODAY)
    assert PracticeEntry.objects.filter(classroom=c, student_id="s-1").count() == 4
    assert Enrollment.objects.get(classroom=c, student_id="s-1").streak_mends_used == 0


@pytest.mark.django_db
@pytest.mark.parametrize("offset", [0, -1, -30])
def test_mend_rejected_for_today_and_future(offset):
    c = _classroom()
    _enroll(c, "s-1")
    _eighty_points(c, "s-1")
    with pytest.raises(InvalidMendDate):
        services.mend_streak(c.id, "s-1", days_ago(offset), today=TODAY)
    assert Enrollment.objects.get(classroom=c, student_id="s-1").streak_mends_used == 0


@pytest.mark.django_db
def test_mend_balance_check_runs_before_date_checks():
    c = _classroom()
    _enroll(c, "s-1")
    _practice(c, "s-1", days_ago(1))
    # Already-logged day and too few points: the balance error wins.
    with pytest.raises(InsufficientPoints):
        services.mend_streak(c.id, "s-1", days_ago(1), today=TODAY)


@pytest.mark.django_db
def test_mend_requires_enrollment():
    c = _classroom()
    with pytest.raises(NotEnrolled):
        services.mend_streak(c.id, "stranger", days_ago(3), today=TODAY)


@pytest.mark.django_db
def test_mend_is_scoped_to_classroom():
    c1 = _classroom()
    c2 = _classroom()
    _enroll(c1, "s-1")
    _enroll(c2, "s-1")
    _eighty_points(c1, "s-1")
    # Points earned in c1 cannot be spent in c2.
    with pytest.raises(InsufficientPoints):
        services.mend_streak(c2.id, "s-1", days_ago(9), today=TODAY)


# === Stats and leaderboard ===

@pytest.mark.django_db
def test_student_stats_empty_history():
    c = _classroom()
    e = _enroll(c, "s-1")
    stats = services.student_stats(e, TODAY)
    assert stats == {
        "current_streak": 0,
        "longest_streak": 0,
        "total_points": 0,
        "available_points": 0,
        "streak_mends_used": 0,
        "last_practiced_date": None,
        "total_riyaaz_days": 0,
        "total_homework_submissions": 0,
    }


@pytest.mark.django_db
def test_student_stats_counts_every_entry_but_distinct_days():
    c = _classroom()
    e = _enroll(c, "s-1")
    for _ in range(3):
        _practice(c, "s-1", TODAY)
    _practice(c, "s-1", days_ago(4))
    stats = services.student_stats(e, TODAY)
    assert stats["total_points"] == 40
    assert stats["total_riyaaz_days"] == 2
    assert stats["current_streak"] == 1
    assert stats["last_practiced_date"] == TODAY


@pytest.mark.django_db
def test_leaderboard_sorted_by_points_with_join_order_tiebreak():
    c = _classroom()
    _enroll(c, "s-a", "Asha")
    _enroll(c, "s-b", "Bilal")
    _enroll(c, "s-c", "Chitra")
    _practice(c, "s-b", TODAY)
    _practice(c, "s-c", TODAY)
    _homework(c, "s-c")

    rows = services.leaderboard(c.id, TODAY)
    assert [r["student_id"] for r in rows] == ["s-c", "s-b", "s-a"]
    assert rows[0]["total_points"] == 30
    assert rows[0]["student_name"] == "Chitra"
    assert rows[2]["last_practiced_date"] is None

    # s-a and s-b tie at 10; s-a joined first.
    _practice(c, "s-a", days_ago(1))
    rows = services.leaderboard(c.id, TODAY)
    assert [r["student_id"] for r in rows] == ["s-c", "s-a", "s-b"]


# === Classrooms, practice and homework ===

@pytest.mark.django_db
def test_join_is_case_insensitive_and_rejects_duplicates():
    c = _classroom()
    e = services.join_classroom("s-1", c.join_code.lower(), "Meera")
    assert e.classroom_id == c.id
    assert e.student_name == "Meera"
    with pytest.raises(AlreadyEnrolled):
        services.join_classroom("s-1", c.join_code)
    with pytest.raises(ClassroomNotFound):
        services.join_classroom("s-1", "RZ-NOPE")


@pytest.mark.django_db
def test_log_practice_rejects_future_dates_and_strangers():
    c = _classroom()
    _enroll(c, "s-1")
    entry = services.log_practice(
        c.id, "s-1", date=TODAY, duration_minutes=45, tag="Bhimpalasi", notes="taans", today=TODAY,
    )
    assert entry.duration_minutes == 45
    with pytest.raises(InvalidPracticeDate):
        services.log_practice(
            c.id, "s-1", date=days_ago(-1), duration_minutes=45, tag="Yaman", notes="", today=TODAY,
        )
    with pytest.raises(NotEnrolled):
        services.log_practice(
            c.id, "s-2", date=TODAY, duration_minutes=45, tag="Yaman", notes="", today=TODAY,
        )


@pytest.mark.django_db
def test_homework_owner_only_and_single_submission():
    c = _classroom("t-1")
    _enroll(c, "s-1")
    with pytest.raises(NotClassroomOwner):
        services.create_assignment(c.id, "t-2", "Paltas")
    a = services.create_assignment(c.id, "t-1", "Paltas", "Ten rounds")

    services.submit_homework(a.id, "s-1", "https://example.com/rec.mp3", "done")
    with pytest.raises(AlreadySubmitted):
        services.submit_homework(a.id, "s-1", "https://example.com/rec2.mp3")
    with pytest.raises(NotEnrolled):
        services.submit_homework(a.id, "s-9", "https://example.com/rec3.mp3")
    assert services.count_homework_submissions(c.id, "s-1") == 1


@pytest.mark.django_db
def test_join_rejects_classroom_owner():
    c = _classroom("t-1")
    with pytest.raises(OwnerCannotJoin):
        services.join_classroom("t-1", c.join_code)
    assert not Enrollment.objects.filter(classroom=c).exists()


@pytest.mark.django_db
def test_create_classroom_retries_join_code_collisions(monkeypatch):
    taken = _classroom("t-1").join_code
    codes = iter([taken, taken, "RZ-NEW1"])
    monkeypatch.setattr(services, "generate_join_code", lambda rng=None: next(codes))
    c = services.create_classroom("t-2", "Tabla")
    assert c.join_code == "RZ-NEW1"


@pytest.mark.django_db
def test_create_classroom_gives_up_with_typed_error(monkeypatch):
    taken = _classroom("t-1").join_code
    monkeypatch.setattr(services, "generate_join_code", lambda rng=None: taken)
    with pytest.raises(JoinCodeUnavailable):
        services.create_classroom("t-2", "Tabla")
    assert Classroom.objects.count() == 1


# === Mend atomicity and concurrency ===

@pytest.mark.django_db
def test_mend_failure_after_insert_leaves_no_partial_state(monkeypatch):
    c = _classroom()
    _enroll(c, "s-1")
    _eighty_points(c, "s-1")

    def boom(classroom_id, student_id):
        raise RuntimeError("counter update failed")

    monkeypatch.setattr(services, "increment_mend_count", boom)
    with pytest.raises(RuntimeError):
        services.mend_streak(c.id, "s-1", days_ago(10), today=TODAY)

    assert not PracticeEntry.objects.filter(classroom=c, student_id="s-1", tag="Streak Mend").exists()
    assert PracticeEntry.objects.filter(classroom=c, student_id="s-1").count() == 4
    assert Enrollment.objects.get(classroom=c, student_id="s-1").streak_mends_used == 0


@pytest.mark.django_db(transaction=True)
def test_concurrent_mends_for_one_student_serialize():
    c = _classroom()
    _enroll(c, "s-1")
    for n in range(1, 11):
        _practice(c, "s-1", days_ago(n))     # 100 points

    start = threading.Barrier(2)
    results = []

    def worker(missed):
        try:
            start.wait()
            results.append(("ok", services.mend_streak(c.id, "s-1", missed, today=TODAY)))
        except Exception as e:
            results.append(("err", e))
        finally:
            connection.close()

    threads = [threading.Thread(target=worker, args=(days_ago(n),)) for n in (20, 21)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    # One after the other: 100 - 50 = 50 left, then 110 - 50 - 50 = 10 left.
    assert [kind for kind, _ in results] == ["ok", "ok"], results
    assert sorted(r.remaining_points for _, r in results) == [10, 50]
    assert sorted(r.streak_mends_used for _, r in results) == [1, 2]
    assert Enrollment.objects.get(classroom=c, student_id="s-1").streak_mends_used == 2
    assert PracticeEntry.objects.filter(classroom=c, student_id="s-1", tag="Streak Mend").count() == 2


# === Roster, notes and activity ===

@pytest.mark.django_db
def test_remove_student_owner_only():
    c = _classroom("t-1")
    _enroll(c, "s-1")
    _practice(c, "s-1", TODAY)
    with pytest.raises(NotClassroomOwner):
        services.remove_student(c.id, "t-2", "s-1")

    services.remove_student(c.id, "t-1", "s-1")
    assert not Enrollment.objects.filter(classroom=c, student_id="s-1").exists()
    assert PracticeEntry.objects.filter(classroom=c, student_id="s-1").count() == 1
    with pytest.raises(StudentNotEnrolled):
        services.remove_student(c.id, "t-1", "s-1")


@pytest.mark.django_db
def test_create_note_owner_only():
    c = _classroom("t-1")
    note = services.create_note(c.id, "t-1", "Raag Yaman", "Aroh and avroh", "https://example.com/n.mp3")
    assert note.classroom_id == c.id
    with pytest.raises(NotClassroomOwner):
        services.create_note(c.id, "s-1", "x", "y")
    with pytest.raises(ClassroomNotFound):
        services.create_note(999999, "t-1", "x", "y")


@pytest.mark.django_db
def test_recent_activity_merges_newest_first_and_caps():
    c = _classroom("t-1")
    _enroll(c, "s-1", "Asha")
    _practice(c, "s-1", days_ago(1), minutes=40, tag="Bhairav")
    _homework(c, "s-1", "Alankar set")
    _practice(c, "s-1", TODAY, minutes=25, tag="Yaman")

    rows = services.recent_activity(c.id, "t-1")
    assert [r["type"] for r in rows] == ["riyaaz", "homework", "riyaaz"]
    assert rows[0]["details"] == "Yaman, 25 min"
    assert rows[0]["student_name"] == "Asha"
    assert rows[1]["details"] == "Alankar set"

    assert len(services.recent_activity(c.id, "t-1", limit=2)) == 2
    with pytest.raises(NotClassroomOwner):
        services.recent_activity(c.id, "s-1")
