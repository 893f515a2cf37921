# riyaaz/services.py
from __future__ import annotations

import datetime as dt
import logging
import random
import string
from typing import Dict, Iterable, List, NamedTuple, Optional

import pytz
from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

from .exceptions import (
    AlreadyEnrolled,
    AlreadySubmitted,
    AssignmentNotFound,
    ClassroomNotFound,
    DateAlreadyLogged,
    InsufficientPoints,
    InvalidMendDate,
    InvalidPracticeDate,
    JoinCodeUnavailable,
    NotClassroomOwner,
    NotEnrolled,
    OwnerCannotJoin,
    RiyaazError,
    StudentNotEnrolled,
)
from .models import (
    STREAK_MEND_TAG,
    ClassNote,
    Classroom,
    Enrollment,
    HomeworkAssignment,
    HomeworkSubmission,
    PracticeEntry,
)

logger = logging.getLogger(__name__)

MEND_COST = 50
POINTS_PER_PRACTICE_ENTRY = 10
POINTS_PER_HOMEWORK_SUBMISSION = 20

MEND_NOTES = "Streak mended using points"

JOIN_CODE_PREFIX = "RZ-"
JOIN_CODE_ALPHABET = string.ascii_uppercase + string.digits
JOIN_CODE_LENGTH = 4
JOIN_CODE_ATTEMPTS = 10


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------

def resolve_tz(tz: str | dt.tzinfo | None = None) -> dt.tzinfo:
    """Return a tzinfo for an IANA name; None falls back to RIYAAZ_TIME_ZONE."""
    if isinstance(tz, dt.tzinfo):
        return tz
    return pytz.timezone(tz or settings.RIYAAZ_TIME_ZONE)


def to_local_date(x: str | dt.date | dt.datetime, tz: dt.tzinfo) -> dt.date:
    """Parse a date, datetime or ISO string into the calendar day it falls on in ``tz``."""
    if isinstance(x, dt.datetime):
        d = x
    elif isinstance(x, dt.date):
        return x
    elif isinstance(x, str):
        day = parse_date(x)
        if day is not None:
            return day
        d = parse_datetime(x)
        if d is None:
            raise ValueError("date must be ISO-8601")
    else:
        raise TypeError("date must be str, date or datetime")
    if timezone.is_naive(d):
        d = timezone.make_aware(d, dt.timezone.utc)
    return d.astimezone(tz).date()


def local_today(tz: dt.tzinfo) -> dt.date:
    return timezone.now().astimezone(tz).date()


def _as_day(x: dt.date | dt.datetime) -> dt.date:
    return x.date() if isinstance(x, dt.datetime) else x


# ---------------------------------------------------------------------------
# Calculators
# ---------------------------------------------------------------------------

class Streaks(NamedTuple):
    current_streak: int
    longest_streak: int


def calculate_streaks(dates: Iterable[dt.date | dt.datetime], today: dt.date) -> Streaks:
    """
    Derive streaks from practice dates (any order, duplicates allowed).

    Rules:
      1) Only distinct calendar days count; several entries on one day are one day.
      2) The current streak is 0 unless the latest day is today or yesterday;
         otherwise it is the run of consecutive days ending at the latest day.
      3) The longest streak is the longest run of consecutive days anywhere.
    """
    days = sorted({_as_day(d) for d in dates}, reverse=True)
    if not days:
        return Streaks(0, 0)

    current = 0
    if (today - days[0]).days <= 1:
        expected = days[0]
        for day in days:
            if day != expected:
                break
            current += 1
            expected -= dt.timedelta(days=1)

    longest = run = 1
    for newer, older in zip(days, days[1:]):
        if (newer - older).days == 1:
            run += 1
        else:
            run = 1
        longest = max(longest, run)

    return Streaks(current, longest)


def calculate_points(practice_entry_count: int, homework_submission_count: int) -> int:
    # Mend entries are practice entries too and earn points like any other.
    return (practice_entry_count * POINTS_PER_PRACTICE_ENTRY
            + homework_submission_count * POINTS_PER_HOMEWORK_SUBMISSION)


def available_points(total_points: int, streak_mends_used: int) -> int:
    return total_points - streak_mends_used * MEND_COST


# ---------------------------------------------------------------------------
# Activity log store
# ---------------------------------------------------------------------------

def get_enrollment(classroom_id: int, student_id: str, *, for_update: bool = False) -> Enrollment:
    qs = Enrollment.objects.all()
    if for_update:
        qs = qs.select_for_update()
    try:
        return qs.get(classroom_id=classroom_id, student_id=student_id)
    except Enrollment.DoesNotExist:
        raise NotEnrolled()


def list_practice_dates(classroom_id: int, student_id: str) -> List[dt.date]:
    """One date per entry, most recent first."""
    return list(
        PracticeEntry.objects.filter(classroom_id=classroom_id, student_id=student_id)
        .order_by("-date", "-id")
        .values_list("date", flat=True)
    )


def practice_entry_exists(classroom_id: int, student_id: str, date: dt.date) -> bool:
    return PracticeEntry.objects.filter(
        classroom_id=classroom_id, student_id=student_id, date=date,
    ).exists()


def insert_practice_entry(
    classroom_id: int,
    student_id: str,
    date: dt.date,
    duration_minutes: int,
    tag: str,
    notes: str,
    recording_url: str = "",
) -> PracticeEntry:
    return PracticeEntry.objects.create(
        classroom_id=classroom_id,
        student_id=student_id,
        date=date,
        duration_minutes=duration_minutes,
        tag=tag,
        notes=notes,
        recording_url=recording_url or "",
    )


def count_practice_entries(classroom_id: int, student_id: str) -> int:
    return PracticeEntry.objects.filter(classroom_id=classroom_id, student_id=student_id).count()


def count_homework_submissions(classroom_id: int, student_id: str) -> int:
    return HomeworkSubmission.objects.filter(
        student_id=student_id, assignment__classroom_id=classroom_id,
    ).count()


def increment_mend_count(classroom_id: int, student_id: str) -> int:
    """Bump the mend counter in SQL and return the new value. Call inside the mend transaction."""
    qs = Enrollment.objects.filter(classroom_id=classroom_id, student_id=student_id)
    qs.update(streak_mends_used=F("streak_mends_used") + 1)
    return qs.values_list("streak_mends_used", flat=True).get()


def total_points_for(classroom_id: int, student_id: str) -> int:
    return calculate_points(
        count_practice_entries(classroom_id, student_id),
        count_homework_submissions(classroom_id, student_id),
    )


# ---------------------------------------------------------------------------
# Streak mend
# ---------------------------------------------------------------------------

class MendResult(NamedTuple):
    mended_date: dt.date
    points_spent: int
    remaining_points: int
    streak_mends_used: int


def mend_streak(classroom_id: int, student_id: str, missed_date: dt.date, *, today: dt.date) -> MendResult:
    """
    Spend MEND_COST points to backfill a missed day with a zero-minute entry.

    The enrollment row is locked for the whole read-check-write sequence, so two
    concurrent mends for the same student serialize and the second one sees the
    first one's counter. Checks run in order and the first failure wins:
    enrollment, balance, existing entry on that day, day strictly in the past.
    """
    try:
        with transaction.atomic():
            enrollment = get_enrollment(classroom_id, student_id, for_update=True)

            total = total_points_for(classroom_id, student_id)
            points_after_mend = available_points(total, enrollment.streak_mends_used)
            if points_after_mend < MEND_COST:
                raise InsufficientPoints(required=MEND_COST, available=points_after_mend)

            if practice_entry_exists(classroom_id, student_id, missed_date):
                raise DateAlreadyLogged()

            if missed_date >= today:
                raise InvalidMendDate()

            insert_practice_entry(
                classroom_id, student_id, missed_date,
                duration_minutes=0, tag=STREAK_MEND_TAG, notes=MEND_NOTES,
            )
            mends_used = increment_mend_count(classroom_id, student_id)
    except RiyaazError as e:
        logger.warning(
            "streak mend rejected: %s", e.kind,
            extra={"classroom_id": classroom_id, "student_id": student_id},
        )
        raise

    logger.info(
        "streak mended for %s", missed_date.isoformat(),
        extra={"classroom_id": classroom_id, "student_id": student_id},
    )
    return MendResult(
        mended_date=missed_date,
        points_spent=MEND_COST,
        remaining_points=points_after_mend - MEND_COST,
        streak_mends_used=mends_used,
    )


# ---------------------------------------------------------------------------
# Stats and leaderboard
# ---------------------------------------------------------------------------

def student_stats(enrollment: Enrollment, today: dt.date) -> Dict:
    """Recompute every derived metric for one enrollment from the activity log."""
    dates = list_practice_dates(enrollment.classroom_id, enrollment.student_id)
    submissions = count_homework_submissions(enrollment.classroom_id, enrollment.student_id)
    streaks = calculate_streaks(dates, today)
    total = calculate_points(len(dates), submissions)
    return {
        "current_streak": streaks.current_streak,
        "longest_streak": streaks.longest_streak,
        "total_points": total,
        "available_points": available_points(total, enrollment.streak_mends_used),
        "streak_mends_used": enrollment.streak_mends_used,
        "last_practiced_date": dates[0] if dates else None,
        "total_riyaaz_days": len(set(dates)),
        "total_homework_submissions": submissions,
    }


def leaderboard(classroom_id: int, today: dt.date) -> List[Dict]:
    """Rank enrolled students by total points; ties go to whoever joined first."""
    rows = []
    enrollments = Enrollment.objects.filter(classroom_id=classroom_id).order_by("joined_at", "student_id")
    for enrollment in enrollments:
        stats = student_stats(enrollment, today)
        rows.append({
            "student_id": enrollment.student_id,
            "student_name": enrollment.student_name,
            "current_streak": stats["current_streak"],
            "longest_streak": stats["longest_streak"],
            "total_points": stats["total_points"],
            "available_points": stats["available_points"],
            "last_practiced_date": stats["last_practiced_date"],
        })
    rows.sort(key=lambda r: r["total_points"], reverse=True)
    return rows


# ---------------------------------------------------------------------------
# Classrooms, practice and homework
# ---------------------------------------------------------------------------

def generate_join_code(rng: random.Random | None = None) -> str:
    """Return a code like RZ-3F8K."""
    rng = rng or random
    return JOIN_CODE_PREFIX + "".join(rng.choice(JOIN_CODE_ALPHABET) for _ in range(JOIN_CODE_LENGTH))


def create_classroom(teacher_id: str, name: str, description: str = "") -> Classroom:
    """Create a classroom; the unique index on join_code decides collisions."""
    for _ in range(JOIN_CODE_ATTEMPTS):
        try:
            with transaction.atomic():
                classroom = Classroom.objects.create(
                    teacher_id=teacher_id,
                    name=name,
                    description=description or "",
                    join_code=generate_join_code(),
                )
        except IntegrityError:
            continue
        logger.info("classroom created", extra={"classroom_id": classroom.id, "teacher_id": teacher_id})
        return classroom

    logger.error("join code space exhausted", extra={"teacher_id": teacher_id})
    raise JoinCodeUnavailable()


def get_classroom(classroom_id: int) -> Classroom:
    try:
        return Classroom.objects.get(pk=classroom_id)
    except Classroom.DoesNotExist:
        raise ClassroomNotFound()


def require_owner(classroom: Classroom, user_id: str) -> None:
    if classroom.teacher_id != user_id:
        raise NotClassroomOwner()


def require_member(classroom: Classroom, user_id: str) -> Optional[Enrollment]:
    """Pass for the owning teacher (returns None) or an enrolled student (returns the enrollment)."""
    if classroom.teacher_id == user_id:
        return None
    return get_enrollment(classroom.id, user_id)


def join_classroom(student_id: str, join_code: str, student_name: str = "") -> Enrollment:
    try:
        classroom = Classroom.objects.get(join_code=join_code.strip().upper())
    except Classroom.DoesNotExist:
        raise ClassroomNotFound("Invalid join code.")
    if classroom.teacher_id == student_id:
        raise OwnerCannotJoin()

    try:
        with transaction.atomic():
            enrollment, created = Enrollment.objects.get_or_create(
                classroom=classroom,
                student_id=student_id,
                defaults={"student_name": student_name or ""},
            )
    except IntegrityError:
        # Lost a race with a concurrent join for the same student.
        created = False
    if not created:
        raise AlreadyEnrolled()

    logger.info("student enrolled", extra={"classroom_id": classroom.id, "student_id": student_id})
    return enrollment


def log_practice(
    classroom_id: int,
    student_id: str,
    *,
    date: dt.date,
    duration_minutes: int,
    tag: str,
    notes: str,
    recording_url: str = "",
    today: dt.date,
) -> PracticeEntry:
    get_enrollment(classroom_id, student_id)
    if date > today:
        raise InvalidPracticeDate()
    return insert_practice_entry(
        classroom_id, student_id, date,
        duration_minutes=duration_minutes, tag=tag, notes=notes, recording_url=recording_url,
    )


def create_assignment(
    classroom_id: int,
    teacher_id: str,
    title: str,
    description: str = "",
    due_date: dt.datetime | None = None,
) -> HomeworkAssignment:
    classroom = get_classroom(classroom_id)
    require_owner(classroom, teacher_id)
    return HomeworkAssignment.objects.create(
        classroom=classroom,
        title=title,
        description=description or "",
        due_date=due_date,
    )


def get_assignment(assignment_id: int) -> HomeworkAssignment:
    try:
        return HomeworkAssignment.objects.select_related("classroom").get(pk=assignment_id)
    except HomeworkAssignment.DoesNotExist:
        raise AssignmentNotFound()


def submit_homework(assignment_id: int, student_id: str, recording_url: str, notes: str = "") -> HomeworkSubmission:
    assignment = get_assignment(assignment_id)
    get_enrollment(assignment.classroom_id, student_id)
    try:
        with transaction.atomic():
            return HomeworkSubmission.objects.create(
                assignment=assignment,
                student_id=student_id,
                recording_url=recording_url,
                notes=notes or "",
            )
    except IntegrityError:
        raise AlreadySubmitted()


def remove_student(classroom_id: int, teacher_id: str, student_id: str) -> None:
    """Drop an enrollment; the student's practice log and submissions stay in place."""
    classroom = get_classroom(classroom_id)
    require_owner(classroom, teacher_id)
    deleted, _ = Enrollment.objects.filter(classroom=classroom, student_id=student_id).delete()
    if not deleted:
        raise StudentNotEnrolled()
    logger.info("student removed", extra={"classroom_id": classroom.id, "student_id": student_id})


def create_note(
    classroom_id: int,
    teacher_id: str,
    title: str,
    content: str,
    recording_url: str = "",
) -> ClassNote:
    classroom = get_classroom(classroom_id)
    require_owner(classroom, teacher_id)
    return ClassNote.objects.create(
        classroom=classroom,
        title=title,
        content=content,
        recording_url=recording_url or "",
    )


# ---------------------------------------------------------------------------
# Activity feed
# ---------------------------------------------------------------------------

ACTIVITY_LIMIT = 20


def recent_activity(classroom_id: int, teacher_id: str, limit: int = ACTIVITY_LIMIT) -> List[Dict]:
    """
    Merge the latest practice entries and homework submissions of a classroom,
    newest first. Each source contributes at most ``limit`` rows before merging.
    """
    classroom = get_classroom(classroom_id)
    require_owner(classroom, teacher_id)

    names = dict(
        Enrollment.objects.filter(classroom=classroom).values_list("student_id", "student_name")
    )

    activities = []
    entries = PracticeEntry.objects.filter(classroom=classroom).order_by("-created_at", "-id")[:limit]
    for entry in entries:
        activities.append({
            "type": "riyaaz",
            "student_id": entry.student_id,
            "student_name": names.get(entry.student_id, ""),
            "details": f"{entry.tag}, {entry.duration_minutes} min",
            "date": entry.date,
            "timestamp": entry.created_at,
        })

    submissions = (
        HomeworkSubmission.objects.filter(assignment__classroom=classroom)
        .select_related("assignment")
        .order_by("-submitted_at", "-id")[:limit]
    )
    for submission in submissions:
        activities.append({
            "type": "homework",
            "student_id": submission.student_id,
            "student_name": names.get(submission.student_id, ""),
            "details": submission.assignment.title,
            "date": submission.submitted_at,
            "timestamp": submission.submitted_at,
        })

    activities.sort(key=lambda a: a["timestamp"], reverse=True)
    return activities[:limit]
