# riyaaz/serializers.py
import datetime as dt

from django.utils import timezone
from rest_framework import serializers

from .models import (
    ClassNote,
    Classroom,
    Enrollment,
    HomeworkAssignment,
    HomeworkSubmission,
    PracticeEntry,
)


class AwareDateTimeField(serializers.DateTimeField):
    """
    Datetime field that ensures tz-aware UTC datetimes.
    - Accepts ISO strings with/without timezone; if naive → assume UTC.
    - Always outputs ISO in UTC (Z).
    """
    def to_internal_value(self, value):
        d = super().to_internal_value(value)
        if d is None:
            return None
        if timezone.is_naive(d):
            d = timezone.make_aware(d, dt.timezone.utc)
        return d.astimezone(dt.timezone.utc)

    def to_representation(self, value):
        if value is None:
            return None
        if timezone.is_naive(value):
            value = timezone.make_aware(value, dt.timezone.utc)
        return super().to_representation(value.astimezone(dt.timezone.utc))


class ClassroomCreateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=200)
    description = serializers.CharField(required=False, allow_blank=True, default="")


class ClassroomSerializer(serializers.ModelSerializer):
    created_at = AwareDateTimeField(read_only=True)
    student_count = serializers.SerializerMethodField()

    class Meta:
        model = Classroom
        fields = ("id", "name", "description", "join_code", "teacher_id", "created_at", "student_count")
        read_only_fields = fields

    def get_student_count(self, obj) -> int:
        # Annotated by the list view; fall back to a query for single objects.
        count = getattr(obj, "student_count", None)
        return count if count is not None else obj.enrollments.count()


class JoinClassroomSerializer(serializers.Serializer):
    join_code = serializers.CharField(max_length=16)
    student_name = serializers.CharField(required=False, allow_blank=True, default="", max_length=200)


class EnrollmentSerializer(serializers.ModelSerializer):
    joined_at = AwareDateTimeField(read_only=True)
    classroom = ClassroomSerializer(read_only=True)

    class Meta:
        model = Enrollment
        fields = ("id", "classroom", "student_id", "student_name", "streak_mends_used", "joined_at")
        read_only_fields = fields


class PracticeEntryCreateSerializer(serializers.Serializer):
    """
    Input for logging a riyaaz session.
    Notes:
      - date may be a calendar day (YYYY-MM-DD) or a full ISO datetime; the view
        reduces it to a day in the request timezone.
      - duration_minutes must be >= 1; zero is reserved for mend entries.
    """
    date = serializers.CharField()
    duration_minutes = serializers.IntegerField(min_value=1)
    tag = serializers.CharField(max_length=200)
    recording_url = serializers.URLField(required=False, allow_blank=True, default="")
    notes = serializers.CharField()


class PracticeEntrySerializer(serializers.ModelSerializer):
    created_at = AwareDateTimeField(read_only=True)
    is_mend = serializers.BooleanField(read_only=True)

    class Meta:
        model = PracticeEntry
        fields = (
            "id",
            "classroom_id",
            "student_id",
            "date",
            "duration_minutes",
            "tag",
            "recording_url",
            "notes",
            "created_at",
            "is_mend",
        )
        read_only_fields = fields


class MendStreakSerializer(serializers.Serializer):
    missed_date = serializers.CharField()


class AssignmentCreateSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=200)
    description = serializers.CharField(required=False, allow_blank=True, default="")
    due_date = AwareDateTimeField(required=False, allow_null=True, default=None)


class HomeworkSubmissionSerializer(serializers.ModelSerializer):
    submitted_at = AwareDateTimeField(read_only=True)

    class Meta:
        model = HomeworkSubmission
        fields = ("id", "assignment_id", "student_id", "submitted_at", "recording_url", "notes")
        read_only_fields = fields


class HomeworkSubmitSerializer(serializers.Serializer):
    recording_url = serializers.URLField()
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class HomeworkAssignmentSerializer(serializers.ModelSerializer):
    """
    Assignment with its submission count; ``my_submissions`` is filled only
    when the view passes a student id in the serializer context.
    """
    due_date = AwareDateTimeField(read_only=True)
    created_at = AwareDateTimeField(read_only=True)
    submission_count = serializers.SerializerMethodField()
    my_submissions = serializers.SerializerMethodField()

    class Meta:
        model = HomeworkAssignment
        fields = (
            "id",
            "classroom_id",
            "title",
            "description",
            "due_date",
            "created_at",
            "submission_count",
            "my_submissions",
        )
        read_only_fields = fields

    def get_submission_count(self, obj) -> int:
        return obj.submissions.count()

    def get_my_submissions(self, obj):
        student_id = self.context.get("student_id")
        if not student_id:
            return None
        qs = obj.submissions.filter(student_id=student_id)
        return HomeworkSubmissionSerializer(qs, many=True).data


class ClassNoteCreateSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=200)
    content = serializers.CharField()
    recording_url = serializers.URLField(required=False, allow_blank=True, default="")


class ClassNoteSerializer(serializers.ModelSerializer):
    created_at = AwareDateTimeField(read_only=True)

    class Meta:
        model = ClassNote
        fields = ("id", "classroom_id", "title", "content", "recording_url", "created_at")
        read_only_fields = fields


class ActivitySerializer(serializers.Serializer):
    """One row of the teacher's activity feed; ``date`` is a day for riyaaz, a datetime for homework."""
    type = serializers.CharField()
    student_id = serializers.CharField()
    student_name = serializers.CharField()
    details = serializers.CharField()
    date = serializers.SerializerMethodField()
    timestamp = AwareDateTimeField()

    def get_date(self, obj):
        value = obj["date"]
        if isinstance(value, dt.datetime):
            return AwareDateTimeField().to_representation(value)
        return value.isoformat()
