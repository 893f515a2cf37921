# riyaaz/views.py
from __future__ import annotations

import datetime as dt

import pytz
from django.db.models import Count
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from . import services
from .exceptions import InvalidTimeZone, RiyaazError, Unauthorized
from .models import ClassNote, Classroom, Enrollment, HomeworkSubmission, PracticeEntry
from .serializers import (
    ActivitySerializer,
    AssignmentCreateSerializer,
    ClassNoteCreateSerializer,
    ClassNoteSerializer,
    ClassroomCreateSerializer,
    ClassroomSerializer,
    EnrollmentSerializer,
    HomeworkAssignmentSerializer,
    HomeworkSubmissionSerializer,
    HomeworkSubmitSerializer,
    JoinClassroomSerializer,
    MendStreakSerializer,
    PracticeEntryCreateSerializer,
    PracticeEntrySerializer,
)


class RiyaazAPIView(APIView):
    """
    Base view: the caller is identified by the X-User-Id header (or a user_id
    field in the body/query), and service errors become JSON responses.
    """
    def handle_exception(self, exc):
        if isinstance(exc, RiyaazError):
            return Response(exc.as_dict(), status=exc.status_code)
        return super().handle_exception(exc)

    def caller_id(self, request) -> str:
        body = request.data if isinstance(request.data, dict) else {}
        user_id = (
            request.headers.get("X-User-Id")
            or body.get("user_id")
            or request.query_params.get("user_id")
        )
        if not user_id:
            raise Unauthorized()
        return str(user_id)

    def request_tz(self, request) -> dt.tzinfo:
        try:
            return services.resolve_tz(request.query_params.get("tz"))
        except pytz.UnknownTimeZoneError:
            raise InvalidTimeZone()


class ClassroomListCreateView(RiyaazAPIView):
    """GET/POST /api/classrooms (teacher's own classrooms)."""
    def get(self, request):
        teacher_id = self.caller_id(request)
        qs = (
            Classroom.objects.filter(teacher_id=teacher_id)
            .annotate(student_count=Count("enrollments"))
            .order_by("-created_at", "-id")
        )
        return Response(ClassroomSerializer(qs, many=True).data)

    def post(self, request):
        teacher_id = self.caller_id(request)
        s = ClassroomCreateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        classroom = services.create_classroom(teacher_id, **s.validated_data)
        return Response(ClassroomSerializer(classroom).data, status=status.HTTP_201_CREATED)


class ClassroomJoinView(RiyaazAPIView):
    """POST /api/classrooms/join"""
    def post(self, request):
        student_id = self.caller_id(request)
        s = JoinClassroomSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        enrollment = services.join_classroom(student_id, **s.validated_data)
        return Response(EnrollmentSerializer(enrollment).data, status=status.HTTP_201_CREATED)


class PracticeEntryListCreateView(RiyaazAPIView):
    """GET/POST /api/classrooms/{id}/riyaaz (multiple entries per day allowed)."""
    def get(self, request, classroom_id: int):
        student_id = self.caller_id(request)
        services.get_enrollment(classroom_id, student_id)
        qs = PracticeEntry.objects.filter(
            classroom_id=classroom_id, student_id=student_id,
        ).order_by("-date", "-id")
        return Response(PracticeEntrySerializer(qs, many=True).data)

    def post(self, request, classroom_id: int):
        student_id = self.caller_id(request)
        tz = self.request_tz(request)
        s = PracticeEntryCreateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        data = s.validated_data

        try:
            day = services.to_local_date(data["date"], tz)
        except ValueError as e:
            return Response({'detail': str(e)}, status=400)

        entry = services.log_practice(
            classroom_id,
            student_id,
            date=day,
            duration_minutes=data["duration_minutes"],
            tag=data["tag"],
            notes=data["notes"],
            recording_url=data.get("recording_url", ""),
            today=services.local_today(tz),
        )
        return Response(PracticeEntrySerializer(entry).data, status=status.HTTP_201_CREATED)


class StudentStatsView(RiyaazAPIView):
    """
    GET /api/classrooms/{id}/stats
      ?tz=Asia/Kolkata
    Streaks and points are recomputed from the log on every call.
    """
    def get(self, request, classroom_id: int):
        student_id = self.caller_id(request)
        tz = self.request_tz(request)
        enrollment = services.get_enrollment(classroom_id, student_id)
        stats = services.student_stats(enrollment, services.local_today(tz))
        return Response(stats, status=status.HTTP_200_OK)


class LeaderboardView(RiyaazAPIView):
    """GET /api/classrooms/{id}/leaderboard?tz=... (owner teacher or enrolled student)."""
    def get(self, request, classroom_id: int):
        user_id = self.caller_id(request)
        tz = self.request_tz(request)
        classroom = services.get_classroom(classroom_id)
        services.require_member(classroom, user_id)
        rows = services.leaderboard(classroom.id, services.local_today(tz))
        return Response(rows, status=status.HTTP_200_OK)


class MendStreakView(RiyaazAPIView):
    """POST /api/classrooms/{id}/mend-streak (costs MEND_COST points)."""
    def post(self, request, classroom_id: int):
        student_id = self.caller_id(request)
        services.get_enrollment(classroom_id, student_id)
        tz = self.request_tz(request)
        s = MendStreakSerializer(data=request.data)
        s.is_valid(raise_exception=True)

        try:
            missed = services.to_local_date(s.validated_data["missed_date"], tz)
        except ValueError as e:
            return Response({'detail': str(e)}, status=400)

        result = services.mend_streak(
            classroom_id, student_id, missed, today=services.local_today(tz),
        )
        return Response({
            'message': 'Streak mended successfully',
            'mended_date': result.mended_date,
            'points_spent': result.points_spent,
            'remaining_points': result.remaining_points,
            'streak_mends_used': result.streak_mends_used,
        }, status=status.HTTP_200_OK)


class AssignmentListCreateView(RiyaazAPIView):
    """GET/POST /api/classrooms/{id}/homework"""
    def get(self, request, classroom_id: int):
        user_id = self.caller_id(request)
        classroom = services.get_classroom(classroom_id)
        enrollment = services.require_member(classroom, user_id)
        qs = classroom.assignments.order_by("-created_at", "-id")
        context = {"student_id": enrollment.student_id if enrollment else None}
        return Response(HomeworkAssignmentSerializer(qs, many=True, context=context).data)

    def post(self, request, classroom_id: int):
        teacher_id = self.caller_id(request)
        s = AssignmentCreateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        assignment = services.create_assignment(classroom_id, teacher_id, **s.validated_data)
        return Response(HomeworkAssignmentSerializer(assignment).data, status=status.HTTP_201_CREATED)


class SubmissionListCreateView(RiyaazAPIView):
    """GET/POST /api/homework/{assignment_id}/submissions (one submission per student)."""
    def get(self, request, assignment_id: int):
        user_id = self.caller_id(request)
        assignment = services.get_assignment(assignment_id)
        services.require_member(assignment.classroom, user_id)
        qs = HomeworkSubmission.objects.filter(assignment=assignment).order_by("-submitted_at", "-id")
        return Response(HomeworkSubmissionSerializer(qs, many=True).data)

    def post(self, request, assignment_id: int):
        student_id = self.caller_id(request)
        s = HomeworkSubmitSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        submission = services.submit_homework(assignment_id, student_id, **s.validated_data)
        return Response(HomeworkSubmissionSerializer(submission).data, status=status.HTTP_201_CREATED)


class ClassroomDetailView(RiyaazAPIView):
    """GET /api/classrooms/{id} (owner teacher or enrolled student)."""
    def get(self, request, classroom_id: int):
        user_id = self.caller_id(request)
        classroom = services.get_classroom(classroom_id)
        services.require_member(classroom, user_id)
        return Response(ClassroomSerializer(classroom).data)


class StudentClassroomListView(RiyaazAPIView):
    """GET /api/classrooms/student (caller's enrollments, newest first)."""
    def get(self, request):
        student_id = self.caller_id(request)
        qs = (
            Enrollment.objects.filter(student_id=student_id)
            .select_related("classroom")
            .order_by("-joined_at", "-id")
        )
        return Response(EnrollmentSerializer(qs, many=True).data)


class ClassroomStudentView(RiyaazAPIView):
    """DELETE /api/classrooms/{id}/students/{student_id} (owner only)."""
    def delete(self, request, classroom_id: int, student_id: str):
        teacher_id = self.caller_id(request)
        services.remove_student(classroom_id, teacher_id, student_id)
        return Response({'message': 'Student removed successfully'}, status=status.HTTP_200_OK)


class ClassNoteListCreateView(RiyaazAPIView):
    """GET/POST /api/classrooms/{id}/notes"""
    def get(self, request, classroom_id: int):
        user_id = self.caller_id(request)
        classroom = services.get_classroom(classroom_id)
        services.require_member(classroom, user_id)
        qs = ClassNote.objects.filter(classroom=classroom).order_by("-created_at", "-id")
        return Response(ClassNoteSerializer(qs, many=True).data)

    def post(self, request, classroom_id: int):
        teacher_id = self.caller_id(request)
        s = ClassNoteCreateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        note = services.create_note(classroom_id, teacher_id, **s.validated_data)
        return Response(ClassNoteSerializer(note).data, status=status.HTTP_201_CREATED)


class ActivityFeedView(RiyaazAPIView):
    """GET /api/classrooms/{id}/activity (owner only, latest 20 events)."""
    def get(self, request, classroom_id: int):
        teacher_id = self.caller_id(request)
        rows = services.recent_activity(classroom_id, teacher_id)
        return Response(ActivitySerializer(rows, many=True).data)
