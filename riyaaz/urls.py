from django.urls import path
from .views import (
    ActivityFeedView,
    AssignmentListCreateView,
    ClassNoteListCreateView,
    ClassroomDetailView,
    ClassroomJoinView,
    ClassroomListCreateView,
    ClassroomStudentView,
    LeaderboardView,
    MendStreakView,
    PracticeEntryListCreateView,
    StudentClassroomListView,
    StudentStatsView,
    SubmissionListCreateView,
)

urlpatterns = [
    path("classrooms", ClassroomListCreateView.as_view(), name="classroom-list"),
    path("classrooms/join", ClassroomJoinView.as_view(), name="classroom-join"),
    path("classrooms/student", StudentClassroomListView.as_view(), name="student-classroom-list"),
    path("classrooms/<int:classroom_id>", ClassroomDetailView.as_view(), name="classroom-detail"),
    path("classrooms/<int:classroom_id>/riyaaz", PracticeEntryListCreateView.as_view(), name="riyaaz-list"),
    path("classrooms/<int:classroom_id>/stats", StudentStatsView.as_view(), name="student-stats"),
    path("classrooms/<int:classroom_id>/leaderboard", LeaderboardView.as_view(), name="leaderboard"),
    path("classrooms/<int:classroom_id>/mend-streak", MendStreakView.as_view(), name="mend-streak"),
    path("classrooms/<int:classroom_id>/homework", AssignmentListCreateView.as_view(), name="homework-list"),
    path("classrooms/<int:classroom_id>/notes", ClassNoteListCreateView.as_view(), name="note-list"),
    path("classrooms/<int:classroom_id>/activity", ActivityFeedView.as_view(), name="activity-feed"),
    path(
        "classrooms/<int:classroom_id>/students/<str:student_id>",
        ClassroomStudentView.as_view(),
        name="classroom-student",
    ),
    path("homework/<int:assignment_id>/submissions", SubmissionListCreateView.as_view(), name="submission-list"),
]
