from django.db import models

STREAK_MEND_TAG = "Streak Mend"


class Classroom(models.Model):
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True, default="")
    join_code = models.CharField(max_length=16, unique=True)         # RZ-XXXX
    teacher_id = models.CharField(max_length=64, db_index=True)       # Owner identifier
    created_at = models.DateTimeField(auto_now_add=True)


class Enrollment(models.Model):
    classroom = models.ForeignKey(Classroom, on_delete=models.CASCADE, related_name="enrollments")
    student_id = models.CharField(max_length=64, db_index=True)
    student_name = models.CharField(max_length=200, blank=True, default="")
    streak_mends_used = models.PositiveIntegerField(default=0)        # Only ever incremented
    joined_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["classroom", "student_id"],
                                    name="uq_classroom_student"),
        ]


class PracticeEntry(models.Model):
    classroom = models.ForeignKey(Classroom, on_delete=models.CASCADE, related_name="practice_entries")
    student_id = models.CharField(max_length=64)
    date = models.DateField()                                         # Calendar day, no time of day
    duration_minutes = models.PositiveIntegerField()                  # 0 marks a mend entry
    tag = models.CharField(max_length=200)                            # e.g. raga name
    recording_url = models.URLField(blank=True, default="")
    notes = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=["classroom", "student_id", "date"], name="idx_entry_student_date"),
        ]

    @property
    def is_mend(self) -> bool:
        return self.duration_minutes == 0 and self.tag == STREAK_MEND_TAG


class HomeworkAssignment(models.Model):
    classroom = models.ForeignKey(Classroom, on_delete=models.CASCADE, related_name="assignments")
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True, default="")
    due_date = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)


class HomeworkSubmission(models.Model):
    assignment = models.ForeignKey(HomeworkAssignment, on_delete=models.CASCADE, related_name="submissions")
    student_id = models.CharField(max_length=64, db_index=True)
    submitted_at = models.DateTimeField(auto_now_add=True)
    recording_url = models.URLField()
    notes = models.TextField(blank=True, default="")

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["assignment", "student_id"],
                                    name="uq_assignment_student"),
        ]


class ClassNote(models.Model):
    classroom = models.ForeignKey(Classroom, on_delete=models.CASCADE, related_name="notes")
    title = models.CharField(max_length=200)
    content = models.TextField()
    recording_url = models.URLField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
