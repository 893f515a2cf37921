from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Classroom",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200)),
                ("description", models.TextField(blank=True, default="")),
                ("join_code", models.CharField(max_length=16, unique=True)),
                ("teacher_id", models.CharField(db_index=True, max_length=64)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
        ),
        migrations.CreateModel(
            name="HomeworkAssignment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("title", models.CharField(max_length=200)),
                ("description", models.TextField(blank=True, default="")),
                ("due_date", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("classroom", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="assignments",
                    to="riyaaz.classroom",
                )),
            ],
        ),
        migrations.CreateModel(
            name="Enrollment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("student_id", models.CharField(db_index=True, max_length=64)),
                ("student_name", models.CharField(blank=True, default="", max_length=200)),
                ("streak_mends_used", models.PositiveIntegerField(default=0)),
                ("joined_at", models.DateTimeField(auto_now_add=True)),
                ("classroom", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="enrollments",
                    to="riyaaz.classroom",
                )),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(fields=("classroom", "student_id"), name="uq_classroom_student"),
                ],
            },
        ),
        migrations.CreateModel(
            name="HomeworkSubmission",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("student_id", models.CharField(db_index=True, max_length=64)),
                ("submitted_at", models.DateTimeField(auto_now_add=True)),
                ("recording_url", models.URLField()),
                ("notes", models.TextField(blank=True, default="")),
                ("assignment", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="submissions",
                    to="riyaaz.homeworkassignment",
                )),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(fields=("assignment", "student_id"), name="uq_assignment_student"),
                ],
            },
        ),
        migrations.CreateModel(
            name="PracticeEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("student_id", models.CharField(max_length=64)),
                ("date", models.DateField()),
                ("duration_minutes", models.PositiveIntegerField()),
                ("tag", models.CharField(max_length=200)),
                ("recording_url", models.URLField(blank=True, default="")),
                ("notes", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("classroom", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="practice_entries",
                    to="riyaaz.classroom",
                )),
            ],
            options={
                "indexes": [
                    models.Index(fields=["classroom", "student_id", "date"], name="idx_entry_student_date"),
                ],
            },
        ),
    ]
