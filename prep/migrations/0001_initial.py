import django.core.validators
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Profile",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("user_id", models.CharField(max_length=64, unique=True)),
                ("email", models.EmailField(blank=True, default="", max_length=254)),
                ("nickname", models.CharField(blank=True, default="", max_length=64)),
                ("prediction_score", models.FloatField(default=0.0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
        ),
        migrations.CreateModel(
            name="ScoreHistory",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("user_id", models.CharField(db_index=True, max_length=64)),
                ("score", models.FloatField()),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "indexes": [models.Index(fields=["user_id", "created_at"], name="idx_history_user_created")],
            },
        ),
        migrations.CreateModel(
            name="StudySession",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("user_id", models.CharField(db_index=True, max_length=64)),
                ("idempotency_key", models.CharField(blank=True, max_length=64, null=True)),
                ("subject", models.CharField(choices=[
                    ("Medicine", "Medicine"), ("Surgery", "Surgery"), ("OB-GYN", "Ob Gyn"),
                    ("Pediatrics", "Pediatrics"), ("Pathology", "Pathology"),
                    ("Pharmacology", "Pharmacology"), ("Biochemistry", "Biochemistry"),
                    ("Anatomy", "Anatomy"), ("Physiology", "Physiology"),
                    ("Microbiology", "Microbiology"), ("Radiology", "Radiology"),
                    ("Dermatology", "Dermatology"), ("Psychiatry", "Psychiatry"), ("ENT", "Ent"),
                    ("Ophthalmology", "Ophthalmology"), ("Anesthesia", "Anesthesia"),
                    ("Forensic Medicine", "Forensic Medicine"),
                ], max_length=32)),
                ("correct_questions", models.PositiveIntegerField()),
                ("total_questions", models.PositiveIntegerField(
                    validators=[django.core.validators.MinValueValidator(1)])),
                ("difficulty", models.CharField(
                    choices=[("easy", "Easy"), ("medium", "Medium"), ("hard", "Hard")], max_length=8)),
                ("confidence", models.CharField(
                    choices=[("low", "Low"), ("medium", "Medium"), ("high", "High")], max_length=8)),
                ("guess_percent", models.PositiveSmallIntegerField(
                    validators=[django.core.validators.MaxValueValidator(100)])),
                ("time_taken", models.PositiveIntegerField(
                    validators=[django.core.validators.MinValueValidator(1)])),
                ("type", models.CharField(
                    choices=[("practice", "Practice"), ("mock", "Mock")], max_length=8)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
            ],
            options={
                "indexes": [
                    models.Index(fields=["user_id", "created_at"], name="idx_session_user_created"),
                    models.Index(fields=["user_id", "subject"], name="idx_session_user_subject"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("user_id", "idempotency_key"),
                                            name="uq_session_user_idempotency"),
                ],
            },
        ),
    ]
