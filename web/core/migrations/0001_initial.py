import uuid

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Discipline',
            fields=[
                ('id', models.BigAutoField(primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=255, unique=True)),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
            ],
            options={
                'db_table': 'disciplines',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='Subdiscipline',
            fields=[
                ('id', models.BigAutoField(primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=255)),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('discipline', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='subdisciplines', to='core.discipline')),
            ],
            options={
                'db_table': 'subdisciplines',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='Topic',
            fields=[
                ('id', models.BigAutoField(primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=255)),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('subdiscipline', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='topics', to='core.subdiscipline')),
            ],
            options={
                'db_table': 'topics',
                'ordering': ['id'],
            },
        ),
        migrations.CreateModel(
            name='ErrorEntry',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('question_text', models.TextField()),
                ('answer_text', models.TextField()),
                ('notes', models.TextField(blank=True, null=True)),
                ('image_urls', models.JSONField(blank=True, default=list)),
                ('error_type', models.CharField(blank=True, choices=[('knowledge_gap', 'Knowledge gap'), ('interpretation', 'Interpretation'), ('distraction', 'Distraction'), ('reasoning', 'Reasoning')], max_length=20, null=True)),
                ('action_item', models.TextField(blank=True, null=True)),
                ('interval', models.IntegerField(default=0)),
                ('stability', models.FloatField(blank=True, null=True)),
                ('difficulty', models.FloatField(blank=True, null=True)),
                ('state', models.SmallIntegerField(blank=True, choices=[(0, 'New'), (1, 'Learning'), (2, 'Review'), (3, 'Relearning')], null=True)),
                ('lapses', models.IntegerField(default=0)),
                ('review_count', models.IntegerField(default=0)),
                ('last_reviewed_at', models.DateTimeField(blank=True, null=True)),
                ('next_review_date', models.DateField(blank=True, null=True)),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('discipline', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='error_entries', to='core.discipline')),
                ('topic', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='error_entries', to='core.topic')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='error_entries', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'error_notebook',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='StudySession',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('started_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('queue', models.JSONField(blank=True, default=list)),
                ('position', models.IntegerField(default=0)),
                ('streak', models.IntegerField(default=0)),
                ('cards_studied', models.IntegerField(default=0)),
                ('cards_easy', models.IntegerField(default=0)),
                ('cards_hard', models.IntegerField(default=0)),
                ('cards_wrong', models.IntegerField(default=0)),
                ('xp_earned', models.IntegerField(default=0)),
                ('undo_snapshot', models.JSONField(blank=True, null=True)),
                ('discipline', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='study_sessions', to='core.discipline')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='study_sessions', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'study_sessions',
                'ordering': ['-started_at'],
            },
        ),
        migrations.CreateModel(
            name='FlashcardReview',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('difficulty', models.CharField(choices=[('easy', 'Easy'), ('hard', 'Hard'), ('wrong', 'Wrong')], max_length=10)),
                ('xp_earned', models.IntegerField(default=0)),
                ('reviewed_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('flashcard', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='reviews', to='core.errorentry')),
                ('session', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='reviews', to='core.studysession')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='flashcard_reviews', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'flashcard_reviews',
                'ordering': ['-reviewed_at'],
            },
        ),
        migrations.CreateModel(
            name='UserStudyStats',
            fields=[
                ('id', models.BigAutoField(primary_key=True, serialize=False)),
                ('current_streak', models.IntegerField(default=0)),
                ('longest_streak', models.IntegerField(default=0)),
                ('total_xp', models.IntegerField(default=0)),
                ('total_cards_reviewed', models.IntegerField(default=0)),
                ('last_study_date', models.DateField(blank=True, null=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('user', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='study_stats', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'user_study_stats',
            },
        ),
        migrations.CreateModel(
            name='UserSettings',
            fields=[
                ('id', models.BigAutoField(primary_key=True, serialize=False)),
                ('fsrs_retention', models.FloatField(default=0.9)),
                ('fsrs_params', models.JSONField(blank=True, null=True)),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('user', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='settings', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'user_settings',
                'ordering': ['user_id'],
            },
        ),
        migrations.CreateModel(
            name='StudySchedule',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('start_date', models.DateField()),
                ('duration_weeks', models.IntegerField(default=1)),
                ('availability', models.JSONField(default=dict)),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('rotation_discipline', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='schedules', to='core.discipline')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='study_schedules', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'study_schedules',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='ScheduleItem',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('study_date', models.DateField()),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('completed', 'Completed')], default='pending', max_length=10)),
                ('version', models.IntegerField(default=1)),
                ('schedule', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='items', to='core.studyschedule')),
                ('topic', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='schedule_items', to='core.topic')),
            ],
            options={
                'db_table': 'schedule_items',
                'ordering': ['study_date', 'topic_id'],
            },
        ),
        migrations.AddIndex(
            model_name='errorentry',
            index=models.Index(fields=['user', 'next_review_date'], name='error_nb_user_due_idx'),
        ),
        migrations.AddIndex(
            model_name='errorentry',
            index=models.Index(fields=['user', 'discipline'], name='error_nb_user_disc_idx'),
        ),
        migrations.AddIndex(
            model_name='flashcardreview',
            index=models.Index(fields=['user', 'reviewed_at'], name='fc_reviews_user_at_idx'),
        ),
        migrations.AddIndex(
            model_name='scheduleitem',
            index=models.Index(fields=['schedule', 'study_date'], name='sched_items_sched_date_idx'),
        ),
    ]
