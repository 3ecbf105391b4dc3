from __future__ import annotations

import uuid

from django.conf import settings
from django.db import models
from django.utils import timezone


class UserScopedQuerySet(models.QuerySet):
    def for_user(self, user: settings.AUTH_USER_MODEL) -> "UserScopedQuerySet":
        return self.filter(user=user)


class Discipline(models.Model):
    id = models.BigAutoField(primary_key=True)
    name = models.CharField(max_length=255, unique=True)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = 'disciplines'
        ordering = ['name']

    def __str__(self) -> str:
        return self.name


class Subdiscipline(models.Model):
    id = models.BigAutoField(primary_key=True)
    discipline = models.ForeignKey(Discipline, on_delete=models.CASCADE, related_name='subdisciplines')
    name = models.CharField(max_length=255)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = 'subdisciplines'
        ordering = ['name']

    def __str__(self) -> str:
        return f"{self.discipline.name} / {self.name}"


class Topic(models.Model):
    id = models.BigAutoField(primary_key=True)
    subdiscipline = models.ForeignKey(Subdiscipline, on_delete=models.CASCADE, related_name='topics')
    name = models.CharField(max_length=255)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = 'topics'
        ordering = ['id']

    def __str__(self) -> str:
        return self.name


class ErrorEntry(models.Model):
    """A logged mistake, reviewed as a flashcard."""

    STATE_NEW = 0
    STATE_LEARNING = 1
    STATE_REVIEW = 2
    STATE_RELEARNING = 3
    STATE_CHOICES = [
        (STATE_NEW, 'New'),
        (STATE_LEARNING, 'Learning'),
        (STATE_REVIEW, 'Review'),
        (STATE_RELEARNING, 'Relearning'),
    ]
    ERROR_TYPE_CHOICES = [
        ('knowledge_gap', 'Knowledge gap'),
        ('interpretation', 'Interpretation'),
        ('distraction', 'Distraction'),
        ('reasoning', 'Reasoning'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='error_entries')
    discipline = models.ForeignKey(
        Discipline, null=True, blank=True, on_delete=models.SET_NULL, related_name='error_entries'
    )
    topic = models.ForeignKey(Topic, null=True, blank=True, on_delete=models.SET_NULL, related_name='error_entries')
    question_text = models.TextField()
    answer_text = models.TextField()
    notes = models.TextField(null=True, blank=True)
    image_urls = models.JSONField(default=list, blank=True)
    error_type = models.CharField(max_length=20, choices=ERROR_TYPE_CHOICES, null=True, blank=True)
    action_item = models.TextField(null=True, blank=True)

    # Scheduling fields. ``interval`` predates the FSRS fields and is kept for legacy cards.
    interval = models.IntegerField(default=0)
    stability = models.FloatField(null=True, blank=True)
    difficulty = models.FloatField(null=True, blank=True)
    state = models.SmallIntegerField(choices=STATE_CHOICES, null=True, blank=True)
    lapses = models.IntegerField(default=0)
    review_count = models.IntegerField(default=0)
    last_reviewed_at = models.DateTimeField(null=True, blank=True)
    next_review_date = models.DateField(null=True, blank=True)

    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    objects = UserScopedQuerySet.as_manager()

    class Meta:
        db_table = 'error_notebook'
        indexes = [
            models.Index(fields=['user', 'next_review_date'], name='error_nb_user_due_idx'),
            models.Index(fields=['user', 'discipline'], name='error_nb_user_disc_idx'),
        ]
        ordering = ['-created_at']

    def __str__(self) -> str:
        return self.question_text[:40]


class StudySession(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='study_sessions')
    discipline = models.ForeignKey(
        Discipline, null=True, blank=True, on_delete=models.SET_NULL, related_name='study_sessions'
    )
    started_at = models.DateTimeField(default=timezone.now)
    completed_at = models.DateTimeField(null=True, blank=True)
    queue = models.JSONField(default=list, blank=True)
    position = models.IntegerField(default=0)
    streak = models.IntegerField(default=0)
    cards_studied = models.IntegerField(default=0)
    cards_easy = models.IntegerField(default=0)
    cards_hard = models.IntegerField(default=0)
    cards_wrong = models.IntegerField(default=0)
    xp_earned = models.IntegerField(default=0)
    undo_snapshot = models.JSONField(null=True, blank=True)

    objects = UserScopedQuerySet.as_manager()

    class Meta:
        db_table = 'study_sessions'
        ordering = ['-started_at']

    @property
    def current_card_id(self) -> str | None:
        if 0 <= self.position < len(self.queue):
            return self.queue[self.position]
        return None


class FlashcardReview(models.Model):
    DIFFICULTY_CHOICES = [
        ('easy', 'Easy'),
        ('hard', 'Hard'),
        ('wrong', 'Wrong'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='flashcard_reviews')
    flashcard = models.ForeignKey(ErrorEntry, on_delete=models.CASCADE, related_name='reviews')
    session = models.ForeignKey(
        StudySession, null=True, blank=True, on_delete=models.SET_NULL, related_name='reviews'
    )
    difficulty = models.CharField(max_length=10, choices=DIFFICULTY_CHOICES)
    xp_earned = models.IntegerField(default=0)
    reviewed_at = models.DateTimeField(default=timezone.now)

    objects = UserScopedQuerySet.as_manager()

    class Meta:
        db_table = 'flashcard_reviews'
        indexes = [
            models.Index(fields=['user', 'reviewed_at'], name='fc_reviews_user_at_idx'),
        ]
        ordering = ['-reviewed_at']


class UserStudyStats(models.Model):
    id = models.BigAutoField(primary_key=True)
    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='study_stats')
    current_streak = models.IntegerField(default=0)
    longest_streak = models.IntegerField(default=0)
    total_xp = models.IntegerField(default=0)
    total_cards_reviewed = models.IntegerField(default=0)
    last_study_date = models.DateField(null=True, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'user_study_stats'


class UserSettings(models.Model):
    id = models.BigAutoField(primary_key=True)
    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='settings')
    fsrs_retention = models.FloatField(default=0.9)
    fsrs_params = models.JSONField(null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'user_settings'
        ordering = ['user_id']

    def weights(self) -> list[float] | None:
        params = self.fsrs_params
        if isinstance(params, dict):
            params = params.get('w')
        if isinstance(params, list):
            return [float(value) for value in params]
        return None


class StudySchedule(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='study_schedules')
    rotation_discipline = models.ForeignKey(Discipline, on_delete=models.CASCADE, related_name='schedules')
    start_date = models.DateField()
    duration_weeks = models.IntegerField(default=1)
    # weekday (0=Monday) -> topics per day, kept as string keys by JSON
    availability = models.JSONField(default=dict)
    created_at = models.DateTimeField(default=timezone.now)

    objects = UserScopedQuerySet.as_manager()

    class Meta:
        db_table = 'study_schedules'
        ordering = ['-created_at']

    def __str__(self) -> str:
        return f"{self.rotation_discipline.name} from {self.start_date.isoformat()}"

    def availability_map(self) -> dict[int, int]:
        return {int(day): int(capacity) for day, capacity in (self.availability or {}).items()}


class ScheduleItem(models.Model):
    STATUS_PENDING = 'pending'
    STATUS_COMPLETED = 'completed'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_COMPLETED, 'Completed'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    schedule = models.ForeignKey(StudySchedule, on_delete=models.CASCADE, related_name='items')
    topic = models.ForeignKey(Topic, on_delete=models.CASCADE, related_name='schedule_items')
    study_date = models.DateField()
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_PENDING)
    version = models.IntegerField(default=1)

    class Meta:
        db_table = 'schedule_items'
        indexes = [
            models.Index(fields=['schedule', 'study_date'], name='sched_items_sched_date_idx'),
        ]
        ordering = ['study_date', 'topic_id']

    @property
    def is_completed(self) -> bool:
        return self.status == self.STATUS_COMPLETED
