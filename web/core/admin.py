from django.contrib import admin

from .models import (
    Discipline,
    ErrorEntry,
    FlashcardReview,
    ScheduleItem,
    StudySchedule,
    StudySession,
    Subdiscipline,
    Topic,
    UserSettings,
    UserStudyStats,
)


class SubdisciplineInline(admin.TabularInline):
    model = Subdiscipline
    extra = 0
    show_change_link = True


@admin.register(Discipline)
class DisciplineAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'created_at')
    search_fields = ('name',)
    inlines = [SubdisciplineInline]


@admin.register(Subdiscipline)
class SubdisciplineAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'discipline')
    search_fields = ('name',)
    list_filter = ('discipline',)


@admin.register(Topic)
class TopicAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'subdiscipline')
    search_fields = ('name',)
    list_filter = ('subdiscipline__discipline',)


@admin.register(ErrorEntry)
class ErrorEntryAdmin(admin.ModelAdmin):
    list_display = (
        'id',
        'user',
        'discipline',
        'state',
        'stability',
        'difficulty',
        'lapses',
        'next_review_date',
    )
    search_fields = ('question_text', 'answer_text')
    list_filter = ('state', 'discipline', 'error_type')


@admin.register(FlashcardReview)
class FlashcardReviewAdmin(admin.ModelAdmin):
    list_display = ('id', 'user', 'flashcard', 'difficulty', 'xp_earned', 'reviewed_at')
    list_filter = ('difficulty',)


@admin.register(StudySession)
class StudySessionAdmin(admin.ModelAdmin):
    list_display = ('id', 'user', 'started_at', 'completed_at', 'cards_studied', 'xp_earned')


@admin.register(UserStudyStats)
class UserStudyStatsAdmin(admin.ModelAdmin):
    list_display = ('user', 'current_streak', 'longest_streak', 'total_xp', 'last_study_date')


@admin.register(UserSettings)
class UserSettingsAdmin(admin.ModelAdmin):
    list_display = ('user', 'fsrs_retention', 'updated_at')


class ScheduleItemInline(admin.TabularInline):
    model = ScheduleItem
    extra = 0


@admin.register(StudySchedule)
class StudyScheduleAdmin(admin.ModelAdmin):
    list_display = ('id', 'user', 'rotation_discipline', 'start_date', 'duration_weeks')
    list_filter = ('rotation_discipline',)
    inlines = [ScheduleItemInline]
