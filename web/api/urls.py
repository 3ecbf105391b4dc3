from django.urls import path

from . import views

app_name = 'api'

urlpatterns = [
    path('auth/register', views.auth_register, name='auth-register'),
    path('auth/login', views.auth_login, name='auth-login'),
    path('auth/logout', views.auth_logout, name='auth-logout'),
    path('settings/fsrs', views.fsrs_settings, name='settings-fsrs'),
    path('settings/fsrs/reset', views.fsrs_settings_reset, name='settings-fsrs-reset'),
    path('cards/due', views.cards_due, name='cards-due'),
    path('cards/upcoming', views.cards_upcoming, name='cards-upcoming'),
    path('cards/reset', views.cards_reset, name='cards-reset'),
    path('cards/<uuid:card_id>/previews', views.card_previews, name='card-previews'),
    path('review/sessions', views.review_sessions, name='review-sessions'),
    path('review/sessions/<uuid:session_id>/rate', views.review_rate, name='review-rate'),
    path('review/sessions/<uuid:session_id>/undo', views.review_undo, name='review-undo'),
    path('review/sessions/<uuid:session_id>/complete', views.review_complete, name='review-complete'),
    path('schedules/', views.schedules_collection, name='schedules-collection'),
    path('schedules/<uuid:schedule_id>', views.schedule_detail, name='schedule-detail'),
    path('schedules/<uuid:schedule_id>/recalculate', views.schedule_recalculate, name='schedule-recalculate'),
    path('schedule-items/<uuid:item_id>', views.schedule_item_detail, name='schedule-item-detail'),
    path('schedule-items/<uuid:item_id>/toggle', views.schedule_item_toggle, name='schedule-item-toggle'),
]
