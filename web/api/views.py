from __future__ import annotations

import json
from typing import Any, Dict, Optional

from django.contrib.auth import authenticate, login, logout
from django.core.exceptions import ValidationError
from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from accounts.models import User
from core.dates import classify, local_today, parse_iso_date
from core.models import Discipline, ErrorEntry, ScheduleItem, StudySchedule, StudySession
from core.services.review import (
    CardNotCurrentError,
    NothingToUndoError,
    SessionClosedError,
    build_rating_previews,
    complete_session,
    due_cards,
    rate_card,
    reset_progress,
    start_session,
    undo_last_rating,
    upcoming_review_counts,
)
from core.services.rotation import (
    RotationError,
    StaleScheduleItemError,
    classify_item,
    generate_schedule,
    move_item,
    recalculate_schedule,
    schedule_progress,
    toggle_item_status,
)
from core.services.settings import (
    SettingsValidationError,
    load_settings,
    reset_fsrs_settings,
    settings_to_dict,
    update_fsrs_settings,
)


def _json_error(message: str, status: int = 400) -> JsonResponse:
    return JsonResponse({'error': message}, status=status)


def _parse_json(request: HttpRequest) -> Dict[str, Any]:
    try:
        if not request.body:
            return {}
        return json.loads(request.body.decode('utf-8'))
    except json.JSONDecodeError as exc:
        raise ValueError(f'Invalid JSON payload: {exc}')


def _require_user(request: HttpRequest) -> User:
    user = getattr(request, 'user', None)
    if user is None or not user.is_authenticated:
        raise PermissionError('authentication required')
    return user  # type: ignore[return-value]


def _card_to_dict(card: ErrorEntry, today=None) -> dict:
    today = today or local_today()
    return {
        'id': str(card.id),
        'discipline_id': card.discipline_id,
        'topic_id': card.topic_id,
        'question_text': card.question_text,
        'answer_text': card.answer_text,
        'notes': card.notes,
        'image_urls': card.image_urls,
        'scheduling': {
            'state': card.state,
            'stability': card.stability,
            'difficulty': card.difficulty,
            'interval': card.interval,
            'lapses': card.lapses,
            'review_count': card.review_count,
            'last_reviewed_at': card.last_reviewed_at.isoformat() if card.last_reviewed_at else None,
            'next_review_date': card.next_review_date.isoformat() if card.next_review_date else None,
            'status': classify(card.next_review_date, today),
        },
    }


def _session_to_dict(session: StudySession) -> dict:
    return {
        'id': str(session.id),
        'discipline_id': session.discipline_id,
        'queue': session.queue,
        'position': session.position,
        'current_card_id': session.current_card_id,
        'streak': session.streak,
        'cards_studied': session.cards_studied,
        'cards_easy': session.cards_easy,
        'cards_hard': session.cards_hard,
        'cards_wrong': session.cards_wrong,
        'xp_earned': session.xp_earned,
        'can_undo': bool(session.undo_snapshot),
        'completed_at': session.completed_at.isoformat() if session.completed_at else None,
    }


def _item_to_dict(item: ScheduleItem, today=None) -> dict:
    return {
        'id': str(item.id),
        'topic_id': item.topic_id,
        'topic': item.topic.name,
        'study_date': item.study_date.isoformat(),
        'status': item.status,
        'version': item.version,
        'display_status': classify_item(item, today),
    }


def _schedule_to_dict(schedule: StudySchedule, *, with_items: bool = False) -> dict:
    payload = {
        'id': str(schedule.id),
        'rotation_discipline_id': schedule.rotation_discipline_id,
        'start_date': schedule.start_date.isoformat(),
        'duration_weeks': schedule.duration_weeks,
        'availability': schedule.availability_map(),
        'progress': schedule_progress(schedule),
    }
    if with_items:
        today = local_today()
        items = schedule.items.select_related('topic').order_by('study_date', 'topic_id')
        payload['items'] = [_item_to_dict(item, today) for item in items]
    return payload


def _resolve_discipline(discipline_id) -> Optional[Discipline]:
    if discipline_id in (None, '', 'all'):
        return None
    return Discipline.objects.get(id=discipline_id)


@csrf_exempt
@require_http_methods(['POST'])
def auth_register(request: HttpRequest) -> JsonResponse:
    try:
        payload = _parse_json(request)
    except ValueError as exc:
        return _json_error(str(exc))
    email = payload.get('email')
    password = payload.get('password')
    if not email or not password:
        return _json_error('email and password required')
    if User.objects.filter(email=email).exists():
        return _json_error('email already registered')
    user = User.objects.create_user(email=email, password=password)
    login(request, user)
    return JsonResponse({'id': user.id, 'email': user.email}, status=201)


@csrf_exempt
@require_http_methods(['POST'])
def auth_login(request: HttpRequest) -> JsonResponse:
    try:
        payload = _parse_json(request)
    except ValueError as exc:
        return _json_error(str(exc))
    email = payload.get('email')
    password = payload.get('password')
    if not email or not password:
        return _json_error('email and password required')
    user = authenticate(request, email=email, password=password)
    if user is None:
        return _json_error('invalid credentials', status=401)
    login(request, user)
    return JsonResponse({'id': user.id, 'email': user.email})


@csrf_exempt
@require_http_methods(['POST'])
def auth_logout(request: HttpRequest) -> JsonResponse:
    logout(request)
    return JsonResponse({'success': True})


@csrf_exempt
@require_http_methods(['GET', 'PATCH'])
def fsrs_settings(request: HttpRequest) -> JsonResponse:
    try:
        user = _require_user(request)
    except PermissionError as exc:
        return _json_error(str(exc), status=401)

    if request.method == 'GET':
        return JsonResponse(settings_to_dict(load_settings(user)))

    try:
        payload = _parse_json(request)
    except ValueError as exc:
        return _json_error(str(exc))
    try:
        settings_obj = update_fsrs_settings(
            user,
            retention=payload.get('fsrs_retention'),
            easy_stability=payload.get('initial_easy_stability'),
        )
    except (SettingsValidationError, TypeError, ValueError) as exc:
        return _json_error(str(exc))
    return JsonResponse(settings_to_dict(settings_obj))


@csrf_exempt
@require_http_methods(['POST'])
def fsrs_settings_reset(request: HttpRequest) -> JsonResponse:
    try:
        user = _require_user(request)
    except PermissionError as exc:
        return _json_error(str(exc), status=401)
    return JsonResponse(settings_to_dict(reset_fsrs_settings(user)))


@require_http_methods(['GET'])
def cards_due(request: HttpRequest) -> JsonResponse:
    try:
        user = _require_user(request)
    except PermissionError as exc:
        return _json_error(str(exc), status=401)
    try:
        discipline = _resolve_discipline(request.GET.get('discipline_id'))
    except (Discipline.DoesNotExist, ValueError):
        return _json_error('discipline not found', status=404)
    today = local_today()
    cards = due_cards(user, discipline=discipline, today=today)
    return JsonResponse([_card_to_dict(card, today) for card in cards], safe=False)


@require_http_methods(['GET'])
def cards_upcoming(request: HttpRequest) -> JsonResponse:
    try:
        user = _require_user(request)
    except PermissionError as exc:
        return _json_error(str(exc), status=401)
    try:
        days = int(request.GET.get('days', 7))
    except ValueError:
        return _json_error('days must be an integer')
    if days < 1:
        return _json_error('days must be positive')
    return JsonResponse({'days': upcoming_review_counts(user, days=days)})


@csrf_exempt
@require_http_methods(['POST'])
def cards_reset(request: HttpRequest) -> JsonResponse:
    try:
        user = _require_user(request)
    except PermissionError as exc:
        return _json_error(str(exc), status=401)
    try:
        payload = _parse_json(request)
    except ValueError as exc:
        return _json_error(str(exc))
    card_ids = payload.get('card_ids')
    if not isinstance(card_ids, list) or not card_ids:
        return _json_error('card_ids must be a non-empty list')
    try:
        updated = reset_progress(user, card_ids)
    except (ValidationError, ValueError):
        return _json_error('invalid card id')
    return JsonResponse({'updated': updated})


@require_http_methods(['GET'])
def card_previews(request: HttpRequest, card_id) -> JsonResponse:
    try:
        user = _require_user(request)
    except PermissionError as exc:
        return _json_error(str(exc), status=401)
    try:
        card = ErrorEntry.objects.get(id=card_id, user=user)
    except ErrorEntry.DoesNotExist:
        return _json_error('card not found', status=404)
    return JsonResponse({'card_id': str(card.id), 'previews': build_rating_previews(card)})


@csrf_exempt
@require_http_methods(['POST'])
def review_sessions(request: HttpRequest) -> JsonResponse:
    try:
        user = _require_user(request)
    except PermissionError as exc:
        return _json_error(str(exc), status=401)
    try:
        payload = _parse_json(request)
    except ValueError as exc:
        return _json_error(str(exc))
    try:
        discipline = _resolve_discipline(payload.get('discipline_id'))
    except (Discipline.DoesNotExist, ValueError):
        return _json_error('discipline not found', status=404)
    card_ids = payload.get('card_ids')
    if card_ids is not None and not isinstance(card_ids, list):
        return _json_error('card_ids must be a list')
    try:
        session = start_session(user, discipline=discipline, card_ids=card_ids)
    except (ValidationError, ValueError):
        return _json_error('invalid card id')
    return JsonResponse(_session_to_dict(session), status=201)


def _load_session(user, session_id) -> StudySession:
    return StudySession.objects.get(id=session_id, user=user)


@csrf_exempt
@require_http_methods(['POST'])
def review_rate(request: HttpRequest, session_id) -> JsonResponse:
    try:
        user = _require_user(request)
    except PermissionError as exc:
        return _json_error(str(exc), status=401)
    try:
        payload = _parse_json(request)
    except ValueError as exc:
        return _json_error(str(exc))
    card_id = payload.get('card_id')
    difficulty = payload.get('difficulty')
    if card_id is None or difficulty is None:
        return _json_error('card_id and difficulty required')
    try:
        session = _load_session(user, session_id)
    except StudySession.DoesNotExist:
        return _json_error('session not found', status=404)
    try:
        outcome = rate_card(session, card_id, difficulty)
    except (ErrorEntry.DoesNotExist, ValidationError):
        return _json_error('card not found', status=404)
    except (CardNotCurrentError, SessionClosedError) as exc:
        return _json_error(str(exc), status=409)
    except ValueError as exc:
        return _json_error(str(exc))
    return JsonResponse({
        'session': _session_to_dict(outcome.session),
        'card': _card_to_dict(outcome.card),
        'review_id': outcome.review_id,
        'xp': outcome.xp,
        'interval': outcome.result.interval,
    })


@csrf_exempt
@require_http_methods(['POST'])
def review_undo(request: HttpRequest, session_id) -> JsonResponse:
    try:
        user = _require_user(request)
    except PermissionError as exc:
        return _json_error(str(exc), status=401)
    try:
        session = _load_session(user, session_id)
    except StudySession.DoesNotExist:
        return _json_error('session not found', status=404)
    try:
        session, card = undo_last_rating(session)
    except NothingToUndoError as exc:
        return _json_error(str(exc), status=409)
    return JsonResponse({'session': _session_to_dict(session), 'card': _card_to_dict(card)})


@csrf_exempt
@require_http_methods(['POST'])
def review_complete(request: HttpRequest, session_id) -> JsonResponse:
    try:
        user = _require_user(request)
    except PermissionError as exc:
        return _json_error(str(exc), status=401)
    try:
        session = _load_session(user, session_id)
    except StudySession.DoesNotExist:
        return _json_error('session not found', status=404)
    try:
        session = complete_session(session)
    except SessionClosedError as exc:
        return _json_error(str(exc), status=409)
    stats = user.study_stats
    return JsonResponse({
        'session': _session_to_dict(session),
        'stats': {
            'current_streak': stats.current_streak,
            'longest_streak': stats.longest_streak,
            'total_xp': stats.total_xp,
            'total_cards_reviewed': stats.total_cards_reviewed,
        },
    })


def _parse_schedule_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    parsed: Dict[str, Any] = {}
    if 'availability' in payload:
        if not isinstance(payload['availability'], dict):
            raise ValueError('availability must be an object of weekday -> capacity')
        parsed['availability'] = payload['availability']
    if payload.get('start_date'):
        parsed['start_date'] = parse_iso_date(payload['start_date'])
    return parsed


@csrf_exempt
@require_http_methods(['GET', 'POST'])
def schedules_collection(request: HttpRequest) -> JsonResponse:
    try:
        user = _require_user(request)
    except PermissionError as exc:
        return _json_error(str(exc), status=401)

    if request.method == 'GET':
        schedules = StudySchedule.objects.for_user(user).select_related('rotation_discipline')
        return JsonResponse([_schedule_to_dict(schedule) for schedule in schedules], safe=False)

    try:
        payload = _parse_json(request)
        parsed = _parse_schedule_payload(payload)
    except ValueError as exc:
        return _json_error(str(exc))
    if 'availability' not in parsed:
        return _json_error('availability required')
    try:
        discipline = Discipline.objects.get(id=payload.get('discipline_id'))
    except (Discipline.DoesNotExist, ValueError, TypeError):
        return _json_error('discipline not found', status=404)
    try:
        schedule = generate_schedule(
            user=user,
            discipline=discipline,
            availability=parsed['availability'],
            start_date=parsed.get('start_date') or local_today(),
        )
    except RotationError as exc:
        return _json_error(str(exc))
    return JsonResponse(_schedule_to_dict(schedule, with_items=True), status=201)


@csrf_exempt
@require_http_methods(['GET', 'DELETE'])
def schedule_detail(request: HttpRequest, schedule_id) -> JsonResponse:
    try:
        user = _require_user(request)
    except PermissionError as exc:
        return _json_error(str(exc), status=401)
    try:
        schedule = StudySchedule.objects.get(id=schedule_id, user=user)
    except StudySchedule.DoesNotExist:
        return _json_error('schedule not found', status=404)

    if request.method == 'GET':
        return JsonResponse(_schedule_to_dict(schedule, with_items=True))

    schedule.delete()
    return JsonResponse({'success': True})


@csrf_exempt
@require_http_methods(['POST'])
def schedule_recalculate(request: HttpRequest, schedule_id) -> JsonResponse:
    try:
        user = _require_user(request)
    except PermissionError as exc:
        return _json_error(str(exc), status=401)
    try:
        schedule = StudySchedule.objects.select_related('rotation_discipline').get(id=schedule_id, user=user)
    except StudySchedule.DoesNotExist:
        return _json_error('schedule not found', status=404)
    try:
        parsed = _parse_schedule_payload(_parse_json(request))
    except ValueError as exc:
        return _json_error(str(exc))
    try:
        new_schedule = recalculate_schedule(schedule, **parsed)
    except RotationError as exc:
        return _json_error(str(exc))
    return JsonResponse(_schedule_to_dict(new_schedule, with_items=True), status=201)


def _load_item(user, item_id) -> ScheduleItem:
    return ScheduleItem.objects.select_related('topic').get(id=item_id, schedule__user=user)


def _expected_version(payload: Dict[str, Any]) -> Optional[int]:
    version = payload.get('version')
    return int(version) if version is not None else None


@csrf_exempt
@require_http_methods(['PATCH'])
def schedule_item_detail(request: HttpRequest, item_id) -> JsonResponse:
    try:
        user = _require_user(request)
    except PermissionError as exc:
        return _json_error(str(exc), status=401)
    try:
        item = _load_item(user, item_id)
    except ScheduleItem.DoesNotExist:
        return _json_error('schedule item not found', status=404)
    try:
        payload = _parse_json(request)
        if not payload.get('study_date'):
            return _json_error('study_date required')
        new_date = parse_iso_date(payload['study_date'])
        expected_version = _expected_version(payload)
    except (TypeError, ValueError) as exc:
        return _json_error(str(exc))
    try:
        item = move_item(item, new_date, expected_version=expected_version)
    except StaleScheduleItemError as exc:
        return _json_error(str(exc), status=409)
    return JsonResponse(_item_to_dict(item))


@csrf_exempt
@require_http_methods(['POST'])
def schedule_item_toggle(request: HttpRequest, item_id) -> JsonResponse:
    try:
        user = _require_user(request)
    except PermissionError as exc:
        return _json_error(str(exc), status=401)
    try:
        item = _load_item(user, item_id)
    except ScheduleItem.DoesNotExist:
        return _json_error('schedule item not found', status=404)
    try:
        expected_version = _expected_version(_parse_json(request))
    except (TypeError, ValueError) as exc:
        return _json_error(str(exc))
    try:
        item = toggle_item_status(item, expected_version=expected_version)
    except StaleScheduleItemError as exc:
        return _json_error(str(exc), status=409)
    return JsonResponse(_item_to_dict(item))
