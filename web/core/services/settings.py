from __future__ import annotations

from typing import Any, Optional

import structlog

from ..fsrs import DEFAULT_WEIGHTS, FSRSConfig, get_fsrs_config, resolve_weights
from ..models import UserSettings

logger = structlog.get_logger(__name__)

INITIAL_EASY_STABILITY_INDEX = 3


class SettingsValidationError(ValueError):
    pass


def load_settings(user) -> UserSettings:
    settings_obj, _ = UserSettings.objects.get_or_create(
        user=user,
        defaults={'fsrs_retention': get_fsrs_config().request_retention},
    )
    return settings_obj


def initial_easy_stability(settings_obj: UserSettings) -> float:
    """The w[3] the scheduler actually uses for this user."""
    return resolve_weights(settings_obj.fsrs_params)[INITIAL_EASY_STABILITY_INDEX]


def settings_to_dict(settings_obj: UserSettings) -> dict[str, Any]:
    return {
        'fsrs_retention': settings_obj.fsrs_retention,
        'initial_easy_stability': initial_easy_stability(settings_obj),
        'default_initial_easy_stability': get_fsrs_config().initial_easy_stability,
        'fsrs_params': {'w': list(resolve_weights(settings_obj.fsrs_params))},
        'custom_params': settings_obj.weights() is not None,
    }


def update_fsrs_settings(
    user,
    *,
    retention: Optional[float] = None,
    easy_stability: Optional[float] = None,
    config: Optional[FSRSConfig] = None,
) -> UserSettings:
    config = config or get_fsrs_config()
    if retention is not None:
        retention = float(retention)
        if not config.min_retention <= retention <= config.max_retention:
            raise SettingsValidationError(
                f'fsrs_retention must be between {config.min_retention} and {config.max_retention}'
            )
    if easy_stability is not None:
        easy_stability = float(easy_stability)
        if easy_stability <= 0:
            raise SettingsValidationError('initial_easy_stability must be positive')

    settings_obj = load_settings(user)
    update_fields = ['updated_at']
    if retention is not None:
        settings_obj.fsrs_retention = retention
        update_fields.append('fsrs_retention')
    if easy_stability is not None:
        weights = list(DEFAULT_WEIGHTS)
        weights[INITIAL_EASY_STABILITY_INDEX] = easy_stability
        settings_obj.fsrs_params = {'w': weights}
        update_fields.append('fsrs_params')
    settings_obj.save(update_fields=update_fields)
    logger.info(
        'fsrs_settings_updated',
        user_id=user.pk,
        retention=settings_obj.fsrs_retention,
        easy_stability=easy_stability,
    )
    return settings_obj


def reset_fsrs_settings(user, *, config: Optional[FSRSConfig] = None) -> UserSettings:
    config = config or get_fsrs_config()
    return update_fsrs_settings(
        user,
        retention=config.request_retention,
        easy_stability=config.initial_easy_stability,
        config=config,
    )
