import pytest

from core.fsrs import DEFAULT_WEIGHTS
from core.models import UserSettings, UserStudyStats
from core.services.settings import (
    SettingsValidationError,
    load_settings,
    reset_fsrs_settings,
    settings_to_dict,
    update_fsrs_settings,
)

pytestmark = pytest.mark.django_db


def test_new_user_gets_default_settings(user_factory):
    user = user_factory()

    assert UserSettings.objects.filter(user=user).count() == 1
    assert UserStudyStats.objects.filter(user=user).exists()
    payload = settings_to_dict(load_settings(user))
    assert payload['fsrs_retention'] == 0.9
    assert payload['initial_easy_stability'] == DEFAULT_WEIGHTS[3]
    assert payload['initial_easy_stability'] == payload['fsrs_params']['w'][3]
    assert payload['default_initial_easy_stability'] == 4.5
    assert payload['custom_params'] is False
    assert payload['fsrs_params']['w'] == list(DEFAULT_WEIGHTS)


def test_easy_stability_rewrites_the_weight_vector(user_factory):
    user = user_factory()

    settings_obj = update_fsrs_settings(user, retention=0.85, easy_stability=6.0)

    weights = settings_obj.weights()
    assert len(weights) == 21
    assert weights[3] == 6.0
    assert weights[:3] == list(DEFAULT_WEIGHTS[:3])
    assert settings_obj.fsrs_retention == 0.85
    assert settings_to_dict(settings_obj)['initial_easy_stability'] == 6.0


@pytest.mark.parametrize('retention', [0.5, 0.995, 1.2])
def test_retention_out_of_range(user_factory, retention):
    with pytest.raises(SettingsValidationError):
        update_fsrs_settings(user_factory(), retention=retention)


def test_non_positive_easy_stability(user_factory):
    with pytest.raises(SettingsValidationError):
        update_fsrs_settings(user_factory(), easy_stability=0)


def test_reset_restores_defaults(user_factory):
    user = user_factory()
    update_fsrs_settings(user, retention=0.75, easy_stability=12)

    settings_obj = reset_fsrs_settings(user)

    assert settings_obj.fsrs_retention == 0.9
    assert settings_obj.weights()[3] == 4.5


def test_settings_api(api_client, user_factory):
    user = user_factory()
    api_client.force_login(user)

    resp = api_client.patch(
        '/api/v1/settings/fsrs',
        data={'fsrs_retention': 0.8, 'initial_easy_stability': 5.5},
        content_type='application/json',
    )
    assert resp.status_code == 200
    assert resp.json()['initial_easy_stability'] == 5.5
    assert resp.json()['custom_params'] is True

    bad = api_client.patch('/api/v1/settings/fsrs', data={'fsrs_retention': 0.2}, content_type='application/json')
    assert bad.status_code == 400

    reset = api_client.post('/api/v1/settings/fsrs/reset')
    assert reset.status_code == 200
    assert reset.json()['fsrs_retention'] == 0.9
    assert api_client.get('/api/v1/settings/fsrs').json()['initial_easy_stability'] == 4.5
