import pytest
from django.test import Client

from .factories import (
    DisciplineFactory,
    ErrorEntryFactory,
    ScheduleItemFactory,
    StudyScheduleFactory,
    SubdisciplineFactory,
    TopicFactory,
    UserFactory,
)


@pytest.fixture
def user_factory():
    return UserFactory


@pytest.fixture
def discipline_factory():
    return DisciplineFactory


@pytest.fixture
def subdiscipline_factory():
    return SubdisciplineFactory


@pytest.fixture
def topic_factory():
    return TopicFactory


@pytest.fixture
def error_entry_factory():
    return ErrorEntryFactory


@pytest.fixture
def schedule_factory():
    return StudyScheduleFactory


@pytest.fixture
def schedule_item_factory():
    return ScheduleItemFactory


@pytest.fixture
def rotation_topics(discipline_factory, subdiscipline_factory, topic_factory):
    """A discipline with five topics spread over two subdisciplines."""
    discipline = discipline_factory(name='Cirurgia')
    first = subdiscipline_factory(discipline=discipline, name='Trauma')
    second = subdiscipline_factory(discipline=discipline, name='Abdome agudo')
    topics = [topic_factory(subdiscipline=first) for _ in range(3)]
    topics += [topic_factory(subdiscipline=second) for _ in range(2)]
    return discipline, topics


@pytest.fixture
def api_client():
    return Client()
