"""Shared test fixtures."""

import pytest
from django.contrib.auth import get_user_model

from bookings.models import Room


@pytest.fixture
def room(db):
    return Room.objects.create(name="Alpha", location="Floor 1", capacity=6)


@pytest.fixture
def other_room(db):
    return Room.objects.create(name="Bravo", location="Floor 2", capacity=8)


@pytest.fixture
def member(db):
    return get_user_model().objects.create_user(
        username="dana",
        email="dana@example.com",
        password="pw",
        first_name="Dana",
        last_name="Levi",
    )


@pytest.fixture
def other_member(db):
    return get_user_model().objects.create_user(username="omer", email="omer@example.com", password="pw")


@pytest.fixture
def staff(db):
    return get_user_model().objects.create_user(
        username="admin",
        email="admin@example.com",
        password="pw",
        is_staff=True,
    )
