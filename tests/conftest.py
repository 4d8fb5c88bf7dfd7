"""
Shared fixtures for the marketplace test suite.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from django.core.cache import cache
from django.utils import timezone
from rest_framework.test import APIClient

from marketplace.conversations import ConversationDirectory
from marketplace.identity import IdentityService
from marketplace.lifecycle import LifecycleEngine
from marketplace.store import EntityStore

FIXED_CODE = '482913'


@pytest.fixture(autouse=True)
def clear_throttle_cache():
    """Throttle counters live in the cache; start every test clean."""
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def store(db):
    return EntityStore()


@pytest.fixture
def identity(store):
    """IdentityService with a predictable verification code."""
    return IdentityService(store, code_generator=lambda: FIXED_CODE)


@pytest.fixture
def engine(store):
    return LifecycleEngine(store)


@pytest.fixture
def directory(store):
    return ConversationDirectory(store)


@pytest.fixture
def make_user(identity):
    """Factory for users with a known password."""
    def _make_user(name, email, password='hookem123', **extra):
        return identity.create_user({
            'name': name,
            'email': email,
            'password': password,
            'edu_verified': True,
            **extra,
        })
    return _make_user


@pytest.fixture
def provider(make_user):
    return make_user('Sarah Chen', 'sarah.chen@utexas.edu')


@pytest.fixture
def bidder(make_user):
    return make_user('Marcus Johnson', 'marcus.j@utexas.edu')


@pytest.fixture
def other_bidder(make_user):
    return make_user('Priya Patel', 'priya.p@utexas.edu')


@pytest.fixture
def buyer(make_user):
    return make_user('Diego Ramirez', 'diego.r@utexas.edu')


def build_service_payload(**overrides):
    payload = {
        'title': 'Help Moving Into Jester Dorm',
        'description': 'Carry 10 boxes and a small desk up to Jester West.',
        'category': 'Moving Help',
        'price': Decimal('40.00'),
        'location': 'Jester West, UT Austin',
        'date_time': timezone.now() + timedelta(days=7),
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def service_payload():
    """Builder for valid service payloads."""
    return build_service_payload


@pytest.fixture
def make_service(engine, provider):
    """Factory for active services (provider defaults to the provider fixture)."""
    def _make_service(owner=None, **overrides):
        owner = owner or provider
        return engine.create_service(owner.id, build_service_payload(**overrides))
    return _make_service


@pytest.fixture
def service(make_service):
    return make_service()


@pytest.fixture
def api_client():
    """Provide API client for testing."""
    return APIClient()


@pytest.fixture
def login_as(identity):
    """Point the marketplace session at a user (what a successful login does)."""
    def _login_as(user):
        identity.set_current_user(user.id)
        return user
    return _login_as
