"""Shared test fixtures for license-relay."""

import pytest
from httpx import ASGITransport, AsyncClient

from license_relay.fulfillment.policy import PolicyResolver
from tests.helpers import (
    ADMIN_SECRET,
    POLICY_TABLE,
    FakeIssuer,
    FakeLineItems,
    FakeNotifier,
    make_settings,
)


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def resolver():
    return PolicyResolver(POLICY_TABLE)


@pytest.fixture
def issuer():
    return FakeIssuer()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def line_items():
    return FakeLineItems()


@pytest.fixture
def services(settings, resolver, issuer, notifier, line_items):
    from license_relay.deps import assemble_services
    return assemble_services(
        settings, resolver, issuer, notifier=notifier, line_items=line_items,
    )


@pytest.fixture
def app(settings, services):
    from license_relay.app import create_app
    return create_app(settings, services)


@pytest.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def admin_headers():
    return {"x-admin-issue-secret": ADMIN_SECRET}
