"""Shared pytest fixtures for the bucketview test suite."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from bucketview.api.server import create_app
from bucketview.auth import AuthGateway
from bucketview.config import Config, CorsConfig, OAuthConfig
from bucketview.namespace import NamespaceManager
from bucketview.session.store import SESSIONS_NAMESPACE, STATES_NAMESPACE, MemoryKVStore
from bucketview.storage.memory_store import MemoryObjectStore
from fakes import ALLOWED_DOMAIN, FRONTEND_URL, FakeClock, FakeIdentityProvider


@pytest.fixture
def config() -> Config:
    """Config with every OAuth setting filled in."""
    return Config(
        oauth=OAuthConfig(
            client_id="client-id",
            client_secret="client-secret",
            redirect_uri="https://api.example.com/api/auth/callback",
            allowed_domain=ALLOWED_DOMAIN,
            frontend_url=FRONTEND_URL,
        ),
        cors=CorsConfig(allowed_origins=[FRONTEND_URL, "http://localhost:3000"]),
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def states(clock) -> MemoryKVStore:
    return MemoryKVStore(STATES_NAMESPACE, clock=clock)


@pytest.fixture
def sessions(clock) -> MemoryKVStore:
    return MemoryKVStore(SESSIONS_NAMESPACE, clock=clock)


@pytest.fixture
def provider() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest.fixture
def gateway(config, states, sessions, provider, clock) -> AuthGateway:
    return AuthGateway(config, states, sessions, provider, clock=clock)


@pytest.fixture
def store() -> MemoryObjectStore:
    return MemoryObjectStore()


@pytest.fixture
def namespace(store) -> NamespaceManager:
    return NamespaceManager(store)


@pytest.fixture
def app(config, store, states, sessions, provider, clock):
    return create_app(
        config, store=store, states=states, sessions=sessions, provider=provider, clock=clock
    )


@pytest.fixture
def client(app) -> TestClient:
    # https so the Secure session cookie is sent back
    return TestClient(app, base_url="https://testserver", follow_redirects=False)


@pytest.fixture
def logged_in(client) -> TestClient:
    """Client holding a valid session cookie from a full login round trip."""
    login = client.get("/api/auth/login")
    state = login.headers["location"].split("state=")[1].split("&")[0]
    resp = client.get("/api/auth/callback", params={"code": "good-code", "state": state})
    assert resp.status_code == 302
    return client
