"""Shared fixtures: in-memory database, fake platform APIs and a scripted generator."""
import asyncio
from datetime import timedelta
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from contentforge.config import Settings
from contentforge.database import create_db_engine, create_session_factory, init_db, session_scope
from contentforge.datetime_utils import utcnow
from contentforge.models.content_piece import ContentPiece, SocialPostVariant
from contentforge.models.social_account import SocialAccount
from contentforge.services.credential_store import CredentialStore
from contentforge.services.platforms.registry import build_default_registry
from contentforge.services.publish_orchestrator import PublishOrchestrator
from contentforge.services.schedule_store import ScheduleStore

TEAM = "team-1"


class FakePlatformApi:
    """
    Routes (method, path) to canned responses for httpx.MockTransport.

    Each route holds a list of outcomes consumed in order; the last one
    repeats. An outcome is (status, json), an exception to raise, or a
    callable taking the request.
    """

    def __init__(self):
        self.routes = {}
        self.requests = []

    def add(self, method, path, *outcomes):
        self.routes[(method, path)] = list(outcomes)

    def count(self, method, path):
        return sum(1 for r in self.requests if r.method == method and r.url.path == path)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        outcomes = self.routes.get((request.method, request.url.path))
        if not outcomes:
            return httpx.Response(404, json={"error": {"message": f"No route for {request.url.path}"}})

        outcome = outcomes.pop(0) if len(outcomes) > 1 else outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        if callable(outcome):
            return outcome(request)
        status, body = outcome
        if isinstance(body, dict):
            return httpx.Response(status, json=body)
        return httpx.Response(status, text=body or "")


class ScriptedGenerator:
    """
    Stand-in for GenerationService.

    `script` maps platform -> list of outcomes by attempt (str text or an
    exception to raise); missing entries produce a default text.
    """

    def __init__(self, script=None, long_form="A long-form article body."):
        self.script = script or {}
        self.long_form = long_form
        self.calls = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.delay = 0.0

    async def generate(self, request):
        self.calls.append(request)
        attempt = sum(1 for call in self.calls if call.platform == request.platform)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            outcomes = self.script.get(request.platform, [])
            outcome = outcomes[attempt - 1] if attempt <= len(outcomes) else f"{request.platform} post #{attempt}"
            if isinstance(outcome, BaseException):
                raise outcome
            return outcome
        finally:
            self.in_flight -= 1

    async def generate_long_form(self, topic, tone="professional"):
        if isinstance(self.long_form, BaseException):
            raise self.long_form
        return self.long_form


def fake_groq_client(text="Launch day is here #launch"):
    """Object shaped like AsyncGroq for the parts GenerationService uses."""
    completion = SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=text))])
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=completion)
    return client


@pytest.fixture
def settings():
    return Settings(
        database_url="sqlite://",
        groq_api_key=None,
        scheduler_enabled=False,
        twitter_client_id="twitter-client",
        twitter_client_secret="twitter-secret",
        linkedin_client_id="linkedin-client",
        linkedin_client_secret="linkedin-secret",
        facebook_app_id="fb-app",
        facebook_app_secret="fb-secret",
        graph_api_version="v18.0",
        publish_retry_delays=[0.0, 0.0],
        publish_deadline_seconds=5,
        debug=True,
    )


@pytest.fixture
def session_factory():
    engine = create_db_engine("sqlite://")
    init_db(engine)
    yield create_session_factory(engine)
    engine.dispose()


@pytest.fixture
def platform_api():
    return FakePlatformApi()


@pytest.fixture
def http_client(platform_api):
    return httpx.AsyncClient(transport=httpx.MockTransport(platform_api.handler))


@pytest.fixture
def registry(settings, http_client):
    return build_default_registry(settings, http_client)


@pytest.fixture
def credential_store(session_factory, registry):
    return CredentialStore(session_factory, registry)


@pytest.fixture
def schedule_store(session_factory):
    return ScheduleStore(session_factory)


@pytest.fixture
def orchestrator(schedule_store, credential_store, registry):
    return PublishOrchestrator(
        schedule_store,
        credential_store,
        registry,
        max_retries=2,
        retry_delays=[0.0, 0.0],
        deadline_seconds=5,
    )


@pytest.fixture
def make_account(session_factory):
    def _make(platform="twitter", team_id=TEAM, **overrides):
        fields = dict(
            team_id=team_id,
            platform=platform,
            platform_user_id=f"{platform}-user",
            username=f"{platform}_handle",
            access_token="access-token",
            refresh_token="refresh-token",
            token_expires_at=utcnow() + timedelta(hours=1),
            platform_data={},
            is_active=True,
        )
        fields.update(overrides)
        with session_scope(session_factory) as db:
            account = SocialAccount(**fields)
            db.add(account)
            db.flush()
            return account
    return _make


@pytest.fixture
def make_variant(session_factory):
    def _make(platform="twitter", text="Launch day is here", image_url=None, team_id=TEAM):
        with session_scope(session_factory) as db:
            piece = ContentPiece(team_id=team_id, topic="Q3 launch", tone="professional")
            db.add(piece)
            db.flush()
            variant = SocialPostVariant(content_piece_id=piece.id, platform=platform, text=text,
                                        image_url=image_url, over_limit=False)
            db.add(variant)
            db.flush()
            return variant
    return _make


@pytest.fixture
def make_post(schedule_store, make_account, make_variant):
    """A scheduled post due an hour ago, plus its account."""
    def _make(platform="twitter", text="Launch day is here", image_url=None, scheduled_at=None,
              account=None, **account_overrides):
        account = account or make_account(platform, **account_overrides)
        variant = make_variant(platform, text=text, image_url=image_url)
        when = scheduled_at if scheduled_at is not None else utcnow() - timedelta(hours=1)
        post = schedule_store.create(TEAM, variant, account, when)
        return post, account
    return _make

