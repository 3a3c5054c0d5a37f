try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover
    import _bootstrap  # type: ignore # noqa: F401

import copy
import logging

import httpx
import pytest

from app.clients.strava import (
    AthleteProfile,
    AthleteProfileError,
    OAuthTokenExchangeError,
)
from app.clients.github_contents import GitHubContentsClient
from app.clients.local_store import LocalTokenStore
from app.core.errors import RemoteUnreachableError, SyncConflictError
from app.main import app
from app.services.token_sync import TokenMirrorService


class DummyOAuthClient:
    def __init__(self) -> None:
        self.codes: list[str] = []
        self.exchange_error: Exception | None = None
        self.profile_error: Exception | None = None

    def build_authorization_url(self, state: str | None = None) -> str:
        return "https://www.strava.com/oauth/authorize?client_id=12345"

    async def exchange_authorization_code(self, code: str) -> tuple[str, str]:
        self.codes.append(code)
        if self.exchange_error is not None:
            raise self.exchange_error
        return ("access-token", "tok-abc")

    async def fetch_athlete(self, access_token: str) -> AthleteProfile:
        if self.profile_error is not None:
            raise self.profile_error
        return AthleteProfile(athlete_id="123", display_name="Jane Doe")


class RecordingSyncService:
    def __init__(self) -> None:
        self.calls: list[dict] = []
        self.error: Exception | None = None

    async def sync(self, *, user_id: str, display_name: str, refresh_credential: str):
        self.calls.append(
            {
                "user_id": user_id,
                "display_name": display_name,
                "refresh_credential": refresh_credential,
            }
        )
        if self.error is not None:
            raise self.error
        return {}

    async def snapshot(self):
        return {}


@pytest.fixture()
def exchange_overrides():
    from app import dependencies
    from app.core.config import get_settings

    oauth_client = DummyOAuthClient()
    sync_service = RecordingSyncService()
    settings = copy.deepcopy(get_settings())
    settings.persist.policy = "synchronous"

    app.dependency_overrides.update(
        {
            dependencies.get_strava_oauth_client: lambda: oauth_client,
            dependencies.get_token_sync_service: lambda: sync_service,
            dependencies.get_app_settings: lambda: settings,
        }
    )

    yield oauth_client, sync_service, settings

    app.dependency_overrides.clear()


async def _get(path: str, **params) -> httpx.Response:
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://testserver"
    ) as client:
        return await client.get(path, params=params)


@pytest.mark.anyio
async def test_exchange_persists_before_responding(exchange_overrides):
    oauth_client, sync_service, _ = exchange_overrides

    response = await _get("/api/exchange-code", code="oauth-code")

    assert response.status_code == 200
    assert response.json() == {
        "refresh_token": "tok-abc",
        "name": "Jane Doe",
        "athleteId": "123",
        "persistence": "saved",
    }
    assert oauth_client.codes == ["oauth-code"]
    assert sync_service.calls == [
        {"user_id": "123", "display_name": "Jane Doe", "refresh_credential": "tok-abc"}
    ]


@pytest.mark.anyio
async def test_exchange_requires_code(exchange_overrides):
    _, sync_service, _ = exchange_overrides

    response = await _get("/api/exchange-code")

    assert response.status_code == 400
    assert response.json()["detail"] == "No code provided"
    assert not sync_service.calls


@pytest.mark.anyio
async def test_exchange_reports_denied_authorization(exchange_overrides):
    oauth_client, _, _ = exchange_overrides

    response = await _get("/api/exchange-code", error="access_denied")

    assert response.status_code == 400
    assert not oauth_client.codes


@pytest.mark.anyio
async def test_exchange_failure_is_client_error(exchange_overrides):
    oauth_client, sync_service, _ = exchange_overrides
    oauth_client.exchange_error = OAuthTokenExchangeError("Bad Request")

    response = await _get("/api/exchange-code", code="expired")

    assert response.status_code == 400
    assert response.json()["detail"] == "Bad Request"
    assert not sync_service.calls


@pytest.mark.anyio
async def test_profile_failure_is_bad_gateway(exchange_overrides):
    oauth_client, sync_service, _ = exchange_overrides
    oauth_client.profile_error = AthleteProfileError("Authorization Error")

    response = await _get("/api/exchange-code", code="oauth-code")

    assert response.status_code == 502
    assert not sync_service.calls


@pytest.mark.anyio
@pytest.mark.parametrize(
    ("error", "status_code"),
    [
        (RemoteUnreachableError("timeout"), 502),
        (SyncConflictError("changed"), 409),
    ],
)
async def test_synchronous_persist_failure_is_distinguished(
    exchange_overrides, error, status_code
):
    _, sync_service, _ = exchange_overrides
    sync_service.error = error

    response = await _get("/api/exchange-code", code="oauth-code")

    assert response.status_code == status_code
    assert "could not be saved" in response.json()["detail"]


@pytest.mark.anyio
async def test_deferred_persist_responds_even_when_saving_fails(exchange_overrides, caplog):
    _, sync_service, settings = exchange_overrides
    settings.persist.policy = "deferred"
    sync_service.error = RemoteUnreachableError("timeout")

    with caplog.at_level(logging.INFO, logger="app.services.token_sync"):
        response = await _get("/api/exchange-code", code="oauth-code")

    assert response.status_code == 200
    assert response.json()["persistence"] == "scheduled"
    assert len(sync_service.calls) == 1
    assert "Deferred refresh token persistence failed" in caplog.text


@pytest.fixture()
def mirrored_service(exchange_overrides, tmp_path, github_settings, github_repo):
    from app import dependencies

    service = TokenMirrorService(
        LocalTokenStore(tmp_path / "tokens.json"),
        GitHubContentsClient(github_settings, transport=github_repo.transport()),
    )
    app.dependency_overrides[dependencies.get_token_sync_service] = lambda: service
    return service


@pytest.mark.anyio
@pytest.mark.parametrize(("policy", "persistence"), [("synchronous", "saved"), ("deferred", "scheduled")])
async def test_mirrored_exchange_succeeds_with_info_logging(
    exchange_overrides, mirrored_service, github_repo, caplog, policy, persistence
):
    _, _, settings = exchange_overrides
    settings.persist.policy = policy

    with caplog.at_level(logging.INFO):
        response = await _get("/api/exchange-code", code="oauth-code")

    assert response.status_code == 200
    assert response.json()["persistence"] == persistence
    assert github_repo.stored_mapping() == {
        "123": {"display_name": "Jane Doe", "refresh_credential": "tok-abc"}
    }
    assert "Deferred refresh token persistence failed" not in caplog.text
