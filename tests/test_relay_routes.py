try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from app.clients import GoogleOAuthClient
from app.core.config import GoogleSettings, OAuthSettings
from app.core.errors import NotFoundError, UploadError
from app.main import app, create_app
from app.schemas import DriveFile
from app.services.token_guard import TokenLifecycleGuard

pytestmark = pytest.mark.anyio


class MemoryStore:
    def __init__(self, refresh_token: str | None = None) -> None:
        self.refresh_token = refresh_token
        self.writable = True
        self.saves: list[str | None] = []

    async def load(self) -> str | None:
        return self.refresh_token

    async def save(self, refresh_token: str | None) -> bool:
        self.saves.append(refresh_token)
        if not refresh_token or not self.writable:
            return False
        self.refresh_token = refresh_token
        return True


class TokenEndpoint:
    def __init__(self) -> None:
        self.status_code = 200
        self.issues_refresh_token = True
        self.grants: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        form = {key: values[0] for key, values in parse_qs(request.content.decode()).items()}
        self.grants.append(form["grant_type"])
        if self.status_code != 200:
            return httpx.Response(self.status_code, json={"error": "invalid_grant"})
        payload = {"access_token": f"at-{len(self.grants)}", "expires_in": 3600}
        if form["grant_type"] == "authorization_code" and self.issues_refresh_token:
            payload["refresh_token"] = "rt-consent"
        return httpx.Response(200, json=payload)


class RecordingDrive:
    def __init__(self) -> None:
        self.calls: list[tuple] = []
        self.files = [DriveFile(id="f1", name="report.pdf")]
        self.upload_error: UploadError | None = None

    async def upload_file(self, *, name: str, mime_type: str | None, data: bytes) -> str:
        self.calls.append(("upload", name, mime_type, data))
        if self.upload_error is not None:
            raise self.upload_error
        return "new-file-id"

    async def list_files(self, query: str = "trashed = false"):
        self.calls.append(("list", query))
        return self.files

    async def download_file(self, file_id: str):
        self.calls.append(("download", file_id))
        if file_id == "missing":
            raise NotFoundError(f"File {file_id} not found.")

        async def _chunks():
            yield b"chunk-1|"
            yield b"chunk-2"

        return _chunks()


class Relay:
    def __init__(self, store: MemoryStore, policy: str = "retain") -> None:
        self.store = store
        self.endpoint = TokenEndpoint()
        self.drive = RecordingDrive()
        self.oauth_client = GoogleOAuthClient(
            GoogleSettings(
                GOOGLE_CLIENT_ID="client",
                GOOGLE_CLIENT_SECRET="secret",
                GOOGLE_REDIRECT_URI="https://relay.example.com/oauth2callback",
            ),
            OAuthSettings(),
            transport=httpx.MockTransport(self.endpoint),
        )
        self.guard = TokenLifecycleGuard(
            oauth_client=self.oauth_client, store=store, on_refresh_failure=policy
        )


@pytest.fixture()
def relay_factory():
    from app import dependencies

    def _install(store: MemoryStore | None = None, policy: str = "retain") -> Relay:
        relay = Relay(store or MemoryStore(), policy)
        app.dependency_overrides.update(
            {
                dependencies.get_google_oauth_client: lambda: relay.oauth_client,
                dependencies.get_token_guard: lambda: relay.guard,
                dependencies.get_drive_client: lambda: relay.drive,
            }
        )
        return relay

    yield _install

    app.dependency_overrides.clear()


def _client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://testserver"
    )


async def test_fresh_process_with_empty_store_is_unauthenticated(relay_factory):
    relay = relay_factory(MemoryStore())

    async with _client() as client:
        response = await client.get("/public-files")

    assert response.status_code == 401
    assert "/auth" in response.json()["detail"]
    assert relay.drive.calls == []
    assert relay.endpoint.grants == []


async def test_stored_refresh_token_is_refreshed_before_listing(relay_factory):
    relay = relay_factory(MemoryStore("rt-123"))

    async with _client() as client:
        first = await client.get("/public-files")
        second = await client.get("/public-files")

    assert first.status_code == 200
    assert first.json() == [{"id": "f1", "name": "report.pdf"}]
    assert second.status_code == 200
    assert relay.endpoint.grants == ["refresh_token"]
    assert relay.store.saves == ["rt-123"]
    assert relay.drive.calls == [("list", "trashed = false"), ("list", "trashed = false")]


async def test_rejected_refresh_returns_server_error_and_retries(relay_factory):
    relay = relay_factory(MemoryStore("rt-revoked"))
    relay.endpoint.status_code = 400

    async with _client() as client:
        first = await client.get("/public-files")
        second = await client.get("/public-files")

    assert first.status_code == 500
    assert "invalid_grant" in first.json()["detail"]
    assert second.status_code == 500
    assert relay.endpoint.grants == ["refresh_token", "refresh_token"]
    assert relay.oauth_client.state.refresh_token == "rt-revoked"
    assert relay.drive.calls == []


async def test_revoke_policy_requires_new_authorization(relay_factory):
    relay = relay_factory(MemoryStore("rt-revoked"), policy="revoke")
    relay.endpoint.status_code = 400

    async with _client() as client:
        first = await client.get("/public-files")
        second = await client.get("/public-files")

    assert first.status_code == 500
    assert second.status_code == 401
    assert relay.endpoint.grants == ["refresh_token"]


async def test_auth_redirects_to_consent_screen(relay_factory):
    relay_factory()

    async with _client() as client:
        response = await client.get("/auth")

    assert response.status_code == 307
    location = urlparse(response.headers["location"])
    assert location.netloc == "accounts.google.com"
    params = parse_qs(location.query)
    assert params["access_type"] == ["offline"]
    assert params["prompt"] == ["consent"]


async def test_callback_exchanges_code_and_persists_refresh_token(relay_factory):
    relay = relay_factory()

    async with _client() as client:
        callback = await client.get("/oauth2callback", params={"code": "auth-code"})
        listing = await client.get("/public-files")

    assert callback.status_code == 200
    assert "Authentication Successful" in callback.text
    assert relay.store.saves == ["rt-consent"]
    assert listing.status_code == 200
    assert relay.endpoint.grants == ["authorization_code"]


async def test_callback_failure_returns_server_error(relay_factory):
    relay = relay_factory()
    relay.endpoint.status_code = 400

    async with _client() as client:
        response = await client.get("/oauth2callback", params={"code": "bad"})

    assert response.status_code == 500
    assert response.json()["detail"] == "Authentication failed."
    assert relay.store.saves == []


async def test_callback_reports_unsaved_refresh_token(relay_factory):
    relay = relay_factory()
    relay.store.writable = False

    async with _client() as client:
        response = await client.get("/oauth2callback", params={"code": "auth-code"})

    assert response.status_code == 200
    assert "held in memory only" in response.text
    assert relay.oauth_client.has_refresh_token


async def test_callback_reports_missing_refresh_token(relay_factory):
    relay = relay_factory()
    relay.endpoint.issues_refresh_token = False

    async with _client() as client:
        response = await client.get("/oauth2callback", params={"code": "auth-code"})

    assert response.status_code == 200
    assert "did not issue a refresh token" in response.text
    assert "held in memory only" not in response.text
    assert relay.store.saves == []


async def test_upload_forwards_file_and_optional_name(relay_factory):
    relay = relay_factory(MemoryStore("rt-123"))

    async with _client() as client:
        renamed = await client.post(
            "/upload",
            files={"file": ("chart.png", b"png-bytes", "image/png")},
            data={"name": "renamed.png"},
        )
        original = await client.post(
            "/upload", files={"file": ("notes.txt", b"hello", "text/plain")}
        )

    assert renamed.status_code == 200
    assert renamed.text == "File uploaded successfully! File ID: new-file-id"
    assert original.status_code == 200
    assert relay.drive.calls == [
        ("upload", "renamed.png", "image/png", b"png-bytes"),
        ("upload", "notes.txt", "text/plain", b"hello"),
    ]


async def test_upload_without_file_is_bad_request(relay_factory):
    relay = relay_factory(MemoryStore("rt-123"))

    async with _client() as client:
        response = await client.post("/upload", data={"name": "nothing"})

    assert response.status_code == 400
    assert relay.drive.calls == []


async def test_upload_rejection_surfaces_remote_detail(relay_factory):
    relay = relay_factory(MemoryStore("rt-123"))
    relay.drive.upload_error = UploadError("Error uploading file: quota exceeded")

    async with _client() as client:
        response = await client.post(
            "/upload", files={"file": ("a.bin", b"x", "application/octet-stream")}
        )

    assert response.status_code == 500
    assert "quota exceeded" in response.json()["detail"]


async def test_download_streams_bytes(relay_factory):
    relay = relay_factory(MemoryStore("rt-123"))

    async with _client() as client:
        response = await client.get("/download/f1")

    assert response.status_code == 200
    assert response.content == b"chunk-1|chunk-2"
    assert relay.drive.calls == [("download", "f1")]


async def test_download_unknown_file_is_not_found(relay_factory):
    relay_factory(MemoryStore("rt-123"))

    async with _client() as client:
        response = await client.get("/download/missing")

    assert response.status_code == 404


async def test_tokens_masks_refresh_token(relay_factory):
    relay = relay_factory(MemoryStore("rt-123"))

    async with _client() as client:
        before = await client.get("/tokens")
        await client.get("/public-files")
        after = await client.get("/tokens")

    assert before.json()["refresh_token"] == "Not loaded"
    assert before.json()["token_will_expire_in"] == "Unknown"
    body = after.json()
    assert body["refresh_token"] == "[HIDDEN]"
    assert body["access_token"] == "at-1"
    assert body["token_will_expire_in"].endswith("s")
    assert "rt-123" not in after.text
    assert relay.oauth_client.state.refresh_token == "rt-123"


async def test_debug_refresh_forces_next_guarded_call_to_refresh(relay_factory):
    relay = relay_factory(MemoryStore("rt-123"))
    relay.oauth_client.set_refresh_token("rt-123")
    relay.oauth_client.state.access_token = "at-live"
    relay.oauth_client.state.expiry_date = datetime.now(timezone.utc) + timedelta(hours=1)

    async with _client() as client:
        await client.get("/public-files")
        assert relay.endpoint.grants == []

        cleared = await client.get("/debug-refresh")
        await client.get("/public-files")

    assert cleared.status_code == 200
    assert relay.oauth_client.state.refresh_token == "rt-123"
    assert relay.endpoint.grants == ["refresh_token"]


async def test_manual_refresh_without_token_is_unauthorized(relay_factory):
    relay_factory(MemoryStore())

    async with _client() as client:
        response = await client.get("/refreshtoken")

    assert response.status_code == 401
    assert "/auth" in response.text


async def test_manual_refresh_success_and_failure(relay_factory):
    relay = relay_factory(MemoryStore("rt-123"))

    async with _client() as client:
        ok = await client.get("/refreshtoken")
        relay.endpoint.status_code = 400
        failed = await client.get("/refreshtoken")

    assert ok.status_code == 200
    assert "Token Refreshed Successfully" in ok.text
    assert failed.status_code == 500
    assert "invalid_grant" in failed.text
    assert relay.store.saves == ["rt-123"]


async def test_health_and_home(relay_factory):
    relay_factory()

    async with _client() as client:
        health = await client.get("/health")
        home = await client.get("/")

    assert health.json() == {"status": "ok"}
    assert 'href="/auth"' in home.text


async def test_startup_loads_stored_refresh_token():
    relay = Relay(MemoryStore("rt-123"))
    relay_app = create_app(guard_factory=lambda: relay.guard)

    async with relay_app.router.lifespan_context(relay_app):
        assert relay.oauth_client.state.refresh_token == "rt-123"

    assert relay.endpoint.grants == []


async def test_startup_without_stored_token_still_serves():
    relay = Relay(MemoryStore())
    relay_app = create_app(guard_factory=lambda: relay.guard)

    async with relay_app.router.lifespan_context(relay_app):
        assert relay.oauth_client.state.refresh_token is None
