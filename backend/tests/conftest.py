import os
import time
import shutil
import tempfile
import pytest

_data_dir = tempfile.mkdtemp(prefix="drive_browser_")
os.environ.update({
    "DATABASE_URL": f"sqlite+aiosqlite:///{os.path.join(_data_dir, 'test.db')}",
    "GOOGLE_CLIENT_ID": "test-client-id",
    "GOOGLE_CLIENT_SECRET": "test-client-secret",
    "JWT_SECRET": "test-jwt-secret",
})

from unittest.mock import AsyncMock, MagicMock, patch
from fastapi.testclient import TestClient
from main import app
from auth import oauth
from deps import get_drive_client


def oauth_token(email, sub, expires_in=3600, name="Test User"):
    return {
        "access_token": f"access-{sub}",
        "token_type": "Bearer",
        "scope": "openid email profile https://www.googleapis.com/auth/drive",
        "expires_at": int(time.time()) + expires_in,
        "userinfo": {"sub": sub, "email": email, "name": name},
    }


@pytest.fixture(scope="session")
def app_client():
    with TestClient(app) as c:
        yield c
    shutil.rmtree(_data_dir, ignore_errors=True)


@pytest.fixture
def client(app_client):
    app_client.cookies.clear()
    yield app_client
    app_client.cookies.clear()
    app.dependency_overrides.clear()


@pytest.fixture
def login(client):
    """Runs the OAuth callback with a mocked Google response."""
    def _login(email, sub, expires_in=3600):
        token = oauth_token(email, sub, expires_in=expires_in)
        with patch.object(oauth.google, "authorize_access_token", AsyncMock(return_value=token)):
            return client.get("/auth/callback", params={"code": "auth-code"}, follow_redirects=False)
    return _login


@pytest.fixture
def fake_drive(client):
    drive = MagicMock()
    app.dependency_overrides[get_drive_client] = lambda: drive
    return drive
