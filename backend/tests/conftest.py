import os
import tempfile
import uuid
from pathlib import Path

import pytest

# Settings are read at import time, so point the app at a scratch database
# and upload directory before any test module imports `ssdi_tracker`.
_TMP_ROOT = Path(tempfile.mkdtemp(prefix="ssdi-tracker-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{_TMP_ROOT / 'test.db'}"
os.environ["UPLOAD_DIR"] = str(_TMP_ROOT / "uploads")

from fastapi.testclient import TestClient  # noqa: E402


@pytest.fixture(scope="session")
def client():
    from ssdi_tracker.main import app
    return TestClient(app)


@pytest.fixture()
def make_user(client):
    """Register and log in a fresh user; returns `(user_id, auth headers)`."""
    def _make(prefix: str = "applicant"):
        username = f"{prefix}-{uuid.uuid4().hex[:8]}"
        r = client.post('/auth/register', json={'username': username, 'password': 'pw123'})
        assert r.status_code == 200
        login = client.post('/auth/login', json={'username': username, 'password': 'pw123'})
        assert login.status_code == 200
        token = login.json()['access_token']
        return r.json()['id'], {'Authorization': f'Bearer {token}'}
    return _make


@pytest.fixture()
def pdf_bytes() -> bytes:
    return b"%PDF-1.4\n1 0 obj\n<<>>\nendobj\ntrailer\n<<>>\n%%EOF\n"
