import os
import sys
import tempfile
from pathlib import Path

# Point the service at a throwaway snapshot before any imports that read settings
_test_tmp_dir = tempfile.mkdtemp(prefix="tasklist_test_")
os.environ.setdefault("MEMSTORE_PATH", os.path.join(_test_tmp_dir, "memstore.json"))
os.environ.setdefault("JWT_SECRET", "test-secret-key-for-testing-only-do-not-use-in-production")
os.environ.setdefault("LOG_JSON", "true")

import pytest  # noqa: E402

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


from tasklist.service.auth import TokenAuthenticator  # noqa: E402
from tasklist.service.runtime import reset_runtime_for_tests  # noqa: E402


@pytest.fixture(autouse=True)
def reset_runtime_state(tmp_path, monkeypatch):
    """Give every test a fresh runtime backed by its own snapshot file."""
    monkeypatch.setenv("MEMSTORE_PATH", str(tmp_path / "memstore.json"))
    reset_runtime_for_tests()
    yield
    reset_runtime_for_tests()


@pytest.fixture
def jwt_secret():
    return os.environ["JWT_SECRET"]


@pytest.fixture
def token_for(jwt_secret):
    """Factory returning an ``Authorization`` header value for a tenant/user pair."""
    authenticator = TokenAuthenticator(jwt_secret)

    def _make(tenant_id: str, user_id: str, ttl_seconds: int = 3600) -> str:
        return "Bearer " + authenticator.encode_token(tenant_id, user_id, ttl_seconds)

    return _make
