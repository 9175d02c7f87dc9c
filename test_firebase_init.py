import firebase_admin
import pytest
from firebase_admin import credentials

from app.core import firebase_init
from app.core.config import settings
from app.core.exceptions import FirebaseUnavailableError, to_http_exception
from app.core.firebase_init import get_firebase_status, initialize_firebase, require_firebase
from app.services.file_storage_service import FileStorageService


@pytest.fixture(autouse=True)
def no_firebase_app(monkeypatch):
    monkeypatch.setattr(firebase_admin, "_apps", {})
    monkeypatch.setattr(firebase_init, "_firebase_initialized", False)
    monkeypatch.setattr(firebase_init, "_last_error", None)


def test_missing_service_account_is_reported_in_status(monkeypatch, tmp_path):
    missing = tmp_path / "service-account.json"
    monkeypatch.setattr(settings, "FIREBASE_SERVICE_ACCOUNT_PATH", str(missing))

    assert initialize_firebase() is False

    status = get_firebase_status()
    assert status["available"] is False
    assert status["last_error"] == f"service account file not found at {missing}"


def test_unreadable_credentials_fail_without_raising(monkeypatch, tmp_path):
    path = tmp_path / "service-account.json"
    path.write_text("{}")
    monkeypatch.setattr(settings, "FIREBASE_SERVICE_ACCOUNT_PATH", str(path))

    assert initialize_firebase() is False
    assert get_firebase_status()["last_error"]


def test_require_firebase_names_the_feature(monkeypatch, tmp_path):
    monkeypatch.setattr(settings, "FIREBASE_SERVICE_ACCOUNT_PATH", str(tmp_path / "absent.json"))

    with pytest.raises(FirebaseUnavailableError) as exc_info:
        require_firebase("Firestore")

    assert exc_info.value.feature == "Firestore"
    assert "service account file not found" in str(exc_info.value)
    assert to_http_exception(exc_info.value).status_code == 503


def test_storage_bucket_needs_firebase(monkeypatch, tmp_path):
    monkeypatch.setattr(settings, "FIREBASE_SERVICE_ACCOUNT_PATH", str(tmp_path / "absent.json"))

    with pytest.raises(FirebaseUnavailableError):
        FileStorageService().bucket


def test_successful_initialization_clears_previous_error(monkeypatch, tmp_path):
    path = tmp_path / "service-account.json"
    monkeypatch.setattr(settings, "FIREBASE_SERVICE_ACCOUNT_PATH", str(path))
    assert initialize_firebase() is False

    path.write_text("{}")
    calls = []
    monkeypatch.setattr(credentials, "Certificate", lambda p: ("cert", p))
    monkeypatch.setattr(firebase_admin, "initialize_app", lambda cred, options: calls.append((cred, options)))

    assert initialize_firebase() is True
    assert initialize_firebase() is True

    assert calls == [(("cert", str(path)), {
        "projectId": settings.FIREBASE_PROJECT_ID,
        "storageBucket": settings.FIREBASE_STORAGE_BUCKET,
    })]
    assert get_firebase_status()["available"] is True
    assert get_firebase_status()["last_error"] is None
