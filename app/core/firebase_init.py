"""
Firebase Admin bootstrap shared by Firestore, Auth and Storage.

The portal starts without a backend when the service account is missing, so
the reason for the last failed attempt is kept for the health endpoints and
re-reported by ``require_firebase`` when a feature actually needs the SDK.
"""

from typing import Optional
import logging
import os

import firebase_admin
from firebase_admin import credentials

from .config import settings
from .exceptions import FirebaseUnavailableError

logger = logging.getLogger(__name__)

_firebase_initialized = False
_last_error: Optional[str] = None


def initialize_firebase() -> bool:
    """
    Initialize the default Firebase app from the configured service account.
    Safe to call repeatedly; returns whether Firebase is usable afterwards.
    """
    global _firebase_initialized, _last_error

    if is_firebase_available():
        _firebase_initialized = True
        return True

    service_account_path = settings.FIREBASE_SERVICE_ACCOUNT_PATH
    if not os.path.exists(service_account_path):
        _last_error = f"service account file not found at {service_account_path}"
        logger.warning(f"⚠️ Firebase unavailable: {_last_error}")
        return False

    try:
        cred = credentials.Certificate(service_account_path)
        firebase_admin.initialize_app(cred, {
            'projectId': settings.FIREBASE_PROJECT_ID,
            'storageBucket': settings.FIREBASE_STORAGE_BUCKET,
        })
    except Exception as e:
        _last_error = str(e)
        logger.error(f"❌ Firebase initialization failed: {e}")
        return False

    _firebase_initialized = True
    _last_error = None
    logger.info(f"✅ Firebase initialized for project {settings.FIREBASE_PROJECT_ID}")
    return True


def is_firebase_available() -> bool:
    return _firebase_initialized or bool(firebase_admin._apps)


def require_firebase(feature: str):
    """Initialize on demand; raise FirebaseUnavailableError naming ``feature`` otherwise."""
    if not initialize_firebase():
        raise FirebaseUnavailableError(feature, _last_error)


def get_firebase_status() -> dict:
    return {
        "available": is_firebase_available(),
        "project_id": settings.FIREBASE_PROJECT_ID,
        "storage_bucket": settings.FIREBASE_STORAGE_BUCKET,
        "last_error": _last_error,
    }
