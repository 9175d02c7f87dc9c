from firebase_admin import firestore
import logging

from ..core.firebase_init import require_firebase

logger = logging.getLogger(__name__)

_client = None

def get_firestore_client():
    """Return the shared Firestore client, initializing Firebase on first use."""
    global _client

    if _client is not None:
        return _client

    require_firebase("Firestore")

    _client = firestore.client()
    logger.info("Firestore client created")
    return _client
