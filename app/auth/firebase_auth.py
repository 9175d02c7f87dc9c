from firebase_admin import auth
from typing import Optional
import asyncio
import logging

import httpx

from ..core.config import settings
from ..core.firebase_init import require_firebase

logger = logging.getLogger(__name__)

SIGN_IN_URL = "https://identitytoolkit.googleapis.com/v1/accounts:signInWithPassword"


class FirebaseAuth:
    """Identity provider: Firebase Auth session tokens and user accounts."""

    def _ensure_initialized(self):
        require_firebase("Firebase Auth")

    async def verify_token(self, token: str) -> Optional[dict]:
        """Decode an ID token; ``None`` for anything that is not a valid session."""
        try:
            self._ensure_initialized()
            decoded_token = await asyncio.to_thread(auth.verify_id_token, token)
            return decoded_token
        except Exception as e:
            logger.warning(f"Token verification failed: {e}")
            return None

    async def sign_in_with_password(self, email: str, password: str) -> Optional[dict]:
        """
        Password check through the Firebase REST endpoint.
        Returns {idToken, refreshToken, expiresIn, localId, ...} or None on bad credentials.
        """
        if not settings.FIREBASE_WEB_API_KEY:
            raise Exception("Missing FIREBASE_WEB_API_KEY")
        url = f"{SIGN_IN_URL}?key={settings.FIREBASE_WEB_API_KEY}"
        payload = {"email": email, "password": password, "returnSecureToken": True}
        async with httpx.AsyncClient(timeout=15.0) as client:
            resp = await client.post(url, json=payload)
        if resp.status_code != 200:
            logger.info(f"Password sign-in rejected for {email}: {resp.status_code}")
            return None
        return resp.json()

    async def create_user(self, email: str, password: str, display_name: str = None) -> dict:
        self._ensure_initialized()
        try:
            user = await asyncio.to_thread(
                auth.create_user,
                email=email,
                password=password,
                display_name=display_name,
            )
            return {
                "uid": user.uid,
                "email": user.email,
            }
        except Exception as e:
            raise Exception(f"User creation failed: {e}")

    async def delete_user(self, uid: str):
        """Delete a user from Firebase Auth"""
        self._ensure_initialized()
        try:
            await asyncio.to_thread(auth.delete_user, uid)
        except Exception as e:
            raise Exception(f"User deletion failed: {e}")


firebase_auth = FirebaseAuth()
