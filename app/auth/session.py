"""
Session state as seen by the access gate.

A SessionState follows identity-provider events (sign-in, sign-out, token
refresh) and, while signed in, keeps the user's profile document live through
a SyncManager subscription. Gate decisions are therefore always made against
the latest pushed profile, and watchers are re-evaluated whenever it changes.
"""

from typing import Callable, Dict, List, Optional
import asyncio
import logging
import time

from .access_gate import Destination, GateOutcome, evaluate
from ..core.config import settings
from ..database.collections import COLLECTIONS
from ..models.records import Record

logger = logging.getLogger(__name__)


class SessionState:
    def __init__(self, sync_manager):
        self.sync = sync_manager
        self.resolved = False
        self.uid: Optional[str] = None
        self.email: Optional[str] = None
        self.profile: Optional[Record] = None
        self.profile_loaded = False
        self._profile_subscription = None
        self._profile_ready = asyncio.Event()
        self._watchers: List[Callable[[], None]] = []

    # ===== Identity provider events =====

    def begin_resolution(self):
        """Cold load or token refresh: nothing is decided until the provider answers."""
        self.resolved = False
        self._notify()

    def sign_in(self, uid: str, email: Optional[str] = None):
        subscription = self._profile_subscription
        if uid == self.uid and subscription is not None and subscription.active:
            self.resolved = True
            self.email = email or self.email
            self._notify()
            return

        if uid == self.uid and subscription is not None:
            logger.warning(f"Profile listener for {uid} was dropped, subscribing again")
        self._close_profile()
        self.uid = uid
        self.email = email
        self.resolved = True
        self._profile_subscription = self.sync.subscribe_document(
            COLLECTIONS['users'], uid, self._on_profile
        )
        self._notify()

    def sign_out(self):
        self._close_profile()
        self.uid = None
        self.email = None
        self.resolved = True
        self._notify()

    def close(self):
        self._close_profile()
        self._watchers.clear()

    def _close_profile(self):
        if self._profile_subscription is not None:
            self._profile_subscription()
            self._profile_subscription = None
        self.profile = None
        self.profile_loaded = False
        self._profile_ready.clear()

    def _on_profile(self, profile: Optional[Record]):
        self.profile = profile
        self.profile_loaded = True
        self._profile_ready.set()
        logger.info(f"Profile update for {self.uid}: status={getattr(profile, 'status', None)} role={getattr(profile, 'role', None)}")
        self._notify()

    async def wait_until_loaded(self, timeout: float = 5.0) -> bool:
        """Wait for the first profile snapshot after sign-in."""
        if self.profile_loaded:
            return True
        try:
            await asyncio.wait_for(self._profile_ready.wait(), timeout)
            return True
        except asyncio.TimeoutError:
            logger.warning(f"Profile for {self.uid} not loaded after {timeout}s")
            return False

    # ===== Gate =====

    def evaluate(self, destination: Destination) -> GateOutcome:
        return evaluate(self, destination)

    def watch(self, destination: Destination, on_outcome: Callable[[GateOutcome], None]) -> Callable[[], None]:
        """
        Evaluate ``destination`` now and again after every session or profile
        change. Returns a function that stops watching.
        """
        def reevaluate():
            on_outcome(self.evaluate(destination))

        self._watchers.append(reevaluate)
        reevaluate()

        def stop():
            if reevaluate in self._watchers:
                self._watchers.remove(reevaluate)
        return stop

    @property
    def watched(self) -> bool:
        """True while something (a live feed) is following this session."""
        return bool(self._watchers)

    def _notify(self):
        for watcher in list(self._watchers):
            try:
                watcher()
            except Exception as e:
                logger.error(f"Gate watcher for {self.uid} raised: {str(e)}")


class SessionRegistry:
    """
    One live SessionState per signed-in uid, owned by the application root.

    Each session holds a profile listener, so sessions are not kept forever:
    one that no request has touched for ``idle_ttl`` seconds is ended on the
    next lookup, unless a live feed is still watching it.
    """

    def __init__(self, sync_manager, idle_ttl: Optional[float] = None, clock: Callable[[], float] = time.monotonic):
        self.sync = sync_manager
        self.idle_ttl = settings.SESSION_IDLE_TTL_SECONDS if idle_ttl is None else idle_ttl
        self.clock = clock
        self._sessions: Dict[str, SessionState] = {}
        self._last_used: Dict[str, float] = {}

    def session_for(self, uid: str, email: Optional[str] = None) -> SessionState:
        self.evict_idle()
        session = self._sessions.get(uid)
        if session is None:
            session = SessionState(self.sync)
            self._sessions[uid] = session
        self._last_used[uid] = self.clock()
        session.sign_in(uid, email)
        return session

    def anonymous(self) -> SessionState:
        session = SessionState(self.sync)
        session.sign_out()
        return session

    def evict_idle(self) -> int:
        """End every idle, unwatched session. Returns how many were ended."""
        now = self.clock()
        expired = [
            uid for uid, last_used in self._last_used.items()
            if now - last_used > self.idle_ttl and not self._sessions[uid].watched
        ]
        for uid in expired:
            logger.info(f"Session for {uid} idle for over {self.idle_ttl}s, ending it")
            self.end(uid)
        return len(expired)

    def end(self, uid: str):
        self._last_used.pop(uid, None)
        session = self._sessions.pop(uid, None)
        if session is not None:
            session.sign_out()
            session.close()

    def close_all(self):
        for uid in list(self._sessions):
            self.end(uid)

    def __len__(self):
        return len(self._sessions)
