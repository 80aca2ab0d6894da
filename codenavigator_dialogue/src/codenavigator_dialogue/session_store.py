"""
Session Store for State Persistence

Two-tier storage for conversation sessions:
- an optional durable primary backend (Redis or Supabase), and
- an in-process, lock-guarded local cache that is always written and serves
  reads when the primary is absent or failing.

Sessions expire a fixed TTL after their last interaction.
"""

import copy
import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from codenavigator_dialogue.errors import StoreFailure
from codenavigator_dialogue.session_state import Session

logger = logging.getLogger(__name__)

STATE_KEY_PREFIX = "conversation:state:"
STATE_EXPIRATION = timedelta(hours=2)


def state_key(session_id: str) -> str:
    return f"{STATE_KEY_PREFIX}{session_id}"


class SessionBackend(ABC):
    """Durable key/value tier holding serialized sessions with a TTL."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    async def set(self, key: str, value: str, ttl: timedelta) -> None:
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        ...

    async def purge_expired(self) -> int:
        """Remove expired entries; backends with native expiry do nothing."""
        return 0


class RedisSessionBackend(SessionBackend):
    """Primary tier on Redis; expiry is delegated to Redis key TTLs."""

    def __init__(self, redis_client):
        self.redis = redis_client

    @classmethod
    def from_url(cls, url: str) -> "RedisSessionBackend":
        import redis.asyncio as redis
        return cls(redis.from_url(url, decode_responses=True))

    async def get(self, key: str) -> Optional[str]:
        value = await self.redis.get(key)
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        return value

    async def set(self, key: str, value: str, ttl: timedelta) -> None:
        await self.redis.set(key, value, ex=int(ttl.total_seconds()))

    async def delete(self, key: str) -> None:
        await self.redis.delete(key)


class SupabaseSessionBackend(SessionBackend):
    """
    Primary tier on a Supabase table.

    Expected columns: ``key`` (text, primary key), ``value`` (text),
    ``expires_at`` (timestamptz).
    """

    def __init__(self, supabase_client, table: str = "conversation_states"):
        self.supabase = supabase_client
        self.table = table

    @classmethod
    def from_credentials(cls, url: str, key: str, table: str = "conversation_states") -> "SupabaseSessionBackend":
        from supabase import create_client
        return cls(create_client(url, key), table=table)

    async def get(self, key: str) -> Optional[str]:
        result = self.supabase.table(self.table).select('value, expires_at').eq('key', key).execute()

        if not result.data:
            return None

        row = result.data[0]
        expires_at = row.get("expires_at")
        if expires_at and datetime.fromisoformat(expires_at).replace(tzinfo=None) < datetime.now():
            return None
        return row.get("value")

    async def set(self, key: str, value: str, ttl: timedelta) -> None:
        self.supabase.table(self.table).upsert({
            "key": key,
            "value": value,
            "expires_at": (datetime.now() + ttl).isoformat(),
        }).execute()

    async def delete(self, key: str) -> None:
        self.supabase.table(self.table).delete().eq('key', key).execute()

    async def purge_expired(self) -> int:
        result = self.supabase.table(self.table).delete().lt('expires_at', datetime.now().isoformat()).execute()
        return len(result.data or [])


def create_primary_backend(settings) -> Optional[SessionBackend]:
    """Pick the durable tier from settings: Redis, then Supabase, else none."""
    if settings.redis_url:
        logger.info("💾 [SessionStore] Using Redis primary tier")
        return RedisSessionBackend.from_url(settings.redis_url)
    if settings.supabase_url and settings.supabase_service_key:
        logger.info("💾 [SessionStore] Using Supabase primary tier")
        return SupabaseSessionBackend.from_credentials(
            settings.supabase_url, settings.supabase_service_key, table=settings.session_table
        )
    logger.info("💾 [SessionStore] No primary tier configured, using local cache only")
    return None


class SessionStore:
    """
    Stores Session objects keyed by session id.

    The local cache holds private copies: callers always receive a copy and
    mutating it has no effect until it is saved again.
    """

    def __init__(self, primary: Optional[SessionBackend] = None, ttl: timedelta = STATE_EXPIRATION):
        """
        Initialize SessionStore.

        Args:
            primary: Durable backend (optional)
            ttl: Inactivity period after which a session expires
        """
        self.primary = primary
        self.ttl = ttl
        self._local_cache: Dict[str, Session] = {}
        self._lock = threading.RLock()

    async def get_state(self, session_id: str) -> Optional[Session]:
        """
        Load a session.

        Args:
            session_id: Session identifier

        Returns:
            Session copy, or None if missing or expired

        Raises:
            StoreFailure: if the primary tier fails and the local cache cannot serve the read
        """
        logger.debug(f"💾 [SessionStore] Getting state for session: {session_id}")
        primary_error: Optional[Exception] = None

        if self.primary is not None:
            try:
                raw = await self.primary.get(state_key(session_id))
                if raw:
                    session = Session.from_json(raw)
                    if not session.is_expired(self.ttl):
                        local = self._peek_local(session_id)
                        if local is not None and self._not_older(local, session):
                            # A primary write may have failed after this copy was stored
                            return local
                        self._cache_put(session)
                        return session
            except Exception as e:
                primary_error = e
                logger.warning(f"⚠️ [SessionStore] Primary read failed for {session_id}, using local cache: {e}")

        try:
            return self._cache_get(session_id)
        except Exception as e:
            if primary_error is not None or self.primary is None:
                raise StoreFailure(f"No storage tier could load session {session_id}") from e
            logger.warning(f"⚠️ [SessionStore] Local cache read failed for {session_id}: {e}")
            return None

    async def save_state(self, session: Session) -> bool:
        """
        Save a session (idempotent overwrite).

        The local cache is always written; a primary failure is logged and
        reported through the return value.

        Returns:
            True if the durable tier stored it (or none is configured), False otherwise

        Raises:
            StoreFailure: if every configured tier failed
        """
        logger.debug(f"💾 [SessionStore] Saving state for session: {session.session_id}")
        primary_ok = self.primary is None

        if self.primary is not None:
            try:
                await self.primary.set(state_key(session.session_id), session.to_json(), self.ttl)
                primary_ok = True
            except Exception as e:
                logger.warning(f"⚠️ [SessionStore] Primary write failed for {session.session_id}: {e}")

        try:
            self._cache_put(session)
        except Exception as e:
            if not primary_ok or self.primary is None:
                raise StoreFailure(f"Failed to save session {session.session_id}") from e
            logger.warning(f"⚠️ [SessionStore] Local cache write failed for {session.session_id}: {e}")

        return primary_ok

    async def delete_state(self, session_id: str) -> bool:
        """
        Delete a session from both tiers.

        Returns:
            True if the local cache held the session, False otherwise
        """
        logger.debug(f"💾 [SessionStore] Deleting state for session: {session_id}")

        if self.primary is not None:
            try:
                await self.primary.delete(state_key(session_id))
            except Exception as e:
                logger.warning(f"⚠️ [SessionStore] Primary delete failed for {session_id}: {e}")

        with self._lock:
            return self._local_cache.pop(session_id, None) is not None

    async def clear_expired_states(self) -> int:
        """Sweep expired sessions; meant to be called periodically. Returns local evictions."""
        now = datetime.now()
        with self._lock:
            expired = [sid for sid, s in self._local_cache.items() if s.is_expired(self.ttl, now)]
            for sid in expired:
                del self._local_cache[sid]

        if self.primary is not None:
            try:
                purged = await self.primary.purge_expired()
                if purged:
                    logger.debug(f"💾 [SessionStore] Purged {purged} expired sessions from primary tier")
            except Exception as e:
                logger.warning(f"⚠️ [SessionStore] Primary purge failed: {e}")

        if expired:
            logger.info(f"💾 [SessionStore] Cleared {len(expired)} expired sessions")
        return len(expired)

    def get_active_session_count(self) -> int:
        now = datetime.now()
        with self._lock:
            return sum(1 for s in self._local_cache.values() if not s.is_expired(self.ttl, now))

    async def update_state_context(self, session_id: str, key: str, value: Any) -> bool:
        """Set one context slot on a stored session and save it."""
        session = await self.get_state(session_id)
        if session is None:
            return False
        session.context[key] = value
        await self.save_state(session)
        return True

    def _peek_local(self, session_id: str) -> Optional[Session]:
        try:
            return self._cache_get(session_id)
        except Exception as e:
            logger.warning(f"⚠️ [SessionStore] Local cache read failed for {session_id}: {e}")
            return None

    @staticmethod
    def _not_older(local: Session, remote: Session) -> bool:
        """True when the local copy has seen at least as many turns as the primary one."""
        return (local.message_count, local.last_interaction) >= (remote.message_count, remote.last_interaction)

    def _cache_get(self, session_id: str) -> Optional[Session]:
        with self._lock:
            session = self._local_cache.get(session_id)
            if session is None:
                return None
            if session.is_expired(self.ttl):
                del self._local_cache[session_id]
                logger.debug(f"💾 [SessionStore] Evicted expired session: {session_id}")
                return None
            return copy.deepcopy(session)

    def _cache_put(self, session: Session):
        snapshot = copy.deepcopy(session)
        with self._lock:
            self._local_cache[session.session_id] = snapshot
