"""
Session cache for the Session Authentication service.

The cache is the single authority on whether a token is still honored: an
entry exists under a token string if and only if that token is live.
Deleting the entry is how a token is revoked. Entries carry a TTL matching
the token lifetime, and early eviction simply makes the token behave as
revoked.

Two backends are provided: an in-process store for single-node deployments
and tests, and a Redis store for shared deployments.
"""
import abc
import datetime
import logging
import threading
from typing import Dict, Optional, Set, Tuple, Union

from pydantic import ValidationError
from redis import Redis

from session_auth.config.settings import Settings
from session_auth.models import CachedSession
from session_auth.token import Clock, utc_now

# Configure logging
logger = logging.getLogger(__name__)

TTL = Union[datetime.timedelta, int]


def ttl_seconds(ttl: TTL) -> int:
    """Normalize a TTL to whole seconds, never less than one."""
    if isinstance(ttl, datetime.timedelta):
        ttl = int(ttl.total_seconds())
    return max(1, int(ttl))


class SessionCache(abc.ABC):
    """
    Registry of live sessions keyed by the full token string.

    Besides the token entries the cache keeps, per username, the effective
    salt needed to verify that user's tokens and the set of that user's
    live token strings.
    """

    @abc.abstractmethod
    def get(self, token: str) -> Optional[CachedSession]:
        """Return the session stored under a token, or None."""

    @abc.abstractmethod
    def put(self, token: str, session: CachedSession, ttl: TTL) -> None:
        """Store a session under a token, replacing any previous entry."""

    @abc.abstractmethod
    def delete(self, token: str) -> None:
        """Remove the entry for a token. Deleting an absent token is a no-op."""

    @abc.abstractmethod
    def rotate(self, old_token: str, new_token: str, session: CachedSession, ttl: TTL) -> bool:
        """
        Atomically replace the entry for old_token with one for new_token.

        Returns:
            True if the swap happened, False if old_token was no longer
            present, in which case nothing is changed.
        """

    @abc.abstractmethod
    def put_salt(self, username: str, effective_salt: str, ttl: TTL) -> None:
        """Record the effective salt for a user's tokens."""

    @abc.abstractmethod
    def get_salt(self, username: str) -> Optional[str]:
        """Return the effective salt recorded for a user, or None."""

    @abc.abstractmethod
    def tokens_for(self, username: str) -> Set[str]:
        """Return the live token strings of a user."""

    def exists(self, token: str) -> bool:
        return self.get(token) is not None

    def revoke_all(self, username: str) -> int:
        """
        Revoke every live session of a user.

        The salt record is kept until it lapses so the revoked tokens still
        verify and are reported as invalidated rather than unknown.

        Args:
            username: User whose sessions to revoke.

        Returns:
            Number of sessions revoked.
        """
        tokens = self.tokens_for(username)
        for token in tokens:
            self.delete(token)
        return len(tokens)


class MemorySessionCache(SessionCache):
    """
    In-process session cache.

    Expiry is evaluated lazily against the injected clock. Writes also sweep
    lapsed entries, at most once per ``sweep_interval``, so tokens that are
    never presented again do not pile up; ``purge_expired`` sweeps on demand.
    """

    SWEEP_INTERVAL = datetime.timedelta(seconds=60)

    def __init__(self, clock: Optional[Clock] = None, sweep_interval: Optional[datetime.timedelta] = None):
        self.clock = clock or utc_now
        self.sweep_interval = sweep_interval if sweep_interval is not None else self.SWEEP_INTERVAL
        self._next_sweep: Optional[datetime.datetime] = None
        self._lock = threading.RLock()
        self._sessions: Dict[str, Tuple[CachedSession, datetime.datetime]] = {}
        self._salts: Dict[str, Tuple[str, datetime.datetime]] = {}
        self._user_tokens: Dict[str, Set[str]] = {}

    def _deadline(self, ttl: TTL) -> datetime.datetime:
        return self.clock() + datetime.timedelta(seconds=ttl_seconds(ttl))

    def _unindex(self, username: str, token: str) -> None:
        tokens = self._user_tokens.get(username)
        if tokens is None:
            return
        tokens.discard(token)
        if not tokens:
            del self._user_tokens[username]

    def _sweep_if_due(self) -> None:
        now = self.clock()
        if self._next_sweep is not None and now < self._next_sweep:
            return
        self._next_sweep = now + self.sweep_interval
        self.purge_expired()

    def session_count(self) -> int:
        """Number of token entries currently held, lapsed or not."""
        with self._lock:
            return len(self._sessions)

    def get(self, token: str) -> Optional[CachedSession]:
        if not token:
            return None
        with self._lock:
            entry = self._sessions.get(token)
            if entry is None:
                return None
            session, deadline = entry
            if deadline <= self.clock():
                del self._sessions[token]
                self._unindex(session.username, token)
                return None
            return session

    def put(self, token: str, session: CachedSession, ttl: TTL) -> None:
        with self._lock:
            self._sweep_if_due()
            previous = self._sessions.get(token)
            if previous is not None:
                self._unindex(previous[0].username, token)
            self._sessions[token] = (session, self._deadline(ttl))
            self._user_tokens.setdefault(session.username, set()).add(token)

    def delete(self, token: str) -> None:
        with self._lock:
            entry = self._sessions.pop(token, None)
            if entry is not None:
                self._unindex(entry[0].username, token)

    def rotate(self, old_token: str, new_token: str, session: CachedSession, ttl: TTL) -> bool:
        with self._lock:
            if self.get(old_token) is None:
                return False
            self.delete(old_token)
            self.put(new_token, session, ttl)
            return True

    def put_salt(self, username: str, effective_salt: str, ttl: TTL) -> None:
        with self._lock:
            self._sweep_if_due()
            self._salts[username] = (effective_salt, self._deadline(ttl))

    def get_salt(self, username: str) -> Optional[str]:
        with self._lock:
            entry = self._salts.get(username)
            if entry is None:
                return None
            salt, deadline = entry
            if deadline <= self.clock():
                del self._salts[username]
                return None
            return salt

    def tokens_for(self, username: str) -> Set[str]:
        with self._lock:
            return {token for token in list(self._user_tokens.get(username, ())) if self.exists(token)}

    def purge_expired(self) -> int:
        """
        Remove every lapsed entry.

        Returns:
            Number of token entries removed.
        """
        now = self.clock()
        removed = 0
        with self._lock:
            for token, (session, deadline) in list(self._sessions.items()):
                if deadline <= now:
                    del self._sessions[token]
                    self._unindex(session.username, token)
                    removed += 1
            for username, (_, deadline) in list(self._salts.items()):
                if deadline <= now:
                    del self._salts[username]
        if removed:
            logger.debug(f"Purged {removed} expired sessions")
        return removed


class RedisSessionCache(SessionCache):
    """Session cache stored in Redis with native key expiry."""

    TOKEN_KEY = "login:token:{}"
    SALT_KEY = "login:salt:{}"
    USER_TOKENS_KEY = "login:user:token:{}"

    # Atomic compare-and-swap: only rotates while the old token is still live
    _ROTATE_SCRIPT = """
local old_key = KEYS[1]
local new_key = KEYS[2]
local user_key = KEYS[3]
local payload = ARGV[1]
local ttl = tonumber(ARGV[2])
local old_token = ARGV[3]
local new_token = ARGV[4]

if redis.call('EXISTS', old_key) == 0 then
  return 0
end

redis.call('DEL', old_key)
redis.call('SET', new_key, payload, 'EX', ttl)
redis.call('SREM', user_key, old_token)
redis.call('SADD', user_key, new_token)
redis.call('EXPIRE', user_key, ttl)
return 1
"""

    def __init__(self, client: Redis):
        """
        Initialize the cache.

        Args:
            client: Redis client created with ``decode_responses=True``.
        """
        self.client = client
        # Register rotation script for atomic token swaps
        self._rotate_script = self.client.register_script(self._ROTATE_SCRIPT)

    @classmethod
    def from_url(cls, redis_url: str, socket_timeout: float = 5.0) -> "RedisSessionCache":
        client = Redis.from_url(
            redis_url,
            decode_responses=True,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
        )
        return cls(client)

    def verify_connection(self) -> None:
        """Assert Redis connectivity before serving requests."""
        self.client.ping()

    def get(self, token: str) -> Optional[CachedSession]:
        if not token:
            return None
        key = self.TOKEN_KEY.format(token)
        raw = self.client.get(key)
        if raw is None:
            return None
        try:
            return CachedSession.model_validate_json(raw)
        except ValidationError as e:
            # An unreadable entry cannot vouch for its token
            logger.error(f"Discarding corrupt session entry: {str(e)}")
            self.client.delete(key)
            return None

    def put(self, token: str, session: CachedSession, ttl: TTL) -> None:
        seconds = ttl_seconds(ttl)
        user_key = self.USER_TOKENS_KEY.format(session.username)
        pipe = self.client.pipeline(transaction=True)
        pipe.set(self.TOKEN_KEY.format(token), session.model_dump_json(), ex=seconds)
        pipe.sadd(user_key, token)
        pipe.expire(user_key, seconds)
        pipe.execute()

    def delete(self, token: str) -> None:
        session = self.get(token)
        pipe = self.client.pipeline(transaction=True)
        pipe.delete(self.TOKEN_KEY.format(token))
        if session is not None:
            pipe.srem(self.USER_TOKENS_KEY.format(session.username), token)
        pipe.execute()

    def rotate(self, old_token: str, new_token: str, session: CachedSession, ttl: TTL) -> bool:
        result = self._rotate_script(
            keys=[
                self.TOKEN_KEY.format(old_token),
                self.TOKEN_KEY.format(new_token),
                self.USER_TOKENS_KEY.format(session.username),
            ],
            args=[session.model_dump_json(), ttl_seconds(ttl), old_token, new_token],
        )
        return bool(int(result))

    def put_salt(self, username: str, effective_salt: str, ttl: TTL) -> None:
        self.client.set(self.SALT_KEY.format(username), effective_salt, ex=ttl_seconds(ttl))

    def get_salt(self, username: str) -> Optional[str]:
        return self.client.get(self.SALT_KEY.format(username))

    def tokens_for(self, username: str) -> Set[str]:
        members = self.client.smembers(self.USER_TOKENS_KEY.format(username))
        return {token for token in members if self.exists(token)}

    def revoke_all(self, username: str) -> int:
        user_key = self.USER_TOKENS_KEY.format(username)
        tokens = self.client.smembers(user_key)
        pipe = self.client.pipeline(transaction=True)
        for token in tokens:
            pipe.delete(self.TOKEN_KEY.format(token))
        pipe.delete(user_key)
        results = pipe.execute()
        return sum(int(deleted) for deleted in results[:len(tokens)])


# PUBLIC_INTERFACE
def create_session_cache(source: Settings, clock: Optional[Clock] = None) -> SessionCache:
    """
    Build the session cache selected by the settings.

    Args:
        source: Application settings; ``REDIS_URL`` selects the Redis backend.
        clock: Clock for the in-memory backend.

    Returns:
        A session cache instance.
    """
    if source.REDIS_URL:
        logger.info("Using Redis session cache")
        return RedisSessionCache.from_url(source.REDIS_URL, socket_timeout=source.REDIS_SOCKET_TIMEOUT)
    logger.info("Using in-memory session cache")
    return MemorySessionCache(clock)
