"""
Entitlement Query Service: the read side, fronted by a 30s TTL cache.

The service never grants access on failure: any fetch error produces
``has_active_access=False`` plus a displayable error. Admins short-circuit to
access without touching the store.

``EntitlementSession`` is the per-client holder of entitlement state (bound on
login, closed on sign-out or unmount). Results of fetches that were started
under an older binding are dropped instead of being applied.
"""
import itertools
import logging
import time
from collections import defaultdict
from dataclasses import dataclass
from typing import Awaitable, Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from app.core.errors import QueryFailure
from app.models.entitlement import ACCESS_STATUSES
from app.schemas.entitlement import EntitlementDetails
from app.services.cache import DEFAULT_MAXSIZE, TTLCache
from app.services.entitlement_store import read_entitlement

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 30.0

Fetcher = Callable[[str], Awaitable[EntitlementDetails | None]]


@dataclass(frozen=True)
class Identity:
    user_id: str
    is_admin: bool = False


@dataclass(frozen=True)
class EntitlementState:
    has_active_access: bool
    details: EntitlementDetails | None = None
    stale: bool = False
    error: str | None = None


NO_ACCESS = EntitlementState(has_active_access=False)
ADMIN_ACCESS = EntitlementState(has_active_access=True)


def state_from_details(details: EntitlementDetails | None) -> EntitlementState:
    if details is None:
        return NO_ACCESS
    return EntitlementState(
        has_active_access=details.subscription_status in ACCESS_STATUSES,
        details=details,
    )


def make_db_fetcher(session_factory: Callable[[], Session]) -> Fetcher:
    """Fetcher that reads the entitlement view in the threadpool."""

    def _read(user_id: str) -> EntitlementDetails | None:
        with session_factory() as db:
            return read_entitlement(db, user_id)

    async def fetch(user_id: str) -> EntitlementDetails | None:
        try:
            return await run_in_threadpool(_read, user_id)
        except SQLAlchemyError as e:
            raise QueryFailure(f"Entitlement read failed for {user_id}") from e

    return fetch


class EntitlementQueryService:
    def __init__(
        self,
        fetcher: Fetcher,
        *,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        maxsize: int = DEFAULT_MAXSIZE,
    ):
        self._fetcher = fetcher
        self._cache: TTLCache[EntitlementDetails | None] = TTLCache(ttl_seconds, clock, maxsize=maxsize)
        self._seq = itertools.count(1)
        self._issued = 0
        # fetch seqs still awaiting the store, per user
        self._inflight: dict[str, set[int]] = {}
        # highest fetch seq whose result is already in the cache, per user
        self._completed: dict[str, int] = {}
        # results from fetches issued at or before this seq must not be cached
        self._floor: dict[str, int] = {}
        self._global_floor = 0

    async def query(self, identity: Identity | None, *, force: bool = False) -> EntitlementState:
        if identity is None:
            return NO_ACCESS
        if identity.is_admin:
            return ADMIN_ACCESS

        key = identity.user_id
        if not force:
            entry = self._cache.get(key)
            if entry is not None:
                return state_from_details(entry.value)

        seq = next(self._seq)
        self._issued = seq
        self._inflight.setdefault(key, set()).add(seq)
        try:
            details = await self._fetcher(key)
        except Exception as e:
            # fail closed, whatever went wrong
            logger.warning("Entitlement query failed: %s", e, extra={"user_id": key})
            previous = self._cache.peek(key)
            return EntitlementState(
                has_active_access=False,
                details=previous.value if previous else None,
                stale=previous is not None,
                error=QueryFailure.public_message,
            )
        else:
            if self._accept(key, seq):
                self._cache.put(key, details)
                self._completed[key] = seq
                return state_from_details(details)

            # a newer fetch finished first; report what the cache holds now
            newer = self._cache.peek(key)
            return state_from_details(newer.value if newer else details)
        finally:
            self._settle(key, seq)

    def _accept(self, key: str, seq: int) -> bool:
        floor = max(self._floor.get(key, 0), self._global_floor)
        return seq > self._completed.get(key, 0) and seq > floor

    def _settle(self, key: str, seq: int) -> None:
        pending = self._inflight.get(key)
        if pending is None:
            return
        pending.discard(seq)
        if not pending:
            # every later fetch gets a higher seq, so the bookkeeping is moot
            del self._inflight[key]
            self._completed.pop(key, None)
            self._floor.pop(key, None)

    def invalidate(self, user_id: str | None = None) -> None:
        """Drop cached state; in-flight fetches issued before this call won't be cached."""
        if user_id is None:
            self._cache.invalidate()
            self._global_floor = self._issued
            self._completed.clear()
            self._floor.clear()
        else:
            self._cache.invalidate(user_id)
            self._completed.pop(user_id, None)
            if user_id in self._inflight:
                self._floor[user_id] = self._issued


class EntitlementSession:
    """Entitlement state for one client, with an explicit lifecycle."""

    def __init__(self, service: EntitlementQueryService):
        self._service = service
        self._identity: Identity | None = None
        self._generation = 0
        self._closed = False
        self._inflight: dict[int, int] = defaultdict(int)
        self.state: EntitlementState = NO_ACCESS

    @property
    def identity(self) -> Identity | None:
        return self._identity

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def loading(self) -> bool:
        return self._inflight.get(self._generation, 0) > 0

    def bind(self, identity: Identity | None) -> None:
        """Call whenever the authenticated identity changes."""
        if identity == self._identity and not self._closed:
            return
        self._identity = identity
        self._generation += 1
        self._closed = False
        self.state = NO_ACCESS

    async def refresh(self, *, force: bool = False) -> EntitlementState | None:
        """Fetch (or reuse cached) state. Returns None if the result was discarded."""
        if self._closed:
            return None
        generation = self._generation
        self._inflight[generation] += 1
        try:
            state = await self._service.query(self._identity, force=force)
        finally:
            self._inflight[generation] -= 1
            if not self._inflight[generation]:
                del self._inflight[generation]

        if self._closed or generation != self._generation:
            logger.debug("Discarding entitlement result for a superseded session")
            return None
        self.state = state
        return state

    def close(self) -> None:
        """Sign-out / unmount: forget state and ignore anything still in flight."""
        if self._identity is not None:
            self._service.invalidate(self._identity.user_id)
        self._identity = None
        self._closed = True
        self._generation += 1
        self.state = NO_ACCESS
