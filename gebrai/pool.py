import asyncio
import signal
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Dict, List, Optional

from loguru import logger
from pydantic import BaseModel, ConfigDict

from gebrai.config import PoolConfig, SessionTimeouts
from gebrai.data_classes import GeoGebraConfig, PoolStats
from gebrai.errors import PoolClosedError, PoolExhaustedError
from gebrai.interfaces.session import IGeoGebraSession
from gebrai.performance import PerformanceMonitor

SessionFactory = Callable[[GeoGebraConfig], IGeoGebraSession]


class PoolEntry(BaseModel):
    """Pool bookkeeping attached to one live session."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    session: IGeoGebraSession
    created_at: float
    last_used: float
    usage_count: int = 0
    active: bool = False
    is_default: bool = False

    def idle_time(self, now: float) -> float:
        return now - max(self.last_used, self.session.last_activity)

    def describe(self, now: float) -> Dict[str, object]:
        return {
            "id": self.session.id,
            "app_name": self.session.config.app_name,
            "is_default": self.is_default,
            "active": self.active,
            "usage_count": self.usage_count,
            "age": round(now - self.created_at, 3),
            "idle": round(self.idle_time(now), 3),
        }


class InstancePool:
    """
    Owns every GeoGebra session of the process.

    The default instance is created lazily on first use and shared by the tool layer.
    Creation runs under a lock, so callers racing for a missing instance wait for the
    single initialization instead of starting their own. Additional instances can be
    leased for work that must not disturb the default construction.
    """

    def __init__(
            self,
            config: Optional[PoolConfig] = None,
            session_factory: Optional[SessionFactory] = None,
            timeouts: Optional[SessionTimeouts] = None,
            monitor: Optional[PerformanceMonitor] = None,
            clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config or PoolConfig()
        self.timeouts = timeouts or SessionTimeouts()
        self.monitor = monitor or PerformanceMonitor()
        self._clock = clock
        self._session_factory = session_factory or self._browser_session
        self._entries: Dict[str, PoolEntry] = {}
        self._default_id: Optional[str] = None
        self._lock = asyncio.Lock()
        self._sweeper: Optional[asyncio.Task] = None
        self._closed = False

    def _browser_session(self, config: GeoGebraConfig) -> IGeoGebraSession:
        from gebrai.session import GeoGebraSession
        return GeoGebraSession(config=config, timeouts=self.timeouts, clock=self._clock)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._entries

    @property
    def closed(self) -> bool:
        return self._closed

    def _check_open(self) -> None:
        if self._closed:
            raise PoolClosedError()

    @property
    def default_session(self) -> Optional[IGeoGebraSession]:
        entry = self._entries.get(self._default_id) if self._default_id else None
        return entry.session if entry else None

    async def _create_entry(self, app_name: str, is_default: bool = False) -> PoolEntry:
        """Creates and initializes a session. Must be called with the lock held."""
        if len(self._entries) >= self.config.max_instances:
            await self._evict_for_capacity()
        session = self._session_factory(GeoGebraConfig(app_name=app_name))
        async with self.monitor.measure("geogebra_instance_init"):
            await session.initialize(headless=self.config.headless)
        now = self._clock()
        entry = PoolEntry(session=session, created_at=now, last_used=now, is_default=is_default)
        self._entries[session.id] = entry
        logger.info("Pooled GeoGebra instance {id} created", id=session.id, default=is_default, total=len(self._entries))
        return entry

    async def _evict_for_capacity(self) -> None:
        candidates = [e for e in self._entries.values() if not e.active and not e.is_default]
        if not candidates:
            raise PoolExhaustedError(
                f"All {self.config.max_instances} GeoGebra instances are in use",
                {"max_instances": self.config.max_instances},
            )
        oldest = min(candidates, key=lambda e: e.last_used)
        logger.info("Evicting least recently used instance {id} to make room", id=oldest.session.id)
        await self._discard(oldest)

    async def _discard(self, entry: PoolEntry) -> None:
        self._entries.pop(entry.session.id, None)
        if entry.session.id == self._default_id:
            self._default_id = None
        try:
            await entry.session.cleanup()
        except Exception as e:
            logger.warning("Cleanup of instance {id} failed: {error}", id=entry.session.id, error=str(e))

    async def get_default_instance(self) -> IGeoGebraSession:
        """
        Returns the shared session. An idle warmed instance is adopted when there is no
        default yet; a new one is created and initialized only when none is available.
        """
        self._check_open()
        entry = self._entries.get(self._default_id) if self._default_id else None
        if entry is not None and await entry.session.is_ready():
            entry.last_used = self._clock()
            entry.usage_count += 1
            return entry.session
        async with self._lock:
            self._check_open()
            entry = self._entries.get(self._default_id) if self._default_id else None
            if entry is not None:
                if await entry.session.is_ready():
                    entry.last_used = self._clock()
                    entry.usage_count += 1
                    return entry.session
                logger.warning("Default instance {id} is no longer ready, replacing it", id=entry.session.id)
                await self._discard(entry)
            entry = await self._adopt_warm_entry()
            if entry is None:
                entry = await self._create_entry(self.config.default_app_name, is_default=True)
            self._default_id = entry.session.id
            entry.last_used = self._clock()
            entry.usage_count += 1
            return entry.session

    async def _adopt_warm_entry(self) -> Optional[PoolEntry]:
        """Promotes an idle, ready instance of the default app. Must be called with the lock held."""
        for entry in self._entries.values():
            if entry.active or entry.is_default or entry.session.config.app_name != self.config.default_app_name:
                continue
            if await entry.session.is_ready():
                entry.is_default = True
                logger.info("Adopted warmed instance {id} as default", id=entry.session.id)
                return entry
        return None

    async def acquire(self, app_name: Optional[str] = None) -> IGeoGebraSession:
        """Leases a non-default session exclusively until `release` is called."""
        self._check_open()
        app_name = app_name or self.config.default_app_name
        async with self._lock:
            self._check_open()
            for entry in self._entries.values():
                if entry.active or entry.is_default or entry.session.config.app_name != app_name:
                    continue
                if not await entry.session.is_ready():
                    continue
                entry.active = True
                entry.usage_count += 1
                entry.last_used = self._clock()
                return entry.session
            entry = await self._create_entry(app_name)
            entry.active = True
            entry.usage_count += 1
            return entry.session

    async def release(self, session: IGeoGebraSession) -> None:
        """Returns a leased session and resets its construction for the next user."""
        entry = self._entries.get(session.id)
        if entry is None:
            return
        entry.active = False
        entry.last_used = self._clock()
        try:
            await session.new_construction()
        except Exception as e:
            logger.warning("Could not reset construction of {id}: {error}", id=session.id, error=str(e))

    @asynccontextmanager
    async def lease(self, app_name: Optional[str] = None) -> AsyncIterator[IGeoGebraSession]:
        session = await self.acquire(app_name)
        try:
            yield session
        finally:
            await self.release(session)

    async def sweep(self, now: Optional[float] = None) -> List[str]:
        """
        Evicts inactive sessions idle longer than `max_idle_time`.
        Leased-then-released instances are also evicted once older than `instance_timeout`.
        Returns the ids of evicted sessions.
        """
        evicted: List[str] = []
        async with self._lock:
            now = self._clock() if now is None else now
            for entry in list(self._entries.values()):
                if entry.active:
                    continue
                expired = not entry.is_default and now - entry.created_at > self.config.instance_timeout
                if entry.idle_time(now) > self.config.max_idle_time or expired:
                    evicted.append(entry.session.id)
                    await self._discard(entry)
        if evicted:
            logger.info("Idle sweep evicted {count} instance(s)", count=len(evicted), ids=evicted)
        return evicted

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.cleanup_interval)
            try:
                await self.sweep()
            except Exception as e:
                logger.exception("Idle sweep failed: {error}", error=str(e))

    def start_sweeper(self) -> None:
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.get_running_loop().create_task(self._sweep_loop())

    async def stop_sweeper(self) -> None:
        sweeper, self._sweeper = self._sweeper, None
        if sweeper is None:
            return
        sweeper.cancel()
        try:
            await sweeper
        except asyncio.CancelledError:
            pass

    async def warm_up(self, count: int = 1) -> int:
        """Pre-creates idle instances until the pool holds `count` of them. Returns how many were created."""
        count = max(0, min(count, self.config.max_instances))
        created = 0
        async with self._lock:
            self._check_open()
            while len(self._entries) < count:
                await self._create_entry(self.config.default_app_name)
                created += 1
        logger.info("Pool warmed up", created=created, total=len(self._entries))
        return created

    def stats(self) -> PoolStats:
        now = self._clock()
        entries = list(self._entries.values())
        if not entries:
            return PoolStats()
        active = sum(1 for e in entries if e.active)
        return PoolStats(
            total_instances=len(entries),
            active_instances=active,
            idle_instances=len(entries) - active,
            average_usage=sum(e.usage_count for e in entries) / len(entries),
            oldest_instance_age=max(now - e.created_at for e in entries),
            memory_estimate=len(entries) * self.config.memory_per_instance,
        )

    def describe(self) -> List[Dict[str, object]]:
        now = self._clock()
        return [entry.describe(now) for entry in self._entries.values()]

    async def clear(self) -> List[str]:
        """Tears down every session but keeps the pool usable. Returns the ids of closed sessions."""
        async with self._lock:
            entries = list(self._entries.values())
            for entry in entries:
                await self._discard(entry)
        return [entry.session.id for entry in entries]

    async def cleanup(self) -> None:
        """Stops the sweeper, tears down every session and closes the pool. Safe to call repeatedly."""
        self._closed = True
        await self.stop_sweeper()
        closed = await self.clear()
        if closed:
            logger.info("Instance pool cleaned up", closed=len(closed))

    def install_signal_handlers(self, task: asyncio.Task, loop: Optional[asyncio.AbstractEventLoop] = None) -> List[signal.Signals]:
        """
        Cancels `task` on SIGINT and SIGTERM so its own shutdown path releases the instances.
        Returns the signals that were hooked; none where the loop does not support it.
        """
        loop = loop or asyncio.get_running_loop()
        installed: List[signal.Signals] = []
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self._on_signal, sig, task)
            except (NotImplementedError, RuntimeError):
                logger.debug("Signal handlers are not supported on this platform")
                break
            installed.append(sig)
        return installed

    @staticmethod
    def remove_signal_handlers(installed: List[signal.Signals], loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        loop = loop or asyncio.get_running_loop()
        for sig in installed:
            loop.remove_signal_handler(sig)

    def _on_signal(self, sig: signal.Signals, task: asyncio.Task) -> None:
        logger.info("Received {signal}, shutting down", signal=sig.name)
        task.cancel()
