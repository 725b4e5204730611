from typing import Optional

from loguru import logger

from gebrai.animation import AnimationConverter
from gebrai.config import GeoGebraServerConfig
from gebrai.performance import PerformanceMonitor
from gebrai.pool import InstancePool, SessionFactory
from gebrai.tools import AnimationTools, CasTools, GeoGebraTools, PerformanceTools, ToolRegistry, UtilityTools


class GeoGebraApp:
    """
    Wires the pool, the tool groups and the registry together.

    One instance is created at process start and handed to whichever server front end runs;
    nothing here is module level state.
    """

    def __init__(
            self,
            config: Optional[GeoGebraServerConfig] = None,
            session_factory: Optional[SessionFactory] = None,
            converter: Optional[AnimationConverter] = None,
            pool: Optional[InstancePool] = None,
    ):
        self.config = config or GeoGebraServerConfig()
        self.monitor = pool.monitor if pool is not None else PerformanceMonitor()
        self.pool = pool if pool is not None else InstancePool(
            self.config.pool, session_factory, self.config.timeouts, self.monitor
        )
        self.converter = converter or AnimationConverter(self.config.ffmpeg_path)
        self.geogebra = GeoGebraTools(self.pool, self.config.timeouts)
        self.animation = AnimationTools(self.pool, self.config.export_dir, self.converter, self.config.timeouts)
        self.registry = ToolRegistry(monitor=self.monitor)
        self.registry.register_many(UtilityTools(lambda: self.registry.tool_count).handlers())
        self.registry.register_many(self.geogebra.handlers())
        self.registry.register_many(CasTools(self.pool, self.config.timeouts).handlers())
        self.registry.register_many(self.animation.handlers())
        self.registry.register_many(PerformanceTools(self.pool, self.monitor).handlers())

    async def start(self) -> None:
        self.pool.start_sweeper()
        logger.info("gebrai started with {count} tools", count=self.registry.tool_count)

    async def shutdown(self) -> None:
        await self.pool.cleanup()
        logger.info("gebrai stopped")
