import pytest

from gebrai.app import GeoGebraApp
from gebrai.config import GeoGebraServerConfig, PoolConfig, SessionTimeouts
from gebrai.pool import InstancePool
from tests.fakes import FakeClock, FakeSessionFactory


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def factory(clock) -> FakeSessionFactory:
    return FakeSessionFactory(clock)


@pytest.fixture
def server_config(tmp_path) -> GeoGebraServerConfig:
    return GeoGebraServerConfig(
        export_dir=tmp_path / "exports",
        log_dir=tmp_path / "logs",
        ffmpeg_path="gebrai-missing-ffmpeg",
        pool=PoolConfig(max_instances=3, max_idle_time=600, instance_timeout=300, cleanup_interval=60, headless=True),
        timeouts=SessionTimeouts(retry_attempts=3, retry_delay=0),
    )


@pytest.fixture
def pool(server_config, factory, clock) -> InstancePool:
    return InstancePool(server_config.pool, factory, server_config.timeouts, clock=clock)


@pytest.fixture
def geogebra_app(server_config, pool) -> GeoGebraApp:
    return GeoGebraApp(server_config, pool=pool)
