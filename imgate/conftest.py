import pytest

from imgate.config import Config
from imgate.ratelimit.memory import MemoryCounterStore
from imgate.storage.memory import InMemoryBackend


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def fs() -> InMemoryBackend:
    return InMemoryBackend()


@pytest.fixture
def counters() -> MemoryCounterStore:
    return MemoryCounterStore()


@pytest.fixture
def config() -> Config:
    return Config(
        auth_token="secret",
        public_base_url="https://img.example.com",
        rate_limit_max_requests=3,
        global_rate_limit_max_requests=0,
    )
