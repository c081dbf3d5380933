import asyncio
import inspect
import os
import sys
import tempfile
from pathlib import Path

# Configure the environment before any application module reads settings
_test_tmp_dir = tempfile.mkdtemp(prefix="readiness_auth_test_")
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_test_tmp_dir}/test.db")
os.environ.setdefault("JWT_SECRET", "test-secret-key-for-testing-only-do-not-use-in-production")
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("USE_MEMORY_STORE", "true")
# Cheap Argon2 parameters keep the suite fast
os.environ.setdefault("ARGON2_MEMORY_COST", "1024")
os.environ.setdefault("ARGON2_TIME_COST", "1")

import pytest  # noqa: E402

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from readiness_auth.adapters.configuration.config import settings as app_settings  # noqa: E402
from readiness_auth.adapters.outbound.cache.memory_store import InMemoryKeyValueStore  # noqa: E402
from readiness_auth.adapters.outbound.persistence.database import create_tables, drop_tables  # noqa: E402
from readiness_auth.adapters.outbound.security.password_security import PasswordSecurityService  # noqa: E402
from readiness_auth.adapters.outbound.security.token_registry import TokenRegistry  # noqa: E402
from readiness_auth.adapters.outbound.security.token_service import TokenService  # noqa: E402

STRONG_PASSWORD = "Str0ng!Pass123"


class FakeClock:
    """Manually advanced clock for stores and limiters."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def settings():
    return app_settings


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def kv_store():
    return InMemoryKeyValueStore()


@pytest.fixture
def registry(kv_store):
    return TokenRegistry(kv_store)


@pytest.fixture
def token_service(registry, settings):
    return TokenService(registry, settings)


@pytest.fixture
def password_security(settings):
    return PasswordSecurityService(settings)


@pytest.fixture
def database():
    """Fresh tables for each test that touches the database."""
    asyncio.run(drop_tables())
    asyncio.run(create_tables())
    yield
    asyncio.run(drop_tables())


def pytest_pyfunc_call(pyfuncitem):
    if inspect.iscoroutinefunction(pyfuncitem.obj):
        call_kwargs = {
            name: pyfuncitem.funcargs[name]
            for name in pyfuncitem._fixtureinfo.argnames
            if name in pyfuncitem.funcargs
        }
        asyncio.run(pyfuncitem.obj(**call_kwargs))
        return True
    return None


def pytest_configure(config):
    config.addinivalue_line("markers", "asyncio: mark test as async")
