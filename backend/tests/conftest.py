import importlib
import os
import sys
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

# Ensure project root is on sys.path
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from controlplane.core.config import get_settings
from controlplane.services import presign as presign_service

SECRET_KEY = "s3cr3t"
NODE_ENDPOINT = "https://node.example"
ISSUED_AT = 1_700_000_000


def fixed_clock() -> float:
    return float(ISSUED_AT)


@pytest.fixture(scope="session", autouse=True)
def configure_environment():
    os.environ["ENV"] = "test"
    os.environ["SECRET_KEY"] = SECRET_KEY
    os.environ["NODE_ENDPOINT"] = NODE_ENDPOINT
    get_settings.cache_clear()
    presign_service.reset_presign_service()


@pytest.fixture
def presigner() -> presign_service.PresignedUrlService:
    return presign_service.PresignedUrlService(SECRET_KEY, NODE_ENDPOINT, clock=fixed_clock)


@pytest.fixture(scope="session")
def app_instance(configure_environment):
    from controlplane import main as app_module

    importlib.reload(app_module)
    return app_module.app


@pytest.fixture(autouse=True)
def install_presigner():
    presign_service._presign_service = presign_service.PresignedUrlService(
        SECRET_KEY,
        NODE_ENDPOINT,
        clock=fixed_clock,
    )
    yield
    presign_service.reset_presign_service()


@pytest_asyncio.fixture
async def client(app_instance):
    transport = ASGITransport(app=app_instance)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
