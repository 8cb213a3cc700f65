import os
import tempfile

os.environ.setdefault("BUDGET_DATA_DIR", tempfile.mkdtemp(prefix="budget-tests-"))
os.environ.setdefault("BUDGET_MARK_LATE", "0")
os.environ.setdefault("BUDGET_BACKEND", "local")

import pytest_asyncio  # noqa: E402

from database import create_engine, make_sessionmaker  # noqa: E402
from gateways import LocalGateway, SqlGateway  # noqa: E402


@pytest_asyncio.fixture
async def sql_gateway(tmp_path):
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'budget.db'}")
    gateway = SqlGateway(make_sessionmaker(engine))
    await gateway.prepare()
    yield gateway
    await engine.dispose()


@pytest_asyncio.fixture
async def local_gateway(tmp_path):
    return LocalGateway(tmp_path / "local_store.json")


@pytest_asyncio.fixture(params=["sql", "local"])
async def gateway(request, tmp_path):
    if request.param == "local":
        yield LocalGateway(tmp_path / "local_store.json")
        return
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'budget.db'}")
    gateway = SqlGateway(make_sessionmaker(engine))
    await gateway.prepare()
    yield gateway
    await engine.dispose()
