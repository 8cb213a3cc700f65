import pytest

from database import sync_database_url


@pytest.mark.parametrize(
    "async_url, expected",
    [
        ("sqlite+aiosqlite:///data/budget.db", "sqlite:///data/budget.db"),
        ("sqlite+aiosqlite://", "sqlite://"),
        (
            "postgresql+asyncpg://app:secret@db/budget",
            "postgresql+psycopg://app:secret@db/budget",
        ),
        ("mysql+aiomysql://app@db/budget", "mysql+pymysql://app@db/budget"),
        ("sqlite:///already-sync.db", "sqlite:///already-sync.db"),
    ],
)
def test_sync_database_url_swaps_async_driver(async_url, expected):
    assert sync_database_url(async_url) == expected
