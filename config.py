import os
from functools import lru_cache
from pathlib import Path


class Settings:
    def __init__(
        self,
        database_url: str,
        backend: str,
        local_store_path: Path,
        timezone: str,
        horizon_month: str,
        max_occurrences: int,
        owner_id: str,
        mark_late: bool,
    ) -> None:
        self.database_url = database_url
        self.backend = backend
        self.local_store_path = local_store_path
        self.timezone = timezone
        self.horizon_month = horizon_month
        self.max_occurrences = max_occurrences
        self.owner_id = owner_id
        self.mark_late = mark_late


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("BUDGET_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    default_db = data_dir / "budget.db"
    database_url = os.getenv("BUDGET_DATABASE_URL", f"sqlite+aiosqlite:///{default_db}")
    backend = os.getenv("BUDGET_BACKEND", "sql").lower()
    if backend not in {"sql", "local"}:
        raise ValueError(f"Unsupported storage backend: {backend}")
    local_store_path = Path(
        os.getenv("BUDGET_LOCAL_STORE", str(data_dir / "local_store.json"))
    )
    timezone = os.getenv("BUDGET_TIMEZONE", "America/Sao_Paulo")
    horizon_month = os.getenv("BUDGET_HORIZON_MONTH", "2060-12")
    max_occurrences = int(os.getenv("BUDGET_MAX_OCCURRENCES", "420"))
    owner_id = os.getenv("BUDGET_OWNER_ID", "local-user")
    mark_late = os.getenv("BUDGET_MARK_LATE", "1").strip().lower() in {
        "1",
        "true",
        "yes",
        "on",
    }
    return Settings(
        database_url=database_url,
        backend=backend,
        local_store_path=local_store_path,
        timezone=timezone,
        horizon_month=horizon_month,
        max_occurrences=max_occurrences,
        owner_id=owner_id,
        mark_late=mark_late,
    )
