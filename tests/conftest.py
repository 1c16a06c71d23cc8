import os

# Must be set before spendly.db builds its engine
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ.setdefault("TZ", "UTC")
os.environ.pop("PROMETHEUS_MULTIPROC_DIR", None)

from datetime import datetime, timedelta, timezone  # noqa: E402
from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from spendly import orm_models  # noqa: E402,F401
from spendly.core.keywords import load_keyword_tables  # noqa: E402
from spendly.db import Base, SessionLocal, engine  # noqa: E402
from spendly.deps.services import get_insights_cache, get_stream_opener  # noqa: E402
from spendly.main import app  # noqa: E402
from spendly.orm_models import BudgetFolder, Transaction, User  # noqa: E402
from spendly.repositories.finance_repository import FinanceRepository  # noqa: E402
from spendly.services.usage import UsageLogger  # noqa: E402

# Wednesday; the week starts Monday 2026-10-12 and last month is September
NOW = datetime(2026, 10, 14, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(scope="session")
def anyio_backend():
    """Ensure pytest-anyio uses asyncio loop for async tests."""
    return "asyncio"


@pytest.fixture(autouse=True)
def _baseline_test_env(monkeypatch):
    """No real provider credentials, built-in keyword tables, fresh caches."""
    for key in ("OPENAI_API_KEY", "GOOGLE_API_KEY", "GEMINI_API_KEY", "AI_PROVIDER"):
        monkeypatch.setenv(key, "")
    monkeypatch.delenv("ASSISTANT_KEYWORDS_FILE", raising=False)
    monkeypatch.setenv("USE_RECURRING_MEMORY", "0")
    load_keyword_tables.cache_clear()
    get_insights_cache.cache_clear()
    yield
    load_keyword_tables.cache_clear()
    get_insights_cache.cache_clear()


@pytest.fixture(autouse=True)
def _fresh_schema():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def repo(db):
    return FinanceRepository(db)


@pytest.fixture
def usage_logger():
    return UsageLogger(SessionLocal)


def _add_user(db, user_id: str, is_pro: bool = False, is_active: bool = True) -> User:
    user = User(id=user_id, email=f"{user_id}@example.com", is_pro=is_pro, is_active=is_active)
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def user(db):
    return _add_user(db, "u-free")


@pytest.fixture
def make_user(db):
    def _make(user_id: str, **kw):
        return _add_user(db, user_id, **kw)

    return _make


@pytest.fixture
def budgets(db, user):
    rows = [
        BudgetFolder(user_id=user.id, name="Groceries", emoji="🛒", type="expense"),
        BudgetFolder(user_id=user.id, name="Subscriptions", emoji="📺", type="expense"),
        BudgetFolder(user_id=user.id, name="Salary", emoji="💰", type="income"),
    ]
    db.add_all(rows)
    db.commit()
    return {b.name: b for b in rows}


@pytest.fixture
def add_tx(db):
    def _add(user_id, title, amount, created_at, budget=None, type="expense"):
        tx = Transaction(
            user_id=user_id,
            title=title,
            amount=Decimal(str(amount)),
            type=type,
            budget_folder_id=budget.id if budget is not None else None,
            created_at=created_at,
        )
        db.add(tx)
        db.commit()
        return tx

    return _add


@pytest.fixture
def monthly_netflix(add_tx, user, budgets):
    """Four monthly Netflix charges, the last on 2026-10-01."""
    sub = budgets["Subscriptions"]
    for month in (7, 8, 9, 10):
        add_tx(user.id, "Netflix", "15.99", datetime(2026, month, 1, 9, 0, tzinfo=timezone.utc), sub)


class FakeOpener:
    """Stands in for the provider gateway; records calls and yields fixed chunks."""

    def __init__(self, chunks=("Hello", " there"), error=None):
        self.chunks = list(chunks)
        self.error = error
        self.calls = []
        self.closed = False

    async def __call__(self, provider, *, model, prompt, system=None, settings=None, **kw):
        self.calls.append({"provider": provider, "model": model, "prompt": prompt, "system": system})
        if self.error is not None:
            raise self.error
        return self._gen()

    async def _gen(self):
        try:
            for c in self.chunks:
                yield c
        finally:
            self.closed = True


@pytest.fixture
def fake_opener():
    opener = FakeOpener()
    app.dependency_overrides[get_stream_opener] = lambda: opener
    yield opener
    app.dependency_overrides.pop(get_stream_opener, None)


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


def days_ago(n: int, hour: int = 10) -> datetime:
    return (NOW - timedelta(days=n)).replace(hour=hour, minute=0)
