"""
Test configuration for SoulMirror backend tests.

sys.path is configured so 'from backend...' resolves when pytest is run from
the project root or from backend/.

Fixtures give every test a fresh PaymentStore on a manual clock and a mocked
Gemini client; the FastAPI app is driven in-process through httpx ASGITransport
with dependency overrides (the lifespan does not run under ASGITransport).
"""
import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

_backend_dir = Path(__file__).parent.parent        # .../backend/
_project_root = _backend_dir.parent               # .../

if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

from backend.agents.payment_agent.store import PaymentStore  # noqa: E402
from backend.agents.reading_agent.llm_service import GeminiClient  # noqa: E402
from backend.config import settings  # noqa: E402
from backend.deps import get_llm_client, get_payment_store  # noqa: E402
from backend.main import app  # noqa: E402

START_MS = 1_767_225_600_000  # 2026-01-01T00:00:00Z
TTL_SECONDS = 300

HOOK_JSON = '{"sentiment": "hopeful", "hookLine": "你把孤独叫作自由。"}'


class ManualClock:
    """Clock whose time only moves when a test says so."""

    def __init__(self, start_ms: int = START_MS):
        self.current = start_ms

    def now_ms(self) -> int:
        return self.current

    def advance(self, seconds: float = 0, ms: int = 0) -> None:
        self.current += int(seconds * 1000) + ms


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def store(clock: ManualClock) -> PaymentStore:
    return PaymentStore(clock=clock, ttl_seconds=TTL_SECONDS, default_amount=2)


@pytest.fixture
def render_ok():
    """Image renderer stub for store-level tests."""
    return MagicMock(return_value="data:image/png;base64,AAAA")


@pytest.fixture
def gemini() -> MagicMock:
    """Mock GeminiClient - generate() returns a well-formed hook JSON by default."""
    mock = MagicMock(spec=GeminiClient)
    mock.generate = AsyncMock(return_value=HOOK_JSON)
    return mock


@pytest.fixture
def app_settings(monkeypatch):
    """Production-like settings: key configured, paywall on, QR base from request."""
    monkeypatch.setattr(settings, "gemini_api_key", "test-key")
    monkeypatch.setattr(settings, "require_payment", True)
    monkeypatch.setattr(settings, "pay_base_url", "")
    return settings


@pytest_asyncio.fixture
async def client(store: PaymentStore, gemini: MagicMock, app_settings):
    """Async httpx client using ASGI transport - no live server needed."""
    app.dependency_overrides[get_payment_store] = lambda: store
    app.dependency_overrides[get_llm_client] = lambda: gemini
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    app.dependency_overrides.clear()
