import os

# Avant l'import de l'app: pas de Redis réel ni d'appel API de taux au démarrage
os.environ.setdefault("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS", "1")
os.environ.setdefault("PRELOAD_EXCHANGE_RATES", "0")

import pytest
from typing import Generator, Dict, Any, Optional
from unittest.mock import MagicMock
from fastapi.testclient import TestClient

from backend import config
from backend.app import app as fastapi_app
from backend.currency import rates as currency_rates
from backend.currency.rates import ExchangeRateService
from backend.payments import service as payments_service
from backend.utils.security import require_user, require_admin

TEST_SECRET = "test-payment-secret"

# Marquage automatique selon le dossier
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "/tests/unit/" in nodeid or nodeid.startswith("tests/unit/"):
            item.add_marker(pytest.mark.unit)
        elif "/tests/integration/" in nodeid or nodeid.startswith("tests/integration/"):
            item.add_marker(pytest.mark.integration)


class FakeFetcher:
    """Fetcher de taux déterministe: compte les appels, renvoie `rates` (None = API en panne)."""

    def __init__(self, rates: Optional[Dict[str, float]] = None):
        self.rates = rates
        self.calls = 0

    def fetch(self, base: str):
        self.calls += 1
        return dict(self.rates) if self.rates is not None else None


@pytest.fixture(scope="session")
def app():
    return fastapi_app

@pytest.fixture()
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as c:
        yield c

@pytest.fixture
def authenticated_admin_client(app, client):
    def _override_require_admin():
        return {"id": "admin-user-id", "role": "admin", "email": "admin@example.com"}
    app.dependency_overrides[require_admin] = _override_require_admin
    yield client
    app.dependency_overrides.pop(require_admin, None)

# Simuler un utilisateur authentifié pour les endpoints protégés
@pytest.fixture(autouse=True)
def _override_require_user(app):
    fake_user: Dict[str, Any] = {
        "id": "test-user",
        "email": "test@example.com",
        "role": "user",
        "metadata": {"full_name": "Test User"},
        "token": "fake-token",
    }
    app.dependency_overrides[require_user] = lambda: fake_user
    try:
        yield
    finally:
        app.dependency_overrides.pop(require_user, None)

@pytest.fixture(autouse=True)
def _payment_config(monkeypatch):
    monkeypatch.setattr(config, "PAYMENT_TOKEN_SECRET", TEST_SECRET)
    monkeypatch.setattr(config, "PAYMENT_TOKEN_SINGLE_USE", False)
    monkeypatch.setattr(config, "PAYMENT_SITE_URL", "https://pay.example.test")
    monkeypatch.setattr(config, "MAIN_SITE_URL", "https://shop.example.test")
    monkeypatch.setattr(config, "CURRENCY_STRICT_RATES", False)
    payments_service.set_replay_guard(None)
    yield
    payments_service.set_replay_guard(None)

@pytest.fixture
def fake_fetcher():
    return FakeFetcher({"USD": 1.0, "EUR": 0.9, "JPY": 150.0, "GBP": 0.8})

# Taux de change: service sans réseau, ni Redis
@pytest.fixture(autouse=True)
def rate_service(fake_fetcher):
    service = ExchangeRateService(fake_fetcher)
    currency_rates.reset_rate_service(service)
    yield service
    currency_rates.reset_rate_service(None)

# Mock database dependency for all tests
@pytest.fixture(scope="function", autouse=True)
def mock_db_dependency(monkeypatch):
    """Aucun test ne parle à Supabase: clients remplacés par des MagicMock."""
    monkeypatch.setattr("backend.infra.supabase_client.get_supabase", lambda: MagicMock())
    monkeypatch.setattr("backend.infra.supabase_client.get_service_supabase", lambda: MagicMock())
    monkeypatch.setattr("backend.health.service.health_supabase_info", lambda: {"connect_ok": True})
